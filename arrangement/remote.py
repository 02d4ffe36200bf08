"""
Remote segment store - talks JSON over TCP to a bridge running in the host.

Each primitive maps to one command; the bridge replies with
{"status": "success", "result": ...} or {"status": "error", "message": ...}.
"""

import json
import logging
import socket
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import StoreError
from .models import SegmentProps
from .store import SegmentStore

logger = logging.getLogger(__name__)


class HostConnectionError(Exception):
    """The bridge could not be reached or replied with garbage."""


class HostCommandError(Exception):
    """The bridge executed the command and reported a failure."""


@dataclass
class HostConnection:
    host: str
    port: int
    sock: Optional[socket.socket] = None
    timeout: float = 15.0

    def connect(self) -> bool:
        """Connect to the host bridge socket."""
        if self.sock:
            return True

        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.sock.connect((self.host, self.port))
            logger.info(f"Connected to host bridge at {self.host}:{self.port}")
            return True
        except OSError as e:
            logger.error(f"Failed to connect to host bridge: {str(e)}")
            self.sock = None
            return False

    def disconnect(self):
        """Close the bridge socket."""
        if self.sock:
            try:
                self.sock.close()
            except OSError as e:
                logger.error(f"Error disconnecting from host bridge: {str(e)}")
            finally:
                self.sock = None

    def receive_full_response(self, sock, buffer_size=8192) -> bytes:
        """Receive the complete response, potentially in multiple chunks"""
        chunks = []
        sock.settimeout(self.timeout)

        while True:
            try:
                chunk = sock.recv(buffer_size)
            except socket.timeout:
                logger.warning("Socket timeout during chunked receive")
                break
            if not chunk:
                if not chunks:
                    raise HostConnectionError("Connection closed before receiving any data")
                break

            chunks.append(chunk)

            # Stop as soon as the buffer holds a complete JSON object
            try:
                data = b''.join(chunks)
                json.loads(data.decode('utf-8'))
                logger.debug(f"Received complete response ({len(data)} bytes)")
                return data
            except json.JSONDecodeError:
                continue

        if chunks:
            data = b''.join(chunks)
            try:
                json.loads(data.decode('utf-8'))
                return data
            except json.JSONDecodeError:
                raise HostConnectionError("Incomplete JSON response received")
        raise HostConnectionError("No data received")

    def send_command(self, command_type: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send a command to the bridge and return its result payload."""
        if not self.sock and not self.connect():
            raise HostConnectionError("Not connected to host bridge")

        command = {
            "type": command_type,
            "params": params or {}
        }

        try:
            logger.debug(f"Sending command: {command_type} with params: {params}")
            self.sock.sendall(json.dumps(command).encode('utf-8'))
            response_data = self.receive_full_response(self.sock)
            response = json.loads(response_data.decode('utf-8'))
        except (ConnectionError, BrokenPipeError, ConnectionResetError, socket.timeout) as e:
            logger.error(f"Socket connection error: {str(e)}")
            self.sock = None
            raise HostConnectionError(f"Connection to host bridge lost: {str(e)}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from host bridge: {str(e)}")
            self.sock = None
            raise HostConnectionError(f"Invalid response from host bridge: {str(e)}")

        if response.get("status") == "error":
            raise HostCommandError(response.get("message", "Unknown error from host"))

        return response.get("result", {})


class RemoteSegmentStore(SegmentStore):
    """SegmentStore backed by a host bridge connection."""

    def __init__(self, connection: HostConnection, self_clamping: bool = True):
        self.connection = connection
        self.self_clamping = self_clamping

    def _call(self, step: str, command: str, params: Dict[str, Any],
              segment_id: Optional[str] = None) -> Any:
        try:
            return self.connection.send_command(command, params)
        except (HostCommandError, HostConnectionError) as e:
            logger.error(f"{step} failed on host: {e}")
            raise StoreError(step, str(e), segment_id) from e

    def _new_id(self, step: str, result: Any, segment_id: Optional[str] = None) -> str:
        try:
            return str(result["id"])
        except (KeyError, TypeError) as e:
            raise StoreError(step, f"malformed reply: {result!r}", segment_id) from e

    def create(self, track: int, position: float, length: float, content_ref: str) -> str:
        result = self._call("create", "create_segment", {
            "track": track,
            "position": position,
            "length": length,
            "content_ref": content_ref,
        })
        return self._new_id("create", result)

    def duplicate(self, source_id: str, target_position: float) -> str:
        result = self._call("duplicate", "duplicate_segment", {
            "id": source_id,
            "position": target_position,
        }, source_id)
        return self._new_id("duplicate", result, source_id)

    def delete(self, segment_id: str) -> None:
        self._call("delete", "delete_segment", {"id": segment_id}, segment_id)

    def set_markers(
        self,
        segment_id: str,
        start_marker: Optional[float] = None,
        end_marker: Optional[float] = None,
        loop_start: Optional[float] = None,
        loop_end: Optional[float] = None,
    ) -> None:
        markers = {
            "start_marker": start_marker,
            "end_marker": end_marker,
            "loop_start": loop_start,
            "loop_end": loop_end,
        }
        params: Dict[str, Any] = {"id": segment_id}
        params.update({k: v for k, v in markers.items() if v is not None})
        self._call("set_markers", "set_segment_markers", params, segment_id)

    def get_properties(self, segment_id: str) -> SegmentProps:
        result = self._call("get_properties", "get_segment", {"id": segment_id}, segment_id)
        try:
            return SegmentProps.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError("get_properties", f"malformed segment reply: {e}", segment_id) from e

    def list_segments(self, track: int) -> List[str]:
        result = self._call("list_segments", "list_segments", {"track": track})
        return [str(seg_id) for seg_id in result.get("ids", [])]
