"""JSON-RPC 2.0 transport for the composed dispatch surface.

Messages are newline-delimited JSON over TCP or a Unix socket. Every request
runs in its own task, so a slow call does not hold up others on the same
connection.
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from noteserver.auth import Authorizer
from noteserver.core.registry import DispatchSurface
from noteserver.errors import (
    INTERNAL_ERROR,
    INVALID_ENVELOPE,
    PARSE_ERROR,
    ServiceError,
)

logger = logging.getLogger(__name__)

MAX_LINE = 64 * 1024 * 1024


def parse_address(address: str) -> Tuple[str, Any]:
    """Split an address into ("unix", path) or ("tcp", (host, port))."""
    if not address:
        raise ValueError("a non-empty address is required")
    if "/" in address:
        return "unix", address
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {address!r}, want host:port or a socket path")
    return "tcp", (host or None, int(port))


def _error(req_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    err = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": err}


def _result(req_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


class RPCServer:
    """Serves a DispatchSurface to JSON-RPC clients."""

    def __init__(self, surface: DispatchSurface, authorizer: Optional[Authorizer] = None):
        self.surface = surface
        self.authorizer = authorizer or Authorizer()
        self.server: Optional[asyncio.AbstractServer] = None

    async def start(self, address: str) -> None:
        kind, where = parse_address(address)
        if kind == "unix":
            if os.path.exists(where):
                os.unlink(where)
            self.server = await asyncio.start_unix_server(self._handle_client, path=where, limit=MAX_LINE)
            os.chmod(where, 0o600)
        else:
            host, port = where
            self.server = await asyncio.start_server(self._handle_client, host, port, limit=MAX_LINE)
        logger.info(f"Listening on {address}")

    async def serve_forever(self) -> None:
        async with self.server:
            await self.server.serve_forever()

    async def stop(self) -> None:
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            logger.info("Server stopped")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        addr = writer.get_extra_info("peername") or "local"
        logger.debug(f"Client connected: {addr}")
        write_lock = asyncio.Lock()
        pending = set()

        async def respond(line: bytes) -> None:
            response = await self.handle_line(line)
            if response is None:
                return
            async with write_lock:
                writer.write(json.dumps(response).encode("utf-8") + b"\n")
                await writer.drain()

        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                task = asyncio.create_task(respond(line))
                pending.add(task)
                task.add_done_callback(pending.discard)
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        except (ConnectionError, asyncio.IncompleteReadError, ValueError) as e:
            # readline reports a line longer than MAX_LINE as ValueError.
            logger.warning(f"Connection from {addr} failed: {e}")
        finally:
            for task in pending:
                task.cancel()
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
            logger.debug(f"Client disconnected: {addr}")

    async def handle_line(self, line: bytes) -> Any:
        """Decode one message and return the response to send, if any."""
        try:
            message = json.loads(line)
        except ValueError as e:
            return _error(None, PARSE_ERROR, f"parse error: {e}")

        if isinstance(message, list):
            if not message:
                return _error(None, INVALID_ENVELOPE, "empty batch")
            replies = await asyncio.gather(*(self.handle_request(m) for m in message))
            replies = [r for r in replies if r is not None]
            return replies or None
        return await self.handle_request(message)

    async def handle_request(self, request: Any) -> Optional[Dict[str, Any]]:
        """Dispatch one request object. Notifications produce no response."""
        if not isinstance(request, dict) or request.get("jsonrpc") != "2.0":
            return _error(None, INVALID_ENVELOPE, "invalid request")
        method = request.get("method")
        req_id = request.get("id")
        is_notification = "id" not in request
        if not isinstance(method, str) or not method:
            return _error(req_id, INVALID_ENVELOPE, "missing method name")

        try:
            self.authorizer.check(method, request.get("auth"))
            if method == "rpc.serverInfo":
                result = self.server_info()
            else:
                result = await self.surface.call(method, request.get("params"))
        except ServiceError as e:
            logger.debug(f"{method} failed: {e.message}")
            return None if is_notification else _error(req_id, e.code, e.message, e.data)
        except Exception as e:
            logger.error(f"Unhandled error in {method}: {e}", exc_info=True)
            return None if is_notification else _error(req_id, INTERNAL_ERROR, f"internal error: {e}")

        return None if is_notification else _result(req_id, result)

    def server_info(self) -> Dict[str, Any]:
        methods: List[str] = self.surface.names()
        return {"methods": methods}
