"""Tests for the JSON-RPC transport."""

import asyncio
import base64
import json

import pytest

from noteserver.auth import Authorizer
from noteserver.core.registry import PluginRegistry
from noteserver.errors import (
    AMBIGUOUS_RESULT,
    INTERNAL_ERROR,
    INVALID_ENVELOPE,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RESOURCE_NOT_FOUND,
    UNAUTHORIZED,
)
from noteserver.rpc_server import RPCServer, parse_address
from noteserver.services.clip import ClipService
from noteserver.services.notes import NotesService


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def request(method, params=None, req_id=1, **extra):
    msg = {"jsonrpc": "2.0", "id": req_id, "method": method}
    if params is not None:
        msg["params"] = params
    msg.update(extra)
    return json.dumps(msg).encode()


class TestParseAddress:
    def test_tcp(self):
        assert parse_address(":8080") == ("tcp", (None, 8080))
        assert parse_address("localhost:8080") == ("tcp", ("localhost", 8080))

    def test_unix(self):
        assert parse_address("/tmp/noteserver.sock") == ("unix", "/tmp/noteserver.sock")

    @pytest.mark.parametrize("address", ["", "localhost", "host:http"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_address(address)


class TestHandleLine:
    @pytest.fixture
    def server(self, config, clipboard):
        registry = PluginRegistry()
        registry.register("Clip", ClipService(clipboard))
        registry.register("Notes", NotesService())
        return RPCServer(registry.compose(config))

    @pytest.mark.asyncio
    async def test_clip_round_trip(self, server):
        rsp = await server.handle_line(request("Clip.Set", {"tag": "x", "data": b64(b"hello")}))
        assert rsp == {"jsonrpc": "2.0", "id": 1, "result": True}

        rsp = await server.handle_line(request("Clip.Get", {"tag": "x"}, req_id=2))
        assert base64.b64decode(rsp["result"]) == b"hello"

        rsp = await server.handle_line(request("Clip.List"))
        assert rsp["result"] == ["active", "x"]

    @pytest.mark.asyncio
    async def test_error_codes(self, server):
        rsp = await server.handle_line(request("Clip.Set", {"data": ""}))
        assert rsp["error"]["code"] == INVALID_PARAMS

        rsp = await server.handle_line(request("Clip.Get", {"tag": "missing"}))
        assert rsp["error"]["code"] == RESOURCE_NOT_FOUND

        rsp = await server.handle_line(request("Notes.Read", {"tag": "log", "version": "2024-02-15"}))
        assert rsp["error"]["code"] == AMBIGUOUS_RESULT

        rsp = await server.handle_line(request("Key.Generate", {"host": "example.com"}))
        assert rsp["error"]["code"] == METHOD_NOT_FOUND

        rsp = await server.handle_line(request("Clip.Set", {"data": "not base64!"}))
        assert rsp["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_notes_over_wire(self, server):
        rsp = await server.handle_line(request("Notes.List", {"tag": "log", "category": "work"}))
        assert [n["version"] for n in rsp["result"]] == ["2024-01-01", "2024-02-15"]

        rsp = await server.handle_line(request("Notes.Categories"))
        assert [c["name"] for c in rsp["result"]] == ["work", "home"]

    @pytest.mark.asyncio
    async def test_parse_error(self, server):
        rsp = await server.handle_line(b"{nope")
        assert rsp["error"]["code"] == PARSE_ERROR
        assert rsp["id"] is None

    @pytest.mark.asyncio
    async def test_invalid_envelope(self, server):
        rsp = await server.handle_line(json.dumps({"id": 1, "method": "Clip.List"}).encode())
        assert rsp["error"]["code"] == INVALID_ENVELOPE
        rsp = await server.handle_line(b"[]")
        assert rsp["error"]["code"] == INVALID_ENVELOPE

    @pytest.mark.asyncio
    async def test_notification_has_no_reply(self, server, clipboard):
        msg = json.dumps({"jsonrpc": "2.0", "method": "Clip.Set", "params": {"data": b64(b"n")}})
        assert await server.handle_line(msg.encode()) is None
        assert clipboard.data == b"n"

    @pytest.mark.asyncio
    async def test_batch(self, server):
        batch = "[" + ",".join(
            [
                request("Clip.List", req_id=1).decode(),
                request("Nope.Nope", req_id=2).decode(),
            ]
        ) + "]"
        rsp = await server.handle_line(batch.encode())
        assert [r["id"] for r in rsp] == [1, 2]
        assert "result" in rsp[0]
        assert rsp[1]["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_server_info(self, server):
        rsp = await server.handle_line(request("rpc.serverInfo"))
        assert "Clip.Set" in rsp["result"]["methods"]
        assert "Notes.Edit" in rsp["result"]["methods"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self, server):
        async def boom(req):
            raise RuntimeError("kaboom")

        server.surface.services["Clip"]["Get"].handler = boom
        rsp = await server.handle_line(request("Clip.Get", {"tag": "x"}))
        assert rsp["error"]["code"] == INTERNAL_ERROR
        assert "kaboom" in rsp["error"]["message"]

    @pytest.mark.asyncio
    async def test_authorization(self, server):
        server.authorizer = Authorizer("s3cret", ["-Notes.*", "*"])

        rsp = await server.handle_line(request("Clip.List"))
        assert rsp["error"]["code"] == UNAUTHORIZED

        rsp = await server.handle_line(request("Clip.List", auth="s3cret"))
        assert rsp["result"] == ["active"]

        rsp = await server.handle_line(request("Notes.Categories", auth="s3cret"))
        assert rsp["error"]["code"] == UNAUTHORIZED


class TestSocketServer:
    @pytest.mark.asyncio
    async def test_serves_tcp_clients(self, config, clipboard):
        registry = PluginRegistry()
        registry.register("Clip", ClipService(clipboard))
        server = RPCServer(registry.compose(config))
        await server.start("127.0.0.1:0")
        port = server.server.sockets[0].getsockname()[1]
        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", port)
            writer.write(request("Clip.Set", {"tag": "t", "data": b64(b"over tcp")}) + b"\n")
            writer.write(request("Clip.Get", {"tag": "t"}, req_id=2) + b"\n")
            await writer.drain()

            replies = [json.loads(await reader.readline()) for _ in range(2)]
            by_id = {r["id"]: r for r in replies}
            assert by_id[1]["result"] is True
            # Requests run concurrently; the get may race the set.
            assert "result" in by_id[2] or by_id[2]["error"]["code"] == RESOURCE_NOT_FOUND

            writer.close()
            await writer.wait_closed()
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_oversized_line_closes_only_that_connection(self, config, clipboard, monkeypatch):
        monkeypatch.setattr("noteserver.rpc_server.MAX_LINE", 256)
        registry = PluginRegistry()
        registry.register("Clip", ClipService(clipboard))
        server = RPCServer(registry.compose(config))
        await server.start("127.0.0.1:0")
        port = server.server.sockets[0].getsockname()[1]
        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", port)
            writer.write(request("Clip.Set", {"data": b64(b"x" * 4096)}) + b"\n")
            await writer.drain()
            try:
                rest = await asyncio.wait_for(reader.read(), 5)
            except ConnectionResetError:
                rest = b""
            assert rest == b""
            writer.close()

            reader, writer = await asyncio.open_connection("127.0.0.1", port)
            writer.write(request("Clip.List") + b"\n")
            await writer.drain()
            assert json.loads(await reader.readline())["result"] == ["active"]
            writer.close()
            await writer.wait_closed()
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_serves_unix_clients(self, config, clipboard, tmp_path):
        registry = PluginRegistry()
        registry.register("Clip", ClipService(clipboard))
        server = RPCServer(registry.compose(config))
        path = str(tmp_path / "ns.sock")
        await server.start(path)
        try:
            reader, writer = await asyncio.open_unix_connection(path)
            writer.write(request("Clip.List") + b"\n")
            await writer.drain()
            assert json.loads(await reader.readline())["result"] == ["active"]
            writer.close()
            await writer.wait_closed()
        finally:
            await server.stop()
