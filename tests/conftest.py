"""
Shared fixtures: a fake Bot API server and a multipart body parser.
"""

import asyncio
import json
import threading
from typing import Dict, List, Optional, Tuple

import pytest
from aiohttp import web


def split_multipart(body: bytes, boundary: str) -> List[Tuple[Dict[str, str], bytes]]:
    """Split a multipart body into (headers, content) pairs, strictly."""
    delimiter = b"\r\n--" + boundary.encode("ascii")
    assert body.endswith(b"--" + boundary.encode("ascii") + b"--\r\n"), "missing closing boundary"

    segments = (b"\r\n" + body).split(delimiter)
    assert segments[0] == b""
    assert segments[-1] == b"--\r\n"

    parts = []
    for segment in segments[1:-1]:
        assert segment.startswith(b"\r\n")
        raw_headers, content = segment[2:].split(b"\r\n\r\n", 1)
        headers = {}
        for line in raw_headers.decode("utf-8").split("\r\n"):
            key, value = line.split(": ", 1)
            headers[key.lower()] = value
        parts.append((headers, content))
    return parts


def disposition_params(header: str) -> Dict[str, str]:
    """Parse name/filename out of a Content-Disposition value."""
    params = {}
    for item in header.split("; ")[1:]:
        key, value = item.split("=", 1)
        params[key] = value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return params


@pytest.fixture
def parse_multipart():
    """Return a parser producing {field: (filename or None, bytes)}."""

    def _parse(body: bytes, boundary: str) -> Dict[str, Tuple[Optional[str], bytes]]:
        form = {}
        for headers, content in split_multipart(body, boundary):
            params = disposition_params(headers["content-disposition"])
            form[params["name"]] = (params.get("filename"), content)
        return form

    return _parse


class FakeBotApi:
    """Minimal Bot API served by aiohttp.web on 127.0.0.1 in a thread."""

    def __init__(self) -> None:
        self.requests: List[dict] = []
        self.status = 200
        self.payload: object = {
            "ok": True,
            "result": {"message_id": 4242, "audio": {"file_id": "CQACAgQAAxkBAAIB"}},
        }
        self.raw_body: Optional[str] = None
        self.delay = 0.0
        self.port = 0
        self._runner: Optional[web.AppRunner] = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)

    @property
    def api_base(self) -> str:
        return f"http://127.0.0.1:{self.port}/bot"

    def start(self) -> None:
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._start(), self._loop).result(10)

    def stop(self) -> None:
        asyncio.run_coroutine_threadsafe(self._runner.cleanup(), self._loop).result(10)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(10)
        self._loop.close()

    async def _start(self) -> None:
        app = web.Application(client_max_size=64 * 1024 * 1024)
        app.router.add_post("/bot{token}/{method}", self._handle)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        self.port = self._runner.addresses[0][1]

    async def _handle(self, request: web.Request) -> web.Response:
        record = {
            "token": request.match_info["token"],
            "method": request.match_info["method"],
            "content_type": request.headers.get("Content-Type", ""),
            "fields": {},
            "files": {},
            "error": None,
        }
        self.requests.append(record)
        try:
            form = await request.post()
        except Exception as e:
            record["error"] = e
            return web.Response(status=400, text=json.dumps({"ok": False, "description": "bad body"}))

        for name, value in form.items():
            if isinstance(value, web.FileField):
                record["files"][name] = (value.filename, value.file.read())
            else:
                record["fields"][name] = value

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return web.Response(status=self.status, text=self.raw_body)
        return web.Response(status=self.status, text=json.dumps(self.payload), content_type="application/json")


@pytest.fixture
def fake_api():
    """Running FakeBotApi, stopped after the test."""
    server = FakeBotApi()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def audio_file(tmp_path):
    """Small fake MP3 file."""
    path = tmp_path / "Track 01.mp3"
    path.write_bytes(b"ID3\x04\x00\x00" + bytes(range(256)) * 40)
    return path


@pytest.fixture
def thumb_file(tmp_path):
    """Small fake JPEG thumbnail."""
    path = tmp_path / "cover.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0" + b"\x00JFIF" + b"\x10" * 500 + b"\xff\xd9")
    return path


@pytest.fixture
def state_file(tmp_path):
    """Rate state path inside a directory that does not exist yet."""
    return tmp_path / "state" / "nested" / "last_upload.txt"


class EarlyReplyServer:
    """Raw HTTP server that answers as soon as the request headers arrive."""

    def __init__(self, status: int, payload: dict) -> None:
        self.status = status
        self.body = json.dumps(payload).encode("utf-8")
        self.port = 0
        self._server: Optional[asyncio.AbstractServer] = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)

    @property
    def api_base(self) -> str:
        return f"http://127.0.0.1:{self.port}/bot"

    def start(self) -> None:
        self._thread.start()
        asyncio.run_coroutine_threadsafe(self._start(), self._loop).result(10)

    def stop(self) -> None:
        self._loop.call_soon_threadsafe(self._server.close)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(10)
        self._loop.close()

    async def _start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.readuntil(b"\r\n\r\n")
        head = (
            f"HTTP/1.1 {self.status} Error\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(self.body)}\r\n"
            "Connection: close\r\n\r\n"
        )
        writer.write(head.encode("ascii") + self.body)
        await writer.drain()

        # Discard whatever the client still sends until it hangs up
        try:
            while await reader.read(65536):
                pass
        except ConnectionError:
            pass
        writer.close()


@pytest.fixture
def unauthorized_api():
    """EarlyReplyServer rejecting every request with 401."""
    server = EarlyReplyServer(401, {"ok": False, "error_code": 401, "description": "Unauthorized"})
    server.start()
    yield server
    server.stop()
