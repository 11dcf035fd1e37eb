from __future__ import annotations

import json
import socket
import threading
import time
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs

import pytest


def _pick_free_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = int(s.getsockname()[1])
    s.close()
    return port


def _serve(handler_cls: type[BaseHTTPRequestHandler]):
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler_cls)
    httpd.daemon_threads = True
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    return httpd, thread


def _stop(httpd: ThreadingHTTPServer, thread: threading.Thread) -> None:
    httpd.shutdown()
    thread.join(timeout=5)
    httpd.server_close()


class _SiteHandler(BaseHTTPRequestHandler):
    # HTTPS probes against this plain-HTTP server send a TLS hello that may never
    # contain a newline; give up on it quickly instead of blocking the probe.
    timeout = 0.5
    status_code = 200
    hits: list[str]

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        type(self).hits.append(self.path)
        if self.status_code == 200 and self.path == "/":
            self.send_response(302)
            self.send_header("Location", "/home")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        body = f"status {self.status_code}".encode("utf-8")
        self.send_response(self.status_code)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


@dataclass
class Sites:
    up: str
    down: str
    closed: str
    up_hits: list[str]
    down_hits: list[str]


@pytest.fixture()
def sites():
    up_cls = type("_UpHandler", (_SiteHandler,), {"status_code": 200, "hits": []})
    down_cls = type("_DownHandler", (_SiteHandler,), {"status_code": 503, "hits": []})
    up_httpd, up_thread = _serve(up_cls)
    down_httpd, down_thread = _serve(down_cls)
    try:
        yield Sites(
            up=f"127.0.0.1:{up_httpd.server_address[1]}",
            down=f"127.0.0.1:{down_httpd.server_address[1]}",
            closed=f"127.0.0.1:{_pick_free_port()}",
            up_hits=up_cls.hits,
            down_hits=down_cls.hits,
        )
    finally:
        _stop(up_httpd, up_thread)
        _stop(down_httpd, down_thread)


@dataclass
class NotifyServer:
    base_url: str
    telegram: list[dict[str, Any]] = field(default_factory=list)
    wechat: list[dict[str, list[str]]] = field(default_factory=list)

    @property
    def wechat_url(self) -> str:
        return f"{self.base_url}/wx"


@pytest.fixture()
def notify_server():
    """Fake Telegram Bot API (token `bad` is rejected) plus a WeChat relay at /wx."""
    telegram: list[dict[str, Any]] = []
    wechat: list[dict[str, list[str]]] = []

    class _Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args) -> None:  # noqa: A002
            return

        def _send_json(self, status: int, obj: dict) -> None:
            body = json.dumps(obj, ensure_ascii=False).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_POST(self) -> None:  # noqa: N802
            n = int(self.headers.get("Content-Length") or "0")
            raw = self.rfile.read(n) if n > 0 else b""
            if self.path == "/wx":
                wechat.append(parse_qs(raw.decode("utf-8")))
                self._send_json(200, {"code": 0})
                return
            if self.path.startswith("/bot") and self.path.endswith("/sendMessage"):
                token = self.path[len("/bot") : -len("/sendMessage")]
                if token == "bad":
                    self._send_json(401, {"ok": False, "error_code": 401, "description": "Unauthorized"})
                    return
                payload = json.loads(raw.decode("utf-8"))
                telegram.append({"token": token, **payload})
                self._send_json(200, {"ok": True, "result": {"message_id": len(telegram)}})
                return
            self._send_json(404, {"ok": False})

    httpd, thread = _serve(_Handler)
    try:
        yield NotifyServer(base_url=f"http://127.0.0.1:{httpd.server_address[1]}", telegram=telegram, wechat=wechat)
    finally:
        _stop(httpd, thread)


class _SlowHandler(BaseHTTPRequestHandler):
    timeout = 0.5
    drip = "body"

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _drip_body(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", "12")
        self.end_headers()
        for _ in range(12):
            self.wfile.write(b"x")
            self.wfile.flush()
            time.sleep(0.5)

    def _drip_headers(self) -> None:
        # Each chunk arrives well inside a per-read timeout, the whole response does not.
        self.wfile.write(b"HTTP/1.1 200 OK\r\n")
        self.wfile.flush()
        for i in range(20):
            time.sleep(0.3)
            self.wfile.write(f"X-Slow-{i}: 1\r\n".encode("ascii"))
            self.wfile.flush()
        self.wfile.write(b"Content-Length: 0\r\n\r\n")
        self.wfile.flush()

    def do_GET(self) -> None:  # noqa: N802
        try:
            if self.drip == "headers":
                self._drip_headers()
            else:
                self._drip_body()
        except OSError:
            # client hung up early
            self.close_connection = True


@dataclass
class SlowSites:
    body: str
    headers: str


@pytest.fixture()
def slow_sites():
    """One server that trickles its body and another that trickles its headers."""
    body_httpd, body_thread = _serve(_SlowHandler)
    headers_httpd, headers_thread = _serve(
        type("_SlowHeadersHandler", (_SlowHandler,), {"drip": "headers"})
    )
    try:
        yield SlowSites(
            body=f"127.0.0.1:{body_httpd.server_address[1]}",
            headers=f"127.0.0.1:{headers_httpd.server_address[1]}",
        )
    finally:
        _stop(body_httpd, body_thread)
        _stop(headers_httpd, headers_thread)
