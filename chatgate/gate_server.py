"""The gate's HTTP front end: request dispatch, the threaded server and its command."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

from chatgate.config import default_config, load_config
from chatgate.logic import HttpExchange, LogicSystem, UserInfo
from chatgate.redis_store import create_redis_store
from chatgate.status_service import StatusService
from chatgate.urlcodec import parse_target

log = logging.getLogger(__name__)

DEFAULT_PORT = 8080
REQUEST_TIMEOUT_SECONDS = 60
SERVER_NAME = "GateServer"
NOT_FOUND_BODY = "url not found\r\n"


@dataclass
class GateResponse:
    """The status, headers and body the gate sends back for one request."""

    status: HTTPStatus
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def handle_request(logic: LogicSystem, method: str, target: str, body: str = "") -> GateResponse | None:
    """Dispatch one request to ``logic`` and build the response.

    GET targets are split into path and query parameters; POST targets are
    matched whole. Returns None when nothing is to be sent: for methods other
    than GET and POST, and when a handler raises.
    """
    if method == "GET":
        parsed = parse_target(target)
        exchange = HttpExchange(body=body, params=parsed.params)
        path = parsed.path
        run = logic.handle_get
    elif method == "POST":
        exchange = HttpExchange(body=body)
        path = target
        run = logic.handle_post
    else:
        return None

    try:
        found = run(path, exchange)
    except Exception:
        log.exception("handler for %s %s failed", method, target)
        return None

    headers = dict(exchange.headers)
    if not found:
        headers["Content-Type"] = "text/plain"
        exchange.write(NOT_FOUND_BODY)
        return GateResponse(HTTPStatus.NOT_FOUND, headers, exchange.response_body)
    headers["Server"] = SERVER_NAME
    return GateResponse(HTTPStatus.OK, headers, exchange.response_body)


class GateRequestHandler(BaseHTTPRequestHandler):
    """Serves one short-lived HTTP connection; idle connections time out."""

    protocol_version = "HTTP/1.1"
    server_version = SERVER_NAME
    timeout = REQUEST_TIMEOUT_SECONDS

    def do_GET(self) -> None:
        self._dispatch("GET")

    def do_POST(self) -> None:
        self._dispatch("POST")

    def _dispatch(self, method: str) -> None:
        self.close_connection = True
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            self.send_error(HTTPStatus.BAD_REQUEST, "invalid Content-Length")
            return
        raw = self.rfile.read(length) if length > 0 else b""
        body = raw.decode("utf-8", "surrogateescape")
        response = handle_request(self.server.logic, method, self.path, body)
        if response is None:
            return
        payload = response.body.encode("utf-8", "surrogateescape")
        self.send_response_only(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        log.info("%s - %s", self.address_string(), format % args)


class _GateHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], logic: LogicSystem):
        self.logic = logic
        super().__init__(address, GateRequestHandler)


def make_server(host: str, port: int, logic: LogicSystem) -> ThreadingHTTPServer:
    """Bind a threaded HTTP server that routes requests through ``logic``."""
    return _GateHTTPServer((host, port), logic)


class BackendUnavailableError(ConnectionError):
    """Raised when a request needs a backend this gate has no connection to."""


class _UnavailableBackend:
    """Stands in for a backend service the gate cannot reach."""

    def __init__(self, name: str):
        self._name = name

    def _fail(self) -> None:
        raise BackendUnavailableError(f"{self._name} is not available")

    def reg_user(self, name: str, email: str, pwd: str) -> int:
        self._fail()
        return -1

    def check_email(self, name: str, email: str) -> bool:
        self._fail()
        return False

    def update_pwd(self, name: str, pwd: str) -> bool:
        self._fail()
        return False

    def check_pwd(self, name: str, pwd: str) -> UserInfo | None:
        self._fail()
        return None

    def get_varify_code(self, email: str) -> int:
        self._fail()
        return -1


def _raise_interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> int:
    """Run the gate server until SIGINT or SIGTERM."""
    parser = argparse.ArgumentParser(prog="chatgate-gate", description="Run the chat gate HTTP server.")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument("--config", type=Path, default=None, help="configuration file (default: ./config.ini)")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config(args.config) if args.config is not None else default_config()
        redis_store = create_redis_store(config)
        logic = LogicSystem(
            redis_store,
            _UnavailableBackend("user database"),
            _UnavailableBackend("verification service"),
            StatusService(config, redis_store),
        )
        server = make_server(args.host, args.port, logic)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    signal.signal(signal.SIGTERM, _raise_interrupt)
    with server:
        print(f"Gate Server listen on port: {server.server_address[1]}")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    redis_store.close()
    return 0