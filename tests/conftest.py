import random
import socket
import threading
from typing import Callable, List

import pytest
from flask import Flask, Response, jsonify, request
from werkzeug.serving import make_server

from llmproxy.registry import ServerRegistry
from llmproxy.selector import BackendSelector
from llmproxy.server import create_app


ECHO_METHODS = ["GET", "POST", "PUT", "DELETE", "PROPFIND"]


def make_backend_app(name: str) -> Flask:
    """Tiny model server that echoes what it received."""
    app = Flask(f"backend-{name}")

    @app.route("/health")
    def health():
        return "OK"

    @app.route("/v1/completions", methods=["POST"])
    def completions():
        return jsonify({"completion": "ok"})

    @app.route("/status/<int:code>", methods=["GET", "POST"])
    def status(code: int):
        return Response(f"status {code}", status=code, headers={"X-Backend": name})

    @app.route("/cookies", methods=["POST"])
    def cookies():
        resp = Response("cookies")
        resp.headers.add("Set-Cookie", "a=1; Path=/")
        resp.headers.add("Set-Cookie", "b=2; Path=/")
        return resp

    @app.route("/echo", defaults={"path": ""}, methods=ECHO_METHODS)
    @app.route("/echo/<path:path>", methods=ECHO_METHODS)
    def echo(path: str):
        return jsonify({
            "backend": name,
            "method": request.method,
            "path": request.path,
            "query": request.query_string.decode("latin-1"),
            "headers": dict(request.headers),
            "body": request.get_data(as_text=True),
        })

    return app


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def serve() -> Callable[[Flask], str]:
    """Run a WSGI app on an ephemeral port in a daemon thread; return ``host:port``."""
    servers: List = []

    def _serve(app: Flask) -> str:
        server = make_server("127.0.0.1", 0, app, threaded=True)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return f"127.0.0.1:{server.server_port}"

    yield _serve
    for server in reversed(servers):
        server.shutdown()
        server.server_close()


@pytest.fixture
def backend(serve) -> str:
    return serve(make_backend_app("a"))


@pytest.fixture
def registry() -> ServerRegistry:
    return ServerRegistry()


@pytest.fixture
def app(registry):
    app = create_app(registry=registry, selector=BackendSelector(random.Random(1234)))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
