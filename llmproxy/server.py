"""Flask front of the router: registry management endpoints and the proxy path.

Every request not handled by a management route falls through to :func:`proxy`,
which buffers the body, reads its ``model`` field, picks a registered backend
for that model and relays the backend's response untouched.
"""

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, urlsplit

from flask import Flask, Response, jsonify, request, stream_with_context
from werkzeug.exceptions import BadRequest, HTTPException, MethodNotAllowed, RequestEntityTooLarge

from .config import Settings, load_server_list
from .forwarder import (
    Forwarder,
    ForwardRequestError,
    UpstreamUnreachableError,
    filter_response_headers,
    stream_upstream_response,
)
from .models import (
    MissingModelError,
    ModelPayloadError,
    ResponseStatus,
    ServerResponse,
    extract_model,
)
from .registry import AddOutcome, InvalidInputError, RemoveOutcome, ServerRegistry
from .selector import BackendSelector


logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
MANAGEMENT_PATHS = {"/register", "/unregister", "/health", "/list", "/test"}


# ------------------------------
# Request Helpers
# ------------------------------


def _envelope(http_status: int, status: ResponseStatus, message: str) -> Tuple[Response, int]:
    return jsonify(ServerResponse(status, message).to_dict()), http_status


def _error(http_status: int, message: str) -> Tuple[Response, int]:
    return _envelope(http_status, ResponseStatus.ERROR, message)


def _json_object() -> Optional[Dict[str, Any]]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


def _path_and_query() -> str:
    """Path and query exactly as the client sent them."""
    raw = request.environ.get("RAW_URI") or request.environ.get("REQUEST_URI")
    if raw:
        if not raw.startswith("/"):
            # absolute-form request target
            parts = urlsplit(raw)
            raw = parts.path or "/"
            if parts.query:
                raw += "?" + parts.query
        return raw
    path = quote(request.path) or "/"
    if request.query_string:
        return path + "?" + request.query_string.decode("latin-1")
    return path


# ------------------------------
# Application factory
# ------------------------------


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ServerRegistry] = None,
    selector: Optional[BackendSelector] = None,
    forwarder: Optional[Forwarder] = None,
) -> Flask:
    settings = settings or Settings()
    if registry is None:
        seed = load_server_list(settings.server_list) if settings.server_list else []
        registry = ServerRegistry(seed)
    selector = selector or BackendSelector()
    forwarder = forwarder or Forwarder(timeout=settings.upstream_timeout, probe_timeout=settings.probe_timeout)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_body_bytes
    app.extensions["llmproxy.registry"] = registry

    # ---------- management ----------

    @app.route("/health", methods=["GET"])
    def health() -> Response:
        return Response("OK", mimetype="text/plain")

    @app.route("/register", methods=["POST"])
    def register():
        payload = _json_object()
        if payload is None:
            return _error(400, "Invalid JSON body")
        try:
            outcome = registry.add(payload.get("model_name", ""), payload.get("addr", ""))
        except InvalidInputError as e:
            logger.warning("Rejected registration %r: %s", payload, e)
            return _error(400, str(e))
        if outcome is AddOutcome.ALREADY_EXISTS:
            return _envelope(200, ResponseStatus.WARNING, "Server already registered")
        return _envelope(201, ResponseStatus.SUCCESS, "Server registered successfully")

    @app.route("/unregister", methods=["POST"])
    def unregister():
        payload = _json_object()
        if payload is None:
            return _error(400, "Invalid JSON body")
        try:
            outcome = registry.remove(payload.get("addr", ""))
        except InvalidInputError as e:
            logger.warning("Rejected unregistration %r: %s", payload, e)
            return _error(400, str(e))
        if outcome is RemoveOutcome.NOT_FOUND:
            return _error(404, "Server not found")
        return _envelope(200, ResponseStatus.SUCCESS, "Server unregistered successfully")

    @app.route("/list", methods=["GET"])
    def list_servers() -> Response:
        return jsonify([entry.to_dict() for entry in registry.list()])

    @app.route("/test", methods=["POST"])
    def test_server():
        payload = _json_object()
        if payload is None:
            return _error(400, "Invalid JSON body")
        addr = payload.get("addr")
        if not isinstance(addr, str):
            return _error(400, "Missing field: addr")

        entry = registry.find(addr)
        if entry is None:
            return _error(404, "Service not found")

        ok, message = forwarder.probe(entry.addr)
        return _envelope(200, ResponseStatus.SUCCESS if ok else ResponseStatus.ERROR, message)

    # ---------- proxy ----------

    @app.route("/", defaults={"path": ""}, methods=ALL_METHODS)
    @app.route("/<path:path>", methods=ALL_METHODS)
    def proxy(path: str):
        if len(registry) == 0:
            logger.warning("No servers registered.")
            return _error(503, "No servers registered")

        try:
            limit = settings.max_body_bytes
            if limit is not None and (request.content_length or 0) > limit:
                raise RequestEntityTooLarge()
            body = request.get_data(cache=True)
        except RequestEntityTooLarge:
            logger.warning("Request body exceeds %s bytes", settings.max_body_bytes)
            return _error(413, f"Request body exceeds the configured limit of {settings.max_body_bytes} bytes")
        except (BadRequest, OSError) as e:
            logger.error("Failed to read request body: %s", e)
            return _error(400, "Failed to read request body")

        try:
            model_name = extract_model(body)
        except ModelPayloadError as e:
            logger.warning("Failed to parse JSON body for model extraction: %s", e)
            return _error(400, f"Invalid JSON body: {e}")
        except MissingModelError as e:
            logger.warning("Model name missing or empty in request body.")
            return _error(400, str(e))
        logger.debug("Extracted model name: %s", model_name)

        candidates = registry.candidates_for(model_name)
        if not candidates:
            logger.warning("No server registered for model: %s", model_name)
            return _error(400, f"No server registered for model: {model_name}")

        target_addr = selector.select(candidates).addr
        logger.debug("Selected server: %s for model %s", target_addr, model_name)

        try:
            upstream_resp = forwarder.forward(
                method=request.method,
                path_and_query=_path_and_query(),
                headers=request.headers,
                body=body,
                target_addr=target_addr,
            )
        except UpstreamUnreachableError as exc:
            logger.error("Error forwarding request to %s: %s", target_addr, exc)
            return _error(502, f"Error forwarding request: {exc}")
        except ForwardRequestError as exc:
            logger.error("Failed to build proxy request for %s: %s", target_addr, exc)
            return _error(500, str(exc))

        return Response(
            stream_with_context(stream_upstream_response(upstream_resp)),
            status=upstream_resp.status_code,
            headers=filter_response_headers(upstream_resp),
            direct_passthrough=True,
        )

    @app.errorhandler(MethodNotAllowed)
    def other_method(exc: MethodNotAllowed):
        # methods outside ALL_METHODS are still proxied; only management routes answer 405
        if request.path in MANAGEMENT_PATHS:
            return exc
        return proxy(request.path.lstrip("/"))

    @app.errorhandler(Exception)
    def internal_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(500, "Internal server error")

    return app
