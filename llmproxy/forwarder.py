import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import requests
from requests import exceptions as req_exc

from .config import CONNECT_TIMEOUT_SEC, HEALTH_READ_TIMEOUT_SEC


logger = logging.getLogger(__name__)


# ------------------------------
# Errors
# ------------------------------


class ForwardError(Exception):
    pass


class UpstreamUnreachableError(ForwardError):
    """The selected backend could not be reached (refused, timeout, DNS, ...)."""


class ForwardRequestError(ForwardError):
    """The downstream request could not be constructed."""


# ------------------------------
# Proxy Utilities
# ------------------------------

# Framing headers are dropped because the buffered body is re-framed on send
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

_SCHEMES = ("http://", "https://")

_BUILD_ERRORS = (
    req_exc.InvalidURL,
    req_exc.InvalidHeader,
    req_exc.MissingSchema,
    req_exc.InvalidSchema,
)


def _strip_scheme(addr: str) -> str:
    stripped = True
    while stripped:
        stripped = False
        for scheme in _SCHEMES:
            if addr.startswith(scheme):
                addr = addr[len(scheme):]
                stripped = True
    return addr


def build_target_url(addr: str, path_and_query: Optional[str]) -> str:
    """``http://{host:port}{path?query}`` for the selected backend."""
    path = path_and_query or "/"
    if not path.startswith("/"):
        path = "/" + path
    return "http://" + _strip_scheme(addr) + path


def filter_request_headers(headers: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    return {k: v for k, v in headers if k.lower() not in HOP_BY_HOP_HEADERS}


def filter_response_headers(resp: requests.Response) -> List[Tuple[str, str]]:
    """Downstream header lines in order, repeated headers kept as separate lines."""
    return [(k, v) for k, v in resp.raw.headers.iteritems() if k.lower() not in HOP_BY_HOP_HEADERS]


def stream_upstream_response(resp: requests.Response, chunk_size: int = 8192) -> Iterable[bytes]:
    """Yield the raw downstream body, closing the connection when done."""
    try:
        for chunk in resp.raw.stream(chunk_size, decode_content=False):
            if chunk:
                yield chunk
    finally:
        resp.close()


class Forwarder:
    """Send a buffered request to a backend and hand back the streamed response."""

    def __init__(
        self,
        timeout: Tuple[float, Optional[float]] = (CONNECT_TIMEOUT_SEC, None),
        probe_timeout: Tuple[float, float] = (CONNECT_TIMEOUT_SEC, HEALTH_READ_TIMEOUT_SEC),
    ) -> None:
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    def forward(
        self,
        method: str,
        path_and_query: Optional[str],
        headers: Mapping[str, str],
        body: bytes,
        target_addr: str,
    ) -> requests.Response:
        target_url = build_target_url(target_addr, path_and_query)
        upstream_headers = filter_request_headers(headers.items())
        logger.debug("Forwarding %s %s", method, target_url)

        # A bare session so requests does not inject its own default headers
        with requests.Session() as session:
            session.headers.clear()
            try:
                resp = session.request(
                    method=method,
                    url=target_url,
                    headers=upstream_headers,
                    data=body or None,
                    stream=True,
                    allow_redirects=False,
                    timeout=self.timeout,
                )
            except _BUILD_ERRORS as exc:
                raise ForwardRequestError(f"Failed to build proxy request: {exc}") from exc
            except req_exc.RequestException as exc:
                raise UpstreamUnreachableError(str(exc)) from exc

        logger.debug("Received response from target: %s", resp.status_code)
        return resp

    def probe(self, addr: str) -> Tuple[bool, str]:
        """GET ``/health`` on a backend; return reachability and a message."""
        url = build_target_url(addr, "/health")
        try:
            resp = requests.get(url, timeout=self.probe_timeout)
        except req_exc.RequestException as exc:
            return False, f"Failed to connect to service at {addr}: {exc}"
        with resp:
            if resp.ok:
                return True, f"Service at {addr} is reachable"
            return False, f"Service at {addr} returned status {resp.status_code} {resp.reason}"
