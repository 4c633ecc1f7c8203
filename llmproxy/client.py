"""HTTP client for the router's management API, used by the ``llmproxy`` CLI."""

from typing import Callable, List, Optional

import requests

from .config import CONNECT_TIMEOUT_SEC, DEFAULT_BASE_URL
from .models import BackendEntry, ResponseStatus, ServerResponse


class ClientError(Exception):
    pass


class RouterUnavailableError(ClientError):
    pass


def _parse_index(target: str) -> Optional[int]:
    """1-based list index if ``target`` is a non-negative integer, else None."""
    try:
        index = int(target)
    except ValueError:
        return None
    return index if index >= 0 else None


class ProxyClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = CONNECT_TIMEOUT_SEC * 6,
        out: Callable[[str], None] = print,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.out = out

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def check_server_status(self) -> None:
        try:
            resp = requests.get(self._url("/health"), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise RouterUnavailableError(
                f"Could not reach llmproxy at {self.base_url} ({e}). Is llmproxyd running?"
            ) from e

    # ---------- commands ----------

    def register(self, model_name: str, addr: str) -> ServerResponse:
        self.check_server_status()
        resp = requests.post(
            self._url("/register"),
            json={"model_name": model_name, "addr": addr},
            timeout=self.timeout,
        )
        return self._handle_response(resp, f"Registered {model_name} at {addr}")

    def unregister(self, target: str) -> ServerResponse:
        self.check_server_status()
        index = _parse_index(target)
        if index is not None:
            addr = self.resolve_index_to_address(index)
            context = f"Unregistered service #{index} ({addr})"
        else:
            addr = target
            context = f"Unregistered service at {addr}"

        resp = requests.post(
            self._url("/unregister"),
            json={"model_name": "", "addr": addr},
            timeout=self.timeout,
        )
        return self._handle_response(resp, context)

    def test(self, addr: str) -> ServerResponse:
        self.check_server_status()
        resp = requests.post(self._url("/test"), json={"addr": addr}, timeout=self.timeout)
        return self._handle_response(resp, None)

    def fetch_servers(self) -> List[BackendEntry]:
        resp = requests.get(self._url("/list"), timeout=self.timeout)
        if not resp.ok:
            raise ClientError(f"Server error: {resp.text} ({resp.status_code})")
        return [BackendEntry(model_name=item["model_name"], addr=item["addr"]) for item in resp.json()]

    def resolve_index_to_address(self, index: int) -> str:
        if index == 0:
            raise ClientError("Service indices start from 1, not 0")

        servers = self.fetch_servers()
        if not servers:
            raise ClientError("No services are registered")
        if index > len(servers):
            noun = "service is" if len(servers) == 1 else "services are"
            raise ClientError(f"Index {index} not found. Only {len(servers)} {noun} registered.")
        return servers[index - 1].addr

    def list(self) -> List[BackendEntry]:
        self.check_server_status()
        servers = self.fetch_servers()
        if not servers:
            self.out("ℹ No model services are currently registered")
            self.out("  → Use llmproxy register --model-name <MODEL> --addr <ADDRESS> to register a new service")
            return servers

        label_width = 5
        model_width = max([len("Model")] + [len(s.model_name) for s in servers])
        addr_width = max([len("Address")] + [len(s.addr) for s in servers])
        row = "{:<%d}  {:<%d}  {:<%d}" % (label_width, model_width, addr_width)

        self.out(row.format("Label", "Model", "Address").rstrip())
        for i, server in enumerate(servers, start=1):
            self.out(row.format(f"#{i}", server.model_name, server.addr).rstrip())
        self.out("")
        self.out("💡 You can unregister services by index or address:")
        self.out("  → llmproxy unregister 1")
        self.out(f"  → llmproxy unregister {servers[0].addr}")
        return servers

    # ---------- output ----------

    def _handle_response(self, resp: requests.Response, context: Optional[str]) -> ServerResponse:
        try:
            parsed = ServerResponse.from_dict(resp.json())
        except ValueError as e:
            raise ClientError(f"Server error: {resp.text} ({resp.status_code})") from e

        if not resp.ok or parsed.status is ResponseStatus.ERROR:
            self.out(f"✖ {parsed.message} ({resp.status_code})")
        elif parsed.status is ResponseStatus.WARNING:
            self.out(f"⚠ {parsed.message}")
            if context:
                self.out(f"  → {context}")
        elif context:
            self.out(f"✔ {context}")
            if parsed.message and parsed.message != "OK":
                self.out(f"  → {parsed.message}")
        else:
            self.out(f"✔ {parsed.message}")
        return parsed
