import json
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


logger = logging.getLogger(__name__)


# ------------------------------
# Defaults
# ------------------------------

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 11450
DEFAULT_BASE_URL = f"http://127.0.0.1:{DEFAULT_PORT}"

# Requests timeouts
CONNECT_TIMEOUT_SEC = 5.0
HEALTH_READ_TIMEOUT_SEC = 2.0


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value


@dataclass
class Settings:
    """Runtime settings for the router, populated from LLMPROXY_* variables."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    # None means request bodies are buffered without a size limit
    max_body_bytes: Optional[int] = None
    connect_timeout: float = CONNECT_TIMEOUT_SEC
    # None means the downstream stream has no read timeout
    read_timeout: Optional[float] = None
    health_timeout: float = HEALTH_READ_TIMEOUT_SEC
    server_list: Optional[str] = None
    log_level: str = "INFO"

    @property
    def upstream_timeout(self) -> Tuple[float, Optional[float]]:
        return (self.connect_timeout, self.read_timeout)

    @property
    def probe_timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.health_timeout)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("LLMPROXY_HOST", DEFAULT_HOST),
            port=_env_int("LLMPROXY_PORT", DEFAULT_PORT) or DEFAULT_PORT,
            max_body_bytes=_env_int("LLMPROXY_MAX_BODY_BYTES", None),
            connect_timeout=_env_float("LLMPROXY_CONNECT_TIMEOUT", CONNECT_TIMEOUT_SEC) or CONNECT_TIMEOUT_SEC,
            read_timeout=_env_float("LLMPROXY_READ_TIMEOUT", None),
            health_timeout=_env_float("LLMPROXY_HEALTH_TIMEOUT", HEALTH_READ_TIMEOUT_SEC) or HEALTH_READ_TIMEOUT_SEC,
            server_list=os.getenv("LLMPROXY_SERVER_LIST") or None,
            log_level=os.getenv("LLMPROXY_LOG_LEVEL", "INFO").upper(),
        )


def load_server_list(path: str) -> List[Tuple[str, str]]:
    """Read ``(model_name, addr)`` pairs from a JSON seed file.

    Accepted shape: ``{"servers": [{"model_name": ..., "addr": ...}, ...]}``.
    A bare list of entries is accepted as well. Malformed entries are skipped;
    a missing file yields an empty list.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
    except FileNotFoundError:
        logger.warning("Server list %s not found, starting empty", path)
        return []
    except (OSError, ValueError) as e:
        logger.warning("Failed to load %s: %s", path, e)
        return []

    servers = data.get("servers") if isinstance(data, dict) else data
    if not isinstance(servers, list):
        logger.warning("Failed to load %s: expected a list of servers", path)
        return []

    pairs: List[Tuple[str, str]] = []
    for item in servers:
        if not isinstance(item, dict):
            continue
        model_name = item.get("model_name")
        addr = item.get("addr")
        if not isinstance(model_name, str) or not isinstance(addr, str):
            logger.warning("Skipping malformed server entry in %s: %r", path, item)
            continue
        pairs.append((model_name, addr))
    return pairs
