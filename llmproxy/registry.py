import logging
import threading
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .models import BackendEntry


logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    pass


class AddOutcome(Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class RemoveOutcome(Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


def _validate_addr(addr: str) -> str:
    if not isinstance(addr, str) or not addr.strip() or ":" not in addr:
        raise InvalidInputError("Invalid address format. Expected host:port")
    return addr.strip()


def _validate_model_name(model_name: str) -> str:
    if not isinstance(model_name, str) or not model_name.strip():
        raise InvalidInputError("model_name cannot be empty")
    return model_name.strip()


class ServerRegistry:
    """In-memory list of registered backends, guarded by a single lock.

    Every public method holds the lock for the in-memory work only and hands
    out copies, so callers never iterate shared state.
    """

    def __init__(self, entries: Optional[Iterable[Tuple[str, str]]] = None) -> None:
        self._lock = threading.Lock()
        self._servers: List[BackendEntry] = []
        for model_name, addr in entries or ():
            try:
                self.add(model_name, addr)
            except InvalidInputError as e:
                logger.warning("Skipping server %r at %r: %s", model_name, addr, e)

    def add(self, model_name: str, addr: str) -> AddOutcome:
        server_addr = _validate_addr(addr)
        server_model_name = _validate_model_name(model_name)
        entry = BackendEntry(model_name=server_model_name, addr=server_addr)

        with self._lock:
            if entry in self._servers:
                logger.info("Server already registered: model_name=%s, addr=%s", entry.model_name, entry.addr)
                return AddOutcome.ALREADY_EXISTS
            self._servers.append(entry)

        logger.info("Registering server: model_name=%s, addr=%s", entry.model_name, entry.addr)
        return AddOutcome.CREATED

    def remove(self, addr: str) -> RemoveOutcome:
        server_addr = _validate_addr(addr)

        with self._lock:
            for i, entry in enumerate(self._servers):
                if entry.addr == server_addr:
                    del self._servers[i]
                    break
            else:
                logger.warning("Server not found for unregistration: addr=%s", server_addr)
                return RemoveOutcome.NOT_FOUND

        logger.info("Unregistered server: addr=%s", server_addr)
        return RemoveOutcome.REMOVED

    def list(self) -> List[BackendEntry]:
        with self._lock:
            return list(self._servers)

    def candidates_for(self, model_name: str) -> List[BackendEntry]:
        with self._lock:
            return [s for s in self._servers if s.model_name == model_name]

    def find(self, addr: str) -> Optional[BackendEntry]:
        server_addr = addr.strip() if isinstance(addr, str) else ""
        with self._lock:
            for entry in self._servers:
                if entry.addr == server_addr:
                    return entry
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._servers)
