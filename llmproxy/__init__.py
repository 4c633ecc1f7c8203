"""Model-routing reverse proxy for LLM inference servers."""

from .models import BackendEntry, ResponseStatus, ServerResponse
from .registry import AddOutcome, InvalidInputError, RemoveOutcome, ServerRegistry
from .selector import BackendSelector
from .server import create_app

__version__ = "0.1.6"

__all__ = [
    "AddOutcome",
    "BackendEntry",
    "BackendSelector",
    "InvalidInputError",
    "RemoveOutcome",
    "ResponseStatus",
    "ServerRegistry",
    "ServerResponse",
    "create_app",
]
