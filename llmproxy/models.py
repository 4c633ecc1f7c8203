import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class ResponseStatus(str, Enum):
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass
class ServerResponse:
    """Envelope returned by the management endpoints."""

    status: ResponseStatus
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"status": self.status.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: Any) -> "ServerResponse":
        if not isinstance(data, dict):
            raise ValueError("envelope must be a JSON object")
        status = ResponseStatus(data.get("status"))
        message = data.get("message")
        return cls(status, message if isinstance(message, str) else "")


@dataclass(frozen=True)
class BackendEntry:
    """One registered model-serving endpoint."""

    model_name: str
    addr: str

    def to_dict(self) -> Dict[str, str]:
        return {"model_name": self.model_name, "addr": self.addr}


# ------------------------------
# Model extraction
# ------------------------------


class ModelPayloadError(ValueError):
    """The proxied body is not a JSON object with an optional string ``model``."""


class MissingModelError(ValueError):
    pass


def extract_model(body: bytes) -> str:
    """Return the trimmed ``model`` field of a JSON request body.

    Only ``model`` is inspected; the body itself is forwarded untouched.
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ModelPayloadError(str(e)) from e
    if not isinstance(data, dict):
        raise ModelPayloadError(f"expected a JSON object, got {type(data).__name__}")

    model = data.get("model")
    if model is not None and not isinstance(model, str):
        raise ModelPayloadError(f"field 'model' must be a string, got {type(model).__name__}")
    if not model or not model.strip():
        raise MissingModelError("Model name is required in the request body")
    return model.strip()
