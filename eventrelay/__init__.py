"""EventRelay: in-process and HTTP event fan-out."""

from typing import TYPE_CHECKING

from .dispatcher import PARSE_EVENT, EventDispatcher
from .errors import DecodeError, DeliveryError, EventRelayError, RegistrationError
from .types import EmitError, EmitResult, Target, TargetUpdate

__version__ = "0.1.0"

if TYPE_CHECKING:  # pragma: no cover - import-time convenience for type checkers
    from .main import app as app

__all__ = [
    "app",
    "EventDispatcher",
    "PARSE_EVENT",
    "Target",
    "TargetUpdate",
    "EmitResult",
    "EmitError",
    "EventRelayError",
    "RegistrationError",
    "DeliveryError",
    "DecodeError",
    "__version__",
]


def __getattr__(name: str):
    if name == "app":
        from .main import app as _app
        return _app
    raise AttributeError(f"module 'eventrelay' has no attribute {name!r}")
