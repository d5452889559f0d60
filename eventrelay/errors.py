"""Error types raised or reported by the dispatcher."""

from __future__ import annotations

from typing import Optional


class EventRelayError(Exception):
    """Base class for eventrelay errors."""


class RegistrationError(EventRelayError):
    """A target could not be registered, updated or removed."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Target with name '{name}' {reason}.")
        self.name = name
        self.reason = reason


class DeliveryError(EventRelayError):
    """A remote target answered with a non-2xx status."""

    def __init__(
        self,
        target: str,
        status: int,
        reason: Optional[str] = None,
    ) -> None:
        message = f"HTTP error! Status: {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.target = target
        self.status = status
        self.reason = reason


class DecodeError(EventRelayError, ValueError):
    """An inbound event envelope could not be decoded."""
