from __future__ import annotations


class EfpError(RuntimeError):
    """Base class for errors raised by the eFP pipeline."""


class ConfigError(EfpError):
    """Raised when the eFP configuration is missing or invalid."""


class TransportError(EfpError):
    """Raised when a remote document or query could not be retrieved."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class StallError(EfpError):
    """Raised when a fetch does not complete within the polling budget."""


__all__ = [
    "EfpError",
    "ConfigError",
    "TransportError",
    "StallError",
]
