"""Exception types for the visual log transport.

- WebVLogError: base for everything raised by this package
- InitError: initialization failed (BindFailure, AlreadyInitialized)
- ProtocolViolation: malformed HTTP request, answered with 400 locally
- TransportFailure: a write to the viewer failed, ends the current session

Logging call sites never see any of these.
"""

from __future__ import annotations

__all__ = [
    "WebVLogError",
    "InitError",
    "BindFailure",
    "AlreadyInitialized",
    "ProtocolViolation",
    "TransportFailure",
]


class WebVLogError(Exception):
    """Base exception for webvlog errors."""

    pass


class InitError(WebVLogError):
    """Base exception for failures while installing the vlogger."""

    pass


class BindFailure(InitError):
    """Raised when the listening socket could not be created.

    The original ``OSError`` is chained as ``__cause__``.
    """

    def __init__(self, host: str, port: int, reason: str | None = None):
        self.host = host
        self.port = port
        message = f"could not listen on {host}:{port}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AlreadyInitialized(InitError):
    """Raised when a vlogger is installed twice in the same process."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "a vlogger has already been installed")


class ProtocolViolation(WebVLogError):
    """Raised for a malformed request line or header block."""

    pass


class TransportFailure(WebVLogError):
    """Raised when writing to the connected viewer fails mid-session."""

    pass
