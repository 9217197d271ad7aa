"""
Errors raised while setting up or running a single-file server.
Fatal ones (config, network, bind) abort the process; the rest end one session.
"""
from __future__ import annotations


class ServeError(Exception):
    """Base class for all servefile-once errors."""


class ConfigError(ServeError):
    """Missing or unreadable file, or unusable flags."""


class NetworkUnavailable(ServeError):
    """No route to determine the local IP address."""


class BindError(ServeError):
    """Could not listen on the requested address/port."""

    def __init__(self, address: str, port: int, cause: OSError):
        self.address = address
        self.port = port
        self.cause = cause
        super().__init__(f"Cannot listen on {address or '*'}:{port}: {cause.strerror or cause}")


class AcceptError(ServeError):
    """The listening socket stopped accepting connections."""


class RequestRejected(ServeError):
    """Requested path does not match the secret path (or request was malformed)."""

    def __init__(self, path: str | None):
        self.path = path
        super().__init__(f"Rejected request for {path!r}" if path is not None else "Rejected malformed request")


class TransferError(ServeError):
    """I/O failure while streaming the file; the client sees a truncated body."""
