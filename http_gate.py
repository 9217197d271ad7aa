"""
Minimal HTTP request gate: read the request head, pull out the GET path and
compare it with the secret path. Nothing else in the request is looked at.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import BinaryIO

from errors import RequestRejected

logger = logging.getLogger(__name__)

GET_LINE = re.compile(rb"^GET (\S+) HTTP/\d+\.\d+\r?\n?$")
MAX_LINE = 65536
FORBIDDEN = b"HTTP/1.0 403 Forbidden\r\n\r\n"


class GateState(enum.Enum):
    AWAITING_REQUEST_LINE = "awaiting-request-line"
    PARSING_HEADERS = "parsing-headers"
    MATCHED = "matched"
    REJECTED = "rejected"


@dataclass(frozen=True)
class GateResult:
    state: GateState
    path: str | None = None

    @property
    def matched(self) -> bool:
        return self.state is GateState.MATCHED


def read_request_path(rfile: BinaryIO) -> str | None:
    """
    Read lines until the blank line ending the headers (or EOF).
    Returns the path of the first 'GET <path> HTTP/x.y' line, or None.
    Header lines are read and dropped.
    """
    state = GateState.AWAITING_REQUEST_LINE
    path = None
    while True:
        line = rfile.readline(MAX_LINE + 1)
        if len(line) > MAX_LINE:
            logger.debug("Request line too long, giving up")
            return None
        if not line or line in (b"\r\n", b"\n"):
            break
        if state is GateState.AWAITING_REQUEST_LINE:
            m = GET_LINE.match(line)
            if m:
                # latin-1 maps bytes 1:1, so comparison stays byte-for-byte
                path = m.group(1).decode("latin-1")
                state = GateState.PARSING_HEADERS
    return path


def check_request(rfile: BinaryIO, url_path: str) -> GateResult:
    path = read_request_path(rfile)
    if path is not None and path == url_path:
        return GateResult(GateState.MATCHED, path)
    return GateResult(GateState.REJECTED, path)


def require_match(rfile: BinaryIO, url_path: str) -> str:
    """Like check_request, but raises RequestRejected unless the path matches."""
    result = check_request(rfile, url_path)
    if not result.matched:
        raise RequestRejected(result.path)
    return result.path


def reject(wfile: BinaryIO) -> None:
    """Send the one-line 403; the client may already be gone."""
    try:
        wfile.write(FORBIDDEN)
        wfile.flush()
    except OSError as e:
        logger.debug("Could not send 403: %s", e)
