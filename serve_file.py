"""
Serve a single local file over HTTP/1.0 to whoever asks for the secret path,
once or repeatedly, one connection at a time.
"""
from __future__ import annotations

import enum
import errno
import logging
import os
import socket
from dataclasses import dataclass, field
from typing import BinaryIO

import http_gate
from capabilities import ContentTypeDetector, Progress
from errors import AcceptError, ConfigError, RequestRejected, TransferError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
# accept() failures caused by one client, not by the listener
TRANSIENT_ACCEPT_ERRORS = (errno.ECONNABORTED, errno.EPROTO, errno.EINTR)


@dataclass(frozen=True)
class FileDescriptor:
    path: str
    display_name: str
    size: int
    content_type: str


def describe_file(file_path: str, detector: ContentTypeDetector | None = None) -> FileDescriptor:
    """Check the file is a readable regular file and record name, size and type."""
    path = os.path.abspath(file_path)
    if not os.path.isfile(path):
        raise ConfigError(f"Not a file: {file_path}")
    try:
        with open(path, "rb"):
            pass
        size = os.path.getsize(path)
    except OSError as e:
        raise ConfigError(f"Cannot read {file_path}: {e.strerror or e}") from e
    content_type = (detector or ContentTypeDetector()).detect(path)
    return FileDescriptor(path, os.path.basename(path), size, content_type)


@dataclass(frozen=True)
class ServeContext:
    """Everything fixed at startup that the session loop needs."""
    descriptor: FileDescriptor
    url_path: str
    multiple: bool = False
    progress: Progress = field(default_factory=Progress)


def response_head(descriptor: FileDescriptor) -> bytes:
    name = descriptor.display_name.replace("\\", "\\\\").replace('"', '\\"')
    lines = [
        "HTTP/1.0 200 OK",
        "Pragma: no-cache",
        f"Content-type: {descriptor.content_type}",
        f"Content-length: {descriptor.size}",
        f'Content-disposition: inline; filename="{name}"',
        "",
        "",
    ]
    return "\r\n".join(lines).encode("utf-8", "surrogateescape")


def stream_file(wfile: BinaryIO, descriptor: FileDescriptor, progress: Progress | None = None,
                chunk_size: int = CHUNK_SIZE) -> int:
    """
    Write the response head and exactly descriptor.size bytes of the file.
    Any read/write failure, or the file getting shorter, raises TransferError.
    Returns the number of body bytes sent.
    """
    progress = progress or Progress()
    sent = 0
    try:
        with open(descriptor.path, "rb") as f:
            wfile.write(response_head(descriptor))
            progress.start(descriptor.size)
            while sent < descriptor.size:
                chunk = f.read(min(chunk_size, descriptor.size - sent))
                if not chunk:
                    raise TransferError(
                        f"{descriptor.display_name} shrank to {sent} bytes while serving "
                        f"(expected {descriptor.size})")
                wfile.write(chunk)
                sent += len(chunk)
                progress.update(sent)
            wfile.flush()
    except OSError as e:
        raise TransferError(f"Transfer aborted after {sent} of {descriptor.size} bytes: {e}") from e
    finally:
        progress.finish()
    return sent


class LoopState(enum.Enum):
    LISTENING = "listening"
    ACCEPTING = "accepting"
    SERVING = "serving"
    STOPPED = "stopped"


@dataclass
class ServingSession:
    conn: socket.socket
    peer: tuple
    path: str | None = None
    sent: int = 0


class FileServer:
    """
    Blocking accept loop over an already-bound listening socket.
    One connection is handled start to finish before the next accept.
    """

    def __init__(self, listener: socket.socket, context: ServeContext):
        self.listener = listener
        self.context = context
        self.state = LoopState.LISTENING
        self.served = 0
        self._stop_requested = False

    def serve(self) -> int:
        """
        Run until a matched request has been handled (once mode) or stop().
        Returns the number of completed transfers.
        """
        try:
            while not self._stop_requested:
                self.state = LoopState.ACCEPTING
                try:
                    conn, peer = self.listener.accept()
                except OSError as e:
                    if self._stop_requested:
                        break
                    if e.errno in TRANSIENT_ACCEPT_ERRORS:
                        logger.warning("Accept failed, still listening: %s", e)
                        continue
                    raise AcceptError(f"Cannot accept connections: {e.strerror or e}") from e
                session = ServingSession(conn, peer)
                if self.handle(session) and not self.context.multiple:
                    break
                self.state = LoopState.LISTENING
        finally:
            self.state = LoopState.STOPPED
            self.listener.close()
        return self.served

    def handle(self, session: ServingSession) -> bool:
        """
        Gate one connection and, if it asked for the secret path, stream the file.
        Returns True when the request matched, whether or not the transfer completed.
        """
        with session.conn:
            rfile = session.conn.makefile("rb")
            wfile = session.conn.makefile("wb")
            try:
                try:
                    session.path = http_gate.require_match(rfile, self.context.url_path)
                except RequestRejected as e:
                    logger.warning("%s from %s", e, session.peer[0])
                    http_gate.reject(wfile)
                    return False
                except OSError as e:
                    logger.warning("Connection from %s failed before request was read: %s", session.peer[0], e)
                    return False
                self.state = LoopState.SERVING
                logger.info("Serving %s to %s", self.context.descriptor.display_name, session.peer[0])
                try:
                    session.sent = stream_file(wfile, self.context.descriptor, self.context.progress)
                except TransferError as e:
                    logger.error("%s (client %s)", e, session.peer[0])
                    return True
                self.served += 1
                logger.info("Sent %d bytes to %s", session.sent, session.peer[0])
                return True
            finally:
                for f in (rfile, wfile):
                    try:
                        f.close()
                    except OSError as e:
                        logger.debug("Closing connection to %s: %s", session.peer[0], e)

    def stop(self) -> None:
        """Stop accepting; safe to call from another thread while serve() blocks in accept."""
        self._stop_requested = True
        try:
            # shutdown() wakes a blocked accept() on Linux, close() alone does not
            self.listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.listener.close()
