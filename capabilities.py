"""
Optional side features behind small interfaces: content type detection,
clipboard and progress display. Each has a do-nothing default so the server
never has to ask whether a tool is installed.
"""
from __future__ import annotations

import logging
import mimetypes
import shutil
import subprocess
import sys
from typing import TextIO

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/data"


class ContentTypeDetector:
    """Default: every file is application/data."""

    def detect(self, path: str) -> str:
        return DEFAULT_CONTENT_TYPE


class MimetypesDetector(ContentTypeDetector):
    """Guess from the file extension using the system mime.types tables."""

    def detect(self, path: str) -> str:
        content_type, encoding = mimetypes.guess_type(path, strict=False)
        if encoding:
            # x.tar.gz is gzip data, not a tar file
            return DEFAULT_CONTENT_TYPE
        return content_type or DEFAULT_CONTENT_TYPE


class Clipboard:
    def copy(self, text: str) -> bool:
        return False


# Tried in order; first one found on PATH wins.
CLIPBOARD_COMMANDS = (
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["termux-clipboard-set"],
    ["clip"],
)


class CommandClipboard(Clipboard):
    """Pipe text into whichever clipboard command this OS has."""

    def __init__(self, commands=CLIPBOARD_COMMANDS):
        self.command = next((cmd for cmd in commands if shutil.which(cmd[0])), None)

    def copy(self, text: str) -> bool:
        if self.command is None:
            logger.debug("No clipboard command available")
            return False
        try:
            subprocess.run(self.command, input=text, text=True, check=True, timeout=5,
                           stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not copy URL to clipboard with %s: %s", self.command[0], e)
            return False
        return True


def format_bytes(num: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    size = float(num)
    for unit in units:
        if size < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{num} B"


def format_progress(sent: int, total: int, width: int = 24) -> str:
    """Build a single-line progress bar: [=====>    ] 1.2 MB / 3.4 MB (35%)."""
    if total <= 0:
        return f"[{'=' * width}] {format_bytes(sent)} / {format_bytes(total)} (100%)"
    pct = min(1.0, sent / total)
    filled = int(width * pct)
    bar = "=" * filled + ">" * (1 if filled < width else 0) + " " * (width - filled - 1)
    return f"[{bar}] {format_bytes(sent)} / {format_bytes(total)} ({int(pct * 100)}%)"


class Progress:
    """Receives the running byte count of a transfer. Default: silent."""

    def start(self, total: int) -> None:
        pass

    def update(self, sent: int) -> None:
        pass

    def finish(self) -> None:
        pass


class TerminalProgress(Progress):
    def __init__(self, stream: TextIO | None = None, width: int = 24):
        self.stream = stream or sys.stderr
        self.width = width
        self.total = 0
        self._last_pct = -1

    def start(self, total: int) -> None:
        self.total = total
        self._last_pct = -1
        self.update(0)

    def update(self, sent: int) -> None:
        pct = sent * 100 // self.total if self.total > 0 else 100
        if pct == self._last_pct:
            return
        self._last_pct = pct
        line = format_progress(sent, self.total, self.width).ljust(72)
        self.stream.write("\r" + line)
        self.stream.flush()

    def finish(self) -> None:
        self.stream.write("\n")
        self.stream.flush()
