"""
Command line flags -> ServeConfig.
"""
from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass

from errors import ConfigError
from secret_path import TOKEN_STYLES

DEFAULT_PORT = 1234


@dataclass(frozen=True)
class ServeConfig:
    file_path: str
    port: int = DEFAULT_PORT
    auto_port: bool = False
    multiple: bool = False
    serve_self: bool = False
    bind_address: str = ""
    announce_ip: str | None = None
    token_style: str = "uuid"
    clipboard: bool = True
    progress: bool = False
    log_level: str = "WARNING"

    def validate(self) -> None:
        """Fail before any socket is opened if the file can't be served."""
        if not os.path.isfile(self.file_path):
            raise ConfigError(f"File not found: {os.path.abspath(self.file_path)}")
        if not os.access(self.file_path, os.R_OK):
            raise ConfigError(f"File not readable: {os.path.abspath(self.file_path)}")
        if not 0 < self.port <= 65535:
            raise ConfigError(f"Invalid port: {self.port}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="servefile-once",
        description=(
            "Serve a single file over HTTP on the local network, once, at an "
            "unguessable URL. The URL is printed (and copied to the clipboard "
            "if possible); the program exits after the first complete download."
        ),
    )
    parser.add_argument("file", nargs="?", help="File to serve")
    parser.add_argument("-a", "--auto", action="store_true",
                        help="If the port is in use, try the next one until one is free")
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT,
                        help=f"Port to listen on (default: {DEFAULT_PORT})")
    parser.add_argument("-m", "--multiple", action="store_true",
                        help="Keep serving after the first download (stop with Ctrl+C)")
    parser.add_argument("-s", "--self", dest="serve_self", action="store_true",
                        help="Serve this program's own source instead of a file")
    parser.add_argument("-i", "--ip", default=None,
                        help="Bind to and announce this address instead of all interfaces")
    parser.add_argument("--token", choices=TOKEN_STYLES, default="uuid",
                        help="Secret path style: a UUID (default) or 30 random characters")
    parser.add_argument("--no-clipboard", action="store_true",
                        help="Do not copy the URL to the clipboard")
    parser.add_argument("--no-progress", action="store_true",
                        help="Do not draw a progress bar while sending")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More log output (-v info, -vv debug)")
    return parser


def self_source() -> str:
    # main.py sits next to this module, installed or not
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


def parse_args(argv: list[str] | None = None) -> ServeConfig:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.serve_self:
        file_path = self_source()
    elif args.file:
        file_path = args.file
    else:
        raise ConfigError("No file given (use --self to serve this program)")

    log_level = {0: "WARNING", 1: "INFO"}.get(args.verbose, "DEBUG")
    return ServeConfig(
        file_path=file_path,
        port=args.port,
        auto_port=args.auto,
        multiple=args.multiple,
        serve_self=args.serve_self,
        bind_address=args.ip or "",
        announce_ip=args.ip,
        token_style=args.token,
        clipboard=not args.no_clipboard,
        progress=not args.no_progress and sys.stderr.isatty(),
        log_level=log_level,
    )
