#!/usr/bin/env python3
"""
servefile-once: hand one file to someone on the same network.
Prints an unguessable URL, serves the file to the first client that asks for it, then exits.
Run: python main.py path/to/file
"""
import logging
import sys

from capabilities import Clipboard, CommandClipboard, MimetypesDetector, Progress, TerminalProgress
from config import ServeConfig, parse_args
from errors import ConfigError, ServeError
from local_net import bind_listener, get_local_ip, wildcard_address
from secret_path import build_url, build_url_path, generate_token
from serve_file import FileServer, ServeContext, describe_file

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def run(config: ServeConfig) -> int:
    """Set everything up from config and serve. Returns the number of completed downloads."""
    config.validate()
    descriptor = describe_file(config.file_path, MimetypesDetector())
    url_path = build_url_path(generate_token(config.token_style), descriptor.display_name)
    ip = config.announce_ip or get_local_ip()

    bind_address = config.bind_address or wildcard_address(ip)
    listener, port = bind_listener(bind_address, config.port, config.auto_port)
    url = build_url(ip, port, url_path)

    context = ServeContext(
        descriptor=descriptor,
        url_path=url_path,
        multiple=config.multiple,
        progress=TerminalProgress() if config.progress else Progress(),
    )
    server = FileServer(listener, context)

    print(f"Serving {descriptor.display_name} ({descriptor.size} bytes, {descriptor.content_type})")
    print(url)
    clipboard = CommandClipboard() if config.clipboard else Clipboard()
    if clipboard.copy(url):
        print("URL copied to clipboard.")
    if config.multiple:
        print("Press Ctrl+C to stop.")
    sys.stdout.flush()

    return server.serve()


def main(argv=None) -> None:
    try:
        config = parse_args(argv)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(config.log_level)

    try:
        served = run(config)
    except ServeError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped.")
        sys.exit(0)
    logger.info("Done, %d download(s) completed", served)


if __name__ == "__main__":
    main()
