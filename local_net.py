"""
Find this machine's LAN address and open the listening socket.
"""
import errno
import logging
import socket

from errors import BindError, NetworkUnavailable

logger = logging.getLogger(__name__)

# Non-routable probes: connect() on a UDP socket only picks a route, nothing is sent.
PROBE_ADDRESSES = (
    (socket.AF_INET, ("10.255.255.255", 1)),
    (socket.AF_INET6, ("2001:db8::1", 1)),
)
LISTEN_BACKLOG = 5
MAX_PORT = 65535


def get_local_ip() -> str:
    """Get this machine's IP on the local network (e.g. WiFi)."""
    for family, probe in PROBE_ADDRESSES:
        try:
            s = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as e:
            logger.debug("Address family %s unavailable: %s", family, e)
            continue
        try:
            s.settimeout(0)
            s.connect(probe)
            ip = s.getsockname()[0]
        except OSError as e:
            logger.debug("No route via %s: %s", probe[0], e)
            continue
        finally:
            s.close()
        if ip and ip not in ("0.0.0.0", "::"):
            return ip
    raise NetworkUnavailable("Cannot determine the local IP address (no network route)")


def wildcard_address(announce_ip: str) -> str:
    """All-interfaces bind address in the same family as the address being announced."""
    return "::" if ":" in announce_ip else ""


def bind_listener(address: str, port: int, auto_port: bool = False) -> tuple[socket.socket, int]:
    """
    Bind and listen on (address, port).
    With auto_port, an address-in-use conflict moves on to the next port.
    Binding "::" also accepts IPv4 clients where the OS allows dual-stack sockets.
    Returns (listening_socket, port_actually_used).
    """
    family = socket.AF_INET6 if ":" in address else socket.AF_INET
    while True:
        try:
            sock = socket.socket(family, socket.SOCK_STREAM)
        except OSError as e:
            raise BindError(address, port, e) from e
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if address == "::":
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            sock.bind((address, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE and auto_port and port < MAX_PORT:
                logger.info("Port %d in use, trying %d", port, port + 1)
                port += 1
                continue
            raise BindError(address, port, e) from e
        port = sock.getsockname()[1]
        logger.info("Listening on %s:%d", address or "*", port)
        return sock, port
