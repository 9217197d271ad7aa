"""
Secret URL path: an unguessable token plus the escaped file name.
"""
import secrets
import uuid
from urllib.parse import quote

# Letters without look-alikes (B/8, G/6, I/l/1, O/o/0, Q/q/9, S/s/5, Z/2 ...), plus 2-9.
TOKEN_ALPHABET = "ACDEFHJKLMNPRTUVWXY" "acdefhjkmnprtuvwxyz" "23456789"
TOKEN_LENGTH = 30
TOKEN_STYLES = ("uuid", "random")


def random_token(length: int = TOKEN_LENGTH) -> str:
    """Draw each character uniformly from TOKEN_ALPHABET using OS entropy."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_token(style: str = "uuid") -> str:
    if style == "uuid":
        return str(uuid.uuid4())
    if style == "random":
        return random_token()
    raise ValueError(f"Unknown token style: {style!r}")


def escape_name(name: str) -> str:
    # surrogateescape keeps undecodable bytes from odd filesystem names intact
    return quote(name, safe="", errors="surrogateescape")


def build_url_path(token: str, display_name: str) -> str:
    """'/' + token + '/' + escaped name; the exact path a request must ask for."""
    return f"/{token}/{escape_name(display_name)}"


def build_url(host: str, port: int, url_path: str) -> str:
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}{url_path}"
