"""Cookie file parsing - Netscape cookies.txt and JSON extension exports."""

import json
from dataclasses import dataclass
from pathlib import Path

from .browser import debug_log
from .exceptions import ConfigurationException

HTTP_ONLY_PREFIX = "#HttpOnly_"
SAME_SITE_VALUES = ("Strict", "Lax", "None")

# Chrome extension sameSite names -> Playwright names
_EXTENSION_SAME_SITE = {"no_restriction": "None", "unspecified": "Lax", "lax": "Lax", "strict": "Strict"}


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str
    path: str = "/"
    expires: int = -1  # Epoch seconds, -1 for a session cookie
    http_only: bool = False
    secure: bool = False
    same_site: str = "Lax"
    include_subdomains: bool = True

    def to_playwright(self) -> dict:
        """Convert to the dict shape BrowserContext.add_cookies() expects."""
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires if self.expires > 0 else -1,
            "httpOnly": self.http_only,
            "secure": self.secure,
            "sameSite": self.same_site,
        }

    def to_netscape(self) -> str:
        """Serialize back to one cookies.txt line."""
        domain = f"{HTTP_ONLY_PREFIX}{self.domain}" if self.http_only else self.domain
        return "\t".join(
            [
                domain,
                "TRUE" if self.include_subdomains else "FALSE",
                self.path,
                "TRUE" if self.secure else "FALSE",
                str(self.expires),
                self.name,
                self.value,
            ]
        )


def _parse_expires(raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        return -1


def parse_netscape_line(line: str) -> Cookie | None:
    """Parse one cookies.txt line. Returns None for comments and malformed lines."""
    line = line.rstrip("\r\n")
    if not line.strip():
        return None

    http_only = False
    if line.startswith(HTTP_ONLY_PREFIX):
        http_only = True
        line = line[len(HTTP_ONLY_PREFIX) :]
    elif line.startswith("#"):
        return None

    parts = line.split("\t")
    if len(parts) < 7:
        return None

    domain, subdomains, path, secure, expires, name, value = parts[:7]
    if not name.strip() or not domain.strip():
        return None

    return Cookie(
        name=name.strip(),
        value=value,
        domain=domain.strip(),
        path=path.strip() or "/",
        expires=_parse_expires(expires),
        http_only=http_only,
        secure=secure.strip().upper() == "TRUE",
        include_subdomains=subdomains.strip().upper() == "TRUE",
    )


def _parse_json_export(content: str) -> list[Cookie]:
    """Parse a Chrome-extension style JSON cookie export."""
    entries = json.loads(content)

    cookies = []
    for i, c in enumerate(entries):
        if not isinstance(c, dict):
            debug_log(f"Skipping non-object cookie entry {i}")
            continue
        name = str(c.get("name", "")).strip()
        domain = str(c.get("domain", "")).strip()
        if not name or not domain:
            continue
        same_site = c.get("sameSite", "Lax")
        same_site = _EXTENSION_SAME_SITE.get(str(same_site).lower(), same_site)
        if same_site not in SAME_SITE_VALUES:
            same_site = "Lax"
        expires = c.get("expirationDate", c.get("expires", -1))
        cookies.append(
            Cookie(
                name=name,
                value=str(c.get("value", "")),
                domain=domain,
                path=c.get("path") or "/",
                expires=int(expires) if isinstance(expires, (int, float)) else -1,
                http_only=bool(c.get("httpOnly", False)),
                secure=bool(c.get("secure", False)),
                same_site=same_site,
                include_subdomains=domain.startswith("."),
            )
        )
    return cookies


def parse_cookies(content: str) -> list[Cookie]:
    """Parse cookies from Netscape TXT or JSON format.

    Malformed Netscape lines (fewer than 7 tab-separated fields, or an
    empty name/domain) are skipped rather than treated as errors.
    """
    if content.lstrip().startswith("["):
        return _parse_json_export(content)

    cookies = []
    for lineno, line in enumerate(content.splitlines(), start=1):
        cookie = parse_netscape_line(line)
        if cookie is not None:
            cookies.append(cookie)
        elif line.strip() and not line.startswith("#"):
            debug_log(f"Skipping malformed cookie line {lineno}")
    return cookies


def load_cookie_file(path: str | Path) -> list[Cookie]:
    """Read and parse a cookie file.

    Raises FileNotFoundError if it does not exist, and ConfigurationException
    when it exists but cannot be read or decoded.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Cookie file not found: {path}")
    try:
        return parse_cookies(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, OverflowError) as e:
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        raise ConfigurationException(str(path), f"unreadable cookie file ({type(e).__name__}: {e})") from e


def summarize_cookies(cookies: list[Cookie]) -> dict[str, int]:
    """Count cookies per domain."""
    summary: dict[str, int] = {}
    for c in cookies:
        summary[c.domain] = summary.get(c.domain, 0) + 1
    return summary
