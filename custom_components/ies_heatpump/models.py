"""Data models for IES Heat Pump integration."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum


@dataclass
class JWT:
    """Represents a JWT token with its expiration timestamp."""

    token: str
    expire_at: datetime


@dataclass(frozen=True, slots=True)
class Reading:
    """A single numeric parameter value reported by the portal."""

    id: str
    value: float
    raw: str
    observed_at: datetime


class FieldKind(StrEnum):
    """Kind of input on the settings form."""

    SELECT = "select"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class FormField:
    """A settings form field and the value meaning "leave unchanged"."""

    name: str
    kind: FieldKind

    @property
    def sentinel(self) -> str:
        """Return the no-op value the form processor expects for this field."""
        return "-1" if self.kind is FieldKind.SELECT else ""


def parse_set_cookie(header: str) -> tuple[str, str] | None:
    """Return the ``(name, value)`` pair of a raw Set-Cookie header."""
    pair = header.split(";", 1)[0].strip()
    name, sep, value = pair.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip()


def parse_cookie_jar(jar: str) -> dict[str, str]:
    """Split a ``name=value; name=value`` jar string into an ordered mapping."""
    cookies: dict[str, str] = {}
    for part in jar.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies


def merge_cookie_jar(jar: str, set_cookie_headers: list[str]) -> str:
    """Merge Set-Cookie headers into a jar string, last value wins per name."""
    cookies = parse_cookie_jar(jar)
    for header in set_cookie_headers:
        parsed = parse_set_cookie(header)
        if parsed is None:
            continue
        name, value = parsed
        cookies[name] = value
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


@dataclass
class Session:
    """Live authentication state for one portal account.

    Owned by a single API client and never persisted.
    """

    bearer_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    cookie_jar: str = field(default="", repr=False)

    @property
    def is_authenticated(self) -> bool:
        """Return True when a bearer token and its expiry are held."""
        return bool(self.bearer_token) and self.expires_at is not None

    def expires_within(self, now: datetime, buffer: timedelta) -> bool:
        """Return True if the token expires before ``now + buffer``."""
        if self.expires_at is None:
            return True
        return now + buffer >= self.expires_at

    def apply_token(self, jwt: JWT, refresh_token: str | None = None) -> None:
        """Replace bearer token, refresh token and expiry together."""
        self.bearer_token = jwt.token
        self.expires_at = jwt.expire_at
        self.refresh_token = refresh_token

    def replace(self, other: "Session") -> None:
        """Take over every field of a freshly authenticated session."""
        self.bearer_token = other.bearer_token
        self.refresh_token = other.refresh_token
        self.expires_at = other.expires_at
        self.cookie_jar = other.cookie_jar

    def invalidate(
        self, failed_token: str | None = None, *, clear_cookies: bool = False
    ) -> None:
        """Force the next operation to re-authenticate.

        When ``failed_token`` is given, the session is only cleared if it still
        holds that token, so a concurrent re-authentication is not discarded.
        """
        if failed_token is not None and self.bearer_token != failed_token:
            return
        self.bearer_token = None
        if clear_cookies:
            self.cookie_jar = ""
