"""Proxy data models for the proxy pool manager."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote, urlparse

_PASSWORD_MASK = "********"
_DEFAULT_PORTS = {"http": 80, "https": 443, "socks5": 1080}


@dataclass(frozen=True)
class ProxyEndpoint:
    """A single egress endpoint: ``protocol://[username:password@]host:port``.

    Instances are immutable and hashable so they can key the pool's stats and
    blacklist maps.
    """

    protocol: str  # http, https, socks5
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @classmethod
    def parse(cls, raw_url: str) -> ProxyEndpoint:
        """Parse a proxy URL string.

        Raises ``ValueError`` when the string has no host.
        """
        text = raw_url.strip()
        if "://" not in text:
            text = f"http://{text}"
        parsed = urlparse(text)
        if not parsed.hostname:
            raise ValueError(f"Proxy URL has no host: {_mask_password(raw_url)}")

        protocol = parsed.scheme.lower() or "http"
        port = parsed.port or _DEFAULT_PORTS.get(protocol, 80)
        return cls(
            protocol=protocol,
            host=parsed.hostname,
            port=port,
            username=unquote(parsed.username) if parsed.username else None,
            password=unquote(parsed.password) if parsed.password else None,
        )

    @property
    def url(self) -> str:
        """Full connection URL including credentials. Never log this."""
        if self.username and self.password:
            credentials = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@"
        elif self.username:
            credentials = f"{quote(self.username, safe='')}@"
        else:
            credentials = ""
        return f"{self.protocol}://{credentials}{self.host}:{self.port}"

    def masked(self) -> str:
        """Loggable rendering with the password replaced by a fixed-length mask."""
        if self.username and self.password:
            return f"{self.protocol}://{self.username}:{_PASSWORD_MASK}@{self.host}:{self.port}"
        return f"{self.protocol}://{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"ProxyEndpoint({self.masked()})"

    __str__ = masked


def mask_url(raw_url: str) -> str:
    """Mask the password of an arbitrary proxy URL string for log output."""
    try:
        return ProxyEndpoint.parse(raw_url).masked()
    except ValueError:
        return _mask_password(raw_url)


def _mask_password(raw_url: str) -> str:
    parsed = urlparse(raw_url)
    if parsed.password:
        return raw_url.replace(parsed.password, _PASSWORD_MASK)
    return raw_url


@dataclass
class ProxyStats:
    """Per-endpoint usage counters.

    ``successes + failures`` only grows while the endpoint is in the pool.
    ``last_used_at`` is epoch seconds; 0 means never selected.
    """

    successes: int = 0
    failures: int = 0
    last_used_at: float = 0.0

    @property
    def total(self) -> int:
        return self.successes + self.failures

    @property
    def success_rate(self) -> float | None:
        """Fraction of successful requests, or None when the endpoint is unused."""
        if self.total == 0:
            return None
        return self.successes / self.total
