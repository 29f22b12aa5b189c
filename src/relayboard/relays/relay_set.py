"""The configured list of relay endpoints."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from urllib.parse import urlsplit


def normalize_relay_url(url: str) -> str:
    """Lower-case scheme and host, drop a trailing slash. Only ws:// and wss:// are accepted."""
    text = url.strip()
    parts = urlsplit(text)
    if parts.scheme.lower() not in ("ws", "wss") or not parts.netloc:
        msg = f"Unsupported relay URL: {url!r}"
        raise ValueError(msg)
    path = parts.path.rstrip("/")
    normalized = f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"
    if parts.query:
        normalized += f"?{parts.query}"
    return normalized


@dataclass(frozen=True)
class RelaySet:
    """Immutable, ordered, duplicate-free relay URLs."""

    urls: tuple[str, ...]

    @classmethod
    def from_urls(cls, urls: Iterable[str]) -> RelaySet:
        seen: dict[str, None] = {}
        for url in urls:
            seen.setdefault(normalize_relay_url(url), None)
        return cls(urls=tuple(seen))

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls)

    def __len__(self) -> int:
        return len(self.urls)

    def __contains__(self, url: object) -> bool:
        return url in self.urls


def as_relay_set(relays: RelaySet | Iterable[str]) -> RelaySet:
    return relays if isinstance(relays, RelaySet) else RelaySet.from_urls(relays)
