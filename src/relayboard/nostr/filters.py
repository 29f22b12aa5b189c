"""Relay query filters (NIP-01 REQ filter objects)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Filter(BaseModel):
    """One REQ filter: event kinds, author set, single-letter tag filters, result limit."""

    kinds: list[int] | None = None
    authors: list[str] | None = None
    ids: list[str] | None = None
    tags: dict[str, list[str]] = Field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_wire(self) -> dict[str, Any]:
        """Render as the JSON object relays expect, e.g. {"kinds": [1], "#t": ["word5"]}."""
        wire: dict[str, Any] = {}
        for name in ("ids", "kinds", "authors", "since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                wire[name] = value
        for letter, values in self.tags.items():
            wire[f"#{letter}"] = values
        return wire
