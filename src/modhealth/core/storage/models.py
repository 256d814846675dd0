"""Row models for the reference store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CatalogVariable:
    """One entry of the shared variable catalog."""

    id: str
    slug: str
    label: str
    unit: str | None = None
    is_active: bool = True


@dataclass
class WearableLog:
    """A wearable-ring measurement. ``samples`` are encrypted at rest."""

    id: str
    user_id: str
    date: str  # ISO 8601 date or timestamp
    variable_id: str | None
    value: Any
    samples: list[dict[str, Any]] | None = None
    created_at: str = ""


@dataclass
class ScaleLog:
    """A smart-scale measurement, referenced by variable slug."""

    id: str
    user_id: str
    date: str
    variable: str | None
    value: Any
    created_at: str = ""


@dataclass
class ManualLog:
    """A user-entered log.

    ``source`` is stored as given: a scalar tag, a list of tags, or None.
    """

    id: str
    user_id: str
    date: str
    value: Any
    variable_id: str | None = None
    variable: str | None = None  # free-text label when no catalog id
    source: Any = field(default=None)
    created_at: str = ""
