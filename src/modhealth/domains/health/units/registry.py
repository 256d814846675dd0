"""Unit groups — classification, canonical storage units, conversion previews.

The group table is declarative (``units.yaml`` next to this module) and is
loaded once per process. Every lookup here is a pure function over that
table; an unknown unit is a valid, ungrouped unit rather than an error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_UNITS_FILE = Path(__file__).resolve().parent / "units.yaml"

BOOLEAN_GROUP = "boolean"
BOOLEAN_SEPARATOR = "/"
UNGROUPED_CATEGORY = "General"


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UnitGroup:
    key: str
    name: str
    description: str
    canonical_unit: str
    member_units: tuple[str, ...]
    category: str
    common_units: tuple[str, ...] = ()

    def __contains__(self, unit: object) -> bool:
        return unit in self.member_units


@dataclass(frozen=True)
class _Conversion:
    factor: float
    shift: float = 0.0
    offset: float = 0.0

    def apply(self, value: float) -> float:
        return (value + self.shift) * self.factor + self.offset


class ConversionStatus(str, enum.Enum):
    CONVERTED = "converted"
    UNCONVERTED = "unconverted"


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of a preview conversion.

    ``UNCONVERTED`` carries the input value and unit unchanged; it is the
    documented answer for pairs the preview table does not know. ``exact``
    marks a same-unit pair, which is echoed without rounding.
    """

    value: float
    unit: str
    status: ConversionStatus
    exact: bool = False

    @property
    def converted(self) -> bool:
        return self.status is ConversionStatus.CONVERTED

    def format(self) -> str:
        if self.converted and not self.exact:
            return f"{_format_number(round(self.value, 2))} {self.unit}"
        return f"{_format_number(self.value)} {self.unit}"


@dataclass(frozen=True)
class UnitDisplayInfo:
    unit: str
    group: UnitGroup | None
    category: str
    is_convertible: bool
    convertible_units: list[str]
    suggested_units: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "unit": self.unit,
            "group": self.group.key if self.group else None,
            "group_name": self.group.name if self.group else None,
            "category": self.category,
            "is_convertible": self.is_convertible,
            "convertible_units": list(self.convertible_units),
            "suggested_units": list(self.suggested_units),
        }


@dataclass(frozen=True)
class UnitConfig:
    """Storage configuration for a newly created variable."""

    canonical_unit: str
    unit_group: str | None
    convertible_units: list[str] | None
    default_display_unit: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "canonical_unit": self.canonical_unit,
            "unit_group": self.unit_group,
            "convertible_units": self.convertible_units,
            "default_display_unit": self.default_display_unit,
        }


# ---------------------------------------------------------------------------
# Table loading
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _UnitTable:
    groups: dict[str, UnitGroup]
    by_unit: dict[str, UnitGroup]
    conversions: dict[tuple[str, str], _Conversion]


@lru_cache(maxsize=1)
def _table() -> _UnitTable:
    return load_unit_table(_UNITS_FILE)


def load_unit_table(path: str | Path) -> _UnitTable:
    """Parse a units YAML file into lookup maps."""
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f)

    groups: dict[str, UnitGroup] = {}
    by_unit: dict[str, UnitGroup] = {}
    for key, entry in data.get("groups", {}).items():
        members = tuple(str(u) for u in entry["units"])
        canonical = str(entry["canonical"])
        if canonical not in members:
            raise ValueError(f"Canonical unit {canonical!r} is not a member of group {key!r}")
        group = UnitGroup(
            key=key,
            name=entry.get("name", key),
            description=entry.get("description", ""),
            canonical_unit=canonical,
            member_units=members,
            category=entry.get("category", UNGROUPED_CATEGORY),
            common_units=tuple(str(u) for u in entry.get("common", members)),
        )
        groups[key] = group
        for unit in members:
            # First group listing a unit owns it
            by_unit.setdefault(unit, group)

    conversions: dict[tuple[str, str], _Conversion] = {}
    for from_unit, targets in data.get("conversions", {}).items():
        for to_unit, rule in targets.items():
            conversions[(str(from_unit), str(to_unit))] = _Conversion(
                factor=float(rule.get("factor", 1)),
                shift=float(rule.get("shift", 0)),
                offset=float(rule.get("offset", 0)),
            )

    logger.debug("Loaded %d unit groups and %d conversions from %s",
                 len(groups), len(conversions), path)
    return _UnitTable(groups=groups, by_unit=by_unit, conversions=conversions)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def unit_groups() -> dict[str, UnitGroup]:
    """All groups keyed by group key, in table order."""
    return dict(_table().groups)


def lookup_group(unit: str) -> UnitGroup | None:
    """Return the group containing ``unit``, or None if ungrouped."""
    return _table().by_unit.get(unit)


def convertible_units(unit: str) -> list[str]:
    """Other members of ``unit``'s group; empty when ungrouped."""
    group = lookup_group(unit)
    if group is None:
        return []
    return [u for u in group.member_units if u != unit]


def canonicalize(unit: str) -> str:
    """The group's canonical storage unit, or ``unit`` itself when ungrouped."""
    group = lookup_group(unit)
    return group.canonical_unit if group else unit


def are_units_convertible(unit_a: str, unit_b: str) -> bool:
    group_a = lookup_group(unit_a)
    return group_a is not None and group_a is lookup_group(unit_b)


def suggested_units(unit: str) -> list[str]:
    """Commonly used units of ``unit``'s group, or just ``unit`` when ungrouped."""
    group = lookup_group(unit)
    if group is None:
        return [unit]
    return list(group.common_units)


# ---------------------------------------------------------------------------
# Conversion preview
# ---------------------------------------------------------------------------

def convert_preview(value: float, from_unit: str, to_unit: str) -> ConversionOutcome:
    """Best-effort conversion for display. Never raises."""
    if from_unit == to_unit:
        return ConversionOutcome(value, to_unit, ConversionStatus.CONVERTED, exact=True)

    rule = _table().conversions.get((from_unit, to_unit))
    if rule is None:
        return ConversionOutcome(value, from_unit, ConversionStatus.UNCONVERTED)
    return ConversionOutcome(rule.apply(value), to_unit, ConversionStatus.CONVERTED)


def preview_conversion(value: float, from_unit: str, to_unit: str) -> str:
    """Preview text such as ``"2.2 lb"``; unknown pairs echo ``"{value} {from_unit}"``."""
    return convert_preview(value, from_unit, to_unit).format()


# ---------------------------------------------------------------------------
# Classification and variable configuration
# ---------------------------------------------------------------------------

def classify_unit(unit: str) -> UnitDisplayInfo:
    group = lookup_group(unit)
    others = convertible_units(unit)
    return UnitDisplayInfo(
        unit=unit,
        group=group,
        category=group.category if group else UNGROUPED_CATEGORY,
        is_convertible=bool(others),
        convertible_units=others,
        suggested_units=suggested_units(unit),
    )


def configure_unit_for_new_variable(requested_unit: str, data_type: str = "continuous") -> UnitConfig:
    """Decide how a new variable stores and converts its values.

    Boolean data types and any unit containing ``/`` are forced into the
    boolean group, even when the unit is listed in another group.
    """
    if data_type == BOOLEAN_GROUP or BOOLEAN_SEPARATOR in requested_unit:
        boolean = _table().groups[BOOLEAN_GROUP]
        return UnitConfig(
            canonical_unit=boolean.canonical_unit,
            unit_group=boolean.key,
            convertible_units=list(boolean.member_units),
            default_display_unit=requested_unit,
        )

    group = lookup_group(requested_unit)
    if group is not None:
        return UnitConfig(
            canonical_unit=group.canonical_unit,
            unit_group=group.key,
            convertible_units=list(group.member_units),
            default_display_unit=requested_unit,
        )

    return UnitConfig(
        canonical_unit=requested_unit,
        unit_group=None,
        convertible_units=None,
        default_display_unit=requested_unit,
    )


def _format_number(value: float) -> str:
    """Render whole numbers without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
