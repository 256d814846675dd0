"""Variable identity resolution — raw variable references to canonical identities.

A record may name its variable by catalog UUID, by slug, or (manual logs)
only by free text. Resolution never fails: when neither a joined catalog
row nor the per-pass catalog map knows the reference, an identity is
synthesized from the reference itself so the record can still be shown.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from modhealth.domains.health.domain_logic.record_models import (
    UNKNOWN_VARIABLE,
    CanonicalVariable,
)

logger = logging.getLogger(__name__)

DEGRADED_LABEL_TEMPLATE = "Variable {ref}"


class VariableIdentityResolver:
    """Resolves raw references against a catalog snapshot taken once per pass.

    The maps are read-only after construction; concurrent passes each build
    their own resolver.

    Usage::

        resolver = VariableIdentityResolver.from_catalog(catalog_rows)
        variable = resolver.resolve("abc-123")
        variable = resolver.resolve(row["variable_id"], row.get("variables"))
    """

    def __init__(self, entries: Iterable[CanonicalVariable] = ()) -> None:
        by_id: dict[str, CanonicalVariable] = {}
        by_slug: dict[str, CanonicalVariable] = {}
        for entry in entries:
            by_id[entry.id] = entry
            by_slug.setdefault(entry.slug, entry)
        self._by_id: Mapping[str, CanonicalVariable] = MappingProxyType(by_id)
        self._by_slug: Mapping[str, CanonicalVariable] = MappingProxyType(by_slug)

    @classmethod
    def from_catalog(cls, rows: Iterable[Mapping[str, Any]]) -> VariableIdentityResolver:
        """Build from catalog rows; rows without an id are skipped."""
        entries = []
        for row in rows:
            vid = row.get("id")
            if not vid:
                continue
            slug = row.get("slug") or str(vid)
            entries.append(CanonicalVariable(
                id=str(vid),
                slug=str(slug),
                label=str(row.get("label") or slug),
            ))
        resolver = cls(entries)
        logger.debug("Variable resolver built with %d catalog entries", len(resolver))
        return resolver

    def __len__(self) -> int:
        return len(self._by_id)

    def lookup(self, ref: str) -> CanonicalVariable | None:
        """Catalog entry for an id or slug, if loaded."""
        return self._by_id.get(ref) or self._by_slug.get(ref)

    def resolve(
        self,
        raw_ref: str | None,
        enrichment: Mapping[str, Any] | None = None,
        *,
        degraded: bool = False,
    ) -> CanonicalVariable:
        """Resolve a raw reference to a canonical identity.

        Order: the joined catalog row, then the catalog map, then synthesis.
        Synthesized identities use the reference for id, slug and label; on
        the degraded fetch path the label reads ``"Variable {ref}"``.
        """
        if enrichment and enrichment.get("id"):
            vid = str(enrichment["id"])
            slug = str(enrichment.get("slug") or vid)
            return CanonicalVariable(id=vid, slug=slug, label=str(enrichment.get("label") or slug))

        ref = str(raw_ref).strip() if raw_ref is not None else ""
        if not ref:
            ref = UNKNOWN_VARIABLE

        known = self.lookup(ref)
        if known is not None:
            return known

        label = DEGRADED_LABEL_TEMPLATE.format(ref=ref) if degraded else ref
        return CanonicalVariable(id=ref, slug=ref, label=label)
