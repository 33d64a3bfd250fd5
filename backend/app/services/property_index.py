"""
Alias index + key canonicalization for global property definitions.

Every spelling a property key has ever had in the catalog ("pipe_size",
"diameter", "pipeSize", "pipe-diameter") resolves to one canonical
PropertyDefinition key. The index is an immutable snapshot built from the
active definitions and passed explicitly to every lookup.
"""
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger("catalog-index")

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _attr(defn: Any, name: str, default: Any = None) -> Any:
    if isinstance(defn, Mapping):
        return defn.get(name, default)
    return getattr(defn, name, default)


def _normalize_spelling(key: Any) -> str:
    return str(key).strip().lower()


def camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", key.strip()).lower()


def key_variants(key: str) -> List[str]:
    """Lookup candidates for a key, in priority order, without duplicates."""
    normalized = _normalize_spelling(key)
    candidates = [
        normalized,
        normalized.replace("_", ""),
        normalized.replace("_", "-"),
        normalized.replace("-", "_"),
        camel_to_snake(str(key)),
    ]
    seen: List[str] = []
    for c in candidates:
        if c and c not in seen:
            seen.append(c)
    return seen


def derived_spellings(canonical_key: str) -> List[str]:
    """Mechanical variants registered for a canonical key."""
    return [canonical_key.replace("_", ""), canonical_key.replace("_", "-")]


def _dedupe_spellings(spellings: Iterable[str]) -> List[str]:
    out: List[str] = []
    for s in spellings:
        if s not in out:
            out.append(s)
    return out


def definition_aliases(defn: Any) -> List[str]:
    return [_normalize_spelling(a) for a in (_attr(defn, "aliases") or []) if str(a).strip()]


@dataclass(frozen=True)
class AliasIndex:
    """Immutable spelling → canonical key snapshot."""

    mapping: Mapping[str, str]
    definitions: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    collisions: Tuple[Tuple[str, str, str], ...] = ()

    def __contains__(self, spelling: str) -> bool:
        return spelling in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)

    def definition_for(self, canonical_key: str) -> Optional[Any]:
        return self.definitions.get(canonical_key)


def build_index(definitions: Iterable[Any]) -> AliasIndex:
    """
    Build the alias index from active definitions.

    Canonical keys are registered first, then their derived variants, then
    declared aliases, each pass in key order. Neither a key nor its derived
    variants can be shadowed by another definition's alias; on a collision
    the first registration is kept and the conflict is logged.
    """
    active = [d for d in definitions if _attr(d, "is_active", True)]
    active.sort(key=lambda d: _attr(d, "key"))

    mapping: Dict[str, str] = {}
    by_key: Dict[str, Any] = {}
    collisions: List[Tuple[str, str, str]] = []

    for defn in active:
        key = _attr(defn, "key")
        mapping[key] = key
        by_key[key] = defn

    def register(spelling: str, key: str) -> None:
        owner = mapping.get(spelling)
        if owner is None:
            mapping[spelling] = key
        elif owner != key:
            collisions.append((spelling, owner, key))
            logger.warning(
                f"Alias '{spelling}' of '{key}' already resolves to '{owner}', keeping '{owner}'"
            )

    for defn in active:
        key = _attr(defn, "key")
        for spelling in derived_spellings(key):
            register(spelling, key)

    for defn in active:
        key = _attr(defn, "key")
        for alias in definition_aliases(defn):
            register(alias, key)

    return AliasIndex(
        mapping=MappingProxyType(mapping),
        definitions=MappingProxyType(by_key),
        collisions=tuple(collisions),
    )


def canonicalize(key: Any, index: AliasIndex) -> Any:
    """Resolve a property key to its canonical form; unknown keys pass through unchanged."""
    if not isinstance(key, str) or not key.strip():
        return key
    for candidate in key_variants(key):
        hit = index.mapping.get(candidate)
        if hit is not None:
            return hit
    return key


def find_definition(key: Any, definitions: Sequence[Any]) -> Optional[Any]:
    """Find the definition a key refers to by scanning definitions directly."""
    if not isinstance(key, str) or not key.strip():
        return None
    for candidate in key_variants(key):
        for defn in definitions:
            if _attr(defn, "key") == candidate:
                return defn
        for defn in definitions:
            if candidate in derived_spellings(_attr(defn, "key")):
                return defn
        for defn in definitions:
            if candidate in definition_aliases(defn):
                return defn
    return None


def find_alias_conflicts(
    key: str,
    aliases: Iterable[str],
    definitions: Iterable[Any],
    exclude_id: Optional[str] = None,
) -> List[Dict[str, str]]:
    """
    List spellings of a new/updated definition already claimed by another one.

    A spelling is claimed by another definition when it is that definition's
    key, one of its derived variants, or one of its aliases. The new key and
    its own derived variants are checked the same way.
    """
    conflicts: List[Dict[str, str]] = []
    spellings: List[Tuple[str, str]] = []
    if key:
        normalized_key = _normalize_spelling(key)
        spellings.append((normalized_key, "key"))
        spellings += [
            (s, "derived") for s in _dedupe_spellings(derived_spellings(normalized_key)) if s != normalized_key
        ]
    spellings += [(_normalize_spelling(a), "alias") for a in aliases if str(a).strip()]

    for other in definitions:
        if exclude_id is not None and str(_attr(other, "id")) == str(exclude_id):
            continue
        other_key = _attr(other, "key")
        claimed = {other_key, *derived_spellings(other_key), *definition_aliases(other)}
        for spelling, kind in spellings:
            if kind == "key" and spelling == other_key:
                # duplicate keys are reported separately
                continue
            if spelling in claimed:
                conflicts.append({"spelling": spelling, "kind": kind, "definition": other_key})
    return conflicts
