"""
Specification matching - does a product variant satisfy a specification?

Keys on both sides are canonicalized first, so a specification written
against "pipe_size" still matches a variant storing "pipe_diameter".
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.models.property_values import resolve_enum_value
from app.services.property_index import AliasIndex, canonicalize
from app.services.property_migration import canonicalize_map
from app.services.property_normalizer import (
    DEFAULT_TOLERANCE,
    UNPARSEABLE,
    compare_values,
    normalize,
    values_equal,
)

MATCH_TYPES = ("exact", "range", "min", "max", "enum", "contains")


@dataclass
class MatchResult:
    matched: bool
    failures: List[str] = field(default_factory=list)


def _normalization(index: AliasIndex, key: str) -> Dict[str, Any]:
    defn = index.definition_for(key)
    if defn is None:
        return {"function": "parseFraction", "tolerance": DEFAULT_TOLERANCE}
    return defn.normalization.model_dump()


def _as_number(value: Any, normalization: Dict[str, Any]) -> Optional[float]:
    fn_name = normalization.get("function") or "none"
    if fn_name in ("none", "toLowerCase"):
        fn_name = "parseFraction"
    parsed = normalize(value, fn_name)
    return None if parsed is UNPARSEABLE else parsed


def _enum_value(value: Any, defn: Any) -> Any:
    option = resolve_enum_value(value, defn)
    return option.value if option is not None else value


def _text_equal(a: Any, b: Any) -> bool:
    return str(a).strip().lower() == str(b).strip().lower()


def rule_matches(rule: Dict[str, Any], actual: Any, expected: Any, index: AliasIndex) -> bool:
    """Evaluate one matching rule against a variant's value."""
    key = canonicalize(rule.get("propertyKey"), index)
    match_type = rule.get("matchType") or "exact"
    normalization = _normalization(index, key)
    tolerance = normalization.get("tolerance", DEFAULT_TOLERANCE)
    use_normalize = rule.get("normalize", True)

    if match_type == "exact":
        if not use_normalize:
            return _text_equal(actual, expected)
        return compare_values(actual, expected, normalization)

    if match_type == "contains":
        return str(expected).strip().lower() in str(actual).strip().lower()

    if match_type == "enum":
        allowed = expected if isinstance(expected, (list, tuple)) else [expected]
        defn = index.definition_for(key)
        if defn is not None and defn.data_type == "enum":
            actual = _enum_value(actual, defn)
            allowed = [_enum_value(a, defn) for a in allowed]
        return any(_text_equal(actual, a) for a in allowed)

    actual_num = _as_number(actual, normalization)
    if actual_num is None:
        return False

    if match_type in ("min", "max"):
        bound = _as_number(expected, normalization)
        if bound is None:
            return False
        if values_equal(actual_num, bound, tolerance):
            return True
        return actual_num > bound if match_type == "min" else actual_num < bound

    if match_type == "range":
        bounds = expected if isinstance(expected, dict) else {}
        low = _as_number(bounds["min"], normalization) if bounds.get("min") is not None else None
        high = _as_number(bounds["max"], normalization) if bounds.get("max") is not None else None
        if low is not None and actual_num < low and not values_equal(actual_num, low, tolerance):
            return False
        if high is not None and actual_num > high and not values_equal(actual_num, high, tolerance):
            return False
        return True

    raise ValueError(f"Unknown matchType: {match_type!r}")


def variant_satisfies(
    specification: Dict[str, Any], properties: Optional[Dict[str, Any]], index: AliasIndex
) -> MatchResult:
    """
    Check a variant's property map against a specification.

    Every required property must be present and match, through the rule for
    that key when one exists. Rules for keys outside required_properties
    are checked against the rule's own value.
    """
    props, _ = canonicalize_map(properties, index)
    required, _ = canonicalize_map(specification.get("required_properties"), index)
    rules = {
        canonicalize(r.get("propertyKey"), index): r for r in specification.get("property_matching_rules") or []
    }
    failures: List[str] = []

    for key, expected in required.items():
        actual = props.get(key)
        if actual is None or actual == "":
            failures.append(f"{key}: missing")
            continue
        rule = rules.get(key)
        if rule is None:
            ok = compare_values(actual, expected, _normalization(index, key))
        else:
            target = rule.get("value") if rule.get("value") is not None else expected
            ok = rule_matches(rule, actual, target, index)
        if not ok:
            failures.append(f"{key}: {actual!r} does not match {expected!r}")

    for key, rule in rules.items():
        if key in required:
            continue
        actual = props.get(key)
        if actual is None:
            failures.append(f"{key}: missing")
        elif not rule_matches(rule, actual, rule.get("value"), index):
            failures.append(f"{key}: {actual!r} fails {rule.get('matchType')} {rule.get('value')!r}")

    return MatchResult(matched=not failures, failures=failures)


def matching_variants(specification: Dict[str, Any], product: Dict[str, Any], index: AliasIndex) -> List[Dict[str, Any]]:
    """Active variants of a product that satisfy the specification."""
    type_id = specification.get("product_type_id")
    if type_id and str(product.get("product_type_id")) != str(type_id):
        return []
    return [
        v for v in product.get("variants") or []
        if v.get("isActive", True) and variant_satisfies(specification, v.get("properties"), index).matched
    ]
