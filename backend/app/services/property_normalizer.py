"""
Property value normalizers.

Each normalizer maps a raw display value ("1 1/2\"", "2.5", "Fiberglass")
onto a comparable form. Parsers never raise on bad input; they return the
UNPARSEABLE sentinel and callers keep the original value.
"""
import math
import re
from typing import Any, Callable, Dict, Optional, Union

DEFAULT_TOLERANCE = 0.01
# float noise such as 1.51 - 1.50 == 0.010000000000000009
_EPSILON = 1e-9


class _Unparseable:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNPARSEABLE"

    def __bool__(self) -> bool:
        return False


UNPARSEABLE = _Unparseable()

# ── Grammar ───────────────────────────────────────────────────────────────────

_MIXED_RE = re.compile(r"^(\d+)\s*[- ]\s*(\d+)\s*/\s*(\d+)$")
_FRACTION_RE = re.compile(r"^(\d+)\s*/\s*(\d+)$")
_DECIMAL_RE = re.compile(r"^(\d+\.?\d*|\.\d+)$")
_STRICT_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")
_INCH_SUFFIX_RE = re.compile(r"(\"|''|inches|inch|in\.?)\s*$", re.IGNORECASE)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_mixed(text: str) -> Union[float, _Unparseable]:
    text = " ".join(text.split())
    if not text or text == "-":
        return UNPARSEABLE

    m = _MIXED_RE.match(text)
    if m:
        whole, num, den = (int(g) for g in m.groups())
        if den == 0:
            return UNPARSEABLE
        return whole + num / den

    m = _FRACTION_RE.match(text)
    if m:
        num, den = int(m.group(1)), int(m.group(2))
        if den == 0:
            return UNPARSEABLE
        return num / den

    if _DECIMAL_RE.match(text):
        return float(text)

    return UNPARSEABLE


# ── Normalizers ───────────────────────────────────────────────────────────────

def parse_inches(value: Any) -> Union[float, _Unparseable]:
    """Parse an inch measurement: 1 1/2", 1-1/2 in, 3/4, 2.5 → float."""
    if _is_number(value):
        return float(value) if math.isfinite(value) else UNPARSEABLE
    if not isinstance(value, str):
        return UNPARSEABLE
    text = value.strip()
    # repeated so that `1 1/2 in"` loses both marks
    while True:
        stripped = _INCH_SUFFIX_RE.sub("", text).strip()
        if stripped == text:
            break
        text = stripped
    return _parse_mixed(text.replace('"', ""))


def parse_fraction(value: Any) -> Union[float, _Unparseable]:
    """Parse a fraction or mixed number without unit stripping."""
    if _is_number(value):
        return float(value) if math.isfinite(value) else UNPARSEABLE
    if not isinstance(value, str):
        return UNPARSEABLE
    return _parse_mixed(value.strip())


def parse_number(value: Any) -> Union[float, _Unparseable]:
    if _is_number(value):
        return float(value) if math.isfinite(value) else UNPARSEABLE
    if not isinstance(value, str):
        return UNPARSEABLE
    text = value.strip()
    if not _STRICT_NUMBER_RE.match(text):
        return UNPARSEABLE
    return float(text)


def to_lower_case(value: Any) -> Union[str, _Unparseable]:
    if value is None:
        return UNPARSEABLE
    return str(value).strip().casefold()


def identity(value: Any) -> Any:
    return value


NORMALIZERS: Dict[str, Callable[[Any], Any]] = {
    "parseInches": parse_inches,
    "parseFraction": parse_fraction,
    "parseNumber": parse_number,
    "toLowerCase": to_lower_case,
    "none": identity,
}


def normalize(value: Any, function_name: Optional[str] = "none") -> Any:
    """
    Apply the named normalization function.

    Returns UNPARSEABLE when the value cannot be parsed. An unknown
    function name is a programming error and raises ValueError.
    """
    fn = NORMALIZERS.get(function_name or "none")
    if fn is None:
        raise ValueError(f"Unknown normalization function: {function_name!r}")
    return fn(value)


def is_unparseable(value: Any) -> bool:
    return value is UNPARSEABLE


# ── Comparison ────────────────────────────────────────────────────────────────

def values_equal(a: Any, b: Any, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """Numbers are equal within tolerance (inclusive); anything else by string equality."""
    if _is_number(a) and _is_number(b):
        return abs(float(a) - float(b)) <= tolerance + _EPSILON
    return str(a) == str(b)


def compare_values(a: Any, b: Any, normalization: Optional[Dict[str, Any]] = None) -> bool:
    """
    Compare two raw values under a definition's normalization settings.

    When either side fails to parse, falls back to a case-insensitive
    comparison of the original strings.
    """
    normalization = normalization or {}
    fn_name = normalization.get("function") or "none"
    tolerance = normalization.get("tolerance")
    if tolerance is None:
        tolerance = DEFAULT_TOLERANCE

    na = normalize(a, fn_name)
    nb = normalize(b, fn_name)
    if is_unparseable(na) or is_unparseable(nb):
        return str(a).strip().casefold() == str(b).strip().casefold()
    return values_equal(na, nb, tolerance)
