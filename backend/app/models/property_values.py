"""
Typed property values.

Stored property maps hold raw JSON display values. Code that compares or
normalizes values works on this tagged union instead, coerced through the
owning PropertyDefinition's dataType.
"""
from datetime import date
from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.services.property_normalizer import UNPARSEABLE, normalize, parse_number


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)

    def raw(self) -> Any:
        return self.value


class TextValue(_Value):
    kind: Literal["text"] = "text"
    value: str


class NumberValue(_Value):
    kind: Literal["number"] = "number"
    value: float
    display: Optional[str] = None

    def raw(self) -> Any:
        return self.display if self.display is not None else self.value


class BooleanValue(_Value):
    kind: Literal["boolean"] = "boolean"
    value: bool


class DateValue(_Value):
    kind: Literal["date"] = "date"
    value: date

    def raw(self) -> Any:
        return self.value.isoformat()


class EnumValue(_Value):
    kind: Literal["enum"] = "enum"
    value: str
    label: Optional[str] = None


PropertyValue = Annotated[
    Union[TextValue, NumberValue, BooleanValue, DateValue, EnumValue],
    Field(discriminator="kind"),
]

property_value_adapter = TypeAdapter(PropertyValue)

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}


def _attr(defn: Any, name: str, default: Any = None) -> Any:
    return getattr(defn, name, default) if defn is not None else default


def resolve_enum_value(value: Any, definition: Any) -> Optional[Any]:
    """Map an enum value or any of its value-level aliases onto the option."""
    needle = str(value).strip().lower()
    for option in _attr(definition, "enum_options", ()) or ():
        spellings = {option.value.lower(), option.label.lower(), *(a.lower() for a in option.aliases)}
        if needle in spellings:
            return option
    return None


def coerce_value(raw: Any, definition: Any = None) -> PropertyValue:
    """
    Build a typed value from a stored raw value.

    Values that do not fit the definition's dataType fall back to TextValue
    so nothing is ever dropped. An already tagged value ({"kind": ..., "value": ...})
    is revived as-is.
    """
    if raw is None:
        return TextValue(value="")
    if isinstance(raw, dict) and "kind" in raw:
        try:
            return property_value_adapter.validate_python(raw)
        except ValidationError:
            return TextValue(value=str(raw))
    data_type = _attr(definition, "data_type", None)

    if data_type in ("number", "fraction"):
        fn_name = _attr(_attr(definition, "normalization"), "function", "none")
        if fn_name in (None, "none", "toLowerCase"):
            fn_name = "parseFraction" if data_type == "fraction" else "parseNumber"
        parsed = normalize(raw, fn_name)
        if parsed is not UNPARSEABLE:
            display = raw if isinstance(raw, str) else None
            return NumberValue(value=parsed, display=display)
        return TextValue(value=str(raw))

    if data_type == "boolean":
        if isinstance(raw, bool):
            return BooleanValue(value=raw)
        text = str(raw).strip().lower()
        if text in _TRUE or text in _FALSE:
            return BooleanValue(value=text in _TRUE)
        return TextValue(value=str(raw))

    if data_type == "date":
        try:
            return DateValue(value=date.fromisoformat(str(raw)[:10]))
        except ValueError:
            return TextValue(value=str(raw))

    if data_type == "enum":
        option = resolve_enum_value(raw, definition)
        if option is not None:
            return EnumValue(value=option.value, label=option.label)
        return TextValue(value=str(raw))

    if isinstance(raw, bool):
        return BooleanValue(value=raw)
    if isinstance(raw, (int, float)) and parse_number(raw) is not UNPARSEABLE:
        return NumberValue(value=float(raw))
    return TextValue(value=str(raw))


def to_typed_map(raw_map: Optional[Dict[str, Any]], index: Any) -> Dict[str, PropertyValue]:
    """Typed view of a property map; keys are expected to be canonical already."""
    typed: Dict[str, PropertyValue] = {}
    for key, raw in (raw_map or {}).items():
        typed[key] = coerce_value(raw, index.definition_for(key) if index is not None else None)
    return typed
