"""
Unit codes and base-unit conversion for normalized property values.

Normalized values are stored in one base unit per measurement type so that
values entered in different units compare directly:

  length       mm
  area         sq_m
  volume       l
  weight       kg
  temperature  c
  count        ea
"""
from typing import Optional, Tuple

BASE_UNITS = {
    "length": "mm",
    "area": "sq_m",
    "volume": "l",
    "weight": "kg",
    "temperature": "c",
    "count": "ea",
}

# unit code → (measurement type, factor to base unit)
CONVERSION_TO_BASE = {
    "in": ("length", 25.4),
    "ft": ("length", 304.8),
    "yd": ("length", 914.4),
    "mi": ("length", 1609344.0),
    "mm": ("length", 1.0),
    "cm": ("length", 10.0),
    "m": ("length", 1000.0),
    "km": ("length", 1000000.0),
    "sq_ft": ("area", 0.092903),
    "sq_in": ("area", 0.00064516),
    "sq_yd": ("area", 0.836127),
    "sq_m": ("area", 1.0),
    "gal": ("volume", 3.78541),
    "qt": ("volume", 0.946353),
    "pt": ("volume", 0.473176),
    "fl_oz": ("volume", 0.0295735),
    "l": ("volume", 1.0),
    "ml": ("volume", 0.001),
    "lb": ("weight", 0.453592),
    "oz": ("weight", 0.0283495),
    "kg": ("weight", 1.0),
    "g": ("weight", 0.001),
    "ton": ("weight", 907.185),
    "ea": ("count", 1.0),
    "pcs": ("count", 1.0),
    "ct": ("count", 1.0),
}

# temperatures are affine, not a plain factor
TEMPERATURE_UNITS = {"f", "c"}

UNIT_SPELLINGS = {
    "inches": "in", "inch": "in", '"': "in",
    "feet": "ft", "foot": "ft", "'": "ft",
    "yards": "yd", "yard": "yd",
    "millimeters": "mm", "millimeter": "mm",
    "centimeters": "cm", "centimeter": "cm",
    "meters": "m", "meter": "m",
    "square feet": "sq_ft", "sq ft": "sq_ft", "sqft": "sq_ft",
    "square inches": "sq_in", "sq in": "sq_in",
    "square meters": "sq_m", "sq m": "sq_m",
    "gallons": "gal", "gallon": "gal",
    "liters": "l", "liter": "l",
    "pounds": "lb", "pound": "lb", "lbs": "lb",
    "ounces": "oz", "ounce": "oz",
    "kilograms": "kg", "kilogram": "kg",
    "grams": "g", "gram": "g",
    "fahrenheit": "f", "°f": "f", "deg f": "f",
    "celsius": "c", "°c": "c", "deg c": "c",
    "each": "ea", "pieces": "pcs",
}

# float noise from the factors is dropped below this many decimals
PRECISION = 6


def unit_code(unit: Optional[str]) -> Optional[str]:
    """Map a unit spelling ("Inches", "sq ft", "°F") onto its unit code."""
    if unit is None:
        return None
    text = str(unit).strip().lower()
    if not text:
        return None
    return UNIT_SPELLINGS.get(text, text)


def measurement_type(code: Optional[str]) -> Optional[str]:
    if code in TEMPERATURE_UNITS:
        return "temperature"
    entry = CONVERSION_TO_BASE.get(code or "")
    return entry[0] if entry else None


def to_base(value: float, unit: Optional[str]) -> Tuple[float, Optional[str]]:
    """
    Convert a value to the base unit of its measurement type.

    Returns (value, base unit). A missing or unknown unit leaves the value
    as-is and returns the unit code unchanged.
    """
    code = unit_code(unit)
    if code is None:
        return value, None
    if code == "f":
        return round((value - 32) * 5 / 9, PRECISION), "c"
    if code == "c":
        return value, "c"
    entry = CONVERSION_TO_BASE.get(code)
    if entry is None:
        return value, code
    kind, factor = entry
    return round(value * factor, PRECISION), BASE_UNITS[kind]
