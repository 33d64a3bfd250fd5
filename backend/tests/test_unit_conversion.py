"""
test_unit_conversion.py - Unit codes and base-unit conversion.

Tests cover:
  - unit spellings map onto unit codes
  - length, weight and area conversion to mm / kg / sq_m
  - Fahrenheit to Celsius
  - missing and unknown units leave the value alone
"""

import pytest

from app.services.unit_conversion import measurement_type, to_base, unit_code


class TestUnitCode:

    @pytest.mark.parametrize("spelling,code", [
        ("Inches", "in"),
        ("inch", "in"),
        ("FEET", "ft"),
        ("sq ft", "sq_ft"),
        ("°F", "f"),
        ("lbs", "lb"),
        ("mm", "mm"),
    ])
    def test_spellings(self, spelling, code):
        assert unit_code(spelling) == code

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_empty(self, raw):
        assert unit_code(raw) is None

    def test_measurement_type(self):
        assert measurement_type("in") == "length"
        assert measurement_type("f") == "temperature"
        assert measurement_type("furlong") is None


class TestToBase:

    def test_length(self):
        assert to_base(1.5, "in") == (38.1, "mm")
        assert to_base(3, "feet") == (914.4, "mm")
        assert to_base(2.5, "cm") == (25.0, "mm")

    def test_weight_and_area(self):
        assert to_base(10, "lb") == (4.53592, "kg")
        assert to_base(1, "sq_ft") == (0.092903, "sq_m")

    def test_temperature(self):
        assert to_base(212, "F") == (100.0, "c")
        assert to_base(-40, "fahrenheit") == (-40.0, "c")
        assert to_base(20, "celsius") == (20, "c")

    def test_no_unit(self):
        assert to_base(4.0, None) == (4.0, None)

    def test_unknown_unit_kept(self):
        """An unknown unit is kept as its code and the value is not scaled."""
        assert to_base(7.0, "R-Value") == (7.0, "r-value")
