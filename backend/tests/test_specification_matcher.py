"""
test_specification_matcher.py - Unit tests for specification matching.

Tests cover:
  - exact (normalized and raw), contains, enum, min/max, range rules
  - tolerance at range and min/max boundaries
  - enum value aliases (fg → fiberglass)
  - variant_satisfies with alias spellings on either side
  - matching_variants product-type and isActive filters
"""

import pytest

from app.services.specification_matcher import matching_variants, rule_matches, variant_satisfies


def _rule(key, match_type, value=None, **extra):
    return {"propertyKey": key, "matchType": match_type, "value": value, **extra}


class TestRuleMatches:

    def test_exact_uses_normalization(self, index):
        """1 1/2" and 1.5 are the same pipe size under parseInches."""
        assert rule_matches(_rule("pipe_size", "exact"), '1 1/2"', "1.5", index)

    def test_exact_without_normalization_is_text(self, index):
        rule = _rule("jacket_type", "exact", normalize=False)
        assert rule_matches(rule, "ASJ", " asj", index)
        assert not rule_matches(_rule("pipe_diameter", "exact", normalize=False), '1 1/2"', "1.5", index)

    def test_contains(self, index):
        assert rule_matches(_rule("jacket", "contains"), "ASJ+ SSL", "ssl", index)
        assert not rule_matches(_rule("jacket", "contains"), "ASJ", "FSK", index)

    def test_enum_resolves_value_aliases(self, index):
        assert rule_matches(_rule("material", "enum"), "fibreglass", ["fiberglass"], index)
        assert rule_matches(_rule("material_type", "enum"), "MW", "mineral_wool", index)
        assert not rule_matches(_rule("material", "enum"), "foam", ["fiberglass", "mineral_wool"], index)

    @pytest.mark.parametrize("actual, expected", [
        ("1-1/2", True),
        ("0.995", True),
        ("1/2", False),
    ])
    def test_min(self, index, actual, expected):
        assert rule_matches(_rule("thickness", "min"), actual, "1", index) is expected

    def test_max(self, index):
        assert rule_matches(_rule("thickness", "max"), "1/2", "1", index)
        assert not rule_matches(_rule("thickness", "max"), "2", "1", index)

    def test_range_is_inclusive_within_tolerance(self, index):
        bounds = {"min": "1", "max": "2"}
        assert rule_matches(_rule("pipe_diameter", "range"), "2.005", bounds, index)
        assert rule_matches(_rule("pipe_diameter", "range"), '1 1/2"', bounds, index)
        assert not rule_matches(_rule("pipe_diameter", "range"), "2.5", bounds, index)

    def test_open_range(self, index):
        assert rule_matches(_rule("length", "range"), "100", {"min": 3}, index)

    def test_unparseable_value_fails_numeric_rules(self, index):
        assert not rule_matches(_rule("thickness", "min"), "thick", "1", index)

    def test_unknown_match_type(self, index):
        with pytest.raises(ValueError):
            rule_matches(_rule("length", "fuzzy"), "3", "3", index)


class TestVariantSatisfies:

    def _chw(self):
        return {
            "required_properties": {"pipe_size": '1 1/2"', "material_type": "fiberglass"},
            "property_matching_rules": [_rule("thickness", "min", "1")],
        }

    def test_alias_spellings_on_both_sides(self, index):
        """A specification written against pipe_size matches a variant storing pipe_diameter."""
        props = {"pipe_diameter": "1.5", "material": "Fiberglass", "wall_thickness": "1"}
        result = variant_satisfies(self._chw(), props, index)
        assert result.matched
        assert result.failures == []

    def test_missing_and_failing_properties(self, index):
        props = {"pipe_diameter": "2", "material": "Fiberglass"}
        result = variant_satisfies(self._chw(), props, index)
        assert not result.matched
        assert "insulation_thickness: missing" in result.failures
        assert any(f.startswith("pipe_diameter:") for f in result.failures)

    def test_rule_value_overrides_required_value(self, index):
        chw = {
            "required_properties": {"insulation_thickness": "2"},
            "property_matching_rules": [_rule("thickness", "min", "1")],
        }
        assert variant_satisfies(chw, {"thickness": "1 1/2"}, index).matched


class TestMatchingVariants:

    def test_filters_inactive_and_non_matching(self, index):
        chw = {"product_type_id": "pt-1", "required_properties": {"pipe_size": "2"}}
        product = {
            "product_type_id": "pt-1",
            "variants": [
                {"sku": "A", "properties": {"pipe_diameter": '2"'}},
                {"sku": "B", "properties": {"pipe_diameter": '3"'}},
                {"sku": "C", "properties": {"pipe_diameter": "2"}, "isActive": False},
            ],
        }
        assert [v["sku"] for v in matching_variants(chw, product, index)] == ["A"]

    def test_other_product_type(self, index):
        chw = {"product_type_id": "pt-1", "required_properties": {}}
        product = {"product_type_id": "pt-2", "variants": [{"sku": "A", "properties": {}}]}
        assert matching_variants(chw, product, index) == []
