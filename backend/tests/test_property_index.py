"""
test_property_index.py - Unit tests for the alias index and key canonicalizer.

Tests cover:
  - Index build: canonical keys, aliases, derived spellings, inactive definitions
  - Canonicalization lookup order (exact, stripped, hyphen/underscore, camelCase)
  - Idempotence and alias symmetry over the fixture definitions
  - Unknown keys pass through unchanged
  - Deterministic collision handling and snapshot immutability
  - find_definition and alias-conflict detection for CRUD validation

All tests are pure unit tests; no database or external services required.
"""

import pytest

from app.models.catalog_schema import PropertyDefinitionRead
from app.services.property_index import (
    build_index,
    camel_to_snake,
    canonicalize,
    find_alias_conflicts,
    find_definition,
    key_variants,
)


def _defn(key, aliases=(), **kwargs):
    return PropertyDefinitionRead(key=key, label=key.title(), aliases=tuple(aliases), **kwargs)


# ===========================================================================
# Class 1: Canonicalization
# ===========================================================================

class TestCanonicalize:

    @pytest.mark.parametrize("raw", [
        "pipe_diameter",
        "pipe_size",
        "diameter",
        "Pipe_Size",
        "  DIAMETER ",
        "pipediameter",
        "pipe-diameter",
        "pipe-size",
        "nominalPipeSize",
    ])
    def test_pipe_spellings_resolve_to_one_key(self, index, raw):
        """Every historic spelling of the pipe size lands on pipe_diameter."""
        assert canonicalize(raw, index) == "pipe_diameter"

    def test_camel_case_is_tried_last(self, index):
        """wallThickness only resolves through the camelCase → snake_case step."""
        assert canonicalize("wallThickness", index) == "insulation_thickness"

    def test_hyphen_to_underscore(self, index):
        assert canonicalize("insulation-material", index) == "material"

    def test_unknown_key_passes_through_unchanged(self, index):
        """Custom properties keep their original spelling, including case."""
        assert canonicalize("custom_color", index) == "custom_color"
        assert canonicalize("CustomColor", index) == "CustomColor"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_keys_are_returned_as_is(self, index, raw):
        assert canonicalize(raw, index) == raw

    def test_idempotent(self, index):
        """canonicalize(canonicalize(k)) == canonicalize(k) for any k."""
        for raw in ["pipe_size", "wallThickness", "jacket", "unknown_Key", "Length_FT", "material"]:
            once = canonicalize(raw, index)
            assert canonicalize(once, index) == once

    def test_canonical_keys_map_to_themselves(self, index, definitions):
        for defn in definitions:
            assert canonicalize(defn.key, index) == defn.key

    def test_alias_symmetry(self, index, definitions):
        """Every declared alias resolves to the definition that declares it."""
        for defn in definitions:
            for alias in defn.aliases:
                assert canonicalize(alias, index) == defn.key


# ===========================================================================
# Class 2: Index build
# ===========================================================================

class TestBuildIndex:

    def test_inactive_definitions_are_excluded(self):
        idx = build_index([_defn("color", ["colour"], is_active=False), _defn("length")])
        assert canonicalize("colour", idx) == "colour"
        assert "length" in idx

    def test_derived_spellings_registered(self, index):
        assert index.mapping["pipediameter"] == "pipe_diameter"
        assert index.mapping["pipe-diameter"] == "pipe_diameter"

    def test_canonical_key_never_shadowed_by_alias(self):
        """An alias equal to another definition's key loses, and the collision is recorded."""
        idx = build_index([_defn("diameter"), _defn("pipe_diameter", ["diameter"])])
        assert canonicalize("diameter", idx) == "diameter"
        assert ("diameter", "diameter", "pipe_diameter") in idx.collisions

    def test_alias_collision_first_in_key_order_wins(self):
        """Build order is by key, so the result does not depend on load order."""
        a = _defn("outer_diameter", ["od"])
        b = _defn("overall_depth", ["od"])
        assert canonicalize("od", build_index([a, b])) == "outer_diameter"
        assert canonicalize("od", build_index([b, a])) == "outer_diameter"

    def test_derived_spellings_never_shadowed_by_alias(self):
        """An alias naming another key's variant loses to that key in every spelling."""
        idx = build_index([_defn("outer_diameter", ["pipediameter", "pipe-diameter"]), _defn("pipe_diameter")])
        for raw in ["pipe_diameter", "pipediameter", "pipe-diameter", "PipeDiameter"]:
            assert canonicalize(raw, idx) == "pipe_diameter"
        assert ("pipediameter", "pipe_diameter", "outer_diameter") in idx.collisions

    def test_snapshot_is_immutable(self, index):
        with pytest.raises(TypeError):
            index.mapping["new_alias"] = "pipe_diameter"

    def test_definition_for(self, index):
        assert index.definition_for("material").data_type == "enum"
        assert index.definition_for("custom_color") is None


class TestKeyVariants:

    def test_order_and_dedupe(self):
        assert key_variants("Pipe_Size") == ["pipe_size", "pipesize", "pipe-size"]

    def test_camel_to_snake(self):
        assert camel_to_snake("nominalPipeSize") == "nominal_pipe_size"
        assert camel_to_snake("rValue2") == "r_value2"


# ===========================================================================
# Class 3: Definition matching + alias conflicts
# ===========================================================================

class TestFindDefinition:

    def test_direct_alias_and_variant(self, definitions):
        assert find_definition("pipe_diameter", definitions).key == "pipe_diameter"
        assert find_definition("facing", definitions).key == "jacket_type"
        assert find_definition("pipe-diameter", definitions).key == "pipe_diameter"
        assert find_definition("wallThickness", definitions).key == "insulation_thickness"

    def test_agrees_with_canonicalize(self, definitions, index):
        for raw in ["diameter", "Length_FT", "insulation-material", "jacket"]:
            assert find_definition(raw, definitions).key == canonicalize(raw, index)

    def test_no_match(self, definitions):
        assert find_definition("custom_color", definitions) is None
        assert find_definition("", definitions) is None


class TestFindAliasConflicts:

    def test_alias_claimed_by_other_definition(self, definitions):
        conflicts = find_alias_conflicts("outer_diameter", ["od", "diameter"], definitions)
        assert conflicts == [{"spelling": "diameter", "kind": "alias", "definition": "pipe_diameter"}]

    def test_new_key_claimed_as_alias(self, definitions):
        conflicts = find_alias_conflicts("thickness", [], definitions)
        assert conflicts[0]["definition"] == "insulation_thickness"
        assert conflicts[0]["kind"] == "key"

    def test_update_excludes_self(self):
        existing = [_defn("pipe_diameter", ["pipe_size"], id="a1")]
        assert find_alias_conflicts("pipe_diameter", ["pipe_size"], existing, exclude_id="a1") == []

    def test_alias_may_not_take_derived_spellings(self, definitions):
        """pipediameter and pipe-diameter belong to pipe_diameter even though nobody declared them."""
        conflicts = find_alias_conflicts("outer_diameter", ["pipediameter", "pipe-diameter"], definitions)
        assert conflicts == [
            {"spelling": "pipediameter", "kind": "alias", "definition": "pipe_diameter"},
            {"spelling": "pipe-diameter", "kind": "alias", "definition": "pipe_diameter"},
        ]

    def test_new_key_derived_spelling_claimed_as_alias(self):
        """A new key whose stripped spelling is already another definition's alias is rejected."""
        existing = [_defn("outer_diameter", ["wallthickness"])]
        conflicts = find_alias_conflicts("wall_thickness", [], existing)
        assert conflicts == [{"spelling": "wallthickness", "kind": "derived", "definition": "outer_diameter"}]
