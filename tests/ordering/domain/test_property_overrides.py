"""Tests for decoding and encoding stored property overrides."""

import json

import pytest
from ordering.pricing.overrides import (
    OverrideDecodeError,
    PropertyOverride,
    decode_override,
    decode_overrides,
    encode_override,
    split_entries,
    unwrap,
)

RED = {"key": "Color", "value": "Red", "changePrice": True, "price": 20}


class TestUnwrap:
    def test_single_wrapped_entry(self):
        assert unwrap(json.dumps(RED)) == RED

    def test_double_wrapped_entry(self):
        assert unwrap(json.dumps(json.dumps(RED))) == RED

    def test_mapping_passes_through(self):
        assert unwrap(RED) == RED

    def test_bytes_are_decoded(self):
        assert unwrap(json.dumps(RED).encode("utf-8")) == RED

    def test_triple_wrapping_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            unwrap(json.dumps(json.dumps(json.dumps(RED))))

    def test_invalid_json_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            unwrap("{not json")

    def test_non_object_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            unwrap("[1, 2]")


class TestDecodeOverride:
    def test_single_and_double_wrapping_decode_identically(self):
        assert decode_override(json.dumps(RED)) == decode_override(json.dumps(json.dumps(RED)))

    def test_key_is_lowercased(self):
        override = decode_override(RED)
        assert override.key == "color"
        assert override.value == "Red"

    def test_label_is_accepted_as_key(self):
        override = decode_override({"label": "Size", "value": "L"})
        assert override.key == "size"

    def test_bare_single_pair(self):
        override = decode_override({"Color": "Blue"})
        assert override == PropertyOverride(key="color", value="Blue")

    def test_bare_pair_with_price(self):
        override = decode_override({"Color": "Red", "price": "20"})
        assert override.key == "color"
        assert override.price == 20.0

    def test_numeric_strings_and_flag_strings(self):
        override = decode_override({"key": "Color", "value": "Red", "changePrice": "true", "newPrice": "7.5"})
        assert override.change_price is True
        assert override.new_price == 7.5

    def test_snake_case_fields(self):
        override = decode_override({"key": "Color", "value": "Red", "change_price": 1, "new_price": 3})
        assert override.change_price is True
        assert override.new_price == 3.0

    def test_missing_key_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            decode_override({"value": "Red", "price": 4, "extra": "x", "other": "y"})

    def test_boolean_price_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            decode_override({"key": "Color", "value": "Red", "price": True})

    def test_non_numeric_price_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            decode_override({"key": "Color", "value": "Red", "price": "twenty"})

    def test_infinite_price_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            decode_override({"key": "Color", "value": "Red", "price": "inf"})

    @pytest.mark.parametrize("field", ["price", "newPrice"])
    def test_negative_price_is_rejected(self, field):
        with pytest.raises(OverrideDecodeError):
            decode_override({"key": "Color", "value": "Red", "changePrice": True, field: -50})

    def test_nested_value_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            decode_override({"key": "Color", "value": {"shade": "dark"}})


class TestChangesPrice:
    def test_flag_alone_changes_price(self):
        assert PropertyOverride(key="color", value="Red", change_price=True).changes_price

    def test_price_field_changes_price(self):
        assert PropertyOverride(key="color", value="Red", price=3.0).changes_price

    def test_plain_selection_does_not(self):
        assert not PropertyOverride(key="color", value="Blue").changes_price

    def test_surcharge_prefers_price_over_new_price(self):
        assert PropertyOverride(key="color", value="Red", price=4.0, new_price=9.0).surcharge == 4.0
        assert PropertyOverride(key="color", value="Red", new_price=9.0).surcharge == 9.0


class TestSplitEntries:
    def test_empty_values(self):
        assert split_entries(None) == []
        assert split_entries("") == []

    def test_json_array_text(self):
        assert split_entries(json.dumps(["a", "b"])) == ["a", "b"]

    def test_list_passes_through(self):
        assert split_entries([RED]) == [RED]

    def test_non_list_is_rejected(self):
        with pytest.raises(OverrideDecodeError):
            split_entries(json.dumps({"key": "Color"}))


class TestDecodeOverrides:
    def test_later_entry_wins_for_duplicate_keys(self):
        decoded = decode_overrides(
            [
                json.dumps({"key": "Color", "value": "Red", "price": 20}),
                json.dumps({"key": "COLOR", "value": "Blue"}),
            ]
        )
        assert len(decoded) == 1
        assert decoded.overrides["color"].value == "Blue"

    def test_malformed_entries_are_reported_not_raised(self):
        decoded = decode_overrides([json.dumps(RED), "{broken", json.dumps({"key": "Size", "value": "L"})])

        assert [o.key for o in decoded] == ["color", "size"]
        assert len(decoded.failures) == 1
        assert decoded.failures[0].index == 1

    def test_mixed_wrapping_in_one_line(self):
        decoded = decode_overrides([json.dumps(json.dumps(RED)), json.dumps({"key": "Size", "value": "S"})])
        assert {o.key for o in decoded} == {"color", "size"}


class TestEncodeOverride:
    def test_canonical_form_is_single_wrapped(self):
        encoded = encode_override(json.dumps(json.dumps(RED)))
        assert json.loads(encoded) == {"key": "color", "value": "Red", "price": 20.0, "changePrice": True}

    def test_absent_fields_are_omitted(self):
        assert json.loads(encode_override({"Color": "Blue"})) == {"key": "color", "value": "Blue"}

    def test_encoding_is_stable(self):
        once = encode_override(RED)
        assert encode_override(once) == once

    def test_malformed_input_raises(self):
        with pytest.raises(OverrideDecodeError):
            encode_override("{broken")
