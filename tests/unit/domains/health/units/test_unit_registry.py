"""Tests for the unit group table, classification and conversion previews."""

from __future__ import annotations

import pytest

from modhealth.domains.health.units.registry import (
    ConversionStatus,
    are_units_convertible,
    canonicalize,
    classify_unit,
    configure_unit_for_new_variable,
    convert_preview,
    convertible_units,
    load_unit_table,
    lookup_group,
    preview_conversion,
    suggested_units,
    unit_groups,
)

ALL_MEMBERS = [
    (key, unit)
    for key, group in unit_groups().items()
    for unit in group.member_units
]


class TestGroupTable:
    def test_expected_groups_loaded(self):
        assert list(unit_groups()) == [
            "mass", "volume", "time", "temperature", "distance", "speed",
            "pressure", "frequency", "boolean", "subjective", "general",
        ]

    @pytest.mark.parametrize("key,unit", ALL_MEMBERS)
    def test_canonical_unit_is_member(self, key, unit):
        group = lookup_group(unit)
        assert group is not None
        assert group.canonical_unit in group.member_units

    @pytest.mark.parametrize("key,unit", ALL_MEMBERS)
    def test_convertible_units_exclude_self_only(self, key, unit):
        others = convertible_units(unit)
        group = unit_groups()[key]
        assert unit not in others
        assert set(others) == set(group.member_units) - {unit}

    def test_boolean_units_stay_strings(self):
        assert unit_groups()["boolean"].member_units == ("true/false", "yes/no", "0/1", "on/off")

    def test_canonical_not_in_group_rejected(self, tmp_path):
        path = tmp_path / "units.yaml"
        path.write_text("groups:\n  bad:\n    units: [a, b]\n    canonical: c\n", encoding="utf-8")
        with pytest.raises(ValueError, match="not a member"):
            load_unit_table(path)


class TestLookups:
    def test_ungrouped_unit(self):
        assert lookup_group("furlongs") is None
        assert convertible_units("furlongs") == []
        assert canonicalize("furlongs") == "furlongs"

    def test_canonicalize(self):
        assert canonicalize("lb") == "kg"
        assert canonicalize("°F") == "°C"
        assert canonicalize("mph") == "m/s"

    def test_are_units_convertible(self):
        assert are_units_convertible("kg", "oz")
        assert not are_units_convertible("kg", "L")
        assert not are_units_convertible("furlongs", "furlongs")

    def test_suggested_units(self):
        assert suggested_units("lb") == ["kg", "lb", "g"]
        assert suggested_units("mmHg") == ["mmHg", "kPa", "psi", "bar"]
        assert suggested_units("furlongs") == ["furlongs"]


class TestConversionPreview:
    @pytest.mark.parametrize("value,src,dst,expected", [
        (1, "kg", "lb", "2.2 lb"),
        (2, "lb", "kg", "0.91 kg"),
        (1.5, "L", "ml", "1500 ml"),
        (2, "hours", "minutes", "120 minutes"),
        (100, "°C", "°F", "212 °F"),
        (98.6, "°F", "°C", "37 °C"),
        (0, "°C", "K", "273.15 K"),
    ])
    def test_known_pairs(self, value, src, dst, expected):
        assert preview_conversion(value, src, dst) == expected

    def test_temperature_is_affine(self):
        outcome = convert_preview(-40, "°C", "°F")
        assert outcome.converted
        assert outcome.value == pytest.approx(-40)

    def test_unknown_pair_echoes_input(self):
        outcome = convert_preview(5, "kg", "stone")
        assert outcome.status is ConversionStatus.UNCONVERTED
        assert outcome.unit == "kg"
        assert preview_conversion(5, "kg", "stone") == "5 kg"
        assert preview_conversion(1.23456, "kg", "mph") == "1.23456 kg"

    def test_same_unit_is_converted(self):
        assert convert_preview(3, "kg", "kg").status is ConversionStatus.CONVERTED

    def test_same_unit_echoed_unrounded(self):
        outcome = convert_preview(1.23456, "kg", "kg")
        assert outcome.exact
        assert preview_conversion(1.23456, "kg", "kg") == "1.23456 kg"
        assert preview_conversion(1.23456, "kg", "lb") == "2.72 lb"


class TestClassifyUnit:
    def test_grouped_unit(self):
        info = classify_unit("kg")
        assert info.category == "Physical"
        assert info.is_convertible
        assert info.convertible_units == ["lb", "g", "oz", "mg", "mcg"]
        assert info.as_dict()["group"] == "mass"

    def test_grouped_unit_lists_suggestions(self):
        info = classify_unit("lb")
        assert info.suggested_units == ["kg", "lb", "g"]
        assert info.as_dict()["suggested_units"] == ["kg", "lb", "g"]

    def test_ungrouped_unit(self):
        info = classify_unit("widgets")
        assert info.group is None
        assert info.category == "General"
        assert not info.is_convertible
        assert info.convertible_units == []
        assert info.suggested_units == ["widgets"]


class TestConfigureNewVariable:
    def test_grouped_unit_stores_canonical(self):
        config = configure_unit_for_new_variable("lb")
        assert config.canonical_unit == "kg"
        assert config.unit_group == "mass"
        assert config.convertible_units == ["kg", "lb", "g", "oz", "mg", "mcg"]
        assert config.default_display_unit == "lb"

    def test_slash_unit_forced_boolean(self):
        config = configure_unit_for_new_variable("done/skipped")
        assert config.unit_group == "boolean"
        assert config.canonical_unit == "true/false"
        assert config.default_display_unit == "done/skipped"

    def test_slash_wins_over_group_membership(self):
        assert configure_unit_for_new_variable("km/h").unit_group == "boolean"

    def test_boolean_data_type_forced_boolean(self):
        config = configure_unit_for_new_variable("kg", "boolean")
        assert config.unit_group == "boolean"
        assert "yes/no" in config.convertible_units

    def test_ungrouped_unit_is_literal(self):
        config = configure_unit_for_new_variable("drinks")
        assert config.as_dict() == {
            "canonical_unit": "drinks",
            "unit_group": None,
            "convertible_units": None,
            "default_display_unit": "drinks",
        }
