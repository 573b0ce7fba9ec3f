"""Tests for the kind classifier."""

import pytest

from cropwatch.services.classifier import KindClassification, classify, resolve_kind


class TestClassify:
    """Tests for label classification."""

    @pytest.mark.parametrize(
        ("label", "unit"),
        [
            ("temperature_c", "celsius"),
            ("temperature_f", "fahrenheit"),
            ("temperature_k", "kelvin"),
            ("soil_temp", "celsius"),
            ("TempF", "fahrenheit"),
            ("tank temp k", "kelvin"),
        ],
    )
    def test_temperature_units(self, label, unit):
        result = classify(label)
        assert result.is_temperature
        assert result.unit == unit

    def test_humidity(self):
        result = classify("humidity")
        assert result == KindClassification(is_humidity=True)

    def test_co2(self):
        result = classify("co2_ppm")
        assert result.is_co2
        assert not result.is_temperature
        assert result.unit is None

    def test_case_insensitive(self):
        assert classify("TEMP_F") == classify("temp_f")
        assert classify("CO2") == classify("co2")

    @pytest.mark.parametrize("label", [None, "", "moisture", "ec", "battery_level"])
    def test_unrecognized_labels_match_nothing(self, label):
        assert classify(label) == KindClassification()

    def test_categories_are_not_exclusive(self):
        """A label may match more than one category."""
        result = classify("temp_humidity")
        assert result.is_temperature
        assert result.is_humidity


class TestResolveKind:
    """Tests for the fixed priority tie-break."""

    def test_single_kinds(self):
        assert resolve_kind(classify("temperature_c")) == "temperature"
        assert resolve_kind(classify("humidity")) == "humidity"
        assert resolve_kind(classify("co2")) == "co2"
        assert resolve_kind(classify("moisture")) is None

    def test_temperature_beats_humidity(self):
        assert resolve_kind(classify("temp_humidity")) == "temperature"

    def test_humidity_beats_co2(self):
        assert resolve_kind(classify("humidity_co2")) == "humidity"
