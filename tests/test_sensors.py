"""Tests for sensor payload decoding and status summaries."""

import json

import pytest

from restroom.lib.config import EngineConfig, OdorLevel
from restroom.lib.exceptions import MalformedSensorPayload
from restroom.lib.sensors import (
    SlotReading,
    any_soap_empty,
    any_tissue_empty,
    classify_odor,
    decode_object,
    decode_slots,
    is_soap_slot_empty,
    is_tissue_slot_empty,
    summarize,
)
from tests.conftest import soap_payload, tissue_payload

CONFIG = EngineConfig()


class TestDecodeObject:
    """Tests for decode_object."""

    def test_empty_payload_is_none(self):
        assert decode_object("") is None

    def test_valid_object(self):
        assert decode_object('{"status":"Aman"}') == {"status": "Aman"}

    @pytest.mark.parametrize("raw", ["{not json", "[1,2]", '"Habis"', "42"])
    def test_malformed_payload_raises(self, raw):
        with pytest.raises(MalformedSensorPayload):
            decode_object(raw)


class TestDecodeSlots:
    """Tests for tolerant per-slot decoding."""

    def test_bad_slot_does_not_affect_neighbours(self, caplog):
        raw = json.dumps(
            {
                "sabun1": "broken",
                "sabun2": {"distance": 12.0, "status": "Habis"},
            }
        )
        slots = decode_slots(raw, ("sabun1", "sabun2", "sabun3"), "dev-a-1")

        assert slots["sabun1"] is None
        assert slots["sabun2"] == SlotReading(distance=12.0, status="Habis")
        assert slots["sabun3"] is None
        assert "Malformed slot sabun1" in caplog.text

    def test_malformed_payload_reads_unknown(self, caplog):
        slots = decode_slots("{oops", ("tisu1",), "dev-a-1")
        assert slots == {"tisu1": None}
        assert "Malformed slot payload" in caplog.text


class TestSlotRules:
    """Tests for empty-slot rules."""

    def test_soap_status_habis_is_empty(self):
        assert is_soap_slot_empty(SlotReading(status="Habis"), CONFIG)

    def test_soap_distance_over_threshold_is_empty(self):
        assert is_soap_slot_empty(SlotReading(distance=10.5), CONFIG)

    def test_soap_distance_at_threshold_is_not_empty(self):
        assert not is_soap_slot_empty(SlotReading(distance=10.0), CONFIG)

    def test_soap_negative_distance_ignored(self):
        assert not is_soap_slot_empty(SlotReading(distance=-1), CONFIG)

    def test_unknown_slot_is_not_empty(self):
        assert not is_soap_slot_empty(None, CONFIG)
        assert not is_tissue_slot_empty(None, CONFIG)

    def test_tissue_value_matches_empty_value(self):
        assert is_tissue_slot_empty(SlotReading(value=0), CONFIG)
        assert not is_tissue_slot_empty(SlotReading(value=1), CONFIG)

    def test_tissue_status_habis_is_empty(self):
        assert is_tissue_slot_empty(SlotReading(status="Habis"), CONFIG)

    def test_empty_status_comes_from_config(self):
        config = EngineConfig(empty_status="Kosong")

        assert is_soap_slot_empty(SlotReading(status="Kosong"), config)
        assert is_tissue_slot_empty(SlotReading(status="Kosong", value=1), config)
        assert not is_soap_slot_empty(SlotReading(status="Habis"), config)

    def test_any_soap_empty_respects_enabled_slots(self, raw_json):
        raw = raw_json(soap_payload(empty=True, slot="sabun3"))
        config = EngineConfig(soap_slots=("sabun1", "sabun2"))
        assert any_soap_empty(raw, "dev-a-1", CONFIG)
        assert not any_soap_empty(raw, "dev-a-1", config)

    def test_any_tissue_empty(self, raw_json):
        assert any_tissue_empty(
            raw_json(tissue_payload(empty=True)), "dev-a-1", CONFIG
        )
        assert not any_tissue_empty(raw_json(tissue_payload()), "dev-a-1", CONFIG)
        assert not any_tissue_empty("", "dev-a-1", CONFIG)


class TestClassifyOdor:
    """Tests for ammonia classification."""

    @pytest.mark.parametrize(
        ("ppm", "expected"),
        [
            (0.8, OdorLevel.GOOD),
            (1.15, OdorLevel.GOOD),
            (1.16, OdorLevel.NORMAL),
            (1.18, OdorLevel.NORMAL),
            (1.5, OdorLevel.CRITICAL),
        ],
    )
    def test_levels(self, ppm, expected):
        assert classify_odor(ppm, CONFIG) == expected


class TestSummarize:
    """Tests for the notification status summary."""

    def test_full_summary(self, raw_json):
        summary = summarize(
            "toilet-lantai-2",
            raw_json({"ppm": 1.12, "status": "Bagus"}),
            raw_json({"status": "Aman"}),
            raw_json(soap_payload(empty=True)),
            raw_json(tissue_payload()),
            CONFIG,
        )
        assert summary.lines() == [
            "Bau: Bagus (1.12 ppm)",
            "Genangan Air: Aman",
            "Sabun: HAMPIR HABIS",
            "Tisu: Tersedia",
        ]
        assert summary.any_empty

    def test_missing_data(self):
        summary = summarize("toilet-lantai-2", "", "", "", "", CONFIG)
        assert str(summary) == (
            "Bau: Data tidak ada (Data tidak ada)\n"
            "Genangan Air: Data tidak ada\n"
            "Sabun: Aman\n"
            "Tisu: Tersedia"
        )
        assert not summary.any_empty

    def test_odor_classified_when_status_missing(self, raw_json):
        summary = summarize(
            "toilet-lantai-2", raw_json({"ppm": 2}), "", "", "", CONFIG
        )
        assert summary.lines()[0] == "Bau: Kritis (2 ppm)"

    def test_malformed_ammonia_reads_as_no_data(self, caplog):
        summary = summarize("toilet-lantai-2", "{bad", "", "", "", CONFIG)
        assert summary.lines()[0] == "Bau: Data tidak ada (Data tidak ada)"
        assert "Malformed ammonia payload" in caplog.text
