"""Tests for api/units.py — kg/lbs and cm/inches conversion."""

import pytest

from workout_tracker.api.model import Exercise, ExerciseSet
from workout_tracker.api.units import (
    convert_exercise_sets_to_kg,
    is_numeric,
    to_canonical_height,
    to_canonical_weight,
    to_display_height,
    to_display_weight,
)


class TestWeight:
    def test_lbs_to_kg(self):
        assert to_canonical_weight("100", "lbs") == "45.3592"

    def test_kg_unchanged(self):
        assert to_canonical_weight("80", "kg") == "80"

    def test_kg_display_in_lbs(self):
        assert to_display_weight("45.3592", "lbs") == "100"

    def test_display_rounds_to_whole_number(self):
        assert to_display_weight("80.4", "kg") == "80"

    @pytest.mark.parametrize("value", ["", "abc", "12kg"])
    def test_malformed_passes_through(self, value):
        assert to_canonical_weight(value, "lbs") == value
        assert to_display_weight(value, "lbs") == value

    def test_display_roundtrip_within_one(self):
        for pounds in ("135", "185", "225", "315"):
            shown = to_display_weight(to_canonical_weight(pounds, "lbs"), "lbs")
            assert abs(int(shown) - int(pounds)) <= 1


class TestHeight:
    def test_inches_to_cm(self):
        assert to_canonical_height("70", "in") == "177.8"

    def test_cm_display_in_inches(self):
        assert to_display_height("177.8", "in") == "70"

    def test_cm_unchanged(self):
        assert to_canonical_height("180", "cm") == "180"


class TestIsNumeric:
    def test_numbers(self):
        assert is_numeric("80")
        assert is_numeric("80.5")
        assert is_numeric(3)

    def test_non_numbers(self):
        assert not is_numeric("")
        assert not is_numeric("eighty")
        assert not is_numeric(None)
        assert not is_numeric("nan")
        assert not is_numeric("inf")


class TestConvertExerciseSets:
    def test_converts_lbs_sets_and_keeps_display_unit(self):
        exercise = Exercise(
            name="Bench Press",
            weight_unit="lbs",
            sets=[ExerciseSet(weight="100", reps="5"), ExerciseSet(weight="", reps="8")],
        )

        converted = convert_exercise_sets_to_kg([exercise])[0]

        assert converted.weight_unit == "lbs"
        assert converted.sets[0].weight == "45.3592"
        assert converted.sets[1].weight == ""
        assert converted.sets[0].id == exercise.sets[0].id

    def test_does_not_mutate_input(self):
        exercise = Exercise(name="Row", weight_unit="lbs", sets=[ExerciseSet(weight="100")])
        convert_exercise_sets_to_kg([exercise])
        assert exercise.sets[0].weight == "100"
