"""Tests for the workout intent parser."""

import time

import pytest

from voice.intent_parser import Exercise, IntentKind, IntentParser, ParseContext


def test_log_set_with_exercise_reps_and_weight(parser):
    intent = parser.parse_intent("bench press 10 reps at 185 pounds")
    assert intent.kind is IntentKind.LOG_SET
    assert intent.exercise.name == "Barbell Bench Press"
    assert intent.parameters["reps"] == 10
    assert intent.parameters["weight"] == 185
    assert intent.parameters["unit"] == "lbs"
    assert intent.confidence >= parser.confidence_threshold
    assert not intent.needs_confirmation


def test_log_set_with_spoken_numbers(parser):
    intent = parser.parse_intent("Bench press ten reps at one eighty five pounds")
    assert intent.kind is IntentKind.LOG_SET
    assert intent.parameters["reps"] == 10
    assert intent.parameters["weight"] == 185


def test_log_set_weight_first_with_synonym(parser):
    intent = parser.parse_intent("squat 225 pounds for 5 reps")
    assert intent.kind is IntentKind.LOG_SET
    assert intent.exercise.name == "Back Squat"
    assert intent.parameters["match_method"] == "synonym"
    assert intent.parameters["reps"] == 5
    assert intent.parameters["weight"] == 225


def test_log_set_in_kilos_with_rpe(parser):
    intent = parser.parse_intent("deadlift 5 reps at 140 kilos rpe 8")
    assert intent.kind is IntentKind.LOG_SET
    assert intent.exercise.name == "Deadlift"
    assert intent.parameters["unit"] == "kg"
    assert intent.parameters["rpe"] == 8


def test_log_set_decimal_weight(parser):
    intent = parser.parse_intent("overhead press 8 reps at 102.5 pounds")
    assert intent.parameters["weight"] == 102.5


def test_rest_timer(parser):
    intent = parser.parse_intent("rest for 3 minutes")
    assert intent.kind is IntentKind.REST_TIMER
    assert intent.parameters["seconds"] == 180


def test_rest_timer_spoken_and_trailing_forms(parser):
    assert parser.parse_intent("rest ninety seconds").parameters["seconds"] == 90
    intent = parser.parse_intent("2 minute rest")
    assert intent.kind is IntentKind.REST_TIMER
    assert intent.parameters["seconds"] == 120


@pytest.mark.parametrize("utterance", ["start workout", "let's start a workout", "begin my training"])
def test_start_workout(parser, utterance):
    intent = parser.parse_intent(utterance)
    assert intent.kind is IntentKind.START_WORKOUT
    assert intent.parameters["title"] is None


def test_start_named_workout(parser):
    intent = parser.parse_intent("start a push day workout")
    assert intent.kind is IntentKind.START_WORKOUT
    assert intent.parameters["title"] == "push day"


def test_start_followed_by_exercise_is_not_a_workout_title(parser):
    intent = parser.parse_intent("start deadlift")
    assert intent.kind is not IntentKind.START_WORKOUT


@pytest.mark.parametrize("utterance", ["undo", "undo that", "delete the last set", "scratch that"])
def test_undo_last(parser, utterance):
    assert parser.parse_intent(utterance).kind is IntentKind.UNDO_LAST


def test_edit_last_weight(parser):
    intent = parser.parse_intent("change the weight to 200")
    assert intent.kind is IntentKind.EDIT_LAST
    assert intent.parameters == {"field": "weight", "value": 200, "unit": "lbs"}


def test_edit_last_reps_and_rpe(parser):
    reps = parser.parse_intent("reps was eight")
    assert reps.kind is IntentKind.EDIT_LAST
    assert reps.parameters == {"field": "reps", "value": 8}

    rpe = parser.parse_intent("actually rpe 9")
    assert rpe.parameters == {"field": "rpe", "value": 9}


def test_edit_last_correction_with_unit(parser):
    intent = parser.parse_intent("actually 100 kilos")
    assert intent.kind is IntentKind.EDIT_LAST
    assert intent.parameters == {"field": "weight", "value": 100, "unit": "kg"}


def test_find_exercise_by_partial_name(parser):
    match = parser.match_exercise("bench")
    assert "Bench Press" in match.exercise.name
    assert match.score >= parser.fuzzy_match_threshold
    assert parser.find_exercise("incline bench").name == "Incline Bench Press"


def test_find_exercise_fuzzy(parser):
    match = parser.match_exercise("barbel bench press")
    assert match.exercise.name == "Barbell Bench Press"
    assert match.method == "fuzzy"
    assert match.score >= parser.fuzzy_match_threshold


def test_find_exercise_abbreviations(parser):
    assert parser.find_exercise("db bench press").name == "Dumbbell Bench Press"
    assert parser.find_exercise("ohp").name == "Overhead Press"
    assert parser.find_exercise("pull-ups").name == "Pull Up"


def test_find_exercise_without_match(parser):
    assert parser.find_exercise("underwater basket weaving") is None
    assert parser.find_exercise("") is None
    assert IntentParser().find_exercise("bench") is None


@pytest.mark.parametrize("utterance", ["xyz qwerty", "", None, "!!!", "the the the"])
def test_unknown_utterances_never_raise(parser, utterance):
    intent = parser.parse_intent(utterance)
    assert intent.kind is IntentKind.UNKNOWN
    assert intent.confidence == 0


def test_unknown_offers_exercise_suggestions(parser):
    intent = parser.parse_intent("um what about the deadlift thing yesterday")
    assert intent.kind is IntentKind.UNKNOWN
    assert intent.alternatives[0]["exercise"].name == "Deadlift"


def test_context_fills_missing_exercise(parser):
    squat = parser.find_exercise("back squat")
    intent = parser.parse_intent("10 reps at 185", ParseContext(last_exercise=squat, in_workout=True))
    assert intent.kind is IntentKind.LOG_SET
    assert intent.exercise == squat
    assert intent.parameters["exercise_inferred"] is True
    assert intent.confidence == pytest.approx(0.95)
    assert not intent.needs_confirmation


def test_missing_exercise_without_context_needs_confirmation(parser):
    intent = parser.parse_intent("10 reps at 185")
    assert intent.kind is IntentKind.LOG_SET
    assert intent.exercise is None
    assert intent.needs_confirmation


def test_workout_context_boosts_scoped_kinds_only(parser):
    outside = parser.parse_intent("undo")
    inside = parser.parse_intent("undo", ParseContext(in_workout=True))
    assert inside.confidence == pytest.approx(outside.confidence + 0.05)

    start = parser.parse_intent("start workout", ParseContext(in_workout=True))
    assert start.confidence == pytest.approx(0.95)


def test_low_confidence_mention_carries_alternatives(parser):
    intent = parser.parse_intent("incline bench")
    assert intent.kind is IntentKind.EXERCISE_MENTION
    assert intent.needs_confirmation
    assert 0 < len(intent.alternatives) <= parser.max_alternatives
    names = [alt["exercise"].name for alt in intent.alternatives]
    assert "Incline Bench Press" not in names


def test_confidence_stays_in_unit_interval(parser):
    context = ParseContext(last_exercise=Exercise("x", "Deadlift"), in_workout=True)
    for utterance in ["undo", "rest 60 seconds", "deadlift 5 reps at 300 pounds", "start workout", "xyz"]:
        intent = parser.parse_intent(utterance, context)
        assert 0.0 <= intent.confidence <= 1.0


def test_add_synonym(parser):
    assert parser.add_synonym("king of lifts", "deadlift")
    assert parser.find_exercise("king of lifts").name == "Deadlift"
    assert not parser.add_synonym("curls", "bicep curl")


def test_intent_to_dict_is_serializable(parser):
    data = parser.parse_intent("bench press 10 reps at 185 pounds").to_dict()
    assert data["kind"] == "log_set"
    assert data["parameters"]["exercise"]["name"] == "Barbell Bench Press"


def test_load_large_catalogue_quickly():
    parser = IntentParser()
    catalogue = [{"id": str(i), "name": f"Exercise Variation {i}"} for i in range(1000)]
    start = time.perf_counter()
    assert parser.load_exercise_catalogue(catalogue) == 1000
    assert time.perf_counter() - start < 0.1
    assert parser.find_exercise("exercise variation 500").id == "500"


def test_stats(parser):
    parser.parse_intent("undo")
    parser.parse_intent("xyz qwerty")
    stats = parser.get_stats()
    assert stats["parsed"] == 2
    assert stats["by_kind"] == {"undo_last": 1, "unknown": 1}
    assert stats["exercises"] == 8


def test_rest_for_a_minute(parser):
    intent = parser.parse_intent("rest for a minute")
    assert intent.kind is IntentKind.REST_TIMER
    assert intent.parameters["seconds"] == 60
