"""Inferred coaching preferences."""

import pytest

from traipulse.adaptive_preferences import (
    infer_effort_mode, infer_tomorrow_focus, infer_tomorrow_workout_minutes,
    infer_workout_window, make_preferences,
)
from traipulse.models import PatternProfile, TrendSnapshot
from traipulse.ontology import EffortMode, TomorrowFocus, WorkoutWindowPreference

from conftest import at_hour


def _trend(days_since=1, streak=0, workout_days=3, protein_hits=4):
    return TrendSnapshot(days_window=7, days_with_food_logs=6, protein_target_hit_days=protein_hits,
                         calorie_target_hit_days=4, workout_days=workout_days,
                         low_protein_streak=streak, days_since_workout=days_since)


def test_workout_window_follows_learned_pattern(make_daily_context):
    profile = PatternProfile(workout_window_scores={"midday": 0.5, "evening": 0.3})

    assert infer_workout_window(make_daily_context(pattern_profile=profile)) is WorkoutWindowPreference.LUNCH


@pytest.mark.parametrize("hour,window", [
    (7, WorkoutWindowPreference.MORNING),
    (13, WorkoutWindowPreference.LUNCH),
    (21, WorkoutWindowPreference.EVENING),
    (23, WorkoutWindowPreference.FLEXIBLE),
])
def test_workout_window_falls_back_to_clock(make_daily_context, hour, window):
    weak = PatternProfile(workout_window_scores={"evening": 0.2})

    assert infer_workout_window(make_daily_context(now=at_hour(hour), pattern_profile=weak)) is window


def test_tomorrow_focus(make_daily_context):
    assert infer_tomorrow_focus(make_daily_context()) is TomorrowFocus.BOTH
    assert infer_tomorrow_focus(make_daily_context(trend=_trend(days_since=4))) is TomorrowFocus.WORKOUT
    assert infer_tomorrow_focus(make_daily_context(trend=_trend(streak=2))) is TomorrowFocus.NUTRITION
    assert infer_tomorrow_focus(make_daily_context(trend=_trend(days_since=4, streak=2))) is TomorrowFocus.BOTH


def test_tomorrow_minutes(make_daily_context):
    assert infer_tomorrow_workout_minutes(make_daily_context(has_workout_today=True)) == 30
    assert infer_tomorrow_workout_minutes(make_daily_context(has_workout_today=False,
                                                             trend=_trend(days_since=5))) == 25
    assert infer_tomorrow_workout_minutes(make_daily_context(has_workout_today=False)) == 40


def test_effort_mode(make_daily_context):
    assert infer_effort_mode(make_daily_context()) is EffortMode.BALANCED
    assert infer_effort_mode(make_daily_context(trend=_trend(streak=3))) is EffortMode.CONSISTENCY
    assert infer_effort_mode(make_daily_context(trend=_trend(workout_days=4, protein_hits=5))) is EffortMode.PUSH
    assert infer_effort_mode(make_daily_context(trend=_trend(workout_days=4, protein_hits=3))) is EffortMode.BALANCED


def test_make_preferences_combines_inferences(make_daily_context):
    prefs = make_preferences(make_daily_context(trend=_trend(days_since=5)))

    assert prefs.effort_mode is EffortMode.CONSISTENCY
    assert prefs.tomorrow_focus is TomorrowFocus.WORKOUT
    assert prefs.workout_window is WorkoutWindowPreference.MORNING
    assert prefs.tomorrow_workout_minutes == 30
