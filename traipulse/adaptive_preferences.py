"""
TraiPulse — Adaptive Preferences  (traipulse/adaptive_preferences.py)
=====================================================================
Infers the coaching preferences the dashboard would otherwise ask for:

  effort mode        consistency / balanced / push
  workout window     morning / lunch / evening / flexible (with hour bounds)
  tomorrow focus     workout / nutrition / both
  tomorrow minutes   30 after a workout, 25 after a long gap, else 40

Public API:
  make_preferences(context) -> DailyCoachPreferences
  infer_effort_mode / infer_workout_window / infer_tomorrow_focus /
  infer_tomorrow_workout_minutes (context) -> ...
"""
from __future__ import annotations

from traipulse import config
from traipulse.models import DailyCoachContext, DailyCoachPreferences
from traipulse.ontology import (
    EffortMode, TimeWindow, TomorrowFocus, WorkoutWindowPreference,
)

_WINDOW_PREFERENCE = {
    TimeWindow.EARLY_MORNING: WorkoutWindowPreference.MORNING,
    TimeWindow.MORNING:       WorkoutWindowPreference.MORNING,
    TimeWindow.MIDDAY:        WorkoutWindowPreference.LUNCH,
    TimeWindow.AFTERNOON:     WorkoutWindowPreference.LUNCH,
    TimeWindow.EVENING:       WorkoutWindowPreference.EVENING,
    TimeWindow.LATE_NIGHT:    WorkoutWindowPreference.FLEXIBLE,
}


def infer_workout_window(context: DailyCoachContext) -> WorkoutWindowPreference:
    if context.pattern_profile is not None:
        strongest = context.pattern_profile.strongest_workout_window(min_score=config.PREFERENCE_WINDOW_MIN_SCORE)
        if strongest is not None:
            return _WINDOW_PREFERENCE[strongest]

    hour = context.now.hour
    morning_end, lunch_end, evening_end = config.PREFERENCE_CLOCK_HOURS
    if hour < morning_end:
        return WorkoutWindowPreference.MORNING
    if hour < lunch_end:
        return WorkoutWindowPreference.LUNCH
    if hour <= evening_end:
        return WorkoutWindowPreference.EVENING
    return WorkoutWindowPreference.FLEXIBLE


def infer_tomorrow_focus(context: DailyCoachContext) -> TomorrowFocus:
    trend = context.trend
    if trend is None:
        return TomorrowFocus.BOTH
    workout_gap = trend.days_since_workout >= config.TREND_WORKOUT_GAP_DAYS
    protein_streak = trend.low_protein_streak >= config.TREND_PROTEIN_STREAK_DAYS
    if workout_gap and not protein_streak:
        return TomorrowFocus.WORKOUT
    if protein_streak and not workout_gap:
        return TomorrowFocus.NUTRITION
    return TomorrowFocus.BOTH


def infer_tomorrow_workout_minutes(context: DailyCoachContext) -> int:
    if context.has_workout_today:
        return config.TOMORROW_MINUTES_AFTER_WORKOUT
    if context.trend is not None and context.trend.days_since_workout >= config.TREND_REBUILD_GAP_DAYS:
        return config.TOMORROW_MINUTES_AFTER_GAP
    return config.TOMORROW_MINUTES_DEFAULT


def infer_effort_mode(context: DailyCoachContext) -> EffortMode:
    trend = context.trend
    if trend is None:
        return EffortMode.BALANCED
    if (trend.days_since_workout >= config.TREND_REBUILD_GAP_DAYS
            or trend.low_protein_streak >= config.TREND_LONG_PROTEIN_STREAK_DAYS):
        return EffortMode.CONSISTENCY
    if (trend.workout_days >= config.PUSH_MIN_WORKOUT_DAYS
            and trend.protein_hit_rate >= config.PUSH_MIN_PROTEIN_HIT_RATE):
        return EffortMode.PUSH
    return EffortMode.BALANCED


def make_preferences(context: DailyCoachContext) -> DailyCoachPreferences:
    return DailyCoachPreferences(
        effort_mode=infer_effort_mode(context),
        workout_window=infer_workout_window(context),
        tomorrow_focus=infer_tomorrow_focus(context),
        tomorrow_workout_minutes=infer_tomorrow_workout_minutes(context),
    )
