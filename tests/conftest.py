"""Shared fixtures for the TraiPulse test suite.  All tests run on a fixed clock."""

from datetime import datetime, timedelta

import pytest

from traipulse.models import (
    BehaviorEvent, CoachSignalSnapshot, DailyCoachContext, DailyCoachPreferences,
    InputContext, PatternProfile, PulseContentRequest,
)
from traipulse.ontology import (
    BehaviorDomain, BehaviorOutcome, BehaviorSurface, CoachTone, EffortMode,
    SignalDomain, SignalSource, TomorrowFocus, WorkoutWindowPreference,
)

# Tuesday morning
NOW = datetime(2026, 3, 10, 7, 30)


def at_hour(hour: int, minute: int = 0, days_ago: int = 0) -> datetime:
    return (NOW - timedelta(days=days_ago)).replace(hour=hour, minute=minute, second=0, microsecond=0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_event():
    def _make(action_key, occurred_at, outcome=BehaviorOutcome.COMPLETED):
        return BehaviorEvent(
            action_key=action_key,
            domain=BehaviorDomain.GENERAL,
            surface=BehaviorSurface.SYSTEM,
            outcome=outcome,
            occurred_at=occurred_at,
        )
    return _make


@pytest.fixture
def make_signal():
    def _make(domain=SignalDomain.PAIN, title="Left knee soreness", severity=0.7,
              confidence=0.8, created_at=None, hours=24, detail="",
              source=SignalSource.CHAT):
        created = created_at or NOW - timedelta(hours=1)
        return CoachSignalSnapshot(
            domain=domain,
            title=title,
            detail=detail,
            severity=severity,
            confidence=confidence,
            source=source,
            created_at=created,
            expires_at=created + timedelta(hours=hours),
        )
    return _make


@pytest.fixture
def make_daily_context():
    def _make(**overrides):
        values = dict(
            now=NOW,
            has_workout_today=True,
            has_active_workout=False,
            calories_consumed=1100,
            calorie_goal=2000,
            protein_consumed=75,
            protein_goal=150,
            ready_muscle_count=3,
            recommended_workout_name="Upper Body",
            pattern_profile=PatternProfile.empty(),
        )
        values.update(overrides)
        return DailyCoachContext(**values)
    return _make


@pytest.fixture
def make_input_context():
    def _make(**overrides):
        values = dict(
            now=NOW,
            has_workout_today=False,
            has_active_workout=False,
            calories_consumed=0,
            calorie_goal=2000,
            protein_consumed=0,
            protein_goal=120,
            ready_muscle_count=4,
            recommended_workout_name=None,
            workout_window_start_hour=6,
            workout_window_end_hour=22,
            tomorrow_workout_minutes=45,
            pattern_profile=PatternProfile.empty(),
        )
        values.update(overrides)
        return InputContext(**values)
    return _make


@pytest.fixture
def preferences():
    return DailyCoachPreferences(
        effort_mode=EffortMode.BALANCED,
        workout_window=WorkoutWindowPreference.MORNING,
        tomorrow_focus=TomorrowFocus.BOTH,
        tomorrow_workout_minutes=40,
    )


@pytest.fixture
def make_request(preferences):
    def _make(context, allow_question=True, blocked_question_id=None):
        return PulseContentRequest(
            context=context,
            preferences=preferences,
            tone=CoachTone.BALANCED,
            allow_question=allow_question,
            blocked_question_id=blocked_question_id,
        )
    return _make
