"""Deterministic brief engine: scalars, phases, copy, actions and questions."""

import pytest

from traipulse.models import (
    ContextPacket, PatternProfile, Question, QuestionInputMode, TrendSnapshot,
)
from traipulse.ontology import ActionKind, Phase, QuestionMode, SignalDomain
from traipulse.pulse_engine import (
    confidence_label, make_brief, phase_for, recovery_readiness, schedule_risk, trend_risk,
)
from traipulse.response_interpreter import make_answer_signal

from conftest import NOW, at_hour


def _trend(**overrides):
    values = dict(
        days_window=7,
        days_with_food_logs=6,
        protein_target_hit_days=4,
        calorie_target_hit_days=4,
        workout_days=3,
        low_protein_streak=0,
        days_since_workout=1,
    )
    values.update(overrides)
    return TrendSnapshot(**values)


def _answer(question_id, prompt, answer, mode=None):
    question = Question(id=question_id, prompt=prompt, input_mode=mode or QuestionInputMode.single_choice())
    return make_answer_signal(question, answer, NOW)


# ──────────────────────────────────────────────
# Scalars
# ──────────────────────────────────────────────

def test_schedule_risk_escalates_through_window():
    assert schedule_risk(10, 6, 22, True, False) == 0.05
    assert schedule_risk(5, 6, 22, False, False) == 0.25
    assert schedule_risk(6, 6, 22, False, False) == pytest.approx(0.35)
    assert schedule_risk(22, 6, 22, False, False) == pytest.approx(0.80)
    assert schedule_risk(23, 6, 22, False, False) == 0.88


def test_recovery_readiness_penalizes_pain_and_sleep(make_signal):
    signals = [
        make_signal(domain=SignalDomain.PAIN, severity=0.6),
        make_signal(domain=SignalDomain.SLEEP, title="Short sleep", severity=0.5),
    ]

    assert recovery_readiness(4, []) == pytest.approx(0.5)
    assert recovery_readiness(4, signals) == pytest.approx(0.5 - 0.21 - 0.10)
    assert recovery_readiness(0, signals) == 0.0


def test_trend_risk_tiers():
    assert trend_risk(None) == 0.45
    calm = _trend(days_with_food_logs=7, protein_target_hit_days=7)
    assert trend_risk(calm) == pytest.approx(0.05)
    slipping = _trend(days_with_food_logs=7, protein_target_hit_days=7, days_since_workout=5, low_protein_streak=3)
    assert trend_risk(slipping) == pytest.approx(0.50)


@pytest.mark.parametrize("hour,done,active,phase", [
    (9, False, True, Phase.ON_TRACK),
    (9, True, False, Phase.COMPLETED),
    (7, False, False, Phase.MORNING_PLAN),
    (12, False, False, Phase.ON_TRACK),
    (20, False, False, Phase.AT_RISK),
    (21, False, False, Phase.AT_RISK),
    (22, False, False, Phase.RESCUE),
])
def test_phase_for(hour, done, active, phase):
    assert phase_for(hour, 8, 21, done, active) is phase


def test_confidence_label_thresholds():
    assert confidence_label(0.2) == "Low data confidence"
    assert confidence_label(0.34) == "Medium data confidence"
    assert confidence_label(0.67) == "High data confidence"


# ──────────────────────────────────────────────
# Briefs
# ──────────────────────────────────────────────

def test_brief_morning_plan_before_window(make_input_context):
    context = make_input_context(workout_window_start_hour=9, recommended_workout_name="Leg Day")

    brief = make_brief(context)

    assert brief.phase is Phase.MORNING_PLAN
    assert brief.title == "Today's Pulse Plan"
    assert brief.message.startswith("Start with Leg Day")
    assert brief.primary_action.kind is ActionKind.START_WORKOUT
    assert brief.primary_action.title == "Start Leg Day"
    assert brief.question.id == "protein-close"
    assert brief.tomorrow_preview == "Tomorrow: 45 min workout"


def test_brief_uses_learned_window(make_input_context):
    profile = PatternProfile(workout_window_scores={"evening": 0.8, "morning": 0.2})

    brief = make_brief(make_input_context(pattern_profile=profile))

    assert brief.phase is Phase.MORNING_PLAN
    assert brief.message.startswith("You usually train in the evening.")


def test_brief_pain_signal_takes_priority(make_input_context, make_signal):
    pain = make_signal(domain=SignalDomain.PAIN, title="Left knee soreness", severity=0.7)

    brief = make_brief(make_input_context(active_signals=[pain]))

    assert brief.title == "Smart Recovery Mode"
    assert brief.message.startswith("Left knee soreness. Nice job checking in.")
    assert brief.secondary_action.title == "Adjust with Trai"
    assert brief.question.id == "pain-follow-up"
    assert brief.question.input_mode.mode is QuestionMode.SLIDER
    assert brief.question.input_mode.slider_max == 10
    assert brief.reasons[-1].text == "Left knee soreness"
    assert brief.reasons[-1].emphasis == pytest.approx(0.7)


def test_brief_rescue_after_window(make_input_context):
    brief = make_brief(make_input_context(now=at_hour(23)))

    assert brief.phase is Phase.RESCUE
    assert brief.title == "Adaptive Plan"
    assert brief.secondary_action.title == "Build Quick Plan"
    assert brief.question.id == "schedule-rescue"
    assert [o.title for o in brief.question.options] == [
        "15 min quick lift", "30 min full session", "Recovery walk + protein",
    ]


def test_brief_workout_gap_rebuilds_momentum(make_input_context):
    brief = make_brief(make_input_context(trend=_trend(days_since_workout=5)))

    assert brief.title == "Let's Rebuild Momentum"
    assert brief.question.id == "workout-consistency-unblock"
    assert brief.reasons[2].text == "Last workout 5d ago"


def test_brief_reasons_are_capped_and_scored(make_input_context):
    packet = ContextPacket(
        goal="g", constraints=[], patterns=["You usually train in the evening"],
        anomalies=["No workout logged for 5 days"], suggested_actions=[],
        estimated_tokens=10, prompt_summary="goal=g",
    )

    brief = make_brief(make_input_context(context_packet=packet))

    assert [r.text for r in brief.reasons] == [
        "You usually train in the evening",
        "No workout logged for 5 days",
        "Adherence 0%",
    ]
    assert 0.0 <= brief.confidence <= 1.0
    assert brief.confidence_label.endswith("data confidence")


def test_brief_carries_over_recent_answer(make_input_context):
    signal = _answer("readiness-scan", "Quick readiness scan for tomorrow?", "Keep it light")

    brief = make_brief(make_input_context(active_signals=[signal]))

    assert brief.reasons[0].text == "From your check-in: Keep it light"
    assert brief.reasons[0].emphasis == 0.84
    assert brief.tomorrow_preview == "Tomorrow: 30 min workout (Keep tomorrow light)"


def test_brief_schedule_rescue_answer_picks_workout_length(make_input_context):
    signal = _answer("schedule-rescue", "What can you commit to tonight?", "15 min quick lift")

    brief = make_brief(make_input_context(now=at_hour(23), active_signals=[signal]))

    assert brief.primary_action.title == "Start 15-Min Quick Lift"
    assert brief.question.id != "schedule-rescue"


def test_brief_completed_and_done_eating(make_input_context):
    signal = _answer("protein-close", "How do you want to close protein today?", "Not hungry, done eating",
                     mode=QuestionInputMode.multiple_choice())

    brief = make_brief(make_input_context(has_workout_today=True, protein_consumed=60,
                                          active_signals=[signal]))

    assert brief.phase is Phase.COMPLETED
    assert brief.title == "Great Work Today"
    assert "finished eating tonight" in brief.message
    assert brief.primary_action.title == "Plan Tomorrow Protein"
    assert brief.secondary_action.title == "Set Morning Plan"


def test_brief_completed_with_protein_gap(make_input_context):
    brief = make_brief(make_input_context(has_workout_today=True, protein_consumed=60, calories_consumed=1500))

    assert brief.message == "Workout done. Add about 60g protein to support recovery."
    assert brief.primary_action.title == "Log Protein Meal"


def test_brief_falls_back_to_open_note(make_input_context):
    answered = [
        _answer("readiness-scan", "Quick readiness scan for tomorrow?", "Balanced"),
    ]

    brief = make_brief(make_input_context(has_workout_today=True, protein_consumed=120,
                                          active_signals=answered))

    assert brief.question.id == "open-note"
    assert brief.question.input_mode.mode is QuestionMode.NOTE
    assert brief.question.input_mode.max_length == 180
