"""Context packet assembly and token-budget trimming."""

from traipulse import config
from traipulse.context_assembler import assemble, estimate_tokens
from traipulse.models import PatternProfile, ReminderCandidate, TrendSnapshot
from traipulse.ontology import SignalDomain


def _trend(streak=4, days_since=5, logged=2):
    return TrendSnapshot(
        days_window=7,
        days_with_food_logs=logged,
        protein_target_hit_days=1,
        calorie_target_hit_days=1,
        workout_days=1,
        low_protein_streak=streak,
        days_since_workout=days_since,
    )


def _rich_profile():
    return PatternProfile(
        workout_window_scores={"evening": 0.7, "morning": 0.3},
        meal_window_scores={"midday": 0.5, "evening": 0.5},
        common_protein_anchors=["Chicken Rice Bowl", "Protein Shake"],
        adherence_notes=["Logging is inconsistent lately"],
        confidence=0.6,
    )


def test_assemble_adds_nutrition_plan_review_for_weight_change(make_input_context):
    context = make_input_context(
        has_workout_today=True,
        protein_goal=0,
        plan_review_trigger="weight_change",
    )

    packet = assemble(PatternProfile.empty(), [], context)

    assert "Review Nutrition Plan" in packet.suggested_actions


def test_assemble_adds_workout_plan_review_for_plan_age(make_input_context):
    context = make_input_context(has_workout_today=True, protein_goal=0, plan_review_trigger="plan_age")

    packet = assemble(PatternProfile.empty(), [], context)

    assert packet.suggested_actions[0] == "Review Workout Plan"


def test_assemble_ranks_reminders_by_score_then_time(make_input_context):
    candidates = [
        ReminderCandidate(id="a", title="Hydrate", time="09:30 AM", hour=9, minute=30),
        ReminderCandidate(id="b", title="Stretch", time="08:15 AM", hour=8, minute=15),
        ReminderCandidate(id="c", title="Walk", time="10:00 AM", hour=10, minute=0),
    ]
    context = make_input_context(
        has_workout_today=True,
        protein_goal=0,
        pending_reminder_candidates=candidates,
        pending_reminder_candidate_scores={"a": 0.9, "b": 0.9, "c": 0.4},
    )

    packet = assemble(PatternProfile.empty(), [], context)

    assert packet.suggested_actions == [
        "Complete Stretch at 08:15 AM",
        "Complete Hydrate at 09:30 AM",
    ]


def test_assemble_prioritizes_workout_goal_when_not_started(make_input_context):
    packet = assemble(PatternProfile.empty(), [], make_input_context())

    assert packet.goal == "Complete your workout in today's available window"
    assert packet.prompt_summary.splitlines()[0] == f"goal={packet.goal}"


def test_assemble_goal_falls_through_nutrition_gaps(make_input_context):
    protein_gap = make_input_context(has_workout_today=True, protein_goal=150, protein_consumed=90)
    calorie_gap = make_input_context(has_workout_today=True, protein_goal=100, protein_consumed=90,
                                     calories_consumed=1200)
    done = make_input_context(has_workout_today=True, protein_goal=100, protein_consumed=90,
                              calories_consumed=1900)

    assert assemble(PatternProfile.empty(), [], protein_gap).goal == "Close the protein gap (~60g remaining)"
    assert assemble(PatternProfile.empty(), [], calorie_gap).goal == "Finish nutrition within today's calorie target"
    assert assemble(PatternProfile.empty(), [], done).goal == "Protect consistency and recovery for tomorrow"


def test_assemble_ranks_constraints_by_severity(make_input_context, make_signal):
    signals = [
        make_signal(domain=SignalDomain.STRESS, title="Busy week", severity=0.3, confidence=0.5),
        make_signal(domain=SignalDomain.PAIN, title="Knee soreness", severity=0.8, confidence=0.9),
    ]
    context = make_input_context(active_signals=signals)

    packet = assemble(PatternProfile.empty(), signals, context)

    assert packet.constraints[0].endswith("Knee soreness")
    assert "Open Trai for a pain-aware adjustment" in packet.suggested_actions


def test_assemble_full_packet_sections(make_input_context):
    context = make_input_context(trend=_trend(), protein_consumed=20)

    packet = assemble(_rich_profile(), [], context)

    assert packet.patterns[0] == "Common protein anchors: Chicken Rice Bowl, Protein Shake"
    assert len(packet.patterns) == 3
    assert packet.anomalies == [
        "Protein has been under target for 4 days",
        "No workout logged for 5 days",
    ]
    assert packet.estimated_tokens == estimate_tokens(packet.prompt_summary)


def test_assemble_anomaly_utilities_from_settings(make_input_context, monkeypatch):
    monkeypatch.setattr(config, "LOW_LOGGING_ANOMALY", (0.5, 0.99, 0.0))
    context = make_input_context(trend=_trend(), protein_consumed=20)

    packet = assemble(_rich_profile(), [], context)

    assert packet.anomalies == [
        "Logging coverage is low this week",
        "Protein has been under target for 4 days",
    ]


def test_assemble_trims_in_fixed_order(make_input_context):
    context = make_input_context(trend=_trend(), protein_consumed=20)
    full = assemble(_rich_profile(), [], context)

    tight = assemble(_rich_profile(), [], context, token_budget=full.estimated_tokens - 1)

    assert len(tight.anomalies) < len(full.anomalies)
    assert tight.patterns == full.patterns
    assert tight.estimated_tokens <= full.estimated_tokens - 1


def test_assemble_never_drops_goal(make_input_context):
    context = make_input_context(trend=_trend(), protein_consumed=20)

    packet = assemble(_rich_profile(), [], context, token_budget=1)

    assert packet.goal
    assert packet.anomalies == []
    assert len(packet.patterns) == 1
    assert len(packet.suggested_actions) == 1
    assert len(packet.constraints) <= 1


def test_estimate_tokens_rounds_half_up():
    assert estimate_tokens("one two") == 3
    assert estimate_tokens("") == 1
