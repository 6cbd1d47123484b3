"""
TraiPulse — Context Packet Assembler  (traipulse/context_assembler.py)
======================================================================
Compresses goal / constraints / patterns / anomalies / next actions into a
compact, token-budgeted packet for the generative prompt.

Each section is ranked independently by a utility score, the top items are
kept (2 / 3 / 2 / 2), and the packet is trimmed in a fixed order until the
token estimate fits the budget:

    anomalies (to zero) → patterns (to 1) → actions (to 1) → constraints (to 1)

The goal line is never removed.

Public API:
  assemble(pattern_profile, active_signals, context, token_budget=700) -> ContextPacket
  estimate_tokens(text) -> int
"""
from __future__ import annotations

from typing import NamedTuple

from traipulse import config
from traipulse.models import (
    CoachSignalSnapshot, ContextPacket, InputContext, PatternProfile, clamp,
)
from traipulse.ontology import ActionKind, SignalDomain
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)


class Snippet(NamedTuple):
    text:    str
    utility: float


def _ranked(snippets: list[Snippet]) -> list[Snippet]:
    # stable: equal utilities keep insertion order
    return sorted(snippets, key=lambda s: -s.utility)


# ══════════════════════════════════════════════
# SECTION BUILDERS
# ══════════════════════════════════════════════

def primary_goal(context: InputContext, protein_remaining: int, calorie_remaining: int) -> str:
    if not context.has_workout_today and not context.has_active_workout:
        return "Complete your workout in today's available window"
    if protein_remaining >= config.GOAL_PROTEIN_GAP:
        return f"Close the protein gap (~{protein_remaining}g remaining)"
    if calorie_remaining >= config.GOAL_CALORIE_GAP:
        return "Finish nutrition within today's calorie target"
    return "Protect consistency and recovery for tomorrow"


def _constraints(signals: list[CoachSignalSnapshot], context: InputContext) -> list[Snippet]:
    ordered = sorted(signals, key=lambda s: -(s.severity * s.confidence))
    ranked = [
        Snippet(
            f"{s.domain.display_name}: {s.title}",
            clamp(s.severity * config.CONSTRAINT_SEVERITY_WEIGHT
                  + s.confidence * config.CONSTRAINT_CONFIDENCE_WEIGHT),
        )
        for s in ordered
    ]

    if (not context.has_workout_today and not context.has_active_workout
            and context.now.hour > context.workout_window_end_hour):
        ranked.append(Snippet("Today's workout window has passed", config.WINDOW_PASSED_UTILITY))

    return _ranked(ranked)


def _blend(score: float, confidence: float, weights: tuple[float, float]) -> float:
    score_weight, confidence_weight = weights
    return clamp(score * score_weight + confidence * confidence_weight)


def _patterns(profile: PatternProfile) -> list[Snippet]:
    ranked: list[Snippet] = []

    window = profile.strongest_workout_window(min_score=config.PACKET_PATTERN_WORKOUT_MIN_SCORE)
    if window is not None:
        score = profile.workout_window_scores[window.value]
        ranked.append(Snippet(
            f"You usually train in the {window.label.lower()}",
            _blend(score, profile.confidence, config.PACKET_WORKOUT_PATTERN_WEIGHTS),
        ))

    meal_window = profile.strongest_meal_window(min_score=config.PACKET_PATTERN_MEAL_MIN_SCORE)
    if meal_window is not None:
        score = profile.meal_window_scores[meal_window.value]
        ranked.append(Snippet(
            f"Most meal logs happen in the {meal_window.label.lower()}",
            _blend(score, profile.confidence, config.PACKET_MEAL_PATTERN_WEIGHTS),
        ))

    if profile.common_protein_anchors:
        base, step, count_cap = config.PACKET_ANCHOR_PATTERN_UTILITY
        anchors = ", ".join(profile.common_protein_anchors[:config.PACKET_ANCHORS_SHOWN])
        ranked.append(Snippet(
            f"Common protein anchors: {anchors}",
            clamp(base + min(len(profile.common_protein_anchors), count_cap) * step),
        ))

    for note in profile.adherence_notes:
        ranked.append(Snippet(note, config.ADHERENCE_NOTE_UTILITY))

    return _ranked(ranked)


def _stepped(days: int, rule: tuple[int, float, float, int]) -> float:
    _, base, step, day_cap = rule
    return clamp(base + min(days, day_cap) * step)


def _anomalies(context: InputContext) -> list[Snippet]:
    trend = context.trend
    if trend is None:
        return []

    ranked: list[Snippet] = []
    streak_rule = config.LOW_PROTEIN_STREAK_ANOMALY
    if trend.low_protein_streak >= streak_rule[0]:
        ranked.append(Snippet(
            f"Protein has been under target for {trend.low_protein_streak} days",
            _stepped(trend.low_protein_streak, streak_rule),
        ))
    gap_rule = config.WORKOUT_GAP_ANOMALY
    if trend.days_since_workout >= gap_rule[0]:
        ranked.append(Snippet(
            f"No workout logged for {trend.days_since_workout} days",
            _stepped(trend.days_since_workout, gap_rule),
        ))
    below, base, penalty = config.LOW_LOGGING_ANOMALY
    if trend.logging_consistency < below:
        ranked.append(Snippet(
            "Logging coverage is low this week",
            clamp(base - trend.logging_consistency * penalty),
        ))
    return _ranked(ranked)


def _actions(context: InputContext, profile: PatternProfile, protein_remaining: int) -> list[Snippet]:
    utility = config.PACKET_ACTION_UTILITY
    ranked: list[Snippet] = []

    if not context.has_workout_today and not context.has_active_workout:
        base, weight = utility["start_workout"]
        title = context.recommended_workout_name or "recommended workout"
        ranked.append(Snippet(
            f"Start {title}",
            clamp(base + profile.affinity(ActionKind.START_WORKOUT) * weight),
        ))

    if protein_remaining >= config.PACKET_ACTION_PROTEIN_GAP:
        base, weight = utility["log_protein"]
        ranked.append(Snippet(
            "Log a protein-focused meal",
            clamp(base + profile.affinity(ActionKind.LOG_FOOD) * weight),
        ))

    if any(s.domain in (SignalDomain.PAIN, SignalDomain.RECOVERY) for s in context.active_signals):
        base, weight = utility["pain_adjust"]
        ranked.append(Snippet(
            "Open Trai for a pain-aware adjustment",
            clamp(base + profile.affinity(ActionKind.OPEN_CHAT) * weight),
        ))
    else:
        base, weight = utility["refine_plan"]
        ranked.append(Snippet(
            "Open Trai to refine tomorrow's plan",
            clamp(base + profile.affinity(ActionKind.OPEN_CHAT) * weight),
        ))

    scores = context.pending_reminder_candidate_scores
    reminders = sorted(
        context.pending_reminder_candidates,
        key=lambda r: (-scores.get(r.id, 0.0), r.hour, r.minute, r.id),
    )
    base, weight = config.PACKET_REMINDER_UTILITY
    for reminder in reminders:
        ranked.append(Snippet(
            f"Complete {reminder.title} at {reminder.time}",
            clamp(base + scores.get(reminder.id, 0.0) * weight),
        ))

    if context.plan_review_trigger:
        if context.plan_review_trigger == config.PLAN_REVIEW_WORKOUT_TRIGGER:
            kind, title = ActionKind.REVIEW_WORKOUT_PLAN, "Review Workout Plan"
        else:
            kind, title = ActionKind.REVIEW_NUTRITION_PLAN, "Review Nutrition Plan"
        base, weight = utility["plan_review"]
        ranked.append(Snippet(title, clamp(base + profile.affinity(kind) * weight)))

    return _ranked(ranked)


# ══════════════════════════════════════════════
# PACKET
# ══════════════════════════════════════════════

def estimate_tokens(text: str) -> int:
    words = len(text.split())
    # half-up rounding, not banker's
    return max(1, int(words * config.TOKENS_PER_WORD + 0.5))


def _packet(goal: str, constraints: list[str], patterns: list[str],
            anomalies: list[str], actions: list[str]) -> ContextPacket:
    lines = [f"goal={goal}"]
    if constraints:
        lines.append("constraints=" + " | ".join(constraints))
    if patterns:
        lines.append("patterns=" + " | ".join(patterns))
    if anomalies:
        lines.append("anomalies=" + " | ".join(anomalies))
    if actions:
        lines.append("next_actions=" + " | ".join(actions))
    summary = "\n".join(lines)

    return ContextPacket(
        goal=goal,
        constraints=list(constraints),
        patterns=list(patterns),
        anomalies=list(anomalies),
        suggested_actions=list(actions),
        estimated_tokens=estimate_tokens(summary),
        prompt_summary=summary,
    )


def assemble(
    pattern_profile: PatternProfile,
    active_signals: list[CoachSignalSnapshot],
    context: InputContext,
    token_budget: int = config.DEFAULT_TOKEN_BUDGET,
) -> ContextPacket:
    protein_remaining = max(context.protein_goal - context.protein_consumed, 0)
    calorie_remaining = max(context.calorie_goal - context.calories_consumed, 0)
    goal = primary_goal(context, protein_remaining, calorie_remaining)

    limits = config.PACKET_LIMITS
    constraints = [s.text for s in _constraints(active_signals, context)][:limits["constraints"]]
    patterns = [s.text for s in _patterns(pattern_profile)][:limits["patterns"]]
    anomalies = [s.text for s in _anomalies(context)][:limits["anomalies"]]
    actions = [s.text for s in _actions(context, pattern_profile, protein_remaining)][:limits["actions"]]

    packet = _packet(goal, constraints, patterns, anomalies, actions)
    trimmed = 0
    while packet.estimated_tokens > token_budget:
        if anomalies:
            anomalies.pop()
        elif len(patterns) > 1:
            patterns.pop()
        elif len(actions) > 1:
            actions.pop()
        elif len(constraints) > 1:
            constraints.pop()
        else:
            break
        trimmed += 1
        packet = _packet(goal, constraints, patterns, anomalies, actions)

    log.log_packet(packet.estimated_tokens, token_budget, trimmed)
    return packet
