"""
TraiPulse — Action Ranker  (traipulse/action_ranker.py)
=======================================================
Scores a fixed catalogue of candidate "next actions" and returns them in
a deterministic order.

Every candidate's base utility goes through adjusted_score():

    clamp( base
         + timing boost      min(hourly preference × 0.22, 0.16)
         + staleness boost   per-kind (per-day increment, cap)
         - repetition        per-kind (completed today, opened today) )

Kinds without a behavior key skip all three terms.  Candidates are then
deduplicated by kind (highest score wins), sorted by score desc / kind asc,
and truncated to `limit`.

Public API:
  rank_actions(context, now, limit=6) -> list[RankedAction]
  adjusted_score(base, kind, context, now) -> float
  dedupe_keeping_best(candidates) -> list[RankedAction]
  score_for(action, ranked) -> float
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from traipulse import config
from traipulse.models import (
    DailyCoachAction, DailyCoachContext, RankedAction, ReminderCandidate, clamp,
)
from traipulse.ontology import ActionKind, SignalDomain, behavior_key_for
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)


# ──────────────────────────────────────────────
# SCORE TERMS
# ──────────────────────────────────────────────

def _affinity(kind: ActionKind, context: DailyCoachContext) -> float:
    if context.pattern_profile is None:
        return 0.0
    return context.pattern_profile.affinity(kind)


def timing_alignment_boost(kind: ActionKind, context: DailyCoachContext, hour: int) -> float:
    key = behavior_key_for(kind)
    if key is None or context.behavior_profile is None:
        return 0.0
    preference = context.behavior_profile.hourly_preference_score(
        key, hour, minimum_events=config.TIMING_MIN_EVENTS,
    )
    return min(preference * config.TIMING_BOOST_FACTOR, config.TIMING_BOOST_CAP)


def staleness_boost(kind: ActionKind, context: DailyCoachContext, now: datetime) -> float:
    key = behavior_key_for(kind)
    if key is None or context.behavior_profile is None:
        return 0.0
    days = context.behavior_profile.days_since_last_action(key, now)
    if days is None or days <= 0:
        return 0.0
    per_day, cap = config.STALENESS_BOOST.get(kind, (0.0, 0.0))
    return min(days * per_day, cap)


def repetition_penalty(kind: ActionKind, context: DailyCoachContext) -> float:
    key = behavior_key_for(kind)
    if key is None:
        return 0.0
    completed = key in context.today_completed_action_keys
    opened = key in context.today_opened_action_keys
    if not (completed or opened):
        return 0.0

    if kind is ActionKind.COMPLETE_REMINDER and len(context.pending_reminder_candidates) > 1:
        when_completed, when_opened = config.REMINDER_MULTI_CANDIDATE_PENALTY
    else:
        when_completed, when_opened = config.REPETITION_PENALTY.get(kind, (0.0, 0.0))
    return when_completed if completed else when_opened


def adjusted_score(base: float, kind: ActionKind, context: DailyCoachContext, now: datetime) -> float:
    return clamp(
        base
        + timing_alignment_boost(kind, context, now.hour)
        + staleness_boost(kind, context, now)
        - repetition_penalty(kind, context)
    )


# ──────────────────────────────────────────────
# CANDIDATE RULES
# ──────────────────────────────────────────────

def best_reminder_candidate(context: DailyCoachContext) -> Optional[tuple[ReminderCandidate, float]]:
    """Highest-scored pending reminder; ties go to the earlier time of day."""
    scores = context.pending_reminder_candidate_scores
    if not context.pending_reminder_candidates:
        return None
    best = min(
        context.pending_reminder_candidates,
        key=lambda r: (-scores.get(r.id, 0.0), r.hour, r.minute, r.id),
    )
    return best, scores.get(best.id, 0.0)


def should_suggest_weight_log(context: DailyCoachContext, hour: int) -> bool:
    days = context.days_since_last_weight_log
    if days is None or days <= 0:
        return False
    start, end = config.WEIGHT_LOG_HOURS
    if not (start <= hour < end):
        return False
    morning_pattern = any(
        marker in label.lower()
        for label in context.weight_likely_log_times
        for marker in config.WEIGHT_MORNING_LABELS
    )
    return (morning_pattern
            or context.weight_log_routine_score >= config.WEIGHT_ROUTINE_SCORE_THRESHOLD
            or days >= config.WEIGHT_LOG_STALE_DAYS)


def _has_pain_or_recovery(context: DailyCoachContext) -> bool:
    return any(s.domain in (SignalDomain.PAIN, SignalDomain.RECOVERY) for s in context.active_signals)


def _utility(kind: ActionKind, context: DailyCoachContext, base: Optional[float] = None) -> float:
    """Base utility plus the kind's weighted affinity."""
    if base is None:
        base = config.RANKER_BASE_UTILITY[kind]
    return base + _affinity(kind, context) * config.RANKER_AFFINITY_WEIGHT.get(kind, 0.0)


def _weight_staleness(days: float, rule: tuple[float, int, float], routine_score: float) -> float:
    per_day, day_cap, routine_weight = rule
    return min(days, day_cap) * per_day + routine_score * routine_weight


def _protein_gap_boost(kind: ActionKind, protein_remaining: int) -> float:
    grams_per_unit, cap = config.PROTEIN_GAP_BOOST[kind]
    return min(protein_remaining / grams_per_unit, cap)


def build_candidates(context: DailyCoachContext, now: datetime) -> list[RankedAction]:
    """Every rule that fires contributes one scored candidate (duplicates allowed)."""
    protein_remaining = max(context.protein_goal - context.protein_consumed, 0)
    candidates: list[RankedAction] = []

    def add(kind: ActionKind, base: float, title: str,
            subtitle: Optional[str] = None, metadata: Optional[dict] = None):
        candidates.append(RankedAction(
            action=DailyCoachAction(kind=kind, title=title, subtitle=subtitle, metadata=metadata),
            score=adjusted_score(base, kind, context, now),
        ))

    reminder = best_reminder_candidate(context)
    if reminder is not None:
        candidate, score = reminder
        add(
            ActionKind.COMPLETE_REMINDER,
            _utility(ActionKind.COMPLETE_REMINDER, context) + score * config.REMINDER_SCORE_WEIGHT,
            f"Complete {candidate.title}",
            subtitle=f"Scheduled at {candidate.time}",
            metadata={
                "reminder_id":     candidate.id,
                "reminder_title":  candidate.title,
                "reminder_time":   candidate.time,
                "reminder_hour":   str(candidate.hour),
                "reminder_minute": str(candidate.minute),
            },
        )

    if should_suggest_weight_log(context, now.hour):
        days = float(context.days_since_last_weight_log or 1)
        add(
            ActionKind.LOG_WEIGHT,
            _utility(ActionKind.LOG_WEIGHT, context)
            + _weight_staleness(days, config.WEIGHT_LOG_STALENESS, context.weight_log_routine_score),
            "Log Morning Weight",
            subtitle="Keep your check-in routine",
        )

    weight_days = context.days_since_last_weight_log
    if weight_days is not None and weight_days >= config.WEIGHT_REVIEW_MIN_DAYS:
        add(
            ActionKind.OPEN_WEIGHT,
            _utility(ActionKind.OPEN_WEIGHT, context)
            + _weight_staleness(float(weight_days), config.WEIGHT_REVIEW_STALENESS,
                                context.weight_log_routine_score),
            "Review Weight Trend",
            subtitle="Re-anchor your routine",
        )

    if not context.has_workout_today and not context.has_active_workout:
        in_window = config.WORKOUT_HOURS_START <= now.hour <= config.WORKOUT_HOURS_END
        title = f"Start {context.recommended_workout_name}" if context.recommended_workout_name else "Start Workout"
        base = None if in_window else config.START_WORKOUT_OFF_WINDOW_UTILITY
        add(ActionKind.START_WORKOUT, _utility(ActionKind.START_WORKOUT, context, base), title)
        add(ActionKind.OPEN_WORKOUTS, _utility(ActionKind.OPEN_WORKOUTS, context), "Open Workouts")
        if context.recommended_workout_name is not None:
            add(ActionKind.OPEN_WORKOUT_PLAN, _utility(ActionKind.OPEN_WORKOUT_PLAN, context), "Open Workout Plan")

    if protein_remaining >= config.RANKER_PROTEIN_GAP:
        add(
            ActionKind.LOG_FOOD,
            _utility(ActionKind.LOG_FOOD, context) + _protein_gap_boost(ActionKind.LOG_FOOD, protein_remaining),
            "Log Protein Meal",
            subtitle=f"{protein_remaining}g protein remaining",
        )
        add(
            ActionKind.LOG_FOOD_CAMERA,
            _utility(ActionKind.LOG_FOOD_CAMERA, context)
            + _protein_gap_boost(ActionKind.LOG_FOOD_CAMERA, protein_remaining),
            "Scan Next Meal",
            subtitle="Fast photo log",
        )

    if context.calories_consumed > 0:
        add(ActionKind.OPEN_CALORIE_DETAIL, _utility(ActionKind.OPEN_CALORIE_DETAIL, context), "Open Calorie Detail")

    add(ActionKind.OPEN_MACRO_DETAIL, _utility(ActionKind.OPEN_MACRO_DETAIL, context), "Open Macro Detail")

    if _has_pain_or_recovery(context):
        add(ActionKind.OPEN_RECOVERY, _utility(ActionKind.OPEN_RECOVERY, context), "Check Recovery")

    add(ActionKind.OPEN_PROFILE, _utility(ActionKind.OPEN_PROFILE, context), "Open Profile")

    if context.plan_review_trigger:
        if context.plan_review_trigger == config.PLAN_REVIEW_WORKOUT_TRIGGER:
            kind, title = ActionKind.REVIEW_WORKOUT_PLAN, "Review Workout Plan"
        else:
            kind, title = ActionKind.REVIEW_NUTRITION_PLAN, "Review Nutrition Plan"
        add(kind, _utility(kind, context), title)

    return candidates


# ══════════════════════════════════════════════
# RANKING
# ══════════════════════════════════════════════

def dedupe_keeping_best(candidates: list[RankedAction]) -> list[RankedAction]:
    """One entry per kind; the first of equal scores is kept."""
    best: dict[ActionKind, RankedAction] = {}
    for candidate in candidates:
        existing = best.get(candidate.action.kind)
        if existing is None or candidate.score > existing.score:
            best[candidate.action.kind] = candidate
    return list(best.values())


def order_ranked(candidates: list[RankedAction], limit: int) -> list[RankedAction]:
    ordered = sorted(
        dedupe_keeping_best(candidates),
        key=lambda r: (-r.score, r.action.kind.value),
    )
    return ordered[:max(limit, 0)]


def rank_actions(context: DailyCoachContext, now: datetime,
                 limit: int = config.DEFAULT_RANK_LIMIT) -> list[RankedAction]:
    candidates = build_candidates(context, now)
    ranked = order_ranked(candidates, limit)
    log.log_ranking(len(candidates), ranked, limit)
    return ranked


def score_for(action: DailyCoachAction, ranked: list[RankedAction]) -> float:
    """Score of the ranked entry sharing `action`'s kind, or 0."""
    for candidate in ranked:
        if candidate.action.kind is action.kind:
            return candidate.score
    return 0.0
