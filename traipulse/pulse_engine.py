"""
TraiPulse — Deterministic Brief Engine  (traipulse/pulse_engine.py)
===================================================================
Rule-based daily recommendation built purely from structured context.
Used whenever generated content is unavailable or rejected, and as the
"next action" source for other surfaces.

Pipeline:
  1. Workout window  (learned strongest window ≥ 0.38, else caller default)
  2. Scalars         schedule risk, recovery readiness, trend risk,
                     data coverage, consistency → confidence + label
  3. Phase           morning_plan / on_track / at_risk / rescue / completed
  4. Copy            title + message by priority cascade
                     (pain signal > multi-day workout gap > phase template)
  5. Reasons         carry-over answer, trend, packet lines, scalars (≤ 3)
  6. Actions         primary / secondary, branching on the latest answer
  7. Question        first un-answered entry of a fixed priority list

Public API:
  make_brief(context: InputContext) -> Brief
"""
from __future__ import annotations

from typing import Optional

from traipulse import config
from traipulse.models import (
    Brief, CoachSignalSnapshot, DailyCoachAction, InputContext,
    Question, QuestionInputMode, QuestionOption, Reason, RecentAnswer,
    TrendSnapshot, clamp,
)
from traipulse.ontology import ActionKind, Phase, SignalDomain, TimeWindow
from traipulse.response_interpreter import (
    adapted_tomorrow_preview, carryover_reason, contains_no_food_cue,
    has_recent_question_answer, recent_pulse_answer,
)
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)


# ──────────────────────────────────────────────
# SCALARS
# ──────────────────────────────────────────────

def _progress(consumed: int, goal: int) -> float:
    if goal <= 0:
        return 0.0
    return clamp(consumed / goal)


def _percent(value: float) -> int:
    return int(value * 100 + 0.5)


def schedule_risk(hour: int, start: int, end: int, has_workout_today: bool, has_active_workout: bool) -> float:
    if has_workout_today or has_active_workout:
        return config.SCHEDULE_RISK_DONE
    if hour < start:
        return config.SCHEDULE_RISK_BEFORE
    if hour <= end:
        span = max(end - start, 1)
        elapsed = max(0, hour - start)
        return clamp(config.SCHEDULE_RISK_WINDOW_BASE + (elapsed / span) * config.SCHEDULE_RISK_WINDOW_SPAN)
    return config.SCHEDULE_RISK_MISSED


def _max_severity(signals: list[CoachSignalSnapshot], domain: SignalDomain) -> float:
    return max((s.severity for s in signals if s.domain is domain), default=0.0)


def recovery_readiness(ready_muscle_count: int, signals: list[CoachSignalSnapshot]) -> float:
    base = clamp(ready_muscle_count / config.READY_MUSCLE_TOTAL)
    return clamp(
        base
        - _max_severity(signals, SignalDomain.PAIN) * config.PAIN_READINESS_WEIGHT
        - _max_severity(signals, SignalDomain.SLEEP) * config.SLEEP_READINESS_WEIGHT
    )


def _tiered(value: int, tiers: list[tuple[int, float]], fallback: float) -> float:
    for minimum, penalty in tiers:
        if value >= minimum:
            return penalty
    return fallback


def trend_risk(trend: Optional[TrendSnapshot]) -> float:
    if trend is None:
        return config.NO_TREND_RISK
    return clamp(
        (1.0 - trend.logging_consistency) * config.TREND_LOGGING_WEIGHT
        + (1.0 - trend.protein_hit_rate) * config.TREND_PROTEIN_WEIGHT
        + _tiered(trend.days_since_workout, config.WORKOUT_STALENESS_TIERS, config.WORKOUT_STALENESS_FLOOR)
        + _tiered(trend.low_protein_streak, config.PROTEIN_STREAK_TIERS, 0.0)
    )


def phase_for(hour: int, start: int, end: int, has_workout_today: bool, has_active_workout: bool) -> Phase:
    if has_active_workout:
        return Phase.ON_TRACK
    if has_workout_today:
        return Phase.COMPLETED
    if hour < start:
        return Phase.MORNING_PLAN
    if hour <= end:
        return Phase.AT_RISK if hour >= end - 1 else Phase.ON_TRACK
    return Phase.RESCUE


def confidence_label(confidence: float) -> str:
    low, high = config.CONFIDENCE_LABEL_THRESHOLDS
    if confidence < low:
        return "Low data confidence"
    if confidence < high:
        return "Medium data confidence"
    return "High data confidence"


# ──────────────────────────────────────────────
# COPY
# ──────────────────────────────────────────────

def _no_food_tonight(recent: Optional[RecentAnswer]) -> bool:
    return recent is not None and "protein" in recent.question_id and contains_no_food_cue(recent.answer)


def _title(phase: Phase, risk: float, pain: Optional[CoachSignalSnapshot],
           trend: Optional[TrendSnapshot]) -> str:
    if pain is not None:
        return "Smart Recovery Mode"
    if trend is not None and trend.days_since_workout >= config.TREND_REBUILD_GAP_DAYS and phase is not Phase.COMPLETED:
        return "Let's Rebuild Momentum"
    if trend is not None and trend.low_protein_streak >= config.TREND_LONG_PROTEIN_STREAK_DAYS and phase is Phase.COMPLETED:
        return "Strong Recovery Finish"

    if phase is Phase.MORNING_PLAN:
        return "Today's Pulse Plan"
    if phase is Phase.ON_TRACK:
        return "On Track"
    if phase is Phase.AT_RISK:
        return "You Can Still Make Today Count"
    if phase is Phase.RESCUE:
        return "Let's Save The Day" if risk > config.RESCUE_URGENT_RISK else "Adaptive Plan"
    return "Great Work Today"


def _message(
    phase: Phase,
    risk: float,
    workout_name: str,
    calorie_remaining: int,
    protein_remaining: int,
    pain: Optional[CoachSignalSnapshot],
    trend: Optional[TrendSnapshot],
    preferred_window: Optional[TimeWindow],
    recent: Optional[RecentAnswer],
) -> str:
    if pain is not None:
        return f"{pain.title}. Nice job checking in. We'll keep tomorrow pain-safe and still productive."
    if trend is not None and trend.days_since_workout >= config.TREND_REBUILD_GAP_DAYS and phase is not Phase.COMPLETED:
        return (f"You've had a few days off, which is okay. "
                f"A lighter {workout_name} block gets momentum back quickly.")

    if phase is Phase.MORNING_PLAN:
        if preferred_window is not None and preferred_window not in (TimeWindow.EARLY_MORNING, TimeWindow.MORNING):
            return (f"You usually train in the {preferred_window.label.lower()}. "
                    f"Keep energy steady now and execute {workout_name} later.")
        return f"Start with {workout_name}, then finish with protein so recovery stays strong."
    if phase is Phase.ON_TRACK:
        return "You're in a good rhythm. Keep it simple and close the nutrition gap tonight."
    if phase is Phase.AT_RISK:
        return "A quick decision still wins this day. Pick full session or a short adaptive version."
    if phase is Phase.RESCUE:
        if risk > config.RESCUE_URGENT_RISK:
            return "Window slipped, but a short session still protects consistency for tomorrow."
        return "Use a lighter backup session and keep momentum moving."

    done_eating = _no_food_tonight(recent)
    if trend is not None and trend.low_protein_streak >= config.TREND_PROTEIN_STREAK_DAYS:
        if done_eating:
            return ("Workout done. Since you're done eating tonight, "
                    "we'll front-load protein tomorrow to break the recent trend.")
        return "Workout done. A high-protein meal tonight helps break the recent low-protein trend."
    if protein_remaining > 0:
        if done_eating:
            return ("Workout done. You're finished eating tonight, "
                    "so I'll prioritize an easier protein catch-up tomorrow.")
        return f"Workout done. Add about {protein_remaining}g protein to support recovery."
    if calorie_remaining > 0:
        if done_eating:
            return "Workout done. You're finished eating tonight; we'll reset cleanly for tomorrow."
        return f"Workout done. Stay inside your remaining {calorie_remaining} kcal target."
    return "Workout and nutrition lined up well today. Keep hydration and sleep simple tonight."


def _trend_reasons(trend: Optional[TrendSnapshot]) -> list[Reason]:
    if trend is None:
        return []

    reasons = [Reason(f"7d logging {trend.days_with_food_logs}/{trend.days_window} days", trend.logging_consistency)]
    if trend.low_protein_streak >= config.TREND_PROTEIN_STREAK_DAYS:
        reasons.append(Reason(f"Protein under target {trend.low_protein_streak}d streak",
                              config.REASON_EMPHASIS["protein_streak"]))
    else:
        reasons.append(Reason(
            f"Protein hit {trend.protein_target_hit_days}/{trend.days_window} days",
            trend.protein_hit_rate,
        ))
    if trend.days_since_workout >= config.TREND_WORKOUT_GAP_DAYS:
        reasons.append(Reason(f"Last workout {trend.days_since_workout}d ago",
                              config.REASON_EMPHASIS["workout_gap"]))
    else:
        reasons.append(Reason(
            f"Workout days {trend.workout_days}/{trend.days_window}",
            trend.workout_days / max(trend.days_window, 1),
        ))
    return reasons


# ──────────────────────────────────────────────
# ACTIONS
# ──────────────────────────────────────────────

def _primary_action(phase: Phase, workout_name: str, protein_remaining: int,
                    calorie_remaining: int, recent: Optional[RecentAnswer]) -> DailyCoachAction:
    if phase is Phase.COMPLETED and _no_food_tonight(recent):
        return DailyCoachAction(ActionKind.OPEN_CHAT, "Plan Tomorrow Protein", "No more food tonight")

    if recent is not None:
        answer = recent.answer.lower()
        if "schedule-rescue" in recent.question_id:
            if "15 min" in answer:
                return DailyCoachAction(ActionKind.START_WORKOUT, "Start 15-Min Quick Lift", "Fast consistency win")
            if "30 min" in answer:
                return DailyCoachAction(ActionKind.START_WORKOUT, "Start 30-Min Session", "Locked in with your check-in")
            if "recovery walk" in answer:
                return DailyCoachAction(ActionKind.START_WORKOUT, "Start Recovery Walk", "Low-friction momentum")
        if "protein" in recent.question_id:
            if "shake" in answer:
                return DailyCoachAction(ActionKind.LOG_FOOD, "Log Protein Shake", "Quick close-out")
            if "yogurt" in answer:
                return DailyCoachAction(ActionKind.LOG_FOOD, "Log Greek Yogurt", "Fast protein")
            if "lean dinner" in answer:
                return DailyCoachAction(ActionKind.LOG_FOOD, "Log Lean Dinner", "Recovery support")

    if phase is Phase.COMPLETED:
        if protein_remaining > 0:
            return DailyCoachAction(ActionKind.LOG_FOOD, "Log Protein Meal", "Close recovery target")
        if calorie_remaining > 0:
            return DailyCoachAction(ActionKind.LOG_FOOD, "Log Final Meal", "Finish within target")
        return DailyCoachAction(ActionKind.LOG_FOOD, "Log Recovery Meal", "Keep the streak clean")
    return DailyCoachAction(ActionKind.START_WORKOUT, f"Start {workout_name}")


def _secondary_action(phase: Phase, risk: float, pain: Optional[CoachSignalSnapshot],
                      trend: Optional[TrendSnapshot], recent: Optional[RecentAnswer]) -> DailyCoachAction:
    if phase is Phase.COMPLETED and _no_food_tonight(recent):
        return DailyCoachAction(ActionKind.OPEN_CHAT, "Set Morning Plan", "Protein-first tomorrow")

    if recent is not None:
        answer = recent.answer.lower()
        if "protein" in recent.question_id and "need suggestions" in answer:
            return DailyCoachAction(ActionKind.OPEN_CHAT, "Get Easy Protein Ideas", "Based on your preference")
        if "workout-consistency" in recent.question_id and "need a lighter plan" in answer:
            return DailyCoachAction(ActionKind.OPEN_CHAT, "Build Lighter Plan", "Match your consistency goal")
        if "logging-consistency" in recent.question_id and "photo" in answer:
            return DailyCoachAction(ActionKind.LOG_FOOD, "Open Food Camera", "Photo-first logging")

    if pain is not None:
        return DailyCoachAction(ActionKind.OPEN_CHAT, "Adjust with Trai", "Pain-aware plan")
    if phase is Phase.COMPLETED and trend is not None and trend.low_protein_streak >= config.TREND_PROTEIN_STREAK_DAYS:
        return DailyCoachAction(ActionKind.OPEN_CHAT, "Get Meal Ideas", "Fast protein options")
    if phase is Phase.RESCUE or risk > config.SCHEDULE_RISK_MISSED:
        return DailyCoachAction(ActionKind.OPEN_CHAT, "Build Quick Plan", "2-minute adjustment")
    if trend is not None and trend.logging_consistency < config.TREND_LOW_LOGGING:
        return DailyCoachAction(ActionKind.LOG_FOOD, "Quick Log", "Rebuild consistency")
    return DailyCoachAction(ActionKind.OPEN_CHAT, "Open Trai Coach", "Context-aware guidance")


# ──────────────────────────────────────────────
# QUESTION
# ──────────────────────────────────────────────

def _choices(*titles: str) -> list[QuestionOption]:
    return [QuestionOption(title) for title in titles]


def _question(phase: Phase, pain: Optional[CoachSignalSnapshot], protein_remaining: int,
              risk: float, trend: Optional[TrendSnapshot],
              signals: list[CoachSignalSnapshot]) -> Question:
    def answered(question_id: str) -> bool:
        return has_recent_question_answer(question_id, signals)

    if pain is not None and not answered("pain-follow-up"):
        return Question(
            id="pain-follow-up",
            prompt=f"How does {pain.domain.display_name.lower()} feel now?",
            input_mode=QuestionInputMode.slider(0, 10, 1, unit="/10"),
            placeholder="Any movement that triggered it?",
        )

    if (phase is Phase.RESCUE or risk > config.RESCUE_QUESTION_RISK) and not answered("schedule-rescue"):
        return Question(
            id="schedule-rescue",
            prompt="What can you commit to tonight?",
            input_mode=QuestionInputMode.single_choice(),
            options=_choices("15 min quick lift", "30 min full session", "Recovery walk + protein"),
            placeholder="Or add a quick note",
        )

    if (trend is not None and trend.days_since_workout >= config.TREND_WORKOUT_GAP_DAYS and phase is not Phase.COMPLETED
            and not answered("workout-consistency-unblock")):
        return Question(
            id="workout-consistency-unblock",
            prompt="What helps you get a workout in this week?",
            input_mode=QuestionInputMode.single_choice(),
            options=_choices("Short home session", "Schedule gym time", "Need a lighter plan"),
            placeholder="Optional note",
        )

    if trend is not None and trend.low_protein_streak >= config.TREND_PROTEIN_STREAK_DAYS and not answered("protein-trend-blocker"):
        return Question(
            id="protein-trend-blocker",
            prompt="What's blocking protein lately?",
            input_mode=QuestionInputMode.single_choice(),
            options=_choices("No time to prep", "Not hungry", "Need easy options"),
            placeholder="Optional note",
        )

    if trend is not None and trend.logging_consistency < config.TREND_LOW_LOGGING and not answered("logging-consistency"):
        return Question(
            id="logging-consistency",
            prompt="Want a faster logging setup?",
            input_mode=QuestionInputMode.multiple_choice(),
            options=_choices("1-tap repeat meals", "Photo-first logging", "Reminder prompts"),
            placeholder="Optional note",
        )

    if protein_remaining >= config.PROTEIN_CLOSE_MIN_GAP and not answered("protein-close"):
        return Question(
            id="protein-close",
            prompt="How do you want to close protein today?",
            input_mode=QuestionInputMode.multiple_choice(),
            options=_choices("Shake", "Greek yogurt", "Lean dinner", "Need suggestions"),
            placeholder="Add food preference",
        )

    if not answered("readiness-scan"):
        return Question(
            id="readiness-scan",
            prompt="Quick readiness scan for tomorrow?",
            input_mode=QuestionInputMode.single_choice(),
            options=_choices("Push", "Balanced", "Keep it light"),
            placeholder="Optional note",
        )

    return Question(
        id="open-note",
        prompt="Anything I should adapt for tomorrow?",
        input_mode=QuestionInputMode.note(config.NOTE_MAX_LENGTH),
        placeholder="Type a quick note",
    )


# ══════════════════════════════════════════════
# BRIEF
# ══════════════════════════════════════════════

def make_brief(context: InputContext) -> Brief:
    hour = context.now.hour
    learned = None
    if context.pattern_profile is not None:
        learned = context.pattern_profile.strongest_workout_window(min_score=config.BRIEF_LEARNED_WINDOW_MIN_SCORE)
    start, end = learned.hour_range if learned else (context.workout_window_start_hour,
                                                     context.workout_window_end_hour)

    workout_done = context.has_workout_today or context.has_active_workout
    calorie_progress = _progress(context.calories_consumed, context.calorie_goal)
    protein_progress = _progress(context.protein_consumed, context.protein_goal)
    adherence = clamp((calorie_progress + protein_progress + (1.0 if workout_done else 0.0)) / 3.0)

    risk = schedule_risk(hour, start, end, context.has_workout_today, context.has_active_workout)
    readiness = recovery_readiness(context.ready_muscle_count, context.active_signals)
    t_risk = trend_risk(context.trend)

    coverage_weights = config.DATA_COVERAGE_WEIGHTS
    coverage = clamp(
        (coverage_weights["calories"] if context.calories_consumed > 0 else 0.0)
        + (coverage_weights["protein"] if context.protein_consumed > 0 else 0.0)
        + (coverage_weights["workout"] if workout_done else 0.0)
    )
    consistency = 1.0 - abs(calorie_progress - protein_progress)
    weights = config.BRIEF_CONFIDENCE_WEIGHTS
    confidence = clamp(
        weights["coverage"] * coverage
        + weights["consistency"] * consistency
        + weights["schedule"] * (1.0 - risk)
        + weights["trend"] * (1.0 - t_risk)
    )

    phase = phase_for(hour, start, end, context.has_workout_today, context.has_active_workout)
    workout_name = context.recommended_workout_name or "recommended session"
    calorie_remaining = max(context.calorie_goal - context.calories_consumed, 0)
    protein_remaining = max(context.protein_goal - context.protein_consumed, 0)

    pain_signals = [s for s in context.active_signals if s.domain is SignalDomain.PAIN]
    pain = max(pain_signals, key=lambda s: s.severity) if pain_signals else None
    recent = recent_pulse_answer(context.active_signals, context.now)

    reasons = _trend_reasons(context.trend)
    if recent is not None:
        reasons.insert(0, Reason(carryover_reason(recent), config.REASON_EMPHASIS["carryover"]))
    packet = context.context_packet
    if packet is not None:
        if packet.patterns:
            reasons.append(Reason(packet.patterns[0], config.REASON_EMPHASIS["packet_pattern"]))
        if packet.anomalies:
            reasons.append(Reason(packet.anomalies[0], config.REASON_EMPHASIS["packet_anomaly"]))
    reasons.append(Reason(f"Adherence {_percent(adherence)}%", adherence))
    reasons.append(Reason(f"Recovery {_percent(readiness)}%", readiness))
    if pain is not None:
        reasons.append(Reason(pain.title, max(config.REASON_EMPHASIS["pain_floor"], pain.severity)))
    else:
        reasons.append(Reason(f"{max(context.ready_muscle_count, 0)} muscle groups ready", readiness))

    brief = Brief(
        phase=phase,
        title=_title(phase, risk, pain, context.trend),
        message=_message(phase, risk, workout_name, calorie_remaining, protein_remaining,
                         pain, context.trend, learned, recent),
        reasons=reasons[:config.BRIEF_REASON_LIMIT],
        confidence=confidence,
        confidence_label=confidence_label(confidence),
        primary_action=_primary_action(phase, workout_name, protein_remaining, calorie_remaining, recent),
        secondary_action=_secondary_action(phase, risk, pain, context.trend, recent),
        question=_question(phase, pain, protein_remaining, risk, context.trend, context.active_signals),
        tomorrow_preview=adapted_tomorrow_preview(context.tomorrow_workout_minutes, recent),
    )
    log.log_brief(phase.value, brief.title, confidence, brief.question.id)
    return brief
