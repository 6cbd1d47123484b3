"""
TraiPulse — Pattern & Trend Extractor  (traipulse/pattern_service.py)
=====================================================================
Scans nutrition / workout history and produces two derived views:

  PatternProfile   (28-day window)
    - workout / meal time-of-day distributions over 6 day-part buckets
    - recurring high-protein foods ("protein anchors")
    - up to 2 adherence notes ("Logging is inconsistent lately")
    - per-action affinity from suggestion taps
    - overall confidence

  TrendSnapshot    (N-day window, default 7)
    - days with logs, protein / calorie target hit days
    - workout days, current low-protein streak, days since last workout

Public API:
  build_pattern_profile(now, food_entries, workouts, live_workouts,
                        suggestion_usage, user_profile) -> PatternProfile
  build_trend_snapshot(now, food_entries, workouts, live_workouts,
                       user_profile, days_window=7) -> TrendSnapshot | None
  learned_workout_time_windows(profile, max_windows=2, min_score=0.18) -> list[str]
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Optional

from traipulse import config
from traipulse.models import (
    FoodEntry, LiveWorkout, PatternProfile, SuggestionUsage,
    TrendSnapshot, UserProfile, WorkoutSession, clamp,
)
from traipulse.ontology import (
    ActionKind, TimeWindow, meal_window_for_hour, workout_window_for_hour,
)
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)

_DOW_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday",
              "Friday", "Saturday", "Sunday"]


# ──────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────

def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def _workout_moments(workouts: list[WorkoutSession], live_workouts: list[LiveWorkout]) -> list[datetime]:
    return [w.logged_at for w in workouts] + [w.started_at for w in live_workouts]


def _normalized_scores(counts: dict[TimeWindow, int], total: int) -> dict[str, float]:
    """Bucket counts → probability distribution keyed by window value, zeros omitted."""
    if total <= 0:
        return {}
    result: dict[str, float] = {}
    for window in TimeWindow:
        value = counts.get(window, 0) / total
        if value > 0:
            result[window.value] = value
    return result


def normalized_meal_name(raw: str) -> str:
    """'Chicken & Rice Bowl (large)' → 'chicken rice bowl large'"""
    cleaned = "".join(ch if ch.isalnum() or ch == " " else " " for ch in raw.lower())
    words = [w for w in cleaned.split(" ") if len(w) > 1]
    return " ".join(words[:config.MEAL_NAME_MAX_WORDS]).strip()


def _title_case(text: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in text.split(" "))


def action_kind_for_suggestion(suggestion_type: str) -> ActionKind:
    """Free-text suggestion type → action kind, first matching keyword rule wins."""
    suggestion = suggestion_type.lower()
    for required, any_of, kind in config.AFFINITY_KEYWORD_RULES:
        if not all(k in suggestion for k in required):
            continue
        if any_of and not any(k in suggestion for k in any_of):
            continue
        return kind
    return config.AFFINITY_FALLBACK_KIND


# ══════════════════════════════════════════════
# PATTERN PROFILE
# ══════════════════════════════════════════════

def build_pattern_profile(
    now: datetime,
    food_entries: list[FoodEntry],
    workouts: list[WorkoutSession],
    live_workouts: list[LiveWorkout],
    suggestion_usage: list[SuggestionUsage],
    user_profile: Optional[UserProfile],
) -> PatternProfile:
    start = _start_of_day(now) - timedelta(days=config.PATTERN_WINDOW_DAYS - 1)
    end = now
    protein_goal = user_profile.daily_protein_goal if user_profile else None

    window_entries = [e for e in food_entries if start <= e.logged_at <= end]
    window_workouts = [m for m in _workout_moments(workouts, live_workouts) if start <= m <= end]

    workout_buckets: dict[TimeWindow, int] = defaultdict(int)
    for moment in window_workouts:
        workout_buckets[workout_window_for_hour(moment.hour)] += 1

    meal_buckets: dict[TimeWindow, int] = defaultdict(int)
    for entry in window_entries:
        meal_buckets[meal_window_for_hour(entry.logged_at.hour)] += 1

    logging_coverage, workout_coverage, notes = _adherence(window_entries, window_workouts, protein_goal)
    affinity = build_action_affinity(suggestion_usage)

    weights = config.PATTERN_CONFIDENCE_WEIGHTS
    confidence = clamp(
        weights["logging"] * logging_coverage
        + weights["workout"] * workout_coverage
        + weights["affinity"] * min(sum(affinity.values()), 1.0)
    )

    profile = PatternProfile(
        workout_window_scores=_normalized_scores(workout_buckets, len(window_workouts)),
        meal_window_scores=_normalized_scores(meal_buckets, len(window_entries)),
        common_protein_anchors=top_protein_anchors(window_entries, protein_goal),
        adherence_notes=notes,
        action_affinity=affinity,
        confidence=confidence,
    )
    log.debug(
        "Pattern profile built",
        food_entries=len(window_entries),
        workouts=len(window_workouts),
        confidence=round(confidence, 3),
    )
    return profile


def top_protein_anchors(entries: list[FoodEntry], protein_goal: Optional[int]) -> list[str]:
    threshold = max(
        config.PROTEIN_ANCHOR_MIN_GRAMS,
        (protein_goal if protein_goal is not None else config.DEFAULT_PROTEIN_GOAL)
        * config.PROTEIN_ANCHOR_GOAL_FRACTION,
    )

    stats: dict[str, list[float]] = {}
    for entry in entries:
        if entry.protein_grams < threshold:
            continue
        key = normalized_meal_name(entry.name)
        if not key:
            continue
        count, total = stats.get(key, (0, 0.0))
        stats[key] = [count + 1, total + entry.protein_grams]

    ranked = sorted(stats.items(), key=lambda kv: (-kv[1][0], -kv[1][1], kv[0]))
    return [_title_case(key) for key, _ in ranked[:config.PROTEIN_ANCHOR_LIMIT]]


def _adherence(
    entries: list[FoodEntry],
    workout_moments: list[datetime],
    protein_goal: Optional[int],
) -> tuple[float, float, list[str]]:
    """Returns (logging coverage, workout coverage, notes)."""
    target = float(max(protein_goal if protein_goal is not None else config.DEFAULT_PROTEIN_GOAL, 1))
    hit_threshold = target * config.PROTEIN_HIT_FRACTION

    protein_by_day: dict[date, float] = defaultdict(float)
    for entry in entries:
        protein_by_day[entry.logged_at.date()] += entry.protein_grams

    logged_days = len(protein_by_day)
    logging_coverage = clamp(logged_days / config.LOGGING_COVERAGE_DAYS)
    workout_coverage = clamp(len({m.date() for m in workout_moments}) / config.WORKOUT_COVERAGE_DAYS)

    weekday_stats: dict[int, list[int]] = defaultdict(lambda: [0, 0])   # weekday → [hits, total]
    hit_days = 0
    for day, protein in protein_by_day.items():
        stat = weekday_stats[day.weekday()]
        stat[1] += 1
        if protein >= hit_threshold:
            stat[0] += 1
            hit_days += 1

    notes: list[str] = []
    if logging_coverage < config.LOGGING_INCONSISTENT_BELOW:
        notes.append("Logging is inconsistent lately")

    hit_rate = hit_days / logged_days if logged_days > 0 else 0.0
    if hit_rate < config.PROTEIN_MISSED_BELOW and logged_days >= config.PROTEIN_MISSED_MIN_DAYS:
        notes.append("Protein target is often missed")

    weak = _weakest_weekday(weekday_stats)
    if weak is not None:
        notes.append(f"{weak} tends to be your hardest consistency day")

    return logging_coverage, workout_coverage, notes[:config.ADHERENCE_NOTE_LIMIT]


def _weakest_weekday(stats: dict[int, list[int]]) -> Optional[str]:
    candidates = [
        (hits / total, weekday)
        for weekday, (hits, total) in stats.items()
        if total >= config.WEEKDAY_MIN_SAMPLES
    ]
    if not candidates:
        return None
    rate, weekday = min(candidates)
    if rate > config.WEAK_WEEKDAY_MAX_RATE:
        return None
    return _DOW_NAMES[weekday]


def build_action_affinity(suggestion_usage: list[SuggestionUsage]) -> dict[str, float]:
    scores: dict[ActionKind, float] = defaultdict(float)
    for usage in suggestion_usage:
        scores[action_kind_for_suggestion(usage.suggestion_type)] += float(max(usage.tap_count, 0))

    total = sum(scores.values())
    if total <= 0:
        return {}
    return {kind.value: clamp(value / total) for kind, value in scores.items()}


def learned_workout_time_windows(
    profile: Optional[PatternProfile],
    max_windows: int = config.LEARNED_WINDOW_LIMIT,
    min_score: float = config.LEARNED_WINDOW_MIN_SCORE,
) -> list[str]:
    """Strongest workout windows as display labels, e.g. 'Evening (17-21)'."""
    if profile is None or max_windows <= 0:
        return []

    ranked: list[tuple[TimeWindow, float]] = []
    for raw, score in profile.workout_window_scores.items():
        try:
            window = TimeWindow(raw)
        except ValueError:
            continue
        if score >= min_score:
            ranked.append((window, score))
    ranked.sort(key=lambda ws: (-ws[1], ws[0].value))

    labels = []
    for window, _ in ranked[:max_windows]:
        start, end = window.hour_range
        labels.append(f"{window.label} ({start}-{end})")
    return labels


# ══════════════════════════════════════════════
# TREND SNAPSHOT
# ══════════════════════════════════════════════

def build_trend_snapshot(
    now: datetime,
    food_entries: list[FoodEntry],
    workouts: list[WorkoutSession],
    live_workouts: list[LiveWorkout],
    user_profile: Optional[UserProfile],
    days_window: int = config.TREND_WINDOW_DAYS,
) -> Optional[TrendSnapshot]:
    if days_window <= 0 or user_profile is None:
        return None

    end_day = now.date()
    start_day = end_day - timedelta(days=days_window - 1)

    # day → [calories, protein, entries]
    by_day: dict[date, list] = defaultdict(lambda: [0, 0.0, 0])
    for entry in food_entries:
        day = entry.logged_at.date()
        if start_day <= day <= end_day:
            totals = by_day[day]
            totals[0] += entry.calories
            totals[1] += entry.protein_grams
            totals[2] += 1

    protein_target = float(max(user_profile.daily_protein_goal, 1))
    protein_hit = protein_target * config.PROTEIN_HIT_FRACTION
    protein_low = protein_target * config.LOW_PROTEIN_FRACTION
    calorie_goal = max(user_profile.daily_calorie_goal, 1)
    calorie_min = int(calorie_goal * config.CALORIE_HIT_MIN_FRACTION)
    calorie_max = int(calorie_goal * config.CALORIE_HIT_MAX_FRACTION)

    logged_days = protein_days = calorie_days = 0
    for offset in range(days_window):
        calories, protein, entries = by_day.get(start_day + timedelta(days=offset), (0, 0.0, 0))
        if entries > 0:
            logged_days += 1
        if protein >= protein_hit:
            protein_days += 1
        if entries > 0 and calorie_min <= calories <= calorie_max:
            calorie_days += 1

    streak = 0
    for offset in range(days_window):
        protein = by_day.get(end_day - timedelta(days=offset), (0, 0.0, 0))[1]
        if protein < protein_low:
            streak += 1
        else:
            break

    workout_days = {m.date() for m in _workout_moments(workouts, live_workouts)}
    in_window = sum(1 for d in workout_days if start_day <= d <= end_day)
    past = [d for d in workout_days if d <= end_day]
    if past:
        days_since = min(max((end_day - max(past)).days, 0), config.DAYS_SINCE_WORKOUT_CAP)
    else:
        days_since = config.DAYS_SINCE_WORKOUT_CAP

    return TrendSnapshot(
        days_window=days_window,
        days_with_food_logs=logged_days,
        protein_target_hit_days=protein_days,
        calorie_target_hit_days=calorie_days,
        workout_days=in_window,
        low_protein_streak=streak,
        days_since_workout=days_since,
    )
