"""
TraiPulse — Tuning Constants & Settings  (traipulse/config.py)
==============================================================
Every hand-tuned number the engine uses lives here so it can be tuned or
tested without touching the algorithm shape.  Values that differ between
near-identical call sites (e.g. 2 vs 3 minimum events, 0.32 vs 0.38
window scores) are kept per call site on purpose.

Operational settings are read from the environment (.env supported):
  TRAIPULSE_LOG_LEVEL     default "INFO"
  TRAIPULSE_LOG_FILE      optional JSON log file path
  TRAIPULSE_REDIS_URL     cooldown store for deployments
  TRAIPULSE_COOLDOWN_KEY  key holding the last plan-proposal timestamp
"""
from __future__ import annotations

import os
from datetime import timedelta

from dotenv import load_dotenv

from traipulse.ontology import ActionKind, PlanProposalDecision

load_dotenv()


# ══════════════════════════════════════════════
# ENVIRONMENT
# ══════════════════════════════════════════════
LOG_LEVEL    = os.environ.get("TRAIPULSE_LOG_LEVEL", "INFO").upper()
LOG_FILE     = os.environ.get("TRAIPULSE_LOG_FILE") or None
REDIS_URL    = os.environ.get("TRAIPULSE_REDIS_URL", "redis://localhost:6379/0")
COOLDOWN_KEY = os.environ.get("TRAIPULSE_COOLDOWN_KEY", "pulse_last_plan_proposal_shown_at")


# ══════════════════════════════════════════════
# BEHAVIOR PROFILE
# ══════════════════════════════════════════════
BEHAVIOR_WINDOW_DAYS   = 45
HOURLY_MIN_EVENTS      = 3
HOURLY_NEIGHBOR_WEIGHT = 0.35
LIKELY_TIME_MAX_LABELS = 2

# (start hour inclusive, end hour exclusive, label); anything else is night
DAY_PART_LABELS: list[tuple[int, int, str]] = [
    (4,  9,  "Morning (4-9 AM)"),
    (9,  12, "Late Morning (9-12 PM)"),
    (12, 15, "Early Afternoon (12-3 PM)"),
    (15, 18, "Mid-Afternoon (3-6 PM)"),
    (18, 22, "Evening (6-10 PM)"),
]
NIGHT_LABEL = "Night (10 PM-4 AM)"


# ══════════════════════════════════════════════
# PATTERN PROFILE  (28-day window)
# ══════════════════════════════════════════════
PATTERN_WINDOW_DAYS          = 28
DEFAULT_PROTEIN_GOAL         = 140
PROTEIN_ANCHOR_MIN_GRAMS     = 20.0
PROTEIN_ANCHOR_GOAL_FRACTION = 0.2
PROTEIN_ANCHOR_LIMIT         = 3
MEAL_NAME_MAX_WORDS          = 4

LOGGING_COVERAGE_DAYS      = 14
WORKOUT_COVERAGE_DAYS      = 8
LOGGING_INCONSISTENT_BELOW = 0.45
PROTEIN_MISSED_BELOW       = 0.45
PROTEIN_MISSED_MIN_DAYS    = 4
WEEKDAY_MIN_SAMPLES        = 2
WEAK_WEEKDAY_MAX_RATE      = 0.35
ADHERENCE_NOTE_LIMIT       = 2

PATTERN_CONFIDENCE_WEIGHTS = {
    "logging":  0.45,
    "workout":  0.30,
    "affinity": 0.25,
}

LEARNED_WINDOW_LIMIT     = 2
LEARNED_WINDOW_MIN_SCORE = 0.18

# Ordered keyword rules: first match wins.  Each rule is
# (all keywords that must appear, any-of keywords or None, kind).
AFFINITY_KEYWORD_RULES: list[tuple[tuple[str, ...], tuple[str, ...], ActionKind]] = [
    ((),                     ("reminder",),                  ActionKind.COMPLETE_REMINDER),
    ((),                     ("log_", "meal", "protein"),    ActionKind.LOG_FOOD),
    ((),                     ("recovery",),                  ActionKind.OPEN_RECOVERY),
    (("review", "workout"),  (),                             ActionKind.REVIEW_WORKOUT_PLAN),
    (("review",),            (),                             ActionKind.REVIEW_NUTRITION_PLAN),
    (("plan", "workout"),    (),                             ActionKind.REVIEW_WORKOUT_PLAN),
    (("plan",),              (),                             ActionKind.REVIEW_NUTRITION_PLAN),
    ((),                     ("workout", "train"),           ActionKind.START_WORKOUT),
    ((),                     ("calorie",),                   ActionKind.OPEN_CALORIE_DETAIL),
    ((),                     ("macro",),                     ActionKind.OPEN_MACRO_DETAIL),
    ((),                     ("nutrition", "profile", "setting"), ActionKind.OPEN_PROFILE),
]
AFFINITY_FALLBACK_KIND = ActionKind.OPEN_PROFILE


# ══════════════════════════════════════════════
# TREND SNAPSHOT  (7-day window)
# ══════════════════════════════════════════════
TREND_WINDOW_DAYS        = 7
PROTEIN_HIT_FRACTION     = 0.8
LOW_PROTEIN_FRACTION     = 0.65
CALORIE_HIT_MIN_FRACTION = 0.8
CALORIE_HIT_MAX_FRACTION = 1.15
DAYS_SINCE_WORKOUT_CAP   = 30


# ══════════════════════════════════════════════
# CONTEXT PACKET
# ══════════════════════════════════════════════
DEFAULT_TOKEN_BUDGET = 700
TOKENS_PER_WORD      = 1.25

GOAL_PROTEIN_GAP = 30
GOAL_CALORIE_GAP = 450

CONSTRAINT_SEVERITY_WEIGHT   = 0.7
CONSTRAINT_CONFIDENCE_WEIGHT = 0.3
WINDOW_PASSED_UTILITY        = 0.8

PACKET_PATTERN_WORKOUT_MIN_SCORE = 0.32
PACKET_PATTERN_MEAL_MIN_SCORE    = 0.28
ADHERENCE_NOTE_UTILITY           = 0.58
PACKET_ACTION_PROTEIN_GAP        = 25

PACKET_LIMITS = {
    "constraints": 2,
    "patterns":    3,
    "anomalies":   2,
    "actions":     2,
}

# Snippet base utilities and their affinity multipliers
PACKET_ACTION_UTILITY: dict[str, tuple[float, float]] = {
    "start_workout":  (0.74, 0.22),
    "log_protein":    (0.68, 0.22),
    "pain_adjust":    (0.72, 0.18),
    "refine_plan":    (0.55, 0.24),
    "plan_review":    (0.76, 0.20),
}
PACKET_REMINDER_UTILITY = (0.70, 0.20)

# (window score weight, profile confidence weight)
PACKET_WORKOUT_PATTERN_WEIGHTS = (0.90, 0.10)
PACKET_MEAL_PATTERN_WEIGHTS    = (0.85, 0.15)
# (base, per-anchor increment, anchor count cap)
PACKET_ANCHOR_PATTERN_UTILITY  = (0.62, 0.08, 3)
PACKET_ANCHORS_SHOWN           = 2

# (trigger at or above, base, per-day increment, day cap)
LOW_PROTEIN_STREAK_ANOMALY = (2, 0.62, 0.08, 4)
WORKOUT_GAP_ANOMALY        = (3, 0.60, 0.05, 6)
# (trigger below, base, penalty per unit of consistency)
LOW_LOGGING_ANOMALY        = (0.5, 0.72, 0.5)


# ══════════════════════════════════════════════
# ACTION RANKER
# ══════════════════════════════════════════════
DEFAULT_RANK_LIMIT = 6

TIMING_MIN_EVENTS    = 2
TIMING_BOOST_FACTOR  = 0.22
TIMING_BOOST_CAP     = 0.16

WORKOUT_HOURS_START = 6
WORKOUT_HOURS_END   = 21
WEIGHT_LOG_HOURS    = (4, 12)
# Lower-cased markers of a morning weigh-in habit label
WEIGHT_MORNING_LABELS = ("morning (4-9 am)", "late morning (9-12 pm)")
WEIGHT_ROUTINE_SCORE_THRESHOLD = 0.42
WEIGHT_REVIEW_MIN_DAYS         = 6
RANKER_PROTEIN_GAP             = 25
WEIGHT_LOG_STALE_DAYS          = 2
PLAN_REVIEW_WORKOUT_TRIGGER    = "plan_age"

# Base utility of each ranker candidate before boosts and penalties
RANKER_BASE_UTILITY: dict[ActionKind, float] = {
    ActionKind.COMPLETE_REMINDER:     0.67,
    ActionKind.LOG_WEIGHT:            0.71,
    ActionKind.OPEN_WEIGHT:           0.60,
    ActionKind.START_WORKOUT:         0.68,
    ActionKind.OPEN_WORKOUTS:         0.46,
    ActionKind.OPEN_WORKOUT_PLAN:     0.48,
    ActionKind.LOG_FOOD:              0.62,
    ActionKind.LOG_FOOD_CAMERA:       0.58,
    ActionKind.OPEN_CALORIE_DETAIL:   0.44,
    ActionKind.OPEN_MACRO_DETAIL:     0.42,
    ActionKind.OPEN_RECOVERY:         0.66,
    ActionKind.OPEN_PROFILE:          0.34,
    ActionKind.REVIEW_WORKOUT_PLAN:   0.80,
    ActionKind.REVIEW_NUTRITION_PLAN: 0.80,
}
START_WORKOUT_OFF_WINDOW_UTILITY = 0.56

# Multiplier on the learned action affinity; kinds not listed get none
RANKER_AFFINITY_WEIGHT: dict[ActionKind, float] = {
    ActionKind.COMPLETE_REMINDER:     0.10,
    ActionKind.START_WORKOUT:         0.24,
    ActionKind.OPEN_WORKOUTS:         0.20,
    ActionKind.OPEN_WORKOUT_PLAN:     0.20,
    ActionKind.LOG_FOOD:              0.18,
    ActionKind.LOG_FOOD_CAMERA:       0.16,
    ActionKind.OPEN_CALORIE_DETAIL:   0.20,
    ActionKind.OPEN_MACRO_DETAIL:     0.20,
    ActionKind.OPEN_RECOVERY:         0.20,
    ActionKind.OPEN_PROFILE:          0.20,
    ActionKind.REVIEW_WORKOUT_PLAN:   0.18,
    ActionKind.REVIEW_NUTRITION_PLAN: 0.18,
}
REMINDER_SCORE_WEIGHT = 0.2

# (per-day increment, day cap, routine score weight)
WEIGHT_LOG_STALENESS    = (0.02, 7, 0.10)
WEIGHT_REVIEW_STALENESS = (0.02, 10, 0.08)

# (grams per unit of boost, boost cap)
PROTEIN_GAP_BOOST: dict[ActionKind, tuple[float, float]] = {
    ActionKind.LOG_FOOD:        (100.0, 0.16),
    ActionKind.LOG_FOOD_CAMERA: (120.0, 0.12),
}

# (per-day increment, cap)
STALENESS_BOOST: dict[ActionKind, tuple[float, float]] = {
    ActionKind.LOG_WEIGHT:             (0.03,  0.18),
    ActionKind.OPEN_WEIGHT:            (0.03,  0.18),
    ActionKind.REVIEW_NUTRITION_PLAN:  (0.025, 0.14),
    ActionKind.REVIEW_WORKOUT_PLAN:    (0.025, 0.14),
    ActionKind.OPEN_WORKOUT_PLAN:      (0.025, 0.14),
    ActionKind.OPEN_PROFILE:           (0.025, 0.14),
    ActionKind.LOG_FOOD:               (0.015, 0.08),
    ActionKind.LOG_FOOD_CAMERA:        (0.015, 0.08),
    ActionKind.START_WORKOUT:          (0.018, 0.10),
    ActionKind.START_WORKOUT_TEMPLATE: (0.018, 0.10),
    ActionKind.OPEN_CALORIE_DETAIL:    (0.012, 0.07),
    ActionKind.OPEN_MACRO_DETAIL:      (0.012, 0.07),
    ActionKind.OPEN_WORKOUTS:          (0.012, 0.07),
    ActionKind.OPEN_RECOVERY:          (0.012, 0.07),
    ActionKind.COMPLETE_REMINDER:      (0.012, 0.07),
}

# (penalty when completed today, penalty when only opened today)
REPETITION_PENALTY: dict[ActionKind, tuple[float, float]] = {
    ActionKind.LOG_WEIGHT:             (0.42, 0.26),
    ActionKind.OPEN_WEIGHT:            (0.42, 0.26),
    ActionKind.START_WORKOUT:          (0.36, 0.20),
    ActionKind.START_WORKOUT_TEMPLATE: (0.36, 0.20),
    ActionKind.LOG_FOOD:               (0.08, 0.04),
    ActionKind.LOG_FOOD_CAMERA:        (0.08, 0.04),
    ActionKind.COMPLETE_REMINDER:      (0.20, 0.10),
    ActionKind.OPEN_CALORIE_DETAIL:    (0.24, 0.16),
    ActionKind.OPEN_MACRO_DETAIL:      (0.24, 0.16),
    ActionKind.OPEN_PROFILE:           (0.24, 0.16),
    ActionKind.OPEN_WORKOUTS:          (0.24, 0.16),
    ActionKind.OPEN_WORKOUT_PLAN:      (0.24, 0.16),
    ActionKind.OPEN_RECOVERY:          (0.24, 0.16),
    ActionKind.REVIEW_NUTRITION_PLAN:  (0.24, 0.16),
    ActionKind.REVIEW_WORKOUT_PLAN:    (0.24, 0.16),
}
REMINDER_MULTI_CANDIDATE_PENALTY = (0.08, 0.04)


# ══════════════════════════════════════════════
# BRIEF ENGINE
# ══════════════════════════════════════════════
BRIEF_LEARNED_WINDOW_MIN_SCORE = 0.38
BRIEF_REASON_LIMIT             = 3

SCHEDULE_RISK_DONE         = 0.05
SCHEDULE_RISK_BEFORE       = 0.25
SCHEDULE_RISK_WINDOW_BASE  = 0.35
SCHEDULE_RISK_WINDOW_SPAN  = 0.45
SCHEDULE_RISK_MISSED       = 0.88

READY_MUSCLE_TOTAL    = 8.0
PAIN_READINESS_WEIGHT  = 0.35
SLEEP_READINESS_WEIGHT = 0.20

NO_TREND_RISK            = 0.45
TREND_LOGGING_WEIGHT     = 0.35
TREND_PROTEIN_WEIGHT     = 0.35
# (minimum days, penalty) checked top-down; fallback penalty last
WORKOUT_STALENESS_TIERS  = [(5, 0.30), (3, 0.18)]
WORKOUT_STALENESS_FLOOR  = 0.05
PROTEIN_STREAK_TIERS     = [(3, 0.20), (2, 0.10)]

DATA_COVERAGE_WEIGHTS = {"calories": 0.45, "protein": 0.35, "workout": 0.20}
BRIEF_CONFIDENCE_WEIGHTS = {
    "coverage":    0.40,
    "consistency": 0.25,
    "schedule":    0.20,
    "trend":       0.15,
}
CONFIDENCE_LABEL_THRESHOLDS = (0.34, 0.67)

QUESTION_TAG_FORMAT   = "[PulseQuestion:{question_id}]"
ADAPTATION_TAG_FORMAT = "[PulseAdaptation:{line}]"
NOTE_MAX_LENGTH       = 180
PROTEIN_CLOSE_MIN_GAP = 35

RESCUE_URGENT_RISK    = 0.9
RESCUE_QUESTION_RISK  = 0.8

# Trend thresholds shared by copy, reasons, actions and questions
TREND_PROTEIN_STREAK_DAYS      = 2
TREND_LONG_PROTEIN_STREAK_DAYS = 3
TREND_WORKOUT_GAP_DAYS         = 3
TREND_REBUILD_GAP_DAYS         = 4
TREND_LOW_LOGGING              = 0.5

# Emphasis of fixed-weight reasons; pain_floor is a minimum
REASON_EMPHASIS = {
    "carryover":      0.84,
    "packet_pattern": 0.72,
    "packet_anomaly": 0.78,
    "protein_streak": 0.80,
    "workout_gap":    0.82,
    "pain_floor":     0.65,
}


# ══════════════════════════════════════════════
# RESPONSE INTERPRETER
# ══════════════════════════════════════════════
NO_FOOD_CUES = (
    "done eating", "no more food", "finished eating", "not eating",
    "already ate", "no food", "not hungry",
)
LIGHT_SESSION_CUES = ("keep it light", "lighter", "15 min", "recovery walk", "short")
PUSH_SESSION_CUES  = ("push", "30 min full")
TOMORROW_MINUTES_FLOOR = 15
TOMORROW_MINUTES_CAP   = 75
ANSWER_SIGNAL_LIFETIME = timedelta(hours=36)
# (lighter answer shortens by, push answer lengthens by) in minutes
TOMORROW_MINUTES_ADJUST = (15, 10)

# Pain slider answers: unreadable level, scale top, severity that keeps tomorrow pain-safe
PAIN_DEFAULT_LEVEL    = 5.0
PAIN_SCALE_MAX        = 10.0
PAIN_SAFE_SEVERITY    = 0.5

# Severity of the check-in signal, keyed by the adaptation chosen
ANSWER_SEVERITY = {
    "rescue_quick":       0.50,
    "rescue_full":        0.40,
    "rescue_walk":        0.50,
    "rescue_other":       0.45,
    "protein_no_food":    0.45,
    "protein_close":      0.40,
    "workout_lighter":    0.50,
    "workout_other":      0.40,
    "logging":            0.30,
    "readiness_light":    0.60,
    "readiness_push":     0.20,
    "readiness_balanced": 0.35,
    "note":               0.30,
}
PAIN_ANSWER_CONFIDENCE = 0.80
ANSWER_CONFIDENCE      = 0.75
NOTE_PREVIEW_LENGTH    = 80

DECISION_SIGNAL_SEVERITY = {
    PlanProposalDecision.APPLY:  0.45,
    PlanProposalDecision.REVIEW: 0.45,
    PlanProposalDecision.LATER:  0.25,
}
DECISION_SIGNAL_CONFIDENCE = 0.85
DECISION_SIGNAL_LIFETIME   = timedelta(days=5)


# ══════════════════════════════════════════════
# ADAPTIVE PREFERENCES
# ══════════════════════════════════════════════
PREFERENCE_WINDOW_MIN_SCORE = 0.34
# Clock fallback: morning before, lunch before, evening through
PREFERENCE_CLOCK_HOURS      = (11, 16, 21)
PUSH_MIN_WORKOUT_DAYS       = 4
PUSH_MIN_PROTEIN_HIT_RATE   = 0.6
# Tomorrow session minutes: after a workout today, after a long gap, otherwise
TOMORROW_MINUTES_AFTER_WORKOUT = 30
TOMORROW_MINUTES_AFTER_GAP     = 25
TOMORROW_MINUTES_DEFAULT       = 40


# ══════════════════════════════════════════════
# POLICY ENGINE
# ══════════════════════════════════════════════
PLAN_PROPOSAL_COOLDOWN       = timedelta(days=7)
EVIDENCE_LOW_PROTEIN_STREAK  = 3
EVIDENCE_WORKOUT_GAP_DAYS    = 4
EVIDENCE_SIGNAL_SEVERITY     = 0.65
EVIDENCE_SIGNAL_CONFIDENCE   = 0.6
POLICY_VERSION               = "pulse_policy_v2"
# Lease on the claim key held while one engine checks and stamps the cooldown
COOLDOWN_CLAIM_LEASE         = timedelta(seconds=5)
POST_WORKOUT_QUESTION_ID     = "readiness-post-workout"
POST_WORKOUT_WINDOW_HOURS    = 3

DEFAULT_APPLY_LABEL  = "Apply with review"
DEFAULT_REVIEW_LABEL = "Review in Trai"
DEFAULT_DEFER_LABEL  = "Not now"
PLAN_CHANGE_LIMIT    = 3


# ══════════════════════════════════════════════
# SURFACE COMPOSER
# ══════════════════════════════════════════════
# (start hour inclusive, end hour exclusive, label); other hours are night
SURFACE_TIME_BANDS: list[tuple[int, int, str]] = [
    (5,  11, "Morning pulse"),
    (11, 16, "Midday pulse"),
    (16, 21, "Evening pulse"),
]
SURFACE_NIGHT_BAND = "Night pulse"
