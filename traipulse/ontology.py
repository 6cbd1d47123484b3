"""
TraiPulse — Closed Vocabulary  (traipulse/ontology.py)
======================================================
Typed identifiers that replace raw strings throughout the engine.

Instead of:
    "nutrition.log_food"   →  string key
    "logFood"              →  string key
    "pain"                 →  string key

You get:
    BehaviorActionKey.LOG_FOOD
    ActionKind.LOG_FOOD
    SignalDomain.PAIN

The one mapping table between action kinds and behavior keys lives here
(ACTION_KIND_BEHAVIOR_KEYS), so every module resolves them the same way.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


# ══════════════════════════════════════════════
# BEHAVIOR EVENT VOCABULARY
# ══════════════════════════════════════════════
class BehaviorDomain(Enum):
    NUTRITION  = "nutrition"
    WORKOUT    = "workout"
    BODY       = "body"
    REMINDER   = "reminder"
    PLANNING   = "planning"
    PROFILE    = "profile"
    ENGAGEMENT = "engagement"
    GENERAL    = "general"


class BehaviorSurface(Enum):
    DASHBOARD = "dashboard"
    WORKOUTS  = "workouts"
    FOOD      = "food"
    WEIGHT    = "weight"
    CHAT      = "chat"
    PROFILE   = "profile"
    WIDGET    = "widget"
    INTENT    = "intent"
    SYSTEM    = "system"


class BehaviorOutcome(Enum):
    PRESENTED     = "presented"
    PERFORMED     = "performed"
    COMPLETED     = "completed"
    SUGGESTED_TAP = "suggested_tap"
    DISMISSED     = "dismissed"
    OPENED        = "opened"


class BehaviorActionKey(Enum):
    LOG_FOOD              = "nutrition.log_food"
    EDIT_FOOD             = "nutrition.edit_food"
    LOG_WEIGHT            = "body.log_weight"
    START_WORKOUT         = "workout.start"
    COMPLETE_WORKOUT      = "workout.complete"
    COMPLETE_REMINDER     = "reminder.complete"
    CREATE_REMINDER       = "reminder.create"
    OPEN_CALORIE_DETAIL   = "nutrition.open_calorie_detail"
    OPEN_MACRO_DETAIL     = "nutrition.open_macro_detail"
    OPEN_WEIGHT           = "body.open_weight"
    OPEN_PROFILE          = "profile.open_profile"
    OPEN_WORKOUTS         = "workout.open_workouts"
    OPEN_WORKOUT_PLAN     = "workout.open_plan"
    OPEN_RECOVERY         = "workout.open_recovery"
    REVIEW_NUTRITION_PLAN = "planning.review_nutrition_plan"
    REVIEW_WORKOUT_PLAN   = "planning.review_workout_plan"
    APPLY_PLAN_UPDATE     = "planning.apply_plan_update"


# ══════════════════════════════════════════════
# ACTION KINDS  (the "next step" catalogue)
# ══════════════════════════════════════════════
class ActionKind(Enum):
    START_WORKOUT          = "start_workout"
    START_WORKOUT_TEMPLATE = "start_workout_template"
    LOG_FOOD               = "log_food"
    LOG_FOOD_CAMERA        = "log_food_camera"
    LOG_WEIGHT             = "log_weight"
    OPEN_WEIGHT            = "open_weight"
    OPEN_CALORIE_DETAIL    = "open_calorie_detail"
    OPEN_MACRO_DETAIL      = "open_macro_detail"
    OPEN_PROFILE           = "open_profile"
    OPEN_WORKOUTS          = "open_workouts"
    OPEN_WORKOUT_PLAN      = "open_workout_plan"
    OPEN_RECOVERY          = "open_recovery"
    REVIEW_NUTRITION_PLAN  = "review_nutrition_plan"
    REVIEW_WORKOUT_PLAN    = "review_workout_plan"
    COMPLETE_REMINDER      = "complete_reminder"
    OPEN_CHAT              = "open_chat"


# Kinds without an entry here skip timing / staleness / repetition terms.
ACTION_KIND_BEHAVIOR_KEYS: dict[ActionKind, BehaviorActionKey] = {
    ActionKind.START_WORKOUT:          BehaviorActionKey.START_WORKOUT,
    ActionKind.START_WORKOUT_TEMPLATE: BehaviorActionKey.START_WORKOUT,
    ActionKind.LOG_FOOD:               BehaviorActionKey.LOG_FOOD,
    ActionKind.LOG_FOOD_CAMERA:        BehaviorActionKey.LOG_FOOD,
    ActionKind.LOG_WEIGHT:             BehaviorActionKey.LOG_WEIGHT,
    ActionKind.OPEN_WEIGHT:            BehaviorActionKey.OPEN_WEIGHT,
    ActionKind.OPEN_CALORIE_DETAIL:    BehaviorActionKey.OPEN_CALORIE_DETAIL,
    ActionKind.OPEN_MACRO_DETAIL:      BehaviorActionKey.OPEN_MACRO_DETAIL,
    ActionKind.OPEN_PROFILE:           BehaviorActionKey.OPEN_PROFILE,
    ActionKind.OPEN_WORKOUTS:          BehaviorActionKey.OPEN_WORKOUTS,
    ActionKind.OPEN_WORKOUT_PLAN:      BehaviorActionKey.OPEN_WORKOUT_PLAN,
    ActionKind.OPEN_RECOVERY:          BehaviorActionKey.OPEN_RECOVERY,
    ActionKind.REVIEW_NUTRITION_PLAN:  BehaviorActionKey.REVIEW_NUTRITION_PLAN,
    ActionKind.REVIEW_WORKOUT_PLAN:    BehaviorActionKey.REVIEW_WORKOUT_PLAN,
    ActionKind.COMPLETE_REMINDER:      BehaviorActionKey.COMPLETE_REMINDER,
}


def behavior_key_for(kind: ActionKind) -> Optional[str]:
    """ActionKind → behavior action key string, or None when unmapped."""
    key = ACTION_KIND_BEHAVIOR_KEYS.get(kind)
    return key.value if key else None


# ══════════════════════════════════════════════
# COACH SIGNALS
# ══════════════════════════════════════════════
class SignalDomain(Enum):
    PAIN      = "pain"
    RECOVERY  = "recovery"
    SLEEP     = "sleep"
    STRESS    = "stress"
    NUTRITION = "nutrition"
    SCHEDULE  = "schedule"
    GENERAL   = "general"

    @property
    def display_name(self) -> str:
        return _SIGNAL_DOMAIN_NAMES[self]


_SIGNAL_DOMAIN_NAMES: dict[SignalDomain, str] = {
    SignalDomain.PAIN:      "Pain",
    SignalDomain.RECOVERY:  "Recovery",
    SignalDomain.SLEEP:     "Sleep",
    SignalDomain.STRESS:    "Stress",
    SignalDomain.NUTRITION: "Nutrition",
    SignalDomain.SCHEDULE:  "Schedule",
    SignalDomain.GENERAL:   "General",
}


class SignalSource(Enum):
    DASHBOARD_NOTE = "dashboard_note"
    CHAT           = "chat"
    WORKOUT        = "workout"
    SYSTEM         = "system"


# ══════════════════════════════════════════════
# DAY-PART BUCKETS
# ══════════════════════════════════════════════
class TimeWindow(Enum):
    EARLY_MORNING = "early_morning"
    MORNING       = "morning"
    MIDDAY        = "midday"
    AFTERNOON     = "afternoon"
    EVENING       = "evening"
    LATE_NIGHT    = "late_night"

    @property
    def label(self) -> str:
        return _TIME_WINDOW_LABELS[self]

    @property
    def hour_range(self) -> tuple[int, int]:
        return _WORKOUT_WINDOW_HOURS[self]


_TIME_WINDOW_LABELS: dict[TimeWindow, str] = {
    TimeWindow.EARLY_MORNING: "Early Morning",
    TimeWindow.MORNING:       "Morning",
    TimeWindow.MIDDAY:        "Midday",
    TimeWindow.AFTERNOON:     "Afternoon",
    TimeWindow.EVENING:       "Evening",
    TimeWindow.LATE_NIGHT:    "Late Night",
}

# (start inclusive, end exclusive); LATE_NIGHT also owns 0-4.
_WORKOUT_WINDOW_HOURS: dict[TimeWindow, tuple[int, int]] = {
    TimeWindow.EARLY_MORNING: (5, 8),
    TimeWindow.MORNING:       (8, 11),
    TimeWindow.MIDDAY:        (11, 14),
    TimeWindow.AFTERNOON:     (14, 17),
    TimeWindow.EVENING:       (17, 21),
    TimeWindow.LATE_NIGHT:    (21, 24),
}

_MEAL_WINDOW_HOURS: dict[TimeWindow, tuple[int, int]] = {
    TimeWindow.EARLY_MORNING: (5, 9),
    TimeWindow.MORNING:       (9, 12),
    TimeWindow.MIDDAY:        (12, 15),
    TimeWindow.AFTERNOON:     (15, 18),
    TimeWindow.EVENING:       (18, 22),
    TimeWindow.LATE_NIGHT:    (22, 24),
}


def _bucket(hour: int, table: dict[TimeWindow, tuple[int, int]]) -> TimeWindow:
    for window, (start, end) in table.items():
        if window is TimeWindow.LATE_NIGHT:
            continue
        if start <= hour < end:
            return window
    return TimeWindow.LATE_NIGHT


def workout_window_for_hour(hour: int) -> TimeWindow:
    return _bucket(hour, _WORKOUT_WINDOW_HOURS)


def meal_window_for_hour(hour: int) -> TimeWindow:
    return _bucket(hour, _MEAL_WINDOW_HOURS)


# ══════════════════════════════════════════════
# BRIEF / SURFACE STATE
# ══════════════════════════════════════════════
class Phase(Enum):
    MORNING_PLAN = "morning_plan"
    ON_TRACK     = "on_track"
    AT_RISK      = "at_risk"
    RESCUE       = "rescue"
    COMPLETED    = "completed"


class QuestionMode(Enum):
    SINGLE_CHOICE   = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    SLIDER          = "slider"
    NOTE            = "note"


class ContentSource(Enum):
    MODEL_MANAGED = "model_managed"


class SurfaceType(Enum):
    COACH_NOTE     = "coach_note"
    QUICK_CHECKIN  = "quick_checkin"
    RECOVERY_PROBE = "recovery_probe"
    TIMING_NUDGE   = "timing_nudge"
    PLAN_PROPOSAL  = "plan_proposal"


class PromptKind(Enum):
    QUESTION      = "question"
    ACTION        = "action"
    PLAN_PROPOSAL = "plan_proposal"


class PlanProposalDecision(Enum):
    APPLY  = "apply"
    REVIEW = "review"
    LATER  = "later"


class SurfaceLayout(Enum):
    CINEMATIC      = "cinematic"
    CONVERSATIONAL = "conversational"
    COMPACT        = "compact"


class ActionEmphasis(Enum):
    PRIMARY   = "primary"
    SECONDARY = "secondary"


# ══════════════════════════════════════════════
# COACHING PREFERENCES
# ══════════════════════════════════════════════
class EffortMode(Enum):
    CONSISTENCY = "consistency"
    BALANCED    = "balanced"
    PUSH        = "push"


class TomorrowFocus(Enum):
    WORKOUT   = "workout"
    NUTRITION = "nutrition"
    BOTH      = "both"


class WorkoutWindowPreference(Enum):
    MORNING  = "morning"
    LUNCH    = "lunch"
    EVENING  = "evening"
    FLEXIBLE = "flexible"

    @property
    def hours(self) -> tuple[int, int]:
        return _PREFERENCE_WINDOW_HOURS[self]


_PREFERENCE_WINDOW_HOURS: dict[WorkoutWindowPreference, tuple[int, int]] = {
    WorkoutWindowPreference.MORNING:  (6, 10),
    WorkoutWindowPreference.LUNCH:    (11, 14),
    WorkoutWindowPreference.EVENING:  (17, 21),
    WorkoutWindowPreference.FLEXIBLE: (6, 22),
}


class CoachTone(Enum):
    ENCOURAGING = "encouraging"
    BALANCED    = "balanced"
    DIRECT      = "direct"

    @property
    def pulse_style_prompt(self) -> str:
        return _TONE_STYLE[self]


_TONE_STYLE: dict[CoachTone, str] = {
    CoachTone.ENCOURAGING: "Lead with what is going well, then offer one gentle next step.",
    CoachTone.BALANCED:    "Pair one observation with one practical next step.",
    CoachTone.DIRECT:      "Be brief and specific; state the next step first.",
}
