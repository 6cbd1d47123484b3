"""
TraiPulse — Data Model  (traipulse/models.py)
=============================================
Plain value types shared by every engine module.

Inputs (assembled by the caller from persisted records):
    BehaviorEvent, FoodEntry, WorkoutSession, LiveWorkout, SuggestionUsage,
    UserProfile, CoachSignalSnapshot, ReminderCandidate, DailyCoachContext

Derived (rebuilt on demand, never mutated):
    PatternProfile, TrendSnapshot, ContextPacket, InputContext

Outputs:
    DailyCoachAction, Brief (a.k.a. DailyCoachRecommendation),
    Question, PlanProposal, ContentSnapshot
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from traipulse.ontology import (
    ActionKind,
    BehaviorDomain, BehaviorOutcome, BehaviorSurface, CoachTone,
    ContentSource, Phase, PromptKind, QuestionMode,
    SignalDomain, SignalSource, SurfaceType, TimeWindow,
    EffortMode, TomorrowFocus, WorkoutWindowPreference,
)

if TYPE_CHECKING:
    from traipulse.behavior_profile import BehaviorProfileSnapshot


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


# ══════════════════════════════════════════════
# RAW INPUT RECORDS
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class BehaviorEvent:
    """One user action (or dismissal) recorded by instrumentation."""
    action_key:        str
    domain:            BehaviorDomain
    surface:           BehaviorSurface
    outcome:           BehaviorOutcome
    occurred_at:       datetime
    related_entity_id: Optional[str] = None
    metadata:          Optional[dict[str, str]] = None
    id:                str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class FoodEntry:
    name:          str
    calories:      int
    protein_grams: float
    logged_at:     datetime


@dataclass(frozen=True)
class WorkoutSession:
    logged_at: datetime
    name:      Optional[str] = None


@dataclass(frozen=True)
class LiveWorkout:
    started_at:   datetime
    completed_at: Optional[datetime] = None
    name:         Optional[str] = None


@dataclass(frozen=True)
class SuggestionUsage:
    suggestion_type: str
    tap_count:       int


@dataclass(frozen=True)
class UserProfile:
    daily_calorie_goal: int
    daily_protein_goal: int


@dataclass(frozen=True)
class CoachSignalSnapshot:
    """Short-lived externally sourced fact about the user's current state."""
    domain:     SignalDomain
    title:      str
    detail:     str
    severity:   float
    confidence: float
    source:     SignalSource
    created_at: datetime
    expires_at: datetime
    metadata:   Optional[dict[str, str]] = None

    def is_active(self, now: datetime) -> bool:
        return self.created_at <= now < self.expires_at


def active_snapshots(signals: list[CoachSignalSnapshot], now: datetime) -> list[CoachSignalSnapshot]:
    """Signals still alive at `now`, newest first."""
    alive = [s for s in signals if s.is_active(now)]
    return sorted(alive, key=lambda s: s.created_at, reverse=True)


@dataclass(frozen=True)
class ReminderCandidate:
    id:     str
    title:  str
    time:   str      # display string, e.g. "08:30 AM"
    hour:   int
    minute: int


# ══════════════════════════════════════════════
# DERIVED PROFILES
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class PatternProfile:
    """
    Longer-horizon habits from the last 28 days.
    Window score maps are keyed by TimeWindow.value, affinity by ActionKind.value.
    """
    workout_window_scores:  dict[str, float] = field(default_factory=dict)
    meal_window_scores:     dict[str, float] = field(default_factory=dict)
    common_protein_anchors: list[str]        = field(default_factory=list)
    adherence_notes:        list[str]        = field(default_factory=list)
    action_affinity:        dict[str, float] = field(default_factory=dict)
    confidence:             float            = 0.0

    @classmethod
    def empty(cls) -> "PatternProfile":
        return cls()

    def strongest_workout_window(self, min_score: float = 0.30) -> Optional[TimeWindow]:
        return _strongest(self.workout_window_scores, min_score)

    def strongest_meal_window(self, min_score: float = 0.25) -> Optional[TimeWindow]:
        return _strongest(self.meal_window_scores, min_score)

    def affinity(self, kind: ActionKind) -> float:
        return self.action_affinity.get(kind.value, 0.0)


def _strongest(scores: dict[str, float], min_score: float) -> Optional[TimeWindow]:
    # ties resolve to the earliest window of the day
    order = list(TimeWindow)
    best: Optional[tuple[TimeWindow, float]] = None
    for raw, score in scores.items():
        try:
            window = TimeWindow(raw)
        except ValueError:
            continue
        if best is None or score > best[1] or (score == best[1] and order.index(window) < order.index(best[0])):
            best = (window, score)
    if best is None or best[1] < min_score:
        return None
    return best[0]


@dataclass(frozen=True)
class TrendSnapshot:
    days_window:             int
    days_with_food_logs:     int
    protein_target_hit_days: int
    calorie_target_hit_days: int
    workout_days:            int
    low_protein_streak:      int
    days_since_workout:      int

    @property
    def logging_consistency(self) -> float:
        return self.days_with_food_logs / self.days_window if self.days_window > 0 else 0.0

    @property
    def protein_hit_rate(self) -> float:
        return self.protein_target_hit_days / self.days_window if self.days_window > 0 else 0.0

    @property
    def calorie_hit_rate(self) -> float:
        return self.calorie_target_hit_days / self.days_window if self.days_window > 0 else 0.0


@dataclass(frozen=True)
class ContextPacket:
    goal:              str
    constraints:       list[str]
    patterns:          list[str]
    anomalies:         list[str]
    suggested_actions: list[str]
    estimated_tokens:  int
    prompt_summary:    str


# ══════════════════════════════════════════════
# ACTIONS, QUESTIONS, BRIEF
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class DailyCoachAction:
    kind:     ActionKind
    title:    str
    subtitle: Optional[str] = None
    metadata: Optional[dict[str, str]] = None


@dataclass(frozen=True)
class RankedAction:
    action: DailyCoachAction
    score:  float


@dataclass(frozen=True)
class Reason:
    text:     str
    emphasis: float


@dataclass
class QuestionOption:
    title:    str
    subtitle: Optional[str] = None
    id:       Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = self.title


@dataclass(frozen=True)
class QuestionInputMode:
    mode:       QuestionMode
    slider_min: Optional[float] = None
    slider_max: Optional[float] = None
    step:       Optional[float] = None
    unit:       Optional[str]   = None
    max_length: Optional[int]   = None

    @classmethod
    def single_choice(cls) -> "QuestionInputMode":
        return cls(QuestionMode.SINGLE_CHOICE)

    @classmethod
    def multiple_choice(cls) -> "QuestionInputMode":
        return cls(QuestionMode.MULTIPLE_CHOICE)

    @classmethod
    def slider(cls, low: float, high: float, step: float, unit: Optional[str] = None) -> "QuestionInputMode":
        return cls(QuestionMode.SLIDER, slider_min=low, slider_max=high, step=step, unit=unit)

    @classmethod
    def note(cls, max_length: int) -> "QuestionInputMode":
        return cls(QuestionMode.NOTE, max_length=max_length)


@dataclass
class Question:
    id:          str
    prompt:      str
    input_mode:  QuestionInputMode
    options:     list[QuestionOption] = field(default_factory=list)
    placeholder: str = ""
    is_required: bool = False


@dataclass
class Brief:
    """Deterministic recommendation bundle rendered by the dashboard."""
    phase:            Phase
    title:            str
    message:          str
    reasons:          list[Reason]
    confidence:       float
    confidence_label: str
    primary_action:   DailyCoachAction
    secondary_action: DailyCoachAction
    question:         Question
    tomorrow_preview: str


DailyCoachRecommendation = Brief


@dataclass(frozen=True)
class RecentAnswer:
    question_id:     str
    prompt:          str
    answer:          str
    adaptation_line: str
    answered_at:     datetime


# ══════════════════════════════════════════════
# CONTEXTS
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class InputContext:
    """Everything the brief engine and context assembler look at."""
    now:                       datetime
    has_workout_today:         bool
    has_active_workout:        bool
    calories_consumed:         int
    calorie_goal:              int
    protein_consumed:          int
    protein_goal:              int
    ready_muscle_count:        int
    recommended_workout_name:  Optional[str]
    workout_window_start_hour: int
    workout_window_end_hour:   int
    active_signals:            list[CoachSignalSnapshot] = field(default_factory=list)
    tomorrow_workout_minutes:  int = 40
    trend:                     Optional[TrendSnapshot] = None
    pattern_profile:           Optional[PatternProfile] = None
    context_packet:            Optional[ContextPacket] = None
    plan_review_trigger:       Optional[str] = None
    pending_reminder_candidates:       list[ReminderCandidate] = field(default_factory=list)
    pending_reminder_candidate_scores: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class DailyCoachContext:
    """Caller-assembled snapshot of today's state; the ranker's input."""
    now:                      datetime
    has_workout_today:        bool
    has_active_workout:       bool
    calories_consumed:        int
    calorie_goal:             int
    protein_consumed:         int
    protein_goal:             int
    ready_muscle_count:       int
    recommended_workout_name: Optional[str] = None
    active_signals:           list[CoachSignalSnapshot] = field(default_factory=list)
    trend:                    Optional[TrendSnapshot] = None
    pattern_profile:          Optional[PatternProfile] = None
    behavior_profile:         Optional["BehaviorProfileSnapshot"] = None
    days_since_last_weight_log: Optional[int] = None
    weight_likely_log_times:    list[str] = field(default_factory=list)
    weight_log_routine_score:   float = 0.0
    plan_review_trigger:        Optional[str] = None
    today_opened_action_keys:    frozenset[str] = frozenset()
    today_completed_action_keys: frozenset[str] = frozenset()
    pending_reminder_candidates:       list[ReminderCandidate] = field(default_factory=list)
    pending_reminder_candidate_scores: dict[str, float] = field(default_factory=dict)
    last_active_workout_hour:   Optional[int] = None

    def to_input_context(
        self,
        window_start_hour: int,
        window_end_hour: int,
        tomorrow_workout_minutes: int,
        active_signals: Optional[list[CoachSignalSnapshot]] = None,
    ) -> InputContext:
        return InputContext(
            now=self.now,
            has_workout_today=self.has_workout_today,
            has_active_workout=self.has_active_workout,
            calories_consumed=self.calories_consumed,
            calorie_goal=self.calorie_goal,
            protein_consumed=self.protein_consumed,
            protein_goal=self.protein_goal,
            ready_muscle_count=self.ready_muscle_count,
            recommended_workout_name=self.recommended_workout_name,
            workout_window_start_hour=window_start_hour,
            workout_window_end_hour=window_end_hour,
            active_signals=list(self.active_signals if active_signals is None else active_signals),
            tomorrow_workout_minutes=tomorrow_workout_minutes,
            trend=self.trend,
            pattern_profile=self.pattern_profile,
            plan_review_trigger=self.plan_review_trigger,
            pending_reminder_candidates=list(self.pending_reminder_candidates),
            pending_reminder_candidate_scores=dict(self.pending_reminder_candidate_scores),
        )


@dataclass(frozen=True)
class DailyCoachPreferences:
    effort_mode:              EffortMode
    workout_window:           WorkoutWindowPreference
    tomorrow_focus:           TomorrowFocus
    tomorrow_workout_minutes: int


# ══════════════════════════════════════════════
# MODEL-MANAGED CONTENT
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class PlanProposal:
    id:           str
    title:        str
    rationale:    str
    impact:       str
    changes:      list[str]
    apply_label:  str = "Apply with review"
    review_label: str = "Review in Trai"
    defer_label:  str = "Not now"


@dataclass(frozen=True)
class ContentPrompt:
    kind:          PromptKind
    question:      Optional[Question] = None
    action:        Optional[DailyCoachAction] = None
    plan_proposal: Optional[PlanProposal] = None

    @classmethod
    def for_question(cls, question: Question) -> "ContentPrompt":
        return cls(PromptKind.QUESTION, question=question)

    @classmethod
    def for_action(cls, action: DailyCoachAction) -> "ContentPrompt":
        return cls(PromptKind.ACTION, action=action)

    @classmethod
    def for_plan_proposal(cls, proposal: PlanProposal) -> "ContentPrompt":
        return cls(PromptKind.PLAN_PROPOSAL, plan_proposal=proposal)


@dataclass(frozen=True)
class ContentSnapshot:
    source:       ContentSource
    surface_type: SurfaceType
    title:        str
    message:      str
    prompt:       Optional[ContentPrompt] = None


@dataclass(frozen=True)
class PulseContentRequest:
    """What the caller asks the generative collaborator for, and what the policy checks against."""
    context:             DailyCoachContext
    preferences:         DailyCoachPreferences
    tone:                CoachTone = CoachTone.BALANCED
    allow_question:      bool = True
    blocked_question_id: Optional[str] = None
