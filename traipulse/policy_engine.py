"""
TraiPulse — Policy Engine  (traipulse/policy_engine.py)
=======================================================
Safety rails applied to every piece of model-managed Pulse content before
it reaches the dashboard.  Never raises: a rule that cannot be satisfied
downgrades the surface instead.

Rules, in order:
  1. complete-reminder actions must point at a pending reminder
     (dropped otherwise; kept ones are stamped with the policy version)
  2. a start-workout action becomes a morning weigh-in nudge when the
     user's weigh-in routine matches right now
  3. plan proposals need multi-day evidence  → else quick check-in question
     and must respect a 7-day cooldown      → else plain coach note
  4. a plan_proposal surface without a proposal → quick check-in
  5. no prompt shortly after a finished workout → post-workout readiness question

The cooldown's last-shown timestamp is the only state.  It lives in an
injected key/value store and is read-modified-written while holding both a
module lock and a leased claim key (SET NX PX on redis).
"""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from traipulse import config
from traipulse.action_ranker import should_suggest_weight_log
from traipulse.exceptions import StateStoreError
from traipulse.models import (
    ContentPrompt, ContentSnapshot, DailyCoachAction, DailyCoachContext,
    PlanProposal, PulseContentRequest, Question, QuestionInputMode, QuestionOption,
)
from traipulse.ontology import ActionKind, PromptKind, SignalDomain, SurfaceType
from traipulse.response_interpreter import has_recent_question_answer
from traipulse.state_store import InMemoryStateStore
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)

_EVIDENCE_DOMAINS = (SignalDomain.PAIN, SignalDomain.RECOVERY, SignalDomain.NUTRITION)
_COOLDOWN_LOCK = threading.Lock()


# ──────────────────────────────────────────────
# RULE HELPERS
# ──────────────────────────────────────────────

def validate_complete_reminder(action: DailyCoachAction, context: DailyCoachContext) -> Optional[DailyCoachAction]:
    """The action itself when it targets a pending reminder, else None."""
    if action.kind is not ActionKind.COMPLETE_REMINDER:
        return action

    candidates = context.pending_reminder_candidates
    if not candidates:
        return None

    reminder_id = ((action.metadata or {}).get("reminder_id") or "").strip()
    if reminder_id and reminder_id in {c.id for c in candidates}:
        return action
    return action if len(candidates) == 1 else None


def has_plan_proposal_evidence(context: DailyCoachContext) -> bool:
    trend = context.trend
    if trend is not None and (
        trend.low_protein_streak >= config.EVIDENCE_LOW_PROTEIN_STREAK
        or trend.days_since_workout >= config.EVIDENCE_WORKOUT_GAP_DAYS
    ):
        return True
    return any(
        s.domain in _EVIDENCE_DOMAINS
        and s.severity >= config.EVIDENCE_SIGNAL_SEVERITY
        and s.confidence >= config.EVIDENCE_SIGNAL_CONFIDENCE
        for s in context.active_signals
    )


def plan_checkin_question(proposal: PlanProposal) -> Question:
    return Question(
        id=f"plan_checkin_{proposal.id}",
        prompt="Should we review your plan this week based on recent trends?",
        input_mode=QuestionInputMode.single_choice(),
        options=[QuestionOption("Yes, review it"), QuestionOption("Not now")],
        placeholder="Add context",
        is_required=True,
    )


def post_workout_question() -> Question:
    return Question(
        id=config.POST_WORKOUT_QUESTION_ID,
        prompt="How did that session feel?",
        input_mode=QuestionInputMode.single_choice(),
        options=[
            QuestionOption("Felt great"),
            QuestionOption("Solid"),
            QuestionOption("Drained"),
            QuestionOption("Something felt off"),
        ],
        placeholder="Optional note",
    )


def _weight_routine_matches(context: DailyCoachContext, now: datetime) -> bool:
    if not should_suggest_weight_log(context, now.hour):
        return False
    morning_label = any(
        marker in label.lower()
        for label in context.weight_likely_log_times
        for marker in config.WEIGHT_MORNING_LABELS
    )
    return morning_label or context.weight_log_routine_score >= config.WEIGHT_ROUTINE_SCORE_THRESHOLD


def _post_workout_eligible(request: PulseContentRequest, now: datetime) -> bool:
    context = request.context
    if not request.allow_question or request.blocked_question_id == config.POST_WORKOUT_QUESTION_ID:
        return False
    if not context.has_workout_today or context.has_active_workout:
        return False
    if context.last_active_workout_hour is None:
        return False
    hours_since = (now.hour - context.last_active_workout_hour) % 24
    if hours_since > config.POST_WORKOUT_WINDOW_HOURS:
        return False
    return not has_recent_question_answer(config.POST_WORKOUT_QUESTION_ID, context.active_signals)


# ══════════════════════════════════════════════
# ENGINE
# ══════════════════════════════════════════════

class PolicyEngine:
    """Applies the Pulse safety rules.

    The cooldown check is serialized across engines in this process by a
    module lock, and across processes by a leased claim key in the store.
    """

    def __init__(self, store=None, cooldown_key: str = config.COOLDOWN_KEY,
                 cooldown: timedelta = config.PLAN_PROPOSAL_COOLDOWN):
        self.store = store if store is not None else InMemoryStateStore()
        self.cooldown_key = cooldown_key
        self.claim_key = f"{cooldown_key}:claim"
        self.cooldown = cooldown

    # ── cooldown state ──

    def _last_shown(self) -> float:
        try:
            value = self.store.get(self.cooldown_key)
        except StateStoreError as e:
            log.error("Cooldown store unreadable; treating proposal as never shown", **e.to_dict())
            return 0.0
        try:
            return float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            log.warning("Ignoring malformed cooldown timestamp", key=self.cooldown_key)
            return 0.0

    def _mark_shown(self, now: datetime):
        try:
            self.store.set(self.cooldown_key, now.timestamp())
        except StateStoreError as e:
            log.error("Cooldown store write failed", **e.to_dict())

    def _acquire_claim(self) -> bool:
        try:
            return bool(self.store.set_if_absent(self.claim_key, True, config.COOLDOWN_CLAIM_LEASE))
        except StateStoreError as e:
            log.error("Cooldown claim unavailable; relying on the process lock", **e.to_dict())
            return True

    def _release_claim(self):
        try:
            self.store.delete(self.claim_key)
        except StateStoreError as e:
            log.warning("Cooldown claim release failed; lease will expire", **e.to_dict())

    def claim_plan_proposal_slot(self, now: datetime) -> bool:
        """True (and records `now`) when no proposal was shown within the cooldown."""
        with _COOLDOWN_LOCK:
            if not self._acquire_claim():
                log.info("Cooldown claim held by another engine", key=self.claim_key)
                return False
            try:
                last_shown = self._last_shown()
                if last_shown > 0 and now.timestamp() - last_shown < self.cooldown.total_seconds():
                    return False
                self._mark_shown(now)
                return True
            finally:
                self._release_claim()

    # ── rules ──

    def apply(self, snapshot: ContentSnapshot, request: PulseContentRequest, now: datetime) -> ContentSnapshot:
        context = request.context
        adjusted = snapshot
        prompt = adjusted.prompt

        if prompt is not None and prompt.kind is PromptKind.ACTION and prompt.action is not None:
            validated = validate_complete_reminder(prompt.action, context)
            if validated is None:
                log.log_policy_decision("drop_reminder_action", adjusted.surface_type.value)
                adjusted = replace(adjusted, prompt=None)
            elif validated.kind is ActionKind.COMPLETE_REMINDER:
                stamped = replace(validated, metadata={
                    **(validated.metadata or {}),
                    "pulse_policy_version": config.POLICY_VERSION,
                })
                adjusted = replace(adjusted, prompt=ContentPrompt.for_action(stamped))
            elif validated.kind is ActionKind.START_WORKOUT and _weight_routine_matches(context, now):
                nudge = DailyCoachAction(
                    kind=ActionKind.LOG_WEIGHT,
                    title="Log Morning Weight",
                    subtitle="Keep your check-in routine",
                )
                log.log_policy_decision("morning_weight_nudge", SurfaceType.TIMING_NUDGE.value)
                adjusted = replace(
                    adjusted,
                    surface_type=SurfaceType.TIMING_NUDGE,
                    prompt=ContentPrompt.for_action(nudge),
                )

        prompt = adjusted.prompt
        if prompt is not None and prompt.kind is PromptKind.PLAN_PROPOSAL and prompt.plan_proposal is not None:
            proposal = prompt.plan_proposal
            if not has_plan_proposal_evidence(context):
                log.log_policy_decision("downgrade_no_evidence", SurfaceType.QUICK_CHECKIN.value,
                                        proposal_id=proposal.id)
                return replace(
                    adjusted,
                    surface_type=SurfaceType.QUICK_CHECKIN,
                    prompt=ContentPrompt.for_question(plan_checkin_question(proposal)),
                )
            if not self.claim_plan_proposal_slot(now):
                log.log_policy_decision("downgrade_cooldown", SurfaceType.COACH_NOTE.value,
                                        proposal_id=proposal.id)
                return replace(adjusted, surface_type=SurfaceType.COACH_NOTE, prompt=None)
            log.log_policy_decision("pass", adjusted.surface_type.value, proposal_id=proposal.id)
            return adjusted

        if adjusted.surface_type is SurfaceType.PLAN_PROPOSAL:
            log.log_policy_decision("downgrade_surface_without_proposal", SurfaceType.QUICK_CHECKIN.value)
            adjusted = replace(adjusted, surface_type=SurfaceType.QUICK_CHECKIN)

        if adjusted.prompt is None and _post_workout_eligible(request, now):
            log.log_policy_decision("inject_post_workout_question", SurfaceType.QUICK_CHECKIN.value)
            adjusted = replace(
                adjusted,
                surface_type=SurfaceType.QUICK_CHECKIN,
                prompt=ContentPrompt.for_question(post_workout_question()),
            )

        return adjusted
