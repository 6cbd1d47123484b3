"""
TraiPulse — Response Interpreter  (traipulse/response_interpreter.py)
=====================================================================
Closes the loop between a follow-up question and the next brief.

An answer is stored as a short-lived dashboard-note coach signal whose
detail carries two tags:

    [PulseQuestion:<id>] <prompt> Answer: <answer> [PulseAdaptation:<line>]

The brief engine then reads it back (recent_pulse_answer) to avoid
re-asking, to add a carry-over reason, and to adapt tomorrow's preview.

Public API:
  interpret(question, answer) -> AnswerInterpretation
  make_answer_signal(question, answer, now) -> CoachSignalSnapshot
  plan_decision_signal(proposal, decision, now) -> (CoachSignalSnapshot, str)
  recent_pulse_answer(signals, now) -> RecentAnswer | None
  has_recent_question_answer(question_id, signals) -> bool
  carryover_reason(recent) -> str
  adapted_tomorrow_preview(default_minutes, recent) -> str
  contains_no_food_cue(text) -> bool
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from traipulse import config
from traipulse.models import (
    CoachSignalSnapshot, PlanProposal, Question, RecentAnswer, clamp,
)
from traipulse.ontology import PlanProposalDecision, SignalDomain, SignalSource
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)

# adaptation line runs to the last "]"
_ANSWER_PATTERN = re.compile(
    r"\[PulseQuestion:(?P<qid>[^\]]+)\]\s*(?P<prompt>.*?)\s*Answer:\s*(?P<answer>.*?)"
    r"\s*(?:\[PulseAdaptation:(?P<line>.*)\])?\s*$",
    re.DOTALL,
)


@dataclass(frozen=True)
class AnswerInterpretation:
    signal_title:    str
    domain:          SignalDomain
    severity:        float
    confidence:      float
    expires_after:   timedelta
    adaptation_line: str
    handoff_prompt:  str


# ──────────────────────────────────────────────
# CUES
# ──────────────────────────────────────────────

def _has_any(text: str, cues) -> bool:
    lowered = text.lower()
    return any(cue in lowered for cue in cues)


def contains_no_food_cue(text: str) -> bool:
    return _has_any(text, config.NO_FOOD_CUES)


# ══════════════════════════════════════════════
# ANSWER → SIGNAL
# ══════════════════════════════════════════════

def _pain_severity(answer: str) -> float:
    try:
        level = float(answer.split("/")[0])
    except ValueError:
        level = config.PAIN_DEFAULT_LEVEL
    if not math.isfinite(level):
        level = config.PAIN_DEFAULT_LEVEL
    return clamp(level / config.PAIN_SCALE_MAX)


def _adaptation_for(question_id: str, answer: str) -> tuple[SignalDomain, float, str]:
    """(domain, severity, adaptation line) for one answer."""
    lowered = answer.lower()
    severity = config.ANSWER_SEVERITY

    if question_id == "pain-follow-up":
        pain = _pain_severity(answer)
        if pain >= config.PAIN_SAFE_SEVERITY:
            return SignalDomain.PAIN, pain, "Keep tomorrow pain-safe"
        return SignalDomain.PAIN, pain, "Resume normal progression carefully"

    if question_id == "schedule-rescue":
        if "15 min" in lowered:
            return SignalDomain.SCHEDULE, severity["rescue_quick"], "Plan a 15-minute session tomorrow"
        if "30 min" in lowered:
            return SignalDomain.SCHEDULE, severity["rescue_full"], "Keep a 30-minute session tomorrow"
        if "recovery walk" in lowered:
            return SignalDomain.SCHEDULE, severity["rescue_walk"], "Start tomorrow with recovery and protein"
        return SignalDomain.SCHEDULE, severity["rescue_other"], f"Fit tomorrow around: {answer}"

    if "protein" in question_id:
        if contains_no_food_cue(answer):
            return SignalDomain.NUTRITION, severity["protein_no_food"], "Front-load protein tomorrow"
        return SignalDomain.NUTRITION, severity["protein_close"], f"Close protein with {lowered}"

    if question_id.startswith("workout-consistency"):
        if "lighter plan" in lowered:
            return SignalDomain.SCHEDULE, severity["workout_lighter"], "Offer a lighter plan this week"
        return SignalDomain.SCHEDULE, severity["workout_other"], f"Plan workouts around: {answer}"

    if question_id == "logging-consistency":
        return SignalDomain.GENERAL, severity["logging"], f"Make logging faster: {answer}"

    if question_id.startswith("readiness"):
        if _has_any(answer, config.LIGHT_SESSION_CUES):
            return SignalDomain.RECOVERY, severity["readiness_light"], "Keep tomorrow light"
        if _has_any(answer, config.PUSH_SESSION_CUES):
            return SignalDomain.RECOVERY, severity["readiness_push"], "Push tomorrow if readiness holds"
        return SignalDomain.RECOVERY, severity["readiness_balanced"], "Balanced session tomorrow"

    note = answer.strip()
    limit = config.NOTE_PREVIEW_LENGTH
    if len(note) > limit:
        note = note[:limit - 3].rstrip() + "..."
    return SignalDomain.GENERAL, severity["note"], f"Adapt tomorrow: {note}"


def interpret(question: Question, answer: str) -> AnswerInterpretation:
    domain, severity, line = _adaptation_for(question.id, answer.strip())
    return AnswerInterpretation(
        signal_title=f"Pulse check-in: {answer.strip()}",
        domain=domain,
        severity=severity,
        confidence=config.PAIN_ANSWER_CONFIDENCE if domain is SignalDomain.PAIN else config.ANSWER_CONFIDENCE,
        expires_after=config.ANSWER_SIGNAL_LIFETIME,
        adaptation_line=line,
        handoff_prompt=(
            f"Pulse check-in answered. Question: {question.prompt} "
            f"Answer: {answer.strip()}. Adaptation: {line}."
        ),
    )


def answer_detail(question: Question, answer: str, adaptation_line: str) -> str:
    return (
        config.QUESTION_TAG_FORMAT.format(question_id=question.id)
        + f" {question.prompt} Answer: {answer.strip()} "
        + config.ADAPTATION_TAG_FORMAT.format(line=adaptation_line)
    )


def make_answer_signal(question: Question, answer: str, now: datetime) -> CoachSignalSnapshot:
    """Dashboard-note signal recording one answered question."""
    interpretation = interpret(question, answer)
    return CoachSignalSnapshot(
        domain=interpretation.domain,
        title=interpretation.signal_title,
        detail=answer_detail(question, answer, interpretation.adaptation_line),
        severity=interpretation.severity,
        confidence=interpretation.confidence,
        source=SignalSource.DASHBOARD_NOTE,
        created_at=now,
        expires_at=now + interpretation.expires_after,
        metadata={"question_id": question.id, "question_prompt": question.prompt},
    )


_DECISION_COPY = {
    PlanProposalDecision.APPLY: (
        "Plan adjustment approved",
        "Pulse plan proposal approved. Proposal: {title}. Changes: {changes}. "
        "Rationale: {rationale}. Any plan mutation must still require explicit user confirmation.",
    ),
    PlanProposalDecision.REVIEW: (
        "Plan adjustment review requested",
        "Pulse plan proposal review requested. Proposal: {title}. Changes: {changes}. Impact: {impact}.",
    ),
    PlanProposalDecision.LATER: (
        "Plan adjustment deferred",
        "Pulse plan proposal deferred: {title}. Do not re-suggest daily; revisit later with lighter framing.",
    ),
}


def plan_decision_signal(
    proposal: PlanProposal,
    decision: PlanProposalDecision,
    now: datetime,
) -> tuple[CoachSignalSnapshot, str]:
    """Signal recording the user's call on a plan proposal, plus the chat handoff prompt."""
    title, template = _DECISION_COPY[decision]
    signal = CoachSignalSnapshot(
        domain=SignalDomain.GENERAL,
        title=title,
        detail=f"[PulsePlanProposal:{proposal.id}] {proposal.title} [Decision:{decision.value}]",
        severity=config.DECISION_SIGNAL_SEVERITY[decision],
        confidence=config.DECISION_SIGNAL_CONFIDENCE,
        source=SignalSource.DASHBOARD_NOTE,
        created_at=now,
        expires_at=now + config.DECISION_SIGNAL_LIFETIME,
        metadata={"proposal_id": proposal.id, "decision": decision.value},
    )
    prompt = template.format(
        title=proposal.title,
        changes="; ".join(proposal.changes),
        rationale=proposal.rationale,
        impact=proposal.impact,
    )
    return signal, prompt


# ══════════════════════════════════════════════
# SIGNAL → RECENT ANSWER
# ══════════════════════════════════════════════

def parse_answer_detail(detail: str) -> Optional[tuple[str, str, str, str]]:
    """detail → (question_id, prompt, answer, adaptation line), or None."""
    match = _ANSWER_PATTERN.search(detail)
    if match is None:
        return None
    return (
        match.group("qid").strip(),
        match.group("prompt").strip(),
        match.group("answer").strip(),
        (match.group("line") or "").strip(),
    )


def recent_pulse_answer(signals: list[CoachSignalSnapshot], now: datetime) -> Optional[RecentAnswer]:
    """Most recent answered question among signals still active at `now`."""
    tagged = [
        s for s in signals
        if s.source is SignalSource.DASHBOARD_NOTE
        and "[PulseQuestion:" in s.detail
        and s.is_active(now)
    ]
    for signal in sorted(tagged, key=lambda s: s.created_at, reverse=True):
        parsed = parse_answer_detail(signal.detail)
        if parsed is None:
            log.warning(
                "Ignoring unreadable pulse answer",
                signal_title=signal.title,
                answered_at=signal.created_at.isoformat(),
            )
            continue
        question_id, prompt, answer, line = parsed
        return RecentAnswer(
            question_id=question_id,
            prompt=prompt,
            answer=answer,
            adaptation_line=line,
            answered_at=signal.created_at,
        )
    return None


def has_recent_question_answer(question_id: str, signals: list[CoachSignalSnapshot]) -> bool:
    tag = config.QUESTION_TAG_FORMAT.format(question_id=question_id)
    return any(
        s.source is SignalSource.DASHBOARD_NOTE and tag in s.detail
        for s in signals
    )


def carryover_reason(recent: RecentAnswer) -> str:
    return f"From your check-in: {recent.answer}"


def adapted_tomorrow_preview(default_minutes: int, recent: Optional[RecentAnswer]) -> str:
    minutes = default_minutes
    shorter, longer = config.TOMORROW_MINUTES_ADJUST
    if recent is not None:
        if _has_any(recent.answer, config.LIGHT_SESSION_CUES):
            minutes = max(config.TOMORROW_MINUTES_FLOOR, default_minutes - shorter)
        elif _has_any(recent.answer, config.PUSH_SESSION_CUES):
            minutes = min(config.TOMORROW_MINUTES_CAP, default_minutes + longer)

    preview = f"Tomorrow: {minutes} min workout"
    if recent is not None and recent.adaptation_line:
        preview += f" ({recent.adaptation_line})"
    return preview
