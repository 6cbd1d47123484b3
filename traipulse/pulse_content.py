"""
TraiPulse — Model-Managed Pulse Content  (traipulse/pulse_content.py)
=====================================================================
Input/output contract with the generative text collaborator.  The call
itself is made by the caller; this module only:

  1. builds the prompt text (explicit state fields + compact packet)
  2. exposes the JSON schema the response must follow
  3. validates the returned JSON (pydantic payload models) and maps it to
     a ContentSnapshot, raising PulseParsingError on any missing or
     invalid field.  No partial acceptance.
  4. runs the policy engine over the mapped snapshot

Public API:
  PULSE_CONTENT_SCHEMA
  prepare_packet(request) -> ContextPacket
  build_pulse_prompt(request, packet=None) -> str
  clean_json_response(text) -> str
  parse_pulse_response(text) -> ContentSnapshot
  interpret_pulse_response(text, request, policy, now) -> ContentSnapshot
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from traipulse import config
from traipulse.context_assembler import assemble
from traipulse.exceptions import PulseParsingError
from traipulse.models import (
    ContentPrompt, ContentSnapshot, ContextPacket, DailyCoachAction, PatternProfile,
    PlanProposal, PulseContentRequest, Question, QuestionInputMode, QuestionOption,
    active_snapshots,
)
from traipulse.ontology import ActionKind, ContentSource, PromptKind, QuestionMode, SurfaceType
from traipulse.response_interpreter import recent_pulse_answer
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)

PULSE_TOKEN_BUDGET = 560

_ACTION_KINDS = {
    "start_workout": ActionKind.START_WORKOUT,
    "log_food":      ActionKind.LOG_FOOD,
}


# ══════════════════════════════════════════════
# PAYLOAD MODELS  (raw model output)
# ══════════════════════════════════════════════

class QuestionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    prompt: str
    mode: str
    options: Optional[list[str]] = None
    placeholder: Optional[str] = None
    is_required: Optional[bool] = Field(None, alias="isRequired")
    slider_min: Optional[float] = Field(None, alias="sliderMin")
    slider_max: Optional[float] = Field(None, alias="sliderMax")
    slider_step: Optional[float] = Field(None, alias="sliderStep")
    slider_unit: Optional[str] = Field(None, alias="sliderUnit")


class ActionPayload(BaseModel):
    kind: str
    title: str
    subtitle: Optional[str] = None


class PlanProposalPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    rationale: str
    impact: str
    changes: list[str]
    apply_label: Optional[str] = Field(None, alias="applyLabel")
    review_label: Optional[str] = Field(None, alias="reviewLabel")
    defer_label: Optional[str] = Field(None, alias="deferLabel")


class PromptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str
    question: Optional[QuestionPayload] = None
    action: Optional[ActionPayload] = None
    plan_proposal: Optional[PlanProposalPayload] = Field(None, alias="planProposal")


class PulseModelPayload(BaseModel):
    """Top-level response object."""
    model_config = ConfigDict(populate_by_name=True)

    surface_type: Optional[str] = Field(None, alias="surfaceType")
    title: str
    message: str
    prompt: Optional[PromptPayload] = None


PULSE_CONTENT_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "surfaceType": {"type": "string", "enum": [s.value for s in SurfaceType]},
        "title": {"type": "string"},
        "message": {"type": "string"},
        "prompt": {
            "type": "object",
            "nullable": True,
            "properties": {
                "kind": {"type": "string", "enum": ["question", "action", "plan_proposal", "none"]},
                "question": {
                    "type": "object",
                    "nullable": True,
                    "properties": {
                        "id": {"type": "string"},
                        "prompt": {"type": "string"},
                        "mode": {"type": "string", "enum": [m.value for m in QuestionMode]},
                        "options": {"type": "array", "items": {"type": "string"}},
                        "placeholder": {"type": "string"},
                        "isRequired": {"type": "boolean"},
                        "sliderMin": {"type": "number"},
                        "sliderMax": {"type": "number"},
                        "sliderStep": {"type": "number"},
                        "sliderUnit": {"type": "string"},
                    },
                    "required": ["id", "prompt", "mode"],
                },
                "action": {
                    "type": "object",
                    "nullable": True,
                    "properties": {
                        "kind": {"type": "string", "enum": list(_ACTION_KINDS)},
                        "title": {"type": "string"},
                        "subtitle": {"type": "string"},
                    },
                    "required": ["kind", "title"],
                },
                "planProposal": {
                    "type": "object",
                    "nullable": True,
                    "properties": {
                        "id": {"type": "string"},
                        "title": {"type": "string"},
                        "rationale": {"type": "string"},
                        "impact": {"type": "string"},
                        "changes": {"type": "array", "items": {"type": "string"}},
                        "applyLabel": {"type": "string"},
                        "reviewLabel": {"type": "string"},
                        "deferLabel": {"type": "string"},
                    },
                    "required": ["id", "title", "rationale", "impact", "changes"],
                },
            },
            "required": ["kind"],
        },
    },
    "required": ["title", "message"],
}


# ══════════════════════════════════════════════
# PROMPT
# ══════════════════════════════════════════════

def prepare_packet(request: PulseContentRequest) -> ContextPacket:
    context = request.context
    start, end = request.preferences.workout_window.hours
    active = active_snapshots(context.active_signals, context.now)
    base = context.to_input_context(
        window_start_hour=start,
        window_end_hour=end,
        tomorrow_workout_minutes=request.preferences.tomorrow_workout_minutes,
        active_signals=active,
    )
    return assemble(
        pattern_profile=context.pattern_profile or PatternProfile.empty(),
        active_signals=active,
        context=base,
        token_budget=PULSE_TOKEN_BUDGET,
    )


def build_pulse_prompt(request: PulseContentRequest, packet: Optional[ContextPacket] = None) -> str:
    context = request.context
    prefs = request.preferences
    packet = packet or prepare_packet(request)
    recent = recent_pulse_answer(active_snapshots(context.active_signals, context.now), context.now)
    tone = request.tone.value

    def flag(value: bool) -> str:
        return "true" if value else "false"

    return "\n".join([
        "Write the Trai Pulse card shown at the top of a fitness app home screen.",
        "",
        "STYLE:",
        "- A short coach note, not a chat reply. No acknowledgements, no first person.",
        f"- Tone: {tone}. {request.tone.pulse_style_prompt}",
        "- Positive framing and at most one clear next step.",
        "- Title at most 6 words, message at most 26 words.",
        "",
        "OUTPUT:",
        "- JSON only, matching the schema.",
        "- At most one prompt: kind=action, kind=question, kind=plan_proposal or kind=none.",
        f"- surfaceType is one of: {', '.join(s.value for s in SurfaceType)}.",
        f"- Action kinds: {', '.join(_ACTION_KINDS)}.",
        f"- Question modes: {', '.join(m.value for m in QuestionMode)}.",
        "- slider needs sliderMin, sliderMax, sliderStep (sliderUnit optional).",
        "- note has no options; single/multiple choice have 2-4 options.",
        "- If allow_question is false, do not ask a question.",
        "- Never reuse blocked_question_id.",
        "- plan_proposal only with multi-day trend evidence; cautious, never automatic,",
        "  with a short list of concrete changes.",
        "- If the user is done eating tonight, skip food logging prompts.",
        "- Do not repeat the same plan change every day.",
        "",
        "STATE:",
        f"- hour_of_day: {context.now.hour}",
        f"- coach_tone: {tone}",
        f"- effort_mode: {prefs.effort_mode.value}",
        f"- tomorrow_focus: {prefs.tomorrow_focus.value}",
        f"- preferred_workout_window: {prefs.workout_window.value}",
        f"- recommended_workout: {context.recommended_workout_name or 'recommended workout'}",
        f"- has_workout_today: {flag(context.has_workout_today)}",
        f"- has_active_workout: {flag(context.has_active_workout)}",
        f"- calories_today: {context.calories_consumed}",
        f"- calorie_goal: {context.calorie_goal}",
        f"- protein_today: {context.protein_consumed}",
        f"- protein_goal: {context.protein_goal}",
        f"- ready_muscle_count: {context.ready_muscle_count}",
        f"- allow_question: {flag(request.allow_question)}",
        f"- blocked_question_id: {request.blocked_question_id or ''}",
        f"- recent_answer: {recent.answer if recent else ''}",
        f"- recent_question_id: {recent.question_id if recent else ''}",
        "",
        "PACKET:",
        packet.prompt_summary,
    ])


# ══════════════════════════════════════════════
# RESPONSE MAPPING
# ══════════════════════════════════════════════

def clean_json_response(text: str) -> str:
    """Strip markdown code fences around a JSON body."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def _stripped(value: Optional[str]) -> str:
    return (value or "").strip()


def _map_action(payload: ActionPayload) -> DailyCoachAction:
    kind = _ACTION_KINDS.get(payload.kind)
    if kind is None:
        raise PulseParsingError(f"unsupported action kind '{payload.kind}'", field="prompt.action.kind")
    title = _stripped(payload.title)
    if not title:
        raise PulseParsingError("empty action title", field="prompt.action.title")
    return DailyCoachAction(kind=kind, title=title, subtitle=_stripped(payload.subtitle) or None)


def _map_question(payload: QuestionPayload) -> Question:
    question_id = _stripped(payload.id)
    prompt = _stripped(payload.prompt)
    if not question_id or not prompt:
        raise PulseParsingError("question needs an id and a prompt", field="prompt.question")

    options = [QuestionOption(o.strip()) for o in (payload.options or []) if o.strip()]

    try:
        mode = QuestionMode(payload.mode)
    except ValueError:
        raise PulseParsingError(f"unsupported question mode '{payload.mode}'", field="prompt.question.mode")

    if mode in (QuestionMode.SINGLE_CHOICE, QuestionMode.MULTIPLE_CHOICE):
        if len(options) < 2:
            raise PulseParsingError("choice questions need at least 2 options", field="prompt.question.options")
        input_mode = (QuestionInputMode.single_choice() if mode is QuestionMode.SINGLE_CHOICE
                      else QuestionInputMode.multiple_choice())
    elif mode is QuestionMode.SLIDER:
        low, high, step = payload.slider_min, payload.slider_max, payload.slider_step
        if low is None or high is None or step is None:
            raise PulseParsingError("slider bounds missing", field="prompt.question.slider")
        if high <= low or step <= 0:
            raise PulseParsingError("invalid slider bounds", field="prompt.question.slider")
        input_mode = QuestionInputMode.slider(low, high, step, unit=_stripped(payload.slider_unit) or None)
    else:
        if options:
            raise PulseParsingError("note questions take no options", field="prompt.question.options")
        input_mode = QuestionInputMode.note(max_length=config.NOTE_MAX_LENGTH)

    return Question(
        id=question_id,
        prompt=prompt,
        input_mode=input_mode,
        options=options,
        placeholder=_stripped(payload.placeholder),
        is_required=bool(payload.is_required),
    )


def _map_plan_proposal(payload: PlanProposalPayload) -> PlanProposal:
    changes = [c.strip() for c in payload.changes if c.strip()]
    fields = {
        "id": _stripped(payload.id),
        "title": _stripped(payload.title),
        "rationale": _stripped(payload.rationale),
        "impact": _stripped(payload.impact),
    }
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise PulseParsingError(f"plan proposal missing {missing[0]}", field=f"prompt.planProposal.{missing[0]}")
    if not changes:
        raise PulseParsingError("plan proposal has no changes", field="prompt.planProposal.changes")

    return PlanProposal(
        **fields,
        changes=changes[:config.PLAN_CHANGE_LIMIT],
        apply_label=_stripped(payload.apply_label) or config.DEFAULT_APPLY_LABEL,
        review_label=_stripped(payload.review_label) or config.DEFAULT_REVIEW_LABEL,
        defer_label=_stripped(payload.defer_label) or config.DEFAULT_DEFER_LABEL,
    )


def _map_prompt(payload: Optional[PromptPayload]) -> Optional[ContentPrompt]:
    if payload is None or payload.kind == "none":
        return None
    if payload.kind == PromptKind.ACTION.value:
        if payload.action is None:
            raise PulseParsingError("action prompt without action", field="prompt.action")
        return ContentPrompt.for_action(_map_action(payload.action))
    if payload.kind == PromptKind.QUESTION.value:
        if payload.question is None:
            raise PulseParsingError("question prompt without question", field="prompt.question")
        return ContentPrompt.for_question(_map_question(payload.question))
    if payload.kind == PromptKind.PLAN_PROPOSAL.value:
        if payload.plan_proposal is None:
            raise PulseParsingError("plan_proposal prompt without proposal", field="prompt.planProposal")
        return ContentPrompt.for_plan_proposal(_map_plan_proposal(payload.plan_proposal))
    raise PulseParsingError(f"unsupported prompt kind '{payload.kind}'", field="prompt.kind")


def infer_surface_type(raw_value: Optional[str], prompt: Optional[ContentPrompt]) -> SurfaceType:
    if raw_value:
        try:
            return SurfaceType(raw_value)
        except ValueError:
            pass
    if prompt is None or prompt.kind is PromptKind.ACTION:
        return SurfaceType.COACH_NOTE
    if prompt.kind is PromptKind.PLAN_PROPOSAL:
        return SurfaceType.PLAN_PROPOSAL
    if prompt.question.input_mode.mode is QuestionMode.SLIDER:
        return SurfaceType.RECOVERY_PROBE
    return SurfaceType.QUICK_CHECKIN


def parse_pulse_response(text: str) -> ContentSnapshot:
    """Validate raw model output and map it to a ContentSnapshot.

    Raises:
        PulseParsingError: on malformed JSON, a missing field or an invalid value
    """
    try:
        payload = PulseModelPayload.model_validate_json(clean_json_response(text))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise PulseParsingError(first["msg"], field=field, details={"error_count": e.error_count()})

    title = payload.title.strip()
    message = payload.message.strip()
    if not title:
        raise PulseParsingError("empty title", field="title")
    if not message:
        raise PulseParsingError("empty message", field="message")

    prompt = _map_prompt(payload.prompt)
    return ContentSnapshot(
        source=ContentSource.MODEL_MANAGED,
        surface_type=infer_surface_type(payload.surface_type, prompt),
        title=title,
        message=message,
        prompt=prompt,
    )


def interpret_pulse_response(text: str, request: PulseContentRequest, policy, now: datetime) -> ContentSnapshot:
    """Parse model output, then run it through the policy engine.

    A PulseParsingError propagates so the caller can fall back to the
    deterministic brief.
    """
    try:
        snapshot = parse_pulse_response(text)
    except PulseParsingError as e:
        log.log_parse_failure(e.reason, e.field)
        raise
    return policy.apply(snapshot, request, now)
