"""
TraiPulse — Surface Composer  (traipulse/surface_composer.py)
=============================================================
Maps a finished recommendation onto the surface the dashboard renders.
Pure: no scoring happens here, only layout and trimming.

  layout   cinematic       phase at_risk / rescue
           conversational  a follow-up answer is still active
           compact         otherwise
  header   "<time band> - <phase label>"
  reasons  1 in compact layout, else 2
  actions  always exactly two: primary then secondary
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from traipulse import config
from traipulse.models import Brief, DailyCoachAction, Question, RecentAnswer
from traipulse.ontology import ActionEmphasis, Phase, SurfaceLayout
from traipulse.response_interpreter import carryover_reason
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)

PHASE_LABELS = {
    Phase.MORNING_PLAN: "plan",
    Phase.ON_TRACK:     "on track",
    Phase.AT_RISK:      "decision point",
    Phase.RESCUE:       "adaptive mode",
    Phase.COMPLETED:    "recovery mode",
}


@dataclass(frozen=True)
class SurfaceActionSpec:
    action:   DailyCoachAction
    emphasis: ActionEmphasis

    @property
    def title(self) -> str:
        return self.action.title

    @property
    def subtitle(self) -> Optional[str]:
        return self.action.subtitle


@dataclass(frozen=True)
class SurfaceSpec:
    layout:         SurfaceLayout
    header_line:    str
    headline:       str
    body:           str
    carryover_line: Optional[str]
    reasons:        list[str]
    actions:        list[SurfaceActionSpec]
    question:       Optional[Question]
    tomorrow_line:  str


def layout_for(phase: Phase, recent_answer: Optional[RecentAnswer]) -> SurfaceLayout:
    if phase in (Phase.AT_RISK, Phase.RESCUE):
        return SurfaceLayout.CINEMATIC
    if recent_answer is not None:
        return SurfaceLayout.CONVERSATIONAL
    return SurfaceLayout.COMPACT


def time_band_label(hour: int) -> str:
    for start, end, label in config.SURFACE_TIME_BANDS:
        if start <= hour < end:
            return label
    return config.SURFACE_NIGHT_BAND


def header_line(now: datetime, phase: Phase) -> str:
    return f"{time_band_label(now.hour)} - {PHASE_LABELS[phase]}"


def compose(
    recommendation: Brief,
    now: datetime,
    recent_answer: Optional[RecentAnswer] = None,
) -> SurfaceSpec:
    layout = layout_for(recommendation.phase, recent_answer)
    reason_limit = 1 if layout is SurfaceLayout.COMPACT else 2

    spec = SurfaceSpec(
        layout=layout,
        header_line=header_line(now, recommendation.phase),
        headline=recommendation.title,
        body=recommendation.message,
        carryover_line=carryover_reason(recent_answer) if recent_answer is not None else None,
        reasons=[r.text for r in recommendation.reasons[:reason_limit]],
        actions=[
            SurfaceActionSpec(recommendation.primary_action, ActionEmphasis.PRIMARY),
            SurfaceActionSpec(recommendation.secondary_action, ActionEmphasis.SECONDARY),
        ],
        question=recommendation.question,
        tomorrow_line=recommendation.tomorrow_preview,
    )
    log.debug("Surface composed", layout=layout.value, header=spec.header_line)
    return spec
