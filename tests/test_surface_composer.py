"""Surface composition: layout, header and trimming."""

import pytest

from traipulse.ontology import ActionEmphasis, Phase, SurfaceLayout
from traipulse.pulse_engine import make_brief
from traipulse.response_interpreter import make_answer_signal, recent_pulse_answer
from traipulse.models import Question, QuestionInputMode
from traipulse.surface_composer import compose, header_line, layout_for, time_band_label

from conftest import NOW, at_hour


@pytest.mark.parametrize("phase,layout", [
    (Phase.AT_RISK, SurfaceLayout.CINEMATIC),
    (Phase.RESCUE, SurfaceLayout.CINEMATIC),
    (Phase.ON_TRACK, SurfaceLayout.COMPACT),
    (Phase.COMPLETED, SurfaceLayout.COMPACT),
])
def test_layout_without_recent_answer(phase, layout):
    assert layout_for(phase, None) is layout


@pytest.mark.parametrize("hour,label", [
    (0, "Night pulse"),
    (2, "Night pulse"),
    (4, "Night pulse"),
    (5, "Morning pulse"),
    (7, "Morning pulse"),
    (13, "Midday pulse"),
    (18, "Evening pulse"),
    (23, "Night pulse"),
])
def test_time_band_label(hour, label):
    assert time_band_label(hour) == label


def test_header_line():
    assert header_line(NOW, Phase.MORNING_PLAN) == "Morning pulse - plan"
    assert header_line(at_hour(22), Phase.RESCUE) == "Night pulse - adaptive mode"


def test_compose_compact_keeps_one_reason(make_input_context):
    brief = make_brief(make_input_context())

    spec = compose(brief, NOW)

    assert spec.layout is SurfaceLayout.COMPACT
    assert spec.reasons == [brief.reasons[0].text]
    assert spec.carryover_line is None
    assert spec.headline == brief.title
    assert spec.tomorrow_line == brief.tomorrow_preview


def test_compose_always_has_two_actions(make_input_context):
    brief = make_brief(make_input_context(now=at_hour(23)))

    spec = compose(brief, at_hour(23))

    assert spec.layout is SurfaceLayout.CINEMATIC
    assert len(spec.reasons) == 2
    assert [a.emphasis for a in spec.actions] == [ActionEmphasis.PRIMARY, ActionEmphasis.SECONDARY]
    assert spec.actions[0].title == brief.primary_action.title


def test_compose_conversational_after_answer(make_input_context):
    question = Question(id="readiness-scan", prompt="Quick readiness scan for tomorrow?",
                        input_mode=QuestionInputMode.single_choice())
    signal = make_answer_signal(question, "Balanced", NOW)
    recent = recent_pulse_answer([signal], NOW)
    brief = make_brief(make_input_context(active_signals=[signal]))

    spec = compose(brief, NOW, recent)

    assert spec.layout is SurfaceLayout.CONVERSATIONAL
    assert spec.carryover_line == "From your check-in: Balanced"
    assert len(spec.reasons) == 2
