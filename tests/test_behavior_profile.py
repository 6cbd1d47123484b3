"""Behavior profile aggregation and the tracker write path."""

from datetime import timedelta

import pytest

from traipulse.behavior_profile import (
    BehaviorProfileSnapshot, BehaviorTracker, build_profile, day_part_label,
    encode_metadata, suggestion_action_key,
)
from traipulse.ontology import (
    BehaviorActionKey, BehaviorDomain, BehaviorOutcome, BehaviorSurface,
)

from conftest import NOW, at_hour

LOG_FOOD = BehaviorActionKey.LOG_FOOD.value
LOG_WEIGHT = BehaviorActionKey.LOG_WEIGHT.value
START_WORKOUT = BehaviorActionKey.START_WORKOUT.value


def test_build_profile_excludes_dismissed_and_tracks_latest(make_event):
    """Dismissed events never count; last_action_at keeps the newest occurrence."""
    events = [
        make_event(LOG_FOOD, NOW - timedelta(hours=6)),
        make_event(LOG_FOOD, NOW - timedelta(hours=2), BehaviorOutcome.DISMISSED),
        make_event(LOG_FOOD, NOW - timedelta(hours=1), BehaviorOutcome.PERFORMED),
        make_event(LOG_WEIGHT, NOW - timedelta(hours=26)),
    ]

    profile = build_profile(NOW, events, window_days=3)

    assert profile.action_counts[LOG_FOOD] == 2
    assert profile.action_counts[LOG_WEIGHT] == 1
    assert profile.last_action_at[LOG_FOOD] == NOW - timedelta(hours=1)
    assert profile.days_since_last_action(LOG_WEIGHT, NOW) == 1
    assert profile.days_since_last_action(LOG_FOOD, NOW) == 0


def test_build_profile_drops_events_outside_window(make_event):
    events = [
        make_event(LOG_FOOD, NOW - timedelta(days=10)),
        make_event(LOG_FOOD, NOW + timedelta(hours=1)),
        make_event("   ", NOW - timedelta(hours=1)),
    ]

    profile = build_profile(NOW, events, window_days=7)

    assert profile.action_counts == {}
    assert profile.days_since_last_action(LOG_FOOD, NOW) is None


def test_hourly_counts_sum_to_action_counts(make_event):
    events = [make_event(LOG_FOOD, at_hour(h, days_ago=d)) for d in range(5) for h in (8, 12, 19)]
    events += [make_event(START_WORKOUT, at_hour(6, days_ago=d)) for d in range(3)]

    profile = build_profile(NOW, events)

    for key, total in profile.action_counts.items():
        assert sum(profile.action_hourly_counts[key].values()) == total


def test_hourly_preference_score_counts_neighbouring_hours(make_event):
    """4 of 5 starts at 07:00 and 1 at 08:00 → 0.8 + 0.35 × 0.2."""
    events = [make_event(START_WORKOUT, at_hour(7, days_ago=d)) for d in range(1, 5)]
    events.append(make_event(START_WORKOUT, at_hour(8, days_ago=5)))

    profile = build_profile(NOW, events)

    assert profile.hourly_preference_score(START_WORKOUT, 7) == pytest.approx(0.87)


def test_hourly_preference_score_from_snapshot():
    snapshot = BehaviorProfileSnapshot(
        action_counts={LOG_WEIGHT: 4},
        action_hourly_counts={LOG_WEIGHT: {7: 1, 8: 2, 9: 1}},
        last_action_at={LOG_WEIGHT: NOW},
    )

    assert snapshot.hourly_preference_score(LOG_WEIGHT, 8, minimum_events=2) == pytest.approx(0.675)


def test_hourly_preference_score_below_minimum_is_zero():
    snapshot = BehaviorProfileSnapshot(
        action_counts={LOG_WEIGHT: 2},
        action_hourly_counts={LOG_WEIGHT: {8: 2}},
    )

    assert snapshot.hourly_preference_score(LOG_WEIGHT, 8, minimum_events=3) == 0.0
    assert snapshot.hourly_preference_score("unknown.key", 8) == 0.0


def test_hourly_preference_score_wraps_midnight():
    snapshot = BehaviorProfileSnapshot(
        action_counts={LOG_FOOD: 4},
        action_hourly_counts={LOG_FOOD: {23: 2, 0: 2}},
    )

    score = snapshot.hourly_preference_score(LOG_FOOD, 0)
    assert score == pytest.approx(0.5 + 0.35 * 0.5)
    assert 0.0 <= score <= 1.0


def test_likely_time_labels_uses_buckets(make_event):
    events = [
        make_event(LOG_WEIGHT, at_hour(6)),
        make_event(LOG_WEIGHT, at_hour(7)),
        make_event(LOG_WEIGHT, at_hour(5)),
        make_event(LOG_WEIGHT, at_hour(20, days_ago=1)),
    ]

    profile = build_profile(NOW, events, window_days=2)
    labels = profile.likely_time_labels(LOG_WEIGHT, max_labels=2, minimum_events=3)

    assert labels == ["Morning (4-9 AM)", "Evening (6-10 PM)"]


def test_likely_time_labels_empty_below_threshold(make_event):
    events = [make_event(LOG_WEIGHT, at_hour(6)), make_event(LOG_WEIGHT, at_hour(7))]

    profile = build_profile(NOW, events, window_days=2)

    assert profile.likely_time_labels(LOG_WEIGHT, max_labels=2, minimum_events=3) == []


def test_days_since_last_action_uses_calendar_days():
    noon = NOW.replace(hour=12, minute=0)
    snapshot = BehaviorProfileSnapshot(
        action_counts={LOG_FOOD: 1},
        action_hourly_counts={LOG_FOOD: {23: 1}},
        last_action_at={LOG_FOOD: noon - timedelta(hours=13)},
    )

    assert snapshot.days_since_last_action(LOG_FOOD, noon) == 1


@pytest.mark.parametrize("hour,label", [
    (4, "Morning (4-9 AM)"),
    (11, "Late Morning (9-12 PM)"),
    (12, "Early Afternoon (12-3 PM)"),
    (17, "Mid-Afternoon (3-6 PM)"),
    (21, "Evening (6-10 PM)"),
    (22, "Night (10 PM-4 AM)"),
    (2, "Night (10 PM-4 AM)"),
])
def test_day_part_label(hour, label):
    assert day_part_label(hour) == label


# ──────────────────────────────────────────────
# Suggestion keys
# ──────────────────────────────────────────────

def test_suggestion_key_maps_review_and_plan_keywords():
    assert suggestion_action_key("Review workout plan") == BehaviorActionKey.REVIEW_WORKOUT_PLAN.value
    assert suggestion_action_key("Review nutrition plan") == BehaviorActionKey.REVIEW_NUTRITION_PLAN.value


def test_suggestion_key_maps_domain_keywords():
    assert suggestion_action_key("Open profile") == BehaviorActionKey.OPEN_PROFILE.value
    assert suggestion_action_key("Recovery check") == BehaviorActionKey.OPEN_RECOVERY.value
    assert suggestion_action_key("Log weight") == BehaviorActionKey.LOG_WEIGHT.value
    assert suggestion_action_key("Start training") == BehaviorActionKey.START_WORKOUT.value
    assert suggestion_action_key("Macros") == BehaviorActionKey.OPEN_MACRO_DETAIL.value
    assert suggestion_action_key("Calorie target") == BehaviorActionKey.OPEN_CALORIE_DETAIL.value


def test_suggestion_key_prefers_reminder_over_meal():
    assert suggestion_action_key("Meal reminder") == BehaviorActionKey.COMPLETE_REMINDER.value


def test_suggestion_key_maps_food_words_to_log_food():
    for text in ("Log meal", "Food check", "Protein goal", "log_entry"):
        assert suggestion_action_key(text) == BehaviorActionKey.LOG_FOOD.value


def test_suggestion_key_falls_back_to_engagement_key():
    assert suggestion_action_key("Try New Habit") == "engagement.suggestion.try_new_habit"


# ──────────────────────────────────────────────
# Tracker
# ──────────────────────────────────────────────

def test_tracker_records_event_through_sink():
    recorded = []
    tracker = BehaviorTracker(recorded.append)

    event = tracker.record(
        LOG_FOOD,
        BehaviorDomain.NUTRITION,
        BehaviorSurface.DASHBOARD,
        NOW,
        metadata={"source": "pulse"},
    )

    assert recorded == [event]
    assert event.outcome is BehaviorOutcome.PERFORMED
    assert event.metadata == {"source": "pulse"}


def test_tracker_ignores_blank_action_key():
    recorded = []
    tracker = BehaviorTracker(recorded.append)

    assert tracker.record("  \n", BehaviorDomain.GENERAL, BehaviorSurface.SYSTEM, NOW) is None
    assert recorded == []


def test_encode_metadata_is_stable():
    assert encode_metadata({"b": "2", "a": "1"}) == '{"a": "1", "b": "2"}'
    assert encode_metadata({}) is None
    assert encode_metadata(None) is None
