"""
TraiPulse — Behavior Profile  (traipulse/behavior_profile.py)
=============================================================
Turns the raw behavior event log into compact per-action statistics:

  action_counts         {action_key: n}
  action_hourly_counts  {action_key: {hour 0-23: n}}
  last_action_at        {action_key: latest timestamp}

Dismissals and blank keys never count.  The ranker reads the snapshot
through days_since_last_action / hourly_preference_score /
likely_time_labels.

Also hosts the single write path for new events (BehaviorTracker).

Public API:
  build_profile(now, events, window_days=45) -> BehaviorProfileSnapshot
  BehaviorTracker(sink).record(...)
  suggestion_action_key(suggestion_type) -> str
"""
from __future__ import annotations

import json
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from traipulse import config
from traipulse.models import BehaviorEvent, clamp
from traipulse.ontology import (
    BehaviorActionKey, BehaviorDomain, BehaviorOutcome, BehaviorSurface,
)
from traipulse.structured_logging import StructuredLogger

log = StructuredLogger(__name__)


# ══════════════════════════════════════════════
# SNAPSHOT
# ══════════════════════════════════════════════

@dataclass(frozen=True)
class BehaviorProfileSnapshot:
    action_counts:        dict[str, int]             = field(default_factory=dict)
    action_hourly_counts: dict[str, dict[int, int]]  = field(default_factory=dict)
    last_action_at:       dict[str, datetime]        = field(default_factory=dict)

    def days_since_last_action(self, key: str, now: datetime) -> Optional[int]:
        """Calendar-day gap to the last occurrence; None if the key never occurred."""
        last = self.last_action_at.get(key)
        if last is None:
            return None
        return max((now.date() - last.date()).days, 0)

    def hourly_preference_score(self, key: str, hour: int,
                                minimum_events: int = config.HOURLY_MIN_EVENTS) -> float:
        """
        Share of the key's events at `hour`, plus a partial share from the
        two neighbouring hours (wrapping at midnight).  0 below the floor.
        """
        total = self.action_counts.get(key, 0)
        hourly = self.action_hourly_counts.get(key)
        if hourly is None or total < minimum_events or total <= 0:
            return 0.0

        exact = hourly.get(hour % 24, 0) / total
        neighbors = (hourly.get((hour - 1) % 24, 0) + hourly.get((hour + 1) % 24, 0)) / total
        return clamp(exact + config.HOURLY_NEIGHBOR_WEIGHT * neighbors)

    def likely_time_labels(self, key: str,
                           max_labels: int = config.LIKELY_TIME_MAX_LABELS,
                           minimum_events: int = config.HOURLY_MIN_EVENTS) -> list[str]:
        total = self.action_counts.get(key, 0)
        hourly = self.action_hourly_counts.get(key)
        if hourly is None or total < minimum_events:
            return []

        by_label: dict[str, int] = defaultdict(int)
        for hour, count in hourly.items():
            if count > 0:
                by_label[day_part_label(hour)] += count

        ranked = sorted(by_label.items(), key=lambda kv: (-kv[1], kv[0]))
        return [label for label, _ in ranked[:max(max_labels, 0)]]


def day_part_label(hour: int) -> str:
    for start, end, label in config.DAY_PART_LABELS:
        if start <= hour < end:
            return label
    return config.NIGHT_LABEL


# ══════════════════════════════════════════════
# BUILDER
# ══════════════════════════════════════════════

def build_profile(now: datetime, events: list[BehaviorEvent],
                  window_days: int = config.BEHAVIOR_WINDOW_DAYS) -> BehaviorProfileSnapshot:
    """Aggregate events inside [now - (window_days - 1) days, now]."""
    window_start = now - timedelta(days=max(window_days, 1) - 1)

    counts: dict[str, int] = defaultdict(int)
    hourly: dict[str, dict[int, int]] = defaultdict(lambda: defaultdict(int))
    last_at: dict[str, datetime] = {}

    for event in events:
        if not (window_start <= event.occurred_at <= now):
            continue
        if event.outcome is BehaviorOutcome.DISMISSED:
            continue
        key = event.action_key.strip()
        if not key:
            continue

        counts[key] += 1
        hourly[key][event.occurred_at.hour] += 1
        if key not in last_at or event.occurred_at > last_at[key]:
            last_at[key] = event.occurred_at

    snapshot = BehaviorProfileSnapshot(
        action_counts=dict(counts),
        action_hourly_counts={k: dict(v) for k, v in hourly.items()},
        last_action_at=last_at,
    )
    log.debug(
        "Behavior profile built",
        window_days=window_days,
        event_count=len(events),
        action_keys=len(counts),
    )
    return snapshot


# ══════════════════════════════════════════════
# WRITE PATH
# ══════════════════════════════════════════════

# Checked top-down; first match wins.
_SUGGESTION_KEY_RULES: list[tuple[tuple[str, ...], BehaviorActionKey]] = [
    (("profile",),                             BehaviorActionKey.OPEN_PROFILE),
    (("recovery",),                            BehaviorActionKey.OPEN_RECOVERY),
    (("weight",),                              BehaviorActionKey.LOG_WEIGHT),
    (("workout", "train"),                     BehaviorActionKey.START_WORKOUT),
    (("macro",),                               BehaviorActionKey.OPEN_MACRO_DETAIL),
    (("calorie",),                             BehaviorActionKey.OPEN_CALORIE_DETAIL),
    (("reminder",),                            BehaviorActionKey.COMPLETE_REMINDER),
    (("meal", "food", "protein", "log_"),      BehaviorActionKey.LOG_FOOD),
]


def suggestion_action_key(suggestion_type: str) -> str:
    """
    Map a free-text suggestion type onto a behavior action key.
    'review_workout_plan' → 'planning.review_workout_plan'
    'Try Something New'   → 'engagement.suggestion.try_something_new'
    """
    normalized = suggestion_type.lower()

    if "review" in normalized or "plan" in normalized:
        if "workout" in normalized:
            return BehaviorActionKey.REVIEW_WORKOUT_PLAN.value
        return BehaviorActionKey.REVIEW_NUTRITION_PLAN.value

    for keywords, key in _SUGGESTION_KEY_RULES:
        if any(k in normalized for k in keywords):
            return key.value

    return "engagement.suggestion." + normalized.replace(" ", "_")


def encode_metadata(metadata: Optional[dict[str, str]]) -> Optional[str]:
    """Stable JSON form of event metadata; None when empty."""
    if not metadata:
        return None
    return json.dumps(metadata, sort_keys=True)


class BehaviorTracker:
    """Single write path for behavior events.  `sink` persists each event."""

    def __init__(self, sink: Callable[[BehaviorEvent], None]):
        self.sink = sink

    def record(
        self,
        action_key: str,
        domain: BehaviorDomain,
        surface: BehaviorSurface,
        occurred_at: datetime,
        outcome: BehaviorOutcome = BehaviorOutcome.PERFORMED,
        related_entity_id: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> Optional[BehaviorEvent]:
        """Build and persist one event.  Blank keys are ignored (returns None)."""
        if not re.sub(r"\s+", "", action_key or ""):
            log.debug("Skipped behavior event with blank action key", surface=surface.value)
            return None

        event = BehaviorEvent(
            action_key=action_key,
            domain=domain,
            surface=surface,
            outcome=outcome,
            occurred_at=occurred_at,
            related_entity_id=related_entity_id,
            metadata=dict(metadata) if metadata else None,
        )
        self.sink(event)
        log.debug(
            "Behavior event recorded",
            action_key=action_key,
            outcome=outcome.value,
            metadata=encode_metadata(metadata),
        )
        return event
