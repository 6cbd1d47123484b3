"""
Structured JSON logging for the TraiPulse engine.
Provides trace context and one helper per engine decision point.
"""

import os
import logging
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from traipulse import config


class StructuredLogger:
    """Structured JSON logger with trace context."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.trace_context: Dict[str, Any] = {}

    def set_trace_context(self, trace_id: str, user_id: Optional[str] = None,
                          surface: Optional[str] = None):
        """Bind context fields to every following message.

        Args:
            trace_id: Identifier of one dashboard refresh
            user_id: Local user identifier (if known)
            surface: Dashboard surface being computed
        """
        self.trace_context = {
            "trace_id": trace_id,
            "user_id": user_id,
            "surface": surface,
        }

    def clear_context(self):
        """Clear trace context."""
        self.trace_context = {}

    def log(self, level: str, message: str, **kwargs):
        """Log message with structured context.

        Args:
            level: Log level ('debug', 'info', 'warning', 'error', 'critical')
            message: Log message
            **kwargs: Additional fields to include in JSON
        """
        fields = {**self.trace_context, **kwargs}
        getattr(self.logger, level)(message, extra=fields)

    def debug(self, message: str, **kwargs):
        self.log("debug", message, **kwargs)

    def info(self, message: str, **kwargs):
        self.log("info", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.log("warning", message, **kwargs)

    def error(self, message: str, **kwargs):
        self.log("error", message, **kwargs)

    def log_ranking(self, candidate_count: int, ranked: list, limit: int):
        """Log the outcome of one ranking pass."""
        self.debug(
            f"Ranked {len(ranked)} of {candidate_count} candidate actions",
            candidate_count=candidate_count,
            limit=limit,
            top_kinds=[r.action.kind.value for r in ranked[:3]],
            top_scores=[round(r.score, 3) for r in ranked[:3]],
        )

    def log_packet(self, estimated_tokens: int, token_budget: int, trimmed: int):
        """Log context packet assembly."""
        self.debug(
            f"Context packet assembled: {estimated_tokens}/{token_budget} tokens",
            estimated_tokens=estimated_tokens,
            token_budget=token_budget,
            trimmed_items=trimmed,
        )

    def log_policy_decision(self, decision: str, surface_type: str, **kwargs):
        """Log a policy gate outcome. Downgrades log at info."""
        level = "debug" if decision == "pass" else "info"
        self.log(
            level,
            f"Pulse policy: {decision}",
            decision=decision,
            surface_type=surface_type,
            **kwargs,
        )

    def log_parse_failure(self, reason: str, field: Optional[str] = None):
        """Log rejected model output."""
        self.warning(
            f"Pulse content rejected: {reason}",
            reason=reason,
            field=field,
        )

    def log_brief(self, phase: str, title: str, confidence: float, question_id: str):
        """Log a deterministic brief."""
        self.debug(
            f"Brief built: {title}",
            phase=phase,
            confidence=round(confidence, 3),
            question_id=question_id,
        )


def setup_json_logging(log_file: Optional[str] = None, level: Optional[str] = None):
    """Setup JSON logging to file and console.

    Args:
        log_file: Optional file path for JSON logs
        level: Root log level name, defaults to TRAIPULSE_LOG_LEVEL
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO))

    json_formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(json_formatter)
    root_logger.addHandler(console_handler)

    log_file = log_file or config.LOG_FILE
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(json_formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"JSON logging initialized to {log_file}")


# Global structured logger instance
logger = StructuredLogger("traipulse")
