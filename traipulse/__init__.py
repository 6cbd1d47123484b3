"""
TraiPulse: on-device recommendation core for the Trai dashboard.

Deterministic, side-effect free scoring over caller-supplied snapshots,
plus the policy rails and I/O contract for model-managed Pulse content.
"""

__version__ = "0.2.0"
