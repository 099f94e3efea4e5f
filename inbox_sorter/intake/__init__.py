"""Intake module: per-file decisions over the inbox."""

from .decisions import Outcome, FileDecision, RunReport
from .engine import IntakeEngine

__all__ = [
    "Outcome",
    "FileDecision",
    "RunReport",
    "IntakeEngine",
]
