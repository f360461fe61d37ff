"""
neural_car/services/

Host-side services around the evolution engine.

Components:
- persistence: Save/load trained genes as {"weights": [...]}
- trainer: Training and examination sessions, command-line entry point
"""

from .persistence import TrainingDataStore, genotype_from_json, genotype_to_json
from .trainer import (
    ExaminationSession,
    TrainingConfig,
    TrainingSession,
    TrialSummary,
    main,
)

__all__ = [
    "TrainingDataStore",
    "genotype_from_json",
    "genotype_to_json",
    "ExaminationSession",
    "TrainingConfig",
    "TrainingSession",
    "TrialSummary",
    "main",
]
