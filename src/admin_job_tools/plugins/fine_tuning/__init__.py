"""Model fine-tuning plugin."""

from .schema import FineTuningOutput, FineTuningParams, TrainingConfig
from .task import FineTuningTask

__all__ = ["FineTuningTask", "FineTuningParams", "FineTuningOutput", "TrainingConfig"]
