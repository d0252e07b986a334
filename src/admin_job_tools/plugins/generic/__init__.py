"""Generic/default job plugin."""

from .schema import GenericOutput, GenericParams
from .task import DefaultTask, GenericTask

__all__ = ["GenericTask", "DefaultTask", "GenericParams", "GenericOutput"]
