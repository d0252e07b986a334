"""Database extract (dump to file) plugin."""

from .schema import ExtractOptions, ExtractOutput, ExtractParams
from .task import ExtractTask

__all__ = ["ExtractTask", "ExtractParams", "ExtractOptions", "ExtractOutput"]
