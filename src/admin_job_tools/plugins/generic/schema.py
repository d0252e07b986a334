"""Generic job parameters and output schemas."""

from typing import Literal

from pydantic import Field, JsonValue

from ...common.schema_job import BaseJobParams, TaskOutput


class GenericParams(BaseJobParams):
    """Parameters for generic/default jobs.

    Attributes:
        operation: What to do; defaults to the job type. Only ``extract`` does work.
        parameters: Passed to the operation (for ``extract``: extract parameters)
    """

    operation: str | None = None
    parameters: dict[str, JsonValue] = Field(default_factory=dict)
    options: dict[str, JsonValue] = Field(default_factory=dict)


class GenericOutput(TaskOutput):
    status: Literal["success", "no-op"]
    data: dict[str, JsonValue] | None = None
