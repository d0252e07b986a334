"""Restore job parameters and output schemas."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...common.schema_job import BaseJobParams, TaskOutput


class RestoreOptions(BaseModel):
    # Serialized as "validate"; the attribute name avoids BaseModel.validate
    validate_file: bool = Field(True, alias="validate")
    batch_size: int = Field(100, ge=1)
    timeout: float = Field(300.0, gt=0, description="Download timeout in seconds")

    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class RestoreParams(BaseJobParams):
    """Parameters for the restore task.

    Attributes:
        backup_url: http(s):// or file:// location of the SQL dump
        database: Informational target database name
        tables: Restore only statements that write these tables
        options: Validation, batch size and download timeout
    """

    backup_url: str = ""
    database: str | None = None
    tables: list[str] | None = None
    options: RestoreOptions = Field(default_factory=RestoreOptions)


class RestoreOutput(TaskOutput):
    message: str = "Restore completed successfully"
    records_processed: int = 0
    tables_restored: list[str] = Field(default_factory=list)
    duration: str = "0ms"
