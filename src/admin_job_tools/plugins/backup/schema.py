"""Backup job parameters and output schemas."""

from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...common.schema_job import BaseJobParams, TaskOutput


class BackupOptions(BaseModel):
    compress: bool = False
    encryption: bool = False
    include_schema: bool = True
    exclude_data: bool = False

    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class BackupParams(BaseJobParams):
    """Parameters for the backup task.

    Attributes:
        database: Logical database name to back up
        tables: Tables to include; None means all
        format: Dump format
        options: Compression/encryption/schema flags
    """

    database: str | None = None
    tables: list[str] | None = None
    format: Literal["sql", "json"] = "sql"
    options: BackupOptions = Field(default_factory=BackupOptions)


class BackupOutput(TaskOutput):
    message: str = "Backup job completed"
    database: str | None = None
    tables: list[str] | None = None
    format: str = "sql"
    compressed: bool = False
