"""Extract (database dump) parameters and output schemas."""

from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...common.schema_job import BaseJobParams, TaskOutput


class ExtractOptions(BaseModel):
    include_schema: bool = False
    batch_size: int = Field(1000, ge=1)
    compression: Literal["none", "gzip"] = "none"

    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class ExtractParams(BaseJobParams):
    """Parameters for the extract task.

    Attributes:
        database: Informational name of the source database
        tables: Tables to dump; None dumps every table
        output_format: json, csv (one file per table) or sql (INSERT statements)
        options: Batch size, gzip compression (json/sql only), CREATE TABLE output
    """

    database: str | None = None
    tables: list[str] | None = None
    output_format: Literal["json", "csv", "sql"] = "json"
    options: ExtractOptions = Field(default_factory=ExtractOptions)


class ExtractOutput(TaskOutput):
    message: str = "DB backup completed"
    status: Literal["success"] = "success"
    backup_file: str = Field(..., description="Job-relative path of the dump")
    output_format: str
    records_processed: int = 0
    tables_processed: list[str] = Field(default_factory=list)
    duration: str = "0ms"
