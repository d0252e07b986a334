"""Fine-tuning parameters and output schemas."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...common.schema_job import BaseJobParams, TaskOutput


class _CamelModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class TrainingConfig(_CamelModel):
    epochs: int = Field(3, ge=1, le=1000)
    learning_rate: float = Field(1e-4, gt=0)
    batch_size: int = Field(8, ge=1)
    validation_split: float = Field(0.1, ge=0, lt=1)


class FineTuningOptions(_CamelModel):
    save_checkpoints: bool = False
    early_stop: bool = False
    metrics: list[str] = Field(default_factory=lambda: ["loss", "accuracy"])


class FineTuningParams(BaseJobParams):
    model_config: ClassVar[ConfigDict] = ConfigDict(protected_namespaces=())

    model_id: str | None = None
    dataset_path: str | None = None
    training_config: TrainingConfig = Field(default_factory=TrainingConfig)
    options: FineTuningOptions = Field(default_factory=FineTuningOptions)


class EpochMetrics(BaseModel):
    epoch: int
    loss: float
    accuracy: float


class FineTuningOutput(TaskOutput):
    model_config: ClassVar[ConfigDict] = ConfigDict(protected_namespaces=())

    message: str = "Fine-tuning job completed"
    model_id: str | None = None
    epochs: int
    history: list[EpochMetrics] = Field(default_factory=list)
    final_loss: float | None = None
