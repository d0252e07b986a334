"""Fine-tuning task implementation."""

from typing import Callable, override

from loguru import logger

from ...common.compute_module import ComputeModule
from ...common.job_storage import JobStorage
from ...config import get_settings
from ...utils.simulated_work import simulate_work
from .schema import EpochMetrics, FineTuningOutput, FineTuningParams


def epoch_metrics(epoch: int, learning_rate: float) -> EpochMetrics:
    """Deterministic, monotonically improving metrics for a simulated epoch."""
    decay = 0.6 + min(0.3, learning_rate * 100)
    loss = round(2.0 * decay**epoch, 4)
    accuracy = round(max(0.0, 1.0 - loss / 2.5), 4)
    return EpochMetrics(epoch=epoch, loss=loss, accuracy=accuracy)


class FineTuningTask(ComputeModule[FineTuningParams, FineTuningOutput]):
    """Simulated model fine-tuning loop."""

    schema: type[FineTuningParams] = FineTuningParams

    def __init__(self, simulated_delay: float | None = None):
        self.simulated_delay: float | None = simulated_delay

    @property
    @override
    def task_type(self) -> str:
        return "fine-tuning"

    @override
    async def run(
        self,
        job_id: str,
        params: FineTuningParams,
        storage: JobStorage,
        progress_callback: Callable[[int], None] | None = None,
    ) -> FineTuningOutput:
        config = params.training_config
        logger.info(
            f"Starting fine-tuning job {job_id}: model={params.model_id} epochs={config.epochs}"
        )

        delay = self.simulated_delay
        if delay is None:
            delay = get_settings().simulated_work_seconds
        per_epoch = delay / config.epochs

        history: list[EpochMetrics] = []
        for epoch in range(1, config.epochs + 1):
            await simulate_work(per_epoch, steps=1)
            metrics = epoch_metrics(epoch, config.learning_rate)
            history.append(metrics)
            logger.debug(f"Job {job_id} epoch {epoch}: loss={metrics.loss}")
            if progress_callback:
                progress_callback(min(99, epoch * 100 // config.epochs))

        return FineTuningOutput(
            model_id=params.model_id,
            epochs=config.epochs,
            history=history,
            final_loss=history[-1].loss,
        )
