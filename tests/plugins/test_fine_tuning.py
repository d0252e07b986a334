"""Unit tests for the simulated fine-tuning plugin."""

import pytest

from admin_job_tools.common.schema_job_record import JobRecord
from admin_job_tools.plugins.fine_tuning.schema import FineTuningParams
from admin_job_tools.plugins.fine_tuning.task import FineTuningTask, epoch_metrics


def test_params_accept_camel_case():
    params = FineTuningParams.model_validate(
        {"modelId": "base", "datasetPath": "/data/train.jsonl", "trainingConfig": {"learningRate": 0.001}}
    )

    assert params.model_id == "base"
    assert params.dataset_path == "/data/train.jsonl"
    assert params.training_config.learning_rate == 0.001
    assert params.training_config.epochs == 3


def test_params_reject_zero_epochs():
    with pytest.raises(ValueError):
        _ = FineTuningParams.model_validate({"trainingConfig": {"epochs": 0}})


def test_epoch_metrics_improve():
    losses = [epoch_metrics(epoch, 1e-4).loss for epoch in range(1, 6)]
    assert losses == sorted(losses, reverse=True)
    assert epoch_metrics(3, 1e-4) == epoch_metrics(3, 1e-4)


@pytest.mark.asyncio
async def test_fine_tuning_history_and_progress(file_storage):
    progress: list[int] = []

    output = await FineTuningTask(simulated_delay=0).run(
        "job-1",
        FineTuningParams.model_validate({"modelId": "base", "trainingConfig": {"epochs": 4}}),
        file_storage,
        progress.append,
    )

    assert output.epochs == 4
    assert [m.epoch for m in output.history] == [1, 2, 3, 4]
    assert output.final_loss == output.history[-1].loss
    assert progress == [25, 50, 75, 99]


@pytest.mark.asyncio
async def test_fine_tuning_execute(file_storage):
    record = JobRecord(id="job-2", type="fine-tuning", payload={})

    result = await FineTuningTask(simulated_delay=0).execute(record, file_storage)

    assert result.status == "completed"
    assert result.output.message == "Fine-tuning job completed"
    assert result.output.details()["epochs"] == 3
