"""
Job controller for simulated training runs.

Owns one JobProgress per job id and one ProgressSimulator per running job.
A job id is the id of the model record created for it.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np

from websocket import BroadcastHub

from ..shared.errors import NotFound, SimulationCancelled
from ..shared.logger import get_logger
from ..store import ModelStore
from .curves import (
    DEFAULT_NUM_CLASSES,
    DEFAULT_REPORT_EPOCHS,
    classification_report,
    confusion_matrix,
    training_history,
)
from .progress import JobProgress, TrainingConfig, TrainingStatus
from .simulator import ProgressSimulator

logger = get_logger(__name__)


class JobController:
    """
    Starts, stops and reports on simulated training jobs.

    All methods run on the event loop; the progress and simulator maps are
    only touched from there.
    """

    def __init__(
        self,
        hub: BroadcastHub,
        store: ModelStore,
        rng: Optional[np.random.Generator] = None,
        epoch_duration: float = 120.0,
        validation_delay: float = 5.0,
    ):
        """Initialize the controller.

        Args:
            hub: Broadcast hub progress events are published through
            store: Model record storage
            rng: Random source for the metric curves
            epoch_duration: Seconds of simulated time per epoch
            validation_delay: Seconds spent validating between epochs
        """
        self._hub = hub
        self._store = store
        self._rng = rng if rng is not None else np.random.default_rng()
        self.epoch_duration = epoch_duration
        self.validation_delay = validation_delay
        self._progress: Dict[str, JobProgress] = {}
        self._simulators: Dict[str, ProgressSimulator] = {}

    async def start(self, config: Union[TrainingConfig, Mapping[str, Any]]) -> str:
        """
        Create a pending model record and start simulating its training.

        Args:
            config: Training configuration (validated if given as a mapping)

        Returns:
            The job id, which is also the model record id
        """
        if not isinstance(config, TrainingConfig):
            config = TrainingConfig.model_validate(config)

        record = await self._store.create_model({
            "name": config.name,
            "type": config.type.value,
            "version": "v1.0.0",
            "accuracy": 0.0,
            "precision": 0.0,
            "recall": 0.0,
            "f1Score": 0.0,
            "trainingData": f"Training on {config.dataset_size} samples",
            "isActive": False,
            "parameters": {
                "architecture": config.architecture,
                "epochs": config.epochs,
                "batchSize": config.batch_size,
                "learningRate": config.learning_rate,
                "optimizer": "Adam",
            },
        })

        progress = JobProgress(
            job_id=record.id,
            total_epochs=config.epochs,
            total_batches=math.ceil(config.dataset_size / config.batch_size),
            learning_rate=config.learning_rate,
            estimated_time_remaining=config.epochs * self.epoch_duration,
        )
        self._progress[record.id] = progress

        simulator = ProgressSimulator(
            progress,
            config.type,
            self._hub,
            self._store,
            self._rng,
            epoch_duration=self.epoch_duration,
            validation_delay=self.validation_delay,
            on_finished=self._forget_simulator,
        )
        self._simulators[record.id] = simulator
        simulator.start()

        logger.info(
            "Starting training for %s (%s, %d epochs x %d batches) as model %s",
            config.name,
            config.type.value,
            progress.total_epochs,
            progress.total_batches,
            record.id,
        )
        return record.id

    def _forget_simulator(self, job_id: str) -> None:
        self._simulators.pop(job_id, None)

    def progress(self, job_id: str) -> Optional[JobProgress]:
        """Get the progress of a job, or None if unknown."""
        return self._progress.get(job_id)

    def active_jobs(self) -> List[JobProgress]:
        """Jobs that have neither completed nor been stopped."""
        return [p for p in self._progress.values() if not p.status.is_terminal]

    async def stop(self, job_id: str) -> bool:
        """
        Stop a running job.

        Returns:
            True if the job was running and is now stopped, False otherwise
        """
        simulator = self._simulators.get(job_id)
        if simulator is None:
            return False
        stopped = await simulator.cancel()
        self._simulators.pop(job_id, None)
        return stopped

    async def wait(self, job_id: str) -> JobProgress:
        """
        Wait for a running job to finish.

        Raises:
            NotFound: If the job is unknown
            SimulationCancelled: If the job was stopped
        """
        simulator = self._simulators.get(job_id)
        if simulator is not None:
            return await simulator.wait()
        progress = self._progress.get(job_id)
        if progress is None:
            raise NotFound("Training job", job_id)
        if progress.status == TrainingStatus.FAILED:
            raise SimulationCancelled(job_id)
        return progress

    async def metrics_report(self, job_id: str) -> Dict[str, Any]:
        """
        Build a synthetic metrics report for a model.

        The history is regenerated from the curve functions on every call; it
        is not the sequence of updates that was streamed while training.

        Raises:
            NotFound: If no model record exists for job_id
        """
        record = await self._store.get_model(job_id)
        if record is None:
            raise NotFound("Model", job_id)

        parameters = record.parameters or {}
        epochs = int(parameters.get("epochs") or DEFAULT_REPORT_EPOCHS)
        num_classes = int(parameters.get("classes") or DEFAULT_NUM_CLASSES)

        history = training_history(epochs, record.type, self._rng)
        matrix = confusion_matrix(num_classes, self._rng)

        return {
            "trainingHistory": history,
            "confusionMatrix": matrix.tolist(),
            "classificationReport": classification_report(matrix),
            "learningCurves": {
                "epochs": [h["epoch"] for h in history],
                "trainLoss": [h["loss"] for h in history],
                "valLoss": [h["valLoss"] for h in history],
                "trainAcc": [h["accuracy"] for h in history],
                "valAcc": [h["valAccuracy"] for h in history],
            },
        }

    async def shutdown(self) -> None:
        """Stop every running job."""
        for job_id in list(self._simulators):
            await self.stop(job_id)
