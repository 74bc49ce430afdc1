"""
Simulated training run that publishes its progress over the real-time channel.

State machine:
    initializing -> training -> validating -> training -> ... -> completed
    any non-terminal state -> failed (cancel() or an unexpected error)

Each job runs as one asyncio task that ticks once per batch
(epoch_duration / total_batches seconds). Events for a job are emitted in
(epoch, batch) order and the completed/stopped event is always the last one.
"""

import asyncio
import contextlib
from typing import Any, Callable, Dict, Optional

import numpy as np

from websocket import TRAINING_TOPIC, BroadcastHub, MessageType

from ..shared.errors import NotFound, SimulationCancelled
from ..shared.logger import get_logger
from ..store import ModelStore
from .curves import (
    ModelType,
    final_metrics,
    generate_accuracy,
    generate_loss,
    validation_accuracy,
    validation_loss,
)
from .progress import JobProgress, TrainingStatus

logger = get_logger(__name__)


class ProgressSimulator:
    """Drives one JobProgress through a synthetic multi-epoch run."""

    def __init__(
        self,
        progress: JobProgress,
        model_type: ModelType,
        hub: BroadcastHub,
        store: ModelStore,
        rng: np.random.Generator,
        epoch_duration: float = 120.0,
        validation_delay: float = 5.0,
        on_finished: Optional[Callable[[str], None]] = None,
    ):
        self._progress = progress
        self._model_type = model_type
        self._hub = hub
        self._store = store
        self._rng = rng
        self.batch_interval = epoch_duration / progress.total_batches
        self.validation_delay = validation_delay
        self._on_finished = on_finished
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        self._finished = asyncio.Event()

    @property
    def job_id(self) -> str:
        return self._progress.job_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Enter the training state and schedule the batch ticks."""
        self._progress.status = TrainingStatus.TRAINING
        self._task = asyncio.create_task(self._run())

    async def cancel(self) -> bool:
        """
        Stop the run and mark it failed.

        Returns:
            True if a running job was stopped, False if there was nothing to stop
        """
        if not self.running or self._progress.status.is_terminal:
            return False

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        # Let a send that was already under way finish before the final event
        if self._inflight is not None and not self._inflight.done():
            await self._inflight

        self._progress.status = TrainingStatus.FAILED
        await self._stopped(str(SimulationCancelled(self.job_id)))
        logger.info("Training stopped for model %s", self.job_id)
        return True

    async def wait(self) -> JobProgress:
        """
        Wait until the run reaches a terminal state.

        Raises:
            SimulationCancelled: If the run was stopped
        """
        await self._finished.wait()
        if self._progress.status == TrainingStatus.FAILED:
            raise SimulationCancelled(self.job_id)
        return self._progress

    async def _stopped(self, reason: str) -> None:
        """Publish the final stopped event and release waiters."""
        try:
            await self._hub.broadcast(
                MessageType.TRAINING_STOPPED.value,
                {**self._progress.to_dict(), "reason": reason},
                TRAINING_TOPIC,
            )
        finally:
            self._finished.set()

    async def _emit(self, message_type: MessageType, **extra: Any) -> None:
        payload = self._progress.to_dict()
        payload.update(extra)
        # Shielded so cancelling the job never aborts a send in flight
        self._inflight = asyncio.ensure_future(
            self._hub.broadcast(message_type.value, payload, TRAINING_TOPIC)
        )
        await asyncio.shield(self._inflight)

    async def _run(self) -> None:
        progress = self._progress
        try:
            await self._emit(MessageType.TRAINING_UPDATE)
            while True:
                await asyncio.sleep(self.batch_interval)
                self._advance_batch()
                await self._emit(MessageType.TRAINING_UPDATE)

                if progress.current_batch >= progress.total_batches:
                    if await self._end_epoch():
                        return
        except Exception as e:
            logger.exception("Training simulation crashed for model %s", self.job_id)
            progress.status = TrainingStatus.FAILED
            await self._stopped(f"Training failed: {e}")
        finally:
            if self._on_finished is not None:
                self._on_finished(self.job_id)

    def _advance_batch(self) -> None:
        p = self._progress
        p.current_batch += 1

        epoch_progress = p.current_batch / p.total_batches
        overall = (p.epoch + epoch_progress) / p.total_epochs

        p.loss = generate_loss(overall, self._model_type, self._rng)
        p.accuracy = generate_accuracy(overall, self._model_type, self._rng)
        p.validation_loss = validation_loss(p.loss, self._rng)
        p.validation_accuracy = validation_accuracy(p.accuracy, self._rng)

        batches_remaining = (
            (p.total_epochs - p.epoch - 1) * p.total_batches
            + (p.total_batches - p.current_batch)
        )
        p.estimated_time_remaining = batches_remaining * self.batch_interval

    async def _end_epoch(self) -> bool:
        """Roll over to the next epoch. Returns True when the run is complete."""
        p = self._progress
        p.epoch += 1
        p.current_batch = 0

        if p.epoch >= p.total_epochs:
            p.status = TrainingStatus.COMPLETED
            p.estimated_time_remaining = 0
            metrics = await self._finalize()
            await self._emit(MessageType.TRAINING_COMPLETE, metrics=metrics)
            self._finished.set()
            logger.info("Training completed for model %s", self.job_id)
            return True

        p.status = TrainingStatus.VALIDATING
        await self._emit(MessageType.TRAINING_UPDATE)
        await asyncio.sleep(self.validation_delay)
        p.status = TrainingStatus.TRAINING
        await self._emit(MessageType.TRAINING_UPDATE)
        return False

    async def _finalize(self) -> Dict[str, float]:
        """Persist the final metrics and activate the model record."""
        metrics = final_metrics(self._progress.accuracy, self._rng)
        try:
            await self._store.update_model(self.job_id, {**metrics, "isActive": True})
        except NotFound:
            logger.error("Cannot finalize model %s: record no longer exists", self.job_id)
        return metrics
