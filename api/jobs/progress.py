"""
State of simulated training runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from .curves import ModelType


class TrainingStatus(str, Enum):
    """Lifecycle status of a training job."""

    INITIALIZING = "initializing"
    TRAINING = "training"
    VALIDATING = "validating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TrainingStatus.COMPLETED, TrainingStatus.FAILED)


class TrainingConfig(BaseModel):
    """Configuration for one simulated training run."""

    name: str = Field(..., min_length=1, description="Display name of the model")
    type: ModelType = Field(..., description="Architecture family")
    architecture: str = Field(..., description="Architecture name, e.g. resnet")
    epochs: int = Field(..., gt=0)
    batch_size: int = Field(..., gt=0, alias="batchSize")
    learning_rate: float = Field(..., gt=0, alias="learningRate")
    dataset_size: int = Field(..., gt=0, alias="datasetSize")

    model_config = {"populate_by_name": True}


@dataclass
class JobProgress:
    """Mutable progress of one training job.

    Owned by the JobController; the simulator driving the job mutates this
    same object.
    """

    job_id: str
    total_epochs: int
    total_batches: int
    learning_rate: float
    epoch: int = 0
    current_batch: int = 0
    loss: float = 0.0
    accuracy: float = 0.0
    validation_loss: float = 0.0
    validation_accuracy: float = 0.0
    estimated_time_remaining: float = 0.0
    status: TrainingStatus = TrainingStatus.INITIALIZING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape the dashboard expects."""
        return {
            "modelId": self.job_id,
            "epoch": self.epoch,
            "totalEpochs": self.total_epochs,
            "currentBatch": self.current_batch,
            "totalBatches": self.total_batches,
            "loss": self.loss,
            "accuracy": self.accuracy,
            "validationLoss": self.validation_loss,
            "validationAccuracy": self.validation_accuracy,
            "learningRate": self.learning_rate,
            "estimatedTimeRemaining": self.estimated_time_remaining,
            "status": self.status.value,
        }
