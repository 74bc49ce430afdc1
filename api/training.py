"""
Training API routes for the ocean platform.

Starts simulated training jobs, reports their progress and serves the
synthetic metrics report of a trained model. Live progress is streamed on
the ``training`` topic of the /ws endpoint.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .jobs import JobProgress, TrainingConfig
from .services import Services, get_services
from .shared.errors import NotFound

router = APIRouter()


# ============= Request/Response Models =============


class TrainingRequest(TrainingConfig):
    """Request model for starting a training job."""


class TrainingProgressResponse(BaseModel):
    """Progress of one training job."""

    modelId: str
    epoch: int
    totalEpochs: int
    currentBatch: int
    totalBatches: int
    loss: float
    accuracy: float
    validationLoss: float
    validationAccuracy: float
    learningRate: float
    estimatedTimeRemaining: float
    status: str


class ActiveTrainingResponse(BaseModel):
    jobs: List[TrainingProgressResponse]
    total: int


class ModelMetricsResponse(BaseModel):
    """Synthetic metrics report for a trained model."""

    trainingHistory: List[Dict[str, Any]]
    confusionMatrix: List[List[int]]
    classificationReport: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    learningCurves: Dict[str, List[Any]]


def _progress_response(progress: JobProgress) -> TrainingProgressResponse:
    return TrainingProgressResponse(**progress.to_dict())


def _require_progress(services: Services, job_id: str) -> JobProgress:
    progress = services.jobs.progress(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"Training job '{job_id}' not found")
    return progress


# ============= Training Routes =============


@router.post("/training/start", response_model=TrainingProgressResponse, status_code=201)
async def start_training(request: TrainingRequest, services: Services = Depends(get_services)):
    """
    Start a new simulated training job.

    Creates a pending model record and begins streaming progress updates.
    The returned ``modelId`` is the job id.
    """
    job_id = await services.jobs.start(request)
    return _progress_response(services.jobs.progress(job_id))


@router.get("/training/active", response_model=ActiveTrainingResponse)
async def list_active_training(services: Services = Depends(get_services)):
    """List jobs that have neither completed nor been stopped."""
    jobs = [_progress_response(p) for p in services.jobs.active_jobs()]
    return ActiveTrainingResponse(jobs=jobs, total=len(jobs))


@router.get("/training/{job_id}", response_model=TrainingProgressResponse)
async def get_training_progress(job_id: str, services: Services = Depends(get_services)):
    """Get the current progress of a training job."""
    return _progress_response(_require_progress(services, job_id))


@router.post("/training/{job_id}/stop")
async def stop_training(job_id: str, services: Services = Depends(get_services)):
    """Stop a running training job. The job ends in the ``failed`` state."""
    progress = _require_progress(services, job_id)

    stopped = await services.jobs.stop(job_id)
    if not stopped:
        raise HTTPException(
            status_code=400,
            detail=f"Training job '{job_id}' is not running (status: {progress.status.value})",
        )

    return {
        "success": True,
        "job_id": job_id,
        "status": progress.status.value,
    }


@router.get("/training/{job_id}/metrics", response_model=ModelMetricsResponse)
async def get_model_metrics(
    job_id: str,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Get the metrics report of a model.

    The report is regenerated on every request and is not the history that
    was streamed while training.
    """
    try:
        return await services.jobs.metrics_report(job_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
