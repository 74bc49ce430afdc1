"""
Model record routes for the ocean platform.
"""

from fastapi import APIRouter, Depends, HTTPException

from .services import Services, get_services

router = APIRouter()


@router.get("/models")
async def list_models(services: Services = Depends(get_services)):
    """List model records, newest first."""
    records = await services.store.list_models()
    return {
        "models": [r.to_dict() for r in records],
        "total": len(records),
    }


@router.get("/models/{model_id}")
async def get_model(model_id: str, services: Services = Depends(get_services)):
    """Get one model record."""
    record = await services.store.get_model(model_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Model '{model_id}' not found")
    return record.to_dict()
