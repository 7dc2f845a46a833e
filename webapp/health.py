"""Default health endpoints, mapped in development only."""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "Healthy"}


@router.get("/alive")
def alive():
    return {"status": "Healthy"}
