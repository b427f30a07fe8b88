from fastapi import APIRouter

from scanboard.config import VERSION

router = APIRouter(tags=["System"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/version")
def get_version():
    return {"version": VERSION or "unknown", "status": "stable"}
