"""
Progress endpoints.
"""
from fastapi import APIRouter, Depends
from sqlmodel import Session

from knowflow.core.database import get_session
from knowflow.schemas.progress import ProgressResponse
from knowflow.services.progress_service import get_progress

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("", response_model=ProgressResponse)
async def read_progress(session: Session = Depends(get_session)):
    """Card totals and seven-day activity."""
    return get_progress(session)
