from datetime import datetime, timezone

from fastapi import APIRouter

from meeting_minutes.schemas.audio import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
