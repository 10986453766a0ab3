import uvicorn

from meeting_minutes.core.config import PORT, is_production

if __name__ == "__main__":
    uvicorn.run(
        "meeting_minutes.main:app",
        host="0.0.0.0",
        port=PORT,
        reload=not is_production(),
    )
