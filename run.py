import uvicorn

from portal.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "portal.main:create_app",
        factory=True,
        host="127.0.0.1",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
