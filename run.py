import uvicorn

from ragquery.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "ragquery.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info" if settings.environment == "development" else "warning",
    )
