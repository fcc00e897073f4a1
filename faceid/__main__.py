"""Run the face identity service with uvicorn."""
import uvicorn

from faceid.core.config import settings


def main() -> None:
    uvicorn.run(
        "faceid.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,  # logging is configured by faceid.core.logging
    )


if __name__ == "__main__":
    main()
