import uvicorn

from frontend.config import get_settings


def start_server() -> None:
    """Start the front end with uvicorn, using HOST and PORT from the environment."""
    settings = get_settings()
    uvicorn.run(
        "frontend.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    start_server()
