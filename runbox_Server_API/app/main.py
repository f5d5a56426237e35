import logging
import sys

from loguru import logger
from fastapi import FastAPI

from runbox_Server_API.app.core.config import settings as app_settings


class InterceptHandler(logging.Handler):
    """Route stdlib logging records (uvicorn, fastapi) into loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _configure_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=getattr(app_settings, "LOG_LEVEL", "INFO"),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> | {extra} - <level>{message}</level>"
        ),
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        _lg = logging.getLogger(_name)
        _lg.handlers = [InterceptHandler()]
        _lg.propagate = False


_configure_logging()

API_V1_PREFIX = "/api/v1"

app = FastAPI(title="runbox_server", description="Sandboxed code execution API")

if getattr(app_settings, "SANDBOX_ENABLE_API", True):
    from runbox_Server_API.app.api.v1.endpoints.sandbox import router as sandbox_router
    app.include_router(sandbox_router, prefix=API_V1_PREFIX)
else:
    logger.info("Route disabled by policy: sandbox")


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


#
## Entry point for running the server
########################################################################################################################
def run_server():
    """Run the FastAPI server using uvicorn."""
    import uvicorn
    uvicorn.run(
        "runbox_Server_API.app.main:app",
        host="127.0.0.1",
        port=1313,
        log_level="info"
    )


if __name__ == "__main__":
    run_server()

#
## End of main.py
########################################################################################################################
