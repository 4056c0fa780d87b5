"""HTTP entry point: the crawl API app and the ``gptcrawl-server`` command.

Importing this module configures root logging as one JSON object per line at
``LOG_LEVEL``.  The app mounts the ``/crawl`` router with its per-client rate
limit and turns any unhandled exception into a plain 500 response.
"""

import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gptcrawl.config import get_settings
from gptcrawl.routers.crawl import limiter, router as crawl_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": get_settings().log_level.upper(), "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="gptcrawl – Crawler API",
    description=(
        "Crawls sites with a headless browser and returns the extracted text as "
        "size- and token-bounded JSON files."
    ),
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(crawl_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"status": "ok", "version": app.version, "skip_crawl": get_settings().no_crawl}


def run() -> None:
    """Serve the API with uvicorn on ``API_HOST``/``API_PORT``."""
    import uvicorn

    settings = get_settings()
    logger.info("API server listening at http://%s:%d", settings.api_host, settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
