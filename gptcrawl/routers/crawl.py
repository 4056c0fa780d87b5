import logging
from pathlib import Path
from typing import List, Union

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from playwright.async_api import Error as PlaywrightError
from slowapi import Limiter
from slowapi.util import get_remote_address

from gptcrawl.errors import ConfigValidationError, CrawlerError
from gptcrawl.models.crawl_config import CrawlConfig, resolve_config
from gptcrawl.services.pipeline import CrawlerCore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def _error_response(error: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"message": "Error occurred during crawling", "error": error},
    )


@router.post(
    "/crawl",
    summary="Crawl a site and return the first output file",
    description=(
        "Accepts one crawl configuration or a list of them, crawls every seed "
        "with a headless browser, writes the size- and token-bounded output "
        "files, and returns the contents of the first file produced."
    ),
)
@limiter.limit("5/minute")
async def crawl_endpoint(
    request: Request,
    body: Union[CrawlConfig, List[CrawlConfig]] = Body(...),
) -> Response:
    try:
        spec = resolve_config(body)
    except ConfigValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    logger.info(
        "Crawl request received",
        extra={"configs": len(spec.entries()), "seeds": [c.seed_urls for _, c in spec.entries()]},
    )

    try:
        results = await CrawlerCore(spec).run()
    except (CrawlerError, PlaywrightError, OSError) as exc:
        logger.error("Crawl failed: %s", exc)
        return _error_response(str(exc))

    first = next((path for paths in results for path in paths), None)
    if first is None:
        logger.warning("Crawl produced no output files")
        return _error_response("The crawl produced no output files.")

    try:
        content = Path(first).read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Could not read output file %s: %s", first, exc)
        return _error_response(str(exc))

    return Response(content=content, media_type="application/json")
