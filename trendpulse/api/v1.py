"""Version 1 HTTP API.

Endpoints:
- POST /mentions: submit one mention (optionally with article text)
- GET /trends: trending feed page
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from trendpulse.core.container import container
from trendpulse.core.exceptions import TopicLockTimeoutError
from trendpulse.services.feed import FeedPage, TrendFeed
from trendpulse.services.ingest.base import IngestResult
from trendpulse.services.ingest.buffer import IngestBuffer

router = APIRouter()


def get_ingest_buffer() -> IngestBuffer:
    return container.ingest_buffer()


def get_trend_feed() -> TrendFeed:
    return container.trend_feed()


@router.post("/mentions", response_model=IngestResult)
async def submit_mention(
    response: Response,
    payload: dict[str, Any] = Body(...),
    buffer: IngestBuffer = Depends(get_ingest_buffer),
) -> IngestResult:
    """Submit a mention.

    The payload is a mention record; an optional ``body`` field carries the
    article text used for duplicate detection.

    Returns:
        201 when accepted, 200 for an already stored identity,
        422 for a malformed record, 503 when the topic is busy
    """
    body = payload.pop("body", None)
    try:
        result = await buffer.submit(payload, body=body)
    except TopicLockTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e
    if result.accepted:
        response.status_code = status.HTTP_201_CREATED
    elif not result.duplicate:
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return result


@router.get("/trends", response_model=FeedPage)
async def list_trends(
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    feed: TrendFeed = Depends(get_trend_feed),
) -> FeedPage:
    """Trending events, breaking first then by rank."""
    return await feed.page(limit=limit, offset=offset)


__all__ = ["get_ingest_buffer", "get_trend_feed", "router"]
