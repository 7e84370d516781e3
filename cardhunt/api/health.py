"""
Health check endpoints.

Liveness, plus a readiness probe that checks the database and the id
counters.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardhunt.db.database import get_session, get_store
from cardhunt.db.store import DocumentStore
from cardhunt.models.failure import TransientFailureError
from cardhunt.services.id_allocator import check_counters

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    setup_complete: bool | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness probe.

    Returns healthy if the service is running.
    Does not check dependencies.
    """
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    store: Annotated[DocumentStore, Depends(get_store)],
) -> HealthResponse:
    """
    Readiness probe.

    Returns 503 if the database is unavailable. A database without id
    counters is reachable but reports setup_complete false.
    """
    try:
        await session.execute(text("SELECT 1"))
        counters = await check_counters(store)
    except (SQLAlchemyError, TransientFailureError):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected")

    return HealthResponse(
        status="ready",
        database="connected",
        setup_complete=counters["teams"] and counters["cards"],
    )
