"""API routes for search service."""

import time
from typing import Any, List, Optional
from fastapi import APIRouter, Request, Depends, Query
from pydantic import BaseModel, Field
import structlog

from campaign_search.common.logging import log_performance
from campaign_search.engine.controller import FallbackController
from campaign_search.engine.models import Scope

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SearchResponse(BaseModel):
    """Response model for search endpoint."""
    ids: List[Any] = Field(..., description="Matching entity IDs, best first")
    total: int = Field(..., description="Number of returned IDs")
    query: str = Field(..., description="Original query")
    campaign_id: str = Field(..., description="Campaign searched")
    entity_type: Optional[str] = Field(None, description="Entity type searched, all types when empty")
    mode: str = Field(..., description="Detected boolean mode")
    strategies: List[str] = Field(..., description="Candidate sources tried, in order")
    candidate_count: int = Field(..., description="Candidates handed to ranking")
    degraded: bool = Field(False, description="A candidate source failed and was treated as empty")
    latency_ms: float = Field(..., description="Search latency in milliseconds")


def get_search_controller(request: Request) -> FallbackController:
    """Get search controller from application state."""
    return request.app.state.search_controller


@router.get("/search", response_model=SearchResponse)
async def search(
    campaign_id: str = Query(..., description="Campaign the search is confined to"),
    q: str = Query("", description="Raw search query"),
    entity_type: Optional[str] = Query(None, description="Optional entity type (e.g. location, npc)"),
    controller: FallbackController = Depends(get_search_controller),
):
    """Search one campaign scope."""
    start_time = time.time()
    scope = Scope(campaign_id=campaign_id, entity_type=entity_type or None)

    outcome = await controller.search_with_outcome(q, scope)
    degraded = bool(outcome.lexical_errors or outcome.full_scan_errors)
    if degraded:
        logger.warning(
            "Search served with backend failures",
            query=q,
            campaign_id=campaign_id,
            lexical_errors=outcome.lexical_errors,
            full_scan_errors=outcome.full_scan_errors,
        )

    latency_ms = (time.time() - start_time) * 1000
    log_performance(
        "search",
        latency_ms,
        campaign_id=campaign_id,
        strategy=outcome.final_strategy.value if outcome.final_strategy else None,
        results_count=len(outcome.ids),
    )

    return SearchResponse(
        ids=outcome.ids,
        total=len(outcome.ids),
        query=q,
        campaign_id=campaign_id,
        entity_type=scope.entity_type,
        mode=outcome.plan.mode.value,
        strategies=[strategy.value for strategy in outcome.strategies],
        candidate_count=outcome.candidate_count,
        degraded=degraded,
        latency_ms=latency_ms,
    )
