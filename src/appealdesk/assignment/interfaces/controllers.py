"""
Operator Controllers (API Routes)
=================================

FastAPI routes for operator workloads and assignment previews.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from appealdesk.assignment.application import AssignmentEngine, WorkloadTracker
from appealdesk.assignment.application.dto import (
    AvailabilityRequest,
    ExpertiseRequest,
    OperatorWorkloadResponse,
    OperatorScoreResponse,
    RankingResponse,
    WorkloadStatsResponse,
)
from appealdesk.core import ResourceNotFoundException
from appealdesk.shared.api.dependencies import get_engine, get_tracker
from appealdesk.tickets.application.dto import CategoryStr, PriorityStr

operators_router = APIRouter(prefix="/operators", tags=["Operators"])


@operators_router.get("/best", response_model=OperatorWorkloadResponse, summary="Preview the best operator")
async def best_operator(
    category: CategoryStr = Query(...),
    priority: PriorityStr = Query("normal"),
    engine: AssignmentEngine = Depends(get_engine),
):
    """Which operator a new ticket would be routed to. Nothing is assigned."""
    workload = await engine.find_best_operator(category, priority)
    return OperatorWorkloadResponse.from_entity(workload)


@operators_router.get("/ranking", response_model=RankingResponse, summary="Score all available operators")
async def ranking(
    category: CategoryStr = Query(...),
    priority: PriorityStr = Query("normal"),
    engine: AssignmentEngine = Depends(get_engine),
):
    scores = await engine.rank_operators(category, priority)
    return RankingResponse(
        category=category,
        priority=priority,
        candidates=[OperatorScoreResponse.from_score(s) for s in scores],
    )


@operators_router.get("/stats", response_model=WorkloadStatsResponse, summary="Workload statistics")
async def workload_stats(tracker: WorkloadTracker = Depends(get_tracker)):
    return WorkloadStatsResponse.from_stats(await tracker.get_stats())


@operators_router.get(
    "/by-category/{category}",
    response_model=List[OperatorWorkloadResponse],
    summary="Available operators with expertise in a category",
)
async def operators_for_category(
    category: CategoryStr,
    engine: AssignmentEngine = Depends(get_engine),
):
    workloads = await engine.operators_for_category(category)
    return [OperatorWorkloadResponse.from_entity(w) for w in workloads]


@operators_router.get("/{operator_id}", response_model=OperatorWorkloadResponse, summary="Operator workload")
async def get_operator(
    operator_id: int,
    tracker: WorkloadTracker = Depends(get_tracker),
):
    workload = await tracker.get_by_operator(operator_id)
    if workload is None:
        raise ResourceNotFoundException("Operator", operator_id)
    return OperatorWorkloadResponse.from_entity(workload)


@operators_router.put(
    "/{operator_id}/availability",
    response_model=OperatorWorkloadResponse,
    summary="Mark an operator available or away",
)
async def set_availability(
    operator_id: int,
    request: AvailabilityRequest,
    tracker: WorkloadTracker = Depends(get_tracker),
):
    workload = await tracker.set_availability(operator_id, request.is_available)
    return OperatorWorkloadResponse.from_entity(workload)


@operators_router.put(
    "/{operator_id}/expertise",
    response_model=OperatorWorkloadResponse,
    summary="Set category expertise",
)
async def set_expertise(
    operator_id: int,
    request: ExpertiseRequest,
    tracker: WorkloadTracker = Depends(get_tracker),
):
    workload = await tracker.set_expertise(operator_id, request.category, request.experience_level)
    return OperatorWorkloadResponse.from_entity(workload)
