"""
Cross-project execution endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_query_service
from core.application.services import ExecutionQueryService


router = APIRouter(prefix="/test-execution")


@router.get(
    "/summary",
    summary="Global execution summary",
    description="Aggregated statistics over the executions of every project.",
)
async def get_global_execution_summary(
    query_service: ExecutionQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    return await query_service.get_global_execution_summary()
