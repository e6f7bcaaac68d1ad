"""
Service Mapping API Routes
Trigger a mapping run and inspect the review queue
"""

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from typing import Dict, Any, Optional
from pydantic import BaseModel
import logging

from config import AppConfig
from database.simple_connection import get_database
from api.services.service_mapping_errors import DataSourceUnavailable
from api.services.service_mapping_pipeline import ServiceMappingPipeline
from api.services.service_mapping_types import SuggestionStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/service-mapping", tags=["Service Mapping"])


class RunServiceMappingRequest(BaseModel):
    dry_run: bool = False
    include_outcomes: bool = False


def require_admin_key(x_admin_key: Optional[str] = Header(default=None)):
    """Only enforced when ADMIN_API_KEY is configured"""
    if AppConfig.ADMIN_API_KEY and x_admin_key != AppConfig.ADMIN_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid admin key")


@router.post("/run", dependencies=[Depends(require_admin_key)])
def run_service_mapping(request: RunServiceMappingRequest, db=Depends(get_database)) -> Dict[str, Any]:
    """
    Run the matching pipeline over all active providers.

    Returns the run summary: labels processed, auto-accepted, routed to
    review, failed and the auto-match rate.
    """
    try:
        pipeline = ServiceMappingPipeline(db)
        summary = pipeline.run(dry_run=request.dry_run)
        return {
            "success": True,
            "summary": summary.to_dict(include_outcomes=request.include_outcomes),
        }
    except DataSourceUnavailable as e:
        logger.error(f"Service mapping run aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error running service mapping: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/suggestions")
def get_suggestions(
    status: SuggestionStatus = Query(default=SuggestionStatus.PENDING),
    limit: int = Query(default=100, ge=1, le=1000),
    db=Depends(get_database),
) -> Dict[str, Any]:
    """Labels waiting for (or past) manual review, with their top candidates"""
    try:
        suggestions = db.list_suggestions(status=status.value, limit=limit)
        return {
            "success": True,
            "status": status.value,
            "suggestions": suggestions,
            "count": len(suggestions),
        }
    except Exception as e:
        logger.error(f"Error listing suggestions: {e}")
        raise HTTPException(status_code=500, detail="Failed to list suggestions")


@router.get("/stats")
def get_mapping_stats(db=Depends(get_database)) -> Dict[str, Any]:
    """Current totals in service_mapping and the review queue"""
    try:
        return {
            "success": True,
            "mappings": db.count_mappings(),
            "verified_mappings": db.count_mappings(verified=True),
            "pending_suggestions": db.count_pending_suggestions(),
            "matching_config": AppConfig.get_matching_config(),
        }
    except Exception as e:
        logger.error(f"Error getting mapping stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to get mapping stats")
