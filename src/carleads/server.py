"""
CarLeads FastAPI Server

REST API for lead intake, dealer management, assignment lifecycle and the
messaging gateway callback.

USAGE:
    Local: carleads serve (runs on http://localhost:8000)
    Docs: http://localhost:8000/docs (Swagger UI)
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from .config import settings, configure_logging
from .db import Repository, get_repository
from .errors import (
    AssignmentNotFound,
    InvalidAssignmentTransition,
    LeadNotFound,
    LeadValidationError,
    NoDealerAvailable,
    TransactionFailure,
)
from .integrations import get_gateway
from .models import (
    AssignedBy,
    AssignmentStatus,
    Dealer,
    Lead,
    LeadAssignment,
    LeadStatus,
    Specialty,
)
from .routing import DealerMatcher
from .services import LeadService, WebhookService

logger = logging.getLogger(__name__)


# =============================================================================
# API Models (Request/Response Schemas)
# =============================================================================

class DealerSummary(BaseModel):
    """Dealer fields exposed alongside a lead"""
    id: str
    name: str


class LeadCreateResponse(BaseModel):
    """Response from lead submission"""
    success: bool
    lead: Lead
    score_breakdown: dict
    dealer: Optional[DealerSummary] = None
    assignment_id: Optional[str] = None
    routing_error: Optional[str] = None
    message: str


class LeadListResponse(BaseModel):
    """List of leads"""
    count: int
    leads: List[Lead]


class LeadUpdateRequest(BaseModel):
    """Fields an operator may change on a lead"""
    status: Optional[LeadStatus] = None
    notes: Optional[str] = None
    dealer_id: Optional[str] = Field(default=None, alias="dealerId")

    model_config = {"populate_by_name": True}


class DealerCreateRequest(BaseModel):
    """Request to register a dealer"""
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    capacity: int = Field(default=10, ge=0)
    priority: int = 0
    specialties: List[Specialty] = Field(default_factory=list)
    active: bool = True


class AssignmentStatusRequest(BaseModel):
    """Request to move an assignment to a new status"""
    status: AssignmentStatus


class WebhookPayload(BaseModel):
    """Callback from the messaging gateway"""
    sessionKey: Optional[str] = None
    message: Optional[str] = None
    action: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    database_connected: bool


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="CarLeads API",
    description=(
        "Lead routing API for the car marketplace\n\n"
        "- Submit buyer leads (scored and routed to a dealer)\n"
        "- Manage dealers and their capacity\n"
        "- Accept, reject or close assignments\n"
        "- Receive messaging gateway callbacks"
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# Health & Status Endpoints
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(repo: Repository = Depends(get_repository)):
    """
    Health check endpoint for monitoring and load balancers.

    Returns system status, version, and database connectivity.
    """
    try:
        repo.count_leads()
        db_connected = True
    except Exception as e:
        logger.error("Health check database probe failed: %s", e)
        db_connected = False

    return HealthResponse(
        status="healthy" if db_connected else "degraded",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        database_connected=db_connected,
    )


@app.get("/", tags=["System"])
def root():
    """Root endpoint with API information"""
    return {
        "name": "CarLeads API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "openapi": "/openapi.json",
        "endpoints": {
            "create_lead": "POST /v1/leads",
            "leads": "GET /v1/leads",
            "dealers": "GET /v1/dealers",
            "assignment_status": "POST /v1/assignments/{id}/status",
            "webhook": "POST /v1/webhooks/gateway",
        },
    }


# =============================================================================
# Lead Endpoints
# =============================================================================

@app.post("/v1/leads", response_model=LeadCreateResponse, status_code=201, tags=["Leads"])
def create_lead(payload: dict[str, Any], repo: Repository = Depends(get_repository)):
    """
    Submit a buyer lead.

    The lead is validated, scored and stored, then routed to the best
    available dealer. Routing failures leave the lead stored and unassigned.

    Example:
        ```json
        {
          "name": "Jane Roe",
          "email": "jane@example.com",
          "phone": "5551234567",
          "vehicleInterest": "Tesla Model 3",
          "budget": "$50k-$100k",
          "timeline": "this month",
          "preferredContact": "phone",
          "source": "referral"
        }
        ```
    """
    service = LeadService(repo, gateway=get_gateway())

    try:
        result = service.submit(payload)
    except LeadValidationError as e:
        raise HTTPException(status_code=400, detail={"error": "Validation error", "details": e.details})

    return LeadCreateResponse(
        success=True,
        lead=result.lead,
        score_breakdown=result.breakdown.to_dict(),
        dealer=DealerSummary(id=result.dealer.id, name=result.dealer.name) if result.dealer else None,
        assignment_id=result.assignment.id if result.assignment else None,
        routing_error=result.routing_error,
        message="Lead created successfully",
    )


@app.get("/v1/leads", response_model=LeadListResponse, tags=["Leads"])
def list_leads(
    status: Optional[LeadStatus] = Query(default=None, description="Filter by status"),
    dealer_id: Optional[str] = Query(default=None, alias="dealerId", description="Filter by dealer"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    repo: Repository = Depends(get_repository),
):
    """List leads, newest first."""
    leads = repo.list_leads(status=status, dealer_id=dealer_id, limit=limit, offset=offset)
    return LeadListResponse(count=len(leads), leads=leads)


@app.get("/v1/leads/{lead_id}", tags=["Leads"])
def get_lead(lead_id: str, repo: Repository = Depends(get_repository)):
    """Get a lead with its dealer and assignment history."""
    lead = repo.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")

    dealer = repo.get_dealer(lead.dealer_id) if lead.dealer_id else None
    return {
        "lead": lead,
        "dealer": dealer,
        "assignments": repo.list_assignments(lead_id=lead_id),
    }


@app.patch("/v1/leads/{lead_id}", tags=["Leads"])
def update_lead(
    lead_id: str,
    request: LeadUpdateRequest,
    repo: Repository = Depends(get_repository),
):
    """
    Update a lead's status or notes, or assign it to a dealer.

    Assigning goes through the same transaction as automatic routing, so it
    fails with 409 while the lead still has an active assignment.
    """
    if request.status is None and request.notes is None and request.dealer_id is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    if repo.get_lead(lead_id) is None:
        raise HTTPException(status_code=404, detail="Lead not found")

    if request.dealer_id is not None:
        try:
            repo.assign_lead(lead_id, request.dealer_id, AssignedBy.ADMIN)
        except TransactionFailure as e:
            raise HTTPException(status_code=409, detail=str(e))

    lead = repo.update_lead(lead_id, status=request.status, notes=request.notes)
    return {"lead": lead}


@app.get("/v1/leads/{lead_id}/candidates", response_model=List[Dealer], tags=["Leads"])
def lead_candidates(lead_id: str, repo: Repository = Depends(get_repository)):
    """Candidate dealers the matcher would consider for a lead."""
    lead = repo.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return DealerMatcher(repo).find_candidates(lead)


@app.post("/v1/leads/{lead_id}/route", tags=["Leads"])
def route_lead(lead_id: str, repo: Repository = Depends(get_repository)):
    """Route a stored, unassigned lead again."""
    service = LeadService(repo)
    try:
        dealer, assignment = service.reroute(lead_id)
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")
    except NoDealerAvailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except TransactionFailure as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"dealer": dealer, "assignment": assignment}


# =============================================================================
# Dealer Endpoints
# =============================================================================

@app.get("/v1/dealers", response_model=List[Dealer], tags=["Dealers"])
def list_dealers(
    active_only: bool = Query(default=False),
    repo: Repository = Depends(get_repository),
):
    """List dealers by priority."""
    return repo.list_dealers(active_only=active_only)


@app.post("/v1/dealers", response_model=Dealer, status_code=201, tags=["Dealers"])
def create_dealer(request: DealerCreateRequest, repo: Repository = Depends(get_repository)):
    """Register a dealer."""
    dealer = Dealer(**request.model_dump())
    return repo.save_dealer(dealer)


# =============================================================================
# Assignment Endpoints
# =============================================================================

@app.post("/v1/assignments/{assignment_id}/status", response_model=LeadAssignment, tags=["Assignments"])
def update_assignment_status(
    assignment_id: str,
    request: AssignmentStatusRequest,
    repo: Repository = Depends(get_repository),
):
    """
    Accept, reject or close an assignment.

    Rejecting or closing releases the dealer's capacity.
    """
    try:
        return repo.update_assignment_status(assignment_id, request.status)
    except AssignmentNotFound:
        raise HTTPException(status_code=404, detail="Assignment not found")
    except InvalidAssignmentTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


# =============================================================================
# Webhook Endpoints
# =============================================================================

@app.post("/v1/webhooks/gateway", tags=["Webhooks"])
def gateway_webhook(
    payload: WebhookPayload,
    x_webhook_token: Optional[str] = Header(default=None),
    token: Optional[str] = Query(default=None),
    repo: Repository = Depends(get_repository),
):
    """Receive lead updates from the messaging gateway."""
    if settings.WEBHOOK_TOKEN and (x_webhook_token or token) != settings.WEBHOOK_TOKEN:
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = WebhookService(repo, get_gateway()).handle(payload.model_dump())
    return {
        "success": True,
        "received": True,
        "lead_id": result.lead_id,
        "status_updated": result.status_updated,
        "followup_scheduled": result.followup_scheduled,
        "followup_sent": result.followup_sent,
    }


# =============================================================================
# Statistics Endpoints
# =============================================================================

@app.get("/v1/stats", tags=["Data"])
def get_stats(repo: Repository = Depends(get_repository)):
    """Lead, dealer and assignment counts."""
    return {"success": True, **repo.get_stats()}


# =============================================================================
# Server Lifecycle
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    configure_logging()
    logger.info("CarLeads API v%s starting", settings.APP_VERSION)


# =============================================================================
# Main Entry Point (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "carleads.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
