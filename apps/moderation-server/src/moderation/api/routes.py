"""API routes for the Moderation Server.

Endpoints:
- POST /v1/classify - Classify text without recording it
- POST /v1/content - Submit content for moderation
- GET /v1/content - List moderated content (status / search filters)
- GET /v1/content/export - Download the filtered list as moderated-content.json
- GET /v1/content/{id} - Fetch one content item
- POST /v1/content/{id}/status - Manual moderation decision
- GET, PUT /v1/settings - Current moderation configuration
- GET, POST /v1/users; PATCH, DELETE /v1/users/{id} - User management
- GET /v1/activity - Recent activity
- GET /v1/stats - Status counts
- GET /v1/analytics - Chart data
- GET /v1/health - Liveness check
- GET /v1/ready - Readiness check
- GET /debug/classifier-circuit - Classifier circuit state (debug)
- POST /debug/classifier-circuit/open|close - Trip or reset it (debug)
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import TypeAdapter

from py_common.schemas import (
    ActivityEntry,
    AnalyticsResponse,
    ClassificationResult,
    ClassifyRequest,
    ContentItem,
    ModerationConfiguration,
    StatsResponse,
    StatusUpdateRequest,
    SubmitContentRequest,
    User,
    UserCreateRequest,
    UserUpdateRequest,
)
from moderation.core.dashboard import (
    ContentNotFoundError,
    EmptyContentError,
    ModerationDashboard,
    UnknownStatusFilterError,
    UserNotFoundError,
)
from moderation.core.engine import ClassificationError


router = APIRouter()


def get_dashboard(request: Request) -> ModerationDashboard:
    """Dashboard created by the application lifespan."""
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(status_code=503, detail="Dashboard not initialized")
    return dashboard


@router.post("/v1/classify", response_model=ClassificationResult)
async def classify(
    request: ClassifyRequest,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ClassificationResult:
    """Classify text with the given (or current) configuration.

    Nothing is recorded. A classification failure is reported as 502 so it
    cannot be mistaken for a pending result.
    """
    try:
        return await dashboard.classify(request.text, request.config)
    except ClassificationError as e:
        raise HTTPException(status_code=502, detail=f"Classification failed: {e}")


@router.post("/v1/content", response_model=ContentItem, status_code=201)
async def submit_content(
    request: SubmitContentRequest,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ContentItem:
    try:
        return await dashboard.submit(request.text, request.source)
    except EmptyContentError as e:
        raise HTTPException(status_code=422, detail=str(e))


_content_list = TypeAdapter(list[ContentItem])


def _filtered_content(
    dashboard: ModerationDashboard,
    status: str | None,
    search: str | None,
) -> list[ContentItem]:
    try:
        return dashboard.list_content(status=status, search=search)
    except UnknownStatusFilterError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/v1/content", response_model=list[ContentItem])
async def list_content(
    status: str | None = Query(
        default=None,
        description="approved, flagged, pending, or all (empty means all)",
    ),
    search: str | None = Query(default=None, description="Case-insensitive text search"),
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> list[ContentItem]:
    return _filtered_content(dashboard, status, search)


@router.get("/v1/content/export")
async def export_content(
    status: str | None = Query(default=None, description="Same filter as GET /v1/content"),
    search: str | None = Query(default=None, description="Case-insensitive text search"),
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> Response:
    """Download the currently filtered content list as a JSON file."""
    items = _filtered_content(dashboard, status, search)
    return Response(
        content=_content_list.dump_json(items, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="moderated-content.json"'},
    )


@router.get("/v1/content/{content_id}", response_model=ContentItem)
async def get_content(
    content_id: str,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ContentItem:
    try:
        return dashboard.get_content(content_id)
    except ContentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/v1/content/{content_id}/status", response_model=ContentItem)
async def update_content_status(
    content_id: str,
    request: StatusUpdateRequest,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ContentItem:
    try:
        return dashboard.update_status(content_id, request.status, request.moderator)
    except ContentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/v1/settings", response_model=ModerationConfiguration)
async def get_settings(
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ModerationConfiguration:
    return dashboard.configuration


@router.put("/v1/settings", response_model=ModerationConfiguration)
async def update_settings(
    configuration: ModerationConfiguration,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> ModerationConfiguration:
    return dashboard.update_configuration(configuration)


@router.get("/v1/users", response_model=list[User])
async def list_users(dashboard: ModerationDashboard = Depends(get_dashboard)) -> list[User]:
    return dashboard.list_users()


@router.post("/v1/users", response_model=User, status_code=201)
async def add_user(
    request: UserCreateRequest,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> User:
    return dashboard.add_user(request.name, request.role, request.avatar)


@router.patch("/v1/users/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> User:
    try:
        return dashboard.update_user(user_id, **request.model_dump(exclude_unset=True))
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/v1/users/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    dashboard: ModerationDashboard = Depends(get_dashboard),
) -> Response:
    try:
        dashboard.delete_user(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@router.get("/v1/activity", response_model=list[ActivityEntry])
async def activity(dashboard: ModerationDashboard = Depends(get_dashboard)) -> list[ActivityEntry]:
    return dashboard.activity


@router.get("/v1/stats", response_model=StatsResponse)
async def stats(dashboard: ModerationDashboard = Depends(get_dashboard)) -> StatsResponse:
    return dashboard.stats()


@router.get("/v1/analytics", response_model=AnalyticsResponse)
async def analytics(dashboard: ModerationDashboard = Depends(get_dashboard)) -> AnalyticsResponse:
    return dashboard.analytics()


@router.get("/v1/health")
async def health():
    """Liveness check - is the process alive?"""
    return {"status": "healthy"}


@router.get("/v1/ready")
async def ready(dashboard: ModerationDashboard = Depends(get_dashboard)):
    """Readiness check - can handle traffic?

    Ready once the dashboard exists. The model-backed classifier is
    reported but optional, since failures there fall back to pending.
    """
    circuit = dashboard.classifier_circuit
    return {
        "status": "ready",
        "classifier_circuit": circuit.state.value if circuit else None,
    }


# Debug endpoints (should be protected in production)
debug_router = APIRouter(prefix="/debug", tags=["debug"])


def _classifier_circuit(dashboard: ModerationDashboard):
    circuit = dashboard.classifier_circuit
    if circuit is None:
        raise HTTPException(status_code=404, detail="No model-backed classifier registered")
    return circuit


@debug_router.get("/classifier-circuit")
async def get_classifier_circuit(dashboard: ModerationDashboard = Depends(get_dashboard)):
    return _classifier_circuit(dashboard).snapshot()


@debug_router.post("/classifier-circuit/close")
async def close_classifier_circuit(dashboard: ModerationDashboard = Depends(get_dashboard)):
    """Close the circuit after the classifier has recovered."""
    circuit = _classifier_circuit(dashboard)
    circuit.reset()
    return circuit.snapshot()


@debug_router.post("/classifier-circuit/open")
async def open_classifier_circuit(dashboard: ModerationDashboard = Depends(get_dashboard)):
    """Refuse model-backed classifications until closed or cooled down."""
    circuit = _classifier_circuit(dashboard)
    circuit.trip()
    return circuit.snapshot()
