from __future__ import annotations

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from intervox.agents.coordinator import InvestigationCoordinator
from intervox.api.deps import get_coordinator
from intervox.config import settings
from intervox.errors import NotFoundError
from intervox.models.events import LogCategory
from intervox.models.schemas import ConfirmRequest, InvestigateRequest, InvestigationResult
from intervox.services.event_log import events

router = APIRouter(prefix="/api", tags=["investigations"])


def _require(coordinator: InvestigationCoordinator, target_id: str) -> InvestigationResult:
    record = coordinator.get_status(target_id)
    if record is None:
        raise NotFoundError(f"Investigation not found: {target_id}")
    return record


@router.post("/investigate", response_model=InvestigationResult)
async def investigate(
    request: InvestigateRequest,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
):
    """Start an investigation. Quick mode skips identity confirmation."""
    events.info(LogCategory.API, f"POST /investigate {request.target_name}")
    if request.quick_mode or request.depth == "quick":
        return await coordinator.quick_start(request.target_name, request.target_context, request.depth)
    return await coordinator.start(request.target_name, request.target_context, request.depth)


@router.post("/confirm", response_model=InvestigationResult)
async def confirm(
    request: ConfirmRequest,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
):
    events.info(LogCategory.API, "POST /confirm", target_id=request.target_id)
    return await coordinator.confirm(request.target_id, request)


@router.get("/status/{target_id}", response_model=InvestigationResult)
async def status(
    target_id: str,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
):
    return _require(coordinator, target_id)


@router.get("/investigations", response_model=list[InvestigationResult])
async def list_investigations(coordinator: InvestigationCoordinator = Depends(get_coordinator)):
    return coordinator.list_investigations()


@router.post("/investigations/{target_id}/cancel", response_model=InvestigationResult)
async def cancel(
    target_id: str,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
):
    events.info(LogCategory.API, "POST /cancel", target_id=target_id)
    return await coordinator.cancel(target_id)


@router.get("/events/{target_id}")
async def stream_events(
    target_id: str,
    coordinator: InvestigationCoordinator = Depends(get_coordinator),
):
    """SSE stream of an investigation's log: buffered history, then live events."""
    _require(coordinator, target_id)

    async def event_generator():
        async for event in events.stream(target_id):
            yield {
                "id": event.id,
                "data": event.format(),
            }

    return EventSourceResponse(event_generator(), ping=settings.sse_heartbeat_seconds)
