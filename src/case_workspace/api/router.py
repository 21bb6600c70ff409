"""API router for case-workspace.

All endpoints are registered here and included in main.py under
/api/v1/workspace. Routes translate request bodies into commands and
delegate to the CaseWorkspaceStore; no workspace logic lives here.

Handlers are ``async def`` so they all run on the event loop thread: the
store is single-writer and must not be mutated from FastAPI's threadpool.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from case_workspace.api.schemas import (
    AppliedResponse,
    CaseCreateRequest,
    CaseUpdateRequest,
    ClientCreateRequest,
    ClientUpdateRequest,
    CreatedResponse,
    DocumentCreateRequest,
    DocumentUpdateRequest,
    MockTrialRoundCreateRequest,
    MockTrialScoreRequest,
    ResearchCreateRequest,
    ResearchUpdateRequest,
    RestorativeProfileSchema,
    RestorativeSessionCreateRequest,
    TimeEntryCreateRequest,
    TimeEntryUpdateRequest,
    WorkspaceSummaryResponse,
)
from case_workspace.core.commands import SaveRestorativeProfile
from case_workspace.core.queries import find_case, workspace_summary
from case_workspace.core.services import CaseWorkspaceStore
from case_workspace.core.snapshot import encode
from case_workspace.errors import NotFoundError, StoreNotInitializedError

router = APIRouter(prefix="/workspace", tags=["workspace"])


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def get_store(request: Request) -> CaseWorkspaceStore:
    """Provide the application's CaseWorkspaceStore.

    Args:
        request: Incoming request; the store lives on app.state.

    Returns:
        The initialized store.

    Raises:
        StoreNotInitializedError: If the lifespan has not set up a ready store.
    """
    store = getattr(request.app.state, "store", None)
    if store is None or not store.ready:
        raise StoreNotInitializedError("No initialized CaseWorkspaceStore on the application")
    return store


def _created(created_id: str | None, missing: str) -> CreatedResponse:
    if created_id is None:
        raise NotFoundError(missing)
    return CreatedResponse(id=created_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/state")
async def get_state(store: CaseWorkspaceStore = Depends(get_store)) -> dict[str, Any]:
    """Return the whole workspace in its persisted snapshot shape."""
    return store.snapshot()


@router.get("/cases/{case_id}")
async def get_case(case_id: str, store: CaseWorkspaceStore = Depends(get_store)) -> dict[str, Any]:
    """Return one case.

    Raises:
        NotFoundError: If no case has this id.
    """
    matter = find_case(store.state, case_id)
    if matter is None:
        raise NotFoundError(f"Case {case_id} not found")
    return encode(matter)


@router.get("/summary", response_model=WorkspaceSummaryResponse)
async def get_summary(
    window_days: int = Query(default=14, ge=0, le=365),
    store: CaseWorkspaceStore = Depends(get_store),
) -> WorkspaceSummaryResponse:
    """Return dashboard counters; deadlines are counted within window_days."""
    today = datetime.now(timezone.utc).date()
    summary = workspace_summary(store.state, today, window_days)
    return WorkspaceSummaryResponse.model_validate(summary)


# ---------------------------------------------------------------------------
# Clients and cases
# ---------------------------------------------------------------------------


@router.post("/clients", response_model=CreatedResponse, status_code=201)
async def create_client(
    request: ClientCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    return CreatedResponse(id=store.dispatch(request.to_command()).created_id)


@router.patch("/clients/{client_id}", response_model=AppliedResponse, status_code=202)
async def update_client(
    client_id: str, request: ClientUpdateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    return AppliedResponse(applied=store.dispatch(request.to_command(client_id)).applied)


@router.post("/cases", response_model=CreatedResponse, status_code=201)
async def create_case(
    request: CaseCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    """Create a case, linking it to clientId when that client exists."""
    return CreatedResponse(id=store.dispatch(request.to_command()).created_id)


@router.patch("/cases/{case_id}", response_model=AppliedResponse, status_code=202)
async def update_case(
    case_id: str, request: CaseUpdateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    """Patch a case. ``"clientId": null`` unassigns it from its client."""
    return AppliedResponse(applied=store.dispatch(request.to_command(case_id)).applied)


# ---------------------------------------------------------------------------
# Documents, research and time
# ---------------------------------------------------------------------------


@router.post("/documents", response_model=CreatedResponse, status_code=201)
async def create_document(
    request: DocumentCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    return CreatedResponse(id=store.dispatch(request.to_command()).created_id)


@router.patch("/documents/{document_id}", response_model=AppliedResponse, status_code=202)
async def update_document(
    document_id: str, request: DocumentUpdateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    return AppliedResponse(applied=store.dispatch(request.to_command(document_id)).applied)


@router.post("/research", response_model=CreatedResponse, status_code=201)
async def create_research_item(
    request: ResearchCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    return CreatedResponse(id=store.dispatch(request.to_command()).created_id)


@router.patch("/research/{research_id}", response_model=AppliedResponse, status_code=202)
async def update_research_item(
    research_id: str, request: ResearchUpdateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    return AppliedResponse(applied=store.dispatch(request.to_command(research_id)).applied)


@router.post("/time-entries", response_model=CreatedResponse, status_code=201)
async def log_time_entry(
    request: TimeEntryCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    """Log time against a case.

    Raises:
        NotFoundError: If the case does not exist.
    """
    transition = store.dispatch(request.to_command())
    return _created(transition.created_id, f"Case {request.case_id} not found")


@router.patch("/time-entries/{time_entry_id}", response_model=AppliedResponse, status_code=202)
async def update_time_entry(
    time_entry_id: str, request: TimeEntryUpdateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    return AppliedResponse(applied=store.dispatch(request.to_command(time_entry_id)).applied)


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


@router.put("/cases/{case_id}/restorative-profile", response_model=AppliedResponse, status_code=202)
async def save_restorative_profile(
    case_id: str, request: RestorativeProfileSchema, store: CaseWorkspaceStore = Depends(get_store)
) -> AppliedResponse:
    """Replace the case's restorative profile and make it a restorative case."""
    command = SaveRestorativeProfile(case_id=case_id, profile=request.to_domain())
    return AppliedResponse(applied=store.dispatch(command).applied)


@router.post("/cases/{case_id}/restorative-sessions", response_model=CreatedResponse, status_code=201)
async def log_restorative_session(
    case_id: str, request: RestorativeSessionCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    transition = store.dispatch(request.to_command(case_id))
    return _created(transition.created_id, f"Case {case_id} not found")


@router.post("/cases/{case_id}/mock-trial-rounds", response_model=CreatedResponse, status_code=201)
async def schedule_mock_trial_round(
    case_id: str, request: MockTrialRoundCreateRequest, store: CaseWorkspaceStore = Depends(get_store)
) -> CreatedResponse:
    transition = store.dispatch(request.to_command(case_id))
    return _created(transition.created_id, f"Case {case_id} not found")


@router.post(
    "/cases/{case_id}/mock-trial-rounds/{round_id}/score",
    response_model=AppliedResponse,
    status_code=202,
)
async def score_mock_trial_round(
    case_id: str,
    round_id: str,
    request: MockTrialScoreRequest,
    store: CaseWorkspaceStore = Depends(get_store),
) -> AppliedResponse:
    """Record scores for a round; applied is False if the round does not exist."""
    return AppliedResponse(applied=store.dispatch(request.to_command(case_id, round_id)).applied)
