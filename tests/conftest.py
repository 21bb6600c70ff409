"""Shared test fixtures for case-workspace."""

import itertools
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from case_workspace.adapters.storage import MemorySnapshotStorage
from case_workspace.core.audit import OperationContext
from case_workspace.core.commands import CreateCase, CreateClient
from case_workspace.core.engine import apply
from case_workspace.core.models import CaseStage, Priority, WorkspaceState, empty_state
from case_workspace.core.services import CaseWorkspaceStore
from case_workspace.main import create_app
from case_workspace.settings import Settings

_EPOCH = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_clock() -> Callable[[], OperationContext]:
    """Build a deterministic context factory.

    Each call returns a context one second later than the previous one, with
    sequential ids (``case-1``, ``activity-2``, ...).

    Returns:
        A zero-argument factory of OperationContext.
    """
    ticks = itertools.count()
    ids = itertools.count(1)

    def new_id(prefix: str) -> str:
        return f"{prefix}-{next(ids)}"

    def factory() -> OperationContext:
        moment = _EPOCH + timedelta(seconds=next(ticks))
        timestamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return OperationContext(timestamp=timestamp, new_id=new_id)

    return factory


def case_command(case_name: str = "Rivera v. Harlow", **overrides: object) -> CreateCase:
    """Build a CreateCase command with realistic defaults."""
    fields: dict[str, object] = {
        "case_name": case_name,
        "matter_number": "2025-CV-0142",
        "practice_area": "Civil Rights",
        "stage": CaseStage.INVESTIGATION,
        "lead_attorney": "Dana Whitfield",
        "opened_on": "2025-02-14",
        "description": "Excessive force claim arising from a traffic stop.",
        "priority": Priority.HIGH,
    }
    fields.update(overrides)
    return CreateCase(**fields)


@pytest.fixture
def clock() -> Callable[[], OperationContext]:
    """Provide a deterministic context factory.

    Returns:
        Factory producing contexts with increasing timestamps.
    """
    return make_clock()


@pytest.fixture
def seeded(clock: Callable[[], OperationContext]) -> tuple[WorkspaceState, str, str]:
    """Provide a state with one client owning one case.

    Returns:
        (state, client_id, case_id)
    """
    created = apply(empty_state(), CreateClient(name="Northside Tenants Union"), clock())
    client_id = created.created_id
    opened = apply(created.state, case_command(client_id=client_id), clock())
    return opened.state, client_id, opened.created_id


@pytest.fixture
def storage() -> MemorySnapshotStorage:
    """Provide an empty in-memory snapshot storage.

    Returns:
        MemorySnapshotStorage with nothing stored.
    """
    return MemorySnapshotStorage()


@pytest.fixture
async def store(
    storage: MemorySnapshotStorage, clock: Callable[[], OperationContext]
) -> AsyncIterator[CaseWorkspaceStore]:
    """Provide an initialized store backed by memory storage.

    Yields:
        CaseWorkspaceStore, closed after the test.
    """
    workspace = CaseWorkspaceStore(storage=storage, context_factory=clock)
    await workspace.initialize()
    yield workspace
    workspace.close()


@pytest.fixture
def app(storage: MemorySnapshotStorage) -> FastAPI:
    """Provide an application wired to memory storage.

    Returns:
        FastAPI app; its lifespan has not run yet.
    """
    return create_app(Settings(storage_backend="memory", log_format="text"), storage=storage)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the application lifespan running.

    Yields:
        Configured HTTPX AsyncClient for test requests.
    """
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
            yield async_client
