"""Unit tests for the CaseWorkspaceStore host.

Storage is either the in-memory adapter or a MagicMock, so persistence
failures can be injected without touching the filesystem.
"""

import logging
import threading
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
from conftest import case_command

from case_workspace.adapters.storage import MemorySnapshotStorage, SqlSnapshotStorage
from case_workspace.core.audit import OperationContext
from case_workspace.core.commands import UpdateCase
from case_workspace.core.interfaces import ISnapshotStorage
from case_workspace.core.models import RestorativeProfile, empty_state
from case_workspace.core.services import CaseWorkspaceStore
from case_workspace.errors import StoreNotInitializedError

Clock = Callable[[], OperationContext]

PERSISTED = {
    "clients": [
        {"id": "client-acme", "name": "Acme Corporation"},
        {"id": "client-7", "name": "Northside Tenants Union"},
    ],
    "cases": [
        {"id": "case-acme-finch", "caseName": "Acme Corp. v. Finch Supply Co."},
        {"id": "case-7", "caseName": "Okafor Eviction Defense", "clientId": "client-7"},
    ],
    "documents": [],
    "research": [],
    "timeEntries": [],
    "activity": [],
}


@pytest.fixture
def failing_storage() -> MagicMock:
    """Provide a storage whose saves always fail.

    Returns:
        MagicMock implementing ISnapshotStorage.
    """
    storage = MagicMock(spec=ISnapshotStorage)
    storage.load.return_value = None
    storage.save.side_effect = OSError("quota exceeded")
    return storage


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestStoreLifecycle:
    """Tests for initialize/close and the not-initialized guard."""

    @pytest.mark.asyncio
    async def test_state_is_pristine_before_initialize(self, storage: MemorySnapshotStorage, clock: Clock) -> None:
        """Readers never block: an uninitialized store shows the empty state."""
        workspace = CaseWorkspaceStore(storage=storage, context_factory=clock)

        assert workspace.state == empty_state()
        assert not workspace.ready
        with pytest.raises(StoreNotInitializedError):
            workspace.create_client(name="Too early")

    @pytest.mark.asyncio
    async def test_initialize_normalizes_persisted_snapshot(self, clock: Clock) -> None:
        storage = MemorySnapshotStorage(initial=PERSISTED)

        async with CaseWorkspaceStore(storage=storage, context_factory=clock) as workspace:
            assert workspace.ready
            assert [client.id for client in workspace.state.clients] == ["client-7"]
            assert [matter.id for matter in workspace.state.cases] == ["case-7"]
            workspace.flush()

        restored = storage.load()
        assert [client["id"] for client in restored["clients"]] == ["client-7"]
        assert restored["clients"][0]["caseIds"] == ["case-7"]

    @pytest.mark.asyncio
    async def test_load_failure_keeps_empty_state(self, clock: Clock, caplog: pytest.LogCaptureFixture) -> None:
        storage = MagicMock(spec=ISnapshotStorage)
        storage.load.side_effect = ValueError("corrupt snapshot")

        with caplog.at_level(logging.WARNING):
            async with CaseWorkspaceStore(storage=storage, context_factory=clock) as workspace:
                assert workspace.state == empty_state()
                assert workspace.create_client(name="Fresh start")

        assert "snapshot_load_failed" in caplog.messages

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, storage: MemorySnapshotStorage, clock: Clock) -> None:
        workspace = CaseWorkspaceStore(storage=storage, context_factory=clock)
        await workspace.initialize()
        workspace.create_client(name="Kept")

        await workspace.initialize()

        assert [client.name for client in workspace.state.clients] == ["Kept"]
        workspace.close()

    @pytest.mark.asyncio
    async def test_close_disposes_sql_storage(self, clock: Clock) -> None:
        storage = MagicMock(spec=SqlSnapshotStorage)
        storage.load.return_value = None

        async with CaseWorkspaceStore(storage=storage, context_factory=clock):
            storage.dispose.assert_not_called()

        storage.dispose.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_closed_store_rejects_use(self, store: CaseWorkspaceStore) -> None:
        store.close()

        with pytest.raises(StoreNotInitializedError):
            store.state
        with pytest.raises(StoreNotInitializedError):
            store.create_client(name="Too late")
        with pytest.raises(StoreNotInitializedError):
            await store.initialize()


# ---------------------------------------------------------------------------
# Commands and persistence
# ---------------------------------------------------------------------------


class TestStoreCommands:
    """Tests for the per-operation API and background saves."""

    @pytest.mark.asyncio
    async def test_create_operations_return_ids_and_persist(
        self, store: CaseWorkspaceStore, storage: MemorySnapshotStorage
    ) -> None:
        client_id = store.create_client(name="Northside Tenants Union")
        case_id = store.create_case(**vars(case_command(client_id=client_id)))
        store.flush()

        persisted = storage.load()
        assert persisted["clients"][0]["id"] == client_id
        assert persisted["clients"][0]["caseIds"] == [case_id]
        assert persisted["cases"][0]["clientId"] == client_id
        assert [item["label"] for item in persisted["activity"]] == [
            "New matter created: Rivera v. Harlow",
            "New client added: Northside Tenants Union",
        ]

    @pytest.mark.asyncio
    async def test_ignored_commands_do_not_save(
        self, store: CaseWorkspaceStore, storage: MemorySnapshotStorage
    ) -> None:
        store.flush()
        saves = storage.save_count

        assert store.update_case("case-missing", case_name="X") is False
        assert store.log_time_entry(case_id="case-missing", author="A", activity="B", hours=1, date="d") is None
        scored = store.score_mock_trial_round("case-missing", "round-missing", prosecution_score=1, defense_score=2)
        assert scored is False
        store.flush()

        assert storage.save_count == saves

    @pytest.mark.asyncio
    async def test_profile_operations(self, store: CaseWorkspaceStore) -> None:
        case_id = store.create_case(**vars(case_command()))

        assert store.save_restorative_profile(case_id, RestorativeProfile(care_plan="Weekly check-ins"))
        session_id = store.log_restorative_session(case_id, date="2025-03-10", facilitator="Kim")
        round_id = store.schedule_mock_trial_round(case_id, round_name="Finals", scheduled_for="2025-05-01")
        scored = store.score_mock_trial_round(case_id, round_id, prosecution_score=80, defense_score=75)

        matter = store.state.cases[0]
        assert session_id is not None
        assert scored is True
        assert matter.mock_trial_profile.rounds[0].prosecution_score == 80
        assert matter.restorative_profile is None

    @pytest.mark.asyncio
    async def test_dispatch_returns_transition(self, store: CaseWorkspaceStore) -> None:
        case_id = store.create_case(**vars(case_command()))

        transition = store.dispatch(UpdateCase(case_id=case_id, description="Amended complaint"))

        assert transition.applied
        assert store.state is transition.state

    @pytest.mark.asyncio
    async def test_save_failure_is_logged_and_state_kept(
        self, failing_storage: MagicMock, clock: Clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Persistence is best effort: a failed save never rolls back or raises."""
        with caplog.at_level(logging.WARNING):
            async with CaseWorkspaceStore(storage=failing_storage, context_factory=clock) as workspace:
                client_id = workspace.create_client(name="Northside Tenants Union")
                second_id = workspace.create_client(name="Eastside Legal Aid")
                workspace.flush()

                assert [client.id for client in workspace.state.clients] == [second_id, client_id]

        assert failing_storage.save.call_count == 3
        assert caplog.messages.count("snapshot_save_failed") == 3

    @pytest.mark.asyncio
    async def test_saves_do_not_block_operations(self, clock: Clock) -> None:
        """Commands return while an earlier save is still running."""
        storage = MagicMock(spec=ISnapshotStorage)
        storage.load.return_value = None
        gate = threading.Event()
        storage.save.side_effect = lambda snapshot: gate.wait(timeout=5)

        async with CaseWorkspaceStore(storage=storage, context_factory=clock) as workspace:
            workspace.create_client(name="First")
            workspace.create_client(name="Second")

            assert len(workspace.state.clients) == 2
            gate.set()
