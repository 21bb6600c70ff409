"""Workspace store for case-workspace.

CaseWorkspaceStore is the single source of truth the rest of the
application reads and mutates through. It:
  - Accepts its snapshot storage via constructor injection
  - Loads and normalizes the persisted snapshot once, in initialize()
  - Applies commands through the transition engine, one at a time
  - Hands every new state to a background writer (fire-and-forget)

Reads never block: until initialize() completes, state is the pristine
empty workspace. Commands before initialize() or after close() raise
StoreNotInitializedError, since that is a wiring bug in the host.
Storage failures are logged and never affect the in-memory state.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from case_workspace.core.audit import ACTIVITY_LIMIT, OperationContext
from case_workspace.core.commands import (
    Command,
    CreateCase,
    CreateClient,
    CreateDocument,
    CreateResearch,
    LogRestorativeSession,
    LogTime,
    SaveRestorativeProfile,
    ScheduleMockTrialRound,
    ScoreMockTrialRound,
    UpdateCase,
    UpdateClient,
    UpdateDocument,
    UpdateResearch,
    UpdateTime,
)
from case_workspace.core.engine import Transition, apply
from case_workspace.core.interfaces import ISnapshotStorage
from case_workspace.core.models import RestorativeProfile, WorkspaceState, empty_state
from case_workspace.core.normalizer import normalize
from case_workspace.core.snapshot import to_snapshot
from case_workspace.errors import StoreNotInitializedError
from case_workspace.observability import get_logger

logger = get_logger(__name__)


class CaseWorkspaceStore:
    """Process-local, single-writer store for the case workspace graph.

    Args:
        storage: Snapshot storage implementing ISnapshotStorage.
        activity_limit: Maximum number of activity entries kept.
        context_factory: Produces the clock reading and id source for each
            operation; tests inject deterministic ones.
    """

    def __init__(
        self,
        storage: ISnapshotStorage,
        activity_limit: int = ACTIVITY_LIMIT,
        context_factory: Callable[[], OperationContext] = OperationContext,
    ) -> None:
        """Initialize the store with injected dependencies.

        Args:
            storage: Snapshot storage to load from and save to.
            activity_limit: Audit log bound.
            context_factory: Factory for per-operation contexts.
        """
        self._storage = storage
        self._activity_limit = activity_limit
        self._context_factory = context_factory
        self._state = empty_state()
        self._initialized = False
        self._closed = False
        self._writer: ThreadPoolExecutor | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        """True once initialize() has completed and until close()."""
        return self._initialized and not self._closed

    async def initialize(self) -> None:
        """Load the persisted snapshot and make the store accept commands.

        Loading happens once; later calls are no-ops. A snapshot that cannot
        be read is logged and treated as absent.
        """
        if self._closed:
            raise StoreNotInitializedError("CaseWorkspaceStore was closed and cannot be reinitialized")
        if self._initialized:
            return

        raw = await asyncio.to_thread(self._load_raw)
        self._state = normalize(raw, self._context_factory(), self._activity_limit)
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="case-workspace-writer")
        self._initialized = True
        logger.info(
            "workspace_store_initialized",
            restored=raw is not None,
            clients=len(self._state.clients),
            cases=len(self._state.cases),
        )
        # Write back the normalized graph so purged fixtures stay purged.
        self._schedule_save()

    def flush(self, timeout: float | None = None) -> None:
        """Block until every save scheduled so far has finished."""
        if self._writer is None or self._closed:
            return
        self._writer.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        """Finish pending saves, stop accepting commands and release the storage."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.shutdown(wait=True)
        dispose = getattr(self._storage, "dispose", None)
        if callable(dispose):
            dispose()
        logger.info("workspace_store_closed")

    async def __aenter__(self) -> "CaseWorkspaceStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkspaceState:
        """Current read-only snapshot of the workspace.

        Raises:
            StoreNotInitializedError: If the store has been closed.
        """
        if self._closed:
            raise StoreNotInitializedError("CaseWorkspaceStore is closed")
        return self._state

    def snapshot(self) -> dict[str, Any]:
        """Return the current state in its persisted JSON-compatible shape."""
        return to_snapshot(self.state)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> Transition:
        """Apply one command and schedule a save if it changed the workspace.

        Args:
            command: A command from case_workspace.core.commands.

        Returns:
            The engine Transition.

        Raises:
            StoreNotInitializedError: If the store is not initialized or closed.
        """
        if not self.ready:
            raise StoreNotInitializedError(
                "CaseWorkspaceStore must be initialized before it accepts commands"
            )

        transition = apply(self._state, command, self._context_factory(), self._activity_limit)
        command_name = type(command).__name__
        if not transition.applied:
            logger.debug("command_ignored", command=command_name)
            return transition

        self._state = transition.state
        logger.info(
            "command_applied",
            command=command_name,
            created_id=transition.created_id,
            related_case_ids=list(transition.activity.related_case_ids),
        )
        self._schedule_save()
        return transition

    def create_client(self, name: str, **fields: Any) -> str:
        """Create a client and return its id. See CreateClient for fields."""
        return self.dispatch(CreateClient(name=name, **fields)).created_id

    def update_client(self, client_id: str, **changes: Any) -> bool:
        """Patch a client. Returns False if the client does not exist."""
        return self.dispatch(UpdateClient(client_id=client_id, **changes)).applied

    def create_case(self, **fields: Any) -> str:
        """Create a case and return its id. See CreateCase for fields."""
        return self.dispatch(CreateCase(**fields)).created_id

    def update_case(self, case_id: str, **changes: Any) -> bool:
        """Patch a case. Returns False if the case does not exist."""
        return self.dispatch(UpdateCase(case_id=case_id, **changes)).applied

    def create_document(self, **fields: Any) -> str:
        return self.dispatch(CreateDocument(**fields)).created_id

    def update_document(self, document_id: str, **changes: Any) -> bool:
        return self.dispatch(UpdateDocument(document_id=document_id, **changes)).applied

    def create_research_item(self, **fields: Any) -> str:
        return self.dispatch(CreateResearch(**fields)).created_id

    def update_research_item(self, research_id: str, **changes: Any) -> bool:
        return self.dispatch(UpdateResearch(research_id=research_id, **changes)).applied

    def log_time_entry(self, **fields: Any) -> str | None:
        """Log time against a case. Returns None if the case does not exist."""
        return self.dispatch(LogTime(**fields)).created_id

    def update_time_entry(self, time_entry_id: str, **changes: Any) -> bool:
        return self.dispatch(UpdateTime(time_entry_id=time_entry_id, **changes)).applied

    def save_restorative_profile(self, case_id: str, profile: RestorativeProfile) -> bool:
        return self.dispatch(SaveRestorativeProfile(case_id=case_id, profile=profile)).applied

    def log_restorative_session(self, case_id: str, **fields: Any) -> str | None:
        """Prepend a session to the case's restorative profile; returns the session id."""
        return self.dispatch(LogRestorativeSession(case_id=case_id, **fields)).created_id

    def schedule_mock_trial_round(self, case_id: str, **fields: Any) -> str | None:
        """Prepend a round to the case's mock trial profile; returns the round id."""
        return self.dispatch(ScheduleMockTrialRound(case_id=case_id, **fields)).created_id

    def score_mock_trial_round(self, case_id: str, round_id: str, **fields: Any) -> bool:
        return self.dispatch(ScoreMockTrialRound(case_id=case_id, round_id=round_id, **fields)).applied

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_raw(self) -> Any | None:
        try:
            return self._storage.load()
        except Exception:
            logger.warning("snapshot_load_failed", exc_info=True)
            return None

    def _schedule_save(self) -> None:
        if self._writer is None:
            return
        snapshot = to_snapshot(self._state)
        future = self._writer.submit(self._storage.save, snapshot)
        future.add_done_callback(self._report_save)

    @staticmethod
    def _report_save(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.warning("snapshot_save_failed", error=repr(error), exc_info=error)
