"""Read-side helpers over a WorkspaceState.

Pure functions; none of them change the workspace. They back the API's
read endpoints and the dashboard summary.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from case_workspace.core.models import (
    Case,
    CaseStage,
    CaseStatus,
    CaseType,
    Client,
    Document,
    DocumentStatus,
    ResearchItem,
    ResearchStatus,
    TimeEntry,
    TimeEntryStatus,
    WorkspaceState,
)

# Overdue deadlines stay on the board for this many days.
DEADLINE_GRACE_DAYS = 3


def find_case(state: WorkspaceState, case_id: str) -> Case | None:
    return next((matter for matter in state.cases if matter.id == case_id), None)


def find_client(state: WorkspaceState, client_id: str) -> Client | None:
    return next((client for client in state.clients if client.id == client_id), None)


def cases_for_client(state: WorkspaceState, client_id: str) -> list[Case]:
    """Return the cases owned by client_id, in workspace order."""
    return [matter for matter in state.cases if matter.client_id == client_id]


def documents_for_case(state: WorkspaceState, case_id: str) -> list[Document]:
    return [document for document in state.documents if case_id in document.case_ids]


def research_for_case(state: WorkspaceState, case_id: str) -> list[ResearchItem]:
    return [item for item in state.research if case_id in item.case_ids]


def time_entries_for_case(state: WorkspaceState, case_id: str) -> list[TimeEntry]:
    return [entry for entry in state.time_entries if entry.case_id == case_id]


def hours_by_case(state: WorkspaceState) -> dict[str, float]:
    """Sum logged hours per case id."""
    totals: dict[str, float] = defaultdict(float)
    for entry in state.time_entries:
        totals[entry.case_id] += entry.hours
    return dict(totals)


def hours_by_author(state: WorkspaceState) -> dict[str, float]:
    """Sum logged hours per author, largest first."""
    totals: dict[str, float] = defaultdict(float)
    for entry in state.time_entries:
        totals[entry.author] += entry.hours
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def _deadline(matter: Case) -> date | None:
    if not matter.next_deadline:
        return None
    try:
        return date.fromisoformat(matter.next_deadline[:10])
    except ValueError:
        return None


def upcoming_deadlines(
    state: WorkspaceState, today: date, window_days: int | None = None
) -> list[tuple[Case, date]]:
    """Return legal cases with a deadline on the board, soonest first.

    A deadline is on the board from DEADLINE_GRACE_DAYS before today and,
    when window_days is given, up to window_days after today. Deadlines that
    do not parse as ISO dates are skipped.

    Args:
        state: Workspace to read.
        today: Reference date.
        window_days: Optional upper bound in days from today.

    Returns:
        (case, deadline) pairs sorted by deadline.
    """
    board = []
    for matter in state.cases:
        if matter.case_type is not CaseType.LEGAL:
            continue
        deadline = _deadline(matter)
        if deadline is None:
            continue
        days_away = (deadline - today).days
        if days_away < -DEADLINE_GRACE_DAYS:
            continue
        if window_days is not None and days_away > window_days:
            continue
        board.append((matter, deadline))
    return sorted(board, key=lambda pair: pair[1])


@dataclass(frozen=True)
class WorkspaceSummary:
    """Dashboard counters for one workspace."""

    active_matters: int
    matters_in_briefing: int
    clients: int
    clients_with_open_work: int
    deadlines_due: int
    documents_in_flight: int
    research_tracks: int
    research_needing_attention: int
    total_hours: float
    submitted_hours: float
    approved_hours: float
    draft_entries: int
    pending_entries: int


def workspace_summary(state: WorkspaceState, today: date, window_days: int = 14) -> WorkspaceSummary:
    """Compute the dashboard counters.

    Only legal cases count as matters; restorative and mock trial cases have
    their own program views.
    """
    active = [
        matter
        for matter in state.cases
        if matter.case_type is CaseType.LEGAL and matter.status is not CaseStatus.CLOSED
    ]
    entries = state.time_entries
    return WorkspaceSummary(
        active_matters=len(active),
        matters_in_briefing=sum(1 for matter in active if matter.stage is CaseStage.BRIEFING),
        clients=len(state.clients),
        clients_with_open_work=sum(1 for client in state.clients if client.case_ids),
        deadlines_due=len(upcoming_deadlines(state, today, window_days)),
        documents_in_flight=sum(
            1 for document in state.documents if document.status is not DocumentStatus.FINALIZED
        ),
        research_tracks=len(state.research),
        research_needing_attention=sum(
            1 for item in state.research if item.status is not ResearchStatus.READY_FOR_BRIEFING
        ),
        total_hours=sum(entry.hours for entry in entries),
        submitted_hours=sum(entry.hours for entry in entries if entry.status is TimeEntryStatus.SUBMITTED),
        approved_hours=sum(entry.hours for entry in entries if entry.status is TimeEntryStatus.APPROVED),
        draft_entries=sum(1 for entry in entries if entry.status is TimeEntryStatus.DRAFT),
        pending_entries=sum(1 for entry in entries if entry.status is TimeEntryStatus.SUBMITTED),
    )
