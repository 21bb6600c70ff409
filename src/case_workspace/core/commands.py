"""Commands accepted by the transition engine.

Each command is a frozen dataclass naming one operation and its payload.
Update commands default every field to UNCHANGED; fields marked clearable
also accept CLEAR.
"""

from dataclasses import dataclass
from typing import Any

from case_workspace.core.models import (
    CaseStage,
    CaseStatus,
    CaseType,
    DocumentJurisdiction,
    DocumentStatus,
    MockTrialProfile,
    Priority,
    ResearchAuthority,
    ResearchStatus,
    RestorativeProfile,
    TimeEntryStatus,
    WorkspaceDocType,
)
from case_workspace.core.patches import UNCHANGED

# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateClient:
    name: str
    organization: str | None = None
    primary_contact: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class UpdateClient:
    """Patch a client. Optional contact fields are clearable.

    A new name is copied into the cached client_name of every owned case.
    """

    client_id: str
    name: Any = UNCHANGED
    organization: Any = UNCHANGED
    primary_contact: Any = UNCHANGED
    contact_email: Any = UNCHANGED
    contact_phone: Any = UNCHANGED
    notes: Any = UNCHANGED


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateCase:
    case_name: str
    matter_number: str
    practice_area: str
    stage: CaseStage
    lead_attorney: str
    opened_on: str
    description: str
    priority: Priority
    client: str | None = None
    client_id: str | None = None
    status: CaseStatus = CaseStatus.ACTIVE
    team: tuple[str, ...] = ()
    next_deadline: str | None = None
    tags: tuple[str, ...] = ()
    risk_notes: str | None = None
    case_type: CaseType = CaseType.LEGAL
    program_tag: str | None = None
    restorative_profile: RestorativeProfile | None = None
    mock_trial_profile: MockTrialProfile | None = None


@dataclass(frozen=True)
class UpdateCase:
    """Patch a case.

    Clearable: client_id, next_deadline, risk_notes, program_tag.
    client is a free-text client name; on its own it only refreshes the
    cached client_name and never changes ownership.
    """

    case_id: str
    case_name: Any = UNCHANGED
    client: Any = UNCHANGED
    client_id: Any = UNCHANGED
    practice_area: Any = UNCHANGED
    stage: Any = UNCHANGED
    status: Any = UNCHANGED
    lead_attorney: Any = UNCHANGED
    team: Any = UNCHANGED
    next_deadline: Any = UNCHANGED
    description: Any = UNCHANGED
    priority: Any = UNCHANGED
    tags: Any = UNCHANGED
    risk_notes: Any = UNCHANGED
    case_type: Any = UNCHANGED
    program_tag: Any = UNCHANGED
    restorative_profile: Any = UNCHANGED
    mock_trial_profile: Any = UNCHANGED


# ---------------------------------------------------------------------------
# Documents and research
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateDocument:
    case_ids: tuple[str, ...]
    title: str
    type: str
    owner: str
    status: DocumentStatus
    summary: str = ""
    due_on: str | None = None
    workspace_doc_id: str | None = None
    workspace_doc_type: WorkspaceDocType | None = None
    jurisdiction: DocumentJurisdiction | None = None


@dataclass(frozen=True)
class UpdateDocument:
    """Patch a document. Clearable: due_on, workspace_doc_id, workspace_doc_type, jurisdiction."""

    document_id: str
    case_ids: Any = UNCHANGED
    title: Any = UNCHANGED
    type: Any = UNCHANGED
    owner: Any = UNCHANGED
    due_on: Any = UNCHANGED
    status: Any = UNCHANGED
    version: Any = UNCHANGED
    last_touched_by: Any = UNCHANGED
    summary: Any = UNCHANGED
    workspace_doc_id: Any = UNCHANGED
    workspace_doc_type: Any = UNCHANGED
    jurisdiction: Any = UNCHANGED


@dataclass(frozen=True)
class CreateResearch:
    case_ids: tuple[str, ...]
    title: str
    issue: str
    jurisdiction: str
    status: ResearchStatus
    summary: str = ""
    analysts: tuple[str, ...] = ()
    authorities: tuple[ResearchAuthority, ...] = ()
    next_action: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class UpdateResearch:
    """Patch a research item. Clearable: next_action."""

    research_id: str
    case_ids: Any = UNCHANGED
    title: Any = UNCHANGED
    issue: Any = UNCHANGED
    jurisdiction: Any = UNCHANGED
    status: Any = UNCHANGED
    next_action: Any = UNCHANGED
    analysts: Any = UNCHANGED
    summary: Any = UNCHANGED
    authorities: Any = UNCHANGED
    tags: Any = UNCHANGED


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogTime:
    case_id: str
    author: str
    activity: str
    hours: float
    date: str
    status: TimeEntryStatus = TimeEntryStatus.DRAFT
    notes: str | None = None


@dataclass(frozen=True)
class UpdateTime:
    """Patch a time entry. Clearable: notes."""

    time_entry_id: str
    case_id: Any = UNCHANGED
    author: Any = UNCHANGED
    activity: Any = UNCHANGED
    hours: Any = UNCHANGED
    date: Any = UNCHANGED
    status: Any = UNCHANGED
    notes: Any = UNCHANGED


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaveRestorativeProfile:
    case_id: str
    profile: RestorativeProfile


@dataclass(frozen=True)
class LogRestorativeSession:
    case_id: str
    date: str
    facilitator: str
    focus_area: str = "Circle"
    summary: str = ""
    agreements: tuple[str, ...] = ()
    follow_up_date: str | None = None


@dataclass(frozen=True)
class ScheduleMockTrialRound:
    case_id: str
    round_name: str
    scheduled_for: str
    judge_panel: tuple[str, ...] = ()
    venue: str | None = None


@dataclass(frozen=True)
class ScoreMockTrialRound:
    case_id: str
    round_id: str
    prosecution_score: float
    defense_score: float
    verdict: str | None = None
    notes: str | None = None


Command = (
    CreateClient
    | UpdateClient
    | CreateCase
    | UpdateCase
    | CreateDocument
    | UpdateDocument
    | CreateResearch
    | UpdateResearch
    | LogTime
    | UpdateTime
    | SaveRestorativeProfile
    | LogRestorativeSession
    | ScheduleMockTrialRound
    | ScoreMockTrialRound
)
