"""Entity model for case-workspace.

Six record kinds live in the workspace graph: Client, Case, Document,
ResearchItem, TimeEntry and ActivityItem. All records are frozen dataclasses
with tuple-valued collections, so a WorkspaceState can be shared freely and
is only ever replaced, never mutated.

Back-links are stored by id on both sides:
  - Client.case_ids      <-> Case.client_id
  - Case.document_ids    <-> Document.case_ids
  - Case.research_ids    <-> ResearchItem.case_ids
  - TimeEntry.case_id     -> Case.id

This module also holds the shape predicates shared by the normalizer and
the transition engine.
"""

import math
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

_EnumT = TypeVar("_EnumT", bound=Enum)
_DefaultT = TypeVar("_DefaultT")


class CaseStage(str, Enum):
    """Workflow stage of a case.

    Unordered: any stage may follow any other.
    """

    INTAKE = "intake"
    INVESTIGATION = "investigation"
    DISCOVERY = "discovery"
    BRIEFING = "briefing"
    HEARING = "hearing"
    APPEAL = "appeal"
    CLOSED = "closed"


class CaseStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CaseType(str, Enum):
    """Case category; selects which nested profile a case carries."""

    LEGAL = "legal"
    RESTORATIVE = "restorative"
    MOCK_TRIAL = "mock_trial"


class ParticipantRole(str, Enum):
    HARMED = "harmed"
    RESPONSIBLE = "responsible"
    CAREGIVER = "caregiver"
    ADVOCATE = "advocate"


class MockTrialRole(str, Enum):
    PROSECUTION = "prosecution"
    DEFENSE = "defense"
    JUDGE = "judge"
    RESTORATIVE_PANEL = "restorative_panel"


class DocumentStatus(str, Enum):
    DRAFTING = "Drafting"
    IN_REVIEW = "In Review"
    FINALIZED = "Finalized"


class WorkspaceDocType(str, Enum):
    """Kind of the external editable document linked to a Document."""

    DOC = "doc"
    SHEET = "sheet"
    SLIDE = "slide"
    FORM = "form"
    DRAWING = "drawing"


class ResearchStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    NEEDS_UPDATE = "Needs Update"
    READY_FOR_BRIEFING = "Ready for Briefing"


class TimeEntryStatus(str, Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"


class ActivityType(str, Enum):
    """Closed set of audit event kinds."""

    CASE_CREATED = "case-created"
    CASE_UPDATED = "case-updated"
    DOCUMENT_CREATED = "document-created"
    DOCUMENT_UPDATED = "document-updated"
    RESEARCH_CREATED = "research-created"
    RESEARCH_UPDATED = "research-updated"
    TIME_LOGGED = "time-logged"


# ---------------------------------------------------------------------------
# Restorative profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RestorativeIntake:
    referral_source: str = ""
    incident_summary: str = ""
    goals: tuple[str, ...] = ()
    support_needs: str | None = None
    risk_factors: tuple[str, ...] = ()
    preferred_facilitator: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RestorativeParticipant:
    id: str
    name: str
    role: ParticipantRole = ParticipantRole.HARMED
    contact: str | None = None


@dataclass(frozen=True)
class RestorativeForms:
    """Completion flags for the three restorative intake forms."""

    consent_signed: bool = False
    safety_plan_on_file: bool = False
    media_release_signed: bool = False


@dataclass(frozen=True)
class RestorativeSession:
    id: str
    date: str
    facilitator: str
    focus_area: str = "Circle"
    summary: str = ""
    agreements: tuple[str, ...] = ()
    follow_up_date: str | None = None


@dataclass(frozen=True)
class RestorativeProfile:
    """Restorative-justice payload carried by cases of type restorative.

    Sessions are ordered newest first.
    """

    intake: RestorativeIntake | None = None
    participants: tuple[RestorativeParticipant, ...] = ()
    forms: RestorativeForms = field(default_factory=RestorativeForms)
    care_plan: str | None = None
    sessions: tuple[RestorativeSession, ...] = ()


# ---------------------------------------------------------------------------
# Mock trial profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MockTrialRound:
    id: str
    round_name: str
    scheduled_for: str
    venue: str | None = None
    judge_panel: tuple[str, ...] = ()
    prosecution_score: float | None = None
    defense_score: float | None = None
    verdict: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class MockTrialProfile:
    """Mock-trial payload carried by cases of type mock_trial.

    Rounds are ordered newest first.
    """

    team_name: str = ""
    role: MockTrialRole = MockTrialRole.PROSECUTION
    opponent: str | None = None
    case_packet: str | None = None
    strategy_notes: str | None = None
    rounds: tuple[MockTrialRound, ...] = ()


# ---------------------------------------------------------------------------
# Top-level records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Client:
    """A client that owns zero or more cases.

    case_ids is maintained by the engine and the normalizer; callers never
    set it directly.
    """

    id: str
    name: str
    created_at: str
    updated_at: str
    organization: str | None = None
    primary_contact: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    notes: str | None = None
    case_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Case:
    """A matter tracked in the workspace.

    client_name is a display cache of the owning client's name; identity is
    carried by client_id.
    """

    id: str
    matter_number: str
    case_name: str
    case_type: CaseType
    stage: CaseStage
    status: CaseStatus
    practice_area: str
    lead_attorney: str
    opened_on: str
    description: str
    priority: Priority
    created_at: str
    updated_at: str
    client_id: str | None = None
    client_name: str | None = None
    team: tuple[str, ...] = ()
    next_deadline: str | None = None
    tags: tuple[str, ...] = ()
    risk_notes: str | None = None
    program_tag: str | None = None
    document_ids: tuple[str, ...] = ()
    research_ids: tuple[str, ...] = ()
    restorative_profile: RestorativeProfile | None = None
    mock_trial_profile: MockTrialProfile | None = None


@dataclass(frozen=True)
class DocumentJurisdiction:
    id: str
    label: str
    court_rules: tuple[str, ...] = ()
    filing_note: str | None = None


@dataclass(frozen=True)
class Document:
    id: str
    case_ids: tuple[str, ...]
    title: str
    type: str
    owner: str
    status: DocumentStatus
    version: str
    last_touched_by: str
    updated_at: str
    summary: str = ""
    due_on: str | None = None
    workspace_doc_id: str | None = None
    workspace_doc_type: WorkspaceDocType | None = None
    jurisdiction: DocumentJurisdiction | None = None


@dataclass(frozen=True)
class ResearchAuthority:
    citation: str
    court: str
    holding: str


@dataclass(frozen=True)
class ResearchItem:
    id: str
    case_ids: tuple[str, ...]
    title: str
    issue: str
    jurisdiction: str
    status: ResearchStatus
    updated_at: str
    summary: str = ""
    next_action: str | None = None
    analysts: tuple[str, ...] = ()
    authorities: tuple[ResearchAuthority, ...] = ()
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeEntry:
    """Billable time against one case.

    case_name is a snapshot of the case name at logging time.
    """

    id: str
    case_id: str
    case_name: str
    author: str
    activity: str
    hours: float
    date: str
    status: TimeEntryStatus
    notes: str | None = None


@dataclass(frozen=True)
class ActivityItem:
    id: str
    type: ActivityType
    label: str
    related_case_ids: tuple[str, ...]
    timestamp: str


@dataclass(frozen=True)
class WorkspaceState:
    """The whole entity graph at one point in time."""

    clients: tuple[Client, ...] = ()
    cases: tuple[Case, ...] = ()
    documents: tuple[Document, ...] = ()
    research: tuple[ResearchItem, ...] = ()
    time_entries: tuple[TimeEntry, ...] = ()
    activity: tuple[ActivityItem, ...] = ()

    def case_ids(self) -> frozenset[str]:
        """Return the live case id set."""
        return frozenset(matter.id for matter in self.cases)

    def client_ids(self) -> frozenset[str]:
        """Return the live client id set."""
        return frozenset(client.id for client in self.clients)


def empty_state() -> WorkspaceState:
    """Return the pristine, never-initialized workspace state."""
    return WorkspaceState()


def empty_restorative_profile() -> RestorativeProfile:
    return RestorativeProfile()


def empty_mock_trial_profile(team_name: str = "") -> MockTrialProfile:
    return MockTrialProfile(team_name=team_name)


def profiles_for(
    case_type: CaseType,
    restorative_profile: RestorativeProfile | None,
    mock_trial_profile: MockTrialProfile | None,
    case_name: str,
) -> tuple[RestorativeProfile | None, MockTrialProfile | None]:
    """Return the (restorative, mock trial) pair a case of case_type may carry.

    The profile matching the category is kept or created empty; the other
    one is dropped. Legal cases carry neither.
    """
    if case_type is CaseType.RESTORATIVE:
        return restorative_profile or empty_restorative_profile(), None
    if case_type is CaseType.MOCK_TRIAL:
        return None, mock_trial_profile or empty_mock_trial_profile(case_name)
    return None, None


# ---------------------------------------------------------------------------
# Shape predicates
# ---------------------------------------------------------------------------


def is_present(value: Any) -> bool:
    """Return True if value is a string with non-whitespace content."""
    return isinstance(value, str) and bool(value.strip())


def is_number(value: Any) -> bool:
    """Return True for int/float values, excluding bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def finite_number(value: Any) -> float | None:
    """Return value if it is a number representable as a finite float, else None."""
    if not is_number(value):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(number) else None


def coerce_enum(value: Any, enum_cls: type[_EnumT], default: _DefaultT) -> _EnumT | _DefaultT:
    """Return the enum member whose value equals value, else default.

    Args:
        value: Candidate raw value (usually a string from persisted JSON).
        enum_cls: Enumeration to check membership against.
        default: Member returned when value is not a valid member.

    Returns:
        The matching member or default.
    """
    if isinstance(value, enum_cls):
        return value
    if not is_present(value):
        return default
    try:
        return enum_cls(value)
    except ValueError:
        return default


def optional_string(value: Any) -> str | None:
    return value if is_present(value) else None


def string_list(value: Any) -> tuple[str, ...]:
    """Keep only the present strings of a list; anything else becomes ()."""
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if is_present(item))


def unique_ids(*groups: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Concatenate id groups, dropping duplicates and keeping first order."""
    return tuple(dict.fromkeys(item for group in groups for item in group))


def normalize_key(value: str | None) -> str:
    """Fold a display name into a comparison key.

    Lowercases, strips diacritics, collapses non-alphanumeric runs into a
    single dash and trims edge dashes: "Westhaven Renewable, Inc." becomes
    "westhaven-renewable-inc".
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value.lower())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return re.sub(r"[^a-z0-9]+", "-", stripped).strip("-")
