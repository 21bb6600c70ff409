"""Pydantic request and response schemas for the case-workspace API.

Bodies use camelCase keys, matching the persisted snapshot; snake_case names
are accepted too. Schemas are grouped by resource:
  {Resource}CreateRequest  POST body, converted with to_command()
  {Resource}UpdateRequest  PATCH body, converted with to_command()

PATCH bodies are partial. A field that is absent leaves the stored value
unchanged. An explicit null clears fields that are clearable and is ignored
on the rest.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from case_workspace.core.audit import generate_id
from case_workspace.core.commands import (
    CreateCase,
    CreateClient,
    CreateDocument,
    CreateResearch,
    LogRestorativeSession,
    LogTime,
    ScheduleMockTrialRound,
    ScoreMockTrialRound,
    UpdateCase,
    UpdateClient,
    UpdateDocument,
    UpdateResearch,
    UpdateTime,
)
from case_workspace.core.models import (
    CaseStage,
    CaseStatus,
    CaseType,
    DocumentJurisdiction,
    DocumentStatus,
    MockTrialProfile,
    MockTrialRole,
    MockTrialRound,
    ParticipantRole,
    Priority,
    ResearchAuthority,
    ResearchStatus,
    RestorativeForms,
    RestorativeIntake,
    RestorativeParticipant,
    RestorativeProfile,
    RestorativeSession,
    TimeEntryStatus,
    WorkspaceDocType,
)
from case_workspace.core.patches import CLEAR


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _domain(value: Any) -> Any:
    """Convert nested schemas and lists into domain values."""
    if isinstance(value, _Schema) and hasattr(value, "to_domain"):
        return value.to_domain()
    if isinstance(value, list):
        return tuple(_domain(item) for item in value)
    return value


def _create_kwargs(model: BaseModel) -> dict[str, Any]:
    return {name: _domain(getattr(model, name)) for name in type(model).model_fields}


def _patch_kwargs(model: BaseModel, clearable: frozenset[str]) -> dict[str, Any]:
    """Map the fields a PATCH body actually carried onto update-command kwargs."""
    changes: dict[str, Any] = {}
    for name in model.model_fields_set:
        value = getattr(model, name)
        if value is None:
            if name in clearable:
                changes[name] = CLEAR
            continue
        changes[name] = _domain(value)
    return changes


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


class RestorativeIntakeSchema(_Schema):
    referral_source: str = ""
    incident_summary: str = ""
    goals: list[str] = Field(default_factory=list)
    support_needs: str | None = None
    risk_factors: list[str] = Field(default_factory=list)
    preferred_facilitator: str | None = None
    notes: str | None = None

    def to_domain(self) -> RestorativeIntake:
        return RestorativeIntake(**_create_kwargs(self))


class RestorativeParticipantSchema(_Schema):
    id: str | None = Field(default=None, description="Generated when omitted")
    name: str
    role: ParticipantRole = ParticipantRole.HARMED
    contact: str | None = None

    def to_domain(self) -> RestorativeParticipant:
        return RestorativeParticipant(
            id=self.id or generate_id("participant"),
            name=self.name,
            role=self.role,
            contact=self.contact,
        )


class RestorativeFormsSchema(_Schema):
    consent_signed: bool = False
    safety_plan_on_file: bool = False
    media_release_signed: bool = False

    def to_domain(self) -> RestorativeForms:
        return RestorativeForms(**_create_kwargs(self))


class RestorativeSessionSchema(_Schema):
    id: str | None = Field(default=None, description="Generated when omitted")
    date: str
    facilitator: str
    focus_area: str = "Circle"
    summary: str = ""
    agreements: list[str] = Field(default_factory=list)
    follow_up_date: str | None = None

    def to_domain(self) -> RestorativeSession:
        fields = _create_kwargs(self)
        fields["id"] = self.id or generate_id("restorative-session")
        return RestorativeSession(**fields)


class RestorativeProfileSchema(_Schema):
    """Full restorative profile; replaces the stored one when saved."""

    intake: RestorativeIntakeSchema | None = None
    participants: list[RestorativeParticipantSchema] = Field(default_factory=list)
    forms: RestorativeFormsSchema = Field(default_factory=RestorativeFormsSchema)
    care_plan: str | None = None
    sessions: list[RestorativeSessionSchema] = Field(default_factory=list)

    def to_domain(self) -> RestorativeProfile:
        return RestorativeProfile(**_create_kwargs(self))


class MockTrialRoundSchema(_Schema):
    id: str | None = Field(default=None, description="Generated when omitted")
    round_name: str
    scheduled_for: str
    venue: str | None = None
    judge_panel: list[str] = Field(default_factory=list)
    prosecution_score: float | None = None
    defense_score: float | None = None
    verdict: str | None = None
    notes: str | None = None

    def to_domain(self) -> MockTrialRound:
        fields = _create_kwargs(self)
        fields["id"] = self.id or generate_id("mock-round")
        return MockTrialRound(**fields)


class MockTrialProfileSchema(_Schema):
    team_name: str = ""
    role: MockTrialRole = MockTrialRole.PROSECUTION
    opponent: str | None = None
    case_packet: str | None = None
    strategy_notes: str | None = None
    rounds: list[MockTrialRoundSchema] = Field(default_factory=list)

    def to_domain(self) -> MockTrialProfile:
        return MockTrialProfile(**_create_kwargs(self))


class JurisdictionSchema(_Schema):
    id: str
    label: str
    court_rules: list[str] = Field(default_factory=list)
    filing_note: str | None = None

    def to_domain(self) -> DocumentJurisdiction:
        return DocumentJurisdiction(**_create_kwargs(self))


class AuthoritySchema(_Schema):
    citation: str
    court: str
    holding: str

    def to_domain(self) -> ResearchAuthority:
        return ResearchAuthority(**_create_kwargs(self))


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class ClientCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/clients."""

    name: str = Field(min_length=1, description="Client display name")
    organization: str | None = None
    primary_contact: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    notes: str | None = None

    def to_command(self) -> CreateClient:
        return CreateClient(**_create_kwargs(self))


class ClientUpdateRequest(_Schema):
    """Request body for PATCH /api/v1/workspace/clients/{client_id}."""

    name: str | None = Field(default=None, min_length=1)
    organization: str | None = None
    primary_contact: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    notes: str | None = None

    CLEARABLE: ClassVar[frozenset[str]] = frozenset(
        {"organization", "primary_contact", "contact_email", "contact_phone", "notes"}
    )

    def to_command(self, client_id: str) -> UpdateClient:
        return UpdateClient(client_id=client_id, **_patch_kwargs(self, self.CLEARABLE))


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class CaseCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/cases.

    clientId links the case to an existing client; client alone only sets
    the displayed client name.
    """

    case_name: str = Field(min_length=1)
    matter_number: str
    practice_area: str
    stage: CaseStage = CaseStage.INTAKE
    lead_attorney: str
    opened_on: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    client: str | None = None
    client_id: str | None = None
    status: CaseStatus = CaseStatus.ACTIVE
    team: list[str] = Field(default_factory=list)
    next_deadline: str | None = None
    tags: list[str] = Field(default_factory=list)
    risk_notes: str | None = None
    case_type: CaseType = CaseType.LEGAL
    program_tag: str | None = None
    restorative_profile: RestorativeProfileSchema | None = None
    mock_trial_profile: MockTrialProfileSchema | None = None

    def to_command(self) -> CreateCase:
        return CreateCase(**_create_kwargs(self))


class CaseUpdateRequest(_Schema):
    """Request body for PATCH /api/v1/workspace/cases/{case_id}."""

    case_name: str | None = Field(default=None, min_length=1)
    client: str | None = None
    client_id: str | None = None
    practice_area: str | None = None
    stage: CaseStage | None = None
    status: CaseStatus | None = None
    lead_attorney: str | None = None
    team: list[str] | None = None
    next_deadline: str | None = None
    description: str | None = None
    priority: Priority | None = None
    tags: list[str] | None = None
    risk_notes: str | None = None
    case_type: CaseType | None = None
    program_tag: str | None = None
    restorative_profile: RestorativeProfileSchema | None = None
    mock_trial_profile: MockTrialProfileSchema | None = None

    CLEARABLE: ClassVar[frozenset[str]] = frozenset({"client_id", "next_deadline", "risk_notes", "program_tag"})

    def to_command(self, case_id: str) -> UpdateCase:
        return UpdateCase(case_id=case_id, **_patch_kwargs(self, self.CLEARABLE))


# ---------------------------------------------------------------------------
# Documents and research
# ---------------------------------------------------------------------------


class DocumentCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/documents."""

    case_ids: list[str] = Field(min_length=1)
    title: str = Field(min_length=1)
    type: str
    owner: str
    status: DocumentStatus = DocumentStatus.DRAFTING
    summary: str = ""
    due_on: str | None = None
    workspace_doc_id: str | None = None
    workspace_doc_type: WorkspaceDocType | None = None
    jurisdiction: JurisdictionSchema | None = None

    def to_command(self) -> CreateDocument:
        return CreateDocument(**_create_kwargs(self))


class DocumentUpdateRequest(_Schema):
    """Request body for PATCH /api/v1/workspace/documents/{document_id}."""

    case_ids: list[str] | None = None
    title: str | None = None
    type: str | None = None
    owner: str | None = None
    due_on: str | None = None
    status: DocumentStatus | None = None
    version: str | None = None
    last_touched_by: str | None = None
    summary: str | None = None
    workspace_doc_id: str | None = None
    workspace_doc_type: WorkspaceDocType | None = None
    jurisdiction: JurisdictionSchema | None = None

    CLEARABLE: ClassVar[frozenset[str]] = frozenset(
        {"due_on", "workspace_doc_id", "workspace_doc_type", "jurisdiction"}
    )

    def to_command(self, document_id: str) -> UpdateDocument:
        return UpdateDocument(document_id=document_id, **_patch_kwargs(self, self.CLEARABLE))


class ResearchCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/research."""

    case_ids: list[str] = Field(min_length=1)
    title: str = Field(min_length=1)
    issue: str
    jurisdiction: str
    status: ResearchStatus = ResearchStatus.IN_PROGRESS
    summary: str = ""
    analysts: list[str] = Field(default_factory=list)
    authorities: list[AuthoritySchema] = Field(default_factory=list)
    next_action: str | None = None
    tags: list[str] = Field(default_factory=list)

    def to_command(self) -> CreateResearch:
        return CreateResearch(**_create_kwargs(self))


class ResearchUpdateRequest(_Schema):
    """Request body for PATCH /api/v1/workspace/research/{research_id}."""

    case_ids: list[str] | None = None
    title: str | None = None
    issue: str | None = None
    jurisdiction: str | None = None
    status: ResearchStatus | None = None
    next_action: str | None = None
    analysts: list[str] | None = None
    summary: str | None = None
    authorities: list[AuthoritySchema] | None = None
    tags: list[str] | None = None

    CLEARABLE: ClassVar[frozenset[str]] = frozenset({"next_action"})

    def to_command(self, research_id: str) -> UpdateResearch:
        return UpdateResearch(research_id=research_id, **_patch_kwargs(self, self.CLEARABLE))


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


class TimeEntryCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/time-entries."""

    case_id: str
    author: str
    activity: str
    hours: float = Field(ge=0)
    date: str
    status: TimeEntryStatus = TimeEntryStatus.DRAFT
    notes: str | None = None

    def to_command(self) -> LogTime:
        return LogTime(**_create_kwargs(self))


class TimeEntryUpdateRequest(_Schema):
    """Request body for PATCH /api/v1/workspace/time-entries/{time_entry_id}."""

    case_id: str | None = None
    author: str | None = None
    activity: str | None = None
    hours: float | None = Field(default=None, ge=0)
    date: str | None = None
    status: TimeEntryStatus | None = None
    notes: str | None = None

    CLEARABLE: ClassVar[frozenset[str]] = frozenset({"notes"})

    def to_command(self, time_entry_id: str) -> UpdateTime:
        return UpdateTime(time_entry_id=time_entry_id, **_patch_kwargs(self, self.CLEARABLE))


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


class RestorativeSessionCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/cases/{case_id}/restorative-sessions."""

    date: str
    facilitator: str
    focus_area: str = "Circle"
    summary: str = ""
    agreements: list[str] = Field(default_factory=list)
    follow_up_date: str | None = None

    def to_command(self, case_id: str) -> LogRestorativeSession:
        return LogRestorativeSession(case_id=case_id, **_create_kwargs(self))


class MockTrialRoundCreateRequest(_Schema):
    """Request body for POST /api/v1/workspace/cases/{case_id}/mock-trial-rounds."""

    round_name: str = Field(min_length=1)
    scheduled_for: str
    judge_panel: list[str] = Field(default_factory=list)
    venue: str | None = None

    def to_command(self, case_id: str) -> ScheduleMockTrialRound:
        return ScheduleMockTrialRound(case_id=case_id, **_create_kwargs(self))


class MockTrialScoreRequest(_Schema):
    """Request body for POST .../mock-trial-rounds/{round_id}/score."""

    prosecution_score: float
    defense_score: float
    verdict: str | None = None
    notes: str | None = None

    def to_command(self, case_id: str, round_id: str) -> ScoreMockTrialRound:
        return ScoreMockTrialRound(case_id=case_id, round_id=round_id, **_create_kwargs(self))


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CreatedResponse(BaseModel):
    """Response for create endpoints."""

    id: str = Field(description="Identifier of the created record")


class AppliedResponse(BaseModel):
    """Response for update endpoints."""

    applied: bool = Field(description="False when the command named an unknown record")


class WorkspaceSummaryResponse(BaseModel):
    """Dashboard counters computed from the current workspace."""

    model_config = ConfigDict(from_attributes=True)

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
