"""Transition engine for case-workspace.

apply() is the only way the workspace graph changes. It is a pure function
of (state, command, context): it never mutates its inputs, reads the clock
only through the OperationContext, and returns a Transition holding the new
state, the activity entry it appended and the id of any created record.

Commands that name an unknown target (case, client, document, research
item, time entry or mock trial round) are ignored: the Transition returned
carries the original state, no activity and applied=False.

All cross-entity bookkeeping happens inside the same transition:
  - case ownership changes move the case id between client.case_ids
  - client renames refresh client_name on every owned case
  - document/research case links are mirrored in case.document_ids /
    case.research_ids
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from case_workspace.core.audit import ACTIVITY_LIMIT, OperationContext, append_activity, build_activity
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
from case_workspace.core.models import (
    ActivityItem,
    ActivityType,
    Case,
    CaseStage,
    CaseStatus,
    CaseType,
    Client,
    Document,
    DocumentStatus,
    MockTrialRound,
    Priority,
    ResearchItem,
    ResearchStatus,
    RestorativeSession,
    TimeEntry,
    TimeEntryStatus,
    WorkspaceDocType,
    WorkspaceState,
    coerce_enum,
    empty_mock_trial_profile,
    empty_restorative_profile,
    finite_number,
    profiles_for,
    unique_ids,
)
from case_workspace.core.patches import CLEAR, is_set, resolve, resolve_required


@dataclass(frozen=True)
class Transition:
    """Outcome of applying one command."""

    state: WorkspaceState
    activity: ActivityItem | None = None
    created_id: str | None = None

    @property
    def applied(self) -> bool:
        return self.activity is not None


@dataclass(frozen=True)
class _Change:
    """What a handler produced before the activity entry is appended."""

    state: WorkspaceState
    label: str
    kind: ActivityType
    related_case_ids: tuple[str, ...]
    created_id: str | None = None


def _find(records: tuple[Any, ...], record_id: str) -> Any | None:
    for record in records:
        if record.id == record_id:
            return record
    return None


def _swap(records: tuple[Any, ...], updated: Any) -> tuple[Any, ...]:
    return tuple(updated if record.id == updated.id else record for record in records)


def _live_case_ids(state: WorkspaceState, case_ids: Any) -> tuple[str, ...]:
    live = state.case_ids()
    return tuple(case_id for case_id in unique_ids(tuple(case_ids)) if case_id in live)


def _hours(value: Any) -> float:
    number = finite_number(value)
    return 0 if number is None else max(number, 0)


def _enum_update(update: Any, enum_cls: type, current: Any) -> Any:
    if not is_set(update):
        return current
    return coerce_enum(update, enum_cls, current)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _create_client(state: WorkspaceState, command: CreateClient, context: OperationContext) -> _Change:
    client = Client(
        id=context.new_id("client"),
        name=command.name,
        organization=command.organization,
        primary_contact=command.primary_contact,
        contact_email=command.contact_email,
        contact_phone=command.contact_phone,
        notes=command.notes,
        created_at=context.timestamp,
        updated_at=context.timestamp,
    )
    return _Change(
        state=replace(state, clients=(client, *state.clients)),
        label=f"New client added: {command.name}",
        kind=ActivityType.CASE_CREATED,
        related_case_ids=(),
        created_id=client.id,
    )


def _update_client(state: WorkspaceState, command: UpdateClient, context: OperationContext) -> _Change | None:
    client = _find(state.clients, command.client_id)
    if client is None:
        return None

    name = resolve_required(command.name, client.name)
    updated = replace(
        client,
        name=name,
        organization=resolve(command.organization, client.organization),
        primary_contact=resolve(command.primary_contact, client.primary_contact),
        contact_email=resolve(command.contact_email, client.contact_email),
        contact_phone=resolve(command.contact_phone, client.contact_phone),
        notes=resolve(command.notes, client.notes),
        updated_at=context.timestamp,
    )
    cases = state.cases
    if is_set(command.name):
        cases = tuple(
            replace(matter, client_name=name) if matter.client_id == client.id else matter
            for matter in state.cases
        )
    label = f"Client updated: {command.name}" if is_set(command.name) else "Client updated"
    return _Change(
        state=replace(state, clients=_swap(state.clients, updated), cases=cases),
        label=label,
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(),
    )


def _move_case_between_clients(
    clients: tuple[Client, ...],
    case_id: str,
    previous_client_id: str | None,
    next_client_id: str | None,
    timestamp: str,
) -> tuple[Client, ...]:
    if previous_client_id == next_client_id:
        return clients
    moved = []
    for client in clients:
        if client.id == previous_client_id:
            client = replace(
                client,
                case_ids=tuple(item for item in client.case_ids if item != case_id),
                updated_at=timestamp,
            )
        elif client.id == next_client_id:
            client = replace(client, case_ids=unique_ids((case_id,), client.case_ids), updated_at=timestamp)
        moved.append(client)
    return tuple(moved)


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


def _create_case(state: WorkspaceState, command: CreateCase, context: OperationContext) -> _Change:
    case_type = coerce_enum(command.case_type, CaseType, CaseType.LEGAL)
    client = _find(state.clients, command.client_id) if command.client_id else None
    restorative_profile, mock_trial_profile = profiles_for(
        case_type, command.restorative_profile, command.mock_trial_profile, command.case_name
    )
    matter = Case(
        id=context.new_id("case"),
        matter_number=command.matter_number,
        case_name=command.case_name,
        client_id=client.id if client else None,
        client_name=client.name if client else command.client,
        case_type=case_type,
        stage=coerce_enum(command.stage, CaseStage, CaseStage.INTAKE),
        status=coerce_enum(command.status, CaseStatus, CaseStatus.ACTIVE),
        practice_area=command.practice_area,
        lead_attorney=command.lead_attorney,
        team=tuple(command.team),
        opened_on=command.opened_on,
        next_deadline=command.next_deadline,
        description=command.description,
        priority=coerce_enum(command.priority, Priority, Priority.MEDIUM),
        tags=tuple(command.tags),
        risk_notes=command.risk_notes,
        program_tag=command.program_tag,
        restorative_profile=restorative_profile,
        mock_trial_profile=mock_trial_profile,
        created_at=context.timestamp,
        updated_at=context.timestamp,
    )
    clients = _move_case_between_clients(
        state.clients, matter.id, None, matter.client_id, context.timestamp
    )
    return _Change(
        state=replace(state, cases=(matter, *state.cases), clients=clients),
        label=f"New matter created: {command.case_name}",
        kind=ActivityType.CASE_CREATED,
        related_case_ids=(matter.id,),
        created_id=matter.id,
    )


def _resolve_ownership(
    state: WorkspaceState, matter: Case, command: UpdateCase
) -> tuple[str | None, str | None]:
    """Return the (client_id, client_name) a case update leaves behind.

    An explicit client_id that does not name a live client is ignored.
    """
    client_id, client_name = matter.client_id, matter.client_name
    if command.client_id is CLEAR:
        client_id = None
    elif is_set(command.client_id):
        client = _find(state.clients, command.client_id)
        if client is not None:
            return client.id, client.name
    if is_set(command.client):
        client_name = command.client
    return client_id, client_name


def _update_case(state: WorkspaceState, command: UpdateCase, context: OperationContext) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None:
        return None

    client_id, client_name = _resolve_ownership(state, matter, command)
    case_name = resolve_required(command.case_name, matter.case_name)
    case_type = _enum_update(command.case_type, CaseType, matter.case_type)
    restorative_profile, mock_trial_profile = profiles_for(
        case_type,
        resolve(command.restorative_profile, matter.restorative_profile),
        resolve(command.mock_trial_profile, matter.mock_trial_profile),
        case_name,
    )
    updated = replace(
        matter,
        case_name=case_name,
        client_id=client_id,
        client_name=client_name,
        case_type=case_type,
        stage=_enum_update(command.stage, CaseStage, matter.stage),
        status=_enum_update(command.status, CaseStatus, matter.status),
        practice_area=resolve_required(command.practice_area, matter.practice_area),
        lead_attorney=resolve_required(command.lead_attorney, matter.lead_attorney),
        team=tuple(resolve_required(command.team, matter.team)),
        next_deadline=resolve(command.next_deadline, matter.next_deadline),
        description=resolve_required(command.description, matter.description),
        priority=_enum_update(command.priority, Priority, matter.priority),
        tags=tuple(resolve_required(command.tags, matter.tags)),
        risk_notes=resolve(command.risk_notes, matter.risk_notes),
        program_tag=resolve(command.program_tag, matter.program_tag),
        restorative_profile=restorative_profile,
        mock_trial_profile=mock_trial_profile,
        updated_at=context.timestamp,
    )
    clients = _move_case_between_clients(
        state.clients, matter.id, matter.client_id, client_id, context.timestamp
    )
    label = f"Matter updated: {command.case_name}" if is_set(command.case_name) else "Matter updated"
    return _Change(
        state=replace(state, cases=_swap(state.cases, updated), clients=clients),
        label=label,
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(matter.id,),
    )


# ---------------------------------------------------------------------------
# Documents and research
# ---------------------------------------------------------------------------


def _relink(
    cases: tuple[Case, ...],
    record_id: str,
    linked_case_ids: tuple[str, ...],
    attribute: str,
    timestamp: str | None = None,
) -> tuple[Case, ...]:
    """Make record_id appear in getattr(case, attribute) exactly for linked cases.

    Newly linked cases get the id prepended; cases no longer linked lose it.
    When timestamp is given, newly linked cases also get updated_at bumped.
    """
    relinked = []
    for matter in cases:
        current = getattr(matter, attribute)
        has_link = record_id in current
        if matter.id in linked_case_ids and not has_link:
            changes = {attribute: (record_id, *current)}
            if timestamp is not None:
                changes["updated_at"] = timestamp
            matter = replace(matter, **changes)
        elif matter.id not in linked_case_ids and has_link:
            matter = replace(matter, **{attribute: tuple(item for item in current if item != record_id)})
        relinked.append(matter)
    return tuple(relinked)


def _create_document(state: WorkspaceState, command: CreateDocument, context: OperationContext) -> _Change:
    case_ids = _live_case_ids(state, command.case_ids)
    document = Document(
        id=context.new_id("document"),
        case_ids=case_ids,
        title=command.title,
        type=command.type,
        owner=command.owner,
        due_on=command.due_on,
        status=coerce_enum(command.status, DocumentStatus, DocumentStatus.DRAFTING),
        version="Draft",
        last_touched_by=command.owner,
        updated_at=context.timestamp,
        summary=command.summary,
        workspace_doc_id=command.workspace_doc_id,
        workspace_doc_type=coerce_enum(command.workspace_doc_type, WorkspaceDocType, None),
        jurisdiction=command.jurisdiction,
    )
    cases = _relink(state.cases, document.id, case_ids, "document_ids", context.timestamp)
    return _Change(
        state=replace(state, documents=(document, *state.documents), cases=cases),
        label=f"Document added: {command.title}",
        kind=ActivityType.DOCUMENT_CREATED,
        related_case_ids=case_ids,
        created_id=document.id,
    )


def _update_document(state: WorkspaceState, command: UpdateDocument, context: OperationContext) -> _Change | None:
    document = _find(state.documents, command.document_id)
    if document is None:
        return None

    case_ids = (
        _live_case_ids(state, command.case_ids) if is_set(command.case_ids) else document.case_ids
    )
    workspace_doc_type = (
        coerce_enum(command.workspace_doc_type, WorkspaceDocType, document.workspace_doc_type)
        if is_set(command.workspace_doc_type)
        else resolve(command.workspace_doc_type, document.workspace_doc_type)
    )
    updated = replace(
        document,
        case_ids=case_ids,
        title=resolve_required(command.title, document.title),
        type=resolve_required(command.type, document.type),
        owner=resolve_required(command.owner, document.owner),
        due_on=resolve(command.due_on, document.due_on),
        status=_enum_update(command.status, DocumentStatus, document.status),
        version=resolve_required(command.version, document.version),
        last_touched_by=resolve_required(command.last_touched_by, document.last_touched_by),
        summary=resolve_required(command.summary, document.summary),
        workspace_doc_id=resolve(command.workspace_doc_id, document.workspace_doc_id),
        workspace_doc_type=workspace_doc_type,
        jurisdiction=resolve(command.jurisdiction, document.jurisdiction),
        updated_at=context.timestamp,
    )
    cases = state.cases
    if is_set(command.case_ids):
        cases = _relink(state.cases, document.id, case_ids, "document_ids")
    return _Change(
        state=replace(state, documents=_swap(state.documents, updated), cases=cases),
        label="Document updated",
        kind=ActivityType.DOCUMENT_UPDATED,
        related_case_ids=case_ids,
    )


def _create_research(state: WorkspaceState, command: CreateResearch, context: OperationContext) -> _Change:
    case_ids = _live_case_ids(state, command.case_ids)
    item = ResearchItem(
        id=context.new_id("research"),
        case_ids=case_ids,
        title=command.title,
        issue=command.issue,
        jurisdiction=command.jurisdiction,
        status=coerce_enum(command.status, ResearchStatus, ResearchStatus.IN_PROGRESS),
        next_action=command.next_action,
        analysts=tuple(command.analysts),
        updated_at=context.timestamp,
        summary=command.summary,
        authorities=tuple(command.authorities),
        tags=tuple(command.tags),
    )
    cases = _relink(state.cases, item.id, case_ids, "research_ids", context.timestamp)
    return _Change(
        state=replace(state, research=(item, *state.research), cases=cases),
        label=f"Research logged: {command.title}",
        kind=ActivityType.RESEARCH_CREATED,
        related_case_ids=case_ids,
        created_id=item.id,
    )


def _update_research(state: WorkspaceState, command: UpdateResearch, context: OperationContext) -> _Change | None:
    item = _find(state.research, command.research_id)
    if item is None:
        return None

    case_ids = _live_case_ids(state, command.case_ids) if is_set(command.case_ids) else item.case_ids
    updated = replace(
        item,
        case_ids=case_ids,
        title=resolve_required(command.title, item.title),
        issue=resolve_required(command.issue, item.issue),
        jurisdiction=resolve_required(command.jurisdiction, item.jurisdiction),
        status=_enum_update(command.status, ResearchStatus, item.status),
        next_action=resolve(command.next_action, item.next_action),
        analysts=tuple(resolve_required(command.analysts, item.analysts)),
        summary=resolve_required(command.summary, item.summary),
        authorities=tuple(resolve_required(command.authorities, item.authorities)),
        tags=tuple(resolve_required(command.tags, item.tags)),
        updated_at=context.timestamp,
    )
    cases = state.cases
    if is_set(command.case_ids):
        cases = _relink(state.cases, item.id, case_ids, "research_ids")
    return _Change(
        state=replace(state, research=_swap(state.research, updated), cases=cases),
        label="Research updated",
        kind=ActivityType.RESEARCH_UPDATED,
        related_case_ids=case_ids,
    )


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


def _log_time(state: WorkspaceState, command: LogTime, context: OperationContext) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None:
        return None
    entry = TimeEntry(
        id=context.new_id("time"),
        case_id=matter.id,
        case_name=matter.case_name,
        author=command.author,
        activity=command.activity,
        hours=_hours(command.hours),
        date=command.date,
        status=coerce_enum(command.status, TimeEntryStatus, TimeEntryStatus.DRAFT),
        notes=command.notes,
    )
    return _Change(
        state=replace(state, time_entries=(entry, *state.time_entries)),
        label=f"Time logged: {command.activity}",
        kind=ActivityType.TIME_LOGGED,
        related_case_ids=(matter.id,),
        created_id=entry.id,
    )


def _update_time(state: WorkspaceState, command: UpdateTime, context: OperationContext) -> _Change | None:
    entry = _find(state.time_entries, command.time_entry_id)
    if entry is None:
        return None

    case_id, case_name = entry.case_id, entry.case_name
    if is_set(command.case_id) and command.case_id != entry.case_id:
        target = _find(state.cases, command.case_id)
        if target is not None:
            case_id, case_name = target.id, target.case_name
    updated = replace(
        entry,
        case_id=case_id,
        case_name=case_name,
        author=resolve_required(command.author, entry.author),
        activity=resolve_required(command.activity, entry.activity),
        hours=_hours(command.hours) if is_set(command.hours) else entry.hours,
        date=resolve_required(command.date, entry.date),
        status=_enum_update(command.status, TimeEntryStatus, entry.status),
        notes=resolve(command.notes, entry.notes),
    )
    return _Change(
        state=replace(state, time_entries=_swap(state.time_entries, updated)),
        label="Time entry updated",
        kind=ActivityType.TIME_LOGGED,
        related_case_ids=(case_id,),
    )


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


def _save_profile_fields(
    state: WorkspaceState, matter: Case, context: OperationContext, **changes: Any
) -> WorkspaceState:
    updated = replace(matter, updated_at=context.timestamp, **changes)
    return replace(state, cases=_swap(state.cases, updated))


def _save_restorative_profile(
    state: WorkspaceState, command: SaveRestorativeProfile, context: OperationContext
) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None:
        return None
    return _Change(
        state=_save_profile_fields(
            state,
            matter,
            context,
            case_type=CaseType.RESTORATIVE,
            restorative_profile=command.profile,
            mock_trial_profile=None,
        ),
        label="Restorative profile updated",
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(matter.id,),
    )


def _log_restorative_session(
    state: WorkspaceState, command: LogRestorativeSession, context: OperationContext
) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None:
        return None
    session = RestorativeSession(
        id=context.new_id("restorative-session"),
        date=command.date,
        facilitator=command.facilitator,
        focus_area=command.focus_area,
        summary=command.summary,
        agreements=tuple(command.agreements),
        follow_up_date=command.follow_up_date,
    )
    profile = matter.restorative_profile or empty_restorative_profile()
    return _Change(
        state=_save_profile_fields(
            state,
            matter,
            context,
            case_type=CaseType.RESTORATIVE,
            restorative_profile=replace(profile, sessions=(session, *profile.sessions)),
            mock_trial_profile=None,
        ),
        label="Restorative session logged",
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(matter.id,),
        created_id=session.id,
    )


def _schedule_mock_trial_round(
    state: WorkspaceState, command: ScheduleMockTrialRound, context: OperationContext
) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None:
        return None
    trial_round = MockTrialRound(
        id=context.new_id("mock-round"),
        round_name=command.round_name,
        scheduled_for=command.scheduled_for,
        venue=command.venue,
        judge_panel=tuple(command.judge_panel),
    )
    profile = matter.mock_trial_profile or empty_mock_trial_profile(matter.case_name)
    return _Change(
        state=_save_profile_fields(
            state,
            matter,
            context,
            case_type=CaseType.MOCK_TRIAL,
            mock_trial_profile=replace(profile, rounds=(trial_round, *profile.rounds)),
            restorative_profile=None,
        ),
        label="Mock trial round scheduled",
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(matter.id,),
        created_id=trial_round.id,
    )


def _score_mock_trial_round(
    state: WorkspaceState, command: ScoreMockTrialRound, context: OperationContext
) -> _Change | None:
    matter = _find(state.cases, command.case_id)
    if matter is None or matter.mock_trial_profile is None:
        return None
    profile = matter.mock_trial_profile
    trial_round = _find(profile.rounds, command.round_id)
    if trial_round is None:
        return None
    scored = replace(
        trial_round,
        prosecution_score=command.prosecution_score,
        defense_score=command.defense_score,
        verdict=command.verdict,
        notes=command.notes,
    )
    return _Change(
        state=_save_profile_fields(
            state,
            matter,
            context,
            case_type=CaseType.MOCK_TRIAL,
            mock_trial_profile=replace(profile, rounds=_swap(profile.rounds, scored)),
            restorative_profile=None,
        ),
        label="Mock trial round scored",
        kind=ActivityType.CASE_UPDATED,
        related_case_ids=(matter.id,),
    )


_HANDLERS: dict[type, Callable[[WorkspaceState, Any, OperationContext], _Change | None]] = {
    CreateClient: _create_client,
    UpdateClient: _update_client,
    CreateCase: _create_case,
    UpdateCase: _update_case,
    CreateDocument: _create_document,
    UpdateDocument: _update_document,
    CreateResearch: _create_research,
    UpdateResearch: _update_research,
    LogTime: _log_time,
    UpdateTime: _update_time,
    SaveRestorativeProfile: _save_restorative_profile,
    LogRestorativeSession: _log_restorative_session,
    ScheduleMockTrialRound: _schedule_mock_trial_round,
    ScoreMockTrialRound: _score_mock_trial_round,
}


def apply(
    state: WorkspaceState,
    command: Command,
    context: OperationContext | None = None,
    activity_limit: int = ACTIVITY_LIMIT,
) -> Transition:
    """Apply one command to state.

    Args:
        state: Current workspace state; never modified.
        command: One of the command dataclasses in core.commands.
        context: Clock reading and id source; a fresh one if omitted.
        activity_limit: Maximum number of activity entries kept.

    Returns:
        Transition with the new state, the activity entry appended, and the
        id of any record created. For ignored commands the original state
        is returned with no activity.

    Raises:
        TypeError: If command is not a known command type.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command type: {type(command).__name__}")
    context = context or OperationContext()

    change = handler(state, command, context)
    if change is None:
        return Transition(state=state)

    activity = build_activity(change.label, change.kind, change.related_case_ids, context)
    next_state = replace(
        change.state, activity=append_activity(change.state.activity, activity, activity_limit)
    )
    return Transition(state=next_state, activity=activity, created_id=change.created_id)

