"""Load-time normalization of persisted workspace snapshots.

normalize() turns whatever was persisted (older shapes, partial records,
demo fixtures, dangling references) into a WorkspaceState that satisfies
every graph invariant. It never raises: malformed fields fall back to
defaults and malformed records are skipped.

Order of work:
  1. non-dict input -> pristine empty state
  2. clients (placeholder fixtures dropped)
  3. cases (placeholder fixtures dropped, client links resolved,
     enums validated, category profile normalized or synthesized)
  4./5. client.case_ids rebuilt from case ownership
  6. documents and research filtered to live cases, orphans dropped
  7. time entries on dead cases dropped
  8. placeholder ids stripped from activity, then entries whose
     related cases are all dead dropped
  9. nothing survived and nothing was ever stored -> pristine empty state
"""

from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from case_workspace.core.audit import OperationContext, prune_activity
from case_workspace.core.models import (
    ActivityItem,
    ActivityType,
    Case,
    CaseStage,
    CaseStatus,
    CaseType,
    Client,
    Document,
    DocumentJurisdiction,
    DocumentStatus,
    MockTrialProfile,
    MockTrialRole,
    MockTrialRound,
    ParticipantRole,
    Priority,
    ResearchAuthority,
    ResearchItem,
    ResearchStatus,
    RestorativeForms,
    RestorativeIntake,
    RestorativeParticipant,
    RestorativeProfile,
    RestorativeSession,
    TimeEntry,
    TimeEntryStatus,
    WorkspaceDocType,
    WorkspaceState,
    coerce_enum,
    empty_state,
    finite_number,
    is_present,
    normalize_key,
    optional_string,
    profiles_for,
    string_list,
)
from case_workspace.observability import get_logger

logger = get_logger(__name__)

# Demo fixtures shipped with early builds; never restored once real data exists.
PLACEHOLDER_CLIENT_IDS = frozenset(
    {"client-acme", "client-state-program", "client-harbor", "client-westhaven"}
)
PLACEHOLDER_CLIENT_NAME_KEYS = frozenset(
    normalize_key(name)
    for name in (
        "Acme Corporation",
        "State Appointed Counsel Program",
        "Harbor Group Holdings",
        "Westhaven Renewable, Inc.",
    )
)
PLACEHOLDER_CASE_IDS = frozenset(
    {"case-acme-finch", "case-state-rivera", "case-harbor-audit", "case-westhaven-renewable"}
)
PLACEHOLDER_CASE_NAME_KEYS = frozenset(
    normalize_key(name)
    for name in (
        "Acme Corp. v. Finch Supply Co.",
        "State v. Rivera",
        "Harbor Group Internal Audit",
        "Westhaven Renewable Series B",
    )
)


def _records(value: Any) -> Iterator[dict[str, Any]]:
    """Yield the dict entries of a persisted list, skipping everything else."""
    if isinstance(value, list):
        for entry in value:
            if isinstance(entry, dict):
                yield entry


def _text(value: Any, default: str) -> str:
    return value if is_present(value) else default


def _id(record: dict[str, Any], prefix: str, context: OperationContext) -> str:
    value = record.get("id")
    return value if is_present(value) else context.new_id(prefix)


def _score(value: Any) -> float | None:
    return finite_number(value)


def _hours(value: Any) -> float:
    number = finite_number(value)
    return 0 if number is None else max(number, 0)


def _dedupe(records: list[Any]) -> list[Any]:
    """Keep the first record for each id."""
    seen: set[str] = set()
    unique = []
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)
    return unique


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _is_placeholder_client(client_id: str | None, name: str | None) -> bool:
    if client_id in PLACEHOLDER_CLIENT_IDS:
        return True
    return bool(name) and normalize_key(name) in PLACEHOLDER_CLIENT_NAME_KEYS


def _client(record: dict[str, Any], context: OperationContext) -> Client | None:
    name = record.get("name")
    if not is_present(name):
        return None
    return Client(
        id=_id(record, "client", context),
        name=name,
        organization=optional_string(record.get("organization")),
        primary_contact=optional_string(record.get("primaryContact")),
        contact_email=optional_string(record.get("contactEmail")),
        contact_phone=optional_string(record.get("contactPhone")),
        notes=optional_string(record.get("notes")),
        case_ids=string_list(record.get("caseIds")),
        created_at=_text(record.get("createdAt"), context.timestamp),
        updated_at=_text(record.get("updatedAt"), context.timestamp),
    )


class _ClientDirectory:
    """Clients under reconstruction, indexed by id and by lowercased name."""

    def __init__(self, clients: list[Client], context: OperationContext) -> None:
        self._context = context
        self.by_id: dict[str, Client] = {}
        self._by_name: dict[str, str] = {}
        for client in clients:
            self._add(client)

    def _add(self, client: Client) -> None:
        self.by_id[client.id] = client
        self._by_name.setdefault(client.name.lower(), client.id)

    def find_or_create(self, name: str) -> Client | None:
        """Return the client with this name (case-insensitive), creating it if needed.

        Placeholder fixture names are never recreated.
        """
        existing_id = self._by_name.get(name.lower())
        if existing_id is not None:
            return self.by_id[existing_id]
        if _is_placeholder_client(None, name):
            return None
        client = Client(
            id=self._context.new_id("client"),
            name=name,
            created_at=self._context.timestamp,
            updated_at=self._context.timestamp,
        )
        self._add(client)
        logger.info("client_recreated_from_case_reference", client_id=client.id, client_name=name)
        return client

    def resolve(self, client_id: str | None, client_name: str | None) -> tuple[str | None, str | None]:
        """Resolve a case's (client_id, client_name) pair against the directory."""
        if client_id in PLACEHOLDER_CLIENT_IDS:
            client_id = None
        if client_id is not None and client_id in self.by_id:
            return client_id, self.by_id[client_id].name
        if client_name is not None:
            client = self.find_or_create(client_name)
            if client is None:
                return None, None
            return client.id, client.name
        if client_id is not None:
            client = self.find_or_create("Client")
            return (client.id, client.name) if client else (None, None)
        return None, None


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


def _restorative_intake(value: Any) -> RestorativeIntake | None:
    if not isinstance(value, dict):
        return None
    referral_source = _text(value.get("referralSource"), "")
    incident_summary = _text(value.get("incidentSummary"), "")
    goals = string_list(value.get("goals"))
    risk_factors = string_list(value.get("riskFactors"))
    if not (referral_source or incident_summary or goals or risk_factors):
        return None
    return RestorativeIntake(
        referral_source=referral_source,
        incident_summary=incident_summary,
        goals=goals,
        support_needs=optional_string(value.get("supportNeeds")),
        risk_factors=risk_factors,
        preferred_facilitator=optional_string(value.get("preferredFacilitator")),
        notes=optional_string(value.get("notes")),
    )


def _restorative_profile(value: Any, context: OperationContext) -> RestorativeProfile | None:
    if not isinstance(value, dict):
        return None

    participants = [
        RestorativeParticipant(
            id=_id(entry, "restorative-participant", context),
            name=entry["name"],
            role=coerce_enum(entry.get("role"), ParticipantRole, ParticipantRole.HARMED),
            contact=optional_string(entry.get("contact")),
        )
        for entry in _records(value.get("participants"))
        if is_present(entry.get("name"))
    ]

    forms_record = value.get("forms")
    forms = (
        RestorativeForms(
            consent_signed=bool(forms_record.get("consentSigned")),
            safety_plan_on_file=bool(forms_record.get("safetyPlanOnFile")),
            media_release_signed=bool(forms_record.get("mediaReleaseSigned")),
        )
        if isinstance(forms_record, dict)
        else RestorativeForms()
    )

    sessions = [
        RestorativeSession(
            id=_id(entry, "restorative-session", context),
            date=entry["date"],
            facilitator=entry["facilitator"],
            focus_area=_text(entry.get("focusArea"), "Circle"),
            summary=_text(entry.get("summary"), ""),
            agreements=string_list(entry.get("agreements")),
            follow_up_date=optional_string(entry.get("followUpDate")),
        )
        for entry in _records(value.get("sessions"))
        if is_present(entry.get("date")) and is_present(entry.get("facilitator"))
    ]

    return RestorativeProfile(
        intake=_restorative_intake(value.get("intake")),
        participants=tuple(_dedupe(participants)),
        forms=forms,
        care_plan=optional_string(value.get("carePlan")),
        sessions=tuple(_dedupe(sessions)),
    )


def _mock_trial_profile(value: Any, context: OperationContext) -> MockTrialProfile | None:
    if not isinstance(value, dict):
        return None
    rounds = [
        MockTrialRound(
            id=_id(entry, "mock-round", context),
            round_name=_text(entry.get("roundName"), "Round"),
            scheduled_for=_text(entry.get("scheduledFor"), context.timestamp),
            venue=optional_string(entry.get("venue")),
            judge_panel=string_list(entry.get("judgePanel")),
            prosecution_score=_score(entry.get("prosecutionScore")),
            defense_score=_score(entry.get("defenseScore")),
            verdict=optional_string(entry.get("verdict")),
            notes=optional_string(entry.get("notes")),
        )
        for entry in _records(value.get("rounds"))
    ]
    return MockTrialProfile(
        team_name=_text(value.get("teamName"), "Mock Trial Team"),
        role=coerce_enum(value.get("role"), MockTrialRole, MockTrialRole.PROSECUTION),
        opponent=optional_string(value.get("opponent")),
        case_packet=optional_string(value.get("casePacket")),
        strategy_notes=optional_string(value.get("strategyNotes")),
        rounds=tuple(_dedupe(rounds)),
    )


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


def _case_name(record: dict[str, Any]) -> str:
    # "name" is the key used by snapshots written before caseName existed.
    if is_present(record.get("caseName")):
        return record["caseName"]
    return _text(record.get("name"), "Untitled matter")


def _is_placeholder_case(record: dict[str, Any]) -> bool:
    if optional_string(record.get("id")) in PLACEHOLDER_CASE_IDS:
        return True
    return normalize_key(_case_name(record)) in PLACEHOLDER_CASE_NAME_KEYS


def _case(record: dict[str, Any], directory: _ClientDirectory, context: OperationContext) -> Case:
    case_name = _case_name(record)
    raw_client_name = record.get("clientName")
    if not is_present(raw_client_name):
        raw_client_name = record.get("client")
    client_id, client_name = directory.resolve(
        optional_string(record.get("clientId")), optional_string(raw_client_name)
    )

    case_type = coerce_enum(record.get("caseType"), CaseType, CaseType.LEGAL)
    restorative_profile, mock_trial_profile = profiles_for(
        case_type,
        _restorative_profile(record.get("restorativeProfile"), context),
        _mock_trial_profile(record.get("mockTrialProfile"), context),
        case_name,
    )

    return Case(
        id=_id(record, "case", context),
        matter_number=_text(record.get("matterNumber"), ""),
        case_name=case_name,
        client_id=client_id,
        client_name=client_name,
        case_type=case_type,
        stage=coerce_enum(record.get("stage"), CaseStage, CaseStage.INTAKE),
        status=coerce_enum(record.get("status"), CaseStatus, CaseStatus.ACTIVE),
        practice_area=_text(record.get("practiceArea"), "General Practice"),
        lead_attorney=_text(record.get("leadAttorney"), "Unassigned"),
        team=string_list(record.get("team")),
        opened_on=_text(record.get("openedOn"), context.today),
        next_deadline=optional_string(record.get("nextDeadline")),
        description=_text(record.get("description"), ""),
        priority=coerce_enum(record.get("priority"), Priority, Priority.MEDIUM),
        tags=string_list(record.get("tags")),
        risk_notes=optional_string(record.get("riskNotes")),
        program_tag=optional_string(record.get("programTag")),
        document_ids=string_list(record.get("documentIds")),
        research_ids=string_list(record.get("researchIds")),
        restorative_profile=restorative_profile,
        mock_trial_profile=mock_trial_profile,
        created_at=_text(record.get("createdAt"), context.timestamp),
        updated_at=_text(record.get("updatedAt"), context.timestamp),
    )


def _relink_clients(
    clients: list[Client], cases: list[Case], context: OperationContext
) -> list[Client]:
    """Rebuild every client's case_ids from case ownership.

    Stored order is kept for ids that are still owned; owned cases missing
    from the list are appended and bump the client's updated_at.
    """
    owned: dict[str, list[str]] = {}
    for matter in cases:
        if matter.client_id is not None:
            owned.setdefault(matter.client_id, []).append(matter.id)

    relinked = []
    for client in clients:
        owned_ids = owned.get(client.id, [])
        kept = tuple(dict.fromkeys(case_id for case_id in client.case_ids if case_id in owned_ids))
        missing = tuple(case_id for case_id in owned_ids if case_id not in kept)
        if missing:
            relinked.append(replace(client, case_ids=kept + missing, updated_at=context.timestamp))
        elif kept != client.case_ids:
            relinked.append(replace(client, case_ids=kept))
        else:
            relinked.append(client)
    return relinked


def _relink_cases(
    cases: list[Case], documents: list[Document], research: list[ResearchItem]
) -> list[Case]:
    """Rebuild case.document_ids and case.research_ids from the surviving records."""
    documents_by_case: dict[str, list[str]] = {}
    for document in documents:
        for case_id in document.case_ids:
            documents_by_case.setdefault(case_id, []).append(document.id)
    research_by_case: dict[str, list[str]] = {}
    for item in research:
        for case_id in item.case_ids:
            research_by_case.setdefault(case_id, []).append(item.id)

    def _merge(stored: tuple[str, ...], linked: list[str]) -> tuple[str, ...]:
        kept = tuple(dict.fromkeys(item_id for item_id in stored if item_id in linked))
        return kept + tuple(item_id for item_id in linked if item_id not in kept)

    relinked = []
    for matter in cases:
        document_ids = _merge(matter.document_ids, documents_by_case.get(matter.id, []))
        research_ids = _merge(matter.research_ids, research_by_case.get(matter.id, []))
        if document_ids != matter.document_ids or research_ids != matter.research_ids:
            matter = replace(matter, document_ids=document_ids, research_ids=research_ids)
        relinked.append(matter)
    return relinked


# ---------------------------------------------------------------------------
# Documents, research, time, activity
# ---------------------------------------------------------------------------


def _live_ids(value: Any, live_case_ids: frozenset[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(case_id for case_id in string_list(value) if case_id in live_case_ids))


def _jurisdiction(value: Any) -> DocumentJurisdiction | None:
    if not isinstance(value, dict):
        return None
    if not (is_present(value.get("id")) and is_present(value.get("label"))):
        return None
    return DocumentJurisdiction(
        id=value["id"],
        label=value["label"],
        court_rules=string_list(value.get("courtRules")),
        filing_note=optional_string(value.get("filingNote")),
    )


def _document(
    record: dict[str, Any], live_case_ids: frozenset[str], context: OperationContext
) -> Document:
    owner = _text(record.get("owner"), "Unassigned")
    return Document(
        id=_id(record, "document", context),
        case_ids=_live_ids(record.get("caseIds"), live_case_ids),
        title=_text(record.get("title"), "Untitled document"),
        type=_text(record.get("type"), "Document"),
        owner=owner,
        due_on=optional_string(record.get("dueOn")),
        status=coerce_enum(record.get("status"), DocumentStatus, DocumentStatus.DRAFTING),
        version=_text(record.get("version"), "v1"),
        last_touched_by=_text(record.get("lastTouchedBy"), owner),
        updated_at=_text(record.get("updatedAt"), context.timestamp),
        summary=_text(record.get("summary"), ""),
        workspace_doc_id=optional_string(record.get("workspaceDocId")),
        workspace_doc_type=coerce_enum(record.get("workspaceDocType"), WorkspaceDocType, None),
        jurisdiction=_jurisdiction(record.get("jurisdiction")),
    )


def _research_item(
    record: dict[str, Any], live_case_ids: frozenset[str], context: OperationContext
) -> ResearchItem:
    return ResearchItem(
        id=_id(record, "research", context),
        case_ids=_live_ids(record.get("caseIds"), live_case_ids),
        title=_text(record.get("title"), "Research note"),
        issue=_text(record.get("issue"), "Unspecified issue"),
        jurisdiction=_text(record.get("jurisdiction"), "Mixed"),
        status=coerce_enum(record.get("status"), ResearchStatus, ResearchStatus.IN_PROGRESS),
        next_action=optional_string(record.get("nextAction")),
        analysts=string_list(record.get("analysts")),
        updated_at=_text(record.get("updatedAt"), context.timestamp),
        summary=_text(record.get("summary"), ""),
        authorities=tuple(
            ResearchAuthority(
                citation=_text(entry.get("citation"), "Citation pending"),
                court=_text(entry.get("court"), "Authority"),
                holding=_text(entry.get("holding"), "Holding summary pending"),
            )
            for entry in _records(record.get("authorities"))
        ),
        tags=string_list(record.get("tags")),
    )


def _time_entry(record: dict[str, Any], context: OperationContext) -> TimeEntry:
    return TimeEntry(
        id=_id(record, "time", context),
        case_id=_text(record.get("caseId"), ""),
        case_name=_text(record.get("caseName"), ""),
        author=_text(record.get("author"), "Unknown"),
        activity=_text(record.get("activity"), "Unspecified activity"),
        hours=_hours(record.get("hours")),
        date=_text(record.get("date"), context.today),
        status=coerce_enum(record.get("status"), TimeEntryStatus, TimeEntryStatus.DRAFT),
        notes=optional_string(record.get("notes")),
    )


def _activity_item(record: dict[str, Any], context: OperationContext) -> ActivityItem:
    return ActivityItem(
        id=_id(record, "activity", context),
        type=coerce_enum(record.get("type"), ActivityType, ActivityType.CASE_UPDATED),
        label=_text(record.get("label"), "Activity recorded"),
        related_case_ids=tuple(dict.fromkeys(string_list(record.get("relatedCaseIds")))),
        timestamp=_text(record.get("timestamp"), context.timestamp),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def normalize(
    raw: Any,
    context: OperationContext | None = None,
    activity_limit: int = 25,
) -> WorkspaceState:
    """Reconstruct a valid WorkspaceState from an untrusted snapshot.

    Args:
        raw: Whatever the storage returned (usually a decoded JSON object).
        context: Clock and id source for defaults; a fresh one if omitted.
        activity_limit: Maximum number of activity entries kept.

    Returns:
        A WorkspaceState satisfying all cross-entity invariants.
    """
    if not isinstance(raw, dict):
        return empty_state()
    context = context or OperationContext()

    clients = [
        client
        for client in (_client(record, context) for record in _records(raw.get("clients")))
        if client is not None and not _is_placeholder_client(client.id, client.name)
    ]
    directory = _ClientDirectory(_dedupe(clients), context)

    cases = _dedupe(
        [
            _case(record, directory, context)
            for record in _records(raw.get("cases"))
            if not _is_placeholder_case(record)
        ]
    )
    live_case_ids = frozenset(matter.id for matter in cases)
    clients = _relink_clients(list(directory.by_id.values()), cases, context)

    documents = _dedupe(
        [
            document
            for document in (
                _document(record, live_case_ids, context) for record in _records(raw.get("documents"))
            )
            if document.case_ids
        ]
    )
    research = _dedupe(
        [
            item
            for item in (
                _research_item(record, live_case_ids, context) for record in _records(raw.get("research"))
            )
            if item.case_ids
        ]
    )
    cases = _relink_cases(cases, documents, research)

    time_entries = _dedupe(
        [
            entry
            for entry in (_time_entry(record, context) for record in _records(raw.get("timeEntries")))
            if entry.case_id in live_case_ids
        ]
    )

    # Placeholder ids are stripped first; an entry left with none is global.
    activity = _dedupe(
        [
            item
            for item in (
                replace(
                    parsed,
                    related_case_ids=tuple(
                        case_id for case_id in parsed.related_case_ids if case_id not in PLACEHOLDER_CASE_IDS
                    ),
                )
                for parsed in (_activity_item(record, context) for record in _records(raw.get("activity")))
            )
            if not item.related_case_ids
            or any(case_id in live_case_ids for case_id in item.related_case_ids)
        ]
    )

    never_stored = not any(
        isinstance(raw.get(key), list) for key in ("documents", "research", "timeEntries")
    )
    if not cases and not clients and never_stored:
        return empty_state()

    state = WorkspaceState(
        clients=tuple(clients),
        cases=tuple(cases),
        documents=tuple(documents),
        research=tuple(research),
        time_entries=tuple(time_entries),
        activity=prune_activity(activity, activity_limit),
    )
    logger.info(
        "snapshot_normalized",
        clients=len(state.clients),
        cases=len(state.cases),
        documents=len(state.documents),
        research=len(state.research),
        time_entries=len(state.time_entries),
        activity=len(state.activity),
    )
    return state
