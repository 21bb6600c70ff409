"""Unit tests for the transition engine.

Each test applies commands to an in-memory WorkspaceState with a
deterministic clock and checks the resulting graph and activity entry.
"""

from collections.abc import Callable
from dataclasses import dataclass

import pytest
from conftest import case_command

from case_workspace.core.audit import OperationContext
from case_workspace.core.commands import (
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
from case_workspace.core.engine import apply
from case_workspace.core.models import (
    ActivityType,
    CaseStage,
    CaseType,
    DocumentStatus,
    MockTrialProfile,
    ResearchStatus,
    RestorativeParticipant,
    RestorativeProfile,
    WorkspaceState,
    empty_state,
)
from case_workspace.core.patches import CLEAR
from case_workspace.core.queries import find_case, find_client

Clock = Callable[[], OperationContext]
Seeded = tuple[WorkspaceState, str, str]


def _quarterfinal(case_id: str) -> ScheduleMockTrialRound:
    return ScheduleMockTrialRound(case_id=case_id, round_name="Quarterfinal", scheduled_for="2025-04-12")


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class TestClientOperations:
    """Tests for create/update client."""

    def test_create_client_prepends_and_logs(self, clock: Clock) -> None:
        first = apply(empty_state(), CreateClient(name="First"), clock())
        second = apply(first.state, CreateClient(name="Second", contact_email="a@b.org"), clock())

        assert [client.name for client in second.state.clients] == ["Second", "First"]
        assert second.state.clients[0].contact_email == "a@b.org"
        assert second.activity.label == "New client added: Second"
        assert second.activity.related_case_ids == ()
        assert second.created_id == second.state.clients[0].id

    def test_rename_propagates_to_owned_cases_only(self, seeded: Seeded, clock: Clock) -> None:
        state, client_id, case_id = seeded
        other = apply(state, case_command("Unowned matter", client="Walk-in"), clock())

        renamed = apply(other.state, UpdateClient(client_id=client_id, name="Northside Tenants Assoc."), clock())

        assert find_case(renamed.state, case_id).client_name == "Northside Tenants Assoc."
        assert find_case(renamed.state, other.created_id).client_name == "Walk-in"
        assert renamed.activity.label == "Client updated: Northside Tenants Assoc."

    def test_clear_removes_optional_contact_field(self, clock: Clock) -> None:
        created = apply(empty_state(), CreateClient(name="K", notes="VIP"), clock())

        updated = apply(created.state, UpdateClient(client_id=created.created_id, notes=CLEAR), clock())

        client = find_client(updated.state, created.created_id)
        assert client.notes is None
        assert client.name == "K"
        assert updated.activity.label == "Client updated"

    def test_unknown_client_is_ignored(self, seeded: Seeded, clock: Clock) -> None:
        state, _, _ = seeded

        transition = apply(state, UpdateClient(client_id="client-missing", name="X"), clock())

        assert transition.state is state
        assert not transition.applied


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class TestCaseOperations:
    """Tests for create/update case and client ownership."""

    def test_create_case_links_owner_both_ways(self, seeded: Seeded) -> None:
        state, client_id, case_id = seeded

        matter = find_case(state, case_id)
        assert matter.client_id == client_id
        assert matter.client_name == "Northside Tenants Union"
        assert find_client(state, client_id).case_ids == (case_id,)
        assert state.activity[0].label == "New matter created: Rivera v. Harlow"
        assert state.activity[0].type is ActivityType.CASE_CREATED

    def test_create_case_with_unknown_client_id_keeps_name_only(self, clock: Clock) -> None:
        transition = apply(empty_state(), case_command(client_id="client-missing", client="Acme"), clock())

        matter = transition.state.cases[0]
        assert matter.client_id is None
        assert matter.client_name == "Acme"
        assert transition.state.clients == ()

    def test_create_restorative_case_synthesizes_profile(self, clock: Clock) -> None:
        transition = apply(
            empty_state(),
            case_command(case_type=CaseType.RESTORATIVE, mock_trial_profile=MockTrialProfile(team_name="x")),
            clock(),
        )

        matter = transition.state.cases[0]
        assert matter.restorative_profile == RestorativeProfile()
        assert matter.mock_trial_profile is None

    def test_next_deadline_tri_state(self, seeded: Seeded, clock: Clock) -> None:
        """null clears, omission leaves the value untouched."""
        state, _, case_id = seeded
        scheduled = apply(state, UpdateCase(case_id=case_id, next_deadline="2025-04-01"), clock())

        untouched = apply(scheduled.state, UpdateCase(case_id=case_id, description="Amended"), clock())
        cleared = apply(untouched.state, UpdateCase(case_id=case_id, next_deadline=CLEAR, risk_notes=CLEAR), clock())

        assert find_case(untouched.state, case_id).next_deadline == "2025-04-01"
        assert find_case(cleared.state, case_id).next_deadline is None
        assert find_case(cleared.state, case_id).risk_notes is None

    def test_update_refreshes_updated_at(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        context = clock()

        transition = apply(state, UpdateCase(case_id=case_id, stage=CaseStage.CLOSED), context)

        assert find_case(transition.state, case_id).updated_at == context.timestamp

    def test_stage_has_no_ordering(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        closed = apply(state, UpdateCase(case_id=case_id, stage=CaseStage.CLOSED), clock())

        reopened = apply(closed.state, UpdateCase(case_id=case_id, stage=CaseStage.INTAKE), clock())

        assert find_case(reopened.state, case_id).stage is CaseStage.INTAKE

    def test_reassign_moves_case_between_clients(self, seeded: Seeded, clock: Clock) -> None:
        state, old_client_id, case_id = seeded
        added = apply(state, CreateClient(name="Eastside Legal Aid"), clock())

        moved = apply(added.state, UpdateCase(case_id=case_id, client_id=added.created_id), clock())

        assert find_client(moved.state, old_client_id).case_ids == ()
        assert find_client(moved.state, added.created_id).case_ids == (case_id,)
        matter = find_case(moved.state, case_id)
        assert matter.client_id == added.created_id
        assert matter.client_name == "Eastside Legal Aid"

    def test_clearing_client_id_unlinks_and_keeps_cached_name(self, seeded: Seeded, clock: Clock) -> None:
        state, client_id, case_id = seeded

        transition = apply(state, UpdateCase(case_id=case_id, client_id=CLEAR), clock())

        assert case_id not in find_client(transition.state, client_id).case_ids
        matter = find_case(transition.state, case_id)
        assert matter.client_id is None
        assert matter.client_name == "Northside Tenants Union"

    def test_clearing_client_id_with_name_updates_cached_name(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded

        transition = apply(state, UpdateCase(case_id=case_id, client_id=CLEAR, client="Pro se"), clock())

        assert find_case(transition.state, case_id).client_name == "Pro se"

    def test_free_text_client_name_never_changes_ownership(self, seeded: Seeded, clock: Clock) -> None:
        state, client_id, case_id = seeded

        transition = apply(state, UpdateCase(case_id=case_id, client="Someone else"), clock())

        matter = find_case(transition.state, case_id)
        assert matter.client_id == client_id
        assert matter.client_name == "Someone else"
        assert find_client(transition.state, client_id).case_ids == (case_id,)

    def test_changing_case_type_swaps_profiles(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        restorative = apply(state, UpdateCase(case_id=case_id, case_type=CaseType.RESTORATIVE), clock())

        mock = apply(restorative.state, UpdateCase(case_id=case_id, case_type=CaseType.MOCK_TRIAL), clock())

        matter = find_case(mock.state, case_id)
        assert find_case(restorative.state, case_id).restorative_profile is not None
        assert matter.restorative_profile is None
        assert matter.mock_trial_profile.team_name == "Rivera v. Harlow"
        assert mock.activity.label == "Matter updated"

    def test_unknown_case_is_ignored(self, seeded: Seeded, clock: Clock) -> None:
        state, _, _ = seeded

        transition = apply(state, UpdateCase(case_id="case-missing", case_name="X"), clock())

        assert transition.state is state
        assert transition.activity is None


# ---------------------------------------------------------------------------
# Documents and research
# ---------------------------------------------------------------------------


class TestLinkedRecords:
    """Tests for document and research case-link reconciliation."""

    def test_create_document_filters_dead_links_and_back_links(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        context = clock()

        transition = apply(
            state,
            CreateDocument(
                case_ids=(case_id, "case-missing"),
                title="Complaint",
                type="Pleading",
                owner="Dana Whitfield",
                status=DocumentStatus.DRAFTING,
            ),
            context,
        )

        document = transition.state.documents[0]
        matter = find_case(transition.state, case_id)
        assert document.case_ids == (case_id,)
        assert document.version == "Draft"
        assert document.last_touched_by == "Dana Whitfield"
        assert matter.document_ids == (document.id,)
        assert matter.updated_at == context.timestamp
        assert transition.activity.related_case_ids == (case_id,)

    def test_relinking_document_moves_back_links(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        second = apply(state, case_command("Second matter"), clock())
        created = apply(
            second.state,
            CreateDocument(case_ids=(case_id,), title="Memo", type="Memo", owner="Lee", status=DocumentStatus.DRAFTING),
            clock(),
        )

        moved = apply(
            created.state,
            UpdateDocument(
                document_id=created.created_id,
                case_ids=(second.created_id,),
                status=DocumentStatus.IN_REVIEW,
            ),
            clock(),
        )

        assert find_case(moved.state, case_id).document_ids == ()
        assert find_case(moved.state, second.created_id).document_ids == (created.created_id,)
        assert moved.state.documents[0].status is DocumentStatus.IN_REVIEW
        assert moved.activity.label == "Document updated"

    def test_research_links_are_symmetric(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        second = apply(state, case_command("Second matter"), clock())
        created = apply(
            second.state,
            CreateResearch(
                case_ids=(case_id, second.created_id),
                title="Qualified immunity",
                issue="Clearly established law",
                jurisdiction="9th Cir.",
                status=ResearchStatus.IN_PROGRESS,
            ),
            clock(),
        )

        narrowed = apply(
            created.state, UpdateResearch(research_id=created.created_id, case_ids=(case_id,)), clock()
        )

        assert find_case(created.state, second.created_id).research_ids == (created.created_id,)
        assert find_case(narrowed.state, second.created_id).research_ids == ()
        assert find_case(narrowed.state, case_id).research_ids == (created.created_id,)
        assert created.activity.label == "Research logged: Qualified immunity"


# ---------------------------------------------------------------------------
# Time entries
# ---------------------------------------------------------------------------


class TestTimeEntries:
    """Tests for logging and updating time."""

    def test_log_time_snapshots_case_name_and_clamps_hours(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded

        transition = apply(
            state, LogTime(case_id=case_id, author="Lee", activity="Client call", hours=-2, date="2025-03-02"), clock()
        )

        entry = transition.state.time_entries[0]
        assert entry.case_name == "Rivera v. Harlow"
        assert entry.hours == 0
        assert transition.activity.type is ActivityType.TIME_LOGGED
        assert transition.activity.label == "Time logged: Client call"

    def test_log_time_discards_hours_too_large_for_a_float(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded

        transition = apply(
            state, LogTime(case_id=case_id, author="Lee", activity="Review", hours=10**400, date="2025-03-02"), clock()
        )

        assert transition.state.time_entries[0].hours == 0

    def test_log_time_on_unknown_case_is_ignored(self, seeded: Seeded, clock: Clock) -> None:
        state, _, _ = seeded

        transition = apply(
            state, LogTime(case_id="case-missing", author="Lee", activity="Call", hours=1, date="2025-03-02"), clock()
        )

        assert transition.state is state
        assert transition.created_id is None

    def test_update_time_retargets_only_to_live_case(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        second = apply(state, case_command("Second matter"), clock())
        logged = apply(
            second.state,
            LogTime(case_id=case_id, author="Lee", activity="Draft", hours=1.5, date="2025-03-02"),
            clock(),
        )

        dead = apply(logged.state, UpdateTime(time_entry_id=logged.created_id, case_id="case-missing"), clock())
        moved = apply(logged.state, UpdateTime(time_entry_id=logged.created_id, case_id=second.created_id), clock())

        assert dead.state.time_entries[0].case_id == case_id
        assert moved.state.time_entries[0].case_id == second.created_id
        assert moved.state.time_entries[0].case_name == "Second matter"
        assert moved.activity.related_case_ids == (second.created_id,)


# ---------------------------------------------------------------------------
# Case profiles
# ---------------------------------------------------------------------------


class TestCaseProfiles:
    """Tests for restorative and mock trial profile operations."""

    def test_save_restorative_profile_converts_case(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        profile = RestorativeProfile(participants=(RestorativeParticipant(id="p-1", name="Ana"),))

        transition = apply(state, SaveRestorativeProfile(case_id=case_id, profile=profile), clock())

        matter = find_case(transition.state, case_id)
        assert matter.case_type is CaseType.RESTORATIVE
        assert matter.restorative_profile == profile
        assert matter.mock_trial_profile is None

    def test_sessions_are_newest_first(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        first = apply(state, LogRestorativeSession(case_id=case_id, date="2025-03-01", facilitator="Kim"), clock())

        second = apply(
            first.state, LogRestorativeSession(case_id=case_id, date="2025-03-08", facilitator="Kim"), clock()
        )

        sessions = find_case(second.state, case_id).restorative_profile.sessions
        assert [session.date for session in sessions] == ["2025-03-08", "2025-03-01"]
        assert second.created_id == sessions[0].id

    def test_profile_operations_on_unknown_case_are_ignored(self, seeded: Seeded, clock: Clock) -> None:
        state, _, _ = seeded

        session = apply(state, LogRestorativeSession(case_id="case-missing", date="d", facilitator="f"), clock())
        trial_round = apply(
            state, ScheduleMockTrialRound(case_id="case-missing", round_name="R1", scheduled_for="d"), clock()
        )

        assert session.state is state and not session.applied
        assert trial_round.state is state and not trial_round.applied

    def test_schedule_and_score_round(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        scheduled = apply(state, _quarterfinal(case_id), clock())

        scored = apply(
            scheduled.state,
            ScoreMockTrialRound(
                case_id=case_id,
                round_id=scheduled.created_id,
                prosecution_score=88,
                defense_score=91,
                verdict="Defense",
            ),
            clock(),
        )

        profile = find_case(scored.state, case_id).mock_trial_profile
        assert find_case(scored.state, case_id).case_type is CaseType.MOCK_TRIAL
        assert profile.rounds[0].defense_score == 91
        assert profile.rounds[0].verdict == "Defense"
        assert scored.activity.label == "Mock trial round scored"

    def test_scoring_unknown_round_is_ignored(self, seeded: Seeded, clock: Clock) -> None:
        state, _, case_id = seeded
        scheduled = apply(state, _quarterfinal(case_id), clock())

        transition = apply(
            scheduled.state,
            ScoreMockTrialRound(case_id=case_id, round_id="mock-round-missing", prosecution_score=1, defense_score=2),
            clock(),
        )

        assert transition.state is scheduled.state
        assert transition.activity is None
        assert len(transition.state.activity) == len(scheduled.state.activity)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class TestAuditLog:
    """Tests for the bounded activity journal."""

    def test_log_is_bounded_and_newest_first(self, clock: Clock) -> None:
        state = empty_state()
        for index in range(30):
            state = apply(state, CreateClient(name=f"Client {index}"), clock()).state

        assert len(state.activity) == 25
        assert state.activity[0].label == "New client added: Client 29"
        timestamps = [item.timestamp for item in state.activity]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_custom_limit_is_honoured(self, clock: Clock) -> None:
        state = empty_state()
        for index in range(5):
            state = apply(state, CreateClient(name=f"Client {index}"), clock(), activity_limit=3).state

        assert len(state.activity) == 3

    def test_unknown_command_type_raises(self, clock: Clock) -> None:
        @dataclass(frozen=True)
        class DeleteCase:
            case_id: str

        with pytest.raises(TypeError):
            apply(empty_state(), DeleteCase(case_id="case-1"), clock())
