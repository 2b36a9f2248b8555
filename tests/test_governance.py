"""Tests for treasury spending proposals."""

from datetime import timedelta

import pytest

from dreamjar.errors import ConflictError, InsufficientFundsError, NotFoundError, StateError, ValidationError
from dreamjar.governance import ProposalGovernor
from dreamjar.models import ProposalStatus
from dreamjar.treasury import ImpactTreasury


@pytest.fixture
def funded(service):
    """Treasury holding 1000 units from one failed wish."""
    service.treasury.credit("failed-wish", 1_000, "community")
    return service


def _pass(service, proposal_id):
    service.vote_on_proposal(proposal_id, "v1", True)
    service.vote_on_proposal(proposal_id, "v2", True)
    service.vote_on_proposal(proposal_id, "v3", False)


def test_create_assigns_sequential_ids(service, clock, bridge):
    first = service.create_proposal("alice", "Plant trees", 100, "forest-fund")
    second = service.create_proposal("bob", "Clean river", 200, "river-fund", plan_ref="ipfs://plan")

    assert (first, second) == (1, 2)
    proposal = service.get_proposal(first)
    assert proposal.status == ProposalStatus.ACTIVE
    assert proposal.deadline == clock() + timedelta(days=7)
    assert proposal.total_votes == 0
    assert ("propose", "proposal-1") in bridge.calls
    assert ("propose", "ipfs://plan") in bridge.calls


@pytest.mark.parametrize(
    "title,amount,beneficiary,field",
    [
        ("", 100, "x", "title"),
        ("Plant trees", 0, "x", "amount_requested"),
        ("Plant trees", 100, "", "beneficiary"),
    ],
)
def test_create_validates_input(service, title, amount, beneficiary, field):
    with pytest.raises(ValidationError) as exc_info:
        service.create_proposal("alice", title, amount, beneficiary)
    assert exc_info.value.field == field


def test_quorum_settles_proposal(service, notifier):
    """Test that the vote reaching quorum passes the proposal."""
    proposal_id = service.create_proposal("alice", "Plant trees", 100, "forest-fund")

    service.vote_on_proposal(proposal_id, "v1", True)
    assert service.get_proposal(proposal_id).status == ProposalStatus.ACTIVE
    service.vote_on_proposal(proposal_id, "v2", True)
    service.vote_on_proposal(proposal_id, "v3", False)

    proposal = service.get_proposal(proposal_id)
    assert proposal.status == ProposalStatus.PASSED
    assert proposal.quorum_reached
    assert (proposal.votes_for, proposal.votes_against, proposal.total_votes) == (2, 1, 3)
    assert notifier.sent[-1][:2] == ("alice", "proposal_passed")


def test_tie_or_minority_fails_proposal(service):
    proposal_id = service.create_proposal("alice", "Plant trees", 100, "forest-fund")

    service.vote_on_proposal(proposal_id, "v1", False)
    service.vote_on_proposal(proposal_id, "v2", True)
    service.vote_on_proposal(proposal_id, "v3", False)

    assert service.get_proposal(proposal_id).status == ProposalStatus.FAILED


def test_vote_after_settlement_is_state_error(service):
    proposal_id = service.create_proposal("alice", "Plant trees", 100, "forest-fund")
    _pass(service, proposal_id)

    with pytest.raises(StateError):
        service.vote_on_proposal(proposal_id, "v4", True)

    assert service.get_proposal(proposal_id).total_votes == 3


def test_voting_closes_after_deadline(service, clock):
    """Test that votes are accepted up to and including the deadline only."""
    proposal_id = service.create_proposal("alice", "Plant trees", 100, "forest-fund")

    clock.advance(days=7)
    service.vote_on_proposal(proposal_id, "v1", True)

    clock.advance(seconds=1)
    with pytest.raises(StateError):
        service.vote_on_proposal(proposal_id, "v2", True)


def test_duplicate_proposal_voter_is_conflict(service):
    proposal_id = service.create_proposal("alice", "Plant trees", 100, "forest-fund")
    service.vote_on_proposal(proposal_id, "v1", True)

    with pytest.raises(ConflictError):
        service.vote_on_proposal(proposal_id, "v1", False)

    proposal = service.get_proposal(proposal_id)
    assert (proposal.votes_for, proposal.votes_against) == (1, 0)


def test_repeat_voters_allowed_when_not_unique(store, clock):
    """Test that per-voter uniqueness can be switched off."""
    governor = ProposalGovernor(
        store,
        ImpactTreasury(store, clock=clock),
        quorum_threshold=3,
        unique_voters=False,
        clock=clock,
    )
    proposal = governor.create("alice", "Plant trees", 100, "forest-fund")

    governor.vote(proposal.proposal_id, "v1", True)
    governor.vote(proposal.proposal_id, "v1", True)
    updated = governor.vote(proposal.proposal_id, "v1", True)

    assert updated.total_votes == 3
    assert updated.status == ProposalStatus.PASSED


def test_execute_after_deadline(funded, clock, bridge, notifier, event_bus):
    """Test the full path: pass, wait out the deadline, execute."""
    _, events = event_bus
    proposal_id = funded.create_proposal("alice", "Plant trees", 600, "forest-fund")
    _pass(funded, proposal_id)

    with pytest.raises(StateError, match="has not ended"):
        funded.execute_proposal(proposal_id, "admin")

    clock.advance(days=8)
    funded.execute_proposal(proposal_id, "admin")

    proposal = funded.get_proposal(proposal_id)
    assert proposal.status == ProposalStatus.EXECUTED
    assert proposal.executed_by == "admin"
    assert proposal.executed_at == clock()

    stats = funded.get_treasury_stats()
    assert (stats.total_funds, stats.allocated_funds, stats.available_funds) == (1_000, 600, 400)
    assert stats.executed_proposals == 1
    assert ("execute", proposal_id) in bridge.calls
    assert ("proposal_executed", proposal_id) in [(n, p["proposalId"]) for n, p in events]
    assert notifier.sent[-1][:2] == ("alice", "proposal_executed")


def test_execute_twice_is_state_error(funded, clock):
    proposal_id = funded.create_proposal("alice", "Plant trees", 600, "forest-fund")
    _pass(funded, proposal_id)
    clock.advance(days=8)
    funded.execute_proposal(proposal_id, "admin")

    with pytest.raises(StateError):
        funded.execute_proposal(proposal_id, "admin")

    assert funded.get_treasury_stats().allocated_funds == 600


def test_execute_requires_available_funds(funded, clock):
    """Test that execution cannot overdraw the treasury."""
    first = funded.create_proposal("alice", "Plant trees", 600, "forest-fund")
    second = funded.create_proposal("bob", "Clean river", 500, "river-fund")
    _pass(funded, first)
    _pass(funded, second)
    clock.advance(days=8)

    funded.execute_proposal(first, "admin")
    with pytest.raises(InsufficientFundsError) as exc_info:
        funded.execute_proposal(second, "admin")

    assert exc_info.value.requested == 500
    assert exc_info.value.available == 400
    assert funded.get_proposal(second).status == ProposalStatus.PASSED
    assert funded.get_treasury_stats().available_funds == 400


def test_failed_proposal_cannot_execute(funded, clock):
    proposal_id = funded.create_proposal("alice", "Plant trees", 100, "forest-fund")
    for voter in ("v1", "v2", "v3"):
        funded.vote_on_proposal(proposal_id, voter, False)
    clock.advance(days=8)

    with pytest.raises(StateError, match="has not passed"):
        funded.execute_proposal(proposal_id, "admin")


def test_unknown_proposal(service):
    with pytest.raises(NotFoundError):
        service.vote_on_proposal(99, "v1", True)
    with pytest.raises(NotFoundError):
        service.execute_proposal(99, "admin")


def test_list_proposals_by_status(service):
    passed = service.create_proposal("alice", "Plant trees", 100, "forest-fund")
    active = service.create_proposal("bob", "Clean river", 200, "river-fund")
    _pass(service, passed)

    assert [p.proposal_id for p in service.governor.list_proposals(ProposalStatus.ACTIVE)] == [active]
    assert {p.proposal_id for p in service.governor.list_proposals()} == {passed, active}
