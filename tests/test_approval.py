"""Tests for the approval gate in front of the Done column."""

import asyncio

import pytest

from conftest import GatedBackend, settle
from workboard.adapters.memory import InMemoryBackend
from workboard.board.approval import LEADER_ONLY_MESSAGE, ApprovalGate, GateState
from workboard.board.drag import DragController, DragOutcome
from workboard.board.model import BoardModel, LiveBoard
from workboard.notify import Severity
from workboard.workflow.exceptions import (
    ApprovalPendingError,
    AuthorizationError,
    ConflictOrServerError,
    ValidationError,
)
from workboard.workflow.models import WorkItemStatus


@pytest.fixture
def board(items):
    return LiveBoard(BoardModel.from_items(items))


@pytest.fixture
def confirmed():
    return []


@pytest.fixture
def gate(board, backend, notifier, leader, confirmed):
    return ApprovalGate(board, backend, notifier, leader, on_confirmed=confirmed.append)


class TestApprovalGate:
    def test_request_opens_single_review(self, gate, board):
        gate.request(board.model.get(4))
        assert gate.state is GateState.PENDING_REVIEW
        assert gate.holds(4)
        assert not gate.holds(3)

    def test_non_leader_cannot_open(self, board, backend, notifier, member):
        gate = ApprovalGate(board, backend, notifier, member)
        with pytest.raises(AuthorizationError, match=LEADER_ONLY_MESSAGE):
            gate.request(board.model.get(4))
        assert gate.state is GateState.IDLE

    def test_second_request_while_open(self, gate, board):
        gate.request(board.model.get(4))
        with pytest.raises(ApprovalPendingError) as excinfo:
            gate.request(board.model.get(3))
        assert excinfo.value.pending_item_id == 4
        assert gate.item.id == 4

    def test_cancel_sends_nothing(self, gate, board, backend):
        before = board.model
        gate.request(board.model.get(4))
        gate.cancel()
        assert gate.state is GateState.CANCELLED
        assert board.model is before
        assert backend.mutation_calls() == []
        assert not gate.holds(4)

    @pytest.mark.asyncio
    async def test_approve_moves_item_to_done(self, gate, board, backend, notifier, confirmed):
        gate.request(board.model.get(4))
        approved = await gate.resolve(5, "good")

        assert backend.mutation_calls() == [("approve", 4)]
        assert approved.status is WorkItemStatus.DONE
        assert approved.rating == 5
        assert board.model.status_of(4) is WorkItemStatus.DONE
        assert board.model.get(4).rating == 5
        assert board.model.column(WorkItemStatus.DONE)[-1].id == 4
        assert gate.state is GateState.APPROVED
        assert gate.comment == "good"
        assert notifier.messages(Severity.SUCCESS) == ["Work item approved successfully"]
        assert [item.id for item in confirmed] == [4]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [None, 0, 6, 2.5, "5", True])
    async def test_bad_rating_keeps_gate_open(self, gate, board, backend, rating):
        gate.request(board.model.get(4))
        with pytest.raises(ValidationError) as excinfo:
            await gate.resolve(rating, "x")
        assert excinfo.value.field == "rating"
        assert gate.is_open
        assert backend.mutation_calls() == []

    @pytest.mark.asyncio
    async def test_resolve_without_request(self, gate):
        with pytest.raises(ValidationError):
            await gate.resolve(3)

    @pytest.mark.asyncio
    async def test_custom_rating_scale(self, board, backend, notifier, leader):
        gate = ApprovalGate(board, backend, notifier, leader, max_rating=10)
        gate.request(board.model.get(4))
        approved = await gate.resolve(8)
        assert approved.rating == 8

    @pytest.mark.asyncio
    async def test_failed_approve_leaves_item(self, gate, board, backend, notifier, confirmed):
        backend.fail_next(ConflictOrServerError(409, "Work item is already done"))
        gate.request(board.model.get(4))

        assert await gate.resolve(4, "") is None
        assert board.model.status_of(4) is WorkItemStatus.WAIT_FOR_REVIEW
        assert gate.state is GateState.IDLE
        assert notifier.errors == ["Work item is already done"]
        assert confirmed == []

        gate.request(board.model.get(4))
        assert gate.is_open

    @pytest.mark.asyncio
    async def test_missing_echo_applies_locally(self, items, notifier, leader):
        class SilentBackend(InMemoryBackend):
            async def approve_work_item(self, item_id, rating, comment):
                await super().approve_work_item(item_id, rating, comment)
                return None

        board = LiveBoard(BoardModel.from_items(items))
        gate = ApprovalGate(board, SilentBackend(items), notifier, leader)
        gate.request(board.model.get(3))
        approved = await gate.resolve(2)
        assert approved.status is WorkItemStatus.DONE
        assert board.model.get(3).rating == 2


class TestApprovalThroughDrag:
    @pytest.mark.asyncio
    async def test_item_locked_while_approve_in_flight(self, board, backend, notifier, leader):
        gated = GatedBackend(backend)
        gate = ApprovalGate(board, gated, notifier, leader)
        drag = DragController(board, gated, gate, notifier)

        assert await drag.move_to(4, WorkItemStatus.DONE) is DragOutcome.AWAITING_APPROVAL
        task = asyncio.create_task(gate.resolve(5, "good"))
        await settle()

        assert gate.is_busy
        assert drag.is_locked(4)
        assert await drag.move_to(4, WorkItemStatus.TODO) is DragOutcome.REJECTED
        assert await drag.move_to(3, WorkItemStatus.DONE) is DragOutcome.REJECTED

        gated.release()
        await task
        assert board.model.status_of(4) is WorkItemStatus.DONE
        assert not drag.is_locked(4)
        assert backend.mutation_calls() == [("approve", 4)]


class TestApprovalUnexpectedFailure:
    @pytest.mark.asyncio
    async def test_gate_released_when_backend_raises(self, items, board, notifier, leader):
        class BrokenBackend(InMemoryBackend):
            async def approve_work_item(self, item_id, rating, comment):
                raise RuntimeError("backend bug")

        gate = ApprovalGate(board, BrokenBackend(items), notifier, leader)
        gate.request(board.model.get(4))
        with pytest.raises(RuntimeError):
            await gate.resolve(5, "good")

        assert gate.state is GateState.IDLE
        assert not gate.is_busy
        assert not gate.holds(4)
        assert board.model.status_of(4) is WorkItemStatus.WAIT_FOR_REVIEW
