"""Tests for board reloads."""

import asyncio

import pytest

from conftest import GatedBackend, settle
from workboard.board.model import LiveBoard
from workboard.feed.board import BoardFeed
from workboard.feed.filters import FilterState
from workboard.workflow.exceptions import NetworkError
from workboard.workflow.models import WorkItemStatus


class FailingBackend:
    async def get_board(self, filters):
        raise NetworkError("connection refused")


class TestBoardFeed:
    @pytest.mark.asyncio
    async def test_reload_fills_columns(self, backend, notifier):
        board = LiveBoard()
        feed = BoardFeed(backend, board, notifier)
        assert await feed.reload(FilterState())
        assert [i.id for i in board.model.column(WorkItemStatus.TODO)] == [1, 2]
        assert len(board.model) == 5
        assert not feed.loading

    @pytest.mark.asyncio
    async def test_reload_applies_filters(self, backend, notifier):
        board = LiveBoard()
        feed = BoardFeed(backend, board, notifier)
        await feed.reload(FilterState(assignee_ids={10}))
        assert sorted(i.id for i in board.model.items()) == [1, 4]

    @pytest.mark.asyncio
    async def test_stale_response_dropped(self, backend, notifier):
        gated = GatedBackend(backend)
        board = LiveBoard()
        feed = BoardFeed(gated, board, notifier)

        older = asyncio.create_task(feed.reload(FilterState(assignee_ids={11})))
        newer = asyncio.create_task(feed.reload(FilterState(assignee_ids={10})))
        await settle()
        gated.release(1)
        assert await newer
        gated.release()
        assert await older is False

        assert sorted(i.id for i in board.model.items()) == [1, 4]

    @pytest.mark.asyncio
    async def test_overlay_applied(self, backend, notifier):
        board = LiveBoard()
        feed = BoardFeed(
            backend, board, notifier,
            overlay=lambda model: model.moved(1, WorkItemStatus.IN_PROGRESS),
        )
        await feed.reload(FilterState())
        assert board.model.status_of(1) is WorkItemStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_failure_keeps_board_and_notifies(self, backend, notifier):
        board = LiveBoard()
        await BoardFeed(backend, board, notifier).reload(FilterState())
        before = board.model

        feed = BoardFeed(FailingBackend(), board, notifier)
        assert await feed.reload(FilterState()) is False
        assert board.model is before
        assert notifier.errors == ["Failed to load board data"]
        assert not feed.loading
