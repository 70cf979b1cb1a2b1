"""Tests for the BoardSession facade."""

import asyncio

import pytest

from conftest import GatedBackend, settle
from workboard.adapters.memory import InMemoryBackend
from workboard.board.drag import DragOutcome
from workboard.config import BoardConfig
from workboard.session import BoardSession
from workboard.workflow.exceptions import (
    AuthorizationError,
    ConflictOrServerError,
    NetworkError,
    ValidationError,
)
from workboard.workflow.models import WorkItemStatus


@pytest.fixture
def make_session(backend, notifier, scheduler, leader):
    def factory(actor=leader, **config):
        return BoardSession(
            backend, actor, config=BoardConfig(**config), notifier=notifier, scheduler=scheduler
        )

    return factory


def feed_ids(session):
    return [item.id for item in session.feed.items]


class TestLoading:
    @pytest.mark.asyncio
    async def test_start_loads_board_and_list(self, make_session):
        session = make_session()
        await session.start()
        assert len(session.board.model) == 5
        assert feed_ids(session) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_load_more_uses_configured_page_size(self, make_session):
        session = make_session(page_size=2)
        await session.start()
        assert feed_ids(session) == [1, 2]
        assert await session.load_more()
        assert await session.load_more()
        assert not await session.load_more()
        assert feed_ids(session) == [1, 2, 3, 4, 5]


class TestFilters:
    @pytest.mark.asyncio
    async def test_partial_overrides_accumulate(self, make_session):
        session = make_session()
        await session.start()
        await session.apply_filters(sprint_ids={1})
        filters = await session.apply_filters(assignee_ids={10})

        assert filters.sprint_ids == frozenset({1})
        assert filters.assignee_ids == frozenset({10})
        assert feed_ids(session) == [1]
        assert [i.id for i in session.board.model.items()] == [1]

    @pytest.mark.asyncio
    async def test_apply_restarts_list(self, make_session, backend):
        session = make_session(page_size=2)
        await session.start()
        await session.load_more()
        await session.apply_filters(statuses={"TO DO", "IN PROGRESS"})
        assert feed_ids(session) == [1, 2]
        assert session.feed.state.total == 3
        assert backend.calls[-1] == ("list", 1)

    @pytest.mark.asyncio
    async def test_clear_all(self, make_session):
        session = make_session()
        await session.apply_filters(lecturer_only=True)
        assert feed_ids(session) == [4]
        await session.clear_all_filters()
        assert session.filters.is_empty
        assert len(feed_ids(session)) == 5


class TestSearch:
    @pytest.mark.asyncio
    async def test_keyword_applied_after_pause(self, make_session, scheduler, backend):
        session = make_session()
        await session.start()
        calls = len(backend.calls)

        session.search("Item")
        scheduler.advance(0.3)
        session.search("Item 3")
        assert session.is_searching
        scheduler.advance(0.3)
        assert len(backend.calls) == calls

        scheduler.advance(0.25)
        await session.wait_idle()
        assert not session.is_searching
        assert session.filters.keyword == "Item 3"
        assert feed_ids(session) == [3]
        assert len(backend.calls) == calls + 2

    @pytest.mark.asyncio
    async def test_explicit_keyword_cancels_pending_search(self, make_session, scheduler):
        session = make_session()
        session.search("Item 1")
        await session.apply_filters(keyword="Item 2")
        scheduler.advance(1)
        await session.wait_idle()
        assert session.filters.keyword == "Item 2"
        assert feed_ids(session) == [2]


class TestMoves:
    @pytest.mark.asyncio
    async def test_confirmed_move_reaches_list(self, make_session):
        session = make_session()
        await session.start()
        assert await session.move_item(1, "IN PROGRESS") is DragOutcome.MOVED
        assert session.feed.state.store.get(1).status is WorkItemStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_approval_reaches_list(self, make_session, backend):
        session = make_session()
        await session.start()
        session.begin_drag(4)
        assert await session.end_drag(4, WorkItemStatus.DONE) is DragOutcome.AWAITING_APPROVAL
        approved = await session.resolve_approval(5, "good")

        assert approved.rating == 5
        assert session.feed.state.store.get(4).status is WorkItemStatus.DONE
        assert session.summary().counts[WorkItemStatus.DONE] == 2
        assert backend.mutation_calls() == [("approve", 4)]

    @pytest.mark.asyncio
    async def test_cancelled_approval(self, make_session, backend):
        session = make_session()
        await session.start()
        await session.move_item(4, WorkItemStatus.DONE)
        session.cancel_approval()
        assert session.board.model.status_of(4) is WorkItemStatus.WAIT_FOR_REVIEW
        assert backend.mutation_calls() == []


class TestEdits:
    @pytest.mark.asyncio
    async def test_update_details(self, make_session, notifier):
        session = make_session()
        await session.start()
        updated = await session.update_details(1, summary="Renamed", story_points=3)

        assert updated.summary == "Renamed"
        assert session.board.model.get(1).story_points == 3
        assert session.feed.state.store.get(1).summary == "Renamed"
        assert "Work item updated successfully" in notifier.messages()

    @pytest.mark.asyncio
    async def test_update_details_rejections(self, make_session, backend):
        session = make_session()
        await session.start()
        with pytest.raises(ValidationError):
            await session.update_details(1)
        with pytest.raises(ValidationError):
            await session.update_details(1, status=WorkItemStatus.DONE)
        with pytest.raises(ValidationError):
            await session.update_details(1, story_points=-1)
        with pytest.raises(AuthorizationError):
            await session.update_details(4, summary="nope")
        assert backend.mutation_calls() == []

    @pytest.mark.asyncio
    async def test_update_failure_notifies(self, make_session, backend, notifier):
        session = make_session()
        await session.start()
        backend.fail_next(ConflictOrServerError(500, "Internal server error"))
        assert await session.update_details(2, summary="x") is None
        assert session.board.model.get(2).summary == "Item 2"
        assert notifier.errors == ["Internal server error"]

    @pytest.mark.asyncio
    async def test_delete_by_leader(self, make_session):
        session = make_session()
        await session.start()
        assert await session.delete_item(2)
        assert session.board.model.get(2) is None
        assert 2 not in feed_ids(session)

    @pytest.mark.asyncio
    async def test_delete_refused(self, make_session, member, backend):
        session = make_session()
        await session.start()
        with pytest.raises(AuthorizationError):
            await session.delete_item(4)

        other = make_session(actor=member)
        await other.start()
        with pytest.raises(AuthorizationError):
            await other.delete_item(1)
        assert backend.mutation_calls() == []


class TestOnePendingChangePerItem:
    @pytest.mark.asyncio
    async def test_drag_rejected_while_edit_in_flight(self, backend, notifier, scheduler, leader):
        gated = GatedBackend(backend)
        session = BoardSession(gated, leader, notifier=notifier, scheduler=scheduler)
        reload = asyncio.create_task(session.board_feed.reload(session.filters))
        await settle()
        gated.release()
        await reload

        edit = asyncio.create_task(session.update_details(1, summary="Renamed"))
        await settle()
        assert await session.move_item(1, WorkItemStatus.IN_PROGRESS) is DragOutcome.REJECTED
        assert [name for name, _ in gated.waiting] == ["update"]

        gated.release()
        assert (await edit).summary == "Renamed"
        assert session.board.model.status_of(1) is WorkItemStatus.TODO
        assert not session.drag.is_locked(1)

    @pytest.mark.asyncio
    async def test_edit_rejected_while_drag_in_flight(self, backend, notifier, scheduler, leader):
        gated = GatedBackend(backend)
        session = BoardSession(gated, leader, notifier=notifier, scheduler=scheduler)
        reload = asyncio.create_task(session.board_feed.reload(session.filters))
        await settle()
        gated.release()
        await reload

        move = asyncio.create_task(session.move_item(1, WorkItemStatus.IN_PROGRESS))
        await settle()
        with pytest.raises(ValidationError):
            await session.update_details(1, summary="Renamed")
        with pytest.raises(ValidationError):
            await session.delete_item(1)

        gated.release()
        assert await move is DragOutcome.MOVED

    @pytest.mark.asyncio
    async def test_drag_rejected_while_delete_in_flight(self, backend, notifier, scheduler, leader):
        class SlowDelete(GatedBackend):
            async def delete_work_item(self, item_id):
                return await self._gated("delete", lambda: self.inner.delete_work_item(item_id))

        gated = SlowDelete(backend)
        session = BoardSession(gated, leader, notifier=notifier, scheduler=scheduler)
        reload = asyncio.create_task(session.board_feed.reload(session.filters))
        await settle()
        gated.release()
        await reload

        delete = asyncio.create_task(session.delete_item(2))
        await settle()
        assert await session.move_item(2, WorkItemStatus.IN_PROGRESS) is DragOutcome.REJECTED

        gated.release()
        assert await delete
        assert session.board.model.get(2) is None
        assert backend.mutation_calls() == [("delete", 2)]


class TestEditWithoutEcho:
    @pytest.mark.asyncio
    async def test_failed_reread_keeps_local_copy(self, items, notifier, scheduler, leader):
        class QuietBackend(InMemoryBackend):
            async def update_work_item(self, item_id, **fields):
                await super().update_work_item(item_id, **fields)
                return None

            async def get_work_item(self, item_id):
                raise NetworkError("timed out")

        session = BoardSession(QuietBackend(items), leader, notifier=notifier, scheduler=scheduler)
        await session.start()
        updated = await session.update_details(2, summary="Renamed", story_points=2)

        assert updated.summary == "Renamed"
        assert session.board.model.get(2).story_points == 2
        assert notifier.errors == []
        assert "Work item updated successfully" in notifier.messages()
