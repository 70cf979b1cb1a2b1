"""Interactive terminal board for a project group."""

from __future__ import annotations

from typing import Callable

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, OptionList, Static
from textual.widgets.option_list import Option

from workboard.board.drag import DragOutcome
from workboard.board.model import BoardModel
from workboard.notify import Notifier, Severity
from workboard.session import BoardSession
from workboard.workflow.exceptions import WorkboardError
from workboard.workflow.models import WorkItem, WorkItemStatus, WorkItemType
from workboard.workflow.transitions import COLUMN_ORDER

TYPE_COLORS = {
    WorkItemType.EPIC: "magenta",
    WorkItemType.STORY: "green",
    WorkItemType.TASK: "cyan",
    WorkItemType.SUBTASK: "yellow",
}

# textual's toast severities
_TOAST_SEVERITY = {
    Severity.INFORMATION: "information",
    Severity.SUCCESS: "information",
    Severity.WARNING: "warning",
    Severity.ERROR: "error",
}


class TuiNotifier:
    """Routes engine notifications to the app's toasts."""

    def __init__(self, app: App) -> None:
        self.app = app

    def notify(self, message: str, severity: Severity = Severity.INFORMATION) -> None:
        self.app.notify(message, severity=_TOAST_SEVERITY[severity])


class WorkItemCard(Static):
    can_focus = True

    def __init__(self, item: WorkItem, col_index: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.item = item
        self.col_index = col_index

    def compose(self) -> ComposeResult:
        item = self.item
        color = TYPE_COLORS.get(item.type, "white")
        key = item.key or f"#{item.id}"
        lecturer = " [bold orange1]*[/]" if item.is_lecturer_assigned else ""
        points = f" [dim]{item.story_points:g}pt[/]" if item.story_points is not None else ""
        rating = f" [yellow]{'★' * item.rating}[/]" if item.rating else ""
        yield Static(f"[bold {color}]{key}[/] {item.summary}{lecturer}{points}{rating}")


class BoardColumn(VerticalScroll):
    def __init__(self, status: WorkItemStatus, items: tuple[WorkItem, ...], col_index: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.status = status
        self.items = items
        self.col_index = col_index

    def compose(self) -> ComposeResult:
        yield Static(
            f"[bold underline]{self.status.value}[/] [dim]({len(self.items)})[/]",
            classes="column-header",
        )
        if not self.items:
            yield Static("[dim]empty[/]", classes="empty-label")
            return
        for item in self.items:
            yield WorkItemCard(item, col_index=self.col_index, classes="card", id=f"card-{item.id}")


class MoveScreen(ModalScreen[WorkItemStatus | None]):
    """Keyboard drag: pick the column a card should be dropped on."""

    CSS = """
    MoveScreen { align: center middle; }
    #move-dialog {
        width: 40; height: auto; max-height: 20;
        border: solid $primary; background: $surface; padding: 1 2;
    }
    #move-title { text-align: center; padding-bottom: 1; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, item: WorkItem) -> None:
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:
        label = self.item.key or f"#{self.item.id}"
        with Vertical(id="move-dialog"):
            yield Static(f"[bold]Move {label} to:[/]", id="move-title")
            options = []
            for status in COLUMN_ORDER:
                if status is self.item.status:
                    options.append(Option(f"{status.value} [dim](current)[/]", id=status.name, disabled=True))
                else:
                    options.append(Option(status.value, id=status.name))
            yield OptionList(*options, id="move-options")

    @on(OptionList.OptionSelected, "#move-options")
    def _on_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option.id is None:
            return
        self.dismiss(WorkItemStatus[event.option.id])

    def action_cancel(self) -> None:
        self.dismiss(None)


def parse_rating(text: str, max_rating: int) -> int | None:
    """Rating typed in the approval dialog, or None when it isn't usable."""
    try:
        rating = int(text.strip())
    except ValueError:
        return None
    return rating if 1 <= rating <= max_rating else None


class ApprovalModal(ModalScreen[tuple[int, str] | None]):
    CSS = """
    ApprovalModal { align: center middle; }
    #approval-dialog {
        width: 60; height: auto; max-height: 16;
        border: solid $success; background: $surface; padding: 1 2;
    }
    #approval-title { text-align: center; padding-bottom: 1; }
    #approval-error { color: $error; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, item: WorkItem, max_rating: int) -> None:
        super().__init__()
        self.item = item
        self.max_rating = max_rating

    def compose(self) -> ComposeResult:
        label = self.item.key or f"#{self.item.id}"
        with Vertical(id="approval-dialog"):
            yield Static(f"[bold green]Approve {label}[/] {self.item.summary}", id="approval-title")
            yield Static("[dim]Done work items can no longer be updated.[/]")
            yield Static(f"Rating (required, 1-{self.max_rating}):")
            yield Input(placeholder=f"1-{self.max_rating}", id="rating-input")
            yield Static("Comment (optional):")
            yield Input(placeholder="Add a comment...", id="comment-input")
            yield Static("", id="approval-error")

    @on(Input.Submitted)
    def _on_submit(self, event: Input.Submitted) -> None:
        rating_text = self.query_one("#rating-input", Input).value
        rating = parse_rating(rating_text, self.max_rating)
        if rating is None:
            self.query_one("#approval-error", Static).update(
                f"Please give a rating between 1 and {self.max_rating}"
            )
            return
        comment = self.query_one("#comment-input", Input).value.strip()
        self.dismiss((rating, comment))

    def action_cancel(self) -> None:
        self.dismiss(None)


class BoardApp(App):
    TITLE = "Work Board"

    CSS = """
    #search { dock: top; }

    #board {
        width: 100%;
        height: 1fr;
    }

    BoardColumn {
        width: 1fr;
        height: 100%;
        border-right: solid $surface-lighten-2;
        padding: 0;
    }

    BoardColumn.active-col {
        border-right: solid $accent;
        border-left: solid $accent;
    }

    .column-header {
        text-align: center;
        background: $surface-lighten-1;
        margin-bottom: 1;
        height: 1;
    }

    .empty-label {
        text-align: center;
        color: $text-muted;
    }

    .card {
        padding: 0 1;
    }

    WorkItemCard:focus {
        background: $surface-lighten-1;
    }

    #status-line {
        dock: bottom;
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("m", "move_card", "Move"),
        Binding("slash", "focus_search", "Search"),
        Binding("l", "toggle_lecturer", "Lecturer items"),
        Binding("c", "clear_filters", "Clear filters"),
        Binding("left", "col_left", "< Col", show=True),
        Binding("right", "col_right", "Col >", show=True),
        Binding("up", "card_up", "", show=False),
        Binding("down", "card_down", "", show=False),
    ]

    def __init__(self, session_factory: Callable[[Notifier], BoardSession]) -> None:
        super().__init__()
        self.session = session_factory(TuiNotifier(self))
        self.active_col_index: int = 0
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Search work items...", id="search")
        with Horizontal(id="board"):
            for i, status in enumerate(COLUMN_ORDER):
                yield BoardColumn(status, (), col_index=i, id=f"col-{status.name}")
        yield Static("", id="status-line")
        yield Footer()

    async def on_mount(self) -> None:
        self._unsubscribe = self.session.board.subscribe(self._on_board_changed)
        await self.session.start()
        self._highlight_active_column()

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        close = getattr(self.session.backend, "aclose", None)
        if close is not None:
            await close()

    def _on_board_changed(self, model: BoardModel) -> None:
        self.run_worker(self._render_board(model), group="render", exclusive=True)

    async def _render_board(self, model: BoardModel) -> None:
        focused_id = self.focused.item.id if isinstance(self.focused, WorkItemCard) else None
        board = self.query_one("#board", Horizontal)
        for child in list(board.children):
            await child.remove()
        for i, status in enumerate(COLUMN_ORDER):
            await board.mount(BoardColumn(status, model.column(status), col_index=i, id=f"col-{status.name}"))
        self._highlight_active_column()
        self._update_status_line()
        if focused_id is not None:
            for card in self.query(WorkItemCard):
                if card.item.id == focused_id:
                    card.focus()
                    break

    def _update_status_line(self) -> None:
        summary = self.session.summary()
        filters = self.session.filters
        parts = [f"{summary.total} items", f"{summary.done_pct}% done"]
        if filters.active_facets:
            parts.append(f"{filters.active_facets} filters")
        if filters.lecturer_only:
            parts.append("lecturer items only")
        if self.session.is_searching:
            parts.append("searching...")
        self.query_one("#status-line", Static).update("  ".join(parts))

    # -- Search / filters --

    @on(Input.Changed, "#search")
    def _on_search_changed(self, event: Input.Changed) -> None:
        self.session.search(event.value)
        self._update_status_line()

    def action_focus_search(self) -> None:
        self.query_one("#search", Input).focus()

    async def action_toggle_lecturer(self) -> None:
        enabled = not self.session.filters.lecturer_only
        await self.session.apply_filters(lecturer_only=enabled or None)
        self.notify("Showing lecturer assigned items" if enabled else "Showing all items")

    async def action_clear_filters(self) -> None:
        self.query_one("#search", Input).value = ""
        await self.session.clear_all_filters()
        self.notify("Filters cleared")

    async def action_refresh(self) -> None:
        await self.session.refresh()
        self.notify("Board refreshed")

    # -- Column navigation --

    def _get_column_widgets(self) -> list[BoardColumn]:
        return list(self.query(BoardColumn))

    def _highlight_active_column(self) -> None:
        for i, col in enumerate(self._get_column_widgets()):
            col.set_class(i == self.active_col_index, "active-col")

    def _cards_in_column(self, col_index: int) -> list[WorkItemCard]:
        cols = self._get_column_widgets()
        if col_index < 0 or col_index >= len(cols):
            return []
        return list(cols[col_index].query(WorkItemCard))

    def _focus_first_in_active_col(self) -> None:
        cards = self._cards_in_column(self.active_col_index)
        if cards:
            cards[0].focus()

    def action_col_left(self) -> None:
        if self.active_col_index > 0:
            self.active_col_index -= 1
            self._highlight_active_column()
            self._focus_first_in_active_col()

    def action_col_right(self) -> None:
        if self.active_col_index < len(COLUMN_ORDER) - 1:
            self.active_col_index += 1
            self._highlight_active_column()
            self._focus_first_in_active_col()

    def _step_card(self, delta: int) -> None:
        cards = self._cards_in_column(self.active_col_index)
        if not cards:
            return
        try:
            idx = cards.index(self.focused)
        except ValueError:
            cards[0 if delta > 0 else -1].focus()
            return
        new_idx = idx + delta
        if 0 <= new_idx < len(cards):
            cards[new_idx].focus()

    def action_card_up(self) -> None:
        self._step_card(-1)

    def action_card_down(self) -> None:
        self._step_card(1)

    def watch_focused(self, focused) -> None:
        if isinstance(focused, WorkItemCard):
            self.active_col_index = focused.col_index
            self._highlight_active_column()

    # -- Move / approve --

    def action_move_card(self) -> None:
        card = self.focused
        if not isinstance(card, WorkItemCard):
            self.notify("Select a card first", severity="warning")
            return
        item_id = card.item.id
        current = self.session.board.model.get(item_id)
        if current is None or not self.session.begin_drag(item_id):
            self.notify("This card has a change in progress", severity="warning")
            return

        def _on_move_result(target: WorkItemStatus | None) -> None:
            self.run_worker(self._drop(item_id, target))

        self.push_screen(MoveScreen(current), callback=_on_move_result)

    async def _drop(self, item_id: int, target: WorkItemStatus | None) -> None:
        try:
            outcome = await self.session.end_drag(item_id, target)
        except WorkboardError as exc:
            self.notify(str(exc), severity="error")
            return
        if outcome is DragOutcome.AWAITING_APPROVAL and self.session.gate.item is not None:
            self._open_approval(self.session.gate.item)

    def _open_approval(self, item: WorkItem) -> None:
        def _on_approval_result(result: tuple[int, str] | None) -> None:
            if result is None:
                self.session.cancel_approval()
                return
            rating, comment = result
            self.run_worker(self.session.resolve_approval(rating, comment))

        self.push_screen(
            ApprovalModal(item, self.session.config.max_rating), callback=_on_approval_result
        )
