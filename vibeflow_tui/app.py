"""Vibeflow board: interactive terminal view of the active project."""

from __future__ import annotations

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, OptionList, Static
from textual.widgets.option_list import Option

from vibeflow.config import VibeflowConfig
from vibeflow.session import VibeflowSession
from vibeflow.state.actions import (
    AddCard,
    AddProject,
    AddTodo,
    DeleteCard,
    DeleteTodo,
    MoveCard,
    PromoteTodo,
    SetActiveProject,
    ToggleTodo,
    UpdateCard,
    UpdateTodo,
)
from vibeflow.state.models import COLUMN_TITLES, CardStatus, KanbanCard, Priority, TodoItem
from vibeflow.state.store import Transition

PRIORITY_COLORS = {Priority.LOW: "green", Priority.MEDIUM: "yellow", Priority.HIGH: "red"}


def _card_label(card: KanbanCard) -> str:
    label = card.title
    if card.priority is not None:
        label += f" [{PRIORITY_COLORS[card.priority]}]{card.priority.value}[/]"
    if card.due_date:
        label += f" [dim]{card.due_date}[/]"
    return label


def _todo_label(todo: TodoItem) -> str:
    if todo.completed:
        return f"[dim]✓ {todo.text}[/]"
    return f"○ {todo.text}"


class ItemList(OptionList):
    """OptionList whose options carry item ids; keeps the cursor across redraws."""

    def set_items(self, options: list[Option], title: str) -> None:
        highlighted = self.highlighted
        self.clear_options()
        self.add_options(options)
        self.border_title = title
        if options:
            self.highlighted = min(highlighted or 0, len(options) - 1)

    @property
    def selected_id(self) -> str | None:
        if self.highlighted is None or self.option_count == 0:
            return None
        return self.get_option_at_index(self.highlighted).id


class CardColumn(ItemList):
    def __init__(self, status: CardStatus, **kwargs) -> None:
        super().__init__(**kwargs)
        self.status = status

    def show_cards(self, cards: list[KanbanCard]) -> None:
        self.set_items(
            [Option(_card_label(c), id=c.id) for c in cards],
            f"{COLUMN_TITLES[self.status]} ({len(cards)})",
        )


class TodoList(ItemList):
    def show_todos(self, todos: list[TodoItem]) -> None:
        done = sum(1 for t in todos if t.completed)
        self.set_items(
            [Option(_todo_label(t), id=t.id) for t in todos],
            f"Quick tasks ({done}/{len(todos)})",
        )


class ChoiceScreen(ModalScreen[str | None]):
    """Pick one option; dismisses with the option id."""

    CSS = """
    ChoiceScreen { align: center middle; }
    #choice-dialog {
        width: 40; height: auto; max-height: 20;
        border: solid $primary; background: $surface; padding: 1 2;
    }
    #choice-title { text-align: center; padding-bottom: 1; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, options: list[Option]) -> None:
        super().__init__()
        self.title_text = title
        self.choices = options

    def compose(self) -> ComposeResult:
        with Vertical(id="choice-dialog"):
            yield Static(f"[bold]{self.title_text}[/]", id="choice-title")
            yield OptionList(*self.choices, id="choice-options")

    @on(OptionList.OptionSelected, "#choice-options")
    def _on_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)

    def action_cancel(self) -> None:
        self.dismiss(None)


class TextScreen(ModalScreen[str | None]):
    CSS = """
    TextScreen { align: center middle; }
    #text-dialog {
        width: 60; height: auto; max-height: 12;
        border: solid $primary; background: $surface; padding: 1 2;
    }
    #text-title { text-align: center; padding-bottom: 1; }
    #text-input { width: 100%; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, value: str = "", placeholder: str = "") -> None:
        super().__init__()
        self.title_text = title
        self.initial = value
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(id="text-dialog"):
            yield Static(f"[bold]{self.title_text}[/]", id="text-title")
            yield Input(value=self.initial, placeholder=self.placeholder, id="text-input")

    @on(Input.Submitted, "#text-input")
    def _on_submit(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        if text:
            self.dismiss(text)

    def action_cancel(self) -> None:
        self.dismiss(None)


class BoardApp(App):
    TITLE = "Vibeflow"

    CSS = """
    #board { height: 1fr; }

    CardColumn, TodoList {
        height: 100%;
        border: round $surface-lighten-2;
    }

    CardColumn { width: 1fr; }
    TodoList { width: 40; }

    CardColumn:focus, TodoList:focus {
        border: round $accent;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("a", "add_card", "Add card"),
        Binding("e", "edit", "Edit"),
        Binding("m", "move_card", "Move"),
        Binding("x", "delete", "Delete"),
        Binding("shift+up", "shift_card(-1)", "Up", show=False),
        Binding("shift+down", "shift_card(1)", "Down", show=False),
        Binding("t", "add_todo", "Add task"),
        Binding("space", "toggle_todo", "Toggle"),
        Binding("p", "promote_todo", "Promote"),
        Binding("o", "switch_project", "Projects"),
        Binding("n", "new_project", "New project"),
        Binding("r", "refresh", "Refresh"),
    ]

    def __init__(self, session: VibeflowSession) -> None:
        super().__init__()
        self.session = session
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="board"):
            for status in CardStatus:
                yield CardColumn(status, id=f"col-{status.value}")
            yield TodoList(id="todos")
        yield Footer()

    async def on_mount(self) -> None:
        await self.session.start()
        self._unsubscribe = self.session.subscribe(self._on_transition)
        self.session.on_status(lambda status: self._update_title())
        self.render_board()
        self.query_one(CardColumn).focus()
        if self.session.last_error:
            self.notify(f"Offline: {self.session.last_error}", severity="error")

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        await self.session.stop()

    def _on_transition(self, transition: Transition) -> None:
        self.render_board()

    def _update_title(self) -> None:
        project = self.session.state.active_project
        name = project.name if project else "No project"
        self.sub_title = f"{name} ({self.session.sync_status.value})"

    def render_board(self) -> None:
        project = self.session.state.active_project
        self._update_title()
        for column in self.query(CardColumn):
            column.show_cards(project.cards_with_status(column.status) if project else [])
        self.query_one(TodoList).show_todos(project.todos if project else [])

    # -- Selection --

    def _focused_column(self) -> CardColumn | None:
        return self.focused if isinstance(self.focused, CardColumn) else None

    def _selected_card(self) -> KanbanCard | None:
        column = self._focused_column()
        project = self.session.state.active_project
        if column is None or project is None or column.selected_id is None:
            return None
        return project.find_card(column.selected_id)

    def _selected_todo(self) -> TodoItem | None:
        todos = self.query_one(TodoList)
        project = self.session.state.active_project
        if self.focused is not todos or project is None or todos.selected_id is None:
            return None
        return project.find_todo(todos.selected_id)

    # -- Cards --

    def action_add_card(self) -> None:
        column = self._focused_column()
        status = column.status if column is not None else CardStatus.TODO

        def _on_result(title: str | None) -> None:
            if title:
                self.session.dispatch(AddCard(title=title, status=status))

        self.push_screen(
            TextScreen(f"New card in {COLUMN_TITLES[status]}", placeholder="Title"),
            callback=_on_result,
        )

    def action_edit(self) -> None:
        card = self._selected_card()
        if card is not None:
            def _on_title(title: str | None) -> None:
                if title:
                    self.session.dispatch(UpdateCard(card.id, {"title": title}))

            self.push_screen(TextScreen("Edit card", value=card.title), callback=_on_title)
            return
        todo = self._selected_todo()
        if todo is not None:
            def _on_text(text: str | None) -> None:
                if text:
                    self.session.dispatch(UpdateTodo(todo.id, text))

            self.push_screen(TextScreen("Edit task", value=todo.text), callback=_on_text)

    def action_move_card(self) -> None:
        card = self._selected_card()
        if card is None:
            self.notify("Select a card first", severity="warning")
            return
        options = [
            Option(
                f"{title} [dim](current)[/]" if status is card.status else title,
                id=status.value,
                disabled=status is card.status,
            )
            for status, title in COLUMN_TITLES.items()
        ]

        def _on_result(result: str | None) -> None:
            if result:
                self.session.dispatch(MoveCard(card.id, CardStatus(result)))

        self.push_screen(ChoiceScreen(f"Move '{card.title}' to:", options), callback=_on_result)

    def action_shift_card(self, offset: int) -> None:
        column = self._focused_column()
        card = self._selected_card()
        if column is None or card is None:
            return
        index = column.highlighted + offset
        if not 0 <= index < column.option_count:
            return
        self.session.dispatch(MoveCard(card.id, card.status, new_index=index))
        column.highlighted = index

    def action_delete(self) -> None:
        card = self._selected_card()
        if card is not None:
            self.session.dispatch(DeleteCard(card.id))
            self.notify(f"Deleted '{card.title}'")
            return
        todo = self._selected_todo()
        if todo is not None:
            self.session.dispatch(DeleteTodo(todo.id))

    # -- Quick tasks --

    def action_add_todo(self) -> None:
        def _on_result(text: str | None) -> None:
            if text:
                self.session.dispatch(AddTodo(text))

        self.push_screen(
            TextScreen("New quick task", placeholder="What needs doing?"),
            callback=_on_result,
        )

    def action_toggle_todo(self) -> None:
        todo = self._selected_todo()
        if todo is not None:
            self.session.dispatch(ToggleTodo(todo.id))

    def action_promote_todo(self) -> None:
        todo = self._selected_todo()
        if todo is None:
            self.notify("Select a quick task first", severity="warning")
            return
        self.session.dispatch(PromoteTodo(todo.id))
        self.notify(f"'{todo.text}' promoted to a card")

    # -- Projects --

    def action_switch_project(self) -> None:
        state = self.session.state
        options = [
            Option(
                f"[{p.color}]●[/] {p.name}" + (" [dim](current)[/]" if p.id == state.active_project_id else ""),
                id=p.id,
            )
            for p in state.projects
        ]

        def _on_result(project_id: str | None) -> None:
            if project_id:
                self.session.dispatch(SetActiveProject(project_id))

        self.push_screen(ChoiceScreen("Switch project", options), callback=_on_result)

    def action_new_project(self) -> None:
        def _on_result(name: str | None) -> None:
            if not name:
                return
            action = AddProject(name=name)
            self.session.dispatch(action)
            self.session.dispatch(SetActiveProject(action.project_id))

        self.push_screen(TextScreen("New project", placeholder="Name"), callback=_on_result)

    async def action_refresh(self) -> None:
        if await self.session.refresh():
            self.notify("Board refreshed")
        else:
            self.notify("Nothing to refresh (local only or offline)", severity="warning")


def run_board(config: VibeflowConfig | None = None) -> None:
    """Entry point for the vibeflow-board command."""
    app = BoardApp(VibeflowSession.from_config(config or VibeflowConfig.load()))
    app.run()
