"""Modal screens for the help overlay and the image picker."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from rich.table import Table
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import DirectoryTree, Static


class HelpScreen(ModalScreen[None]):
    """Semi-transparent overlay listing the key bindings in two columns.

    The chat session decides when it closes; its own key bindings are
    application-level and keep working while it is shown.
    """

    CSS = """
    HelpScreen {
        align: center middle;
        background: $background 60%;
    }

    #help-dialog {
        width: auto;
        max-width: 100;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface 80%;
    }

    #help-title {
        padding-bottom: 1;
        text-style: bold;
    }
    """

    def __init__(self, columns: list[list[tuple[str, str]]]) -> None:
        super().__init__()
        self._columns = columns

    def build_table(self) -> Table:
        table = Table.grid(padding=(0, 2))
        for _ in self._columns:
            table.add_column(style="bold", no_wrap=True)
            table.add_column(style="dim")
        depth = max((len(column) for column in self._columns), default=0)
        for row_index in range(depth):
            cells: list[str] = []
            for column in self._columns:
                if row_index < len(column):
                    cells.extend(column[row_index])
                else:
                    cells.extend(("", ""))
            table.add_row(*cells)
        return table

    def compose(self) -> ComposeResult:
        with Container(id="help-dialog"):
            yield Static("Key bindings", id="help-title")
            yield Static(self.build_table(), id="help-body")


class ImageDirectoryTree(DirectoryTree):
    """Directory tree that lists folders and image files only."""

    def __init__(self, path: str | Path, extensions: Iterable[str], **kwargs: object) -> None:
        super().__init__(path, **kwargs)  # type: ignore[arg-type]
        self.extensions = tuple(extension.lower() for extension in extensions)

    def filter_paths(self, paths: Iterable[Path]) -> Iterable[Path]:
        visible: list[Path] = []
        for path in paths:
            if path.name.startswith("."):
                continue
            try:
                if path.is_dir() or path.suffix.lower() in self.extensions:
                    visible.append(path)
            except OSError:
                continue
        return visible


class ImagePickerScreen(ModalScreen[str | None]):
    """Browse from the home directory and return the chosen image path."""

    CSS = """
    ImagePickerScreen {
        align: center middle;
    }

    #picker-dialog {
        width: 80%;
        height: 80%;
        padding: 0 1;
        border: round $primary;
        background: $surface;
    }

    #picker-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #picker-tree {
        height: 1fr;
    }
    """

    BINDINGS = [Binding("q", "cancel", "Cancel", show=False)]

    def __init__(self, extensions: Iterable[str], start: Path | None = None) -> None:
        super().__init__()
        self._extensions = tuple(extensions)
        self._start = start or Path.home()

    def compose(self) -> ComposeResult:
        with Container(id="picker-dialog"):
            yield Static(
                f"Pick an image ({', '.join(self._extensions)})  |  q to cancel",
                id="picker-title",
            )
            yield ImageDirectoryTree(self._start, self._extensions, id="picker-tree")

    def on_mount(self) -> None:
        self.query_one("#picker-tree", ImageDirectoryTree).focus()

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        event.stop()
        self.dismiss(str(event.path))

    def action_cancel(self) -> None:
        self.dismiss(None)
