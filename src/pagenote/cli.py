"""Command-line interface for the pagenote note-taking client."""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme as RichTheme
from rich.tree import Tree

from .backend.auth import AuthClient
from .backend.models import AuthSession
from .config import LocalSettings, PagenoteConfig, ensure_config
from .errors import NotSignedInError, PagenoteError, PersistenceError
from .local.preferences import PreferenceStore, SessionStore
from .local.repository import LocalRepository
from .workspace.converters import ContentConverter
from .workspace.service import Workspace, create_workspace
from .workspace.theme import Theme, ThemeState
from .workspace.tree import TreeNode

RICH_THEMES = {
    Theme.LIGHT: RichTheme(
        {
            "page.title": "bold black",
            "page.id": "dim",
            "muted": "grey50",
            "success": "green4",
            "error": "bold red3",
        }
    ),
    Theme.DARK: RichTheme(
        {
            "page.title": "bold bright_white",
            "page.id": "grey62",
            "muted": "grey62",
            "success": "bright_green",
            "error": "bold bright_red",
        }
    ),
}

app = typer.Typer(help="Keep a tree of Markdown pages in a hosted notebook.")
pages_app = typer.Typer(help="Create, edit and organise pages.")
theme_app = typer.Typer(help="Light/dark preference for terminal output.")
app.add_typer(pages_app, name="pages")
app.add_typer(theme_app, name="theme")
console = Console(theme=RICH_THEMES[Theme.LIGHT])
logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    """Attach a rich handler to the ``pagenote`` logger only."""

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("pagenote")
    app_logger.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in app_logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        app_logger.addHandler(handler)


def _apply_theme(theme: Theme) -> None:
    console.push_theme(RICH_THEMES[theme])


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration TOML file",
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log output (-v, -vv)"),
) -> None:
    _configure_logging(verbose)
    ctx.obj = {"config_path": config_path}


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _resolve_config(
    ctx: typer.Context,
    *,
    url: Optional[str] = None,
    anon_key: Optional[str] = None,
) -> PagenoteConfig:
    return ensure_config(url=url, anon_key=anon_key, config_path=ctx.obj.get("config_path"))


def _state_dir(ctx: typer.Context) -> Path:
    """State directory from configuration, or the default when no backend is configured."""

    try:
        return _resolve_config(ctx).local.state_dir
    except PagenoteError:
        return LocalSettings().state_dir


def _load_theme(state_dir: Path) -> ThemeState:
    state = ThemeState(PreferenceStore(state_dir), apply=_apply_theme)
    state.load()
    return state


def _require_session(config: PagenoteConfig) -> AuthSession:
    session = SessionStore(config.local.state_dir).load()
    if session is None:
        raise NotSignedInError()
    return session


def _report_error(exc: PersistenceError) -> None:
    console.print(f"[error]{escape(str(exc))}[/error]")


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except NotSignedInError:
        console.print("Not signed in. Run [bold]pagenote login[/bold] first.")
        raise typer.Exit(code=1)
    except PagenoteError as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[error]{escape(str(exc))}[/error]")
        raise typer.Exit(code=1)


@contextlib.contextmanager
def _open_workspace(ctx: typer.Context) -> Iterator[Workspace]:
    """Signed-in workspace with pages loaded; exits when loading fails."""

    config = _resolve_config(ctx)
    _load_theme(config.local.state_dir)
    session = _require_session(config)
    workspace, cleanup = create_workspace(config, session, on_error=_report_error)
    try:
        if workspace.load() is None:
            raise typer.Exit(code=1)
        yield workspace
    finally:
        cleanup()


def _require_page(workspace: Workspace, page_id: str) -> None:
    if page_id not in workspace.tree:
        console.print(f"[error]Page {escape(page_id)} not found[/error]")
        raise typer.Exit(code=1)


def _add_nodes(branch: Tree, nodes: list[TreeNode], *, show_all: bool) -> None:
    for node in nodes:
        label = f"[page.title]{escape(node.page.title)}[/page.title] [page.id]{escape(node.page.id)}[/page.id]"
        if node.has_children and not (show_all or node.expanded):
            label += f" [muted](+{len(node.children)})[/muted]"
        child = branch.add(label)
        if show_all or node.expanded:
            _add_nodes(child, node.children, show_all=show_all)


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
@app.command()
def login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True, help="Account password"),
    url: Optional[str] = typer.Option(None, help="Project URL of the hosted backend"),
    anon_key: Optional[str] = typer.Option(None, help="Public API key of the project"),
) -> None:
    """Sign in and remember the session locally."""

    with _handle_errors():
        config = _resolve_config(ctx, url=url, anon_key=anon_key)
        with AuthClient(base_url=str(config.credentials.url), anon_key=config.credentials.anon_key) as auth:
            session = auth.sign_in(email, password)
        SessionStore(config.local.state_dir).save(session)
    console.print(f"Signed in as [bold]{escape(session.user.email)}[/bold].")


@app.command()
def signup(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Account password"
    ),
) -> None:
    """Create an account."""

    with _handle_errors():
        config = _resolve_config(ctx)
        with AuthClient(base_url=str(config.credentials.url), anon_key=config.credentials.anon_key) as auth:
            session = auth.sign_up(email, password)
        if session is None:
            console.print("Check your inbox to confirm the account, then run [bold]pagenote login[/bold].")
            return
        SessionStore(config.local.state_dir).save(session)
    console.print(f"Account created; signed in as [bold]{escape(session.user.email)}[/bold].")


@app.command()
def logout(ctx: typer.Context) -> None:
    """Sign out and forget the local session."""

    with _handle_errors():
        config = _resolve_config(ctx)
        store = SessionStore(config.local.state_dir)
        session = store.load()
        if session is None:
            console.print("Not signed in.")
            return
        try:
            with AuthClient(base_url=str(config.credentials.url), anon_key=config.credentials.anon_key) as auth:
                auth.sign_out(session)
        finally:
            store.clear()
    console.print("Signed out.")


@app.command()
def whoami(ctx: typer.Context) -> None:
    """Show the signed-in user."""

    with _handle_errors():
        session = _require_session(_resolve_config(ctx))
    console.print(f"{escape(session.user.email)} [page.id]{escape(session.user.id)}[/page.id]")


# ----------------------------------------------------------------------
# Pages
# ----------------------------------------------------------------------
@pages_app.command("list")
def list_pages(
    ctx: typer.Context,
    collapsed: bool = typer.Option(False, "--collapsed", help="Show only root-level pages"),
) -> None:
    """Print the page tree."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        tree = workspace.tree
        if not len(tree):
            console.print("[muted]No pages yet. Create one with[/muted] pagenote pages new")
            return
        root = Tree(f"[bold]{escape(workspace.user.email)}[/bold]")
        _add_nodes(root, tree.build_nodes(workspace.selection.expanded), show_all=not collapsed)
        console.print(root)
        orphans = tree.orphans()
        if orphans:
            table = Table(title="Pages with a missing parent")
            table.add_column("Title")
            table.add_column("ID")
            table.add_column("Missing parent")
            for page in orphans:
                table.add_row(escape(page.title), escape(page.id), escape(page.parent_id or ""))
            console.print(table)


@pages_app.command("new")
def new_page(
    ctx: typer.Context,
    title: str = typer.Option("", "--title", "-t", help="Page title (defaults to the configured title)"),
    parent_id: Optional[str] = typer.Option(None, "--parent", "-p", help="ID of the parent page"),
) -> None:
    """Create a page, optionally under a parent."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        page = workspace.create_page(parent_id=parent_id, title=title)
        if page is None:
            raise typer.Exit(code=1)
    console.print(
        f"[success]Created[/success] [page.title]{escape(page.title)}[/page.title] [page.id]{escape(page.id)}[/page.id]"
    )


@pages_app.command("show")
def show_page(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="ID of the page"),
    html: bool = typer.Option(False, "--html", help="Print rendered HTML instead of a terminal preview"),
) -> None:
    """Preview a page."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        _require_page(workspace, page_id)
        page = workspace.tree.get(page_id)
    if html:
        console.print(ContentConverter().render_document(page.title, page.text), markup=False, highlight=False)
        return
    console.rule(f"[page.title]{escape(page.title)}[/page.title]")
    console.print(Markdown(page.text))


@pages_app.command("edit")
def edit_page(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="ID of the page"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", help="New Markdown content"),
    file: Optional[Path] = typer.Option(
        None, "--file", "-f", exists=True, dir_okay=False, help="Read the new content from a file"
    ),
) -> None:
    """Change a page's title or content; opens $EDITOR when neither is given."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        _require_page(workspace, page_id)
        session = workspace.select_page(page_id)
        if file is not None:
            content = file.read_text(encoding="utf-8")
        if title is None and content is None:
            content = typer.edit(session.content, extension=".md")
            if content is None:
                console.print("[muted]Editor closed without changes.[/muted]")
                return

        if title is not None:
            workspace.edit("title", title)
        if content is not None:
            workspace.edit("content", content)

        if not session.title.strip():
            console.print("[error]Title cannot be blank; nothing was saved.[/error]")
            raise typer.Exit(code=1)
        if not session.dirty:
            workspace.editor.close()
            console.print("[muted]No changes.[/muted]")
            return
        if workspace.save() is None:
            raise typer.Exit(code=1)
        saved_at = workspace.editor.status.last_saved_at
    console.print(f"[success]Saved[/success] at {saved_at:%H:%M:%S}.")


@pages_app.command("move")
def move_page(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="ID of the page to move"),
    parent_id: Optional[str] = typer.Option(None, "--parent", "-p", help="New parent ID (omit for root level)"),
) -> None:
    """Move a page under another page or to the root level."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        _require_page(workspace, page_id)
        page = workspace.move_page(page_id, parent_id)
        if page is None:
            raise typer.Exit(code=1)
    target = parent_id or "the root level"
    console.print(f"[success]Moved[/success] [page.title]{escape(page.title)}[/page.title] to {escape(target)}.")


@pages_app.command("delete")
def delete_page(
    ctx: typer.Context,
    page_id: str = typer.Argument(..., help="ID of the page to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a page. Its children stay behind with a missing parent."""

    with _handle_errors(), _open_workspace(ctx) as workspace:
        _require_page(workspace, page_id)
        page = workspace.tree.get(page_id)
        children = workspace.tree.children_of(page_id)
        if not yes:
            prompt = f"Delete '{page.title}'"
            if children:
                prompt += f" ({len(children)} child page(s) will lose their parent)"
            typer.confirm(prompt + "?", abort=True)
        if not workspace.delete_page(page_id):
            raise typer.Exit(code=1)
    console.print(f"[success]Deleted[/success] [page.title]{escape(page.title)}[/page.title].")


# ----------------------------------------------------------------------
# Export and theme
# ----------------------------------------------------------------------
@app.command()
def export(
    ctx: typer.Context,
    output: Path = typer.Option(..., "--output", "-o", help="Directory that will receive the page tree"),
    html: bool = typer.Option(False, "--html", help="Also write a rendered page.html next to each page"),
    force: bool = typer.Option(False, "--force", help="Write into a non-empty directory"),
) -> None:
    """Export all pages as Markdown files with frontmatter."""

    output = output.resolve()
    if output.exists() and any(output.iterdir()) and not force:
        raise typer.BadParameter(f"{output} is not empty. Use --force to write into it anyway.")

    with _handle_errors(), _open_workspace(ctx) as workspace:
        repository = LocalRepository(output, converter=ContentConverter() if html else None)
        result = repository.write_tree(workspace.tree)

    table = Table(title="Export Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Exported pages", str(result.exported_pages))
    table.add_row("Pages with a missing parent", str(result.orphaned_pages))
    table.add_row("Pages in a parent cycle", str(result.cyclic_pages))
    console.print(table)


@theme_app.command("show")
def show_theme(ctx: typer.Context) -> None:
    """Print the current theme."""

    state = _load_theme(_state_dir(ctx))
    console.print(state.theme.value)


@theme_app.command("toggle")
def toggle_theme(ctx: typer.Context) -> None:
    """Switch between light and dark."""

    state = _load_theme(_state_dir(ctx))
    theme = state.toggle()
    console.print(f"Theme set to [bold]{theme.value}[/bold].")


def run() -> None:
    """Entry point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
