"""CLI application for Quire using Rich and Typer."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.tree import Tree

from quire.core.config import setup_logging
from quire.core.errors import WorkspaceError
from quire.core.factory import build_workspace
from quire.core.file_tree import TreeEvent
from quire.core.types import FileNode, Vault
from quire.core.workspace import Workspace

T = TypeVar("T")

app = typer.Typer(
    name="quire",
    help="Quire - vaults, file tree and tabs from the terminal",
    no_args_is_help=True,
)

console = Console()


class PromptFolderChooser:
    """Folder chooser that asks on the terminal. Empty input cancels."""

    async def choose_folder(self) -> str | None:
        answer = await asyncio.to_thread(Prompt.ask, "Vault folder", default="")
        answer = answer.strip()
        return _absolute(answer) if answer else None


def _absolute(path: str) -> str:
    return str(Path(path).expanduser().resolve())


def _run(
    action: Callable[[Workspace], Awaitable[T]],
    interactive: bool = False,
    watch: bool = False,
) -> T:
    """Start a workspace, run ``action`` against it and close it."""

    async def _main() -> T:
        workspace = build_workspace(
            chooser=PromptFolderChooser() if interactive else None,
            watch_enabled=watch,
        )
        await workspace.start()
        try:
            return await action(workspace)
        finally:
            await workspace.close()

    try:
        return asyncio.run(_main())
    except WorkspaceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _find_vault(workspace: Workspace, vault_id: str) -> Vault:
    """Resolve a full id or unique id prefix, as shown by ``quire vaults``."""
    matches = [v for v in workspace.vaults.vaults if v.id.startswith(vault_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        console.print("[yellow]Multiple matches. Be more specific.[/yellow]")
    else:
        console.print(f"[red]Vault not found: {vault_id}[/red]")
    raise typer.Exit(1)


def _add_nodes(branch: Tree, nodes: tuple[FileNode, ...]) -> None:
    for node in nodes:
        if node.is_folder:
            _add_nodes(branch.add(f"[bold blue]{node.name}/[/bold blue]"), node.children or ())
        elif node.is_image:
            branch.add(f"[magenta]{node.name}[/magenta]")
        else:
            branch.add(node.name)


def _render_tree(workspace: Workspace) -> None:
    vault = workspace.current_vault
    if vault is None:
        console.print("[dim]No vault yet. Use `quire add PATH`.[/dim]")
        return
    root = Tree(f"[bold]{vault.name}[/bold] [dim]{vault.path}[/dim]")
    _add_nodes(root, workspace.file_tree.nodes)
    console.print(root)


def _print_error(workspace: Workspace) -> None:
    error = workspace.snapshot().error
    if error:
        console.print(f"[yellow]Warning: {error}[/yellow]")


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """Configure logging for every command."""
    setup_logging()
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@app.command()
def vaults():
    """List all vaults."""

    async def _list(workspace: Workspace) -> None:
        if not workspace.vaults.vaults:
            console.print("[dim]No vaults yet.[/dim]")
            return

        table = Table(title="Vaults", show_header=True)
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Path")
        table.add_column("Status")
        for vault in workspace.vaults.vaults:
            status = "[green]default[/green]" if vault.is_default else ""
            table.add_row(vault.id[:8], vault.name, vault.path, status)
        console.print(table)

    _run(_list)


@app.command()
def add(
    path: Optional[str] = typer.Argument(None, help="Folder to add (prompted if omitted)"),
):
    """Add a folder as a vault."""

    async def _add(workspace: Workspace) -> None:
        vault = await workspace.add_vault(_absolute(path) if path else None)
        if vault is None:
            console.print("[yellow]Vault selection cancelled: a folder must be selected[/yellow]")
            raise typer.Exit(1)
        default = " (default)" if vault.is_default else ""
        console.print(f"[green]Added vault {vault.name}{default}: {vault.id[:8]}[/green]")

    _run(_add, interactive=path is None)


@app.command()
def default(vault_id: str = typer.Argument(..., help="Vault id or id prefix")):
    """Make a vault the default one."""

    async def _default(workspace: Workspace) -> None:
        vault = await workspace.set_default_vault(_find_vault(workspace, vault_id).id)
        console.print(f"[green]Default vault: {vault.name}[/green]")

    _run(_default)


@app.command()
def remove(vault_id: str = typer.Argument(..., help="Vault id or id prefix")):
    """Forget a vault. Files on disk are left alone."""

    async def _remove(workspace: Workspace) -> None:
        vault = _find_vault(workspace, vault_id)
        await workspace.remove_vault(vault.id)
        console.print(f"[yellow]Removed vault {vault.name}[/yellow]")
        current = workspace.current_vault
        if current is not None:
            console.print(f"[dim]Default vault is now {current.name}[/dim]")

    _run(_remove)


@app.command()
def rename(
    vault_id: str = typer.Argument(..., help="Vault id or id prefix"),
    name: str = typer.Argument(..., help="New display name"),
):
    """Rename a vault."""

    async def _rename(workspace: Workspace) -> None:
        vault = await workspace.rename_vault(_find_vault(workspace, vault_id).id, name)
        console.print(f"[green]Vault renamed to {vault.name}[/green]")

    _run(_rename)


@app.command()
def tree():
    """Show the file tree of the default vault."""

    async def _tree(workspace: Workspace) -> None:
        _render_tree(workspace)
        _print_error(workspace)

    _run(_tree)


@app.command("open")
def open_file(path: str = typer.Argument(..., help="Path of a file in the default vault")):
    """Open a file in a tab."""

    async def _open(workspace: Workspace) -> None:
        tree = workspace.file_tree.tree
        node = tree.find_by_path(path) or tree.find_by_path(_absolute(path))
        if node is None or not node.is_file:
            console.print(f"[red]File not found in vault: {path}[/red]")
            raise typer.Exit(1)
        await workspace.open_file(node)
        snapshot = workspace.snapshot()
        if snapshot.stats is not None:
            console.print(
                f"[dim]{snapshot.stats.word_count} words, "
                f"{snapshot.stats.char_count} characters[/dim]"
            )
        _print_error(workspace)
        console.print(f"[green]Opened {node.name}[/green]")

    _run(_open)


@app.command()
def tabs():
    """List open tabs of the default vault."""

    async def _tabs(workspace: Workspace) -> None:
        snapshot = workspace.snapshot()
        if not snapshot.tabs:
            console.print("[dim]No open tabs.[/dim]")
            return

        table = Table(title="Tabs", show_header=True)
        table.add_column("#", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Path")
        table.add_column("Status")
        for i, tab in enumerate(snapshot.tabs, 1):
            status = "[green]active[/green]" if tab.id == snapshot.active_tab_id else ""
            table.add_row(str(i), tab.name, tab.path, status)
        console.print(table)

    _run(_tabs)


@app.command()
def settings(
    key: Optional[str] = typer.Argument(None, help="Setting to change"),
    value: Optional[str] = typer.Argument(None, help="New value"),
):
    """View settings, or change one with KEY VALUE."""

    async def _settings(workspace: Workspace) -> None:
        if key is not None:
            if value is None:
                console.print("[red]Usage: quire settings KEY VALUE[/red]")
                raise typer.Exit(1)
            try:
                await workspace.update_setting(key, value)
            except KeyError:
                console.print(f"[red]Unknown setting: {key}[/red]")
                raise typer.Exit(1)
            except ValidationError as e:
                console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
                raise typer.Exit(1)
            console.print(f"[green]{key} set to {value}[/green]")

        table = Table(title="Settings", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for name, current in workspace.settings.settings.model_dump().items():
            table.add_row(name, str(current))
        console.print(table)

    _run(_settings)


@app.command()
def template(
    folder: str = typer.Argument(..., help="Folder the template belongs to"),
    content: Optional[str] = typer.Option(None, "--set", "-s", help="New template text"),
    remove: bool = typer.Option(False, "--remove", help="Delete the template"),
):
    """Show, set or remove the note template of a folder."""
    folder_path = _absolute(folder)

    async def _template(workspace: Workspace) -> None:
        if remove:
            await workspace.remove_template(folder_path)
            console.print(f"[yellow]Template removed for {folder_path}[/yellow]")
            return
        if content is not None:
            await workspace.set_template(folder_path, content)
            console.print(f"[green]Template saved for {folder_path}[/green]")
            return

        current = workspace.templates.get_template(folder_path)
        if current is None:
            console.print(f"[dim]No template for {folder_path}[/dim]")
        else:
            console.print(Panel(current, title=f"Template for {folder_path}", border_style="blue"))

    _run(_template)


@app.command()
def watch():
    """Follow changes to the default vault until interrupted."""

    async def _watch(workspace: Workspace) -> None:
        vault = workspace.current_vault
        if vault is None:
            console.print("[dim]No vault yet. Use `quire add PATH`.[/dim]")
            return

        def on_loaded(tree) -> None:
            console.print(f"[dim]Reloaded {len(tree)} entries[/dim]")
            _render_tree(workspace)

        workspace.file_tree.add_listener(TreeEvent.TREE_LOADED, on_loaded)
        console.print(
            Panel.fit(
                f"[bold blue]Watching {vault.name}[/bold blue]\n"
                f"[dim]{vault.path}[/dim]\n\n"
                "Press Ctrl+C to stop.",
                title="Quire",
                border_style="blue",
            )
        )
        _render_tree(workspace)
        if workspace.watcher.error is not None:
            console.print(f"[red]{workspace.watcher.error}[/red]")
            return
        await asyncio.Event().wait()

    try:
        _run(_watch, watch=True)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
