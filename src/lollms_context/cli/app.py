from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config.settings import ConfigurationError, get_settings
from ..domain.models import InclusionPolicy
from ..workflow.orchestrator import ContextWorkspace

app = typer.Typer(add_completion=False, help="Mark a workspace for LLM context and chat about it.")
console = Console()


def _report_error(message: str) -> None:
    console.print(f"[red]Lollms: {message}[/]")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def _global_options(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", file_okay=False, resolve_path=True, help="Workspace root directory (default: cwd)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    _configure_logging(verbose)
    ctx.obj = root or Path.cwd()


def _open_workspace(ctx: typer.Context) -> ContextWorkspace:
    settings = get_settings()
    settings.workspace_root = ctx.obj
    workspace = ContextWorkspace(settings, report_error=_report_error)
    asyncio.run(workspace.open())
    return workspace


@app.command()
def status(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., resolve_path=True),
) -> None:
    """
    Show the stored and effective policy of each path.
    """

    workspace = _open_workspace(ctx)
    table = Table(title="Context Policy")
    table.add_column("Path")
    table.add_column("Stored")
    table.add_column("Effective")
    for path in paths:
        table.add_row(
            str(path),
            workspace.store.explicit_policy(path).value,
            workspace.store.effective_policy(path).value,
        )
    console.print(table)


@app.command("list")
def list_entries(ctx: typer.Context) -> None:
    """
    Show every path with an explicit policy.
    """

    workspace = _open_workspace(ctx)
    entries = workspace.store.entries()
    if not entries:
        console.print("[yellow]No explicit policies recorded; everything is tree-only.[/]")
        return

    table = Table(title="Stored Policies")
    table.add_column("Path")
    table.add_column("Policy")
    for path, policy in entries:
        table.add_row(path, policy.value)
    console.print(table)


@app.command()
def cycle(ctx: typer.Context, path: Path = typer.Argument(..., resolve_path=True)) -> None:
    """
    Advance a path through tree-only -> full content -> signatures.
    """

    workspace = _open_workspace(ctx)
    policy = asyncio.run(workspace.cycle_policy(path))
    console.print(f"[green]✓[/] {path} -> [bold]{policy.value}[/]")


@app.command("set")
def set_policy(
    ctx: typer.Context,
    policy: InclusionPolicy = typer.Argument(..., case_sensitive=False),
    paths: List[Path] = typer.Argument(..., resolve_path=True),
    tree: bool = typer.Option(False, "--tree", help="Also record the policy on directories themselves."),
) -> None:
    """
    Apply a policy to files and to everything beneath directories.
    """

    workspace = _open_workspace(ctx)
    count = asyncio.run(workspace.set_policy(paths, policy, include_directories=tree))
    console.print(f"[green]✓[/] Set [bold]{policy.value}[/] on {count} path(s)")


@app.command()
def remove(ctx: typer.Context, path: Path = typer.Argument(..., resolve_path=True)) -> None:
    """
    Drop a file back to tree-only and regenerate the context.
    """

    workspace = _open_workspace(ctx)
    document = asyncio.run(workspace.remove_file(path))
    console.print(f"[green]✓[/] Removed {path}; {len(document.content_files)} file(s) still contribute content")


@app.command()
def generate(
    ctx: typer.Context,
    prompt: str = typer.Option("", "--prompt", "-p", help="Custom instructions for the document."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", dir_okay=False, help="Write to a file instead of stdout."),
) -> None:
    """
    Assemble the Markdown context document for the workspace.
    """

    workspace = _open_workspace(ctx)
    try:
        document = asyncio.run(workspace.generate_context(prompt))
    except ConfigurationError as exc:
        _report_error(str(exc))
        raise typer.Exit(code=1)

    if output is None:
        typer.echo(document.markdown)
        return

    output.write_text(document.markdown, encoding="utf-8")
    console.print(
        f"[green]✓[/] Wrote {output} ({len(document.files)} files in tree, "
        f"{len(document.content_files)} with content)"
    )


@app.command()
def chat(
    ctx: typer.Context,
    prompt: str = typer.Option("", "--prompt", "-p", help="Custom instructions for the document."),
) -> None:
    """
    Generate the context, then chat about it interactively.
    """

    from .chat import ChatLoop

    workspace = _open_workspace(ctx)
    asyncio.run(ChatLoop(workspace, console, custom_prompt=prompt).run())


def main() -> None:
    app()
