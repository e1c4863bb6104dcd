#!/usr/bin/env python3
"""task-tree CLI - inspect task records: invariants, golden path, titles."""
from __future__ import annotations
import json
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .logging import configure_logging, get_console
from .models import load_config, load_records
from .tasks import (
    TaskStore,
    TaskTreeError,
    display_title,
    get_working_task_path,
    is_truncated,
    would_create_cycle,
)

console = get_console()


class AliasedGroup(click.Group):
    """Support command aliases."""

    def get_command(self, ctx, cmd_name):
        aliases = {
            "c": "check",
            "p": "path",
            "t": "tree",
            "ls": "tree",
        }
        cmd_name = aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option("--repo", "-r", default=".", help="Directory holding .tasktreerc (default: current dir)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None, help="Log level")
@click.version_option(version="1.0.0", prog_name="tasktree")
@click.pass_context
def cli(ctx, repo: str, output_json: bool, log_level: Optional[str]):
    """task-tree - inspect a tree of tasks with dependencies.

    \b
    Quick start:
      tasktree check tasks.json        # Validate invariants
      tasktree path tasks.json         # Golden path of the working task
      tasktree tree tasks.json -s 3    # Tree view, task 3 selected
      tasktree cycle tasks.json 1 2    # Would 1 -> 2 create a cycle?

    \b
    Aliases:
      c → check, p → path, t/ls → tree
    """
    repo_path = Path(repo).resolve()
    try:
        config = load_config(repo_path)
    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Invalid .tasktreerc:[/red] {escape(str(e))}")
        sys.exit(2)
    configure_logging(level=log_level or config.log_level)

    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo_path
    ctx.obj["config"] = config
    ctx.obj["json"] = output_json or config.output_format == "json"

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load_store(file: str) -> TaskStore:
    """Load records and build a validated store, exiting on bad input."""
    try:
        return TaskStore.from_records(load_records(Path(file)))
    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Invalid task records:[/red] {escape(str(e))}")
        sys.exit(2)
    except TaskTreeError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def check(ctx, file: str):
    """Validate tree, dependency and working-task invariants."""
    store = _load_store(file)
    if ctx.obj["json"]:
        click.echo(json.dumps({"ok": True, "tasks": len(store)}))
        return
    console.print(f"[green]✓ {len(store)} tasks, all invariants hold[/green]")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def path(ctx, file: str):
    """Show the golden path of the working task."""
    store = _load_store(file)
    golden = get_working_task_path(store)

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "workingTaskId": golden.working_task_id,
            "ancestorPath": sorted(golden.ancestor_path),
            "directChildren": [{"id": c.id, "isDone": c.is_done} for c in golden.direct_children],
        }))
        return

    if golden.is_empty:
        console.print("[dim]No task is currently being worked on[/dim]")
        return

    trail = escape(" → ".join(store.path_to_root(golden.working_task_id)))
    console.print(Panel(f"[bold yellow]{trail}", title="⭐ Golden path", border_style="yellow"))

    table = Table(title="Direct children", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Done")
    for child in golden.direct_children:
        task = store.find_task(child.id)
        table.add_row(str(child.id), escape(task.title) if task else "[red]<missing>", "✓" if child.is_done else "")
    console.print(table)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--selected", "-s", type=int, multiple=True, help="Selected task id (repeatable)")
@click.option("--threshold", type=click.IntRange(10, 200), default=None, help="Text length threshold")
@click.pass_context
def tree(ctx, file: str, selected: tuple[int, ...], threshold: Optional[int]):
    """Render the task forest with truncated titles."""
    store = _load_store(file)
    threshold = threshold or ctx.obj["config"].text_length_threshold
    selection = set(selected)
    golden = get_working_task_path(store)

    if ctx.obj["json"]:
        click.echo(json.dumps([
            {
                "id": t.id,
                "title": display_title(t, threshold, t.id in selection),
                "truncated": is_truncated(t, threshold, t.id in selection),
                "golden": golden.contains(t.id),
            }
            for t in store
        ], ensure_ascii=False))
        return

    def label(task) -> str:
        text = escape(display_title(task, threshold, task.id in selection))
        if task.currently_working:
            text = f"[bold yellow]▶ {text}[/bold yellow]"
        elif golden.contains(task.id):
            text = f"[yellow]{text}[/yellow]"
        elif task.is_done:
            text = f"[green]✓ {text}[/green]"
        if task.text_locked:
            text += " 🔒"
        if task.dependencies:
            text += f" [dim](depends on {', '.join(map(str, task.dependencies))})[/dim]"
        return f"[cyan]{task.id}[/cyan] {text}"

    def add_children(node: Tree, task) -> None:
        for child_id in task.children:
            child = store.find_task(child_id)
            if child is not None:
                add_children(node.add(label(child)), child)

    root = Tree("[bold]🌳 Tasks")
    for task in store:
        if task.is_root:
            add_children(root.add(label(task)), task)
    console.print(root)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("from_id", type=int)
@click.argument("to_id", type=int)
@click.pass_context
def cycle(ctx, file: str, from_id: int, to_id: int):
    """Check whether FROM_ID depending on TO_ID would create a cycle."""
    store = _load_store(file)
    result = would_create_cycle(store, from_id, to_id)

    if ctx.obj["json"]:
        click.echo(json.dumps({"from": from_id, "to": to_id, "wouldCreateCycle": result}))
    elif result:
        console.print(f"[red]✗ {from_id} → {to_id} would create a cycle[/red]")
    else:
        console.print(f"[green]✓ {from_id} → {to_id} is safe[/green]")

    if result:
        sys.exit(1)


def main():
    """Entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
