"""CLI for prompt-registry - read and sync versioned prompt templates."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .errors import RegistryError
from .merge import MergeStrategy
from .registry import Registry
from .sync import ErrorPolicy, SyncOptions

console = Console()
error_console = Console(stderr=True)


def get_registry_file() -> Path:
    """Get the default registry file path."""
    return Path.cwd() / "registry.json"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


def _load_registry(ctx: click.Context) -> Registry:
    registry_file = ctx.obj["registry_file"]
    try:
        return Registry.from_file(registry_file)
    except ValueError as e:
        error_console.print(f"[red]Error loading registry:[/red] {e}")
        sys.exit(1)


def _parse_vars(var: tuple) -> dict[str, str]:
    variables = {}
    for v in var:
        if "=" not in v:
            error_console.print(f"[red]Invalid variable format '{v}'. Use key=value.[/red]")
            sys.exit(1)
        key, value = v.split("=", 1)
        variables[key] = value
    return variables


@click.group()
@click.option(
    "--registry-file",
    "-f",
    type=click.Path(path_type=Path),
    default=None,
    help="Registry JSON file (default: ./registry.json)",
)
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, registry_file: Optional[Path], verbose: bool) -> None:
    """Prompt Registry - Versioned prompt templates with remote sync."""
    ctx.ensure_object(dict)
    ctx.obj["registry_file"] = registry_file or get_registry_file()
    _configure_logging(verbose)


@cli.command("list")
@click.pass_context
def list_prompts(ctx: click.Context) -> None:
    """List all prompts in the local registry."""
    registry = _load_registry(ctx)
    prompts = registry.list_prompts()

    if not prompts:
        console.print("[yellow]No prompts found.[/yellow]")
        console.print(f"[dim]Looking in: {ctx.obj['registry_file']}[/dim]")
        console.print("[dim]Run 'prompt-registry sync' to pull the remote registry.[/dim]")
        return

    table = Table(title="Prompts", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Latest", style="magenta")
    table.add_column("Versions", style="magenta")
    table.add_column("Description", style="dim")

    for prompt_id in prompts:
        latest = registry.get_version(prompt_id)
        desc = latest.description
        table.add_row(
            prompt_id,
            latest.version,
            ", ".join(registry.list_versions(prompt_id)),
            desc[:50] + "..." if len(desc) > 50 else desc,
        )

    console.print(table)


@cli.command()
@click.argument("prompt_id")
@click.pass_context
def versions(ctx: click.Context, prompt_id: str) -> None:
    """Show the version history of a prompt."""
    registry = _load_registry(ctx)

    try:
        tree = registry.history(prompt_id)
    except RegistryError as e:
        error_console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"{prompt_id} (latest {tree['latest']})", box=box.SIMPLE)
    table.add_column("Version", style="cyan")
    table.add_column("Previous", style="dim")
    table.add_column("Next", style="dim")
    table.add_column("Variants", style="green")
    table.add_column("Description", style="dim")

    for version, node in tree["versions"].items():
        marker = " *" if version == tree["latest"] else ""
        table.add_row(
            version + marker,
            node["previous"] or "-",
            node["next"] or "-",
            ", ".join(node.get("variants") or {}) or "-",
            node.get("description", ""),
        )

    console.print(table)


@cli.command()
@click.argument("identifier")
@click.option("--var", "-V", multiple=True, help="Variable in key=value format")
@click.option("--model", "-m", default=None, help="Model name used to pick a template variant")
@click.option("--sync-on-missing", is_flag=True, help="Sync and retry if the prompt is unknown")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def get(
    ctx: click.Context,
    identifier: str,
    var: tuple,
    model: Optional[str],
    sync_on_missing: bool,
    as_json: bool,
) -> None:
    """Render a prompt, given as ID or ID@VERSION."""
    registry = _load_registry(ctx)
    variables = _parse_vars(var)

    try:
        rendered = registry.get(
            identifier, variables, model=model, sync_on_missing=sync_on_missing
        )
    except RegistryError as e:
        error_console.print(f"[red]{e.kind.value}:[/red] {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(rendered.to_dict(), indent=2))
        return

    console.print(Panel(rendered.prompt, title=f"Rendered: {rendered.id}", subtitle=rendered.category))


@cli.command()
@click.argument("query", required=False, default=None)
@click.option("--category", "-c", default=None, help="Exact category filter")
@click.option("--tag", "-t", multiple=True, help="Tag filter (all must match)")
@click.option("--id", "prompt_id", default=None, help="Exact prompt id filter")
@click.option("--sync-on-empty", is_flag=True, help="Sync and retry if nothing matches")
@click.pass_context
def search(
    ctx: click.Context,
    query: Optional[str],
    category: Optional[str],
    tag: tuple,
    prompt_id: Optional[str],
    sync_on_empty: bool,
) -> None:
    """Search prompts by text, or by --category/--tag/--id filters."""
    registry = _load_registry(ctx)

    if query is not None:
        results = registry.search(query, sync_on_empty=sync_on_empty)
    else:
        filters = {"category": category, "tags": list(tag), "id": prompt_id}
        results = registry.search(filters, sync_on_empty=sync_on_empty)

    if not results:
        console.print("[yellow]No matching prompts.[/yellow]")
        return

    table = Table(title=f"{len(results)} result(s)", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Version", style="magenta")
    table.add_column("Category", style="green")
    table.add_column("Tags", style="dim")

    for hit in results:
        table.add_row(hit.id, hit.version, hit.category, ", ".join(hit.tags))

    console.print(table)


@cli.command()
@click.option("--url", default=None, help="Remote registry URL")
@click.option("--force", is_flag=True, help="Ignore the cache and fetch")
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in MergeStrategy]),
    default=MergeStrategy.PREFER_LOCAL.value,
    show_default=True,
    help="Merge strategy when the remote has a newer version",
)
@click.option(
    "--error-policy",
    type=click.Choice([p.value for p in ErrorPolicy]),
    default=ErrorPolicy.WARN.value,
    show_default=True,
)
@click.option("--timeout", type=float, default=None, help="Timeout in seconds")
@click.pass_context
def sync(
    ctx: click.Context,
    url: Optional[str],
    force: bool,
    strategy: str,
    error_policy: str,
    timeout: Optional[float],
) -> None:
    """Synchronize the local registry with the remote registry."""
    registry = _load_registry(ctx)

    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=error_console,
        transient=True,
    ) as progress:
        task = progress.add_task("initializing", total=100)

        def on_progress(stage: str, percent: int) -> None:
            progress.update(task, description=stage, completed=percent)

        try:
            result = registry.sync(
                SyncOptions(
                    url=url,
                    force=force,
                    timeout=timeout,
                    progress_callback=on_progress,
                    error_policy=error_policy,
                    merge_strategy=strategy,
                )
            )
        except RegistryError as e:
            error_console.print(f"[red]Sync failed ({e.kind.value}):[/red] {e}")
            sys.exit(1)

    if not result.success:
        for error in result.errors:
            error_console.print(f"[red]Sync failed ({error.kind.value}):[/red] {error}")
        sys.exit(1)

    source = " [dim](from cache)[/dim]" if result.from_cache else ""
    console.print(
        f"[green]Synced[/green] {registry.metadata.sync_url}{source}: "
        f"{result.new_prompts} new, {result.updated_prompts} updated"
    )
    for warning in result.warnings:
        console.print(f"  [yellow]- {warning}[/yellow]")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show registry metadata."""
    registry = _load_registry(ctx)
    metadata = registry.info()

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Registry file", str(ctx.obj["registry_file"]))
    table.add_row("Prompts", str(len(registry)))
    for key, value in metadata.to_dict().items():
        table.add_row(key, str(value) if value is not None else "-")
    table.add_row("Default sync URL", registry.config.default_url())

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
