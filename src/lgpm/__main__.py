"""CLI entry point for lgpm, the module package manager."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
from rich.console import Console
from rich.table import Table

from lgpm import __version__
from lgpm.config import ConfigError, Settings
from lgpm.events import BaseEvent, PackageInstallFinished
from lgpm.log import LOG_LEVELS, setup_logging
from lgpm.manager import PackageManager
from lgpm.packages.catalog import CatalogEntry

console = Console()
err_console = Console(stderr=True)


def _run(ctx: click.Context, action: Callable[[PackageManager], Awaitable[Any]]) -> Any:
    """Run ``action`` against a manager built from the CLI settings."""

    async def main() -> Any:
        async with PackageManager(
            ctx.obj["settings"], fetcher=ctx.obj.get("fetcher")
        ) as pm:
            return await action(pm)

    return asyncio.run(main())


def _print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _packages_table(entries: list[CatalogEntry], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Type", style="yellow")
    table.add_column("Status")
    table.add_column("Description", overflow="fold")

    for entry in entries:
        if entry.installed:
            status = "[green]✓ Installed[/green]"
            if entry.installed_version:
                status += f" [dim]({entry.installed_version})[/dim]"
        else:
            status = "[dim]Available[/dim]"
        table.add_row(
            entry.name,
            entry.package.category,
            entry.package.type,
            status,
            entry.package.description,
        )
    return table


@click.group()
@click.version_option(version=__version__, prog_name="lgpm")
@click.option(
    "--modules-dir",
    type=click.Path(file_okay=False),
    help="Core modules directory",
)
@click.option(
    "--ui-plugins-dir",
    type=click.Path(file_okay=False),
    help="UI plugins directory (default: 'plugins' next to the modules dir)",
)
@click.option("--release", help="Release tag to install from (default: latest)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Config file (default: ~/.lgpm/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="warning",
    show_default=True,
    help="Log level",
)
@click.pass_context
def cli(
    ctx: click.Context,
    modules_dir: str | None,
    ui_plugins_dir: str | None,
    release: str | None,
    config_path: str | None,
    log_level: str,
):
    """lgpm - install and browse host application modules."""
    setup_logging(log_level, console=err_console)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings.load(
            config_path=config_path,
            modules_dir=modules_dir,
            ui_plugins_dir=ui_plugins_dir,
            release=release,
        )
    except ConfigError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command("list")
@click.option("--category", "-c", help="Only packages in this category")
@click.option("--installed", is_flag=True, help="Only installed packages")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_packages(ctx: click.Context, category: str | None, installed: bool, as_json: bool):
    """List available packages."""
    entries = _run(ctx, lambda pm: pm.get_packages(category))
    if installed:
        entries = [e for e in entries if e.installed]

    if as_json:
        _print_json([e.to_dict() for e in entries])
        return

    if not entries:
        console.print("[yellow]No packages found[/yellow]")
        return

    console.print(_packages_table(entries, f"Packages ({len(entries)})"))


@cli.command()
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, as_json: bool):
    """Search packages by name or description."""
    results = _run(ctx, lambda pm: pm.search(query))

    if as_json:
        _print_json([e.to_dict() for e in results])
        return

    if not results:
        console.print(f"[yellow]No packages found matching '{query}'[/yellow]")
        return

    console.print(
        _packages_table(results, f"{len(results)} package(s) matching '{query}'")
    )


@cli.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def info(ctx: click.Context, name: str, as_json: bool):
    """Show detailed package information."""
    entries = _run(ctx, lambda pm: pm.get_packages())
    entry = next((e for e in entries if e.name == name), None)
    if entry is None:
        err_console.print(f"[red]Error: package '{name}' not found[/red]")
        sys.exit(1)

    if as_json:
        _print_json(entry.to_dict())
        return

    pkg = entry.package
    console.print(f"[bold]Name:[/bold] {pkg.name}")
    console.print(f"[bold]Description:[/bold] {pkg.description}")
    console.print(f"[bold]Category:[/bold] {pkg.category}")
    console.print(f"[bold]Type:[/bold] {pkg.type}")
    console.print(f"[bold]Author:[/bold] {pkg.author}")
    console.print(f"[bold]Module Name:[/bold] {pkg.installed_name}")
    deps = ", ".join(pkg.dependencies) if pkg.dependencies else "none"
    console.print(f"[bold]Dependencies:[/bold] {deps}")
    installed = "yes" if entry.installed else "no"
    if entry.installed_version:
        installed += f" ({entry.installed_version})"
    console.print(f"[bold]Installed:[/bold] {installed}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def categories(ctx: click.Context, as_json: bool):
    """List available categories."""
    found = _run(ctx, lambda pm: pm.get_categories())

    if as_json:
        _print_json(found)
        return

    if not found:
        console.print("[yellow]No categories found[/yellow]")
        return

    console.print("[bold]Available categories:[/bold]")
    for category in found:
        console.print(f"  {category}")


@cli.command()
@click.argument("names", nargs=-1)
@click.option(
    "--file",
    "file_path",
    type=click.Path(dir_okay=False),
    help="Install from a local .lgx file",
)
@click.option(
    "--skip-if-not-newer/--always-install",
    default=None,
    help="Leave modules alone when the installed version is not older",
)
@click.pass_context
def install(
    ctx: click.Context,
    names: tuple[str, ...],
    file_path: str | None,
    skip_if_not_newer: bool | None,
):
    """Install packages (with dependencies) or a local archive.

    Examples:
        lgpm install waku_module chat_ui
        lgpm install --file ./waku_module.lgx
    """
    settings: Settings = ctx.obj["settings"]

    if file_path:
        if names:
            raise click.UsageError("Give either package names or --file, not both")
        _install_file(ctx, Path(file_path), bool(skip_if_not_newer))
        return

    if not names:
        raise click.UsageError("install requires at least one package name")

    if skip_if_not_newer is not None:
        settings.skip_if_not_newer = skip_if_not_newer

    def report(event: BaseEvent) -> None:
        if not isinstance(event, PackageInstallFinished):
            return
        if event.skipped:
            console.print(f"  {event.package} [dim]up to date[/dim]")
        elif event.success:
            console.print(f"  {event.package} [green]done[/green]")
        else:
            console.print(f"  {event.package} [red]FAILED[/red] [dim]{event.error}[/dim]")

    async def run(pm: PackageManager):
        order = await pm.resolve_dependencies(names)
        console.print(
            f"Will install {len(order)} package(s): {', '.join(order)}"
        )
        pm.subscribe(report)
        return await pm.install_packages(names)

    result = _run(ctx, run)

    installed = len(result.outcomes) - len(result.failed)
    if result.success:
        console.print(
            f"[green]✓ Done. {installed} package(s) installed successfully.[/green]"
        )
        return

    if result.error:
        err_console.print(f"[red]✗ {result.error}[/red]")
    else:
        err_console.print(
            f"[red]✗ Completed with errors. {installed} installed, "
            f"{len(result.failed)} failed.[/red]"
        )
    sys.exit(1)


def _install_file(ctx: click.Context, path: Path, skip_if_not_newer: bool) -> None:
    if not path.is_file():
        err_console.print(f"[red]Error: file not found: {path}[/red]")
        sys.exit(1)

    async def run(pm: PackageManager):
        return pm.install_file(path, skip_if_not_newer=skip_if_not_newer)

    result = _run(ctx, run)
    if not result.success:
        err_console.print(f"[red]✗ {result.message}[/red]")
        sys.exit(1)

    if result.skipped:
        console.print(f"[yellow]{result.message}[/yellow]")
    else:
        console.print(f"[green]✓ Installed {result.module_name}[/green]")
        console.print(f"[dim]Installed to: {result.install_path}[/dim]")


if __name__ == "__main__":
    cli()
