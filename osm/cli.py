# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""osm CLI - install, publish and search skill packages."""

from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from osm import __version__
from osm.core.config import Config, get_auth_token, load_config, save_auth_token
from osm.core.errors import OSMError
from osm.core.logging import setup_logging

console = Console()


@contextmanager
def handle_errors():
    """Render OSMError as a one-line failure and a non-zero exit."""
    try:
        yield
    except OSMError as e:
        raise click.ClickException(e.message)


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def _client(ctx: click.Context):
    """Registry client for this invocation (injectable through ctx.obj)."""
    from osm.client.registry_client import RegistryClient

    if ctx.obj.get("client") is None:
        config = _config(ctx)
        client = RegistryClient(config.api_url, timeout=config.http_timeout, token=get_auth_token(config))
        ctx.call_on_close(client.close)
        ctx.obj["client"] = client
    return ctx.obj["client"]


def _installer(ctx: click.Context):
    from osm.client.installer import Installer

    return Installer.from_config(_config(ctx), _client(ctx), project_dir=Path.cwd())


def _split_spec(spec: str) -> Tuple[str, Optional[str]]:
    """'name@range' -> (name, range); a bare name has no range."""
    name, sep, range_spec = spec.partition("@")
    return name, (range_spec if sep else None)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", envvar="OSM_CONFIG_PATH", default=None, help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """osm - package manager for skills."""
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(config_path)
    setup_logging("DEBUG" if verbose else "WARNING", "text")


# ── Install / remove / update ────────────────────────────────────────


@main.command()
@click.argument("package", required=False)
@click.pass_context
def install(ctx: click.Context, package: Optional[str]):
    """Install PACKAGE (name or name@range), or everything in osm.json."""
    with handle_errors():
        installer = _installer(ctx)
        if package:
            name, range_spec = _split_spec(package)
            entries = installer.install_package(name, range_spec)
        else:
            entries = installer.install()

    if not entries:
        console.print("[yellow]Nothing to install.[/]")
        return
    for name, entry in entries.items():
        console.print(f"[green]v[/] {name}@{entry.version} -> {entry.install_path}")


@main.command()
@click.argument("name")
@click.pass_context
def remove(ctx: click.Context, name: str):
    """Remove an installed package."""
    with handle_errors():
        removed = _installer(ctx).remove(name)

    if removed:
        console.print(f"[green]v[/] Removed {name}")
    else:
        console.print(f"[yellow]{name} is not installed.[/]")


@main.command()
@click.argument("names", nargs=-1)
@click.pass_context
def update(ctx: click.Context, names: Tuple[str, ...]):
    """Update NAMES (default: every locked package) to the newest allowed version."""
    with handle_errors():
        entries = _installer(ctx).update(list(names) or None)

    if not entries:
        console.print("[yellow]Nothing to update.[/]")
        return
    for name, entry in entries.items():
        console.print(f"[green]v[/] {name}@{entry.version}")


@main.command("list")
@click.pass_context
def list_installed(ctx: click.Context):
    """List packages recorded in osm-lock.json."""
    from osm.client.lockfile import read_lockfile

    with handle_errors():
        lockfile = read_lockfile(Path.cwd())

    if not lockfile.packages:
        console.print("[yellow]No packages installed.[/]")
        return

    table = Table(title=f"Installed ({len(lockfile.packages)})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Version", style="green")
    table.add_column("Path")
    for name, entry in sorted(lockfile.packages.items()):
        table.add_row(name, entry.version, entry.install_path)
    console.print(table)


# ── Registry queries ─────────────────────────────────────────────────


@main.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str):
    """Search the registry."""
    with handle_errors():
        listing = _client(ctx).search(query)

    if not listing.objects:
        console.print(f"[yellow]No packages match '{query}'.[/]")
        return

    table = Table(title=f"Search results ({listing.total})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Version", style="green")
    table.add_column("Downloads", justify="right")
    table.add_column("Description")
    for pkg in listing.objects:
        table.add_row(pkg.name, pkg.latest_version or "-", str(pkg.downloads), pkg.description[:60])
    console.print(table)


@main.command()
@click.argument("name")
@click.pass_context
def info(ctx: click.Context, name: str):
    """Show a package's metadata."""
    with handle_errors():
        document = _client(ctx).fetch_metadata(name)

    console.print(f"\n[bold cyan]{document.name}[/] {document.latest_tag or ''}")
    console.print(document.description)
    if document.author:
        console.print(f"[dim]author:[/] {document.author}")
    console.print(f"[dim]downloads:[/] {document.downloads}")
    console.print(f"[dim]versions:[/] {', '.join(document.versions)}")


@main.command()
@click.pass_context
def whoami(ctx: click.Context):
    """Show the user behind the saved token."""
    with handle_errors():
        user = _client(ctx).whoami()
    console.print(user.username)


@main.command()
@click.argument("directory", default=".", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def publish(ctx: click.Context, directory: str):
    """Publish the package in DIRECTORY (default: current directory)."""
    from osm.client.publisher import publish_directory

    with handle_errors():
        result = publish_directory(_client(ctx), Path(directory), max_bytes=_config(ctx).max_publish_bytes)
    console.print(f"[green]v[/] Published {result.name}@{result.version} ({result.digest[:12]})")


# ── Local state ──────────────────────────────────────────────────────


@main.group()
def token():
    """Manage the saved bearer token."""


@token.command("set")
@click.argument("value")
@click.pass_context
def token_set(ctx: click.Context, value: str):
    """Save VALUE as the bearer token."""
    path = save_auth_token(_config(ctx), value)
    console.print(f"[green]v[/] Token saved to {path}")


@main.group()
def cache():
    """Manage the local artifact cache."""


@cache.command("clean")
@click.pass_context
def cache_clean(ctx: click.Context):
    """Remove every cached artifact."""
    from osm.client.cache import LocalCache

    removed = LocalCache(_config(ctx).cache_dir).clear()
    console.print(f"[green]v[/] Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")


# ── Registry administration ──────────────────────────────────────────


@main.group()
def registry():
    """Run or administer a registry."""


@registry.command("serve")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
@click.pass_context
def registry_serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the registry server."""
    import uvicorn

    from osm.registry.server import create_app

    config = _config(ctx)
    setup_logging(config.log_level, config.log_format)
    uvicorn.run(
        create_app(config),
        host=host or config.service_host,
        port=port or config.registry_port,
    )


@registry.command("add-user")
@click.argument("username")
@click.option("--email", default=None)
@click.option("--unverified", is_flag=True, help="Create the user without publish rights")
@click.pass_context
def registry_add_user(ctx: click.Context, username: str, email: Optional[str], unverified: bool):
    """Provision USERNAME and print a new bearer token."""
    from osm.registry.admin import provision_user

    with handle_errors():
        new_token = provision_user(_config(ctx).database_url, username, email=email, verified=not unverified)
    click.echo(new_token)


if __name__ == "__main__":
    main()
