"""Thin CLI wrapper for shipyard.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from shipyard import __version__
from shipyard.config import Settings, get_settings, print_settings_json
from shipyard.errors import ShipyardError
from shipyard.types import BuildMode, PreservePolicy

app = typer.Typer(
    name="shipyard",
    help="Shipyard - build packages on leased, cloud, container or local build hosts",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"shipyard version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Shipyard - build packages on leased, cloud, container or local build hosts."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
    else:
        tmp_dir_display = str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Config directory:    {settings.configdir}")
        console.print(f"  Output directory:    {settings.output_dir}")
        console.print(f"  Temp directory:      {tmp_dir_display}")
        console.print(f"  Lock directory:      {settings.lock_dir}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Default engine:      {settings.engine}")
        console.print(f"  Preserve:            {settings.preserve.value}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Retry budget:[/bold]")
        console.print(f"  Attempts:            {settings.retry_count}")
        console.print(f"  Timeout (seconds):   {settings.timeout}")
        console.print()
        console.print("[bold]Engines:[/bold]")
        console.print(f"  Pooler URL:          {settings.pooler_url or '(not set)'}")
        console.print(f"  ssh user:            {settings.ssh_user}")
        console.print(f"  Container runtime:   {settings.container_runtime}")
        console.print(f"  Lease timeout:       {settings.lease_timeout}")


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _platform_workdir(
    workdir: Path | None, platform_name: str, platform_names: list[str]
) -> Path | None:
    # Several platforms never share one working tree.
    if workdir is None or len(platform_names) == 1:
        return workdir
    return workdir / platform_name


def _effective_settings(configdir: Path | None, verbose: bool) -> Settings:
    settings = get_settings()
    if configdir is not None:
        settings = settings.model_copy(update={"configdir": configdir})
    configure_logging("DEBUG" if verbose else settings.log_level)
    return settings


def _make_driver(
    platform_name: str,
    project_name: str,
    settings: Settings,
    **options: object,
):
    from shipyard.driver import BuildDriver
    from shipyard.loader import load_platform, load_project

    platform = load_platform(platform_name, settings.configdir)
    project = load_project(
        project_name, settings.configdir, platform, output_dir=settings.output_dir
    )
    return BuildDriver(platform, project, settings=settings, **options)


ProjectArg = Annotated[str, typer.Argument(help="Project to build")]
PlatformsArg = Annotated[str, typer.Argument(help="Comma-separated platform names")]
WorkdirOpt = Annotated[
    Path | None, typer.Option("--workdir", "-w", help="Local working directory")
]
ConfigdirOpt = Annotated[
    Path | None,
    typer.Option("--configdir", "-c", help="Directory with platforms/ and projects/"),
]
EngineOpt = Annotated[
    str | None, typer.Option("--engine", "-e", help="Engine to use when the platform allows")
]
TargetOpt = Annotated[
    str | None, typer.Option("--target", "-t", help="Build on this host directly")
]
OnlyBuildOpt = Annotated[
    str | None,
    typer.Option("--only-build", help="Comma-separated components to build"),
]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")]


@app.command()
def build(
    project: ProjectArg,
    platforms: PlatformsArg,
    workdir: WorkdirOpt = None,
    configdir: ConfigdirOpt = None,
    engine: EngineOpt = None,
    target: TargetOpt = None,
    only_build: OnlyBuildOpt = None,
    remote_workdir: Annotated[
        str | None,
        typer.Option("--remote-workdir", help="Working directory on the build host"),
    ] = None,
    preserve: Annotated[
        PreservePolicy | None,
        typer.Option("--preserve", "-p", help="What to keep after the build"),
    ] = None,
    skipcheck: Annotated[
        bool, typer.Option("--skipcheck", help="Skip the build's check steps")
    ] = False,
    with_docker: Annotated[
        bool,
        typer.Option("--with-docker", help="Build inside a local container image"),
    ] = False,
    verbose: VerboseOpt = False,
) -> None:
    """Build a project for one or more platforms."""
    settings = _effective_settings(configdir, verbose)
    mode = BuildMode.CONTAINER_IMAGE if with_docker else BuildMode.MAKE

    platform_names = _split(platforms)
    for platform_name in platform_names:
        try:
            driver = _make_driver(
                platform_name,
                project,
                settings,
                workdir=_platform_workdir(workdir, platform_name, platform_names),
                engine=engine,
                target=target,
                preserve=preserve,
                remote_workdir=remote_workdir,
                build_mode=mode,
                only_build=_split(only_build),
                verbose=verbose,
                skipcheck=skipcheck,
            )
            driver.run()
        except ShipyardError as e:
            console.print(f"[red]Build of {project} for {platform_name} failed: {e}[/red]")
            raise typer.Exit(code=1) from None
        except ValidationError as e:
            console.print(f"[red]Invalid definition for {platform_name}:[/red]")
            console.print(str(e))
            raise typer.Exit(code=1) from None

        info = driver.build_host_info()
        console.print(
            f"[green]✓ Built {project} for {platform_name}[/green] "
            f"on {info.name or 'n/a'} ({info.engine})"
        )


@app.command()
def inspect(
    project: ProjectArg,
    platforms: PlatformsArg,
    configdir: ConfigdirOpt = None,
    engine: EngineOpt = None,
    target: TargetOpt = None,
    only_build: OnlyBuildOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Print the resolved components of a project as JSON."""
    settings = _effective_settings(configdir, verbose)

    for platform_name in _split(platforms):
        try:
            driver = _make_driver(
                platform_name,
                project,
                settings,
                engine=engine,
                target=target,
                only_build=_split(only_build),
            )
        except ShipyardError as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1) from None
        except ValidationError as e:
            err_console.print(str(e))
            raise typer.Exit(code=1) from None
        typer.echo(json.dumps(driver.project.component_list(), indent=2))


@app.command()
def render(
    project: ProjectArg,
    platforms: PlatformsArg,
    workdir: WorkdirOpt = None,
    configdir: ConfigdirOpt = None,
    only_build: OnlyBuildOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Render the build files locally without starting an engine."""
    settings = _effective_settings(configdir, verbose)

    platform_names = _split(platforms)
    for platform_name in platform_names:
        try:
            driver = _make_driver(
                platform_name,
                project,
                settings,
                workdir=_platform_workdir(workdir, platform_name, platform_names),
                only_build=_split(only_build),
            )
            rendered = driver.render()
        except ShipyardError as e:
            console.print(f"[red]Render of {project} for {platform_name} failed: {e}[/red]")
            raise typer.Exit(code=1) from None
        except ValidationError as e:
            console.print(str(e))
            raise typer.Exit(code=1) from None
        console.print(f"[green]Rendered {project} for {platform_name} in {rendered}[/green]")


if __name__ == "__main__":
    app()
