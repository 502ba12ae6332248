# cli.py
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from .config import Settings
from .resolver import resolve_version
from .roster import DEFAULT_VERSION_OVERRIDES, PROJECTS
from .runner import prepare_output_dir, run_harness
from .tasks import NoMatchingProjectsError, build_task_queue, select_projects
from .ui.console import Console, get_console, set_console

LOG_FILE = "ecobuild.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def split_names(value: str | None) -> list[str]:
    """'a, b,,c' -> ['a', 'b', 'c']"""
    if not value:
        return []
    return [n.strip() for n in value.split(",") if n.strip()]


def configure_logging(output_dir: Path, debug: bool) -> logging.Handler:
    """
    Send package logs to a file in the output directory.

    The live frame owns the terminal while builds run, so nothing under
    the `ecobuild` logger reaches stderr.
    """
    handler = logging.FileHandler(output_dir / LOG_FILE, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg = logging.getLogger("ecobuild")
    pkg.setLevel(logging.DEBUG if debug else logging.INFO)
    pkg.addHandler(handler)
    pkg.propagate = False
    return handler


def load_settings(**overrides) -> Settings:
    console = get_console()
    try:
        return Settings.from_env().with_overrides(**overrides)
    except ValueError as e:
        console.print_error(
            "Invalid configuration",
            str(e),
            suggestion="Check the ECOBUILD_* environment variables and command line options.",
        )
        sys.exit(2)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and debug-level logs)",
)
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI colors")
@click.pass_context
def cli(ctx, debug, no_color):
    """ecobuild: rebuild ecosystem projects against a framework version."""
    console = Console(debug=debug, color=not no_color)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--version", "-v", "version", default=None, help="Version to test (default: latest release)")
@click.option("--work-dir", "-w", default=None, type=click.Path(path_type=Path), help="Working directory for clones and logs")
@click.option("--clean", "-c", is_flag=True, default=False, help="Remove this version's output directory first")
@click.option("--projects", "-p", default=None, help="Comma-separated project names to build")
@click.option("--quiet-downloads", "-q", is_flag=True, default=False, help="Hide Maven download progress")
@click.option("--timeout", "-t", default=None, type=float, help="Build timeout in minutes")
@click.option("--build-threads", "-j", default=None, type=int, help="Number of parallel builds")
@click.option("--no-triage", is_flag=True, default=False, help="Skip the original-version build on failures")
@click.pass_context
def run(ctx, version, work_dir, clean, projects, quiet_downloads, timeout, build_threads, no_triage):
    """Build every roster project against one version."""
    console = get_console()
    debug = ctx.obj.get("debug", False)

    settings = load_settings(
        work_dir=work_dir,
        timeout_minutes=timeout,
        build_threads=build_threads,
        quiet_downloads=True if quiet_downloads else None,
        triage=False if no_triage else None,
    )
    names = split_names(projects)

    # unknown names are fatal before anything is cloned or downloaded
    try:
        select_projects(PROJECTS, names)
    except NoMatchingProjectsError as e:
        console.print_error(
            "No matching projects",
            str(e),
            details=["Available projects:"] + [f"  {n}" for n in e.available],
            suggestion="Pass names exactly as listed by:\n  ecobuild list",
        )
        sys.exit(1)

    resolved = resolve_version(settings, version, warn=console.print_warning)
    output_dir = prepare_output_dir(settings, resolved, clean)
    handler = configure_logging(output_dir, debug)

    try:
        code = run_harness(
            settings,
            resolved,
            custom_version=bool(version),
            names=names,
            console=console,
        )
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)
    finally:
        logging.getLogger("ecobuild").removeHandler(handler)
        handler.close()

    sys.exit(code)


@cli.command(name="list")
@click.option("--version", "-v", "version", default=None, help="Show the tasks resolved for this version")
def list_projects(version):
    """List roster projects, or the resolved task queue for a version."""
    console = get_console()

    if not version:
        for p in PROJECTS:
            branch = p.branch or "(default branch)"
            console.print_info(f"{p.kind.value:<6} {p.name:<32} {branch}")
        return

    for t in build_task_queue(PROJECTS, version, defaults=DEFAULT_VERSION_OVERRIDES):
        if t.ignored:
            console.print_info(f"{t.kind.value:<6} {t.name:<32} ignored: {t.ignore_reason or '-'}")
        else:
            extra = f" java={t.java_version}" if t.java_version else ""
            console.print_info(f"{t.kind.value:<6} {t.name:<32} {t.branch or '(default branch)'}{extra}")


if __name__ == "__main__":
    cli()
