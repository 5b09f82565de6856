"""
Recomator client — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Build a ``RecomatorApp`` and run the engine coroutine through
     ``run_guarded()`` under ``asyncio.run``.
  4. Report the result to stdout.

Install and run::

    pip install -e .
    recomator --help
    recomator validate-config
    recomator login <oauth-code>
    recomator projects --select my-project --select other-project
    recomator requirements
    recomator fetch
    recomator apply <recommendation-name> ... --watch-cycles 12
    recomator watch --cycles 6
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import typer

if TYPE_CHECKING:
    from recomator.app import GuardedOutcome, RecomatorApp
    from recomator.config import AppConfig

app = typer.Typer(
    name="recomator",
    help="Review, apply and track cloud cost/performance recommendations.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None) -> "AppConfig":
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from recomator.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config: "AppConfig") -> None:
    from recomator.utils.logging import configure_logging
    configure_logging(config.logging)


def _run(
    config: "AppConfig",
    action: Callable[["RecomatorApp"], Awaitable[Any]],
) -> "GuardedOutcome":
    """Build the app, run ``action`` guarded, exit non-zero on fatal outcomes."""
    from recomator.app import RecomatorApp

    async def _main() -> "GuardedOutcome":
        async with RecomatorApp(config) as recomator_app:
            if not recomator_app.auth.signed_in:
                typer.echo("[ERROR] Not signed in. Run 'recomator login <code>'.", err=True)
                raise typer.Exit(code=1)
            return await recomator_app.run_guarded(action(recomator_app))

    outcome = asyncio.run(_main())
    if outcome.sign_in_required:
        typer.echo("[ERROR] Session expired. Run 'recomator login <code>'.", err=True)
        raise typer.Exit(code=2)
    if outcome.fatal_header is not None:
        typer.echo(f"[FATAL] {outcome.fatal_header}", err=True)
        typer.echo(json.dumps(outcome.fatal_body, indent=2), err=True)
        raise typer.Exit(code=1)
    return outcome


def _print_table(recomator_app: "RecomatorApp", names: Optional[list[str]] = None) -> None:
    records = (
        list(recomator_app.store)
        if names is None
        else [recomator_app.store.require(n) for n in names]
    )
    for rec in records:
        typer.echo(
            f"  {rec.display_status:<12} {rec.cost_per_week:>10.2f}/wk  "
            f"{rec.project:<24} {rec.type:<24} {rec.resource:<24} {rec.name}"
        )
        if rec.error_header:
            typer.echo(f"      ! {rec.error_header}")
            if rec.error_description:
                typer.echo(f"        {rec.error_description}")


def _print_summary(recomator_app: "RecomatorApp", names: list[str]) -> None:
    from recomator.taxonomy.status import TERMINAL_STATUSES

    finished = sum(
        1 for n in names if recomator_app.store.require(n).status in TERMINAL_STATUSES
    )
    typer.echo(f"{finished}/{len(names)} finished; the rest are still in progress.")


async def _fetch_or_report(recomator_app: "RecomatorApp") -> bool:
    await recomator_app.fetcher.fetch_recommendations()
    session = recomator_app.session
    if session.failed:
        typer.echo(
            f"[ERROR] Fetch failed (HTTP {session.error_code}): {session.error_message}",
            err=True,
        )
        return False
    return True


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration and print the parsed values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Backend URL:       {config.backend.base_url}")
    typer.echo(f"  State directory:   {config.storage.state_dir}")
    typer.echo(f"  Retry base delay:  {config.retry.base_delay_s}s")
    typer.echo(f"  Watcher interval:  {config.polling.watcher_interval_s}s")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("login")
def login(
    code: str = typer.Argument(..., help="OAuth code from the sign-in redirect."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Exchange an OAuth code for a bearer token and store it."""
    from recomator.app import RecomatorApp
    from recomator.errors import AuthCodeExchangeError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _main() -> None:
        async with RecomatorApp(config) as recomator_app:
            await recomator_app.sign_in(code)

    try:
        asyncio.run(_main())
    except AuthCodeExchangeError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Signed in.")


@app.command("projects")
def projects(
    select: Optional[list[str]] = typer.Option(
        None, "--select", "-s", help="Project to select (repeatable). Replaces the saved selection.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List available projects and optionally save a new selection."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _action(recomator_app: "RecomatorApp") -> None:
        available = await recomator_app.projects.fetch_projects()
        if recomator_app.projects.error_code is not None:
            typer.echo(
                f"[ERROR] Listing projects failed (HTTP {recomator_app.projects.error_code}).",
                err=True,
            )
            raise typer.Exit(code=1)
        if select:
            unknown = [p for p in select if p not in available]
            if unknown:
                typer.echo(f"[ERROR] Unknown project(s): {', '.join(unknown)}", err=True)
                raise typer.Exit(code=1)
            recomator_app.select_projects(list(select))
        chosen = set(recomator_app.projects.selected)
        for name in available:
            typer.echo(f"  [{'x' if name in chosen else ' '}] {name}")

    _run(config, _action)


@app.command("requirements")
def requirements(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Check that the selected projects grant the permissions and APIs needed."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _action(recomator_app: "RecomatorApp") -> None:
        checker = recomator_app.requirements
        await checker.check_requirements()
        session = recomator_app.requirements_session
        if session.failed:
            typer.echo(
                f"[ERROR] Requirements check failed (HTTP {session.error_code}): "
                f"{session.error_message}",
                err=True,
            )
            raise typer.Exit(code=1)
        for project in checker.projects:
            typer.echo(f"  [{'OK' if project.satisfied else '!!'}] {project.project}")
            for requirement in project.unsatisfied():
                typer.echo(f"        {requirement.name}: {requirement.error_message}")
        if not checker.all_satisfied:
            raise typer.Exit(code=1)

    _run(config, _action)


@app.command("fetch")
def fetch(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Fetch recommendations for the saved project selection, ranked by history."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _action(recomator_app: "RecomatorApp") -> None:
        if not await _fetch_or_report(recomator_app):
            raise typer.Exit(code=1)
        typer.echo(f"{len(recomator_app.store)} recommendation(s):")
        _print_table(recomator_app)
        store = recomator_app.store
        if len(store):
            typer.echo("")
            typer.echo(f"  Projects: {', '.join(store.all_projects())}")
            typer.echo(f"  Types:    {', '.join(store.all_types())}")
            typer.echo(f"  Statuses: {', '.join(store.all_statuses())}")

    _run(config, _action)


@app.command("apply")
def apply(
    names: list[str] = typer.Argument(..., help="Recommendation names to apply, in order."),
    watch_cycles: int = typer.Option(
        6, "--watch-cycles", help="Status-watch cycles to run after applying.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Fetch, apply the named recommendations and watch their progress."""
    from recomator.taxonomy.status import APPLICABLE_STATUSES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _action(recomator_app: "RecomatorApp") -> None:
        if not await _fetch_or_report(recomator_app):
            raise typer.Exit(code=1)
        blocked = [
            rec for rec in map(recomator_app.store.get, names)
            if rec is not None and rec.status not in APPLICABLE_STATUSES
        ]
        if blocked:
            for rec in blocked:
                typer.echo(f"[ERROR] {rec.name} is {rec.display_status}, not applicable.", err=True)
            raise typer.Exit(code=1)
        await recomator_app.applier.apply_given_recommendations(names)
        await recomator_app.watcher.start(cycles=watch_cycles)
        _print_table(recomator_app, names)
        _print_summary(recomator_app, names)

    _run(config, _action)


@app.command("watch")
def watch(
    cycles: int = typer.Option(6, "--cycles", help="Number of watch cycles to run."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Fetch and follow recommendations currently in progress on the backend."""
    from recomator.taxonomy.status import RecommendationStatus

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    async def _action(recomator_app: "RecomatorApp") -> None:
        if not await _fetch_or_report(recomator_app):
            raise typer.Exit(code=1)
        claimed = [
            rec.name for rec in recomator_app.store
            if rec.status == RecommendationStatus.CLAIMED
        ]
        for name in claimed:
            recomator_app.store.require(name).needs_watcher = True
        typer.echo(f"Watching {len(claimed)} recommendation(s) in progress.")
        await recomator_app.watcher.start(cycles=cycles)
        _print_table(recomator_app, claimed)
        _print_summary(recomator_app, claimed)

    _run(config, _action)


if __name__ == "__main__":
    app()
