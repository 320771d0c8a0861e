"""Command line for beadrelay.

Usage:
    # Store maintenance
    beadrelay beads init
    beadrelay beads set stories 1-1 '{"title": "x"}'
    beadrelay beads get stories 1-1 --json
    beadrelay beads land --ttl 600

    # Seed a story, then run the 4-agent relay
    beadrelay seed-story --title "Add login" --mode needs-spec
    beadrelay relay up -d .
"""

import json
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from beadrelay import __version__
from beadrelay.application import (
    DispatcherConfig,
    DispatcherDaemon,
    RelayConfig,
    WorkerDaemon,
    export_sprint_status,
    export_story,
    import_story,
    land_the_plane,
    seed_story,
)
from beadrelay.domain.exceptions import BeadRelayError, ConfigError, LockHeldError
from beadrelay.domain.pipeline import DEFAULT_PIPELINE, SEED_MODE_LABELS
from beadrelay.infrastructure import (
    AgentMailbox,
    BdBacklog,
    CommandRunner,
    FileLockManager,
    FilesystemDocumentStore,
    MailboxSettings,
    RunnerConfig,
    StorePaths,
    resolve_or_default_paths,
)
from beadrelay.infrastructure.mailbox.agent_mail import (
    DEFAULT_MAILBOX_URL,
    DEFAULT_TOKEN_ENV,
)

logger = logging.getLogger("beadrelay.cli")

F = TypeVar("F", bound=Callable[..., Any])

console = Console()
error_console = Console(stderr=True)

_SUPPRESS_LOGGERS = ("httpx", "httpcore")

DEFAULT_AGENT_NAMES = {
    "sm1": "BlueLake",
    "sm2": "GreenStone",
    "dev1": "RedFox",
    "dev2": "PurpleBear",
}


def _configure_logging(debug: bool, log_file: str | None = None) -> None:
    """Set up logging, suppressing noisy third-party loggers.

    When *log_file* is set, detailed logs go to the file **and** a
    concise stream is kept on stderr so the user sees progress.
    """
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    fmt_detailed = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    fmt_concise = logging.Formatter("%(levelname)s - %(message)s")

    if log_file:
        fh = logging.FileHandler(log_file, mode="a")
        fh.setLevel(level)
        fh.setFormatter(fmt_detailed)
        root.addHandler(fh)
        sh = logging.StreamHandler()
        sh.setLevel(logging.INFO)
        sh.setFormatter(fmt_concise)
        root.addHandler(sh)
    else:
        sh = logging.StreamHandler()
        sh.setLevel(level)
        sh.setFormatter(fmt_detailed)
        root.addHandler(sh)

    for name in _SUPPRESS_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _print_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2, default=str))


@contextmanager
def _cli_errors() -> Iterator[None]:
    """Turn expected failures into a red message and exit status 1."""
    try:
        yield
    except (BeadRelayError, KeyError, OSError, ValueError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        error_console.print(f"[bold red]Error:[/bold red] {message}")
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="beadrelay")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Write detailed logs to file (concise stream stays on stderr)",
)
def cli(debug: bool, log_file: str | None) -> None:
    """Beads store and 4-agent relay automation for BMAD projects."""
    _configure_logging(debug, log_file=log_file)


# =========================================================================
# beads: store and lock
# =========================================================================


def store_options(func: F) -> F:
    """
    Decorator adding store location and output options.

    Options added:
        -d/--directory: Project directory
        --db: Store path override (relative to --directory)
        --json: Machine-readable output
    """

    @click.option(
        "-d",
        "--directory",
        default=".",
        type=click.Path(file_okay=False),
        help="Project directory (default: .)",
    )
    @click.option(
        "--db",
        "db",
        default=None,
        help="Override store path (relative to --directory)",
    )
    @click.option("--json", "as_json", is_flag=True, help="Output machine-readable JSON")
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def lock_options(func: F) -> F:
    """
    Decorator adding lock options.

    Options added:
        --name: Lock name
        --ttl: Lock TTL in seconds
    """

    @click.option("--name", default="plane", help="Lock name (default: plane)")
    @click.option(
        "--ttl",
        default=600,
        type=click.IntRange(min=0),
        help="Lock TTL in seconds (default: 600)",
    )
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _meta_option(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    try:
        meta = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"must be valid JSON: {e}") from e
    if not isinstance(meta, dict):
        raise click.BadParameter("must be a JSON object")
    return meta


def _open_store(directory: str, db: str | None) -> tuple[StorePaths, FilesystemDocumentStore]:
    paths = resolve_or_default_paths(directory, db)
    if paths.beads_dir is not None:
        paths.beads_dir.mkdir(parents=True, exist_ok=True)
    return paths, FilesystemDocumentStore(paths.db_path)


def _within(directory: str, path: str) -> Path:
    return Path(directory).resolve() / path


@cli.group()
def beads() -> None:
    """Beads: identity memory store and advisory lock."""


@beads.command("init")
@store_options
def beads_init(directory: str, db: str | None, as_json: bool) -> None:
    """Create the store (backing up a corrupt one)."""
    with _cli_errors():
        paths, store = _open_store(directory, db)
        result = store.init()
    if as_json:
        _print_json(
            {**asdict(result), "dbPath": str(paths.db_path), "beadsDir": str(paths.beads_dir)}
        )
        return
    console.print("[cyan]Beads initialized[/cyan]")
    console.print(f"[bold]DB:[/bold] {paths.db_path}")
    created = "[green]yes[/green]" if result.created else "[dim]no (already exists)[/dim]"
    console.print(f"[bold]Created:[/bold] {created}")
    if result.backup_path:
        console.print(f"[yellow]Corrupt store backed up to {result.backup_path}[/yellow]")


@beads.command("get")
@click.argument("namespace")
@click.argument("key")
@store_options
def beads_get(namespace: str, key: str, directory: str, db: str | None, as_json: bool) -> None:
    """Print a stored value."""
    with _cli_errors():
        _, store = _open_store(directory, db)
        value = store.get(namespace, key)
    if as_json:
        _print_json({"namespace": namespace, "key": key, "value": value})
    elif value is None:
        console.print("[dim](null)[/dim]")
    else:
        click.echo(value if isinstance(value, str) else json.dumps(value, indent=2))


@beads.command("set")
@click.argument("namespace")
@click.argument("key")
@click.argument("value", nargs=-1, required=True)
@click.option("--meta", default=None, help="Journal metadata JSON (default: {})")
@store_options
def beads_set(
    namespace: str,
    key: str,
    value: tuple[str, ...],
    meta: str | None,
    directory: str,
    db: str | None,
    as_json: bool,
) -> None:
    """Store VALUE (JSON-decoded when valid JSON)."""
    meta_dict = _meta_option(meta)
    with _cli_errors():
        _, store = _open_store(directory, db)
        stored = store.set(namespace, key, " ".join(value), meta_dict)
    if as_json:
        _print_json(asdict(stored))
        return
    console.print(f"[green]✓[/green] set {namespace}.{key}")


@beads.command("append")
@click.argument("namespace")
@click.argument("key")
@click.argument("value", nargs=-1, required=True)
@click.option("--meta", default=None, help="Journal metadata JSON (default: {})")
@store_options
def beads_append(
    namespace: str,
    key: str,
    value: tuple[str, ...],
    meta: str | None,
    directory: str,
    db: str | None,
    as_json: bool,
) -> None:
    """Append a timestamped record to a sequence."""
    meta_dict = _meta_option(meta)
    with _cli_errors():
        _, store = _open_store(directory, db)
        stored = store.append(namespace, key, " ".join(value), meta_dict)
    if as_json:
        _print_json(asdict(stored))
        return
    console.print(f"[green]✓[/green] append {namespace}.{key}")


@beads.command("query")
@click.argument("namespace")
@click.argument("prefix", required=False)
@store_options
def beads_query(
    namespace: str, prefix: str | None, directory: str, db: str | None, as_json: bool
) -> None:
    """List the keys of NAMESPACE, optionally by PREFIX."""
    with _cli_errors():
        _, store = _open_store(directory, db)
        keys = store.list(namespace, prefix)
    if as_json:
        _print_json({"namespace": namespace, "keys": keys})
        return
    if not keys:
        console.print("[dim](no keys)[/dim]")
        return
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    for key in keys:
        table.add_row(key)
    console.print(table)


@beads.command("lock")
@lock_options
@store_options
def beads_lock(name: str, ttl: int, directory: str, db: str | None, as_json: bool) -> None:
    """Acquire the advisory lock (single attempt)."""
    with _cli_errors():
        paths, _ = _open_store(directory, db)
        try:
            handle = FileLockManager().acquire(str(paths.lock_path), name, ttl * 1000)
        except LockHeldError as e:
            if as_json:
                _print_json(
                    {"acquired": False, "owner": e.owner, "expiresAt": e.expires_at}
                )
            error_console.print(
                f"[yellow]Lock is held by {e.owner}[/yellow] (expires {e.expires_at})"
            )
            sys.exit(1)
    if as_json:
        _print_json({**asdict(handle), "acquired": True})
        return
    console.print("[cyan]Beads lock acquired[/cyan]")
    console.print(f"[bold]Name:[/bold] {handle.name}")
    console.print(f"[bold]Owner:[/bold] {handle.owner}")
    console.print(f"[bold]Expires:[/bold] {handle.expires_at}")
    if handle.stolen_from:
        console.print(f"[dim]Took over stale lock from {handle.stolen_from}[/dim]")
    console.print(f"[dim]Lock file: {paths.lock_path}[/dim]")


@beads.command("unlock")
@click.option("--owner", default=None, help="Owner token (default: current holder)")
@click.option("--force", is_flag=True, help="Release regardless of owner")
@store_options
def beads_unlock(
    owner: str | None, force: bool, directory: str, db: str | None, as_json: bool
) -> None:
    """Release the advisory lock."""
    with _cli_errors():
        paths, _ = _open_store(directory, db)
        locks = FileLockManager()
        lock_path = str(paths.lock_path)
        if owner is None:
            current = locks.read(lock_path)
            owner = current.owner if current else None
        result = locks.release(lock_path, owner, force=force)
    if as_json:
        _print_json(
            {
                "released": result.released,
                "reason": result.reason.value if result.reason else None,
                "currentOwner": result.current_owner,
                "lockPath": lock_path,
            }
        )
        return
    if result.released:
        console.print("[green]Beads lock released[/green]")
        return
    reason = result.reason.value if result.reason else "unknown"
    console.print(f"[yellow]Lock not released:[/yellow] {reason}")
    if result.current_owner:
        console.print(f"[dim]Current owner: {result.current_owner}[/dim]")


@beads.command("land")
@lock_options
@store_options
def beads_land(name: str, ttl: int, directory: str, db: str | None, as_json: bool) -> None:
    """Lock, validate, compact and unlock the store."""
    with _cli_errors():
        paths, store = _open_store(directory, db)
        result = land_the_plane(
            store, FileLockManager(), str(paths.lock_path), lock_name=name, ttl_ms=ttl * 1000
        )
    document = result.document
    if as_json:
        _print_json(
            {
                "ok": True,
                "lock": asdict(result.lock),
                "db": {"updatedAt": document["updatedAt"], "version": document["version"]},
            }
        )
        return
    console.print("[cyan]Land the Plane complete[/cyan]")
    console.print(f"[bold]DB:[/bold] {paths.db_path}")
    console.print(f"[bold]updatedAt:[/bold] {document['updatedAt']}")


@beads.command("import-story")
@click.argument("story_key")
@click.argument("input_path")
@click.option("--meta", default=None, help="Journal metadata JSON (default: {})")
@store_options
def beads_import_story(
    story_key: str,
    input_path: str,
    meta: str | None,
    directory: str,
    db: str | None,
    as_json: bool,
) -> None:
    """Import a story file into the stories namespace."""
    meta_dict = _meta_option(meta)
    with _cli_errors():
        _, store = _open_store(directory, db)
        stored = import_story(
            store, story_key, _within(directory, input_path), meta_dict, label=input_path
        )
    if as_json:
        _print_json({"ok": True, "storyKey": story_key, "importedFrom": input_path, **asdict(stored)})
        return
    console.print(
        f"[green]✓[/green] Imported story {story_key} from {input_path} into namespace stories"
    )


@beads.command("export-story")
@click.argument("story_key")
@click.option("--out", required=True, help="Output file (relative to --directory)")
@store_options
def beads_export_story(
    story_key: str, out: str, directory: str, db: str | None, as_json: bool
) -> None:
    """Write a stored story to a file."""
    with _cli_errors():
        _, store = _open_store(directory, db)
        export_story(store, story_key, _within(directory, out))
    if as_json:
        _print_json({"ok": True, "storyKey": story_key, "out": out})
        return
    console.print(f"[green]✓[/green] Exported story {story_key} to {out}")


@beads.command("export-sprint-status")
@click.option("--out", required=True, help="Output file (relative to --directory)")
@store_options
def beads_export_sprint_status(
    out: str, directory: str, db: str | None, as_json: bool
) -> None:
    """Write sprint-status YAML from sprint/development_status."""
    with _cli_errors():
        _, store = _open_store(directory, db)
        count = export_sprint_status(store, _within(directory, out))
    if as_json:
        _print_json({"ok": True, "out": out, "storyCount": count})
        return
    console.print(f"[green]✓[/green] Exported sprint status to {out}")


# =========================================================================
# seed-story
# =========================================================================


@cli.command("seed-story")
@click.option(
    "-d",
    "--directory",
    default=".",
    type=click.Path(file_okay=False),
    help="Project directory (repo root)",
)
@click.option("--title", default=None, help="Issue title (required unless --issue-id)")
@click.option("--issue-id", default=None, help="Existing issue id to label instead")
@click.option(
    "--mode",
    default="needs-spec",
    type=click.Choice(list(SEED_MODE_LABELS)),
    help="Start mode (default: needs-spec)",
)
def seed_story_command(
    directory: str, title: str | None, issue_id: str | None, mode: str
) -> None:
    """Create (or label) a story issue as the kickoff for the relay."""
    with _cli_errors():
        result = seed_story(
            BdBacklog(Path(directory).resolve()), mode=mode, title=title, issue_id=issue_id
        )
    console.print(f"[green]✓ Seeded issue {result.issue_id}[/green]")
    console.print(f"[dim]  labels: {', '.join(result.labels)}[/dim]")
    console.print("[dim]  next: run the relay; the dispatcher picks it up automatically[/dim]")


# =========================================================================
# relay: daemons
# =========================================================================


@cli.group()
def relay() -> None:
    """4-agent relay over Agent Mail (dispatcher + workers)."""


def _run_daemon(build: Callable[[], WorkerDaemon | DispatcherDaemon]) -> None:
    try:
        daemon = build()
        daemon.run_forever()
    except ConfigError as e:
        error_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)
    except BeadRelayError as e:
        logger.exception("Daemon stopped")
        error_console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


@relay.command("worker")
def relay_worker() -> None:
    """Run a worker daemon configured by BMAD_* environment variables."""

    def build() -> WorkerDaemon:
        env = os.environ
        config = RelayConfig.from_env(env)
        runner_config = RunnerConfig.from_env(env)
        return WorkerDaemon(
            config,
            AgentMailbox.from_settings(MailboxSettings.from_env(env)),
            CommandRunner(runner_config, config.project_root, config.logs_dir),
        )

    _run_daemon(build)


@relay.command("dispatcher")
def relay_dispatcher() -> None:
    """Run the dispatcher daemon configured by BMAD_* environment variables."""

    def build() -> DispatcherDaemon:
        env = os.environ
        config = DispatcherConfig.from_env(env)
        runner_config = RunnerConfig.from_env(env)
        relay_config = config.relay
        return DispatcherDaemon(
            config,
            AgentMailbox.from_settings(MailboxSettings.from_env(env)),
            CommandRunner(runner_config, relay_config.project_root, relay_config.logs_dir),
            BdBacklog(relay_config.project_root),
        )

    _run_daemon(build)


def daemon_environments(
    project_root: str, mcp_url: str, token_env: str, env: dict[str, str]
) -> dict[str, dict[str, str]]:
    """
    Per-role environment for the four daemons.

    SM roles use the BMAD_CLAUDE_* runner, DEV roles the BMAD_CURSOR_* one.

    Raises:
        ConfigError: If a runner command or argument template is missing
    """
    runners = {
        "claude": (env.get("BMAD_CLAUDE_CMD"), env.get("BMAD_CLAUDE_ARGS")),
        "cursor": (env.get("BMAD_CURSOR_CMD"), env.get("BMAD_CURSOR_ARGS")),
    }
    if not all(all(pair) for pair in runners.values()):
        raise ConfigError(
            "Missing runner env. Set BMAD_CLAUDE_CMD, BMAD_CLAUDE_ARGS, "
            "BMAD_CURSOR_CMD and BMAD_CURSOR_ARGS."
        )

    names = {
        role: env.get(f"BMAD_{role.upper()}_NAME") or default
        for role, default in DEFAULT_AGENT_NAMES.items()
    }
    common = {
        "BMAD_PROJECT_ROOT": project_root,
        "BMAD_PROJECT_KEY": project_root,
        "BMAD_MCP_AGENT_MAIL_URL": mcp_url,
        "BMAD_MCP_AGENT_MAIL_TOKEN_ENV": token_env,
        "BMAD_POLL_MS": env.get("BMAD_POLL_MS") or "2000",
        "BMAD_ROLE_AGENTS": json.dumps(names),
    }

    environments = {}
    for stage in DEFAULT_PIPELINE:
        runner_cmd, runner_args = runners["claude" if stage.role.startswith("sm") else "cursor"]
        role_env = {
            **common,
            "BMAD_AGENT_MAIL_NAME": names[stage.role],
            "BMAD_WORKER_ROLE": stage.role,
            "BMAD_WORKER_PROGRAM": f"bmad-{stage.role}",
            "BMAD_WORKER_TASK_DESCRIPTION": f"BMAD {stage.role.upper()} {stage.step}",
            "BMAD_RUNNER_CMD": str(runner_cmd),
            "BMAD_RUNNER_ARGS": str(runner_args),
        }
        if stage == DEFAULT_PIPELINE[0]:
            role_env["BMAD_WORKER_TASK_DESCRIPTION"] += " (dispatcher)"
            role_env["BMAD_SM2_AGENT_MAIL_NAME"] = names["sm2"]
            role_env["BMAD_DEV1_AGENT_MAIL_NAME"] = names["dev1"]
            role_env["BMAD_DEV2_AGENT_MAIL_NAME"] = names["dev2"]
        environments[stage.role] = role_env
    return environments


@relay.command("up")
@click.option(
    "-d",
    "--directory",
    default=".",
    type=click.Path(file_okay=False, exists=True),
    help="Project directory (repo root)",
)
@click.option("--mcp-url", default=DEFAULT_MAILBOX_URL, help="Agent Mail MCP URL")
@click.option(
    "--token-env",
    default=DEFAULT_TOKEN_ENV,
    help="Env var holding the Agent Mail bearer token",
)
def relay_up(directory: str, mcp_url: str, token_env: str) -> None:
    """Start the dispatcher and three workers; Ctrl-C stops them."""
    project_root = str(Path(directory).resolve())
    try:
        environments = daemon_environments(project_root, mcp_url, token_env, dict(os.environ))
    except ConfigError as e:
        error_console.print(f"[bold red]{e}[/bold red]")
        error_console.print("[cyan]  export BMAD_CLAUDE_CMD=bash[/cyan]")
        error_console.print(
            """[cyan]  export BMAD_CLAUDE_ARGS='["-lc","claude -p \\"$(cat {PROMPT_FILE})\\""]'[/cyan]"""
        )
        error_console.print("[cyan]  export BMAD_CURSOR_CMD=bash[/cyan]")
        error_console.print(
            """[cyan]  export BMAD_CURSOR_ARGS='["-lc","cursor -p \\"$(cat {PROMPT_FILE})\\""]'[/cyan]"""
        )
        sys.exit(1)

    console.print("[green]Starting 4-agent relay (Agent Mail)...[/green]")
    console.print(f"[dim]Project: {project_root}[/dim]")
    console.print(f"[dim]Agent Mail: {mcp_url}[/dim]")
    agents = ", ".join(f"{role}={e['BMAD_AGENT_MAIL_NAME']}" for role, e in environments.items())
    console.print(f"[dim]Agents: {agents}[/dim]")

    head = DEFAULT_PIPELINE[0].role
    children = [
        subprocess.Popen(
            [
                sys.executable,
                "-m",
                "beadrelay.cli",
                "relay",
                "dispatcher" if role == head else "worker",
            ],
            env={**os.environ, **role_env},
        )
        for role, role_env in environments.items()
    ]

    try:
        for child in children:
            child.wait()
    except KeyboardInterrupt:
        console.print("[yellow]Stopping daemons...[/yellow]")
        for child in children:
            if child.poll() is None:
                child.send_signal(signal.SIGINT)
        for child in children:
            child.wait()


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
