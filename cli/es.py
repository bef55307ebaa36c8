"""es -- edge-stack CLI.

Backs the plugin's slash commands: /es-validate, /es-worker, /es-review and
/es-work delegate to bin/*.sh scripts; /es-beads-* drive the Beads <-> GitHub
tracker workflows.

Usage:
    es [--workspace PATH] [--repo OWNER/NAME] COMMAND [OPTIONS]
"""

from __future__ import annotations

import json
import subprocess
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Iterator

import click
from rich.console import Console
from rich.table import Table

from edgestack import __version__
from edgestack import locks, scripts
from edgestack.agents import AgentRegistry, render_prompt
from edgestack.config import EdgeStackConfig, load_config
from edgestack.logging_setup import setup_logging
from edgestack.tracker import collect_status, import_issue, init_workspace, sync_issues
from edgestack.tracker.sync import DIRECTIONS, WINNER_BEADS, WINNER_GITHUB, WINNER_SKIP, SyncConflict


class EsContext:
    """Per-invocation settings shared by all commands."""

    def __init__(self, config: EdgeStackConfig, assume_yes: bool = False) -> None:
        self.config = config
        self.assume_yes = assume_yes

    @property
    def workspace(self) -> Path:
        return Path(self.config.workspace).expanduser()

    @property
    def repo(self) -> str | None:
        return self.config.github_repo or None

    def confirm(self, question: str) -> bool:
        if self.assume_yes:
            return True
        return click.confirm(question, default=False)


pass_es = click.make_pass_decorator(EsContext)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn library errors into click errors (exit status 1)."""
    try:
        yield
    except locks.LockHeldError as e:
        raise click.ClickException(str(e))
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
        raise click.ClickException(f"{e.cmd[0]} failed: {detail}")
    except (RuntimeError, FileNotFoundError, FileExistsError, ValueError, KeyError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        raise click.ClickException(str(message))


def _console() -> Console:
    return Console()


@click.group()
@click.option("--workspace", type=click.Path(file_okay=False), default=None,
              help="Project directory (default: ES_WORKSPACE or cwd).")
@click.option("--repo", default=None, help="GitHub repository OWNER/NAME (default: ES_GITHUB_REPO).")
@click.option("--plugin-root", default=None, help="Plugin directory holding bin/ (default: ES_PLUGIN_ROOT).")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to confirmation prompts.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="es")
@click.pass_context
def cli(
    ctx: click.Context,
    workspace: str | None,
    repo: str | None,
    plugin_root: str | None,
    assume_yes: bool,
    verbose: bool,
) -> None:
    """es -- Cloudflare Workers development assistant tooling."""
    config = load_config(workspace)
    if repo:
        config.github_repo = repo
    if plugin_root:
        config.plugin_root = plugin_root
    if verbose:
        config.log_level = "DEBUG"
    setup_logging(config)
    ctx.obj = EsContext(config, assume_yes=assume_yes)


# ── script delegation ────────────────────────────────────────────────────


def _delegate(name: str, help_text: str) -> None:
    @cli.command(name, help=help_text, context_settings={"ignore_unknown_options": True})
    @click.argument("args", nargs=-1, type=click.UNPROCESSED)
    @pass_es
    @click.pass_context
    def command(ctx: click.Context, es: EsContext, args: tuple[str, ...]) -> None:
        with cli_errors():
            code = scripts.run_script(
                name, args, plugin_root=es.config.plugin_root or None, cwd=es.workspace
            )
        ctx.exit(code)


_delegate("validate", "Validate wrangler configuration and Workers code (bin/es-validate.sh).")
_delegate("worker", "Scaffold or update a Worker (bin/es-worker.sh).")
_delegate("review", "Run a multi-agent review of a PR or branch (bin/es-review.sh).")
_delegate("work", "Work an issue end to end (bin/es-work.sh).")


@cli.command()
def doctor() -> None:
    """Check that gh, bd, wrangler and jq are installed."""
    found = scripts.check_prerequisites()
    for tool, ok in found.items():
        mark = "✓" if ok else "✕"
        click.echo(f"  {mark} {tool}")
    missing = [tool for tool, ok in found.items() if not ok]
    if missing:
        raise click.ClickException(f"Missing tools: {', '.join(missing)}")


# ── beads ─────────────────────────────────────────────────────────────────


@cli.group()
def beads() -> None:
    """Beads issue tracking and GitHub sync."""


@beads.command("init")
@click.option("--prefix", default=None, help="Issue ID prefix (default: ES_BEADS_PREFIX or 'es').")
@click.option("--force", is_flag=True, help="Re-initialise an existing workspace.")
@pass_es
def beads_init(es: EsContext, prefix: str | None, force: bool) -> None:
    """Initialise Beads in the workspace."""
    with cli_errors():
        result = init_workspace(
            es.workspace,
            prefix or es.config.beads_prefix,
            force=force,
            state_file=es.config.sync_state_path,
        )
    click.echo(f"✓ Initialised Beads in {result.root} (prefix: {result.prefix})")
    if not result.gh_available:
        click.echo("  ! gh not installed: import and sync are unavailable")
    elif not result.gh_authenticated:
        click.echo("  ! gh not authenticated: run 'gh auth login'")


@beads.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON.")
@pass_es
def beads_status(es: EsContext, as_json: bool) -> None:
    """Show counts, ready work, blocked work and locks."""
    with cli_errors():
        report = collect_status(es.workspace)

    if as_json:
        click.echo(json.dumps({
            "counts": report.counts,
            "ready": [i.id for i in report.ready],
            "blocked": {i.id: i.blocked_by for i in report.blocked},
            "locked": {i.id: i.locked_by for i in report.locked},
            "stale_locks": [i.id for i in report.stale_locks],
            "linked": {i.id: i.github_number for i in report.linked},
        }, indent=2))
        return

    counts = ", ".join(f"{status}: {n}" for status, n in sorted(report.counts.items()))
    click.echo(f"Issues: {report.total} ({counts or 'none'})")

    console = _console()
    if report.ready:
        table = Table(title="Ready")
        table.add_column("ID")
        table.add_column("P")
        table.add_column("Title")
        for issue in report.ready:
            table.add_row(issue.id, str(issue.priority), issue.title)
        console.print(table)
    else:
        click.echo("No ready issues.")

    if report.blocked:
        table = Table(title="Blocked")
        table.add_column("ID")
        table.add_column("Blocked by")
        table.add_column("Title")
        for issue in report.blocked:
            table.add_row(issue.id, ", ".join(issue.blocked_by), issue.title)
        console.print(table)

    if report.locked or report.stale_locks:
        table = Table(title="Locks")
        table.add_column("ID")
        table.add_column("Holder")
        table.add_column("Expires")
        for issue in report.locked:
            table.add_row(issue.id, issue.locked_by or "", issue.lock_expires or "never")
        for issue in report.stale_locks:
            table.add_row(issue.id, issue.locked_by or "", f"{issue.lock_expires} (expired)")
        console.print(table)

    click.echo(f"Linked to GitHub: {len(report.linked)}")


@beads.command("import")
@click.argument("number", type=int)
@click.option("--dry-run", is_flag=True, help="Show the task breakdown without writing.")
@click.option("--comment", is_flag=True, help="Comment the created IDs on the GitHub issue.")
@click.option("--priority", default=2, show_default=True, help="Priority of created issues.")
@pass_es
def beads_import(es: EsContext, number: int, dry_run: bool, comment: bool, priority: int) -> None:
    """Import GitHub issue NUMBER as an epic with child tasks."""
    with cli_errors():
        result = import_issue(
            number,
            es.workspace,
            repo=es.repo,
            confirm=es.confirm,
            dry_run=dry_run,
            comment=comment,
            priority=priority,
        )

    if result.already_imported:
        click.echo(f"GitHub #{number} is already imported as {result.epic.id}.")
        return
    if result.declined:
        click.echo(f"Skipped closed GitHub issue #{number}.")
        return
    if result.dry_run:
        click.echo(f"Would import #{number}: {result.github.title}")
        click.echo(f"  {len(result.plan.tasks)} tasks from {result.plan.source}"
                   + (" (sequential)" if result.plan.sequential else ""))
        for task in result.plan.tasks:
            mark = "x" if task.done else " "
            click.echo(f"  [{mark}] {task.title}")
        return

    verb = "Resumed import of" if result.resumed else "Imported"
    click.echo(f"✓ {verb} #{number} as epic {result.epic.id}: {result.epic.title}")
    for task in result.tasks:
        suffix = f"  (blocked by {', '.join(task.blocked_by)})" if task.blocked_by else ""
        click.echo(f"  {task.id:<10s} {task.status:<8s} {task.title}{suffix}")


def _prompt_resolver(es: EsContext):
    def resolve(conflict: SyncConflict) -> str:
        if es.assume_yes:
            return WINNER_SKIP
        click.echo(
            f"Conflict: {conflict.beads_id} is {conflict.beads_status} in Beads "
            f"but GitHub #{conflict.github_number} is {conflict.github_state}."
        )
        return click.prompt(
            "Keep which side?",
            type=click.Choice([WINNER_BEADS, WINNER_GITHUB, WINNER_SKIP]),
            default=WINNER_SKIP,
        )
    return resolve


@beads.command("sync")
@click.option("--direction", type=click.Choice(DIRECTIONS), default="both", show_default=True)
@click.option("--dry-run", is_flag=True, help="Report what would change without writing.")
@click.option("--push-new", is_flag=True, help="Create GitHub issues for unlinked issues tagged 'github'.")
@pass_es
def beads_sync(es: EsContext, direction: str, dry_run: bool, push_new: bool) -> None:
    """Sync open/closed state between Beads and GitHub Issues."""
    with cli_errors():
        report = sync_issues(
            es.workspace,
            repo=es.repo,
            direction=direction,
            resolver=_prompt_resolver(es),
            confirm=es.confirm,
            dry_run=dry_run,
            push_new=push_new,
            state_file=es.config.sync_state_path,
        )

    if report.actions:
        table = Table(title="Sync (dry run)" if dry_run else "Sync")
        table.add_column("Beads")
        table.add_column("GitHub")
        table.add_column("Action")
        table.add_column("Result")
        for action in report.actions:
            number = f"#{action.github_number}" if action.github_number else "-"
            table.add_row(action.beads_id, number, action.action, action.detail)
        _console().print(table)
    else:
        click.echo("Everything in sync.")

    skipped = [c for c in report.conflicts if c.resolution == WINNER_SKIP]
    if skipped:
        click.echo(f"{len(skipped)} conflict(s) skipped: " + ", ".join(c.beads_id for c in skipped))
    for error in report.errors:
        click.echo(f"✕ {error}", err=True)
    if report.errors:
        raise click.ClickException(f"{len(report.errors)} issue(s) failed to sync")


# ── lock ──────────────────────────────────────────────────────────────────


@cli.group()
def lock() -> None:
    """Advisory locks on Beads issues."""


@lock.command("acquire")
@click.argument("issue_id")
@click.argument("agent")
@click.option("--ttl", type=int, default=None, help="Lock lifetime in minutes (default: ES_LOCK_TTL_MINUTES).")
@click.option("--force", is_flag=True, help="Take the lock even if another agent holds it.")
@pass_es
def lock_acquire(es: EsContext, issue_id: str, agent: str, ttl: int | None, force: bool) -> None:
    """Lock ISSUE_ID for AGENT."""
    ttl_minutes = ttl or es.config.lock_ttl_minutes
    with cli_errors():
        try:
            info = locks.acquire(issue_id, agent, ttl_minutes, force=force, workspace=es.workspace)
        except locks.LockHeldError as e:
            click.echo(str(e))
            if not es.confirm("Force unlock and continue?"):
                raise
            info = locks.acquire(issue_id, agent, ttl_minutes, force=True, workspace=es.workspace)
    click.echo(f"✓ {issue_id} locked by {info.locked_by} until {info.lock_expires}")


@lock.command("release")
@click.argument("issue_id")
@click.option("--agent", default=None, help="Agent releasing the lock.")
@click.option("--force", is_flag=True, help="Release another agent's lock.")
@pass_es
def lock_release(es: EsContext, issue_id: str, agent: str | None, force: bool) -> None:
    """Release the lock on ISSUE_ID."""
    with cli_errors():
        try:
            locks.release(issue_id, agent, force=force, workspace=es.workspace)
        except locks.LockHeldError as e:
            click.echo(str(e))
            if not es.confirm("Force unlock and continue?"):
                raise
            locks.release(issue_id, agent, force=True, workspace=es.workspace)
    click.echo(f"✓ Released lock on {issue_id}")


@lock.command("show")
@click.argument("issue_id")
@pass_es
def lock_show(es: EsContext, issue_id: str) -> None:
    """Show the live lock on ISSUE_ID."""
    with cli_errors():
        info = locks.inspect(issue_id, workspace=es.workspace)
    if info is None:
        click.echo(f"{issue_id} is not locked.")
        return
    click.echo(f"{issue_id} locked by {info.locked_by}")
    click.echo(f"  since:   {info.locked_at or 'unknown'}")
    click.echo(f"  expires: {info.lock_expires or 'never'}")


# ── agents ────────────────────────────────────────────────────────────────


@cli.group()
def agents() -> None:
    """Cloudflare Workers agent personas."""


@agents.command("list")
def agents_list() -> None:
    """List the available personas."""
    table = Table(title="Agents")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Description")
    for agent in AgentRegistry().list():
        table.add_row(agent.name, agent.model or "-", agent.description)
    _console().print(table)


@agents.command("show")
@click.argument("name")
@click.option("--context", "context_items", multiple=True, metavar="KEY=VALUE",
              help="Context entries appended to the prompt.")
@click.option("--json", "as_json", is_flag=True, help="Print the persona as JSON.")
def agents_show(name: str, context_items: tuple[str, ...], as_json: bool) -> None:
    """Print the prompt of persona NAME."""
    context: dict[str, str] = {}
    for item in context_items:
        key, sep, value = item.partition("=")
        if not sep:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'", param_hint="--context")
        context[key.strip()] = value.strip()

    with cli_errors():
        agent = AgentRegistry().get(name)

    if as_json:
        data = asdict(agent)
        data["path"] = str(agent.path) if agent.path else None
        data["prompt"] = render_prompt(agent, context)
        click.echo(json.dumps(data, indent=2))
        return
    click.echo(render_prompt(agent, context), nl=False)


# ── entry point ───────────────────────────────────────────────────────────


def main() -> None:
    """Entry point for the es command."""
    cli()


if __name__ == "__main__":
    main()
