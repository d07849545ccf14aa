"""CLI entrypoint for vaultstage."""

import logging
import sys
from pathlib import Path

import click

from . import __version__


def _read_content(content: str | None, from_file: Path | None) -> str | None:
    if content is not None and from_file is not None:
        raise click.UsageError("Pass either --content or --from-file, not both.")
    if from_file is not None:
        return from_file.read_text(encoding="utf-8")
    return content


@click.group()
@click.version_option(__version__, prog_name="vaultstage")
@click.option(
    "--vault",
    "-v",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Path to the vault directory (defaults to the current directory)",
)
@click.option("--verbose", is_flag=True, help="Log rebase and commit diagnostics to stderr")
@click.pass_context
def cli(ctx: click.Context, vault: Path | None, verbose: bool) -> None:
    """vaultstage - stage edits against a vault and commit them later.

    Staged state lives in a .vaultstage/ directory next to the vault.
    """
    ctx.ensure_object(dict)
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    vault = vault or Path.cwd()
    if not vault.exists() or not vault.is_dir():
        raise click.BadParameter(f"Directory '{vault}' does not exist.", param_hint="--vault / -v")

    ctx.obj["vault"] = vault.resolve()


# -----------------------------------------------------------------------------
# Stage commands - propose, inspect and commit edits
# -----------------------------------------------------------------------------


@cli.group()
def stage() -> None:
    """Stage edits without touching the vault.

    Staged edits are kept in .vaultstage/staged.jsonl until committed,
    abandoned or reset.
    """
    pass


_message_option = click.option(
    "--message",
    "-m",
    "message_id",
    default="cli",
    show_default=True,
    help="Message id the edit is attributed to (used by 'stage abandon')",
)
_description_option = click.option("--description", "-d", default="", help="Free-text description")
_content_option = click.option("--content", "-c", default=None, help="New file content")
_from_file_option = click.option(
    "--from-file",
    "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read new file content from this file",
)


@stage.command("create")
@click.argument("path")
@_content_option
@_from_file_option
@_message_option
@_description_option
@click.pass_context
def stage_create(
    ctx: click.Context,
    path: str,
    content: str | None,
    from_file: Path | None,
    message_id: str,
    description: str,
) -> None:
    """Stage creation of PATH.

    Examples:

        vaultstage stage create notes/idea.md --content "# Idea"

        vaultstage stage create notes/idea.md -f draft.md -m step-3
    """
    from .commands.stage_cmd import run_propose

    code = run_propose(
        ctx.obj["vault"],
        "create",
        path,
        content=_read_content(content, from_file),
        message_id=message_id,
        description=description,
    )
    sys.exit(code)


@stage.command("modify")
@click.argument("path")
@_content_option
@_from_file_option
@_message_option
@_description_option
@click.pass_context
def stage_modify(
    ctx: click.Context,
    path: str,
    content: str | None,
    from_file: Path | None,
    message_id: str,
    description: str,
) -> None:
    """Stage new content for PATH. The current view is the baseline."""
    from .commands.stage_cmd import run_propose

    code = run_propose(
        ctx.obj["vault"],
        "modify",
        path,
        content=_read_content(content, from_file),
        message_id=message_id,
        description=description,
    )
    sys.exit(code)


@stage.command("delete")
@click.argument("path")
@_message_option
@_description_option
@click.pass_context
def stage_delete(ctx: click.Context, path: str, message_id: str, description: str) -> None:
    """Stage deletion of PATH."""
    from .commands.stage_cmd import run_propose

    sys.exit(run_propose(ctx.obj["vault"], "delete", path, message_id=message_id, description=description))


@stage.command("rename")
@click.argument("old_path")
@click.argument("new_path")
@_message_option
@_description_option
@click.pass_context
def stage_rename(ctx: click.Context, old_path: str, new_path: str, message_id: str, description: str) -> None:
    """Stage a move of OLD_PATH to NEW_PATH."""
    from .commands.stage_cmd import run_propose

    code = run_propose(
        ctx.obj["vault"],
        "rename",
        new_path,
        old_path=old_path,
        message_id=message_id,
        description=description,
    )
    sys.exit(code)


@stage.command("status")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def stage_status(ctx: click.Context, output_json: bool) -> None:
    """List staged paths and their net effect."""
    from .commands.stage_cmd import run_status

    run_status(ctx.obj["vault"], output_json=output_json)


@stage.command("show")
@click.argument("path")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.option("--diff", is_flag=True, help="Show a patch against the staged baseline")
@click.pass_context
def stage_show(ctx: click.Context, path: str, output_json: bool, diff: bool) -> None:
    """Show PATH as it would look after commit.

    Disk edits made since staging are merged in; exits 2 on conflict.
    """
    from .commands.stage_cmd import run_show

    sys.exit(run_show(ctx.obj["vault"], path, output_json=output_json, diff=diff))


@stage.command("abandon")
@click.argument("message_id")
@click.pass_context
def stage_abandon(ctx: click.Context, message_id: str) -> None:
    """Discard every staged edit attributed to MESSAGE_ID."""
    from .commands.stage_cmd import run_abandon

    sys.exit(run_abandon(ctx.obj["vault"], message_id))


@stage.command("commit")
@click.argument("paths", nargs=-1)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def stage_commit(ctx: click.Context, paths: tuple[str, ...], output_json: bool) -> None:
    """Write staged edits to the vault (all paths, or only PATHS).

    Each path commits on its own; a drifted path stays staged.
    """
    from .commands.stage_cmd import run_commit

    sys.exit(run_commit(ctx.obj["vault"], list(paths) if paths else None, output_json=output_json))


@stage.command("reset")
@click.confirmation_option(prompt="Drop every staged edit?")
@click.pass_context
def stage_reset(ctx: click.Context) -> None:
    """Drop every staged edit."""
    from .commands.stage_cmd import run_reset

    sys.exit(run_reset(ctx.obj["vault"]))


# -----------------------------------------------------------------------------
# Rename commands - watcher and rename log
# -----------------------------------------------------------------------------


@cli.command("watch")
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Watch the vault and record renames.

    Runs until interrupted (Ctrl+C). Renames are logged to .vaultstage/renames.json.
    """
    from .commands.renames_cmd import run_watch

    run_watch(ctx.obj["vault"])


@cli.group()
def renames() -> None:
    """Query the rename log."""
    pass


@renames.command("list")
@click.option("--max-age-days", type=float, default=None, help="Only renames newer than this")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def renames_list(ctx: click.Context, max_age_days: float | None, output_json: bool) -> None:
    """Show recently recorded renames."""
    from .commands.renames_cmd import run_renames_list

    run_renames_list(ctx.obj["vault"], max_age_days=max_age_days, output_json=output_json)


@renames.command("find")
@click.argument("path")
@click.option("--max-age-days", type=float, default=None, help="Ignore renames older than this")
@click.pass_context
def renames_find(ctx: click.Context, path: str, max_age_days: float | None) -> None:
    """Print where PATH has moved to, following rename chains."""
    from .commands.renames_cmd import run_renames_find

    sys.exit(run_renames_find(ctx.obj["vault"], path, max_age_days=max_age_days))


# -----------------------------------------------------------------------------
# Audit command
# -----------------------------------------------------------------------------


@cli.command("audit")
@click.option("--last", "last_n", type=int, default=None, help="Show only the last N entries")
@click.option("--json", "output_json", is_flag=True, help="Output entries as JSON lines")
@click.pass_context
def audit(ctx: click.Context, last_n: int | None, output_json: bool) -> None:
    """Show committed changes from the audit log."""
    from .commands.audit_cmd import run_audit

    count = run_audit(ctx.obj["vault"], last_n=last_n, output_json=output_json)
    sys.exit(0 if count > 0 else 1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
