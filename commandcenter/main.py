"""
Command Center — CLI entrypoint.

Usage:
    commandcenter --help
    sudo commandcenter run [--auto]
    commandcenter status
    commandcenter config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from commandcenter import __version__
from commandcenter.core.config.loader import ConfigError, load_settings
from commandcenter.core.config.settings import Settings
from commandcenter.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="commandcenter")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to commandcenter.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Command Center — provision a Raspberry Pi appliance."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(level=resolve_level(debug=debug, verbose=verbose, quiet=quiet))


def _load_settings(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


# ── run ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--auto", "auto", is_flag=True, default=None, help="Unattended: never prompt, refuse conflicts.")
@click.option(
    "--auto-reboot/--no-auto-reboot",
    "auto_reboot",
    default=None,
    help="Reboot automatically when the boot configuration changed.",
)
@click.option("--preset", default=None, help="Boot tuning preset (conservative, aggressive).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the summary as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    auto: bool | None,
    auto_reboot: bool | None,
    preset: str | None,
    as_json: bool,
) -> None:
    """Run every provisioning phase (resumes where the last run stopped)."""
    from commandcenter.core.use_cases.provision import apply_overrides, run_provision

    settings = _load_settings(ctx)
    try:
        settings = apply_overrides(settings, auto=True if auto else None, auto_reboot=auto_reboot, preset=preset)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    def confirm(prompt: str) -> bool:
        return click.confirm(prompt, default=False, err=True)

    result = run_provision(settings, confirm=confirm)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    summary = result.summary
    color = {"ok": "green", "degraded": "yellow", "reboot-required": "yellow"}.get(summary.status, "red")
    click.echo()
    click.secho(summary.render_text(), fg=color)
    if result.run_log and not ctx.obj.get("quiet"):
        click.echo(f"   Run log: {result.run_log}")
    sys.exit(result.exit_code)


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show phase completion and pending reboot."""
    from commandcenter.core.use_cases.status import get_status

    result = get_status(_load_settings(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho("\n📋 Provisioning status", fg="cyan", bold=True)
    icons = {"succeeded": ("✓", "green"), "failed": ("✗", "red"), "running": ("…", "yellow")}
    for row in result.phases:
        icon, color = icons.get(row.status, ("·", "white"))
        stale = "" if row.current else f" (recorded v{row.version}, will re-run)"
        click.secho(f"   {icon} {row.name:<16}", fg=color, nl=False)
        click.echo(f" {row.status}{stale}")
        if row.error:
            click.echo(f"       {row.error}")

    if result.awaiting_reboot:
        click.echo()
        click.secho(
            f"   ⚠️  Reboot pending (requested by {', '.join(result.reboot_requested_by) or '-'})",
            fg="yellow",
        )
    if result.last_run_id:
        click.echo()
        click.echo(f"   Last run: {result.last_run_id} (exit {result.last_exit_code})")
    click.echo()


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate commandcenter.yml."""
    from commandcenter.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        if result.settings is not None:
            click.echo(f"   Preset: {result.settings.boot.preset}")
        click.echo(f"   Phases: {', '.join(result.phases)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── reboot-check ────────────────────────────────────────────────


@cli.command("reboot-check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def reboot_check(ctx: click.Context, as_json: bool) -> None:
    """Check the boot configuration block and whether a reboot is pending."""
    from commandcenter.core.use_cases.status import check_reboot

    result = check_reboot(_load_settings(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
    elif result.block_present:
        click.secho(f"✅ Boot configuration block present in {result.boot_config}", fg="green")
        if result.preset:
            click.echo(f"   Preset: {result.preset}")
    else:
        click.secho(f"⚠️  No managed block in {result.boot_config}", fg="yellow")

    if result.reboot_pending:
        click.secho("🔄 Reboot required — reboot, then run `commandcenter run` again", fg="yellow")
    elif result.awaiting_reboot:
        click.secho("✓ Rebooted since the change; run `commandcenter run` to continue", fg="green")


# ── backups ─────────────────────────────────────────────────────


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def backups(path: Path, as_json: bool) -> None:
    """List backups of a managed file, oldest first."""
    from commandcenter.core.use_cases.maintenance import list_backups

    rows = list_backups(path)
    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        click.echo(f"No backups of {path}")
        return
    for row in rows:
        click.echo(f"   {row['path']}  ({row['size']} bytes)")


# ── reset ───────────────────────────────────────────────────────


@cli.command()
@click.argument("phase", required=False)
@click.option("--reboot-flag", is_flag=True, help="Clear a pending-reboot flag instead.")
@click.pass_context
def reset(ctx: click.Context, phase: str | None, reboot_flag: bool) -> None:
    """Clear a phase's completion marker so the next run re-executes it."""
    from commandcenter.core.use_cases.maintenance import clear_reboot_flag, reset_phase

    settings = _load_settings(ctx)
    if reboot_flag:
        if clear_reboot_flag(settings):
            click.secho("✓ Pending-reboot flag cleared", fg="green")
        else:
            click.echo("No reboot pending")
        return

    if not phase:
        raise click.UsageError("PHASE is required unless --reboot-flag is given")
    if reset_phase(settings, phase):
        click.secho(f"✓ Phase {phase} will run again", fg="green")
    else:
        click.secho(f"No marker recorded for phase {phase}", fg="yellow")
        sys.exit(1)


if __name__ == "__main__":
    cli()
