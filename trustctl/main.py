"""
trustctl — CLI entrypoint.

Usage:
    trustctl --help
    trustctl apply --dry-run
    trustctl profile --family RedHat --release 6
    trustctl config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from trustctl import __version__
from trustctl.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)

_STATUS_COLORS = {"ok": "green", "partial": "yellow", "failed": "red"}


def _platform_options(func):
    """--family/--name/--release, shared by apply and profile."""
    func = click.option("--release", default=None, help="OS release / major version (default: detected).")(func)
    func = click.option("--name", "os_name", default=None, help="OS short name, e.g. Debian, Ubuntu.")(func)
    func = click.option("--family", default=None, help="OS family, e.g. Debian, RedHat (default: detected; requires --release).")(func)
    return func


def _check_platform_options(family: str | None, release: str | None) -> None:
    if family and release is None:
        raise click.UsageError("--family requires --release")


@click.group()
@click.version_option(version=__version__, prog_name="trustctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to trust.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """trustctl — keep the host's trusted CA certificates in line with trust.yml."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


@cli.command()
@_platform_options
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Plan but don't execute.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real execution).")
@click.pass_context
def apply(
    ctx: click.Context,
    family: str | None,
    os_name: str | None,
    release: str | None,
    as_json: bool,
    dry_run: bool,
    mock: bool,
) -> None:
    """Reconcile the trust store with trust.yml.

    Examples:

        trustctl apply

        trustctl apply --dry-run

        trustctl apply --family RedHat --name CentOS --release 6
    """
    _check_platform_options(family, release)
    from trustctl.core.use_cases.apply import run_apply

    out = run_apply(
        config_path=ctx.obj.get("config_path"),
        family=family,
        name=os_name,
        release=release,
        dry_run=dry_run,
        mock_mode=mock,
    )

    if as_json:
        click.echo(json.dumps(out.to_dict(), indent=2))
        if not out.ok:
            sys.exit(1)
        return

    if out.error:
        click.secho(f"❌ {out.error}", fg="red")
        sys.exit(1)

    result = out.result
    profile = out.profile
    if result is None or profile is None:
        click.secho("❌ Reconciliation did not run", fg="red")
        sys.exit(1)

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(
        f"\n🔐 {mode_label}{profile.family} {profile.major_version} — {profile.trusted_cert_dir}",
        fg="cyan",
        bold=True,
    )
    click.echo()

    for receipt in result.receipts:
        if receipt.ok:
            label = " (changed)" if receipt.changed else ""
            click.secho(f"   ✓ {receipt.action_id}", fg="green", nl=False)
            click.echo(label)
            if ctx.obj.get("verbose") and receipt.output:
                for line in receipt.output.split("\n")[:10]:
                    click.echo(f"     │ {line}")
        elif receipt.failed:
            click.secho(f"   ✗ {receipt.action_id}", fg="red")
            for line in (receipt.error or "").split("\n")[:5]:
                click.echo(f"     │ {line}")
        else:
            click.secho(f"   ⊘ {receipt.action_id} ", fg="yellow", nl=False)
            click.echo(f"({receipt.output})")

    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")

    click.echo()
    click.secho(f"   Status: {result.status}", fg=_STATUS_COLORS.get(result.status, "white"), bold=True)
    if result.certificates_changed:
        click.echo(f"   Certificates changed: {', '.join(sorted(result.certificates_changed))}")
    click.echo(f"   Trust store rebuilt: {'yes' if result.rebuild_triggered else 'no'}")
    click.echo()

    if result.failures:
        sys.exit(1)


@cli.command()
@_platform_options
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def profile(
    family: str | None,
    os_name: str | None,
    release: str | None,
    as_json: bool,
) -> None:
    """Show the trust-store profile for a platform."""
    _check_platform_options(family, release)
    from trustctl.core.platform.profiles import UnsupportedPlatform, resolve_profile
    from trustctl.core.use_cases.apply import platform_facts

    facts = platform_facts(family, os_name, release)
    try:
        resolved = resolve_profile(facts.family, facts.name, facts.release)
    except UnsupportedPlatform as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "family": e.family, "version": e.version}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(resolved.model_dump(mode="json"), indent=2))
        return

    click.secho(f"\n📋 {resolved.family} {resolved.os_name} {resolved.major_version}", fg="cyan", bold=True)
    click.echo(f"   Directory:  {resolved.trusted_cert_dir}")
    click.echo(f"   Ownership:  {resolved.dir_owner}:{resolved.dir_group} {resolved.dir_mode}")
    click.echo(f"   Extension:  .{resolved.cert_file_extension}")
    click.echo(f"   Update:     {' '.join(resolved.update_command)}")
    click.echo(f"   Package:    {resolved.package_name}")
    if resolved.requires_legacy_enable:
        click.echo(f"   Enable:     {' '.join(resolved.enable_command())}")
    click.echo()


@cli.group()
def config() -> None:
    """Trust configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate trust.yml."""
    from trustctl.core.config.loader import ConfigError, load_config

    try:
        loaded = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "error": str(e)}, indent=2))
        else:
            click.secho("❌ Configuration errors:", fg="red", bold=True)
            click.echo(f"   • {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"valid": True, "config": loaded.model_dump(mode="json")}, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   Certificates: {len(loaded.certificates)}")
    for name, cert in sorted(loaded.certificates.items()):
        origin = cert.source or "inline"
        click.echo(f"     • {name} ({cert.ensure})  ← {origin if cert.ensure == 'present' else '-'}")
    package = "not managed" if not loaded.install_package else loaded.package_ensure
    click.echo(f"   Package: {package}")
    click.echo()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
