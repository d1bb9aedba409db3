"""
certsync — CLI Entry Point

Usage:
    certsync sync NAMESPACE/NAME [--store cloudflare] [--mock] [--json]
    certsync check NAMESPACE/NAME
    certsync stores
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import json
import sys
from typing import Optional, Tuple

import click

from .config.loader import SyncSettings, load_settings
from .engine.annotations import is_sync_enabled, split_secret_ref
from .engine.sync import SyncOrchestrator
from .errors import SyncError
from .logging_config import setup_logging
from .persistence.secret_store import SecretStore, create_core_api
from .stores.http import create_http_client
from .stores.registry import default_registry


def _parse_ref(ref: str) -> Tuple[str, str]:
    namespace, name = split_secret_ref(ref, "default")
    if not name:
        raise click.BadParameter(f"expected NAMESPACE/NAME, got {ref!r}")
    return namespace, name


def _secret_store(settings: SyncSettings) -> SecretStore:
    return SecretStore(
        create_core_api(),
        field_manager=settings.field_manager,
        timeout=settings.kube_timeout,
        dry_run=settings.mock_mode,
    )


@click.group()
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: Optional[str]) -> None:
    """certsync — Sync Kubernetes TLS secrets to external certificate stores."""
    setup_logging(level=log_level, format_type=log_format)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings()


@cli.command()
@click.argument("ref")
@click.option("--store", "stores", multiple=True, help="Store to sync (repeatable)")
@click.option("--mock", is_flag=True, help="Use in-memory stores and don't persist")
@click.option("--json", "as_json", is_flag=True, help="Output receipts as JSON")
@click.pass_context
def sync(
    ctx: click.Context,
    ref: str,
    stores: Tuple[str, ...],
    mock: bool,
    as_json: bool,
) -> None:
    """Sync one secret to its configured stores."""
    settings: SyncSettings = ctx.obj["settings"]
    if mock:
        settings.mock_mode = True
    namespace, name = _parse_ref(ref)

    secret_store = _secret_store(settings)
    with create_http_client(settings.http_timeout) as http_client:
        registry = default_registry(http_client, settings)
        orchestrator = SyncOrchestrator(secret_store, registry, settings)
        receipts = orchestrator.sync_by_name(namespace, name, list(stores) or None)

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in receipts], indent=2))
    else:
        for receipt in receipts:
            if receipt.status == "ok":
                click.secho(f"  ✓ {receipt.store}", fg="green", nl=False)
                suffix = " (recorded)" if receipt.persisted else ""
                click.echo(f" — {receipt.store_id}{suffix}")
            elif receipt.status == "skipped":
                click.secho(f"  - {receipt.store}", fg="cyan", nl=False)
                click.echo(f" — skipped: {receipt.reason}")
            else:
                click.secho(f"  ✗ {receipt.store}", fg="red", nl=False)
                retry = "retryable" if receipt.retryable else "terminal"
                click.echo(
                    f" — {receipt.step}: {receipt.error.message} ({retry})"
                )
        if mock:
            click.secho("\n(Mock mode — no changes persisted)", fg="cyan")

    if any(r.status == "failed" for r in receipts):
        sys.exit(1)


@cli.command()
@click.argument("ref")
@click.pass_context
def check(ctx: click.Context, ref: str) -> None:
    """Show the store configuration derived from a secret's annotations."""
    from .config.validator import ConfigValidator

    settings: SyncSettings = ctx.obj["settings"]
    namespace, name = _parse_ref(ref)

    try:
        secret = _secret_store(settings).get_certificate_secret(namespace, name)
    except SyncError as e:
        click.secho(f"✗ {e.message}", fg="red")
        sys.exit(1)

    enabled = is_sync_enabled(secret, settings.operator_name)
    click.echo(f"\n📋 {secret.ref}  (sync-enabled: {'yes' if enabled else 'no'})\n")

    results = ConfigValidator(settings.operator_name).validate_secret(secret)
    if not results:
        click.echo("  No store annotations found")

    for store, status in sorted(results.items()):
        if status.configured:
            click.secho(f"  ✓ {store}", fg="green")
        else:
            click.secho(f"  ✗ {store}", fg="red", nl=False)
            click.echo(f" — missing: {', '.join(status.missing)}")
        click.echo(f"    credentials: {status.credential_ref or '-'}")
        if status.scope:
            click.echo(f"    scope:       {status.scope}")
        click.echo(f"    cert id:     {status.store_id or '(first sync)'}")
        if status.guidance:
            click.echo(f"    → {status.guidance}")


@cli.command()
@click.pass_context
def stores(ctx: click.Context) -> None:
    """List available stores and what they need."""
    settings: SyncSettings = ctx.obj["settings"]
    with create_http_client(settings.http_timeout) as http_client:
        registry = default_registry(http_client, settings)
        for name in registry.names():
            store = registry.get(name)
            click.echo(f"  {name}")
            click.echo(f"    credential fields: {', '.join(store.credential_fields)}")
            if store.scope_key:
                click.echo(f"    scope annotation:  {name}-{store.scope_key}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
