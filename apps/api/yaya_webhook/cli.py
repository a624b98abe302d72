"""CLI commands for the YaYa webhook service."""

import json
import sys
import time

import click
from pydantic import ValidationError

from yaya_webhook.settings import Settings, get_settings
from yaya_webhook.webhooks.payload import TransactionPayload
from yaya_webhook.webhooks.signature import canonical_payload, compute_signature


@click.group()
def cli():
    """YaYa webhook service CLI."""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST).")
@click.option("--port", default=None, type=int, help="Port (defaults to PORT).")
def serve(host, port):
    """Run the webhook service."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "yaya_webhook.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


@cli.command()
@click.argument("payload_file", type=click.File("r"))
@click.option("--secret", envvar="WEBHOOK_SECRET", required=True, help="Shared webhook secret.")
@click.option("--now", "use_now", is_flag=True, help="Replace the timestamp with the current time.")
def sign(payload_file, secret, use_now):
    """Print the canonical string and signature for a JSON payload."""
    try:
        data = json.load(payload_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Payload is not valid JSON: {e}")

    if use_now:
        data["timestamp"] = int(time.time())

    try:
        payload = TransactionPayload.model_validate(data)
    except ValidationError as e:
        raise click.ClickException(f"Invalid payload: {e}")

    click.echo(f"Timestamp: {payload.timestamp}")
    click.echo(f"Canonical: {canonical_payload(payload)}")
    click.echo(f"Signature: {compute_signature(payload, secret)}")


@cli.command("check-config")
def check_config():
    """Load settings and report problems."""
    try:
        settings = Settings()
        settings.validate_production_settings()
    except (ValidationError, ValueError) as e:
        click.echo(f"✗ Invalid configuration: {e}", err=True)
        sys.exit(1)

    for warning in settings.configuration_warnings():
        click.echo(f"! {warning}", err=True)

    click.echo(
        f"✓ Configuration valid (environment={settings.environment}, "
        f"trusted_ips={len(settings.trusted_ip_list)}, "
        f"tolerance={settings.webhook_timestamp_tolerance}ms)"
    )


if __name__ == "__main__":
    cli()
