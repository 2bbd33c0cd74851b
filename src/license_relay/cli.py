"""Typer CLI for license-relay."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(name="license-relay", help="license-relay: Stripe purchases to Keygen licenses")
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: RELAY_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: RELAY_PORT)"),
):
    """Start the license-relay API server."""
    import uvicorn
    from license_relay.app import create_app
    from license_relay.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting license-relay on {host}:{port}[/bold green]")
    uvicorn.run(create_app(settings), host=host, port=port)


@app.command()
def resolve(
    price_id: str = typer.Argument(..., help="Stripe price id"),
):
    """Show which Keygen policy a price id maps to."""
    from license_relay.common.config import get_settings
    from license_relay.common.exceptions import ConfigurationError
    from license_relay.fulfillment.policy import PolicyResolver

    try:
        resolver = PolicyResolver.from_settings(get_settings())
    except ConfigurationError as e:
        console.print(f"[bold red]CONFIG ERROR[/bold red]: {e.message}")
        raise typer.Exit(2)

    policy_id = resolver.resolve(price_id)
    if policy_id is None:
        console.print(f"[bold red]UNMAPPED[/bold red]: {price_id} ({len(resolver)} prices configured)")
        raise typer.Exit(1)
    console.print(f"{price_id} → [bold]{policy_id}[/bold]")


@app.command()
def sign(
    payload_file: Path = typer.Argument(..., exists=True, readable=True, help="Event JSON file"),
    secret: Optional[str] = typer.Option(None, help="Webhook secret (default: RELAY_STRIPE_WEBHOOK_SECRET)"),
):
    """Print a Stripe-Signature header for a payload file, for local test deliveries."""
    from license_relay.common.config import get_settings
    from license_relay.fulfillment.stripe_webhook import sign_stripe_payload

    secret = secret or get_settings().stripe_webhook_secret
    if not secret:
        console.print("[bold red]Error:[/bold red] no webhook secret given")
        raise typer.Exit(1)
    typer.echo(sign_stripe_payload(payload_file.read_bytes(), secret))


@app.command()
def issue(
    policy: str = typer.Option(..., help="Keygen policy id"),
    email: Optional[str] = typer.Option(None, help="Email the key to this address"),
    reason: Optional[str] = typer.Option(None, help="Reason stored in license metadata"),
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
    secret: str = typer.Option(..., envvar="RELAY_ADMIN_ISSUE_SECRET", help="Admin issue secret"),
):
    """Issue a license through a running server's admin endpoint."""
    import httpx

    body = {"policyId": policy}
    if email:
        body["email"] = email
    if reason:
        body["reason"] = reason

    try:
        resp = httpx.post(
            f"{url.rstrip('/')}/admin/issue",
            json=body,
            headers={"x-admin-issue-secret": secret},
            timeout=60,
        )
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if resp.status_code != 200 or not data.get("success"):
        console.print(f"[bold red]{resp.status_code}[/bold red]: {data.get('error', 'unknown error')}")
        raise typer.Exit(1)

    console.print(f"[bold]{data['license_key']}[/bold]")
    if data.get("emailed"):
        console.print(f"  Emailed to {email}")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check license-relay server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
