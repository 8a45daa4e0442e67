"""Parish Delivery CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import ParishDeliveryClient, ParishDeliveryError
from .commands import config, delivery
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="parish-delivery",
    help="📬 Parish communications delivery operator CLI",
    rich_markup_mode="rich",
)

app.add_typer(config.app, name="config")

app.command("deliver")(delivery.deliver)
app.command("jobs")(delivery.list_jobs)
app.command("job")(delivery.show_job)
app.command("stats")(delivery.stats)
app.command("send")(delivery.show_send)


@app.command()
def status():
    """📊 Check service status and connectivity"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with ParishDeliveryClient(base_url) as client:
            health = client.health_check()
    except ParishDeliveryError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the delivery API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"You can update the API URL with:\n"
                f"[cyan]parish-delivery config set api.base_url <url>[/cyan]",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    delivery_health = health.get("delivery") or {}
    enabled = delivery_health.get("enabled", False)
    console.print(
        Panel(
            f"🚀 [green]Connected Successfully![/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Delivery: {'[green]enabled[/green]' if enabled else '[red]disabled[/red]'}"
            f" ({delivery_health.get('provider') or 'no provider'})\n"
            f"• Pending Jobs: [yellow]{delivery_health.get('pending', 0)}[/yellow]\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green",
        )
    )


def _version_callback(value: bool):
    if value:
        from . import __version__

        console.print(f"Parish Delivery CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """
    📬 Parish Delivery CLI

    Trigger delivery batches and inspect the delivery job queue.
    """


if __name__ == "__main__":
    app()
