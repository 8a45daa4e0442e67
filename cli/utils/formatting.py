"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "cyan",
    "sent": "green",
    "failed": "red",
    "queued": "yellow",
    "not_configured": "dim",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def _styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_summary_panel(summary: dict[str, Any]) -> Panel:
    """Create formatted panel for a batch run summary"""
    content = (
        f"• Processed: [bold]{summary.get('processed', 0)}[/bold]\n"
        f"• Sent: [green]{summary.get('sent', 0)}[/green]\n"
        f"• Failed: [red]{summary.get('failed', 0)}[/red]\n"
        f"• Requeued: [yellow]{summary.get('requeued', 0)}[/yellow]"
    )
    border = "red" if summary.get("failed", 0) else "green"
    return Panel(content, title="Delivery Run", border_style=border)


def create_jobs_table(jobs: list[dict[str, Any]], total: int | None = None) -> Table:
    """Create a formatted table for delivery jobs"""
    title = "Delivery Jobs" if total is None else f"Delivery Jobs ({total} total)"
    table = Table(title=title, box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True, min_width=8)
    table.add_column("Send", justify="left", style="magenta", no_wrap=True, min_width=8)
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="center")
    table.add_column("Next Attempt", justify="left", style="yellow")
    table.add_column("Last Error", justify="left", style="white")

    for job in jobs:
        last_error = job.get("last_error") or "—"
        if len(last_error) > 60:
            last_error = last_error[:60] + "..."

        table.add_row(
            str(job.get("id", ""))[:8],
            str(job.get("send_id", ""))[:8],
            _styled_status(job.get("status", "")),
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            job.get("next_attempt_at") or "—",
            last_error,
        )

    return table


def create_stats_panel(stats: dict[str, Any]) -> Panel:
    """Create formatted panel for queue statistics"""
    by_status = stats.get("by_status", {})
    status_lines = "\n".join(
        f"  {_styled_status(status)}: {count}" for status, count in by_status.items()
    )
    content = (
        f"📬 [bold blue]Delivery Queue[/bold blue]\n\n"
        f"• Total Jobs: [bold]{stats.get('total_jobs', 0)}[/bold]\n"
        f"{status_lines}\n"
        f"• Due Now: [yellow]{stats.get('due_now', 0)}[/yellow]\n"
        f"• Stale Locks: [cyan]{stats.get('stale_locks', 0)}[/cyan]\n"
        f"• Failed (last hour): [red]{stats.get('failed_last_hour', 0)}[/red]"
    )
    return Panel(content, title="Queue Statistics", border_style="blue")


def create_send_panel(send: dict[str, Any], summary: dict[str, Any]) -> Panel:
    """Create formatted panel for a message send and its recipient counts"""
    content = (
        f"• Subject: [bold]{send.get('subject', '')}[/bold]\n"
        f"• Status: {_styled_status(send.get('delivery_status', ''))}\n"
        f"• Provider: {send.get('provider') or '—'}\n"
        f"• Created: {send.get('created_at', '')}\n\n"
        f"• Recipients: [bold]{summary.get('total', 0)}[/bold] "
        f"([green]{summary.get('sent', 0)} sent[/green], "
        f"[yellow]{summary.get('pending', 0)} pending[/yellow], "
        f"[red]{summary.get('failed', 0)} failed[/red], "
        f"{summary.get('not_configured', 0)} not configured)"
    )
    border = "red" if summary.get("failed", 0) else "blue"
    return Panel(content, title=f"Message Send {send.get('id', '')}", border_style=border)


def create_recipients_table(recipients: list[dict[str, Any]]) -> Table:
    """Create a formatted table of per-recipient delivery outcomes"""
    table = Table(title="Recipients", box=box.ROUNDED)

    table.add_column("Member", justify="left", style="cyan", no_wrap=True)
    table.add_column("Email", justify="left")
    table.add_column("Status", justify="center")
    table.add_column("Attempted", justify="left", style="yellow")
    table.add_column("Error", justify="left", style="white")

    for recipient in recipients:
        table.add_row(
            recipient.get("display_name") or recipient.get("clerk_user_id", ""),
            recipient.get("email") or "—",
            _styled_status(recipient.get("delivery_status", "")),
            recipient.get("delivery_attempted_at") or "—",
            recipient.get("delivery_error") or "—",
        )

    return table
