"""Delivery Commands - trigger batch runs, inspect the job queue and sends"""

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import ParishDeliveryClient, ParishDeliveryError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_jobs_table,
    create_recipients_table,
    create_send_panel,
    create_stats_panel,
    create_summary_panel,
    print_error,
    print_info,
    print_warning,
)

console = Console()

JOB_STATUSES = ("pending", "processing", "sent", "failed")


def deliver(
    limit: int | None = typer.Option(
        None, "--limit", "-l", help="Maximum jobs to process (1-50)"
    ),
):
    """📨 Run one delivery batch now"""
    try:
        with ParishDeliveryClient() as client:
            print_info("Processing due delivery jobs...")
            summary = client.deliver(limit=limit)
    except ParishDeliveryError as e:
        print_error(f"Delivery run failed: {e}")
        raise typer.Exit(1) from None

    console.print(create_summary_panel(summary))
    if summary.get("processed", 0) == 0:
        print_info("No jobs were due")


def list_jobs(
    status: list[str] | None = typer.Option(
        None, "--status", "-s", help="Filter by status (repeatable)"
    ),
    send_id: str | None = typer.Option(None, "--send-id", help="Filter by send"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Page size"),
    offset: int = typer.Option(0, "--offset", help="Results offset"),
):
    """📋 List delivery jobs"""
    for value in status or []:
        if value not in JOB_STATUSES:
            print_error(
                f"Unknown status '{value}'. Choose from: {', '.join(JOB_STATUSES)}"
            )
            raise typer.Exit(1)

    page_size = limit or int(config.get("jobs.page_size", 50))

    try:
        with ParishDeliveryClient() as client:
            data = client.list_jobs(
                status=status, send_id=send_id, limit=page_size, offset=offset
            )
    except ParishDeliveryError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None

    jobs = data.get("jobs", [])
    if not jobs:
        print_warning("No delivery jobs found")
        return

    console.print(create_jobs_table(jobs, total=data.get("total")))


def show_job(job_id: str = typer.Argument(..., help="Delivery job ID")):
    """🔍 Show one delivery job"""
    try:
        with ParishDeliveryClient() as client:
            job = client.get_job(job_id)
    except ParishDeliveryError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None

    lines = [f"• {key}: [yellow]{value}[/yellow]" for key, value in job.items()]
    console.print(Panel("\n".join(lines), title="Delivery Job", border_style="cyan"))


def stats():
    """📊 Show delivery queue statistics"""
    try:
        with ParishDeliveryClient() as client:
            data = client.get_stats()
    except ParishDeliveryError as e:
        print_error(f"Failed to get stats: {e}")
        raise typer.Exit(1) from None

    console.print(create_stats_panel(data))
    if data.get("stale_locks", 0):
        print_warning("Some jobs hold expired locks and will be reclaimed")


def show_send(
    send_id: str = typer.Argument(..., help="Message send ID"),
    parish_id: str | None = typer.Option(
        None, "--parish-id", help="Restrict lookup to one parish"
    ),
    failed_only: bool = typer.Option(
        False, "--failed", help="Only list recipients whose delivery failed"
    ),
):
    """✉️ Show a message send with per-recipient delivery status"""
    try:
        with ParishDeliveryClient() as client:
            data = client.get_send(send_id, parish_id=parish_id)
    except ParishDeliveryError as e:
        print_error(f"Failed to get send: {e}")
        raise typer.Exit(1) from None

    console.print(create_send_panel(data.get("send", {}), data.get("summary", {})))

    recipients = data.get("recipients", [])
    if failed_only:
        recipients = [r for r in recipients if r.get("delivery_status") == "failed"]
    if not recipients:
        print_info("No recipients to show")
        return

    console.print(create_recipients_table(recipients))
