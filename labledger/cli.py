"""Click CLI entry point for labledger."""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import click
from pydantic import ValidationError

from labledger.config import Settings
from labledger.logging import configure_logging
from labledger.models.state import TxState

if TYPE_CHECKING:
    from labledger.models.experiment import ExperimentRecord
    from labledger.models.state import AppState, TxStatus
    from labledger.protocols import BlobStorePort
    from labledger.session import LabSession


def _get_store(settings: Settings) -> BlobStorePort:
    from labledger.store import HttpBlobStore

    if not settings.store_configured:
        click.echo("Blob store not configured (STORE_URL is empty).", err=True)
        sys.exit(1)
    return HttpBlobStore.from_settings(settings)


def _echo_status(status: TxStatus) -> None:
    if status.state == TxState.IDLE:
        return
    marker = {TxState.PENDING: "...", TxState.SUCCESS: "OK ", TxState.ERROR: "ERR"}[status.state]
    click.echo(f"  [{marker}] {status.message}", err=status.state == TxState.ERROR)


def _new_session(settings: Settings) -> LabSession:
    from labledger.session import LabSession

    session = LabSession(_get_store(settings), settings)
    session.orchestrator.notifier.subscribe(_echo_status)
    return session


async def _connected(settings: Settings, account: str | None) -> LabSession:
    from labledger.wallet import StaticWallet

    session = _new_session(settings)
    acting = account or settings.account
    if not acting:
        click.echo("Error: provide --account or set ACCOUNT", err=True)
        sys.exit(1)
    await session.connect(StaticWallet(acting))
    return session


def _short(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _format_record(record: ExperimentRecord) -> str:
    created = datetime.fromtimestamp(record.timestamp, UTC).strftime("%Y-%m-%d")
    return (
        f"  [{record.id}] {record.status.value:9s} {record.experiment_name} "
        f"({_short(record.participant)}, {created})"
    )


def _exit_on_failure(state: AppState) -> None:
    result = state.last_operation
    if result is not None and not result.ok:
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """labledger: experiment registry on a ledger-backed blob store."""
    ctx.ensure_object(dict)
    settings = Settings()
    log_level = "DEBUG" if verbose else settings.log_level
    configure_logging(log_level=log_level, log_format=settings.log_format)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command("ls")
@click.option(
    "--status",
    type=click.Choice(["pending", "analyzed", "archived"], case_sensitive=False),
    default=None,
    help="Filter by status",
)
@click.pass_context
def list_experiments(ctx: click.Context, status: str | None) -> None:
    """List experiments, newest first."""
    settings = ctx.obj["settings"]

    async def _run() -> AppState:
        return await _new_session(settings).refresh()

    state = asyncio.run(_run())
    records = [e for e in state.experiments if status is None or e.status.value == status.lower()]
    if not records:
        click.echo("No experiments found.")
        return
    for record in records:
        click.echo(_format_record(record))


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show experiment counts by status."""
    settings = ctx.obj["settings"]

    async def _run() -> AppState:
        return await _new_session(settings).refresh()

    state = asyncio.run(_run())
    click.echo(f"  {'Total:':<12s}{state.total_count}")
    click.echo(f"  {'Pending:':<12s}{state.pending_count}")
    click.echo(f"  {'Analyzed:':<12s}{state.analyzed_count}")
    click.echo(f"  {'Archived:':<12s}{state.archived_count}")


@cli.command()
@click.argument("experiment_id")
@click.pass_context
def show(ctx: click.Context, experiment_id: str) -> None:
    """Read one record directly from its key, indexed or not."""
    from labledger import codec
    from labledger.exceptions import DecodeError
    from labledger.index import record_key

    settings = ctx.obj["settings"]
    store = _get_store(settings)
    try:
        key = record_key(experiment_id)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    blob = asyncio.run(store.get_data(key))
    if not blob:
        click.echo(f"Experiment {experiment_id} not found.", err=True)
        sys.exit(1)
    try:
        record = codec.decode(blob, experiment_id)
    except DecodeError as exc:
        click.echo(f"Experiment {experiment_id} is undecodable: {exc}", err=True)
        click.echo(blob.decode("utf-8", errors="replace"))
        sys.exit(1)

    click.echo(f"Experiment {record.id}: {record.experiment_name}")
    click.echo(f"  Status:      {record.status.value}")
    click.echo(f"  Participant: {record.participant}")
    click.echo(f"  Created:     {datetime.fromtimestamp(record.timestamp, UTC).isoformat()}")
    click.echo(f"  Key:         {key}")


@cli.command()
@click.option("--name", "experiment_name", required=True, help="Experiment name")
@click.option("--questions", "question_set", required=True, help="Question set")
@click.option("--info", "participant_info", default="", help="Information for participants")
@click.option("--account", default=None, help="Signing account (defaults to ACCOUNT)")
@click.option("--retry-id", default=None, help="Retry a failed creation under this id")
@click.pass_context
def create(
    ctx: click.Context,
    experiment_name: str,
    question_set: str,
    participant_info: str,
    account: str | None,
    retry_id: str | None,
) -> None:
    """Create a new experiment."""
    from labledger.models.experiment import NewExperiment

    settings = ctx.obj["settings"]
    try:
        draft = NewExperiment(
            experiment_name=experiment_name,
            question_set=question_set,
            participant_info=participant_info,
        )
    except ValidationError:
        click.echo("Error: please fill required fields (--name, --questions)", err=True)
        sys.exit(1)

    async def _run() -> AppState:
        session = await _connected(settings, account)
        return await session.create_experiment(draft, experiment_id=retry_id)

    state = asyncio.run(_run())
    result = state.last_operation
    if result is not None and result.record_id:
        if result.ok:
            click.echo(f"Created experiment {result.record_id}.")
        elif result.record is not None:
            click.echo(f"Retry with: labledger create ... --retry-id {result.record_id}", err=True)
    _exit_on_failure(state)


@cli.command()
@click.argument("experiment_id")
@click.option("--account", default=None, help="Signing account (defaults to ACCOUNT)")
@click.pass_context
def analyze(ctx: click.Context, experiment_id: str, account: str | None) -> None:
    """Mark an experiment as analyzed (participant only)."""
    settings = ctx.obj["settings"]

    async def _run() -> AppState:
        session = await _connected(settings, account)
        return await session.analyze_experiment(experiment_id)

    _exit_on_failure(asyncio.run(_run()))


@cli.command()
@click.argument("experiment_id")
@click.option("--account", default=None, help="Signing account (defaults to ACCOUNT)")
@click.pass_context
def archive(ctx: click.Context, experiment_id: str, account: str | None) -> None:
    """Archive an experiment."""
    settings = ctx.obj["settings"]

    async def _run() -> AppState:
        session = await _connected(settings, account)
        return await session.archive_experiment(experiment_id)

    _exit_on_failure(asyncio.run(_run()))


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check that the blob store is reachable."""
    settings = ctx.obj["settings"]

    async def _run() -> AppState:
        return await _new_session(settings).check_availability()

    state = asyncio.run(_run())
    if not state.store_available:
        sys.exit(1)
