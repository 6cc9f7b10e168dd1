"""
btcsend CLI - build, sign and optionally broadcast transactions, or serve the HTTP API.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys

import typer
from loguru import logger

from btcsend.backends.http import HttpExplorerBackend
from btcsend.config import Settings, get_settings
from btcsend.errors import TransactionBuildError
from btcsend.models import BroadcastResult, BuildResult, NetworkType, ScriptType, TransactionRequest
from btcsend.service import TransactionService

app = typer.Typer(
    name="btcsend",
    help="Build and sign Bitcoin transactions from a given UTXO set",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def create_service(settings: Settings) -> TransactionService:
    backend = HttpExplorerBackend(
        explorer_url=settings.explorer_url,
        broadcast_url=settings.broadcast_url,
        timeout=settings.request_timeout,
    )
    return TransactionService(
        backend=backend,
        network=settings.network,
        fetch_concurrency=settings.fetch_concurrency,
    )


@app.command()
def build(
    utxos: str = typer.Option(
        ...,
        "--utxos",
        "-u",
        envvar="BTCSEND_UTXOS",
        help="UTXOs as txid:vout,value,wif entries separated by '|'",
    ),
    recipients: str = typer.Option(
        ..., "--to", "-t", help="Recipient address(es), comma-separated"
    ),
    amounts: str = typer.Option(
        ..., "--amount", "-a", help="Amount(s) in sats, comma-separated, paired with --to"
    ),
    change_address: str = typer.Option(..., "--change", "-c", help="Change address"),
    fee: int = typer.Option(..., "--fee", "-f", min=0, help="Absolute fee in sats"),
    script_type: ScriptType = typer.Option(
        ScriptType.P2WPKH, "--script-type", "-s", help="How the UTXOs are locked"
    ),
    rbf: bool = typer.Option(False, "--rbf", help="Signal replace-by-fee"),
    broadcast: bool = typer.Option(False, "--broadcast", help="Broadcast after signing"),
    network: NetworkType | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Build one transaction and print the result as JSON."""
    setup_logging(log_level)

    settings = get_settings()
    if network is not None:
        settings.network = network

    payload = {
        "utxosString": utxos,
        "recipientAddress": recipients,
        "amountToSend": amounts,
        "changeAddress": change_address,
        "transactionFee": fee,
        "RBF": rbf,
        "isBroadcast": broadcast,
    }

    try:
        request = TransactionRequest.from_payload(payload, script_type=script_type)
        result = asyncio.run(_run_build(settings, request))
    except TransactionBuildError as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise typer.Exit(1)

    typer.echo(json.dumps(result.to_response(), indent=2))


async def _run_build(
    settings: Settings, request: TransactionRequest
) -> BuildResult | BroadcastResult:
    service = create_service(settings)
    try:
        return await service.create_transaction(request)
    finally:
        await service.backend.close()


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Run the HTTP API."""
    settings = get_settings()
    if host is not None:
        settings.http_host = host
    if port is not None:
        settings.http_port = port
    setup_logging(log_level or settings.log_level)

    try:
        asyncio.run(_run_server(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


async def _run_server(settings: Settings) -> None:
    from btcsend.server import TransactionServer

    logger.info("Starting btcsend HTTP API")
    logger.info(f"Network: {settings.network.value}")
    logger.info(f"Explorer: {settings.explorer_url}")
    logger.info(f"Broadcast: {settings.broadcast_url}")

    server = TransactionServer(settings, create_service(settings))
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await server.start()
        await stop_event.wait()
        logger.info("Received shutdown signal")
    finally:
        await server.stop()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
