"""
HTTP binding for the transaction builder.

One POST route per spending script type, all sharing the same pipeline.
"""

from __future__ import annotations

import json
from typing import Any

from aiohttp import web
from loguru import logger

from btcsend.config import Settings
from btcsend.errors import (
    BroadcastError,
    InsufficientFundsError,
    MalformedInputError,
    SigningError,
    TransactionBuildError,
    UpstreamFetchError,
)
from btcsend.models import ScriptType, TransactionRequest
from btcsend.service import TransactionService

ROUTES: dict[str, ScriptType] = {
    "/api/bech": ScriptType.P2WPKH,
    "/api/legacy": ScriptType.P2PKH,
    "/api/p2sh": ScriptType.P2SH_P2WPKH,
}

ERROR_STATUS: dict[type[TransactionBuildError], int] = {
    MalformedInputError: 400,
    InsufficientFundsError: 422,
    SigningError: 422,
    UpstreamFetchError: 502,
    BroadcastError: 502,
}


def status_for(error: TransactionBuildError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


class TransactionServer:
    def __init__(self, settings: Settings, service: TransactionService) -> None:
        self.settings = settings
        self.service = service
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        for path, script_type in ROUTES.items():
            self.app.router.add_post(path, self._make_handler(script_type))
        self.app.router.add_get("/health", self._handle_health)

    def _make_handler(self, script_type: ScriptType):
        async def handler(request: web.Request) -> web.Response:
            return await self._handle_create(request, script_type)

        return handler

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy", "network": self.settings.network.value})

    async def _handle_create(self, request: web.Request, script_type: ScriptType) -> web.Response:
        try:
            payload: Any = await request.json()
        except json.JSONDecodeError:
            return web.json_response({"error": "Request body must be JSON"}, status=400)

        if not isinstance(payload, dict):
            return web.json_response({"error": "Request body must be a JSON object"}, status=400)

        try:
            tx_request = TransactionRequest.from_payload(payload, script_type=script_type)
            result = await self.service.create_transaction(tx_request)
        except TransactionBuildError as e:
            status = status_for(e)
            logger.error(f"{script_type.value} transaction failed ({status}): {e}")
            return web.json_response({"error": str(e)}, status=status)
        except Exception as e:
            logger.exception(f"Unexpected error building {script_type.value} transaction")
            return web.json_response({"error": str(e)}, status=500)

        return web.json_response(result.to_response())

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.settings.http_host, self.settings.http_port)
        await self.site.start()
        logger.info(f"HTTP server listening on {self.settings.http_host}:{self.settings.http_port}")

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
        await self.service.backend.close()
