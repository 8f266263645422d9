"""FastAPI app factory and the in-process uvicorn runner."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, cast

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pixelpipe import __version__
from pixelpipe.api.errors import register_exception_handlers
from pixelpipe.api.routes import register_routes

if TYPE_CHECKING:
    from pixelpipe.app import Application

logger = logging.getLogger(__name__)


def create_app(app_instance: Application) -> FastAPI:
    """Build the HTTP API around an Application whose components are built."""
    api = FastAPI(title="pixelpipe API", version=__version__)
    api.state.pixelpipe = app_instance
    register_exception_handlers(api)
    register_routes(api)

    origins = app_instance.config.server.cors_origins
    api.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentialed requests against a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return api


class APIServer:
    """Serves a FastAPI app with uvicorn on the already running event loop."""

    def __init__(
        self,
        app: FastAPI,
        host: str,
        port: int,
        *,
        startup_timeout_s: float = 5.0,
    ) -> None:
        self._uvicorn_config = uvicorn.Config(
            app,
            host=host,
            port=port,
            loop="asyncio",
            log_level="info",
            access_log=False,
        )
        self._startup_timeout_s = startup_timeout_s
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def address(self) -> str:
        return f"http://{self._uvicorn_config.host}:{self._uvicorn_config.port}"

    async def start(self) -> None:
        """Start serving; returns once uvicorn reports it is listening.

        Raises:
            TimeoutError: uvicorn did not start within `startup_timeout_s`.
            Exception: Whatever made uvicorn exit during startup (e.g. port in use).
        """
        if self._task is not None:
            return

        server = uvicorn.Server(self._uvicorn_config)
        # The Application owns SIGINT/SIGTERM.
        cast(Any, server).install_signal_handlers = False
        task = asyncio.create_task(server.serve())
        try:
            async with asyncio.timeout(self._startup_timeout_s):
                while not server.started:
                    if task.done():
                        task.result()
                        raise RuntimeError("API server exited during startup")
                    await asyncio.sleep(0.01)
        except Exception:
            server.should_exit = True
            with suppress(Exception):
                await task
            raise

        self._server, self._task = server, task
        logger.info("API server listening on %s", self.address)

    async def stop(self) -> None:
        server, task = self._server, self._task
        if server is None or task is None:
            return
        self._server = self._task = None
        server.should_exit = True
        try:
            await task
        except Exception as exc:
            logger.error("API server stopped with error: %s", exc, exc_info=True)
        logger.info("API server stopped")
