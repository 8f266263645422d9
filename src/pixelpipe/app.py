"""Main application that wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING

from pixelpipe.api import APIServer, create_app
from pixelpipe.artifact_writer import ArtifactWriter
from pixelpipe.authorizer import UploadAuthorizer
from pixelpipe.config import load_config, load_config_from_env
from pixelpipe.models.config import S3StorageConfig
from pixelpipe.pipeline import EventDispatcher, ImageProcessor
from pixelpipe.plugins.identity import load_identity_plugin
from pixelpipe.plugins.storage import load_storage_plugin
from pixelpipe.sources import SQSNotificationSource

if TYPE_CHECKING:
    from pixelpipe.interfaces import IdentityVerifier, ObjectStore
    from pixelpipe.models.config import Config

logger = logging.getLogger(__name__)


class Application:
    """Main application that orchestrates all components.

    Handles component creation, lifecycle, and graceful shutdown.
    """

    def __init__(self, config_path: Path | None = None, *, config: Config | None = None) -> None:
        """Initialize from a YAML config path, an already-built Config, or neither.

        With neither, configuration comes from `PIXELPIPE_*` environment variables.
        """
        self._config_path = config_path
        self._config = config

        # Components (created in build)
        self._store: ObjectStore | None = None
        self._identity: IdentityVerifier | None = None
        self._processor: ImageProcessor | None = None
        self._dispatcher: EventDispatcher | None = None
        self._authorizer: UploadAuthorizer | None = None
        self._queue_source: SQSNotificationSource | None = None
        self._api_server: APIServer | None = None

        # Shutdown state
        self._shutdown_event = asyncio.Event()
        self._shutdown_started = False

    async def run(self) -> None:
        """Run the application until a shutdown signal arrives."""
        logger.info("Starting pixelpipe...")
        config = self.load()
        self.build()
        self._setup_signal_handlers()

        server_cfg = config.server
        if server_cfg.enabled:
            self._api_server = APIServer(
                app=create_app(self),
                host=server_cfg.host,
                port=server_cfg.port,
            )
            await self._api_server.start()

        if self._queue_source is not None:
            await self._queue_source.start()

        if not await self.store.ping():
            logger.warning("Object store not reachable at startup")

        logger.info(
            "Application started: origin=%s derived=%s",
            config.buckets.origin,
            config.buckets.derived,
        )
        await self._shutdown_event.wait()
        await self.shutdown()

    def load(self) -> Config:
        """Load configuration if it was not passed in."""
        if self._config is None:
            if self._config_path is not None:
                self._config = load_config(self._config_path)
                logger.info("Config loaded from %s", self._config_path)
            else:
                self._config = load_config_from_env()
                logger.info("Config loaded from environment")
        return self._config

    def build(
        self,
        *,
        store: ObjectStore | None = None,
        identity: IdentityVerifier | None = None,
    ) -> None:
        """Create all components based on config.

        `store` and `identity` replace the configured plugins when given.
        """
        config = self.load()

        from pixelpipe.plugins import discover_all_plugins

        discover_all_plugins()

        self._store = store if store is not None else load_storage_plugin(config.storage)
        self._identity = identity if identity is not None else load_identity_plugin(config.identity)

        writer = ArtifactWriter(self._store, cache_control=self._artifact_cache_control(config))
        self._processor = ImageProcessor(config, self._store, writer)
        self._dispatcher = EventDispatcher(config, self._processor)
        self._authorizer = UploadAuthorizer(config, self._store)

        if config.queue.enabled:
            self._queue_source = SQSNotificationSource(config.queue, self._dispatcher)

        logger.info("All components created")

    @staticmethod
    def _artifact_cache_control(config: Config) -> str | None:
        storage_cfg = config.storage.config
        if isinstance(storage_cfg, S3StorageConfig):
            return storage_cfg.artifact_cache_control
        return None

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        if self._shutdown_started:
            logger.warning("Shutdown already in progress, ignoring signal")
            return

        logger.info("Received signal %s, initiating shutdown...", sig.name)
        self._shutdown_started = True
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Graceful shutdown of all components."""
        logger.info("Shutting down application...")

        # Stop order: API, queue, dispatcher, identity, store.
        if self._api_server:
            await self._api_server.stop()

        if self._queue_source:
            await self._queue_source.shutdown()

        if self._dispatcher:
            await self._dispatcher.shutdown()

        if self._identity:
            await self._identity.shutdown()

        if self._store:
            await self._store.shutdown()

        logger.info("Application shutdown complete")

    @property
    def config(self) -> Config:
        if self._config is None:
            raise RuntimeError("Config not loaded")
        return self._config

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            raise RuntimeError("Object store not initialized")
        return self._store

    @property
    def identity(self) -> IdentityVerifier:
        if self._identity is None:
            raise RuntimeError("Identity verifier not initialized")
        return self._identity

    @property
    def processor(self) -> ImageProcessor:
        if self._processor is None:
            raise RuntimeError("Image processor not initialized")
        return self._processor

    @property
    def dispatcher(self) -> EventDispatcher:
        if self._dispatcher is None:
            raise RuntimeError("Dispatcher not initialized")
        return self._dispatcher

    @property
    def authorizer(self) -> UploadAuthorizer:
        if self._authorizer is None:
            raise RuntimeError("Upload authorizer not initialized")
        return self._authorizer

    @property
    def queue_source(self) -> SQSNotificationSource | None:
        return self._queue_source
