"""CLI entrypoint for pixelpipe."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import fire  # type: ignore[import-untyped]

from pixelpipe.app import Application
from pixelpipe.artifact_writer import ArtifactWriter
from pixelpipe.config import ConfigError, load_config, load_config_from_env
from pixelpipe.logging_setup import configure_logging
from pixelpipe.models.artifact import ProcessingResult
from pixelpipe.models.config import Config
from pixelpipe.models.events import BatchResult, EventPayloadError, parse_event_payload
from pixelpipe.pipeline import EventDispatcher, ImageProcessor
from pixelpipe.plugins.storage import load_storage_plugin


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI."""
    configure_logging(log_level=level)


def _load(config: str | None) -> Config:
    if config is None:
        return load_config_from_env()
    return load_config(Path(config))


async def _process_one(cfg: Config, bucket: str, key: str) -> ProcessingResult:
    store = load_storage_plugin(cfg.storage)
    try:
        processor = ImageProcessor(cfg, store, ArtifactWriter(store))
        return await processor.process(bucket, key)
    finally:
        await store.shutdown()


async def _dispatch(cfg: Config, payload: str) -> BatchResult:
    store = load_storage_plugin(cfg.storage)
    try:
        processor = ImageProcessor(cfg, store, ArtifactWriter(store))
        dispatcher = EventDispatcher(cfg, processor)
        return await dispatcher.handle_batch(parse_event_payload(payload))
    finally:
        await store.shutdown()


class PixelPipe:
    """pixelpipe CLI - direct image uploads and derived image artifacts."""

    def run(self, config: str | None = None, log_level: str = "INFO") -> None:
        """Run the API server and any configured notification source.

        Args:
            config: Path to YAML config file (default: PIXELPIPE_* environment)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        setup_logging(log_level)

        app = Application(Path(config) if config else None)

        try:
            asyncio.run(app.run())
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            pass  # Handled by signal handlers

    def validate(self, config: str | None = None) -> None:
        """Validate configuration without running.

        Args:
            config: Path to YAML config file (default: PIXELPIPE_* environment)
        """
        try:
            cfg = _load(config)
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        print(f"✓ Config valid: {config or 'environment'}")
        print(f"  Buckets: origin={cfg.buckets.origin} derived={cfg.buckets.derived}")
        print(f"  Storage backend: {cfg.storage.backend}")
        print(f"  Identity backend: {cfg.identity.backend}")
        variants = [
            f"{variant.name} ({variant.width}x{variant.height} {variant.format.value})"
            for variant in cfg.processing.variants
        ]
        print(f"  Variants: {variants}")
        print(f"  Alternate format: {cfg.processing.alternate_format.value}")
        print(f"  Queue enabled: {cfg.queue.enabled}")

    def process(
        self,
        key: str,
        config: str | None = None,
        bucket: str | None = None,
        log_level: str = "INFO",
    ) -> None:
        """Derive all artifacts for one stored original.

        Args:
            key: Object key of the original
            config: Path to YAML config file (default: PIXELPIPE_* environment)
            bucket: Bucket holding the original (default: the origin bucket)
            log_level: Logging level
        """
        setup_logging(log_level)
        try:
            cfg = _load(config)
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        result = asyncio.run(_process_one(cfg, bucket or cfg.buckets.origin, key))
        print(result.model_dump_json(indent=2))
        if not result.ok:
            sys.exit(1)

    def dispatch(self, events: str, config: str | None = None, log_level: str = "INFO") -> None:
        """Process an S3-style event document from a JSON file ('-' for stdin).

        Args:
            events: Path to the event JSON document
            config: Path to YAML config file (default: PIXELPIPE_* environment)
            log_level: Logging level
        """
        setup_logging(log_level)
        try:
            cfg = _load(config)
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        payload = sys.stdin.read() if events == "-" else Path(events).read_text()
        try:
            result = asyncio.run(_dispatch(cfg, payload))
        except EventPayloadError as e:
            print(f"✗ Event document invalid: {e}", file=sys.stderr)
            sys.exit(1)

        print(json.dumps(result.summary(), indent=2))
        if not result.all_succeeded:
            sys.exit(1)


def main() -> None:
    """Main CLI entrypoint."""
    # Strip --help/-h when it's the only arg so Fire shows its commands list
    if len(sys.argv) == 2 and sys.argv[1] in ("--help", "-h"):
        sys.argv.pop()
    fire.Fire(PixelPipe)


if __name__ == "__main__":
    main()
