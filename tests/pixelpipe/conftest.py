"""Shared pytest fixtures for pixelpipe tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Add src to sys.path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path.resolve()) not in sys.path:
    sys.path.insert(0, str(src_path.resolve()))

import pytest

from pixelpipe.artifact_writer import ArtifactWriter
from pixelpipe.models.config import Config
from pixelpipe.pipeline import EventDispatcher, ImageProcessor
from tests.pixelpipe.mocks import MockObjectStore, make_config


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def store() -> MockObjectStore:
    return MockObjectStore()


@pytest.fixture
def processor(config: Config, store: MockObjectStore) -> ImageProcessor:
    return ImageProcessor(config, store, ArtifactWriter(store))


@pytest.fixture
def dispatcher(config: Config, processor: ImageProcessor) -> EventDispatcher:
    return EventDispatcher(config, processor)
