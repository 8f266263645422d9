"""Pipeline module - event-triggered derivation of image artifacts."""

from pixelpipe.pipeline.dispatcher import EventDispatcher
from pixelpipe.pipeline.processor import ImageProcessor

__all__ = ["EventDispatcher", "ImageProcessor"]
