"""HTTP API for upload grants, event webhooks and the local object store."""

from pixelpipe.api.server import APIServer, create_app

__all__ = ["APIServer", "create_app"]
