"""Mock implementations for testing."""

from tests.pixelpipe.mocks.config import DERIVED, ORIGIN, make_config
from tests.pixelpipe.mocks.identity import MockIdentityVerifier
from tests.pixelpipe.mocks.images import make_image, open_image
from tests.pixelpipe.mocks.storage import MockObjectStore

__all__ = [
    "DERIVED",
    "ORIGIN",
    "MockIdentityVerifier",
    "MockObjectStore",
    "make_config",
    "make_image",
    "open_image",
]
