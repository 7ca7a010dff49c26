import sys
from pathlib import Path

import pytest

# Ensure the `listing_index` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from listing_index.models import Listing  # noqa: E402


@pytest.fixture
def make_listing():
    """Factory for Listing records with sensible defaults."""
    counter = {"next_id": 1000}

    def factory(name, **overrides):
        counter["next_id"] += 1
        overrides.setdefault("id", counter["next_id"])
        return Listing(name=name, **overrides)

    return factory
