from __future__ import annotations

import pytest

from src.core.billing.tiers import TierCatalog
from support import PRICE_IDS, FakeGateway


@pytest.fixture
def catalog() -> TierCatalog:
    return TierCatalog(PRICE_IDS)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
