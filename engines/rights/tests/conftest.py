from __future__ import annotations

from datetime import datetime, timezone

import pytest

from engines.rights.models import AssetRights, DownloadRequest, RightsHolder, UsageType

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_rights():
    def _make(**overrides) -> AssetRights:
        data = {
            "asset_id": "asset-1",
            "rights_holder": RightsHolder(
                name="Getty Images", contact_email="licensing@getty.com", contract_id="GTY-2024-001"
            ),
            "valid_from": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "valid_until": datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
            "allowed_usage_types": [UsageType.internal, UsageType.digital, UsageType.social_media],
            "restricted_usage_types": [UsageType.broadcast, UsageType.theatrical],
            "allowed_territories": ["US", "CA", "GB"],
            "restricted_territories": [],
            "current_downloads": 0,
            "created_by": "legal@studio.com",
        }
        data.update(overrides)
        return AssetRights(**data)

    return _make


@pytest.fixture
def make_request():
    def _make(**overrides) -> DownloadRequest:
        data = {
            "id": "req-1",
            "asset_id": "asset-1",
            "requested_by": "editor@studio.com",
            "requested_at": NOW,
            "intended_usage": UsageType.internal,
            "territory": "US",
        }
        data.update(overrides)
        return DownloadRequest(**data)

    return _make
