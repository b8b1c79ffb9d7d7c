from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from engines.rights.models import AssetRights, RightsSnapshot, TerritoryList, UsageType, Worldwide


def test_territory_grant_coercion(make_rights):
    assert isinstance(make_rights(allowed_territories="worldwide").allowed_territories, Worldwide)
    grant = make_rights(allowed_territories=["us", " ca "]).allowed_territories
    assert isinstance(grant, TerritoryList)
    assert grant.codes == ["US", "CA"]
    tagged = make_rights(allowed_territories={"kind": "explicit", "codes": ["gb"]}).allowed_territories
    assert tagged.codes == ["GB"]


def test_window_must_be_ordered(make_rights, now):
    with pytest.raises(ValidationError):
        make_rights(valid_from=now, valid_until=now - timedelta(days=1))


def test_download_counter_cannot_be_negative(make_rights):
    with pytest.raises(ValidationError):
        make_rights(current_downloads=-1)


def test_unknown_usage_rejected(make_request):
    with pytest.raises(ValidationError):
        make_request(intended_usage="billboard")


def test_naive_datetimes_become_utc(make_rights):
    rights = make_rights(valid_from=datetime(2024, 1, 1), valid_until=datetime(2025, 1, 1))
    assert rights.valid_from.tzinfo == timezone.utc


def test_stored_shape_round_trips(make_rights):
    rights = make_rights(allowed_territories="worldwide", restricted_territories=["cn"])
    restored = AssetRights.model_validate(rights.model_dump(mode="json"))
    assert restored == rights
    assert restored.restricted_territories == ["CN"]


def test_snapshot_freezes_terms(make_rights):
    rights = make_rights(allowed_territories="worldwide")
    snapshot = RightsSnapshot.from_rights(rights)
    assert snapshot.territories == "worldwide"
    assert snapshot.allowed_usages == [UsageType.internal, UsageType.digital, UsageType.social_media]
    assert snapshot.valid_until == rights.valid_until
    with pytest.raises(ValidationError):
        snapshot.valid_until = None
