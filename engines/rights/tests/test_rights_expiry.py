from datetime import timedelta

from engines.rights.engine import days_until_expiry, get_expiring_rights


def test_lookahead_window_controls_inclusion(make_rights, now):
    rights = [make_rights(valid_until=now + timedelta(days=45))]
    assert get_expiring_rights(rights, 30, now) == []
    assert [r.asset_id for r in get_expiring_rights(rights, 60, now)] == ["asset-1"]


def test_perpetual_and_expired_never_included(make_rights, now):
    rights = [
        make_rights(asset_id="perpetual", valid_until=None),
        make_rights(asset_id="lapsed", valid_until=now - timedelta(hours=1)),
        make_rights(asset_id="soon", valid_until=now + timedelta(days=3)),
    ]
    assert [r.asset_id for r in get_expiring_rights(rights, 30, now)] == ["soon"]


def test_sorted_by_expiry_then_asset(make_rights, now):
    rights = [
        make_rights(asset_id="c", valid_until=now + timedelta(days=20)),
        make_rights(asset_id="b", valid_until=now + timedelta(days=5)),
        make_rights(asset_id="a", valid_until=now + timedelta(days=20)),
    ]
    assert [r.asset_id for r in get_expiring_rights(rights, 30, now)] == ["b", "a", "c"]


def test_days_until_expiry_rounds_up(make_rights, now):
    assert days_until_expiry(make_rights(valid_until=now + timedelta(days=2, hours=1)), now) == 3
    assert days_until_expiry(make_rights(valid_until=None), now) is None
