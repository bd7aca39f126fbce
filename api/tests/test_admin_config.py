import pytest

from matchcore.errors import ConfigNotFoundError, ConfigValidationError, MatchNotFoundError
from matchcore.services import admin
from matchcore.services.queries import match_config


@pytest.mark.parametrize(
    "changes,message",
    [
        ({"location_adaptive_expansion": [10, 10, 30]}, "strictly incrementing"),
        ({"location_adaptive_expansion": [30, 20]}, "strictly incrementing"),
        ({"age_range_start": 40, "age_range_end": 30}, "age_range_start"),
        ({"score_range_start": 90, "score_range_end": 10}, "score_range_start"),
        ({"drop_hours": ["7pm"]}, "HH:MM"),
        ({"drop_hours": ["24:00"]}, "HH:MM"),
        ({"drop_hours_utc": ["PST"]}, "timezone"),
        ({"drop_hours_utc": ["GMT+15"]}, "timezone"),
        ({"match_expiration_hours": -1}, "non-negative"),
        ({"location_radius_km": -5}, "non-negative"),
        ({"age_range_man_older_by": -5}, "non-negative"),
        ({"age_range_woman_older_by": -5}, "non-negative"),
        ({"age_range_end": -5}, "non-negative"),
        ({"score_range_start": -5}, "non-negative"),
        ({"score_range_end": -5}, "non-negative"),
        ({"location_adaptive_expansion": [-10, 20]}, "non-negative"),
        ({"favourite_colour": "blue"}, "unknown configuration fields"),
    ],
)
def test_invalid_updates_are_rejected(changes, message):
    with pytest.raises(ConfigValidationError) as exc:
        admin.validate_config_update(changes)
    assert message in str(exc.value)


@pytest.mark.parametrize(
    "changes",
    [
        {"location_adaptive_expansion": [10, 20, 30]},
        {"location_adaptive_expansion": []},
        {"drop_hours": ["9:05", "19:00", "23:59"]},
        {"drop_hours_utc": ["GMT+8", "UTC-3", "GMT+14"]},
        # range checks only apply when both bounds are in the update
        {"age_range_start": 40},
        {"age_range_start": 18, "age_range_end": 18},
    ],
)
def test_valid_updates_pass(changes):
    admin.validate_config_update(changes)


def test_update_config_merges_and_ignores_none(ctx, memdb, seed_config):
    original = seed_config()

    with memdb() as db:
        updated = admin.update_config(ctx, db, {"location_radius_km": 80.0, "drop_hours": None})
        db.commit()

    assert updated.id == original.id
    assert updated.location_radius_km == 80.0
    assert updated.drop_hours == original.drop_hours
    with memdb() as db:
        assert match_config(ctx, db).location_radius_km == 80.0


def test_update_config_without_config(ctx, memdb):
    with memdb() as db:
        with pytest.raises(ConfigNotFoundError):
            admin.update_config(ctx, db, {"location_radius_km": 80.0})


def test_invalid_update_writes_nothing(ctx, memdb, seed_config):
    original = seed_config()
    with memdb() as db:
        with pytest.raises(ConfigValidationError):
            admin.update_config(ctx, db, {"location_radius_km": 10.0, "drop_hours": ["noon"]})

    with memdb() as db:
        assert match_config(ctx, db) == original


@pytest.mark.parametrize(
    "setter,field,value",
    [
        (admin.set_approved, "is_approved", True),
        (admin.set_unapproved, "is_approved", False),
        (admin.set_dropped, "is_dropped", True),
        (admin.set_undropped, "is_dropped", False),
        (admin.set_expired, "is_expired", True),
        (admin.set_unexpired, "is_expired", False),
    ],
)
def test_flag_setters(ctx, memdb, clock, visible_match, setter, field, value):
    mr = visible_match(is_approved=not value, is_dropped=not value, is_expired=not value)
    clock.advance(minutes=5)

    with memdb() as db:
        updated = setter(ctx, db, mr.id)
        db.commit()

    assert getattr(updated, field) is value
    assert updated.updated_at == clock()


def test_flag_setter_unknown_match(ctx, memdb):
    with memdb() as db:
        with pytest.raises(MatchNotFoundError):
            admin.set_approved(ctx, db, "missing")
