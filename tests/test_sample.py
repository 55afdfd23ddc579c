"""Tests for pvsim_api.simulators.sample.generate_sample."""

import random
from datetime import datetime
from types import SimpleNamespace

import pytest

from pvsim_api.services.errors import SiteNotFoundError
from pvsim_api.simulators.physics import site_physics
from pvsim_api.simulators.sample import generate_sample, site_capacity_kw


NOON = datetime(2025, 6, 21, 12, 0)
MIDNIGHT = datetime(2025, 6, 21, 0, 0)


@pytest.fixture
def plant():
    return SimpleNamespace(site_id=7, capacity_kw=5.0, timezone=None)


# ---------------------------------------------------------------------------
# Physics pass-through
# ---------------------------------------------------------------------------


def test_noon_sample_weather(plant, rng):
    sample = generate_sample(plant, NOON, rng)
    expected = site_physics(5.0, 12.0)

    assert sample.site_id == 7
    assert sample.timestamp == NOON
    assert sample.irradiance == 900.0
    assert sample.ambient_temp == 30.0
    assert sample.module_temp == round(expected.module_temp, 2)


def test_power_noise_is_bounded_and_positive(plant):
    base = site_physics(5.0, 12.0).power_kw
    rng = random.Random(0)
    for _ in range(200):
        sample = generate_sample(plant, NOON, rng)
        assert base - 1e-4 <= sample.power_kw <= base + 0.2 + 1e-4


def test_night_power_is_only_noise(plant):
    rng = random.Random(5)
    for _ in range(50):
        sample = generate_sample(plant, MIDNIGHT, rng)
        assert sample.irradiance == 0.0
        assert 0.0 <= sample.power_kw <= 0.2


def test_jitter_never_exceeds_small_plant_rating():
    tiny = SimpleNamespace(site_id=2, capacity_kw=0.1, timezone=None)
    rng = random.Random(3)
    for ts in (MIDNIGHT, NOON):
        for _ in range(100):
            assert 0.0 <= generate_sample(tiny, ts, rng).power_kw <= 0.1


def test_minutes_contribute_to_hour(plant, rng):
    early = generate_sample(plant, datetime(2025, 6, 21, 9, 0), rng)
    later = generate_sample(plant, datetime(2025, 6, 21, 9, 30), rng)
    assert later.irradiance > early.irradiance


# ---------------------------------------------------------------------------
# Wind and rounding
# ---------------------------------------------------------------------------


def test_wind_ranges(plant):
    rng = random.Random(42)
    samples = [generate_sample(plant, NOON, rng) for _ in range(200)]
    assert all(0.0 <= s.wind_speed <= 10.0 for s in samples)
    assert all(0.0 <= s.wind_dir <= 360.0 for s in samples)


def test_fields_are_rounded(plant, rng):
    sample = generate_sample(plant, datetime(2025, 6, 21, 10, 17), rng)
    for value in (sample.irradiance, sample.ambient_temp, sample.module_temp,
                  sample.wind_speed, sample.wind_dir):
        assert round(value, 2) == value
    assert round(sample.power_kw, 4) == sample.power_kw


def test_same_seed_same_sample(plant):
    a = generate_sample(plant, NOON, random.Random(99))
    b = generate_sample(plant, NOON, random.Random(99))
    assert a == b


def test_sample_is_immutable(plant, rng):
    sample = generate_sample(plant, NOON, rng)
    with pytest.raises(AttributeError):
        sample.power_kw = 0.0


# ---------------------------------------------------------------------------
# Site handling
# ---------------------------------------------------------------------------


def test_missing_site_raises():
    with pytest.raises(SiteNotFoundError, match="Site 3 not found"):
        generate_sample(None, NOON, site_id=3)


def test_site_without_capacity_defaults_to_one_kw(rng):
    plant = SimpleNamespace(site_id=1, capacity_kw=None, timezone=None)
    assert site_capacity_kw(plant) == 1.0
    sample = generate_sample(plant, NOON, rng)
    assert sample.power_kw <= 1.0


def test_event_payload(plant, rng):
    event = generate_sample(plant, NOON, rng).to_event()
    assert event["siteId"] == 7
    assert event["timestamp"] == NOON.isoformat()
    assert event["irradiance"] == 900.0
    assert event["temp"] == 30.0
    assert set(event) == {"siteId", "timestamp", "powerKw", "irradiance", "temp", "moduleTemp"}
