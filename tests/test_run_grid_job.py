import argparse

import pytest

from geogrid.core.config import Settings
from geogrid.core.models import NOT_FOUND, GridValidationError
from geogrid.jobs import run_grid


def _settings(**overrides):
    params = dict(dataforseo_login="me", dataforseo_password="pw", lookup_timeout_seconds=5.0)
    params.update(overrides)
    return Settings(**params)


@pytest.fixture
def stub_lookup(monkeypatch):
    calls = []

    def fake_build(settings):
        def find_ranking(keyword, business_name, location_context):
            calls.append((keyword, business_name, location_context))
            return 3

        return find_ranking

    monkeypatch.setattr(run_grid, "get_settings", lambda: _settings())
    monkeypatch.setattr(run_grid, "build_rank_lookup", fake_build)
    return calls


def test_run_grid_job_returns_payload(stub_lookup):
    payload = run_grid.run_grid_job(
        keyword="plumber",
        business_name="Acme Plumbing",
        lat=37.7749,
        lng=-122.4194,
        grid_size=5,
        radius_km=5.0,
        shape="circular",
        seed=11,
    )

    assert payload["status"] == "ranked"
    assert payload["centerRank"] == 3
    assert len(payload["gridPoints"]) == 13
    assert "runId" not in payload
    assert stub_lookup == [("plumber", "Acme Plumbing", "37.774900,-122.419400")]


def test_run_grid_job_is_reproducible_with_seed(stub_lookup):
    kwargs = dict(
        keyword="plumber",
        business_name="Acme Plumbing",
        lat=37.7749,
        lng=-122.4194,
        grid_size=5,
        radius_km=5.0,
        shape="square",
        seed=99,
    )
    assert run_grid.run_grid_job(**kwargs) == run_grid.run_grid_job(**kwargs)


def test_run_grid_job_persists_when_asked(stub_lookup, monkeypatch):
    saved = []
    monkeypatch.setattr(run_grid, "save_grid_run", lambda request, result: saved.append(result) or 42)

    payload = run_grid.run_grid_job(
        keyword="plumber",
        business_name="Acme Plumbing",
        lat=37.7749,
        lng=-122.4194,
        grid_size=1,
        radius_km=1.0,
        shape="circular",
        location="San Francisco",
        persist=True,
    )

    assert payload["runId"] == 42
    assert len(saved) == 1
    assert stub_lookup[0][2] == "San Francisco"


def test_run_grid_job_rejects_invalid_request(stub_lookup):
    with pytest.raises(GridValidationError):
        run_grid.run_grid_job(
            keyword="plumber",
            business_name="Acme Plumbing",
            lat=137.0,
            lng=-122.4194,
            grid_size=5,
            radius_km=5.0,
            shape="circular",
        )
    assert stub_lookup == []


def test_run_grid_job_reports_not_found(monkeypatch):
    monkeypatch.setattr(run_grid, "get_settings", lambda: _settings())
    monkeypatch.setattr(run_grid, "build_rank_lookup", lambda settings: lambda *args: NOT_FOUND)

    payload = run_grid.run_grid_job(
        keyword="plumber",
        business_name="Acme Plumbing",
        lat=37.7749,
        lng=-122.4194,
        grid_size=3,
        radius_km=2.0,
        shape="circular",
    )

    assert payload["status"] == "not_found"
    assert payload["summary"] == {"averageFirstPageRank": 0.0, "totalGridRankMean": 0.0, "topSpotShare": 0.0}


def test_build_parser_defaults(monkeypatch):
    monkeypatch.setattr(
        run_grid, "get_settings", lambda: _settings(default_grid_size=7, default_radius_km=3.0, default_shape="square")
    )
    parser = run_grid.build_parser()
    args = parser.parse_args(["--keyword", "plumber", "--business", "Acme", "--lat", "37.7", "--lng", "-122.4"])

    assert isinstance(parser, argparse.ArgumentParser)
    assert args.business_name == "Acme"
    assert args.grid_size == 7
    assert args.radius_km == 3.0
    assert args.shape == "square"
    assert args.persist is False
    assert args.seed is None
