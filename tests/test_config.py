"""Tests for solver configuration."""

import pytest
from bimaru import config as config_module
from bimaru.config import MAX_LEVEL, SolverConfig
from pydantic import ValidationError

ENV_NAMES = (
    "BIMARU_MAX_LEVEL",
    "BIMARU_LOOKAHEAD_MAX_MISSING",
    "BIMARU_LOOKAHEAD_MAX_CANDIDATES",
    "BIMARU_LOOKAHEAD_IDENTIFY_TILES",
    "BIMARU_RAISE_ON_STALL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = SolverConfig.from_env()

    assert config.max_level == MAX_LEVEL
    assert config.lookahead_max_missing == 2
    assert config.lookahead_max_candidates == 4
    assert not config.lookahead_identify_tiles
    assert not config.raise_on_stall


def test_reads_environment_and_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BIMARU_MAX_LEVEL", "5")
    monkeypatch.setenv("BIMARU_LOOKAHEAD_IDENTIFY_TILES", "yes")
    monkeypatch.setenv("BIMARU_RAISE_ON_STALL", "1")

    config = SolverConfig.from_env(raise_on_stall=False)

    assert config.max_level == 5
    assert config.lookahead_identify_tiles
    assert not config.raise_on_stall


def test_rejects_unknown_level() -> None:
    with pytest.raises(ValidationError):
        SolverConfig(max_level=MAX_LEVEL + 1)
    with pytest.raises(ValidationError):
        SolverConfig(lookahead_max_candidates=0)


def test_load_solver_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    config_module.load_solver_config.cache_clear()
    monkeypatch.setenv("BIMARU_MAX_LEVEL", "4")

    first = config_module.load_solver_config()
    assert first is config_module.load_solver_config()
    assert first.max_level == 4
    config_module.load_solver_config.cache_clear()
