"""Solver configuration."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

# Number of strategy levels the solver knows about.
MAX_LEVEL = 7


class SolverConfig(BaseModel):
    """Knobs for the leveled solving loop and its lookahead."""

    max_level: int = Field(default=MAX_LEVEL, ge=1, le=MAX_LEVEL)
    lookahead_max_missing: int = Field(default=2, ge=1)
    lookahead_max_candidates: int = Field(default=4, ge=1)
    lookahead_identify_tiles: bool = False
    raise_on_stall: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "SolverConfig":
        """Construct config from `BIMARU_*` env vars; overrides win."""

        data: Dict[str, Any] = {}
        int_fields = {
            "max_level": "BIMARU_MAX_LEVEL",
            "lookahead_max_missing": "BIMARU_LOOKAHEAD_MAX_MISSING",
            "lookahead_max_candidates": "BIMARU_LOOKAHEAD_MAX_CANDIDATES",
        }
        for field, env_name in int_fields.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                data[field] = int(value)

        bool_fields = {
            "lookahead_identify_tiles": "BIMARU_LOOKAHEAD_IDENTIFY_TILES",
            "raise_on_stall": "BIMARU_RAISE_ON_STALL",
        }
        for field, env_name in bool_fields.items():
            value = os.getenv(env_name)
            if value is not None:
                data[field] = value.strip().lower() in {"1", "true", "yes", "on"}

        data.update(overrides)
        return cls(**data)


@lru_cache(maxsize=1)
def load_solver_config() -> SolverConfig:
    """Load and cache solver config from the environment."""

    return SolverConfig.from_env()
