"""Configuration — settings model and loading for the shellbridge CLI."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


def parse_env_pairs(pairs: list[str] | str, sep: str | None = None) -> dict[str, str]:
    """Parse ``KEY=VALUE`` items into a dict (later keys win).

    A single string is split on ``sep`` first.  Raises ValueError on an
    item without ``=`` or with an empty name.
    """
    if isinstance(pairs, str):
        pairs = [p for p in pairs.split(sep) if p.strip()] if sep else [pairs]
    result: dict[str, str] = {}
    for item in pairs:
        key, eq, value = item.partition("=")
        key = key.strip()
        if not eq or not key:
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        result[key] = value
    return result


class BridgeConfig(BaseModel):
    """Top-level shellbridge configuration.

    The shell executable and the terminal geometry are fixed and not part
    of the configuration.
    """

    cwd: str | None = Field(
        default=None, description="Working directory for the shell (default: current)"
    )
    env: dict[str, str] = Field(
        default_factory=dict, description="Environment overrides for the shell"
    )
    verbose: bool = Field(default=False, description="Enable debug logging")

    @classmethod
    def load(cls, config_path: str | None = None) -> BridgeConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            SHELLBRIDGE_CWD      - Working directory for the shell
            SHELLBRIDGE_ENV      - Extra environment, ``KEY=VALUE;KEY2=VALUE2``
            SHELLBRIDGE_VERBOSE  - ``1``/``true``/``yes`` enables debug logging
        """
        # .env in the working directory takes precedence over stale shell vars.
        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        env_cwd = os.environ.get("SHELLBRIDGE_CWD")
        if env_cwd:
            config_data["cwd"] = env_cwd

        env_extra = os.environ.get("SHELLBRIDGE_ENV")
        if env_extra:
            merged = dict(config_data.get("env", {}))
            merged.update(parse_env_pairs(env_extra, sep=";"))
            config_data["env"] = merged

        env_verbose = os.environ.get("SHELLBRIDGE_VERBOSE")
        if env_verbose:
            config_data["verbose"] = env_verbose.strip().lower() in ("1", "true", "yes")

        return cls.model_validate(config_data)
