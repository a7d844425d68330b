"""Server-parameter secrets from the env file named by the global config.

The file is parsed with python-dotenv and never loaded into ``os.environ``:
each schema receives only the variables it declares in ``requiredServerParams``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from dotenv import dotenv_values

from flowmcp_cli.foundation.errors import ErrorCode, FlowError


def read_env_file(path: str | Path | None) -> dict[str, str] | None:
    """Parse an env file. A missing path or file yields None; keys without a value are dropped."""
    if not path or not Path(path).expanduser().is_file():
        return None
    values = dotenv_values(Path(path).expanduser())
    return {k: v for k, v in values.items() if v is not None}


def env_unreadable(env_path: str) -> FlowError:
    return FlowError.create(
        f"Cannot read .env file at: {env_path}",
        ErrorCode.ENV_MISSING,
        fix=f"Ensure the .env file exists at {env_path}",
    )


def missing_params(env: Mapping[str, str], required: Iterable[str]) -> list[str]:
    return [name for name in required if name not in env]


def build_server_params(env: Mapping[str, str], required: Iterable[str]) -> dict[str, str]:
    """Select the declared server params that are present in the env file."""
    return {name: env[name] for name in required if name in env}


def check_env_params(env: Mapping[str, str], required: Iterable[str], namespace: str, env_path: str) -> FlowError | None:
    """EnvMissing failure naming every absent variable of one schema, or None."""
    if not (missing := missing_params(env, required)):
        return None
    listed = ", ".join(missing)
    return FlowError.create(
        f'Schema "{namespace}": Missing env vars: {listed}',
        ErrorCode.ENV_MISSING,
        fix=f"Add {listed} to your .env file at {env_path}",
    )


def combine_env_errors(errors: list[FlowError]) -> FlowError:
    """Aggregate per-schema EnvMissing failures into one result."""
    return FlowError.create(
        f"Missing env vars: {'; '.join(e.message for e in errors)}",
        ErrorCode.ENV_MISSING,
        fix=errors[0].fix,
    )
