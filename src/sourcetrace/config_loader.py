"""Configuration loader for sourcetrace."""

import logging
import os
import re
import tomllib
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_DIR = ".sourcetrace"
CONFIG_FILE = "config.toml"


def expand_env_vars(value: str) -> str:
    """Expand environment variables in strings using ${VAR:-default} syntax.

    Args:
        value: String that may contain environment variables

    Returns:
        String with environment variables expanded

    """

    def replace_var(match: re.Match[str]) -> str:
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.environ.get(var_name, default)
        return os.environ.get(var_expr, "")

    # Match ${VAR} or ${VAR:-default}
    pattern = r"\$\{([^}]+)\}"
    return re.sub(pattern, replace_var, value)


class TraceSettings(BaseModel):
    """Settings for stack trace decoration."""

    allowed_roots: list[Path] = Field(default_factory=list)
    verbose: bool = False

    @field_validator("allowed_roots", mode="before")
    @classmethod
    def expand_root_paths(cls, v: object) -> object:
        """Expand environment variables and ``~`` in root paths.

        Only strings are expanded. ``Path`` values are taken as already
        expanded, so roots anchored by the loader are not expanded twice.
        """
        if isinstance(v, str | Path):
            v = [v]
        if isinstance(v, list):
            return [
                Path(expand_env_vars(item)).expanduser()
                if isinstance(item, str)
                else item
                for item in v
            ]
        return v


def _anchor(base_dir: Path, root: str | Path) -> Path:
    """Make a configured root absolute against ``base_dir``.

    String roots have environment variables and ``~`` expanded here, before
    anchoring. The result is not expanded again.
    """
    if isinstance(root, str):
        root = Path(expand_env_vars(root)).expanduser()
    return base_dir / root


def _read_config(config_dir: Path) -> dict[str, Any] | None:
    """Read ``config.toml`` from a configuration directory.

    Relative roots are made absolute against the directory that holds the
    configuration directory.
    """
    config_path = config_dir / CONFIG_FILE
    if not config_path.exists():
        return None
    try:
        with config_path.open("rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.debug("Failed to load config %s: %s", config_path, e)
        return None

    roots = config.get("allowed_roots")
    if isinstance(roots, list):
        base_dir = config_dir.parent
        config["allowed_roots"] = [
            _anchor(base_dir, root) if isinstance(root, str) else root
            for root in roots
        ]
    return config


def load_settings(
    work_dir: Path,
    allowed_roots: Sequence[str | Path] | None = None,
    *,
    verbose: bool | None = None,
) -> TraceSettings:
    """Load settings with priority: arguments > local > global.

    Args:
        work_dir: Directory holding the local ``.sourcetrace/config.toml``.
        allowed_roots: Allowed roots overriding any configuration file.
        verbose: Verbose logging flag overriding any configuration file.

    Returns:
        The merged settings.

    """
    merged: dict[str, Any] = {}

    # Lowest priority first, later layers override earlier ones
    for config_dir in (Path.home() / CONFIG_DIR, work_dir / CONFIG_DIR):
        config = _read_config(config_dir)
        if config is None:
            continue
        for key in ("allowed_roots", "verbose"):
            if key in config:
                merged[key] = config[key]

    if allowed_roots is not None:
        merged["allowed_roots"] = [_anchor(work_dir, root) for root in allowed_roots]
    if verbose is not None:
        merged["verbose"] = verbose

    settings = TraceSettings.model_validate(merged)
    if not settings.allowed_roots:
        logger.warning("No allowed roots configured, stack traces stay undecorated")
    return settings
