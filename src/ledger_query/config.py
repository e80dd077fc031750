"""Configuration loading, writing, and initialization.

Reads ``config.toml`` using stdlib ``tomllib`` and writes it using
``tomli_w``.  Depends only on ``models.py``.
"""

from __future__ import annotations

import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from ledger_query.models import AppConfig

CONFIG_FILENAME = "config.toml"

_DEFAULT_CONFIG_TOML = """\
# ledger-query configuration

[api]
base_url = "https://api.zaim.net"
access_token_env = "LEDGER_ACCESS_TOKEN"  # Name of env var holding the bearer token
timeout = 30.0

[pagination]
page_size = 100          # At most 100
max_pages = 100          # Per sub-window
days_per_chunk = 31
delay_seconds = 0.2      # Pause between page requests

[mutation]
delay_seconds = 0.2      # Pause between bulk writes
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Missing sections and keys fall back to the :class:`AppConfig` defaults.

    Args:
        root: Directory containing ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    data = _read_toml(Path(root) / CONFIG_FILENAME)
    defaults = AppConfig()

    api = data.get("api", {})
    pagination = data.get("pagination", {})
    mutation = data.get("mutation", {})

    return AppConfig(
        base_url=api.get("base_url", defaults.base_url),
        access_token_env=api.get("access_token_env", defaults.access_token_env),
        timeout=float(api.get("timeout", defaults.timeout)),
        page_size=int(pagination.get("page_size", defaults.page_size)),
        max_pages=int(pagination.get("max_pages", defaults.max_pages)),
        days_per_chunk=int(pagination.get("days_per_chunk", defaults.days_per_chunk)),
        fetch_delay_seconds=float(
            pagination.get("delay_seconds", defaults.fetch_delay_seconds)
        ),
        write_delay_seconds=float(mutation.get("delay_seconds", defaults.write_delay_seconds)),
    )


def save_config(root: Path, config: AppConfig) -> Path:
    """Write *config* to ``config.toml`` in *root*, replacing any existing file.

    Returns:
        The path written.
    """
    data = {
        "api": {
            "base_url": config.base_url,
            "access_token_env": config.access_token_env,
            "timeout": config.timeout,
        },
        "pagination": {
            "page_size": config.page_size,
            "max_pages": config.max_pages,
            "days_per_chunk": config.days_per_chunk,
            "delay_seconds": config.fetch_delay_seconds,
        },
        "mutation": {
            "delay_seconds": config.write_delay_seconds,
        },
    }
    path = Path(root) / CONFIG_FILENAME
    path.write_text(tomli_w.dumps(data), encoding="utf-8")
    return path


def initialize(target_dir: Path, base_url: str | None = None) -> Path:
    """Create *target_dir* and a default ``config.toml`` inside it.

    Idempotent: an existing ``config.toml`` is **not** overwritten.

    Args:
        target_dir: Directory to initialize.
        base_url: API root to write instead of the default one.

    Returns:
        The path of the config file.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / CONFIG_FILENAME

    if base_url is None:
        _write_if_missing(path, _DEFAULT_CONFIG_TOML)
    elif not path.exists():
        save_config(target_dir, AppConfig(base_url=base_url))
    return path


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")
