"""Configuration loading: TOML file + environment variables + jobs file."""

from __future__ import annotations

import json
import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from chain_watcher.errors import ConfigurationError
from chain_watcher.models.config import ChainRpcConfig, WatcherConfig
from chain_watcher.models.jobs import JobDefinition

CHAIN_KINDS = {"evm", "solana", "wormchain"}

_TRUE = {"1", "true", "yes", "on"}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "CHAIN_WATCHER_",
) -> WatcherConfig:
    """Load watcher configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (CHAIN_WATCHER_JOBS_PATH, etc.)
        2. TOML config file
        3. Defaults from WatcherConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                try:
                    raw = tomllib.load(f)
                except tomllib.TOMLDecodeError as exc:
                    raise ConfigurationError(f"Invalid config file {p}: {exc}") from exc

    cfg = WatcherConfig()

    # ── Watcher section ────────────────────────────────────
    watcher = raw.get("watcher", {})
    if v := watcher.get("environment"):
        cfg.environment = str(v)
    if v := watcher.get("jobs_path"):
        cfg.jobs_path = str(v)
    if "dry_run" in watcher:
        cfg.dry_run = bool(watcher["dry_run"])
    if v := watcher.get("log_level"):
        cfg.log_level = str(v)
    if v := watcher.get("healthcheck_interval"):
        cfg.healthcheck_interval = float(v)
    if "max_concurrent_jobs" in watcher:
        cfg.max_concurrent_jobs = int(watcher["max_concurrent_jobs"])
        if cfg.max_concurrent_jobs < 1:
            raise ConfigurationError("max_concurrent_jobs must be at least 1")

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── RPC section ────────────────────────────────────────
    rpc = raw.get("rpc", {})
    if v := rpc.get("timeout"):
        cfg.rpc_timeout = float(v)
    for name, chain in rpc.get("chains", {}).items():
        kind = str(chain.get("kind", "evm"))
        if kind not in CHAIN_KINDS:
            raise ConfigurationError(f"Unknown chain kind {kind!r} for {name}")
        urls = chain.get("urls", [])
        if isinstance(urls, str):
            urls = [urls]
        cfg.chains[name] = ChainRpcConfig(
            name=name,
            kind=kind,
            chain_id=int(chain.get("chain_id", 0)),
            urls=[str(u) for u in urls],
            timeout=float(chain["timeout"]) if "timeout" in chain else None,
        )

    # ── Environment variable overrides (highest priority) ──
    if jobs := os.environ.get(f"{env_prefix}JOBS_PATH"):
        cfg.jobs_path = jobs
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if env := os.environ.get(f"{env_prefix}ENVIRONMENT"):
        cfg.environment = env
    if dry := os.environ.get(f"{env_prefix}DRY_RUN"):
        cfg.dry_run = dry.strip().lower() in _TRUE

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())
    cfg.jobs_path = str(Path(cfg.jobs_path).expanduser())

    return cfg


def load_job_definitions(jobs_path: str | Path) -> list[JobDefinition]:
    """Read job definitions from a JSON file.

    The file holds either a list of jobs or an object with a ``jobs`` list.
    A missing file means no jobs.
    """
    p = Path(jobs_path).expanduser()
    if not p.exists():
        return []

    with open(p) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid jobs file {p}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("jobs", [])
    if not isinstance(data, list):
        raise ConfigurationError(f"Jobs file {p} must contain a list of jobs")
    return [JobDefinition.from_dict(item) for item in data]
