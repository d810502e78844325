from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

import tomllib

from dotenv import load_dotenv

N = TypeVar("N", int, float)


@dataclass(frozen=True)
class Settings:
    tmdb_api_key: str
    tmdb_cache_ttl_seconds: float
    tmdb_cache_max_entries: int
    tmdb_max_concurrent_requests: int
    influx_enabled: bool
    influx_url: str
    influx_token: str
    influx_org: str
    influx_bucket: str
    report_cron: str
    timezone: str
    history_db_path: str
    report_path: str
    log_level: str
    running_in_docker: bool
    config_path: str


def load_settings(require_tmdb: bool = False, require_influx: bool = True) -> Settings:
    running_in_docker = _env_bool("RUNNING_IN_DOCKER", False)

    # Local development convenience: auto-load .env only outside Docker.
    if not running_in_docker:
        load_dotenv(override=False)

    config_path = os.getenv("CONFIG_PATH") or _default_config_path(running_in_docker)
    config_values = _load_config(Path(config_path))

    tmdb_api_key = _pick_str("TMDB_API_KEY", "tmdb.api_key", config_values)
    if require_tmdb and not tmdb_api_key:
        raise RuntimeError("Missing required configuration value: TMDB_API_KEY")

    influx_enabled = _pick_bool("ENABLE_INFLUX", "influx.enabled", config_values, default=False)

    influx_url = _pick_str("INFLUX_URL", "influx.url", config_values, default="")
    influx_token = _pick_str("INFLUX_TOKEN", "influx.token", config_values, default="")
    influx_org = _pick_str("INFLUX_ORG", "influx.org", config_values, default="")

    if require_influx and influx_enabled:
        missing = [
            name
            for name, value in (
                ("INFLUX_URL", influx_url),
                ("INFLUX_TOKEN", influx_token),
                ("INFLUX_ORG", influx_org),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing required Influx configuration values: {', '.join(missing)}")

    timezone = _pick_str("TIMEZONE", "report.timezone", config_values, default="Europe/Berlin")
    ZoneInfo(timezone)

    data_dir = Path("/data") if running_in_docker else Path.cwd() / ".data"

    return Settings(
        tmdb_api_key=tmdb_api_key,
        tmdb_cache_ttl_seconds=_pick_number(
            "TMDB_CACHE_TTL_SECONDS", "tmdb.cache_ttl_seconds", config_values, default=300.0, cast=float
        ),
        tmdb_cache_max_entries=_pick_number(
            "TMDB_CACHE_MAX_ENTRIES", "tmdb.cache_max_entries", config_values, default=512, cast=int
        ),
        tmdb_max_concurrent_requests=_pick_number(
            "TMDB_MAX_CONCURRENT_REQUESTS", "tmdb.max_concurrent_requests", config_values, default=4, cast=int
        ),
        influx_enabled=influx_enabled,
        influx_url=influx_url,
        influx_token=influx_token,
        influx_org=influx_org,
        influx_bucket=_pick_str("INFLUX_BUCKET", "influx.bucket", config_values, default="watch_wrapped"),
        report_cron=_pick_str("REPORT_CRON", "report.cron", config_values, default="0 6 * * *"),
        timezone=timezone,
        history_db_path=_pick_str(
            "HISTORY_DB_PATH",
            "runtime.history_db_path",
            config_values,
            default=str(data_dir / "history.db"),
        ),
        report_path=_pick_str(
            "REPORT_PATH",
            "runtime.report_path",
            config_values,
            default=str(data_dir / "wrapped.json"),
        ),
        log_level=_pick_str("LOG_LEVEL", "runtime.log_level", config_values, default="INFO"),
        running_in_docker=running_in_docker,
        config_path=config_path,
    )


def _default_config_path(running_in_docker: bool) -> str:
    if running_in_docker:
        return "/config/config.toml"
    return str(Path.cwd() / "config.toml")


def _load_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        parsed = tomllib.load(handle)
    return _flatten(parsed)


def _flatten(payload: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in payload.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            out.update(_flatten(value, dotted))
        else:
            out[dotted] = value
    return out


def _pick_optional(env_key: str, cfg_key: str, cfg: dict[str, Any]) -> str | None:
    env_val = os.getenv(env_key)
    if env_val not in {None, ""}:
        return env_val
    cfg_val = cfg.get(cfg_key)
    if cfg_val in {None, ""}:
        return None
    return str(cfg_val)


def _pick_str(env_key: str, cfg_key: str, cfg: dict[str, Any], default: str | None = None) -> str:
    picked = _pick_optional(env_key, cfg_key, cfg)
    if picked is None:
        return "" if default is None else default
    return picked


def _pick_number(env_key: str, cfg_key: str, cfg: dict[str, Any], default: N, cast: Callable[[Any], N]) -> N:
    picked = _pick_optional(env_key, cfg_key, cfg)
    if picked is None:
        return default
    return cast(picked)


def _pick_bool(env_key: str, cfg_key: str, cfg: dict[str, Any], default: bool) -> bool:
    picked = _pick_optional(env_key, cfg_key, cfg)
    if picked is None:
        return default
    return _to_bool(picked)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value in {None, ""}:
        return default
    return _to_bool(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    return lowered in {"1", "true", "yes", "on"}
