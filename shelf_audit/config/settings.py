"""Settings resolved from the environment with sane defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass

from . import constants


def _parse_env_list(env_name: str, default: list[str]) -> tuple[str, ...]:
    raw = os.getenv(env_name)
    if not raw:
        return tuple(default)
    tokens = [token.strip() for token in raw.split(",") if token.strip()]
    return tuple(tokens) if tokens else tuple(default)


def _get_env_str(env_name: str, default: str) -> str:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    return raw


def _get_env_alias(env_names: tuple[str, ...], default: str) -> str:
    for env_name in env_names:
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            return raw
    return default


def _resolve_clickhouse_url() -> str:
    direct = _get_env_alias(("SHELF_CLICKHOUSE_URL",), "")
    if direct:
        return direct
    host = _get_env_alias(("CH_HOST",), "")
    if host:
        scheme = _get_env_alias(("CH_SCHEME",), "http")
        port = _get_env_alias(("CH_PORT",), "8123")
        return f"{scheme}://{host}:{port}"
    return constants.DEFAULT_CLICKHOUSE_URL


def _parse_env_int(env_name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    return value


@dataclass(frozen=True)
class Settings:
    clickhouse_url: str
    database: str
    api_host: str
    api_port: int
    top_products: int
    top_brands: int
    top_facing: int
    top_priciest: int
    recent_detections: int
    recent_activity_days: int
    currency_markers: tuple[str, ...]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            clickhouse_url=_resolve_clickhouse_url(),
            database=_get_env_alias(
                ("SHELF_DATABASE", "CH_DATABASE"), constants.DEFAULT_DATABASE
            ),
            api_host=_get_env_str("SHELF_API_HOST", constants.DEFAULT_API_HOST),
            api_port=_parse_env_int(
                "SHELF_API_PORT", constants.DEFAULT_API_PORT, minimum=1
            ),
            top_products=_parse_env_int(
                "SHELF_TOP_PRODUCTS", constants.DEFAULT_TOP_PRODUCTS
            ),
            top_brands=_parse_env_int("SHELF_TOP_BRANDS", constants.DEFAULT_TOP_BRANDS),
            top_facing=_parse_env_int("SHELF_TOP_FACING", constants.DEFAULT_TOP_FACING),
            top_priciest=_parse_env_int(
                "SHELF_TOP_PRICIEST", constants.DEFAULT_TOP_PRICIEST
            ),
            recent_detections=_parse_env_int(
                "SHELF_RECENT_DETECTIONS", constants.DEFAULT_RECENT_DETECTIONS
            ),
            recent_activity_days=_parse_env_int(
                "SHELF_RECENT_ACTIVITY_DAYS",
                constants.DEFAULT_RECENT_ACTIVITY_DAYS,
                minimum=1,
            ),
            currency_markers=_parse_env_list(
                "SHELF_CURRENCY_MARKERS", constants.DEFAULT_CURRENCY_MARKERS
            ),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


__all__ = ["Settings", "get_settings"]
