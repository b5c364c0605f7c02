"""Read-only ClickHouse access over the HTTP interface."""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class ClickHouseClientError(RuntimeError):
    """Raised when ClickHouse requests fail."""


def _env_first(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class ClickHouseClient:
    endpoint: str
    database: str | None = None
    user: str | None = None
    password: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_env(cls, endpoint: str, database: str | None = None) -> "ClickHouseClient":
        timeout = _env_first("SHELF_CLICKHOUSE_TIMEOUT", "CH_TIMEOUT") or "30"
        return cls(
            endpoint=endpoint,
            database=database or _env_first("SHELF_CLICKHOUSE_DATABASE", "CH_DATABASE"),
            user=_env_first("SHELF_CLICKHOUSE_USER", "CH_USER"),
            password=_env_first("SHELF_CLICKHOUSE_PASSWORD", "CH_PASSWORD"),
            timeout=float(timeout),
        )

    def _params(self) -> dict[str, str]:
        params = {"user": self.user, "password": self.password, "database": self.database}
        return {key: value for key, value in params.items() if value}

    def _url(self) -> str:
        base = self.endpoint.rstrip("/") + "/"
        params = self._params()
        return f"{base}?{urllib.parse.urlencode(params)}" if params else base

    def _redact(self, url: str) -> str:
        if not self.password:
            return url
        return url.replace(urllib.parse.quote_plus(self.password), "***")

    def execute(self, query: str) -> str:
        url = self._url()
        request = urllib.request.Request(
            url,
            data=query.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
            method="POST",
        )
        logger.debug("ClickHouse -> %s", self._redact(url))
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:  # pragma: no cover - depends on ClickHouse
            detail = exc.read().decode("utf-8", errors="ignore")
            logger.error("ClickHouse HTTP %s: %s", exc.code, detail)
            raise ClickHouseClientError(detail) from exc
        except urllib.error.URLError as exc:  # pragma: no cover - network
            logger.error("ClickHouse unreachable: %s", exc)
            raise ClickHouseClientError(str(exc)) from exc
        logger.debug("ClickHouse <- %d bytes", len(body))
        return body

    def query_rows(self, query: str) -> list[dict[str, Any]]:
        """Run a ``FORMAT JSONEachRow`` query and decode one dict per line."""
        rows: list[dict[str, Any]] = []
        for line in self.execute(query).splitlines():
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ClickHouseClientError(f"undecodable row: {line[:80]!r}") from exc
            if isinstance(record, dict):
                rows.append(record)
        return rows


__all__ = ["ClickHouseClient", "ClickHouseClientError"]
