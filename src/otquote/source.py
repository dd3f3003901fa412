"""Row sources: the ERP labor-cost endpoint and the bundled local export."""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Union
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .catalog import load_catalog
from .config import Config
from .errors import DataSourceError
from .models import Catalog, LoadResult

LOGGER = logging.getLogger(__name__)

STATUS_API_WARNING = "⚠️ {count} registros (con advertencia)"
STATUS_FALLBACK = "❌ {error} - Usando datos locales"
STATUS_LOCAL_ERROR = "⚠️ Error cargando datos locales"
STATUS_LOCAL_RELOADED = "✅ Datos locales recargados"
NO_CONNECTION = "Sin conexión al servidor"
UNKNOWN_FORMAT = "Formato de respuesta no reconocido"
API_UNAVAILABLE = "Configuración de API no disponible"
API_SUSPENDED = "API suspendida tras {count} fallos consecutivos"


def _envelope_rows(payload: Any) -> Optional[List[Any]]:
    """Rows of a ``{"message": {"data": [...]}}`` envelope, or ``None``."""

    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    data = message.get("data")
    return data if isinstance(data, list) else None


def _post_json(request: Request, timeout: float) -> Any:
    with urlopen(request, timeout=timeout) as response:
        body = response.read()
    return json.loads(body.decode("utf-8"))


def _error_body_rows(exc: HTTPError) -> Optional[List[Any]]:
    try:
        body = exc.read()
        payload = json.loads(body.decode("utf-8")) if body else None
    except (OSError, ValueError):
        LOGGER.debug("Unreadable error body for HTTP %s", exc.code, exc_info=True)
        return None
    return _envelope_rows(payload)


def _with_status(result: LoadResult, status: str, error: Optional[str] = None) -> LoadResult:
    return LoadResult(
        catalog=result.catalog,
        status=status,
        ok=result.ok,
        source=result.source,
        error=error if error is not None else result.error,
        loaded_at=result.loaded_at,
    )


def load_local_rows(path: Union[str, Path]) -> Any:
    """Read the local JSON export; the row array is unwrapped by the catalog loader."""

    source = Path(path)
    if not source.exists():
        raise DataSourceError(f"Local data file not found: {source}")
    try:
        with open(source, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise DataSourceError(f"Local data file is not valid JSON: {exc}") from exc


def load_local(path: Union[str, Path], *, now: Optional[datetime] = None) -> LoadResult:
    try:
        payload = load_local_rows(path)
    except DataSourceError as exc:
        LOGGER.error("%s", exc)
        return LoadResult(
            catalog=Catalog(),
            status=STATUS_LOCAL_ERROR,
            ok=False,
            source="local",
            error=str(exc),
            loaded_at=now or datetime.now(),
        )
    return load_catalog(payload, source="local", now=now)


class LaborRowsClient:
    """Fetches labor rows from the ERP and falls back to the local export.

    Connection errors and timeouts are retried ``config.retry.retries`` times
    with exponential backoff.  After ``circuit_breaker_failures`` consecutive
    failed loads the API is no longer contacted and loads go straight to the
    local export until :meth:`reset` is called.  A threshold of ``0`` never
    suspends.
    """

    def __init__(self, config: Config, sleeper: Callable[[float], None] = time.sleep) -> None:
        self.config = config
        self.consecutive_failures = 0
        self._sleep = sleeper

    @property
    def suspended(self) -> bool:
        threshold = self.config.retry.circuit_breaker_failures
        return threshold > 0 and self.consecutive_failures >= threshold

    def reset(self) -> None:
        self.consecutive_failures = 0

    def _request(self) -> Request:
        return Request(
            self.config.endpoint_url,
            data=b"{}",
            headers={"Authorization": self.config.api_token, "Content-Type": "application/json"},
            method="POST",
        )

    def fetch_rows(self) -> List[Any]:
        """POST an empty JSON body and return the ``message.data`` rows.

        Raises
        ------
        DataSourceError
            If the API is not configured, is suspended, or answers with
            anything but a successful ``message.data`` envelope.
        HTTPError, URLError
            Transport errors once retries are exhausted.
        """

        if not self.config.api_enabled:
            raise DataSourceError(API_UNAVAILABLE)
        if self.suspended:
            raise DataSourceError(API_SUSPENDED.format(count=self.consecutive_failures))

        policy = self.config.retry
        request = self._request()
        LOGGER.info("Fetching labor rows: %s", self.config.endpoint_url)
        attempt = 0
        while True:
            try:
                payload = _post_json(request, policy.timeout_seconds)
                break
            except HTTPError:
                # The server answered; its body is inspected by the caller.
                raise
            except (URLError, TimeoutError) as exc:
                attempt += 1
                if attempt > policy.retries:
                    raise
                delay = max(0.0, policy.backoff_factor * (2 ** (attempt - 1)))
                LOGGER.warning(
                    "Labor rows fetch failed (%s); attempt %d of %d in %.2fs",
                    getattr(exc, "reason", exc),
                    attempt + 1,
                    policy.retries + 1,
                    delay,
                )
                if delay:
                    self._sleep(delay)

        rows = _envelope_rows(payload)
        if rows is None or not payload["message"].get("success"):
            raise DataSourceError(UNKNOWN_FORMAT)
        return rows

    def load(self, *, now: Optional[datetime] = None) -> LoadResult:
        """Load the catalog from the API, falling back to the local export on failure.

        An HTTP error whose body still carries ``message.data`` is processed
        with a warning status instead of falling back.
        """

        was_suspended = self.suspended
        try:
            rows = self.fetch_rows()
        except HTTPError as exc:
            rows = _error_body_rows(exc)
            if rows is not None:
                LOGGER.warning("API answered HTTP %s but returned %d rows", exc.code, len(rows))
                self.reset()
                result = load_catalog(rows, source="api", now=now)
                if not result.ok:
                    return result
                return _with_status(result, STATUS_API_WARNING.format(count=len(result.catalog.tickets)))
            error = f"Error {exc.code}"
        except URLError as exc:
            LOGGER.warning("API unreachable: %s", exc.reason)
            error = NO_CONNECTION
        except (DataSourceError, TimeoutError, ValueError) as exc:
            error = str(exc)
        else:
            self.reset()
            return load_catalog(rows, source="api", now=now)

        if self.config.api_enabled and not was_suspended:
            self.consecutive_failures += 1
            if self.suspended:
                LOGGER.warning("API suspended after %d consecutive failures", self.consecutive_failures)
        LOGGER.warning("Falling back to local data: %s", error)
        fallback = load_local(self.config.local_data_path, now=now)
        if not fallback.ok:
            return fallback
        return _with_status(fallback, STATUS_FALLBACK.format(error=error), error=error)

    def refresh(self, *, now: Optional[datetime] = None) -> LoadResult:
        """Reload rows from the API when configured, otherwise from the local export."""

        if self.config.api_enabled:
            return self.load(now=now)
        result = load_local(self.config.local_data_path, now=now)
        if not result.ok:
            return result
        return _with_status(result, STATUS_LOCAL_RELOADED)


def fetch_api_rows(config: Config) -> List[Any]:
    return LaborRowsClient(config).fetch_rows()


def fetch_from_api(config: Config, *, now: Optional[datetime] = None) -> LoadResult:
    return LaborRowsClient(config).load(now=now)


def refresh(
    config: Config,
    *,
    client: Optional[LaborRowsClient] = None,
    now: Optional[datetime] = None,
) -> LoadResult:
    """One-shot refresh; pass ``client`` to keep failure counts across refreshes."""

    return (client or LaborRowsClient(config)).refresh(now=now)


__all__ = [
    "LaborRowsClient",
    "fetch_api_rows",
    "fetch_from_api",
    "load_local",
    "load_local_rows",
    "refresh",
]
