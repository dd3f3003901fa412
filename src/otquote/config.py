from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional


_BOOLEAN_TRUE = {"1", "true", "yes", "on"}

DEFAULT_API_URL = "https://spread-erp.ddns.net/api/method"
DEFAULT_API_ENDPOINT = (
    "spread_app.app_gestion_spread.report.costo_mano_de_obra."
    "costo_mano_de_obra.get_labor_cost_no_quotation"
)
DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_TOP_N = 10


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/backoff settings for the remote row fetch."""

    retries: int = 0
    backoff_factor: float = 0.5
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    circuit_breaker_failures: int = 3


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    base_dir: Path
    api_url: str
    api_endpoint: str
    api_token: str
    local_data_path: Path
    output_dir: Path
    retry: RetryPolicy
    top_n_cost: int = DEFAULT_TOP_N
    top_n_hours: int = DEFAULT_TOP_N
    disable_api: bool = False
    verbose: bool = False

    @property
    def api_enabled(self) -> bool:
        return bool(self.api_url and self.api_token) and not self.disable_api

    @property
    def endpoint_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.api_endpoint}"

    @property
    def source_label(self) -> str:
        return "API ERP" if self.api_enabled else "Datos locales"


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser().resolve()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()


def _to_int(value: object | None) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: object | None) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options."""

    base_dir = Path(__file__).resolve().parents[2]
    default_local_data = (base_dir / "data_sample" / "db.json").resolve()
    default_output_dir = (base_dir / "outputs").resolve()

    api_url = (env.get("OTQUOTE_API_URL") or DEFAULT_API_URL).strip()
    api_endpoint = (env.get("OTQUOTE_API_ENDPOINT") or DEFAULT_API_ENDPOINT).strip()
    api_token = (env.get("OTQUOTE_API_TOKEN") or "").strip()
    local_data_path = _to_path(env.get("OTQUOTE_LOCAL_DATA")) or default_local_data
    output_dir = _to_path(env.get("OTQUOTE_OUTPUT_DIR")) or default_output_dir
    timeout = _to_float(env.get("OTQUOTE_TIMEOUT_SECONDS")) or DEFAULT_TIMEOUT_SECONDS
    retries = _to_int(env.get("OTQUOTE_RETRIES"))
    backoff = _to_float(env.get("OTQUOTE_BACKOFF"))
    breaker_failures = _to_int(env.get("OTQUOTE_BREAKER_FAILURES"))
    top_n_cost = _to_int(env.get("OTQUOTE_TOP_N_COST")) or DEFAULT_TOP_N
    top_n_hours = _to_int(env.get("OTQUOTE_TOP_N_HOURS")) or DEFAULT_TOP_N
    disable_api = _flag(env.get("OTQUOTE_DISABLE_API"))
    verbose = False

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "local_data", None):
        local_data_path = _to_path(cli_ns.local_data) or local_data_path
    if getattr(cli_ns, "output_dir", None):
        output_dir = _to_path(cli_ns.output_dir) or output_dir
    if getattr(cli_ns, "top_n_cost", None) is not None:
        top_n_cost = max(1, int(cli_ns.top_n_cost))
    if getattr(cli_ns, "top_n_hours", None) is not None:
        top_n_hours = max(1, int(cli_ns.top_n_hours))
    if getattr(cli_ns, "timeout", None) is not None:
        timeout = float(cli_ns.timeout)
    if getattr(cli_ns, "offline", False):
        disable_api = True
    if getattr(cli_ns, "verbose", False):
        verbose = bool(cli_ns.verbose)

    retry = RetryPolicy(
        retries=max(0, retries) if retries is not None else 0,
        backoff_factor=max(0.0, backoff) if backoff is not None else 0.5,
        timeout_seconds=timeout,
        circuit_breaker_failures=max(0, breaker_failures) if breaker_failures is not None else 3,
    )

    return Config(
        base_dir=base_dir,
        api_url=api_url,
        api_endpoint=api_endpoint,
        api_token=api_token,
        local_data_path=local_data_path,
        output_dir=output_dir,
        retry=retry,
        top_n_cost=top_n_cost,
        top_n_hours=top_n_hours,
        disable_api=disable_api,
        verbose=verbose,
    )


__all__ = ["Config", "RetryPolicy", "load_config"]
