"""Runtime settings: variant defaults, YAML file, environment and CLI flags."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .config_loader import load_config
from .core.backend import DEFAULT_TIMEOUT, Upstream
from .core.exceptions import ConfigurationError
from .core.variants import Variant, get_variant

logger = logging.getLogger("wrapproxy")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9000
DEFAULT_VARIANT = "deepseek"


@dataclass(frozen=True)
class ProxySettings:
    variant: Variant
    host: str
    port: int
    api_key: Optional[str]
    endpoint: str
    default_model: str
    fallback_model: Optional[str]
    models: tuple[str, ...]
    timeout_seconds: float = DEFAULT_TIMEOUT
    debug: bool = False
    profile: Optional[str] = None

    @property
    def upstream(self) -> Upstream:
        return Upstream(
            endpoint=self.endpoint,
            timeout=self.timeout_seconds,
            fixed_path=self.variant.fixed_path,
        )


def _get(cfg: Mapping, *keys: str):
    cur = cfg
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_str(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_bool(value) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return None


def _resolve_variant(name: str) -> Variant:
    try:
        return get_variant(name)
    except KeyError as exc:
        raise ConfigurationError(str(exc.args[0])) from exc


def load_settings(
    *,
    config_path: Optional[str] = None,
    env_path: Optional[str] = None,
    variant: Optional[str] = None,
    model_profile: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    debug: Optional[bool] = None,
    environ: Optional[Mapping[str, str]] = None,
    config: Optional[Mapping] = None,
) -> ProxySettings:
    """Build settings from every source, lowest to highest precedence.

    Keyword arguments are the CLI layer; ``None`` means "not given".
    ``config`` skips file loading and is used as the parsed YAML document.

    Raises:
        ConfigurationError: For an unknown variant, or a port or timeout
            outside the valid range.
    """
    env = os.environ if environ is None else environ
    cfg = config if config is not None else load_config(config_path, env_path)
    proxy_cfg = _get(cfg, "proxy_settings") or {}

    variant_name = (
        variant
        or _to_str(env.get("WRAPPROXY_VARIANT"))
        or _to_str(_get(proxy_cfg, "variant"))
        or DEFAULT_VARIANT
    )
    selected = _resolve_variant(variant_name)

    requested_profile = model_profile or _to_str(_get(proxy_cfg, "upstream", "model_profile"))
    profile_name, profile = selected.resolve_profile(requested_profile)
    if requested_profile and requested_profile != profile_name:
        logger.warning(
            "Unknown model profile '%s' for %s, using '%s'",
            requested_profile,
            selected.name,
            profile_name,
        )

    endpoint = _to_str(_get(proxy_cfg, "upstream", "endpoint")) or profile.endpoint
    default_model = _to_str(_get(proxy_cfg, "upstream", "default_model")) or profile.model

    # An explicit null disables the fallback.
    fallback_model = selected.fallback_model
    upstream_cfg = _get(proxy_cfg, "upstream")
    if isinstance(upstream_cfg, Mapping) and "fallback_model" in upstream_cfg:
        fallback_model = _to_str(upstream_cfg.get("fallback_model"))

    models_cfg = _get(proxy_cfg, "models")
    if isinstance(models_cfg, list) and models_cfg:
        models = tuple(str(model) for model in models_cfg)
    elif default_model in selected.models:
        models = selected.models
    else:
        models = (default_model,) + selected.models

    resolved_host = (
        host
        or _to_str(env.get("WRAPPROXY_HOST"))
        or _to_str(_get(proxy_cfg, "server", "host"))
        or DEFAULT_HOST
    )

    resolved_port = port
    if resolved_port is None:
        resolved_port = _to_int(env.get("PORT"))
    if resolved_port is None:
        resolved_port = _to_int(_get(proxy_cfg, "server", "port"))
    if resolved_port is None:
        resolved_port = DEFAULT_PORT
    if not 0 < resolved_port < 65536:
        raise ConfigurationError(f"Invalid port: {resolved_port}")

    timeout_seconds = _to_float(_get(proxy_cfg, "upstream", "timeout_seconds")) or DEFAULT_TIMEOUT
    timeout_env = env.get("WRAPPROXY_TIMEOUT")
    if timeout_env is not None:
        parsed_timeout = _to_float(timeout_env)
        if parsed_timeout is None:
            logger.warning("Invalid WRAPPROXY_TIMEOUT=%s", timeout_env)
        else:
            timeout_seconds = parsed_timeout
    if timeout_seconds <= 0:
        raise ConfigurationError(f"Invalid timeout: {timeout_seconds}")

    api_key = _to_str(_get(proxy_cfg, "upstream", "api_key"))
    if api_key and api_key.startswith("$"):
        api_key = None
    api_key = _to_str(env.get(selected.api_key_env)) or api_key

    resolved_debug = debug
    if resolved_debug is None:
        resolved_debug = _to_bool(env.get("WRAPPROXY_DEBUG"))
    if resolved_debug is None:
        resolved_debug = _to_bool(_get(proxy_cfg, "debug")) or False

    if not api_key:
        logger.warning(
            "%s is not set; requests without a bearer token will be rejected",
            selected.api_key_env,
        )

    return ProxySettings(
        variant=selected,
        host=resolved_host,
        port=resolved_port,
        api_key=api_key,
        endpoint=endpoint,
        default_model=default_model,
        fallback_model=fallback_model,
        models=models,
        timeout_seconds=timeout_seconds,
        debug=resolved_debug,
        profile=profile_name,
    )
