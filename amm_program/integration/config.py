"""
Program configuration loading.

Sources, lowest precedence first:
- built-in defaults (`ProgramConfig()`)
- a YAML file (mapping with the keys below)
- environment variables

    AMM_PROGRAM_ID         base58 program id
    AMM_TOKEN_PROGRAM_ID   base58 token program id
    AMM_MAX_FEE_BPS        0..10000
    AMM_LP_DECIMALS        0..255
    AMM_LOG_LEVEL          DEBUG / INFO / WARNING / ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from solders.pubkey import Pubkey

from ..core.handlers import ProgramConfig
from ..core.math import BPS_DENOM

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_LEVEL = "INFO"

_YAML_KEYS = {"program_id", "token_program_id", "max_fee_bps", "lp_decimals", "log_level"}


@dataclass(frozen=True)
class Settings:
    program: ProgramConfig = ProgramConfig()
    log_level: str = DEFAULT_LOG_LEVEL


def _env_int(environ: Mapping[str, str], name: str, default: int, *, lo: int, hi: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(environ: Mapping[str, str], name: str, default: str) -> str:
    raw = environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_pubkey(environ: Mapping[str, str], name: str, default: Pubkey) -> Pubkey:
    raw = _env_str(environ, name, "")
    if not raw:
        return default
    try:
        return Pubkey.from_string(raw)
    except ValueError as exc:
        raise ValueError(f"{name} is not a valid base58 pubkey: {raw!r}") from exc


def _normalize_level(level: str) -> str:
    name = str(level).strip().upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"unknown log level: {level!r}")
    return name


def settings_from_mapping(obj: Mapping[str, Any], *, base: Optional[Settings] = None) -> Settings:
    """Overlay a parsed mapping (e.g. from YAML) onto `base`."""
    if not isinstance(obj, Mapping):
        raise TypeError("config must be a mapping")
    unknown = set(obj) - _YAML_KEYS
    if unknown:
        raise ValueError(f"unknown config keys: {sorted(unknown)}")

    settings = base or Settings()
    program_kwargs: Dict[str, Any] = {}
    for key in ("program_id", "token_program_id"):
        if key in obj:
            program_kwargs[key] = Pubkey.from_string(str(obj[key]))
    for key in ("max_fee_bps", "lp_decimals"):
        if key in obj:
            program_kwargs[key] = obj[key]

    log_level = settings.log_level
    if "log_level" in obj:
        log_level = _normalize_level(obj["log_level"])
    return Settings(program=replace(settings.program, **program_kwargs), log_level=log_level)


def settings_from_yaml(path: Union[str, Path], *, base: Optional[Settings] = None) -> Settings:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return base or Settings()
    return settings_from_mapping(obj, base=base)


def settings_from_env(
    environ: Optional[Mapping[str, str]] = None,
    *,
    base: Optional[Settings] = None,
) -> Settings:
    env = os.environ if environ is None else environ
    settings = base or Settings()
    current = settings.program
    program = ProgramConfig(
        program_id=_env_pubkey(env, "AMM_PROGRAM_ID", current.program_id),
        token_program_id=_env_pubkey(env, "AMM_TOKEN_PROGRAM_ID", current.token_program_id),
        max_fee_bps=_env_int(env, "AMM_MAX_FEE_BPS", current.max_fee_bps, lo=0, hi=BPS_DENOM),
        lp_decimals=_env_int(env, "AMM_LP_DECIMALS", current.lp_decimals, lo=0, hi=255),
    )
    log_level = _normalize_level(_env_str(env, "AMM_LOG_LEVEL", settings.log_level))
    return Settings(program=program, log_level=log_level)


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Defaults, then the YAML file (if given), then the environment."""
    settings = Settings()
    if path is not None:
        settings = settings_from_yaml(path, base=settings)
    return settings_from_env(environ, base=settings)


def configure_logging(level: Union[str, int, None] = None) -> None:
    """Install a root handler for scripts and tests; library code never calls this."""
    if level is None:
        level = settings_from_env().log_level
    if isinstance(level, str):
        level = _normalize_level(level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
