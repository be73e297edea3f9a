from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Mapping, TypeAlias
import tomllib

from tfvc_blame.blame import FailurePolicy, failure_policy_named
from tfvc_blame.exceptions import ConfigurationError
from tfvc_blame.models import Credentials
from tfvc_blame.protocol.variants import DEFAULT_VARIANT, ProtocolVariant, variant_named
from tfvc_blame.runtime.env_policy import settings_from_env

DEFAULT_CONFIG_NAME = "tfvc-blame.toml"
SECTION = "tfvc"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class BlameSettings:
    credentials: Credentials = field(default_factory=Credentials)
    executable: str | None = None
    variant: ProtocolVariant = DEFAULT_VARIANT
    failure_policy: FailurePolicy = FailurePolicy.RAISE


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"invalid configuration file {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def tfvc_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get(SECTION, {})
    return section if isinstance(section, dict) else {}


def merge_settings(payload: Mapping[str, object], defaults: Mapping[str, object]) -> dict[str, object]:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def settings_from_mapping(values: Mapping[str, object]) -> BlameSettings:
    credentials = Credentials(
        username=_as_text(values.get("username")),
        password=_as_text(values.get("password")),
        personal_access_token=_as_text(values.get("personal_access_token")),
        collection_uri=_as_text(values.get("collection_uri")).strip(),
    )
    executable = _as_text(values.get("executable")).strip() or None
    variant_name = _as_text(values.get("variant")).strip()
    policy_name = _as_text(values.get("failure_policy")).strip()
    return BlameSettings(
        credentials=credentials,
        executable=executable,
        variant=variant_named(variant_name) if variant_name else DEFAULT_VARIANT,
        failure_policy=failure_policy_named(policy_name) if policy_name else FailurePolicy.RAISE,
    )


def resolve_settings(
    *,
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: Mapping[str, object] | None = None,
) -> BlameSettings:
    """Combine the config file, the environment and explicit overrides.

    Later sources win; a ``None`` override leaves the earlier value in place.
    """
    merged = merge_settings(settings_from_env(), tfvc_defaults(root=root, config_path=config_path))
    merged = merge_settings(overrides or {}, merged)
    return settings_from_mapping(merged)
