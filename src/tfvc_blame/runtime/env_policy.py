from __future__ import annotations

import os
from typing import Final, Mapping

SETTINGS_ENV_KEYS: Final[dict[str, str]] = {
    "username": "TFVC_BLAME_USERNAME",
    "password": "TFVC_BLAME_PASSWORD",
    "personal_access_token": "TFVC_BLAME_PAT",
    "collection_uri": "TFVC_BLAME_COLLECTION_URI",
    "executable": "TFVC_BLAME_EXECUTABLE",
    "variant": "TFVC_BLAME_VARIANT",
    "failure_policy": "TFVC_BLAME_FAILURE_POLICY",
}


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def settings_from_env(
    keys: Mapping[str, str] = SETTINGS_ENV_KEYS,
) -> dict[str, str]:
    """Settings present in the environment; unset or blank variables are absent."""
    values: dict[str, str] = {}
    for setting, env_key in keys.items():
        value = env_text(env_key)
        if value:
            values[setting] = value
    return values
