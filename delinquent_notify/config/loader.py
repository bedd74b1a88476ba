from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (config/notify.yml by default)
- Validate against config_schema.json (jsonschema, extra keys rejected)
- Apply defaults for everything except reply_to
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/notify.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DeliveryConfig:
    endpoint: str = "https://api.resend.com/emails"
    api_key_env: str = "RESEND_API_KEY"
    timeout_seconds: float = 30.0
    max_workers: int = 1  # 1 = 逐次送信


@dataclass(frozen=True)
class NotifyConfig:
    reply_to: str
    sender: str = "Operations <onboarding@resend.dev>"
    variant: str = "full"
    mode: str = "per-member"
    include_needs_lookup: bool = False
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / unreadable, or data fails validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> NotifyConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    defaults = DeliveryConfig()
    d_raw = data.get("delivery", {})
    delivery = DeliveryConfig(
        endpoint=d_raw.get("endpoint", defaults.endpoint),
        api_key_env=d_raw.get("api_key_env", defaults.api_key_env),
        timeout_seconds=float(d_raw.get("timeout_seconds", defaults.timeout_seconds)),
        max_workers=d_raw.get("max_workers", defaults.max_workers),
    )
    base = NotifyConfig(reply_to=data["reply_to"])
    return NotifyConfig(
        reply_to=data["reply_to"],
        sender=data.get("sender", base.sender),
        variant=data.get("variant", base.variant),
        mode=data.get("mode", base.mode),
        include_needs_lookup=data.get("include_needs_lookup", base.include_needs_lookup),
        delivery=delivery,
    )
