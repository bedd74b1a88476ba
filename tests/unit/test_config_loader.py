from __future__ import annotations

from pathlib import Path

import pytest

from delinquent_notify.config.loader import ConfigError, DeliveryConfig, load_config


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.reply_to == "ops@example.com"
    assert cfg.sender == "Ops Team <ops@example.com>"
    assert cfg.variant == "full"
    assert cfg.mode == "per-member"
    assert cfg.include_needs_lookup is False
    assert cfg.delivery.endpoint == "https://mail.example.test/emails"
    assert cfg.delivery.api_key_env == "TEST_MAIL_API_KEY"
    assert cfg.delivery.timeout_seconds == 5.0
    assert cfg.delivery.max_workers == 1


def test_defaults_applied_for_minimal_config(temp_workdir: Path):
    p = temp_workdir / "config" / "notify.yml"
    p.write_text("reply_to: ops@example.com\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.variant == "full"
    assert cfg.mode == "per-member"
    assert cfg.delivery == DeliveryConfig()
    assert cfg.delivery.api_key_env == "RESEND_API_KEY"


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "notify.yml"
    p.write_text("reply_to: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_root_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "notify.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="config root must be a mapping"):
        load_config(p)


@pytest.mark.parametrize(
    "body",
    [
        "sender: x\n",  # reply_to missing
        "reply_to: not-an-email\n",
        "reply_to: ops@example.com\nmode: weekly\n",
        "reply_to: ops@example.com\nvariant: short\n",
        "reply_to: ops@example.com\nunknown_key: 1\n",
        "reply_to: ops@example.com\ndelivery:\n  max_workers: 0\n",
        "reply_to: ops@example.com\ndelivery:\n  timeout_seconds: 0\n",
        "reply_to: ops@example.com\ndelivery:\n  retries: 3\n",
    ],
)
def test_schema_violations(temp_workdir: Path, body: str):
    p = temp_workdir / "config" / "notify.yml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(p)


def test_per_agency_with_lookup(temp_workdir: Path):
    p = temp_workdir / "config" / "notify.yml"
    p.write_text(
        "reply_to: ops@example.com\nmode: per-agency\ninclude_needs_lookup: true\n"
        "delivery:\n  max_workers: 4\n",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.mode == "per-agency"
    assert cfg.include_needs_lookup is True
    assert cfg.delivery.max_workers == 4
