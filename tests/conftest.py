# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from delinquent_notify.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """reply_to: ops@example.com
sender: "Ops Team <ops@example.com>"
variant: full
mode: per-member
delivery:
  endpoint: https://mail.example.test/emails
  api_key_env: TEST_MAIL_API_KEY
  timeout_seconds: 5
  max_workers: 1
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "notify.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path):
    """Write CSV text into data/<name> and return the path."""
    def _write(name: str, text: str) -> Path:
        p = temp_workdir / "data" / name
        p.write_text(text, encoding="utf-8")
        return p
    return _write


@pytest.fixture()
def make_excel(temp_workdir: Path):
    """Write rows (first row = header) into a single-sheet .xlsx."""
    def _make(name: str, rows: list[list[object]], sheet: str = "Members") -> Path:
        p = temp_workdir / "data" / name
        with pd.ExcelWriter(p, engine="openpyxl") as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return p
    return _make


@pytest.fixture()
def clean_logging():
    reset_logging()
    yield
    reset_logging()


SHARED_AGENCY_CSV = (
    "Member Name,Amount,Agency,Agency Email,Days Late\n"
    'John Doe,"$1,250.50",ABC,,45\n'
    "Jane Smith,3500.00,ABC,a@abc.com,30\n"
)


@pytest.fixture()
def shared_agency_csv(write_csv) -> Path:
    return write_csv("members.csv", SHARED_AGENCY_CSV)
