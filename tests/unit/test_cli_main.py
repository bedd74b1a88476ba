from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from delinquent_notify.cli import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main
from delinquent_notify.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


def test_ingest_only_success(shared_agency_csv: Path, capsys):
    code = main([str(shared_agency_csv)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert (
        "SUMMARY file=members.csv members=2 agencies=1 errors=0 needs_lookup=0 "
        "total_amount=4750.50 avg_days_late=37.5"
    ) in out


def test_row_errors_give_partial_exit_and_error_log(temp_workdir: Path, write_csv, capsys):
    p = write_csv("b.csv", "Member Name,Amount,Agency\nJohn Doe,100,\nJane,5,XYZ\n")
    code = main([str(p)])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "WARN row 2: Missing required fields (Member Name, Amount, or Agency)" in out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    entry = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert entry["file"] == "b.csv"
    assert entry["row"] == 2


def test_missing_headers_is_fatal(write_csv, capsys):
    p = write_csv("d.csv", "Member Name,Agency\nJohn,ABC\n")
    code = main([str(p)])
    assert code == EXIT_FATAL
    assert "ERROR headers: missing required columns: Amount" in capsys.readouterr().out


def test_unsupported_file_is_fatal(temp_workdir: Path, capsys):
    p = temp_workdir / "data" / "members.txt"
    p.write_text("x", encoding="utf-8")
    assert main([str(p)]) == EXIT_FATAL
    assert "ERROR ingest: unsupported file type: .txt" in capsys.readouterr().out


def test_header_only_file_is_fatal(write_csv, capsys):
    p = write_csv("h.csv", "Member Name,Amount,Agency\n")
    assert main([str(p)]) == EXIT_FATAL
    assert "ERROR ingest: no data rows" in capsys.readouterr().out


def test_variant_flag(write_csv, capsys):
    p = write_csv(
        "n.csv",
        "Agency Email Address,memberFirstName,memberLastName,delinquent_days\nagent@x.com,John,Doe,45\n",
    )
    assert main([str(p), "--variant", "notification"]) == EXIT_SUCCESS_ALL
    assert "members=1 agencies=1" in capsys.readouterr().out


def test_send_without_config_is_fatal(shared_agency_csv: Path, capsys):
    assert main([str(shared_agency_csv), "--send"]) == EXIT_FATAL
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_invalid_config_is_fatal(temp_workdir: Path, shared_agency_csv: Path, capsys):
    (temp_workdir / "config" / "notify.yml").write_text("reply_to: nobody\n", encoding="utf-8")
    assert main([str(shared_agency_csv)]) == EXIT_FATAL
    assert "ERROR config: config validation failed" in capsys.readouterr().out


def test_dry_run_validation_failure_lists_violations(write_config, shared_agency_csv: Path, capsys):
    # per-member: John Doe has no agency email of his own
    code = main([str(shared_agency_csv), "--send", "--dry-run"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR validation: target 0 (John Doe): recipient" in out


def test_dry_run_per_agency_writes_payload(write_config, shared_agency_csv: Path, temp_workdir: Path, capsys):
    payload_path = temp_workdir / "out" / "request.json"
    with patch("delinquent_notify.cli.ResendTransport") as transport_cls:
        code = main([
            str(shared_agency_csv), "--send", "--dry-run", "--mode", "per-agency",
            "--payload-out", str(payload_path),
        ])
    assert code == EXIT_SUCCESS_ALL
    transport_cls.from_config.assert_not_called()
    payload = json.loads(payload_path.read_text(encoding="utf-8"))
    assert payload["reply_to"] == "ops@example.com"
    assert payload["agencies"][0]["agency_name"] == "ABC"
    assert payload["agencies"][0]["total_amount"] == 4750.5
    assert "dry-run: 1 per-agency target(s) validated" in capsys.readouterr().out


def test_missing_api_key_is_fatal(write_config, shared_agency_csv: Path, monkeypatch, capsys):
    monkeypatch.delenv("TEST_MAIL_API_KEY", raising=False)
    code = main([str(shared_agency_csv), "--send", "--mode", "per-agency"])
    assert code == EXIT_FATAL
    assert "ERROR config: TEST_MAIL_API_KEY environment variable is not set" in capsys.readouterr().out


def test_send_uses_dispatch_report(write_config, shared_agency_csv: Path, temp_workdir: Path):
    from delinquent_notify.models import BatchDispatchReport, DispatchOutcome, ResultKind

    report = BatchDispatchReport.from_outcomes([
        DispatchOutcome("ABC", "a@abc.com", ResultKind.FAILED, failure_detail="boom"),
    ])
    report_path = temp_workdir / "report.json"
    with patch("delinquent_notify.cli.ResendTransport") as transport_cls, \
         patch("delinquent_notify.cli.dispatch", return_value=report) as mock_dispatch:
        code = main([str(shared_agency_csv), "--send", "--mode", "per-agency", "--report-out", str(report_path)])

    assert code == EXIT_PARTIAL_FAILURE
    transport_cls.from_config.assert_called_once()
    args, kwargs = mock_dispatch.call_args
    assert [t.identity for t in args[0]] == ["ABC"]
    assert args[2] == "ops@example.com"
    transport_cls.from_config.return_value.close.assert_called_once()
    assert kwargs == {"max_workers": 1}
    data = json.loads(report_path.read_text(encoding="utf-8"))
    assert data["dispatch"]["success"] is False
    assert data["ingest"]["totalMembers"] == 2
    assert data["statistics"]["totalAmount"] == "4750.50"


def test_send_closes_transport_when_dispatch_raises(write_config, shared_agency_csv: Path):
    with patch("delinquent_notify.cli.ResendTransport") as transport_cls, \
         patch("delinquent_notify.cli.dispatch", side_effect=RuntimeError("pool died")):
        with pytest.raises(RuntimeError, match="pool died"):
            main([str(shared_agency_csv), "--send", "--mode", "per-agency"])
    transport_cls.from_config.return_value.close.assert_called_once()


def test_summary_lines_carry_a_single_label(write_config, shared_agency_csv: Path, capsys):
    from delinquent_notify.models import BatchDispatchReport, DispatchOutcome, ResultKind

    report = BatchDispatchReport.from_outcomes([DispatchOutcome("ABC", "a@abc.com", ResultKind.SENT)])
    with patch("delinquent_notify.cli.ResendTransport"), \
         patch("delinquent_notify.cli.dispatch", return_value=report):
        assert main([str(shared_agency_csv), "--send", "--mode", "per-agency"]) == EXIT_SUCCESS_ALL
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("SUMMARY")]
    assert lines == [
        "SUMMARY file=members.csv members=2 agencies=1 errors=0 needs_lookup=0 "
        "total_amount=4750.50 avg_days_late=37.5",
        "SUMMARY dispatch sent=1 failed=0 total=1 success=true",
    ]


def test_send_without_loaded_config_is_fatal_not_assertion(shared_agency_csv: Path, capsys):
    # load_config が何も返さなかった場合も AssertionError ではなく終了コードで返す
    with patch("delinquent_notify.cli.load_config", return_value=None), \
         patch("delinquent_notify.cli.ResendTransport") as transport_cls:
        code = main([str(shared_agency_csv), "--send"])
    assert code == EXIT_FATAL
    assert "ERROR config: --send requires a config file" in capsys.readouterr().out
    transport_cls.from_config.assert_not_called()
