from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest

from delinquent_notify.models import (
    AgencyGroup,
    BatchDispatchReport,
    DispatchOutcome,
    MemberRecord,
    ParseError,
    ParseResult,
    ResultKind,
    SchemaVariant,
)


def test_member_record_is_frozen():
    rec = MemberRecord(name="John", agency_name="ABC", amount_due=Decimal("1"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        rec.name = "Jane"  # type: ignore[misc]


def test_member_record_to_dict_renders_amount_as_text():
    rec = MemberRecord(name="John", agency_name="ABC", amount_due=Decimal("1250.50"), days_late=45)
    data = rec.to_dict()
    assert data["amount_due"] == "1250.50"
    assert data["days_late"] == 45
    assert data["agency_email"] is None


def test_agency_group_needs_lookup_follows_email():
    assert AgencyGroup("ABC", None).needs_lookup is True
    assert AgencyGroup("ABC", "a@abc.com").needs_lookup is False
    assert AgencyGroup("ABC", None).to_dict()["needs_lookup"] is True


def test_parse_result_members_flattened_in_group_order():
    a = MemberRecord(name="A", agency_name="X")
    b = MemberRecord(name="B", agency_name="Y")
    c = MemberRecord(name="C", agency_name="X")
    result = ParseResult(
        groups={"X": AgencyGroup("X", None, (a, c)), "Y": AgencyGroup("Y", None, (b,))},
        errors=(),
        total_members=3,
        variant=SchemaVariant.NOTIFICATION,
    )
    assert [m.name for m in result.members] == ["A", "C", "B"]
    assert result.total_agencies == 2
    assert result.to_dict()["variant"] == "notification"


def test_parse_result_groups_are_read_only():
    source = {"X": AgencyGroup("X", None, (MemberRecord(name="A", agency_name="X"),))}
    result = ParseResult(groups=source, errors=[], total_members=1)
    with pytest.raises(TypeError):
        result.groups["Y"] = AgencyGroup("Y", None)  # type: ignore[index]
    with pytest.raises(TypeError):
        del result.groups["X"]  # type: ignore[attr-defined]
    # 呼び出し側の dict を後から変えても結果には影響しない
    source.clear()
    assert list(result.groups) == ["X"]
    assert result.errors == ()
    assert result.to_dict()["data"]["X"]["agency_name"] == "X"


def test_parse_error_raw_data_is_read_only():
    raw = {"Agency": "ABC"}
    err = ParseError(row_number=2, message="Invalid amount: x", raw_data=raw)
    with pytest.raises(TypeError):
        err.raw_data["Agency"] = "XYZ"  # type: ignore[index]
    raw["Agency"] = "changed"
    assert err.raw_data == {"Agency": "ABC"}


def test_parse_error_to_dict():
    err = ParseError(row_number=2, message="Missing required fields", raw_data={"Agency": None})
    assert err.to_dict() == {
        "row": 2,
        "message": "Missing required fields",
        "error_type": "ROW_REJECTED",
        "data": {"Agency": None},
    }


class TestBatchDispatchReport:
    def _o(self, name: str, kind: ResultKind, **kw) -> DispatchOutcome:
        return DispatchOutcome(record_identity=name, recipient_address=f"{name}@x.com", result_kind=kind, **kw)

    def test_partitions_outcomes(self):
        report = BatchDispatchReport.from_outcomes([
            self._o("a", ResultKind.SENT, provider_reference="id-1"),
            self._o("b", ResultKind.FAILED, failure_detail="boom"),
            self._o("c", ResultKind.SENT, provider_reference="id-3"),
        ])
        assert [o.record_identity for o in report.sent] == ["a", "c"]
        assert [o.record_identity for o in report.failed] == ["b"]
        assert report.total == 3
        assert report.overall_success is False
        assert report.message == "2 of 3 notifications sent successfully"

    def test_empty_failed_means_success(self):
        report = BatchDispatchReport.from_outcomes([self._o("a", ResultKind.SENT)])
        assert report.overall_success is True

    def test_to_dict(self):
        report = BatchDispatchReport.from_outcomes([
            self._o("a", ResultKind.SENT, provider_reference="id-1"),
            self._o("b", ResultKind.FAILED, failure_detail={"message": "bad"}),
        ])
        data = report.to_dict()
        assert data["success"] is False
        assert data["sent"] == [{"identity": "a", "recipient": "a@x.com", "status": "sent", "email_id": "id-1"}]
        assert data["failed"][0]["error"] == {"message": "bad"}
