"""Tests for request/report models."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from postyt.errors import InvalidRequest
from postyt.models import (
    UNTITLED_VIDEO,
    AccountCredential,
    AccountUploadResult,
    OverallUploadReport,
    PlatformId,
    PlatformUploadReport,
    UploadSelection,
    VideoMetadata,
)


def test_platform_id_parse_known_and_unknown():
    assert PlatformId.parse("youtube") is PlatformId.YOUTUBE
    assert PlatformId.parse("snapchat") is PlatformId.SNAPCHAT
    assert PlatformId.parse("myspace") is None
    assert PlatformId.parse("YouTube") is None


def test_credential_naive_expiry_is_treated_as_utc():
    cred = AccountCredential(account_id="A1", access_token="t", expiry_date=datetime(2026, 1, 1, 12, 0))
    assert cred.expiry_date == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_credential_expiry_is_strictly_after():
    expiry = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    cred = AccountCredential(account_id="A1", access_token="t", expiry_date=expiry)

    assert cred.is_expired(expiry) is False
    assert cred.is_expired(expiry - timedelta(seconds=1)) is False
    assert cred.is_expired(expiry + timedelta(microseconds=1)) is True


def test_credential_without_expiry_never_expires():
    cred = AccountCredential(account_id="A1", access_token="t")
    assert cred.is_expired(datetime(2100, 1, 1, tzinfo=timezone.utc)) is False


def test_metadata_from_form_splits_and_trims_tags():
    metadata = VideoMetadata.from_form("My clip", "About it", " cats, dogs ,, , birds ")
    assert metadata.tags == ["cats", "dogs", "birds"]
    assert metadata.display_title == "My clip"
    assert metadata.display_description == "About it"


def test_metadata_defaults():
    metadata = VideoMetadata.from_form(None, None, None)
    assert metadata.tags == []
    assert metadata.display_title == UNTITLED_VIDEO
    assert metadata.display_description == ""

    assert VideoMetadata(title="   ").display_title == UNTITLED_VIDEO


def test_metadata_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        VideoMetadata(title="x", privacy="public")


def test_selection_parse_from_json_string_keeps_order():
    selection = UploadSelection.parse('{"tiktok": ["T1"], "youtube": ["A1", "A2"], "facebook": []}')
    assert list(selection.platforms()) == [("tiktok", ["T1"]), ("youtube", ["A1", "A2"])]


def test_selection_parse_skips_null_entries():
    selection = UploadSelection.parse({"youtube": None, "twitter": ["X1"]})
    assert list(selection.platforms()) == [("twitter", ["X1"])]


def test_selection_keeps_unknown_platform_keys():
    selection = UploadSelection.parse({"myspace": ["M1"]})
    assert list(selection.platforms()) == [("myspace", ["M1"])]


@pytest.mark.parametrize(
    "raw",
    [None, "not json", "[1, 2]", '"youtube"', {"youtube": "A1"}, {"youtube": [{"id": 1}]}],
)
def test_selection_parse_rejects_malformed_input(raw):
    with pytest.raises(InvalidRequest):
        UploadSelection.parse(raw)


def test_account_result_wire_shape():
    ok = AccountUploadResult.uploaded("A1", account_name="Main", video_id="v1", video_url="https://y/v1")
    failed = AccountUploadResult.failed("A2", "account not found")

    assert ok.to_dict() == {
        "accountId": "A1",
        "success": True,
        "accountName": "Main",
        "videoId": "v1",
        "videoUrl": "https://y/v1",
    }
    assert failed.to_dict() == {"accountId": "A2", "success": False, "error": "account not found"}


def test_platform_report_all_failed():
    assert PlatformUploadReport().all_failed is False
    assert PlatformUploadReport(error="unsupported platform").all_failed is False
    assert PlatformUploadReport(account_results=[AccountUploadResult.failed("A", "x")]).all_failed is True
    mixed = PlatformUploadReport(
        account_results=[
            AccountUploadResult.failed("A", "x"),
            AccountUploadResult.uploaded("B", account_name=None, video_id="v", video_url="u"),
        ]
    )
    assert mixed.all_failed is False


def test_overall_report_to_dict():
    report = OverallUploadReport(
        success=False,
        platforms={
            "facebook": PlatformUploadReport(account_results=[AccountUploadResult.failed("F1", "account not found")]),
            "reddit": PlatformUploadReport(error="not yet implemented"),
        },
    )
    assert report.to_dict() == {
        "overall": {"success": False},
        "platforms": {
            "facebook": {"accountResults": [{"accountId": "F1", "success": False, "error": "account not found"}]},
            "reddit": {"accountResults": [], "error": "not yet implemented"},
        },
    }
