from unittest.mock import Mock

import pytest

from conftest import FakeAdapter, FakeCredentialSource, credential, make_registry
from postyt.errors import InvalidRequest
from postyt.models import PlatformId, VideoMetadata
from postyt.services import PublishService, UploadOrchestrator


@pytest.fixture
def discard_calls(monkeypatch):
    calls = []
    original = PublishService._discard

    def _counting(path):
        calls.append(path)
        original(path)

    monkeypatch.setattr(PublishService, "_discard", staticmethod(_counting))
    return calls


def _store(accounts):
    source = FakeCredentialSource(accounts)
    store = Mock()
    store.find_account.side_effect = source.find_account
    return store


def test_publish_persists_refreshed_tokens_and_deletes_video(video_file, discard_calls):
    youtube = FakeAdapter(PlatformId.YOUTUBE)
    store = _store({("youtube", "A1"): credential("A1", expired=True)})
    service = PublishService(UploadOrchestrator(make_registry(youtube=youtube)))

    report = service.publish("user-1", video_file, VideoMetadata(), {"youtube": ["A1"]}, store)

    assert report.success is True
    store.apply_token_updates.assert_called_once()
    user_id, updates = store.apply_token_updates.call_args.args
    assert user_id == "user-1"
    assert [(u.account_id, u.access_token) for u in updates] == [("A1", "new-A1")]
    assert not video_file.exists()
    assert discard_calls == [video_file]


def test_publish_skips_persistence_without_refresh(video_file, discard_calls):
    youtube = FakeAdapter(PlatformId.YOUTUBE, upload_failures=("token-A1",))
    store = _store({("youtube", "A1"): credential("A1")})
    service = PublishService(UploadOrchestrator(make_registry(youtube=youtube)))

    report = service.publish("user-1", video_file, VideoMetadata(), {"youtube": ["A1"]}, store)

    assert report.success is False
    store.apply_token_updates.assert_not_called()
    assert not video_file.exists()
    assert len(discard_calls) == 1


def test_publish_deletes_video_when_request_is_invalid(video_file, discard_calls):
    service = PublishService(UploadOrchestrator(make_registry()))

    with pytest.raises(InvalidRequest):
        service.publish("user-1", video_file, VideoMetadata(), "{broken", _store({}))

    assert not video_file.exists()
    assert discard_calls == [video_file]


def test_publish_deletes_video_when_orchestrator_crashes(video_file, discard_calls):
    orchestrator = Mock()
    orchestrator.run_upload.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        PublishService(orchestrator).publish("user-1", video_file, VideoMetadata(), {}, _store({}))

    assert not video_file.exists()
    assert discard_calls == [video_file]


def test_publish_returns_report_when_token_persistence_fails(video_file, discard_calls):
    youtube = FakeAdapter(PlatformId.YOUTUBE)
    store = _store({("youtube", "A1"): credential("A1", expired=True)})
    store.apply_token_updates.side_effect = OSError("disk full")
    service = PublishService(UploadOrchestrator(make_registry(youtube=youtube)))

    report = service.publish("user-1", video_file, VideoMetadata(), {"youtube": ["A1"]}, store)

    assert report.success is True
    assert report.platforms["youtube"].account_results[0].success is True
    store.apply_token_updates.assert_called_once()
    assert discard_calls == [video_file]
