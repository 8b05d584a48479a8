"""
Tests for the record store and artifact storage.
"""

import json
import os

import pytest

from badminton_api.engines import MOCK_RESULTS
from badminton_api.storage import StorageManager, safe_filename
from badminton_domain.entities import AnalysisStatus
from badminton_domain.errors import InvalidTransition, PersistenceFailure, RecordNotFound


def test_create_record_starts_pending(storage, make_record):
    record = make_record()

    assert record.status == AnalysisStatus.PENDING
    assert record.results is None
    assert storage.get_record(record.id).status == AnalysisStatus.PENDING
    assert os.path.exists(record.artifact_location)


def test_record_ids_are_unique(storage):
    ids = {storage.generate_record_id() for _ in range(200)}
    assert len(ids) == 200


def test_records_survive_reload(data_dir, storage, make_record):
    record = make_record()
    storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)

    reloaded = StorageManager(data_dir)
    again = reloaded.get_record(record.id)

    assert again.status == AnalysisStatus.PROCESSING
    assert again.owner_id == "u1"
    assert again.created_at == record.created_at


def test_unreadable_records_are_skipped(data_dir, storage, make_record):
    record = make_record()
    with open(storage.records_file) as f:
        data = json.load(f)
    data["broken"] = {"id": "broken"}
    with open(storage.records_file, "w") as f:
        json.dump(data, f)

    reloaded = StorageManager(data_dir)

    assert reloaded.get_record(record.id) is not None
    assert reloaded.get_record("broken") is None


def test_transition_is_compare_and_set(storage, make_record):
    record = make_record()

    first = storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)
    second = storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)

    assert first.status == AnalysisStatus.PROCESSING
    assert second is None


def test_transition_rejects_back_edges(storage, make_record):
    record = make_record()
    storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)
    storage.transition(record.id, AnalysisStatus.PROCESSING, AnalysisStatus.FAILED, error="boom")

    with pytest.raises(InvalidTransition):
        storage.transition(record.id, AnalysisStatus.FAILED, AnalysisStatus.PROCESSING)
    with pytest.raises(InvalidTransition):
        storage.transition(record.id, AnalysisStatus.COMPLETED, AnalysisStatus.PENDING)

    assert storage.get_record(record.id).status == AnalysisStatus.FAILED


def test_results_only_with_completed(storage, make_record):
    record = make_record()
    storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)

    with pytest.raises(InvalidTransition):
        storage.transition(record.id, AnalysisStatus.PROCESSING, AnalysisStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        storage.transition(record.id, AnalysisStatus.PROCESSING, AnalysisStatus.FAILED, results=MOCK_RESULTS)

    done = storage.transition(
        record.id, AnalysisStatus.PROCESSING, AnalysisStatus.COMPLETED, results=MOCK_RESULTS
    )
    assert done.results == MOCK_RESULTS


def test_transition_unknown_record(storage):
    with pytest.raises(RecordNotFound):
        storage.transition("missing", AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)


def test_failed_write_rolls_back(storage, make_record, monkeypatch):
    record = make_record()

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("badminton_api.storage.os.replace", broken_replace)

    with pytest.raises(PersistenceFailure):
        storage.transition(record.id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)
    assert storage.get_record(record.id).status == AnalysisStatus.PENDING

    with pytest.raises(PersistenceFailure):
        storage.create_record("abc", "u1", "s1", "a.mp4", storage.upload_dir / "a.mp4")
    assert storage.get_record("abc") is None


def test_save_artifact_names_are_unique(storage, monkeypatch):
    monkeypatch.setattr("badminton_api.storage.time.time", lambda: 1700000000.0)

    first_id, first_path = storage.save_artifact(b"one", "My Rally.mp4")
    second_id, second_path = storage.save_artifact(b"two", "My Rally.mp4")

    assert first_id == "1700000000000-My_Rally.mp4"
    assert second_id == "1700000000000-My_Rally-1.mp4"
    assert first_path.read_bytes() == b"one"
    assert second_path.read_bytes() == b"two"


@pytest.mark.parametrize("filename,expected", [
    ("../../etc/passwd", "passwd.mp4"),
    ("clip.MOV", "clip.MOV"),
    (None, "video.mp4"),
    ("   ", "video.mp4"),
])
def test_safe_filename(filename, expected):
    assert safe_filename(filename) == expected


def test_list_records_scoping(storage, make_record):
    a = make_record(owner_id="u1", tenant_id="s1")
    b = make_record(owner_id="u2", tenant_id="s1")
    make_record(owner_id="u1", tenant_id="s2")

    assert [r.id for r in storage.list_records(owner_id="u1", tenant_id="s1")] == [a.id]
    assert {r.id for r in storage.list_records(tenant_id="s1")} == {a.id, b.id}
    assert len(storage.list_records()) == 3
    assert storage.status_counts()["pending"] == 3
