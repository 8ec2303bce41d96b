import os
import pytest

from portal.errors import ValidationError
from portal.repository import MemoryRepository, STUDENT
from portal.submissions import (COMPLETED, DETAILS, IN_PROGRESS, NOT_STARTED, REPORT,
                                SubmissionStore, clean_fields, derive_status)
from portal.uploads import UploadHandler

from conftest import details_payload
from test_uploads import make_file


@pytest.fixture
def repo():
    repo = MemoryRepository()
    for i, key in enumerate(["S1", "S2", "S3"]):
        repo.add_account(STUDENT, {"identity": key, "name": key, "email": f"{key}@x.edu",
                                   "department": "CSE", "phone": None, "passwordHash": "h",
                                   "createdAt": i})
    return repo


@pytest.fixture
def store(repo):
    return SubmissionStore(repo)


def test_resubmission_replaces_whole_record(store):
    store.upsert("S1", DETAILS, details_payload(stipend="5000", mentorPhone="111"))
    store.upsert("S1", DETAILS, details_payload(companyName="Globex", stipend=""),
                 {"originalName": "o.pdf", "storedName": "S1-1-1.pdf", "path": "/tmp/S1-1-1.pdf"})

    record = store.get("S1", DETAILS)
    assert record["fields"]["companyName"] == "Globex"
    # fields missing from the second submission do not linger
    assert "stipend" not in record["fields"]
    assert "mentorPhone" not in record["fields"]
    assert record["file"]["storedName"] == "S1-1-1.pdf"


def test_resubmission_without_file_drops_old_descriptor(store):
    store.upsert("S1", DETAILS, details_payload(), {"originalName": "o.pdf", "storedName": "a.pdf", "path": "/a"})
    store.upsert("S1", DETAILS, details_payload())
    assert store.get("S1", DETAILS)["file"] is None


def test_unknown_fields_are_ignored(store):
    record = store.upsert("S1", REPORT, {"summary": "Built APIs", "registerNumber": "S2", "admin": "yes"})
    assert record["fields"] == {"summary": "Built APIs"}
    assert record["identity"] == "S1"


def test_status_progression(store):
    assert store.status("S1") == NOT_STARTED
    assert store.next_step("S1") == "/internship-details"
    store.upsert("S1", DETAILS, details_payload())
    assert store.status("S1") == IN_PROGRESS
    assert store.next_step("S1") == "/internship-report"
    store.upsert("S1", REPORT, {"summary": "done", "rating": "4"})
    assert store.status("S1") == COMPLETED
    assert store.next_step("S1") == "/student-dashboard"


def test_overview_left_joins_every_student(store):
    store.upsert("S1", DETAILS, details_payload())
    store.upsert("S2", DETAILS, details_payload())
    store.upsert("S2", REPORT, {"summary": "done"})

    rows = {r["registerNumber"]: r for r in store.overview()}
    assert set(rows) == {"S1", "S2", "S3"}
    assert rows["S1"]["status"] == IN_PROGRESS
    assert rows["S2"]["status"] == COMPLETED
    assert rows["S3"]["status"] == NOT_STARTED
    assert rows["S3"]["details"] is None and rows["S3"]["report"] is None
    assert rows["S2"]["report"]["summary"] == "done"


@pytest.mark.parametrize("kind,data", [
    (DETAILS, {"internshipRole": "Intern", "startDate": "2025-06-01"}),
    (DETAILS, details_payload(startDate="01/06/2025")),
    (DETAILS, details_payload(endDate="2025-05-01")),
    (REPORT, {"rating": "3"}),
    (REPORT, {"summary": "ok", "rating": "6"}),
    (REPORT, {"summary": "ok", "rating": "great"}),
])
def test_invalid_fields_rejected(kind, data):
    with pytest.raises(ValidationError):
        clean_fields(kind, data)


def test_rating_is_stored_as_number():
    assert clean_fields(REPORT, {"summary": "ok", "rating": " 5 "})["rating"] == 5


def test_unknown_kind_rejected(store):
    with pytest.raises(ValidationError):
        store.upsert("S1", "certificate", {})


def test_resubmission_discards_replaced_attachment(repo, tmp_path):
    uploads = UploadHandler(str(tmp_path), 10 * 1024 * 1024)
    store = SubmissionStore(repo, uploads)

    first = uploads.save("S1", make_file())
    store.upsert("S1", DETAILS, details_payload(), first)
    second = uploads.save("S1", make_file())
    store.upsert("S1", DETAILS, details_payload(), second)

    assert os.listdir(uploads.owner_dir("S1")) == [second["storedName"]]

    store.upsert("S1", DETAILS, details_payload())
    assert os.listdir(uploads.owner_dir("S1")) == []


def test_failed_store_discards_new_attachment(repo, tmp_path):
    uploads = UploadHandler(str(tmp_path), 10 * 1024 * 1024)
    store = SubmissionStore(repo, uploads)
    desc = uploads.save("S1", make_file())

    def fail(*args, **kwargs):
        raise RuntimeError("database unavailable")

    repo.put_submission = fail
    with pytest.raises(RuntimeError):
        store.upsert("S1", REPORT, {"summary": "done"}, desc)
    assert not os.path.exists(desc["path"])
    assert store.get("S1", REPORT) is None


def test_status_helper_matches_overview(store):
    assert derive_status(None, None) == NOT_STARTED
    store.upsert("S1", REPORT, {"summary": "done"})
    row = [r for r in store.overview() if r["registerNumber"] == "S1"][0]
    assert row["status"] == store.status("S1") == IN_PROGRESS
