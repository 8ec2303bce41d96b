import logging
from datetime import datetime

from portal.errors import ValidationError
from portal.models import utcnow
from portal.repository import STUDENT

log = logging.getLogger(__name__)

DETAILS = "details"
REPORT = "report"
KINDS = (DETAILS, REPORT)

KIND_FIELDS = {
    DETAILS: ("companyName", "companyAddress", "internshipRole", "internshipType",
              "mentorName", "mentorEmail", "mentorPhone", "startDate", "endDate", "stipend"),
    REPORT: ("internshipType", "internshipRole", "startMonth", "mentor",
             "summary", "rating", "declaration"),
}
REQUIRED_FIELDS = {
    DETAILS: ("companyName", "internshipRole", "startDate"),
    REPORT: ("summary",),
}
# multipart field carrying the attachment for each kind
FILE_FIELD = {DETAILS: "offerLetter", REPORT: "internshipReport"}

NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"


def _parse_date(value, label):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{label} must be a date in YYYY-MM-DD format")


def clean_fields(kind, data):
    """Keep only the fields known for ``kind``; validate the few with rules."""
    fields = {}
    for name in KIND_FIELDS[kind]:
        value = data.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            fields[name] = value

    missing = [f for f in REQUIRED_FIELDS[kind] if f not in fields]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing), fields=missing)

    if kind == DETAILS:
        start = _parse_date(fields["startDate"], "startDate")
        if "endDate" in fields and _parse_date(fields["endDate"], "endDate") < start:
            raise ValidationError("endDate cannot be before startDate")

    if "rating" in fields:
        try:
            rating = int(fields["rating"])
        except ValueError:
            raise ValidationError("rating must be a number from 1 to 5")
        if not 1 <= rating <= 5:
            raise ValidationError("rating must be a number from 1 to 5")
        fields["rating"] = rating

    return fields


def serialize(record):
    if record is None:
        return None
    out = dict(record["fields"])
    out["registerNumber"] = record["identity"]
    out["submittedAt"] = record["submittedAt"].isoformat() if record.get("submittedAt") else None
    f = record.get("file")
    out["file"] = {"originalName": f["originalName"], "storedName": f["storedName"]} if f else None
    return out


def derive_status(details, report):
    if details and report:
        return COMPLETED
    if details or report:
        return IN_PROGRESS
    return NOT_STARTED


class SubmissionStore:
    def __init__(self, repository, uploads=None):
        self.repository = repository
        self.uploads = uploads

    def upsert(self, identity, kind, fields, file_descriptor=None):
        try:
            if kind not in KINDS:
                raise ValidationError(f"Unknown submission type: {kind}")
            record = {
                "identity": identity,
                "kind": kind,
                "fields": clean_fields(kind, fields),
                "file": file_descriptor,
                "submittedAt": utcnow(),
            }
            previous = self.repository.get_submission(identity, kind)
            self.repository.put_submission(identity, kind, record)
        except Exception:
            # the new attachment has no record to belong to
            if file_descriptor and self.uploads:
                self.uploads.discard(file_descriptor)
            raise

        old = previous.get("file") if previous else None
        if old and self.uploads and (not file_descriptor or old["storedName"] != file_descriptor["storedName"]):
            self.uploads.discard(old)
        log.info("%s %s for %s (file=%s)", "Replaced" if previous else "Stored", kind, identity,
                 file_descriptor["storedName"] if file_descriptor else None)
        return record

    def get(self, identity, kind):
        return self.repository.get_submission(identity, kind)

    def status(self, identity):
        return derive_status(self.get(identity, DETAILS), self.get(identity, REPORT))

    def next_step(self, identity):
        if not self.get(identity, DETAILS):
            return "/internship-details"
        if not self.get(identity, REPORT):
            return "/internship-report"
        return "/student-dashboard"

    def overview(self):
        rows = []
        for account in self.repository.list_accounts(STUDENT):
            details = self.get(account["identity"], DETAILS)
            report = self.get(account["identity"], REPORT)
            rows.append({
                "registerNumber": account["identity"],
                "name": account["name"],
                "email": account["email"],
                "department": account["department"],
                "phone": account.get("phone"),
                "status": derive_status(details, report),
                "details": serialize(details),
                "report": serialize(report),
            })
        return rows
