from datetime import datetime, timezone
from portal import db


def utcnow():
    # naive UTC, which is what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Student(db.Model):
    __tablename__ = "student"
    id = db.Column(db.Integer, primary_key=True)
    register_number = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    department = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    password_hash = db.Column(db.String(300), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Faculty(db.Model):
    __tablename__ = "faculty"
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    department = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    password_hash = db.Column(db.String(300), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Submission(db.Model):
    """One row per (student, kind); kind is "details" or "report"."""
    __tablename__ = "submission"
    __table_args__ = (db.UniqueConstraint("register_number", "kind", name="uq_submission_owner_kind"),)
    id = db.Column(db.Integer, primary_key=True)
    register_number = db.Column(db.String(50), nullable=False, index=True)
    kind = db.Column(db.String(20), nullable=False)
    fields = db.Column(db.JSON, nullable=False, default=dict)
    original_name = db.Column(db.String(300), nullable=True)
    stored_name = db.Column(db.String(300), nullable=True)
    file_path = db.Column(db.String(500), nullable=True)
    submitted_at = db.Column(db.DateTime, default=utcnow)


class UserSession(db.Model):
    __tablename__ = "user_session"
    token = db.Column(db.String(200), primary_key=True)
    identity = db.Column(db.String(50), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
