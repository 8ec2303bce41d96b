"""
Storage behind the portal.

Records cross this boundary as plain dicts:

    account     {identity, name, email, department, phone, passwordHash, createdAt}
    submission  {identity, kind, fields, file, submittedAt}
    session     {token, identity, role, expiresAt}

``SqlRepository`` is the production backing (Flask-SQLAlchemy);
``MemoryRepository`` keeps everything in dicts and is what the tests use.
"""
import copy
from sqlalchemy.exc import IntegrityError

from portal.errors import DuplicateKey
from portal.models import Faculty, Student, Submission, UserSession

STUDENT = "student"
FACULTY = "faculty"
ROLES = (STUDENT, FACULTY)


class Repository:
    def add_account(self, role, record):
        raise NotImplementedError

    def get_account(self, role, identity):
        raise NotImplementedError

    def get_account_by_email(self, role, email):
        raise NotImplementedError

    def list_accounts(self, role):
        raise NotImplementedError

    def delete_account(self, role, identity):
        raise NotImplementedError

    def put_submission(self, identity, kind, record):
        raise NotImplementedError

    def get_submission(self, identity, kind):
        raise NotImplementedError

    def delete_submissions(self, identity):
        raise NotImplementedError

    def put_session(self, token, identity, role, expires_at):
        raise NotImplementedError

    def get_session(self, token):
        raise NotImplementedError

    def delete_session(self, token):
        raise NotImplementedError

    def delete_sessions(self, identity, role):
        raise NotImplementedError

    def purge_sessions(self, now):
        raise NotImplementedError


class MemoryRepository(Repository):
    def __init__(self):
        self.accounts = {role: {} for role in ROLES}
        self.submissions = {}
        self.sessions = {}

    def add_account(self, role, record):
        table = self.accounts[role]
        if record["identity"] in table:
            raise DuplicateKey("Account already exists")
        if any(a["email"] == record["email"] for a in table.values()):
            raise DuplicateKey("Email already registered")
        table[record["identity"]] = copy.deepcopy(record)

    def get_account(self, role, identity):
        return copy.deepcopy(self.accounts[role].get(identity))

    def get_account_by_email(self, role, email):
        for a in self.accounts[role].values():
            if a["email"] == email:
                return copy.deepcopy(a)
        return None

    def list_accounts(self, role):
        rows = sorted(self.accounts[role].values(), key=lambda a: a["createdAt"], reverse=True)
        return copy.deepcopy(rows)

    def delete_account(self, role, identity):
        return self.accounts[role].pop(identity, None) is not None

    def put_submission(self, identity, kind, record):
        self.submissions[(identity, kind)] = copy.deepcopy(record)

    def get_submission(self, identity, kind):
        return copy.deepcopy(self.submissions.get((identity, kind)))

    def delete_submissions(self, identity):
        for key in [k for k in self.submissions if k[0] == identity]:
            del self.submissions[key]

    def put_session(self, token, identity, role, expires_at):
        self.sessions[token] = {"token": token, "identity": identity, "role": role, "expiresAt": expires_at}

    def get_session(self, token):
        return copy.deepcopy(self.sessions.get(token))

    def delete_session(self, token):
        self.sessions.pop(token, None)

    def delete_sessions(self, identity, role):
        for t in [t for t, s in self.sessions.items() if s["identity"] == identity and s["role"] == role]:
            del self.sessions[t]

    def purge_sessions(self, now):
        expired = [t for t, s in self.sessions.items() if s["expiresAt"] <= now]
        for t in expired:
            del self.sessions[t]
        return len(expired)


class SqlRepository(Repository):
    """Needs an application context, like any Flask-SQLAlchemy access."""

    def __init__(self, db):
        self.db = db

    def _account_model(self, role):
        if role == STUDENT:
            return Student, Student.register_number
        return Faculty, Faculty.employee_id

    @staticmethod
    def _account_dict(role, row):
        if row is None:
            return None
        return {
            "identity": row.register_number if role == STUDENT else row.employee_id,
            "name": row.name,
            "email": row.email,
            "department": row.department,
            "phone": row.phone,
            "passwordHash": row.password_hash,
            "createdAt": row.created_at,
        }

    def add_account(self, role, record):
        model, _ = self._account_model(role)
        key = "register_number" if role == STUDENT else "employee_id"
        row = model(**{key: record["identity"]},
                    name=record["name"],
                    email=record["email"],
                    department=record["department"],
                    phone=record.get("phone"),
                    password_hash=record["passwordHash"],
                    created_at=record["createdAt"])
        self.db.session.add(row)
        try:
            self.db.session.commit()
        except IntegrityError:
            self.db.session.rollback()
            raise DuplicateKey("Account already exists")

    def get_account(self, role, identity):
        model, key_col = self._account_model(role)
        return self._account_dict(role, model.query.filter(key_col == identity).first())

    def get_account_by_email(self, role, email):
        model, _ = self._account_model(role)
        return self._account_dict(role, model.query.filter_by(email=email).first())

    def list_accounts(self, role):
        model, _ = self._account_model(role)
        return [self._account_dict(role, r) for r in model.query.order_by(model.created_at.desc()).all()]

    def delete_account(self, role, identity):
        model, key_col = self._account_model(role)
        row = model.query.filter(key_col == identity).first()
        if not row:
            return False
        self.db.session.delete(row)
        self.db.session.commit()
        return True

    @staticmethod
    def _submission_dict(row):
        if row is None:
            return None
        file = None
        if row.stored_name:
            file = {"originalName": row.original_name, "storedName": row.stored_name, "path": row.file_path}
        return {
            "identity": row.register_number,
            "kind": row.kind,
            "fields": dict(row.fields or {}),
            "file": file,
            "submittedAt": row.submitted_at,
        }

    def put_submission(self, identity, kind, record):
        row = Submission.query.filter_by(register_number=identity, kind=kind).first()
        if not row:
            row = Submission(register_number=identity, kind=kind)
            self.db.session.add(row)
        file = record.get("file") or {}
        # every column is rewritten so nothing from the previous submission survives
        row.fields = dict(record["fields"])
        row.original_name = file.get("originalName")
        row.stored_name = file.get("storedName")
        row.file_path = file.get("path")
        row.submitted_at = record["submittedAt"]
        self.db.session.commit()

    def get_submission(self, identity, kind):
        return self._submission_dict(Submission.query.filter_by(register_number=identity, kind=kind).first())

    def delete_submissions(self, identity):
        Submission.query.filter_by(register_number=identity).delete()
        self.db.session.commit()

    def put_session(self, token, identity, role, expires_at):
        self.db.session.add(UserSession(token=token, identity=identity, role=role, expires_at=expires_at))
        self.db.session.commit()

    def get_session(self, token):
        row = self.db.session.get(UserSession, token)
        if not row:
            return None
        return {"token": row.token, "identity": row.identity, "role": row.role, "expiresAt": row.expires_at}

    def delete_session(self, token):
        UserSession.query.filter_by(token=token).delete()
        self.db.session.commit()

    def delete_sessions(self, identity, role):
        UserSession.query.filter_by(identity=identity, role=role).delete()
        self.db.session.commit()

    def purge_sessions(self, now):
        count = UserSession.query.filter(UserSession.expires_at <= now).delete()
        self.db.session.commit()
        return count
