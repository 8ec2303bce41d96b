import logging
from email_validator import EmailNotValidError, validate_email
from werkzeug.security import generate_password_hash, check_password_hash

from portal.errors import AuthenticationError, DuplicateKey, NotFound, ValidationError
from portal.models import utcnow
from portal.repository import FACULTY, STUDENT

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# form field that carries the identity for each role
IDENTITY_FIELD = {STUDENT: "registerNumber", FACULTY: "employeeId"}


def _clean(data, key):
    value = data.get(key)
    if value is None:
        return ""
    return str(value).strip()


def public_profile(role, account):
    """Account fields safe to send to a client."""
    return {
        IDENTITY_FIELD[role]: account["identity"],
        "name": account["name"],
        "email": account["email"],
        "department": account["department"],
        "phone": account.get("phone"),
        "createdAt": account["createdAt"].isoformat() if account.get("createdAt") else None,
    }


class AccountStore:
    def __init__(self, repository, uploads=None):
        self.repository = repository
        self.uploads = uploads

    def _build(self, role, data):
        key_field = IDENTITY_FIELD[role]
        required = [key_field, "password", "confirmPassword", "name", "email", "department"]
        missing = [f for f in required if not _clean(data, f)]
        if missing:
            raise ValidationError("Missing required fields: " + ", ".join(missing), fields=missing)

        password = str(data["password"])
        if password != str(data["confirmPassword"]):
            raise ValidationError("Passwords do not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        try:
            email = validate_email(_clean(data, "email"), check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValidationError(f"Please enter a valid email address: {e}")

        return {
            "identity": _clean(data, key_field),
            "name": _clean(data, "name"),
            "email": email,
            "department": _clean(data, "department"),
            "phone": _clean(data, "phone") or None,
            "passwordHash": generate_password_hash(password),
            "createdAt": utcnow(),
        }

    def _create(self, role, data):
        record = self._build(role, data)
        if self.repository.get_account(role, record["identity"]):
            raise DuplicateKey(f"{IDENTITY_FIELD[role]} already registered")
        if self.repository.get_account_by_email(role, record["email"]):
            raise DuplicateKey("Email already registered")
        self.repository.add_account(role, record)
        log.info("Registered %s %s", role, record["identity"])
        return record

    def create_account(self, data):
        return self._create(STUDENT, data)

    def create_faculty(self, data):
        return self._create(FACULTY, data)

    def find_by_identity(self, role, key):
        return self.repository.get_account(role, key)

    def verify_credentials(self, role, key, secret):
        if not key or not secret:
            raise ValidationError(f"{IDENTITY_FIELD[role]} and password are required")
        account = self.repository.get_account(role, key)
        if not account:
            if role == STUDENT:
                raise NotFound("Student not found. Please register first.",
                               offerRegistration=True, redirect="/student-register")
            raise NotFound("Faculty account not found")
        if not check_password_hash(account["passwordHash"], str(secret)):
            raise AuthenticationError("Invalid password")
        return account

    def delete_student(self, key):
        if not self.repository.delete_account(STUDENT, key):
            raise NotFound("Student not found")
        self.repository.delete_submissions(key)
        # a deleted student must not keep acting through a live login
        self.repository.delete_sessions(key, STUDENT)
        if self.uploads:
            self.uploads.remove_owner(key)
        log.info("Deleted student %s and their submissions", key)
