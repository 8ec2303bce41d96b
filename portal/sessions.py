import logging
import secrets
from datetime import timedelta
from functools import wraps
from flask import current_app, g, request

from portal.errors import AuthenticationError
from portal.models import utcnow
from portal.repository import FACULTY, STUDENT

log = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, repository, ttl_hours=24):
        self.repository = repository
        self.ttl = timedelta(hours=ttl_hours)

    def login(self, identity, role):
        token = secrets.token_urlsafe(32)
        self.repository.put_session(token, identity, role, utcnow() + self.ttl)
        return token

    def authenticate(self, token):
        """Return (identity, role) for a live token, else None."""
        if not token:
            return None
        s = self.repository.get_session(token)
        if not s:
            return None
        if s["expiresAt"] <= utcnow():
            self.repository.delete_session(token)
            return None
        return s["identity"], s["role"]

    def logout(self, token):
        if token:
            self.repository.delete_session(token)

    def purge(self):
        return self.repository.purge_sessions(utcnow())


def current_token():
    return request.cookies.get(current_app.config["PORTAL_COOKIE_NAME"])


def current_identity():
    """(identity, role) of the caller, cached on ``g`` for the request."""
    if "auth" not in g:
        g.auth = current_app.extensions["sessions"].authenticate(current_token())
    return g.auth


def role_required(role):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            auth = current_identity()
            if not auth:
                raise AuthenticationError("Authentication required. Please login.", authenticated=False)
            if auth[1] != role:
                raise AuthenticationError(f"{role.capitalize()} login required", authenticated=True)
            g.identity = auth[0]
            return view(*args, **kwargs)
        return wrapped
    return decorator


student_required = role_required(STUDENT)
faculty_required = role_required(FACULTY)
