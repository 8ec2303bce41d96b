"""
Internship portal - test configuration and fixtures
"""
import io
import pytest

from portal import create_app
from portal.repository import MemoryRepository

COOKIE = "portal_sid"


@pytest.fixture
def repository():
    return MemoryRepository()


@pytest.fixture
def app(repository, tmp_path):
    app = create_app(
        config={
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "LOG_LEVEL": "WARNING",
        },
        repository=repository,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def student_payload(register_number="S1", **overrides):
    data = {
        "registerNumber": register_number,
        "password": "secret1",
        "confirmPassword": "secret1",
        "name": f"Student {register_number}",
        "email": f"{register_number.lower()}@college.edu",
        "department": "CSE",
        "phone": "9876543210",
    }
    data.update(overrides)
    return data


def details_payload(**overrides):
    data = {
        "companyName": "Acme Labs",
        "companyAddress": "12 MG Road, Bengaluru",
        "internshipRole": "Backend Intern",
        "internshipType": "Onsite",
        "mentorName": "R. Kumar",
        "mentorEmail": "kumar@acme.example",
        "startDate": "2025-06-01",
        "endDate": "2025-07-31",
        "stipend": "10000",
    }
    data.update(overrides)
    return data


def pdf_file(name="offer.pdf", size=1024, mimetype="application/pdf"):
    body = b"%PDF-1.4\n" + b"0" * max(size - 9, 0)
    return (io.BytesIO(body), name, mimetype)


def session_token(resp):
    for header in resp.headers.getlist("Set-Cookie"):
        if header.startswith(COOKIE + "="):
            return header.split(";", 1)[0].split("=", 1)[1]
    return None


@pytest.fixture
def register_student(client):
    def _register(register_number="S1", **overrides):
        resp = client.post("/student-register", json=student_payload(register_number, **overrides))
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _register


@pytest.fixture
def login_student(client, register_student):
    def _login(register_number="S1"):
        register_student(register_number)
        resp = client.post("/student-login", json={"registerNumber": register_number, "password": "secret1"})
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _login


@pytest.fixture
def faculty(app):
    app.extensions["accounts"].create_faculty({
        "employeeId": "F100",
        "password": "teach123",
        "confirmPassword": "teach123",
        "name": "Dr. Meena",
        "email": "meena@college.edu",
        "department": "CSE",
    })
    return "F100"


@pytest.fixture
def faculty_client(app, faculty):
    c = app.test_client()
    resp = c.post("/faculty-login", json={"employeeId": faculty, "password": "teach123"})
    assert resp.status_code == 200, resp.get_json()
    return c
