import logging
from flask import Blueprint, request, current_app, g, jsonify, make_response, send_from_directory

from portal.accounts import public_profile
from portal.errors import NotFound, PortalError, ValidationError
from portal.repository import FACULTY, STUDENT
from portal.sessions import current_identity, current_token, faculty_required, student_required
from portal.submissions import (DETAILS, REPORT, KINDS, FILE_FIELD, COMPLETED, IN_PROGRESS,
                                NOT_STARTED, clean_fields, serialize)

main = Blueprint("main", __name__)

log = logging.getLogger(__name__)


def service(name):
    return current_app.extensions[name]


def form_data():
    # JSON bodies and form/multipart posts are both accepted
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def start_session(identity, role, body):
    sessions = service("sessions")
    # a browser holds one identity at a time
    sessions.logout(current_token())
    token = sessions.login(identity, role)
    resp = make_response(jsonify(body))
    resp.set_cookie(current_app.config["PORTAL_COOKIE_NAME"], token,
                    max_age=current_app.config["SESSION_TTL_HOURS"] * 3600,
                    httponly=True, samesite="Lax",
                    secure=current_app.config["SESSION_COOKIE_SECURE"])
    return resp


# ----------------- STUDENT AUTH -----------------
@main.route("/student-register", methods=["POST"])
def student_register():
    account = service("accounts").create_account(form_data())
    return jsonify({"success": True,
                    "message": "Registration successful! Please login.",
                    "registerNumber": account["identity"]})


@main.route("/student-login", methods=["POST"])
def student_login():
    data = form_data()
    register_number = str(data.get("registerNumber") or "").strip()
    try:
        account = service("accounts").verify_credentials(STUDENT, register_number, data.get("password"))
    except PortalError as e:
        log.info("Student login failed for %s: %s", register_number, e)
        raise
    log.info("Student %s logged in", register_number)
    return start_session(register_number, STUDENT, {
        "success": True,
        "message": "Login successful",
        "name": account["name"],
        "redirect": service("submissions").next_step(register_number),
    })


# ----------------- FACULTY AUTH -----------------
@main.route("/faculty-login", methods=["POST"])
def faculty_login():
    data = form_data()
    employee_id = str(data.get("employeeId") or "").strip()
    try:
        account = service("accounts").verify_credentials(FACULTY, employee_id, data.get("password"))
    except PortalError as e:
        log.info("Faculty login failed for %s: %s", employee_id, e)
        raise
    log.info("Faculty %s logged in", employee_id)
    return start_session(employee_id, FACULTY, {
        "success": True,
        "message": "Login successful",
        "name": account["name"],
        "redirect": "/faculty-dashboard",
    })


@main.route("/logout", methods=["POST"])
def logout():
    auth = current_identity()
    service("sessions").logout(current_token())
    if auth:
        log.info("%s %s logged out", auth[1].capitalize(), auth[0])
    resp = make_response(jsonify({"success": True, "message": "Logged out successfully"}))
    resp.delete_cookie(current_app.config["PORTAL_COOKIE_NAME"])
    return resp


@main.route("/api/session")
def session_info():
    auth = current_identity()
    if not auth:
        return jsonify({"success": True, "message": "Not logged in", "loggedIn": False})
    identity, role = auth
    account = service("accounts").find_by_identity(role, identity)
    if not account:
        # account removed while the session was still live
        service("sessions").logout(current_token())
        resp = make_response(jsonify({"success": True, "message": "Not logged in", "loggedIn": False}))
        resp.delete_cookie(current_app.config["PORTAL_COOKIE_NAME"])
        return resp
    return jsonify({"success": True, "message": "Logged in", "loggedIn": True,
                    "role": role, "identity": identity, "user": public_profile(role, account)})


# ----------------- STUDENT -----------------
def submit(kind):
    identity = g.identity
    data = form_data()
    # reject bad fields before anything touches the disk
    clean_fields(kind, data)
    upload = request.files.get(FILE_FIELD[kind])
    descriptor = None
    if upload and upload.filename:
        descriptor = service("uploads").save(identity, upload)
    # ownership always comes from the session, whatever the form says
    return service("submissions").upsert(identity, kind, data, descriptor)


@main.route("/submit-internship-details", methods=["POST"])
@student_required
def submit_internship_details():
    record = submit(DETAILS)
    return jsonify({"success": True, "message": "Internship details submitted successfully!",
                    "details": serialize(record), "redirect": "/internship-report"})


@main.route("/submit-internship-report", methods=["POST"])
@student_required
def submit_internship_report():
    record = submit(REPORT)
    return jsonify({"success": True, "message": "Internship report submitted successfully!",
                    "report": serialize(record), "redirect": "/student-dashboard"})


@main.route("/api/student-profile")
@student_required
def student_profile():
    account = service("accounts").find_by_identity(STUDENT, g.identity)
    if not account:
        raise NotFound("Student not found")
    return jsonify({"success": True, "message": "Profile loaded",
                    "student": public_profile(STUDENT, account),
                    "status": service("submissions").status(g.identity)})


@main.route("/api/internship-details")
@student_required
def internship_details():
    record = service("submissions").get(g.identity, DETAILS)
    return jsonify({"success": True,
                    "message": "Details found" if record else "No internship details submitted yet",
                    "hasDetails": record is not None,
                    "details": serialize(record)})


@main.route("/api/internship-report")
@student_required
def internship_report():
    record = service("submissions").get(g.identity, REPORT)
    return jsonify({"success": True,
                    "message": "Report found" if record else "No internship report submitted yet",
                    "hasReport": record is not None,
                    "report": serialize(record)})


# ----------------- FACULTY -----------------
@main.route("/api/teacher-students")
@faculty_required
def teacher_students():
    rows = service("submissions").overview()
    counts = {s: 0 for s in (NOT_STARTED, IN_PROGRESS, COMPLETED)}
    for r in rows:
        counts[r["status"]] += 1
    return jsonify({"success": True, "message": f"{len(rows)} students",
                    "students": rows, "total": len(rows), "counts": counts})


@main.route("/api/teacher-student/<student_id>")
@faculty_required
def teacher_student(student_id):
    account = service("accounts").find_by_identity(STUDENT, student_id)
    if not account:
        raise NotFound("Student not found")
    submissions = service("submissions")
    return jsonify({"success": True, "message": "Student loaded",
                    "student": public_profile(STUDENT, account),
                    "status": submissions.status(student_id),
                    "details": serialize(submissions.get(student_id, DETAILS)),
                    "report": serialize(submissions.get(student_id, REPORT))})


@main.route("/api/teacher-student/<student_id>", methods=["DELETE"])
@faculty_required
def teacher_delete_student(student_id):
    service("accounts").delete_student(student_id)
    log.info("Faculty %s deleted student %s", g.identity, student_id)
    return jsonify({"success": True, "message": "Student deleted successfully"})


@main.route("/api/download/<student_id>/<kind>/<filename>")
@faculty_required
def download(student_id, kind, filename):
    if kind not in KINDS:
        raise ValidationError("File type must be one of: " + ", ".join(KINDS))
    record = service("submissions").get(student_id, kind)
    stored = record.get("file") if record else None
    # the file must belong to that student's record, not just exist on disk
    if not stored or stored["storedName"] != filename:
        raise NotFound("File not found")
    uploads = service("uploads")
    uploads.resolve(student_id, filename)
    return send_from_directory(uploads.owner_dir(student_id), filename,
                               as_attachment=True, download_name=stored["originalName"])
