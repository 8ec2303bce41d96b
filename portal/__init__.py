import logging
import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

log = logging.getLogger(__name__)


def create_app(config=None, repository=None):
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "internship_portal_secret_2025")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///portal.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    # Upload related defaults
    app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", os.path.join(app.root_path, "uploads"))
    app.config["MAX_UPLOAD_BYTES"] = int(os.environ.get("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    # Sessions live server-side; the cookie only carries the token
    app.config["SESSION_TTL_HOURS"] = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    app.config["PORTAL_COOKIE_NAME"] = os.environ.get("PORTAL_COOKIE_NAME", "portal_sid")
    app.config["SESSION_COOKIE_SECURE"] = os.environ.get("SESSION_COOKIE_SECURE", "False").lower() in ("1", "true", "yes")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    app.config["LOG_FILE"] = os.environ.get("LOG_FILE")
    if config:
        app.config.update(config)
    # leave room for the other multipart fields around the attachment
    app.config.setdefault("MAX_CONTENT_LENGTH", app.config["MAX_UPLOAD_BYTES"] + 1024 * 1024)

    from portal.logger import setup_logger
    setup_logger("portal", level=app.config["LOG_LEVEL"], log_file=app.config["LOG_FILE"])

    from portal.repository import SqlRepository
    if repository is None:
        db.init_app(app)
        repository = SqlRepository(db)

    from portal.accounts import AccountStore
    from portal.sessions import SessionManager
    from portal.submissions import SubmissionStore
    from portal.uploads import UploadHandler

    uploads = UploadHandler(app.config["UPLOAD_FOLDER"], app.config["MAX_UPLOAD_BYTES"])
    app.extensions["repository"] = repository
    app.extensions["uploads"] = uploads
    app.extensions["accounts"] = AccountStore(repository, uploads)
    app.extensions["sessions"] = SessionManager(repository, app.config["SESSION_TTL_HOURS"])
    app.extensions["submissions"] = SubmissionStore(repository, uploads)

    # import and register blueprint
    from portal.routes import main
    app.register_blueprint(main)

    from portal.errors import register_error_handlers
    register_error_handlers(app)

    from portal.cli import register_commands
    register_commands(app)

    # create the upload root once; per-student folders are made on first upload
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    log.info("Portal ready (storage=%s, uploads=%s)", type(repository).__name__, app.config["UPLOAD_FOLDER"])

    return app
