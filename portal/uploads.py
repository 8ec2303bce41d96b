import hashlib
import logging
import os
import random
import time
from werkzeug.utils import secure_filename

from portal.errors import NotFound, PayloadTooLarge, UnsupportedMediaType

log = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def stored_filename(identity, original_name, now=None, token=None):
    """Name a stored attachment as ``{identity}-{millis}-{random}{ext}``.

    Unique without a lookup, and still traceable to its owner.
    """
    if now is None:
        now = time.time()
    if token is None:
        token = random.randint(0, 10 ** 9)
    ext = os.path.splitext(secure_filename(original_name or ""))[1].lower()
    owner = secure_filename(identity) or "unknown"
    return f"{owner}-{int(now * 1000)}-{token}{ext}"


def _stream_size(file):
    stream = file.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


class UploadHandler:
    def __init__(self, root, max_bytes):
        self.root = os.path.abspath(root)
        self.max_bytes = max_bytes

    def owner_dir(self, identity):
        # the digest keeps identities that sanitise alike in separate folders
        digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]
        return os.path.join(self.root, f"{secure_filename(identity) or 'student'}-{digest}")

    def validate(self, file):
        if file.mimetype not in ALLOWED_MIMETYPES:
            raise UnsupportedMediaType("Only PDF and Word documents (.pdf, .doc, .docx) are allowed")
        if _stream_size(file) > self.max_bytes:
            raise PayloadTooLarge(f"File too large. Max size is {self.max_bytes // (1024 * 1024)} MB.")

    def save(self, identity, file):
        """Validate and store one uploaded file; returns its descriptor."""
        try:
            self.validate(file)
        except (UnsupportedMediaType, PayloadTooLarge) as e:
            log.warning("Rejected upload from %s (%s, %s): %s", identity, file.filename, file.mimetype, e.message)
            raise

        name = stored_filename(identity, file.filename)
        folder = self.owner_dir(identity)
        os.makedirs(folder, exist_ok=True)
        path = os.path.join(folder, name)
        file.save(path)
        return {"originalName": file.filename, "storedName": name, "path": path}

    def resolve(self, identity, stored_name):
        safe = secure_filename(stored_name)
        path = os.path.join(self.owner_dir(identity), safe)
        if not safe or safe != stored_name or not os.path.isfile(path):
            raise NotFound("File not found")
        return path

    def remove_owner(self, identity):
        folder = self.owner_dir(identity)
        if not os.path.isdir(folder):
            return
        for name in os.listdir(folder):
            os.remove(os.path.join(folder, name))
        os.rmdir(folder)

    def discard(self, descriptor):
        """Delete a stored attachment that no record points at any more."""
        path = os.path.abspath(descriptor.get("path") or "")
        if os.path.dirname(os.path.dirname(path)) != self.root or not os.path.isfile(path):
            return
        os.remove(path)
        log.info("Removed stale attachment %s", descriptor.get("storedName"))
