"""
Shared fixtures for the Campus CMS test suite.

NOTE: pytest is listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import os
import shutil
import tempfile

import pytest
from flask import Flask

from campuscms import CampusCMS
from campuscms.core.storage import Upload

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Campus-Gate-42"
ADMIN_EMAIL = "admin@college.test"

# Smallest byte strings that pass as the declared formats
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64 + b"\xff\xd9"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


def make_config(tmp_dir, **overrides):
    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DB_DIR": os.path.join(tmp_dir, "databases"),
        "CMS_DB": os.path.join(tmp_dir, "databases", "cms.db"),
        "UPLOAD_FOLDER": os.path.join(tmp_dir, "uploads"),
        "STORAGE_TYPE": "local",
        "ADMIN_USERNAME": ADMIN_USERNAME,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ADMIN_EMAIL": ADMIN_EMAIL,
    }
    config.update(overrides)
    return config


def make_app(tmp_dir, cms_config=None, **overrides):
    app = Flask(__name__)
    app.config.update(make_config(tmp_dir, **overrides))
    CampusCMS(app, cms_config)
    return app


def jpeg_upload(name="gate.jpg"):
    return Upload(JPEG_BYTES, "image/jpeg", name)


def mp4_upload(name="tour.mp4"):
    return Upload(MP4_BYTES, "video/mp4", name)


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD, **kwargs):
    return client.post("/admin/login", data={"username": username, "password": password}, **kwargs)


def uploaded_files(app, folder):
    root = os.path.join(app.config["UPLOAD_FOLDER"], folder)
    if not os.path.isdir(root):
        return []
    return sorted(os.listdir(root))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir():
    """Temporary directory for the database and uploads, cleaned up after."""
    d = tempfile.mkdtemp(prefix="campuscms-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def app(tmp_dir):
    """Fully initialised app with local storage and a bootstrapped admin."""
    return make_app(tmp_dir)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """Test client holding a logged-in admin session."""
    response = login(client)
    assert response.status_code == 302
    return client


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def repo(app_ctx):
    return app_ctx.extensions["campuscms"].repository


@pytest.fixture
def admin(app_ctx):
    from campuscms.modules.auth import AdminDatabase
    return AdminDatabase.get_admin_by_username(ADMIN_USERNAME)
