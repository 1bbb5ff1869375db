"""
Extension wiring: module registration, feature flags, bootstrap and config.
"""

import os

import pytest
from flask import Flask, render_template_string

from campuscms import CampusCMS
from campuscms.app import create_app
from campuscms.core.config import get_config_value
from campuscms.core.errors import ConfigurationError

from conftest import make_app, make_config


def test_all_modules_registered(app):
    ext = app.extensions["campuscms"]
    assert ext.get_registered_modules() == ["dashboard", "content_admin", "public", "ops"]
    assert "admin" in app.blueprints
    assert "public" in app.blueprints


def test_public_site_can_be_disabled(tmp_dir):
    app = make_app(tmp_dir, cms_config={"features": {"public": False}})
    client = app.test_client()

    assert "public" not in app.extensions["campuscms"].get_registered_modules()
    response = client.get("/")
    assert response.status_code == 404
    assert response.get_json() == {"success": False, "message": "Page not found"}
    assert client.get("/health").status_code == 200


def test_brand_name_reaches_templates(tmp_dir):
    app = make_app(tmp_dir, cms_config={"brand_name": "Riverside College"})
    assert b"Riverside College" in app.test_client().get("/").data

    with app.test_request_context("/"):
        assert render_template_string("{{ campuscms_config.features.public }}") == "True"


def test_refuses_to_start_without_admin(tmp_dir):
    app = Flask(__name__)
    app.config.update(make_config(tmp_dir, ADMIN_PASSWORD=None))
    with pytest.raises(ConfigurationError) as exc:
        CampusCMS(app)
    assert "ADMIN_PASSWORD" in exc.value.message


def test_existing_admin_needs_no_bootstrap(tmp_dir):
    make_app(tmp_dir)
    app = make_app(tmp_dir, ADMIN_USERNAME=None, ADMIN_PASSWORD=None, ADMIN_EMAIL=None)
    assert "campuscms" in app.extensions


def test_database_dir_is_created(tmp_dir):
    make_app(tmp_dir)
    assert os.path.isdir(os.path.join(tmp_dir, "databases"))


def test_config_lookup_prefers_app_config(app, monkeypatch):
    monkeypatch.setenv("CAMPUSCMS_TEST_ONLY", "from-env")
    with app.app_context():
        assert get_config_value("CMS_DB") == app.config["CMS_DB"]
        assert get_config_value("CAMPUSCMS_TEST_ONLY") == "from-env"
        assert get_config_value("CAMPUSCMS_MISSING", "fallback") == "fallback"


def test_create_app_factory(tmp_dir):
    app = create_app(make_config(tmp_dir))
    assert app.extensions["campuscms"].get_registered_modules()
    assert app.test_client().get("/health").status_code == 200
