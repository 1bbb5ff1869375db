"""
Campus CMS Application
======================

Application factory for running the CMS on its own.

Run with:
    python -m campuscms.app

Or with the Flask CLI:
    flask --app campuscms.app run
    flask --app campuscms.app refresh-urls

Visit:
    http://localhost:5000        - Homepage
    http://localhost:5000/admin  - Admin panel
"""

import logging

from flask import Flask

from . import CampusCMS
from .core.config import Config

logging.basicConfig(level=logging.INFO)


def create_app(config=None, cms_config=None):
    """Create the Flask app. `config` overrides app.config before the CMS initialises."""
    app = Flask(__name__)
    if config:
        app.config.update(config)
    CampusCMS(app, cms_config)
    return app


if __name__ == '__main__':
    application = create_app()

    print("\n" + "=" * 60)
    print("Campus CMS")
    print("=" * 60)
    print(f"Homepage:        http://localhost:{Config.port}")
    print(f"Admin Panel:     http://localhost:{Config.port}/admin")
    print(f"Admin Login:     http://localhost:{Config.port}/admin/login")
    print("=" * 60 + "\n")

    application.run(host='0.0.0.0', port=Config.port, debug=Config.ENVIRONMENT != 'production')
