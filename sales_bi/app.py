# app.py
from flask import Flask
import logging

from . import config

# Import all route functions
from .routes.auth_routes import login
from .routes.divisionshead_routes import divisionshead
from .routes.encoder_routes import encoder
from .routes.executive_routes import executive
from .routes.executive_v2_routes import executive_v2
from .routes.manager_routes import manager
from .routes.manager_v2_routes import manager_v2
from .routes.salesman_routes import salesman, salesman_list
from .routes.supervisor_routes import supervisor

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================================
# Flask App Configuration
# ============================================================
def create_app(overrides=None):
    """
    Builds the application. ``overrides`` is merged into ``app.config``;
    tests use it to point DIRECTUS_TRANSPORT at a mock store.
    """
    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY
    app.config.update(
        DIRECTUS_URL=config.DIRECTUS_URL,
        DIRECTUS_TOKEN=config.DIRECTUS_TOKEN,
        DIRECTUS_TIMEOUT=config.REQUEST_TIMEOUT,
        DIRECTUS_PAGE_SIZE=config.PAGE_SIZE,
        DIRECTUS_MAX_PAGES=config.MAX_PAGES,
        DIRECTUS_TRANSPORT=None,
    )
    if overrides:
        app.config.update(overrides)

    # ============================================================
    # Route Registration
    # ============================================================

    # Dashboards
    app.route("/api/sales/divisionshead")(divisionshead)
    app.route("/api/sales/executive")(executive)
    app.route("/api/sales/executive-v2")(executive_v2)
    app.route("/api/sales/manager")(manager)
    app.route("/api/sales/manager-v2")(manager_v2)
    app.route("/api/sales/supervisor")(supervisor)

    # Salesman
    app.route("/api/sales/salesman")(salesman)
    app.route("/api/sales/salesman/list")(salesman_list)

    # Raw data
    app.route("/api/sales/encoder")(encoder)

    # Auth
    app.route("/api/auth/login", methods=["POST"])(login)

    return app


app = create_app()


# ============================================================
# Run Application
# ============================================================
if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("🚀 SALES BI - Starting Flask Application")
    print("=" * 60)
    print(f"🔗 Directus: {config.DIRECTUS_URL}")
    print(f"🔑 Token: {'set' if config.DIRECTUS_TOKEN else 'not set'}")
    print("=" * 60 + "\n")

    app.run(host="0.0.0.0", debug=True, port=5000)
