"""HTTP entry point for the deployment strategy resolver.

Environment:
  PORT              listen port (default 8080)
  LOG_LEVEL         logging level (default INFO)
  IDP_CATALOG_PATH  rule catalog YAML (default config/catalog.yaml)
  IDP_DB_PATH       SQLite history file (default idp.db)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from flask import Flask

from internal.catalog.store import CatalogStore, get_catalog_store, set_catalog_store
from internal.db.database import init_db
from internal.handlers.admin import admin_bp
from internal.handlers.api import resolver_bp

logger = logging.getLogger(__name__)


def create_app(catalog_path: str | None = None, db_path: str | None = None) -> Flask:
    """Build the Flask app, load the catalog eagerly and prepare the history DB.

    A catalog that fails validation at startup aborts startup: there is no
    previous snapshot to fall back on.
    """
    if catalog_path:
        set_catalog_store(CatalogStore(catalog_path))
    snapshot = get_catalog_store().current()
    init_db(db_path)

    app = Flask(__name__)
    app.register_blueprint(resolver_bp)
    app.register_blueprint(admin_bp)
    logger.info("Serving catalog %s (%d rules)", snapshot.version, len(snapshot.rules))
    return app


def run() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", "8080"))
    app = create_app()
    logger.info("Deployment strategy resolver listening on http://0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    run()
