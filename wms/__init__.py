# wms/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db
from .snapshot import SnapshotStore, load_into


def _configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    app.logger.setLevel(level)
    logging.getLogger("wms").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)

    # Import models so metadata knows every table before create_all
    from . import models  # noqa: F401
    from .services import schema_service
    from .services.concurrency import SNAPSHOT_EXTENSION, persist_snapshot, serialize_requests

    # The snapshot handle is built once and owned by the app
    store = SnapshotStore(app.config["SNAPSHOT_DIR"], app.config["SNAPSHOT_KEY"])
    app.extensions[SNAPSHOT_EXTENSION] = store

    with app.app_context():
        data = store.load()
        if data:
            # SnapshotCorruptError propagates: a store that cannot be read is fatal
            load_into(db.engine, data)
            app.logger.info("Loaded snapshot %s (%d bytes)", store.path, len(data))
        schema_service.ensure_schema()
        persist_snapshot()
        db.session.remove()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.catalog import catalog_bp
    from .routes.contacts import contacts_bp
    from .routes.auth import auth_bp
    from .routes.orders import orders_bp
    from .routes.purchases import purchases_bp
    from .routes.inventory import inventory_bp
    from .routes.analytics import analytics_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(contacts_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(settings_bp)

    # Requests share one connection with every write
    app.wsgi_app = serialize_requests(app.wsgi_app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
