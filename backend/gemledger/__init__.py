# backend/gemledger/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.shops import shops_bp
    from .routes.customers import customers_bp
    from .routes.suppliers import suppliers_bp
    from .routes.purchases import purchases_bp
    from .routes.inventory import inventory_bp
    from .routes.catalog import catalog_bp
    from .routes.sales import sales_bp
    from .routes.checkout import checkout_bp
    from .routes.expenses import expenses_bp
    from .routes.budgets import budgets_bp
    from .routes.workshops import workshops_bp
    from .routes.reminders import reminders_bp
    from .routes.ledger import ledger_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(shops_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(budgets_bp)
    app.register_blueprint(workshops_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(ledger_bp)

    # Locale detection and CORS
    from .middleware import register_request_hooks
    register_request_hooks(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
