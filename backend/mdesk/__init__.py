# backend/mdesk/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides land before extensions bind so tests can swap the database
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import payment_gateway
    payment_gateway.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.lookups import lookup_blueprints
    from .routes.inventory import inventory_bp
    from .routes.cart import cart_bp
    from .routes.discounts import discounts_bp
    from .routes.orders import orders_bp
    from .routes.purchases import purchases_bp
    from .routes.billing import invoices_bp, bills_bp, payment_terms_bp
    from .routes.payments import payments_bp
    from .routes.contacts import contacts_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    for bp in lookup_blueprints:
        app.register_blueprint(bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(discounts_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(bills_bp)
    app.register_blueprint(payment_terms_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(contacts_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
