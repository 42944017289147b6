import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy import inspect
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from routes import booking_bp, calendar_bp, health_bp
from utils.auth_context import load_current_actor
from utils.errors import BookingError
from utils.seed import seed_resource_lock


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.setLevel(log_level)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(calendar_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed the studio lock row at startup (safe & idempotent)
    with app.app_context():
        if inspect(db.engine).has_table("resource_locks"):
            seed_resource_lock(app.config["BOOKING_LOCK_KEY"])

    @app.before_request
    def _load_actor():
        load_current_actor()

    @app.errorhandler(BookingError)
    def handle_booking_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify(error="Internal server error. Please try again."), 500

    register_cli(app)

    return app

#-------------------------
from models.option import Option
from models.user import User


def register_cli(app):
    @app.cli.command("add-option")
    @click.argument("name")
    @click.argument("unit_price", type=int)
    @click.argument("unit")
    def add_option(name, unit_price, unit):
        """Add a bookable option to the catalog (price in smallest currency unit)."""
        option = Option(name=name.strip(), unit_price=unit_price, unit=unit.strip())
        db.session.add(option)
        db.session.commit()
        print(f"Option {option.id} added: {option.name} {option.unit_price}/{option.unit}")

    @app.cli.command("add-user")
    @click.argument("email")
    @click.argument("full_name")
    @click.option("--phone", default=None)
    def add_user(email, full_name, phone):
        """Register a user in the local directory projection."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            print("User already exists")
            return
        user = User(email=email, full_name=full_name.strip(), phone=phone)
        db.session.add(user)
        db.session.commit()
        print(f"User {user.id} added: {user.email}")

    @app.cli.command("expire-bookings")
    def expire_bookings():
        """Cancel temporary bookings whose confirmation deadline has passed."""
        from services.orchestrator import BookingOrchestrator

        expired = BookingOrchestrator().expire_overdue()
        print(f"{len(expired)} booking(s) expired")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
