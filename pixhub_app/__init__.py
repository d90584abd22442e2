# pixhub_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from datetime import datetime

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .extensions import db, bcrypt, migrate, scheduler, init_extensions, register_cli, schedule_jobs
from .errors import register_error_handlers
from .blueprints.core import bp as core_bp
from .blueprints.auth import bp as auth_bp
from .blueprints.charges import bp as charges_bp
from .blueprints.webhooks import bp as webhooks_bp
from .blueprints.withdrawals import bp as withdrawals_bp
from .blueprints.partners import bp as partners_bp


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app_env = os.getenv("APP_ENV", "").lower()

    if config_object is not None:
        app.config.from_object(config_object)
    elif app_env == "testing":
        app.config.from_object(TestingConfig)
    elif app_env == "staging":
        app.config.from_object(StagingConfig)
    elif app_env == "production":
        app.config.from_object(ProductionConfig)
    else:
        app.config.from_object(Config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensões (DB/Bcrypt/Migrate)
    init_extensions(app)
    app.config["STARTED_AT"] = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

    # Blueprints
    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(charges_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(withdrawals_bp)
    app.register_blueprint(partners_bp)
    register_error_handlers(app)
    # CLI (flask init-db, flask reconcile-charges)
    register_cli(app)

    # Scheduler (sweep do outbox de cobranças)
    if not app.config.get("TESTING") and os.getenv("DISABLE_SCHEDULER") != "1":
        schedule_jobs(app)
        if not scheduler.running:
            scheduler.start()

    return app
