# pixhub_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text


db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
scheduler = BackgroundScheduler(daemon=True)

RECONCILE_JOB_ID = "reconcile-charge-intents"


def init_extensions(app):
    # DB/Bcrypt/Migrate
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)


def schedule_jobs(app):
    """Sweep periódico do outbox de cobranças (roda fora de request, precisa do app_context)."""
    from .services.reconciliation import reconcile_charge_intents

    def _run():
        with app.app_context():
            try:
                reconcile_charge_intents()
            except Exception:
                app.logger.exception("Falha no job de reconciliação de cobranças")

    if scheduler.get_job(RECONCILE_JOB_ID) is None:
        scheduler.add_job(
            _run, "interval",
            minutes=app.config["RECONCILE_INTERVAL_MINUTES"],
            id=RECONCILE_JOB_ID,
            max_instances=1,
            coalesce=True,
        )


def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Cria as tabelas iniciais (DEV/MVP). Para produção: use flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            print("Tabelas criadas.")

    @app.cli.command("reconcile-charges")
    def reconcile_charges_cmd():
        """Reconcilia cobranças criadas no provedor sem registro local e expira as vencidas."""
        from .services.reconciliation import reconcile_charge_intents
        with app.app_context():
            report = reconcile_charge_intents()
            print(
                f"backfilled={report.backfilled} failed={report.failed} "
                f"pending={report.still_pending} expired={report.expired}"
            )
