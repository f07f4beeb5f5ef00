"""Background scheduler running the expired-reservation sweep."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from models import db

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "reservation_sweep"
DEFAULT_SWEEP_INTERVAL_MINUTES = 10


def run_sweep(app: Flask) -> int:
    """Run one sweep inside an application context; never raises storage errors."""

    with app.app_context():
        manager = app.extensions["listing_lifecycle"]
        try:
            return manager.sweep()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Reservation sweep failed; retrying next cycle")
            return 0
        finally:
            db.session.remove()


def start_sweep_scheduler(app: Flask) -> BackgroundScheduler:
    """Start a background scheduler that sweeps expired reservations."""

    interval = int(app.config.get("SWEEP_INTERVAL_MINUTES", DEFAULT_SWEEP_INTERVAL_MINUTES))
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_sweep,
        trigger=IntervalTrigger(minutes=interval),
        args=[app],
        id=SWEEP_JOB_ID,
        name="Reclaim expired listing reservations",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.extensions["sweep_scheduler"] = scheduler
    logger.info("Reservation sweep scheduled every %s minute(s)", interval)
    return scheduler


def stop_sweep_scheduler(app: Flask) -> None:
    """Stop the sweep scheduler if one is running."""

    scheduler = app.extensions.pop("sweep_scheduler", None)
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    logger.info("Reservation sweep scheduler stopped")
