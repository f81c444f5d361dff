import logging

from compreg.extensions import db, scheduler
from compreg.registration import ReconciliationEngine, ReconciliationOptions

logger = logging.getLogger(__name__)

JOB_ID = "reconcile_registration_counts"


def reconcile_registration_counts(app):
    """Scheduled auto-fix pass over every event."""
    with app.app_context():
        logger.info("Running scheduled registration reconciliation")
        try:
            report = ReconciliationEngine().run(ReconciliationOptions(auto_fix=True))
        except Exception:
            logger.exception("Scheduled reconciliation failed")
            db.session.rollback()
            return None
        finally:
            db.session.remove()
        if report.errors:
            logger.error("Scheduled reconciliation finished with %s error(s)", len(report.errors))
        return report


def configure_scheduler(app):
    """Register the reconciliation cron job and start the scheduler once."""
    if not app.config.get("RECONCILE_SCHEDULE_ENABLED"):
        return False
    if app.config.get("SCHEDULER_INITIALIZED", False):
        return True

    try:
        scheduler.init_app(app)
    except Exception as e:
        if "already initialized" not in str(e):
            raise

    if scheduler.get_job(JOB_ID) is None:
        scheduler.add_job(
            id=JOB_ID,
            func=reconcile_registration_counts,
            args=[app],
            trigger="cron",
            hour=app.config.get("RECONCILE_CRON_HOUR", "3"),
            minute=0,
            replace_existing=True,
        )
    if not scheduler.running:
        scheduler.start()
    app.config["SCHEDULER_INITIALIZED"] = True
    return True
