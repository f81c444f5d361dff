# compreg/routes/admin/reconcile.py
import logging

from flask import jsonify, request

from compreg.registration import (
    ReconciliationConfigError,
    ReconciliationEngine,
    ReconciliationOptions,
)
from compreg.schemas import EventDiscrepancySchema, report_schema
from compreg.utils.decorators import permission_required
from . import admin_bp

logger = logging.getLogger(__name__)

discrepancy_summary_schema = EventDiscrepancySchema(
    many=True, only=("event_id", "event_name", "registered_diff", "waitlisted_diff")
)


@admin_bp.route("/admin/reconcile", methods=["GET"])
@permission_required("can_manage_events")
def reconcile_status(identity):
    """Dry-run reconciliation, for the admin dashboard."""
    event_id = request.args.get("event_id", type=int)
    report = ReconciliationEngine().run(ReconciliationOptions(dry_run=True, event_id=event_id))
    return jsonify({
        "success": True,
        "status": {
            "events_checked": report.events_checked,
            "discrepancies_found": report.discrepancies_found,
            "orphaned_registrations": report.orphaned_registrations,
            "has_issues": report.has_issues,
            "has_errors": bool(report.errors),
            "errors": list(report.errors),
            "last_checked": report.timestamp.isoformat(),
            "discrepancies": discrepancy_summary_schema.dump(report.discrepancies),
        },
    })


@admin_bp.route("/admin/reconcile", methods=["POST"])
@permission_required("can_manage_events")
def reconcile(identity):
    data = request.get_json(silent=True) or {}
    try:
        options = ReconciliationOptions.build(
            dry_run=data.get("dryRun", not data.get("autoFix", False)),
            auto_fix=data.get("autoFix", False),
            event_id=data.get("eventId") or None,
            include_orphaned=data.get("includeOrphaned", True),
        )
    except ReconciliationConfigError as exc:
        return jsonify({"success": False, "error": str(exc), "code": exc.code}), 400

    logger.info("Reconciliation requested by user %s (%s): %s",
                identity.user_id, identity.role, options.mode)
    report = ReconciliationEngine().run(options)

    return jsonify({
        "success": True,
        "report": report_schema.dump(report),
        "summary": {
            "mode": options.mode,
            "events_checked": report.events_checked,
            "discrepancies_found": report.discrepancies_found,
            "fixes_applied": report.fixes_applied,
            "orphaned_registrations": report.orphaned_registrations,
            "has_errors": bool(report.errors),
        },
    })
