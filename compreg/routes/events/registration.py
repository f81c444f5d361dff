# compreg/routes/events/registration.py
import logging

from flask import current_app, jsonify, request

from compreg.models import RegistrationStatus
from compreg.registration import RegistrationService, StorageError, Success
from compreg.schemas import registrations_schema
from compreg.utils.decorators import inject_identity, permission_required
from . import events_bp

logger = logging.getLogger(__name__)

MESSAGES = {
    RegistrationStatus.REGISTERED: "Successfully registered for event!",
    RegistrationStatus.WAITLISTED: "Event is full, you have been added to the waitlist",
}


def get_service():
    return RegistrationService.from_config(current_app.config)


def failure_response(error):
    return jsonify({"success": False, **error.to_dict()}), error.http_status


@events_bp.errorhandler(StorageError)
def storage_unavailable(exc):
    logger.error("Registration storage unavailable: %s", exc)
    response = jsonify({"success": False, "error": "Registration service temporarily unavailable",
                        "code": StorageError.code})
    response.headers["Retry-After"] = "1"
    return response, StorageError.http_status


# ================================
# Participant registration
# ================================

@events_bp.route("/events/<int:event_id>/registration", methods=["POST"])
@inject_identity
def register(event_id, identity):
    result = get_service().register(identity.user_id, event_id, identity.role)

    if not isinstance(result, Success):
        return failure_response(result.error)

    status = result.value
    return jsonify({
        "success": True,
        "status": status.value,
        "message": MESSAGES[status],
    }), 201


@events_bp.route("/events/<int:event_id>/registration", methods=["DELETE"])
@inject_identity
def unregister(event_id, identity):
    result = get_service().unregister(identity.user_id, event_id)

    if not isinstance(result, Success):
        return failure_response(result.error)

    outcome = result.value
    return jsonify({
        "success": True,
        "message": "Successfully unregistered from event",
        "cancelled_status": outcome.cancelled_status.value,
        "promoted_user_id": outcome.promoted_user_id,
    })


@events_bp.route("/events/<int:event_id>/registration", methods=["GET"])
@inject_identity
def registration_status(event_id, identity):
    service = get_service()
    status = service.query_status(identity.user_id, event_id)
    return jsonify({
        "event_id": event_id,
        "status": status.value if status else None,
        "waitlist_position": service.waitlist_position(identity.user_id, event_id),
    })


@events_bp.route("/registrations/mine", methods=["GET"])
@inject_identity
def my_registrations(identity):
    status = request.args.get("status")
    if status and status not in {s.value for s in RegistrationStatus}:
        return jsonify({"success": False, "error": f"Unknown status '{status}'"}), 400
    registrations = get_service().user_registrations(identity.user_id, status=status or None)
    return jsonify({"success": True, "registrations": registrations_schema.dump(registrations)})


# ================================
# Organizer views
# ================================

@events_bp.route("/events/<int:event_id>/registrations", methods=["GET"])
@permission_required("can_manage_events")
def event_registrations(event_id, identity):
    status = request.args.get("status")
    if status and status not in {s.value for s in RegistrationStatus}:
        return jsonify({"success": False, "error": f"Unknown status '{status}'"}), 400

    result = get_service().event_registrations(event_id, identity.role, status=status or None)
    if not isinstance(result, Success):
        return failure_response(result.error)
    return jsonify({"success": True, "registrations": registrations_schema.dump(result.value)})
