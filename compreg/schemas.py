from marshmallow import fields

from compreg.extensions import ma
from compreg.models import Registration


class RegistrationSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = Registration
        load_instance = False
        exclude = ("updated_at",)

    status = fields.Function(lambda obj: obj.status.value)


class EventDiscrepancySchema(ma.Schema):
    event_id = fields.Integer()
    event_name = fields.String()
    stored_registered = fields.Integer()
    actual_registered = fields.Integer()
    stored_waitlisted = fields.Integer()
    actual_waitlisted = fields.Integer()
    registered_diff = fields.Integer()
    waitlisted_diff = fields.Integer()


class ReconciliationReportSchema(ma.Schema):
    timestamp = fields.DateTime()
    mode = fields.String()
    events_checked = fields.Integer()
    discrepancies_found = fields.Integer()
    fixes_applied = fields.Integer()
    orphaned_registrations = fields.Integer()
    orphans_cancelled = fields.Integer()
    has_issues = fields.Boolean()
    discrepancies = fields.List(fields.Nested(EventDiscrepancySchema))
    errors = fields.List(fields.String())


registration_schema = RegistrationSchema()
registrations_schema = RegistrationSchema(many=True)
report_schema = ReconciliationReportSchema()
