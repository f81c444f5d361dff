import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    ATHLETE = "athlete"
    OFFICIAL = "official"


@dataclass(frozen=True)
class Permissions:
    can_view_events: bool
    can_register_for_events: bool
    can_manage_events: bool


# Admins run events but do not compete in them.
ROLE_PERMISSIONS = {
    Role.OWNER: Permissions(can_view_events=True, can_register_for_events=True, can_manage_events=True),
    Role.ADMIN: Permissions(can_view_events=True, can_register_for_events=False, can_manage_events=True),
    Role.ATHLETE: Permissions(can_view_events=True, can_register_for_events=True, can_manage_events=False),
    Role.OFFICIAL: Permissions(can_view_events=True, can_register_for_events=False, can_manage_events=False),
}


def parse_role(value):
    """Return the Role for ``value`` or None when it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None


def has_permission(role, permission):
    role = parse_role(role)
    if role is None:
        return False
    return getattr(ROLE_PERMISSIONS[role], permission)


def can_register(role):
    return has_permission(role, "can_register_for_events")


def can_manage_events(role):
    return has_permission(role, "can_manage_events")
