"""Staff roles and the admissions permissions they grant."""

from enum import Enum


class Permission(str, Enum):
    VIEW_WAITLIST = "view_waitlist"
    MANAGE_WAITLIST = "manage_waitlist"
    MANAGE_TOURS = "manage_tours"
    VIEW_ADMISSIONS_ANALYTICS = "view_admissions_analytics"


ROLE_PERMISSIONS = {
    "admin": set(Permission),
    "admissions_officer": {
        Permission.VIEW_WAITLIST,
        Permission.MANAGE_WAITLIST,
        Permission.VIEW_ADMISSIONS_ANALYTICS,
    },
    "tour_guide": {Permission.VIEW_WAITLIST, Permission.MANAGE_TOURS},
    "viewer": {Permission.VIEW_WAITLIST},
}


def has_permission(role: str | None, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role or "", set())
