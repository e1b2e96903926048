from rest_framework import permissions


def _role(request):
    if not request.user or not request.user.is_authenticated:
        return None
    return getattr(request.user, 'role', '')


class HasRole(permissions.BasePermission):
    """
    Base class for role checks. Superusers pass every role check.
    """
    allowed_roles = ()

    def has_permission(self, request, view):
        role = _role(request)
        if role is None:
            return False
        return request.user.is_superuser or role in self.allowed_roles


class IsStudent(HasRole):
    allowed_roles = ('STUDENT',)


class IsAdminRole(HasRole):
    allowed_roles = ('ADMIN', 'BOSS')


class IsStaffRole(HasRole):
    """Admins, Bosses and Branch Admins."""
    allowed_roles = ('ADMIN', 'BOSS', 'BRANCH_ADMIN')


class IsGraderOrAdmin(HasRole):
    """
    Allows access to Teachers and staff roles.
    Strictly blocks Students.
    """
    allowed_roles = ('TEACHER', 'ADMIN', 'BOSS', 'BRANCH_ADMIN')
