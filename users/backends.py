# users/backends.py
from django.contrib.auth.backends import ModelBackend
from django.contrib.auth import get_user_model
from django.db.models import Q

User = get_user_model()

class EmailBackend(ModelBackend):
    """Log in with either the email address or the username."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        identifier = username or kwargs.get(User.USERNAME_FIELD)
        if not identifier or password is None:
            return None

        matches = User.objects.filter(Q(username=identifier) | Q(email__iexact=identifier)).order_by('id')
        user = matches.filter(email__iexact=identifier).first() or matches.first()
        if user is None:
            # Run the hasher anyway so missing accounts take as long as wrong passwords
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
