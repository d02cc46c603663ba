"""
Custom authentication backend for multi-field login.

Allows users to authenticate using either ``username`` or ``email``
together with their ``password``.

This backend is registered in ``settings.AUTHENTICATION_BACKENDS``
so that Django's ``authenticate()`` call dispatches to it.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend


class MultiFieldAuthBackend(ModelBackend):
    """
    Authenticate against username or email.

    ``authenticate(identifier=..., password=...)`` resolves the user from
    ``identifier``; the plain ``username=`` form used by the admin login
    falls through to ``ModelBackend``.
    """

    def authenticate(self, request, identifier=None, password=None, **kwargs):
        if identifier is None:
            return super().authenticate(request, password=password, **kwargs)
        if password is None:
            return None

        User = get_user_model()
        user = User.objects.filter(username=identifier).first()
        if user is None:
            # An email only identifies a user when exactly one account uses it
            matches = list(User.objects.filter(email__iexact=identifier)[:2])
            user = matches[0] if len(matches) == 1 else None
        if user is None:
            # Run the default password hasher to mitigate timing attacks
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
