"""
Identity validation.

An identity is an opaque, email-shaped string.  Possession of the string is the
only proof of ownership; nothing else is checked.
"""

import re

from app.turns.errors import InvalidIdentity, MissingIdentity

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_identity(identity: str | None) -> bool:
    """Return True if *identity* looks like an email address."""
    return bool(identity) and _EMAIL_RE.match(identity) is not None


def require_identity(identity: str | None) -> str:
    """
    Return *identity* unchanged, or raise ``MissingIdentity`` /
    ``InvalidIdentity``.
    """
    if not identity:
        raise MissingIdentity()
    if not is_valid_identity(identity):
        raise InvalidIdentity()
    return identity
