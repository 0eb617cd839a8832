"""
Authorization engine error taxonomy.

None of these reach a UI guard: resolvers catch them at their boundary and
return the most restrictive result instead.
"""


class AuthorizationError(Exception):
    """Base class for engine errors."""


class LookupFailure(AuthorizationError):
    """A backing store could not be read (unreachable, timed out, query error)."""


class NotFound(AuthorizationError):
    """A membership or custom role does not exist."""


class Malformed(AuthorizationError):
    """A custom role permission map failed structural validation."""
