"""
playinmo.services.errors — Service-layer exceptions
=====================================================

Services raise :class:`LookupError` for missing rows and :class:`ValueError`
for rule violations.  :class:`ConflictError` narrows the latter to
"already exists" so routes can answer 409 instead of 400.
"""


class ConflictError(ValueError):
    """The write collides with an existing row (duplicate name, owned reward, …)."""
