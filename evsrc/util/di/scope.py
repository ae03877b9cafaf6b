"""Custom Dishka scopes for evsrc."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """evsrc dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Application lifetime (clients, reconcilers, the work queue)
    - UOW: Unit of Work (one reconciliation pass or one CLI command)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
