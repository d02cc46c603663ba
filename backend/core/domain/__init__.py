"""
core.domain: Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF ``EXCEPTION_HANDLER`` rendering those exceptions.
identity           ``UserRole``, ``UserView`` and the ``IdentityProvider`` contract.
access             The role capability table and permission-scoped selectors.
transactions       Version compare-and-swap and atomic service wrappers.
notifications      Synchronous notification creation helper.
outbox             Transactional outbox and its dispatcher.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.access import apply_permission_scope, require_capability
    from core.domain.transactions import compare_and_swap
    from core.domain.outbox import schedule_dispatch
"""
