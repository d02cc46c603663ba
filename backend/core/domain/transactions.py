"""
core.domain.transactions: Helpers for safe state transitions.

Provides utilities that wrap ``transaction.atomic``, ``select_for_update``
and optimistic version checks into reusable patterns so that every
service layer follows the same concurrency-safe approach.

Design goals
------------
* Ensure that state-transition reads always lock the row first
  (``select_for_update``) to prevent two transitions on the same row
  from interleaving their read-check-write sequence.
* Back the lock with a version compare-and-swap so a writer that did
  not take the lock still cannot overwrite a newer row.
* Translate low-level ``DatabaseError`` into the domain's
  ``PersistenceError`` so callers see one infrastructure error type.

Usage::

    from core.domain.transactions import atomic_service, compare_and_swap

    @atomic_service
    def transition(case_id):
        case = Case.objects.select_for_update().get(pk=case_id)
        ...
        if not compare_and_swap(Case, case.pk, expected_version=case.version,
                                values={"status": "pending"}):
            raise StaleCaseVersion(case.pk, case.version)
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Mapping, TypeVar

from django.db import DatabaseError, models, transaction
from django.utils import timezone

from core.domain.exceptions import PersistenceError

T = TypeVar("T")


def compare_and_swap(
    model_class: type[models.Model],
    pk: Any,
    *,
    expected_version: int,
    values: Mapping[str, Any],
    version_field: str = "version",
) -> bool:
    """
    Write ``values`` to the row only if its version still equals
    ``expected_version``; bump the version on success.

    Runs as one ``UPDATE ... WHERE pk = %s AND version = %s`` so the
    check and the write cannot be separated.

    Returns:
        ``True`` if exactly one row was updated, ``False`` if the row
        was changed (or deleted) in the meantime.

    Raises:
        PersistenceError: If the database rejects the update.
    """
    update = dict(values)
    update[version_field] = expected_version + 1
    if "updated_at" in {f.name for f in model_class._meta.concrete_fields}:
        update.setdefault("updated_at", timezone.now())

    try:
        updated = (
            model_class.objects
            .filter(pk=pk, **{version_field: expected_version})
            .update(**update)
        )
    except DatabaseError as exc:
        raise PersistenceError(f"Could not update {model_class.__name__} {pk}: {exc}") from exc
    return updated == 1


def atomic_service(fn: Callable[..., T]) -> Callable[..., T]:
    """
    Run the wrapped call in ``transaction.atomic()`` and map a
    ``DatabaseError`` escaping the block to ``PersistenceError``.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            with transaction.atomic():
                return fn(*args, **kwargs)
        except DatabaseError as exc:
            raise PersistenceError(str(exc)) from exc

    return wrapper
