"""Resolve a full or partial task id to exactly one stored id."""

from __future__ import annotations

from collections.abc import Iterable

from tasque.errors import TASK_ID_AMBIGUOUS, TASK_NOT_FOUND, TasqueError


def resolve_task_id(ids: Iterable[str], raw: str, exact: bool = False) -> str:
    """Map *raw* to a single id from *ids*.

    An exact match always wins. Otherwise *raw* is a prefix: no match raises
    ``TASK_NOT_FOUND``, several matches raise ``TASK_ID_AMBIGUOUS`` with the
    sorted candidates in ``details``. With *exact* set, prefixes are not
    considered.
    """
    known = ids if isinstance(ids, (set, frozenset, dict)) else set(ids)
    needle = raw.strip()

    if needle and needle in known:
        return needle

    if exact or not needle:
        raise TasqueError(TASK_NOT_FOUND, f"Task not found: {raw}", {"input": raw})

    matches = sorted(task_id for task_id in known if task_id.startswith(needle))
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise TasqueError(TASK_NOT_FOUND, f"Task not found: {raw}", {"input": raw})
    raise TasqueError(
        TASK_ID_AMBIGUOUS,
        f"Task id '{raw}' is ambiguous ({len(matches)} matches)",
        {"input": raw, "candidates": matches},
    )
