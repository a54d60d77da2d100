"""Task identifier generation."""

from __future__ import annotations

import re
import secrets

from tasque.tasks.model import StoreState

ID_PREFIX = "tsq-"

# Crockford base32 (no i, l, o, u).
CROCKFORD = "0123456789abcdefghjkmnpqrstvwxyz"

ROOT_ID_RE = re.compile(rf"^{ID_PREFIX}[{CROCKFORD}]{{8}}$")


def make_root_id() -> str:
    """Return ``tsq-`` plus 8 Crockford base32 chars (40 random bits)."""
    value = int.from_bytes(secrets.token_bytes(5), "big")
    chars = [CROCKFORD[(value >> shift) & 0x1F] for shift in range(35, -1, -5)]
    return ID_PREFIX + "".join(chars)


def next_child_id(state: StoreState, parent_id: str) -> str:
    """Return ``<parent_id>.<n>`` with *n* one above the largest existing child suffix."""
    prefix = f"{parent_id}."
    highest = 0
    for task_id in state.tasks:
        if not task_id.startswith(prefix):
            continue
        suffix = task_id[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1}"


def new_task_id(state: StoreState, parent_id: str | None = None) -> str:
    """Generate an id not yet present in *state*."""
    if parent_id:
        return next_child_id(state, parent_id)
    while True:
        candidate = make_root_id()
        if candidate not in state.tasks:
            return candidate
