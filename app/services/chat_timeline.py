"""
Consumer-side view of an order's chat.

The fan-out may deliver the same message twice and in any order, so a
subscriber never appends blindly: it merges each inbound message by id
into a timeline ordered by (created_at, id).
"""

from datetime import datetime


def _sort_key(message: dict) -> tuple[str, str]:
    created = message.get("createdAt")
    if isinstance(created, datetime):
        created = created.isoformat()
    return (created or "", str(message.get("id")))


def merge_by_id(existing: list[dict], incoming: list[dict]) -> list[dict]:
    """Return a new list with *incoming* merged into *existing* by ``id``.

    A later copy of a known id replaces the earlier one, so the merge is
    idempotent: merging the same batch twice yields the same timeline.
    """
    by_id = {str(m["id"]): m for m in existing}
    for message in incoming:
        by_id[str(message["id"])] = message
    return sorted(by_id.values(), key=_sort_key)


class ChatTimeline:
    """Mutable timeline for one order."""

    def __init__(self, messages: list[dict] | None = None):
        self._messages: list[dict] = merge_by_id([], messages or [])
        self._seen = {str(m["id"]) for m in self._messages}

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[dict]:
        return list(self._messages)

    def apply(self, message: dict) -> bool:
        """Merge *message*. Returns True when its id was not seen before."""
        message_id = str(message["id"])
        is_new = message_id not in self._seen
        self._seen.add(message_id)
        self._messages = merge_by_id(self._messages, [message])
        return is_new
