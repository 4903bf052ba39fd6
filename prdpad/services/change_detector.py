"""Decides whether note values need to be persisted."""

from __future__ import annotations

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from prdpad.services.canvas import serialize_canvases
from prdpad.services.document import TRACKED_FIELDS

if TYPE_CHECKING:
    from collections.abc import Mapping

    from prdpad.services.document import NoteValues


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonicalize(values: NoteValues) -> dict[str, str]:
    """
    Get a comparable text form of every tracked field.

    Equal values always give equal text: tags are sorted, lists and mappings
    are serialized with sorted keys and the canvas collection uses its
    canonical serialization.  ``None`` becomes the empty string.

    Args:
        values: The note values

    Returns:
        Field name to canonical text

    """
    return {
        "title": values.title or "",
        "content": values.content or "",
        "tags": _dump(sorted(values.tags)),
        "project_id": "" if values.project_id is None else str(values.project_id),
        "status": values.status or "",
        "priority": values.priority or "",
        "target_release": values.target_release or "",
        "due_date": values.due_date.isoformat() if values.due_date else "",
        "stakeholders": _dump(values.stakeholders),
        "generated_features": _dump(values.generated_features),
        "generated_tasks": _dump(values.generated_tasks),
        "canvases": serialize_canvases(values.canvases),
    }


@dataclass(frozen=True)
class PendingSave:
    """
    A save that has been recorded in the snapshot but not yet confirmed.
    """

    #: Changed fields, in :data:`~prdpad.services.document.TRACKED_FIELDS` order.
    fields: tuple[str, ...]
    #: Snapshot text of the changed fields before the save.
    previous: Mapping[str, str]
    #: Snapshot text of the changed fields written by the save.
    attempted: Mapping[str, str]


class ChangeDetector:
    """
    Compares note values against the snapshot of what was last saved.

    The snapshot is updated when a save starts, before the persistence call
    returns, so the same change cannot start a second save.  If the save then
    fails, :meth:`rollback` restores the fields whose snapshot still holds the
    failed attempt, so the change is picked up again by the next check.
    """

    def __init__(self) -> None:
        #: Field name to canonical text of the last saved value.
        self._snapshot: dict[str, str] = {}

    @property
    def snapshot(self) -> Mapping[str, str]:
        """Read-only view of the snapshot."""
        return MappingProxyType(self._snapshot)

    def reset(self, values: NoteValues) -> None:
        """
        Take ``values`` as the saved state, e.g. after loading a note.
        """
        self._snapshot = canonicalize(values)

    def diff(self, values: NoteValues) -> list[str]:
        """
        Get the fields of ``values`` that differ from the snapshot.

        Returns:
            Changed field names, in tracked-field order

        """
        current = canonicalize(values)
        return [
            name for name in TRACKED_FIELDS if current[name] != self._snapshot.get(name)
        ]

    def begin_save(self, values: NoteValues) -> PendingSave | None:
        """
        Record ``values`` in the snapshot if anything changed.

        Returns:
            The pending save, or ``None`` if nothing needs saving

        """
        current = canonicalize(values)
        changed = tuple(
            name for name in TRACKED_FIELDS if current[name] != self._snapshot.get(name)
        )
        if not changed:
            return None
        previous = {name: self._snapshot.get(name, "") for name in changed}
        attempted = {name: current[name] for name in changed}
        self._snapshot.update(attempted)
        return PendingSave(
            fields=changed,
            previous=MappingProxyType(previous),
            attempted=MappingProxyType(attempted),
        )

    def rollback(self, pending: PendingSave) -> list[str]:
        """
        Undo the snapshot update of a failed save.

        Fields changed again by a later save are left alone.

        Returns:
            The fields that were rolled back

        """
        restored: list[str] = []
        for name in pending.fields:
            if self._snapshot.get(name) == pending.attempted[name]:
                self._snapshot[name] = pending.previous[name]
                restored.append(name)
        return restored
