"""
Helpers for AI-generated features and tasks.

Generated items are opaque mappings produced by the AI providers; only the
``id``, ``isSelected`` and "added to destination" keys are interpreted here.
All functions return new lists and never modify their input.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Final, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

#: Kind of generated item.
ItemKind = Literal["features", "tasks"]
#: Per kind, the keys of the "added" flag and of the destination name.
ADDED_KEYS: Final[dict[str, tuple[str, str]]] = {
    "features": ("addedToPipeline", "addedToRoadmapName"),
    "tasks": ("addedToTasks", "addedToProjectName"),
}


def prepare_generated(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copy freshly generated items, deselected."""
    return [{**copy.deepcopy(item), "isSelected": False} for item in items]


def append_generated(
    existing: Iterable[dict[str, Any]], new: Iterable[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Append freshly generated items to the stored ones."""
    return [*copy.deepcopy(list(existing)), *prepare_generated(new)]


def toggle_selected(
    items: Iterable[dict[str, Any]], item_id: str
) -> list[dict[str, Any]]:
    """Flip the selection flag of one item."""
    result = copy.deepcopy(list(items))
    for item in result:
        if item.get("id") == item_id:
            item["isSelected"] = not item.get("isSelected", False)
    return result


def set_all_selected(
    items: Iterable[dict[str, Any]],
    selected: bool,  # noqa: FBT001
) -> list[dict[str, Any]]:
    """Select or deselect every item."""
    return [{**copy.deepcopy(item), "isSelected": selected} for item in items]


def selected_items(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """The selected items."""
    return [copy.deepcopy(item) for item in items if item.get("isSelected")]


def mark_added(
    items: Iterable[dict[str, Any]],
    item_ids: Iterable[str],
    destination: str | None,
    kind: ItemKind,
) -> list[dict[str, Any]]:
    """
    Flag items as added to a destination (a pipeline for features, a task
    project for tasks) and deselect them.

    Args:
        items: The generated items
        item_ids: IDs of the items that were added
        destination: Name of the destination, if known
        kind: ``"features"`` or ``"tasks"``

    Returns:
        The updated items

    """
    flag_key, name_key = ADDED_KEYS[kind]
    ids = set(item_ids)
    result = copy.deepcopy(list(items))
    for item in result:
        if item.get("id") in ids:
            item[flag_key] = True
            item["isSelected"] = False
            if destination:
                item[name_key] = destination
    return result
