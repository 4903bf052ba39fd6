"""
Canvas collection handling: parsing, normalization, merging and reconciliation.

A note can embed diagram canvases in two places: as inline nodes inside the
rich-document tree and as entries in the canvas sidebar.  The
:class:`CanvasReconciler` merges both into the single collection that is
persisted in ``Note.canvas_data``.

At rest a collection is a JSON array of::

    {"id", "name", "data": {"elements", "appState", "files"},
     "createdAt", "updatedAt"}

Older notes stored a single bare ``{"elements", "appState", "files"}`` object;
:func:`parse_canvases` upgrades those transparently.
"""

from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from PySide6.QtCore import QObject, Signal

from prdpad.services.logs import get_logger
from prdpad.utils import new_canvas_id, stable_canvas_id, utc_now_iso

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = get_logger(__name__)

#: Placeholder name given to canvases inserted inline without a name.
DEFAULT_CANVAS_NAME: Final[str] = "Untitled Canvas"
#: Shape types whose geometry is a point list.
LINEAR_ELEMENT_TYPES: Final[frozenset[str]] = frozenset({"arrow", "line"})
#: Replacement for a missing or degenerate point list.
DEFAULT_POINTS: Final[tuple[tuple[int, int], ...]] = ((0, 0), (100, 0))
#: Smallest width or height of a linear shape.
MIN_LINEAR_SIZE: Final[int] = 1
#: Default app state for new canvases.
DEFAULT_APP_STATE: Final[dict[str, Any]] = {"viewBackgroundColor": "#ffffff"}


@dataclass
class CanvasData:
    """
    The drawable content of a canvas.
    """

    #: Ordered drawable shapes.
    elements: list[dict[str, Any]] = field(default_factory=list)
    #: View and theme settings.
    app_state: dict[str, Any] = field(default_factory=dict)
    #: Binary assets keyed by file id.
    files: dict[str, Any] = field(default_factory=dict)
    #: Runtime-only collaborator map; never persisted.
    collaborators: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_json(cls, data: Any) -> CanvasData:
        """
        Build canvas data from its stored form, normalizing the elements and
        dropping any stored collaborator map.

        Args:
            data: The stored ``{"elements", "appState", "files"}`` mapping

        Returns:
            A new :class:`CanvasData`

        """
        if not isinstance(data, dict):
            return cls()
        app_state = data.get("appState")
        app_state = dict(app_state) if isinstance(app_state, dict) else {}
        app_state.pop("collaborators", None)
        files = data.get("files")
        return cls(
            elements=normalize_elements(data.get("elements") or []),
            app_state=app_state,
            files=dict(files) if isinstance(files, dict) else {},
        )

    def to_json(self) -> dict[str, Any]:
        """
        Serialize to the stored form.

        Returns:
            ``{"elements", "appState", "files"}`` mapping

        """
        return {
            "elements": copy.deepcopy(self.elements),
            "appState": copy.deepcopy(self.app_state),
            "files": copy.deepcopy(self.files),
        }


@dataclass
class Canvas:
    """
    An embeddable diagram.
    """

    #: Stable canvas ID, unique within a note.
    id: str
    #: Display name.
    name: str
    #: Drawable content.
    data: CanvasData = field(default_factory=CanvasData)
    #: ISO timestamp of creation.
    created_at: str = ""
    #: ISO timestamp of the last change.
    updated_at: str = ""

    @classmethod
    def from_json(cls, item: dict[str, Any]) -> Canvas:
        """
        Build a canvas from one entry of the stored collection.

        An entry without an id gets one derived from its stored content, so
        the same entry always reads back with the same id.

        Args:
            item: Stored canvas entry

        Returns:
            A new :class:`Canvas`

        """
        now = utc_now_iso()
        return cls(
            id=str(item.get("id") or _derived_id(item)),
            name=str(item.get("name") or ""),
            data=CanvasData.from_json(item.get("data")),
            created_at=str(item.get("createdAt") or now),
            updated_at=str(item.get("updatedAt") or now),
        )

    def to_json(self) -> dict[str, Any]:
        """
        Serialize to the stored form.

        Returns:
            Stored canvas entry

        """
        return {
            "id": self.id,
            "name": self.name,
            "data": self.data.to_json(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Geometry normalization
# ---------------------------------------------------------------------------


def _to_number(value: Any) -> float | int:
    """
    Coerce a coordinate to a finite number, falling back to 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            number = float(value.strip() or "0")
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() else number
    return 0


def _normalize_points(points: Any) -> list[list[float | int]]:
    if not isinstance(points, list) or len(points) < len(DEFAULT_POINTS):
        return [list(point) for point in DEFAULT_POINTS]
    normalized: list[list[float | int]] = []
    for point in points:
        if isinstance(point, (list, tuple)) and len(point) >= 2:  # noqa: PLR2004
            normalized.append([_to_number(point[0]), _to_number(point[1])])
        else:
            normalized.append([0, 0])
    return normalized


def normalize_element(element: dict[str, Any]) -> dict[str, Any]:
    """
    Correct the geometry of a single drawable shape.

    Linear shapes (arrows and lines) get a valid point list of at least two
    numeric points, ``lastCommittedPoint`` set to the final point, and a
    width/height recomputed from the point extents (never below
    :data:`MIN_LINEAR_SIZE`).  Every shape gets numeric ``x``/``y``.

    Args:
        element: The shape to normalize; it is not modified

    Returns:
        A normalized copy of the shape

    """
    result = dict(element)
    result["x"] = _to_number(element.get("x"))
    result["y"] = _to_number(element.get("y"))
    if element.get("type") in LINEAR_ELEMENT_TYPES:
        points = _normalize_points(element.get("points"))
        xs = [point[0] for point in points]
        ys = [point[1] for point in points]
        result["points"] = points
        result["lastCommittedPoint"] = list(points[-1])
        result["width"] = max(abs(max(xs) - min(xs)), MIN_LINEAR_SIZE)
        result["height"] = max(abs(max(ys) - min(ys)), MIN_LINEAR_SIZE)
        return result
    for dimension in ("width", "height"):
        if element.get(dimension):
            result[dimension] = _to_number(element[dimension])
        else:
            result.pop(dimension, None)
    return result


def normalize_elements(elements: Any) -> list[dict[str, Any]]:
    """
    Normalize a list of shapes loaded from storage.

    Entries that are not mappings or lack a ``type`` or ``id`` are dropped.

    Args:
        elements: The stored shapes

    Returns:
        The normalized shapes, in order

    """
    if not isinstance(elements, list):
        return []
    return [
        normalize_element(element)
        for element in elements
        if isinstance(element, dict) and element.get("type") and element.get("id")
    ]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _derived_id(stored: Any) -> str:
    return stable_canvas_id(json.dumps(stored, sort_keys=True, default=str))


def is_legacy_canvas(data: Any) -> bool:
    """
    Whether ``data`` is a single bare canvas from the old storage format.
    """
    return isinstance(data, dict) and "elements" in data


def parse_canvases(text: str | None) -> list[Canvas]:
    """
    Parse a stored canvas collection.

    Both the canonical array format and the legacy single-canvas object are
    accepted; a legacy canvas becomes a one-entry collection named
    ``"Canvas 1"`` whose id is derived from the stored canvas, so reading the
    same legacy text again yields the same id.  Unreadable input is logged and
    yields an empty collection.  Canvas ids are unique in the result: later
    duplicates are dropped.

    Args:
        text: The stored ``canvas_data`` text

    Returns:
        The canvas collection

    """
    if not text:
        return []
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        log.warning("canvas.parse_failed", error=str(e))
        return []
    if is_legacy_canvas(data):
        now = utc_now_iso()
        log.info("canvas.legacy_migrated")
        return [
            Canvas(
                id=_derived_id(data),
                name="Canvas 1",
                data=CanvasData.from_json(data),
                created_at=now,
                updated_at=now,
            )
        ]
    if not isinstance(data, list):
        log.warning("canvas.unknown_format", kind=type(data).__name__)
        return []
    canvases: list[Canvas] = []
    seen: set[str] = set()
    for item in data:
        if not isinstance(item, dict):
            log.warning("canvas.invalid_entry", kind=type(item).__name__)
            continue
        canvas = Canvas.from_json(item)
        if canvas.id in seen:
            log.warning("canvas.duplicate_id", canvas_id=canvas.id)
            continue
        seen.add(canvas.id)
        canvases.append(canvas)
    return canvases


def serialize_canvases(canvases: Iterable[Canvas]) -> str:
    """
    Serialize a canvas collection to its canonical stored form.

    The output is stable: equal collections always produce identical text.

    Args:
        canvases: The collection

    Returns:
        JSON text

    """
    return json.dumps(
        [canvas.to_json() for canvas in canvases],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def resolve_canvas_name(existing_name: str, inline_name: str) -> str:
    """
    Choose the name of a canvas known both inline and in the sidebar.

    A real name given in the sidebar wins over an inline placeholder; in every
    other case the inline name is taken.

    Args:
        existing_name: Name already in the merged collection
        inline_name: Name carried by the inline node

    Returns:
        The name to keep

    """
    existing_is_real = bool(existing_name) and existing_name != DEFAULT_CANVAS_NAME
    inline_is_placeholder = not inline_name or inline_name == DEFAULT_CANVAS_NAME
    if existing_is_real and inline_is_placeholder:
        return existing_name
    return inline_name


def merge_canvases(
    existing: Iterable[Canvas], inline: Iterable[Canvas], now: str | None = None
) -> list[Canvas]:
    """
    Merge inline canvases into the sidebar collection.

    - Every sidebar canvas is kept, in order.
    - An inline canvas with a known id updates that entry's data and name
      (see :func:`resolve_canvas_name`); the entry is left untouched if
      neither actually changes.
    - An inline canvas with an unknown id is appended.

    Args:
        existing: The sidebar collection
        inline: Canvases found in the content tree

    Keyword Args:
        now: Timestamp for changed entries (default: the current time)

    Returns:
        The merged collection; the inputs are not modified

    """
    timestamp = now or utc_now_iso()
    merged = [copy.deepcopy(canvas) for canvas in existing]
    index = {canvas.id: position for position, canvas in enumerate(merged)}
    for canvas in inline:
        position = index.get(canvas.id)
        if position is None:
            added = copy.deepcopy(canvas)
            added.created_at = added.created_at or timestamp
            added.updated_at = added.updated_at or timestamp
            index[added.id] = len(merged)
            merged.append(added)
            continue
        current = merged[position]
        name = resolve_canvas_name(current.name, canvas.name)
        if current.data == canvas.data and current.name == name:
            continue
        merged[position] = Canvas(
            id=current.id,
            name=name,
            data=copy.deepcopy(canvas.data),
            created_at=current.created_at,
            updated_at=timestamp,
        )
    return merged


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class CanvasReconciler(QObject):
    """
    Keeps the authoritative canvas collection of one note.

    The reconciler owns the sidebar view of the collection.  Inline canvases
    found in the content tree are merged into it with :meth:`reconcile`.
    :attr:`canvases_changed` is emitted only when the serialized collection
    actually changes.

    Deletions are synchronized in both directions:

    - the content layer registers a callback per inline canvas id with
      :meth:`register_deletion_callback`; :meth:`remove_canvas` calls it so the
      inline node disappears together with the sidebar entry;
    - when an inline node deletes itself the content layer calls
      :meth:`notify_inline_deleted` so the sidebar entry is dropped.

    Callbacks for ids that are no longer in the collection are unregistered
    after every change.

    Keyword Args:
        clock: Returns the timestamp used for changed canvases
        parent: Parent QObject

    """

    #: Signal emitted with the new collection (a list of :class:`Canvas`).
    canvases_changed = Signal(object)

    def __init__(
        self,
        clock: Callable[[], str] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        #: Returns the timestamp used for changed canvases.
        self.clock = clock or utc_now_iso
        #: The merged collection.
        self._canvases: list[Canvas] = []
        #: The serialized form of :attr:`_canvases`.
        self._serialized = serialize_canvases([])
        #: Inline deletion callbacks keyed by canvas id.
        self._deletion_callbacks: dict[str, Callable[[str], None]] = {}

    @property
    def canvases(self) -> list[Canvas]:
        """A copy of the current collection."""
        return copy.deepcopy(self._canvases)

    @property
    def serialized(self) -> str:
        """The canonical serialized form of the current collection."""
        return self._serialized

    def get(self, canvas_id: str) -> Canvas | None:
        """
        Get a copy of a canvas by id.
        """
        for canvas in self._canvases:
            if canvas.id == canvas_id:
                return copy.deepcopy(canvas)
        return None

    def load(self, canvases: Iterable[Canvas]) -> None:
        """
        Replace the collection without emitting a change, e.g. when a note is
        opened.

        Args:
            canvases: The stored collection

        """
        self._canvases = [copy.deepcopy(canvas) for canvas in canvases]
        self._serialized = serialize_canvases(self._canvases)
        self._prune_callbacks()

    def reconcile(self, inline: Iterable[Canvas]) -> bool:
        """
        Merge the inline canvases into the collection.

        Args:
            inline: Canvases found in the content tree

        Returns:
            Whether the collection changed

        """
        return self._commit(merge_canvases(self._canvases, inline, self.clock()))

    # -------------------------------------------------------------------------
    # Sidebar operations
    # -------------------------------------------------------------------------

    def add_canvas(self, name: str | None = None) -> Canvas:
        """
        Add an empty canvas to the sidebar.

        Keyword Args:
            name: Canvas name (default: ``"Canvas N"``)

        Returns:
            The new canvas

        """
        now = self.clock()
        canvas = Canvas(
            id=new_canvas_id(),
            name=name or f"Canvas {len(self._canvases) + 1}",
            data=CanvasData(app_state=dict(DEFAULT_APP_STATE)),
            created_at=now,
            updated_at=now,
        )
        self._commit([*self._canvases, canvas])
        return copy.deepcopy(canvas)

    def rename_canvas(self, canvas_id: str, name: str) -> bool:
        """
        Rename a canvas.

        Returns:
            Whether the collection changed

        """
        return self._commit(
            self._replace(canvas_id, lambda canvas: canvas.name != name, name=name)
        )

    def update_canvas_data(self, canvas_id: str, data: CanvasData) -> bool:
        """
        Replace the drawable content of a canvas.

        Returns:
            Whether the collection changed

        """
        return self._commit(
            self._replace(
                canvas_id, lambda canvas: canvas.data != data, data=copy.deepcopy(data)
            )
        )

    def remove_canvas(self, canvas_id: str) -> bool:
        """
        Remove a canvas from the sidebar, and its inline node with it.

        Returns:
            Whether the canvas was known

        """
        remaining = [canvas for canvas in self._canvases if canvas.id != canvas_id]
        if len(remaining) == len(self._canvases):
            return False
        callback = self._deletion_callbacks.pop(canvas_id, None)
        self._commit(remaining)
        if callback is not None:
            callback(canvas_id)
        return True

    def notify_inline_deleted(self, canvas_id: str) -> bool:
        """
        An inline canvas node deleted itself: drop its sidebar entry.

        Returns:
            Whether the canvas was known

        """
        self._deletion_callbacks.pop(canvas_id, None)
        remaining = [canvas for canvas in self._canvases if canvas.id != canvas_id]
        if len(remaining) == len(self._canvases):
            return False
        self._commit(remaining)
        return True

    # -------------------------------------------------------------------------
    # Deletion callback registry
    # -------------------------------------------------------------------------

    def register_deletion_callback(
        self, canvas_id: str, callback: Callable[[str], None]
    ) -> None:
        """
        Register the function that removes the inline node of ``canvas_id``.
        A later registration for the same id replaces the earlier one.
        """
        self._deletion_callbacks[canvas_id] = callback

    def unregister_deletion_callback(self, canvas_id: str) -> None:
        """Forget the inline deletion callback of ``canvas_id``."""
        self._deletion_callbacks.pop(canvas_id, None)

    def registered_ids(self) -> set[str]:
        """Canvas ids that currently have a deletion callback."""
        return set(self._deletion_callbacks)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _replace(
        self, canvas_id: str, changed: Callable[[Canvas], bool], **changes: Any
    ) -> list[Canvas]:
        result: list[Canvas] = []
        for canvas in self._canvases:
            if canvas.id == canvas_id and changed(canvas):
                updated = copy.deepcopy(canvas)
                for name, value in changes.items():
                    setattr(updated, name, value)
                updated.updated_at = self.clock()
                result.append(updated)
            else:
                result.append(canvas)
        return result

    def _commit(self, canvases: list[Canvas]) -> bool:
        serialized = serialize_canvases(canvases)
        if serialized == self._serialized:
            return False
        self._canvases = canvases
        self._serialized = serialized
        self._prune_callbacks()
        log.debug("canvas.collection_changed", count=len(canvases))
        self.canvases_changed.emit(self.canvases)
        return True

    def _prune_callbacks(self) -> None:
        known = {canvas.id for canvas in self._canvases}
        for canvas_id in set(self._deletion_callbacks) - known:
            del self._deletion_callbacks[canvas_id]
