"""
Helpers for the rich-document content tree.

Content is stored as the JSON serialization of a node tree: every node is a
mapping with a ``type``, optional ``attrs``, optional ``text`` and an optional
``content`` list of child nodes.  Inline canvases are nodes of type
:data:`INLINE_CANVAS_NODE_TYPE` whose attrs carry ``canvasId``, ``name`` and
the canvas ``data``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final

from prdpad.services.canvas import DEFAULT_CANVAS_NAME, Canvas, CanvasData
from prdpad.services.logs import get_logger
from prdpad.utils import new_canvas_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

log = get_logger(__name__)

#: Node type of an inline canvas.
INLINE_CANVAS_NODE_TYPE: Final[str] = "excalidraw"
#: Maximum number of shape labels quoted by :func:`summarize_elements`.
MAX_SUMMARY_LABELS: Final[int] = 6
#: Maximum length of a quoted shape label.
MAX_LABEL_LENGTH: Final[int] = 20


def parse_content(text: str | None) -> dict[str, Any] | None:
    """
    Parse serialized content.

    Args:
        text: The stored content

    Returns:
        The root node, or ``None`` if the content is empty or unreadable

    """
    if not text:
        return None
    try:
        tree = json.loads(text)
    except (TypeError, ValueError) as e:
        log.warning("content.parse_failed", error=str(e))
        return None
    if not isinstance(tree, dict):
        log.warning("content.unknown_format", kind=type(tree).__name__)
        return None
    return tree


def serialize_content(tree: dict[str, Any]) -> str:
    """Serialize a content tree."""
    return json.dumps(tree, ensure_ascii=False)


def walk(node: Any) -> Iterator[dict[str, Any]]:
    """
    Yield every node of the tree, depth first, parents before children.
    """
    if not isinstance(node, dict):
        return
    yield node
    children = node.get("content")
    if isinstance(children, list):
        for child in children:
            yield from walk(child)


def extract_plain_text(node: Any) -> str:
    """
    Extract the text of a node, joining the text of its children with spaces.

    Args:
        node: A content node, or a bare string

    Returns:
        The plain text

    """
    if isinstance(node, str):
        return node
    if not isinstance(node, dict):
        return ""
    if node.get("text"):
        return str(node["text"])
    children = node.get("content")
    if isinstance(children, list):
        parts = (extract_plain_text(child) for child in children)
        return " ".join(part for part in parts if part)
    return ""


def _inline_canvas_nodes(tree: Any) -> Iterator[dict[str, Any]]:
    for node in walk(tree):
        if node.get("type") == INLINE_CANVAS_NODE_TYPE:
            yield node


def assign_missing_canvas_ids(tree: dict[str, Any] | None) -> bool:
    """
    Give every inline canvas node without a ``canvasId`` attribute a new id.

    The tree is modified in place.

    Args:
        tree: The content tree

    Returns:
        Whether any id was assigned

    """
    if tree is None:
        return False
    assigned = False
    for node in _inline_canvas_nodes(tree):
        attrs = node.setdefault("attrs", {})
        if not isinstance(attrs, dict):
            attrs = node["attrs"] = {}
        if not attrs.get("canvasId"):
            attrs["canvasId"] = new_canvas_id()
            assigned = True
    return assigned


def find_inline_canvases(tree: dict[str, Any] | None) -> list[Canvas]:
    """
    Collect the inline canvases of a content tree in document order.

    Nodes without a ``canvasId`` are skipped; see
    :func:`assign_missing_canvas_ids`.  Only the first node of a repeated id
    is used.

    Args:
        tree: The content tree

    Returns:
        The inline canvases (timestamps left empty)

    """
    if tree is None:
        return []
    canvases: list[Canvas] = []
    seen: set[str] = set()
    for node in _inline_canvas_nodes(tree):
        attrs = node.get("attrs")
        if not isinstance(attrs, dict) or not attrs.get("canvasId"):
            continue
        canvas_id = str(attrs["canvasId"])
        if canvas_id in seen:
            continue
        seen.add(canvas_id)
        canvases.append(
            Canvas(
                id=canvas_id,
                name=str(attrs.get("name") or DEFAULT_CANVAS_NAME),
                data=CanvasData.from_json(attrs.get("data")),
            )
        )
    return canvases


def remove_inline_canvas(tree: dict[str, Any] | None, canvas_id: str) -> bool:
    """
    Remove the inline node(s) of ``canvas_id`` from the tree, in place.

    Args:
        tree: The content tree
        canvas_id: The canvas to remove

    Returns:
        Whether a node was removed

    """
    if tree is None:
        return False
    removed = False
    for node in walk(tree):
        children = node.get("content")
        if not isinstance(children, list):
            continue
        kept = [
            child
            for child in children
            if not (
                isinstance(child, dict)
                and child.get("type") == INLINE_CANVAS_NODE_TYPE
                and isinstance(child.get("attrs"), dict)
                and child["attrs"].get("canvasId") == canvas_id
            )
        ]
        if len(kept) != len(children):
            node["content"] = kept
            removed = True
    return removed


def inline_canvas_elements(tree: dict[str, Any] | None) -> list[dict[str, Any]]:
    """All shapes drawn in inline canvases, in document order."""
    elements: list[dict[str, Any]] = []
    for node in _inline_canvas_nodes(tree):
        attrs = node.get("attrs")
        data = attrs.get("data") if isinstance(attrs, dict) else None
        if isinstance(data, dict) and isinstance(data.get("elements"), list):
            elements.extend(data["elements"])
    return elements


def summarize_elements(elements: Iterable[dict[str, Any]]) -> str:
    """
    Describe a set of shapes in a few words, e.g.
    ``"3 rectangles, 2 arrows including: Login, Checkout"``.

    Deleted shapes are ignored.

    Args:
        elements: Drawable shapes

    Returns:
        The description, or an empty string if there is nothing to describe

    """
    counts: dict[str, int] = {}
    labels: list[str] = []
    for element in elements:
        if not isinstance(element, dict) or element.get("isDeleted"):
            continue
        kind = element.get("type") or "shape"
        counts[kind] = counts.get(kind, 0) + 1
        text = element.get("text")
        if isinstance(text, str) and text.strip():
            label = text.strip()[:MAX_LABEL_LENGTH]
            if label not in labels and len(labels) < MAX_SUMMARY_LABELS:
                labels.append(label)
    parts: list[str] = []
    if counts:
        parts.append(
            ", ".join(
                f"{count} {kind}{'s' if count > 1 else ''}"
                for kind, count in counts.items()
            )
        )
    if labels:
        parts.append(f"including: {', '.join(labels)}")
    return " ".join(parts)


def build_ai_context(content: str | None, canvases: Iterable[Canvas] = ()) -> str:
    """
    Build the document context handed to AI generation: the plain text of the
    content followed by a short description of the existing diagrams.

    Args:
        content: Serialized content
        canvases: The note's canvas collection

    Returns:
        The context text

    """
    tree = parse_content(content)
    text = extract_plain_text(tree) if tree is not None else ""
    elements = inline_canvas_elements(tree)
    inline_ids = {canvas.id for canvas in find_inline_canvases(tree)}
    for canvas in canvases:
        if canvas.id not in inline_ids:
            elements.extend(canvas.data.elements)
    summary = summarize_elements(elements)
    if summary:
        return f"{text}\n\n[Existing diagrams: {summary}]"
    return text
