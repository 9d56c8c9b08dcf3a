"""
Content Renderer

Turns model-authored advice (any JSON shape) into a display tree. Pure: no
I/O, the input is never mutated, and the same input always gives the same
tree.

Shapes:
    string            -> leaf
    list              -> single-key mapping items become titled blocks,
                         anything else is rendered in place
    mapping           -> one heading per key, body rendered one level deeper
    number/bool/null  -> leaf with the JSON spelling of the value
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.config import MAX_RENDER_DEPTH
from app.errors import RenderDepthExceeded

# Leading ordering prefix the advisory prompt asks for: "0_best_practices"
_ORDER_PREFIX = re.compile(r"^\d+\s+")

LEAF = "leaf"
HEADING = "heading"
BLOCK = "block"
GROUP = "group"


@dataclass
class DisplayNode:
    kind: str
    depth: int
    text: str = ""
    children: List["DisplayNode"] = field(default_factory=list)

    def leaves(self) -> List["DisplayNode"]:
        if self.kind == LEAF:
            return [self]
        found = []
        for child in self.children:
            found.extend(child.leaves())
        return found

    def to_dict(self) -> Dict[str, Any]:
        node = {"kind": self.kind, "depth": self.depth, "text": self.text}
        if self.kind != LEAF:
            node["children"] = [child.to_dict() for child in self.children]
        return node


def humanize_key(key: str) -> str:
    """'0_best_practices' -> 'Best practices'"""
    label = str(key).replace("_", " ")
    label = _ORDER_PREFIX.sub("", label).strip()
    return label[:1].upper() + label[1:]


def _scalar_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    return str(value)


def render(value: Any, depth: int = 0, max_depth: Optional[int] = None) -> DisplayNode:
    """Render a decoded JSON value into a ``DisplayNode`` tree"""
    limit = MAX_RENDER_DEPTH if max_depth is None else max_depth
    return _render(value, depth, 0, limit)


def _render(value: Any, depth: int, nesting: int, limit: int) -> DisplayNode:
    # depth drives indentation; nesting counts containers entered (lists
    # rendered in place do not indent but still nest)
    if nesting > limit:
        raise RenderDepthExceeded(limit)

    if isinstance(value, list):
        group = DisplayNode(kind=GROUP, depth=depth)
        for item in value:
            if isinstance(item, dict) and len(item) == 1:
                (key, body), = item.items()
                block = DisplayNode(kind=BLOCK, depth=depth, text=humanize_key(key))
                block.children.append(_render(body, depth + 1, nesting + 1, limit))
                group.children.append(block)
            else:
                group.children.append(_render(item, depth, nesting + 1, limit))
        return group

    if isinstance(value, dict):
        group = DisplayNode(kind=GROUP, depth=depth)
        for key, body in value.items():
            heading = DisplayNode(kind=HEADING, depth=depth, text=humanize_key(key))
            heading.children.append(_render(body, depth + 1, nesting + 1, limit))
            group.children.append(heading)
        return group

    return DisplayNode(kind=LEAF, depth=depth, text=_scalar_text(value))


def render_stored_advice(advice_text: str) -> Dict[str, Any]:
    """
    Decode an ``advice`` column and render it for display.

    Text that is not JSON (or nests deeper than the renderer accepts) is
    returned verbatim instead of a tree.
    """
    try:
        parsed = json.loads(advice_text)
    except (TypeError, ValueError):
        return {"format": "text", "text": advice_text or ""}

    try:
        tree = render(parsed)
    except RenderDepthExceeded:
        return {"format": "text", "text": advice_text}
    return {"format": "tree", "tree": tree.to_dict()}
