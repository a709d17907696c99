"""Tagged tree for decoded XML responses.

A decoded response is built from three node kinds:

- ``Leaf``: text content of an element, always a string. Numeric-looking
  text is never converted, so index numbers keep their leading zeros.
- ``ListNode``: repeated sibling elements that shared a tag, in document order.
- ``ObjectNode``: child elements keyed by tag name, in document order.

Accessors raise FieldNotFound or TypeMismatch instead of returning None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from tcu_api.errors import FieldNotFound, TypeMismatch


@dataclass(frozen=True)
class Leaf:
    text: str

    def to_python(self) -> str:
        return self.text


@dataclass(frozen=True)
class ListNode:
    items: tuple[Node, ...] = ()

    def __iter__(self) -> Iterator[Node]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> Node:
        return self.items[index]

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class ObjectNode:
    children: dict[str, Node] = field(default_factory=dict)

    def __contains__(self, key: str) -> bool:
        return key in self.children

    def __getitem__(self, key: str) -> Node:
        return self.get(key)

    def keys(self) -> list[str]:
        return list(self.children)

    def get(self, key: str) -> Node:
        """Return the direct child *key* or raise FieldNotFound."""
        try:
            return self.children[key]
        except KeyError:
            raise FieldNotFound(
                f"Element '{key}' not found; available: {', '.join(self.children) or '(none)'}"
            ) from None

    def find(self, path: str) -> Node:
        """Resolve a dotted path such as ``Response.ResponseParameters.Status``.

        Numeric segments index into ListNode values
        (``ResponseParameters.Applicant.0.f4indexno``).
        """
        node: Node = self
        walked: list[str] = []
        for segment in path.split("."):
            if isinstance(node, ObjectNode):
                if segment not in node.children:
                    location = ".".join(walked) or "<root>"
                    raise FieldNotFound(f"Element '{segment}' not found under {location}")
                node = node.children[segment]
            elif isinstance(node, ListNode):
                if not segment.isdigit():
                    raise TypeMismatch(
                        f"'{'.'.join(walked)}' is a list; expected an index, got '{segment}'"
                    )
                index = int(segment)
                if index >= len(node.items):
                    raise FieldNotFound(
                        f"Index {index} out of range for '{'.'.join(walked)}' "
                        f"({len(node.items)} items)"
                    )
                node = node.items[index]
            else:
                raise TypeMismatch(
                    f"'{'.'.join(walked)}' is text; cannot descend into '{segment}'"
                )
            walked.append(segment)
        return node

    def get_text(self, path: str) -> str:
        """Return the text of the leaf at *path*."""
        node = self.find(path)
        if not isinstance(node, Leaf):
            raise TypeMismatch(f"'{path}' is a {_kind(node)}, not text")
        return node.text

    def get_object(self, path: str) -> ObjectNode:
        node = self.find(path)
        if not isinstance(node, ObjectNode):
            raise TypeMismatch(f"'{path}' is a {_kind(node)}, not an element with children")
        return node

    def get_list(self, path: str) -> ListNode:
        """Return the node at *path* as a list.

        A single element is wrapped in a one-item ListNode, since XML cannot
        tell a one-element list apart from a lone child.
        """
        node = self.find(path)
        if isinstance(node, ListNode):
            return node
        return ListNode((node,))

    def to_python(self) -> dict[str, Any]:
        return {key: child.to_python() for key, child in self.children.items()}


Node = Union[Leaf, ListNode, ObjectNode]


def _kind(node: Node) -> str:
    if isinstance(node, Leaf):
        return "text leaf"
    if isinstance(node, ListNode):
        return "list"
    return "element"
