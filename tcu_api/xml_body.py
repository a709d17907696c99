"""XML envelope encoding and response decoding for the TCU API.

Requests are wrapped in the provider's envelope:

    <Request>
      <UsernameToken>
        <Username>...</Username>
        <SessionToken>...</SessionToken>
      </UsernameToken>
      <RequestParameters>...</RequestParameters>   (one per record)
    </Request>

Responses are decoded into the tagged tree from ``response_tree``. Decoding
never converts text to numbers and never drops repeated sibling elements.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any, Mapping, Sequence
from xml.sax.saxutils import escape

from tcu_api.errors import EncodingError, MalformedResponse
from tcu_api.response_tree import Leaf, ListNode, Node, ObjectNode

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
INDENT = "  "

# Subset of the XML Name production; the provider only uses ASCII tag names.
_TAG_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")
# Characters outside the XML 1.0 Char production.
_ILLEGAL_XML_CHARS = re.compile(
    r"[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)
_TEXT_ENTITIES = {'"': "&quot;", "'": "&apos;", "\r": "&#13;"}

ParameterBlock = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Parameters → XML bytes  (request serialization)
# ---------------------------------------------------------------------------


def encode_request(
    parameter_blocks: ParameterBlock | Sequence[ParameterBlock],
    username: str,
    session_token: str,
) -> bytes:
    """Serialize request parameters into the provider's XML envelope.

    Args:
        parameter_blocks: Either one mapping of field name to value, or a
            list of such mappings (batch mode, one ``RequestParameters``
            block per mapping).  A value may be a scalar or a list of
            scalars; a list is emitted as repeated sibling elements sharing
            the field name, in list order.
        username: Account username for the ``UsernameToken`` block.
        session_token: Session token for the ``UsernameToken`` block.

    Returns:
        UTF-8 encoded XML document with an XML declaration.

    Raises:
        EncodingError: If the input shape is unsupported, a field name is not
            a valid XML tag, or a value contains characters XML cannot carry.
    """
    blocks = _normalize_blocks(parameter_blocks)

    lines = [XML_DECLARATION, "<Request>"]
    lines.append(f"{INDENT}<UsernameToken>")
    lines.append(_leaf_line("Username", username, depth=2))
    lines.append(_leaf_line("SessionToken", session_token, depth=2))
    lines.append(f"{INDENT}</UsernameToken>")

    for index, block in enumerate(blocks):
        if not block:
            lines.append(f"{INDENT}<RequestParameters/>")
            continue
        lines.append(f"{INDENT}<RequestParameters>")
        for key, value in block.items():
            _check_tag(key, index)
            if isinstance(value, (list, tuple)):
                for item in value:
                    lines.append(_leaf_line(key, _scalar_text(key, item, index), depth=2))
            else:
                lines.append(_leaf_line(key, _scalar_text(key, value, index), depth=2))
        lines.append(f"{INDENT}</RequestParameters>")

    lines.append("</Request>")
    return ("\n".join(lines) + "\n").encode("utf-8")


def _normalize_blocks(
    parameter_blocks: ParameterBlock | Sequence[ParameterBlock],
) -> list[ParameterBlock]:
    """Return the input as a list of parameter mappings."""
    if isinstance(parameter_blocks, Mapping):
        return [parameter_blocks]
    if isinstance(parameter_blocks, (list, tuple)):
        if not parameter_blocks:
            raise EncodingError("Batch request must contain at least one parameter block")
        for index, block in enumerate(parameter_blocks):
            if not isinstance(block, Mapping):
                raise EncodingError(
                    f"Parameter block {index} must be a mapping, got {type(block).__name__}"
                )
        return list(parameter_blocks)
    raise EncodingError(
        f"Request parameters must be a mapping or a list of mappings, "
        f"got {type(parameter_blocks).__name__}"
    )


def _check_tag(key: Any, block_index: int) -> None:
    if not isinstance(key, str) or not _TAG_NAME.match(key):
        raise EncodingError(
            f"Invalid field name {key!r} in parameter block {block_index}: "
            f"not a valid XML element name"
        )


def _scalar_text(key: str, value: Any, block_index: int) -> str:
    """Render a scalar parameter value as text."""
    if value is None:
        raise EncodingError(f"Field '{key}' in parameter block {block_index} is None")
    if isinstance(value, (Mapping, list, tuple, set)):
        raise EncodingError(
            f"Field '{key}' in parameter block {block_index} has unsupported "
            f"nested value of type {type(value).__name__}"
        )
    if isinstance(value, bytes):
        raise EncodingError(
            f"Field '{key}' in parameter block {block_index} is bytes; pass text instead"
        )
    return str(value)


def _leaf_line(tag: str, text: str, depth: int) -> str:
    if _ILLEGAL_XML_CHARS.search(text):
        raise EncodingError(f"Value for '{tag}' contains characters not allowed in XML")
    return f"{INDENT * depth}<{tag}>{escape(text, _TEXT_ENTITIES)}</{tag}>"


# ---------------------------------------------------------------------------
# XML bytes → tagged tree  (response parsing)
# ---------------------------------------------------------------------------


def decode_response(xml_bytes: bytes | str) -> ObjectNode:
    """Decode a response body into an ObjectNode keyed by the root tag.

    Conversion rules:
    - Namespace URIs are stripped: ``{http://...}Name`` becomes ``Name``.
    - Children are grouped by tag.  A tag that occurs more than once becomes
      a ListNode in document order; a single occurrence stays a plain node.
    - An element without children becomes a Leaf holding its text verbatim
      (an empty element gives ``Leaf("")``).
    - Attributes become ``@name`` leaves; text next to child elements is
      kept under ``#text``.

    Raises:
        MalformedResponse: If *xml_bytes* is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as e:
        raise MalformedResponse(
            f"Invalid XML response received from server: {e}",
            body=xml_bytes if isinstance(xml_bytes, bytes) else xml_bytes.encode("utf-8"),
        ) from e
    return ObjectNode({_strip_ns(root.tag): _element_to_node(root)})


def _strip_ns(tag: str) -> str:
    """Remove namespace URI prefix: ``{http://...}Name`` → ``Name``."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_to_node(element: ET.Element) -> Node:
    children: dict[str, Node] = {}

    for attr_name, attr_value in element.attrib.items():
        if attr_name.startswith("xmlns") or attr_name.startswith("{"):
            continue
        children[f"@{attr_name}"] = Leaf(attr_value)

    grouped: dict[str, list[Node]] = {}
    for child in element:
        grouped.setdefault(_strip_ns(child.tag), []).append(_element_to_node(child))

    for tag, nodes in grouped.items():
        children[tag] = ListNode(tuple(nodes)) if len(nodes) > 1 else nodes[0]

    text = element.text or ""
    if not grouped and not children:
        return Leaf(text)
    if text.strip():
        # Element carries attributes or children alongside its own text
        children["#text"] = Leaf(text.strip() if grouped else text)
    return ObjectNode(children)
