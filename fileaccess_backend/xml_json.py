from __future__ import annotations

import io
import json
from typing import Any, Optional

from lxml import etree

# Same key xml2js uses for character data.
TEXT_KEY = "_"

_XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# No DTD entity expansion, no network fetches.
_PARSER_OPTIONS = dict(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False)

# Namespace declarations written on each start tag, keyed by element.
Declarations = dict[etree._Element, list[tuple[str, str]]]


def _qualified_name(name: str, nsmap: dict[str | None, str]) -> str:
    """Turn lxml's '{uri}local' into the 'prefix:local' form written in the document."""
    qname = etree.QName(name)
    if qname.namespace is None:
        return qname.localname
    if qname.namespace == _XML_NAMESPACE:
        return f"xml:{qname.localname}"
    for prefix, uri in nsmap.items():
        if uri == qname.namespace and prefix:
            return f"{prefix}:{qname.localname}"
    return qname.localname


def _assign(node: dict[str, Any], key: str, value: Any) -> None:
    # explicitArray=false: single values stay scalar, repeats become a list.
    if key not in node:
        node[key] = value
    elif isinstance(node[key], list):
        node[key].append(value)
    else:
        node[key] = [node[key], value]


def _element_name(element: etree._Element) -> str:
    qname = etree.QName(element)
    return f"{element.prefix}:{qname.localname}" if element.prefix else qname.localname


def element_to_value(element: etree._Element, declarations: Optional[Declarations] = None) -> Any:
    """Convert one element with mergeAttrs/explicitChildren/explicitArray=false rules.

    Attributes and child elements share the element's object. Namespace
    declarations written on the tag come first as xmlns/xmlns:<prefix> keys.
    Text is kept under TEXT_KEY unless blank; a text-only element collapses
    to its text and an empty one to its (blank) text. Unexpanded entity
    references raise ValueError rather than losing their content.
    """
    declarations = declarations or {}
    node: dict[str, Any] = {TEXT_KEY: ""}
    for prefix, uri in declarations.get(element, ()):
        _assign(node, f"xmlns:{prefix}" if prefix else "xmlns", uri)
    for name, value in element.attrib.items():
        _assign(node, _qualified_name(name, element.nsmap), value)

    text = [element.text or ""]
    for child in element:
        if isinstance(child, etree._Entity):
            raise ValueError(f"Unsupported entity reference: {child.text}")
        # Comments and processing instructions only contribute their tail text.
        if isinstance(child.tag, str):
            _assign(node, _element_name(child), element_to_value(child, declarations))
        text.append(child.tail or "")
    chars = "".join(text)

    if chars.strip():
        node[TEXT_KEY] = chars
        if len(node) == 1:
            return chars
        return node

    del node[TEXT_KEY]
    if not node:
        return chars
    return node


def _parse(data: bytes) -> tuple[etree._Element, Declarations]:
    declarations: Declarations = {}
    pending: list[tuple[str, str]] = []
    events = etree.iterparse(io.BytesIO(data), events=("start-ns", "start"), **_PARSER_OPTIONS)
    for event, item in events:
        if event == "start-ns":
            pending.append(item)
        elif pending:
            declarations[item] = pending
            pending = []
    root = events.root

    dtd = root.getroottree().docinfo.internalDTD
    if dtd is not None and any(True for _ in dtd.iterentities()):
        raise ValueError("Entity declarations are not supported")
    return root, declarations


def xml_to_dict(data: bytes) -> Optional[dict[str, Any]]:
    """Parse XML bytes strictly and return {root_name: value}.

    Blank input is not an error: it yields None, serialized as JSON null.
    """
    if not data.strip():
        return None
    root, declarations = _parse(data)
    return {_element_name(root): element_to_value(root, declarations)}


def convert_xml_to_json(data: bytes) -> str:
    """Parse XML bytes and serialize them as compact JSON.

    Raises lxml.etree.XMLSyntaxError (or ValueError for unusable input);
    callers translate those into service errors.
    """
    return json.dumps(xml_to_dict(data), ensure_ascii=False, separators=(",", ":"))
