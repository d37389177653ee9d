"""SVG sanitization.

Removes everything in an SVG document that can execute script:
``<script>`` and similar elements, ``on*`` event handler attributes,
script URLs (also inside animation values) and animations that target
links or event handlers. Clean documents are returned untouched, byte
for byte.

A DTD internal subset may only declare internal general entities.
Those are expanded by the parser within a fixed size budget; external
and parameter entities and every other declaration are refused.
"""

import logging
import re
from typing import Final
from xml.dom import minidom  # noqa: S408
from xml.parsers.expat import ExpatError  # noqa: S410

from django.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_FORBIDDEN_ELEMENTS: Final = frozenset((
    'script',
    'handler',  # SVG Tiny event handler element
    'foreignobject',
    'iframe',
    'embed',
    'object',
))

_ANIMATION_ELEMENTS: Final = frozenset((
    'animate',
    'animatemotion',
    'animatetransform',
    'set',
))

_EVENT_HANDLER_PREFIX: Final = 'on'
_LINK_ATTRIBUTE: Final = 'href'

# Browsers drop whitespace and control characters inside URL schemes
_URL_NOISE: Final = re.compile(r'[\x00-\x20\x7f]+')
_SCRIPT_URL: Final = re.compile(
    r'^(javascript|vbscript|data:text/html)',
    re.IGNORECASE,
)
_VALUE_SEPARATOR: Final = ';'

_DOCTYPE_WITH_SUBSET: Final = re.compile(
    rb'<!DOCTYPE[^\[>]*\[(?P<subset>.*?)\]\s*>',
    re.IGNORECASE | re.DOTALL,
)
_SUBSET_COMMENT: Final = re.compile(rb'<!--.*?-->', re.DOTALL)
_ENTITY_DECLARATION: Final = re.compile(
    rb'<!ENTITY\s+(?P<parameter>%\s+)?(?P<name>[^\s"\'>]+)\s+'
    rb'(?P<body>(?:"[^"]*"|\'[^\']*\'|[^"\'>])*)>',
)
_QUOTED_VALUE: Final = re.compile(
    rb'\A\s*(["\'])(?P<value>.*)\1\s*\Z',
    re.DOTALL,
)
_ENTITY_REFERENCE: Final = re.compile(rb'&(?P<name>[A-Za-z_:][\w.:-]*);')
_PREDEFINED_ENTITIES: Final = frozenset((
    b'amp', b'lt', b'gt', b'quot', b'apos',
))

_MAX_ENTITY_DEPTH: Final = 8
_MAX_ENTITY_LENGTH: Final = 64 * 1024
_MAX_EXPANDED_LENGTH: Final = 1024 * 1024

_SVG_ROOT: Final = 'svg'


def _dtd_error(reason: str) -> ValidationError:
    return ValidationError(
        f'Unsupported SVG document type declaration: {reason}',
        code='unsafe_svg_dtd',
    )


def _internal_entities(subset: bytes) -> dict[bytes, bytes]:
    subset = _SUBSET_COMMENT.sub(b'', subset)
    entities: dict[bytes, bytes] = {}
    for declaration in _ENTITY_DECLARATION.finditer(subset):
        name = declaration.group('name')
        label = name.decode('ascii', 'replace')
        if declaration.group('parameter'):
            raise _dtd_error(f'parameter entity {label}')
        quoted = _QUOTED_VALUE.match(declaration.group('body'))
        if quoted is None:
            raise _dtd_error(f'external entity {label}')
        # The first declaration of an entity is binding
        entities.setdefault(name, quoted.group('value'))

    if _ENTITY_DECLARATION.sub(b'', subset).strip():
        raise _dtd_error('only internal entity declarations are allowed')
    return entities


def _expanded_length(
    name: bytes,
    entities: dict[bytes, bytes],
    lengths: dict[bytes, int],
    depth: int = 0,
) -> int:
    if name in _PREDEFINED_ENTITIES:
        return 1
    if name in lengths:
        return lengths[name]

    label = name.decode('ascii', 'replace')
    if name not in entities or depth > _MAX_ENTITY_DEPTH:
        raise _dtd_error(f'cannot expand entity {label}')

    value = entities[name]
    length = len(value)
    for reference in _ENTITY_REFERENCE.finditer(value):
        nested = _expanded_length(
            reference.group('name'),
            entities,
            lengths,
            depth + 1,
        )
        length += nested - len(reference.group(0))
        if length > _MAX_ENTITY_LENGTH:
            raise _dtd_error(f'entity {label} expands too far')

    lengths[name] = length
    return length


def _check_document_type(content: bytes) -> None:
    doctype = _DOCTYPE_WITH_SUBSET.search(content)
    if doctype is None:
        return

    entities = _internal_entities(doctype.group('subset'))
    lengths: dict[bytes, int] = {}
    expanded = 0
    for reference in _ENTITY_REFERENCE.finditer(content, doctype.end()):
        name = reference.group('name')
        if name in _PREDEFINED_ENTITIES or name not in entities:
            continue
        expanded += _expanded_length(name, entities, lengths)
        if expanded > _MAX_EXPANDED_LENGTH:
            raise _dtd_error('entities expand too far')


def _local_name(node: minidom.Node) -> str:
    name = node.localName or node.nodeName
    return name.split(':')[-1].lower()


def _is_script_value(value: str) -> bool:
    return any(
        _SCRIPT_URL.match(_URL_NOISE.sub('', part))
        for part in value.split(_VALUE_SEPARATOR)
    )


def _is_unsafe_animation(element: minidom.Element) -> bool:
    if _local_name(element) not in _ANIMATION_ELEMENTS:
        return False
    target = _URL_NOISE.sub('', element.getAttribute('attributeName'))
    target = target.split(':')[-1].lower()
    return target == _LINK_ATTRIBUTE or target.startswith(_EVENT_HANDLER_PREFIX)


def _strip_attributes(element: minidom.Element) -> int:
    unsafe = [
        attribute.name
        for attribute in element.attributes.values()
        if _local_name(attribute).startswith(_EVENT_HANDLER_PREFIX)
        or _is_script_value(attribute.value)
    ]
    for name in unsafe:
        element.removeAttribute(name)
    return len(unsafe)


def _sanitize_node(node: minidom.Node) -> int:
    removed = 0
    for child in list(node.childNodes):
        if child.nodeType != child.ELEMENT_NODE:
            continue
        forbidden = _local_name(child) in _FORBIDDEN_ELEMENTS
        if forbidden or _is_unsafe_animation(child):
            node.removeChild(child).unlink()
            removed += 1
            continue
        removed += _strip_attributes(child)
        removed += _sanitize_node(child)
    return removed


def _parse(content: bytes) -> minidom.Document:
    try:
        return minidom.parseString(content)  # noqa: S318
    except (ExpatError, ValueError) as error:
        raise ValidationError(
            f'Malformed SVG document: {error}',
            code='malformed_svg',
        ) from error


def sanitize_svg(content: bytes) -> bytes:
    """Remove script-capable markup from an SVG document.

    Idempotent: sanitizing a clean document returns the same bytes.
    A document that needed changes is re-serialized as a whole, with
    entities expanded and without its DOCTYPE, so quoting, empty
    element form and the XML declaration may differ from the input.

    Args:
        content: SVG document bytes.

    Returns:
        Sanitized document bytes.

    Raises:
        ValidationError: If the document cannot be parsed, its root
            element is not ``<svg>`` or its DTD declares anything but
            internal entities of bounded size.
    """
    _check_document_type(content)
    document = _parse(content)
    try:
        root = document.documentElement
        if root is None or _local_name(root) != _SVG_ROOT:
            raise ValidationError(
                'Document root is not an <svg> element',
                code='malformed_svg',
            )

        removed = _strip_attributes(root) + _sanitize_node(root)
        if not removed:
            return content

        logger.info('Removed %d unsafe SVG constructs', removed)
        if document.doctype is not None:
            document.removeChild(document.doctype)
        return document.toxml(encoding='utf-8')
    finally:
        document.unlink()
