"""
Reading and writing YAML pillar documents.
"""

import logging
import typing

import yaml

from .nodes import Mapping, Node, Scalar, Sequence
from .utils import ParseError, TypeMismatch, UnsupportedIncludeDirective

log = logging.getLogger(__name__)

HEADER = '#!yaml|gpg\n\n'
INCLUDE_DIRECTIVE = 'include:'
PATH_SEPARATOR = ':'
MISSING = object()


class PillarDumper(yaml.SafeDumper):
    """Emits multi-line strings, such as armored messages, as literal blocks."""

    def represent_str(self, data: str) -> yaml.ScalarNode:
        if '\n' in data:
            return self.represent_scalar('tag:yaml.org,2002:str', data, style='|')
        return super().represent_str(data)


PillarDumper.add_representer(str, PillarDumper.represent_str)


def scan_for_includes(text: str) -> None:
    """
    Refuse documents with include statements.

    The YAML parser would treat the directive as an ordinary key and the
    rewritten file would no longer include anything.
    """
    for number, line in enumerate(text.splitlines(), start=1):
        if INCLUDE_DIRECTIVE in line:
            raise UnsupportedIncludeDirective(
                f"Contains include directives (line {number})")


def load(text: str) -> Node:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ParseError(f"Invalid YAML: {error}") from error

    if data is None:
        return Mapping()

    return Node.from_python(data)


def dump(node: Node) -> str:
    return yaml.dump(
        node.to_python(),
        Dumper=PillarDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True)


def format_buffer(node: Node, header: bool = True) -> str:
    """Serialize a document, with the gpg renderer line unless disabled."""
    if node.is_mapping and not len(node.as_mapping()):
        log.warning("No values to format")
    text = dump(node)
    return f"{HEADER}{text}" if header else text


def split_path(path: str) -> typing.List[str]:
    return path.split(PATH_SEPARATOR)


def _lookup(mapping: Mapping, segment: str) -> typing.Any:
    """Find the key for a path segment, matching keys that aren't strings by their text."""
    for key in mapping.keys():
        if key == segment:
            return key
    for key in mapping.keys():
        if str(key) == segment:
            return key
    return MISSING


def get_path(node: Node, path: str) -> typing.Optional[Node]:
    """Return the node at a colon separated path, or None if it does not exist."""
    for segment in split_path(path):
        if node.is_mapping:
            key = _lookup(node.as_mapping(), segment)
            if key is MISSING:
                return None
            node = node.as_mapping().get(key)
        elif node.is_sequence and segment.isdigit():
            items = node.as_sequence().items
            if int(segment) >= len(items):
                return None
            node = items[int(segment)]
        else:
            return None
    return node


def set_path(node: Node, path: str, value: typing.Any) -> Node:
    """
    Return a copy of the tree with value stored at a colon separated path.

    Missing mappings along the path are created. Setting a path that runs
    through a scalar raises TypeMismatch.
    """
    return _set(node, split_path(path), value if isinstance(value, Node) else Scalar(value))


def _set(node: typing.Optional[Node], segments: typing.List[str], value: Node) -> Node:
    if not segments:
        return value

    segment, rest = segments[0], segments[1:]

    if node is None or (node.is_scalar and node.as_scalar().value is None):
        node = Mapping()

    if node.is_sequence and segment.isdigit():
        items = list(node.as_sequence().items)
        index = int(segment)
        if index >= len(items):
            raise TypeMismatch(f"Index {index} is out of range for a sequence of {len(items)}")
        items[index] = _set(items[index], rest, value)
        return Sequence(items)

    mapping = node.as_mapping()
    key = _lookup(mapping, segment)
    if key is MISSING:
        return mapping.replace(segment, _set(None, rest, value))
    return mapping.replace(key, _set(mapping.get(key), rest, value))
