"""
An immutable tree of scalars, sequences and mappings.

Documents are parsed into Nodes so transformations can match on the shape
of each value explicitly instead of inspecting loader output at every step.
"""

import datetime
import typing

import attr

from .utils import TypeMismatch

SCALAR_TYPES = (str, bytes, int, float, bool, type(None), datetime.date, datetime.datetime)


class Node:
    is_scalar = False
    is_sequence = False
    is_mapping = False

    def as_scalar(self) -> 'Scalar':
        raise TypeMismatch(f"Expected a scalar, got {self.kind}")

    def as_sequence(self) -> 'Sequence':
        raise TypeMismatch(f"Expected a sequence, got {self.kind}")

    def as_mapping(self) -> 'Mapping':
        raise TypeMismatch(f"Expected a mapping, got {self.kind}")

    @property
    def kind(self) -> str:
        return type(self).__name__.lower()

    def to_python(self) -> typing.Any:
        raise NotImplementedError

    @classmethod
    def from_python(cls, value: typing.Any) -> 'Node':
        """Build a tree from the output of a YAML loader."""
        if isinstance(value, dict):
            return Mapping(tuple((k, cls.from_python(v)) for k, v in value.items()))
        if isinstance(value, (list, tuple)):
            return Sequence(tuple(cls.from_python(v) for v in value))
        if isinstance(value, SCALAR_TYPES):
            return Scalar(value)
        raise TypeMismatch(f"Can't represent a {type(value).__name__} as a node")


@attr.s(frozen=True)
class Scalar(Node):
    value: typing.Any = attr.ib()

    is_scalar = True

    def as_scalar(self) -> 'Scalar':
        return self

    def to_python(self) -> typing.Any:
        return self.value


@attr.s(frozen=True)
class Sequence(Node):
    items: typing.Tuple[Node, ...] = attr.ib(converter=tuple, default=())

    is_sequence = True

    def as_sequence(self) -> 'Sequence':
        return self

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def to_python(self) -> typing.List[typing.Any]:
        return [item.to_python() for item in self.items]


@attr.s(frozen=True)
class Mapping(Node):
    pairs: typing.Tuple[typing.Tuple[typing.Hashable, Node], ...] = attr.ib(converter=tuple, default=())

    is_mapping = True

    def as_mapping(self) -> 'Mapping':
        return self

    def __len__(self):
        return len(self.pairs)

    def __iter__(self):
        return iter(self.pairs)

    def keys(self) -> typing.List[typing.Hashable]:
        return [key for key, _ in self.pairs]

    def get(self, key: typing.Hashable) -> typing.Optional[Node]:
        for k, v in self.pairs:
            if k == key:
                return v
        return None

    def replace(self, key: typing.Hashable, value: Node) -> 'Mapping':
        """Return a copy with the value under key replaced or appended."""
        if key not in self.keys():
            return Mapping(self.pairs + ((key, value),))
        return Mapping(tuple((k, value if k == key else v) for k, v in self.pairs))

    def to_python(self) -> typing.Dict[typing.Hashable, typing.Any]:
        return {key: value.to_python() for key, value in self.pairs}
