"""
Encrypting, decrypting and identifying the values inside a document.

A LeafTransformer works on one string at a time. A TreeWalker applies it to
every string in a tree and rebuilds a tree of the same shape.
"""

import enum
import logging
import typing

import attr

from .gpg import GPG, is_encrypted
from .nodes import Mapping, Node, Scalar, Sequence
from .utils import CryptoError, LeafError, TypeMismatch

log = logging.getLogger(__name__)


class Action(enum.Enum):
    ENCRYPT = 'encrypt'
    DECRYPT = 'decrypt'
    IDENTIFY = 'identify'

    def __str__(self):
        return self.value


@attr.s(frozen=True)
class LeafTransformer:
    gpg: GPG = attr.ib()
    recipient: typing.Optional[str] = attr.ib(default=None)

    def transform(self, value: str, action: Action) -> str:
        if action is Action.ENCRYPT:
            return self.encrypt(value)
        if action is Action.DECRYPT:
            return self.decrypt(value)
        if action is Action.IDENTIFY:
            return self.identify(value)
        raise ValueError(f"Unknown action {action!r}")

    def encrypt(self, value: str) -> str:
        if is_encrypted(value):
            return value
        if not self.recipient:
            raise CryptoError("No PGP key was given to encrypt values with")
        return self.gpg.encrypt_text(value, recipients=[self.recipient])

    def decrypt(self, value: str) -> str:
        if not is_encrypted(value):
            return value
        return self.gpg.decrypt_text(value)

    def identify(self, value: str) -> str:
        """Describe the key a value was encrypted to, or '' for plaintext."""
        if not is_encrypted(value):
            return ''
        for key_id in self.gpg.recipients(value):
            identity = self.gpg.identity(key_id)
            if identity is not None:
                return f"{key_id}: {identity}"
        raise CryptoError("Unable to find a key for the ids used")


@attr.s
class TreeWalker:
    """
    Rebuild a tree with every string value transformed.

    In the default best effort mode a failing value keeps its original text,
    the failure is logged and collected in `errors`, and the walk carries on.
    In strict mode the first failure is raised immediately.

    When `scope` is set, only the value under that key of the root mapping
    is walked and every other value is returned as it was.
    """

    transformer: LeafTransformer = attr.ib()
    scope: typing.Optional[str] = attr.ib(default=None)
    strict: bool = attr.ib(default=False)
    errors: typing.List[LeafError] = attr.ib(factory=list, init=False)

    def walk(self, node: typing.Optional[Node], action: Action) -> typing.Optional[Node]:
        if node is None:
            return None

        if self.scope is None:
            return self.visit(node, action, ())

        if not node.is_mapping:
            return node

        return Mapping(
            (key, self.visit(value, action, (key,)) if key == self.scope else value)
            for key, value in node.as_mapping())

    def visit(self, node: typing.Optional[Node], action: Action, path: typing.Tuple) -> typing.Optional[Node]:
        if node is None:
            return None
        if node.is_scalar:
            return self.leaf(node.as_scalar(), action, path)
        if node.is_sequence:
            return Sequence(
                self.visit(item, action, (*path, index))
                for index, item in enumerate(node.as_sequence()))
        if node.is_mapping:
            return Mapping(
                (key, self.visit(value, action, (*path, key)))
                for key, value in node.as_mapping())
        raise TypeMismatch(f"Can't walk a {type(node).__name__}")

    def leaf(self, scalar: Scalar, action: Action, path: typing.Tuple) -> Scalar:
        if not isinstance(scalar.value, str):
            return scalar

        try:
            value = self.transformer.transform(scalar.value, action)
        except CryptoError as error:
            failure = LeafError(':'.join(str(p) for p in path), error)
            if self.strict:
                raise failure from error
            log.error(f"Error {action.value}ing value: {failure.message}")
            self.errors.append(failure)
            return scalar

        if action is Action.IDENTIFY and not value:
            return scalar

        return Scalar(value)
