import logging
import pathlib
import typing

import attr
import click

from . import documents
from .nodes import Node
from .transform import Action, LeafTransformer, TreeWalker
from .utils import ParseError, check_for_file, rel

log = logging.getLogger(__name__)

STDIO = pathlib.Path('-')


@attr.s(frozen=True)
class Pillar:
    """Applies an action to every value in a pillar file and formats the result."""

    transformer: LeafTransformer = attr.ib()
    element: typing.Optional[str] = attr.ib(default=None)

    def walker(self, strict: bool = False) -> TreeWalker:
        return TreeWalker(self.transformer, scope=self.element, strict=strict)

    def read(self, path: pathlib.Path) -> Node:
        """Read a document, refusing files with include statements."""
        if path != STDIO:
            check_for_file(path)
        log.debug(f"Reading {path}")
        try:
            if path == STDIO:
                text = click.get_text_stream('stdin').read()
            else:
                text = path.read_text(encoding='utf-8')
        except UnicodeDecodeError as error:
            raise ParseError(f"{path} is not valid UTF-8: {error}") from error
        return self.parse(text)

    @staticmethod
    def parse(text: str) -> Node:
        documents.scan_for_includes(text)
        return documents.load(text)

    def transform(self, node: Node, action: Action, strict: bool = False) -> Node:
        """
        Walk a tree, visiting every value before reporting the first failure.
        """
        walker = self.walker(strict=strict)
        node = walker.walk(node, action)
        if walker.errors:
            raise walker.errors[0]
        return node

    @staticmethod
    def format(node: Node, action: Action) -> str:
        return documents.format_buffer(node, header=action is not Action.IDENTIFY)

    def apply(self, path: pathlib.Path, action: Action) -> str:
        return self.format(self.transform(self.read(path), action), action)

    def apply_text(self, text: str, action: Action) -> str:
        return self.format(self.transform(self.parse(text), action), action)

    def rotate(self, path: pathlib.Path) -> str:
        """
        Decrypt and re-encrypt a file in memory, returning the new contents.

        Nothing is written, so a failure at any step leaves the file as it was.
        """
        node = self.transform(self.read(path), Action.DECRYPT, strict=True)
        node = self.transform(node, Action.ENCRYPT, strict=True)
        return self.format(node, Action.ENCRYPT)


def write_sls_file(buffer: str, path: pathlib.Path) -> None:
    """Write a buffer to a file, or to standard output if the path is '-'."""
    if path == STDIO:
        click.echo(buffer, nl=False)
        return

    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    path.write_text(buffer, encoding='utf-8')
    log.info(f"Wrote out to file: {rel(path)}")
