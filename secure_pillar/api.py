import logging
import pathlib
import typing

import attr

from . import batch, documents
from .gpg import GPG
from .nodes import Mapping, Node
from .pillar import Pillar
from .transform import Action, LeafTransformer
from .utils import SecurePillarException, check_for_dir

log = logging.getLogger(__name__)


@attr.s(frozen=True, kw_only=True)
class SecurePillar:
    """Everything needed to work on pillar files, shared by every operation in a run."""

    gpg: GPG = attr.ib(factory=GPG)
    recipient: typing.Optional[str] = attr.ib(default=None)
    element: typing.Optional[str] = attr.ib(default=None)
    extension: str = attr.ib(default=batch.SLS_EXTENSION)
    workers: int = attr.ib(factory=batch.default_workers)

    @property
    def transformer(self) -> LeafTransformer:
        return LeafTransformer(self.gpg, recipient=self.recipient)

    @property
    def pillar(self) -> Pillar:
        return Pillar(self.transformer, element=self.element)

    def check_recipient(self) -> None:
        """Fail early if the key to encrypt with isn't in the key ring."""
        if not self.recipient:
            raise SecurePillarException("A PGP key name, email or id is required (--pgp-key)")
        if self.gpg.find_key(self.recipient) is None:
            raise SecurePillarException(f"Unable to find key '{self.recipient}' in the key ring")

    def secret_path(self, name: str) -> str:
        return f"{self.element}:{name}" if self.element else name

    def set_secrets(
            self,
            node: Node,
            names: typing.Sequence[str],
            values: typing.Sequence[str]) -> Node:
        if len(names) != len(values):
            raise SecurePillarException(
                f"Got {len(names)} secret names but {len(values)} secret values")
        for name, value in zip(names, values):
            log.debug(f"Setting {self.secret_path(name)}")
            node = documents.set_path(
                node, self.secret_path(name), self.transformer.encrypt(value))
        return node

    def create(self, names: typing.Sequence[str], values: typing.Sequence[str]) -> str:
        """Create a new document holding the given secrets, encrypted."""
        return documents.format_buffer(self.set_secrets(Mapping(), names, values))

    def update(
            self,
            path: pathlib.Path,
            names: typing.Sequence[str],
            values: typing.Sequence[str]) -> str:
        """Add or replace encrypted secrets in an existing document."""
        node = self.pillar.read(path)
        return documents.format_buffer(self.set_secrets(node, names, values))

    def encrypt(self, path: pathlib.Path) -> str:
        return self.pillar.apply(path, Action.ENCRYPT)

    def decrypt(self, path: pathlib.Path) -> str:
        return self.pillar.apply(path, Action.DECRYPT)

    def keys(self, path: pathlib.Path) -> str:
        return self.pillar.apply(path, Action.IDENTIFY)

    def sweep(self, directory: pathlib.Path, action: Action) -> int:
        return batch.sweep(self.pillar, directory, action, extension=self.extension)

    def rotate(self, path: pathlib.Path) -> batch.RotationReport:
        """Re-encrypt a single file or every file in a directory."""
        if path.is_file():
            report = batch.RotationReport()
            ok = batch.rotate_file(self.pillar, path)
            (report.rotated if ok else report.failed).append(path)
            return report
        check_for_dir(path)
        return batch.rotate_directory(
            self.pillar, path, extension=self.extension, workers=self.workers)

    def get_path(
            self,
            path: pathlib.Path,
            yaml_path: str,
            action: typing.Optional[Action] = None) -> typing.Optional[Node]:
        """Find the value at a colon separated path, optionally transforming it."""
        node = documents.get_path(self.pillar.read(path), yaml_path)
        if node is None or action is None:
            return node
        return Pillar(self.transformer).transform(node, action)


def secure_pillar(
        recipient: typing.Optional[str] = None,
        element: typing.Optional[str] = None,
        gpg: typing.Optional[GPG] = None,
        **kwargs) -> SecurePillar:
    return SecurePillar(
        gpg=gpg if gpg is not None else GPG(),
        recipient=recipient,
        element=element,
        **kwargs)
