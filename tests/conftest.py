import base64
import pathlib
import typing

import attr
import click.testing
import pytest

from secure_pillar import api, cli
from secure_pillar.api import SecurePillar
from secure_pillar.gpg import PGP_HEADER
from secure_pillar.utils import CryptoError

PGP_FOOTER = '-----END PGP MESSAGE-----'

OLD_KEY = 'AAAA1111BBBB2222'
NEW_KEY = 'CCCC3333DDDD4444'
LOST_KEY = 'EEEE5555FFFF6666'

KEYS = {
    OLD_KEY: 'Salt Master <salt@example.invalid>',
    NEW_KEY: 'New Salt Master <new-salt@example.invalid>',
    LOST_KEY: 'Lost Key <lost@example.invalid>',
}

EXAMPLE = """\
secure_vars:
  db_pass: plaintext123
  db_users:
  - alice
  - bob
other:
  port: 5432
  host: db.example.invalid
"""


@attr.s(frozen=True)
class FakeGPG:
    """
    Stands in for the gpg binary.

    Messages look like armored PGP messages but only base64 encode the key id
    they were "encrypted" to and the plaintext. Messages for keys missing from
    `secret_keys` can't be decrypted.
    """

    keys: typing.Dict[str, str] = attr.ib(factory=lambda: dict(KEYS))
    secret_keys: typing.FrozenSet[str] = attr.ib(default=frozenset({OLD_KEY, NEW_KEY}))

    def check_keyrings(self):
        pass

    def find_key(self, name: str) -> typing.Optional[str]:
        for key_id, uid in self.keys.items():
            if name == key_id or name in uid:
                return key_id
        return None

    def encrypt_text(self, text: str, recipients: typing.Iterable[str]) -> str:
        key_ids = [self.find_key(r) for r in recipients]
        if None in key_ids:
            raise CryptoError(f"No public key for {recipients}")
        payload = base64.b64encode(f"{key_ids[0]}\n{text}".encode()).decode()
        return f"{PGP_HEADER}\n\n{payload}\n{PGP_FOOTER}\n"

    @staticmethod
    def unpack(text: str) -> typing.Tuple[str, str]:
        payload = text.split(PGP_HEADER)[1].split(PGP_FOOTER)[0].strip()
        key_id, _, plaintext = base64.b64decode(payload).decode().partition('\n')
        return key_id, plaintext

    def decrypt_text(self, text: str) -> str:
        key_id, plaintext = self.unpack(text)
        if key_id not in self.secret_keys:
            raise CryptoError("decryption failed: No secret key")
        return plaintext

    def recipients(self, text: str) -> typing.List[str]:
        return [self.unpack(text)[0]]

    def identity(self, key_id: str) -> typing.Optional[str]:
        return self.keys.get(key_id)


@pytest.fixture()
def gpg() -> FakeGPG:
    return FakeGPG()


@pytest.fixture()
def sp(gpg) -> SecurePillar:
    return api.secure_pillar(recipient='Salt Master', gpg=gpg)


@pytest.fixture()
def pillar(sp):
    return sp.pillar


@pytest.fixture()
def example(tmp_path) -> pathlib.Path:
    path = tmp_path / 'example.sls'
    path.write_text(EXAMPLE)
    return path


@pytest.fixture()
def encrypted(gpg):
    """Encrypt a value to the key with a name, like 'Salt Master' or 'Lost Key'."""
    def encrypted_func(name: str, text: str) -> str:
        return gpg.encrypt_text(text, recipients=[name])

    return encrypted_func


@pytest.fixture()
def invoke(monkeypatch, gpg):
    monkeypatch.setattr(cli, 'GPG', lambda **kwargs: gpg)

    def invoke_func(arguments: typing.Sequence[str], exit_code: int = 0, input=None):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(cli.main, arguments, input=input)
        if result.exit_code != exit_code:
            message = f"Command secure-pillar {' '.join(arguments)} exited with {result.exit_code}"
            raise Exception(f"{message}\n{result.output}") from result.exception
        return result.output.splitlines()

    return invoke_func
