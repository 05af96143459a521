import logging
import os
import pathlib
import subprocess
import typing

import attr

from .utils import CryptoError, SecurePillarException, expand_tilde

log = logging.getLogger(__name__)

PGP_HEADER = '-----BEGIN PGP MESSAGE-----'


def is_encrypted(text: str) -> bool:
    return PGP_HEADER in text


@attr.s(frozen=True)
class GPG:
    """
    Runs the gpg binary.

    Each call is a separate gpg process, so a single instance can be shared
    between threads as long as the key rings aren't modified during a run.
    """

    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None, converter=expand_tilde)
    pubring: typing.Optional[pathlib.Path] = attr.ib(default=None, converter=expand_tilde)
    secring: typing.Optional[pathlib.Path] = attr.ib(default=None, converter=expand_tilde)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--batch', '--yes')
        if self.pubring:
            command = (*command, '--no-default-keyring', '--keyring', self.pubring.as_posix())
        if self.secring:
            command = (*command, '--secret-keyring', self.secring.as_posix())
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            stdin: typing.Optional[str] = None,
            check: bool = True) -> subprocess.CompletedProcess:
        env = dict(os.environ)
        if self.home:
            env['GNUPGHOME'] = self.home.as_posix()
        try:
            return subprocess.run(
                self.command(arguments),
                encoding='utf-8',
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                check=check)
        except subprocess.CalledProcessError as error:
            for line in error.stderr.splitlines():
                log.error(line)
            raise CryptoError(
                f"gpg {arguments[-1]} failed with exit status {error.returncode}") from error
        except FileNotFoundError as error:
            raise CryptoError("Could not find the gpg executable") from error
        except UnicodeDecodeError as error:
            raise CryptoError(f"gpg {arguments[-1]} produced output that is not valid UTF-8") from error

    def check_keyrings(self) -> None:
        for name, path in (('public', self.pubring), ('private', self.secring)):
            if path is not None and not path.is_file():
                raise SecurePillarException(f"Cannot read {name} key ring {path}")

    def encrypt_text(self, text: str, recipients: typing.Iterable[str]) -> str:
        """Encrypt text and return it as an armored message."""
        log.debug("Encrypting a value")
        args: typing.List[str] = ['--armor', '--trust-model', 'always']
        for recipient in recipients:
            args += ['--recipient', recipient]
        args += ['--encrypt']
        return self.run(args, stdin=text).stdout

    def decrypt_text(self, text: str) -> str:
        log.debug("Decrypting a value")
        return self.run(['--decrypt'], stdin=text).stdout

    def recipients(self, text: str) -> typing.List[str]:
        """List the key ids an armored message was encrypted to."""
        result = self.run(
            ['--status-fd', '1', '--list-only', '--decrypt'],
            stdin=text,
            check=False)
        key_ids = []
        for line in result.stdout.splitlines():
            fields = line.split()
            if fields[:2] == ['[GNUPG:]', 'ENC_TO']:
                key_ids.append(fields[2].upper())
        if not key_ids:
            for line in result.stderr.splitlines():
                log.error(line)
            raise CryptoError("Unable to read the recipients of a PGP message")
        return key_ids

    def list_keys(self, name: str) -> typing.List[typing.List[str]]:
        """Return the colon separated records gpg lists for a key."""
        result = self.run(['--with-colons', '--list-keys', name], check=False)
        return [line.split(':') for line in result.stdout.splitlines()]

    def identity(self, key_id: str) -> typing.Optional[str]:
        """Return the first user id of the key with the given id."""
        for record in self.list_keys(key_id):
            if record[0] == 'uid' and len(record) > 9:
                return record[9]
        return None

    def find_key(self, name: str) -> typing.Optional[str]:
        """Return the fingerprint of a key matching a name, email or id."""
        for record in self.list_keys(name):
            if record[0] == 'fpr' and len(record) > 9:
                return record[9]
        return None
