import logging
import pathlib
import typing

import click

from . import __doc__, __version__, documents
from .api import SecurePillar, secure_pillar
from .gpg import GPG
from .pillar import STDIO, write_sls_file
from .transform import Action
from .utils import SecurePillarException, find_git_directory, rel

log = logging.getLogger(__name__)


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


input_option = click.option(
    '-f', '--file', 'input_path',
    type=PathType(dir_okay=False, allow_dash=True),
    default='-',
    show_default=True,
    help="Input file, '-' reads from STDIN.")

output_option = click.option(
    '-o', '--outfile', 'output_path',
    type=PathType(dir_okay=False, allow_dash=True),
    default='-',
    show_default=True,
    help="Output file, '-' writes to STDOUT.")

update_option = click.option(
    '-u', '--update', 'in_place',
    default=False,
    is_flag=True,
    help="Write the result back to the input file.")

directory_option = click.option(
    '-D', '--dir', 'directory',
    type=PathType(),
    default=find_git_directory,
    required=True,
    help="Recurse over all .sls files in a directory. "
         "Defaults to the current git repository.")

names_option = click.option(
    '-n', '--name', 'names',
    metavar='NAME',
    multiple=True,
    required=True,
    help="Secret name, may be a colon separated path.")

values_option = click.option(
    '-s', '--value', 'values',
    metavar='VALUE',
    multiple=True,
    help="Secret value, paired with each --name in order.")

yaml_path_option = click.option(
    '-p', '--path', 'yaml_path',
    metavar='PATH',
    required=True,
    help="Colon separated path to a value, e.g. 'secure_vars:db_pass'.")


def output_for(input_path: pathlib.Path, output_path: pathlib.Path, in_place: bool) -> pathlib.Path:
    if in_place and input_path != STDIO:
        return input_path
    return output_path


def show_path(sp: SecurePillar, input_path: pathlib.Path, yaml_path: str, action: Action):
    node = sp.get_path(input_path, yaml_path, action)
    if node is None:
        click.secho(f"Unable to find path: '{yaml_path}'", fg='yellow', err=True)
        return

    if node.is_scalar:
        click.echo(f"{yaml_path}: {node.as_scalar().value}")
    else:
        click.echo(f"{yaml_path}:\n{documents.dump(node)}", nl=False)


@click.group(help=__doc__)
@click.option(
    '-k', '--pgp-key', 'recipient',
    metavar='KEY',
    envvar='SECURE_PILLAR_KEY',
    help="PGP key name, email, or ID to use for encryption.")
@click.option(
    '-e', '--element', 'element',
    metavar='NAME',
    envvar='SECURE_PILLAR_ELEMENT',
    help="Only change values under this top level element.")
@click.option(
    '--pubring', '--pub', 'pubring',
    type=PathType(dir_okay=False),
    envvar='SECURE_PILLAR_PUBRING',
    help="PGP public key ring, instead of the default key ring.")
@click.option(
    '--secring', '--sec', 'secring',
    type=PathType(dir_okay=False),
    envvar='SECURE_PILLAR_SECRING',
    help="PGP private key ring, instead of the default key ring.")
@click.option(
    '--gnupghome', 'home',
    type=PathType(file_okay=False),
    envvar='GNUPGHOME',
    help="GnuPG home directory.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Pass --verbose to gpg.")
@click.pass_context
def main(
        ctx,
        recipient: typing.Optional[str],
        element: typing.Optional[str],
        pubring: typing.Optional[pathlib.Path],
        secring: typing.Optional[pathlib.Path],
        home: typing.Optional[pathlib.Path],
        debug: bool,
        gpg_verbose: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    gpg = GPG(verbose=gpg_verbose, home=home, pubring=pubring, secring=secring)
    gpg.check_keyrings()
    ctx.obj = secure_pillar(recipient=recipient, element=element, gpg=gpg)


@main.command()
def version():
    """Show the application version."""
    click.echo(f"secure-pillar {__version__}")


@main.command()
@names_option
@values_option
@output_option
@click.pass_obj
def create(
        sp: SecurePillar,
        names: typing.Sequence[str],
        values: typing.Sequence[str],
        output_path: pathlib.Path):
    """Create a new file with encrypted values."""
    sp.check_recipient()
    write_sls_file(sp.create(names, values), output_path)


@main.command()
@names_option
@values_option
@input_option
@click.pass_obj
def update(
        sp: SecurePillar,
        names: typing.Sequence[str],
        values: typing.Sequence[str],
        input_path: pathlib.Path):
    """Add or replace encrypted values in a file."""
    sp.check_recipient()
    write_sls_file(sp.update(input_path, names, values), input_path)


@main.group()
def encrypt():
    """Perform encryption operations."""


@encrypt.command(name='all')
@input_option
@output_option
@update_option
@click.pass_obj
def encrypt_all(
        sp: SecurePillar,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        in_place: bool):
    """Encrypt all plain text values in a file."""
    sp.check_recipient()
    buffer = sp.encrypt(input_path)
    write_sls_file(buffer, output_for(input_path, output_path, in_place))


@encrypt.command(name='recurse')
@directory_option
@click.pass_obj
def encrypt_recurse(sp: SecurePillar, directory: pathlib.Path):
    """Encrypt all plain text values in every file in a directory."""
    sp.check_recipient()
    count = sp.sweep(directory, Action.ENCRYPT)
    click.echo(f"Encrypted {count} files in {rel(directory)}")


@main.group()
def decrypt():
    """Perform decryption operations."""


@decrypt.command(name='all')
@input_option
@output_option
@update_option
@click.pass_obj
def decrypt_all(
        sp: SecurePillar,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        in_place: bool):
    """Decrypt all encrypted values in a file."""
    buffer = sp.decrypt(input_path)
    write_sls_file(buffer, output_for(input_path, output_path, in_place))


@decrypt.command(name='recurse')
@directory_option
@click.pass_obj
def decrypt_recurse(sp: SecurePillar, directory: pathlib.Path):
    """Decrypt all encrypted values in every file in a directory."""
    count = sp.sweep(directory, Action.DECRYPT)
    click.echo(f"Decrypted {count} files in {rel(directory)}")


@decrypt.command(name='path')
@input_option
@yaml_path_option
@click.pass_obj
def decrypt_path(sp: SecurePillar, input_path: pathlib.Path, yaml_path: str):
    """Print the decrypted value at a path."""
    show_path(sp, input_path, yaml_path, Action.DECRYPT)


@main.command()
@click.option(
    '-f', '--file', 'input_path',
    type=PathType(dir_okay=False),
    default=None,
    help="Rotate a single file.")
@click.option(
    '-D', '--dir', 'directory',
    type=PathType(),
    default=find_git_directory,
    help="Rotate all .sls files in a directory. "
         "Defaults to the current git repository.")
@click.pass_obj
def rotate(
        sp: SecurePillar,
        input_path: typing.Optional[pathlib.Path],
        directory: typing.Optional[pathlib.Path]):
    """
    Decrypt existing files and re-encrypt them with a new key.

    Files are only rewritten once all of their values were re-encrypted,
    a file that fails is left unchanged.
    """
    sp.check_recipient()
    target = input_path or directory
    if target is None:
        raise SecurePillarException("Either --file or --dir is required")

    report = sp.rotate(target)
    click.echo(f"Rotated {len(report.rotated)} of {len(report)} files")
    if report.failed:
        raise SecurePillarException(
            f"Failed to rotate: {', '.join(rel(path) for path in report.failed)}")


@main.group()
def keys():
    """Show the PGP keys values were encrypted to."""


@keys.command(name='all')
@input_option
@click.pass_obj
def keys_all(sp: SecurePillar, input_path: pathlib.Path):
    """Show the key used for each value in a file."""
    click.echo(sp.keys(input_path), nl=False)


@keys.command(name='recurse')
@directory_option
@click.pass_obj
def keys_recurse(sp: SecurePillar, directory: pathlib.Path):
    """Show the keys used in every file in a directory."""
    count = sp.sweep(directory, Action.IDENTIFY)
    click.echo(f"Checked {count} files in {rel(directory)}")


@keys.command(name='path')
@input_option
@yaml_path_option
@click.pass_obj
def keys_path(sp: SecurePillar, input_path: pathlib.Path, yaml_path: str):
    """Show the key used for the value at a path."""
    show_path(sp, input_path, yaml_path, Action.IDENTIFY)
