import functools
import os.path
import pathlib
import typing

import click
import git


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(pathlib.Path(path).as_posix(), pathlib.Path.cwd().as_posix())


def expand_tilde(path: typing.Union[str, pathlib.Path, None]) -> typing.Optional[pathlib.Path]:
    if path is None:
        return None
    return pathlib.Path(path).expanduser()


def check_for_file(path: pathlib.Path) -> None:
    if not path.exists():
        raise SecurePillarException(f"Cannot stat {path}: no such file")
    if path.is_dir():
        raise SecurePillarException(f"{path} is a directory")


def check_for_dir(path: pathlib.Path) -> None:
    if not path.exists():
        raise NotADirectory(f"Cannot stat {path}: no such directory")
    if not path.is_dir():
        raise NotADirectory(f"{path} is not a directory")


class SecurePillarException(click.ClickException):
    pass


class ParseError(SecurePillarException):
    pass


class UnsupportedIncludeDirective(ParseError):
    pass


class CryptoError(SecurePillarException):
    pass


class LeafError(CryptoError):
    """A failure transforming the scalar at a colon separated path."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"{path or '<root>'}: {cause}")
        self.path = path
        self.cause = cause


class TypeMismatch(SecurePillarException):
    pass


class EmptyDirectory(SecurePillarException):
    pass


class NotADirectory(SecurePillarException):
    pass
