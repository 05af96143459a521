"""
Applying actions to every pillar file in a directory.

A sweep processes files one at a time and skips files that fail. A rotation
re-encrypts files in parallel, holding at most one decrypted document in
memory per worker and writing each file once, only after it was re-encrypted.
"""

import concurrent.futures
import logging
import os
import pathlib
import threading
import typing

import attr
import click

from .pillar import Pillar, write_sls_file
from .transform import Action
from .utils import EmptyDirectory, SecurePillarException, check_for_dir, rel

log = logging.getLogger(__name__)

SLS_EXTENSION = '.sls'


def find_sls_files(
        directory: pathlib.Path,
        extension: str = SLS_EXTENSION) -> typing.Sequence[pathlib.Path]:
    """Find files below a directory with the extension anywhere in their name."""
    check_for_dir(directory)
    log.info(f"Searching for {extension} files in {directory}")
    return tuple(sorted(
        p for p in directory.resolve().glob('**/*')
        if p.is_file() and extension in p.name))


def sweep(
        pillar: Pillar,
        directory: pathlib.Path,
        action: Action,
        extension: str = SLS_EXTENSION,
        echo: typing.Callable[[str], None] = click.echo) -> int:
    """
    Apply an action to every file in a directory, in place.

    Identifying keys prints a report for each file instead of writing.
    Files that fail are logged and skipped. Returns the number of files
    that were processed.
    """
    files = find_sls_files(directory, extension)
    if not files:
        raise EmptyDirectory(f"{directory} has no {extension} files")

    count = 0
    for path in files:
        log.info(f"Processing {rel(path)}")
        try:
            buffer = pillar.apply(path, action)
            if action is Action.IDENTIFY:
                echo(f"{rel(path)}:\n{buffer}")
            else:
                write_sls_file(buffer, path)
        except (SecurePillarException, OSError) as error:
            message = error.message if isinstance(error, SecurePillarException) else error
            log.warning(f"Skipping {rel(path)}: {message}")
            continue
        count += 1

    log.info(f"Processed {count} of {len(files)} files")
    return count


def rotate_file(pillar: Pillar, path: pathlib.Path) -> bool:
    """
    Re-encrypt a file with the configured key.

    The file is only written once the new contents are complete, so a
    failure leaves it exactly as it was.
    """
    log.info(f"Rotating {rel(path)}")
    try:
        buffer = pillar.rotate(path)
        write_sls_file(buffer, path)
    except (SecurePillarException, OSError) as error:
        message = error.message if isinstance(error, SecurePillarException) else error
        log.error(f"Could not rotate {rel(path)}: {message}")
        return False
    return True


def default_workers() -> int:
    return os.cpu_count() or 1


@attr.s(frozen=True)
class RotationReport:
    rotated: typing.List[pathlib.Path] = attr.ib(factory=list)
    failed: typing.List[pathlib.Path] = attr.ib(factory=list)

    def __len__(self):
        return len(self.rotated) + len(self.failed)


@attr.s
class Rotation:
    """
    Rotate many files on a bounded pool of worker threads.

    A slot is taken from the semaphore before a file is handed to the pool
    and returned when the worker finishes, whether or not it succeeded, or
    straight away if the pool refuses the file.
    Setting `cancel` stops new files from starting; files already being
    rotated are finished.
    """

    pillar: Pillar = attr.ib()
    workers: int = attr.ib(factory=default_workers)
    cancel: threading.Event = attr.ib(factory=threading.Event)
    semaphore: threading.BoundedSemaphore = attr.ib(init=False)

    @semaphore.default
    def _semaphore(self):
        return threading.BoundedSemaphore(self.workers)

    def worker(self, path: pathlib.Path) -> bool:
        try:
            return rotate_file(self.pillar, path)
        finally:
            self.semaphore.release()

    def run(self, files: typing.Iterable[pathlib.Path]) -> RotationReport:
        report = RotationReport()
        futures: typing.Dict[concurrent.futures.Future, pathlib.Path] = {}

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.workers) as executor:
            for path in files:
                self.semaphore.acquire()
                if self.cancel.is_set():
                    self.semaphore.release()
                    log.warning("Rotation cancelled, not starting any more files")
                    break
                try:
                    futures[executor.submit(self.worker, path)] = path
                except BaseException:
                    self.semaphore.release()
                    raise

            for future in concurrent.futures.as_completed(futures):
                path = futures[future]
                if future.result():
                    report.rotated.append(path)
                else:
                    report.failed.append(path)

        return report


def rotate_directory(
        pillar: Pillar,
        directory: pathlib.Path,
        extension: str = SLS_EXTENSION,
        workers: typing.Optional[int] = None) -> RotationReport:
    files = find_sls_files(directory, extension)
    if not files:
        raise EmptyDirectory(f"{directory} has no {extension} files")

    rotation = Rotation(pillar, workers=workers or default_workers())
    report = rotation.run(files)
    log.info(f"Finished processing {len(report)} files")
    for path in report.failed:
        log.warning(f"Failed to rotate {rel(path)}")
    return report
