"""Walk a local file or directory and mirror it onto the WebDAV server."""

import logging
import os
import posixpath
import re
from pathlib import Path
from typing import Optional, Pattern, Union

from .client import WebDAVClient
from .coordinator import UploadCoordinator
from .exceptions import ValidationError
from .models import TreeUploadResult

logger = logging.getLogger(__name__)


def compile_exclude(pattern: Optional[Union[str, Pattern]]) -> Optional[Pattern]:
    """Compile an exclusion regex, raising ``ValidationError`` if it is invalid."""
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError("exclude", pattern, str(e)) from e


def remote_join(remote_root: str, relative_path: str) -> str:
    """Join a local relative path onto a remote root using ``/`` separators."""
    parts = [p for p in Path(relative_path).parts if p not in ("", ".")]
    return posixpath.join(remote_root.replace("\\", "/") or "/", *parts)


class TreeWalker:
    """Creates remote collections and uploads every non-excluded file."""

    def __init__(
        self,
        client: WebDAVClient,
        coordinator: UploadCoordinator,
        exclude: Optional[Union[str, Pattern]] = None,
    ) -> None:
        self.client = client
        self.coordinator = coordinator
        self.exclude = compile_exclude(exclude)

    def is_excluded(self, relative_path: str, is_dir: bool = False) -> bool:
        """Match the exclusion pattern against a ``/``-separated relative path.

        Directories are also tested with a trailing ``/`` so that ``^\\.git/``
        excludes the ``.git`` directory itself.
        """
        if self.exclude is None:
            return False
        if self.exclude.search(relative_path):
            return True
        return is_dir and bool(self.exclude.search(relative_path + "/"))

    def upload(self, local_path: Union[str, Path], remote_root: str) -> TreeUploadResult:
        """Upload a file or directory tree under ``remote_root``."""
        local_path = Path(os.path.normpath(str(local_path)))
        if not local_path.exists():
            raise FileNotFoundError(f"Local path not found: {local_path}")

        result = TreeUploadResult()
        if local_path.is_dir():
            self._upload_directory(local_path, remote_root, result)
        else:
            remote_path = remote_join(remote_root, local_path.name)
            result.files.append(self.coordinator.upload(str(local_path), remote_path))

        logger.info(
            f"Finished {local_path}: {len(result.files)} files, "
            f"{len(result.directories)} directories, {len(result.excluded)} excluded"
        )
        return result

    def _upload_directory(
        self, root: Path, remote_root: str, result: TreeUploadResult
    ) -> None:
        def raise_walk_error(error: OSError) -> None:
            raise error

        for dirpath, dirnames, filenames in os.walk(root, onerror=raise_walk_error):
            relative_dir = Path(dirpath).relative_to(root)

            kept = []
            for name in sorted(dirnames):
                relative = (relative_dir / name).as_posix()
                if self.is_excluded(relative, is_dir=True):
                    logger.info(f"Excluding directory {relative}")
                    result.excluded.append(relative)
                    continue
                remote_path = remote_join(remote_root, relative)
                self.client.mkdir(remote_path)
                result.directories.append(remote_path)
                kept.append(name)
            # os.walk only descends into what is left in dirnames
            dirnames[:] = kept

            for name in sorted(filenames):
                relative = (relative_dir / name).as_posix()
                if self.is_excluded(relative):
                    logger.info(f"Excluding file {relative}")
                    result.excluded.append(relative)
                    continue
                remote_path = remote_join(remote_root, relative)
                result.files.append(
                    self.coordinator.upload(str(Path(dirpath) / name), remote_path)
                )
