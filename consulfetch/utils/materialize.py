"""
Writing fetched values to disk
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..common.errors import MaterializeError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.properties"

_OCTAL_RE = re.compile(r'[0-7]+')
_MAX_MODE = 0xFFFFFFFF


def parse_permissions(value):
    """Parse an octal permission string such as '0744' into an int"""
    if not _OCTAL_RE.fullmatch(value):
        raise ValueError(f"invalid octal permissions '{value}'")
    mode = int(value, 8)
    if mode > _MAX_MODE:
        raise ValueError(f"permissions '{value}' out of range")
    return mode


@dataclass(frozen=True)
class OutputTarget:
    base_dir: str
    key: str
    mode: int

    @property
    def directory(self) -> Path:
        base = os.path.abspath(self.base_dir)
        directory = os.path.abspath(os.path.join(base, self.key.lstrip('/')))
        if directory == base or os.path.commonpath([base, directory]) != base:
            raise MaterializeError(f"Key '{self.key}' resolves outside of '{self.base_dir}'")
        return Path(directory)

    @property
    def path(self) -> Path:
        return self.directory / CONFIG_FILENAME


def ensure_directory(directory, mode):
    """Create directory and any missing parents with exactly mode.

    Directories that already exist keep their mode.
    """
    directory = Path(directory)
    if directory.is_dir():
        logger.debug(f"Directory {directory} already exists")
        return False

    missing = []
    current = directory
    while not current.exists() and current != current.parent:
        missing.append(current)
        current = current.parent
    if not missing:
        raise MaterializeError(f"Unable to create directory '{directory}': exists and is not a directory")

    try:
        for path in reversed(missing):
            try:
                os.mkdir(path, mode)
            except FileExistsError:
                if not path.is_dir():
                    raise
                continue
            # mkdir honours the umask
            os.chmod(path, mode)
    except OSError as e:
        raise MaterializeError(f"Unable to create directory '{directory}': {e}") from e
    logger.debug(f"Created directory {directory} with mode {mode:o}")
    return True


def write_atomic(path, data, mode):
    """Write data to path via a temporary file and rename"""
    path = Path(path)
    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='wb',
            dir=path.parent,
            prefix=f'.{path.name}.',
            suffix='.tmp',
            delete=False,
        ) as f:
            temp_path = f.name
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except OSError as e:
        if temp_path and os.path.exists(temp_path):
            os.unlink(temp_path)
        raise MaterializeError(f"Unable to write '{path}': {e}") from e


def materialize(target, value):
    """Create the target directory and write value into config.properties"""
    ensure_directory(target.directory, target.mode)
    write_atomic(target.path, value, target.mode)
    return target.path
