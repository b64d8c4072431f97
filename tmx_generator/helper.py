import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Optional

import pygame


logger = logging.getLogger(__name__)

BACKUPS = 2


def backup_file(filename: str, backups: int = BACKUPS) -> None:
    """Keeps up to ``backups`` previous versions of ``filename`` as name.bak1.ext, name.bak2.ext, ...

    The file itself is copied, not moved, so it stays in place until it is replaced.
    """
    path = Path(filename)
    if backups <= 0 or not path.exists():
        return

    def backup_name(i: int) -> Path:
        return path.with_name(f"{path.stem}.bak{i}{path.suffix}")

    last_backup = backup_name(backups)
    if last_backup.exists():
        os.remove(last_backup)
    for i in range(backups - 1, 0, -1):
        if backup_name(i).exists():
            os.rename(backup_name(i), backup_name(i + 1))
    shutil.copy2(path, backup_name(1))


def _file_mode(filename: str) -> int:
    """Mode of the existing file, or the mode a newly created file gets under the current umask."""
    if os.path.exists(filename):
        return stat.S_IMODE(os.stat(filename).st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_atomically(filename: str, content: str) -> None:
    """Writes content to a temporary file next to ``filename`` and moves it in place.

    Either the whole new document is at ``filename`` or nothing changed there.
    """
    directory = os.path.dirname(os.path.abspath(filename))
    os.makedirs(directory, exist_ok=True)
    fd, temp_filename = tempfile.mkstemp(prefix=f".{os.path.basename(filename)}.", suffix=".tmp", dir=directory)
    replaced = False
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n", buffering=128 * 1024) as f:
            f.write(content)
        # mkstemp creates the file as 0600
        os.chmod(temp_filename, _file_mode(filename))
        os.replace(temp_filename, filename)
        replaced = True
    finally:
        if not replaced and os.path.exists(temp_filename):
            os.remove(temp_filename)


def image_size(filename: str) -> Optional[tuple[int, int]]:
    if not os.path.exists(filename):
        logger.warning(f"Image atlas '{filename}' does not exist; its size is unknown")
        return None
    try:
        return pygame.image.load(filename).get_size()
    except pygame.error as e:
        logger.warning(f"Cannot read image atlas '{filename}': {e}")
        return None


class AtlasCopier:
    """Copies tileset images next to the map file so the map can reference them by file name."""

    def copy(self, image_filename: str, destination_dir: str) -> str:
        name = os.path.basename(image_filename)
        destination = os.path.join(destination_dir, name)

        if not os.path.exists(image_filename):
            logger.warning(f"Image atlas '{image_filename}' does not exist; not copying it to '{destination_dir}'")
            return name

        if os.path.exists(destination) and os.path.samefile(image_filename, destination):
            return name

        os.makedirs(destination_dir, exist_ok=True)
        shutil.copyfile(image_filename, destination)
        logger.debug(f"Copied image atlas '{image_filename}' to '{destination}'")
        return name
