"""Reading, writing and discovering ``.smali`` files on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pysmali.errors import SmaliIOError, SmaliParseError
from pysmali.models import SmaliClass, SmaliSettings
from pysmali.parser import parse_class
from pysmali.writer import render_class

logger = logging.getLogger(__name__)


def read_class_from_file(path: str | Path, settings: SmaliSettings | None = None) -> SmaliClass:
    """Read and parse one ``.smali`` file.

    Parse errors get the file path added to their details.
    """
    settings = settings or SmaliSettings()
    path = Path(path)
    try:
        text = path.read_text(encoding=settings.encoding)
    except (OSError, UnicodeDecodeError) as e:
        raise SmaliIOError(f"cannot read {path}: {e}", path=str(path)) from e

    logger.debug("parsing %s", path)
    try:
        return parse_class(text)
    except SmaliParseError as e:
        e.details["path"] = str(path)
        raise


def write_class_to_file(
    cls: SmaliClass, path: str | Path, settings: SmaliSettings | None = None
) -> None:
    """Render ``cls`` to ``path``, creating missing parent directories."""
    settings = settings or SmaliSettings()
    path = Path(path)
    text = render_class(cls, settings)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding=settings.encoding)
    except OSError as e:
        raise SmaliIOError(f"cannot write {path}: {e}", path=str(path)) from e
    logger.debug("wrote %s to %s", cls.name, path)


def _smali_paths(root: Path, extension: str) -> list[Path]:
    def _raise(e: OSError) -> None:
        raise e

    paths = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(extension):
                paths.append(Path(dirpath) / filename)
    return paths


def discover_classes(root: str | Path, settings: SmaliSettings | None = None) -> list[SmaliClass]:
    """Parse every smali file under ``root``, recursively.

    Files are visited in sorted order and files with another extension are
    skipped. The first file that cannot be read or parsed aborts the walk.
    """
    settings = settings or SmaliSettings()
    root = Path(root)
    if not root.is_dir():
        raise SmaliIOError(f"{root} is not a directory", path=str(root))
    try:
        paths = _smali_paths(root, settings.file_extension)
    except OSError as e:
        raise SmaliIOError(f"cannot walk {root}: {e}", path=str(root)) from e

    classes = [read_class_from_file(path, settings) for path in paths]
    logger.info("discovered %d smali classes under %s", len(classes), root)
    return classes


find_smali_files = discover_classes
