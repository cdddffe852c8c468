"""
Image Housekeeping
==================
Helpers for the ``pics`` folders that ship next to test-bank files.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp"}
IGNORED_FILES = {"thumbs.db"}
PICS_DIR = "pics"


def normalize_image_extensions(image_dir: str) -> dict[str, str]:
    """
    Copy every ``*.JPG`` in a directory to a ``*.jpg`` sibling.

    Returns a mapping of original to normalized file names.
    """
    mapping: dict[str, str] = {}
    directory = Path(image_dir)

    if not directory.is_dir():
        logger.warning(f"Image directory {image_dir} does not exist")
        return mapping

    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix != ".JPG":
            continue
        target = path.with_suffix(".jpg")
        shutil.copyfile(path, target)
        mapping[path.name] = target.name
        logger.debug(f"Normalized {path.name} to {target.name}")

    logger.info(f"Normalized {len(mapping)} image files in {image_dir}")
    return mapping


def _find_pics_dirs(root: Path, subdirs: Iterable[str]) -> list[Path]:
    subdirs = list(subdirs)
    if subdirs:
        candidates = [root / sub / PICS_DIR for sub in subdirs]
    else:
        candidates = [
            entry / PICS_DIR for entry in sorted(root.iterdir()) if entry.is_dir()
        ]
    return [c for c in candidates if c.is_dir()]


def _is_image(path: Path) -> bool:
    return (
        path.is_file()
        and path.suffix.lower() in IMAGE_EXTENSIONS
        and path.name.lower() not in IGNORED_FILES
    )


def sync_images(root_dir: str, subdirs: Optional[Iterable[str]] = None) -> dict[str, int]:
    """
    Make every ``<root>/<subdir>/pics`` folder hold the union of all images.

    Names are compared case-insensitively; the first copy found wins.
    Returns the number of files copied into each pics folder.
    """
    root = Path(root_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root_dir}")

    pics_dirs = _find_pics_dirs(root, subdirs or ())
    if not pics_dirs:
        logger.error("No pics directories found")
        return {}

    logger.info(
        f"Found {len(pics_dirs)} pics directories: "
        f"{', '.join(d.parent.name for d in pics_dirs)}"
    )

    all_images: dict[str, Path] = {}
    for pics_dir in pics_dirs:
        for path in sorted(pics_dir.iterdir()):
            if _is_image(path):
                all_images.setdefault(path.name.lower(), path)

    logger.info(f"Found {len(all_images)} unique images across all directories")

    copied: dict[str, int] = {}
    for target_dir in pics_dirs:
        existing = {p.name.lower() for p in target_dir.iterdir()}
        count = 0
        for name, source in all_images.items():
            if name not in existing:
                shutil.copyfile(source, target_dir / source.name)
                count += 1
        copied[target_dir.parent.name] = count
        logger.info(f"Copied {count} images to {target_dir.parent.name}/{PICS_DIR}")

    return copied
