"""
Synthetic test tree for trying out duplicate detection.

Every generated content is written `duplicates_per_file` times under different
names: the first copy in the base directory, the rest in random subdirectories.
"""
import io
import logging
import random
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Union

from PIL import Image

from . import config


def _random_date_str(rng: random.Random) -> str:
    start, end = config.GENERATOR_DATE_RANGE
    offset = rng.random() * (end - start).total_seconds()
    return (start + timedelta(seconds=offset)).strftime("%Y-%m-%d")


def _make_content(rng: random.Random, ext: str) -> bytes:
    if ext in config.IMAGE_EXTS:
        # Real, decodable image of random noise
        width = rng.randint(16, 256)
        height = rng.randint(16, 256)
        img = Image.frombytes("RGB", (width, height), rng.randbytes(width * height * 3))
        buf = io.BytesIO()
        img.save(buf, format="PNG" if ext == ".png" else "JPEG")
        return buf.getvalue()
    return rng.randbytes(rng.randint(config.GENERATOR_MIN_BYTES, config.GENERATOR_MAX_BYTES))


def _unique_path(rng: random.Random, directory: Path, prefix: str, ext: str) -> Path:
    while True:
        name = f"{prefix}{_random_date_str(rng)}_{rng.randint(0, 999):03d}{ext}"
        path = directory / name
        if not path.exists():
            return path


def generate_test_files(base_dir: Union[str, Path],
                        count: int = 20,
                        duplicates_per_file: int = 2,
                        seed: Optional[int] = None) -> List[Path]:
    """
    Returns the written paths (count * duplicates_per_file of them).
    """
    if count < 1:
        raise ValueError("Count must be greater than 0")
    if duplicates_per_file < 1:
        raise ValueError("Duplicates must be greater than 0")

    rng = random.Random(seed)
    base = Path(base_dir)
    base.mkdir(parents=True, exist_ok=True)

    subdirs = [base / name for name in config.GENERATOR_SUBDIRS]
    for d in subdirs:
        d.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    for _ in range(count):
        ext, prefix = rng.choice(config.GENERATOR_FILE_TYPES)
        content = _make_content(rng, ext)

        for j in range(duplicates_per_file):
            target_dir = base if j == 0 else rng.choice(subdirs)
            path = _unique_path(rng, target_dir, prefix, ext)
            path.write_bytes(content)
            logging.info(f"Created: {path}")
            written.append(path)

    logging.info(f"Generated {len(written)} files ({count} distinct contents) in {base}")
    return written
