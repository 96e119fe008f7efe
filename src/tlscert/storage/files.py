"""
Persist issued key/certificate pairs to disk.

Both files of a pair are staged as temporary files next to their targets
and renamed into place only once both are fully written. Files already at
the targets are backed up first; if anything fails they are restored and
new outputs are removed, so the previous pair (or nothing) is left behind.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.errors import StorageError
from ..core.specs import IssuedMaterial

LOGGER = logging.getLogger("tlscert.storage")

KEY_FILE_MODE = 0o600
CERT_FILE_MODE = 0o644


# ---------- helpers ----------

def _stage(path: Path, data: bytes, mode: int) -> Path:
    """
    Write data to a temporary file in path's directory.

    Args:
        path (Path): The final destination (used for directory and name prefix).
        data (bytes): The content to write.
        mode (int): File permission bits to apply.

    Returns:
        Path: The temporary file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)  # Make sure the parent directory exists
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp, mode)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
    return Path(tmp)


def _discard(paths: List[Path]) -> None:
    for p in paths:
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            LOGGER.warning("could not remove %s: %s", p, e)


def _backup(path: Path) -> Optional[Path]:
    """Copy an existing file next to itself; None when there is nothing to keep."""
    if not path.exists():
        return None
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".bak", dir=path.parent)
    os.close(fd)
    try:
        shutil.copy2(path, tmp)     # Keeps the mode bits
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
    return Path(tmp)


def _rollback(installed: List[Path], backups: Dict[Path, Path]) -> None:
    for dest in installed:
        try:
            if dest in backups:
                os.replace(backups.pop(dest), dest)
            else:
                dest.unlink(missing_ok=True)
        except OSError as e:
            LOGGER.error("could not roll back %s: %s", dest, e)


# ---------- public API ----------

def write_material(
    material: IssuedMaterial,
    key_path: str | Path,
    cert_path: str | Path,
) -> Tuple[Path, Path]:
    """
    Write a private key and certificate, both or neither.

    Args:
        material (IssuedMaterial): PEM key and certificate to store.
        key_path (str | Path): Destination of the private key (mode 0600).
        cert_path (str | Path): Destination of the certificate (mode 0644).

    Returns:
        tuple[Path, Path]: The key and certificate paths.

    Raises:
        StorageError: If either file cannot be written. Files that existed
            before are restored and new output is removed.
    """
    key_dest = Path(key_path)
    cert_dest = Path(cert_path)
    if key_dest.resolve() == cert_dest.resolve():
        raise StorageError(f"key and certificate must go to different files: {key_dest}")

    staged: List[Path] = []
    installed: List[Path] = []
    backups: Dict[Path, Path] = {}
    try:
        key_tmp = _stage(key_dest, material.private_key, KEY_FILE_MODE)
        staged.append(key_tmp)
        cert_tmp = _stage(cert_dest, material.certificate, CERT_FILE_MODE)
        staged.append(cert_tmp)
        for dest in (key_dest, cert_dest):
            backup = _backup(dest)
            if backup is not None:
                backups[dest] = backup

        os.replace(key_tmp, key_dest)
        installed.append(key_dest)
        os.replace(cert_tmp, cert_dest)
        installed.append(cert_dest)
    except OSError as e:
        _rollback(installed, backups)
        _discard(staged + list(backups.values()))
        raise StorageError(f"failed to write {key_dest} / {cert_dest}: {e}") from e

    _discard(list(backups.values()))
    LOGGER.info("wrote key %s and certificate %s", key_dest, cert_dest)
    return key_dest, cert_dest


def read_material_file(path: str | Path) -> bytes:
    """
    Read a key or certificate file as raw bytes.

    Raises:
        StorageError: If the file does not exist or cannot be read.
    """
    p = Path(path)
    if not p.is_file():     # Ensure file exists before reading bytes
        raise StorageError(f"Missing file: {p}")
    try:
        return p.read_bytes()
    except OSError as e:
        raise StorageError(f"Cannot read {p}: {e}") from e
