"""Checksums sent alongside uploaded artifacts."""
import hashlib
from pathlib import Path


def sha1_file(path: Path) -> str:
    """Calculate the SHA-1 hex digest of a file, reading it in chunks."""
    hasher = hashlib.sha1()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(65536)  # 64KB chunks
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()
