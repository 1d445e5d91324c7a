"""
Filesystem sink for synced content.
"""

import logging
from pathlib import Path
from typing import AsyncIterable, Dict, Union

PathLike = Union[str, Path]


class StorageError(Exception):
    """Custom exception for filesystem operations."""
    pass


class FileSink:
    """Writes directories and files below the output directory."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'files_written': 0,
            'bytes_written': 0,
            'directories_created': 0,
        }

    def create_dir(self, path: PathLike):
        """Create a directory. Does not fail if it exists already."""
        path = Path(path)
        try:
            path.mkdir()
            self.stats['directories_created'] += 1
        except FileExistsError:
            if not path.is_dir():
                raise StorageError(f"Not a directory: {path}")
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}") from e

    async def write_stream(self, path: PathLike, chunks: AsyncIterable[bytes]) -> int:
        """
        Write all chunks to the file, replacing previous contents.

        Data goes to a ``.part`` file first and is moved into place once the
        stream is complete, so an interrupted download leaves nothing at
        ``path``.

        Returns:
            Number of bytes written
        """
        path = Path(path)
        part = path.with_name(path.name + '.part')
        written = 0
        try:
            with open(part, 'wb') as f:
                async for chunk in chunks:
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            part.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write {path}") from e
        finally:
            part.unlink(missing_ok=True)

        self.stats['files_written'] += 1
        self.stats['bytes_written'] += written
        self.logger.debug(f"Wrote {written} bytes to {path}")
        return written

    def write_text(self, path: PathLike, text: str) -> int:
        """Write text as UTF-8, replacing previous contents."""
        path = Path(path)
        data = text.encode('utf-8')
        try:
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}") from e

        self.stats['files_written'] += 1
        self.stats['bytes_written'] += len(data)
        return len(data)

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def count_entries(self, path: PathLike) -> int:
        """Number of entries in a directory, 0 if it does not exist."""
        try:
            return sum(1 for _ in Path(path).iterdir())
        except OSError:
            return 0

    def get_stats(self) -> Dict[str, int]:
        """Get storage statistics."""
        return self.stats.copy()
