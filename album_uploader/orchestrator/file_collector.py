"""File collection utilities for command line intake."""
import mimetypes
from pathlib import Path
from typing import Iterable, List

from ..models import MediaFile, MediaKind


def is_media(path: Path) -> bool:
    content_type, _ = mimetypes.guess_type(path.name)
    return MediaKind.from_content_type(content_type) is not None


class FileCollector:
    """Collects media files from paths and folders."""

    @staticmethod
    def collect_files(folder: Path) -> List[Path]:
        """
        Collect all media files recursively.

        Args:
            folder: Root folder to scan

        Returns:
            Sorted list of media file paths
        """
        files = []
        for item in Path(folder).rglob("*"):
            if item.is_file() and is_media(item):
                files.append(item)
        return sorted(files)

    @classmethod
    def collect(cls, sources: Iterable[Path]) -> List[MediaFile]:
        """
        Expand sources into MediaFiles, keeping argument order.

        Explicit files are kept whatever their type so validation can
        report them; folders contribute only media files.
        """
        media: List[MediaFile] = []
        for source in sources:
            source = Path(source)
            if source.is_dir():
                media.extend(MediaFile.from_path(p) for p in cls.collect_files(source))
            elif source.is_file():
                media.append(MediaFile.from_path(source))
            else:
                raise FileNotFoundError(f"source does not exist: {source}")
        return media
