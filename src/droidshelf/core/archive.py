"""Archive access: list, read and extract entries of APK files."""

from pathlib import Path, PurePosixPath
from zipfile import BadZipFile, ZipFile

from droidshelf.exceptions import ArchiveError, EntryNotFoundError


class ApkArchive:
    """Reads APK (ZIP) archives, caching each archive's entry index."""

    def __init__(self) -> None:
        self._indexes: dict[Path, list[str]] = {}

    def _open(self, apk_path: Path) -> ZipFile:
        try:
            return ZipFile(apk_path, "r")
        except BadZipFile as e:
            raise ArchiveError(f"Invalid APK (not a valid ZIP file): {apk_path}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to read APK {apk_path}: {e}") from e

    def list_entries(self, apk_path: Path) -> list[str]:
        """Return the archive's entry names in archive order.

        The listing is made once per APK path and reused afterwards.
        Directory entries are omitted.

        Raises:
            ArchiveError: If the APK cannot be opened.
        """
        key = apk_path.resolve()
        if key not in self._indexes:
            with self._open(apk_path) as apk_zip:
                self._indexes[key] = [
                    name for name in apk_zip.namelist() if not name.endswith("/")
                ]
        return self._indexes[key]

    def has_entry(self, apk_path: Path, entry: str) -> bool:
        return entry in self.list_entries(apk_path)

    def read_entry(self, apk_path: Path, entry: str) -> bytes:
        """Read an entry's bytes.

        Raises:
            EntryNotFoundError: If the entry is absent.
            ArchiveError: If the APK cannot be read.
        """
        if not self.has_entry(apk_path, entry):
            raise EntryNotFoundError(str(apk_path), entry)

        with self._open(apk_path) as apk_zip:
            try:
                return apk_zip.read(entry)
            except (BadZipFile, OSError) as e:
                raise ArchiveError(f"Failed to read {entry} from {apk_path}") from e

    def extract_entry(self, apk_path: Path, entry: str, dest_dir: Path) -> Path:
        """Write an entry below ``dest_dir``, keeping its relative path.

        The caller owns ``dest_dir`` and is responsible for deleting it.

        Returns:
            Path of the extracted file.

        Raises:
            EntryNotFoundError: If the entry is absent.
            ArchiveError: If the entry path escapes ``dest_dir``.
        """
        relative = PurePosixPath(entry)
        if relative.is_absolute() or ".." in relative.parts:
            raise ArchiveError(f"Refusing to extract unsafe entry path: {entry}")

        data = self.read_entry(apk_path, entry)
        target = dest_dir.joinpath(*relative.parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def forget(self, apk_path: Path) -> None:
        """Drop the cached index of an APK (e.g. once its workspace is gone)."""
        self._indexes.pop(apk_path.resolve(), None)
