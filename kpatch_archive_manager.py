import io
import os
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

from kpatch_config import ARCHIVE_EXTENSIONS, PatcherConfig, log_message
from kpatch_errors import ExtractionFailed, PackagingFailed


class JarArchive:
    """
    Reads and writes the class archives (.jar/.zip) krakpatch works on.
    Extraction lands in a scratch tree; packing turns a scratch tree back into
    archive bytes.
    """

    def __init__(self, archive_path, config: PatcherConfig):
        self.archive_path = Path(archive_path)
        self.config = config
        self._member_infos: Optional[Dict[str, zipfile.ZipInfo]] = None

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "JarArchive", message, is_error)

    @staticmethod
    def has_supported_extension(archive_path) -> bool:
        return str(archive_path).lower().endswith(ARCHIVE_EXTENSIONS)

    def member_infos(self) -> Dict[str, zipfile.ZipInfo]:
        """Member name -> ZipInfo, in archive order. Directory entries are left out."""
        if self._member_infos is None:
            try:
                with zipfile.ZipFile(self.archive_path, 'r') as zf:
                    self._member_infos = {info.filename: info for info in zf.infolist() if not info.is_dir()}
            except (zipfile.BadZipFile, OSError) as e:
                raise ExtractionFailed(f"Unable to read \"{self.archive_path}\": {e}") from e
        return self._member_infos

    def _member_target(self, dest_root: Path, member_name: str) -> Path:
        """Where a member lands under dest_root; names escaping it are refused."""
        root = dest_root.resolve()
        target = (root / member_name).resolve()
        try:
            target.relative_to(root)
        except ValueError:
            raise ExtractionFailed(
                f"\"{self.archive_path}\" holds member \"{member_name}\" outside the archive root.") from None
        return target

    def extract_to(self, dest_root: Path) -> List[str]:
        """
        Extracts every member under dest_root and returns the member names
        written. Files already present are never overwritten.
        """
        self._log(f"Extracting '{self.archive_path}' into '{dest_root}'")
        extracted: List[str] = []
        try:
            with zipfile.ZipFile(self.archive_path, 'r') as zf:
                for info in zf.infolist():
                    target = self._member_target(dest_root, info.filename)
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    if target.exists():
                        self._log(f"Skipping already present '{info.filename}'")
                        continue
                    zf.extract(info, dest_root)
                    extracted.append(info.filename)
        except (zipfile.BadZipFile, OSError, RuntimeError) as e:
            raise ExtractionFailed(f"Unable to unzip \"{self.archive_path}\": {e}") from e

        self._log(f"Extracted {len(extracted)} members.")
        return extracted

    def pack(self, source_root: Path) -> bytes:
        """
        Packs every regular file under source_root into a new archive.
        Members keep the order and compression method they had in this
        archive; members new to the tree follow in sorted order.
        """
        present = set()
        for current_dir, _, files_in_dir in os.walk(source_root):
            for file_name in files_in_dir:
                present.add((Path(current_dir) / file_name).relative_to(source_root).as_posix())

        original_infos = self.member_infos()
        ordered = [name for name in original_infos if name in present]
        ordered += sorted(present.difference(original_infos))

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
                for name in ordered:
                    info = original_infos.get(name)
                    compress_type = info.compress_type if info is not None else zipfile.ZIP_DEFLATED
                    zf.write(source_root / name, arcname=name, compress_type=compress_type)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise PackagingFailed(f"Unable to zip \"{source_root}\": {e}") from e

        self._log(f"Packed {len(ordered)} members ({buffer.tell()}B).")
        return buffer.getvalue()
