import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from kpatch_archive_manager import JarArchive
from kpatch_config import PatcherConfig, log_message
from kpatch_errors import ScratchAllocationFailed

ORIGINAL_DIR = "a"
COUNTERPART_DIR = "b"


class WorkingTree:
    """
    Private scratch directory holding two mirrored trees: 'a' (original) and
    'b' (edited content in diff mode, patched content in patch mode).

    Use it as a context manager; the directory is removed on every exit path,
    including KeyboardInterrupt.
    """

    def __init__(self, config: PatcherConfig, suffix: str = "kpatch"):
        self.config = config
        self.suffix = suffix
        self.root: Optional[Path] = None

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "WorkingTree", message, is_error)

    @property
    def original(self) -> Path:
        return self._require_root() / ORIGINAL_DIR

    @property
    def counterpart(self) -> Path:
        return self._require_root() / COUNTERPART_DIR

    def _require_root(self) -> Path:
        if self.root is None:
            raise RuntimeError("WorkingTree used before create()")
        return self.root

    def create(self) -> "WorkingTree":
        try:
            self.root = Path(tempfile.mkdtemp(suffix=self.suffix))
            self.original.mkdir()
            self.counterpart.mkdir()
        except OSError as e:
            self.destroy()
            raise ScratchAllocationFailed(f"Unable to allocate a scratch directory: {e}") from e
        self._log(f"Working in {self.root}")
        return self

    def materialize_original(self, archive: JarArchive) -> List[str]:
        """Extracts every member of the archive under the 'a' tree."""
        return archive.extract_to(self.original)

    def stage_counterpart_files(self, source_root: Path, relative_paths: List[str]):
        """Copies files verbatim into the 'b' tree, keeping their relative paths."""
        for relative in relative_paths:
            target = self.counterpart / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_root / relative, target)
        self._log(f"Copied {len(relative_paths)} other files")

    def destroy(self):
        if self.root is None:
            return
        shutil.rmtree(self.root, ignore_errors=True)
        self._log(f"Cleaned {self.root}")
        self.root = None

    def __enter__(self) -> "WorkingTree":
        return self.create()

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False
