from pathlib import Path
from typing import List

from kpatch_archive_manager import JarArchive
from kpatch_bundle import ChangeKind, PatchBundle
from kpatch_config import PatcherConfig, log_message
from kpatch_differ import DisassemblyGate
from kpatch_errors import AssemblyFailed, DisassemblyFailed, PatchApplicationFailed
from kpatch_tools import Assembler, PatchEngine
from kpatch_utils import class_path_for


class Reassembler:
    """
    Patch-mode pipeline over a scratch root holding the extracted original:
    rebuild the text baseline of every compiled unit the bundle touches, apply
    the bundle, assemble the patched text back and pack the result.
    """

    def __init__(self, config: PatcherConfig, gate: DisassemblyGate,
                 patch_engine: PatchEngine, assembler: Assembler):
        self.config = config
        self.gate = gate
        self.patch_engine = patch_engine
        self.assembler = assembler

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "Reassembler", message, is_error)

    def prepare_baseline(self, root: Path, bundle: PatchBundle) -> List[str]:
        """
        Disassembles the current compiled unit behind every text-form entry in
        place and drops the compiled copy. Added entries have no compiled unit
        yet and are only recorded. Returns the text paths to assemble later.
        """
        pending = []
        for entry in bundle.text_form_entries:
            if entry.change_kind is not ChangeKind.ADDED:
                class_file = root / class_path_for(entry.path)
                if not class_file.is_file():
                    raise DisassemblyFailed(
                        f"\"{class_path_for(entry.path)}\" is patched by the bundle but missing from the original archive.")
                self.gate.disassemble(class_file, root / entry.path)
                class_file.unlink()
            pending.append(entry.path)
        return pending

    def apply(self, root: Path, bundle_file: Path):
        self._log(f"Applying {bundle_file}")
        result = self.patch_engine.apply_bundle(root, bundle_file, strip=1)
        if not result.ok:
            if result.output:
                self._log(result.output.rstrip(), is_error=True)
            raise PatchApplicationFailed("PATCH exit code returned an error code")
        if result.output:
            self._log(result.output.rstrip())

    def reassemble(self, root: Path, bundle: PatchBundle, pending: List[str]) -> List[str]:
        """Assembles each patched text file back into its compiled unit and removes the text."""
        removed = {entry.path for entry in bundle.entries if entry.change_kind is ChangeKind.REMOVED}
        assembled = []
        for text_path in pending:
            text_file = root / text_path
            if text_path in removed:
                # patch(1) may leave an empty file behind for a deletion
                if text_file.exists():
                    text_file.unlink()
                continue
            if not text_file.is_file():
                raise AssemblyFailed(f"\"{text_path}\" is missing after patch application.")

            class_file = root / class_path_for(text_path)
            result = self.assembler.assemble(text_file, class_file)
            if not result.ok:
                if result.output:
                    self._log(result.output.rstrip(), is_error=True)
                raise AssemblyFailed(f"Unable to assemble \"{text_path}\" (exit code {result.returncode}).")
            text_file.unlink()
            assembled.append(class_path_for(text_path))
        self._log(f"Assembled {len(assembled)} classes")
        return assembled

    def package(self, root: Path, archive: JarArchive) -> bytes:
        return archive.pack(root)
