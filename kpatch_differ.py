from pathlib import Path
from typing import List

from kpatch_bundle import BundleInterpreter, PatchBundle
from kpatch_config import PatcherConfig, log_message
from kpatch_errors import BundleEmpty, DiffExecutionFailed, DisassemblyFailed, NoChanges
from kpatch_tools import DiffEngine, DiffStatus, Disassembler
from kpatch_utils import files_identical, text_path_for
from kpatch_workspace import WorkingTree


class DisassemblyGate:
    """
    Decides which compiled units get disassembled and writes their text form
    into the working tree. Units byte-identical on both sides are left out of
    the text trees entirely, so they never reach the disassembler or the diff.
    """

    def __init__(self, config: PatcherConfig, disassembler: Disassembler):
        self.config = config
        self.disassembler = disassembler

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "DisassemblyGate", message, is_error)

    @staticmethod
    def should_disassemble(candidate: Path, reference: Path) -> bool:
        """False only when both files exist and are byte-identical."""
        return not files_identical(candidate, reference)

    def disassemble(self, class_file: Path, text_file: Path):
        if not class_file.is_file():
            raise DisassemblyFailed(f"\"{class_file}\" does not exist, nothing to disassemble.")
        text_file.parent.mkdir(parents=True, exist_ok=True)
        result = self.disassembler.disassemble(class_file, text_file, self.config.krak_mode)
        if not result.ok:
            if result.output:
                self._log(result.output.rstrip(), is_error=True)
            raise DisassemblyFailed(f"Unable to disassemble \"{class_file}\" (exit code {result.returncode}).")
        if result.output:
            self._log(result.output.rstrip())

    def prepare_edited(self, edited_root: Path, edited_classes: List[str], tree: WorkingTree) -> List[str]:
        """
        Disassembles every edited compiled unit that differs from its original
        counterpart (or has none) into the 'b' tree. Returns the text paths written.
        """
        written = []
        for class_path in edited_classes:
            if not self.should_disassemble(edited_root / class_path, tree.original / class_path):
                self._log(f"Unchanged, skipping {class_path}")
                continue
            text_path = text_path_for(class_path)
            self.disassemble(edited_root / class_path, tree.counterpart / text_path)
            written.append(text_path)
        return written

    def sweep_original(self, edited_root: Path, original_classes: List[str], tree: WorkingTree) -> List[str]:
        """
        Disassembles every original compiled unit without a byte-identical edited
        counterpart, then drops every raw compiled unit from the 'a' tree so the
        text diff never sees binary content.
        """
        written = []
        for class_path in original_classes:
            original_class = tree.original / class_path
            if self.should_disassemble(original_class, edited_root / class_path):
                text_path = text_path_for(class_path)
                self.disassemble(original_class, tree.original / text_path)
                written.append(text_path)
            original_class.unlink()
        return written


class DiffBundleBuilder:
    """Diffs the 'a' and 'b' trees into a single unified-diff bundle."""

    def __init__(self, config: PatcherConfig, diff_engine: DiffEngine):
        self.config = config
        self.diff_engine = diff_engine
        self.interpreter = BundleInterpreter(config)

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "DiffBundleBuilder", message, is_error)

    def build(self, tree: WorkingTree) -> PatchBundle:
        self._log("Generating patch")
        result = self.diff_engine.diff_trees(
            tree.original.parent, tree.original.name, tree.counterpart.name, self.config.diff_opts)

        if result.status is DiffStatus.ERROR:
            if result.output:
                self._log(result.output.rstrip(), is_error=True)
            raise DiffExecutionFailed("DIFF exit code returned an error code.")

        try:
            bundle = self.interpreter.parse_data(result.data)
        except BundleEmpty as e:
            raise DiffExecutionFailed(f"DIFF produced unreadable output: {e}") from e

        for binary_path in bundle.skipped_binaries:
            self._log(f"Binary file {binary_path} differs and is left out of the bundle", is_error=True)

        if not bundle.entries:
            raise NoChanges("No changes to report.")

        self._log(f"Bundle holds {len(bundle)} entries: {' '.join(bundle.paths)}")
        return bundle
