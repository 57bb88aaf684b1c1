"""
kpatch_core.py - diff and patch workflows for krakpatch.

diff:  original archive + edited directory -> unified-diff bundle over the
       disassembled (.j) text of every changed class
patch: original archive + bundle -> rebuilt archive bytes

Both workflows run inside a private WorkingTree that is removed on every exit
path.
"""

from pathlib import Path
from typing import Optional

from kpatch_archive_manager import JarArchive
from kpatch_bundle import BundleInterpreter
from kpatch_config import CLASS_SUFFIX, PatcherConfig, log_message
from kpatch_differ import DiffBundleBuilder, DisassemblyGate
from kpatch_errors import (
    EditedNotDirectory,
    EditedWithoutClasses,
    OriginalInvalidExtension,
    OriginalNotFile,
    OriginalWithoutClasses,
)
from kpatch_reassembler import Reassembler
from kpatch_tools import Toolchain
from kpatch_utils import collect_members
from kpatch_workspace import WorkingTree


def _log(config: PatcherConfig, message: str, is_error: bool = False):
    log_message(config, "kpatch", message, is_error)


def check_original_file(original, config: PatcherConfig) -> JarArchive:
    _log(config, f"Checking original file \"{original}\"")
    original_path = Path(original)
    if not original_path.is_file():
        raise OriginalNotFile(f"\"{original}\" is not a file.")
    if not JarArchive.has_supported_extension(original_path):
        raise OriginalInvalidExtension(f"\"{original}\" neither ends in \".jar\" nor \".zip\".")
    return JarArchive(original_path, config)


def run_diff(original, edited_dir, config: PatcherConfig, toolchain: Optional[Toolchain] = None) -> bytes:
    """
    Produces the bundle turning `original` into the contents of `edited_dir`.
    Raises NoChanges when the two only differ in byte-identical classes.
    """
    toolchain = toolchain or Toolchain.from_config(config)
    archive = check_original_file(original, config)

    _log(config, "Searching edited directory")
    edited_root = Path(edited_dir)
    if not edited_root.is_dir():
        raise EditedNotDirectory(f"\"{edited_dir}\" is not a directory.")

    edited_classes, edited_files = collect_members(edited_root)
    _log(config, f"Found edited classes: {' '.join(edited_classes)}")
    _log(config, f"Found other edited files: {' '.join(edited_files)}")
    if not edited_classes:
        raise EditedWithoutClasses(f"\"{edited_dir}\" does not contain \"{CLASS_SUFFIX}\" files.")

    gate = DisassemblyGate(config, toolchain.disassembler)
    builder = DiffBundleBuilder(config, toolchain.diff_engine)

    with WorkingTree(config, suffix="kdiff") as tree:
        tree.materialize_original(archive)
        original_classes, _ = collect_members(tree.original)
        _log(config, f"Found original classes: {' '.join(original_classes)}")
        if not original_classes:
            raise OriginalWithoutClasses(f"\"{original}\" does not contain \"{CLASS_SUFFIX}\" files.")

        if edited_files:
            tree.stage_counterpart_files(edited_root, edited_files)

        _log(config, "Looping through edited classes")
        gate.prepare_edited(edited_root, edited_classes, tree)
        _log(config, "Looping through original classes")
        gate.sweep_original(edited_root, original_classes, tree)

        bundle = builder.build(tree)

    _log(config, "Finished successfully!")
    return bundle.data


def run_patch(original, bundle_file, config: PatcherConfig, toolchain: Optional[Toolchain] = None) -> bytes:
    """Applies `bundle_file` to `original` and returns the rebuilt archive bytes."""
    toolchain = toolchain or Toolchain.from_config(config)
    archive = check_original_file(original, config)

    bundle = BundleInterpreter(config).parse(bundle_file)
    gate = DisassemblyGate(config, toolchain.disassembler)
    reassembler = Reassembler(config, gate, toolchain.patch_engine, toolchain.assembler)

    with WorkingTree(config, suffix="kpatch") as tree:
        root = tree.counterpart
        archive.extract_to(root)

        _log(config, "Looping through interesting files (dis)")
        pending = reassembler.prepare_baseline(root, bundle)
        reassembler.apply(root, Path(bundle_file))
        _log(config, "Looping through interesting files (asm)")
        reassembler.reassemble(root, bundle, pending)
        output = reassembler.package(root, archive)

    _log(config, "Finished successfully!")
    return output
