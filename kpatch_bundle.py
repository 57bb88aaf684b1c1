import enum
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from kpatch_config import PatcherConfig, log_message
from kpatch_errors import BundleEmpty, BundleNotFile
from kpatch_utils import MemberKind, is_text_form

DEV_NULL = "/dev/null"
BINARY_NOTICE = re.compile(r"^Binary files (?P<source>.+) and (?P<target>.+) differ$", re.MULTILINE)


class ChangeKind(enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class PatchEntry:
    path: str            # relative to the tree root, text-form suffix for compiled units
    change_kind: ChangeKind
    hunks: int = 0
    lines_added: int = 0
    lines_removed: int = 0

    @property
    def is_text_form(self) -> bool:
        """Entry targets the disassembled form of a compiled unit."""
        return is_text_form(self.path)

    @property
    def member_kind(self) -> MemberKind:
        return MemberKind.RECONSTRUCTIBLE if self.is_text_form else MemberKind.PASSTHROUGH


@dataclass
class PatchBundle:
    data: bytes          # raw bundle bytes, written out and applied unchanged
    entries: List[PatchEntry] = field(default_factory=list)
    skipped_binaries: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]

    @property
    def text_form_entries(self) -> List[PatchEntry]:
        return [entry for entry in self.entries if entry.is_text_form]


def _strip_component(header_path: str) -> str:
    """Drops the leading tree directory ('a/' or 'b/'), as `patch -p1` does."""
    parts = header_path.split("/", 1)
    return parts[1] if len(parts) == 2 else header_path


def _change_kind(patched_file) -> ChangeKind:
    # `diff -N` writes the empty side as a real path with a single 0,0 range
    single_hunk = patched_file[0] if len(patched_file) == 1 else None
    if patched_file.source_file == DEV_NULL or (
            single_hunk is not None and single_hunk.source_start == 0 and single_hunk.source_length == 0):
        return ChangeKind.ADDED
    if patched_file.target_file == DEV_NULL or (
            single_hunk is not None and single_hunk.target_start == 0 and single_hunk.target_length == 0):
        return ChangeKind.REMOVED
    return ChangeKind.MODIFIED


class BundleInterpreter:
    """Recovers the member paths a unified-diff bundle touches."""

    def __init__(self, config: PatcherConfig):
        self.config = config

    def _log(self, message: str, is_error: bool = False):
        log_message(self.config, "BundleInterpreter", message, is_error)

    def parse_data(self, data: bytes) -> PatchBundle:
        """
        Parses bundle bytes into entries, one per file header, in bundle order.
        Only headers are interpreted; the bytes themselves are kept as given
        so resources in any encoding survive the round trip.
        Each entry is named after its original-side ('---') path; a bundle
        produced by another tool with /dev/null there falls back to the
        target path.
        """
        # surrogateescape maps every byte to a char and back, like os.fsdecode
        text = data.decode("utf-8", errors="surrogateescape")
        # split on \n only; resources may carry \r or \f inside a line
        lines = [line + "\n" for line in text.split("\n")]
        lines[-1] = lines[-1][:-1]
        try:
            patch_set = PatchSet([line for line in lines if line])
        except UnidiffParseError as e:
            raise BundleEmpty(f"Bundle could not be parsed: {e}") from e

        bundle = PatchBundle(data=data)
        bundle.skipped_binaries = [_strip_component(m.group("source")) for m in BINARY_NOTICE.finditer(text)]
        seen = set()
        for patched_file in patch_set:
            header = patched_file.source_file
            if header == DEV_NULL:
                header = patched_file.target_file
            path = _strip_component(header)
            if path in seen:
                continue
            seen.add(path)
            bundle.entries.append(PatchEntry(
                path=path,
                change_kind=_change_kind(patched_file),
                hunks=len(patched_file),
                lines_added=patched_file.added,
                lines_removed=patched_file.removed,
            ))
        return bundle

    def parse(self, bundle_file) -> PatchBundle:
        """
        Reads and parses a bundle file. Fails with BundleEmpty when no member
        path can be recovered from it.
        """
        bundle_path = Path(bundle_file)
        if not bundle_path.is_file():
            raise BundleNotFile(f"\"{bundle_path}\" is not a file.")

        bundle = self.parse_data(bundle_path.read_bytes())
        if not bundle.entries:
            raise BundleEmpty(f"\"{bundle_path}\" does not patch files.")

        self._log(f"Found interesting files: {' '.join(bundle.paths)}")
        return bundle
