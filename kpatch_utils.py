import enum
import filecmp
import os
from pathlib import Path
from typing import List, Tuple

from kpatch_config import CLASS_SUFFIX, TEXT_SUFFIX


class MemberKind(enum.Enum):
    RECONSTRUCTIBLE = "reconstructible"  # compiled unit, round-trips through the disassembler
    PASSTHROUGH = "passthrough"          # copied and diffed as-is


def classify_member(member_path: str) -> MemberKind:
    """Tags a member by its path suffix alone."""
    if member_path.endswith(CLASS_SUFFIX):
        return MemberKind.RECONSTRUCTIBLE
    return MemberKind.PASSTHROUGH


def text_path_for(member_path: str) -> str:
    """'pkg/A.class' -> 'pkg/A.j'"""
    return member_path[:-len(CLASS_SUFFIX)] + TEXT_SUFFIX


def class_path_for(text_path: str) -> str:
    """'pkg/A.j' -> 'pkg/A.class'"""
    return text_path[:-len(TEXT_SUFFIX)] + CLASS_SUFFIX


def is_text_form(member_path: str) -> bool:
    return member_path.endswith(TEXT_SUFFIX)


def collect_members(root: Path) -> Tuple[List[str], List[str]]:
    """
    Walks a directory and splits every regular file into compiled units and
    passthrough files.
    Args:
        root: Directory to walk.
    Returns:
        (reconstructible, passthrough), each a sorted list of POSIX-style
        paths relative to root.
    """
    reconstructible = []
    passthrough = []

    for current_dir, _, files_in_dir in os.walk(root):
        for file_name in files_in_dir:
            full_file_path = Path(current_dir) / file_name
            if not full_file_path.is_file():
                continue
            relative = full_file_path.relative_to(root).as_posix()
            if classify_member(relative) is MemberKind.RECONSTRUCTIBLE:
                reconstructible.append(relative)
            else:
                passthrough.append(relative)

    return sorted(reconstructible), sorted(passthrough)


def files_identical(candidate: Path, reference: Path) -> bool:
    """
    True only when both files exist and hold exactly the same bytes.
    Timestamps and permissions are ignored.
    """
    if not (candidate.is_file() and reference.is_file()):
        return False
    return filecmp.cmp(candidate, reference, shallow=False)
