"""
kpatch_tools.py - External collaborators used by the krakpatch workflow.

Each collaborator is a small abstract interface with a subprocess-backed
implementation:
  Disassembler / Assembler  -> Krakatau (`krak2 dis` / `krak2 asm`)
  DiffEngine                -> `diff -rNu a b`
  PatchEngine               -> `patch -p1 -i bundle`
Tests and embedders can substitute in-process implementations without touching
the orchestration code.
"""

import enum
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from kpatch_config import PatcherConfig


@dataclass
class ToolResult:
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class DiffStatus(enum.Enum):
    IDENTICAL = 0
    DIFFERENCES = 1
    ERROR = 2


@dataclass
class DiffResult:
    status: DiffStatus
    data: bytes = b""  # bundle exactly as written by the engine
    output: str = ""  # diagnostics written by the engine


def run_tool(command: Sequence[str], cwd: Optional[Path] = None, binary: bool = False) -> subprocess.CompletedProcess:
    """
    Runs a collaborator to completion. A missing executable reads as exit status 127.
    With binary=True stdout is kept as raw bytes; stderr is always text.
    """
    try:
        if binary:
            result = subprocess.run(list(command), cwd=cwd, capture_output=True)
            result.stderr = result.stderr.decode("utf-8", errors="replace")
            return result
        return subprocess.run(list(command), cwd=cwd, capture_output=True,
                              encoding="utf-8", errors="replace")
    except OSError as e:
        return subprocess.CompletedProcess(list(command), 127, stdout=b"" if binary else "",
                                           stderr=f"{command[0]}: {e}")


# -- Interfaces

class Disassembler(ABC):
    @abstractmethod
    def disassemble(self, class_file: Path, text_file: Path, mode: List[str]) -> ToolResult:
        """Writes the text form of class_file to text_file using the given round-trip mode."""
        pass


class Assembler(ABC):
    @abstractmethod
    def assemble(self, text_file: Path, class_file: Path) -> ToolResult:
        """Inverse of Disassembler.disassemble for the same mode."""
        pass


class DiffEngine(ABC):
    @abstractmethod
    def diff_trees(self, cwd: Path, left: str, right: str, options: List[str]) -> DiffResult:
        pass


class PatchEngine(ABC):
    @abstractmethod
    def apply_bundle(self, root: Path, bundle_file: Path, strip: int = 1) -> ToolResult:
        pass


# -- Subprocess implementations

class KrakatauTool(Disassembler, Assembler):
    def __init__(self, executable: str = "krak2"):
        self.executable = executable

    def disassemble(self, class_file: Path, text_file: Path, mode: List[str]) -> ToolResult:
        result = run_tool([self.executable, "dis", "--out", str(text_file), *mode, str(class_file)])
        return ToolResult(result.returncode, (result.stdout or "") + (result.stderr or ""))

    def assemble(self, text_file: Path, class_file: Path) -> ToolResult:
        result = run_tool([self.executable, "asm", "--out", str(class_file), str(text_file)])
        return ToolResult(result.returncode, (result.stdout or "") + (result.stderr or ""))


class CommandDiffEngine(DiffEngine):
    def __init__(self, executable: str = "diff"):
        self.executable = executable

    def diff_trees(self, cwd: Path, left: str, right: str, options: List[str]) -> DiffResult:
        result = run_tool([self.executable, *options, left, right], cwd=cwd, binary=True)
        # diff(1): 0 = identical, 1 = differences found, anything else = trouble
        if result.returncode == 0:
            status = DiffStatus.IDENTICAL
        elif result.returncode == 1:
            status = DiffStatus.DIFFERENCES
        else:
            status = DiffStatus.ERROR
        return DiffResult(status, result.stdout or b"", result.stderr or "")


class CommandPatchEngine(PatchEngine):
    def __init__(self, executable: str = "patch"):
        self.executable = executable

    def apply_bundle(self, root: Path, bundle_file: Path, strip: int = 1) -> ToolResult:
        result = run_tool([self.executable, f"-p{strip}", "--forward", "--no-backup-if-mismatch",
                             "-i", str(Path(bundle_file).resolve())], cwd=root)
        return ToolResult(result.returncode, (result.stdout or "") + (result.stderr or ""))


@dataclass
class Toolchain:
    disassembler: Disassembler
    assembler: Assembler
    diff_engine: DiffEngine
    patch_engine: PatchEngine

    @classmethod
    def from_config(cls, config: PatcherConfig) -> "Toolchain":
        krak = KrakatauTool(config.krak_command)
        return cls(
            disassembler=krak,
            assembler=krak,
            diff_engine=CommandDiffEngine(config.diff_command),
            patch_engine=CommandPatchEngine(config.patch_command),
        )
