import shutil
import tempfile
import zipfile
from pathlib import Path

import pytest

from kpatch_config import PatcherConfig
from kpatch_tools import (
    Assembler,
    CommandDiffEngine,
    CommandPatchEngine,
    Disassembler,
    Toolchain,
    ToolResult,
)

CLASS_A = b"CAFEBABE\n  iconst_1\n  ireturn\n"
CLASS_A_EDITED = b"CAFEBABE\n  iconst_2\n  ireturn\n"
CLASS_B = b"CAFEBABE\n  aconst_null\n  areturn\n"
README = b"Plain resource, never disassembled.\n"

requires_diff_tools = pytest.mark.skipif(
    shutil.which("diff") is None or shutil.which("patch") is None,
    reason="GNU diff and patch are required for end-to-end runs")


class FakeKrakatau(Disassembler, Assembler):
    """
    In-process stand-in for krak2. The "text form" is the class bytes decoded
    as latin-1 behind a header naming the disassembly mode.
    """

    def __init__(self):
        self.disassembled = []
        self.assembled = []

    def disassemble(self, class_file, text_file, mode):
        self.disassembled.append(Path(class_file))
        body = Path(class_file).read_bytes().decode("latin-1")
        Path(text_file).write_text(f".mode {' '.join(mode)}\n{body}", encoding="latin-1")
        return ToolResult(0)

    def assemble(self, text_file, class_file):
        self.assembled.append(Path(text_file))
        lines = Path(text_file).read_text(encoding="latin-1").splitlines(keepends=True)
        if not lines or not lines[0].startswith(".mode "):
            return ToolResult(1, f"{text_file}: missing .mode header")
        if any("BAD SYNTAX" in line for line in lines):
            return ToolResult(1, f"{text_file}: syntax error")
        Path(class_file).write_bytes("".join(lines[1:]).encode("latin-1"))
        return ToolResult(0)


@pytest.fixture
def temp_dir_fixture():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    return PatcherConfig()


@pytest.fixture
def fake_krak():
    return FakeKrakatau()


@pytest.fixture
def fake_toolchain(fake_krak):
    """Fake krak2 with the real diff/patch executables."""
    return Toolchain(
        disassembler=fake_krak,
        assembler=fake_krak,
        diff_engine=CommandDiffEngine("diff"),
        patch_engine=CommandPatchEngine("patch"),
    )


def write_jar(path: Path, members):
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


def write_tree(root: Path, members):
    for name, data in members.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return root


@pytest.fixture
def app_jar(temp_dir_fixture):
    return write_jar(temp_dir_fixture / "app.jar", {
        "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0\n",
        "com/example/A.class": CLASS_A,
        "readme.txt": README,
    })


@pytest.fixture
def sample_bundle_data():
    return """diff -rNu a/com/example/A.j b/com/example/A.j
--- a/com/example/A.j\t2024-01-01 00:00:00.000000000 +0000
+++ b/com/example/A.j\t2024-01-01 00:00:01.000000000 +0000
@@ -1,3 +1,3 @@
 .mode --roundtrip
 CAFEBABE
-  iconst_1
+  iconst_2
diff -rNu a/com/example/B.j b/com/example/B.j
--- a/com/example/B.j\t1970-01-01 00:00:00.000000000 +0000
+++ b/com/example/B.j\t2024-01-01 00:00:01.000000000 +0000
@@ -0,0 +1,2 @@
+.mode --roundtrip
+CAFEBABE
diff -rNu a/com/example/C.j b/com/example/C.j
--- a/com/example/C.j\t2024-01-01 00:00:00.000000000 +0000
+++ b/com/example/C.j\t1970-01-01 00:00:00.000000000 +0000
@@ -1,2 +0,0 @@
-.mode --roundtrip
-CAFEBABE
diff -rNu a/readme.txt b/readme.txt
--- a/readme.txt\t2024-01-01 00:00:00.000000000 +0000
+++ b/readme.txt\t2024-01-01 00:00:01.000000000 +0000
@@ -1 +1 @@
-old
+new
""".encode()
