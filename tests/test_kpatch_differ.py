import pytest
from unittest.mock import MagicMock
from conftest import CLASS_A, CLASS_A_EDITED, CLASS_B, write_tree
from kpatch_differ import DiffBundleBuilder, DisassemblyGate
from kpatch_errors import DiffExecutionFailed, DisassemblyFailed, NoChanges
from kpatch_tools import DiffResult, DiffStatus, ToolResult
from kpatch_workspace import WorkingTree

@pytest.fixture
def gate(config, fake_krak):
    return DisassemblyGate(config, fake_krak)

@pytest.fixture
def edited_root(temp_dir_fixture):
    return write_tree(temp_dir_fixture / "edited", {
        "Same.class": CLASS_A,
        "Changed.class": CLASS_A_EDITED,
        "Added.class": CLASS_B,
    })

def seed_original(tree):
    write_tree(tree.original, {
        "Same.class": CLASS_A,
        "Changed.class": CLASS_A,
        "Removed.class": CLASS_B,
    })

def test_should_disassemble(temp_dir_fixture):
    write_tree(temp_dir_fixture, {"x.class": b"1", "y.class": b"1", "z.class": b"2"})
    assert not DisassemblyGate.should_disassemble(temp_dir_fixture / "x.class", temp_dir_fixture / "y.class")
    assert DisassemblyGate.should_disassemble(temp_dir_fixture / "x.class", temp_dir_fixture / "z.class")
    assert DisassemblyGate.should_disassemble(temp_dir_fixture / "x.class", temp_dir_fixture / "missing.class")

def test_prepare_edited_skips_identical(gate, fake_krak, edited_root, config):
    with WorkingTree(config) as tree:
        seed_original(tree)
        written = gate.prepare_edited(edited_root, ["Added.class", "Changed.class", "Same.class"], tree)

        assert written == ["Added.j", "Changed.j"]
        assert (tree.counterpart / "Changed.j").read_text(encoding="latin-1").startswith(".mode --roundtrip\n")
        assert not (tree.counterpart / "Same.j").exists()
    assert edited_root / "Same.class" not in fake_krak.disassembled

def test_sweep_original_drops_every_raw_class(gate, fake_krak, edited_root, config):
    with WorkingTree(config) as tree:
        seed_original(tree)
        written = gate.sweep_original(edited_root, ["Changed.class", "Removed.class", "Same.class"], tree)

        assert written == ["Changed.j", "Removed.j"]
        assert sorted(p.name for p in tree.original.iterdir()) == ["Changed.j", "Removed.j"]
        assert tree.original / "Same.class" not in fake_krak.disassembled

def test_disassembly_failure_is_fatal(config, temp_dir_fixture):
    failing = MagicMock()
    failing.disassemble.return_value = ToolResult(1, "krak2: bad constant pool")
    gate = DisassemblyGate(config, failing)
    write_tree(temp_dir_fixture, {"A.class": CLASS_A})
    with pytest.raises(DisassemblyFailed):
        gate.disassemble(temp_dir_fixture / "A.class", temp_dir_fixture / "A.j")

def test_disassemble_missing_class(gate, temp_dir_fixture):
    with pytest.raises(DisassemblyFailed):
        gate.disassemble(temp_dir_fixture / "Ghost.class", temp_dir_fixture / "Ghost.j")

def test_disassembly_mode_is_passed_through(temp_dir_fixture, fake_krak):
    from kpatch_config import PatcherConfig
    gate = DisassemblyGate(PatcherConfig(krak_mode=["--no-roundtrip"]), fake_krak)
    write_tree(temp_dir_fixture, {"A.class": CLASS_A})
    gate.disassemble(temp_dir_fixture / "A.class", temp_dir_fixture / "out" / "A.j")
    assert (temp_dir_fixture / "out" / "A.j").read_text(encoding="latin-1").startswith(".mode --no-roundtrip\n")

def _builder(config, result):
    engine = MagicMock()
    engine.diff_trees.return_value = result
    return DiffBundleBuilder(config, engine), engine

def test_build_returns_bundle(config, sample_bundle_data):
    builder, engine = _builder(config, DiffResult(DiffStatus.DIFFERENCES, sample_bundle_data))
    with WorkingTree(config) as tree:
        bundle = builder.build(tree)
        engine.diff_trees.assert_called_once_with(tree.root, "a", "b", ["-rNu"])
    assert bundle.data == sample_bundle_data
    assert len(bundle) == 4

def test_build_identical_trees_is_no_changes(config):
    builder, _ = _builder(config, DiffResult(DiffStatus.IDENTICAL, b""))
    with WorkingTree(config) as tree:
        with pytest.raises(NoChanges):
            builder.build(tree)

def test_build_without_patchable_entries_is_no_changes(config):
    builder, _ = _builder(config, DiffResult(DiffStatus.DIFFERENCES, b"Binary files a/x.png and b/x.png differ\n"))
    with WorkingTree(config) as tree:
        with pytest.raises(NoChanges):
            builder.build(tree)

def test_build_error_status(config):
    builder, _ = _builder(config, DiffResult(DiffStatus.ERROR, b"", "diff: a: No such file or directory"))
    with WorkingTree(config) as tree:
        with pytest.raises(DiffExecutionFailed):
            builder.build(tree)

def test_build_warns_about_skipped_binaries(capsys):
    from kpatch_config import PatcherConfig
    data = (b"Binary files a/img/x.png and b/img/x.png differ\n"
            b"--- a/readme.txt\n+++ b/readme.txt\n@@ -1 +1 @@\n-old\n+new\n")
    noisy = PatcherConfig(verbosity=1)
    builder, _ = _builder(noisy, DiffResult(DiffStatus.DIFFERENCES, data))
    with WorkingTree(noisy) as tree:
        bundle = builder.build(tree)
    assert bundle.paths == ["readme.txt"]
    assert "Binary file img/x.png differs" in capsys.readouterr().err
