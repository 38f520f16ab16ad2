"""Tests for DependencyAnalyzer: scanning, dependency trees and persistence."""

import os
import threading
from pathlib import Path

import pytest

from codemap_cli.analyzer import (
    AmbiguousCallError,
    AnalysisCancelledError,
    DependencyAnalyzer,
    ScanError,
    discover_source_files,
)
from codemap_cli.languages import NOT_FOUND
from codemap_cli.models import NodeType


GO_A = '''package main

import "pkgb"

func Foo() {
\tBar()
}
'''

GO_B = '''package pkgb

func Bar() {
}
'''


def _child_names(node):
    return [child.name for child in node.children]


class TestDiscovery:
    """Tests for source file discovery."""

    def test_skips_hidden_and_vendor_dirs(self, make_repo):
        root = make_repo({
            "main.go": "package main\n",
            "README.md": "# readme\n",
            ".git/hooks/x.py": "",
            "node_modules/lib/index.js": "",
            "vendor/dep/dep.go": "",
            "pkg/.hidden.py": "",
            "pkg/util.py": "",
        })

        paths = [info.path for info in discover_source_files(str(root))]

        assert paths == [str(root / "main.go"), str(root / "pkg" / "util.py")]

    def test_file_info_fields(self, make_repo):
        root = make_repo({"Widget.TSX": ""})
        (info,) = discover_source_files(str(root))
        assert info.extension == ".tsx"
        assert info.language == "typescript"


class TestInitialize:
    """Tests for the one-time repository scan."""

    def test_go_scenario(self, make_repo):
        """a.go imports pkgb; its Foo calls Bar defined in pkgb/b.go."""
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        a_go = str(root / "a.go")
        b_go = str(root / "pkgb" / "b.go")
        assert analyzer.get_dependencies(a_go) == [b_go]

        foo = analyzer.get_functions(a_go)[0]
        assert foo.name == "Foo"
        assert foo.full_name == f"{a_go}:Foo"
        assert foo.line_number == 5
        assert foo.calls == ["Bar"]
        assert analyzer.get_function_file(foo.full_name) == a_go
        assert analyzer.get_function_file(f"{a_go}:Bar") is None

    def test_initialize_is_idempotent(self, make_repo, monkeypatch):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        calls = []
        monkeypatch.setattr(
            "codemap_cli.analyzer.discover_source_files",
            lambda path: calls.append(path) or [],
        )
        analyzer.initialize()

        assert calls == []
        assert len(analyzer.list_files()) == 2

    def test_concurrent_initialize(self, make_repo):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root), max_workers=2)

        threads = [threading.Thread(target=analyzer.initialize) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert analyzer.initialized
        assert analyzer.list_files() == sorted([str(root / "a.go"), str(root / "pkgb" / "b.go")])

    def test_scan_error_commits_nothing(self, make_repo, monkeypatch):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root))

        from codemap_cli import analyzer as analyzer_module
        real = analyzer_module.get_profile_for_file

        def flaky(path):
            if path.endswith("b.go"):
                raise RuntimeError("boom")
            return real(path)

        monkeypatch.setattr("codemap_cli.analyzer.get_profile_for_file", flaky)

        with pytest.raises(ScanError) as excinfo:
            analyzer.initialize()

        assert [path for path, _ in excinfo.value.errors] == [str(root / "pkgb" / "b.go")]
        assert "boom" in str(excinfo.value)
        assert not analyzer.initialized
        assert analyzer.list_files() == []

    def test_cancel_before_scan(self, make_repo):
        root = make_repo({"a.go": GO_A})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.cancel()

        assert analyzer.cancelled
        with pytest.raises(AnalysisCancelledError):
            analyzer.initialize()
        assert not analyzer.initialized

    def test_duplicate_function_names_keep_first(self, make_repo):
        root = make_repo({"dup.py": "def f():\n    a()\n\n\ndef f():\n    b()\n"})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        functions = analyzer.get_functions(str(root / "dup.py"))
        assert [fn.name for fn in functions] == ["f"]
        assert functions[0].calls == ["a"]

    def test_missing_import_is_dropped(self, make_repo):
        root = make_repo({"app.py": "import missing_module\nfrom . import ghost\n"})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()
        assert analyzer.get_dependencies(str(root / "app.py")) == []

    def test_directory_import_expands_one_level(self, make_repo):
        root = make_repo({
            "main.go": 'package main\n\nimport "lib"\n',
            "lib/a.go": "package lib\n",
            "lib/b.go": "package lib\n",
            "lib/README.md": "docs\n",
            "lib/inner/c.go": "package inner\n",
        })
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        assert analyzer.get_dependencies(str(root / "main.go")) == [
            str(root / "lib" / "a.go"),
            str(root / "lib" / "b.go"),
        ]

    def test_directory_import_excludes_importing_file(self, make_repo):
        root = make_repo({
            "pkg/a.go": 'package pkg\n\nimport "./"\n',
            "pkg/b.go": "package pkg\n",
        })
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        assert analyzer.get_dependencies(str(root / "pkg" / "a.go")) == [str(root / "pkg" / "b.go")]

    def test_relative_paths_resolve_against_base(self, make_repo):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root))
        analyzer.initialize()

        assert analyzer.get_dependencies("a.go") == analyzer.get_dependencies(str(root / "a.go"))
        assert [fn.name for fn in analyzer.get_functions(os.path.join("pkgb", "b.go"))] == ["Bar"]


class TestFileDependencyTree:
    """Tests for file-level dependency trees."""

    def test_go_scenario_tree(self, make_repo):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        analyzer = DependencyAnalyzer(str(root))

        tree = analyzer.analyze_file_dependency_tree("a.go")

        assert tree.node_type == NodeType.FILE
        assert tree.name == "a.go"
        assert tree.full_path == str(root / "a.go")
        assert [(fn.name, fn.line_number) for fn in tree.functions] == [("Foo", 5)]
        assert _child_names(tree) == ["b.go"]
        assert tree.children[0].functions[0].name == "Bar"
        assert analyzer.initialized

    def test_zero_imports(self, make_repo):
        root = make_repo({"solo.py": "def alone():\n    pass\n"})
        tree = DependencyAnalyzer(str(root)).analyze_file_dependency_tree("solo.py")
        assert tree.children == []
        assert not tree.is_cyclic

    def test_cycle_is_marked_not_expanded(self, make_repo):
        root = make_repo({
            "a.py": "from . import b\n",
            "b.py": "from . import a\n",
        })
        tree = DependencyAnalyzer(str(root)).analyze_file_dependency_tree("a.py")

        b = tree.children[0]
        assert b.name == "b.py"
        assert not b.is_cyclic
        (a_again,) = b.children
        assert a_again.name == "a.py"
        assert a_again.is_cyclic
        assert a_again.children == []
        assert a_again.functions == []

    def test_self_import_is_cyclic(self, make_repo):
        root = make_repo({"me.py": "from . import me\n"})
        tree = DependencyAnalyzer(str(root)).analyze_file_dependency_tree("me.py")
        assert len(tree.children) == 1
        assert tree.children[0].is_cyclic

    def test_diamond_is_not_a_cycle(self, make_repo):
        root = make_repo({
            "top.py": "from . import left, right\n",
            "left.py": "from . import base\n",
            "right.py": "from . import base\n",
            "base.py": "",
        })
        tree = DependencyAnalyzer(str(root)).analyze_file_dependency_tree("top.py")

        assert _child_names(tree) == ["left.py", "right.py"]
        for branch in tree.children:
            (base,) = branch.children
            assert base.name == "base.py"
            assert not base.is_cyclic

    def test_depth_limit(self, make_repo):
        root = make_repo({
            "m0.py": "from . import m1\n",
            "m1.py": "from . import m2\n",
            "m2.py": "from . import m3\n",
            "m3.py": "def leaf():\n    pass\n",
        })
        tree = DependencyAnalyzer(str(root), file_max_depth=2).analyze_file_dependency_tree("m0.py")

        m1 = tree.children[0]
        m2 = m1.children[0]
        assert m2.name == "m2.py"
        assert m2.children == []
        assert m2.functions == []
        assert not m2.is_cyclic

    def test_unknown_file_is_a_leaf(self, make_repo):
        root = make_repo({"a.py": ""})
        tree = DependencyAnalyzer(str(root)).analyze_file_dependency_tree("nope.py")
        assert tree.name == "nope.py"
        assert tree.children == []
        assert tree.functions == []

    def test_every_child_path_is_a_known_dependency(self, sample_repo_path: Path):
        analyzer = DependencyAnalyzer(str(sample_repo_path))
        tree = analyzer.analyze_file_dependency_tree("main.go")

        for node in tree.walk():
            deps = analyzer.get_dependencies(node.full_path)
            assert [child.full_path for child in node.children] == (deps if node.children else [])


class TestFunctionDependencyTree:
    """Tests for function call trees."""

    def test_go_scenario_call_tree(self, make_repo):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        tree = DependencyAnalyzer(str(root)).analyze_function_dependency_tree("a.go", "Foo")

        assert tree.node_type == NodeType.FUNCTION
        assert tree.name == "Foo"
        assert tree.line_number == 5
        (bar,) = tree.children
        assert bar.name == "Bar"
        assert bar.full_path == str(root / "pkgb" / "b.go")
        assert bar.line_number == 3

    def test_unknown_function(self, make_repo):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        tree = DependencyAnalyzer(str(root)).analyze_function_dependency_tree("a.go", "Nope")

        assert tree.name == "Nope"
        assert tree.line_number == NOT_FOUND
        assert tree.children == []

    def test_recursion_is_cyclic(self, make_repo):
        root = make_repo({"r.py": "def ping():\n    pong()\n\n\ndef pong():\n    ping()\n"})
        tree = DependencyAnalyzer(str(root)).analyze_function_dependency_tree("r.py", "ping")

        (pong,) = tree.children
        (ping_again,) = pong.children
        assert ping_again.name == "ping"
        assert ping_again.is_cyclic
        assert ping_again.children == []

    def test_unresolved_calls_are_dropped(self, make_repo):
        root = make_repo({"u.py": "def f():\n    external_thing()\n"})
        tree = DependencyAnalyzer(str(root)).analyze_function_dependency_tree("u.py", "f")
        assert tree.children == []

    def test_depth_limit(self, make_repo):
        root = make_repo({
            "chain.py": "def a():\n    b()\n\n\ndef b():\n    c()\n\n\ndef c():\n    d()\n\n\ndef d():\n    pass\n",
        })
        tree = DependencyAnalyzer(str(root), function_max_depth=2).analyze_function_dependency_tree("chain.py", "a")

        c = tree.children[0].children[0]
        assert c.name == "c"
        assert c.children == []

    def test_method_call_resolves_by_last_segment(self, sample_repo_path: Path):
        tree = DependencyAnalyzer(str(sample_repo_path)).analyze_function_dependency_tree("main.go", "main")

        assert _child_names(tree) == ["New", "Store.Total"]
        total = tree.children[1]
        assert _child_names(total) == ["sum"]
        assert total.full_path == str(sample_repo_path / "store" / "store.go")

    def test_current_file_wins(self, make_repo):
        root = make_repo({
            "a.py": "def main():\n    helper()\n\n\ndef helper():\n    pass\n",
            "b.py": "def helper():\n    pass\n",
        })
        tree = DependencyAnalyzer(str(root), strict=True).analyze_function_dependency_tree("a.py", "main")
        assert tree.children[0].full_path == str(root / "a.py")

    def test_exact_match_preferred_over_last_segment(self, make_repo):
        root = make_repo({
            "main.py": "def main():\n    Repo.save()\n",
            "a.py": "class Other:\n    def save(self):\n        pass\n",
            "b.py": "class Repo:\n    def save(self):\n        pass\n",
        })
        tree = DependencyAnalyzer(str(root), strict=True).analyze_function_dependency_tree("main.py", "main")

        (save,) = tree.children
        assert save.name == "Repo.save"
        assert save.full_path == str(root / "b.py")

    def test_ambiguous_call_non_strict_takes_first_sorted(self, make_repo):
        root = make_repo({
            "main.py": "def main():\n    shared()\n",
            "x.py": "def shared():\n    pass\n",
            "y.py": "def shared():\n    pass\n",
        })
        tree = DependencyAnalyzer(str(root)).analyze_function_dependency_tree("main.py", "main")
        assert tree.children[0].full_path == str(root / "x.py")

    def test_ambiguous_call_strict_raises(self, make_repo):
        root = make_repo({
            "main.py": "def main():\n    shared()\n",
            "x.py": "def shared():\n    pass\n",
            "y.py": "def shared():\n    pass\n",
        })
        analyzer = DependencyAnalyzer(str(root), strict=True)

        with pytest.raises(AmbiguousCallError) as excinfo:
            analyzer.analyze_function_dependency_tree("main.py", "main")

        assert excinfo.value.call == "shared"
        assert excinfo.value.candidates == [str(root / "x.py"), str(root / "y.py")]


class TestPersistence:
    """Tests for saving and restoring analyzer state."""

    def test_round_trip(self, make_repo, temp_dir: Path):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        original = DependencyAnalyzer(str(root))
        before = original.analyze_function_dependency_tree("a.go", "Foo").to_dict()
        state = temp_dir / "state" / "analyzer.json"
        original.save_to_file(str(state))

        restored = DependencyAnalyzer(str(root))
        restored.load_from_file(str(state))

        assert restored.initialized
        assert restored.list_files() == original.list_files()
        assert restored.get_dependencies("a.go") == original.get_dependencies("a.go")
        assert restored.analyze_function_dependency_tree("a.go", "Foo").to_dict() == before
        assert restored.get_functions("a.go")[0].body == original.get_functions("a.go")[0].body
        bar = f"{root / 'pkgb' / 'b.go'}:Bar"
        assert restored.get_function_file(bar) == str(root / "pkgb" / "b.go")

    def test_load_skips_scan(self, make_repo, temp_dir: Path, monkeypatch):
        root = make_repo({"a.go": GO_A, "pkgb/b.go": GO_B})
        state = temp_dir / "analyzer.json"
        DependencyAnalyzer(str(root)).save_to_file(str(state))

        monkeypatch.setattr(
            "codemap_cli.analyzer.discover_source_files",
            lambda path: pytest.fail("scan should not run after load"),
        )
        restored = DependencyAnalyzer(str(root))
        restored.load_from_file(str(state))
        restored.analyze_file_dependency_tree("a.go")
