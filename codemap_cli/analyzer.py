"""Repository-wide lexical dependency analysis.

The analyzer scans every supported source file once, on a bounded thread
pool, and keeps three maps in memory:

- file path -> resolved local dependency paths
- file path -> functions defined in the file
- qualified function name -> file that defines it

Dependency trees are built on demand from these maps.  All paths are
absolute.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import (
    FILE_TREE_MAX_DEPTH,
    FUNCTION_TREE_MAX_DEPTH,
    SKIP_DIRS,
    SUPPORTED_EXTENSIONS,
    default_max_workers,
)
from .languages import NOT_FOUND, get_profile_for_file, language_for_path
from .locks import ReadWriteLock
from .models import DependencyFunction, DependencyTree, FileInfo, FunctionInfo, NodeType

logger = logging.getLogger(__name__)

STATE_VERSION = 1

_SEGMENT_SPLIT_RE = re.compile(r"\.|::|->")


class ScanError(RuntimeError):
    """One or more files could not be processed during ``initialize()``."""

    def __init__(self, errors: Sequence[Tuple[str, BaseException]]):
        self.errors = list(errors)
        preview = "; ".join(f"{path}: {exc}" for path, exc in self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"{len(self.errors)} file(s) failed to scan: {preview}{more}")


class AnalysisCancelledError(RuntimeError):
    """The analyzer was cancelled before the scan completed."""


class AmbiguousCallError(LookupError):
    """A call matched functions in more than one file (strict mode only)."""

    def __init__(self, call: str, candidates: Sequence[str]):
        self.call = call
        self.candidates = list(candidates)
        super().__init__(f"Call '{call}' is ambiguous between: {', '.join(self.candidates)}")


def _is_source_file(name: str) -> bool:
    return not name.startswith(".") and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS


def discover_source_files(root: str) -> List[FileInfo]:
    """Walk *root* and return supported source files in a stable order.

    Hidden entries and vendored/dependency directories are skipped.
    """

    def _on_error(exc: OSError) -> None:
        logger.warning("Cannot read directory %s: %s", exc.filename, exc)

    files: List[FileInfo] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS)
        for name in sorted(filenames):
            if not _is_source_file(name):
                continue
            files.append(FileInfo(
                path=os.path.join(dirpath, name),
                extension=os.path.splitext(name)[1].lower(),
                language=language_for_path(name),
            ))
    return files


def _last_segment(name: str) -> str:
    return _SEGMENT_SPLIT_RE.split(name)[-1]


class DependencyAnalyzer:
    """Builds file and function dependency trees for one repository."""

    def __init__(
        self,
        base_path: str,
        max_workers: Optional[int] = None,
        strict: bool = False,
        file_max_depth: int = FILE_TREE_MAX_DEPTH,
        function_max_depth: int = FUNCTION_TREE_MAX_DEPTH,
    ):
        self.base_path = os.path.abspath(base_path)
        self.max_workers = max_workers or default_max_workers()
        self.strict = strict
        self.file_max_depth = file_max_depth
        self.function_max_depth = function_max_depth
        self.initialized = False

        self._lock = ReadWriteLock()
        self._init_lock = threading.Lock()
        self._cancel = threading.Event()

        self._file_dependencies: Dict[str, List[str]] = {}
        self._file_functions: Dict[str, List[FunctionInfo]] = {}
        self._function_to_file: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop a running or future scan.  Cancellation is permanent."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def initialize(self) -> None:
        """Scan the repository once; later calls are no-ops.

        Raises:
            AnalysisCancelledError: ``cancel()`` was called.
            ScanError: one or more files failed; the others were still
                processed, but nothing is committed.
        """
        with self._init_lock:
            if self.initialized:
                return
            if self.cancelled:
                raise AnalysisCancelledError("Analysis was cancelled")

            files = discover_source_files(self.base_path)
            logger.info("Scanning %d source files under %s", len(files), self.base_path)

            results = []
            errors: List[Tuple[str, BaseException]] = []
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {pool.submit(self._process_file, info): info for info in files}
                for future in as_completed(futures):
                    info = futures[future]
                    try:
                        result = future.result()
                    except Exception as exc:
                        logger.debug("Failed to process %s: %s", info.path, exc)
                        errors.append((info.path, exc))
                        continue
                    if result is not None:
                        results.append(result)

            if self.cancelled:
                raise AnalysisCancelledError("Analysis was cancelled")
            if errors:
                errors.sort(key=lambda item: item[0])
                raise ScanError(errors)

            with self._lock.write_lock():
                for path, dependencies, functions in results:
                    self._file_dependencies[path] = dependencies
                    self._file_functions[path] = functions
                    for fn in functions:
                        self._function_to_file[fn.full_name] = path
            self.initialized = True
            logger.info(
                "Indexed %d files, %d functions",
                len(results),
                sum(len(functions) for _, _, functions in results),
            )

    def _process_file(self, info: FileInfo) -> Optional[Tuple[str, List[str], List[FunctionInfo]]]:
        if self.cancelled:
            return None

        profile = get_profile_for_file(info.path)
        with open(info.path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()

        dependencies: List[str] = []
        for spec in profile.extract_imports(content):
            resolved = profile.resolve_import_path(spec, info.path, self.base_path)
            for target in self._expand_target(resolved, info.path):
                if target not in dependencies:
                    dependencies.append(target)

        functions: List[FunctionInfo] = []
        seen = set()
        for fn in profile.extract_functions(content):
            if fn.name in seen:
                continue
            seen.add(fn.name)
            functions.append(FunctionInfo(
                name=fn.name,
                full_name=f"{info.path}:{fn.name}",
                file_path=info.path,
                line_number=profile.get_function_line_number(content, fn.name),
                calls=profile.extract_function_calls(fn.body),
                body=fn.body,
            ))

        logger.debug("%s: %d deps, %d functions", info.path, len(dependencies), len(functions))
        return info.path, dependencies, functions

    def _expand_target(self, resolved: str, current_file: str) -> List[str]:
        """Turn a resolved import into existing files; directories expand one level."""
        if not resolved:
            return []
        target = os.path.normpath(
            resolved if os.path.isabs(resolved) else os.path.join(self.base_path, resolved)
        )
        if os.path.isfile(target):
            return [target]
        if not os.path.isdir(target):
            return []
        try:
            names = sorted(os.listdir(target))
        except OSError as exc:
            logger.warning("Cannot list package directory %s: %s", target, exc)
            return []
        return [
            path for path in (os.path.join(target, name) for name in names if _is_source_file(name))
            if path != current_file and os.path.isfile(path)
        ]

    def _absolute(self, path: str) -> str:
        return os.path.normpath(path if os.path.isabs(path) else os.path.join(self.base_path, path))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def list_files(self) -> List[str]:
        with self._lock.read_lock():
            return sorted(self._file_functions)

    def get_dependencies(self, path: str) -> List[str]:
        with self._lock.read_lock():
            return list(self._file_dependencies.get(self._absolute(path), []))

    def get_functions(self, path: str) -> List[FunctionInfo]:
        with self._lock.read_lock():
            return list(self._file_functions.get(self._absolute(path), []))

    def get_function_file(self, full_name: str) -> Optional[str]:
        """File defining the function *full_name* (``path:name``), if known."""
        with self._lock.read_lock():
            return self._function_to_file.get(full_name)

    # ------------------------------------------------------------------
    # File tree
    # ------------------------------------------------------------------

    def analyze_file_dependency_tree(self, path: str) -> DependencyTree:
        """Dependency tree rooted at *path* (relative paths are under ``base_path``)."""
        self.initialize()
        with self._lock.read_lock():
            return self._build_file_tree(self._absolute(path), frozenset(), 0)

    def _build_file_tree(self, path: str, visited: FrozenSet[str], depth: int) -> DependencyTree:
        node = DependencyTree(node_type=NodeType.FILE, name=os.path.basename(path), full_path=path)
        if path in visited:
            node.is_cyclic = True
            return node
        if depth >= self.file_max_depth:
            return node

        node.functions = [
            DependencyFunction(name=fn.name, line_number=fn.line_number)
            for fn in self._file_functions.get(path, [])
        ]
        path_visited = visited | {path}
        node.children = [
            self._build_file_tree(dep, path_visited, depth + 1)
            for dep in self._file_dependencies.get(path, [])
        ]
        return node

    # ------------------------------------------------------------------
    # Function tree
    # ------------------------------------------------------------------

    def analyze_function_dependency_tree(self, file_path: str, function_name: str) -> DependencyTree:
        """Call tree rooted at *function_name* in *file_path*.

        An unknown function yields a single node with line number
        :data:`NOT_FOUND` and no children.
        """
        self.initialize()
        path = self._absolute(file_path)
        with self._lock.read_lock():
            root = self._match_in_file(path, function_name)
            if root is None:
                return DependencyTree(
                    node_type=NodeType.FUNCTION,
                    name=function_name,
                    full_path=path,
                    line_number=NOT_FOUND,
                )
            return self._build_function_tree(root, frozenset(), 0)

    def _build_function_tree(self, fn: FunctionInfo, visited: FrozenSet[str], depth: int) -> DependencyTree:
        node = DependencyTree(
            node_type=NodeType.FUNCTION,
            name=fn.name,
            full_path=fn.file_path,
            line_number=fn.line_number,
        )
        if fn.full_name in visited:
            node.is_cyclic = True
            return node
        if depth >= self.function_max_depth:
            return node

        path_visited = visited | {fn.full_name}
        for call in fn.calls:
            target = self._resolve_call(call, fn.file_path)
            if target is not None:
                node.children.append(self._build_function_tree(target, path_visited, depth + 1))
        return node

    def _match_in_file(self, path: str, call: str, exact: Optional[bool] = None) -> Optional[FunctionInfo]:
        """Find *call* among the functions of *path*.

        With ``exact=None`` an exact match is tried before a last-segment
        match; ``True``/``False`` restrict the search to one kind.
        """
        functions = self._file_functions.get(path, [])
        if exact is not False:
            for fn in functions:
                if fn.name == call:
                    return fn
        if exact is not True:
            short = _last_segment(call)
            for fn in functions:
                if _last_segment(fn.name) == short:
                    return fn
        return None

    def _resolve_call(self, call: str, current_file: str) -> Optional[FunctionInfo]:
        local = self._match_in_file(current_file, call)
        if local is not None:
            return local

        others = [path for path in sorted(self._file_functions) if path != current_file]
        for exact in (True, False):
            matches = []
            for path in others:
                fn = self._match_in_file(path, call, exact=exact)
                if fn is None:
                    continue
                if not self.strict:
                    return fn
                matches.append(fn)
            if len(matches) > 1:
                raise AmbiguousCallError(call, [fn.file_path for fn in matches])
            if matches:
                return matches[0]
        return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_to_file(self, path: str) -> None:
        with self._lock.read_lock():
            data = {
                "version": STATE_VERSION,
                "base_path": self.base_path,
                "file_dependencies": {k: list(v) for k, v in self._file_dependencies.items()},
                "file_functions": {
                    k: [fn.to_dict() for fn in v] for k, v in self._file_functions.items()
                },
                "function_to_file": dict(self._function_to_file),
            }
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Saved analyzer state for %d files to %s", len(data["file_functions"]), target)

    def load_from_file(self, path: str) -> None:
        """Replace in-memory state with a saved snapshot and mark it initialized."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        with self._lock.write_lock():
            self._file_dependencies = {
                k: list(v) for k, v in data.get("file_dependencies", {}).items()
            }
            self._file_functions = {
                k: [FunctionInfo.from_dict(fn) for fn in v]
                for k, v in data.get("file_functions", {}).items()
            }
            self._function_to_file = dict(data.get("function_to_file", {}))
        self.initialized = True
        logger.info("Loaded analyzer state for %d files from %s", len(self._file_functions), path)
