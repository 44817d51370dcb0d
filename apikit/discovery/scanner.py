"""
Source Scanner.

Finds apikit annotations in ``.py`` files by parsing them with ``ast``;
nothing is imported or executed. Used by tooling (route listings,
annotation reports) and to locate controller modules.
"""

import ast
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..faults import DiscoveryFault
from .occurrence import AnnotationKind, AnnotationOccurrence, AnnotationResult

logger = logging.getLogger("apikit.discovery")

SKIP_DIRS = {
    "__pycache__", ".git", ".hg", ".tox", ".venv", "venv", "env",
    "build", "dist", "site-packages", "node_modules", ".mypy_cache", ".pytest_cache",
}

# Which argument carries which parameter, positionally
_POSITIONAL_PARAMS = {
    AnnotationKind.REST_CONTROLLER: ("base_path",),
    AnnotationKind.GET: ("path",),
    AnnotationKind.POST: ("path",),
    AnnotationKind.PUT: ("path",),
    AnnotationKind.PATCH: ("path",),
    AnnotationKind.DELETE: ("path",),
    AnnotationKind.JWT_PUBLIC: (),
    AnnotationKind.JWT_CONTROLLER: ("validators", "require_all"),
    AnnotationKind.JWT_ENDPOINT: ("validators", "require_all"),
}

_DEFAULTS = {
    AnnotationKind.REST_CONTROLLER: {"base_path": ""},
    AnnotationKind.JWT_CONTROLLER: {"require_all": True},
    AnnotationKind.JWT_ENDPOINT: {"require_all": True},
}


def _decorator_name(node: ast.expr) -> Optional[str]:
    """``Get``, ``apikit.Get``, ``Get(...)`` -> ``"Get"``."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


class _AnnotationVisitor(ast.NodeVisitor):
    """Collects occurrences from one module."""

    def __init__(self, source: str, file_path: str):
        self.source = source
        self.file_path = file_path
        self.found: List[AnnotationOccurrence] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._collect(node.decorator_list, node.name)
        for child in node.body:
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._collect(child.decorator_list, f"{node.name}.{child.name}")
            elif isinstance(child, ast.ClassDef):
                self.visit(child)

    def _collect(self, decorators: List[ast.expr], target_name: str) -> None:
        for decorator in decorators:
            kind = AnnotationKind.from_name(_decorator_name(decorator) or "")
            if kind is None:
                continue
            # Class-level kinds on methods (and vice versa) are not ours
            method_level = "." in target_name
            if method_level and kind in (AnnotationKind.REST_CONTROLLER, AnnotationKind.JWT_CONTROLLER):
                continue
            if not method_level and kind not in (AnnotationKind.REST_CONTROLLER, AnnotationKind.JWT_CONTROLLER):
                continue

            self.found.append(AnnotationOccurrence(
                kind=kind,
                target_name=target_name,
                parameters=self._parameters(kind, decorator),
                file_path=self.file_path,
                line_number=decorator.lineno,
            ))

    def _parameters(self, kind: AnnotationKind, decorator: ast.expr) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(_DEFAULTS.get(kind, {}))
        if not isinstance(decorator, ast.Call):
            return params

        names = _POSITIONAL_PARAMS[kind]
        for name, arg in zip(names, decorator.args):
            params[name] = self._value(name, arg)
        for keyword in decorator.keywords:
            if keyword.arg is not None:
                params[keyword.arg] = self._value(keyword.arg, keyword.value)
        return params

    def _value(self, name: str, node: ast.expr) -> Any:
        """
        Literal value, or source text for expressions (validator
        constructors, constants). Validator lists become a list of source
        strings, one per element.
        """
        if name == "validators" and isinstance(node, (ast.List, ast.Tuple)):
            return [self._segment(element) for element in node.elts]
        try:
            return ast.literal_eval(node)
        except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
            return self._segment(node)

    def _segment(self, node: ast.expr) -> str:
        return ast.get_source_segment(self.source, node) or ast.dump(node)


class SourceScanner:
    """
    Scans a project tree for annotation occurrences.

    Without include paths the whole project tree is scanned (skipping
    virtualenvs, caches and build output). Include paths are resolved
    against the project root unless absolute.
    """

    def __init__(self, skip_dirs: Optional[Sequence[str]] = None):
        self.skip_dirs = set(skip_dirs) if skip_dirs is not None else set(SKIP_DIRS)
        self._stats = {"files_scanned": 0, "files_failed": 0, "scan_time": 0.0}

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._stats)

    def scan(self, project_path: str, include_paths: Optional[Sequence[str]] = None) -> AnnotationResult:
        start = time.monotonic()
        root = Path(project_path).resolve()
        if not root.exists():
            raise DiscoveryFault(f"Project path does not exist: {root}", file_path=str(root))

        occurrences: List[AnnotationOccurrence] = []
        files: List[str] = []
        for file_path in self._iter_files(root, include_paths):
            try:
                occurrences.extend(self.scan_file(file_path))
            except DiscoveryFault as e:
                self._stats["files_failed"] += 1
                logger.warning("Skipping %s: %s", file_path, e.message)
                continue
            files.append(str(file_path))

        elapsed = time.monotonic() - start
        self._stats["scan_time"] += elapsed
        logger.info(
            "Found %d annotations in %d files (%.1fms)",
            len(occurrences), len(files), elapsed * 1000.0,
        )
        return AnnotationResult(occurrences, files)

    def scan_file(self, file_path: Path) -> List[AnnotationOccurrence]:
        """
        Occurrences in one file.

        Raises:
            DiscoveryFault: unreadable file or syntax error
        """
        try:
            source = Path(file_path).read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(file_path))
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as e:
            raise DiscoveryFault(f"Cannot parse {file_path}: {e}", file_path=str(file_path))

        self._stats["files_scanned"] += 1
        visitor = _AnnotationVisitor(source, str(file_path))
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                visitor.visit(node)
        return visitor.found

    def _iter_files(self, root: Path, include_paths: Optional[Sequence[str]]) -> Iterator[Path]:
        if include_paths:
            bases = [Path(p) if os.path.isabs(p) else root / p for p in include_paths]
        else:
            bases = [root]

        seen = set()
        for base in bases:
            if base.is_file():
                candidates = [base] if base.suffix == ".py" else []
            elif base.is_dir():
                candidates = self._walk(base)
            else:
                logger.debug("Include path %s does not exist, skipping", base)
                continue
            for path in candidates:
                resolved = path.resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    yield resolved

    def _walk(self, base: Path) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(
                d for d in dirnames if d not in self.skip_dirs and not d.startswith(".")
            )
            for filename in sorted(filenames):
                if filename.endswith(".py"):
                    yield Path(dirpath) / filename
