"""
Annotation detection.

Two producers of AnnotationResult:

- ``detect_from_classes``: reads the metadata decorators attached to
  controller classes (carries real validator instances; what the server
  uses)
- ``detect_in``: source scan of a project tree through the shared
  AnnotationCache (carries source text; what tooling uses)

``discover_controllers`` combines them: it scans a tree, imports the
modules that declare controllers and returns the controller classes.
"""

import importlib.util
import inspect
import logging
import re
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..auth.annotations import jwt_metadata
from ..faults import DiscoveryFault
from .cache import AnnotationCache
from .occurrence import AnnotationKind, AnnotationOccurrence, AnnotationResult
from .scanner import SourceScanner

logger = logging.getLogger("apikit.discovery")

default_cache = AnnotationCache()


def _source_location(obj) -> tuple:
    try:
        file_path = inspect.getsourcefile(obj)
    except TypeError:
        file_path = None
    code = getattr(obj, "__code__", None)
    return file_path, code.co_firstlineno if code is not None else None


def detect_from_classes(classes: Iterable[type]) -> AnnotationResult:
    """Occurrences declared by decorators on ``classes``."""
    from ..controller.decorators import controller_metadata, route_metadata

    occurrences: List[AnnotationOccurrence] = []
    files = set()

    for cls in classes:
        class_name = cls.__name__
        class_file, _ = _source_location(cls)
        if class_file:
            files.add(class_file)

        declared = controller_metadata(cls)
        if declared is not None:
            occurrences.append(AnnotationOccurrence(
                kind=AnnotationKind.REST_CONTROLLER,
                target_name=class_name,
                parameters=dict(declared),
                file_path=class_file,
            ))

        for record in jwt_metadata(cls):
            occurrences.append(_jwt_occurrence(record, class_name, class_file, None))

        seen = set()
        for klass in cls.__mro__:
            if klass is object:
                continue
            for name, attr in vars(klass).items():
                if name in seen or not inspect.isfunction(attr):
                    continue
                seen.add(name)
                target = f"{class_name}.{name}"
                file_path, line = _source_location(attr)

                for route in route_metadata(attr):
                    kind = AnnotationKind.from_name(str(route["http_method"]).capitalize())
                    if kind is None:
                        logger.warning("Unsupported HTTP method %s on %s", route["http_method"], target)
                        continue
                    occurrences.append(AnnotationOccurrence(
                        kind=kind,
                        target_name=target,
                        parameters={"path": route["path"], "summary": route["summary"]},
                        file_path=file_path,
                        line_number=line,
                    ))

                for record in jwt_metadata(attr):
                    occurrences.append(_jwt_occurrence(record, target, file_path, line))

    return AnnotationResult(occurrences, files)


def _jwt_occurrence(record: dict, target: str, file_path, line) -> AnnotationOccurrence:
    parameters = {k: v for k, v in record.items() if k != "kind"}
    return AnnotationOccurrence(
        kind=AnnotationKind(record["kind"]),
        target_name=target,
        parameters=parameters,
        file_path=file_path,
        line_number=line,
    )


def detect_in(
    project_path: str,
    include_paths: Optional[Sequence[str]] = None,
    *,
    cache: Optional[AnnotationCache] = None,
    scanner: Optional[SourceScanner] = None,
) -> AnnotationResult:
    """Source-scan ``project_path`` (cached per path and include set)."""
    cache = cache if cache is not None else default_cache
    scanner = scanner or SourceScanner()
    return cache.get_or_scan(str(Path(project_path).resolve()), include_paths, scanner.scan)


def _import_file(path: str):
    module_name = "apikit_discovered_" + re.sub(r"\W", "_", str(Path(path).with_suffix("")))
    if module_name in sys.modules:
        return sys.modules[module_name]
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise DiscoveryFault(f"Cannot import {path}", file_path=path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[module_name]
        raise DiscoveryFault(f"Error importing {path}: {e}", file_path=path) from e
    return module


def discover_controllers(
    project_path: str,
    include_paths: Optional[Sequence[str]] = None,
    *,
    cache: Optional[AnnotationCache] = None,
) -> List[type]:
    """
    Import the modules of ``project_path`` that declare controllers and
    return the controller classes, in scan order.

    Modules that fail to import are logged and skipped.
    """
    from ..controller.base import Controller

    result = detect_in(project_path, include_paths, cache=cache)
    routed_classes = {
        o.class_name for o in result
        if o.kind == AnnotationKind.REST_CONTROLLER or o.kind.is_http_method
    }

    controllers: List[type] = []
    imported_files = []
    for occurrence in result:
        if occurrence.class_name not in routed_classes or occurrence.file_path in imported_files:
            continue
        imported_files.append(occurrence.file_path)
        try:
            module = _import_file(occurrence.file_path)
        except DiscoveryFault as e:
            logger.warning("%s", e.message)
            continue

        for name, obj in vars(module).items():
            if (
                inspect.isclass(obj)
                and name in routed_classes
                and issubclass(obj, Controller)
                and obj.__module__ == module.__name__
                and obj not in controllers
            ):
                controllers.append(obj)

    logger.info("Discovered %d controllers under %s", len(controllers), project_path)
    return controllers
