"""
apikit discovery - finds annotated controllers and endpoints.
"""

from .occurrence import AnnotationKind, AnnotationOccurrence, AnnotationResult
from .cache import AnnotationCache
from .scanner import SourceScanner
from .detector import default_cache, detect_from_classes, detect_in, discover_controllers

__all__ = [
    "AnnotationKind",
    "AnnotationOccurrence",
    "AnnotationResult",
    "AnnotationCache",
    "SourceScanner",
    "default_cache",
    "detect_from_classes",
    "detect_in",
    "discover_controllers",
]
