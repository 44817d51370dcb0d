"""
Annotation occurrences - the flat records discovery produces.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set


class AnnotationKind(str, Enum):
    """Every annotation the framework understands."""
    REST_CONTROLLER = "RestController"
    GET = "Get"
    POST = "Post"
    PUT = "Put"
    PATCH = "Patch"
    DELETE = "Delete"
    JWT_PUBLIC = "JWTPublic"
    JWT_CONTROLLER = "JWTController"
    JWT_ENDPOINT = "JWTEndpoint"

    @property
    def is_http_method(self) -> bool:
        return self in HTTP_KINDS

    @property
    def is_jwt(self) -> bool:
        return self in (
            AnnotationKind.JWT_PUBLIC,
            AnnotationKind.JWT_CONTROLLER,
            AnnotationKind.JWT_ENDPOINT,
        )

    @classmethod
    def from_name(cls, name: str) -> Optional["AnnotationKind"]:
        """Kind for a decorator name, or None if it is not ours."""
        try:
            return cls(name)
        except ValueError:
            return None


HTTP_KINDS = (
    AnnotationKind.GET,
    AnnotationKind.POST,
    AnnotationKind.PUT,
    AnnotationKind.PATCH,
    AnnotationKind.DELETE,
)


@dataclass(frozen=True)
class AnnotationOccurrence:
    """
    One annotation applied to a class or method.

    Attributes:
        kind: Annotation kind
        target_name: "ClassName" or "ClassName.method_name"
        parameters: Annotation arguments (``base_path``, ``path``,
                    ``validators``, ``require_all``)
        file_path: Source file, when known
        line_number: 1-based line of the decorator, when known
    """
    kind: AnnotationKind
    target_name: str
    parameters: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    file_path: Optional[str] = None
    line_number: Optional[int] = None

    @property
    def class_name(self) -> str:
        return self.target_name.split(".", 1)[0]

    @property
    def method_name(self) -> Optional[str]:
        if "." not in self.target_name:
            return None
        return self.target_name.split(".", 1)[1]

    @property
    def is_method_level(self) -> bool:
        return self.method_name is not None

    @property
    def http_method(self) -> Optional[str]:
        """``"GET"`` etc. for verb annotations, None otherwise."""
        if self.kind.is_http_method:
            return self.kind.value.upper()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form; non-literal parameters are rendered with repr()."""
        return {
            "kind": self.kind.value,
            "target": self.target_name,
            "parameters": {k: _printable(v) for k, v in self.parameters.items()},
            "file": self.file_path,
            "line": self.line_number,
        }


def _printable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_printable(v) for v in value]
    return repr(value)


class AnnotationResult:
    """Ordered collection of occurrences with lookup helpers."""

    def __init__(
        self,
        occurrences: Optional[Iterable[AnnotationOccurrence]] = None,
        files: Optional[Iterable[str]] = None,
    ):
        self.occurrences: List[AnnotationOccurrence] = list(occurrences or [])
        self.files: Set[str] = set(files or [])

    def __iter__(self) -> Iterator[AnnotationOccurrence]:
        return iter(self.occurrences)

    def __len__(self) -> int:
        return len(self.occurrences)

    def __repr__(self) -> str:
        return f"<AnnotationResult {len(self.occurrences)} occurrences in {len(self.files)} files>"

    @property
    def total(self) -> int:
        return len(self.occurrences)

    def of_type(self, kind: AnnotationKind) -> List[AnnotationOccurrence]:
        return [o for o in self.occurrences if o.kind == kind]

    def for_target(self, target_name: str) -> List[AnnotationOccurrence]:
        return [o for o in self.occurrences if o.target_name == target_name]

    def for_class(self, class_name: str) -> List[AnnotationOccurrence]:
        """Class-level and method-level occurrences belonging to ``class_name``."""
        return [o for o in self.occurrences if o.class_name == class_name]

    def class_names(self) -> List[str]:
        """Classes carrying any annotation, in first-seen order."""
        seen: Dict[str, None] = {}
        for o in self.occurrences:
            seen.setdefault(o.class_name, None)
        return list(seen)

    def stats(self) -> Dict[str, int]:
        """Occurrence count per kind name."""
        return dict(Counter(o.kind.value for o in self.occurrences))

    def merge(self, other: "AnnotationResult") -> "AnnotationResult":
        return AnnotationResult(
            self.occurrences + other.occurrences,
            self.files | other.files,
        )
