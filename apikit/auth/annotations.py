"""
JWT annotations.

- ``@JWTPublic()`` on a method: no token needed.
- ``@JWTController([...], require_all=True)`` on a class: validators for
  every endpoint of the controller.
- ``@JWTEndpoint([...], require_all=True)`` on a method: replaces the
  controller validators for that endpoint.

Endpoints without any of these still need a valid token.
"""

from typing import Any, Callable, Dict, List, Sequence, TypeVar

F = TypeVar('F', bound=Callable[..., Any])
C = TypeVar('C', bound=type)

JWT_METADATA_ATTR = '__jwt_metadata__'


def _attach(target: Any, record: Dict[str, Any]) -> None:
    # Own attribute only; a subclass must not pick up its parent's list
    if JWT_METADATA_ATTR not in target.__dict__:
        setattr(target, JWT_METADATA_ATTR, [])
    getattr(target, JWT_METADATA_ATTR).append(record)


class JWTPublic:
    """Marks an endpoint as public (skips JWT validation entirely)."""

    kind = "JWTPublic"

    def __call__(self, func: F) -> F:
        _attach(func, {'kind': self.kind})
        return func


class _ValidatorAnnotation:
    kind = ""

    def __init__(self, validators: Sequence[Any], require_all: bool = True):
        self.validators = list(validators)
        self.require_all = require_all

    def _record(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'validators': list(self.validators),
            'require_all': self.require_all,
        }


class JWTController(_ValidatorAnnotation):
    """
    Controller-level validators.

    Args:
        validators: Validator instances, run in order
        require_all: True for AND, False for OR
    """

    kind = "JWTController"

    def __call__(self, cls: C) -> C:
        _attach(cls, self._record())
        return cls


class JWTEndpoint(_ValidatorAnnotation):
    """Endpoint-level validators; overrides the controller's."""

    kind = "JWTEndpoint"

    def __call__(self, func: F) -> F:
        _attach(func, self._record())
        return func


def jwt_metadata(target: Any) -> List[Dict[str, Any]]:
    """JWT annotation records declared directly on a class or function."""
    target = getattr(target, '__func__', target)
    return list(target.__dict__.get(JWT_METADATA_ATTR, []))
