"""
JWT policy resolution.

Precedence for one endpoint:

1. ``@JWTPublic`` on the method -> PublicPolicy
2. ``@JWTEndpoint`` on the method -> its validators (controller ignored)
3. ``@JWTController`` on the class -> its validators
4. otherwise -> BasicAuthOnlyPolicy (valid token, no validators)

Malformed annotations never open access: they resolve to
BasicAuthOnlyPolicy with a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union
import logging
import threading

from ..discovery.occurrence import AnnotationKind, AnnotationOccurrence
from .validators import Validator

logger = logging.getLogger("apikit.auth.policy")


@dataclass(frozen=True)
class PublicPolicy:
    kind: str = "public"


@dataclass(frozen=True)
class BasicAuthOnlyPolicy:
    kind: str = "basic_auth_only"


@dataclass(frozen=True)
class ValidatedPolicy:
    """Token required and ``validators`` combined with AND or OR."""
    validators: Tuple[Validator, ...]
    require_all: bool = True
    kind: str = "validated"

    @property
    def validation_mode(self) -> str:
        return "require_all" if self.require_all else "require_any"


JWTPolicy = Union[PublicPolicy, BasicAuthOnlyPolicy, ValidatedPolicy]


class MalformedAnnotationError(ValueError):
    """JWT annotation parameters cannot be turned into a policy."""


def _validated_from(occurrence: AnnotationOccurrence) -> ValidatedPolicy:
    validators = occurrence.parameters.get("validators")
    if not isinstance(validators, (list, tuple)):
        raise MalformedAnnotationError(
            f"@{occurrence.kind.value} on {occurrence.target_name} has no validator list"
        )
    for validator in validators:
        if not isinstance(validator, Validator):
            raise MalformedAnnotationError(
                f"@{occurrence.kind.value} on {occurrence.target_name}: "
                f"{validator!r} is not a Validator instance"
            )
    require_all = occurrence.parameters.get("require_all", True)
    if not isinstance(require_all, bool):
        raise MalformedAnnotationError(
            f"@{occurrence.kind.value} on {occurrence.target_name}: require_all must be a bool"
        )
    return ValidatedPolicy(validators=tuple(validators), require_all=require_all)


def _cache_key(controller_name: str, method_name: str, owner: Optional[type]) -> str:
    if owner is None:
        return f"{controller_name}.{method_name}"
    return f"{owner.__module__}.{owner.__qualname__}.{method_name}"


class PolicyResolver:
    """
    Resolves and caches the JWT policy of each endpoint.

    The cache is keyed ``"Controller.method"``, or by the controller's
    ``module.qualname`` when ``owner`` is given so that same-named classes
    from different modules never share an entry. It lives until
    ``clear_cache()``.
    """

    def __init__(self):
        self._cache: Dict[str, JWTPolicy] = {}
        self._lock = threading.Lock()

    def resolve(
        self,
        controller_name: str,
        method_name: str,
        annotations: Iterable[AnnotationOccurrence],
        owner: Optional[type] = None,
    ) -> JWTPolicy:
        key = _cache_key(controller_name, method_name, owner)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            policy = self._resolve_uncached(
                controller_name, f"{controller_name}.{method_name}", annotations
            )
        except MalformedAnnotationError as e:
            logger.warning("%s; falling back to basic JWT authentication", e)
            policy = BasicAuthOnlyPolicy()
        except Exception as e:
            logger.warning(
                "Could not resolve JWT policy for %s (%s); falling back to basic JWT authentication",
                key, e,
            )
            policy = BasicAuthOnlyPolicy()

        with self._lock:
            # First writer wins so every caller sees the same policy object
            policy = self._cache.setdefault(key, policy)
        logger.debug("JWT policy for %s: %s", key, policy.kind)
        return policy

    def _resolve_uncached(
        self,
        controller_name: str,
        method_target: str,
        annotations: Iterable[AnnotationOccurrence],
    ) -> JWTPolicy:
        endpoint: Optional[AnnotationOccurrence] = None
        controller: Optional[AnnotationOccurrence] = None

        for occurrence in annotations:
            if occurrence.target_name == method_target:
                if occurrence.kind == AnnotationKind.JWT_PUBLIC:
                    return PublicPolicy()
                if occurrence.kind == AnnotationKind.JWT_ENDPOINT and endpoint is None:
                    endpoint = occurrence
            elif occurrence.target_name == controller_name:
                if occurrence.kind == AnnotationKind.JWT_CONTROLLER and controller is None:
                    controller = occurrence

        if endpoint is not None:
            return _validated_from(endpoint)
        if controller is not None:
            return _validated_from(controller)
        return BasicAuthOnlyPolicy()

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def cached(
        self, controller_name: str, method_name: str, owner: Optional[type] = None
    ) -> Optional[JWTPolicy]:
        with self._lock:
            return self._cache.get(_cache_key(controller_name, method_name, owner))


def describe(policy: Any) -> str:
    """Short label for route listings."""
    if isinstance(policy, ValidatedPolicy):
        names = ", ".join(v.name for v in policy.validators)
        return f"validated[{policy.validation_mode}: {names}]"
    return getattr(policy, "kind", "unknown")
