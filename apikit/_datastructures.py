"""
Request data structures.

Provides:
- MultiDict: repeated-key mapping for query strings
- Headers: case-insensitive view over raw ASGI header pairs
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(Mapping[str, str]):
    """
    Mapping that keeps every value of a repeated key.

    Item access returns the first value, matching what a handler asking for
    ``?page=2`` expects; ``get_all`` returns the full list.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, str]]] = None):
        self._data: Dict[str, List[str]] = {}
        if isinstance(items, Mapping):
            items = list(items.items())
        for key, value in items or []:
            self._data.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data!r})"

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to a plain dict.

        Args:
            multi: If True, every key maps to its list of values.
                   If False, every key maps to its first value.
        """
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: v[0] for k, v in self._data.items()}


# ============================================================================
# Headers
# ============================================================================

class Headers(Mapping[str, str]):
    """
    Case-insensitive header access over raw ASGI ``(bytes, bytes)`` pairs.

    Names are normalised to lower case; the first value wins for item access.
    """

    def __init__(self, raw: Optional[List[Tuple[bytes, bytes]]] = None):
        self.raw = list(raw or [])
        self._index: Dict[str, List[str]] = {}
        for name, value in self.raw:
            self._index.setdefault(name.decode("latin-1").lower(), []).append(
                value.decode("latin-1")
            )

    def __getitem__(self, name: str) -> str:
        values = self._index.get(name.lower())
        if not values:
            raise KeyError(name)
        return values[0]

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"

    def get_all(self, name: str) -> List[str]:
        return list(self._index.get(name.lower(), []))

    def to_dict(self) -> Dict[str, str]:
        """Lower-cased name -> first value."""
        return {name: values[0] for name, values in self._index.items()}
