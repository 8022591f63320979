# python
"""
treeserve/filetypes.py
Extension to type-tag lookup used to label files in directory listings.
"""
from typing import Dict, Iterable, Mapping, Optional

from .errors import ConfigurationConflict

OTHER = "other"

DEFAULT_TYPES: Dict[str, list] = {
    "htmlfile": ["htm", "html"],
}


class TypeLookup:
    """
    Built once at startup from a mapping of type tag -> extensions.
    Extensions are stored without the leading dot and compared case-insensitively.
    """

    def __init__(self, table: Optional[Mapping[str, str]] = None):
        self._table: Dict[str, str] = dict(table or {})

    @classmethod
    def from_config(cls, types: Mapping[str, Iterable[str]]) -> "TypeLookup":
        table: Dict[str, str] = {}
        for type_tag, extensions in types.items():
            for ext in extensions:
                key = ext.lstrip(".").lower()
                if key in table:
                    raise ConfigurationConflict(key, table[key], type_tag)
                table[key] = type_tag
        return cls(table)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, ext: object) -> bool:
        return isinstance(ext, str) and ext.lower() in self._table

    def for_extension(self, ext: str) -> str:
        return self._table.get(ext.lstrip(".").lower(), OTHER)

    def for_name(self, name: str) -> str:
        """Type tag for a file name; names without an extension are `other`."""
        base, dot, ext = name.rpartition(".")
        if not dot or not base:
            return OTHER
        return self.for_extension(ext)
