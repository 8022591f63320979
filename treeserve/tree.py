"""Virtual tree model: categories of names over filesystem roots."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Tuple, Union

from .errors import ConfigError

# Recursive through "#/definitions/tree_node"; the enclosing schema must
# register this under that name.
TREE_NODE_SCHEMA: Dict[str, Any] = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "additionalProperties": {"$ref": "#/definitions/tree_node"},
        },
    ]
}


@dataclass(frozen=True)
class Root:
    """A leaf of the tree: a real directory the namespace hands off to."""

    path: str


@dataclass(frozen=True)
class Category:
    """
    A branch of the tree. Children keep their configured order, which is the
    order listings enumerate them in.
    """

    children: Dict[str, "Node"] = field(default_factory=dict)

    def get(self, name: str) -> "Node | None":
        return self.children.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.children

    def __iter__(self) -> Iterator[str]:
        return iter(self.children)

    def items(self) -> Iterator[Tuple[str, "Node"]]:
        return iter(self.children.items())


Node = Union[Category, Root]


def build_tree(raw: Any, _trail: Tuple[str, ...] = ()) -> Node:
    """
    Build the tagged tree from its configuration form, where a string is a
    filesystem root and a mapping is a category.
    """
    if isinstance(raw, (Category, Root)):
        return raw
    if isinstance(raw, str):
        if not raw:
            raise ConfigError(f"empty filesystem root at /{'/'.join(_trail)}")
        return Root(raw)
    if isinstance(raw, dict):
        children: Dict[str, Node] = {}
        for name, value in raw.items():
            if not name or "/" in name or name in (".", ".."):
                raise ConfigError(f"invalid tree key {name!r} at /{'/'.join(_trail)}")
            children[name] = build_tree(value, _trail + (name,))
        return Category(children)
    raise ConfigError(
        f"tree node at /{'/'.join(_trail)} must be a string or an object, "
        f"not {type(raw).__name__}"
    )


def iter_roots(node: Node, _trail: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], Root]]:
    """Yield (tree path, root) for every filesystem root in the tree."""
    if isinstance(node, Root):
        yield _trail, node
        return
    for name, child in node.items():
        yield from iter_roots(child, _trail + (name,))
