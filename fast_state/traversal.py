"""
Generic traversal of model trees.

A node is a composite if a children function is registered for its type (or one of its base classes),
or if it is a dataclass instance. Everything else is a leaf.
Keyed composites expose their children as an ordered `dict`, positional ones as a `tuple` or `list`.
"""

import dataclasses
import logging
import typing

import torch

from fast_state.utils import get_type_name

logger = logging.getLogger(__name__)

type Children = dict[typing.Any, typing.Any] | tuple[typing.Any, ...] | list[typing.Any]
type ChildrenFn = typing.Callable[[typing.Any], Children]


class TypeRegistry[ValueType]:
    """
    A registry keyed by type, where lookups fall back to the closest registered base class.
    Entries can be added but never replaced.
    """

    def __init__(self, name: str, entries: dict[type, ValueType]):
        self._name = name
        self._entries = dict(entries)

    def __contains__(self, type_: type) -> bool:
        return type_ in self._entries

    def __getitem__(self, type_: type) -> ValueType:
        return self._entries[type_]

    def __setitem__(self, type_: type, value: ValueType) -> None:
        if type_ in self._entries:
            raise KeyError(f"`{get_type_name(type_)}` is already registered in the {self._name} registry")
        self._entries[type_] = value

    def lookup(self, type_: type) -> ValueType | None:
        for base_type in type_.__mro__:
            if base_type in self:
                return self[base_type]
        return None


def _dict_children(node: dict) -> dict:
    return dict(node)


def _tuple_children(node: tuple) -> tuple | dict:
    if hasattr(node, "_fields"):
        # Named tuples are keyed by their field names.
        return node._asdict()
    return tuple(node)


def _list_children(node: list) -> list:
    return list(node)


def _module_children(module: torch.nn.Module) -> dict[str, typing.Any]:
    children = {}
    for name, parameter in module._parameters.items():
        # Parameters registered as `None` (ex. `bias=False`) are inactive.
        children[name] = False if parameter is None else parameter
    for name, buffer in module._buffers.items():
        if buffer is not None:
            children[name] = buffer
    for name, submodule in module._modules.items():
        if submodule is not None:
            children[name] = submodule
    # Hyperparameters and other public attributes.
    for name, value in vars(module).items():
        if not name.startswith("_") and name not in children:
            children[name] = value
    return children


_children_registry: TypeRegistry[ChildrenFn] = TypeRegistry(
    "children",
    {
        dict: _dict_children,
        tuple: _tuple_children,
        list: _list_children,
        torch.nn.Module: _module_children,
    },
)


def register_children(type_: type, fn: ChildrenFn) -> None:
    """
    Make instances of `type_` composite nodes, with children given by `fn`.
    """
    _children_registry[type_] = fn
    logger.debug(f"Registered children function for `{get_type_name(type_)}`")


def _get_children_fn(node: typing.Any) -> ChildrenFn | None:
    if (fn := _children_registry.lookup(type(node))) is not None:
        return fn
    if dataclasses.is_dataclass(node) and not isinstance(node, type):
        return _dataclass_children
    return None


def _dataclass_children(node: typing.Any) -> dict[str, typing.Any]:
    return {field.name: getattr(node, field.name) for field in dataclasses.fields(node)}


def is_leaf(node: typing.Any) -> bool:
    return _get_children_fn(node) is None


def children(node: typing.Any) -> Children:
    """
    The immediate sub-nodes of `node`, or an empty tuple for leaves.
    """
    fn = _get_children_fn(node)
    return () if fn is None else fn(node)


def is_keyed(node_children: Children) -> bool:
    return isinstance(node_children, dict)


def keyed_children(node: typing.Any) -> dict[typing.Any, typing.Any]:
    """
    The children of `node` as a mapping, with positional children keyed by their index.
    """
    node_children = children(node)
    return node_children if is_keyed(node_children) else dict(enumerate(node_children))


def map_structure(fn: typing.Callable[[typing.Any], typing.Any], node: typing.Any) -> typing.Any:
    """
    Mirror the structure of `node` using plain containers, applying `fn` to every leaf.
    Keyed composites become `dict`s, positional ones keep their kind.
    """
    if is_leaf(node):
        return fn(node)
    node_children = children(node)
    if is_keyed(node_children):
        return {key: map_structure(fn, child) for key, child in node_children.items()}
    return type(node_children)(map_structure(fn, child) for child in node_children)
