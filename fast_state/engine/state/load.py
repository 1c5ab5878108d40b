import logging
import typing

from fast_state.config import Configurable
from fast_state.engine.state.config import LoadConfig
from fast_state.engine.state.errors import (
    InvalidPlaceholderError,
    LeafTypeError,
    ShapeMismatchError,
    StructureMismatchError,
    TiedTypeMismatchError,
    TiedValueMismatchError,
)
from fast_state.engine.state.safe_load import SafeLoad
from fast_state.tensor import ArrayLike, arrays_equal, copy_array, get_shape, is_array, is_placeholder, is_zero
from fast_state.traversal import is_leaf, keyed_children
from fast_state.utils import format_path, get_type_name

logger = logging.getLogger(__name__)

type FilterFn = typing.Callable[[typing.Any], bool]


def _accept_all(value: typing.Any) -> bool:
    return True


class LoadCache:
    """
    The destination arrays already loaded during a top-level load, compared by identity,
    along with the first source value loaded into each of them.
    Holds a reference to each array so identities stay valid until the cache is discarded.
    """

    def __init__(self):
        self._entries: dict[int, tuple[ArrayLike, typing.Any]] = {}

    def __contains__(self, leaf: typing.Any) -> bool:
        return id(leaf) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, leaf: ArrayLike, source: typing.Any) -> None:
        assert leaf not in self
        self._entries[id(leaf)] = (leaf, source)

    def get_source(self, leaf: ArrayLike) -> typing.Any:
        return self._entries[id(leaf)][1]


def _describe(value: typing.Any) -> str:
    if is_array(value):
        return f"array of shape {get_shape(value)}"
    if is_placeholder(value):
        return f"placeholder `{value}`"
    return f"`{get_type_name(type(value))}`"


def load_leaf(destination: typing.Any, source: typing.Any, path: tuple = ()) -> int | None:
    """
    Copy a source leaf into a destination leaf, in place.
    Returns the number of copied entries, or `None` if nothing was copied.

    Only array destinations receive values. Placeholders only check that the source is compatible,
    and other leaves (activation functions, hyperparameters, etc.) are left as-is, whatever the source.
    """
    if is_array(destination):
        if is_placeholder(source):
            if source:
                raise InvalidPlaceholderError(
                    f"Cannot copy the active placeholder `{source}` into array `{format_path(path)}`"
                    f" of shape {get_shape(destination)}"
                )
            # An inactive source leaves the destination untouched, it is NOT zeroed.
            return None
        if not is_array(source):
            raise LeafTypeError(
                f"Tried to copy {_describe(source)} into array `{format_path(path)}`"
                f" of shape {get_shape(destination)}; this is not allowed."
            )
        if get_shape(destination) != get_shape(source):
            raise ShapeMismatchError(
                f"Tried to load an array of shape {get_shape(source)}"
                f" into `{format_path(path)}` of shape {get_shape(destination)}"
            )
        return copy_array(destination, source)
    if is_placeholder(destination) and is_array(source):
        if destination or not is_zero(source):
            raise InvalidPlaceholderError(
                f"Cannot copy a non-zero array into placeholder `{format_path(path)}`"
                if not destination
                else f"Cannot copy an array into the active placeholder `{format_path(path)}`"
            )
    return None


def _leaf_kind(value: typing.Any) -> str:
    if is_array(value):
        return "array"
    if is_placeholder(value):
        return "placeholder"
    return "other"


def check_tie(destination: ArrayLike, first_source: typing.Any, source: typing.Any, path: tuple = ()) -> None:
    """
    Check that a destination array reached again (tied parameter) receives a value consistent with the first one.
    Like on a first visit, the active placeholder `True` is never accepted.
    """
    first_kind, kind = _leaf_kind(first_source), _leaf_kind(source)
    if first_kind != kind:
        raise TiedTypeMismatchError(
            f"Tied parameter `{format_path(path)}` was loaded from {_describe(first_source)} at some position"
            f" and from {_describe(source)} at another."
        )
    if kind == "placeholder" and source and is_array(destination):
        raise InvalidPlaceholderError(
            f"Cannot copy the active placeholder `{source}` into tied array `{format_path(path)}`"
            f" of shape {get_shape(destination)}"
        )
    if kind == "array" and not arrays_equal(first_source, source):
        raise TiedValueMismatchError(
            f"Tied parameter `{format_path(path)}` was loaded from mismatched sources"
            f" (shapes {get_shape(first_source)} and {get_shape(source)})."
        )


def _filter_children(filter_: FilterFn, node: typing.Any) -> dict[typing.Any, typing.Any]:
    return {key: child for key, child in keyed_children(node).items() if filter_(child)}


class StructureLoader(Configurable[LoadConfig]):
    """
    Copy all the array leaves of a source tree into a destination tree of the same structure.
    The two trees are walked together, so the source may be another model or a plain-data snapshot.
    """

    config_class: typing.ClassVar[type[LoadConfig]] = LoadConfig

    def load[
        T
    ](self, destination: T, source: typing.Any, filter: FilterFn | None = None, *, cache: LoadCache | None = None) -> T:
        filter_ = _accept_all if filter is None else filter
        if cache is None:
            cache = LoadCache()
        with SafeLoad(self._config, cache) as context:
            self._load(destination, source, filter_, cache, context, ())
        return destination

    def _load(
        self,
        destination: typing.Any,
        source: typing.Any,
        filter_: FilterFn,
        cache: LoadCache,
        context: SafeLoad,
        prefix: tuple,
    ) -> None:
        destination_children = _filter_children(filter_, destination)
        source_children = _filter_children(filter_, source)
        for key in source_children:
            if key not in destination_children:
                raise StructureMismatchError(
                    f"Tried to load {list(source_children)} into {list(destination_children)}"
                    f" at `{format_path(prefix)}`, but the structures do not match (missing key `{key}`)."
                )

        for key, source_child in source_children.items():
            destination_child = destination_children[key]
            path = prefix + (key,)
            if destination_child in cache:
                # Already loaded through another path.
                check_tie(destination_child, cache.get_source(destination_child), source_child, path)
                logger.debug(f"Skipping tied parameter `{format_path(path)}`")
            elif is_leaf(destination_child):
                if is_array(destination_child):
                    cache.add(destination_child, source_child)
                if (count := load_leaf(destination_child, source_child, path)) is not None:
                    context.mark_as_loaded(count, path)
            else:
                self._load(destination_child, source_child, filter_, cache, context, path)

        if context.track_unmatched:
            for key, destination_child in destination_children.items():
                if key not in source_children:
                    self._mark_unmatched(destination_child, filter_, context, prefix + (key,))

    def _mark_unmatched(self, node: typing.Any, filter_: FilterFn, context: SafeLoad, path: tuple) -> None:
        if is_array(node):
            context.mark_as_unmatched(node, path)
        elif not is_leaf(node):
            for key, child in _filter_children(filter_, node).items():
                self._mark_unmatched(child, filter_, context, path + (key,))


def load[
    T
](
    destination: T,
    source: typing.Any,
    filter: FilterFn | None = None,
    *,
    cache: LoadCache | None = None,
    config: LoadConfig | None = None,
) -> T:
    """
    Copy all the parameters (arrays) from `source` into `destination`, in place, and return `destination`.

    Both trees are walked together using `fast_state.traversal.children`.
    Array leaves are copied element-wise and must have identical shapes,
    while other leaves (activation functions, hyperparameters, etc.) are not copied and need not match.
    The boolean `False` stands for an inactive parameter, ex. a disabled bias:
    loading it into an array leaves the array untouched,
    and an inactive destination accepts an all-zero array but nothing else.

    Raises (see `fast_state.engine.state.errors`):
    * `StructureMismatchError` if `source` has a child absent from `destination`, at any level.
    * `ShapeMismatchError` if array shapes differ.
    * `InvalidPlaceholderError` for `True` placeholders or non-zero arrays loaded into `False`.
    * `LeafTypeError` when copying a non-array value into an array.
    * `TiedTypeMismatchError` and `TiedValueMismatchError` when an array reachable from several positions
      in `destination` (tied parameter) is loaded with inconsistent values.

    Errors abort the whole call, but arrays copied before the error keep their new values.

    Args:
        filter: Only children for which `filter(child)` holds are considered, in both trees.
        cache: Identity cache of already loaded destination arrays, to share across calls.
        config: Optional load settings.
    """
    loader = StructureLoader(LoadConfig() if config is None else config)
    return loader.load(destination, source, filter, cache=cache)
