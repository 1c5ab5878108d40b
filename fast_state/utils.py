import typing


def get_type_name(type_: typing.Any) -> str:
    if isinstance(type_, type):
        module = type_.__module__
        return type_.__qualname__ if module == "builtins" else f"{module}.{type_.__qualname__}"
    # Aliases, unions and the like.
    return str(type_)


def format_path(path: tuple[typing.Any, ...]) -> str:
    """
    Format the position of a node in a tree, as a sequence of keys from the root.
    """
    return ".".join(str(key) for key in path) if path else "<root>"


class Tag:
    """
    A named sentinel, kept as-is by copies.
    """

    __slots__ = ("value",)

    def __init__(self, value: str):
        self.value = value

    def __repr__(self) -> str:
        return self.value

    def __copy__(self) -> typing.Self:
        return self

    def __deepcopy__(self, memodict: dict[int, typing.Any]) -> typing.Self:
        return self
