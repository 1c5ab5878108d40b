class LoadError(ValueError):
    pass


class StructureMismatchError(LoadError):
    pass


class ShapeMismatchError(LoadError):
    pass


class InvalidPlaceholderError(LoadError):
    pass


class LeafTypeError(LoadError):
    pass


class TiedParameterError(LoadError):
    pass


class TiedTypeMismatchError(TiedParameterError):
    pass


class TiedValueMismatchError(TiedParameterError):
    pass


class IncompleteLoadError(LoadError):
    pass
