import dataclasses
import inspect
import logging
import pathlib
import types
import typing

from fast_state.utils import get_type_name

logger = logging.getLogger(__name__)

# Recent python versions added a `doc` argument to `dataclasses.Field`.
_FIELD_EXTRA_KWARGS = {"doc": None} if "doc" in inspect.signature(dataclasses.Field).parameters else {}


class FieldHint:
    """
    How a config field affects the behavior of its owner, for documentation purposes.
    """

    core = "core"
    optional = "optional"
    feature = "feature"
    logging = "logging"


class Field(dataclasses.Field):
    __slots__ = ("desc", "hint", "valid")

    def __init__(
        self,
        *,
        desc: str | None = None,
        hint: str = FieldHint.optional,
        # Extra check run before the type check. Raises on failure, returns the (possibly normalized) value.
        valid: typing.Callable[[typing.Any], typing.Any] | None = None,
        default=dataclasses.MISSING,
        default_factory=dataclasses.MISSING,
    ):
        super().__init__(
            default=default,
            default_factory=default_factory,
            init=True,
            repr=True,
            hash=None,
            compare=True,
            metadata=None,
            kw_only=True,
            **_FIELD_EXTRA_KWARGS,
        )
        self.desc = desc
        self.hint = hint
        self.valid = valid


def check_field(fn, *args, **kwargs):
    """
    Turn a condition `fn(value, *args, **kwargs)` that raises on failure into a field validation function.
    """

    def valid(value):
        fn(value, *args, **kwargs)
        return value

    return valid


class ValidationError(ValueError):
    pass


def config_class[T: Config]() -> typing.Callable[[type[T]], type[T]]:
    """
    Turn a `Config` subclass into a keyword-only dataclass, after checking its fields are all `Field`s.
    """

    def wrap(cls):
        if not issubclass(cls, Config):
            raise TypeError(f"`{get_type_name(cls)}` is not a `Config` subclass")
        cls = dataclasses.dataclass(cls, kw_only=True)
        for field in dataclasses.fields(cls):
            if not isinstance(field, Field):
                raise TypeError(f"Field `{field.name}` of `{get_type_name(cls)}` must be defined with `Field`")
        cls.__class_validated__ = True
        return cls

    return wrap


def _validate_type(value: typing.Any, type_: typing.Any) -> typing.Any:
    if isinstance(type_, types.UnionType):
        errors = []
        for subtype in type_.__args__:
            try:
                # The first matching type wins.
                return _validate_type(value, subtype)
            except ValidationError as e:
                errors.append(str(e))
        raise ValidationError(" and ".join(errors))
    if type_ is types.NoneType:
        if value is not None:
            raise ValidationError(f"expected `None`, got `{get_type_name(type(value))}`")
        return value
    if issubclass(type_, pathlib.PurePath):
        # Paths may be given as strings, and the concrete path type depends on the OS.
        if isinstance(value, str):
            value = type_(value)
        if not isinstance(value, type_):
            raise ValidationError(f"expected a path, got `{get_type_name(type(value))}`")
        return value
    if type_ is float and type(value) is int:
        value = float(value)
    # Strict check, so booleans don't pass as integers.
    if type(value) is not type_:
        raise ValidationError(f"expected `{get_type_name(type_)}`, got `{get_type_name(type(value))}`")
    return value


@dataclasses.dataclass(kw_only=True)
class Config:
    """
    A keyword-only dataclass whose fields are type-checked on creation, and read-only afterwards.
    Subclasses need the `@config_class()` decorator, and may extend `_validate` for custom checks.
    """

    __class_validated__: typing.ClassVar[bool] = True

    def __init_subclass__(cls):
        # Set back to `True` by `config_class`.
        cls.__class_validated__ = False

    def __post_init__(self):
        self.validate()

    def __setattr__(self, key: str, value: typing.Any) -> None:
        if getattr(self, "_validated", False):
            raise RuntimeError(f"Cannot set `{key}` in `{get_type_name(type(self))}` after validation.")
        super().__setattr__(key, value)

    def validate[T: Config](self: T) -> T:
        if not self.__class_validated__:
            raise ValidationError(f"`{get_type_name(type(self))}` is missing the `@config_class()` decorator.")
        if not getattr(self, "_validated", False):
            self._validate()
            self._validated = True
        return self

    def _validate(self) -> None:
        errors = []
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            try:
                if field.valid is not None:
                    value = field.valid(value)
                setattr(self, field.name, _validate_type(value, field.type))
            except Exception as e:
                errors.append(f"Invalid value `{value!r}` for field `{field.name}`: {e}")
        if errors:
            raise ValidationError(f"Validation failed for `{get_type_name(type(self))}`:\n  " + "\n  ".join(errors))


class Configurable[ConfigType: Config]:
    config_class: typing.ClassVar[type[Config]] = Config

    def __init__(self, config: ConfigType, *args, **kwargs):
        if not isinstance(config, self.config_class):
            raise TypeError(f"Expected a `{get_type_name(self.config_class)}`, got `{get_type_name(type(config))}`")
        self._config = config
        # Handle multiple inheritance.
        super().__init__(*args, **kwargs)

    @property
    def config(self) -> ConfigType:
        return self._config
