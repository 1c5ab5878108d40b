import logging
import typing

from fast_state.engine.state.config import LoadConfig
from fast_state.engine.state.errors import IncompleteLoadError
from fast_state.tensor import ArrayLike, get_shape
from fast_state.utils import format_path

if typing.TYPE_CHECKING:
    from fast_state.engine.state.load import LoadCache

logger = logging.getLogger(__name__)


class SafeLoad:
    """
    A context keeping track of what a structural load actually did:
    * Count the loaded arrays and entries, and report them once the load succeeds.
    * Optionally keep track of the destination arrays that no source entry was matched with,
      and ensure each of them was reached through some other path (tied arrays).

    Errors raised within the context propagate unchanged and skip the validation.
    """

    def __init__(self, config: LoadConfig, cache: "LoadCache"):
        self._config = config
        self._cache = cache

    def __enter__(self) -> "SafeLoad":
        self._loaded = 0
        self._loaded_arrays = 0
        self._unmatched = {}
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not exc_type:
            self._validate()

    @property
    def loaded(self) -> int:
        return self._loaded

    @property
    def loaded_arrays(self) -> int:
        return self._loaded_arrays

    @property
    def track_unmatched(self) -> bool:
        return self._config.require_complete

    def mark_as_loaded(self, count: int, path: tuple = ()) -> None:
        self._loaded += count
        self._loaded_arrays += 1
        logger.debug(f"Loaded {count:,} entries into `{format_path(path)}`")

    def mark_as_unmatched(self, array: ArrayLike, path: tuple = ()) -> None:
        # Keep the first path for arrays reachable from several places.
        self._unmatched.setdefault(id(array), (path, array))

    def _validate(self) -> None:
        errors = []
        if self._config.require_complete:
            self._check_missing(errors)
        if errors:
            for error in errors:
                logger.error(error)
            raise IncompleteLoadError(
                f"Loading validation failed, {len(errors)} destination arrays were not loaded:\n  "
                + "\n  ".join(errors)
            )
        if self._config.log_summary:
            logger.info(f"{self._loaded:,} state entries loaded successfully ({self._loaded_arrays:,} arrays)")

    def _check_missing(self, errors: list[str]) -> None:
        for path, array in self._unmatched.values():
            # Tied arrays may have been loaded through another path.
            if array not in self._cache:
                errors.append(f"Missing value for array `{format_path(path)}` of shape {get_shape(array)}")
