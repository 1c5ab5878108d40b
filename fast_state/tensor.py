import logging
import typing

import numpy as np
import torch

logger = logging.getLogger(__name__)

type ArrayLike = torch.Tensor | np.ndarray

ARRAY_TYPES = (torch.Tensor, np.ndarray)
PLACEHOLDER_TYPES = (bool, np.bool_)


def is_array(value: typing.Any) -> bool:
    return isinstance(value, ARRAY_TYPES)


def is_placeholder(value: typing.Any) -> bool:
    """
    Booleans stand in for parameters that are structurally present but inactive, ex. a disabled bias.
    Only `False` is a valid placeholder for a destination.
    """
    return isinstance(value, PLACEHOLDER_TYPES)


def get_shape(array: ArrayLike) -> tuple[int, ...]:
    return tuple(array.shape)


def get_numel(array: ArrayLike) -> int:
    return array.numel() if isinstance(array, torch.Tensor) else array.size


def is_zero(array: ArrayLike) -> bool:
    if isinstance(array, torch.Tensor):
        return not array.any().item()
    return not np.any(array)


def _as_tensor(array: ArrayLike, device: torch.device | None = None) -> torch.Tensor:
    return torch.as_tensor(array, device=device)


def _as_numpy(array: ArrayLike) -> np.ndarray:
    if isinstance(array, torch.Tensor):
        return array.detach().cpu().numpy()
    return array


def arrays_equal(x: ArrayLike, y: ArrayLike) -> bool:
    """
    Element-wise equality, with arrays of different shapes considered different.
    Works across torch tensors and numpy arrays, and across dtypes and devices.
    """
    if get_shape(x) != get_shape(y):
        return False
    if isinstance(x, torch.Tensor) or isinstance(y, torch.Tensor):
        device = x.device if isinstance(x, torch.Tensor) else y.device
        with torch.no_grad():
            return bool(torch.eq(_as_tensor(x, device), _as_tensor(y, device)).all().item())
    return bool(np.array_equal(x, y))


def copy_array(destination: ArrayLike, source: ArrayLike) -> int:
    """
    Copy `source` into `destination` in place. The shapes are expected to match.
    Returns the number of copied entries.
    """
    if isinstance(destination, torch.Tensor):
        with torch.no_grad():
            destination.copy_(_as_tensor(source, destination.device))
    else:
        # Same casting rules as `torch.Tensor.copy_`.
        np.copyto(destination, _as_numpy(source), casting="unsafe")
    return get_numel(destination)
