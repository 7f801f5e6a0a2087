from __future__ import annotations

from typing import Optional, Union

import numpy as np
import torch

ArrayOrTensor = Union[float, np.ndarray, torch.Tensor]


def safe_exponent(base: ArrayOrTensor, exponent: float) -> ArrayOrTensor:
    """
    Element-wise ``base ** exponent`` with ``0 ** 0`` defined as ``0.0``.

    Works on python scalars, numpy arrays and torch tensors. For tensors a zero
    exponent yields the constant indicator ``1[base != 0]``, which carries no
    gradient, instead of ``0 * inf``.
    """

    if isinstance(base, torch.Tensor):
        if float(exponent) == 0.0:
            return (base != 0).to(base.dtype)
        return torch.pow(base, float(exponent))

    arr = np.asarray(base, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        powered = np.power(arr, float(exponent))
    out = np.where((arr == 0) & (float(exponent) == 0.0), 0.0, powered)
    if out.ndim == 0:
        return float(out)
    return out


def as_tensor(
    value: ArrayOrTensor, dtype: torch.dtype = torch.float64, like: Optional[torch.Tensor] = None
) -> torch.Tensor:
    """Convert array-likes to tensors, following ``like`` for dtype/device when given."""

    if like is not None:
        dtype = like.dtype
    device = like.device if like is not None else None
    if isinstance(value, torch.Tensor):
        return value.to(dtype=dtype, device=device) if like is not None else value
    # copy: scenario arrays are read-only and torch refuses to alias them
    return torch.tensor(np.array(value, dtype=float), dtype=dtype, device=device)


def zero_nans(arr: np.ndarray) -> np.ndarray:
    """Replace NaN entries in-place by 0 and return the array."""

    arr[np.isnan(arr)] = 0.0
    return arr
