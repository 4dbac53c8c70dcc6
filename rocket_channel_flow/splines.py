"""Property splines over temperature at fixed pressure.

The boundary-layer solver never calls the (slow) mixture evaluators while it
reconstructs a profile. Instead it samples ``v(T)``, ``h(T)``, ``mu(T)`` and
``lambda(T)`` once per pressure level on a uniform grid and evaluates natural
cubic splines.

Module Summary:
- Classes:
    - ``PropertySpline``: natural cubic spline with ``eval``, ``deval``,
      ``update_data`` and a ``matrix_data`` coefficient matrix for
      checkpoint / restore.
"""

import numpy as np
from scipy.interpolate import CubicSpline, PPoly

from .errors import OutOfRange


class PropertySpline:
    """Natural cubic spline sampled on ``linspace(T_min, T_max, n)``.

    Args:
        n: Number of sample points
        T_min: Lower bound of the sample range (K)
        T_max: Upper bound of the sample range (K)
    """

    def __init__(self, n: int, T_min: float, T_max: float):
        self.T_min = T_min
        self.T_max = T_max
        self.T = np.linspace(T_min, T_max, n)
        self._pp = None

    def update_data(self, values: np.ndarray) -> None:
        """Rebuild the spline from values sampled on ``self.T``."""
        self._pp = CubicSpline(self.T, np.asarray(values, dtype=float), bc_type="natural")

    @property
    def matrix_data(self) -> np.ndarray:
        """Piecewise cubic coefficients, shape (4, n-1)."""
        return np.array(self._pp.c)

    @matrix_data.setter
    def matrix_data(self, c: np.ndarray) -> None:
        self._pp = PPoly(np.array(c, dtype=float), self.T)

    def _check(self, T) -> None:
        if self._pp is None:
            raise OutOfRange("spline has no data yet")
        lo, hi = np.min(T), np.max(T)
        if not (self.T_min <= lo and hi <= self.T_max):
            raise OutOfRange(
                f"T in [{lo:.3f}, {hi:.3f}] K outside spline range "
                f"[{self.T_min:.3f}, {self.T_max:.3f}] K")

    def eval(self, T):
        """Spline value at a scalar or an array of temperatures."""
        self._check(T)
        value = self._pp(T)
        return float(value) if np.ndim(value) == 0 else value

    def deval(self, T):
        """First derivative with respect to temperature."""
        self._check(T)
        value = self._pp(T, 1)
        return float(value) if np.ndim(value) == 0 else value
