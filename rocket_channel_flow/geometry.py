"""Channel geometries as functions of the axial coordinate.

A geometry knows the outer wall radius R(x) and the inner wall radius r(x)
together with their slopes. Perimeters, cross-section and hydraulic diameter
follow either for an axisymmetric annulus or for a planar channel of constant
width.

Module Summary:
- Classes:
    - ``Geometry``: Base class with the derived quantities P, p, A, Dh.
    - ``Duct``: Constant cross-section.
    - ``ConicalNozzle``: Straight-walled diverging cone from the throat.
    - ``CylinderCombustor``: Cylinder, kink arc, contraction line and throat arc.
"""

import math
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidGeometry


class Geometry:
    """Base channel geometry.

    Args:
        length: Channel length (m)
        axisymmetric: Annulus between r(x) and R(x) if set, otherwise a planar
            channel of height R(x) - r(x)
        width: Width of the planar channel (m)

    Note:
        The inner wall defaults to the axis (r = 0) for an axisymmetric
        geometry and to the mirrored outer wall (r = -R) for a planar one.
    """

    def __init__(self, length: float, axisymmetric: bool = True, width: Optional[float] = None):
        if length <= 0.0:
            raise InvalidGeometry(f"length must be positive, got {length}")
        if not axisymmetric and not (width is not None and width > 0.0):
            raise InvalidGeometry("a planar geometry needs a positive width")
        self.length = length
        self.axisymmetric = axisymmetric
        self._width = width

    @property
    def width(self) -> float:
        if self.axisymmetric:
            raise InvalidGeometry("an axisymmetric geometry has no width")
        return self._width

    @property
    def has_second_wall(self) -> bool:
        return not self.axisymmetric

    def R(self, x: float) -> float:
        raise NotImplementedError

    def dRdx(self, x: float) -> float:
        raise NotImplementedError

    def r(self, x: float) -> float:
        return 0.0 if self.axisymmetric else -self.R(x)

    def drdx(self, x: float) -> float:
        return 0.0 if self.axisymmetric else -self.dRdx(x)

    # ==================== Derived quantities ====================

    def P(self, x: float) -> float:
        """Outer wetted perimeter (m)."""
        return 2.0 * math.pi * self.R(x) if self.axisymmetric else self._width

    def dPdx(self, x: float) -> float:
        return 2.0 * math.pi * self.dRdx(x) if self.axisymmetric else 0.0

    def p(self, x: float) -> float:
        """Inner wetted perimeter (m)."""
        return 2.0 * math.pi * self.r(x) if self.axisymmetric else self._width

    def dpdx(self, x: float) -> float:
        return 2.0 * math.pi * self.drdx(x) if self.axisymmetric else 0.0

    def A(self, x: float) -> float:
        R, r = self.R(x), self.r(x)
        if self.axisymmetric:
            return math.pi * (R * R - r * r)
        return self._width * (R - r)

    def dAdx(self, x: float) -> float:
        if self.axisymmetric:
            return 2.0 * math.pi * (self.R(x) * self.dRdx(x) - self.r(x) * self.drdx(x))
        return self._width * (self.dRdx(x) - self.drdx(x))

    def Dh(self, x: float) -> float:
        return 4.0 * self.A(x) / (self.P(x) + self.p(x))

    def dDhdx(self, x: float) -> float:
        P = self.P(x) + self.p(x)
        return 4.0 * (self.dAdx(x) - self.A(x) * (self.dPdx(x) + self.dpdx(x)) / P) / P

    def sample(self, N: int = 200) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Axial stations with outer radius and area.

        Returns:
            Tuple of (x, R, A) arrays of shape (N,)
        """
        x = np.linspace(0.0, self.length, N)
        return x, np.array([self.R(xk) for xk in x]), np.array([self.A(xk) for xk in x])


class Duct(Geometry):
    """Constant radius (axisymmetric) or constant half-height (planar)."""

    def __init__(self, length: float, radius: float, axisymmetric: bool = True,
                 width: Optional[float] = None):
        if radius <= 0.0:
            raise InvalidGeometry(f"radius must be positive, got {radius}")
        super().__init__(length, axisymmetric, width)
        self.radius = radius

    def R(self, x: float) -> float:
        return self.radius

    def dRdx(self, x: float) -> float:
        return 0.0


class ConicalNozzle(Geometry):
    """Straight-walled conical diverging nozzle from the throat (x=0) to the exit (x=L).

    Args:
        r_t: Throat radius (m)
        expansion_ratio: Area ratio A_exit/A_throat
        L: Nozzle length from throat to exit (m)

    Note:
        Real nozzles use bell contours; the cone is the simplest closed form.
    """

    def __init__(self, r_t: float, expansion_ratio: float, L: float):
        if r_t <= 0.0 or expansion_ratio < 1.0:
            raise InvalidGeometry("throat radius must be positive and expansion ratio >= 1")
        super().__init__(L, True)
        self.r_t = r_t
        # A_e/A_t = (r_e/r_t)^2
        self.r_e = r_t * math.sqrt(expansion_ratio)
        self.A_t = math.pi * r_t * r_t

    def R(self, x: float) -> float:
        return self.r_t + (self.r_e - self.r_t) * x / self.length

    def dRdx(self, x: float) -> float:
        return (self.r_e - self.r_t) / self.length


class CylinderCombustor(Geometry):
    """Axisymmetric combustion chamber contour up to the throat.

    The contour is a cylinder of diameter D_c up to L_cyl, an arc of radius
    r_k (kink), a straight contraction and an arc of radius r_c that ends
    horizontally in the throat at L_chamber.

    Args:
        D_t: Throat diameter (m)
        D_c: Chamber diameter (m)
        L_cyl: Length of the cylindrical part (m)
        L_chamber: Axial position of the throat (m)
        r_k: Kink radius (m)
        r_c: Throat curvature radius (m)
    """

    def __init__(self, D_t: float, D_c: float, L_cyl: float, L_chamber: float,
                 r_k: float, r_c: float):
        if not (0.0 < D_t < D_c and 0.0 < L_cyl < L_chamber and r_k > 0.0 and r_c > 0.0):
            raise InvalidGeometry("inconsistent combustor dimensions")
        super().__init__(L_chamber, True)
        self.R_c = 0.5 * D_c
        self.r_k = r_k
        self.r_c = r_c

        # arc centers of the kink and of the throat
        self.Kx, self.Kr = L_cyl, 0.5 * D_c - r_k
        self.Mx, self.Mr = L_chamber, 0.5 * D_t + r_c

        dx = L_chamber - L_cyl
        dr = self.Mr - self.Kr
        sr = r_k + r_c
        root = dr * dr - sr * sr + dx * dx
        if root < 0.0:
            raise InvalidGeometry("arcs of the combustor contour overlap")
        # contraction angle of the common tangent
        arg = sr / dx - dr * (dx * math.sqrt(root) + dr * sr) / (dx * (dr * dr + dx * dx))
        self.alpha = math.asin(arg)
        s, c = math.sin(self.alpha), math.cos(self.alpha)

        # tangent points on the kink arc and on the throat arc
        self.Px, self.Pr = self.Kx + s * r_k, self.Kr + c * r_k
        self.Qx, self.Qr = self.Mx - s * r_c, self.Mr - c * r_c
        self.slope = (self.Qr - self.Pr) / (self.Qx - self.Px)
        self.offset = self.Pr - self.slope * self.Px

    def R(self, x: float) -> float:
        if x <= self.Kx:
            return self.R_c
        if x < self.Px:
            return self.Kr + math.sqrt((self.r_k + self.Kx - x) * (self.r_k - self.Kx + x))
        if x < self.Qx:
            return self.slope * x + self.offset
        if x < self.Mx:
            return self.Mr - math.sqrt((self.r_c + self.Mx - x) * (self.r_c - self.Mx + x))
        return self.Mr - self.r_c

    def dRdx(self, x: float) -> float:
        if x <= self.Kx:
            return 0.0
        if x < self.Px:
            return (self.Kx - x) / math.sqrt((self.r_k + self.Kx - x) * (self.r_k - self.Kx + x))
        if x < self.Qx:
            return self.slope
        if x < self.Mx:
            return (x - self.Mx) / math.sqrt((self.r_c + self.Mx - x) * (self.r_c - self.Mx + x))
        return 0.0
