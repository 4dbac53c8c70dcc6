"""Axial segments, quadratic flow elements and the wall coupling.

Module Summary:
- Classes:
    - ``Segment``: One axial station with its parameter record and walls.
    - ``Element``: Quadratic element spanning an entry, an exit and a mid segment.
    - ``WallFields``: Nodal field arrays of the structural wall model.
    - ``Wall``: Wall nodes of one segment, integrated with three-node Simpson elements.
- Functions:
    - ``create_segments(geometry, n_elements, n_channels, reverse)``: Segments from a geometry.
    - ``attach_walls(segments, fields, node_indices)``: Build and attach walls.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from . import parameters as par
from .errors import InvalidGeometry, InvalidInput
from .geometry import Geometry

logger = logging.getLogger(__name__)

FIELD_NAMES = ("T", "dotQ", "Tinf", "alpha", "T_fluid", "p_fluid", "Ma_fluid")


class WallFields:
    """Nodal fields shared by all walls.

    Args:
        x: Axial node coordinates (m)
        y: Radial node coordinates (m)
        T: Initial surface temperature (K), scalar or per node
    """

    def __init__(self, x: Sequence[float], y: Sequence[float], T=300.0):
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        if self.x.shape != self.y.shape:
            raise InvalidInput("node coordinate arrays differ in length")
        n = len(self.x)
        self.fields: Dict[str, np.ndarray] = {name: np.zeros(n) for name in FIELD_NAMES}
        self.fields["T"][:] = T

    def __getitem__(self, name: str) -> np.ndarray:
        return self.fields[name]

    @property
    def n_nodes(self) -> int:
        return len(self.x)


class Wall:
    """Wall nodes of one segment.

    The node list holds an odd number of nodes; node o, o+2 and o+1 form one
    quadratic element (corner, corner, mid).
    """

    weights = np.array([1.0, 1.0, 4.0]) / 6.0

    def __init__(self, fields: WallFields, node_indices: Sequence[int]):
        nodes = np.asarray(node_indices, dtype=int)
        if len(nodes) < 3 or len(nodes) % 2 == 0:
            raise InvalidInput(f"a wall needs an odd number (>= 3) of nodes, got {len(nodes)}")
        self.fields = fields
        self.nodes = nodes
        self.elements = np.array([[nodes[o], nodes[o + 2], nodes[o + 1]]
                                  for o in range(0, len(nodes) - 1, 2)])
        x, y = fields.x, fields.y
        dx = np.diff(x[nodes])
        dy = np.diff(y[nodes])
        chords = np.hypot(dx, dy)
        self.element_lengths = chords[0::2] + chords[1::2]
        self.segment_length = self.element_lengths.sum()

    def _average(self, values: np.ndarray) -> float:
        return float(np.sum(values[self.elements] @ self.weights * self.element_lengths)
                     / self.segment_length)

    def average_surface_temperature(self) -> float:
        return self._average(self.fields["T"])

    def average_heatload(self, alpha: float, T_inf: float) -> float:
        """Write alpha, Tinf and dotQ = alpha (Tinf - T) and return the mean heat load."""
        T = self.fields["T"]
        self.fields["alpha"][self.nodes] = alpha
        self.fields["Tinf"][self.nodes] = T_inf
        self.fields["dotQ"][self.nodes] = alpha * (T_inf - T[self.nodes])
        return self._average(self.fields["dotQ"])

    def set_flowdata(self, T: float, p: float, Ma: float) -> None:
        self.fields["T_fluid"][self.nodes] = T
        self.fields["p_fluid"][self.nodes] = p
        self.fields["Ma_fluid"][self.nodes] = Ma


class Segment:
    """One axial station of a channel.

    Args:
        id: Segment number (1-based)
        x: Axial coordinate along the flow (m)
        A: Cross-section (m^2)
        U: Wetted perimeter (m)
        n_walls: 1 or 2 thermal walls

    Note:
        The parameter record ``data`` follows the slot layout of
        ``rocket_channel_flow.parameters``.
    """

    def __init__(self, id: int, x: float, A: float, U: float, n_walls: int = 1):
        if n_walls not in (1, 2):
            raise InvalidInput(f"a segment has one or two walls, got {n_walls}")
        if A <= 0.0 or U <= 0.0:
            raise InvalidGeometry(f"segment {id}: area and perimeter must be positive")
        self.id = id
        self.n_walls = n_walls
        self.data = par.new_record(n_walls)
        self.data[par.X] = x
        self.data[par.A] = A
        self.data[par.DH] = 4.0 * A / U
        self.data[par.TW1] = 300.0
        if n_walls == 2:
            self.data[par.TW2] = 300.0
        self.perimeter = U
        # specific gas constant of the local mixture
        self.R = np.nan
        self.walls: List[Optional[Wall]] = [None] * n_walls

    def __repr__(self) -> str:
        d = self.data
        return (f"Segment({self.id}, x={d[par.X]:.5g} m, Tm={d[par.TM]:.2f} K, "
                f"pm={d[par.PM] * 1e-5:.3f} bar, q={d[par.DOTQ1] * 1e-6:.4g} MW/m2)")

    @property
    def x(self) -> float:
        return self.data[par.X]

    @property
    def cross_section(self) -> float:
        return self.data[par.A]

    @property
    def hydraulic_diameter(self) -> float:
        return self.data[par.DH]

    def value(self, index: int) -> float:
        return self.data[index]

    def add_wall(self, index: int, wall: Wall) -> None:
        self.walls[index] = wall

    @property
    def has_walls(self) -> bool:
        return all(w is not None for w in self.walls)

    def set_flow(self, T: float, p: float, u: float) -> None:
        self.data[par.TM] = T
        self.data[par.PM] = p
        self.data[par.UM] = u

    def pull_surface_temperatures(self) -> None:
        self.data[par.TW1] = self.walls[0].average_surface_temperature()
        if self.n_walls == 2:
            self.data[par.TW2] = self.walls[1].average_surface_temperature()

    def push_heatloads(self) -> None:
        """Distribute the heat load to the walls and store their length-weighted mean."""
        d = self.data
        dot_q = self.walls[0].average_heatload(d[par.ALPHA1], d[par.TREC1])
        if self.n_walls == 2:
            L0 = self.walls[0].segment_length
            L1 = self.walls[1].segment_length
            dot_q = (dot_q * L0 + self.walls[1].average_heatload(d[par.ALPHA2], d[par.TREC2]) * L1) \
                / (L0 + L1)
        d[par.DOTQ1] = dot_q

    def push_flowdata(self) -> None:
        for wall in self.walls:
            wall.set_flowdata(self.data[par.TM], self.data[par.PM], self.data[par.MA])


class Element:
    """Quadratic element with shape functions over xi = (x - x0)/L.

    Args:
        entry: Segment at the element start
        exit: Segment at the element end
        mid: Segment in the middle
    """

    def __init__(self, entry: Segment, exit: Segment, mid: Segment):
        self.segments = (entry, exit, mid)
        self.length = exit.x - entry.x
        if self.length <= 0.0:
            raise InvalidGeometry(f"element between segments {entry.id} and {exit.id} has no length")

    @property
    def x0(self) -> float:
        return self.segments[0].x

    @property
    def x1(self) -> float:
        return self.segments[1].x

    @property
    def x2(self) -> float:
        return self.segments[2].x

    def collect_data(self, index: int) -> np.ndarray:
        return np.array([s.data[index] for s in self.segments])

    def N(self, x: float) -> np.ndarray:
        xi = (x - self.x0) / self.length
        return np.array([xi * (2.0 * xi - 3.0) + 1.0, xi * (2.0 * xi - 1.0), 4.0 * xi * (1.0 - xi)])

    def B(self, x: float) -> np.ndarray:
        xi = (x - self.x0) / self.length
        return np.array([4.0 * xi - 3.0, 4.0 * xi - 1.0, 4.0 - 8.0 * xi]) / self.length


def create_segments(geometry: Geometry, n_elements: int, n_channels: int = 1,
                    reverse: bool = False) -> List[Segment]:
    """Create 2*n_elements+1 equidistant segments.

    Args:
        geometry: Channel geometry
        n_elements: Number of quadratic elements
        n_channels: The geometry holds this many identical channels in
            parallel; each segment describes one of them
        reverse: Flow runs from x = L to x = 0 of the geometry

    Returns:
        Segments ordered along the flow, with x measured along the flow
    """
    if n_elements < 1 or n_channels < 1:
        raise InvalidInput("need at least one element and one channel")
    L = geometry.length
    n_walls = 2 if geometry.has_second_wall else 1
    segments = []
    for k, x in enumerate(np.linspace(0.0, L, 2 * n_elements + 1)):
        x_geo = L - x if reverse else x
        A = geometry.A(x_geo) / n_channels
        U = (geometry.P(x_geo) + geometry.p(x_geo)) / n_channels
        segments.append(Segment(k + 1, x, A, U, n_walls))
    logger.debug("created %d segments over %.4g m", len(segments), L)
    return segments


def attach_walls(segments: Sequence[Segment], fields: WallFields,
                 node_indices: Sequence) -> None:
    """Attach a wall to every segment.

    Args:
        segments: Segments in flow order
        fields: Shared wall fields
        node_indices: Per segment, either the node indices of its wall or,
            for two-wall segments, a pair of such index lists
    """
    if len(node_indices) != len(segments):
        raise InvalidInput(f"{len(segments)} segments but {len(node_indices)} node lists")
    for segment, nodes in zip(segments, node_indices):
        if segment.n_walls == 2:
            for k in range(2):
                segment.add_wall(k, Wall(fields, nodes[k]))
        else:
            segment.add_wall(0, Wall(fields, nodes))
