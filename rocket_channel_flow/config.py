"""
Configuration classes for channel runs with validation and YAML support.

All values are SI: pressures in Pa, temperatures in K, lengths in m, mass
flow in kg/s. A YAML file holds one section per dataclass:

    gas:
      model: helmholtz
      fluid: Methane
    geometry:
      kind: duct
      length: 0.5
      radius: 0.002
    boundary_layer:
      method: messe
      roughness: 3.2e-6
    inflow:
      T: 160.0
      p: 1.2e+7
      u: 30.0
    channel:
      elements: 10
      wall_temperature: 600.0
"""
from dataclasses import dataclass, field, asdict, fields
from typing import Optional, Dict, Any
import yaml

from .boundary_layer import BoundaryLayer, FrictionMethod, SigmaRecoveryMode
from .errors import InvalidInput
from .geometry import ConicalNozzle, CylinderCombustor, Duct, Geometry
from .thermo import GasModel, Mixture


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool = True
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def add_error(self, msg: str):
        self.errors.append(msg)
        self.is_valid = False

    def add_warning(self, msg: str):
        self.warnings.append(msg)

    def merge(self, other: "ValidationResult", prefix: str = ""):
        for msg in other.errors:
            self.add_error(prefix + msg)
        for msg in other.warnings:
            self.add_warning(prefix + msg)


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    """Check the keys against the dataclass fields and read float fields.

    YAML 1.1 loads "1.2e7" as a string, so float fields also accept strings.
    """
    types = {f.name: f.type for f in fields(cls)}
    unknown = set(data) - set(types)
    if unknown:
        raise InvalidInput(f"unknown {cls.__name__} keys: {sorted(unknown)}")
    data = dict(data)
    for name, value in data.items():
        if types[name] in (float, Optional[float]) and isinstance(value, str):
            try:
                data[name] = float(value)
            except ValueError as e:
                raise InvalidInput(f"{cls.__name__}.{name}: '{value}' is not a number") from e
    return data


class ConfigSection:
    """YAML and dict round trip shared by all configuration records."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**_known(cls, data))

    @classmethod
    def from_yaml(cls, path: str):
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, path: str):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


# =============================================================================
# WORKING FLUID
# =============================================================================

@dataclass
class GasConfig(ConfigSection):
    """Working fluid: a pure fluid name or a species -> fraction mapping."""
    model: str = "idgas"
    fluid: Optional[str] = None
    composition: Optional[Dict[str, float]] = None
    mechanism: str = "gri30.yaml"
    molar: bool = True

    @property
    def model_name(self) -> Optional[GasModel]:
        """Parsed gas model, None for an unknown name."""
        try:
            return GasModel.from_string(self.model)
        except InvalidInput:
            return None

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        if self.model_name is None:
            result.add_error(f"unknown gas model '{self.model}'")
        if (self.fluid is None) == (self.composition is None):
            result.add_error("give either a fluid or a composition")
        if self.composition is not None:
            if any(v < 0 for v in self.composition.values()) or sum(self.composition.values()) <= 0:
                result.add_error("composition fractions must be nonnegative and not all zero")
        return result

    def build(self) -> Mixture:
        return Mixture(self.fluid if self.fluid is not None else self.composition,
                       self.model, self.mechanism, self.molar)


# =============================================================================
# BOUNDARY LAYER
# =============================================================================

@dataclass
class BoundaryLayerConfig(ConfigSection):
    method: str = "messe"
    sigma_recovery: str = "petukhov"
    cells: int = 100
    mesh_ratio: float = 1.05
    roughness: float = 0.0                      # arithmetic mean roughness Ra (m)
    throat_diameter: Optional[float] = None     # Bartz only
    curvature_radius: Optional[float] = None    # Bartz only

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        try:
            method = FrictionMethod.from_string(self.method)
        except InvalidInput as e:
            result.add_error(str(e))
            method = None
        try:
            SigmaRecoveryMode.from_string(self.sigma_recovery)
        except InvalidInput as e:
            result.add_error(str(e))
        if self.cells < 10:
            result.add_error(f"need at least 10 radial cells (got {self.cells})")
        elif self.cells < 40:
            result.add_warning(f"{self.cells} radial cells is a coarse boundary-layer grid")
        if self.mesh_ratio < 1.0:
            result.add_error(f"mesh ratio must be >= 1 (got {self.mesh_ratio})")
        if self.roughness < 0:
            result.add_error(f"roughness must be nonnegative (got {self.roughness})")
        if method == FrictionMethod.BARTZ and (self.throat_diameter is None
                                               or self.curvature_radius is None):
            result.add_error("Bartz needs throat_diameter and curvature_radius")
        return result

    def build(self, gas: Mixture, axisymmetric: bool = True) -> BoundaryLayer:
        bl = BoundaryLayer(gas, self.method, self.sigma_recovery, self.cells, self.mesh_ratio,
                           axisymmetric)
        bl.set_surface_roughness(self.roughness)
        if self.throat_diameter is not None and self.curvature_radius is not None:
            bl.set_bartz_geometry_params(self.throat_diameter, self.curvature_radius)
        return bl


# =============================================================================
# GEOMETRY
# =============================================================================

_GEOMETRY_FIELDS = {
    "duct": ("length", "radius"),
    "conical_nozzle": ("r_t", "expansion_ratio", "length"),
    "cylinder_combustor": ("D_t", "D_c", "L_cyl", "L_chamber", "r_k", "r_c"),
}


@dataclass
class GeometryConfig(ConfigSection):
    kind: str = "duct"
    length: Optional[float] = None
    radius: Optional[float] = None
    axisymmetric: bool = True
    width: Optional[float] = None
    # conical nozzle
    r_t: Optional[float] = None
    expansion_ratio: Optional[float] = None
    # cylinder combustor
    D_t: Optional[float] = None
    D_c: Optional[float] = None
    L_cyl: Optional[float] = None
    L_chamber: Optional[float] = None
    r_k: Optional[float] = None
    r_c: Optional[float] = None

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        if self.kind not in _GEOMETRY_FIELDS:
            result.add_error(f"unknown geometry kind '{self.kind}'")
            return result
        for name in _GEOMETRY_FIELDS[self.kind]:
            value = getattr(self, name)
            if value is None:
                result.add_error(f"{self.kind} needs '{name}'")
            elif value <= 0:
                result.add_error(f"'{name}' must be positive (got {value})")
        if not self.axisymmetric:
            if self.kind != "duct":
                result.add_error(f"{self.kind} is always axisymmetric")
            elif self.width is None or self.width <= 0:
                result.add_error("a planar duct needs a positive width")
        return result

    def build(self) -> Geometry:
        if self.kind == "duct":
            return Duct(self.length, self.radius, self.axisymmetric, self.width)
        if self.kind == "conical_nozzle":
            return ConicalNozzle(self.r_t, self.expansion_ratio, self.length)
        if self.kind == "cylinder_combustor":
            return CylinderCombustor(self.D_t, self.D_c, self.L_cyl, self.L_chamber,
                                     self.r_k, self.r_c)
        raise InvalidInput(f"unknown geometry kind '{self.kind}'")


# =============================================================================
# INFLOW
# =============================================================================

@dataclass
class InflowConfig(ConfigSection):
    """Static (T, p, u) or (T, p, Ma), or total (Tt, pt, mdot)."""
    T: Optional[float] = None
    p: Optional[float] = None
    u: Optional[float] = None
    Ma: Optional[float] = None
    Tt: Optional[float] = None
    pt: Optional[float] = None
    mdot: Optional[float] = None

    @property
    def is_total(self) -> bool:
        return self.Tt is not None

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        static = (self.T, self.p, self.u, self.Ma)
        total = (self.Tt, self.pt, self.mdot)
        if self.is_total:
            if any(v is not None for v in static):
                result.add_error("give either a static or a total inflow, not both")
            if any(v is None for v in total):
                result.add_error("a total inflow needs Tt, pt and mdot")
            values = total
        else:
            if self.T is None or self.p is None or (self.u is None) == (self.Ma is None):
                result.add_error("a static inflow needs T, p and one of u or Ma")
            values = static
        if any(v is not None and v <= 0 for v in values):
            result.add_error("inflow values must be positive")
        if self.Ma is not None and self.Ma >= 1.0:
            result.add_warning(f"supersonic inflow Ma={self.Ma}")
        return result


# =============================================================================
# CHANNEL
# =============================================================================

@dataclass
class ChannelConfig(ConfigSection):
    """
    Complete channel run: fluid, geometry, boundary layer, inflow and the
    discretization.
    """
    gas: GasConfig = field(default_factory=GasConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    boundary_layer: BoundaryLayerConfig = field(default_factory=BoundaryLayerConfig)
    inflow: InflowConfig = field(default_factory=InflowConfig)

    elements: int = 10
    channels: int = 1
    reverse: bool = False
    wall_temperature: float = 300.0
    reacting: bool = False

    def validate(self) -> ValidationResult:
        """Validate all sections."""
        result = ValidationResult()
        result.merge(self.gas.validate(), "gas: ")
        result.merge(self.geometry.validate(), "geometry: ")
        result.merge(self.boundary_layer.validate(), "boundary_layer: ")
        result.merge(self.inflow.validate(), "inflow: ")

        if self.elements < 1:
            result.add_error(f"need at least one element (got {self.elements})")
        if self.channels < 1:
            result.add_error(f"need at least one channel (got {self.channels})")
        if self.wall_temperature <= 0:
            result.add_error(f"wall temperature must be positive (got {self.wall_temperature})")
        if self.reacting and self.gas.model_name != GasModel.IDGAS:
            result.add_error("a reacting channel needs the idgas model")
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelConfig":
        """Build from nested sections; channel settings may also sit at top level."""
        channel = dict(data.get("channel", {}))
        for key in ("elements", "channels", "reverse", "wall_temperature", "reacting"):
            if key in data:
                channel[key] = data[key]
        return cls(
            gas=GasConfig.from_dict(data.get("gas", {})),
            geometry=GeometryConfig.from_dict(data.get("geometry", {})),
            boundary_layer=BoundaryLayerConfig.from_dict(data.get("boundary_layer", {})),
            inflow=InflowConfig.from_dict(data.get("inflow", {})),
            **_known(cls, channel),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "gas": data["gas"],
            "geometry": data["geometry"],
            "boundary_layer": data["boundary_layer"],
            "inflow": data["inflow"],
            "channel": {key: data[key] for key in
                        ("elements", "channels", "reverse", "wall_temperature", "reacting")},
        }

