# Calorically perfect isentropic relations.
# These only seed the real-gas iterations in the marcher and the isotropic channel.
from typing import Tuple

# Exponent γ/(γ-1) linking the pressure and temperature ratios
γ1 = lambda γ: γ / (γ-1)

def θ(Mach: float, γ: float = 1.4) -> float:
  """Total over static temperature, Tt/T, of a flow at **Mach** with
  heat capacity ratio **γ**."""
  return 1 + (γ-1)/2*Mach**2

def δ(Mach: float, γ: float = 1.4) -> float:
  """Total over static pressure, pt/p, of an isentropic flow at **Mach**
  with heat capacity ratio **γ**."""
  return θ(Mach, γ)**(γ1(γ))

def static_from_total(Tt: float, pt: float, Mach: float, γ: float = 1.4) -> Tuple[float, float]:
  """Static (T, p) seed for a channel inflow.

  Args:
    Tt: total temperature (K)
    pt: total pressure (Pa)
    Mach: Mach number the seed is taken at
    γ: heat capacity ratio at the total state

  Returns:
    (T, p): static temperature (K) and pressure (Pa)
  """
  return Tt / θ(Mach, γ), pt / δ(Mach, γ)
