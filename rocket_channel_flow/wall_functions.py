"""Wall-function primitives for turbulent channel boundary layers.

All functions are stateless. They provide the inner-layer velocity law, the
outer wake, the turbulent Prandtl number closure, the Moody friction factor
and the reference-temperature estimate used by the Eckert method.

Module Summary:
- Functions:
    - ``spalding_y(B, kappa, E, f)``: Spalding law y+(f).
    - ``spalding_dydf(B, kappa, E, f)``: Derivative dy+/df.
    - ``spalding(B, kappa, E, y_plus, f_guess)``: Inverse f(y+) by damped Newton.
    - ``g_plus(kappa, Pi, eta)``: Coles wake function.
    - ``dg_plus_deta(kappa, Pi, eta)``: Derivative of the wake function.
    - ``kays_crawford(Pr, mu, mu_T, Pr_T_inf)``: Local turbulent Prandtl number.
    - ``cf_moody(Re_Dh, Dh, k)``: Colebrook-White friction coefficient.
    - ``reference_temperature(gas, T_e, p, u_e, T_w, turbulent)``: Eckert / Meador-Smart
      reference temperature.
"""

import math

from .errors import InvalidInput, TooManyIterations


def spalding_y(B: float, kappa: float, E: float, f: float) -> float:
    """Evaluate Spalding's law of the wall.

    Args:
        B: Log-law offset B+
        kappa: von Karman constant
        E: exp(-kappa*B)
        f: Dimensionless velocity f+

    Returns:
        Dimensionless wall distance y+
    """
    kf = kappa * f
    # fourth order Taylor polynomial of exp(kf)
    H = 1.0 + kf * (24.0 + kf * (12.0 + kf * (4.0 + kf))) / 24.0
    return f + E * (math.exp(kf) - H)


def spalding_dydf(B: float, kappa: float, E: float, f: float) -> float:
    """Derivative dy+/df+ of Spalding's law."""
    kf = kappa * f
    dH = kappa * (6.0 + kf * (6.0 + kf * (3.0 + kf))) / 6.0
    return 1.0 + E * (kappa * math.exp(kf) - dH)


def spalding(B: float, kappa: float, E: float, y_plus: float, f_guess: float = 0.0) -> float:
    """Invert Spalding's law for f+ with a damped Newton iteration.

    Args:
        B: Log-law offset B+
        kappa: von Karman constant
        E: exp(-kappa*B)
        y_plus: Dimensionless wall distance (>= 0)
        f_guess: Initial guess; 0 selects y+ in the sublayer and the log law beyond

    Returns:
        f+ such that spalding_y(f+) = y+

    Raises:
        TooManyIterations: After 100 Newton steps
    """
    if y_plus < 0.0:
        raise InvalidInput(f"invalid value for y+ = {y_plus}")
    if f_guess == 0.0:
        f = y_plus if y_plus < 10.0 else math.log(y_plus) / kappa + B
    else:
        f = f_guess

    f_old = math.inf
    count = 0
    while abs(f_old - f) > 20 * 1e-12:
        f_old = f
        f -= 0.99 * (spalding_y(B, kappa, E, f) - y_plus) / spalding_dydf(B, kappa, E, f)
        count += 1
        if count > 100:
            raise TooManyIterations("Spalding inversion did not converge", {"y+": y_plus, "f+": f})
    return f


# Coles wake, see 10.2514/6.2017-4743
def g_plus(kappa: float, Pi: float, eta: float) -> float:
    return eta * eta * ((6.0 * Pi + 1.0) - (4.0 * Pi + 1.0) * eta) / kappa


def dg_plus_deta(kappa: float, Pi: float, eta: float) -> float:
    return eta * ((12.0 * Pi + 2.0) - (12.0 * Pi + 3.0) * eta) / kappa


def kays_crawford(Pr: float, mu: float, mu_T: float, Pr_T_inf: float = 0.85) -> float:
    """Turbulent Prandtl number after Kays and Crawford, Eq. (12-7).

    Args:
        Pr: Laminar Prandtl number
        mu: Laminar viscosity (Pa s)
        mu_T: Turbulent viscosity (Pa s)
        Pr_T_inf: Turbulent Prandtl number far from the wall

    Returns:
        Local turbulent Prandtl number

    Note:
        At mu_T = 0 the closed form tends to 2*Pr_T_inf, which is returned directly.
    """
    C = 0.3 * mu_T / mu * Pr
    if C <= 0.0:
        return 2.0 * Pr_T_inf
    sq = math.sqrt(Pr_T_inf)
    return 1.0 / (0.5 / Pr_T_inf + C * (1.0 / sq - C * (1.0 - math.exp(-1.0 / (C * sq)))))


def cf_moody(Re_Dh: float, Dh: float, k: float) -> float:
    """Friction coefficient from the Colebrook-White equation.

    Solves 1/sqrt(f) = -2 log10(k/(3.71 Dh) + 2.51/(Re sqrt(f))) for the Darcy
    factor f by damped Newton (omega = 0.9) and returns the Fanning coefficient.

    Args:
        Re_Dh: Reynolds number based on hydraulic diameter
        Dh: Hydraulic diameter (m)
        k: Technical roughness (m)

    Returns:
        Friction coefficient cf = f/4
    """
    # Dittus-Boelter guess
    cf = 0.046 / Re_Dh**0.2
    x = 1.0 / math.sqrt(4.0 * cf)
    a = 2.51 / Re_Dh
    b = k / (Dh * 3.71)
    c = 2.0 / math.log(10.0)

    F = math.inf
    count = 0
    while abs(F) > 1e-9:
        D = a * x + b
        if abs(D) <= 2.2e-16:
            raise InvalidInput(f"Colebrook inversion failed for Re={Re_Dh:.6g}, Dh={Dh:.6g}")
        F = x + c * math.log(D)
        dF = 1.0 + a * c / D
        x -= 0.9 * F / dF
        count += 1
        if count > 100:
            raise TooManyIterations("Moody friction did not converge", {"Re": Re_Dh, "Dh": Dh, "k": k})
    return 0.25 / (x * x)


def reference_temperature(gas, T_e: float, p: float, u_e: float, T_w: float,
                          turbulent: bool = True) -> float:
    """Reference temperature from the enthalpy form of Meador and Smart.

    Args:
        gas: ``Mixture`` providing h, cp, Pr and T_from_h
        T_e: Edge (bulk) temperature (K)
        p: Pressure (Pa)
        u_e: Edge (bulk) velocity (m/s)
        T_w: Wall temperature (K)
        turbulent: Select turbulent (default) or laminar constants

    Returns:
        Reference temperature (K)

    Reference:
        Meador, W. E., Smart, M. K. (2005). "Reference Enthalpy Method Developed
        from Solutions of the Boundary-Layer Equations." AIAA Journal 43(1).
    """
    Tt = T_e + 0.5 * u_e * u_e / gas.cp(T_e, p)
    # Eckert's estimate as initial guess
    T_ref = T_e + 0.5 * (T_w - T_e) + 0.22 * (Tt - T_e)

    if turbulent:
        Ce, Cr, Cw, power = 0.34, 0.16, 0.50, 1.0 / 3.0
    else:
        Ce, Cr, Cw, power = 0.29, 0.16, 0.55, 0.5

    h_e = gas.h(T_e, p)
    h_w = gas.h(T_w, p)
    h_ref = h_e
    omega = 0.9
    residual = math.inf
    count = 0
    while residual > 1e-9:
        r = gas.Pr(T_ref, p)**power
        h_r = h_e + 0.5 * r * u_e * u_e
        h_old = h_ref
        h_ref = Ce * h_e + Cr * h_r + Cw * h_w
        residual = abs((h_ref - h_old) / h_old)
        T_ref = (1.0 - omega) * T_ref + omega * gas.T_from_h(h_ref, p, T_ref)
        count += 1
        if count > 1000:
            raise TooManyIterations("reference temperature did not converge",
                                    {"T": T_e, "p": p, "u": u_e, "Tw": T_w, "res": residual})
        if count == 50:
            omega = 0.1
    return T_ref
