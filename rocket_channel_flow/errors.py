"""Error kinds raised by the channel toolkit.

Every iterative kernel raises :class:`TooManyIterations` when it exhausts its
cap, the Crocco-Busemann transform raises :class:`CorrelationFail`, and the
remaining classes flag bad input. The value-type errors derive from
``ValueError`` so callers that only know the plain Python exceptions still
catch them.

Module Summary:
- Classes:
    - ``TooManyIterations``: Newton / RK / marcher iteration cap exhausted.
    - ``CorrelationFail``: singular Crocco-Busemann constants.
    - ``OutOfRange``: evaluation outside a validity range.
    - ``InvalidMixture``: mixture does not fit the requested model.
    - ``InvalidGeometry``: geometry parameters missing or inconsistent.
    - ``InvalidInput``: non-physical argument.
    - ``ParseError``: malformed Chemkin input.
"""

from typing import Dict, Optional


class TooManyIterations(RuntimeError):
    """Raised when an iteration cap is reached.

    Args:
        message: Human readable description
        state: Last trial state (name -> value), kept for diagnostics
    """

    def __init__(self, message: str, state: Optional[Dict[str, float]] = None):
        self.state = dict(state or {})
        if self.state:
            details = ", ".join(f"{k}={v:.6g}" for k, v in self.state.items())
            message = f"{message} ({details})"
        super().__init__(message)


class CorrelationFail(RuntimeError):
    """Raised when the Crocco-Busemann constants degenerate."""


class OutOfRange(ValueError):
    """Raised when a property is requested outside its validity range."""


class InvalidMixture(ValueError):
    """Raised when a mixture does not fit the requested gas model."""


class InvalidGeometry(ValueError):
    """Raised when geometry parameters are missing or inconsistent."""


class InvalidInput(ValueError):
    """Raised for non-physical arguments such as negative diameters."""


class ParseError(ValueError):
    """Raised for malformed Chemkin input.

    Args:
        message: Description of the problem
        line_number: 1-based line number in the input file
    """

    def __init__(self, message: str, line_number: int):
        self.line_number = line_number
        super().__init__(f"line {line_number}: {message}")
