"""
rocket_channel_flow: quasi-1D channel flow and wall heat transfer for rocket
engine thrust chambers, nozzles and cooling channels.
"""

from . import errors
from . import compressible_flow
from . import thermo
from . import wall_functions
from . import splines
from . import parameters
from . import boundary_layer
from . import geometry
from . import segments
from . import channel_ode
from . import marcher
from . import isotropic
from . import config
from . import chemistry
