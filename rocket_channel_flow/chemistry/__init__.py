"""Finite-rate chemistry from Chemkin mechanisms."""

from .chemkin import ChemkinFile, ReactionEntry, parse_stoichiometry
from .reactions import (ArrheniusReaction, DuplicateReaction, LindemannReaction, Reaction,
                        TroeReaction, arrhenius, create_reaction)
from .scheme import Fuel, Oxidizer, ReactionScheme
