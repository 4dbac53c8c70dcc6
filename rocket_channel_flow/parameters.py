"""Slot layout of the per-segment parameter record.

A segment carries a flat float vector that the marcher, the boundary-layer
solver and the wall coupling all read and write. One wall needs 24 slots; a
second wall appends eight more that mirror slots 16 to 23.
"""

import numpy as np

X = 0
A = 1
DH = 2
TM = 3
PM = 4
UM = 5
MA = 6
HM = 7
SM = 8
PRM = 9
REDH = 10
T_HAT = 11
U_HAT = 12
ERR_MASS = 13
ERR_MOMENTUM = 14
ERR_ENERGY = 15

# first wall
TW1 = 16
TAUW1 = 17
DOTQ1 = 18
HW1 = 19
YPLUS1 = 20
TREC1 = 21
HREC1 = 22
ALPHA1 = 23

# second wall
TW2 = 24
TAUW2 = 25
DOTQ2 = 26
HW2 = 27
YPLUS2 = 28
TREC2 = 29
HREC2 = 30
ALPHA2 = 31

# offsets from TW1 / TW2 to the per-wall results
WALL_SLOTS = 8
N_ONE_WALL = 24
N_TWO_WALLS = 32


def new_record(n_walls: int = 1) -> np.ndarray:
    """Fresh NaN record with one or two wall blocks."""
    return np.full(N_TWO_WALLS if n_walls == 2 else N_ONE_WALL, np.nan)
