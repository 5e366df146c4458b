"""Physical constants used by the field solvers.

All values sourced from ``scipy.constants`` (CODATA 2018).
Import from here instead of defining local constants.
"""

import scipy.constants as _sc

# Electromagnetic
epsilon_0 = _sc.epsilon_0     # Vacuum permittivity [F/m]
mu_0 = _sc.mu_0               # Vacuum permeability [H/m]
c = _sc.c                     # Speed of light [m/s]

# Derived
c2 = c * c                    # c^2 [m^2/s^2]
inv_epsilon_0 = 1.0 / epsilon_0

# Mathematical
pi = _sc.pi
