from numpy import testing as npt
