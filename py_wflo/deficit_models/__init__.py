from .deficit_model import WakeDeficitModel
from .noj import JensenDeficit
from .gaussian import GaussianDeficit
