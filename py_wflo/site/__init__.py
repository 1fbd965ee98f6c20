from ._site import Site, WindResource, WindSector, TerrainGrid, EnvironmentalConstraint
from .suitability import TerrainSuitability
