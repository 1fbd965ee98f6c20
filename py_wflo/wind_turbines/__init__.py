from ._wind_turbines import TurbineSpecification, GenericTurbineSpecification
