import yaml
from py_wflo.environmental_models import EnvironmentalImpactModel, Species
from py_wflo.optimization import Objectives, OptimizationParameters, OptimizationSettings
from py_wflo.site import Site, WindResource, EnvironmentalConstraint
from py_wflo.wind_turbines import TurbineSpecification, GenericTurbineSpecification


def read_site(data):
    return Site(data['boundary'], WindResource.from_dict(data['wind_resource']),
                environmental_constraints=[EnvironmentalConstraint.from_dict(c)
                                           for c in data.get('environmental_constraints', [])],
                receptors=data.get('receptors', ()),
                viewpoints=[tuple(vp) for vp in data.get('viewpoints', [])],
                name=data.get('name', ''))


def read_turbine(data):
    """Generic turbine unless a power curve is given"""
    if 'power_curve' in data:
        return TurbineSpecification(**data)
    return GenericTurbineSpecification(**data)


def read_farm_case(filename):
    """Read a layout optimization case

    Returns
    -------
    case : dict
        site, turbine_specs, parameters, objectives, settings and environmental_model
    """
    with open(filename, 'r') as f:
        data = yaml.load(f, Loader=yaml.SafeLoader)
    site_data = dict(data['site'])
    site_data.setdefault('name', data.get('name', ''))
    return {'site': read_site(site_data),
            'turbine_specs': [read_turbine(t) for t in data['turbines']],
            'parameters': OptimizationParameters.from_dict(data.get('parameters', {})),
            'objectives': Objectives.from_dict(data.get('objectives', {})),
            'settings': OptimizationSettings.from_dict(data.get('settings', {})),
            'environmental_model': EnvironmentalImpactModel([Species.from_dict(s) for s in data.get('species', [])])}


def main():
    if __name__ == '__main__':
        from py_wflo.examples.data import example_data_path
        case = read_farm_case(example_data_path + 'reference_farm.yaml')
        site = case['site']
        print(f"{site.name}: {site.area / 1e6:.1f}km^2, {len(site.wind_resource.sectors)} sectors, "
              f"{len(site.environmental_constraints)} constraint zones")
        print(case['turbine_specs'])
        print(case['settings'].algorithm, case['objectives'].weights)


main()
