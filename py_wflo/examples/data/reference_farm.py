import numpy as np
from py_wflo.layout import Layout
from py_wflo.site import Site, WindResource, WindSector, EnvironmentalConstraint
from py_wflo.utils.layouts import rectangle
from py_wflo.wind_turbines import TurbineSpecification

# Vestas V80 2MW, power [MW]
power_curve = np.array([[4.0, 0.0664],
                        [5.0, 0.1521],
                        [6.0, 0.2801],
                        [7.0, 0.4589],
                        [8.0, 0.6967],
                        [9.0, 0.9981],
                        [10.0, 1.3361],
                        [11.0, 1.6275],
                        [12.0, 1.8113],
                        [13.0, 1.8969],
                        [14.0, 1.9331],
                        [15.0, 1.9473],
                        [16.0, 1.9522],
                        [17.0, 1.9540],
                        [18.0, 1.9545],
                        [19.0, 1.9547],
                        [20.0, 1.9548],
                        [21.0, 1.9548],
                        [22.0, 1.9548],
                        [23.0, 1.9548],
                        [24.0, 1.9548],
                        [25.0, 1.9548]])
ct_curve = np.array([[4.0, 0.818],
                     [5.0, 0.806],
                     [6.0, 0.804],
                     [7.0, 0.805],
                     [8.0, 0.806],
                     [9.0, 0.807],
                     [10.0, 0.793],
                     [11.0, 0.739],
                     [12.0, 0.709],
                     [13.0, 0.409],
                     [14.0, 0.314],
                     [15.0, 0.249],
                     [16.0, 0.202],
                     [17.0, 0.167],
                     [18.0, 0.140],
                     [19.0, 0.119],
                     [20.0, 0.102],
                     [21.0, 0.088],
                     [22.0, 0.077],
                     [23.0, 0.067],
                     [24.0, 0.060],
                     [25.0, 0.053]])

# 12 sector wind rose, mean speeds at 70m
wd = np.arange(0, 360, 30.)
f = [3.6, 3.9, 5.2, 7.0, 8.3, 6.4, 8.6, 11.8, 12.8, 14.3, 10.6, 7.5]
A = [9.18, 9.78, 9.50, 9.81, 10.40, 10.01, 10.33, 11.91, 12.22, 12.43, 11.45, 10.08]
k = [2.39, 2.45, 2.41, 2.37, 2.49, 2.45, 2.38, 2.43, 2.51, 2.41, 2.36, 2.21]


class V80(TurbineSpecification):
    def __init__(self, hub_height=70):
        TurbineSpecification.__init__(self, 'V80', rated_power=2., diameter=80, hub_height=hub_height,
                                      ws_cutin=4., ws_rated=15., ws_cutout=25.,
                                      power_curve=power_curve, ct_curve=ct_curve,
                                      cost=2.4e6, maintenance_cost=8e4, model='Vestas V80-2.0MW')


def wind_resource():
    return WindResource([WindSector(d, f_, a_ * .89, a_, k_) for d, f_, a_, k_ in zip(wd, f, A, k)],
                        turbulence_intensity=.08, reference_height=70)


class ReferenceSite(Site):
    """2km x 2km site with a dwelling east of the site and a bird migration corridor in
    the north-west corner"""

    def __init__(self, size=2000.):
        Site.__init__(self, [(0, 0), (size, 0), (size, size), (0, size)], wind_resource(),
                      environmental_constraints=[
                          EnvironmentalConstraint('bird_migration', [(0, size * .8), (size * .2, size * .8),
                                                                     (size * .2, size), (0, size)], 'high'),
                          EnvironmentalConstraint('noise_sensitive', (size + 800, size / 2), 'medium', radius=100)],
                      viewpoints=[(size / 2, -2000, 'high')],
                      name='reference')


def reference_layout(n_wt=16, columns=4, distance=560, origin=(200, 200), hub_height=70):
    """Regular grid of V80 turbines, 7D spacing"""
    wt_x, wt_y = rectangle(n_wt, columns, distance)
    return Layout(wt_x + origin[0], wt_y + origin[1], V80(hub_height), layout_type='grid_regular')


def main():
    if __name__ == '__main__':
        from py_wflo.wake_effect_modeler import WakeEffectModeler
        site = ReferenceSite()
        layout = reference_layout()
        print(layout)
        print(WakeEffectModeler().calculate_energy_production(layout, site))


main()
