import numpy as np
import xarray as xr
from numpy import newaxis as na
from py_wflo.deficit_models.noj import JensenDeficit
from py_wflo.deficit_models.gaussian import GaussianDeficit
from py_wflo.deficit_models.deficit_model import WakeDeficitModel
from py_wflo.layout import EnergyProduction
from py_wflo.site.distance import StraightDistance
from py_wflo.utils import weibull
from py_wflo.utils.check_input import check_model

"""
suffixs:
- i: Upstream (wake generating) turbines
- j: Downstream turbines or map points
- l: Wind direction sectors
- k: Wind speed bins
"""

HOURS_PER_YEAR = 8760


class TurbineWakeLoss():
    def __init__(self, turbine_id, wake_loss, velocity_deficit, affecting_turbines, wind_speed_deficit,
                 turbulence_increase):
        """
        Parameters
        ----------
        turbine_id : str
        wake_loss : float
            Energy loss, 1 - (1 - velocity_deficit)^3 (fraction)
        velocity_deficit : float
            Frequency weighted velocity deficit (fraction)
        affecting_turbines : list of str
            Ids of the turbines causing a deficit above the significance level
        wind_speed_deficit : float
            Frequency weighted wind speed deficit [m/s]
        turbulence_increase : float
            Wake added turbulence [%]
        """
        self.turbine_id = turbine_id
        self.wake_loss = wake_loss
        self.velocity_deficit = velocity_deficit
        self.affecting_turbines = affecting_turbines
        self.wind_speed_deficit = wind_speed_deficit
        self.turbulence_increase = turbulence_increase


class WakeInteraction():
    def __init__(self, upstream, downstream, distance, overlap, velocity_deficit, energy_loss):
        """
        Parameters
        ----------
        upstream, downstream : str
            Turbine ids
        distance : float
            Distance between the turbines [m]
        overlap : float
            Probability of the sectors in which the downstream turbine is waked (fraction)
        velocity_deficit : float
            Frequency weighted velocity deficit (fraction)
        energy_loss : float
            1 - (1 - velocity_deficit)^3 (fraction)
        """
        self.upstream = upstream
        self.downstream = downstream
        self.distance = distance
        self.overlap = overlap
        self.velocity_deficit = velocity_deficit
        self.energy_loss = energy_loss

    def __repr__(self):
        return "WakeInteraction(%s->%s, %.0fm, overlap=%.2f, deficit=%.3f)" % (
            self.upstream, self.downstream, self.distance, self.overlap, self.velocity_deficit)


class WakeRecommendation():
    def __init__(self, type, turbine_id, current_value, recommended_value, expected_improvement,
                 implementation_cost):
        """
        Parameters
        ----------
        type : {'spacing', 'height'}
        turbine_id : str
        current_value, recommended_value : float
            Nearest neighbour distance [m] or hub height [m]
        expected_improvement : float
            Expected energy gain [%]
        implementation_cost : float
            [USD]
        """
        self.type = type
        self.turbine_id = turbine_id
        self.current_value = current_value
        self.recommended_value = recommended_value
        self.expected_improvement = expected_improvement
        self.implementation_cost = implementation_cost

    def __repr__(self):
        return "WakeRecommendation(%s, %s, %.1f->%.1f, +%.2f%%)" % (
            self.type, self.turbine_id, self.current_value, self.recommended_value, self.expected_improvement)


class WakeAnalysis():
    def __init__(self, total_wake_loss, turbine_wake_losses, wake_map, energy_loss_map, interactions,
                 recommendations):
        self.total_wake_loss = total_wake_loss
        self.turbine_wake_losses = turbine_wake_losses
        self.wake_map = wake_map
        self.energy_loss_map = energy_loss_map
        self.interactions = interactions
        self.recommendations = recommendations

    @property
    def wake_loss_i(self):
        return np.array([t.wake_loss for t in self.turbine_wake_losses])


class WakeEffectModeler():
    """Engineering wake model evaluating layouts against a wind rose

    For each sector, the deficit caused by every turbine at every other turbine (or map
    point) is computed with the deficit model inside a cone around the downwind
    direction. Deficits of several upstream turbines are summed linearly and the
    result is clipped to [0, 1]. The modeler keeps no state between calls.
    """

    def __init__(self, deficit_model=None, cone_half_angle=30., min_deficit=.01, interaction_threshold=.05,
                 significant_loss=.15, max_recommendations=10, map_resolution=100., ws_bin_size=1., ws_max=30.):
        """
        Parameters
        ----------
        deficit_model : WakeDeficitModel, optional
            Defaults to JensenDeficit()
        cone_half_angle : float, optional
            Points more than this angle [deg] off the downwind axis are unaffected
        min_deficit : float, optional
            Deficits below this value do not count as affecting a turbine
        interaction_threshold : float, optional
            Minimum waked-sector probability for a turbine pair to be reported as interacting
        significant_loss : float, optional
            Turbines with a larger wake loss receive recommendations
        max_recommendations : int, optional
        map_resolution : float, optional
            Resolution of the wake maps [m]
        ws_bin_size, ws_max : float, optional
            Wind speed bins used to integrate the Weibull distributions [m/s]
        """
        check_model(deficit_model, WakeDeficitModel, 'deficit_model')
        self.deficit_model = deficit_model or JensenDeficit()
        self.cone_half_angle = cone_half_angle
        self.min_deficit = min_deficit
        self.interaction_threshold = interaction_threshold
        self.significant_loss = significant_loss
        self.max_recommendations = max_recommendations
        self.map_resolution = map_resolution
        self.ws_bin_size = ws_bin_size
        self.ws_max = ws_max
        self.distance = StraightDistance()

    def hub_ws_il(self, layout, site):
        """Sector mean wind speed at the hub height of each turbine"""
        wr = site.wind_resource
        return wr.ws_l[na] * wr.shear_factor(layout.hub_height)[:, na]

    def ct_il(self, layout, site):
        ws_il = self.hub_ws_il(layout, site)
        return np.array([spec.ct(ws_l) for spec, ws_l in zip(layout.specs, ws_il)])

    def deficit_ijl(self, layout, site, dst_x_j=None, dst_y_j=None):
        """Velocity deficit caused by turbine i at point j (default: the turbines) for sector l"""
        wr = site.wind_resource
        dw_ijl, cw_ijl = self.distance(layout.x, layout.y, wr.wd_l, dst_x_j, dst_y_j)
        in_cone_ijl = (dw_ijl > 0) & (np.rad2deg(np.arctan2(np.abs(cw_ijl), dw_ijl)) <= self.cone_half_angle)
        deficit_ijl = self.deficit_model(layout.diameter, dw_ijl, cw_ijl, self.ct_il(layout, site),
                                         TI=wr.turbulence_intensity)
        return deficit_ijl * in_cone_ijl

    def _significant_deficit_ijl(self, layout, site):
        deficit_ijl = self.deficit_ijl(layout, site)
        # sectors without wind contribute nothing
        deficit_ijl = deficit_ijl * (site.wind_resource.P_l > 0)[na, na]
        return np.where(deficit_ijl > self.min_deficit, deficit_ijl, 0)

    def wake_loss_i(self, layout, site):
        """Energy loss of each turbine, 1 - (1 - d)^3 where d is the frequency weighted
        sum of significant deficits clipped to [0, 1]"""
        deficit_ijl = self._significant_deficit_ijl(layout, site)
        deficit_j = np.clip(np.sum(deficit_ijl.sum(0) * site.wind_resource.P_l[na], 1), 0, 1)
        return 1 - (1 - deficit_j)**3

    def total_wake_loss(self, layout, site):
        return np.mean(self.wake_loss_i(layout, site))

    def turbine_wake_losses(self, layout, site):
        wr = site.wind_resource
        deficit_ijl = self._significant_deficit_ijl(layout, site)
        deficit_j = np.clip(np.sum(deficit_ijl.sum(0) * wr.P_l[na], 1), 0, 1)
        ws_deficit_j = np.sum(deficit_ijl.sum(0) * wr.P_l[na] * self.hub_ws_il(layout, site), 1)
        affecting_ij = np.any(deficit_ijl > 0, 2)
        ids = np.array(layout.ids)
        return [TurbineWakeLoss(turbine_id=layout.ids[j],
                                wake_loss=1 - (1 - deficit_j[j])**3,
                                velocity_deficit=deficit_j[j],
                                affecting_turbines=list(ids[affecting_ij[:, j]]),
                                wind_speed_deficit=ws_deficit_j[j],
                                turbulence_increase=deficit_j[j] * 50)
                for j in range(len(layout))]

    def wake_map(self, layout, site, resolution=None):
        """Frequency weighted velocity deficit on a grid covering the site"""
        x, y = site.grid(resolution or self.map_resolution)
        X, Y = np.meshgrid(x, y)
        deficit_ijl = self.deficit_ijl(layout, site, X.ravel(), Y.ravel())
        deficit_j = np.clip(np.sum(deficit_ijl.sum(0) * site.wind_resource.P_l[na], 1), 0, 1)
        return xr.DataArray(deficit_j.reshape(X.shape), dims=['y', 'x'], coords={'x': x, 'y': y},
                            attrs={'description': 'Velocity deficit [-]'})

    def wake_interactions(self, layout, site):
        P_l = site.wind_resource.P_l
        deficit_ijl = self._significant_deficit_ijl(layout, site)
        overlap_ij = np.sum((deficit_ijl > 0) * P_l[na, na], 2)
        deficit_ij = np.sum(deficit_ijl * P_l[na, na], 2)
        dist_ij = layout.pairwise_distances()
        return [WakeInteraction(layout.ids[i], layout.ids[j], dist_ij[i, j], overlap_ij[i, j], deficit_ij[i, j],
                                1 - (1 - min(deficit_ij[i, j], 1))**3)
                for i, j in zip(*np.where(overlap_ij > self.interaction_threshold))]

    def recommendations(self, layout, turbine_wake_losses):
        dist = layout.pairwise_distances()
        np.fill_diagonal(dist, np.inf)
        nearest_i = dist.min(1)
        recommendations = []
        for i, twl in enumerate(turbine_wake_losses):
            if twl.wake_loss <= self.significant_loss:
                continue
            loss_pct = twl.wake_loss * 100
            spacing = nearest_i[i] if np.isfinite(nearest_i[i]) else 0.
            recommendations.append(WakeRecommendation('spacing', twl.turbine_id, spacing, spacing * 1.5,
                                                      min(loss_pct * .3, 5), 50000))
            hub_height = layout.specs[i].hub_height
            recommendations.append(WakeRecommendation('height', twl.turbine_id, hub_height, hub_height + 20,
                                                      min(loss_pct * .2, 3), 200000))
        recommendations.sort(key=lambda r: -r.expected_improvement)
        return recommendations[:self.max_recommendations]

    def analyze_wake_effects(self, layout, site):
        """Per turbine wake losses, wake maps, turbine interactions and ranked recommendations

        Returns
        -------
        WakeAnalysis
        """
        turbine_wake_losses = self.turbine_wake_losses(layout, site)
        wake_map = self.wake_map(layout, site)
        energy_loss_map = 1 - (1 - wake_map)**3
        energy_loss_map.attrs['description'] = 'Energy loss [-]'
        return WakeAnalysis(total_wake_loss=np.mean([t.wake_loss for t in turbine_wake_losses]),
                            turbine_wake_losses=turbine_wake_losses,
                            wake_map=wake_map,
                            energy_loss_map=energy_loss_map,
                            interactions=self.wake_interactions(layout, site),
                            recommendations=self.recommendations(layout, turbine_wake_losses))

    def calculate_energy_production(self, layout, site):
        """Annual energy production with wake losses

        Sector speeds are scaled to hub height with the power law shear of the wind
        resource. Sectors with Weibull parameters are integrated over wind speed bins,
        other sectors are evaluated at their mean speed. The waked speed of a turbine is
        ws * (1 - d), where d is its summed deficit for the sector clipped to [0, 1].

        Returns
        -------
        EnergyProduction
        """
        wr = site.wind_resource
        deficit_jl = np.clip(self.deficit_ijl(layout, site).sum(0), 0, 1)
        shear_j = wr.shear_factor(layout.hub_height)
        ws_edges = np.arange(0, self.ws_max + self.ws_bin_size / 2, self.ws_bin_size)
        ws_k = (ws_edges[:-1] + ws_edges[1:]) / 2
        has_weibull_l = wr.has_weibull_l
        A_jl = np.where(has_weibull_l, wr.A_l, 1)[na] * shear_j[:, na]
        k_l = np.where(has_weibull_l, wr.k_l, 2)
        P_jlk = weibull.bin_probabilities(ws_edges, A_jl, k_l[na]) * has_weibull_l[na, :, na]
        ws_jl = wr.ws_l[na] * shear_j[:, na]

        gross_jl = np.zeros(deficit_jl.shape)
        net_jl = np.zeros(deficit_jl.shape)
        for j, spec in enumerate(layout.specs):
            ws_lk = ws_k[na] * np.ones((len(wr.wd_l), 1))
            weibull_gross_l = np.sum(P_jlk[j] * spec.power(ws_lk), 1)
            weibull_net_l = np.sum(P_jlk[j] * spec.power(ws_lk * (1 - deficit_jl[j][:, na])), 1)
            gross_jl[j] = np.where(has_weibull_l, weibull_gross_l, spec.power(ws_jl[j]))
            net_jl[j] = np.where(has_weibull_l, weibull_net_l, spec.power(ws_jl[j] * (1 - deficit_jl[j])))

        aep_j = HOURS_PER_YEAR * np.sum(net_jl * wr.P_l[na], 1)
        gross_aep = HOURS_PER_YEAR * np.sum(gross_jl * wr.P_l[na])
        aep = aep_j.sum()
        capacity = layout.installed_capacity
        return EnergyProduction(aep=aep, gross_aep=gross_aep,
                                capacity_factor=aep / (capacity * HOURS_PER_YEAR) * 100,
                                wake_loss=(1 - aep / gross_aep) * 100 if gross_aep > 0 else 0.,
                                aep_i=aep_j, capacity=capacity)

    def jensen_deficit(self, upstream, x, y, wd, ct=.8, k=.075):
        """Jensen deficit of a single upstream TurbinePosition at the point(s) x, y for wind direction wd"""
        return self._point_deficit(JensenDeficit(k=k), upstream, x, y, wd, ct, TI=None)

    def gaussian_deficit(self, upstream, x, y, wd, ct=.8, turbulence_intensity=.1):
        """Gaussian deficit of a single upstream TurbinePosition at the point(s) x, y for wind direction wd"""
        return self._point_deficit(GaussianDeficit(), upstream, x, y, wd, ct, TI=turbulence_intensity)

    def _point_deficit(self, deficit_model, upstream, x, y, wd, ct, TI):
        x, y = np.atleast_1d(x).astype(float), np.atleast_1d(y).astype(float)
        dw_ijl, cw_ijl = self.distance([upstream.x], [upstream.y], [wd], x, y)
        in_cone_ijl = (dw_ijl > 0) & (np.rad2deg(np.arctan2(np.abs(cw_ijl), dw_ijl)) <= self.cone_half_angle)
        deficit_ijl = deficit_model([upstream.spec.diameter], dw_ijl, cw_ijl, [[ct]], TI=TI)
        return (deficit_ijl * in_cone_ijl)[0, :, 0]

    def compare_wake_effects(self, layouts, site):
        """Rank layouts by total wake loss (ascending)

        Returns
        -------
        comparison : list of dict
            layout, total_wake_loss, max_turbine_wake_loss and interaction_count per layout,
            best first
        """
        comparison = []
        for layout in layouts:
            loss_i = self.wake_loss_i(layout, site)
            comparison.append({'layout': layout,
                               'total_wake_loss': np.mean(loss_i),
                               'max_turbine_wake_loss': np.max(loss_i),
                               'interaction_count': len(self.wake_interactions(layout, site))})
        comparison.sort(key=lambda c: c['total_wake_loss'])
        return comparison

    def apply_recommendation(self, layout, recommendation, site):
        """New layout with the recommendation applied

        A spacing recommendation moves the turbine directly away from its nearest
        neighbour until their distance is the recommended value (clamped to the site
        bounding box). A height recommendation replaces the turbine specification by a
        taller variant.
        """
        i = layout.ids.index(recommendation.turbine_id)
        if recommendation.type == 'height':
            specs = list(layout.specs)
            specs[i] = specs[i].with_hub_height(recommendation.recommended_value)
            return layout.with_specs(specs)
        dist = layout.pairwise_distances()[i]
        dist[i] = np.inf
        n = np.argmin(dist)
        dx, dy = layout.x[i] - layout.x[n], layout.y[i] - layout.y[n]
        d = np.hypot(dx, dy)
        if d == 0:
            dx, dy, d = 1., 0., 1.
        x, y = np.array(layout.x), np.array(layout.y)
        x[i] = layout.x[n] + dx / d * recommendation.recommended_value
        y[i] = layout.y[n] + dy / d * recommendation.recommended_value
        x, y = site.clip(x, y)
        return layout.with_positions(x, y, site.elevation(x, y))

    def optimize_for_wake_reduction(self, layout, site, max_iterations=50, min_improvement=.1):
        """Apply the best recommendation repeatedly and keep the layout with the lowest total wake loss

        Stops when no recommendation remains or the best expected improvement is below
        min_improvement [%].

        Returns
        -------
        result : dict
            layout, initial_wake_loss, wake_loss, wake_loss_reduction (fractions),
            energy_gain [MWh] and iterations
        """
        initial_wake_loss = self.total_wake_loss(layout, site)
        best_layout, best_wake_loss = layout, initial_wake_loss
        current = layout
        iterations = 0
        for iterations in range(1, max_iterations + 1):
            recommendations = self.recommendations(current, self.turbine_wake_losses(current, site))
            if not recommendations:
                iterations -= 1
                break
            recommendation = recommendations[0]
            current = self.apply_recommendation(current, recommendation, site)
            wake_loss = self.total_wake_loss(current, site)
            if wake_loss < best_wake_loss:
                best_layout, best_wake_loss = current, wake_loss
            if recommendation.expected_improvement < min_improvement:
                break
        energy_gain = 0.
        if best_layout is not layout:
            energy_gain = (self.calculate_energy_production(best_layout, site).aep -
                           self.calculate_energy_production(layout, site).aep)
        return {'layout': best_layout, 'initial_wake_loss': initial_wake_loss, 'wake_loss': best_wake_loss,
                'wake_loss_reduction': initial_wake_loss - best_wake_loss, 'energy_gain': energy_gain,
                'iterations': iterations}
