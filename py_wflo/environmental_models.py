import numpy as np
from numpy import newaxis as na
from warnings import catch_warnings, filterwarnings

WILDLIFE_ZONES = ('wildlife_corridor', 'bird_migration', 'wetland')


def significance(score):
    """Qualitative significance of an impact score 0-100"""
    for limit, label in [(10, 'negligible'), (25, 'minor'), (50, 'moderate'), (75, 'major')]:
        if score < limit:
            return label
    return 'severe'


class Species():
    def __init__(self, name, type='bird', flight_height=None, maneuverability='medium', nocturnal=False,
                 conservation_status='least_concern'):
        """
        Parameters
        ----------
        name : str
        type : {'bird', 'bat', ...}
            Only birds and bats contribute to the collision risk
        flight_height : float, optional
            Typical flight height [m]
        maneuverability : {'low', 'medium', 'high'}
        nocturnal : bool
        conservation_status : str
            E.g. 'least_concern' or 'endangered'
        """
        self.name = name
        self.type = type
        self.flight_height = flight_height
        self.maneuverability = maneuverability
        self.nocturnal = nocturnal
        self.conservation_status = conservation_status

    def collision_risk(self, hub_height, diameter):
        """Relative collision risk per turbine. Non-zero only if the typical flight height
        is within the rotor swept height"""
        if self.type not in ('bird', 'bat') or self.flight_height is None:
            return np.zeros(np.shape(hub_height))
        hub_height, diameter = np.asarray(hub_height, dtype=float), np.asarray(diameter, dtype=float)
        in_rotor = (self.flight_height >= hub_height - diameter / 2) & (self.flight_height <= hub_height + diameter / 2)
        factor = (1.5 if self.maneuverability == 'low' else 1.) * (1.2 if self.nocturnal else 1.) * \
            (2. if self.conservation_status == 'endangered' else 1.)
        return in_rotor * factor

    @classmethod
    def from_dict(cls, d):
        flight = d.get('flightBehavior', {})
        return cls(d['name'], d.get('type', 'bird'),
                   flight_height=d.get('flight_height', flight.get('typicalFlightHeight')),
                   maneuverability=d.get('maneuverability', flight.get('maneuverability', 'medium')),
                   nocturnal=d.get('nocturnal', flight.get('nocturnal', False)),
                   conservation_status=d.get('conservation_status', d.get('conservationStatus', 'least_concern')))


class EnvironmentalImpact():
    def __init__(self, noise_score, max_noise_level, affected_receptors, visual_score, wildlife_score,
                 collision_risk, habitat_loss, zone_intrusions, overall_score):
        """
        Parameters
        ----------
        noise_score, visual_score, wildlife_score, overall_score : float
            Impact scores 0-100 (0 is no impact)
        max_noise_level : float
            Highest combined sound pressure level at a receptor [dB(A)], 0 without receptors
        affected_receptors : int
            Receptors above the noise threshold
        collision_risk : float
            Mean relative collision risk per turbine
        habitat_loss : float
            [ha]
        zone_intrusions : dict
            turbine id -> list of types of high/critical constraint zones containing the turbine
        """
        self.noise_score = noise_score
        self.max_noise_level = max_noise_level
        self.affected_receptors = affected_receptors
        self.visual_score = visual_score
        self.wildlife_score = wildlife_score
        self.collision_risk = collision_risk
        self.habitat_loss = habitat_loss
        self.zone_intrusions = zone_intrusions
        self.overall_score = overall_score

    @property
    def scores(self):
        return {'noise': self.noise_score, 'visual': self.visual_score, 'wildlife': self.wildlife_score}

    @property
    def significance(self):
        return {k: significance(v) for k, v in self.scores.items()}

    def __repr__(self):
        return "EnvironmentalImpact(overall=%.1f, noise=%.1f, visual=%.1f, wildlife=%.1f)" % (
            self.overall_score, self.noise_score, self.visual_score, self.wildlife_score)


class EnvironmentalImpactModel():
    """Simple screening model of noise, visual and wildlife impact

    Noise is a point source of 105 dB(A) with spherical spreading and 8 dB ground and air
    absorption, summed energetically over turbines. Visual impact is the distance weighted
    visual angle of the turbine tip within 5 km. Wildlife impact combines species collision
    risk, wildlife zones near the turbines and a habitat loss of 0.5 ha per turbine.
    """

    def __init__(self, species=(), source_level=105., attenuation=8., noise_threshold=40., visual_range=5000.,
                 footprint=.5, weights={'noise': .2, 'visual': .15, 'wildlife': .25}):
        """
        Parameters
        ----------
        species : list of Species, optional
            Species present at the site
        source_level : float
            Turbine sound power level [dB(A)]
        attenuation : float
            Ground and air absorption [dB]
        noise_threshold : float
            Receptors above this level are affected [dB(A)]
        visual_range : float
            Turbines further away are not visible [m]
        footprint : float
            Habitat loss per turbine [ha]
        weights : dict
            Weights of the overall score
        """
        self.species = tuple(species)
        self.source_level = source_level
        self.attenuation = attenuation
        self.noise_threshold = noise_threshold
        self.visual_range = visual_range
        self.footprint = footprint
        self.weights = weights

    def turbine_noise_levels(self, layout, receptors):
        """Sound pressure level [dB(A)] of turbine i at receptor j"""
        receptors = np.reshape(receptors, (-1, 2))
        dist_ij = np.maximum(np.hypot(layout.x[:, na] - receptors[na, :, 0], layout.y[:, na] - receptors[na, :, 1]), 1)
        return self.source_level - 20 * np.log10(dist_ij) - self.attenuation

    def noise_levels(self, layout, receptors):
        """Combined sound pressure level [dB(A)] at each receptor"""
        if len(np.reshape(receptors, (-1, 2))) == 0:
            return np.zeros(0)
        return 10 * np.log10(np.sum(10**(self.turbine_noise_levels(layout, receptors) / 10), 0))

    def noise_impact(self, layout, site):
        """Noise score (twice the highest receptor level, max 100), highest level and number
        of affected receptors"""
        levels = self.noise_levels(layout, site.noise_receptors())
        if len(levels) == 0:
            return 0., 0., 0
        max_level = float(levels.max())
        return min(100., max(0., 2 * max_level)), max_level, int(np.sum(levels > self.noise_threshold))

    def visual_impact(self, layout, site):
        """Average visibility score over viewpoints, max 100"""
        vps = site.visual_viewpoints()
        if len(vps) == 0:
            return 0.
        tip_height = np.array([s.tip_height for s in layout.specs])
        dist_ij = np.maximum(np.hypot(layout.x[:, na] - vps[na, :, 0], layout.y[:, na] - vps[na, :, 1]), 1)
        visibility_ij = np.maximum(0, 1 - dist_ij / self.visual_range)
        angle_ij = np.rad2deg(np.arctan(tip_height[:, na] / dist_ij))
        score_j = np.sum(visibility_ij * angle_ij, 0) * vps[:, 2]
        return float(min(100., score_j.mean()))

    def collision_risk(self, layout, site):
        """Relative collision risk per turbine from species and wildlife zones

        A turbine inside, or closer than one rotor diameter to, a wildlife zone adds a risk of
        one (two for critical zones).
        """
        risk_i = np.zeros(len(layout))
        for s in self.species:
            risk_i += s.collision_risk(layout.hub_height, layout.diameter)
        for c in site.environmental_constraints:
            if c.type in WILDLIFE_ZONES:
                near = c.distance(layout.x, layout.y) <= layout.diameter
                risk_i += near * (2. if c.severity == 'critical' else 1.)
        return risk_i

    def wildlife_impact(self, layout, site):
        """Wildlife score, mean collision risk and habitat loss [ha]"""
        collision_risk = float(self.collision_risk(layout, site).mean())
        habitat_loss = self.footprint * len(layout)
        return min(100., collision_risk * 20 + habitat_loss * .5), collision_risk, habitat_loss

    def zone_intrusions(self, layout, site):
        """turbine id -> types of the high/critical constraint zones containing the turbine"""
        intrusions = {}
        for c in site.environmental_constraints:
            if c.is_exclusion:
                for i in np.where(c.contains(layout.x, layout.y))[0]:
                    intrusions.setdefault(layout.ids[i], []).append(c.type)
        return intrusions

    def overall_score(self, scores):
        w = {k: self.weights.get(k, 0) for k in scores}
        total = sum(w.values())
        if total <= 0:
            return 0.
        return sum(scores[k] * w[k] for k in scores) / total

    def __call__(self, layout, site):
        """Impact assessment of layout

        Returns
        -------
        EnvironmentalImpact
        """
        with catch_warnings():
            filterwarnings('ignore', category=RuntimeWarning)
            noise_score, max_level, affected = self.noise_impact(layout, site)
        visual_score = self.visual_impact(layout, site)
        wildlife_score, collision_risk, habitat_loss = self.wildlife_impact(layout, site)
        scores = {'noise': noise_score, 'visual': visual_score, 'wildlife': wildlife_score}
        return EnvironmentalImpact(noise_score, max_level, affected, visual_score, wildlife_score, collision_risk,
                                   habitat_loss, self.zone_intrusions(layout, site), self.overall_score(scores))
