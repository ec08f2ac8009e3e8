from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

from skin_score import SkinScoreResult, clamp_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recommendation:
    text: str
    program: str
    link: str
    priority: int

    def to_dict(self) -> Dict:
        return {
            'text': self.text,
            'program': self.program,
            'link': self.link,
            'priority': self.priority
        }


SMOOTHNESS_TIP = Recommendation(
    text='Focus on facial massage and Gua Sha techniques to improve skin texture and smoothness',
    program='Gua Sha Workshop',
    link='#programs',
    priority=1
)
EVENNESS_TIP = Recommendation(
    text='Try our Face Yoga sessions to improve circulation and skin tone evenness',
    program='Face Yoga Classes',
    link='#programs',
    priority=1
)
CLARITY_TIP = Recommendation(
    text='Consider our One-to-One program for personalized blemish control and clarity techniques',
    program='One-to-One Programme',
    link='#programs',
    priority=1
)
CONSULTATION = Recommendation(
    text='Book a consultation to create a comprehensive BEYOND plan addressing multiple areas',
    program='Free Consultation',
    link='#contact',
    priority=2
)
GROUP_WORKSHOPS = Recommendation(
    text='Start with our Group Workshops to build a consistent routine',
    program='Group Workshops',
    link='#programs',
    priority=3
)
MAINTENANCE = Recommendation(
    text='Excellent skin condition! Maintain your results with our advanced maintenance techniques',
    program='Advanced Workshops',
    link='#programs',
    priority=1
)
DEFAULT_RECOMMENDATION = Recommendation(
    text='Your skin is in good condition! Consider our maintenance programs to keep your skin healthy.',
    program='All Programs',
    link='#programs',
    priority=1
)


def _tips(program: str, *texts: str) -> Tuple[Recommendation, ...]:
    return tuple(
        Recommendation(text=text, program=program, link='#programs', priority=1)
        for text in texts
    )


# Unranked tip lists shown by the plain camera page
LEGACY_TIPS = {
    'smoothness': _tips(
        'Skincare Tips',
        'Consider using a gentle exfoliating cleanser 2-3 times per week',
        'Try facial massage techniques - visit BEYOND for professional guidance'
    ),
    'evenness': _tips(
        'Skincare Tips',
        'Try using vitamin C serum to improve skin tone',
        'Consider face yoga sessions to improve circulation'
    ),
    'clarity': _tips(
        'Skincare Tips',
        'Consider using salicylic acid for blemish control',
        "Explore BEYOND's holistic approach to skin clarity"
    ),
    'routine': _tips(
        'Daily Routine',
        'Establish a consistent daily skincare routine',
        'Drink plenty of water and maintain a healthy diet',
        'Book a consultation with BEYOND for personalized guidance'
    ),
    'maintenance': _tips(
        'Maintenance',
        'Great job! Keep up your current skincare routine',
        'Continue protecting your skin from sun damage with SPF',
        'Explore advanced BEYOND techniques to maintain your results'
    )
}


@dataclass(frozen=True)
class RecommendationPolicy:
    """
    Thresholds and limits for one recommendation rule set.

    ranked policies emit one targeted entry per low area, a consultation when
    several areas (or the overall score) are low, and cap the sorted list.
    Unranked policies emit fixed tip lists in rule order without a cap.
    """
    name: str
    low_threshold: int = 50
    overall_low_threshold: int = 50
    high_threshold: int = 85
    max_results: Optional[int] = 3
    ranked: bool = True
    min_low_areas_for_consultation: int = 2
    consult_on_low_overall: bool = True


BEYOND_POLICY = RecommendationPolicy(name='beyond')

LEGACY_POLICY = RecommendationPolicy(
    name='legacy',
    low_threshold=70,
    overall_low_threshold=60,
    high_threshold=80,
    max_results=None,
    ranked=False
)

POLICIES = {policy.name: policy for policy in (BEYOND_POLICY, LEGACY_POLICY)}


def get_policy(name: str) -> RecommendationPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown recommendation policy '{name}', expected one of {sorted(POLICIES)}"
        ) from None


class RecommendationEngine:
    def __init__(self, policy: RecommendationPolicy = BEYOND_POLICY):
        self.policy = policy

    def _clamped_scores(self, result: SkinScoreResult) -> Dict[str, float]:
        return {
            'smoothness': clamp_score(result.smoothness),
            'evenness': clamp_score(result.evenness),
            'clarity': clamp_score(result.clarity),
            'overall': clamp_score(result.overall)
        }

    def _low_areas(self, scores: Dict[str, float]) -> List[str]:
        return [
            area for area in ('smoothness', 'evenness', 'clarity')
            if scores[area] < self.policy.low_threshold
        ]

    def _ranked_rules(self, scores: Dict[str, float]) -> List[Recommendation]:
        targeted = {
            'smoothness': SMOOTHNESS_TIP,
            'evenness': EVENNESS_TIP,
            'clarity': CLARITY_TIP
        }
        low_areas = self._low_areas(scores)
        overall_low = scores['overall'] < self.policy.overall_low_threshold

        recommendations = [targeted[area] for area in low_areas]

        consult = len(low_areas) >= self.policy.min_low_areas_for_consultation
        if consult or (overall_low and self.policy.consult_on_low_overall):
            recommendations.append(CONSULTATION)

        if overall_low and not recommendations:
            recommendations.append(GROUP_WORKSHOPS)

        if scores['overall'] >= self.policy.high_threshold:
            recommendations.append(MAINTENANCE)

        return recommendations

    def _unranked_rules(self, scores: Dict[str, float]) -> List[Recommendation]:
        recommendations = []
        for area in self._low_areas(scores):
            recommendations.extend(LEGACY_TIPS[area])

        if scores['overall'] < self.policy.overall_low_threshold:
            recommendations.extend(LEGACY_TIPS['routine'])

        if scores['overall'] >= self.policy.high_threshold:
            recommendations.extend(LEGACY_TIPS['maintenance'])

        return recommendations

    def recommend(self, result: SkinScoreResult) -> List[Recommendation]:
        """
        Build the recommendation list for a scored result.
        Always returns at least one entry, sorted by ascending priority.
        """
        scores = self._clamped_scores(result)

        if self.policy.ranked:
            recommendations = self._ranked_rules(scores)
        else:
            recommendations = self._unranked_rules(scores)

        # sorted() is stable, so equal priorities keep rule order
        recommendations = sorted(recommendations, key=lambda rec: rec.priority)
        if self.policy.max_results is not None:
            recommendations = recommendations[:self.policy.max_results]

        if not recommendations:
            recommendations = [DEFAULT_RECOMMENDATION]

        logger.debug(
            f"Policy '{self.policy.name}' produced {len(recommendations)} recommendation(s)"
        )
        return recommendations


def recommend(result: SkinScoreResult, policy: RecommendationPolicy = BEYOND_POLICY) -> List[Recommendation]:
    return RecommendationEngine(policy).recommend(result)
