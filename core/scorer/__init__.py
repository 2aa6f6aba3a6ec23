#!/usr/bin/env python3
"""
Scoring Module - Resonance-Based Scoring (RBS).

Public API:
- ScoreCombiner: RBS orchestrator over the four component scorers
- SubspaceResonance, CausalUpliftEstimator, InformationGainScorer,
  SafetyConstraintsEvaluator: the component scorers

Modules:
- models.py: Data structures (profiles, safety data, weights, results)
- resonance.py: SR, weighted cosine over embedding subspaces
- uplift.py: CU, two-model linear-sigmoid uplift estimator
- information_gain.py: IG, profile completeness and confidence
- safety.py: SC, red flag / distance / age penalty
- features.py: Uplift feature extraction for a pair
- service.py: ScoreCombiner orchestrator
"""

from core.scorer.models import (
    TraitDimension, TraitSource, RedFlag, Subspace, Trait, Profile5D,
    Coordinates, SafetyPreferences, SafetyProfile, RBSWeights, RBSComponents,
    RBSScore, RBSDetails, UpliftPrediction, InformationGainResult, SafetyFlag,
    SafetyConstraintsResult, ScoringSubject, PairInput
)
from core.scorer.resonance import SubspaceResonance
from core.scorer.uplift import CausalUpliftEstimator
from core.scorer.information_gain import InformationGainScorer
from core.scorer.safety import SafetyConstraintsEvaluator
from core.scorer.service import ScoreCombiner

__all__ = [
    'ScoreCombiner', 'SubspaceResonance', 'CausalUpliftEstimator',
    'InformationGainScorer', 'SafetyConstraintsEvaluator',
    'TraitDimension', 'TraitSource', 'RedFlag', 'Subspace', 'Trait', 'Profile5D',
    'Coordinates', 'SafetyPreferences', 'SafetyProfile', 'RBSWeights',
    'RBSComponents', 'RBSScore', 'RBSDetails', 'UpliftPrediction',
    'InformationGainResult', 'SafetyFlag', 'SafetyConstraintsResult',
    'ScoringSubject', 'PairInput',
]
