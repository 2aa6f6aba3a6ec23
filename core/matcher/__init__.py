"""Matcher Module - k-NN match discovery and match lifecycle."""
from core.matcher.dto import (
    MatchStatus, DiscoveryStatus, VectorHit, VectorRecord, MatchDraft,
    MatchRecord, DiscoveredMatch, DiscoveryResult, MatchStats
)
from core.matcher.interfaces import VectorSearch, ProfileStore, MatchStore
from core.matcher.service import MatchDiscoveryPipeline
from core.matcher.lifecycle import MatchLifecycleService, can_transition, ensure_transition

__all__ = [
    'MatchDiscoveryPipeline', 'MatchLifecycleService',
    'VectorSearch', 'ProfileStore', 'MatchStore',
    'can_transition', 'ensure_transition',
    'MatchStatus', 'DiscoveryStatus', 'VectorHit', 'VectorRecord',
    'MatchDraft', 'MatchRecord', 'DiscoveredMatch', 'DiscoveryResult', 'MatchStats',
]
