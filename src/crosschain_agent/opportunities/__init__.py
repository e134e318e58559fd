"""Opportunity models, detectors and ranking."""
from .models import BridgeRoute, Opportunity, OpportunityKind, PoolInfo, RiskTier
from .detectors import (
    DETECTORS,
    ArbitrageDetector,
    BridgeDetector,
    DetectionParams,
    OpportunityDetector,
    YieldDetector,
    detectors_for,
)
from .ranking import rank

__all__ = [
    "ArbitrageDetector",
    "BridgeDetector",
    "BridgeRoute",
    "DETECTORS",
    "DetectionParams",
    "Opportunity",
    "OpportunityDetector",
    "OpportunityKind",
    "PoolInfo",
    "RiskTier",
    "YieldDetector",
    "detectors_for",
    "rank",
]
