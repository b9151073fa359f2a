"""veritas.ai – analysis gateway client sub-package."""
from .gateway import (
    AnalysisDetails,
    AnalysisError,
    AnalysisRequest,
    AnalysisResult,
    ContentAnalyzer,
    GatewayCreditsExhausted,
    GatewayNotConfigured,
    GatewayRateLimited,
    GatewayUnavailable,
    MalformedAnalysis,
    parse_analysis,
)

__all__ = [
    "AnalysisDetails",
    "AnalysisError",
    "AnalysisRequest",
    "AnalysisResult",
    "ContentAnalyzer",
    "GatewayCreditsExhausted",
    "GatewayNotConfigured",
    "GatewayRateLimited",
    "GatewayUnavailable",
    "MalformedAnalysis",
    "parse_analysis",
]
