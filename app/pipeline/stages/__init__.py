from __future__ import annotations

from app.pipeline.stages.api_key_quota import ApiKeyQuotaStage
from app.pipeline.stages.correlation import CorrelationStage
from app.pipeline.stages.fault_isolation import fault_isolation_stage
from app.pipeline.stages.global_limit import GlobalRateLimitStage
from app.pipeline.stages.logging import logging_stage

__all__ = [
    "ApiKeyQuotaStage",
    "CorrelationStage",
    "GlobalRateLimitStage",
    "fault_isolation_stage",
    "logging_stage",
]
