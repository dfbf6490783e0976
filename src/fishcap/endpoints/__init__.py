"""Caller-side composition of generation, validation, caching and fallbacks."""

from fishcap.endpoints.catalog import DIAGNOSE_ENDPOINT, GRADE_ENDPOINT
from fishcap.endpoints.models import (
    CacheScope,
    EndpointMeta,
    EndpointResult,
    EndpointSpec,
    InvalidOutputPolicy,
    ResultSource,
)
from fishcap.endpoints.service import EndpointService

__all__ = [
    "DIAGNOSE_ENDPOINT",
    "GRADE_ENDPOINT",
    "CacheScope",
    "EndpointMeta",
    "EndpointResult",
    "EndpointService",
    "EndpointSpec",
    "InvalidOutputPolicy",
    "ResultSource",
]
