"""Application wiring for survey storage."""
from __future__ import annotations

from functools import lru_cache

from ..surveys import SurveyService, SurveyStore
from ..surveys.repository import PostgresSurveyStore
from .billing import get_entitlement_store


@lru_cache(maxsize=1)
def get_survey_store() -> SurveyStore:
    return PostgresSurveyStore()


@lru_cache(maxsize=1)
def get_survey_service() -> SurveyService:
    return SurveyService(responses=get_survey_store(), entitlements=get_entitlement_store())


__all__ = ["get_survey_service", "get_survey_store"]
