"""Survey response store protocol and an in-memory implementation."""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Callable, List, Optional, Protocol

from ..entitlements.models import normalize_email
from .models import SurveyKind, SurveyResponse


class SurveyStore(Protocol):
    def save_response(self, response: SurveyResponse) -> SurveyResponse:
        """Store ``response``.

        Kinds that replace previous answers overwrite the principal's current
        row; other kinds always add a new row.
        """

    def get_response(self, kind: SurveyKind, email: str) -> Optional[SurveyResponse]:
        """Return the newest response of ``email`` for ``kind``."""

    def list_responses(self, kind: Optional[SurveyKind] = None) -> List[SurveyResponse]:
        ...


class InMemorySurveyStore:
    """List backed store; paid kinds are unique on ``(kind, email)``."""

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = Lock()
        self._responses: List[SurveyResponse] = []

    def save_response(self, response: SurveyResponse) -> SurveyResponse:
        with self._lock:
            update = {"created_at": self._clock()}
            if response.kind.replaces_previous:
                for index, existing in enumerate(self._responses):
                    if existing.kind == response.kind and existing.user_email == response.user_email:
                        update["id"] = existing.id
                        stored = response.model_copy(update=update)
                        self._responses[index] = stored
                        return stored
            stored = response.model_copy(update=update)
            self._responses.append(stored)
            return stored

    def get_response(self, kind: SurveyKind, email: str) -> Optional[SurveyResponse]:
        key = normalize_email(email)
        for response in self.list_responses(kind):
            if response.user_email == key:
                return response
        return None

    def list_responses(self, kind: Optional[SurveyKind] = None) -> List[SurveyResponse]:
        with self._lock:
            matching = [
                response
                for response in self._responses
                if kind is None or response.kind == kind
            ]
        return sorted(matching, key=lambda response: response.created_at, reverse=True)


__all__ = ["InMemorySurveyStore", "SurveyStore"]
