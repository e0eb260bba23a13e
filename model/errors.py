"""Rejections raised at the intent-handling boundary.

Every rejection is raised before any state is mutated, so catching one never
leaves a room half-updated. Handlers turn them into an ``error`` event for the
originating client only.
"""

from typing import Dict, Optional


class ArenaError(Exception):
    default_message = 'Request rejected'

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.reason = reason
        self.message = message or self.default_message

    def to_payload(self) -> Dict:
        return {'reason': self.reason, 'message': self.message}


class ProtocolViolation(ArenaError):
    """Malformed or out-of-phase intent."""

    default_message = 'Intent not allowed right now'


class CapacityError(ArenaError):
    """Join against a full or missing room."""

    default_message = 'Room unavailable'
