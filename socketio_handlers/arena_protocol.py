"""Inbound intents and outbound events exchanged with arena clients."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from model.arena_config import POWERUP_NAMES
from model.errors import ProtocolViolation


class EventName(str, Enum):
    GAME_START = 'gameStart'
    GAME_STATE = 'gameState'
    PROJECTILE_CREATED = 'projectileCreated'
    INSTANT_PROJECTILE = 'instantProjectile'
    PLAYER_HIT = 'playerHit'
    GAME_OVER = 'gameOver'
    POWERUP_CONFIRMED = 'powerupConfirmed'
    REMATCH_VOTE = 'rematchVote'
    LOBBY_CREATED = 'lobbyCreated'
    LOBBY_JOINED = 'lobbyJoined'
    LOBBY_UPDATE = 'lobbyUpdate'
    LOBBY_LIST = 'lobbyList'
    ERROR = 'error'


@dataclass
class Outbound:
    """One event for the messaging boundary. ``to`` is a player id, or None for the whole room."""

    name: EventName
    payload: Dict[str, Any] = field(default_factory=dict)
    to: Optional[str] = None


@dataclass(frozen=True)
class MoveIntent:
    dx: float
    dy: float
    elapsed: float


@dataclass(frozen=True)
class AimIntent:
    x: float
    y: float


@dataclass(frozen=True)
class ShootIntent:
    target_x: float
    target_y: float


@dataclass(frozen=True)
class UsePowerupIntent:
    powerup: int


@dataclass(frozen=True)
class RematchVoteIntent:
    pass


Intent = Union[MoveIntent, AimIntent, ShootIntent, UsePowerupIntent, RematchVoteIntent]


def _number(payload: Dict, key: str) -> float:
    value = payload.get(key)
    if isinstance(value, bool):
        raise ProtocolViolation('malformed', f'Field {key} must be a number')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ProtocolViolation('malformed', f'Field {key} must be a number')
    if not math.isfinite(number):
        raise ProtocolViolation('malformed', f'Field {key} must be finite')
    return number


def parse_move(payload: Optional[Dict]) -> MoveIntent:
    payload = payload or {}
    return MoveIntent(
        dx=_number(payload, 'dx'),
        dy=_number(payload, 'dy'),
        elapsed=_number(payload, 'deltaTime'),
    )


def parse_aim(payload: Optional[Dict]) -> AimIntent:
    payload = payload or {}
    return AimIntent(x=_number(payload, 'mouseX'), y=_number(payload, 'mouseY'))


def parse_shoot(payload: Optional[Dict]) -> ShootIntent:
    payload = payload or {}
    return ShootIntent(target_x=_number(payload, 'targetX'), target_y=_number(payload, 'targetY'))


def parse_use_powerup(payload: Optional[Dict]) -> UsePowerupIntent:
    payload = payload or {}
    raw = payload.get('powerup')
    if isinstance(raw, bool):
        raise ProtocolViolation('malformed', 'Field powerup must be an integer')
    try:
        powerup = int(raw)
    except (TypeError, ValueError):
        raise ProtocolViolation('malformed', 'Field powerup must be an integer')
    if powerup not in POWERUP_NAMES:
        raise ProtocolViolation('unknown_powerup', f'Unknown powerup {powerup}')
    return UsePowerupIntent(powerup=powerup)


def parse_rematch_vote(_payload: Optional[Dict]) -> RematchVoteIntent:
    return RematchVoteIntent()


INTENT_PARSERS = {
    'move': parse_move,
    'aim': parse_aim,
    'shoot': parse_shoot,
    'usePowerup': parse_use_powerup,
    'rematchVote': parse_rematch_vote,
}


def parse_intent(event: str, payload: Optional[Dict]) -> Intent:
    parser = INTENT_PARSERS.get(event)
    if parser is None:
        raise ProtocolViolation('malformed', f'Unknown intent {event}')
    if payload is not None and not isinstance(payload, dict):
        raise ProtocolViolation('malformed', 'Payload must be an object')
    return parser(payload)


def error_event(exc, to: str) -> Outbound:
    return Outbound(EventName.ERROR, exc.to_payload(), to=to)
