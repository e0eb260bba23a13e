from typing import Iterable, List

from model.entities import Cover, Player
from model.geometry import segment_intersects_rect


def has_line_of_sight(ax: float, ay: float, bx: float, by: float, covers: Iterable[Cover]) -> bool:
    for cover in covers:
        if segment_intersects_rect(ax, ay, bx, by, cover):
            return False
    return True


def update_visibility(players: List[Player], covers: Iterable[Cover]) -> bool:
    """Set the shared visibility bit for a two-occupant room and return it.

    Sight is a property of the line between the pair, so both players get the
    same value.
    """
    if len(players) != 2:
        for player in players:
            player.visible_to_enemy = True
        return True

    first, second = players
    visible = has_line_of_sight(first.x, first.y, second.x, second.y, covers)
    first.visible_to_enemy = visible
    second.visible_to_enemy = visible
    return visible
