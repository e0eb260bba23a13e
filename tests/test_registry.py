import random
import re

import pytest

from model.errors import CapacityError, ProtocolViolation
from socketio_handlers.arena_protocol import ShootIntent
from socketio_handlers.arena_registry import RoomRegistry
from socketio_handlers.arena_room import RoomPhase

from tests.helpers import find, names


@pytest.fixture
def registry(make_settings, scheduler, clock, sink):
    settings = make_settings(cover_layout=[], start_positions=[(400.0, 1000.0), (600.0, 1000.0)])
    return RoomRegistry(settings, scheduler=scheduler, clock=clock, sink=sink, rng=random.Random(7))


class TestCodes:
    def test_code_format(self, registry):
        room, _ = registry.create_room('a', 'Alice')
        assert re.fullmatch(r'[A-Z0-9]{6}', room.code)
        assert room.channel == f'arena_{room.code}'

    def test_codes_are_unique(self, registry):
        codes = {registry.create_room(f'p{i}', None)[0].code for i in range(50)}
        assert len(codes) == 50

    def test_collision_is_regenerated(self, make_settings):
        class Scripted:
            def __init__(self, letters):
                self.letters = list(letters)

            def choice(self, _alphabet):
                return self.letters.pop(0)

        registry = RoomRegistry(make_settings(), rng=Scripted('AAAAAA' + 'AAAAAA' + 'BBBBBB'))
        first, _ = registry.create_room('a')
        second, _ = registry.create_room('b')
        assert first.code == 'AAAAAA'
        assert second.code == 'BBBBBB'


class TestJoinLeave:
    def test_create_emits_created_then_update(self, registry):
        room, events = registry.create_room('a', 'Alice')
        assert names(events) == ['lobbyCreated', 'lobbyUpdate']
        assert events[0].to == 'a'
        assert events[0].payload == {'lobbyCode': room.code}

    def test_two_players_reach_active(self, registry):
        room, _ = registry.create_room('a', 'Alice')
        joined, events = registry.join_room('b', room.code.lower(), 'Bob')
        assert joined is room
        assert names(events)[:2] == ['lobbyJoined', 'lobbyUpdate']
        assert room.phase == RoomPhase.ACTIVE
        assert registry.room_for('b') is room

    def test_join_unknown_room(self, registry):
        with pytest.raises(CapacityError) as exc:
            registry.join_room('b', 'ZZZZZZ')
        assert exc.value.reason == 'room_not_found'

    def test_join_full_room(self, registry):
        room, _ = registry.create_room('a')
        registry.join_room('b', room.code)
        with pytest.raises(CapacityError) as exc:
            registry.join_room('c', room.code)
        assert exc.value.reason == 'room_full'
        assert registry.room_for('c') is None

    def test_cannot_be_in_two_rooms(self, registry):
        room, _ = registry.create_room('a')
        with pytest.raises(ProtocolViolation) as exc:
            registry.create_room('a')
        assert exc.value.reason == 'already_in_room'
        with pytest.raises(ProtocolViolation):
            registry.join_room('a', room.code)

    def test_last_leave_removes_room(self, registry):
        room, _ = registry.create_room('a')
        registry.join_room('b', room.code)
        registry.leave('a')
        assert registry.find(room.code) is room
        registry.leave('b')
        assert registry.find(room.code) is None
        assert room.closed
        assert len(registry) == 0

    def test_leave_when_not_seated(self, registry):
        assert registry.leave('nobody') == (None, [])

    def test_leave_mid_match_ends_it(self, registry):
        room, _ = registry.create_room('a')
        registry.join_room('b', room.code)
        room.handle_intent('a', ShootIntent(600.0, 1000.0))
        _, events = registry.leave('a')
        assert find(events, 'gameOver')[0].payload['winner'] == 'b'
        assert registry.room_for('a') is None


class TestListing:
    def test_only_open_rooms_are_listed(self, registry):
        waiting, _ = registry.create_room('a')
        full, _ = registry.create_room('b')
        registry.join_room('c', full.code)

        assert registry.list_open_rooms() == [
            {'code': waiting.code, 'name': f'Lobby {waiting.code}', 'players': 1},
        ]

    def test_room_reopens_after_opponent_leaves(self, registry):
        room, _ = registry.create_room('a')
        registry.join_room('b', room.code)
        registry.leave('b')
        assert [r['code'] for r in registry.list_open_rooms()] == [room.code]

