import math

import pytest

from model.arena_config import POWERUP_SHIELD
from model.errors import CapacityError, ProtocolViolation
from socketio_handlers.arena_protocol import MoveIntent, RematchVoteIntent, ShootIntent, UsePowerupIntent
from socketio_handlers.arena_room import RoomPhase

from tests.helpers import find, names


class TestJoinAndStart:
    def test_forming_ready_active_with_start_delay(self, make_room, scheduler, sink, clock):
        room = make_room(start_delay=1.0)
        events = room.add_player('a', 'Alice')
        assert room.phase == RoomPhase.FORMING
        assert names(events) == ['lobbyUpdate']
        assert events[0].payload['players'] == 1

        events = room.add_player('b', 'Bob')
        assert room.phase == RoomPhase.READY
        assert names(events) == ['lobbyUpdate']
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == 1.0

        clock.advance(1.0)
        scheduler.fire_all()
        assert room.phase == RoomPhase.ACTIVE
        assert room.match_started_at == clock.now
        starts = find(sink.events, 'gameStart')
        assert {e.to for e in starts} == {'a', 'b'}

    def test_zero_delay_starts_immediately(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        events = room.add_player('b', 'Bob')
        assert room.phase == RoomPhase.ACTIVE
        assert names(events) == ['lobbyUpdate', 'gameStart', 'gameStart']

    def test_game_start_is_personalised(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        events = room.add_player('b', 'Bob')
        to_bob = find(events, 'gameStart', to='b')[0].payload
        assert to_bob['localPlayer']['id'] == 'b'
        assert to_bob['localPlayer']['rotation'] == pytest.approx(math.pi)
        assert to_bob['roomCode'] == 'ABC123'
        assert to_bob['arenaSize'] == {'width': 2000.0, 'height': 2000.0}
        assert len(to_bob['covers']) == 17

    def test_game_start_hides_enemy_behind_cover(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        events = room.add_player('b', 'Bob')
        assert find(events, 'gameStart', to='a')[0].payload['enemyPlayer'] == {'visible': False}
        assert find(events, 'gameStart', to='b')[0].payload['enemyPlayer'] == {'visible': False}

    def test_game_start_shows_enemy_in_open_field(self, make_room):
        room = make_room(cover_layout=[], start_positions=[(400.0, 1000.0), (600.0, 1000.0)])
        room.add_player('a', 'Alice')
        events = room.add_player('b', 'Bob')
        enemy = find(events, 'gameStart', to='b')[0].payload['enemyPlayer']
        assert enemy['visible'] is True
        assert enemy['name'] == 'Alice'

    def test_third_player_is_rejected(self, active_room):
        with pytest.raises(CapacityError) as exc:
            active_room.add_player('c', 'Carol')
        assert exc.value.reason == 'room_full'
        assert 'c' not in active_room.players

    def test_blank_name_gets_default(self, make_room):
        room = make_room()
        room.add_player('a', '   ')
        assert room.players['a'].name == 'Player'

    def test_delayed_start_cancelled_when_player_leaves(self, make_room, scheduler, sink):
        room = make_room(start_delay=1.0)
        room.add_player('a', 'Alice')
        room.add_player('b', 'Bob')
        timer = scheduler.pending[0]
        room.remove_player('b')

        assert timer.cancelled
        assert room.phase == RoomPhase.FORMING
        timer.callback()
        assert room.phase == RoomPhase.FORMING
        assert find(sink.events, 'gameStart') == []


class TestIntentsOutOfPhase:
    def test_move_is_ignored_before_start(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        assert room.handle_intent('a', MoveIntent(1.0, 0.0, 0.1)) == []
        assert room.players['a'].pending_moves == []

    def test_shoot_before_start(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        with pytest.raises(ProtocolViolation) as exc:
            room.handle_intent('a', ShootIntent(0.0, 0.0))
        assert exc.value.reason == 'not_active'

    def test_powerup_before_start(self, make_room):
        room = make_room()
        room.add_player('a', 'Alice')
        room.players['a'].points = 100
        with pytest.raises(ProtocolViolation) as exc:
            room.handle_intent('a', UsePowerupIntent(POWERUP_SHIELD))
        assert exc.value.reason == 'not_active'
        assert room.players['a'].points == 100

    def test_rematch_vote_during_match(self, active_room):
        with pytest.raises(ProtocolViolation) as exc:
            active_room.handle_intent('a', RematchVoteIntent())
        assert exc.value.reason == 'no_match_to_rematch'

    def test_intent_from_unknown_player_is_noop(self, active_room):
        assert active_room.handle_intent('ghost', ShootIntent(0.0, 0.0)) == []


class TestLeave:
    def test_leave_during_match_awards_remaining_player(self, active_room, clock):
        clock.advance(42.5)
        events = active_room.remove_player('b')
        game_over = find(events, 'gameOver')
        assert len(game_over) == 1
        assert game_over[0].payload['winner'] == 'a'
        assert game_over[0].payload['matchDuration'] == 42
        assert active_room.phase == RoomPhase.FORMING
        assert active_room.is_open()
        assert find(events, 'lobbyUpdate')[0].payload['players'] == 1

    def test_leave_after_match_clears_votes(self, active_room, clock):
        active_room.end_match('a', clock.now)
        active_room.handle_intent('a', RematchVoteIntent())
        assert active_room.phase == RoomPhase.REMATCH_PENDING
        active_room.remove_player('a')
        assert active_room.phase == RoomPhase.FORMING
        assert active_room.rematch_votes == set()

    def test_last_player_closes_room(self, active_room, scheduler):
        alice = active_room.players['a']
        alice.points = 20
        active_room.handle_intent('a', UsePowerupIntent(POWERUP_SHIELD))
        shield_timer = alice.shield_timer

        active_room.remove_player('b')
        active_room.remove_player('a')
        assert active_room.closed
        assert shield_timer.cancelled
        assert active_room.tick() == []

    def test_leave_unknown_player(self, active_room):
        assert active_room.remove_player('ghost') == []
        assert active_room.is_active


class TestShieldTimer:
    def test_shield_expires(self, active_room, scheduler):
        alice = active_room.players['a']
        alice.points = 20
        active_room.handle_intent('a', UsePowerupIntent(POWERUP_SHIELD))
        assert alice.shield == 20
        assert scheduler.pending[-1].delay == 10.0

        scheduler.fire_all()
        assert alice.shield == 0

    def test_stale_timer_does_not_touch_new_match(self, active_room, scheduler, clock):
        alice = active_room.players['a']
        alice.points = 20
        active_room.handle_intent('a', UsePowerupIntent(POWERUP_SHIELD))
        stale = alice.shield_timer

        active_room.start_match(clock.now)
        assert stale.cancelled
        alice.shield = 7
        stale.callback()
        assert alice.shield == 7

    def test_timer_for_departed_player_is_noop(self, active_room, scheduler):
        alice = active_room.players['a']
        alice.points = 20
        active_room.handle_intent('a', UsePowerupIntent(POWERUP_SHIELD))
        callback = alice.shield_timer.callback
        active_room.remove_player('a')
        callback()
        assert alice.shield == 20


class TestRematch:
    def _finish(self, room, clock):
        room.players['b'].health = 1
        room.combat.apply_damage('b', 5, 'a', clock.now)
        room._drain()
        assert room.phase == RoomPhase.ENDED

    def test_one_vote_is_pending(self, active_room, clock):
        self._finish(active_room, clock)
        events = active_room.handle_intent('a', RematchVoteIntent())
        assert active_room.phase == RoomPhase.REMATCH_PENDING
        assert find(events, 'rematchVote')[0].payload == {'votes': 1, 'required': 2}

    def test_votes_are_idempotent(self, active_room, clock):
        self._finish(active_room, clock)
        active_room.handle_intent('a', RematchVoteIntent())
        events = active_room.handle_intent('a', RematchVoteIntent())
        assert find(events, 'rematchVote')[0].payload['votes'] == 1
        assert active_room.phase == RoomPhase.REMATCH_PENDING

    def test_two_votes_restart_with_full_reset(self, active_room, clock):
        alice = active_room.players['a']
        bob = active_room.players['b']
        generation = active_room.loop_generation
        active_room.handle_intent('a', ShootIntent(400.0, 0.0))
        active_room.covers = active_room.covers[:0]
        self._finish(active_room, clock)
        alice.x = 900.0

        active_room.handle_intent('a', RematchVoteIntent())
        clock.advance(5.0)
        events = active_room.handle_intent('b', RematchVoteIntent())

        assert active_room.phase == RoomPhase.ACTIVE
        assert active_room.loop_generation == generation + 1
        assert names(events) == ['rematchVote', 'gameStart', 'gameStart']
        assert (alice.x, alice.y) == (400.0, 1000.0)
        assert bob.health == 100
        assert alice.points == 0
        assert not alice.reloading
        assert active_room.projectiles == []
        assert active_room.rematch_votes == set()
        assert active_room.match_started_at == clock.now
        assert active_room.stats.get_stats(clock.now)['a']['shotsFired'] == 0
