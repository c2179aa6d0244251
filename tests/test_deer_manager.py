import math
import pytest
from frontier.agent_iface.deer import DeerState
from frontier.agent_iface.deer_manager import DeerManager
from frontier.world_iface.context import Bounds

class Meadow:
    def __init__(self, size=120):
        self.bounds = Bounds(0, size - 1, 0, size - 1)

    def can_move_to(self, x, y):
        return self.bounds.contains(x, y)

    def has_line_of_sight(self, x0, y0, x1, y1):
        return True

def test_spawn_respects_spacing_and_clearance():
    mgr = DeerManager(Meadow(), seed=7)
    n = mgr.spawn()
    assert 0 < n <= 8
    c = mgr.config
    for i, a in enumerate(mgr.deer):
        assert math.hypot(a.x - 59.5, a.y - 59.5) >= c["spawn_clearance"]
        for b in mgr.deer[i + 1:]:
            assert math.hypot(a.x - b.x, a.y - b.y) >= c["spawn_spacing"]

def test_spawn_is_deterministic():
    a = DeerManager(Meadow(), seed=7)
    b = DeerManager(Meadow(), seed=7)
    a.spawn()
    b.spawn()
    assert [(d.x, d.y) for d in a.deer] == [(d.x, d.y) for d in b.deer]

def test_add_deer_refuses_occupied_cell():
    mgr = DeerManager(Meadow(), seed=1)
    mgr.add_deer(10, 10)
    with pytest.raises(ValueError):
        mgr.add_deer(10, 10)
    assert mgr.get_deer_at(10, 10).deer_id == 0
    assert mgr.get_deer_at(11, 10) is None

def test_deer_never_share_a_cell():
    mgr = DeerManager(Meadow(size=40), {"panic_distance": 4}, seed=2)
    for x in range(18, 23):
        mgr.add_deer(x, 20)
    now = 0
    for step in range(30):
        now += 200
        mgr.on_player_moved(20, 17 + (step % 3), now)
        mgr.tick(now)
        cells = [(d.x, d.y) for d in mgr.deer]
        assert len(set(cells)) == len(cells)

def test_player_move_triggers_panic_and_event():
    mgr = DeerManager(Meadow(), seed=3)
    deer = mgr.add_deer(20, 20)
    mgr.on_player_moved(17, 20, now=100)
    assert deer.state is DeerState.FLEEING
    assert (deer.x - 17) ** 2 + (deer.y - 20) ** 2 > 9
    assert mgr.events[-1]["to"] == "fleeing"
    assert mgr.events[-1]["cause"] == "reaction"

def test_tick_respects_update_interval():
    mgr = DeerManager(Meadow(), {"update_interval": 200}, seed=4)
    mgr.add_deer(30, 30)
    assert mgr.tick(0, 60, 60)
    assert not mgr.tick(100, 60, 60)
    assert mgr.tick(200, 60, 60)
    assert mgr.tick_count == 2

def test_scare_and_calm():
    mgr = DeerManager(Meadow(), seed=5)
    mgr.add_deer(10, 10)
    mgr.add_deer(40, 40)
    mgr.scare_all(0, 0, now=0)
    assert mgr.get_deer_states()["fleeing"] == 2
    mgr.calm_all()
    assert mgr.get_deer_states() == {"wandering": 2, "alert": 0, "fleeing": 0}

def test_respawn_starts_a_new_herd():
    mgr = DeerManager(Meadow(), seed=6)
    mgr.spawn()
    first = [(d.x, d.y) for d in mgr.deer]
    mgr.respawn()
    assert mgr.generation == 1
    assert [(d.x, d.y) for d in mgr.deer] != first
    assert mgr.events == []

def test_stats():
    mgr = DeerManager(Meadow(), seed=8)
    mgr.add_deer(10, 10)
    mgr.on_player_moved(50, 50, now=0)
    s = mgr.stats()
    assert s["deer_count"] == 1
    assert s["states"]["wandering"] == 1
    assert s["mean_distance_from_player"] == pytest.approx(math.hypot(40, 40))
