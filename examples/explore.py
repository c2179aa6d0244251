from frontier.ui_iface.runner.core import Core
from frontier.ui_iface.runner.render import TextBuffer, Viewport
from frontier.agent_iface.commands import Direction
import random

class Wanderer:
    def __init__(self, core, seed=7):
        self.core = core
        self.rng = random.Random(seed)
        self.heading = Direction.NORTH

    def step(self):
        if self.rng.random() < 0.3:
            self.heading = self.rng.choice(list(Direction))
        outcome = self.core.apply_move(self.heading.dx, self.heading.dy)
        if not outcome.moved:
            self.heading = self.rng.choice(list(Direction))
        return self.core.player

if __name__ == "__main__":
    core = Core({"world": {"seed": 12345, "region_size": 120}})
    walker = Wanderer(core)
    print(f"Player starts at {core.player}")
    now = 0
    for i in range(20):
        x, y = walker.step()
        now += 400
        core.tick(now)
        cell = core.get_terrain_at(x, y)
        print(f"Step {i+1}: ({x}, {y}) - {cell['name']} facing {core.fog.facing_name()} - deer {core.deer_manager.get_deer_states()}")
    buf = TextBuffer()
    core.render_view(buf, Viewport.centered_on(*core.player, 41, 21))
    print(buf.text())
    print(core.companion_manager.stats())
