import hashlib
import numpy as np
from typing import Any, Sequence

MASK64 = 0xFFFFFFFFFFFFFFFF
_GOLDEN = 0x9E3779B97F4A7C15
_M1 = 0xBF58476D1CE4E5B9
_M2 = 0x94D049BB133111EB
_UNIT = 1.0 / 9007199254740992.0


def _mix(z: int) -> int:
    z = (z + _GOLDEN) & MASK64
    z = ((z ^ (z >> 30)) * _M1) & MASK64
    z = ((z ^ (z >> 27)) * _M2) & MASK64
    return z ^ (z >> 31)


def salt_value(salt: Any) -> int:
    """Map a salt (int or tag string) onto 64 bits without touching Python's hash()."""
    if isinstance(salt, str):
        return int.from_bytes(hashlib.blake2b(salt.encode("utf-8"), digest_size=8).digest(), "little")
    return int(salt) & MASK64


def hash64(seed: int, *salts: Any) -> int:
    h = _mix(int(seed) & MASK64)
    for s in salts:
        h = _mix(h ^ salt_value(s))
    return h


def rand(seed: int, *salts: Any) -> float:
    """Uniform sample in [0, 1) keyed by (seed, salts...)."""
    return (hash64(seed, *salts) >> 11) * _UNIT


class SeededRandom:
    """Counter-based stream over rand(); equal keys replay identical sequences."""

    def __init__(self, seed: int, *key: Any):
        self.seed = int(seed)
        self.key = key
        self.counter = 0

    def random(self) -> float:
        v = rand(self.seed, *self.key, self.counter)
        self.counter += 1
        return v

    def uniform(self, lo: float, hi: float) -> float:
        return lo + (hi - lo) * self.random()

    def randint(self, lo: int, hi: int) -> int:
        # inclusive on both ends
        return lo + int(self.random() * (hi - lo + 1))

    def choice(self, seq: Sequence[Any]) -> Any:
        if not seq:
            raise ValueError("choice from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def chance(self, p: float) -> bool:
        return self.random() < p


_GOLDEN_U = np.uint64(_GOLDEN)
_M1_U = np.uint64(_M1)
_M2_U = np.uint64(_M2)


def _mix_array(z: np.ndarray) -> np.ndarray:
    z = z + _GOLDEN_U
    z = (z ^ (z >> np.uint64(30))) * _M1_U
    z = (z ^ (z >> np.uint64(27))) * _M2_U
    return z ^ (z >> np.uint64(31))


def hash_grid(seed: int, salt: Any, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Vectorised per-coordinate samples in [0, 1); xs and ys broadcast."""
    base = np.uint64(hash64(seed, salt))
    ux = np.asarray(xs, dtype=np.int64).astype(np.uint64)
    uy = np.asarray(ys, dtype=np.int64).astype(np.uint64)
    h = _mix_array(_mix_array(ux ^ base) ^ uy)
    return (h >> np.uint64(11)).astype(np.float64) * _UNIT


def value_noise(seed: int, salt: Any, xs: np.ndarray, ys: np.ndarray, scale: float) -> np.ndarray:
    """Smooth lattice noise in [0, 1) with lattice spacing `scale` cells."""
    fx = np.asarray(xs, dtype=np.float64) / scale
    fy = np.asarray(ys, dtype=np.float64) / scale
    x0 = np.floor(fx).astype(np.int64)
    y0 = np.floor(fy).astype(np.int64)
    tx = fx - x0
    ty = fy - y0
    sx = tx * tx * (3.0 - 2.0 * tx)
    sy = ty * ty * (3.0 - 2.0 * ty)
    v00 = hash_grid(seed, salt, x0, y0)
    v10 = hash_grid(seed, salt, x0 + 1, y0)
    v01 = hash_grid(seed, salt, x0, y0 + 1)
    v11 = hash_grid(seed, salt, x0 + 1, y0 + 1)
    top = v00 + (v10 - v00) * sx
    bottom = v01 + (v11 - v01) * sx
    return top + (bottom - top) * sy
