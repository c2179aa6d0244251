import math
import numpy as np
from numba import njit
@njit(cache=True)
def blocked(mask, ox, oy, x, y):
    h, w = mask.shape
    iy = y - oy
    ix = x - ox
    if iy < 0 or iy >= h or ix < 0 or ix >= w:
        return False
    return mask[iy, ix]
@njit(cache=True)
def los_clear(mask, ox, oy, x0, y0, x1, y1):
    # walk from the lexicographically smaller endpoint so a->b and b->a visit the same cells
    if x1 < x0 or (x1 == x0 and y1 < y0):
        x0, y0, x1, y1 = x1, y1, x0, y0
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    n = 1 + dx + dy
    x_inc = 1 if x1 > x0 else -1
    y_inc = 1 if y1 > y0 else -1
    err = dx - dy
    x = x0
    y = y0
    for i in range(n):
        if x == x1 and y == y1:
            return True
        if i > 0 and blocked(mask, ox, oy, x, y):
            return False
        if err > 0:
            x += x_inc
            err -= dy
        else:
            y += y_inc
            err += dx
    return True
@njit(cache=True)
def in_vision(mask, ox, oy, px, py, x, y, radius, forward, facing_angle, half_cone):
    dx = x - px
    dy = y - py
    d = math.sqrt(dx * dx + dy * dy)
    if d <= radius:
        return los_clear(mask, ox, oy, px, py, x, y)
    if d <= forward:
        diff = abs(math.atan2(dy, dx) - facing_angle)
        if diff > math.pi:
            diff = 2.0 * math.pi - diff
        if diff <= half_cone:
            return los_clear(mask, ox, oy, px, py, x, y)
    return False
@njit(cache=True)
def vision_mask(mask, ox, oy, px, py, x0, y0, w, h, radius, forward, facing_angle, half_cone):
    out = np.zeros((h, w), dtype=np.bool_)
    for j in range(h):
        for i in range(w):
            out[j, i] = in_vision(mask, ox, oy, px, py, x0 + i, y0 + j, radius, forward, facing_angle, half_cone)
    return out
