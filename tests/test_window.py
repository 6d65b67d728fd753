import numpy as np
import pytest

from src.tileprep.errors import ClampError, ConfigError
from src.tileprep.window import Window


def test_centered_floor_division():
    w = Window.centered(140, 141, 115, 115)
    assert (w.x, w.y) == (12, 13)
    assert w.inside(140, 141)


def test_centered_too_large_raises():
    with pytest.raises(ConfigError):
        Window.centered(100, 100, 101, 10)


@pytest.mark.parametrize(
    "cx,cy,expected",
    [
        (100.0, 80.0, (70, 50)),   # interior: centered on the centroid
        (3.0, 2.0, (0, 0)),        # top-left corner: clamped to 0
        (198.7, 159.9, (140, 100)),  # bottom-right corner: clamped to W - w, H - h
        (10.0, 150.0, (0, 100)),
    ],
)
def test_around_is_clamped_inside(cx, cy, expected):
    W, H = 200, 160
    win = Window.around(cx, cy, 60, 60, W, H)
    assert (win.x, win.y) == expected
    assert win.inside(W, H)
    assert 0 <= win.x and win.x + win.w <= W
    assert 0 <= win.y and win.y + win.h <= H


def test_around_tile_larger_than_image():
    with pytest.raises(ClampError):
        Window.around(10, 10, 60, 60, 50, 100)


def test_crop_copies_all_bands():
    arr = (np.arange(10 * 12 * 3) % 256).astype(np.uint8).reshape(10, 12, 3)
    win = Window(2, 3, 4, 5)
    out = win.crop(arr)
    assert out.shape == (5, 4, 3)
    assert np.array_equal(out, arr[3:8, 2:6])
    out[...] = 0
    assert arr[3, 2, 0] == (3 * 12 + 2) * 3  # crop is a copy


def test_crop_outside_raises():
    arr = np.zeros((10, 10), dtype=np.uint8)
    with pytest.raises(ClampError):
        Window(8, 0, 4, 4).crop(arr)
