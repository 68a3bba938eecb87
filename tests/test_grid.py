#!/usr/bin/env python3
import numpy as np
import pytest

from thermal_render import (NUM_LAT, NUM_LNG, NUM_POINTS, GridError, as_day_stack, as_grid,
                            clamp_lat_index, day_slice, grid_value, is_missing,
                            wrap_lng_index)


def index_grid():
    """Grid whose value is its own flat index"""
    return np.arange(NUM_POINTS, dtype=np.float64)


def test_dimensions():
    assert NUM_LAT == 91
    assert NUM_LNG == 181
    assert NUM_POINTS == 16471


def test_longitude_wraps():
    assert wrap_lng_index(-1) == 180
    assert wrap_lng_index(181) == 0
    assert wrap_lng_index(182) == 1
    assert list(wrap_lng_index(np.array([-2, 0, 180]))) == [179, 0, 180]


def test_latitude_clamps():
    assert clamp_lat_index(-5) == 0
    assert clamp_lat_index(96) == 90
    assert clamp_lat_index(45) == 45


def test_grid_value_lookup():
    temps = index_grid()
    assert grid_value(temps, 0, 0) == 0
    assert grid_value(temps, 1, 0) == NUM_LNG
    assert grid_value(temps, 0, -1) == 180
    assert grid_value(temps, -3, 181) == 0
    assert grid_value(temps, 100, 2) == 90 * NUM_LNG + 2


def test_as_grid_accepts_flat_and_2d():
    flat = as_grid(index_grid())
    square = as_grid(index_grid().reshape(NUM_LAT, NUM_LNG))
    assert flat.shape == (NUM_POINTS,)
    assert np.array_equal(flat, square)
    assert not flat.flags.writeable


def test_none_becomes_missing():
    values = [None] * NUM_POINTS
    values[5] = 12.5
    grid = as_grid(values)
    assert grid[5] == 12.5
    assert np.isnan(grid[0]) and np.isnan(grid[-1])


@pytest.mark.parametrize('size', [0, NUM_POINTS - 1, NUM_POINTS + 1, 2 * NUM_POINTS])
def test_as_grid_rejects_wrong_length(size):
    with pytest.raises(GridError):
        as_grid(np.zeros(size))


def test_day_stack_length_must_match():
    with pytest.raises(GridError, match="does not match"):
        as_day_stack(np.zeros(3 * NUM_POINTS), 2)
    with pytest.raises(GridError):
        as_day_stack(np.zeros(NUM_POINTS + 5), 1)


@pytest.mark.parametrize('num_days', [0, -1, 1.5, True])
def test_day_stack_rejects_bad_day_count(num_days):
    with pytest.raises(GridError):
        as_day_stack(np.zeros(NUM_POINTS), num_days)


def test_day_slice():
    stack = as_day_stack(np.arange(3 * NUM_POINTS, dtype=np.float64), 3)
    day = day_slice(stack, 2)
    assert day.shape == (NUM_POINTS,)
    assert day[0] == 2 * NUM_POINTS
    assert day[-1] == 3 * NUM_POINTS - 1


def test_grid_error_is_value_error():
    with pytest.raises(ValueError):
        as_grid([1.0, 2.0])


def test_is_missing_marks_none_and_nan():
    grid = as_grid([None, np.nan] + [3.0] * (NUM_POINTS - 2))
    missing = is_missing(grid)
    assert list(missing[:3]) == [True, True, False]
    assert np.count_nonzero(missing) == 2
