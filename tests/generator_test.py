import random

import pytest

from game import (
    Board, CellLockedError, SudokuGenerator, canonical_value, copy_grid,
)
from solver import is_sudoku_valid


def _values(grid):
    return sorted(v for row in grid for v in row)


# ---------- Canonical pattern ----------


@pytest.mark.parametrize("block_size", [1, 2, 3, 4])
def test_canonical_pattern_is_valid(block_size):
    gen = SudokuGenerator(block_size=block_size, seed=0)
    grid = gen.fill_pattern()

    assert len(grid) == block_size * block_size
    assert is_sudoku_valid(grid, block_size)


def test_canonical_pattern_3x3_rows():
    gen = SudokuGenerator(seed=0)
    grid = gen.fill_pattern()

    assert grid[0] == [1, 2, 3, 4, 5, 6, 7, 8, 9]
    assert grid[1] == [4, 5, 6, 7, 8, 9, 1, 2, 3]
    assert grid[3] == [2, 3, 4, 5, 6, 7, 8, 9, 1]
    assert canonical_value(8, 8, 3) == grid[8][8]


# ---------- Transformations ----------


@pytest.mark.parametrize("seed", range(5))
@pytest.mark.parametrize("name", [
    "transpose",
    "swap_rows_in_block",
    "swap_columns_in_block",
    "swap_block_rows",
    "swap_block_columns",
])
def test_transformation_keeps_grid_valid(seed, name):
    gen = SudokuGenerator(seed=seed)
    gen.fill_pattern()
    gen.shuffle(seed * 3)
    before = copy_grid(gen.grid)

    getattr(gen, name)()

    assert is_sudoku_valid(gen.grid, 3)
    assert _values(gen.grid) == _values(before)


def test_transpose_replaces_grid():
    gen = SudokuGenerator(seed=0)
    original = gen.fill_pattern()

    gen.transpose()

    assert gen.grid is not original
    assert gen.grid[2][0] == original[0][2]
    assert gen.grid[0][5] == original[5][0]


def test_swaps_change_the_grid():
    for name in ("swap_rows_in_block", "swap_columns_in_block", "swap_block_rows", "swap_block_columns"):
        gen = SudokuGenerator(seed=7)
        gen.fill_pattern()
        before = copy_grid(gen.grid)
        getattr(gen, name)()
        assert gen.grid != before, name


def test_swaps_are_noops_for_single_cell_grid():
    gen = SudokuGenerator(block_size=1, seed=0)
    gen.fill_pattern()
    gen.shuffle(20)

    assert gen.grid == [[1]]


# ---------- Shuffle ----------


@pytest.mark.parametrize("seed", range(10))
def test_shuffle_keeps_grid_valid(seed):
    gen = SudokuGenerator(seed=seed)
    gen.fill_pattern()
    gen.shuffle(50)

    assert is_sudoku_valid(gen.grid, 3)


def test_shuffle_is_reproducible_with_seed():
    a = SudokuGenerator(rng=random.Random(42))
    b = SudokuGenerator(rng=random.Random(42))
    a.fill_pattern()
    b.fill_pattern()

    assert a.shuffle(10) == b.shuffle(10)


# ---------- Hiding ----------


@pytest.mark.parametrize("policy", ["scan", "uniform"])
@pytest.mark.parametrize("seed", range(5))
def test_hide_cells_count(policy, seed):
    gen = SudokuGenerator(seed=seed)
    board = gen.generate(hidden=40, policy=policy)

    empty = [(r, c) for r in range(9) for c in range(9) if board.grid[r][c] == 0]
    editable = board.editable_cells()
    assert len(empty) == 40
    assert sorted(empty) == sorted(editable)
    for r in range(9):
        for c in range(9):
            if board.locked[r][c]:
                assert board.grid[r][c] == board.solution[r][c]
    assert is_sudoku_valid(board.solution, 3)


def test_hide_every_cell():
    gen = SudokuGenerator(seed=3)
    board = gen.generate(hidden=81)

    assert all(v == 0 for row in board.grid for v in row)
    assert not any(any(row) for row in board.locked)


def test_hide_too_many_cells():
    gen = SudokuGenerator(seed=3)
    gen.fill_pattern()

    with pytest.raises(ValueError):
        gen.hide_cells(82)


def test_hide_unknown_policy():
    gen = SudokuGenerator(seed=3)
    gen.fill_pattern()

    with pytest.raises(ValueError):
        gen.hide_cells(10, policy="random")


def test_generate_is_reproducible_with_seed():
    a = SudokuGenerator(seed=11).generate()
    b = SudokuGenerator(seed=11).generate()

    assert a.grid == b.grid
    assert a.solution == b.solution


# ---------- Board ----------


def test_press_cycles_editable_cell():
    board = SudokuGenerator(seed=5).generate()
    r, c = board.editable_cells()[0]

    seen = [board.press(r, c).displayed for _ in range(10)]

    assert seen == [1, 2, 3, 4, 5, 6, 7, 8, 9, 0]


def test_press_locked_cell():
    board = SudokuGenerator(seed=5).generate()
    r, c = next((r, c) for r in range(9) for c in range(9) if board.locked[r][c])

    with pytest.raises(CellLockedError):
        board.press(r, c)


def test_check_win():
    board = SudokuGenerator(seed=5).generate()
    assert not board.check_win()

    for r, c in board.editable_cells():
        board.set_value(r, c, board.solution[r][c])

    assert board.check_win()
    assert board.is_complete()


def test_board_cell_projection():
    board = Board([[1, 2, 3, 4], [3, 4, 1, 2], [2, 3, 4, 1], [4, 1, 2, 3]], block_size=2)
    board.locked[0][0] = False
    board.grid[0][0] = 0

    cell = board.cell(0, 0)

    assert (cell.value, cell.displayed, cell.locked) == (1, 0, False)
    assert cell.to_dict() == {"row": 0, "col": 0, "displayed": 0, "locked": False}
