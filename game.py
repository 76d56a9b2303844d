import logging
import random

from solver import SolveRun, is_sudoku_valid, solve

logger = logging.getLogger(__name__)

BLOCK_SIZE = 3
SHUFFLE_STEPS = 10
HIDDEN_CELLS = 40
HIDE_POLICIES = ('scan', 'uniform')


class SudokuError(Exception):
    pass


class CellLockedError(SudokuError):
    pass


class SaveFileNotFoundError(SudokuError):
    pass


class CorruptSaveError(SudokuError):
    pass


def empty_grid(size):
    return [[0 for _ in range(size)] for _ in range(size)]


def copy_grid(grid):
    return [row[:] for row in grid]


def canonical_value(row, col, block_size):
    size = block_size * block_size
    return (row * block_size + row // block_size + col) % size + 1


class Cell:
    def __init__(self, row, col, value, displayed, locked):
        self.row = row
        self.col = col
        self.value = value
        self.displayed = displayed
        self.locked = locked

    def to_dict(self):
        return {
            "row": self.row,
            "col": self.col,
            "displayed": self.displayed,
            "locked": self.locked
        }


class Board:
    """Puzzle state of one game session.

    ``solution`` is the full grid, ``grid`` holds what the player sees (0 for
    an empty cell) and ``locked`` marks the clues.
    """

    def __init__(self, solution, grid=None, locked=None, block_size=BLOCK_SIZE):
        self.block_size = block_size
        self.size = block_size * block_size
        self.solution = copy_grid(solution)
        self.grid = copy_grid(grid) if grid is not None else copy_grid(solution)
        if locked is None:
            locked = [[True for _ in range(self.size)] for _ in range(self.size)]
        self.locked = [row[:] for row in locked]

    def cell(self, row, col):
        return Cell(row, col, self.solution[row][col], self.grid[row][col], self.locked[row][col])

    def set_value(self, row, col, value):
        if self.locked[row][col]:
            raise CellLockedError(f"Cell ({row}, {col}) is a clue")
        if not 0 <= value <= self.size:
            raise ValueError(f"Value {value} out of range 0..{self.size}")
        self.grid[row][col] = value

    def press(self, row, col):
        # empty -> 1 -> ... -> N -> empty
        value = self.grid[row][col] + 1
        if value > self.size:
            value = 0
        self.set_value(row, col, value)
        return self.cell(row, col)

    def check_win(self):
        for r in range(self.size):
            for c in range(self.size):
                if self.grid[r][c] != self.solution[r][c]:
                    return False
        return True

    def is_complete(self):
        return all(all(v != 0 for v in row) for row in self.grid)

    def editable_cells(self):
        return [(r, c) for r in range(self.size) for c in range(self.size) if not self.locked[r][c]]

    def solve(self):
        solved = solve(self.grid, self.block_size)
        if solved:
            logger.debug("Board solved, %d editable cells filled", len(self.editable_cells()))
        else:
            logger.warning("Board has no solution from its current state")
        return solved

    def solve_steps(self, cancel=None):
        return SolveRun(self.grid, self.block_size, cancel=cancel)

    def to_dict(self):
        return {
            "block_size": self.block_size,
            "grid": copy_grid(self.grid),
            "locked": [row[:] for row in self.locked]
        }


class SudokuGenerator:
    def __init__(self, block_size=BLOCK_SIZE, rng=None, seed=None):
        if block_size < 1:
            raise ValueError("Block size must be at least 1")
        self.block_size = block_size
        self.size = block_size * block_size
        self.rng = rng if rng is not None else random.Random(seed)
        self.grid = empty_grid(self.size)
        self.transformations = [
            self.transpose,
            self.swap_rows_in_block,
            self.swap_columns_in_block,
            self.swap_block_rows,
            self.swap_block_columns,
        ]

    def generate(self, hidden=HIDDEN_CELLS, shuffle_steps=SHUFFLE_STEPS, policy='scan'):
        self.fill_pattern()
        for transformation in self.transformations:
            transformation()
        self.shuffle(shuffle_steps)
        assert is_sudoku_valid(self.grid, self.block_size), "Shuffled grid lost validity"

        solution = copy_grid(self.grid)
        locked = self.hide_cells(hidden, policy)
        logger.debug("Generated %dx%d puzzle with %d hidden cells", self.size, self.size, hidden)
        return Board(solution, self.grid, locked, self.block_size)

    def fill_pattern(self):
        self.grid = [
            [canonical_value(r, c, self.block_size) for c in range(self.size)]
            for r in range(self.size)
        ]
        return self.grid

    def shuffle(self, steps=SHUFFLE_STEPS):
        for _ in range(steps):
            self.transformations[self.rng.randrange(len(self.transformations))]()
        return self.grid

    def transpose(self):
        transposed = [[self.grid[j][i] for j in range(self.size)] for i in range(self.size)]
        self.grid = transposed

    def _distinct_pair(self):
        first = self.rng.randrange(self.block_size)
        second = self.rng.randrange(self.block_size)
        while first == second:
            second = self.rng.randrange(self.block_size)
        return first, second

    def swap_rows_in_block(self):
        if self.block_size < 2:
            return
        base = self.rng.randrange(self.block_size) * self.block_size
        row1, row2 = self._distinct_pair()
        line1, line2 = base + row1, base + row2
        self.grid[line1], self.grid[line2] = self.grid[line2], self.grid[line1]

    def swap_columns_in_block(self):
        if self.block_size < 2:
            return
        base = self.rng.randrange(self.block_size) * self.block_size
        col1, col2 = self._distinct_pair()
        line1, line2 = base + col1, base + col2
        for row in self.grid:
            row[line1], row[line2] = row[line2], row[line1]

    def swap_block_rows(self):
        if self.block_size < 2:
            return
        block1, block2 = self._distinct_pair()
        for k in range(self.block_size):
            r1 = block1 * self.block_size + k
            r2 = block2 * self.block_size + k
            self.grid[r1], self.grid[r2] = self.grid[r2], self.grid[r1]

    def swap_block_columns(self):
        if self.block_size < 2:
            return
        block1, block2 = self._distinct_pair()
        for row in self.grid:
            for k in range(self.block_size):
                c1 = block1 * self.block_size + k
                c2 = block2 * self.block_size + k
                row[c1], row[c2] = row[c2], row[c1]

    def hide_cells(self, count=HIDDEN_CELLS, policy='scan'):
        """Clear ``count`` filled cells and return the lock matrix.

        The ``scan`` policy walks the grid row by row, hiding each filled cell
        with probability 1/3 and rescanning until enough cells are hidden.
        ``uniform`` picks the cells as a plain random sample.
        """
        if policy not in HIDE_POLICIES:
            raise ValueError(f"Unknown hide policy: {policy}")
        filled = [(r, c) for r in range(self.size) for c in range(self.size) if self.grid[r][c] != 0]
        if count < 0 or count > len(filled):
            raise ValueError(f"Cannot hide {count} cells, only {len(filled)} are filled")

        locked = [[self.grid[r][c] != 0 for c in range(self.size)] for r in range(self.size)]

        if policy == 'uniform':
            for r, c in self.rng.sample(filled, count):
                self.grid[r][c] = 0
                locked[r][c] = False
            return locked

        remaining = count
        while remaining > 0:
            for r in range(self.size):
                for c in range(self.size):
                    if self.grid[r][c] == 0:
                        continue
                    if self.rng.randrange(3) == 0:
                        self.grid[r][c] = 0
                        locked[r][c] = False
                        remaining -= 1
                    if remaining <= 0:
                        return locked
        return locked
