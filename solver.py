import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

SolveStep = namedtuple("SolveStep", ["row", "col", "value"])


class SolveCancelled(Exception):
    pass


def find_empty(board):
    for i in range(len(board)):
        for j in range(len(board[0])):
            if board[i][j] == 0:
                return (i, j)  # row, col
    return None


def is_valid(board, num, pos, block_size):
    """True if ``num`` is absent from the row, column and block of ``pos``.

    The target cell is scanned too, so ``pos`` is expected to be empty.
    """
    row, col = pos
    size = block_size * block_size

    # Check row
    for i in range(size):
        if board[row][i] == num:
            return False

    # Check column
    for i in range(size):
        if board[i][col] == num:
            return False

    # Check box
    box_row = row // block_size * block_size
    box_col = col // block_size * block_size
    for i in range(box_row, box_row + block_size):
        for j in range(box_col, box_col + block_size):
            if board[i][j] == num:
                return False
    return True


def is_sudoku_valid(board, block_size):
    """Every row, column and block holds each of 1..N exactly once."""
    size = block_size * block_size
    expected = list(range(1, size + 1))

    # Check rows
    for row in board:
        if sorted(row) != expected:
            return False

    # Check columns
    for c in range(size):
        if sorted(board[r][c] for r in range(size)) != expected:
            return False

    # Check sub-grids
    for br in range(0, size, block_size):
        for bc in range(0, size, block_size):
            nums = [
                board[r][c]
                for r in range(br, br + block_size)
                for c in range(bc, bc + block_size)
            ]
            if sorted(nums) != expected:
                return False

    return True


def has_conflicts(board, block_size):
    """True if any filled cell repeats a value in its row, column or block."""
    for r in range(len(board)):
        for c in range(len(board[r])):
            num = board[r][c]
            if num == 0:
                continue
            board[r][c] = 0
            clash = not is_valid(board, num, (r, c), block_size)
            board[r][c] = num
            if clash:
                return True
    return False


def solve(board, block_size):
    if has_conflicts(board, block_size):
        return False
    return _backtrack(board, block_size)


def _backtrack(board, block_size):
    find = find_empty(board)
    if not find:
        return True
    row, col = find

    for num in range(1, block_size * block_size + 1):
        if is_valid(board, num, (row, col), block_size):
            board[row][col] = num

            if _backtrack(board, block_size):
                return True

            board[row][col] = 0
    return False


def _solve_steps(board, block_size, cancel):
    find = find_empty(board)
    if not find:
        return True
    row, col = find

    for num in range(1, block_size * block_size + 1):
        if cancel is not None and cancel.is_set():
            raise SolveCancelled()
        if is_valid(board, num, (row, col), block_size):
            board[row][col] = num
            yield SolveStep(row, col, num)

            if (yield from _solve_steps(board, block_size, cancel)):
                return True

            board[row][col] = 0
            yield SolveStep(row, col, 0)
    return False


class SolveRun:
    """Backtracking search exposed one placement or undo at a time.

    Iterating yields a ``SolveStep`` after every write to the grid. Iterating
    again starts over from the state the grid had when the run was created.
    Setting ``cancel`` (a ``threading.Event``) stops the run between steps and
    puts the grid back the way it was.
    """

    def __init__(self, board, block_size, cancel=None):
        self.board = board
        self.block_size = block_size
        self.cancel = cancel
        self.empty_cells = [
            (r, c) for r in range(len(board)) for c in range(len(board[r])) if board[r][c] == 0
        ]
        self.solved = None
        self.cancelled = False
        self.steps = 0

    def reset(self):
        for r, c in self.empty_cells:
            self.board[r][c] = 0
        self.solved = None
        self.cancelled = False
        self.steps = 0

    def __iter__(self):
        self.reset()
        if has_conflicts(self.board, self.block_size):
            logger.debug("Solve skipped, grid already has conflicting values")
            self.solved = False
            return
        steps = _solve_steps(self.board, self.block_size, self.cancel)
        try:
            while True:
                step = next(steps)
                self.steps += 1
                yield step
        except StopIteration as stop:
            self.solved = stop.value
        except SolveCancelled:
            logger.debug("Solve cancelled after %d steps", self.steps)
            self.reset()
            self.cancelled = True
            self.solved = False
            return
        except GeneratorExit:
            # abandoned mid-search
            self.reset()
            raise
        logger.debug("Solve finished after %d steps, solved=%s", self.steps, self.solved)

    def run(self):
        for _ in self:
            pass
        return self.solved
