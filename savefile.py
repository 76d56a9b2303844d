import logging
import os

from game import BLOCK_SIZE, Board, CorruptSaveError, SaveFileNotFoundError
from solver import is_sudoku_valid

logger = logging.getLogger(__name__)

DEFAULT_SAVE_NAME = "savedGame.txt"

# One line per row, per cell: "<solution> <displayed> <enabled> ".
# An unfilled cell has an empty displayed token; enabled means editable.


def dumps(board):
    lines = []
    for r in range(board.size):
        line = ""
        for c in range(board.size):
            value = board.grid[r][c]
            displayed = str(value) if value != 0 else ""
            enabled = not board.locked[r][c]
            line += f"{board.solution[r][c]} {displayed} {enabled} "
        lines.append(line + "\n")
    return "".join(lines)


def _parse_int(token, size, allow_empty, where):
    if token == "" and allow_empty:
        return 0
    try:
        value = int(token)
    except ValueError:
        raise CorruptSaveError(f"{where}: '{token}' is not a number") from None
    if not 1 <= value <= size:
        raise CorruptSaveError(f"{where}: {value} out of range 1..{size}")
    return value


def _parse_bool(token, where):
    if token == "True":
        return True
    if token == "False":
        return False
    raise CorruptSaveError(f"{where}: '{token}' is not True/False")


def loads(text, block_size=BLOCK_SIZE):
    size = block_size * block_size
    lines = text.splitlines()
    # tolerate a trailing blank line
    while lines and lines[-1] == "":
        lines.pop()
    if len(lines) != size:
        raise CorruptSaveError(f"Expected {size} rows, found {len(lines)}")

    solution = []
    grid = []
    locked = []
    for r, line in enumerate(lines):
        tokens = line.split(" ")
        if len(tokens) == 3 * size + 1 and tokens[-1] == "":
            tokens.pop()
        if len(tokens) != 3 * size:
            raise CorruptSaveError(f"Row {r}: expected {3 * size} tokens, found {len(tokens)}")

        solution_row, grid_row, locked_row = [], [], []
        for c in range(size):
            where = f"Row {r}, column {c}"
            solution_row.append(_parse_int(tokens[c * 3], size, False, where))
            grid_row.append(_parse_int(tokens[c * 3 + 1], size, True, where))
            locked_row.append(not _parse_bool(tokens[c * 3 + 2], where))
            if locked_row[c] and grid_row[c] != solution_row[c]:
                raise CorruptSaveError(f"{where}: clue shows '{tokens[c * 3 + 1]}', solution is {solution_row[c]}")
        solution.append(solution_row)
        grid.append(grid_row)
        locked.append(locked_row)

    if not is_sudoku_valid(solution, block_size):
        raise CorruptSaveError("Stored solution is not a valid Sudoku grid")

    return Board(solution, grid, locked, block_size)


def save_game(board, path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dumps(board))
    logger.debug("Saved game to %s", path)


def load_game(path, block_size=BLOCK_SIZE):
    if not os.path.exists(path):
        raise SaveFileNotFoundError(f"Can't find save file {path}")
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
        return loads(text, block_size)
    except UnicodeDecodeError as e:
        logger.warning("Save file %s is not UTF-8 text: %s", path, e)
        raise CorruptSaveError(f"Not a text save file: {e}") from e
    except CorruptSaveError as e:
        logger.warning("Corrupt save file %s: %s", path, e)
        raise
    except OSError as e:
        logger.warning("Could not read save file %s: %s", path, e)
        raise CorruptSaveError(f"Could not read save file: {e}") from e
