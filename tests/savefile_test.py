import pytest

from game import Board, CorruptSaveError, SaveFileNotFoundError, SudokuGenerator
from savefile import dumps, load_game, loads, save_game


def test_dumps_format():
    board = Board([[1]], grid=[[0]], locked=[[False]], block_size=1)

    assert dumps(board) == "1  True \n"


def test_dumps_rows_have_three_tokens_per_cell():
    board = SudokuGenerator(seed=1).generate()

    lines = dumps(board).splitlines()

    assert len(lines) == 9
    for line in lines:
        tokens = line.split(" ")
        assert len(tokens) == 28
        assert tokens[-1] == ""


def test_round_trip():
    board = SudokuGenerator(seed=1).generate()
    r, c = board.editable_cells()[0]
    board.press(r, c)

    loaded = loads(dumps(board))

    assert loaded.solution == board.solution
    assert loaded.grid == board.grid
    assert loaded.locked == board.locked


def test_save_and_load_file(tmp_path):
    board = SudokuGenerator(seed=9).generate()
    path = tmp_path / "nested" / "savedGame.txt"

    save_game(board, str(path))
    loaded = load_game(str(path))

    assert path.exists()
    assert loaded.grid == board.grid
    assert loaded.locked == board.locked


def test_load_missing_file(tmp_path):
    with pytest.raises(SaveFileNotFoundError):
        load_game(str(tmp_path / "nope.txt"))


def test_load_tolerates_missing_trailing_space():
    board = loads("1  True\r\n", block_size=1)

    assert board.grid == [[0]]
    assert board.locked == [[False]]


@pytest.mark.parametrize("text", [
    "",
    "1  True \n1  True \n",
    "1 True \n",
    "x  True \n",
    "1 7 True \n",
    "1  yes \n",
    "0  True \n",
    "1  False \n",
])
def test_load_corrupt(text):
    with pytest.raises(CorruptSaveError):
        loads(text, block_size=1)


def test_load_corrupt_file(tmp_path):
    path = tmp_path / "savedGame.txt"
    path.write_text("garbage\n")

    with pytest.raises(CorruptSaveError):
        load_game(str(path))


def _locked_cell(board):
    return next((r, c) for r in range(board.size) for c in range(board.size) if board.locked[r][c])


def test_load_rejects_hidden_clue():
    board = SudokuGenerator(seed=1).generate()
    r, c = _locked_cell(board)
    board.grid[r][c] = 0

    with pytest.raises(CorruptSaveError):
        loads(dumps(board))


def test_load_rejects_clue_that_differs_from_solution():
    board = SudokuGenerator(seed=1).generate()
    r, c = _locked_cell(board)
    board.grid[r][c] = board.solution[r][c] % 9 + 1

    with pytest.raises(CorruptSaveError):
        loads(dumps(board))


def test_load_rejects_invalid_solution():
    board = SudokuGenerator(seed=1).generate()
    # repeat a value within one row of the stored solution, on an editable cell
    r, c = board.editable_cells()[0]
    board.solution[r][c] = board.solution[r][(c + 1) % 9]

    with pytest.raises(CorruptSaveError):
        loads(dumps(board))


def test_load_binary_file(tmp_path):
    path = tmp_path / "savedGame.txt"
    path.write_bytes(b"\xff\xfe\x00garbage\n")

    with pytest.raises(CorruptSaveError):
        load_game(str(path))
