import os

ASYNC_MODE = os.environ.get("SUDOKU_ASYNC_MODE", "eventlet")
if ASYNC_MODE == "eventlet":
    import eventlet
    eventlet.monkey_patch()

import argparse
import threading
import uuid

from flask import Flask, request, jsonify
from flask_socketio import SocketIO, emit, join_room, leave_room
from flask_cors import CORS, cross_origin
from werkzeug.utils import secure_filename

from game import (
    BLOCK_SIZE, HIDDEN_CELLS, SHUFFLE_STEPS, CellLockedError, CorruptSaveError,
    SaveFileNotFoundError, SudokuGenerator,
)
from savefile import DEFAULT_SAVE_NAME, load_game, save_game

app = Flask(__name__)
app.config.from_mapping(
    BLOCK_SIZE=BLOCK_SIZE,
    SHUFFLE_STEPS=SHUFFLE_STEPS,
    HIDDEN_CELLS=HIDDEN_CELLS,
    HIDE_POLICY='scan',
    SAVE_DIR='saves',
    SOLVE_STEP_DELAY=0.05,
)
app.config.from_prefixed_env("SUDOKU")
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*", async_mode=ASYNC_MODE)

sessions = {}


class GameSession:
    def __init__(self, id, seed=None, hidden=None, policy=None):
        self.id = id
        self.generator = SudokuGenerator(block_size=app.config['BLOCK_SIZE'], seed=seed)
        self.hidden = hidden if hidden is not None else app.config['HIDDEN_CELLS']
        self.policy = policy or app.config['HIDE_POLICY']
        self.board = None
        self.solve_cancel = threading.Event()
        self.solving = False
        self.clients = set()
        self.new_puzzle()

    def new_puzzle(self):
        self.board = self.generator.generate(
            hidden=self.hidden,
            shuffle_steps=app.config['SHUFFLE_STEPS'],
            policy=self.policy,
        )
        return self.board

    def to_dict(self):
        return {
            "session_id": self.id,
            "board": self.board.to_dict(),
            "solving": self.solving
        }


def _save_path(name):
    filename = secure_filename(name or DEFAULT_SAVE_NAME) or DEFAULT_SAVE_NAME
    return os.path.join(app.config['SAVE_DIR'], filename)


def _check(session):
    if session.board.check_win():
        session.new_puzzle()
        return "win"
    return "lose"


def _solve(session):
    solved = session.board.solve()
    if not solved:
        app.logger.warning("Session %s: no solution from current grid", session.id)
    return solved


def _broadcast_board(session_id):
    session = sessions.get(session_id)
    if session:
        socketio.emit('board_state', session.to_dict(), to=session_id)


def _animate_solve(session_id):
    session = sessions.get(session_id)
    if not session:
        return
    delay = app.config['SOLVE_STEP_DELAY']
    run = session.board.solve_steps(cancel=session.solve_cancel)
    try:
        for step in run:
            socketio.emit('cell_update', step._asdict(), to=session_id)
            socketio.sleep(delay)
    finally:
        session.solving = False
        session.solve_cancel.clear()
    if run.cancelled:
        app.logger.info("Session %s: solve cancelled after %d steps", session_id, run.steps)
    elif not run.solved:
        app.logger.warning("Session %s: no solution from current grid", session_id)
    socketio.emit('solve_finished', {"solved": run.solved, "cancelled": run.cancelled}, to=session_id)
    _broadcast_board(session_id)


def _get_session_or_404(session_id):
    session = sessions.get(session_id)
    if not session:
        return None, (jsonify({"error": "Session not found"}), 404)
    if session.solving:
        return None, (jsonify({"error": "A solve is running for this session"}), 409)
    return session, None


def _cell_error(board, row, col):
    if not isinstance(row, int) or not isinstance(col, int):
        return "Row and column are required"
    if not (0 <= row < board.size and 0 <= col < board.size):
        return "Cell out of range"
    return None


def _end_session(session_id):
    session = sessions.pop(session_id, None)
    if session:
        # stops an animated solve at its next step
        session.solve_cancel.set()
        app.logger.info("Session %s ended", session_id)
    return session


@app.route("/")
def index():
    return "Sudoku Backend is running!"


@app.route("/new_game", methods=['POST'])
@cross_origin()
def new_game():
    try:
        data = request.get_json(silent=True) or {}
        seed = data.get('seed')
        hidden = data.get('hidden')
        policy = data.get('policy')
        if hidden is not None and not isinstance(hidden, int):
            return jsonify({"error": "Hidden cell count must be an integer"}), 400

        session_id = str(uuid.uuid4())[:8]
        session = GameSession(id=session_id, seed=seed, hidden=hidden, policy=policy)
        sessions[session_id] = session
        app.logger.info("Session %s created", session_id)

        return jsonify({
            "session_id": session_id,
            "board": session.board.to_dict(),
            "message": "Game created successfully"
        })
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        app.logger.exception("Failed to create game")
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>", methods=['GET'])
@cross_origin()
def get_session(session_id):
    session = sessions.get(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404
    return jsonify(session.to_dict())


@app.route("/session/<session_id>", methods=['DELETE'])
@cross_origin()
def end_session(session_id):
    if not _end_session(session_id):
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"message": "Session ended"})


@app.route("/session/<session_id>/new_puzzle", methods=['POST'])
@cross_origin()
def new_puzzle(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        session.new_puzzle()
        return jsonify({"board": session.board.to_dict()})
    except Exception as e:
        app.logger.exception("Session %s: new puzzle failed", session_id)
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>/press", methods=['POST'])
@cross_origin()
def press(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        data = request.get_json(silent=True) or {}
        row, col = data.get('row'), data.get('col')
        message = _cell_error(session.board, row, col)
        if message:
            return jsonify({"error": message}), 400
        try:
            cell = session.board.press(row, col)
        except CellLockedError as e:
            return jsonify({"error": str(e)}), 403
        return jsonify({"cell": cell.to_dict()})
    except Exception as e:
        app.logger.exception("Session %s: press failed", session_id)
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>/check", methods=['POST'])
@cross_origin()
def check(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        result = _check(session)
        return jsonify({"result": result, "board": session.board.to_dict()})
    except Exception as e:
        app.logger.exception("Session %s: check failed", session_id)
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>/solve", methods=['POST'])
@cross_origin()
def solve_route(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        solved = _solve(session)
        return jsonify({
            "solved": solved,
            "board": session.board.to_dict(),
            "message": "Solved" if solved else "No solution"
        })
    except Exception as e:
        app.logger.exception("Session %s: solve failed", session_id)
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>/save", methods=['POST'])
@cross_origin()
def save(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        data = request.get_json(silent=True) or {}
        path = _save_path(data.get('name'))
        try:
            save_game(session.board, path)
        except OSError as e:
            app.logger.warning("Session %s: could not save to %s: %s", session_id, path, e)
            return jsonify({"error": f"Could not save game: {e}"}), 500
        return jsonify({"message": "Game saved", "path": path})
    except Exception as e:
        app.logger.exception("Session %s: save failed", session_id)
        return jsonify({"error": str(e)}), 500


@app.route("/session/<session_id>/load", methods=['POST'])
@cross_origin()
def load(session_id):
    try:
        session, error = _get_session_or_404(session_id)
        if error:
            return error
        data = request.get_json(silent=True) or {}
        path = _save_path(data.get('name'))
        try:
            board = load_game(path, block_size=session.board.block_size)
        except SaveFileNotFoundError:
            return jsonify({"error": "Save file not found"}), 404
        except CorruptSaveError as e:
            return jsonify({"error": f"Corrupt save file: {e}"}), 422
        session.board = board
        return jsonify({"board": session.board.to_dict()})
    except Exception as e:
        app.logger.exception("Session %s: load failed", session_id)
        return jsonify({"error": str(e)}), 500


def _socket_session(data, idle=True):
    payload = data if isinstance(data, dict) else {}
    session = sessions.get(payload.get('session_id'))
    if not session:
        emit('error', {'message': 'Session not found'})
        return None
    if idle and session.solving:
        emit('error', {'message': 'A solve is running for this session'})
        return None
    return session


@socketio.on('join')
def on_join(data):
    session = _socket_session(data, idle=False)
    if not session:
        return
    join_room(session.id)
    session.clients.add(request.sid)
    emit('board_state', session.to_dict())


@socketio.on('press')
def on_press(data):
    session = _socket_session(data)
    if not session:
        return
    row, col = data.get('row'), data.get('col')
    message = _cell_error(session.board, row, col)
    if message:
        emit('error', {'message': message})
        return
    try:
        cell = session.board.press(row, col)
    except CellLockedError as e:
        emit('error', {'message': str(e)})
        return
    emit('cell_update', {"row": cell.row, "col": cell.col, "value": cell.displayed}, to=session.id)


@socketio.on('check_win')
def on_check_win(data):
    session = _socket_session(data)
    if not session:
        return
    result = _check(session)
    emit('game_result', {"result": result}, to=session.id)
    if result == "win":
        _broadcast_board(session.id)


@socketio.on('new_puzzle')
def on_new_puzzle(data):
    session = _socket_session(data)
    if not session:
        return
    session.new_puzzle()
    _broadcast_board(session.id)


@socketio.on('solve')
def on_solve(data):
    session = _socket_session(data)
    if not session:
        return

    if not data.get('animate'):
        solved = _solve(session)
        emit('solve_finished', {"solved": solved, "cancelled": False}, to=session.id)
        _broadcast_board(session.id)
        return

    session.solving = True
    session.solve_cancel.clear()
    socketio.start_background_task(_animate_solve, session.id)


@socketio.on('cancel_solve')
def on_cancel_solve(data):
    session = _socket_session(data, idle=False)
    if session and session.solving:
        session.solve_cancel.set()


@socketio.on('disconnect')
def on_disconnect(reason=None):
    for session in list(sessions.values()):
        if request.sid not in session.clients:
            continue
        session.clients.discard(request.sid)
        leave_room(session.id)
        if not session.clients:
            _end_session(session.id)


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()
    socketio.run(app, host=args.host, port=args.port, debug=args.debug)
