import os

# The server module reads this at import time; tests run without eventlet.
os.environ.setdefault("SUDOKU_ASYNC_MODE", "threading")
