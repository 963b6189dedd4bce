"""
ASGI entrypoint for deployments (e.g. Render).

The FastAPI app lives in `backend/rentals/` and uses imports like
`from rentals.db ...`, which requires `backend/` to be on `PYTHONPATH`
(or the project to be installed with `pip install -e .`).

By providing a repo-root `main.py`, the platform can run:
  uvicorn main:app --host 0.0.0.0 --port $PORT
"""

from __future__ import annotations

import sys
from pathlib import Path


_ROOT = Path(__file__).resolve().parent
_BACKEND_DIR = _ROOT / "backend"

# Ensure `import rentals...` resolves to `backend/rentals/...`
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from rentals.config import load_settings  # noqa: E402
from rentals.main import create_app  # noqa: E402


app = create_app(load_settings())
