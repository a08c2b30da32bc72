from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    # Import the package from src/ without requiring installation.
    src = Path(__file__).resolve().parents[1] / "src"
    sys.path.insert(0, str(src))
