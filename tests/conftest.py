"""Pytest configuration for the SignFlow test suite."""
from __future__ import annotations

import os
import sys
from pathlib import Path

# Ensure the repository root is on ``sys.path`` so that ``signflow`` can be
# imported when the test suite is executed without installing the package.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The application binds its engine at import time, so point it at an
# in-memory database before any test module imports ``signflow.main``.
os.environ["SIGNFLOW_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SIGNFLOW_LOG_JSON", "false")
