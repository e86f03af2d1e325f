"""
Root conftest: puts ``src`` on the path so tests run without installing.

Shared builders and fakes live in ``tests/fixtures``.
"""

import logging
import sys
from pathlib import Path

# Ensure src on path
sys.path.insert(0, str(Path(__file__).parent / "src"))

logger = logging.getLogger(__name__)
