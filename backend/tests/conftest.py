import os
import sys
import tempfile
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

# main.py reads settings at import time; keep its data out of the repo
os.environ.setdefault("CARDBENCH_DATA_DIR", tempfile.mkdtemp(prefix="cardbench-test-"))
os.environ.setdefault("CARDBENCH_DEBUG_CHECKS", "1")
