import sys
import os
from pathlib import Path

# serverless entry point; the project root must be importable
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault("LOG_LEVEL", "INFO")

from gawin_proxy.main import app  # noqa: E402

__all__ = ["app"]
