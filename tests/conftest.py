import os
import sys
import tempfile

# Ensure the repository root is on sys.path so `import rsm_insights` works without install
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Settings and logging read the environment when the app module is imported
os.environ.setdefault("RSM_PERSIST_SESSIONS", "false")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.mkdtemp(), "app.log"))
