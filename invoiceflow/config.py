"""Infrastructure configuration constants."""

import os
from pathlib import Path

# Log directory, overridable via LOG_DIR
LOG_DIR = Path(os.getenv("LOG_DIR", str(Path(__file__).parent.parent / "logs")))

# Level for the service loggers (api, notify)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Set to "false" to log service output to the console only
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() == "true"
