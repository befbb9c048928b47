"""Engine runtime settings: tunable limits for workflow execution.

All values read from environment variables with defaults matching the
behaviour the workflow builder expects. Import from here instead of
hardcoding.

Infrastructure config (log directory) stays in invoiceflow/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Traversal limits
# =====================================================================

# Linear steps allowed per traversal frame before the frame is cut off
MAX_TRAVERSAL_STEPS = _int("INVOICEFLOW_MAX_TRAVERSAL_STEPS", 2000)

# Nested rule-branch frames allowed before a branch is skipped
MAX_BRANCH_DEPTH = _int("INVOICEFLOW_MAX_BRANCH_DEPTH", 64)

# Maximum length of a rule node's free-form expression
MAX_EXPRESSION_LENGTH = _int("INVOICEFLOW_MAX_EXPRESSION_LENGTH", 500)


# =====================================================================
# Run aggregation
# =====================================================================

# Row field used to match a row back into a step's recorded output
NATURAL_KEY = _str("INVOICEFLOW_NATURAL_KEY", "invoice_id")

# Max runs returned by the run listing endpoint
RUN_LIST_LIMIT = _int("RUN_LIST_LIMIT", 50)


# =====================================================================
# Export webhooks
# =====================================================================

EXPORT_WEBHOOK_TIMEOUT = _float("EXPORT_WEBHOOK_TIMEOUT", 5.0)
EXPORT_WEBHOOK_WORKERS = _int("EXPORT_WEBHOOK_WORKERS", 4)
