from __future__ import annotations

import os

CONSOLIDATION_THRESHOLD = float(os.getenv("CONSOLIDATION_THRESHOLD", "0.5"))
LARGE_CORPUS_CUTOFF = int(os.getenv("LARGE_CORPUS_CUTOFF", "400"))

# Review screen shows the top three issues with any overlap at all.
SUGGESTION_LIMIT = int(os.getenv("SUGGESTION_LIMIT", "3"))
SUGGESTION_MIN_SCORE = float(os.getenv("SUGGESTION_MIN_SCORE", "0.01"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
