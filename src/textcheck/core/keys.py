"""Shared output keys and labels to avoid magic strings across textcheck modules."""

from __future__ import annotations

# Output CSV columns, in header order
K_ID = "id"
K_URL = "url"
K_STATUS = "status"
K_TIME_MS = "timeMs"
K_FOUND = "found"
K_DETAIL = "h3_content"

OUTPUT_COLUMNS = (K_ID, K_URL, K_STATUS, K_TIME_MS, K_FOUND, K_DETAIL)

# Classification labels
K_LABEL_MATCH = "SI"
K_LABEL_NO_MATCH = "NO"
K_LABEL_ERROR = "ERROR"

# Fragment sentinel when the designated tag is absent
K_NOT_FOUND = "NOT_FOUND"
