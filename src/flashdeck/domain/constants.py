"""Centralized constants for flashdeck.

Every layer imports defaults from here so the mastery threshold and the
storage conventions have a single source of truth.
"""

# ---------- Mastery ----------
DEFAULT_MASTERY_THRESHOLD = 5
DIRECTION_COUNT = 2

# ---------- Scheduling ----------
# Strictly below any achievable success rate (0.0-1.0).
NO_PROGRESS_PRIORITY = -1.0

# ---------- Decks ----------
ALL_DECKS_ID = "all-decks"
ALL_DECKS_NAME = "All Decks"

# ---------- Identity ----------
CARD_ID_LENGTH = 12
CARD_ID_SEPARATOR = "|"

# ---------- Persistence ----------
DEFAULT_SAVE_RETRIES = 2
JSON_INDENT = 2
