"""Centralized constants for the cardwise scheduler.

All model weights, clamps and study defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Memory model ----------
# FSRS-5 weights. Only a subset is used by the three-button model:
# w0..w2 initial stability, w6..w8 difficulty steps, w8..w10 recall growth,
# w11..w14 lapse stability, w15..w16 hard/good growth factors.
FSRS_WEIGHTS = (
    0.4872, 1.4003, 3.1145, 15.4896, 7.2180, 0.8975,
    0.9209, 0.0363, 1.629, 0.1342, 1.0166, 2.1174,
    0.0839, 0.3204, 1.4676, 0.219, 2.8237, 0.2975, 0.9508,
)

# Retrievability after exactly `stability` days.
RETRIEVABILITY_ANCHOR = 0.9

DEFAULT_DIFFICULTY = 5.0
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

MIN_STABILITY = 0.01
MAX_INTERVAL = 36500  # days, ~100 years

MIN_INTERVAL = 1  # days

# ---------- Statistics ----------
MATURE_STABILITY_THRESHOLD = 21.0  # days

# ---------- Study defaults ----------
DEFAULT_SCHEDULER_ENABLED = False
DEFAULT_DESIRED_RETENTION = 0.87
MIN_DESIRED_RETENTION = 0.70
MAX_DESIRED_RETENTION = 0.97
DEFAULT_NEW_CARDS_PER_DAY = 20
DEFAULT_MAX_REVIEWS_PER_DAY = 150
DEFAULT_TIMEBOX_MINUTES = 30

# ---------- Storage ----------
MANIFEST_FILE = "manifest.json"
SETTINGS_FILE = "settings.json"
SCHEDULE_FILE_SUFFIX = "-fsrs"

SECONDS_PER_DAY = 86400.0
