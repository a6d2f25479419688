# This file holds the global configuration for the sticky notes overlay.
import os
import logging

from sticky_styles import THEMES

logger = logging.getLogger(__name__)


def _env_int(name, default):
    """Reads a positive integer override from the environment, falling back to `default`."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer.", name, raw)
        return default
    return value if value > 0 else default


# --- NOTE GEOMETRY ---
# All sizes are in world units; the overlay scales them with the host's zoom.
DEFAULT_WIDTH = 240
DEFAULT_HEIGHT = 120
MIN_WIDTH = 120
MIN_HEIGHT = 80

DEFAULT_TEXT = "New note..."
DEFAULT_COLOR = "yellow"

# World-space offset applied to a duplicated note.
DUPLICATE_OFFSET = 20

# --- PERSISTENCE ---
# Reserved key inside the host document's "extra" section.
EXTENSION_KEY = "stickyNotes"

# --- TIMING ---
# Interval of the transform polling tick (roughly one frame at 60fps).
TICK_INTERVAL_MS = _env_int("STICKY_NOTES_TICK_MS", 16)

# Debounce between an editor losing focus and the edit being committed.
BLUR_COMMIT_DELAY_MS = 100

# Delay between the host finishing a document load and notes being restored.
LOAD_RESTORE_DELAY_MS = 100

# Host readiness polling: 300 attempts at 100ms gives the host 30 seconds.
ATTACH_POLL_INTERVAL_MS = 100
ATTACH_MAX_ATTEMPTS = 300

# --- THEME CONFIGURATION ---
CURRENT_THEME = os.getenv("STICKY_NOTES_THEME", "dark")
if CURRENT_THEME not in THEMES:
    CURRENT_THEME = "dark"


def get_current_palette():
    """Returns the color palette object for the currently active theme."""
    return THEMES[CURRENT_THEME]["palette"]


def get_current_stylesheet():
    """Returns the note card stylesheet for the currently active theme."""
    return THEMES[CURRENT_THEME]["stylesheet"]


def apply_theme(theme_name):
    """
    Switches the active overlay theme. Cards pick up the new palette, icons
    included, on their next sync; call `OverlaySession.refresh` to force one.

    Args:
        theme_name (str): The name of the theme to apply (e.g., "dark", "mono").
    """
    global CURRENT_THEME
    if theme_name in THEMES:
        CURRENT_THEME = theme_name
    else:
        logger.warning("Theme '%s' not found. Defaulting to 'dark'.", theme_name)
        CURRENT_THEME = "dark"
