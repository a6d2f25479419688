# This file contains visual constants and stylesheets for the sticky notes overlay.
# It centralizes the note palette, the QSS templates for note cards and the
# theme palettes so the overlay keeps a consistent look.

from PySide6.QtGui import QColor

# The fixed set of note color themes. Keys are what gets persisted.
NOTE_COLORS = {
    "yellow": {"bg": "#fef3c7", "text": "#92400e", "name": "Yellow"},
    "pink":   {"bg": "#fce7f3", "text": "#9d174d", "name": "Pink"},
    "blue":   {"bg": "#dbeafe", "text": "#1e40af", "name": "Blue"},
    "green":  {"bg": "#dcfce7", "text": "#166534", "name": "Green"},
    "gray":   {"bg": "#f3f4f6", "text": "#374151", "name": "Gray"},
}


class StyleSheet:
    """A namespace class to hold the QSS templates used by note cards."""

    # Template for a single note card. Placeholders are filled per card from
    # NOTE_COLORS and the active ColorPalette.
    NOTE_CARD = """
        QFrame#stickyNote {{
            background-color: {bg};
            border: 1px solid {border};
            border-radius: 6px;
        }}
        QFrame#stickyNote[selected="true"] {{
            border: 2px solid {selection};
        }}
        QFrame#stickyNote[dragging="true"], QFrame#stickyNote[resizing="true"] {{
            border: 2px dashed {selection};
        }}
        QWidget#stickyNoteHeader {{
            background-color: rgba(0, 0, 0, 18);
            border-top-left-radius: 6px;
            border-top-right-radius: 6px;
        }}
        QPushButton#stickyNoteClose {{
            background-color: transparent;
            border: none;
            color: {text};
        }}
        QPushButton#stickyNoteClose:hover {{
            background-color: rgba(0, 0, 0, 30);
            border-radius: 3px;
        }}
        QPushButton#colorDot {{
            border: 1px solid rgba(0, 0, 0, 60);
            border-radius: 6px;
            min-width: 12px; max-width: 12px;
            min-height: 12px; max-height: 12px;
        }}
        QPushButton#colorDot[active="true"] {{
            border: 2px solid {text};
        }}
        QTextBrowser#stickyNoteContent {{
            background-color: transparent;
            border: none;
            color: {text};
            font-family: 'Segoe UI', sans-serif;
            font-size: 10pt;
            selection-background-color: {selection};
        }}
        QWidget#stickyNoteResize {{
            background-color: transparent;
        }}
    """

    # Default stylesheet applied to the rendered markdown inside the content area.
    MARKDOWN_CONTENT = """
        h1 { font-size: 16pt; margin: 2px 0px; }
        h2 { font-size: 13pt; margin: 2px 0px; }
        h3 { font-size: 11pt; margin: 2px 0px; }
        pre { background-color: rgba(0, 0, 0, 0.08); padding: 4px; font-family: Consolas, monospace; }
        code { font-family: Consolas, monospace; }
        blockquote { margin-left: 8px; font-style: italic; }
        a { color: #2563eb; }
    """


class ColorPalette:
    """
    A data class to hold QColor objects for a specific overlay theme. Note
    colors themselves come from NOTE_COLORS; the palette covers the chrome
    drawn around them.
    """
    def __init__(self, selection, border, handle):
        """
        Initializes the ColorPalette.

        Args:
            selection (str): Hex color for the selected note's outline.
            border (str): Hex color for an unselected note's outline.
            handle (str): Hex color for the drag and resize grips.
        """
        self.SELECTION = QColor(selection)
        self.BORDER = QColor(border)
        self.HANDLE = QColor(handle)


DARK_PALETTE = ColorPalette(
    selection="#2ecc71",
    border="#555555",
    handle="#6b7280",
)

MONO_PALETTE = ColorPalette(
    selection="#ffffff",
    border="#777777",
    handle="#999999",
)

THEMES = {
    "dark": {
        "stylesheet": StyleSheet.NOTE_CARD,
        "palette": DARK_PALETTE
    },
    "mono": {
        "stylesheet": StyleSheet.NOTE_CARD,
        "palette": MONO_PALETTE
    }
}
