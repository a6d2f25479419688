"""
The visual side of the sticky notes overlay.

Notes are drawn on an `OverlaySurface`: a transparent, frameless QGraphicsView
laid over the host canvas viewport whose scene coordinates are exactly the
viewport's pixel coordinates. Each note is a `NoteCard` widget embedded through
a QGraphicsProxyWidget. The card keeps the note's world size as its intrinsic
size and the proxy applies the host's zoom as a uniform scale, so text reflow
does not change while the user zooms.
"""

import logging
from dataclasses import dataclass

import qtawesome as qta

from PySide6.QtWidgets import (
    QFrame, QGraphicsScene, QGraphicsView, QGraphicsProxyWidget, QHBoxLayout,
    QLabel, QPushButton, QTextBrowser, QVBoxLayout, QWidget
)
from PySide6.QtCore import Qt, QEvent, QRectF, Signal
from PySide6.QtGui import QPainter, QRegion

import sticky_config as config
from sticky_markdown import ContentMode, content_for
from sticky_store import InteractionState
from sticky_styles import NOTE_COLORS, StyleSheet
from sticky_transform import to_view

logger = logging.getLogger(__name__)


class _HeaderBar(QWidget):
    """The note's title strip. Dragging it moves the note."""
    pressed = Signal(float, float)
    moved = Signal(float, float)
    released = Signal(float, float)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("stickyNoteHeader")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground)
        self.setCursor(Qt.CursorShape.OpenHandCursor)
        self._tracking = False

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return super().mousePressEvent(event)
        self._tracking = True
        pos = event.globalPosition()
        self.pressed.emit(pos.x(), pos.y())
        event.accept()

    def mouseMoveEvent(self, event):
        if not self._tracking:
            return super().mouseMoveEvent(event)
        pos = event.globalPosition()
        self.moved.emit(pos.x(), pos.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        if not self._tracking:
            return super().mouseReleaseEvent(event)
        self._tracking = False
        pos = event.globalPosition()
        self.released.emit(pos.x(), pos.y())
        event.accept()


class _ResizeGrip(_HeaderBar):
    """The bottom-right corner grip. Dragging it resizes the note."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("stickyNoteResize")
        self.setCursor(Qt.CursorShape.SizeFDiagCursor)
        self.setFixedSize(14, 14)
        self.set_color(config.get_current_palette().HANDLE)

    def set_color(self, color):
        self._icon = qta.icon('fa5s.expand-alt', color=color)
        self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        self._icon.paint(painter, self.rect())


class NoteContent(QTextBrowser):
    """
    The content area. Shows rendered markdown in view mode and the raw text,
    editable, in edit mode.
    """
    pressed = Signal()
    activated = Signal()
    confirmed = Signal()
    focusLost = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("stickyNoteContent")
        self.setOpenExternalLinks(True)
        self.setFrameShape(QFrame.Shape.NoFrame)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.document().setDefaultStyleSheet(StyleSheet.MARKDOWN_CONTENT)
        self.setReadOnly(True)
        self.mode = ContentMode.VIEW

    def show_text(self, text, mode):
        """
        Switches between the rendered and the editable form of `text`.

        Args:
            text (str): The note's raw text.
            mode (ContentMode): Which form to show.
        """
        self.mode = mode
        if mode is ContentMode.EDIT:
            self.setReadOnly(False)
            self.setTextInteractionFlags(Qt.TextInteractionFlag.TextEditorInteraction)
            self.setPlainText(content_for(text, mode))
            self.setFocus(Qt.FocusReason.OtherFocusReason)
            self.selectAll()
        else:
            self.setReadOnly(True)
            self.setTextInteractionFlags(Qt.TextInteractionFlag.TextBrowserInteraction)
            self.setHtml(content_for(text, mode))

    def mousePressEvent(self, event):
        self.pressed.emit()
        super().mousePressEvent(event)

    def mouseDoubleClickEvent(self, event):
        if self.mode is ContentMode.VIEW:
            self.activated.emit()
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    def keyPressEvent(self, event):
        if self.mode is ContentMode.EDIT and event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            if event.modifiers() & Qt.KeyboardModifier.ShiftModifier:
                # Insert a plain newline rather than Qt's line separator.
                self.insertPlainText("\n")
            else:
                self.confirmed.emit()
            event.accept()
            return
        super().keyPressEvent(event)

    def focusOutEvent(self, event):
        super().focusOutEvent(event)
        if self.mode is ContentMode.EDIT:
            self.focusLost.emit()


class NoteCard(QFrame):
    """
    The widget for one sticky note: a header with drag grip, palette dots and
    close button, the markdown content area and a resize grip. It only emits
    signals; what they do is decided by the note's interaction binding.
    """
    colorPicked = Signal(str)
    closeClicked = Signal()

    HEADER_HEIGHT = 24

    def __init__(self, note_id, parent=None):
        """
        Initializes the NoteCard.

        Args:
            note_id (int): The id of the note this card shows.
            parent (QWidget, optional): The parent widget. Defaults to None.
        """
        super().__init__(parent)
        self.note_id = note_id
        self.setObjectName("stickyNote")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground)
        self._style_key = None
        self._flags = {}

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        # --- Header ---
        self.header = _HeaderBar(self)
        self.header.setFixedHeight(self.HEADER_HEIGHT)
        header_layout = QHBoxLayout(self.header)
        header_layout.setContentsMargins(6, 2, 4, 2)
        header_layout.setSpacing(4)

        self.grip = QLabel()
        # Let presses on the grip fall through to the header.
        self.grip.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        header_layout.addWidget(self.grip)
        header_layout.addStretch()

        self.color_dots = {}
        for key, color in NOTE_COLORS.items():
            dot = QPushButton()
            dot.setObjectName("colorDot")
            dot.setToolTip(color["name"])
            dot.setCursor(Qt.CursorShape.PointingHandCursor)
            dot.setProperty("colorKey", key)
            dot.setStyleSheet(f"background-color: {color['bg']};")
            dot.clicked.connect(lambda checked=False, k=key: self.colorPicked.emit(k))
            header_layout.addWidget(dot)
            self.color_dots[key] = dot

        self.close_button = QPushButton()
        self.close_button.setObjectName("stickyNoteClose")
        self.close_button.setFixedSize(18, 18)
        self.close_button.setToolTip("Delete note")
        self.close_button.clicked.connect(self.closeClicked.emit)
        header_layout.addWidget(self.close_button)
        layout.addWidget(self.header)

        # --- Content ---
        self.content = NoteContent(self)
        content_holder = QVBoxLayout()
        content_holder.setContentsMargins(8, 4, 8, 0)
        content_holder.addWidget(self.content)
        layout.addLayout(content_holder, 1)

        # --- Resize grip ---
        self.resize_grip = _ResizeGrip(self)
        footer = QHBoxLayout()
        footer.setContentsMargins(0, 0, 2, 2)
        footer.addStretch()
        footer.addWidget(self.resize_grip)
        layout.addLayout(footer)
        self._apply_icons(config.get_current_palette())

    def mousePressEvent(self, event):
        # Presses on the card body that no child consumed.
        self.content.pressed.emit()
        super().mousePressEvent(event)

    def apply_note(self, note, selected):
        """
        Updates size, colors and state styling from the note.

        Args:
            note (Note): The note this card shows.
            selected (bool): Whether the note is the current selection.
        """
        self.setFixedSize(round(note.width), round(note.height))

        color = NOTE_COLORS.get(note.color, NOTE_COLORS[config.DEFAULT_COLOR])
        style_key = (note.color, config.CURRENT_THEME)
        if style_key != self._style_key:
            self._style_key = style_key
            palette = config.get_current_palette()
            self.setStyleSheet(config.get_current_stylesheet().format(
                bg=color["bg"],
                text=color["text"],
                border=palette.BORDER.name(),
                selection=palette.SELECTION.name(),
            ))
            for key, dot in self.color_dots.items():
                dot.setProperty("active", key == note.color)
                dot.style().unpolish(dot)
                dot.style().polish(dot)
            self._apply_icons(palette)

        self._set_flag("selected", selected)
        self._set_flag("dragging", note.state is InteractionState.DRAGGING)
        self._set_flag("resizing", note.state is InteractionState.RESIZING)

    def _apply_icons(self, palette):
        self.grip.setPixmap(qta.icon('fa5s.grip-lines', color=palette.HANDLE).pixmap(12, 12))
        self.close_button.setIcon(qta.icon('fa5s.times', color=palette.HANDLE))
        self.resize_grip.set_color(palette.HANDLE)

    def _set_flag(self, name, value):
        # Re-polishing is only needed when a property used by the QSS changes.
        if self._flags.get(name) == value:
            return
        self._flags[name] = value
        self.setProperty(name, value)
        self.style().unpolish(self)
        self.style().polish(self)


class OverlaySurface(QGraphicsView):
    """
    A transparent view laid exactly over the host canvas viewport. Its scene
    rect is pinned to the viewport rect, so scene coordinates are view
    coordinates. The input mask covers only the note cards; everywhere else
    the host canvas receives the mouse.
    """
    def __init__(self, host_viewport):
        """
        Args:
            host_viewport (QWidget): The host canvas' viewport widget.
        """
        # Parent to the viewport's owner (e.g. the host QGraphicsView) so the
        # host scrolling its viewport never drags the overlay along.
        super().__init__(host_viewport.parentWidget() or host_viewport)
        self._host_viewport = host_viewport
        self.setObjectName("stickyNotesOverlay")
        self.setScene(QGraphicsScene(self))
        self.setFrameShape(QFrame.Shape.NoFrame)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setRenderHint(QPainter.RenderHint.TextAntialiasing)
        self.setStyleSheet("QGraphicsView#stickyNotesOverlay { background: transparent; border: none; }")
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.viewport().setAutoFillBackground(False)

        host_viewport.installEventFilter(self)
        self.fit_to_host()
        self.hide()

    @property
    def host_viewport(self):
        return self._host_viewport

    def fit_to_host(self):
        """Matches the surface geometry and scene rect to the host viewport."""
        geometry = self._host_viewport.geometry()
        if self._host_viewport is self.parentWidget():
            geometry.moveTo(0, 0)
        if self.geometry() != geometry:
            self.setGeometry(geometry)
        self.setSceneRect(QRectF(0, 0, geometry.width(), geometry.height()))

    def refresh_mask(self, proxies):
        """
        Restricts mouse input and painting to the union of the given proxies.
        Hides the surface entirely when there is nothing to show.
        """
        region = QRegion()
        for proxy in proxies:
            rect = proxy.sceneBoundingRect().adjusted(-2, -2, 2, 2)
            region = region.united(QRegion(self.mapFromScene(rect).boundingRect()))
        if region.isEmpty():
            self.clearMask()
            self.hide()
            return
        self.setMask(region)
        if not self.isVisible():
            self.show()
            self.raise_()

    def eventFilter(self, watched, event):
        if watched is self._host_viewport and event.type() in (QEvent.Type.Resize, QEvent.Type.Move):
            self.fit_to_host()
        return super().eventFilter(watched, event)

    def detach(self):
        """Stops following the host viewport and schedules deletion."""
        self._host_viewport.removeEventFilter(self)
        self.hide()
        self.deleteLater()


@dataclass
class _Visual:
    card: NoteCard
    proxy: QGraphicsProxyWidget


class OverlayRenderer:
    """
    Keeps one card per live note positioned, sized and styled from the note
    store and the current host transform.
    """
    def __init__(self, store, oracle, host_viewport):
        """
        Args:
            store (NoteStore): The session's note store (read only here).
            oracle (TransformOracle): Source of the current view transform.
            host_viewport (QWidget): The host canvas viewport to overlay.
        """
        self._store = store
        self._oracle = oracle
        self.surface = OverlaySurface(host_viewport)
        self._visuals = {}

    def __contains__(self, note_id):
        return note_id in self._visuals

    def card(self, note_id):
        visual = self._visuals.get(note_id)
        return visual.card if visual else None

    def proxy(self, note_id):
        visual = self._visuals.get(note_id)
        return visual.proxy if visual else None

    # --- Lifecycle ---
    def materialize(self, note, binding):
        """
        Creates the card for `note` and connects its signals to `binding`.

        Returns:
            callable: Disconnects every connection made here.
        """
        card = NoteCard(note.id)
        proxy = self.surface.scene().addWidget(card)
        proxy.setTransformOriginPoint(0, 0)
        self._visuals[note.id] = _Visual(card, proxy)
        card.content.show_text(note.text, ContentMode.VIEW)

        connections = [
            (card.content.pressed, binding.on_pressed),
            (card.content.activated, binding.on_content_activated),
            (card.content.confirmed, binding.on_edit_confirmed),
            (card.content.focusLost, binding.on_edit_focus_lost),
            (card.header.pressed, binding.on_drag_pressed),
            (card.header.moved, binding.on_drag_moved),
            (card.header.released, binding.on_drag_released),
            (card.resize_grip.pressed, binding.on_resize_pressed),
            (card.resize_grip.moved, binding.on_resize_moved),
            (card.resize_grip.released, binding.on_resize_released),
            (card.colorPicked, binding.on_color_picked),
            (card.closeClicked, binding.on_close_clicked),
        ]
        for signal, slot in connections:
            signal.connect(slot)

        def release():
            for signal, slot in connections:
                try:
                    signal.disconnect(slot)
                except (RuntimeError, TypeError):
                    # The card is already gone on the C++ side.
                    logger.debug("Connection for note %s already released", note.id)

        logger.debug("Materialized note %s", note.id)
        return release

    def destroy(self, note):
        """Detaches and releases the card of `note`. Unknown notes are ignored."""
        visual = self._visuals.pop(note.id, None)
        if visual is None:
            return
        visual.proxy.hide()
        # Deferred: this may run inside one of the card's own signal handlers.
        visual.proxy.deleteLater()
        self._refresh_mask()

    def dispose(self):
        """Drops every card and the surface itself."""
        for visual in self._visuals.values():
            visual.proxy.deleteLater()
        self._visuals.clear()
        self.surface.detach()

    # --- Synchronization ---
    def sync(self, note):
        """Repositions, rescales and restyles one card from its note."""
        if self._sync_one(note, self._oracle.require()):
            self._refresh_mask()

    def sync_all(self):
        """Applies `sync` to every live note. Used by the polling tick."""
        transform = self._oracle.require()
        self.surface.fit_to_host()
        for note in self._store.all():
            self._sync_one(note, transform)
        self._refresh_mask()

    def _sync_one(self, note, transform):
        visual = self._visuals.get(note.id)
        if visual is None:
            return False
        visual.card.apply_note(note, selected=self._store.selected_id == note.id)
        visual.proxy.setScale(transform.scale)
        # While dragging, the card's view position is owned by the gesture.
        if note.state is not InteractionState.DRAGGING:
            view_x, view_y = to_view(transform, note.x, note.y)
            visual.proxy.setPos(view_x, view_y)
        return True

    def _refresh_mask(self):
        self.surface.refresh_mask([visual.proxy for visual in self._visuals.values()])

    # --- Helpers used by the interaction controller ---
    def visual_position(self, note):
        """Returns the card's current top-left in view coordinates."""
        visual = self._visuals.get(note.id)
        if visual is None:
            return to_view(self._oracle.require(), note.x, note.y)
        pos = visual.proxy.pos()
        return pos.x(), pos.y()

    def move_visual(self, note, view_x, view_y):
        visual = self._visuals.get(note.id)
        if visual is None:
            return
        visual.proxy.setPos(view_x, view_y)
        self._refresh_mask()

    def show_editor(self, note):
        visual = self._visuals.get(note.id)
        if visual is not None:
            visual.card.content.show_text(note.text, ContentMode.EDIT)

    def show_rendered(self, note):
        visual = self._visuals.get(note.id)
        if visual is not None:
            visual.card.content.show_text(note.text, ContentMode.VIEW)

    def editor_text(self, note):
        """Returns the text currently in the note's editor (the stored text if not editing)."""
        visual = self._visuals.get(note.id)
        if visual is None or visual.card.content.mode is not ContentMode.EDIT:
            return note.text
        return visual.card.content.toPlainText()

    def view_center(self):
        """Returns the centre of the host viewport in view coordinates."""
        rect = self.surface.sceneRect()
        return rect.width() / 2, rect.height() / 2
