import sys
import json
import logging

from PySide6.QtWidgets import (
    QApplication, QFileDialog, QGraphicsItem, QGraphicsRectItem, QGraphicsScene,
    QGraphicsSimpleTextItem, QGraphicsView, QMainWindow, QMessageBox
)
from PySide6.QtCore import Qt, QRectF
from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QGuiApplication, QKeySequence, QPainter, QPen

import sticky_config as config
from sticky_host import GraphicsViewHost
from sticky_session import OverlaySession

logger = logging.getLogger(__name__)


class DemoNode(QGraphicsRectItem):
    """A movable labelled box standing in for a node of the host graph."""

    def __init__(self, title, x, y, width=180, height=70):
        super().__init__(0, 0, width, height)
        self.title = title
        self.setPos(x, y)
        self.setBrush(QBrush(QColor("#2d2d2d")))
        self.setPen(QPen(QColor("#555555"), 1))
        self.setFlags(QGraphicsItem.GraphicsItemFlag.ItemIsMovable |
                      QGraphicsItem.GraphicsItemFlag.ItemIsSelectable)
        label = QGraphicsSimpleTextItem(title, self)
        label.setBrush(QBrush(QColor("#dddddd")))
        label.setPos(10, 10)


class DemoDocument:
    """
    The host document: a list of nodes plus the open-ended `extra` section
    that extensions may write into.
    """
    def __init__(self, scene):
        self.scene = scene
        self.extra = {}

    def serialize(self):
        nodes = [
            {"title": item.title, "x": item.pos().x(), "y": item.pos().y()}
            for item in self.scene.items() if isinstance(item, DemoNode)
        ]
        return {"nodes": nodes, "extra": dict(self.extra)}

    def load(self, data):
        self.scene.clear()
        for node in data.get("nodes", []):
            self.scene.addItem(DemoNode(node.get("title", "Node"), node.get("x", 0), node.get("y", 0)))
        extra = data.get("extra")
        # Sticky notes are restored by their own hook, everything else is kept here.
        self.extra = {k: v for k, v in extra.items() if k != config.EXTENSION_KEY} \
            if isinstance(extra, dict) else {}


class DemoCanvas(QGraphicsView):
    """
    A pannable, zoomable graph canvas. Middle mouse drags the view and
    Ctrl+wheel zooms, keeping the zoom within sane bounds.
    """
    def __init__(self, scene, parent=None):
        super().__init__(scene, parent)
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setDragMode(QGraphicsView.DragMode.RubberBandDrag)
        self.setBackgroundBrush(QBrush(QColor("#1e1e1e")))
        # Large scene rect so the view can be panned freely.
        self.setSceneRect(QRectF(-10000, -10000, 20000, 20000))

        self._panning = False
        self._last_mouse_pos = None
        self._zoom_factor = 1.0

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.MiddleButton:
            self._panning = True
            self._last_mouse_pos = event.position().toPoint()
            QApplication.setOverrideCursor(Qt.CursorShape.ClosedHandCursor)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        # The release may have happened outside the window.
        if self._panning and not (QGuiApplication.mouseButtons() & Qt.MouseButton.MiddleButton):
            self._stop_panning()

        if self._panning and self._last_mouse_pos is not None:
            delta = event.position().toPoint() - self._last_mouse_pos
            self.horizontalScrollBar().setValue(self.horizontalScrollBar().value() - delta.x())
            self.verticalScrollBar().setValue(self.verticalScrollBar().value() - delta.y())
            self._last_mouse_pos = event.position().toPoint()
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._panning:
            self._stop_panning()
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def _stop_panning(self):
        self._panning = False
        self._last_mouse_pos = None
        QApplication.restoreOverrideCursor()

    def wheelEvent(self, event):
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            factor = 1.1 if event.angleDelta().y() > 0 else 0.9
            new_zoom_factor = self._zoom_factor * factor
            if 0.1 <= new_zoom_factor <= 4.0:
                self.scale(factor, factor)
                self._zoom_factor = new_zoom_factor
            return
        super().wheelEvent(event)


class DemoWindow(QMainWindow):
    """Main window hosting the demo canvas, with JSON open/save."""

    def __init__(self):
        super().__init__()
        self.setWindowTitle("Sticky Notes")
        self.resize(1200, 800)

        self.scene = QGraphicsScene(self)
        self.view = DemoCanvas(self.scene, self)
        self.setCentralWidget(self.view)
        self.document = DemoDocument(self.scene)
        self.session = None

        for index, (x, y) in enumerate([(-300, -120), (0, 40), (280, -60)]):
            self.scene.addItem(DemoNode(f"Node {index + 1}", x, y))

        file_menu = self.menuBar().addMenu("&File")
        open_action = QAction("&Open...", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_document)
        file_menu.addAction(open_action)
        save_action = QAction("&Save...", self)
        save_action.setShortcut(QKeySequence.StandardKey.Save)
        save_action.triggered.connect(self.save_document)
        file_menu.addAction(save_action)

        theme_menu = self.menuBar().addMenu("&Theme")
        theme_group = QActionGroup(self)
        for name in config.THEMES:
            theme_action = QAction(name.capitalize(), self, checkable=True)
            theme_action.setChecked(name == config.CURRENT_THEME)
            theme_action.triggered.connect(lambda checked=False, n=name: self.set_theme(n))
            theme_group.addAction(theme_action)
            theme_menu.addAction(theme_action)

        self.statusBar().showMessage(
            "Hold T and click to add a note. Double-click a note to edit. "
            "Middle-drag to pan, Ctrl+wheel to zoom."
        )

    def set_theme(self, name):
        config.apply_theme(name)
        if self.session is not None:
            self.session.refresh()

    def save_document(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save Document", "", "JSON Files (*.json)")
        if not path:
            return
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.document.serialize(), f, indent=2)
        except OSError as e:
            QMessageBox.critical(self, "Save Failed", f"Could not save the document.\n\nError: {e}")
            return
        logger.info("Saved document to %s", path)

    def open_document(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Document", "", "JSON Files (*.json)")
        if not path:
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Open Failed", f"Could not open the document.\n\nError: {e}")
            return
        if not isinstance(data, dict):
            QMessageBox.critical(self, "Open Failed", "The file is not a document.")
            return
        self.document.load(data)
        logger.info("Loaded document from %s", path)


def main():
    """
    Runs the demo host application with the sticky notes overlay attached.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(True)

    main_window = DemoWindow()
    main_window.show()

    session = OverlaySession(GraphicsViewHost(lambda: main_window.view), document=main_window.document)
    main_window.session = session
    session.attach()
    app.aboutToQuit.connect(session.detach)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
