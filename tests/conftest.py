import os

import pytest

# Widgets are created without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app


class ManualScheduler:
    """Collects deferred callbacks so tests decide when they run."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay_ms, callback):
        self.pending.append((delay_ms, callback))

    def run_all(self):
        while self.pending:
            _, callback = self.pending.pop(0)
            callback()


@pytest.fixture()
def scheduler():
    return ManualScheduler()
