"""Tests for restoring the Tk popup from the durable session record."""

from types import SimpleNamespace

import pytest

pytest.importorskip("tkinter")

from pagewarp.gui import PagewarpGUI  # noqa: E402
from pagewarp.preferences import PreferenceStore  # noqa: E402


class FakeRoot:

    def after(self, delay, callback, *args):
        callback(*args)


class FakeVar:

    def __init__(self, value=""):
        self.value = value

    def get(self):
        return self.value

    def set(self, value):
        self.value = value


class FakeButton:

    def __init__(self):
        self.options = {}

    def config(self, **options):
        self.options.update(options)


class FakeProgress(dict):

    def __init__(self):
        super().__init__(value=0)
        self.visible = False

    def grid(self):
        self.visible = True

    def grid_remove(self):
        self.visible = False


def _popup(preferences, target_language=None):
    gui = PagewarpGUI.__new__(PagewarpGUI)
    gui.root = FakeRoot()
    gui.args = SimpleNamespace(target_language=target_language)
    gui.preferences = preferences
    gui.status_var = FakeVar()
    gui.target_language_var = FakeVar("fr")
    gui.start_button = FakeButton()
    gui.progress = FakeProgress()
    return gui


class TestRestoreState:

    def test_running_session_shows_busy_view(self, tmp_path):
        preferences = PreferenceStore(tmp_path / "state.json")
        preferences.update(
            targetLang="de",
            translationInProgress=True,
            translationStatus="Translating... 30% complete",
        )
        gui = _popup(preferences)

        gui._restore_state()

        assert gui.status_var.get() == "Translating... 30% complete"
        assert gui.start_button.options["state"] == "disabled"
        assert gui.target_language_var.get() == "de"

    def test_finished_session_shows_last_status(self, tmp_path):
        preferences = PreferenceStore(tmp_path / "state.json")
        preferences.update(
            targetLang="de",
            translationInProgress=False,
            translationStatus="Translation completed!",
        )
        gui = _popup(preferences, target_language="ja")

        gui._restore_state()

        assert gui.status_var.get() == "Translation completed!"
        assert gui.start_button.options == {}
        assert gui.target_language_var.get() == "fr"
