"""Startup of the note engine inside a host application."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QCoreApplication, QSettings

from prdpad import __version__
from prdpad.db import apply_migrations
from prdpad.services.editor import NoteEditorSession
from prdpad.services.gateway import SQLNoteGateway
from prdpad.services.logs import configure_logging, get_logger
from prdpad.state import ApplicationState

if TYPE_CHECKING:
    from PySide6.QtCore import QObject

log = get_logger(__name__)


def initialize(main_window: Any = None) -> ApplicationState:
    """
    Prepare the engine: identify the application to ``QSettings``, configure
    logging, bring the database schema up to date and register the window
    that shows notifications.

    This should be called once on application startup, before any
    :class:`~prdpad.services.editor.NoteEditorSession` is created.

    Keyword Args:
        main_window: Anything with ``show_message`` and ``show_error`` methods

    Returns:
        The application state

    """
    QCoreApplication.setOrganizationName("prdpad")
    QCoreApplication.setApplicationName("prdpad")
    QCoreApplication.setApplicationVersion(__version__)
    configure_logging()
    apply_migrations()
    state = ApplicationState()
    state.settings = QSettings()
    if main_window is not None:
        state.set_main_window(main_window)
    log.info("application.initialized", version=__version__)
    return state


def create_editor_session(
    state: ApplicationState | None = None, parent: QObject | None = None
) -> NoteEditorSession:
    """
    Create an editor session that saves through the application's database
    session, with the debounce delays configured in its settings.

    Keyword Args:
        state: The application state (default: the singleton)
        parent: Parent QObject

    Returns:
        A new, closed editor session

    """
    if state is None:
        state = ApplicationState()
    return NoteEditorSession(SQLNoteGateway(state.session), state=state, parent=parent)
