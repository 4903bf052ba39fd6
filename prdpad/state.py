from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, cast

from PySide6.QtCore import QSettings

from prdpad.db import SessionLocal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


#: The key for the ID of the note open in the editor.
CURRENT_NOTE_ID = "note:current:id"


class ApplicationState(dict):
    """
    Application state singleton.

    This is a singleton that stores the application state during sessions: the
    SQLAlchemy session, the settings, the main window and the notification
    helpers that the editor uses to report save and delete results.
    """

    _instance: ApplicationState | None = None
    #: The SQLAlchemy session.
    _session: Session | None = None
    #: Settings; the ``autosave/<field>_ms`` keys configure the debounce delays.
    settings: QSettings
    #: Main window; anything with ``show_message`` and ``show_error`` methods.
    main_window: Any = None

    def __new__(cls) -> ApplicationState:  # noqa: PYI034
        """
        Create a new instance of the application state singleton.

        - If the instance is not initialized, initialize it by calling :meth:`reset`.
        - Return the instance.

        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.reset()
        return cast("ApplicationState", cls._instance)

    def __del__(self) -> None:
        """Delete the application state singleton."""
        if self._session is not None:
            self._session.close()
            self._session = None
        self.__class__._instance = None

    @property
    def session(self) -> Session:
        """
        Get the SQLAlchemy session.

        If the session is not initialized, initialize it.

        Returns:
            The SQLAlchemy session.

        """
        if self._session is None:
            self._session = SessionLocal()
        return cast("Session", self._session)

    @session.setter
    def session(self, session: Session) -> None:
        """
        Set the SQLAlchemy session.  This is used for our tests.

        Args:
            session: The SQLAlchemy session to set.

        """
        self._session = session

    def set_main_window(self, main_window: Any) -> None:
        """
        Set the main window.

        Args:
            main_window: The main window to set.

        """
        self.main_window = main_window

    def reset(self) -> None:
        """
        Reset the application state.

        - Close the current session, if any, and set it to ``None``.
        - Set the main window to ``None``.
        - Clear the application state dictionary.
        - Set the settings to a new QSettings object.
        """
        if self._session is not None:
            self._session.close()
        self._session = None
        self.main_window = None
        self.settings = QSettings()
        self.clear()

    def show_message(self, message: str, duration: int = 2000) -> None:
        """
        Show a transient message in the status bar.

        Args:
            message: Message to show

        Keyword Args:
            duration: Duration of the message in milliseconds (default: 2000)

        """
        if self.main_window:
            self.main_window.show_message(message, duration=duration)
        else:
            sys.stderr.write(message + "\n")

    def show_error(self, message: str, title: str = "Error") -> None:
        """
        Show an error message.

        Args:
            message: Message to show

        Keyword Args:
            title: Title of the message

        """
        if self.main_window:
            self.main_window.show_error(message, title)
        else:
            sys.stderr.write(f"[{title}] " + message + "\n")
