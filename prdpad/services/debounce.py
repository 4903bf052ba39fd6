"""Per-field debouncing of note edits."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from PySide6.QtCore import QObject, QSettings, QTimer, Signal

from prdpad.services.document import TRACKED_FIELDS
from prdpad.services.logs import get_logger
from prdpad.state import ApplicationState

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

log = get_logger(__name__)

#: Quiet period for fields not listed in :data:`DEFAULT_DELAYS_MS`.
DEFAULT_DELAY_MS: Final[int] = 500
#: Quiet period per field.  Free text settles slowly, the canvas collection
#: aggregates many small changes and settles slowest.
DEFAULT_DELAYS_MS: Final[dict[str, int]] = {
    "title": 800,
    "content": 800,
    "canvases": 1000,
}
#: QSettings key template for overriding a field's quiet period.
SETTINGS_KEY: Final[str] = "autosave/{field}_ms"


def load_debounce_delays(settings: QSettings | None = None) -> dict[str, int]:
    """
    Get the quiet period of every tracked field.

    Each default can be overridden with the ``autosave/<field>_ms`` setting.

    Keyword Args:
        settings: Settings to read (default: the settings of the
            :class:`~prdpad.state.ApplicationState`)

    Returns:
        Field name to delay in milliseconds

    """
    if settings is None:
        settings = ApplicationState().settings
    delays: dict[str, int] = {}
    for name in TRACKED_FIELDS:
        default = DEFAULT_DELAYS_MS.get(name, DEFAULT_DELAY_MS)
        value = settings.value(SETTINGS_KEY.format(field=name), default, type=int)
        delays[name] = int(value) if int(value) >= 0 else default
    return delays


class DebouncedValue(QObject):
    """
    Forwards the latest of a burst of values once no new value has arrived
    for ``debounce_ms`` milliseconds.

    Args:
        callback: Function called with the settled value
        debounce_ms: Debounce delay in milliseconds

    Keyword Args:
        parent: Parent QObject

    """

    def __init__(
        self,
        callback: Callable[[Any], None],
        debounce_ms: int = DEFAULT_DELAY_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        #: The function to call with the settled value.
        self.callback = callback
        #: The debounce delay in milliseconds.
        self.debounce_ms = debounce_ms
        #: The single-shot timer; restarting it supersedes the pending value.
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._fire)
        #: The latest value not yet forwarded.
        self._value: Any = None
        #: Whether :attr:`_value` is waiting for the timer.
        self._pending = False

    @property
    def pending(self) -> bool:
        """Whether a value is waiting for the quiet period to elapse."""
        return self._pending

    def push(self, value: Any) -> None:
        """
        Replace the pending value and restart the quiet period.
        """
        self._value = value
        self._pending = True
        self._timer.start(self.debounce_ms)

    def flush(self) -> None:
        """
        Forward the pending value now, bypassing the quiet period.
        """
        self._timer.stop()
        self._fire()

    def cancel(self) -> None:
        """
        Drop the pending value without forwarding it.
        """
        self._timer.stop()
        self._value = None
        self._pending = False

    def _fire(self) -> None:
        """
        Forward the pending value, if any.

        Errors raised by the callback are logged; the value is not retried.
        """
        if not self._pending:
            return
        value = self._value
        self._value = None
        self._pending = False
        try:
            self.callback(value)
        except Exception:  # noqa: BLE001
            log.exception("debounce.callback_failed")


class DebounceScheduler(QObject):
    """
    One :class:`DebouncedValue` per tracked note field.

    Values of one field are forwarded in order and only the latest value of a
    burst is forwarded; there is no ordering between different fields.

    Keyword Args:
        delays: Field name to delay in milliseconds (default:
            :func:`load_debounce_delays`)
        parent: Parent QObject

    """

    #: Signal emitted with ``(field name, value)`` when a field settles.
    settled = Signal(str, object)

    def __init__(
        self,
        delays: Mapping[str, int] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        configured = load_debounce_delays() if delays is None else dict(delays)
        #: Debouncer per field.
        self._values: dict[str, DebouncedValue] = {
            name: DebouncedValue(
                self._make_callback(name),
                configured.get(name, DEFAULT_DELAYS_MS.get(name, DEFAULT_DELAY_MS)),
                parent=self,
            )
            for name in TRACKED_FIELDS
        }

    def delay(self, name: str) -> int:
        """The quiet period of field ``name`` in milliseconds."""
        return self._values[name].debounce_ms

    def push(self, name: str, value: Any) -> None:
        """
        Schedule ``value`` for field ``name``.

        Raises:
            KeyError: If ``name`` is not a tracked field

        """
        self._values[name].push(value)

    def has_pending(self) -> bool:
        """Whether any field has a value waiting."""
        return any(value.pending for value in self._values.values())

    def flush_all(self) -> None:
        """Forward every pending value now."""
        for value in self._values.values():
            value.flush()

    def cancel_all(self) -> None:
        """Drop every pending value."""
        for value in self._values.values():
            value.cancel()

    def _make_callback(self, name: str) -> Callable[[Any], None]:
        def forward(value: Any) -> None:
            self.settled.emit(name, value)

        return forward
