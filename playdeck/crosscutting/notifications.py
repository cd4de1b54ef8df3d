import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Optional, Tuple


logger = logging.getLogger(__name__)

NOTIFY_LOGGER_NAME = 'playdeck.notify'


class LoggingNotifier:
    """Notifier that records user messages and mirrors them into the log.

    ``echo`` receives ``(level, message)`` for every message, e.g. to print
    them in a terminal.
    """

    def __init__(self, echo: Optional[Callable[[str, str], None]] = None):
        self._logger = logging.getLogger(NOTIFY_LOGGER_NAME)
        self._echo = echo
        self.messages: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self._emit('info', logging.INFO, message)

    def warn(self, message: str) -> None:
        self._emit('warning', logging.WARNING, message)

    def error(self, message: str) -> None:
        self._emit('error', logging.ERROR, message)

    def drain(self) -> List[Tuple[str, str]]:
        """Return and forget the messages recorded so far."""
        drained, self.messages = self.messages, []
        return drained

    def _emit(self, level: str, levelno: int, message: str) -> None:
        self.messages.append((level, message))
        self._logger.log(levelno, message)
        if self._echo is not None:
            self._echo(level, message)


class SignalBus:
    """In-process topic bus for refresh signals.

    Emitting is fire-and-forget: a failing subscriber is logged and the
    remaining subscribers still run.
    """

    def __init__(self):
        self._subscribers: DefaultDict[str, List[Callable[[str], None]]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Callable[[str], None]) -> None:
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable[[str], None]) -> None:
        if callback in self._subscribers.get(topic, []):
            self._subscribers[topic].remove(callback)

    def emit(self, topic: str) -> None:
        for callback in list(self._subscribers.get(topic, [])):
            try:
                callback(topic)
            except Exception as e:
                logger.error(f"Subscriber for '{topic}' failed: {e}")
