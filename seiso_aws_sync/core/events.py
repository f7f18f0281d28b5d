"""
Канал событий между компонентами.

Подписка "много слушателей на одно событие". Обработчики вызываются
синхронно в потоке, который вызвал emit, в порядке подписки.

Пример использования:
    channel = EventChannel()
    channel.on(INSTANCE_ROTATE_IN, handler)
    channel.once(STOPPED, lambda event: print(event.error))
    channel.emit(INSTANCE_ROTATE_IN, batch)
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .logging import get_logger

logger = get_logger(__name__)

# Имена событий
STARTED = "started"
STOPPED = "stopped"
STOP_FAILED = "stop-failed"
MESSAGE = "message"
INSTANCE_ROTATE_IN = "instance-rotate-in"
INSTANCE_ROTATE_OUT = "instance-rotate-out"

Handler = Callable[[Any], None]


@dataclass
class StoppedEvent:
    """Payload события stopped. error: причина остановки (None при штатной)."""
    error: Optional[BaseException] = None


class EventChannel:
    """
    Канал событий с типизированными payload.

    Потокобезопасен: подписка/отписка и emit могут идти из разных потоков.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # event -> [(handler, once)]
        self._handlers: Dict[str, List[Tuple[Handler, bool]]] = {}

    def on(self, event: str, handler: Handler) -> None:
        """Подписывает handler на событие."""
        with self._lock:
            self._handlers.setdefault(event, []).append((handler, False))

    def once(self, event: str, handler: Handler) -> None:
        """Подписывает handler на одно срабатывание события."""
        with self._lock:
            self._handlers.setdefault(event, []).append((handler, True))

    def off(self, event: str, handler: Handler) -> None:
        """Отписывает handler (все его подписки на событие)."""
        with self._lock:
            handlers = self._handlers.get(event, [])
            # bound method создаётся заново при каждом обращении, сравниваем по ==
            self._handlers[event] = [h for h in handlers if h[0] != handler]

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, []))

    def emit(self, event: str, payload: Any = None) -> int:
        """
        Вызывает обработчики события.

        Once-обработчики снимаются до вызова, поэтому повторный emit
        из обработчика их не вызовет. Исключение обработчика
        пробрасывается вызывающему emit.

        Returns:
            int: Количество вызванных обработчиков
        """
        with self._lock:
            handlers = list(self._handlers.get(event, []))
            if any(once for _, once in handlers):
                self._handlers[event] = [h for h in handlers if not h[1]]

        for handler, _ in handlers:
            handler(payload)

        if handlers:
            logger.debug(f"Событие {event}: обработчиков {len(handlers)}")
        return len(handlers)
