"""
Coalesce - склейка частых записей одной ячейки.

При быстром редактировании одно и то же значение меняется много раз
подряд. WriteCoalescer держит последнее значение для каждой пары
(ключ, язык) и вызывает flush только после паузы window секунд.

Использование:
    coalescer = WriteCoalescer(0.4, lambda key, lang, value: store.write_cell(lang, key, value))
    coalescer.schedule("app.title", "en", "Hello")
    ...
    coalescer.flush()   # при выходе
"""

import logging
import threading
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)

FlushFn = Callable[[str, str, str], None]


class WriteCoalescer:
    """Отложенная запись с таймером на каждую пару (ключ, язык)."""

    def __init__(self, window: float, flush_fn: FlushFn):
        self.window = window
        self._flush_fn = flush_fn
        self._lock = threading.Lock()
        self._pending: Dict[Tuple[str, str], str] = {}
        self._timers: Dict[Tuple[str, str], threading.Timer] = {}

    @property
    def pending(self) -> Dict[Tuple[str, str], str]:
        with self._lock:
            return dict(self._pending)

    def schedule(self, key_id: str, language_code: str, value: str) -> None:
        """Запоминает значение и перезапускает таймер этой ячейки."""
        entry = (key_id, language_code)
        with self._lock:
            timer = self._timers.pop(entry, None)
            if timer is not None:
                timer.cancel()
            self._pending[entry] = value
            timer = threading.Timer(self.window, self._fire)
            timer.args = (entry, timer)
            timer.daemon = True
            self._timers[entry] = timer
            timer.start()

    def _fire(self, entry: Tuple[str, str], timer: threading.Timer) -> None:
        with self._lock:
            # таймер мог быть заменён, пока ждал блокировку
            if self._timers.get(entry) is not timer:
                return
            del self._timers[entry]
            if entry not in self._pending:
                return
            value = self._pending.pop(entry)
            # flush под блокировкой: записи не пересекаются
            self._write(entry, value)

    def _write(self, entry: Tuple[str, str], value: str) -> None:
        key_id, language_code = entry
        try:
            self._flush_fn(key_id, language_code, value)
        except OSError as exc:
            logger.error("Не удалось сохранить %s [%s]: %s", key_id, language_code, exc)

    def flush(self) -> int:
        """
        Немедленно записывает все ожидающие значения.

        Returns:
            Количество записанных ячеек
        """
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            pending, self._pending = self._pending, {}
            for entry, value in pending.items():
                self._write(entry, value)
        return len(pending)

    def cancel(self) -> None:
        """Отбрасывает все ожидающие записи."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()
