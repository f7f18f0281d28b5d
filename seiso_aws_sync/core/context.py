"""
Контекст запуска pipeline.

Оркестратор создаёт RunContext при каждом start() и сбрасывает его
после остановки. StructuredLogger берёт отсюда run_id, поэтому все
записи одного запуска (из любого потока) можно собрать по нему.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Literal, Optional

TriggerSource = Literal["cli", "service", "test"]


@dataclass(frozen=True)
class RunContext:
    """
    Один запуск pipeline, от start до stop.

    Attributes:
        run_id: Идентификатор запуска (timestamp или короткий uuid)
        started_at: Время запуска
        triggered_by: Кто запустил (cli/service/test)
    """
    run_id: str
    started_at: datetime = field(default_factory=datetime.now)
    triggered_by: TriggerSource = "service"

    @classmethod
    def create(cls, triggered_by: TriggerSource = "service", use_timestamp_id: bool = True) -> "RunContext":
        started_at = datetime.now()
        if use_timestamp_id:
            run_id = started_at.strftime("%Y-%m-%dT%H-%M-%S")
        else:
            run_id = uuid.uuid4().hex[:8]
        return cls(run_id=run_id, started_at=started_at, triggered_by=triggered_by)

    @property
    def elapsed_seconds(self) -> float:
        return (datetime.now() - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "triggered_by": self.triggered_by,
        }


# Один на процесс: Listener и рабочие потоки видят тот же запуск
_current: Optional[RunContext] = None
_lock = threading.Lock()


def get_current_context() -> Optional[RunContext]:
    return _current


def set_current_context(ctx: Optional[RunContext]) -> None:
    """Устанавливает (или сбрасывает при None) контекст текущего запуска."""
    global _current
    with _lock:
        _current = ctx
