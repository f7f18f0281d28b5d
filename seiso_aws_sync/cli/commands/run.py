"""
Команда run.

Запускает pipeline и работает до SIGINT/SIGTERM.
"""

import signal
import threading

from ...core.exceptions import SeisoSyncError, format_error_for_log
from ...core.logging import get_logger
from ...core.models import OrchestratorState
from ...orchestrator import Orchestrator

logger = get_logger(__name__)

# Как часто проверять что pipeline ещё работает
WATCH_INTERVAL = 1.0


def cmd_run(args, config) -> int:
    """
    Запуск pipeline.

    Returns:
        int: Код выхода (0 = штатная остановка)
    """
    orchestrator = Orchestrator.from_config(config, triggered_by="cli")
    shutdown = threading.Event()

    def request_shutdown(signum, _frame):
        logger.info(f"Получен сигнал {signum}, останавливаемся")
        shutdown.set()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    start_errors = []
    orchestrator.start(lambda error: start_errors.append(error))
    state = orchestrator.wait_for_state(
        [OrchestratorState.STARTED, OrchestratorState.STOPPED],
        timeout=-1,
    )
    if state != OrchestratorState.STARTED:
        error = next((e for e in start_errors if e is not None), None)
        logger.error(f"Pipeline не запустился: {format_error_for_log(error) if error else state.value}")
        return 1

    logger.info("Pipeline работает, Ctrl+C для остановки")
    while not shutdown.wait(WATCH_INTERVAL):
        if orchestrator.get_state() != OrchestratorState.STARTED:
            break

    orchestrator.stop()
    try:
        state = orchestrator.wait_for_state(
            [OrchestratorState.STOPPED, OrchestratorState.UNKNOWN],
            timeout=config.orchestrator.stop_timeout + WATCH_INTERVAL,
        )
    except SeisoSyncError as e:
        logger.error(f"Pipeline не остановился: {format_error_for_log(e)}")
        return 1

    if state == OrchestratorState.UNKNOWN:
        logger.error("Pipeline остановлен некорректно (состояние Unknown)")
        return 1
    return 0 if shutdown.is_set() else 1
