"""
Orchestrator: жизненный цикл pipeline Listener -> EventMapper ->
custom transformers -> Seiso.

Состояния:
    Stopped -> Starting -> Started -> Stopping -> Stopped
    Starting/Stopping -> Unknown (необратимо для этого экземпляра)

start()/stop() возвращают управление сразу; запуск и остановка идут
в фоновом потоке, завершение сообщается событиями started/stopped
через канал events и callback(error).

Пример использования:
    orchestrator = Orchestrator.from_config(load_config("config.yaml"))
    orchestrator.start(lambda error: print("started", error))
    orchestrator.wait_for_state([OrchestratorState.STARTED], timeout=30)
"""

import threading
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from .aws.clients import AwsClients
from .aws.listener import Listener
from .core.config_schema import AppConfig
from .core.constants import ROTATION_STATUS_DISABLED, ROTATION_STATUS_ENABLED
from .core.context import RunContext, set_current_context
from .core.credentials import AwsCredentials
from .core.events import (
    INSTANCE_ROTATE_IN,
    INSTANCE_ROTATE_OUT,
    MESSAGE,
    STARTED,
    STOP_FAILED,
    STOPPED,
    EventChannel,
    StoppedEvent,
)
from .core.exceptions import (
    ConsistencyError,
    LifecycleError,
    SeisoSyncError,
    TimeoutError,
    ValidationError,
    format_error_for_log,
)
from .core.logging import get_logger
from .core.models import (
    OrchestratorState,
    RotationBatch,
    RotationBatchResult,
    RotationResult,
)
from .core.parallel import first_error, settle_all
from .core.polling import sleep_until
from .mapping.mapper import EventMapper
from .mapping.transformers import CustomTransformer, TransformerChain, load_transformers
from .seiso.client import SeisoClient, record_link

logger = get_logger(__name__)

Callback = Callable[[Optional[BaseException]], None]


class Orchestrator:
    """
    Единый жизненный цикл pipeline.

    Attributes:
        seiso: Клиент Seiso
        listener: Listener очереди
        mapper: EventMapper
        chain: Цепочка custom transformers
        events: Канал событий started / stopped / stop-failed
    """

    def __init__(
        self,
        seiso_client: SeisoClient,
        listener: Listener,
        mapper: EventMapper,
        transformers: Iterable[CustomTransformer] = (),
        max_workers: int = 8,
        stop_timeout: float = 60,
        triggered_by: str = "service",
    ):
        self.seiso = seiso_client
        self.listener = listener
        self.mapper = mapper
        self.chain = TransformerChain(transformers)
        self.max_workers = max_workers
        self.stop_timeout = stop_timeout
        self.triggered_by = triggered_by
        self.events = EventChannel()

        self._state = OrchestratorState.STOPPED
        self._lock = threading.RLock()
        self._rotation_statuses: Dict[str, Dict[str, Any]] = {}
        self._bootstrap_thread: Optional[threading.Thread] = None
        self._stop_cause: Optional[BaseException] = None

    @classmethod
    def from_config(cls, config: AppConfig, triggered_by: str = "service") -> "Orchestrator":
        """Создаёт оркестратор и все компоненты из AppConfig."""
        clients = AwsClients.from_credentials(AwsCredentials.from_config(config.aws))
        listener = Listener(
            clients,
            queue_url=config.listener.queue_url,
            poll_timeout=config.listener.poll_timeout,
            processing_timeout=config.listener.processing_timeout,
        )
        return cls(
            seiso_client=SeisoClient.from_config(config.seiso),
            listener=listener,
            mapper=EventMapper(config.mapper.tag_mappings),
            transformers=load_transformers(config.custom_transformers),
            max_workers=config.orchestrator.max_workers,
            stop_timeout=config.orchestrator.stop_timeout,
            triggered_by=triggered_by,
        )

    # ==================== СОСТОЯНИЕ ====================

    def get_state(self) -> OrchestratorState:
        return self._state

    @property
    def rotation_statuses(self) -> Mapping[str, Dict[str, Any]]:
        """Rotation statuses Seiso по key (загружаются при запуске)."""
        return MappingProxyType(self._rotation_statuses)

    def wait_for_state(self, states: Iterable[OrchestratorState], timeout: float = 20) -> OrchestratorState:
        """
        Ждёт пока оркестратор перейдёт в одно из состояний.

        Raises:
            TimeoutError: Не дождались за timeout секунд
        """
        wanted = set(states)
        sleep_until(lambda: self._state in wanted, max_wait=timeout)
        return self._state

    # ==================== START ====================

    def start(self, callback: Optional[Callback] = None) -> bool:
        """
        Запускает pipeline.

        Args:
            callback: Вызывается один раз: callback(None) после запуска
                или callback(error) если запуск не удался
                (всегда не в потоке вызывающего)

        Returns:
            bool: True если запуск инициирован этим вызовом
        """
        with self._lock:
            state = self._state
            if state in (OrchestratorState.STARTING, OrchestratorState.STOPPED) and callback:
                self._notify_once(callback, STARTED, STOPPED, "Остановлен до завершения запуска")

            if state == OrchestratorState.STOPPED:
                self._state = OrchestratorState.STARTING
                self._stop_cause = None
                self._bootstrap_thread = threading.Thread(
                    target=self._bootstrap,
                    name="seiso-aws-bootstrap",
                    daemon=True,
                )
                self._bootstrap_thread.start()
                logger.info("Запуск pipeline")
                return True

        if state == OrchestratorState.STARTED:
            if callback:
                self._deliver_async(callback, None)
        elif state in (OrchestratorState.STOPPING, OrchestratorState.UNKNOWN):
            logger.warning(f"Запуск невозможен в состоянии {state.value}")
            if callback:
                self._deliver_async(
                    callback,
                    LifecycleError(f"Запуск невозможен в состоянии {state.value}", state=state.value),
                )
        return False

    def _bootstrap(self) -> None:
        set_current_context(RunContext.create(triggered_by=self.triggered_by))
        self._wire_listener()

        calls = {
            "seiso": self.seiso.connect,
            "listener": self.listener.start,
        }
        for transformer in self.chain:
            calls[f"transformer:{transformer.name}"] = transformer.start

        outcomes = settle_all(calls, max_workers=self.max_workers)
        for outcome in outcomes:
            if not outcome.ok:
                logger.error(f"Не удалось запустить {outcome.key}: {format_error_for_log(outcome.error)}")

        error = first_error(outcomes)
        if error is None:
            try:
                self._load_rotation_statuses()
            except SeisoSyncError as e:
                logger.error(f"Не удалось загрузить rotation statuses: {format_error_for_log(e)}")
                error = e

        if error is not None:
            self._unwire_listener()
            self.listener.stop()
            if not self.listener.wait_stopped(self.stop_timeout):
                logger.warning("Listener не остановился после неудачного запуска")

        with self._lock:
            if self._state != OrchestratorState.STARTING:
                # stop() вызван во время запуска, он и завершит переход
                self._stop_cause = error
                return
            self._state = OrchestratorState.STARTED if error is None else OrchestratorState.STOPPED

        if error is None:
            logger.info("Pipeline запущен")
            self.events.emit(STARTED)
        else:
            set_current_context(None)
            self.events.emit(STOPPED, StoppedEvent(error=error))

    def _load_rotation_statuses(self) -> None:
        statuses = {s.get("key"): s for s in self.seiso.get_rotation_statuses() if s.get("key")}
        missing = [k for k in (ROTATION_STATUS_ENABLED, ROTATION_STATUS_DISABLED) if k not in statuses]
        if missing:
            raise ConsistencyError(
                f"В Seiso нет rotation statuses: {', '.join(missing)}",
                resource="rotationStatuses",
                matches=len(statuses),
            )
        self._rotation_statuses = statuses
        logger.info(f"Загружено rotation statuses: {len(statuses)}")

    # ==================== STOP ====================

    def stop(self, callback: Optional[Callback] = None) -> bool:
        """
        Останавливает pipeline.

        Args:
            callback: callback(None) после остановки или callback(error)
                если остановка не удалась (состояние Unknown)
                (всегда не в потоке вызывающего)

        Returns:
            bool: True если остановка инициирована этим вызовом
        """
        with self._lock:
            state = self._state
            if state in (OrchestratorState.STARTING, OrchestratorState.STARTED, OrchestratorState.STOPPING) and callback:
                self._notify_once(callback, STOPPED, STOP_FAILED, "Остановка не удалась")

            if state in (OrchestratorState.STARTING, OrchestratorState.STARTED):
                self._state = OrchestratorState.STOPPING
                threading.Thread(
                    target=self._shutdown,
                    name="seiso-aws-shutdown",
                    daemon=True,
                ).start()
                logger.info("Остановка pipeline")
                return True

        if state == OrchestratorState.STOPPED:
            if callback:
                self._deliver_async(callback, None)
        elif state == OrchestratorState.UNKNOWN:
            if callback:
                self._deliver_async(callback, LifecycleError("Состояние pipeline неизвестно", state=state.value))
        return False

    def _shutdown(self) -> None:
        bootstrap = self._bootstrap_thread
        if bootstrap is not None and bootstrap is not threading.current_thread():
            bootstrap.join()

        self.listener.stop()

        calls = {"listener": self._wait_listener_stopped}
        for transformer in self.chain:
            calls[f"transformer:{transformer.name}"] = transformer.stop

        outcomes = settle_all(calls, max_workers=self.max_workers)
        error = first_error(outcomes)
        self._unwire_listener()

        with self._lock:
            self._state = OrchestratorState.STOPPED if error is None else OrchestratorState.UNKNOWN

        if error is not None:
            logger.error(f"Остановка не удалась, состояние Unknown: {format_error_for_log(error)}")
            self.events.emit(STOP_FAILED, StoppedEvent(error=error))
            return

        logger.info("Pipeline остановлен")
        set_current_context(None)
        self.events.emit(STOPPED, StoppedEvent(error=self._stop_cause))

    def _wait_listener_stopped(self) -> None:
        if not self.listener.wait_stopped(self.stop_timeout):
            raise TimeoutError("Listener не остановился", timeout_seconds=self.stop_timeout)

    def _notify_once(
        self,
        callback: Callback,
        success_event: str,
        failure_event: str,
        default_message: str,
    ) -> None:
        """Подписывает callback на первое из двух событий."""
        notified = threading.Event()

        def on_success(_payload):
            self.events.off(failure_event, on_failure)
            if not notified.is_set():
                notified.set()
                self._deliver(callback, None)

        def on_failure(payload):
            self.events.off(success_event, on_success)
            if not notified.is_set():
                notified.set()
                error = getattr(payload, "error", None)
                self._deliver(callback, error or LifecycleError(default_message, state=self._state.value))

        self.events.once(success_event, on_success)
        self.events.once(failure_event, on_failure)

    @staticmethod
    def _deliver(callback: Callback, error: Optional[BaseException]) -> None:
        """Вызывает callback подписчика; его ошибка не мешает остальным подписчикам."""
        try:
            callback(error)
        except Exception as e:
            logger.exception(f"Callback подписчика завершился ошибкой: {format_error_for_log(e)}")

    def _deliver_async(self, callback: Callback, error: Optional[BaseException]) -> None:
        """Результат без перехода состояния сообщается не в потоке вызывающего."""
        threading.Thread(
            target=self._deliver,
            args=(callback, error),
            name="seiso-aws-callback",
            daemon=True,
        ).start()

    # ==================== СОБЫТИЯ LISTENER ====================

    def _wire_listener(self) -> None:
        self.listener.events.on(MESSAGE, self._on_message)
        self.listener.events.on(INSTANCE_ROTATE_IN, self._on_rotate_in)
        self.listener.events.on(INSTANCE_ROTATE_OUT, self._on_rotate_out)
        self.listener.events.on(STOPPED, self._on_listener_stopped)

    def _unwire_listener(self) -> None:
        self.listener.events.off(MESSAGE, self._on_message)
        self.listener.events.off(INSTANCE_ROTATE_IN, self._on_rotate_in)
        self.listener.events.off(INSTANCE_ROTATE_OUT, self._on_rotate_out)
        self.listener.events.off(STOPPED, self._on_listener_stopped)

    def _on_message(self, message) -> None:
        logger.debug(f"Получено сообщение {message.message_id}")

    def _on_rotate_in(self, batch: RotationBatch) -> None:
        self.rotate_batch(batch, ROTATION_STATUS_ENABLED)

    def _on_rotate_out(self, batch: RotationBatch) -> None:
        self.rotate_batch(batch, ROTATION_STATUS_DISABLED)

    def _on_listener_stopped(self, event: StoppedEvent) -> None:
        with self._lock:
            if self._state != OrchestratorState.STARTED:
                return
            self._stop_cause = event.error
        logger.error(
            "Listener остановился сам, останавливаем pipeline"
            + (f": {format_error_for_log(event.error)}" if event.error else "")
        )
        self.stop()

    # ==================== ROTATION ====================

    def rotate_batch(self, batch: RotationBatch, status_key: str) -> RotationBatchResult:
        """
        Обновляет rotation status всех instances пакета.

        Instances обрабатываются параллельно и независимо. Сообщение
        подтверждается только если успешны все instances.

        Args:
            batch: Пакет из события instance-rotate-in/out
            status_key: enabled / disabled

        Returns:
            RotationBatchResult: Результаты по каждому instance
        """
        status = self._rotation_statuses.get(status_key)
        result = RotationBatchResult(status_key=status_key)
        logger.info(
            f"Rotation status {status_key}: {', '.join(batch.instance_ids)}",
            operation=f"rotate-{status_key}",
        )

        if status is None:
            error = ConsistencyError(
                f"Rotation status {status_key} не загружен",
                resource="rotationStatuses",
                key=status_key,
                matches=0,
            )
            result.results = [
                RotationResult(instance_id=i, success=False, error=error) for i in batch.instance_ids
            ]
        else:
            status_link = record_link(status)
            calls = [partial(self._rotate_instance, instance, status_link) for instance in batch.instances]
            outcomes = settle_all(calls, max_workers=self.max_workers)
            for instance_id, outcome in zip(batch.instance_ids, outcomes):
                if outcome.ok:
                    result.results.append(RotationResult(instance_id=instance_id, success=True, node=outcome.result))
                else:
                    logger.warning(
                        f"Rotation status не обновлён: {format_error_for_log(outcome.error)}",
                        instance=instance_id,
                    )
                    result.results.append(RotationResult(instance_id=instance_id, success=False, error=outcome.error))

        if not result.ok:
            logger.warning(
                f"Ошибок: {len(result.failed)} из {len(result.results)}, сообщение не подтверждается"
            )
            return result

        try:
            self.listener.delete_message(batch.deletion_token)
            result.acknowledged = True
        except SeisoSyncError as e:
            logger.error(f"Не удалось подтвердить сообщение: {format_error_for_log(e)}")
        return result

    def _rotate_instance(self, instance: Dict[str, Any], status_link: str) -> str:
        errors = self.mapper.validate(instance)
        if errors:
            raise ValidationError("Instance details not valid", errors=errors)

        node = self.mapper.translate(instance)
        outcome = self.chain.run(node)
        if not outcome.ok:
            raise outcome.error
        node = outcome.node

        record = self.seiso.find_node(node.name, node.aws_instance_id)
        self.seiso.patch_node_rotation_status(record, status_link)
        logger.info("Rotation status обновлён", instance=node.name, node=record.get("name", node.name))
        return record.get("name", node.name)
