"""
Listener: long-poll SQS очереди с событиями регистрации в ELB.

Один поток опроса: следующий receive_message не выполняется, пока
текущее сообщение (включая обработчики событий) не обработано.
Сообщения с событиями rotate-in/rotate-out не удаляются из очереди
автоматически: подтверждение (delete_message) делает потребитель
события после успешной обработки.

Пример использования:
    listener = Listener(clients, queue_url)
    listener.events.on(INSTANCE_ROTATE_IN, handler)
    listener.start()
    ...
    listener.stop()
    listener.wait_stopped(timeout=30)
"""

import threading
from typing import Any, Dict, List, Optional

from ..core.constants import MAX_POLL_TIMEOUT
from ..core.events import (
    INSTANCE_ROTATE_IN,
    INSTANCE_ROTATE_OUT,
    MESSAGE,
    STARTED,
    STOPPED,
    EventChannel,
    StoppedEvent,
)
from ..core.exceptions import (
    ConfigError,
    FatalAuthError,
    SeisoSyncError,
    ValidationError,
    format_error_for_log,
)
from ..core.logging import get_logger
from ..core.models import ListenerState, QueueMessage, RotationBatch
from .clients import AwsClients, call_aws
from .events import EventKind, classify_event, parse_envelope, validate_registration_event

logger = get_logger(__name__)


class Listener:
    """
    Цикл опроса очереди.

    Attributes:
        events: Канал событий (started, stopped, message,
            instance-rotate-in, instance-rotate-out)
    """

    def __init__(
        self,
        clients: AwsClients,
        queue_url: str,
        poll_timeout: int = MAX_POLL_TIMEOUT,
        processing_timeout: Optional[int] = None,
    ):
        """
        Args:
            clients: boto3 клиенты
            queue_url: URL SQS очереди
            poll_timeout: WaitTimeSeconds long-poll (0..20)
            processing_timeout: VisibilityTimeout (None = настройка очереди)
        """
        self.clients = clients
        self.queue_url = queue_url
        self.poll_timeout = max(0, min(poll_timeout, MAX_POLL_TIMEOUT))
        self.processing_timeout = processing_timeout
        self.events = EventChannel()

        self._state = ListenerState.STOPPED
        self._listen = False
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._stopped.set()
        self._log = logger.bind(queue=queue_url)

    @property
    def state(self) -> ListenerState:
        return self._state

    # ==================== ЖИЗНЕННЫЙ ЦИКЛ ====================

    def start(self) -> None:
        """
        Запускает поток опроса. Повторный вызов при работающем Listener ничего не делает.

        Raises:
            ConfigError: queue_url не указан
        """
        if not self.queue_url:
            raise ConfigError("Не указан URL очереди", key="listener.queue_url")

        with self._lock:
            # Поток опроса ещё не вышел, если stopped не обработан
            if self._state != ListenerState.STOPPED or not self._stopped.is_set():
                self._log.debug(f"Listener уже в состоянии {self._state.value}")
                return
            self._state = ListenerState.STARTED
            self._listen = True
            self._stopped.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="seiso-aws-listener",
                daemon=True,
            )
            self._thread.start()

        self._log.info("Listener запущен")
        self.events.emit(STARTED)

    def stop(self) -> None:
        """
        Просит поток опроса остановиться.

        Текущий опрос и обработка сообщения доводятся до конца;
        событие stopped придёт после выхода из цикла.
        """
        with self._lock:
            if self._state != ListenerState.STARTED:
                return
            self._state = ListenerState.STOPPING
            self._listen = False
        self._log.info("Listener останавливается")

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Ждёт остановки потока опроса. False если не дождались."""
        return self._stopped.wait(timeout)

    def _run(self) -> None:
        error = None
        try:
            while self._listen:
                try:
                    self.try_read()
                except FatalAuthError as e:
                    self._log.error(f"Фатальная ошибка, Listener останавливается: {format_error_for_log(e)}")
                    error = e
                    self.stop()
                except SeisoSyncError as e:
                    self._log.warning(f"Ошибка обработки сообщения: {format_error_for_log(e)}")
                except Exception as e:
                    self._log.exception(f"Непредвиденная ошибка обработки сообщения: {format_error_for_log(e)}")
        finally:
            self._finish(error)

    def _finish(self, error: Optional[BaseException]) -> None:
        with self._lock:
            self._state = ListenerState.STOPPED
            self._listen = False
        self._log.info("Listener остановлен")
        try:
            self.events.emit(STOPPED, StoppedEvent(error=error))
        finally:
            # wait_stopped() возвращается после обработчиков stopped
            self._stopped.set()

    # ==================== ОПРОС ====================

    def try_read(self) -> Optional[QueueMessage]:
        """
        Одна итерация: long-poll одного сообщения и его обработка.

        Returns:
            QueueMessage или None если очередь пуста

        Raises:
            FatalAuthError: Ошибка credentials/авторизации AWS
            TransientError: Прочие ошибки AWS
            ValidationError: Невалидное событие
        """
        params: Dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": 1,
            "WaitTimeSeconds": self.poll_timeout,
        }
        if self.processing_timeout is not None:
            params["VisibilityTimeout"] = self.processing_timeout

        self._log.debug("Чтение из очереди")
        response = call_aws("sqs", self.clients.sqs.receive_message, **params)
        messages = response.get("Messages") or []
        if not messages:
            return None

        message = QueueMessage.from_sqs(messages[0])
        self.process_message(message)
        return message

    def process_message(self, message: QueueMessage) -> EventKind:
        """
        Классифицирует сообщение и публикует семантическое событие.

        Нераспознанные сообщения подтверждаются (удаляются) сразу.

        Returns:
            EventKind: Классификация сообщения
        """
        self.events.emit(MESSAGE, message)

        event = parse_envelope(message.body)
        if event is None:
            self._log.warning(f"Не удалось разобрать сообщение {message.message_id}")

        kind = classify_event(event)
        if kind == EventKind.IGNORED:
            self._log.info(f"Сообщение {message.message_id} не является регистрацией в ELB, удаляем")
            self.delete_message(message.deletion_token)
            return kind

        registration = validate_registration_event(event)
        self._log.info(
            f"{registration.event_name}: {', '.join(registration.instance_ids)} "
            f"в {registration.load_balancer}"
        )

        self.resolve_load_balancers(registration.instance_ids[0])
        instances = self.describe_instances(registration.instance_ids)
        for instance in instances:
            instance["region"] = registration.region

        batch = RotationBatch(
            deletion_token=message.deletion_token,
            instances=instances,
            load_balancer=registration.load_balancer,
        )
        event_name = INSTANCE_ROTATE_IN if kind == EventKind.ROTATE_IN else INSTANCE_ROTATE_OUT
        self.events.emit(event_name, batch)
        return kind

    def delete_message(self, deletion_token: str) -> None:
        """Подтверждает сообщение (удаляет из очереди)."""
        self._log.debug("Удаление сообщения из очереди")
        call_aws(
            "sqs",
            self.clients.sqs.delete_message,
            QueueUrl=self.queue_url,
            ReceiptHandle=deletion_token,
        )

    # ==================== КОНТЕКСТ AWS ====================

    def resolve_load_balancers(self, instance_id: str) -> List[Dict[str, Any]]:
        """
        Classic ELB, в которых зарегистрирован instance.

        Пустой результат не ошибка: после дерегистрации instance
        в балансировщике уже нет.

        Raises:
            ValidationError: Instance входит в autoscaling group
        """
        response = call_aws(
            "autoscaling",
            self.clients.autoscaling.describe_auto_scaling_instances,
            InstanceIds=[instance_id],
        )
        if response.get("AutoScalingInstances"):
            raise ValidationError(
                "Autoscaled instances не поддерживаются",
                errors=[f"{instance_id} входит в autoscaling group"],
            )

        paginator = self.clients.elb.get_paginator("describe_load_balancers")
        pages = call_aws("elb", lambda: list(paginator.paginate()))

        load_balancers = [
            lb
            for page in pages
            for lb in page.get("LoadBalancerDescriptions", [])
            if any(i.get("InstanceId") == instance_id for i in lb.get("Instances", []))
        ]
        if not load_balancers:
            self._log.warning(f"Для {instance_id} не найдено load balancers", instance=instance_id)
        return load_balancers

    def describe_instances(self, instance_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Детали EC2 instances.

        Raises:
            ValidationError: Ответ EC2 содержит instance без InstanceId
        """
        response = call_aws(
            "ec2",
            self.clients.ec2.describe_instances,
            InstanceIds=instance_ids,
        )
        instances = []
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if not instance.get("InstanceId"):
                    raise ValidationError("EC2 вернул instance без InstanceId")
                instances.append(instance)
        return instances
