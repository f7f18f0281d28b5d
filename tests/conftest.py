"""
Pytest configuration и общие fixtures для тестов.

Предоставляет переиспользуемые fixtures:
- seiso_api: Фейковый Seiso API (маршрутизация запросов requests.Session)
- seiso_client: SeisoClient поверх seiso_api
- make_record / hal_page: Записи и коллекции в формате HAL
- node_record: Валидный NodeRecord
- aws_clients: Mock boto3 клиентов
- ec2_instance: Детали EC2 instance (describe_instances)
- mock_seiso / mock_listener / orchestrator: Orchestrator на mock компонентах
"""

import json
import threading
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from seiso_aws_sync.aws.clients import AwsClients
from seiso_aws_sync.core.constants import AWS_INSTANCE_ID_TAG
from seiso_aws_sync.core.events import EventChannel
from seiso_aws_sync.core.models import NodeRecord
from seiso_aws_sync.mapping.mapper import EventMapper
from seiso_aws_sync.orchestrator import Orchestrator
from seiso_aws_sync.seiso.client import SeisoClient

SEISO_URL = "https://seiso.test/api"


def make_record(resource: str, record_id: Any, **fields) -> Dict[str, Any]:
    """Запись Seiso с self-ссылкой."""
    return {**fields, "_links": {"self": {"href": f"{SEISO_URL}/{resource}/{record_id}"}}}


def hal_page(name: str, items: List[Dict[str, Any]], total_pages: int = 1) -> Dict[str, Any]:
    """Страница коллекции в формате HAL."""
    return {
        "_embedded": {name: items},
        "page": {"size": 500, "totalElements": len(items), "totalPages": total_pages},
    }


def make_response(status_code: int = 200, data: Any = None) -> MagicMock:
    """Mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    body = json.dumps(data) if data is not None else ""
    response.content = body.encode("utf-8")
    response.text = body
    response.json.return_value = data
    return response


class FakeSeisoApi:
    """
    Маршрутизатор запросов для mock requests.Session.

    Ответы задаются по (method, path). Если для маршрута задано
    несколько ответов, они выдаются по очереди, последний повторяется.
    Незаданный маршрут отвечает 404.
    """

    def __init__(self):
        self.session = MagicMock()
        self.session.request.side_effect = self._handle
        self._routes: Dict[tuple, list] = {}
        self._lock = threading.Lock()

    def route(self, method: str, path: str, *responses: Any) -> None:
        """
        Args:
            responses: dict/list (200 с телом), (status, body), готовый
                response, исключение или None (204 без тела)
        """
        self._routes[(method, path)] = list(responses)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[Dict[str, Any]]:
        """Выполненные запросы (с фильтром по method/path)."""
        result = []
        for call in self.session.request.call_args_list:
            call_method, url = call.args[0], call.args[1]
            call_path = url[len(SEISO_URL):].lstrip("/")
            if method and call_method != method:
                continue
            if path is not None and call_path != path:
                continue
            result.append({
                "method": call_method,
                "path": call_path,
                "params": call.kwargs.get("params"),
                "json": call.kwargs.get("json"),
            })
        return result

    def _handle(self, method, url, params=None, json=None, **kwargs):
        path = url[len(SEISO_URL):].lstrip("/")
        with self._lock:
            queue = self._routes.get((method, path))
            if not queue:
                return make_response(404, {"message": "Not Found"})
            reply = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(reply, BaseException):
            raise reply
        if hasattr(reply, "status_code"):
            return reply
        if reply is None:
            return make_response(204)
        if isinstance(reply, tuple):
            return make_response(*reply)
        return make_response(200, reply)


@pytest.fixture
def seiso_api() -> FakeSeisoApi:
    """Фейковый Seiso API."""
    return FakeSeisoApi()


@pytest.fixture
def seiso_client(seiso_api) -> SeisoClient:
    """SeisoClient, работающий через seiso_api."""
    return SeisoClient(
        url=SEISO_URL,
        username="seiso-user",
        password="secret",
        session=seiso_api.session,
        max_workers=4,
    )


@pytest.fixture
def node_record() -> NodeRecord:
    """Валидный NodeRecord после EventMapper и transformers."""
    return NodeRecord(
        name="i-0abc",
        machine_name="ip-10-0-0-5.us-west-2.compute.internal",
        hostname="ip-10-0-0-5",
        domain="us-west-2.compute.internal",
        tags={AWS_INSTANCE_ID_TAG: "i-0abc"},
        service="web",
        environment="aws-test",
        environment_type="test",
        ports=[80, 443],
        ip_address="10.0.0.5",
    )


@pytest.fixture
def aws_clients() -> AwsClients:
    """
    Mock boto3 клиентов.

    По умолчанию: очередь пуста, instance не в autoscaling group,
    load balancers нет.
    """
    clients = AwsClients(
        sqs=MagicMock(),
        ec2=MagicMock(),
        elb=MagicMock(),
        autoscaling=MagicMock(),
        region="us-west-2",
    )
    clients.sqs.receive_message.return_value = {}
    clients.autoscaling.describe_auto_scaling_instances.return_value = {"AutoScalingInstances": []}
    clients.elb.get_paginator.return_value.paginate.return_value = [{"LoadBalancerDescriptions": []}]
    clients.ec2.describe_instances.return_value = {"Reservations": []}
    return clients


@pytest.fixture
def ec2_instance():
    """Фабрика деталей EC2 instance."""
    def _make(instance_id: str = "i-0abc", **overrides) -> Dict[str, Any]:
        instance = {
            "InstanceId": instance_id,
            "PrivateDnsName": f"ip-10-0-0-5.{instance_id}.compute.internal",
            "PrivateIpAddress": "10.0.0.5",
            "Tags": [],
        }
        instance.update(overrides)
        return instance
    return _make


# =============================================================================
# ORCHESTRATOR
# =============================================================================

ROTATION_STATUSES = [
    make_record("rotationStatuses", 1, key="enabled"),
    make_record("rotationStatuses", 2, key="disabled"),
    make_record("rotationStatuses", 3, key="excluded"),
]


@pytest.fixture
def mock_seiso():
    """Mock SeisoClient: подключение и rotation statuses в порядке."""
    client = MagicMock()
    client.get_rotation_statuses.return_value = list(ROTATION_STATUSES)
    client.find_node.side_effect = lambda name, instance_id=None: make_record("nodes", name, name=name)
    return client


@pytest.fixture
def mock_listener():
    """Mock Listener с настоящим каналом событий."""
    listener = MagicMock()
    listener.events = EventChannel()
    listener.wait_stopped.return_value = True
    return listener


@pytest.fixture
def orchestrator(mock_seiso, mock_listener):
    return Orchestrator(
        seiso_client=mock_seiso,
        listener=mock_listener,
        mapper=EventMapper(),
        max_workers=4,
        stop_timeout=1,
        triggered_by="test",
    )
