"""
Тесты Listener (aws/listener.py).

Покрывает:
- Нераспознанные сообщения удаляются и не порождают событий rotate
- Маршрутизацию register -> rotate-in, deregister -> rotate-out
- Отказ для instances из autoscaling group
- Цикл опроса: фатальные ошибки останавливают, остальные нет
"""

import json
import threading

import pytest
from botocore.exceptions import ClientError

from seiso_aws_sync.aws.events import EventKind
from seiso_aws_sync.aws.listener import Listener
from seiso_aws_sync.core.events import (
    INSTANCE_ROTATE_IN,
    INSTANCE_ROTATE_OUT,
    MESSAGE,
    STARTED,
    STOPPED,
)
from seiso_aws_sync.core.exceptions import ConfigError, FatalAuthError, ValidationError
from seiso_aws_sync.core.models import ListenerState, QueueMessage

QUEUE_URL = "https://sqs.us-west-2.amazonaws.com/123456789012/elb-events"


def registration_body(event_name="RegisterInstancesWithLoadBalancer", instances=("i-1", "i-2")):
    return json.dumps({
        "detail-type": "AWS API Call via CloudTrail",
        "region": "us-west-2",
        "detail": {
            "eventName": event_name,
            "requestParameters": {
                "loadBalancerName": "web-lb",
                "instances": [{"instanceId": i} for i in instances],
            },
        },
    })


def sqs_message(body, receipt="rh-1"):
    return {"Messages": [{"Body": body, "ReceiptHandle": receipt, "MessageId": "m-1"}]}


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "ReceiveMessage")


@pytest.fixture
def listener(aws_clients):
    return Listener(aws_clients, QUEUE_URL, poll_timeout=0)


@pytest.fixture
def recorder(listener):
    """Собирает события Listener."""
    seen = {name: [] for name in (MESSAGE, INSTANCE_ROTATE_IN, INSTANCE_ROTATE_OUT, STARTED, STOPPED)}
    for name, items in seen.items():
        listener.events.on(name, items.append)
    return seen


@pytest.fixture
def with_instances(aws_clients, ec2_instance):
    aws_clients.ec2.describe_instances.return_value = {
        "Reservations": [{"Instances": [ec2_instance("i-1"), ec2_instance("i-2")]}],
    }
    return aws_clients


# =============================================================================
# PROCESS MESSAGE
# =============================================================================


class TestProcessMessage:
    """Тесты process_message."""

    @pytest.mark.parametrize("body", [
        "not json",
        json.dumps({"detail-type": "EC2 Instance State-change Notification", "detail": {}}),
        registration_body("CreateLoadBalancer"),
    ])
    def test_discard_ignored(self, listener, aws_clients, recorder, body):
        """Нераспознанное сообщение удаляется сразу, rotate событий нет."""
        kind = listener.process_message(QueueMessage(body=body, deletion_token="rh-1"))

        assert kind == EventKind.IGNORED
        aws_clients.sqs.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")
        assert recorder[INSTANCE_ROTATE_IN] == []
        assert recorder[INSTANCE_ROTATE_OUT] == []
        assert len(recorder[MESSAGE]) == 1

    def test_register_routes_rotate_in(self, listener, with_instances, recorder):
        kind = listener.process_message(QueueMessage(body=registration_body(), deletion_token="rh-7"))

        assert kind == EventKind.ROTATE_IN
        assert recorder[INSTANCE_ROTATE_OUT] == []
        batch = recorder[INSTANCE_ROTATE_IN][0]
        assert batch.instance_ids == ["i-1", "i-2"]
        assert batch.deletion_token == "rh-7"
        assert batch.load_balancer == "web-lb"
        assert all(i["region"] == "us-west-2" for i in batch.instances)
        # Подтверждение делает потребитель события
        with_instances.sqs.delete_message.assert_not_called()

    def test_deregister_routes_rotate_out(self, listener, with_instances, recorder):
        body = registration_body("DeregisterInstancesFromLoadBalancer")

        kind = listener.process_message(QueueMessage(body=body, deletion_token="rh-1"))

        assert kind == EventKind.ROTATE_OUT
        assert recorder[INSTANCE_ROTATE_IN] == []
        assert len(recorder[INSTANCE_ROTATE_OUT]) == 1
        with_instances.ec2.describe_instances.assert_called_once_with(InstanceIds=["i-1", "i-2"])

    def test_autoscaled_rejected(self, listener, aws_clients, recorder):
        """Instances из autoscaling group не поддерживаются."""
        aws_clients.autoscaling.describe_auto_scaling_instances.return_value = {
            "AutoScalingInstances": [{"InstanceId": "i-1", "AutoScalingGroupName": "asg"}],
        }

        with pytest.raises(ValidationError):
            listener.process_message(QueueMessage(body=registration_body(), deletion_token="rh-1"))

        assert recorder[INSTANCE_ROTATE_IN] == []
        aws_clients.sqs.delete_message.assert_not_called()

    def test_invalid_registration(self, listener, aws_clients):
        with pytest.raises(ValidationError):
            listener.process_message(QueueMessage(body=registration_body(instances=()), deletion_token="rh"))
        aws_clients.ec2.describe_instances.assert_not_called()


class TestAwsContext:
    """Тесты resolve_load_balancers / describe_instances."""

    def test_resolve_load_balancers(self, listener, aws_clients):
        aws_clients.elb.get_paginator.return_value.paginate.return_value = [
            {"LoadBalancerDescriptions": [
                {"LoadBalancerName": "web-lb", "Instances": [{"InstanceId": "i-1"}]},
                {"LoadBalancerName": "api-lb", "Instances": [{"InstanceId": "i-9"}]},
            ]},
            {"LoadBalancerDescriptions": [
                {"LoadBalancerName": "admin-lb", "Instances": [{"InstanceId": "i-1"}]},
            ]},
        ]

        names = [lb["LoadBalancerName"] for lb in listener.resolve_load_balancers("i-1")]

        assert names == ["web-lb", "admin-lb"]
        aws_clients.elb.get_paginator.assert_called_once_with("describe_load_balancers")

    def test_no_load_balancers(self, listener):
        assert listener.resolve_load_balancers("i-1") == []

    def test_instance_without_id(self, listener, aws_clients):
        aws_clients.ec2.describe_instances.return_value = {"Reservations": [{"Instances": [{}]}]}
        with pytest.raises(ValidationError):
            listener.describe_instances(["i-1"])


# =============================================================================
# POLL LOOP
# =============================================================================


class TestTryRead:
    """Тесты try_read."""

    def test_empty_queue(self, listener, aws_clients):
        assert listener.try_read() is None
        aws_clients.sqs.receive_message.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            MaxNumberOfMessages=1,
            WaitTimeSeconds=0,
        )

    def test_visibility_timeout(self, aws_clients):
        listener = Listener(aws_clients, QUEUE_URL, poll_timeout=60, processing_timeout=120)
        listener.try_read()

        kwargs = aws_clients.sqs.receive_message.call_args.kwargs
        assert kwargs["WaitTimeSeconds"] == 20
        assert kwargs["VisibilityTimeout"] == 120

    def test_reads_and_processes(self, listener, aws_clients):
        aws_clients.sqs.receive_message.return_value = sqs_message("not json", receipt="rh-3")

        message = listener.try_read()

        assert message.deletion_token == "rh-3"
        aws_clients.sqs.delete_message.assert_called_once()

    def test_auth_error_fatal(self, listener, aws_clients):
        aws_clients.sqs.receive_message.side_effect = client_error("AccessDenied")
        with pytest.raises(FatalAuthError):
            listener.try_read()


class TestLifecycle:
    """Тесты цикла опроса."""

    def test_requires_queue_url(self, aws_clients):
        with pytest.raises(ConfigError):
            Listener(aws_clients, "").start()

    def test_start_stop(self, listener, aws_clients, recorder):
        """stopped приходит один раз, без ошибки."""
        listener.start()
        assert listener.state == ListenerState.STARTED
        listener.start()

        listener.stop()
        assert listener.wait_stopped(timeout=5)

        assert listener.state == ListenerState.STOPPED
        assert len(recorder[STARTED]) == 1
        assert len(recorder[STOPPED]) == 1
        assert recorder[STOPPED][0].error is None

    def test_fatal_error_stops_loop(self, listener, aws_clients, recorder):
        """Ошибка авторизации останавливает цикл, причина в событии stopped."""
        aws_clients.sqs.receive_message.side_effect = client_error("InvalidClientTokenId")

        listener.start()
        assert listener.wait_stopped(timeout=5)

        assert aws_clients.sqs.receive_message.call_count == 1
        assert len(recorder[STOPPED]) == 1
        assert isinstance(recorder[STOPPED][0].error, FatalAuthError)

    def test_transient_error_continues(self, listener, aws_clients, recorder):
        """Прочие ошибки логируются, опрос продолжается."""
        calls = []
        resumed = threading.Event()

        def receive(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise client_error("ServiceUnavailable")
            if len(calls) == 2:
                return sqs_message(registration_body(instances=()))
            resumed.set()
            listener.stop()
            return {}

        aws_clients.sqs.receive_message.side_effect = receive

        listener.start()
        assert resumed.wait(timeout=5)
        assert listener.wait_stopped(timeout=5)

        assert len(calls) == 3
        assert recorder[STOPPED][0].error is None

    def test_handler_error_does_not_stop(self, listener, with_instances):
        """Исключение обработчика события не останавливает цикл."""
        calls = []

        def receive(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                return sqs_message(registration_body())
            listener.stop()
            return {}

        def broken(_batch):
            raise RuntimeError("handler failed")

        with_instances.sqs.receive_message.side_effect = receive
        listener.events.on(INSTANCE_ROTATE_IN, broken)

        listener.start()
        assert listener.wait_stopped(timeout=5)
        assert len(calls) == 2
