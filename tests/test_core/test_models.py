"""
Тесты моделей данных core/models.py и констант core/constants.py.
"""

import pytest

from seiso_aws_sync.core.constants import AWS_INSTANCE_ID_TAG, get_protocol_from_port
from seiso_aws_sync.core.exceptions import ConsistencyError
from seiso_aws_sync.core.models import (
    IpSyncResult,
    NodeRecord,
    QueueMessage,
    RotationBatch,
    RotationBatchResult,
    RotationResult,
)


class TestNodeRecord:
    """Тесты NodeRecord."""

    def test_aws_instance_id_from_tags(self):
        node = NodeRecord(name="i-0abc", tags={AWS_INSTANCE_ID_TAG: "i-0abc"})
        assert node.aws_instance_id == "i-0abc"
        assert NodeRecord(name="x").aws_instance_id is None

    def test_desired_ip_addresses(self):
        """Без ip_addresses желаемый набор: основной IP машины."""
        assert NodeRecord(name="x", ip_address="10.0.0.1").desired_ip_addresses == ["10.0.0.1"]
        assert NodeRecord(name="x").desired_ip_addresses == []
        node = NodeRecord(name="x", ip_address="10.0.0.1", ip_addresses=["10.0.0.2", "10.0.0.3"])
        assert node.desired_ip_addresses == ["10.0.0.2", "10.0.0.3"]

    def test_from_dict_ignores_unknown(self):
        node = NodeRecord.from_dict({"name": "i-0abc", "ports": [80], "unknown": 1})
        assert node.ports == [80]
        assert node.to_dict()["name"] == "i-0abc"


class TestQueueModels:
    """Тесты QueueMessage и RotationBatch."""

    def test_from_sqs(self):
        message = QueueMessage.from_sqs({"Body": "{}", "ReceiptHandle": "rh-1", "MessageId": "m-1"})
        assert message.body == "{}"
        assert message.deletion_token == "rh-1"
        assert message.message_id == "m-1"

    def test_batch_instance_ids(self):
        batch = RotationBatch("rh", instances=[{"InstanceId": "i-1"}, {"InstanceId": "i-2"}])
        assert batch.instance_ids == ["i-1", "i-2"]


class TestRotationBatchResult:
    """Тесты RotationBatchResult."""

    def test_ok_only_if_all_succeeded(self):
        result = RotationBatchResult(
            status_key="enabled",
            results=[
                RotationResult("i-1", success=True, node="i-1"),
                RotationResult("i-2", success=False, error=ConsistencyError("missing")),
            ],
        )
        assert not result.ok
        assert [r.instance_id for r in result.failed] == ["i-2"]
        assert result.failed[0].to_dict()["error_type"] == "ConsistencyError"

    def test_empty_batch_is_ok(self):
        assert RotationBatchResult(status_key="disabled").ok

    def test_ip_sync_summary(self):
        result = IpSyncResult(created=["10.0.0.1"], deleted=["10.0.0.2"])
        assert "создано=1" in result.summary()
        assert "удалено=1" in result.summary()


class TestProtocolFromPort:
    """Тесты get_protocol_from_port."""

    @pytest.mark.parametrize("port,expected", [
        (443, "https"),
        (8443, "https"),
        (80, "http"),
        (8080, "http"),
        (22, "ssh"),
        (25, "ftp"),
        (21, "smtp"),
        (5432, None),
    ])
    def test_protocol(self, port, expected):
        assert get_protocol_from_port(port) == expected
