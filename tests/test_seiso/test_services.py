"""
Тесты services, service instances и справочников
(seiso/client/services.py, seiso/client/lookups.py).
"""

import pytest

from conftest import SEISO_URL, hal_page, make_record
from seiso_aws_sync.core.exceptions import ConsistencyError, InventoryAPIError
from seiso_aws_sync.seiso.client import SeisoClient
from seiso_aws_sync.seiso.client.services import service_instance_key

SERVICE = make_record("services", 10, key="web")
SERVICE_INSTANCE = make_record("serviceInstances", 20, key="web-test")


@pytest.fixture
def lookups_api(seiso_api):
    seiso_api.route("GET", "environments", hal_page("environments", [
        make_record("environments", 1, key="aws-test"),
        make_record("environments", 2, key="aws-prod"),
    ]))
    seiso_api.route("GET", "dataCenters", hal_page("dataCenters", [
        make_record("dataCenters", 7, key="us-west-2"),
    ]))
    return seiso_api


class TestServices:
    """Тесты services."""

    def test_find_existing(self, seiso_client, seiso_api):
        seiso_api.route("GET", "services/search/findByKey", SERVICE)

        assert seiso_client.find_or_create_service("web") == SERVICE

        assert seiso_api.calls("GET", "services/search/findByKey")[0]["params"]["key"] == "web"
        assert seiso_api.calls("POST") == []

    def test_create_missing(self, seiso_client, seiso_api):
        seiso_api.route("POST", "services", SERVICE)

        assert seiso_client.find_or_create_service("web") == SERVICE

        assert seiso_api.calls("POST", "services")[0]["json"] == {"key": "web", "name": "web"}

    def test_create_conflict(self, seiso_client, seiso_api):
        seiso_api.route("GET", "services/search/findByKey", (404, {}), SERVICE)
        seiso_api.route("POST", "services", (409, {}))

        assert seiso_client.find_or_create_service("web") == SERVICE


class TestServiceInstances:
    """Тесты service instances."""

    def test_key(self):
        assert service_instance_key("web", "test") == "web-test"

    def test_create_with_ports_and_role(self, seiso_client, lookups_api, node_record):
        """Создание service instance: порты с протоколом и default role."""
        lookups_api.route("POST", "serviceInstances", SERVICE_INSTANCE)
        lookups_api.route("POST", "serviceInstancePorts", make_record("serviceInstancePorts", 1))
        lookups_api.route("POST", "ipAddressRoles", make_record("ipAddressRoles", 1))
        node_record.data_center = "us-west-2"

        result = seiso_client.find_or_create_service_instance(node_record, f"{SEISO_URL}/services/10")

        assert result == SERVICE_INSTANCE
        payload = lookups_api.calls("POST", "serviceInstances")[0]["json"]
        assert payload["key"] == "web-test"
        assert payload["environment"] == f"{SEISO_URL}/environments/1"
        assert payload["dataCenter"] == f"{SEISO_URL}/dataCenters/7"

        ports = sorted(
            (c["json"]["number"], c["json"]["protocol"])
            for c in lookups_api.calls("POST", "serviceInstancePorts")
        )
        assert ports == [(80, "http"), (443, "https")]

        role = lookups_api.calls("POST", "ipAddressRoles")[0]["json"]
        assert role["name"] == "default"
        assert role["serviceInstance"] == f"{SEISO_URL}/serviceInstances/20"

    def test_create_conflict_fetches_by_composite_key(self, seiso_client, lookups_api):
        """Conflict -> поиск по ключу service-environmentType."""
        lookups_api.route("POST", "serviceInstances", (409, {}))
        lookups_api.route("GET", "serviceInstances/search/findByKey", SERVICE_INSTANCE)
        lookups_api.route("POST", "serviceInstancePorts", (409, {}))
        lookups_api.route("POST", "ipAddressRoles", (409, {}))

        result = seiso_client.create_service_instance("web", "test", f"{SEISO_URL}/services/10", [8443])

        assert result == SERVICE_INSTANCE
        lookup = lookups_api.calls("GET", "serviceInstances/search/findByKey")[0]
        assert lookup["params"]["key"] == "web-test"

    def test_port_failure_raised_after_all(self, seiso_client, lookups_api):
        """Ошибка одного порта пробрасывается после создания остальных записей."""
        lookups_api.route("POST", "serviceInstances", SERVICE_INSTANCE)
        lookups_api.route("POST", "serviceInstancePorts", (500, {}))
        lookups_api.route("POST", "ipAddressRoles", make_record("ipAddressRoles", 1))

        with pytest.raises(InventoryAPIError):
            seiso_client.create_service_instance("web", "test", f"{SEISO_URL}/services/10", [80])

        assert len(lookups_api.calls("POST", "ipAddressRoles")) == 1

    def test_conflict_without_match(self, seiso_client, lookups_api):
        lookups_api.route("POST", "serviceInstances", (409, {}))

        with pytest.raises(ConsistencyError):
            seiso_client.create_service_instance("web", "test", f"{SEISO_URL}/services/10", [80])


class TestDomainCache:
    """Тесты справочников environments / dataCenters."""

    def test_loaded_once(self, seiso_client, lookups_api):
        seiso_client.environment_link("aws-test")
        seiso_client.data_center_link("us-west-2")
        seiso_client.environment_link("aws-prod")

        assert len(lookups_api.calls("GET", "environments")) == 1
        assert len(lookups_api.calls("GET", "dataCenters")) == 1

    def test_unknown_key(self, seiso_client, lookups_api):
        assert seiso_client.environment_link("missing") is None
        assert seiso_client.data_center_link(None) is None

    def test_configured_overrides(self, seiso_api, lookups_api):
        """Записи из конфигурации перекрывают загруженные."""
        client = SeisoClient(
            url=SEISO_URL,
            username="u",
            password="p",
            session=seiso_api.session,
            environments={"aws-test": make_record("environments", 99, key="aws-test")},
        )
        assert client.environment_link("aws-test") == f"{SEISO_URL}/environments/99"

    def test_configured_link(self, seiso_api, lookups_api):
        """В конфигурации data center можно задать ссылкой."""
        client = SeisoClient(
            url=SEISO_URL,
            username="u",
            password="p",
            session=seiso_api.session,
            data_centers={"us-west-2": f"{SEISO_URL}/dataCenters/7"},
        )
        assert client.data_center_link("us-west-2") == f"{SEISO_URL}/dataCenters/7"
