"""
Тесты conflict-tolerant создания (seiso/retry.py) и сравнения IP (seiso/diff.py).
"""

from unittest.mock import MagicMock

import pytest

from seiso_aws_sync.core.exceptions import ConflictError, ConsistencyError, InventoryAPIError
from seiso_aws_sync.seiso.diff import diff_ip_addresses
from seiso_aws_sync.seiso.retry import create_or_fetch, single_match


class TestSingleMatch:
    """Тесты single_match."""

    def test_single_record(self):
        assert single_match({"name": "a"}, "nodes", "a") == {"name": "a"}
        assert single_match([{"name": "a"}], "nodes", "a") == {"name": "a"}

    @pytest.mark.parametrize("matches,count", [
        (None, 0),
        ([], 0),
        ([{"name": "a"}, {"name": "a"}], 2),
    ])
    def test_ambiguous(self, matches, count):
        """Ноль или несколько совпадений: ConsistencyError."""
        with pytest.raises(ConsistencyError) as exc_info:
            single_match(matches, "nodes", "a", operation="update")
        assert exc_info.value.matches == count
        assert exc_info.value.key == "a"


class TestCreateOrFetch:
    """Тесты create_or_fetch."""

    def test_create_success(self):
        fetch = MagicMock()
        result = create_or_fetch(lambda: {"id": 1}, fetch, "services", "web")
        assert result == {"id": 1}
        fetch.assert_not_called()

    def test_conflict_fetches_existing(self):
        """Conflict -> запись перечитывается по natural key."""
        def create():
            raise ConflictError("exists", status_code=409)

        result = create_or_fetch(create, lambda: [{"key": "web"}], "services", "web")
        assert result == {"key": "web"}

    def test_conflict_without_match(self):
        def create():
            raise ConflictError("exists", status_code=409)

        with pytest.raises(ConsistencyError):
            create_or_fetch(create, lambda: None, "services", "web")

    def test_other_errors_propagate(self):
        """Только conflict приводит к повторному поиску."""
        fetch = MagicMock()

        def create():
            raise InventoryAPIError("server error", status_code=500)

        with pytest.raises(InventoryAPIError):
            create_or_fetch(create, fetch, "services", "web")
        fetch.assert_not_called()


class TestDiffIpAddresses:
    """Тесты diff_ip_addresses."""

    def test_replace_one_address(self):
        """{A, B} -> {B, C}: удалить A, создать C, B не трогать."""
        existing = [{"ipAddress": "10.0.0.1", "id": 1}, {"ipAddress": "10.0.0.2", "id": 2}]

        diff = diff_ip_addresses(existing, ["10.0.0.2", "10.0.0.3"])

        assert diff.to_create == ["10.0.0.3"]
        assert [r["id"] for r in diff.to_delete] == [1]
        assert diff.unchanged == ["10.0.0.2"]
        assert diff.has_changes

    def test_no_changes(self):
        diff = diff_ip_addresses([{"ipAddress": "10.0.0.1"}], ["10.0.0.1"])
        assert not diff.has_changes
        assert "создать=0" in diff.summary()

    def test_duplicates_collapsed(self):
        """Дубликаты в желаемом наборе создаются один раз."""
        diff = diff_ip_addresses([], ["10.0.0.1", "10.0.0.1", None, "10.0.0.2"])
        assert diff.to_create == ["10.0.0.1", "10.0.0.2"]

    def test_duplicate_existing_records(self):
        """Повторная запись того же адреса не удаляется и не дублируется в unchanged."""
        existing = [{"ipAddress": "10.0.0.1", "id": 1}, {"ipAddress": "10.0.0.1", "id": 2}]
        diff = diff_ip_addresses(existing, ["10.0.0.1"])
        assert diff.unchanged == ["10.0.0.1"]
        assert diff.to_delete == []

    def test_empty_desired_deletes_all(self):
        diff = diff_ip_addresses([{"ipAddress": "10.0.0.1"}], [])
        assert len(diff.to_delete) == 1
        assert diff.to_create == []
