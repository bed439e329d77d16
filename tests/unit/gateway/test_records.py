"""Tests for raw gateway payload records."""

from __future__ import annotations

import pytest

from sfmc_cleanup.gateway.records import RawDataExtension, RawDependency, RawField, RawFolder


class TestRawFolder:
    """Test suite for RawFolder parsing."""

    def test_from_api_nested_parent(self) -> None:
        folder = RawFolder.from_api(
            {"ID": "42", "Name": "Archive", "ParentFolder": {"ID": "7"}, "ContentType": "dataextension"}
        )

        assert folder.id == 42
        assert folder.name == "Archive"
        assert folder.parent_id == 7
        assert folder.content_type == "dataextension"

    def test_from_api_dotted_parent(self) -> None:
        folder = RawFolder.from_api({"ID": 42, "Name": "Archive", "ParentFolder.ID": "7"})

        assert folder.parent_id == 7

    def test_from_api_defaults_optional_fields(self) -> None:
        folder = RawFolder.from_api({"ID": "1", "Name": "Data Extensions"})

        assert folder.parent_id is None
        assert folder.content_type == ""
        assert folder.description == ""

    @pytest.mark.parametrize("payload", [{"Name": "No ID"}, {"ID": "1"}, {"ID": "", "Name": "x"}])
    def test_from_api_rejects_missing_identity(self, payload: dict) -> None:
        with pytest.raises(ValueError, match="missing required field"):
            RawFolder.from_api(payload)

    def test_from_api_rejects_non_numeric_id(self) -> None:
        with pytest.raises(ValueError, match="non-numeric"):
            RawFolder.from_api({"ID": "abc", "Name": "x"})


class TestRawDataExtension:
    """Test suite for RawDataExtension parsing."""

    def test_from_api(self) -> None:
        de = RawDataExtension.from_api(
            {
                "CustomerKey": "Campaign_Jan",
                "Name": "Campaign Jan",
                "CategoryID": "12",
                "IsSendable": "true",
                "SendableSubscriberField": {"Name": "_SubscriberKey"},
                "DataRetentionPeriodLength": "6",
                "DataRetentionPeriodUnitOfMeasure": "Months",
                "RowBasedRetention": "false",
            }
        )

        assert de.customer_key == "Campaign_Jan"
        assert de.folder_id == 12
        assert de.is_sendable is True
        assert de.sendable_subscriber_field == "_SubscriberKey"
        assert de.retention_period_length == 6
        assert de.retention_period_unit == "Months"
        assert de.row_based_retention is False

    def test_from_api_requires_customer_key(self) -> None:
        with pytest.raises(ValueError, match="CustomerKey"):
            RawDataExtension.from_api({"Name": "Campaign Jan"})


class TestRawField:
    """Test suite for RawField parsing."""

    def test_from_api_converts_types(self) -> None:
        field = RawField.from_api(
            {"Name": "SubscriberKey", "FieldType": "Text", "IsPrimaryKey": "true", "MaxLength": "254", "Ordinal": "3"}
        )

        assert field.is_primary_key is True
        assert field.is_required is False
        assert field.max_length == 254
        assert field.ordinal == 3

    def test_from_api_defaults(self) -> None:
        field = RawField.from_api({"Name": "Notes"})

        assert field.field_type == "Text"
        assert field.max_length is None
        assert field.ordinal == 0


class TestRawDependency:
    """Test suite for RawDependency parsing."""

    def test_from_api_with_references(self) -> None:
        dep = RawDependency.from_api(
            {
                "type": "Filter",
                "id": "f-1",
                "name": "Active Subscribers",
                "referencedBy": [{"type": "Automation", "id": "a-1", "name": "Nightly", "statusId": "6"}],
            }
        )

        assert dep.identifier == "f-1"
        assert len(dep.referenced_by) == 1
        assert dep.referenced_by[0].type == "Automation"
        assert dep.referenced_by[0].status_id == 6

    def test_from_api_requires_type(self) -> None:
        with pytest.raises(ValueError, match="type"):
            RawDependency.from_api({"id": "x", "name": "y"})
