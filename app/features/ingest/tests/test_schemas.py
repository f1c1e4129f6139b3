"""Tests for import API schemas."""

import pytest
from pydantic import ValidationError

from app.features.ingest.schemas import ImportResult
from app.features.parsers.schemas import FileFormat


def test_import_result_defaults():
    result = ImportResult(filename="Zonas.xlsx", file_format=FileFormat.ZONE)

    assert (result.records_inserted, result.records_updated) == (0, 0)
    assert result.errors == []
    assert result.import_log_id is None


def test_import_result_rejects_negative_counts():
    with pytest.raises(ValidationError):
        ImportResult(filename="x.xlsx", file_format=FileFormat.DAILY, records_inserted=-1)


def test_file_format_serializes_as_tag():
    result = ImportResult(filename="ABC.xlsx", file_format=FileFormat.ABC)
    assert result.model_dump(mode="json")["file_format"] == "abc"
