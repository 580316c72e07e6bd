"""Tests for version record parsing."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from ifsmcp.models import CommandResult, Status, StatusState, VersionRecord


SERVER_ENTRY = {
    "version": "25.1.0",
    "extract_path": "/data/extracts/25.1.0",
    "index_path": "/data/indexes/25.1.0",
    "analysis_path": "/data/analysis/25.1.0",
    "bm25s_path": "/data/indexes/25.1.0/bm25s",
    "faiss_path": "/data/indexes/25.1.0/faiss",
    "pagerank_path": "/data/indexes/25.1.0/pagerank.json",
    "has_analysis": True,
    "has_bm25s": True,
    "has_faiss": False,
    "has_pagerank": True,
    "has_hybrid_search": False,
    "has_full_analysis": True,
    "is_ready": True,
    "file_count": 1234,
    "created": "2025-03-01T12:30:00Z",
}


class TestVersionRecordFromJson:
    def test_server_field_names(self):
        record = VersionRecord.from_json(SERVER_ENTRY)

        assert record.id == "25.1.0"
        assert record.lexical_index_path == Path("/data/indexes/25.1.0/bm25s")
        assert record.vector_index_path == Path("/data/indexes/25.1.0/faiss")
        assert record.rank_path == Path("/data/indexes/25.1.0/pagerank.json")
        assert record.flags.has_lexical_index is True
        assert record.flags.has_vector_index is False
        assert record.flags.has_rank is True
        assert record.file_count == 1234
        assert record.created_at == datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert record.created_raw == "2025-03-01T12:30:00Z"

    def test_generic_field_names(self):
        record = VersionRecord.from_json(
            {
                "id": "24.2.5",
                "has_lexical_index": True,
                "has_vector_index": True,
                "has_rank": True,
                "created_at": "2024-12-01T08:00:00",
            }
        )

        assert record.id == "24.2.5"
        assert record.derived_ready is True
        assert record.created_at == datetime(2024, 12, 1, 8, 0)

    def test_self_reported_ready_is_not_trusted(self):
        """The server said ready but FAISS is missing."""
        record = VersionRecord.from_json(SERVER_ENTRY)

        assert record.reported_ready is True
        assert record.derived_ready is False
        assert record.readiness_disagrees is True

    def test_missing_optional_fields_default(self):
        record = VersionRecord.from_json({"version": "23.1.0"})

        assert record.extract_path is None
        assert record.file_count == 0
        assert record.created_at is None
        assert record.derived_ready is False
        assert record.readiness_disagrees is False

    def test_unparseable_timestamp_keeps_raw_text(self):
        record = VersionRecord.from_json({"version": "23.1.0", "created": "yesterday"})

        assert record.created_at is None
        assert record.created_raw == "yesterday"

    def test_non_integer_file_count_ignored(self):
        record = VersionRecord.from_json({"version": "23.1.0", "file_count": "many"})
        assert record.file_count == 0

    @pytest.mark.parametrize("entry", [{}, {"version": ""}, {"version": 12}])
    def test_missing_id_rejected(self, entry):
        with pytest.raises(ValueError, match="version"):
            VersionRecord.from_json(entry)

    def test_non_object_rejected(self):
        with pytest.raises(ValueError, match="must be an object"):
            VersionRecord.from_json(["25.1.0"])


def test_command_result_ok():
    assert CommandResult(0, "", "").ok is True
    assert CommandResult(2, "", "boom").ok is False


def test_status_constructors_carry_count():
    assert Status.versions_ready(3) == Status(StatusState.VERSIONS_READY, 3)
    assert Status.versions_need_setup(2).count == 2
    assert Status.server_running().count is None
