"""End-to-end tests for the pipeline orchestrator with in-memory collaborators."""

import json

import pytest
import structlog

from kbchunker.core.config import PipelineConfig, StructureConfig
from kbchunker.core.errors import ParseError, PipelineError, StorageError
from kbchunker.core.models import Chunk, Classification, Document, StructureHint
from kbchunker.db.store import ChunkStore, InMemoryChunkStore, InMemoryJobTracker
from kbchunker.pipeline.dag import checkpoints
from kbchunker.pipeline.runner import (
    PipelineOrchestrator,
    compute_quality_stats,
    make_chunk_id,
)

# Mark all tests as unit tests (no database needed)
pytestmark = pytest.mark.unit

SCENARIO_A_SCORE = 0.5 + (116 / 500) * 0.2 + 0.2 + 0.3 * 0.2 + 0.1


class FailingStore(ChunkStore):
    def store(self, records):
        raise StorageError("database unavailable")


class CompletionFailingTracker(InMemoryJobTracker):
    def complete_job(self, job_id, processing_time_ms, result):
        raise StorageError("job table locked")


class UnrecordableTracker(InMemoryJobTracker):
    def fail_job(self, job_id, error_message):
        raise StorageError("job table locked")


@pytest.fixture
def store():
    return InMemoryChunkStore()


@pytest.fixture
def tracker():
    return InMemoryJobTracker()


@pytest.fixture
def orchestrator(store, tracker):
    return PipelineOrchestrator(store=store, job_tracker=tracker)


def scenario_document(text: str) -> Document:
    return Document(source_id="guide", version="1", raw_content=text)


class TestScenarioA:
    def test_single_accepted_chunk(self, orchestrator, store, scenario_a_text):
        result = orchestrator.process_document(scenario_document(scenario_a_text))

        assert result.success
        assert result.chunks_generated == 1
        assert result.rejected_count == 0
        assert result.section_count == 1
        assert result.filtering_stats.removed_count >= 1

        [record] = store.records
        assert record.chunk_id == "guide:1:0000"
        assert record.heading == "FUND CREATION"
        assert record.content_type == "procedure"
        assert record.content.startswith("FUND CREATION To create a fund")
        assert record.content.endswith("Step 2: submit.")
        assert record.estimated_token_count == 29
        assert record.quality_score == pytest.approx(SCENARIO_A_SCORE)
        assert record.classification_data["types"] == [
            "stepByStep",
            "procedure",
            "fundCreation",
        ]
        assert record.classification_data["section_type"] == "fund_creation"

    def test_quality_stats(self, orchestrator, scenario_a_text):
        stats = orchestrator.process_document(
            scenario_document(scenario_a_text)
        ).quality_stats

        assert stats.total_chunks == 1
        assert stats.average_quality == pytest.approx(SCENARIO_A_SCORE)
        assert stats.heading_coverage == 1.0
        assert stats.type_distribution == {"procedure": 1}


class TestProgress:
    def test_checkpoints_in_order(self, orchestrator, scenario_a_text):
        seen = []
        orchestrator.process_document(
            scenario_document(scenario_a_text),
            on_progress=lambda pct, label: seen.append((pct, label)),
        )

        assert [pct for pct, _ in seen] == [10, 25, 40, 60, 75, 85, 95, 100]
        assert [pct for pct, _ in seen] == checkpoints()
        assert seen[1] == (25, "Filtering junk content")
        assert seen[-1] == (100, "Completed")

    def test_job_lifecycle(self, orchestrator, tracker, scenario_a_text):
        result = orchestrator.process_document(scenario_document(scenario_a_text))

        job = tracker.jobs[result.job_id]
        assert job["status"] == "completed"
        assert job["progress"] == 100
        assert job["history"] == [10, 25, 40, 60, 75, 85, 95]
        assert job["result"]["chunks_generated"] == 1
        assert job["config"]["chunkingStrategy"]["optimalChunkSize"] == 800


class TestEdgeCases:
    def test_empty_document_yields_zero_stats(self, orchestrator, store):
        result = orchestrator.process_document(scenario_document(""))

        assert result.success
        assert result.chunks_generated == 0
        assert result.quality_stats.average_quality == 0.0
        assert result.quality_stats.heading_coverage == 0.0
        assert result.quality_stats.type_distribution == {}
        assert store.records == []

    def test_untitled_document_empty_policy(self, store):
        config = PipelineConfig(structure=StructureConfig(untitled_document="empty"))
        text = "plain prose without any heading at all, repeated. " * 4

        result = PipelineOrchestrator(config, store=store).process_document(
            scenario_document(text)
        )

        assert result.section_count == 0
        assert result.chunks_generated == 0

    def test_rejected_chunks_not_stored(self, store):
        config = PipelineConfig.model_validate(
            {"contentFiltering": {"minContentLength": 10}}
        )
        text = "tiny lowercase note."  # 20 chars, no heading, short penalty

        result = PipelineOrchestrator(config, store=store).process_document(
            scenario_document(text)
        )

        assert result.chunks_generated == 0
        assert result.rejected_count == 1
        assert store.records == []

    def test_structure_hints_passed_through(self, orchestrator, store):
        document = Document(
            source_id="guide",
            version="2",
            raw_content="Overview\n\nThis overview explains how a fund is set up and maintained. It covers approvals and reporting in detail.",
            structure_hints=(StructureHint(text="Overview", level=2),),
        )

        orchestrator.process_document(document)

        assert [r.heading for r in store.records] == ["Overview"]

    def test_runs_are_deterministic(self, scenario_a_text):
        def run():
            orchestrator = PipelineOrchestrator()
            orchestrator.process_document(scenario_document(scenario_a_text))
            return [
                (r.chunk_id, r.content, r.quality_score, r.classification_data)
                for r in orchestrator.last_records
            ]

        assert run() == run()


class TestFailures:
    def test_storage_error_propagates_and_fails_job(self, tracker, scenario_a_text):
        orchestrator = PipelineOrchestrator(store=FailingStore(), job_tracker=tracker)
        seen = []

        with pytest.raises(StorageError):
            orchestrator.process_document(
                scenario_document(scenario_a_text),
                on_progress=lambda pct, label: seen.append(pct),
            )

        [job] = tracker.jobs.values()
        assert job["status"] == "failed"
        assert job["error_message"].startswith("store:")
        assert 100 not in seen
        assert orchestrator.last_records == []

    def test_parse_error_from_reader(self, orchestrator, tracker, store, tmp_path):
        with pytest.raises(ParseError):
            orchestrator.process_file(tmp_path / "missing.txt", "guide", "1")

        [job] = tracker.jobs.values()
        assert job["status"] == "failed"
        assert job["progress"] == 10
        assert store.records == []

    def test_unexpected_stage_error_is_wrapped(self, orchestrator, tracker, monkeypatch, scenario_a_text):
        def boom(chunks):
            raise RuntimeError("classifier exploded")

        monkeypatch.setattr(orchestrator.classifier, "classify_chunks", boom)

        with pytest.raises(PipelineError) as exc_info:
            orchestrator.process_document(scenario_document(scenario_a_text))

        assert exc_info.value.stage == "classify"
        assert isinstance(exc_info.value.cause, RuntimeError)
        [job] = tracker.jobs.values()
        assert job["status"] == "failed"

    def test_job_completion_error_fails_job(self, store, scenario_a_text):
        tracker = CompletionFailingTracker()
        orchestrator = PipelineOrchestrator(store=store, job_tracker=tracker)
        seen = []

        with pytest.raises(StorageError, match="job table locked"):
            orchestrator.process_document(
                scenario_document(scenario_a_text),
                on_progress=lambda pct, label: seen.append(pct),
            )

        [job] = tracker.jobs.values()
        assert job["status"] == "failed"
        assert job["error_message"] == "complete: job table locked"
        assert 100 not in seen
        assert orchestrator.last_records == []

    def test_tracker_failure_keeps_stage_error(self, scenario_a_text):
        orchestrator = PipelineOrchestrator(
            store=FailingStore(), job_tracker=UnrecordableTracker()
        )

        with pytest.raises(StorageError, match="database unavailable"):
            orchestrator.process_document(scenario_document(scenario_a_text))

        assert orchestrator.last_job_id is not None


class TestProcessFile:
    def test_html_headings_become_sections(self, orchestrator, store, tmp_path):
        path = tmp_path / "guide.html"
        path.write_text(
            "<h2>Overview</h2><p>This overview explains how a fund is set up "
            "and maintained. It covers approvals and reporting in detail.</p>",
            encoding="utf-8",
        )

        result = orchestrator.process_file(path, "guide", "3")

        assert result.success
        [record] = store.records
        assert record.heading == "Overview"
        assert record.chunk_id == "guide:3:0000"

    def test_events_written_when_enabled(self, tmp_path, scenario_a_text):
        orchestrator = PipelineOrchestrator(emit_events=True, events_dir=tmp_path)
        result = orchestrator.process_document(scenario_document(scenario_a_text))

        lines = (tmp_path / result.job_id / "events.ndjson").read_text().splitlines()
        ops = [json.loads(line)["op"] for line in lines]
        assert ops[0] == "parse.start"
        assert "validate.complete" in ops
        assert ops[-1] == "pipeline.complete"


def test_make_chunk_id():
    assert make_chunk_id("src", "v2", 7) == "src:v2:0007"


def test_compute_quality_stats_empty():
    stats = compute_quality_stats([])

    assert stats.total_chunks == 0
    assert stats.average_quality == 0.0


def test_type_distribution_counts_only_classified_chunks():
    classified = Chunk(
        content="Click the button.",
        sentences=("Click the button.",),
        estimated_token_count=5,
        index=0,
        quality_score=0.8,
        classification=Classification(
            primary_type="procedure", confidence=0.1, types=("procedure",)
        ),
    )
    unclassified = Chunk(
        content="Plain remark.",
        sentences=("Plain remark.",),
        estimated_token_count=4,
        index=1,
        quality_score=0.6,
    )

    stats = compute_quality_stats([classified, unclassified])

    assert stats.total_chunks == 2
    assert stats.average_quality == pytest.approx(0.7)
    assert stats.type_distribution == {"procedure": 1}


class TestLogContext:
    def test_job_identity_bound_while_running(self, orchestrator, monkeypatch, scenario_a_text):
        bound = {}
        classify_chunks = orchestrator.classifier.classify_chunks

        def record_context(chunks):
            bound.update(structlog.contextvars.get_contextvars())
            return classify_chunks(chunks)

        monkeypatch.setattr(orchestrator.classifier, "classify_chunks", record_context)

        result = orchestrator.process_document(scenario_document(scenario_a_text))

        assert bound == {"job_id": result.job_id, "source_id": "guide", "version": "1"}
        assert "job_id" not in structlog.contextvars.get_contextvars()
