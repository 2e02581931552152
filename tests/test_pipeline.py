import threading
from unittest.mock import MagicMock

import pytest

from doc_sorter.classifier import KeywordClassifier
from doc_sorter.errors import ExtractionError
from doc_sorter.models import DocumentStatus, FileKind, SourceFile
from doc_sorter.pipeline import ProcessingPipeline, summarize
from doc_sorter.taxonomy import UNCLASSIFIED

TEXTS = {
    "aadhar.png": "this is an aadhar card issued by uidai government of india",
    "nptel.pdf": "nptel online certification discipline stars",
    "hello.png": "hello world",
}


def make_source(name: str) -> SourceFile:
    kind = FileKind.PDF if name.endswith(".pdf") else FileKind.IMAGE
    return SourceFile(name=name, data=name.encode(), kind=kind)


def fake_extract(source: SourceFile) -> str:
    if source.name.startswith("broken"):
        raise ExtractionError(f"OCR engine failed on {source.name}")
    return TEXTS[source.name]


@pytest.fixture
def extractor():
    mock = MagicMock()
    mock.extract.side_effect = fake_extract
    return mock


@pytest.fixture
def pipeline(extractor):
    return ProcessingPipeline(extractor, KeywordClassifier())


def test_process_classifies_in_input_order(pipeline):
    names = ["aadhar.png", "nptel.pdf", "hello.png"]

    documents = pipeline.process([make_source(n) for n in names])

    assert [d.original_name for d in documents] == names
    assert [d.id for d in documents] == ["doc_0", "doc_1", "doc_2"]
    assert [d.status for d in documents] == [DocumentStatus.COMPLETED] * 3
    assert documents[0].category == "Aadhar"
    assert documents[0].confidence == pytest.approx(0.6)
    assert documents[0].extracted_text == TEXTS["aadhar.png"]
    assert documents[1].category == "NPTEL"
    assert (documents[2].category, documents[2].confidence) == (UNCLASSIFIED, 0.0)


def test_single_failure_does_not_abort_batch(pipeline):
    documents = pipeline.process(
        [make_source("aadhar.png"), make_source("broken.png"), make_source("nptel.pdf")]
    )

    assert len(documents) == 3
    failed = documents[1]
    assert failed.status is DocumentStatus.ERROR
    assert failed.confidence == 0
    assert failed.extracted_text == ""
    assert failed.category == UNCLASSIFIED
    assert "OCR engine failed" in failed.error
    assert documents[0].status is DocumentStatus.COMPLETED
    assert documents[2].status is DocumentStatus.COMPLETED


def test_unexpected_exception_is_recorded(extractor):
    extractor.extract.side_effect = None
    extractor.extract.return_value = "text"
    classifier = MagicMock()
    classifier.classify.side_effect = RuntimeError("bad text")

    documents = ProcessingPipeline(extractor, classifier).process([make_source("a.png")])

    assert documents[0].status is DocumentStatus.ERROR
    assert documents[0].error == "bad text"


def test_empty_batch(pipeline):
    updates = []

    documents = pipeline.process([], on_update=updates.append)

    assert documents == []
    assert len(updates) == 2
    assert updates[-1].complete
    assert updates[-1].progress == 100.0


def test_updates_carry_full_snapshots(pipeline):
    updates = []
    names = ["aadhar.png", "broken.png"]

    documents = pipeline.process([make_source(n) for n in names], on_update=updates.append)

    # initial + (processing, terminal) per file + batch complete
    assert len(updates) == 1 + 2 * len(names) + 1
    assert all(len(update.documents) == len(names) for update in updates)

    first = updates[0]
    assert first.current_index is None
    assert first.progress == 0
    assert all(d.status is DocumentStatus.PENDING for d in first.documents)

    assert updates[1].documents[0].status is DocumentStatus.PROCESSING
    assert updates[1].current_index == 0
    assert updates[2].documents[0].status is DocumentStatus.COMPLETED
    assert updates[2].progress == 50.0
    assert updates[4].documents[1].status is DocumentStatus.ERROR

    final = updates[-1]
    assert final.complete
    assert final.progress == 100.0
    assert [d.status for d in final.documents] == [d.status for d in documents]
    assert not any(update.complete for update in updates[:-1])


def test_snapshots_are_not_mutated_later(pipeline):
    updates = []

    pipeline.process([make_source("aadhar.png")], on_update=updates.append)

    assert updates[0].documents[0].status is DocumentStatus.PENDING
    assert updates[0].documents[0].category == UNCLASSIFIED


def test_status_is_monotonic_across_updates(pipeline):
    updates = []
    order = {
        DocumentStatus.PENDING: 0,
        DocumentStatus.PROCESSING: 1,
        DocumentStatus.COMPLETED: 2,
        DocumentStatus.ERROR: 2,
    }

    pipeline.process(
        [make_source(n) for n in ["broken.png", "hello.png", "nptel.pdf"]],
        on_update=updates.append,
    )

    for index in range(3):
        seen = [order[update.documents[index].status] for update in updates]
        assert seen == sorted(seen)


def test_confidence_only_on_completed(pipeline):
    documents = pipeline.process(
        [make_source(n) for n in ["aadhar.png", "broken.png", "hello.png"]]
    )

    for document in documents:
        assert 0.0 <= document.confidence <= 1.0
        if document.confidence > 0:
            assert document.status is DocumentStatus.COMPLETED


def test_files_are_processed_sequentially(extractor):
    events = []

    def extract(source):
        events.append(("start", source.name))
        events.append(("end", source.name))
        return "hello world"

    extractor.extract.side_effect = extract
    pipeline = ProcessingPipeline(extractor, KeywordClassifier())

    pipeline.process([make_source("a.png"), make_source("b.png")])

    assert events == [("start", "a.png"), ("end", "a.png"), ("start", "b.png"), ("end", "b.png")]


def test_failing_callback_does_not_stop_batch(pipeline):
    callback = MagicMock(side_effect=RuntimeError("renderer crashed"))

    documents = pipeline.process([make_source("aadhar.png")], on_update=callback)

    assert documents[0].status is DocumentStatus.COMPLETED
    assert callback.call_count == 4


def test_cancel_at_file_boundary(extractor):
    cancel = threading.Event()

    def extract(source):
        cancel.set()  # cancelled while the first file is running
        return TEXTS[source.name]

    extractor.extract.side_effect = extract
    pipeline = ProcessingPipeline(extractor, KeywordClassifier())
    updates = []

    documents = pipeline.process(
        [make_source(n) for n in ["aadhar.png", "nptel.pdf", "hello.png"]],
        on_update=updates.append,
        cancel=cancel,
    )

    assert [d.status for d in documents] == [
        DocumentStatus.COMPLETED,
        DocumentStatus.SKIPPED,
        DocumentStatus.SKIPPED,
    ]
    assert documents[0].category == "Aadhar"
    assert extractor.extract.call_count == 1
    assert updates[-1].complete
    assert updates[-1].progress == 100.0


def test_summarize(pipeline):
    documents = pipeline.process(
        [make_source(n) for n in ["aadhar.png", "broken.png", "hello.png", "aadhar.png"]]
    )

    summary = summarize(documents)

    assert summary.total == 4
    assert summary.successful == 3
    assert summary.failed == 1
    assert summary.skipped == 0
    assert summary.categories == ("Aadhar", UNCLASSIFIED)


def test_non_text_extraction_is_an_extraction_error(extractor):
    extractor.extract.side_effect = None
    extractor.extract.return_value = b"raw bytes"
    pipeline = ProcessingPipeline(extractor, KeywordClassifier())

    documents = pipeline.process([make_source("a.png"), make_source("b.png")])

    assert [d.status for d in documents] == [DocumentStatus.ERROR] * 2
    assert "instead of text" in documents[0].error


def test_expected_failure_is_logged_without_traceback(pipeline, mocker):
    mock_log = mocker.patch("doc_sorter.pipeline.log")

    pipeline.process([make_source("broken.png")])

    mock_log.error.assert_called_once_with(
        "Failed to process document",
        doc_id="doc_0",
        name="broken.png",
        error="OCR engine failed on broken.png",
    )
    mock_log.exception.assert_not_called()


def test_unexpected_failure_is_logged_with_traceback(extractor, mocker):
    mock_log = mocker.patch("doc_sorter.pipeline.log")
    extractor.extract.side_effect = None
    extractor.extract.return_value = "text"
    classifier = MagicMock()
    classifier.classify.side_effect = RuntimeError("bad text")

    documents = ProcessingPipeline(extractor, classifier).process([make_source("a.png")])

    assert documents[0].error == "bad text"
    mock_log.exception.assert_called_once()
    mock_log.error.assert_not_called()
