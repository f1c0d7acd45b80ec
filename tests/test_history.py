"""
Tests for the run history store.
"""

from audiofit.history import HistoryStore, LogCategory


class TestHistoryStore:

    def test_append_and_read_back(self, history):
        history.append(LogCategory.REENCODE, "attempt_completed", "Re-encoded at 24000 bps",
                       bitrate_bps=24000, size_bytes=1234)

        entries = history.read_all()

        assert len(entries) == 1
        assert entries[0].category == LogCategory.REENCODE
        assert entries[0].event == "attempt_completed"
        assert entries[0].data == {"bitrate_bps": 24000, "size_bytes": 1234}

    def test_missing_file_is_empty(self, tmp_path):
        assert HistoryStore(tmp_path / "none.jsonl").read_all() == []

    def test_text_rendering_and_filter(self, history):
        history.append(LogCategory.FILE_OP, "run_started", "Starting audio file processing")
        history.append(LogCategory.ERROR, "run_terminated", "Encoder crashed")

        text = history.as_text()
        assert "[FILE_OP] Starting audio file processing" in text
        assert "[ERROR] Encoder crashed" in text

        errors_only = history.as_text(LogCategory.ERROR)
        assert "Starting" not in errors_only
        assert "Encoder crashed" in errors_only

    def test_corrupt_lines_are_skipped(self, history):
        history.append(LogCategory.FILE_OP, "run_started", "first")
        with open(history.path, "a") as f:
            f.write("{not json\n\n")
        history.append(LogCategory.FILE_OP, "teardown_completed", "second")

        assert [e.message for e in history.read_all()] == ["first", "second"]

    def test_clear(self, history):
        history.append(LogCategory.API_CALL, "upload_started", "Uploading")
        history.clear()
        history.clear()

        assert history.read_all() == []

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = HistoryStore(blocker / "history.jsonl")

        entry = store.append(LogCategory.ERROR, "run_terminated", "still returned")

        assert entry.message == "still returned"
        assert store.read_all() == []
