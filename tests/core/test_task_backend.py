"""Tests for the local task backend."""

from unittest.mock import patch

import pytest

from taskflow.core.task_id import TASK_ID_RE
from taskflow.models.task import Task
from taskflow.services.exceptions import ValidationError
from taskflow.services.task_backend import LocalTaskBackend


@pytest.fixture
def backend(tmp_path):
    """Provides a backend over an empty workflow directory."""
    return LocalTaskBackend(tmp_path / "tasks")


class TestLocalTaskBackend:
    """Test cases for LocalTaskBackend."""

    def test_list_tasks_empty(self, backend):
        """A missing workflow directory has no tasks."""
        assert backend.list_tasks() == []

    def test_write_and_list(self, backend):
        """Written tasks are listed in id order."""
        backend.write_task(Task(id="202602081506-BBBB", title="Second", owner="CODER"))
        backend.write_task(Task(id="202602081506-AAAA", title="First", owner="CODER"))
        assert [t.id for t in backend.list_tasks()] == ["202602081506-AAAA", "202602081506-BBBB"]

    def test_write_overwrites_existing(self, backend):
        """Writing an existing id updates the record."""
        backend.write_task(Task(id="202602081506-AAAA", title="First", owner="CODER"))
        backend.write_task(Task(id="202602081506-AAAA", title="Renamed", owner="CODER"))
        assert backend.get_task("202602081506-AAAA").title == "Renamed"

    def test_write_rejects_malformed_id(self, backend):
        """Tasks with malformed ids are not written."""
        with pytest.raises(ValidationError):
            backend.write_task(Task(id="T1", title="Bad"))

    def test_list_skips_unreadable_tasks(self, backend, caplog):
        """Broken README files are skipped with a warning."""
        backend.write_task(Task(id="202602081506-AAAA", title="First", owner="CODER"))
        broken = backend.root / "202602081506-CCCC"
        broken.mkdir()
        (broken / "README.md").write_text("no frontmatter here\n")
        (backend.root / "not-a-task").mkdir()

        tasks = backend.list_tasks()
        assert [t.id for t in tasks] == ["202602081506-AAAA"]
        assert "Skipping unreadable task 202602081506-CCCC" in caplog.text

    def test_get_missing_task(self, backend):
        """Unknown ids return None."""
        assert backend.get_task("202602081506-ZZZZ") is None

    def test_task_doc_round_trip(self, backend):
        """The doc can be replaced and read back."""
        backend.write_task(Task(id="202602081506-AAAA", title="First", owner="CODER", doc="## Summary\n\nOld"))
        backend.set_task_doc("202602081506-AAAA", "## Summary\n\nNew", updated_by="PLANNER")
        assert backend.get_task_doc("202602081506-AAAA") == "## Summary\n\nNew"
        assert backend.get_task("202602081506-AAAA").doc_updated_by == "PLANNER"

    def test_generate_task_id_skips_existing(self, backend):
        """Generated ids never collide with stored tasks."""
        backend.write_task(Task(id="202602081506-AAAA", title="First", owner="CODER"))
        candidates = iter(["A", "A", "A", "A", "B", "B", "B", "B"])
        with patch("taskflow.core.task_id.secrets.choice", side_effect=lambda _: next(candidates)), \
                patch("taskflow.core.task_id.timestamp_id_prefix", return_value="202602081506"):
            task_id = backend.generate_task_id(4)
        assert task_id == "202602081506-BBBB"
        assert TASK_ID_RE.match(task_id)
