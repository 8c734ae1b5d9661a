"""Unit tests for task parsing, matching and completion waiting."""

from unittest.mock import Mock

import pytest

from ceph_rest.client import exceptions
from ceph_rest.client.tasks import (
    TASK_CREATE,
    TASK_DELETE,
    TASK_EDIT,
    OperationIdentity,
    Task,
    TaskDirectory,
    TaskDirectoryReader,
    TaskWaiter,
    matches,
)

CREATE_VOL1 = OperationIdentity.for_create("rbd", None, "vol1")
DELETE_VOL1 = OperationIdentity.for_image_spec(TASK_DELETE, "rbd/vol1")


class TestOperationIdentity:
    """Tests for OperationIdentity."""

    @pytest.mark.unit
    def test_create_identity_leaves_image_spec_empty(self):
        assert CREATE_VOL1 == OperationIdentity(TASK_CREATE, "rbd", None, "vol1", "")

    @pytest.mark.unit
    def test_spec_identity_leaves_location_empty(self):
        assert DELETE_VOL1 == OperationIdentity(TASK_DELETE, "", None, "", "rbd/vol1")

    @pytest.mark.unit
    def test_empty_namespace_equals_none(self):
        assert OperationIdentity.for_create("rbd", "", "vol1") == CREATE_VOL1

    @pytest.mark.unit
    def test_hashable(self):
        assert len({CREATE_VOL1, OperationIdentity.for_create("rbd", None, "vol1")}) == 1

    @pytest.mark.unit
    def test_describe(self):
        assert CREATE_VOL1.describe() == "rbd/create rbd/vol1"
        assert DELETE_VOL1.describe() == "rbd/delete rbd/vol1"


class TestTaskParsing:
    """Tests for Task and TaskDirectory parsing."""

    @pytest.mark.unit
    def test_task_from_dict(self, task):
        data = task(
            "rbd/create",
            success=False,
            exception={"detail": "[errno 28] No space left", "code": 28, "component": "rbd"},
            pool_name="rbd",
            namespace=None,
            image_name="vol1",
        )

        parsed = Task.from_dict(data)

        assert parsed.name == "rbd/create"
        assert parsed.success is False
        assert parsed.progress == 100
        assert parsed.exception.code == "28"
        assert str(parsed.exception) == "[errno 28] No space left (code 28)"
        assert parsed.identity == CREATE_VOL1

    @pytest.mark.unit
    def test_task_without_exception(self, task):
        parsed = Task.from_dict(task("rbd/delete", image_spec="rbd/vol1"))

        assert parsed.exception is None
        assert parsed.identity == DELETE_VOL1

    @pytest.mark.unit
    def test_directory_from_dict(self, task, task_list):
        body = task_list(
            executing=[task("rbd/create", pool_name="rbd", image_name="vol2")],
            finished=[task("rbd/create", pool_name="rbd", image_name="vol1"), task("rbd/delete", image_spec="rbd/x")],
        )

        directory = TaskDirectory.from_dict(body)

        assert len(directory.executing) == 1
        assert len(directory.finished) == 2
        assert directory.find_finished(CREATE_VOL1).metadata["image_name"] == "vol1"
        assert directory.find_executing(CREATE_VOL1) is None

    @pytest.mark.unit
    def test_directory_with_null_lists(self):
        directory = TaskDirectory.from_dict({"executing_tasks": None, "finished_tasks": None})
        assert directory.executing == []
        assert directory.finished == []


class TestMatches:
    """Tests for the task identity matcher."""

    @pytest.mark.unit
    def test_all_fields_equal(self, task):
        candidate = Task.from_dict(task("rbd/create", pool_name="rbd", image_name="vol1", image_spec=""))
        assert matches(candidate, CREATE_VOL1) is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "name,metadata",
        [
            ("rbd/delete", {"pool_name": "rbd", "image_name": "vol1"}),
            ("rbd/create", {"pool_name": "other", "image_name": "vol1"}),
            ("rbd/create", {"pool_name": "rbd", "namespace": "ns", "image_name": "vol1"}),
            ("rbd/create", {"pool_name": "rbd", "image_name": "vol2"}),
            ("rbd/create", {"pool_name": "rbd", "image_name": "vol1", "image_spec": "rbd/vol1"}),
        ],
    )
    def test_any_field_differs(self, task, name, metadata):
        candidate = Task.from_dict(task(name, **metadata))
        assert matches(candidate, CREATE_VOL1) is False

    @pytest.mark.unit
    def test_edit_is_matched_by_image_spec_only(self, task):
        target = OperationIdentity.for_image_spec(TASK_EDIT, "rbd/ns/vol1")
        assert matches(Task.from_dict(task("rbd/edit", image_spec="rbd/ns/vol1")), target) is True
        assert matches(Task.from_dict(task("rbd/edit", image_spec="rbd/vol1")), target) is False

    @pytest.mark.unit
    def test_namespace_null_and_empty_agree(self, task):
        candidate = Task.from_dict(task("rbd/create", pool_name="rbd", namespace="", image_name="vol1"))
        assert matches(candidate, CREATE_VOL1) is True


class TestTaskDirectoryReader:
    """Tests for TaskDirectoryReader."""

    @pytest.mark.unit
    def test_fetch_tasks(self, mock_session, task, task_list):
        mock_session.request.return_value = (
            200,
            task_list(finished=[task("rbd/delete", image_spec="rbd/vol1")]),
        )

        directory = TaskDirectoryReader(mock_session).fetch_tasks()

        assert directory.find_finished(DELETE_VOL1) is not None
        mock_session.request.assert_called_once_with("GET", "task", retry=True)

    @pytest.mark.unit
    def test_non_success_status(self, mock_session):
        mock_session.request.return_value = (503, "Service Unavailable")

        with pytest.raises(exceptions.CephAPIError) as exc_info:
            TaskDirectoryReader(mock_session).fetch_tasks()

        assert exc_info.value.status_code == 503
        assert exc_info.value.response_data == "Service Unavailable"

    @pytest.mark.unit
    def test_unexpected_body(self, mock_session):
        mock_session.request.return_value = (200, None)

        with pytest.raises(exceptions.CephAPIError, match="unexpected task list"):
            TaskDirectoryReader(mock_session).fetch_tasks()

    @pytest.mark.unit
    def test_transport_error_propagates(self, mock_session):
        mock_session.request.side_effect = exceptions.CephAPIConnectionError("refused")

        with pytest.raises(exceptions.CephAPIConnectionError):
            TaskDirectoryReader(mock_session).fetch_tasks()


def _reader(*directories):
    reader = Mock()
    reader.fetch_tasks.side_effect = [
        d if isinstance(d, Exception) else TaskDirectory.from_dict(d) for d in directories
    ]
    return reader


class TestTaskWaiter:
    """Tests for the two-phase completion waiter."""

    @pytest.mark.unit
    def test_executing_then_finished(self, task, task_list, fake_sleep, sleeps):
        running = task("rbd/create", pool_name="rbd", image_name="vol1")
        done = task("rbd/create", pool_name="rbd", image_name="vol1", success=True)
        reader = _reader(
            task_list(executing=[running]),
            task_list(executing=[running]),
            task_list(finished=[done]),
        )

        result = TaskWaiter(reader, poll_interval=5, sleep=fake_sleep).wait(CREATE_VOL1)

        assert result.success is True
        # two polls while executing, one that finds the finished task
        assert reader.fetch_tasks.call_count == 3
        assert sleeps == [5, 5]

    @pytest.mark.unit
    def test_finished_shows_up_late(self, task, task_list, fake_sleep, sleeps):
        done = task("rbd/delete", image_spec="rbd/vol1", success=False)
        reader = _reader(task_list(), task_list(), task_list(finished=[done]))

        result = TaskWaiter(reader, poll_interval=2, sleep=fake_sleep).wait(DELETE_VOL1)

        assert result.success is False
        assert reader.fetch_tasks.call_count == 3
        assert sleeps == [2, 2]

    @pytest.mark.unit
    def test_other_tasks_are_ignored(self, task, task_list, fake_sleep, sleeps):
        other = task("rbd/create", pool_name="rbd", image_name="vol2")
        done = task("rbd/create", pool_name="rbd", image_name="vol1")
        reader = _reader(
            task_list(executing=[other], finished=[other]),
            task_list(executing=[other], finished=[other, done]),
        )

        result = TaskWaiter(reader, sleep=fake_sleep).wait(CREATE_VOL1)

        assert result.metadata["image_name"] == "vol1"
        assert reader.fetch_tasks.call_count == 2

    @pytest.mark.unit
    def test_never_finished_is_indeterminate(self, task_list, fake_sleep, sleeps):
        reader = _reader(*[task_list() for _ in range(3)])
        waiter = TaskWaiter(reader, poll_interval=5, max_finished_polls=3, sleep=fake_sleep)

        with pytest.raises(exceptions.CephTaskIndeterminate) as exc_info:
            waiter.wait(CREATE_VOL1)

        assert exc_info.value.identity == CREATE_VOL1
        assert reader.fetch_tasks.call_count == 3
        assert sleeps == [5, 5]

    @pytest.mark.unit
    def test_error_in_executing_phase_propagates(self, task, task_list, fake_sleep):
        running = task("rbd/create", pool_name="rbd", image_name="vol1")
        reader = _reader(task_list(executing=[running]), exceptions.CephAPIError("HTTP 500", status_code=500))

        with pytest.raises(exceptions.CephAPIError, match="HTTP 500"):
            TaskWaiter(reader, sleep=fake_sleep).wait(CREATE_VOL1)

    @pytest.mark.unit
    def test_error_in_finished_phase_propagates(self, task_list, fake_sleep):
        reader = _reader(task_list(), exceptions.CephAPITimeout("timed out"))

        with pytest.raises(exceptions.CephAPITimeout):
            TaskWaiter(reader, sleep=fake_sleep).wait(CREATE_VOL1)

    @pytest.mark.unit
    def test_logger_is_injected(self, task, task_list, fake_sleep):
        logger = Mock()
        reader = _reader(task_list(finished=[task("rbd/delete", image_spec="rbd/vol1")]))

        TaskWaiter(reader, sleep=fake_sleep, logger=logger).wait(DELETE_VOL1)

        logger.debug.assert_called()
