"""Task directory access and completion tracking for asynchronous operations.

The Ceph REST API executes mutations (``rbd/create``, ``rbd/edit``,
``rbd/delete``) in the background and reports progress only through
``GET /api/task``. There is no task id handed out when a request is
accepted, so a task is correlated with the request that spawned it by
comparing its name and metadata with an :class:`OperationIdentity`.

Note:
    The correlation is best effort. Two identical operations (same kind,
    pool, namespace and image) running at the same time cannot be told
    apart.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from oslo_log import log as logging

from .exceptions import CephAPIError, CephTaskIndeterminate
from .utils import describe_error, normalize_namespace, path_join

LOG = logging.getLogger(__name__)

TASK_CREATE = "rbd/create"
TASK_EDIT = "rbd/edit"
TASK_DELETE = "rbd/delete"

DEFAULT_POLL_INTERVAL = 5
DEFAULT_MAX_FINISHED_POLLS = 600


@dataclass(frozen=True)
class OperationIdentity:
    """Key correlating a client-issued mutation with its server-side task.

    ``image_spec`` is empty for ``rbd/create`` (the server reports pool,
    namespace and image name for it) and is the only location field set for
    ``rbd/edit`` and ``rbd/delete``.
    """

    kind: str
    pool_name: str = ""
    namespace: Optional[str] = None
    image_name: str = ""
    image_spec: str = ""

    def __post_init__(self):
        object.__setattr__(self, "namespace", normalize_namespace(self.namespace))

    @classmethod
    def for_create(cls, pool_name: str, namespace: Optional[str], image_name: str):
        return cls(TASK_CREATE, pool_name=pool_name, namespace=namespace, image_name=image_name)

    @classmethod
    def for_image_spec(cls, kind: str, image_spec: str):
        return cls(kind, image_spec=image_spec)

    def describe(self) -> str:
        location = self.image_spec or path_join(self.pool_name, self.namespace, self.image_name)
        return f"{self.kind} {location}"


@dataclass
class TaskException:
    """Error detail attached to a failed task (same shape as HTTP 400 bodies)."""

    detail: Optional[str] = None
    code: Optional[str] = None
    component: Optional[str] = None
    status: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["TaskException"]:
        if not isinstance(data, dict):
            return None
        code = data.get("code")
        return cls(
            detail=data.get("detail"),
            code=str(code) if code is not None else None,
            component=data.get("component"),
            status=data.get("status"),
        )

    def __str__(self) -> str:
        return describe_error({"detail": self.detail, "code": self.code})


@dataclass
class Task:
    """One asynchronous unit of work tracked by the server."""

    name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    begin_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: float = 0.0
    progress: int = 0
    success: bool = False
    ret_value: Any = None
    exception: Optional[TaskException] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            name=data.get("name") or "",
            metadata=data.get("metadata") or {},
            begin_time=data.get("begin_time"),
            end_time=data.get("end_time"),
            duration=data.get("duration") or 0.0,
            progress=data.get("progress") or 0,
            success=bool(data.get("success")),
            ret_value=data.get("ret_value"),
            exception=TaskException.from_dict(data.get("exception")),
        )

    @property
    def identity(self) -> OperationIdentity:
        return OperationIdentity(
            self.name,
            pool_name=self.metadata.get("pool_name") or "",
            namespace=self.metadata.get("namespace"),
            image_name=self.metadata.get("image_name") or "",
            image_spec=self.metadata.get("image_spec") or "",
        )


def matches(candidate: Task, target: OperationIdentity) -> bool:
    """Return True if ``candidate`` belongs to the operation ``target``.

    All of kind, pool name, namespace, image name and image spec must be
    equal, including fields left empty on both sides.
    """
    return candidate.identity == target


@dataclass
class TaskDirectory:
    """Snapshot of ``GET /api/task``."""

    executing: List[Task] = field(default_factory=list)
    finished: List[Task] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskDirectory":
        return cls(
            executing=[Task.from_dict(t) for t in data.get("executing_tasks") or []],
            finished=[Task.from_dict(t) for t in data.get("finished_tasks") or []],
        )

    def find_executing(self, target: OperationIdentity) -> Optional[Task]:
        return next((t for t in self.executing if matches(t, target)), None)

    def find_finished(self, target: OperationIdentity) -> Optional[Task]:
        return next((t for t in self.finished if matches(t, target)), None)


class TaskDirectoryReader:
    """Fetches the current executing and finished tasks."""

    def __init__(self, session, logger=None):
        self.session = session
        self.log = logger or LOG

    def fetch_tasks(self) -> TaskDirectory:
        """Fetch a fresh task directory.

        Raises:
            CephAPIConnectionError: Connection failed
            CephAPITimeout: Request timed out
            CephAPIError: Non-success status or unexpected body
        """
        status, body = self.session.request("GET", "task", retry=True)
        if not 200 <= status < 300:
            raise CephAPIError(
                f"could not get tasks: HTTP {status}: {describe_error(body)}",
                status_code=status,
                response_data=body,
            )
        if not isinstance(body, dict):
            raise CephAPIError(
                f"unexpected task list response: {body!r}",
                status_code=status,
                response_data=body,
            )

        directory = TaskDirectory.from_dict(body)
        self.log.debug(
            "%d tasks executing, %d tasks finished",
            len(directory.executing),
            len(directory.finished),
        )
        return directory


class TaskWaiter:
    """Polls the task directory until an operation's task has finished.

    Waiting happens in two phases. The first polls for as long as a matching
    task is listed as executing; operations may legitimately run for a long
    time, so it has no bound. The second looks for the task in the finished
    list, starting with the snapshot that ended the first phase, and gives
    up after ``max_finished_polls`` snapshots.
    """

    def __init__(
        self,
        reader: TaskDirectoryReader,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_finished_polls: int = DEFAULT_MAX_FINISHED_POLLS,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ):
        self.reader = reader
        self.poll_interval = poll_interval
        self.max_finished_polls = max_finished_polls
        self.sleep = sleep
        self.log = logger or LOG

    def wait(self, target: OperationIdentity) -> Task:
        """Block until the task for ``target`` is finished.

        Returns:
            The finished task. Whether the operation worked is in
            ``Task.success``.

        Raises:
            CephTaskIndeterminate: The task was never seen as finished
            CephAPIError: Reading the task directory failed
        """
        directory = self.reader.fetch_tasks()
        while directory.find_executing(target) is not None:
            self.log.debug("still executing: %s", target.describe())
            self.sleep(self.poll_interval)
            directory = self.reader.fetch_tasks()

        for attempt in range(self.max_finished_polls):
            if attempt:
                self.sleep(self.poll_interval)
                directory = self.reader.fetch_tasks()

            task = directory.find_finished(target)
            if task is not None:
                self.log.debug("finished: %s (success=%s)", target.describe(), task.success)
                return task

            self.log.debug("still not done: %s (attempt %d)", target.describe(), attempt)

        self.log.error(
            "%s left the executing tasks but was not reported finished after %d polls",
            target.describe(),
            self.max_finished_polls,
        )
        raise CephTaskIndeterminate(
            f"outcome of {target.describe()} is unknown: task not found among "
            f"finished tasks after {self.max_finished_polls} polls",
            identity=target,
        )
