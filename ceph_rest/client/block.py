"""RBD block image operations.

Mutations are accepted by the server and run as background tasks. Each
mutation is issued, its task is tracked until it finishes, and a failed task
causes the whole mutation to be issued again, up to ``max_iterations``
retries.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from oslo_log import log as logging

from .exceptions import (
    CephAPIError,
    CephImageAlreadyExists,
    CephImageNotFound,
    CephMaxIterationsExceeded,
    CephValidationError,
)
from .tasks import (
    TASK_DELETE,
    TASK_EDIT,
    OperationIdentity,
    Task,
    TaskDirectoryReader,
    TaskWaiter,
)
from .utils import describe_error, normalize_namespace, path_join, quote_image_spec

LOG = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 30

# Ceph error code for EEXIST
IMAGE_ALREADY_EXISTS = "17"

CREATE_TRACK_STATUSES = frozenset({201, 202})
# The server may still spawn a task before reporting a conflict with 400
UPDATE_TRACK_STATUSES = frozenset({200, 202, 400})
DELETE_TRACK_STATUSES = frozenset({202, 204, 400})


@dataclass
class RBDImage:
    """RBD image as returned by ``GET /api/block/image/{image_spec}``."""

    name: str
    pool_name: str
    size: int = 0
    namespace: Optional[str] = None
    obj_size: int = 0
    num_objs: int = 0
    order: int = 0
    block_name_prefix: str = ""
    unique_id: str = ""
    id: str = ""
    image_format: int = 0
    features: int = 0
    features_name: List[str] = field(default_factory=list)
    timestamp: Optional[str] = None
    stripe_count: int = 0
    stripe_unit: int = 0
    data_pool: Optional[str] = None
    parent: Any = None
    snapshots: List[Any] = field(default_factory=list)
    total_disk_usage: int = 0
    disk_usage: int = 0
    configuration: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RBDImage":
        return cls(
            name=data.get("name") or "",
            pool_name=data.get("pool_name") or "",
            size=data.get("size") or 0,
            namespace=normalize_namespace(data.get("namespace")),
            obj_size=data.get("obj_size") or 0,
            num_objs=data.get("num_objs") or 0,
            order=data.get("order") or 0,
            block_name_prefix=data.get("block_name_prefix") or "",
            unique_id=data.get("unique_id") or "",
            id=data.get("id") or "",
            image_format=data.get("image_format") or 0,
            features=data.get("features") or 0,
            features_name=data.get("features_name") or [],
            timestamp=data.get("timestamp"),
            stripe_count=data.get("stripe_count") or 0,
            stripe_unit=data.get("stripe_unit") or 0,
            data_pool=data.get("data_pool"),
            parent=data.get("parent"),
            snapshots=data.get("snapshots") or [],
            total_disk_usage=data.get("total_disk_usage") or 0,
            disk_usage=data.get("disk_usage") or 0,
            configuration=data.get("configuration") or [],
        )

    @property
    def image_spec(self) -> str:
        return path_join(self.pool_name, self.namespace, self.name)


@dataclass
class RBDCreate:
    """Body of ``POST /api/block/image``."""

    pool_name: str
    name: str
    size: int
    namespace: Optional[str] = None
    features: Optional[List[str]] = None
    obj_size: Optional[int] = None
    stripe_unit: Optional[int] = None
    stripe_count: Optional[int] = None
    data_pool: Optional[str] = None
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "features": self.features,
            "pool_name": self.pool_name,
            "namespace": normalize_namespace(self.namespace),
            "name": self.name,
            "size": self.size,
            "obj_size": self.obj_size,
            "stripe_unit": self.stripe_unit,
            "stripe_count": self.stripe_count,
            "data_pool": self.data_pool,
            "configuration": self.configuration,
        }


@dataclass
class RBDUpdate:
    """Body of ``PUT /api/block/image/{image_spec}``.

    ``name`` is the image name after the update; pass the current name to
    only resize.
    """

    name: str
    size: Optional[int] = None
    features: Optional[List[str]] = None
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "features": self.features,
            "name": self.name,
            "configuration": self.configuration,
        }
        if self.size is not None:
            data["size"] = self.size
        return data


@dataclass
class Attempt:
    """One issued mutation and the task it produced."""

    number: int
    status: int
    task: Task


def _error_code(body: Any) -> Optional[str]:
    if isinstance(body, dict) and body.get("code") is not None:
        return str(body["code"])
    return None


def _api_error(message: str, status: int, body: Any) -> CephAPIError:
    error_class = CephImageNotFound if status == 404 else CephAPIError
    return error_class(
        f"{message}: HTTP {status}: {describe_error(body)}",
        status_code=status,
        response_data=body,
    )


class BlockImageClient:
    """Manages RBD images through the Ceph REST API."""

    def __init__(
        self,
        session,
        waiter: Optional[TaskWaiter] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        logger=None,
    ):
        """Initialize the block image client.

        Args:
            session: Logged-in :class:`ceph_rest.client.session.CephSession`
            waiter: Task waiter (built on ``session`` if omitted)
            max_iterations: Number of times a mutation is re-issued after
                its task failed
            logger: Logger to use (defaults to this module's logger)
        """
        self.session = session
        self.log = logger or LOG
        self.waiter = waiter or TaskWaiter(TaskDirectoryReader(session, logger=self.log), logger=self.log)
        self.max_iterations = max_iterations

    def _reconcile(
        self,
        identity: OperationIdentity,
        issue: Callable[[], Tuple[int, Any]],
        track_statuses: FrozenSet[int],
        success_status: int,
        already_exists_message: Optional[str] = None,
    ) -> int:
        attempts: List[Attempt] = []

        for number in range(self.max_iterations + 1):
            status, body = issue()

            if status == 400 and already_exists_message and _error_code(body) == IMAGE_ALREADY_EXISTS:
                self.log.debug("err %s (%s)", IMAGE_ALREADY_EXISTS, describe_error(body))
                raise CephImageAlreadyExists(
                    f"{already_exists_message}: {describe_error(body)}",
                    status_code=status,
                    response_data=body,
                )

            if status not in track_statuses:
                if 200 <= status < 300:
                    return status
                raise _api_error(f"could not run {identity.describe()}", status, body)

            task = self.waiter.wait(identity)
            attempts.append(Attempt(number=number, status=status, task=task))

            if task.success:
                self.log.info("%s finished after %d attempt(s)", identity.describe(), len(attempts))
                return success_status

            self.log.warning(
                "%s failed on attempt %d: %s",
                identity.describe(),
                number,
                task.exception or "no error detail",
            )

        last_error = attempts[-1].task.exception if attempts else None
        self.log.error(
            "%s failed %d times, giving up: %s", identity.describe(), len(attempts), last_error
        )
        raise CephMaxIterationsExceeded(
            f"max iterations exceeded: {identity.describe()} failed {len(attempts)} "
            f"times, last error: {last_error or 'no error detail'}",
            attempts=attempts,
        )

    def create_image(self, image: RBDCreate) -> int:
        """Create an RBD image and wait for the server to finish it.

        Returns:
            201 on success, or the server's status if no task was spawned

        Raises:
            CephValidationError: Pool or image name is empty
            CephImageAlreadyExists: Image already exists
            CephMaxIterationsExceeded: Task kept failing
            CephTaskIndeterminate: Task outcome could not be observed
            CephAPIError: API error
        """
        if not image.pool_name:
            raise CephValidationError("param pool_name can not be empty")
        if not image.name:
            raise CephValidationError("param image_name can not be empty")

        identity = OperationIdentity.for_create(image.pool_name, image.namespace, image.name)
        body = image.to_dict()

        self.log.debug("creating rbd image %s (%d bytes)", identity.describe(), image.size)

        return self._reconcile(
            identity,
            lambda: self.session.request("POST", "block/image", json_data=body, retry=True),
            CREATE_TRACK_STATUSES,
            201,
            already_exists_message="RBD image already exists (error creating image)",
        )

    def update_image(
        self,
        pool_name: str,
        namespace: Optional[str],
        image_name: str,
        update: RBDUpdate,
    ) -> int:
        """Resize and/or rename an RBD image.

        Returns:
            200 on success, or the server's status if no task was spawned

        Raises:
            CephValidationError: Pool, image or new name is empty
            CephImageAlreadyExists: Target name is taken
            CephImageNotFound: Image not found
            CephMaxIterationsExceeded: Task kept failing
            CephTaskIndeterminate: Task outcome could not be observed
            CephAPIError: API error
        """
        if not pool_name:
            raise CephValidationError("param pool_name can not be empty")
        if not image_name:
            raise CephValidationError("param image_name can not be empty")
        if not update.name:
            raise CephValidationError("param name of the update can not be empty")

        image_spec = path_join(pool_name, namespace, image_name)
        identity = OperationIdentity.for_image_spec(TASK_EDIT, image_spec)
        path = f"block/image/{quote_image_spec(image_spec)}"
        body = update.to_dict()

        return self._reconcile(
            identity,
            lambda: self.session.request("PUT", path, json_data=body, retry=True),
            UPDATE_TRACK_STATUSES,
            200,
            already_exists_message="RBD image already exists (error renaming image)",
        )

    def delete_image(self, pool_name: str, namespace: Optional[str], image_name: str) -> int:
        """Delete an RBD image.

        Returns:
            204 on success, or the server's status if no task was spawned

        Raises:
            CephValidationError: Pool or image name is empty
            CephImageNotFound: Image not found
            CephMaxIterationsExceeded: Task kept failing
            CephTaskIndeterminate: Task outcome could not be observed
            CephAPIError: API error
        """
        if not pool_name:
            raise CephValidationError("param pool_name can not be empty")
        if not image_name:
            raise CephValidationError("param image_name can not be empty")

        image_spec = path_join(pool_name, namespace, image_name)
        identity = OperationIdentity.for_image_spec(TASK_DELETE, image_spec)
        path = f"block/image/{quote_image_spec(image_spec)}"

        return self._reconcile(
            identity,
            lambda: self.session.request("DELETE", path, retry=True),
            DELETE_TRACK_STATUSES,
            204,
        )

    def get_image(self, image_spec: str) -> RBDImage:
        """Get an RBD image by spec (``pool[/namespace]/image``).

        Raises:
            CephValidationError: Image spec is empty
            CephImageNotFound: Image not found
            CephAPIError: API error
        """
        if not image_spec:
            raise CephValidationError("param image_spec can not be empty")

        status, body = self.session.request("GET", f"block/image/{quote_image_spec(image_spec)}")
        if status != 200 or not isinstance(body, dict):
            raise _api_error(f"could not get image {image_spec}", status, body)
        return RBDImage.from_dict(body)

    def list_images(self, pool_name: Optional[str] = None) -> List[RBDImage]:
        """List RBD images, optionally restricted to one pool."""
        params = {"pool_name": pool_name} if pool_name else None

        status, body = self.session.request("GET", "block/image", params=params)
        if status != 200 or not isinstance(body, list):
            raise _api_error("could not list images", status, body)

        images = []
        for pool in body:
            for image in pool.get("value") or []:
                images.append(RBDImage.from_dict(image))
        return images
