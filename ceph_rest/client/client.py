"""Ceph REST API client facade."""

import time
from typing import Callable, Optional

from oslo_log import log as logging

from .block import DEFAULT_MAX_ITERATIONS, BlockImageClient
from .configuration import CONF_GROUP
from .exceptions import CephLoginError, CephRestException, CephValidationError
from .session import CephSession, Server
from .tasks import (
    DEFAULT_MAX_FINISHED_POLLS,
    DEFAULT_POLL_INTERVAL,
    TaskDirectoryReader,
    TaskWaiter,
)

LOG = logging.getLogger(__name__)


class CephClient:
    """Wires a session, the task directory and the block image client together."""

    def __init__(
        self,
        session: CephSession,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_finished_polls: int = DEFAULT_MAX_FINISHED_POLLS,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ):
        self.session = session
        self.log = logger or LOG
        self.tasks = TaskDirectoryReader(session, logger=self.log)
        self.waiter = TaskWaiter(
            self.tasks,
            poll_interval=poll_interval,
            max_finished_polls=max_finished_polls,
            sleep=sleep,
            logger=self.log,
        )
        self.images = BlockImageClient(
            session,
            waiter=self.waiter,
            max_iterations=max_iterations,
            logger=self.log,
        )

    @classmethod
    def from_config(cls, conf, address: str, group: str = CONF_GROUP, logger=None) -> "CephClient":
        """Build a client (not logged in) for one server from configuration."""
        opts = conf[group]
        server = Server(
            address=address,
            port=opts.port,
            protocol=opts.protocol,
            api_path=opts.api_path,
            insecure_skip_verify=opts.insecure_skip_verify,
        )
        session = CephSession(
            server,
            timeout=opts.timeout,
            retry_count=opts.retry_count,
            retry_wait=opts.retry_wait,
            logger=logger,
        )
        return cls(
            session,
            max_iterations=opts.max_iterations,
            poll_interval=opts.poll_interval,
            max_finished_polls=opts.max_finished_polls,
            logger=logger,
        )

    def close(self):
        """Close the underlying session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def connect(
    conf,
    username: Optional[str] = None,
    password: Optional[str] = None,
    group: str = CONF_GROUP,
    logger=None,
) -> CephClient:
    """Log in to the first configured server that accepts the credentials.

    Each server is probed for a redirect to the active manager before
    logging in. Explicit ``username``/``password`` take precedence over the
    configured ones.

    Raises:
        CephValidationError: No servers or credentials configured
        CephLoginError: No server accepted the login
    """
    log = logger or LOG
    opts = conf[group]
    username = username or opts.username
    password = password or opts.password

    if not opts.servers:
        raise CephValidationError("no Ceph REST API servers configured")
    if not username:
        raise CephValidationError("param username can not be empty")
    if not password:
        raise CephValidationError("param password can not be empty")

    failures = []
    for address in opts.servers:
        client = CephClient.from_config(conf, address, group=group, logger=logger)
        try:
            client.session.check_mgr_address()
            client.session.login(username, password)
        except CephRestException as e:
            log.warning("Could not log in to %s: %s", address, e.message)
            failures.append(f"{address}: {e.message}")
            client.close()
            continue
        return client

    raise CephLoginError("could not login to any Ceph REST API server: " + "; ".join(failures))
