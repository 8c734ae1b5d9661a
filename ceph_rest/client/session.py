"""HTTP session and transport retry policy for the Ceph REST API."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

import requests
from oslo_log import log as logging
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import (
    CephAPIConnectionError,
    CephAPIError,
    CephAPITimeout,
    CephLoginError,
    CephValidationError,
)
from .utils import describe_error

LOG = logging.getLogger(__name__)

CEPH_MIME_TYPE = "application/vnd.ceph.api.v1.0+json"
JSON_MIME_TYPE = "application/json"

DEFAULT_HEADERS = {
    "Accept": CEPH_MIME_TYPE,
    "Content-Type": JSON_MIME_TYPE,
}

# Statuses the caller interprets itself. 400 carries domain conflicts and
# 404 a missing resource, neither of which gets better by asking again.
NO_RETRY_STATUSES = frozenset({200, 201, 202, 204, 400, 404})

DEFAULT_RETRY_COUNT = 10
DEFAULT_RETRY_WAIT = 10


class TaskRetry(Retry):
    """Retry policy for mutating calls and task polling.

    Every status outside :data:`NO_RETRY_STATUSES` is retried, for every
    HTTP method, with a fixed wait between attempts instead of urllib3's
    exponential backoff. Once the budget is spent the last response is
    handed back rather than raising.
    """

    def __init__(self, *args, wait_seconds: float = DEFAULT_RETRY_WAIT, **kwargs):
        super().__init__(*args, **kwargs)
        self.wait_seconds = wait_seconds

    def new(self, **kw):
        retry = super().new(**kw)
        retry.wait_seconds = self.wait_seconds
        return retry

    def get_backoff_time(self) -> float:
        if not self.history:
            return 0
        return self.wait_seconds

    def is_retry(self, method: str, status_code: int, has_retry_after: bool = False) -> bool:
        if not self._is_method_retryable(method):
            return False
        return bool(self.total) and status_code not in NO_RETRY_STATUSES

    @classmethod
    def build(cls, retry_count: int = DEFAULT_RETRY_COUNT, retry_wait: float = DEFAULT_RETRY_WAIT):
        return cls(
            total=retry_count,
            allowed_methods=None,  # mutations are retried too
            raise_on_status=False,
            respect_retry_after_header=False,
            wait_seconds=retry_wait,
        )


@dataclass
class Server:
    """Location of a Ceph manager serving the REST API."""

    address: str
    port: int = 8443
    protocol: str = "https"
    api_path: str = "api"
    insecure_skip_verify: bool = False

    def get_url(self, sub_path: str) -> str:
        api_path = self.api_path.strip("/")
        return f"{self.protocol}://{self.address}:{self.port}/{api_path}/{sub_path.lstrip('/')}"


class CephSession:
    """Authenticated HTTP session against one Ceph manager.

    Two ``requests`` sessions are kept: a plain one for login, logout and
    reads, and one mounted with :class:`TaskRetry` for mutations and task
    polling. Both carry the same headers and bearer token.
    """

    def __init__(
        self,
        server: Server,
        timeout: int = 30,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_wait: float = DEFAULT_RETRY_WAIT,
        logger=None,
    ):
        """Initialize the session.

        Args:
            server: Ceph manager location
            timeout: HTTP request timeout in seconds
            retry_count: Number of retries for retryable requests
            retry_wait: Fixed wait in seconds between retries
            logger: Logger to use (defaults to this module's logger)
        """
        self.server = server
        self.timeout = timeout
        self.retry_count = retry_count
        self.retry_wait = retry_wait
        self.verify_ssl = not server.insecure_skip_verify
        self.log = logger or LOG
        self.auth: Dict[str, Any] = {}

        self.session = self._new_session()
        self.retry_session = self._new_session(TaskRetry.build(retry_count, retry_wait))

    def _new_session(self, max_retries: Optional[Retry] = None) -> requests.Session:
        session = requests.Session()
        session.headers.update(DEFAULT_HEADERS)
        if max_retries is not None:
            adapter = HTTPAdapter(max_retries=max_retries)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        return session

    def _send(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = False,
    ) -> requests.Response:
        url = self.server.get_url(path)
        session = self.retry_session if retry else self.session

        self.log.debug("%s %s (retry=%s)", method, url, retry)

        try:
            response = session.request(
                method=method,
                url=url,
                json=json_data,
                params=params,
                timeout=self.timeout,
                verify=self.verify_ssl,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise CephAPITimeout(f"API request timed out after {self.timeout}s: {e}")
        except requests.exceptions.ConnectionError as e:
            raise CephAPIConnectionError(f"Failed to connect to Ceph REST API at {url}: {e}")
        except requests.exceptions.RequestException as e:
            raise CephAPIError(f"API request failed: {e}")

        self.log.debug("%s %s -> HTTP %d", method, url, response.status_code)
        return response

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            if response.status_code < 400:
                raise CephAPIError(
                    f"Could not parse response body: {e}",
                    status_code=response.status_code,
                    response_data=response.text,
                )
            # Error pages from proxies are often plain text or HTML
            return response.text

    def request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = False,
    ) -> Tuple[int, Any]:
        """Execute one request against the API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: Path below the API root (e.g., block/image)
            json_data: Request body as JSON
            params: Query parameters
            retry: Use the :class:`TaskRetry` policy

        Returns:
            Tuple of (status code, parsed body). Non-success statuses are
            returned, not raised.

        Raises:
            CephAPIConnectionError: Connection failed
            CephAPITimeout: Request timed out
            CephAPIError: Other transport failure or unparsable body
        """
        response = self._send(method, path, json_data=json_data, params=params, retry=retry)
        return response.status_code, self._parse_body(response)

    def _set_token(self, token: Optional[str]) -> None:
        for session in (self.session, self.retry_session):
            if token:
                session.headers["Authorization"] = f"Bearer {token}"
            else:
                session.headers.pop("Authorization", None)

    @property
    def token(self) -> Optional[str]:
        return self.auth.get("token")

    def login(self, username: str, password: str) -> int:
        """Log in and attach the bearer token to the session.

        Returns:
            HTTP status of the login call (201)

        Raises:
            CephValidationError: Empty username or password
            CephLoginError: Login was refused
        """
        if not username:
            raise CephValidationError("param username can not be empty")
        if not password:
            raise CephValidationError("param password can not be empty")

        status, body = self.request(
            "POST", "auth", json_data={"username": username, "password": password}
        )
        if status != 201:
            raise CephLoginError(
                f"could not login to rest api server '{self.server.address}' with user "
                f"'{username}': expected http status 201, got {status}: {describe_error(body)}",
                status_code=status,
            )
        if not isinstance(body, dict) or not body.get("token"):
            raise CephLoginError(
                f"login to '{self.server.address}' returned no token", status_code=status
            )

        self.auth = body
        self._set_token(body["token"])
        self.log.info("Logged in to %s as %s", self.server.address, username)
        return status

    def logout(self) -> None:
        """Log out and drop the bearer token."""
        status, body = self.request("POST", "auth/logout")
        if status >= 300:
            raise CephAPIError(
                f"could not logout: {describe_error(body)}",
                status_code=status,
                response_data=body,
            )
        self.auth = {}
        self._set_token(None)

    def check_mgr_address(self) -> bool:
        """Follow a standby manager's redirect to the active one.

        Standby managers answer with ``303 See Other`` and a ``Location``
        header pointing at the active manager. The server address, port and
        protocol are updated in place.

        Returns:
            True if the server was re-pointed
        """
        response = self._send("GET", "")
        if response.status_code != 303:
            return False

        location = response.headers.get("Location")
        if not location:
            return False

        parts = urlsplit(location)
        if not parts.hostname:
            raise CephAPIError(f"invalid manager redirect location: {location}", status_code=303)

        self.server.address = parts.hostname
        self.server.protocol = parts.scheme or self.server.protocol
        if parts.port:
            self.server.port = parts.port
        self.log.info(
            "Redirected to active manager %s://%s:%d",
            self.server.protocol,
            self.server.address,
            self.server.port,
        )
        return True

    def close(self):
        """Close the HTTP sessions."""
        self.session.close()
        self.retry_session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
