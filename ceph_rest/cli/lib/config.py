"""
Configuration and client construction for the CLI.

Connection settings come from an INI file (``[ceph_rest]`` section); the
server list and credentials can be overridden from the environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from oslo_log import log as logging

from ceph_rest.client import CephClient, connect
from ceph_rest.client.configuration import CONF_GROUP, load_config

DEFAULT_CONFIG_PATH = Path("/etc/ceph-rest/ceph-rest.conf")

_config_file_override: Optional[Path] = None


def set_config_file(path: Optional[Path]) -> None:
    """Use PATH instead of the environment or default config location."""
    global _config_file_override
    _config_file_override = path


def _config_path() -> Path:
    if _config_file_override is not None:
        return _config_file_override
    env = os.environ.get("CEPH_REST_CONFIG_PATH")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def load_cli_config():
    """
    Load config from ``--config-file``, ``CEPH_REST_CONFIG_PATH`` or ``/etc/ceph-rest/ceph-rest.conf``
    and apply environment overrides:

    - ``CEPH_SERVER``: comma separated list of servers
    - ``CEPH_PORT``, ``CEPH_HTTP_PROTOCOL``, ``CEPH_API_PATH``

    Missing files are not an error; defaults are returned.
    """
    conf = load_config([str(_config_path())])

    servers = os.environ.get("CEPH_SERVER")
    if servers:
        conf.set_override("servers", [s.strip() for s in servers.split(",") if s.strip()], CONF_GROUP)

    port = os.environ.get("CEPH_PORT")
    if port:
        conf.set_override("port", int(port), CONF_GROUP)

    for env_name, opt_name in (("CEPH_HTTP_PROTOCOL", "protocol"), ("CEPH_API_PATH", "api_path")):
        value = os.environ.get(env_name)
        if value:
            conf.set_override(opt_name, value, CONF_GROUP)

    return conf


def get_client() -> CephClient:
    """
    Load configuration, set up logging and log in.

    Credentials are taken from ``CEPH_USER``/``CEPH_PASSWORD`` when set,
    otherwise from the config file.
    """
    conf = load_cli_config()
    logging.setup(conf, "ceph-rest")
    return connect(
        conf,
        username=os.environ.get("CEPH_USER"),
        password=os.environ.get("CEPH_PASSWORD"),
    )
