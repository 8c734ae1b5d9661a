"""Configuration options for the Ceph REST client."""

import os
from typing import List, Optional

from oslo_config import cfg
from oslo_log import log as logging

# Configuration group name
CONF_GROUP = "ceph_rest"


def _get_ceph_rest_opts():
    """Get Ceph REST client configuration options.

    Returns:
        List of oslo_config options
    """
    return [
        # Connection
        cfg.ListOpt(
            "servers",
            default=[],
            help=(
                "Ceph manager hosts (FQDN or IP) serving the REST API. They are "
                "tried in order until a login succeeds."
            ),
        ),
        cfg.PortOpt(
            "port",
            default=8443,
            help="TCP port of the Ceph REST API",
        ),
        cfg.StrOpt(
            "protocol",
            default="https",
            choices=["http", "https"],
            help="HTTP protocol used to reach the Ceph REST API",
        ),
        cfg.StrOpt(
            "api_path",
            default="api",
            help="Path of the REST API below the server root",
        ),
        cfg.BoolOpt(
            "insecure_skip_verify",
            default=True,
            help="Skip verification of the server certificate",
        ),
        cfg.IntOpt(
            "timeout",
            default=30,
            min=1,
            max=300,
            help="HTTP request timeout in seconds",
        ),
        # Credentials
        cfg.StrOpt(
            "username",
            default=None,
            help="Username used to log in to the Ceph REST API",
        ),
        cfg.StrOpt(
            "password",
            default=None,
            secret=True,
            help="Password used to log in to the Ceph REST API",
        ),
        # Transport retries
        cfg.IntOpt(
            "retry_count",
            default=10,
            min=0,
            help=(
                "Number of retries for mutating requests and task polling when the "
                "server answers with a status other than 200, 201, 202, 204, 400 or 404"
            ),
        ),
        cfg.IntOpt(
            "retry_wait",
            default=10,
            min=0,
            help="Fixed wait in seconds between transport retries",
        ),
        # Task tracking
        cfg.IntOpt(
            "poll_interval",
            default=5,
            min=0,
            help="Seconds between two polls of the task list",
        ),
        cfg.IntOpt(
            "max_finished_polls",
            default=600,
            min=1,
            help=(
                "Number of polls for a task to show up as finished once it left the "
                "executing tasks. The outcome is reported as unknown afterwards."
            ),
        ),
        cfg.IntOpt(
            "max_iterations",
            default=30,
            min=0,
            help="Number of times a mutation is issued again after its task failed",
        ),
    ]


def register_opts(conf, group=None):
    """Register Ceph REST client configuration options.

    Args:
        conf: oslo_config.cfg.ConfigOpts instance
        group: Configuration group name (default: CONF_GROUP)
    """
    if group is None:
        group = CONF_GROUP
    conf.register_opts(_get_ceph_rest_opts(), group=group)


def list_opts():
    """Return a list of options for oslo-config-generator.

    Returns:
        List of (group_name, options) tuples
    """
    return [
        (CONF_GROUP, _get_ceph_rest_opts()),
    ]


def get_ceph_rest_opts():
    """Get Ceph REST client configuration options (public API)."""
    return _get_ceph_rest_opts()


def load_config(config_files: Optional[List[str]] = None) -> cfg.ConfigOpts:
    """Build a ConfigOpts with the client and logging options.

    Missing config files are not an error; defaults are used.

    Args:
        config_files: Paths of INI files to read

    Returns:
        Parsed oslo_config.cfg.ConfigOpts
    """
    conf = cfg.ConfigOpts()
    logging.register_options(conf)
    register_opts(conf)
    existing = [path for path in config_files or [] if os.path.exists(path)]
    conf(args=[], project="ceph-rest", default_config_files=existing)
    return conf
