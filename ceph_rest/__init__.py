"""
Ceph REST - manage Ceph RBD block images through the Ceph REST API.

Mutations run as background tasks on the server; this package issues them,
tracks the resulting tasks to completion and retries failed ones.
"""

__version__ = "0.1.0"
__all__ = ["cli", "client"]
