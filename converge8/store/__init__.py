"""
The Store is the abstraction in charge of interacting with the kubernetes
cluster to look up, create, update, and delete resources.
"""

# Local
from .base import StoreBase
from .dry_run_store import DryRunStore
from .openshift_store import OpenshiftStore
