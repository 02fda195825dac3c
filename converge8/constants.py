"""
Shared module to hold constant values for the library
"""

# Managed resource type
MANAGED_KIND = "MongoDB"
MANAGED_GROUP = "mongodb.com"
MANAGED_VERSION = "v1"
MANAGED_API_VERSION = f"{MANAGED_GROUP}/{MANAGED_VERSION}"

# Child resource types
STATEFULSET_KIND = "StatefulSet"
STATEFULSET_API_VERSION = "apps/v1"
SECRET_KIND = "Secret"
POD_KIND = "Pod"
CORE_API_VERSION = "v1"

# Phases reported in the managed resource's status
PHASE_RUNNING = "Running"
PHASE_PENDING = "Pending"

# StatefulSet update strategy types
ROLLING_UPDATE_STRATEGY = "RollingUpdate"
ON_DELETE_STRATEGY = "OnDelete"

# Naming contract shared with the controller
AUTOMATION_CONFIG_KEY = "cluster-config.json"
AUTOMATION_CONFIG_SECRET_SUFFIX = "-config"
SERVICE_SUFFIX = "-svc"
CLUSTER_DOMAIN = "svc.cluster.local"
DEFAULT_MONGOD_PORT = 27017

# Status fields
STATUS_PHASE_KEY = "phase"
STATUS_URI_KEY = "mongoUri"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
