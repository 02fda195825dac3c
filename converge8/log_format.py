"""
Custom logging formats that attach the resource under test and the scenario
run to every json log line
"""

# Standard
from typing import Optional

# First Party
from alog import AlogJsonFormatter
import alog

# Local
from . import config

log = alog.use_channel("SCNRO")


class Converge8JsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add the identifiers
    of the managed resource being verified, the scenarioId and thread
    information
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "kind",
        "apiVersion",
        "resourceName",
        "namespace",
        "scenarioId",
    ]

    def __init__(self, manifest: Optional[dict] = None, scenario_id=None):
        super().__init__()
        self.manifest = manifest
        self.scenario_id = scenario_id

    def format(self, record):
        if self.scenario_id:
            record.scenarioId = self.scenario_id

        if resource := getattr(record, "resource", self.manifest):
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata", {})
            record.resourceName = metadata.get("name")
            record.namespace = metadata.get("namespace")

        return super().format(record)


def configure_logging(manifest: Optional[dict] = None, scenario_id=None):
    """(Re)configure alog from the library config. When json logging is
    enabled, the given manifest and scenario_id are attached to every line.
    """
    alog.configure(
        default_level=config.log_level,
        filters=config.log_filters,
        formatter=Converge8JsonFormatter(manifest, scenario_id)
        if config.log_json
        else "pretty",
        thread_id=config.log_thread_id,
    )
    log.debug2("Configured logging for scenario %s", scenario_id)
