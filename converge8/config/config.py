"""
This module loads the library config (polling windows per condition kind,
optimistic update retries and logging) at import time, validates it and does
the initial log config
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import assert_config
from .validation import get_invalid_params

CONFIG_DIR = os.path.dirname(__file__)


def load_library_config(
    config_dir: str = CONFIG_DIR, override_env_vars: bool = True
) -> aconfig.Config:
    """Read config.yaml from the given directory and validate it against the
    config_validation.yaml beside it

    Raises:
        ConfigError:  if any value fails validation
    """
    loaded = aconfig.Config.from_yaml(
        os.path.join(config_dir, "config.yaml"),
        override_env_vars=override_env_vars,
    )

    # Validation rules never take env overrides
    validation = aconfig.Config.from_yaml(
        os.path.join(config_dir, "config_validation.yaml"),
        override_env_vars=False,
    )
    invalid_params = get_invalid_params(loaded, validation)
    assert_config(
        not invalid_params,
        f"Library configuration found invalid values: {invalid_params}",
    )
    return loaded


library_config = load_library_config()

# Do initial alog configuration
alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
