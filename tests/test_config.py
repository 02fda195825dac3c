"""
Tests for the library config module

NOTE: Python makes it hard to change env vars in a way that will effect import
    time, so we're relying on the fact that aconfig is well tested and not
    actually validating the env-var override behavior!
"""

# Standard
import os
import shutil

# Third Party
import pytest

# First Party
import aconfig

# Local
from converge8 import config
from converge8.exceptions import ConfigError


def test_config_keys():
    """Make sure that the expected keys are present"""
    assert isinstance(config.optimistic_update.retries, int)
    assert isinstance(config.optimistic_update.backoff_base_seconds, float)
    for condition in [
        "statefulset_ready",
        "statefulset_update_strategy",
        "phase",
        "secret_exists",
        "automation_config_version",
    ]:
        assert config.timing[condition]["interval"] > 0
        assert config.timing[condition]["timeout"] >= 0


def test_missing_config_attribute():
    with pytest.raises(AttributeError):
        config.not_a_key  # pylint: disable=pointless-statement


def test_library_config_is_valid():
    """The shipped config passes its own validation"""
    assert not config.validation.get_invalid_params(
        config=config.library_config,
        validation_config=aconfig.Config.from_yaml(
            os.path.join(
                os.path.dirname(config.config.__file__), "config_validation.yaml"
            ),
            override_env_vars=False,
        ),
    )


def test_load_library_config_from_dir():
    """The shipped config directory loads the retry and timing config"""
    loaded = config.config.load_library_config(override_env_vars=False)
    assert loaded.optimistic_update.retries == 5
    assert loaded.timing.secret_exists.interval == 5.0


def test_load_library_config_invalid(tmp_path):
    """An out of range value fails loading with a ConfigError"""
    with open(
        os.path.join(config.config.CONFIG_DIR, "config.yaml"), encoding="utf-8"
    ) as handle:
        content = handle.read()
    (tmp_path / "config.yaml").write_text(
        content.replace("retries: 5", "retries: -1"), encoding="utf-8"
    )
    shutil.copy(
        os.path.join(config.config.CONFIG_DIR, "config_validation.yaml"),
        tmp_path / "config_validation.yaml",
    )
    with pytest.raises(ConfigError) as exc_info:
        config.config.load_library_config(str(tmp_path), override_env_vars=False)
    assert "optimistic_update.retries" in str(exc_info.value)


########################
## get_invalid_params ##
########################


def test_get_invalid_params_all_valid_params():
    """Test that get_invalid_params returns no invalid params when all are set
    to valid values
    """
    assert not config.validation.get_invalid_params(
        config=aconfig.Config({"key": 1}),
        validation_config=aconfig.Config({"key": {"type": "int", "min": 0, "max": 1}}),
    )


def test_get_invalid_params_all_invalid_params():
    """Test that get_invalid_params returns an invalid param when all are set
    to invalid values
    """
    assert config.validation.get_invalid_params(
        config=aconfig.Config({"key": 3}),
        validation_config=aconfig.Config(
            {"key": {"type": "int", "min": 0, "max": 1}},
        ),
    ) == ["key"]


def test_get_invalid_params_nested():
    """Nested keys are reported with dot notation"""
    assert config.validation.get_invalid_params(
        config=aconfig.Config({"timing": {"phase": {"interval": 0, "timeout": 5}}}),
        validation_config=aconfig.Config(
            {
                "timing": {
                    "phase": {
                        "interval": {"type": "number", "min": 0.001},
                        "timeout": {"type": "number", "min": 0},
                    }
                }
            }
        ),
    ) == ["timing.phase.interval"]


def test_get_invalid_params_missing_value():
    """A required parameter that is missing is invalid"""
    assert config.validation.get_invalid_params(
        config=aconfig.Config({}),
        validation_config=aconfig.Config({"key": {"type": "str"}}),
    ) == ["key"]


#####################
## parameter types ##
#####################


def test_number_parameter():
    """Test all validation cases for _NumberParameter"""
    ParamType = config.validation._NumberParameter

    # Valid Cases
    assert ParamType().validate(1)
    assert ParamType().validate(1.2)
    assert ParamType(min=0).validate(1)
    assert ParamType(max=1).validate(0.5)
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate("not a number")
    assert not ParamType().validate(True)
    assert not ParamType(min=0).validate(-1)
    assert not ParamType(max=1).validate(1.5)
    assert not ParamType(optional=False).validate(None)


def test_int_parameter():
    """Test all validation cases for _IntParameter"""
    ParamType = config.validation._IntParameter

    # Valid Cases
    assert ParamType().validate(1)
    assert ParamType(min=0).validate(1)
    assert ParamType(max=1).validate(1)
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate("not an int")
    assert not ParamType().validate(1.2)
    assert not ParamType(min=0).validate(-1)
    assert not ParamType(max=1).validate(2)
    assert not ParamType(optional=False).validate(None)


def test_str_parameter():
    """Test all validation cases for _StrParameter"""
    ParamType = config.validation._StrParameter

    # Valid Cases
    assert ParamType().validate("test")
    assert ParamType().validate("")
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate(1)
    assert not ParamType().validate(b"test")


def test_bool_parameter():
    """Test all validation cases for _BoolParameter"""
    ParamType = config.validation._BoolParameter

    # Valid Cases
    assert ParamType().validate(True)
    assert ParamType().validate(False)

    # Invalid Cases
    assert not ParamType().validate(1)
    assert not ParamType().validate("true")


def test_enum_parameter():
    """Test all validation cases for _EnumParameter"""
    ParamType = config.validation._EnumParameter

    # Valid Cases
    assert ParamType(values=["a", "b"]).validate("a")

    # Invalid Cases
    assert not ParamType(values=["a", "b"]).validate("c")
    assert not ParamType(values=["a", "b"]).validate(1)
    with pytest.raises(AssertionError):
        ParamType(values=[])


def test_unknown_parameter_type_is_a_nested_dict():
    """A dict whose type is unknown is parsed as a nested section"""
    parsed = config.validation._parse_validation_config(
        aconfig.Config({"section": {"type": "mystery", "key": {"type": "bool"}}})
    )
    assert list(parsed.keys()) == ["section.key"]
