"""Tests for panda.toml configuration."""

from pathlib import Path

import pytest

from arduino_panda.config import (
    DEFAULT_BUILD_PATH,
    DEFAULT_COMPLETION_MARKERS,
    ProjectConfig,
    expand_build_path,
    get_config_value,
    list_config,
    load_project_config,
    load_project_config_or_default,
    set_config_value,
)
from arduino_panda.errors import ConfigError


class TestLoadProjectConfig:
    def test_load_minimal_toml(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[board]\nfqbn = "arduino:avr:uno"\n\n[serial]\nport = "/dev/ttyUSB0"\n')
        config = load_project_config(tmp_path)
        assert config.board == "arduino:avr:uno"
        assert config.port == "/dev/ttyUSB0"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project_config(tmp_path)

    def test_missing_sections_get_defaults(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[board]\nfqbn = "arduino:avr:uno"\n')
        config = load_project_config(tmp_path)
        assert config.port is None
        assert config.toolchain.cli_path == "arduino-cli"
        assert config.build.path == DEFAULT_BUILD_PATH
        assert config.build.compile_mode == "single"
        assert config.upload.completion_markers == DEFAULT_COMPLETION_MARKERS

    def test_toolchain_and_build_sections(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text(
            '[toolchain]\ncli_path = "/opt/arduino/arduino-cli"\n\n'
            '[build]\npath = "out"\ncompile_mode = "multi"\n'
        )
        config = load_project_config(tmp_path)
        assert config.toolchain.cli_path == "/opt/arduino/arduino-cli"
        assert config.build.path == "out"
        assert config.build.compile_mode == "multi"

    def test_completion_markers(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[upload]\ncompletion_markers = ["Hard resetting", "Leaving..."]\n')
        config = load_project_config(tmp_path)
        assert config.upload.completion_markers == ["Hard resetting", "Leaving..."]

    def test_empty_toml(self, tmp_path):
        (tmp_path / "panda.toml").write_text("")
        config = load_project_config(tmp_path)
        assert config.board is None
        assert config.build.path == DEFAULT_BUILD_PATH

    def test_marker_string_is_one_marker(self, tmp_path):
        (tmp_path / "panda.toml").write_text('[upload]\ncompletion_markers = "Flash OK"\n')
        assert load_project_config(tmp_path).upload.completion_markers == ["Flash OK"]

    @pytest.mark.parametrize("markers", ["[]", '[""]', "[1, 2]", "42"])
    def test_bad_completion_markers(self, tmp_path, markers):
        (tmp_path / "panda.toml").write_text(f"[upload]\ncompletion_markers = {markers}\n")
        with pytest.raises(ConfigError, match="completion_markers"):
            load_project_config(tmp_path)

    def test_unquoted_port_becomes_string(self, tmp_path):
        (tmp_path / "panda.toml").write_text("[serial]\nport = 3\n")
        assert load_project_config(tmp_path).port == "3"

    def test_non_string_board(self, tmp_path):
        (tmp_path / "panda.toml").write_text("[board]\nfqbn = [\"arduino:avr:uno\"]\n")
        with pytest.raises(ConfigError, match="board.fqbn"):
            load_project_config(tmp_path)

    def test_section_must_be_table(self, tmp_path):
        (tmp_path / "panda.toml").write_text('serial = "COM3"\n')
        with pytest.raises(ConfigError, match="serial"):
            load_project_config(tmp_path)

    def test_defaults_without_file(self, tmp_path):
        config = load_project_config_or_default(tmp_path)
        assert config == ProjectConfig()

    def test_default_markers_are_not_shared(self):
        a = ProjectConfig()
        a.upload.completion_markers.append("custom")
        assert "custom" not in ProjectConfig().upload.completion_markers


class TestExpandBuildPath:
    def test_workspace_placeholder(self, tmp_path):
        assert expand_build_path("${workspaceFolder}/build", tmp_path) == tmp_path / "build"

    def test_literal_path(self, tmp_path):
        assert expand_build_path("/var/build", tmp_path) == Path("/var/build")

    def test_no_workspace_leaves_template(self):
        assert expand_build_path("${workspaceFolder}/build", None) == Path("${workspaceFolder}/build")


class TestGetConfigValue:
    def test_dotted_key(self, tmp_path):
        (tmp_path / "panda.toml").write_text('[board]\nfqbn = "arduino:avr:nano"\n')
        assert get_config_value(tmp_path, "board.fqbn") == "arduino:avr:nano"

    def test_missing_key_returns_none(self, tmp_path):
        (tmp_path / "panda.toml").write_text('[board]\nfqbn = "arduino:avr:nano"\n')
        assert get_config_value(tmp_path, "serial.port") is None

    def test_no_file_returns_none(self, tmp_path):
        assert get_config_value(tmp_path, "board.fqbn") is None


class TestSetConfigValue:
    def test_set_creates_section(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[board]\nfqbn = "arduino:avr:uno"\n')
        set_config_value(tmp_path, "serial.port", "COM3")
        content = toml.read_text()
        assert "[serial]" in content
        assert 'port = "COM3"' in content
        assert load_project_config(tmp_path).port == "COM3"

    def test_set_updates_existing(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[build]\ncompile_mode = "single"\n')
        set_config_value(tmp_path, "build.compile_mode", "multi")
        content = toml.read_text()
        assert 'compile_mode = "multi"' in content
        assert '"single"' not in content

    def test_insert_into_middle_section(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[board]\nfqbn = "arduino:avr:uno"\n\n[serial]\nport = "COM1"\n')
        set_config_value(tmp_path, "board.note", "bench unit")
        config = load_project_config(tmp_path)
        assert get_config_value(tmp_path, "board.note") == "bench unit"
        assert config.port == "COM1"

    def test_numeric_port_stays_a_string(self, tmp_path):
        set_config_value(tmp_path, "serial.port", "3")
        assert 'port = "3"' in (tmp_path / "panda.toml").read_text()
        assert load_project_config(tmp_path).port == "3"

    def test_single_completion_marker_is_written_as_list(self, tmp_path):
        set_config_value(tmp_path, "upload.completion_markers", "Flash OK")
        assert get_config_value(tmp_path, "upload.completion_markers") == ["Flash OK"]
        assert load_project_config(tmp_path).upload.completion_markers == ["Flash OK"]

    def test_windows_path_is_escaped(self, tmp_path):
        set_config_value(tmp_path, "toolchain.cli_path", r"C:\Tools\arduino-cli.exe")
        assert load_project_config(tmp_path).toolchain.cli_path == r"C:\Tools\arduino-cli.exe"

    def test_list_value(self, tmp_path):
        set_config_value(tmp_path, "upload.completion_markers", ["Done uploading", "Leaving..."])
        assert get_config_value(tmp_path, "upload.completion_markers") == ["Done uploading", "Leaving..."]

    def test_file_without_trailing_newline(self, tmp_path):
        toml = tmp_path / "panda.toml"
        toml.write_text('[board]\nfqbn = "arduino:avr:uno"')
        set_config_value(tmp_path, "board.extra", "x")
        set_config_value(tmp_path, "serial.port", "COM9")
        assert list_config(tmp_path) == {
            "board.fqbn": "arduino:avr:uno",
            "board.extra": "x",
            "serial.port": "COM9",
        }

    def test_undotted_key_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="dotted"):
            set_config_value(tmp_path, "port", "COM3")

    def test_set_creates_file_if_missing(self, tmp_path):
        set_config_value(tmp_path, "board.fqbn", "arduino:avr:uno")
        assert (tmp_path / "panda.toml").exists()
        assert load_project_config(tmp_path).board == "arduino:avr:uno"


class TestListConfig:
    def test_returns_flat_dict(self, tmp_path):
        (tmp_path / "panda.toml").write_text(
            '[board]\nfqbn = "arduino:avr:uno"\n\n[serial]\nport = "/dev/ttyUSB0"\n'
        )
        assert list_config(tmp_path) == {
            "board.fqbn": "arduino:avr:uno",
            "serial.port": "/dev/ttyUSB0",
        }

    def test_missing_file(self, tmp_path):
        assert list_config(tmp_path) == {}
