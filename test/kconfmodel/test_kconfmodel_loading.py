# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from kconfmodel import Kconfig

TEST_FILES_PATH = os.path.abspath(os.path.dirname(__file__))
TESTS_PATH_OK = os.path.join(TEST_FILES_PATH, "kconfigs", "ok")
TESTS_PATH_WARNINGS = os.path.join(TEST_FILES_PATH, "kconfigs", "warnings")
TESTS_PATH_ERRORS = os.path.join(TEST_FILES_PATH, "kconfigs", "errors")


def fixture_names(path: str):
    return sorted(set(Path(file).stem for file in os.listdir(path) if file != "kconfigs_for_sourcing"))


class TestKconfigVersions:
    def test_kconfig_no_envvar(self, monkeypatch):
        monkeypatch.delenv("KCONFIG_PARSER_VERSION", raising=False)
        config = Kconfig(os.path.join(TESTS_PATH_OK, "Empty.in"))
        assert config.parser_version == 1

    @pytest.mark.parametrize("version", ["1", "2"])
    def test_kconfig(self, version, monkeypatch):
        monkeypatch.setenv("KCONFIG_PARSER_VERSION", version)
        config = Kconfig(os.path.join(TESTS_PATH_OK, "Empty.in"))
        assert config.parser_version == int(version)
        assert config.mainmenu_text == "Empty"

    def test_unsupported_version(self):
        from kconfmodel import KconfigError

        with pytest.raises(KconfigError, match="unsupported parser version 3"):
            Kconfig(os.path.join(TESTS_PATH_OK, "Empty.in"), parser_version=3)


class BaseKconfigTest:
    def call_kconfig(self, path: str, input_file_name: str, output_file_name: str) -> subprocess.CompletedProcess:
        kconfwrite_cmd = [
            sys.executable,
            "-m",
            "kconfwrite",
            "--kconfig",
            os.path.join(path, input_file_name),
            "--output",
            "config",
            output_file_name,
            "--env",
            "KCONFIG_REPORT_VERBOSITY=default",
        ]
        result = subprocess.run(kconfwrite_cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        return result

    def check_output(self, path: str, actual_output_file: str, expected_output_file: str) -> None:
        with open(os.path.join(path, expected_output_file), "r") as expected, open(actual_output_file, "r") as actual:
            expected_output = expected.read()
            actual_output = actual.read()
        assert actual_output == expected_output

    def check_stderr(self, path: str, actual_stderr: str, expected_stderr: str) -> None:
        with open(os.path.join(path, expected_stderr), "r") as expected:
            expected_stderr_content = expected.readlines()
        # Only fragments are checked; paths differ between machines and the report may wrap lines.
        for stderr_line in expected_stderr_content:
            assert stderr_line.strip() in actual_stderr.replace("\n", "")


@pytest.mark.parametrize("version", ["1", "2"])
class TestOKCases(BaseKconfigTest):
    @pytest.fixture(autouse=True)
    def set_env_vars(self, monkeypatch):
        monkeypatch.setenv("TEST_FILE_PREFIX", os.path.join(TESTS_PATH_OK, "kconfigs_for_sourcing"))
        monkeypatch.setenv("MAX_NUMBER_OF_MOTORS", "4")  # used in Macro

    @pytest.mark.parametrize("filename", fixture_names(TESTS_PATH_OK))
    def test_ok_cases(self, filename, version, monkeypatch):
        monkeypatch.setenv("KCONFIG_PARSER_VERSION", version)

        with tempfile.NamedTemporaryFile() as f:
            result = self.call_kconfig(path=TESTS_PATH_OK, input_file_name=f"{filename}.in", output_file_name=f.name)
            assert result.returncode == 0, result.stdout + result.stderr
            self.check_output(path=TESTS_PATH_OK, actual_output_file=f.name, expected_output_file=f"{filename}.out")


@pytest.mark.parametrize("version", ["1", "2"])
class TestWarningCases(BaseKconfigTest):
    @pytest.mark.parametrize("filename", fixture_names(TESTS_PATH_WARNINGS))
    def test_warning_cases(self, filename, version, monkeypatch):
        monkeypatch.setenv("KCONFIG_PARSER_VERSION", version)

        with tempfile.NamedTemporaryFile() as f:
            result = self.call_kconfig(
                path=TESTS_PATH_WARNINGS, input_file_name=f"{filename}.in", output_file_name=f.name
            )
            assert result.returncode == 0, result.stdout + result.stderr
            self.check_stderr(
                path=TESTS_PATH_WARNINGS, actual_stderr=result.stderr, expected_stderr=f"{filename}.stderr"
            )


@pytest.mark.parametrize("version", ["1", "2"])
class TestErrorCases(BaseKconfigTest):
    @pytest.fixture(autouse=True)
    def set_env_vars(self, monkeypatch):
        monkeypatch.setenv("TEST_FILE_PREFIX", TESTS_PATH_ERRORS)  # used in RecursiveSource

    @pytest.mark.parametrize("filename", fixture_names(TESTS_PATH_ERRORS))
    def test_error_cases(self, filename, version, monkeypatch):
        monkeypatch.setenv("KCONFIG_PARSER_VERSION", version)

        with tempfile.NamedTemporaryFile() as f:
            result = self.call_kconfig(path=TESTS_PATH_ERRORS, input_file_name=f"{filename}.in", output_file_name=f.name)
            assert result.returncode == 2
            assert "A fatal error occurred" in result.stdout
            # The fatal error message goes to stdout, warnings to stderr
            self.check_stderr(
                path=TESTS_PATH_ERRORS,
                actual_stderr=result.stdout + result.stderr,
                expected_stderr=f"{filename}.stderr",
            )
