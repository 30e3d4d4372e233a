# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import json
import os
import re
import subprocess
import sys
import textwrap
from dataclasses import asdict
from dataclasses import dataclass
from typing import Optional

import pytest

KCONFIG_PARSER_VERSIONS = ["1", "2"]


# Define argument container for CLI invocation
@dataclass
class Args:
    output: str
    config: Optional[str] = None
    defaults: Optional[str] = None
    env: Optional[str] = None

    def to_cli(self):
        # Build flags from args fields except env and output (handled separately)
        flags = []
        for field, value in asdict(self).items():
            if value is None or field in ("env", "output"):
                continue
            key = field.replace("_", "-")
            flags.extend([f"--{key}", value])
        if self.env:
            flags.extend(["--env", self.env])
        return flags


# Fixture to set parser version for each test
@pytest.fixture(autouse=True)
def set_parser_version(request, monkeypatch):
    monkeypatch.setenv("KCONFIG_PARSER_VERSION", str(request.param))


class KconfwriteBaseTestCase:
    @pytest.fixture(autouse=True)
    def runner(self, tmp_path):
        def invoke_and_test(
            args: Args, in_text: str, expected: str, test: str = "in", expected_error: Optional[str] = None
        ) -> Optional[str]:
            # write kconfig input
            kconfig_path = os.path.join(str(tmp_path), "kconfig")
            with open(kconfig_path, "w") as f:
                f.write(textwrap.dedent(in_text))
            # prepare output path
            out_path = os.path.join(str(tmp_path), "output")
            cmd = (
                [sys.executable, "-m", "kconfwrite"]
                + args.to_cli()
                + ["--output", args.output, out_path, "--kconfig", kconfig_path]
            )
            result = subprocess.run(cmd, capture_output=True, text=True)
            if expected_error:
                assert result.returncode != 0
                assert expected_error in result.stdout + result.stderr
                return None
            assert result.returncode == 0, result.stdout + result.stderr
            with open(out_path) as f:
                text = f.read()
            if test == "in":
                assert expected in text
            elif test == "not in":
                assert expected not in text
            elif test == "equal":
                assert expected == text
            elif test == "regex":
                assert re.search(expected, text)
            else:
                pytest.skip(f"Unknown test type {test}")
            return text

        return invoke_and_test


HEXPREFIX = """
    mainmenu "Test"

        config HEX_NOPREFIX
            hex "Hex Item default no prefix"
            default 33

        config HEX_PREFIX
            hex "Hex Item default prefix"
            default 0x77
    """


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestHeader(KconfwriteBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="header")

    def test_hex_prefix(self, runner):
        runner(self.args, HEXPREFIX, "#define CONFIG_HEX_NOPREFIX 0x33")
        runner(self.args, HEXPREFIX, "#define CONFIG_HEX_PREFIX 0x77")

    def test_heading(self, runner):
        runner(self.args, HEXPREFIX, "#pragma once\n")

    def test_disabled_bool(self, runner):
        in_text = """
        mainmenu "Test"

            config DISABLED
                bool "Disabled"
        """
        runner(self.args, in_text, "CONFIG_DISABLED", test="not in")


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestJson(KconfwriteBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="json")

    def test_hex_prefix(self, runner):
        runner(self.args, HEXPREFIX, f'"HEX_NOPREFIX": {0x33}')
        runner(self.args, HEXPREFIX, f'"HEX_PREFIX": {0x77}')

    def test_types(self, runner):
        in_text = """
        mainmenu "Test"

            config FLAG
                bool "Flag"
                default y

            config NAME
                string "Name"
                default "value"

            config COUNT
                int "Count"
                default 12
        """
        text = runner(self.args, in_text, '"FLAG": true')
        assert json.loads(text) == {"FLAG": True, "NAME": "value", "COUNT": 12}


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestJsonMenus(KconfwriteBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="json_menus")

    def test_multiple_ranges(self, runner):
        in_text = """
        mainmenu "Test"

            config TARGET
                string "Target"
                default "chip"

            config SOME_SETTING
                int "setting for the chip"
                range 0 100 if TARGET="other"
                range 0 10 if TARGET="chip"
                range -10 1 if TARGET="third"
        """
        runner(self.args, in_text, r'"range":\s+\[\s+0,\s+10\s+\]', test="regex")

    def test_hex_ranges(self, runner):
        in_text = """
        mainmenu "Test"

            config SOME_SETTING
                hex "setting for the chip"
                range 0x0 0xaf if UNDEFINED
                range 0x10 0xaf
        """
        runner(self.args, in_text, r'"range":\s+\[\s+16,\s+175\s+\]', test="regex")

    def test_tree(self, runner):
        in_text = """
        mainmenu "Test"

        menu "Outer"
            config INNER
                bool "Inner"
        endmenu
        """
        text = runner(self.args, in_text, '"type": "MENU"')
        menus = json.loads(text)
        assert menus[0]["prompt"] == "Outer"
        assert menus[0]["children"][0]["name"] == "INNER"
        assert menus[0]["children"][0]["control_value"] is False


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestConfig(KconfwriteBaseTestCase):
    input = textwrap.dedent(
        """
        mainmenu "Test"

            config TEST
                bool "test"
                default "n"
        """
    )

    @pytest.fixture(autouse=True)
    def init(self, tmp_path):
        cfg = os.path.join(str(tmp_path), "config")
        with open(cfg, "w") as f:
            f.write(
                textwrap.dedent(
                    """
                    # default:
                    CONFIG_TEST=y
                    # default:
                    CONFIG_UNKNOWN=y
                    """
                )
            )
        self.args = Args(output="config", config=cfg)

    def test_keep_saved_option(self, runner):
        runner(self.args, TestConfig.input, "CONFIG_TEST=y")

    def test_discard_unknown_option(self, runner):
        runner(self.args, TestConfig.input, "CONFIG_UNKNOWN", test="not in")

    def test_heading(self, runner):
        runner(self.args, TestConfig.input, "# Automatically generated file. DO NOT EDIT.")


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestDefaults(KconfwriteBaseTestCase):
    input = """
        mainmenu "Test"

            config FROM_DEFAULTS
                bool "From defaults"

            config FROM_CONFIG
                int "From config"
                default 1
        """

    @pytest.fixture(autouse=True)
    def init(self, tmp_path):
        defaults = os.path.join(str(tmp_path), "defaults")
        with open(defaults, "w") as f:
            f.write("CONFIG_FROM_DEFAULTS=y\nCONFIG_FROM_CONFIG=2\n")
        cfg = os.path.join(str(tmp_path), "config")
        with open(cfg, "w") as f:
            f.write("CONFIG_FROM_CONFIG=3\n")
        self.args = Args(output="config", config=cfg, defaults=defaults)

    def test_defaults_then_config(self, runner):
        text = runner(self.args, self.input, "CONFIG_FROM_DEFAULTS=y")
        assert "CONFIG_FROM_CONFIG=3" in text

    def test_missing_defaults(self, runner, tmp_path):
        self.args.defaults = os.path.join(str(tmp_path), "missing")
        runner(self.args, self.input, "", expected_error="Defaults file not found")


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestSavedefconfig(KconfwriteBaseTestCase):
    input = """
        mainmenu "Test"

            config CHANGED
                bool "Changed"

            config UNCHANGED
                bool "Unchanged"
                default y

            config DISABLED
                bool "Disabled"
                default y
        """

    @pytest.fixture(autouse=True)
    def init(self, tmp_path):
        cfg = os.path.join(str(tmp_path), "config")
        with open(cfg, "w") as f:
            f.write("CONFIG_CHANGED=y\nCONFIG_UNCHANGED=y\n# CONFIG_DISABLED is not set\n")
        self.args = Args(output="savedefconfig", config=cfg)

    def test_only_changed_values(self, runner):
        text = runner(self.args, self.input, "CONFIG_CHANGED=y")
        assert "UNCHANGED" not in text
        # "is not set" lines are written as assignments
        assert "CONFIG_DISABLED=n" in text


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestEnvironment(KconfwriteBaseTestCase):
    input = """
        mainmenu "Test"

            config FROM_ENV
                string "From environment"
                default "$(TEST_VALUE)"
        """

    def test_env_argument(self, runner):
        args = Args(output="config", env="TEST_VALUE=from argument")
        runner(args, self.input, 'CONFIG_FROM_ENV="from argument"')

    def test_unset_variable(self, runner, monkeypatch):
        monkeypatch.delenv("TEST_VALUE", raising=False)
        runner(Args(output="config"), self.input, 'CONFIG_FROM_ENV=""')


@pytest.mark.parametrize("set_parser_version", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestErrors(KconfwriteBaseTestCase):
    def test_syntax_error(self, runner):
        in_text = """
        config
        """
        runner(Args(output="config"), in_text, "", expected_error="A fatal error occurred")


@pytest.mark.parametrize("set_parser_version", ["1"], indirect=True)
class TestCommandLine:
    def test_unknown_format(self, tmp_path):
        kconfig = os.path.join(str(tmp_path), "Kconfig")
        with open(kconfig, "w") as f:
            f.write('mainmenu "Test"\n')
        result = subprocess.run(
            [sys.executable, "-m", "kconfwrite", "--kconfig", kconfig, "--output", "cmake", "out"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 1
        assert "Format 'cmake' not recognised" in result.stdout

    def test_env_file(self, tmp_path):
        kconfig = os.path.join(str(tmp_path), "Kconfig")
        with open(kconfig, "w") as f:
            f.write('config FROM_ENV\n    string "From environment"\n    default "$(TEST_VALUE)"\n')
        env_file = os.path.join(str(tmp_path), "env.json")
        with open(env_file, "w") as f:
            json.dump({"TEST_VALUE": "from file"}, f)
        out = os.path.join(str(tmp_path), "out")
        result = subprocess.run(
            [
                sys.executable,
                "-m",
                "kconfwrite",
                "--kconfig",
                kconfig,
                "--env-file",
                env_file,
                "--output",
                "config",
                out,
            ],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stdout + result.stderr
        with open(out) as f:
            assert 'CONFIG_FROM_ENV="from file"' in f.read()

    def test_report_json(self, tmp_path):
        kconfig = os.path.join(str(tmp_path), "Kconfig")
        with open(kconfig, "w") as f:
            f.write("config UNTYPED\n    default y\n")
        report = os.path.join(str(tmp_path), "report.json")
        result = subprocess.run(
            [sys.executable, "-m", "kconfwrite", "--kconfig", kconfig, "--report-json", report],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stdout + result.stderr
        with open(report) as f:
            report_json = json.load(f)
        assert report_json["header"]["status"] == "Warning"
