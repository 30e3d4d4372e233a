# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import os
import textwrap

import pytest

from kconfmodel import And
from kconfmodel import Kconfig
from kconfmodel import KconfigError
from kconfmodel import Not
from kconfmodel import Or
from kconfmodel import expr_str
from kconfmodel import expr_value

KCONFIG_PARSER_VERSIONS = [1, 2]


class KconfigBaseTestCase:
    @pytest.fixture(autouse=True)
    def make_kconfig(self, tmp_path, request):
        version = request.node.callspec.params["version"]

        def make(text: str) -> Kconfig:
            kconfig_path = os.path.join(str(tmp_path), "Kconfig")
            with open(kconfig_path, "w") as f:
                f.write(textwrap.dedent(text))
            return Kconfig(kconfig_path, warn_to_stderr=False, info=False, parser_version=version)

        self.make = make
        self.tmp_path = tmp_path

    def write_file(self, name: str, text: str) -> str:
        path = os.path.join(str(self.tmp_path), name)
        with open(path, "w") as f:
            f.write(textwrap.dedent(text))
        return path


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestExpressions(KconfigBaseTestCase):
    KCONFIG = """
        mainmenu "Expressions"

        config A
            bool "A"
            default y

        config B
            bool "B"

        config NAME
            string "Name"
            default "abc"

        config COUNT
            int "Count"
            default 10
        """

    @pytest.mark.parametrize("a_value", ["y", "n"])
    def test_double_negation(self, version, a_value):
        kconfig = self.make(self.KCONFIG)
        a = kconfig.syms["A"]
        assert a.set_value(a_value)
        assert expr_value(Not(Not(a))) == expr_value(a)

    @pytest.mark.parametrize("expression", ["A", "B", "A && B", "A || !B"])
    def test_identity_simplification(self, version, expression):
        kconfig = self.make(self.KCONFIG)
        value = kconfig.eval_string(expression)
        assert kconfig.eval_string(f"y && ({expression})") == value
        assert kconfig.eval_string(f"n || ({expression})") == value

        a = kconfig.syms["A"]
        assert expr_value(And(kconfig.y, a)) == expr_value(a)
        assert expr_value(Or(kconfig.n, a)) == expr_value(a)

    def test_relations(self, version):
        kconfig = self.make(self.KCONFIG)
        assert kconfig.eval_string('NAME = "abc"') == 2
        assert kconfig.eval_string('NAME != "abc"') == 0
        assert kconfig.eval_string("COUNT > 9") == 2
        assert kconfig.eval_string("COUNT <= 9") == 0
        # Numeric rather than lexicographic comparison
        assert kconfig.eval_string("COUNT > 9 && COUNT < 100") == 2

    def test_eval_unknown_symbol(self, version):
        kconfig = self.make(self.KCONFIG)
        assert kconfig.eval_string("UNKNOWN_SYMBOL") == 0
        assert any("no symbol UNKNOWN_SYMBOL in configuration" in warning for warning in kconfig.warnings)

    def test_eval_syntax_error(self, version):
        kconfig = self.make(self.KCONFIG)
        with pytest.raises(KconfigError):
            kconfig.eval_string("A &&")

    def test_expr_str(self, version):
        kconfig = self.make(
            """
            config A
                bool "A"
            config B
                bool "B"
            config C
                bool "C"
                depends on A && (B || !A)
            """
        )
        assert expr_str(kconfig.syms["C"].direct_dep) == "A && (B || !A)"


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestSymbolValues(KconfigBaseTestCase):
    def test_invalidation_reaches_dependents(self, version):
        kconfig = self.make(
            """
            config A
                bool "A"
                default y

            config B
                bool "B"
                default y
                depends on A

            config C
                bool
                default y if B
            """
        )
        a, b, c = (kconfig.syms[name] for name in ("A", "B", "C"))
        assert b.bool_value == 2
        assert c.bool_value == 2

        assert a.set_value("n")
        assert b.bool_value == 0
        assert c.bool_value == 0

        a.unset_value()
        assert c.bool_value == 2

    def test_boolean_type_alias(self, version):
        kconfig = self.make(
            """
            config LONG_FORM
                boolean "Long form"
                default y

            config SHORT_FORM
                bool "Short form"
                default LONG_FORM
            """
        )
        assert kconfig.syms["LONG_FORM"].type == kconfig.syms["SHORT_FORM"].type
        assert kconfig.syms["LONG_FORM"].bool_value == 2
        assert kconfig.syms["SHORT_FORM"].bool_value == 2
        assert kconfig.warnings == []

    def test_select_and_imply(self, version):
        kconfig = self.make(
            """
            config DRIVER
                bool "Driver"
                select BUS
                imply LOGGING

            config BUS
                bool "Bus"

            config LOGGING
                bool "Logging"
            """
        )
        driver, bus, logging = (kconfig.syms[name] for name in ("DRIVER", "BUS", "LOGGING"))
        assert bus.bool_value == 0
        assert bus.assignable == (0, 2)

        driver.set_value(2)
        assert bus.bool_value == 2
        # Selected symbols are locked to y, implied ones can still be disabled
        assert bus.assignable == (2,)
        assert logging.bool_value == 2
        assert logging.assignable == (0, 2)

        logging.set_value("n")
        assert logging.bool_value == 0

    def test_user_value_limited_by_visibility(self, version):
        kconfig = self.make(
            """
            config ENABLE
                bool "Enable"

            config FEATURE
                bool "Feature"
                depends on ENABLE
            """
        )
        feature = kconfig.syms["FEATURE"]
        assert feature.set_value("y")
        assert feature.bool_value == 0
        assert feature.visibility == 0

        kconfig.syms["ENABLE"].set_value("y")
        assert feature.visibility == 2
        assert feature.bool_value == 2

    def test_range_clamp(self, version):
        kconfig = self.make(
            """
            config VALUE
                int "Value"
                range 2 64
                default 100
            """
        )
        value = kconfig.syms["VALUE"]
        assert value.str_value == "64"
        assert any("clamped to 64" in warning for warning in kconfig.warnings)

        assert value.set_value("100")
        assert value.str_value == "64"
        assert any("user value 100" in warning and "ignored" in warning for warning in kconfig.warnings)

        assert value.set_value("20")
        assert value.str_value == "20"

    def test_range_clamp_without_default(self, version):
        kconfig = self.make(
            """
            config VALUE
                int "Value"
                range 5 10

            config HEX_VALUE
                hex "Hex value"
                range 0x10 0x20
            """
        )
        assert kconfig.syms["VALUE"].str_value == "5"
        assert kconfig.syms["HEX_VALUE"].str_value == "0x10"

    def test_first_active_range(self, version):
        kconfig = self.make(
            """
            config TARGET
                string "Target"
                default "chip"

            config SETTING
                int "Setting"
                range 0 100 if TARGET = "other"
                range 0 10 if TARGET = "chip"
                default 50
            """
        )
        assert kconfig.syms["SETTING"].str_value == "10"

    @pytest.mark.parametrize(
        "type_,value",
        [("bool", "maybe"), ("int", "0x10"), ("hex", "xyz")],
    )
    def test_invalid_user_value(self, version, type_, value):
        kconfig = self.make(
            f"""
            config SYM
                {type_} "Symbol"
            """
        )
        assert not kconfig.syms["SYM"].set_value(value)
        assert any("assignment ignored" in warning for warning in kconfig.warnings)

    def test_promptless_assignment(self, version):
        kconfig = self.make(
            """
            config HIDDEN
                bool
                default y
            """
        )
        assert kconfig.syms["HIDDEN"].set_value("n")
        assert kconfig.syms["HIDDEN"].bool_value == 2
        assert any("has no prompt" in warning for warning in kconfig.warnings)


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestChoice(KconfigBaseTestCase):
    KCONFIG = """
        choice SPEED
            prompt "Speed"
            default SPEED_Y

            config SPEED_X
                bool "X"
            config SPEED_Y
                bool "Y"
            config SPEED_Z
                bool "Z"
        endchoice
        """

    def test_default_selection(self, version):
        kconfig = self.make(self.KCONFIG)
        choice = kconfig.named_choices["SPEED"]
        assert choice.selection is kconfig.syms["SPEED_Y"]
        assert choice.bool_value == 2

    def test_user_selection(self, version):
        kconfig = self.make(self.KCONFIG)
        choice = kconfig.named_choices["SPEED"]
        x, y = kconfig.syms["SPEED_X"], kconfig.syms["SPEED_Y"]

        assert x.set_value("y")
        assert choice.selection is x
        assert x.bool_value == 2
        assert y.bool_value == 0

        choice.unset_value()
        assert choice.selection is y

    def test_choice_symbols(self, version):
        kconfig = self.make(self.KCONFIG)
        choice = kconfig.named_choices["SPEED"]
        assert [sym.name for sym in choice.syms] == ["SPEED_X", "SPEED_Y", "SPEED_Z"]
        assert all(sym.choice is choice for sym in choice.syms)


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestErrors(KconfigBaseTestCase):
    def test_dependency_loop(self, version):
        with pytest.raises(KconfigError) as e:
            self.make(
                """
                config A
                    bool "A"
                    depends on B

                config B
                    bool "B"
                    depends on A
                """
            )
        message = str(e.value)
        assert "Dependency loop" in message
        assert "A (defined at" in message
        assert "B (defined at" in message

    def test_recursive_source(self, version):
        sourced = os.path.join(str(self.tmp_path), "Kconfig.sourced")
        self.write_file(
            "Kconfig.sourced",
            f"""
            config SOURCED
                bool "Sourced"

            source "{sourced}"
            """,
        )
        with pytest.raises(KconfigError, match="recursive 'source'"):
            self.make(
                f"""
                source "{sourced}"
                """
            )

    def test_missing_source(self, version):
        with pytest.raises(KconfigError, match="not found"):
            self.make(
                """
                source "does/not/exist/Kconfig"
                """
            )

    def test_optional_source(self, version):
        kconfig = self.make(
            """
            osource "does/not/exist/Kconfig"

            config AFTER
                bool "After"
            """
        )
        assert "AFTER" in kconfig.syms

    def test_syntax_error_location(self, version):
        with pytest.raises(KconfigError) as e:
            self.make(
                """
                config A
                    bool "A"
                    depends on A &&
                """
            )
        assert "Kconfig:4" in str(e.value)


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestConfigFiles(KconfigBaseTestCase):
    KCONFIG = """
        mainmenu "Config files"

        config FOO
            bool "Foo"

        config BAR
            bool "Bar"
            default y

        menu "Values"
            config NAME
                string "Name"
                default "default name"

            config COUNT
                int "Count"
                range 0 100
                default 3

            config ADDRESS
                hex "Address"
                default 0x1000
        endmenu
        """

    def test_load(self, version):
        kconfig = self.make(self.KCONFIG)
        config = self.write_file("config", "CONFIG_FOO=y\n# CONFIG_BAR is not set\n")
        message = kconfig.load_config(config)
        assert message == f"Loaded configuration '{config}'"
        assert kconfig.syms["FOO"].bool_value == 2
        assert kconfig.syms["BAR"].bool_value == 0

    def test_load_replace_and_merge(self, version):
        kconfig = self.make(self.KCONFIG)
        first = self.write_file("first", 'CONFIG_FOO=y\nCONFIG_NAME="first"\n')
        second = self.write_file("second", "CONFIG_COUNT=7\n")

        kconfig.load_config(first)
        assert kconfig.load_config(second, replace=False).startswith("Merged")
        assert kconfig.syms["FOO"].bool_value == 2
        assert kconfig.syms["NAME"].str_value == "first"
        assert kconfig.syms["COUNT"].str_value == "7"

        kconfig.load_config(second)
        assert kconfig.syms["FOO"].bool_value == 0
        assert kconfig.syms["NAME"].str_value == "default name"

    def test_load_replace_updates_dependents(self, version):
        kconfig = self.make(
            """
            config FOO
                bool "Foo"

            config FOLLOWS_FOO
                bool
                default y if FOO
            """
        )
        with_foo = self.write_file("with_foo", "CONFIG_FOO=y\n")
        without_foo = self.write_file("without_foo", "CONFIG_OTHER=y\n")

        kconfig.load_config(with_foo)
        assert kconfig.syms["FOLLOWS_FOO"].bool_value == 2

        # Values cached from the previous load must not survive
        kconfig.load_config(without_foo)
        assert kconfig.syms["FOO"].bool_value == 0
        assert kconfig.syms["FOLLOWS_FOO"].bool_value == 0

    def test_load_warnings(self, version):
        kconfig = self.make(self.KCONFIG)
        config = self.write_file(
            "config",
            """\
            CONFIG_FOO=maybe
            CONFIG_NAME=unquoted
            CONFIG_UNDEFINED=y
            CONFIG_BAR=y
            CONFIG_BAR=n
            this is not an assignment
            """,
        )
        kconfig.load_config(config)
        warnings = "\n".join(kconfig.warnings)
        assert "'maybe' is not a valid value" in warnings
        assert "malformed string literal" in warnings
        assert "set more than once" in warnings
        assert "ignoring malformed line" in warnings
        assert kconfig.missing_syms == [("UNDEFINED", "y")]

    def test_load_conflicting_choice_mode(self, version):
        kconfig = self.make(
            """
            choice CHOICE
                prompt "Choice"

                config CHOICE_A
                    bool "A"

                config CHOICE_B
                    bool "B"
            endchoice
            """
        )
        config = self.write_file("config", "CONFIG_CHOICE_B=y\n")
        kconfig.named_choices["CHOICE"].set_value("n")

        kconfig.load_config(config, replace=False)
        assert any("conflicting values assigned to symbols within the same choice" in w for w in kconfig.warnings)
        assert kconfig.named_choices["CHOICE"].selection is kconfig.syms["CHOICE_B"]

    def test_load_missing_file(self, version):
        kconfig = self.make(self.KCONFIG)
        with pytest.raises(OSError):
            kconfig.load_config(os.path.join(str(self.tmp_path), "missing"))

    def test_load_default_location(self, version, monkeypatch):
        kconfig = self.make(self.KCONFIG)
        missing = os.path.join(str(self.tmp_path), "missing")
        monkeypatch.setenv("KCONFIG_CONFIG", missing)
        assert kconfig.load_config() == f"Using default symbol values (no '{missing}')"

    def test_write(self, version):
        kconfig = self.make(self.KCONFIG)
        kconfig.syms["FOO"].set_value("y")
        config = os.path.join(str(self.tmp_path), "config")
        assert kconfig.write_config(config, header="") == f"Configuration saved to '{config}'"
        with open(config) as f:
            contents = f.read()
        assert contents == textwrap.dedent(
            """\
            CONFIG_FOO=y
            CONFIG_BAR=y

            #
            # Values
            #
            CONFIG_NAME="default name"
            CONFIG_COUNT=3
            CONFIG_ADDRESS=0x1000
            # end of Values
            """
        )
        assert kconfig.write_config(config, header="") == f"No change to configuration in '{config}'"

    def test_save_old(self, version):
        kconfig = self.make(self.KCONFIG)
        config = self.write_file("config", "CONFIG_FOO=y\n")
        kconfig.write_config(config)
        with open(config + ".old") as f:
            assert f.read() == "CONFIG_FOO=y\n"

    def test_round_trip(self, version):
        kconfig = self.make(self.KCONFIG)
        kconfig.syms["FOO"].set_value("y")
        kconfig.syms["BAR"].set_value("n")
        kconfig.syms["NAME"].set_value('with "quotes" and \\backslash')
        kconfig.syms["COUNT"].set_value("42")

        first = os.path.join(str(self.tmp_path), "first")
        second = os.path.join(str(self.tmp_path), "second")
        kconfig.write_config(first)

        reloaded = self.make(self.KCONFIG)
        reloaded.load_config(first)
        reloaded.write_config(second)

        with open(first) as f1, open(second) as f2:
            assert f1.read() == f2.read()
        assert reloaded.syms["NAME"].str_value == 'with "quotes" and \\backslash'

    def test_autoconf(self, version):
        kconfig = self.make(self.KCONFIG)
        header = os.path.join(str(self.tmp_path), "config.h")
        assert kconfig.write_autoconf(header, header="") == f"Kconfig header saved to '{header}'"
        with open(header) as f:
            contents = f.read()
        assert contents == textwrap.dedent(
            """\
            #define CONFIG_BAR 1
            #define CONFIG_NAME "default name"
            #define CONFIG_COUNT 3
            #define CONFIG_ADDRESS 0x1000
            """
        )
        assert kconfig.write_autoconf(header, header="") == f"No change to Kconfig header in '{header}'"

    def test_min_config(self, version):
        kconfig = self.make(self.KCONFIG)
        kconfig.syms["FOO"].set_value("y")
        kconfig.syms["COUNT"].set_value("3")
        kconfig.syms["ADDRESS"].set_value("0x2000")
        min_config = os.path.join(str(self.tmp_path), "defconfig")
        kconfig.write_min_config(min_config, header="")
        with open(min_config) as f:
            assert f.read() == "CONFIG_FOO=y\nCONFIG_ADDRESS=0x2000\n"

    def test_config_prefix(self, version, monkeypatch):
        monkeypatch.setenv("CONFIG_", "MY_")
        kconfig = self.make(self.KCONFIG)
        config = self.write_file("config", "MY_FOO=y\n")
        kconfig.load_config(config)
        assert kconfig.syms["FOO"].bool_value == 2
        assert "MY_FOO=y" in kconfig.return_config()


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestMenuTree(KconfigBaseTestCase):
    def test_node_arena(self, version):
        kconfig = self.make(
            """
            menu "Menu"
                config A
                    bool "A"
                comment "A comment"
            endmenu
            """
        )
        nodes = list(kconfig.node_iter())
        assert [node.item.name if hasattr(node.item, "name") else node.prompt[0] for node in nodes] == [
            "Menu",
            "A",
            "A comment",
        ]
        for node in nodes:
            assert kconfig.node_arena[node.index] is node
        assert nodes[1].parent is nodes[0]
        assert nodes[0].list is nodes[1]
        assert nodes[1].next is nodes[2]

    def test_dependency_propagation(self, version):
        kconfig = self.make(
            """
            config A
                bool "A"
            config B
                bool "B"

            menu "Menu"
                depends on A
            if B
            config FOO
                bool "Foo"
                default y
            endif
            endmenu
            """
        )
        foo = kconfig.syms["FOO"]
        assert foo.visibility == 0
        kconfig.syms["A"].set_value("y")
        assert foo.visibility == 0
        kconfig.syms["B"].set_value("y")
        assert foo.visibility == 2
        assert foo.bool_value == 2

    def test_implicit_submenu(self, version):
        kconfig = self.make(
            """
            config PARENT
                bool "Parent"

            config CHILD
                bool "Child"
                depends on PARENT
            """
        )
        parent_node = kconfig.syms["PARENT"].nodes[0]
        child_node = kconfig.syms["CHILD"].nodes[0]
        assert child_node.parent is parent_node

    def test_defconfig_list(self, version):
        defconfig = self.write_file("defconfig", "CONFIG_FOO=y\n")
        kconfig = self.make(
            f"""
            config DEFCONFIG_LIST
                string
                option defconfig_list
                default "{os.path.join(str(self.tmp_path), "missing")}"
                default "{defconfig}"

            config FOO
                bool "Foo"
            """
        )
        assert kconfig.defconfig_filename == defconfig

    def test_option_env(self, version, monkeypatch):
        monkeypatch.setenv("TEST_ENV_VALUE", "from environment")
        kconfig = self.make(
            """
            config ENV_VALUE
                string
                option env="TEST_ENV_VALUE"
            """
        )
        sym = kconfig.syms["ENV_VALUE"]
        assert sym.str_value == "from environment"
        assert sym.config_string == ""


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestPreprocessor(KconfigBaseTestCase):
    def test_variables(self, version):
        kconfig = self.make(
            """
            prefix := MY
            greeting = hello $(1)
            items = first
            items += second

            config $(prefix)_SYMBOL
                string "$(greeting,world)"
                default "$(items)"
            """
        )
        sym = kconfig.syms["MY_SYMBOL"]
        assert sym.nodes[0].prompt[0] == "hello world"
        assert sym.str_value == "first second"

    def test_builtin_functions(self, version):
        kconfig = self.make(
            """
            config SHELL
                string "Shell output"
                default "$(shell,echo from shell)"
            warning := $(warning-if,y,custom warning)
            """
        )
        assert kconfig.syms["SHELL"].str_value == "from shell"
        assert any("custom warning" in warning for warning in kconfig.warnings)

    def test_error_if(self, version):
        with pytest.raises(KconfigError, match="stop here"):
            self.make(
                """
                error := $(error-if,y,stop here)
                """
            )


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestReport(KconfigBaseTestCase):
    def test_report_json(self, version):
        kconfig = self.make(
            """
            config UNTYPED
                default y
            """
        )
        report = kconfig.report.return_json()
        assert report["header"]["parser_version"] == version
        assert report["header"]["status"] != "OK"
        assert any("defined without a type" in str(area) for area in report["areas"])

    def test_report_multiple_definitions(self, version):
        kconfig = self.make(
            """
            config DUPLICATE
                bool "First"

            config DUPLICATE # ignore: multiple-definition
                bool "Second"

            config OTHER
                bool "First"

            config OTHER
                bool "Second"
            """
        )
        report = kconfig.report.return_json()
        reported = str(report["areas"])
        assert "OTHER" in reported
        assert "DUPLICATE" not in reported

    def test_quiet_report_without_warnings(self, version, monkeypatch, capsys):
        monkeypatch.setenv("KCONFIG_REPORT_VERBOSITY", "quiet")
        kconfig = self.make(
            """
            config TYPED
                bool "Typed"
            """
        )
        assert kconfig.report.return_json()["header"]["status"] == "OK"
        kconfig.report.print_report()
        assert capsys.readouterr().err == ""

    def test_quiet_report_with_warnings(self, version, monkeypatch, capsys):
        monkeypatch.setenv("KCONFIG_REPORT_VERBOSITY", "quiet")
        kconfig = self.make(
            """
            config UNTYPED
                default y
            """
        )
        assert kconfig.report.return_json()["header"]["status"] == "Warning"
        kconfig.report.print_report()
        assert "Finished with warnings" in capsys.readouterr().err
