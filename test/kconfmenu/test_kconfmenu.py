# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import os
from typing import List
from typing import Optional

import pytest

from kconfmenu import MenuItem
from kconfmenu import MenuSession
from kconfmenu import MenuTreeBuilder
from kconfmenu.tree import ITEM_BOOL
from kconfmenu.tree import ITEM_CHOICE
from kconfmenu.tree import ITEM_COMMENT
from kconfmenu.tree import ITEM_HEX
from kconfmenu.tree import ITEM_INT
from kconfmenu.tree import ITEM_MENU
from kconfmenu.tree import ITEM_STRING
from kconfmodel import Kconfig

KCONFIG_PARSER_VERSIONS = [1, 2]
KCONFIG = os.path.join(os.path.abspath(os.path.dirname(__file__)), "Kconfig")


def find_item(items: List[MenuItem], name: str) -> Optional[MenuItem]:
    for item in items:
        if item.name == name:
            return item
        found = find_item(item.children + (item.options or []), name)
        if found:
            return found
    return None


@pytest.fixture
def session(request, tmp_path):
    return MenuSession(KCONFIG, os.path.join(str(tmp_path), "config"), parser_version=request.param)


@pytest.mark.parametrize("session", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestMenuTree:
    def test_top_level(self, session):
        menus = session.build_menu_tree()
        assert [(item.type, item.name) for item in menus] == [
            (ITEM_MENU, "Basic settings"),
            (ITEM_CHOICE, "Output"),
            (ITEM_COMMENT, "Advanced settings follow"),
        ]
        assert menus[2].prompt == "*** Advanced settings follow ***"

    def test_item_values(self, session):
        menus = session.build_menu_tree()

        enable = find_item(menus, "ENABLE_FEATURE")
        assert enable.type == ITEM_BOOL
        assert enable.control_value is True
        assert enable.prompt == "Enable feature"
        assert enable.help == "Enables the feature."

        name = find_item(menus, "FEATURE_NAME")
        assert name.type == ITEM_STRING
        assert name.control_value == "feature"

        count = find_item(menus, "FEATURE_COUNT")
        assert count.type == ITEM_INT
        assert count.control_value == 3
        assert count.range == (1, 10)

        address = find_item(menus, "FEATURE_ADDRESS")
        assert address.type == ITEM_HEX
        assert address.control_value == "0x100"
        assert address.range is None

    def test_implicit_submenu(self, session):
        menus = session.build_menu_tree()
        basic = menus[0]
        assert [item.name for item in basic.children] == ["ENABLE_FEATURE", "FEATURE_ADDRESS"]
        assert [item.name for item in basic.children[0].children] == ["FEATURE_NAME", "FEATURE_COUNT"]

    def test_choice_options(self, session):
        choice = session.build_menu_tree()[1]
        assert choice.control_value == "UART"
        assert choice.children == []
        assert [(option.type, option.name) for option in choice.options] == [
            (ITEM_BOOL, "OUTPUT_UART"),
            (ITEM_BOOL, "OUTPUT_USB"),
        ]
        assert [option.control_value for option in choice.options] == [True, False]

    def test_invisible_items_pruned(self, session):
        menus = session.build_menu_tree()
        assert find_item(menus, "HIDDEN_OPTION") is None
        assert find_item(menus, "Invisible menu") is None
        assert find_item(menus, "IN_INVISIBLE_MENU") is None

    def test_show_all(self, session):
        session.show_all = True
        menus = session.build_menu_tree()
        invisible = find_item(menus, "Invisible menu")
        assert invisible is not None
        assert [item.name for item in invisible.children] == ["IN_INVISIBLE_MENU"]
        # Promptless symbols have no row even then
        assert find_item(menus, "HIDDEN_OPTION") is None

    def test_ids(self, session):
        menus = session.build_menu_tree()
        builder = session.builder
        kconfig = session.kconfig

        ids = []
        stack = list(menus)
        while stack:
            item = stack.pop()
            ids.append(item.id)
            node = builder.node(item.id)
            assert node is kconfig.node_arena[item.id]
            stack.extend(item.children + (item.options or []))
        assert len(ids) == len(set(ids))

        # IDs stay the same when the tree is rebuilt
        assert [item.id for item in session.build_menu_tree()] == [item.id for item in menus]

    def test_json(self, session):
        menus = session.build_menu_tree()
        count = find_item(menus, "FEATURE_COUNT").to_json()
        assert count["range"] == [1, 10]
        assert "options" not in count
        choice = menus[1].to_json()
        assert [option["name"] for option in choice["options"]] == ["OUTPUT_UART", "OUTPUT_USB"]
        assert "range" not in choice

    def test_builder_standalone(self, session):
        builder = MenuTreeBuilder(session.kconfig, show_all=True)
        assert find_item(builder.build(), "IN_INVISIBLE_MENU") is not None
        assert builder.node(-1) is None


@pytest.mark.parametrize("version", KCONFIG_PARSER_VERSIONS)
class TestInvisibleParents:
    KCONFIG = """
menuconfig A
    bool "a" if X
    default y

config B
    bool "b" if A

config C
    bool "c"
"""

    def build(self, tmp_path, version, text):
        kconfig_path = os.path.join(str(tmp_path), "Kconfig")
        with open(kconfig_path, "w") as f:
            f.write(text)
        kconfig = Kconfig(kconfig_path, warn_to_stderr=False, info=False, parser_version=version)
        return MenuTreeBuilder(kconfig).build()

    def test_kept_for_shown_children(self, tmp_path, version):
        menus = self.build(tmp_path, version, self.KCONFIG)
        assert [(item.name, [child.name for child in item.children]) for item in menus] == [
            ("A", ["B"]),
            ("C", []),
        ]
        assert menus[0].control_value is True

    def test_pruned_without_shown_children(self, tmp_path, version):
        menus = self.build(tmp_path, version, self.KCONFIG.replace('bool "b" if A', 'bool "b" if A && X'))
        assert [item.name for item in menus] == ["C"]
        assert find_item(menus, "A") is None
        assert find_item(menus, "B") is None


@pytest.mark.parametrize("session", KCONFIG_PARSER_VERSIONS, indirect=True)
class TestMenuSession:
    def test_change_bool(self, session):
        menus = session.build_menu_tree()
        enable = find_item(menus, "ENABLE_FEATURE")

        assert session.change_symbol_value(enable.id, False)
        assert session.needs_save()

        menus = session.build_menu_tree()
        assert find_item(menus, "ENABLE_FEATURE").control_value is False
        assert find_item(menus, "FEATURE_NAME") is None
        # The menu becomes visible once the feature is disabled
        assert find_item(menus, "IN_INVISIBLE_MENU") is not None

    def test_toggle_bool(self, session):
        enable = find_item(session.build_menu_tree(), "ENABLE_FEATURE")
        assert session.change_symbol_value(enable.id, None)
        assert session.kconfig.syms["ENABLE_FEATURE"].bool_value == 0
        assert session.change_symbol_value(enable.id, None)
        assert session.kconfig.syms["ENABLE_FEATURE"].bool_value == 2

    def test_change_text_values(self, session):
        menus = session.build_menu_tree()
        syms = session.kconfig.syms

        assert session.change_symbol_value(find_item(menus, "FEATURE_NAME").id, "renamed")
        assert syms["FEATURE_NAME"].str_value == "renamed"

        assert session.change_symbol_value(find_item(menus, "FEATURE_COUNT").id, 5)
        assert syms["FEATURE_COUNT"].str_value == "5"

        assert session.change_symbol_value(find_item(menus, "FEATURE_ADDRESS").id, "0x200")
        assert find_item(session.build_menu_tree(), "FEATURE_ADDRESS").control_value == "0x200"

    def test_invalid_values(self, session):
        menus = session.build_menu_tree()
        assert not session.change_symbol_value(find_item(menus, "FEATURE_COUNT").id, "many")
        assert any("assignment ignored" in warning for warning in session.warnings)
        assert not session.needs_save()

    def test_unchangeable_items(self, session):
        menus = session.build_menu_tree()
        comment = find_item(menus, "Advanced settings follow")
        assert not session.change_symbol_value(comment.id, True)
        assert not session.change_symbol_value(menus[0].id, True)
        assert not session.change_symbol_value(10000, True)

    def test_change_choice(self, session):
        choice = session.build_menu_tree()[1]
        usb = next(option for option in choice.options if option.name == "OUTPUT_USB")

        assert session.change_symbol_value(usb.id, True)
        assert session.kconfig.named_choices["OUTPUT"].selection is session.kconfig.syms["OUTPUT_USB"]
        assert session.build_menu_tree()[1].control_value == "USB"

    def test_load_missing_config(self, session):
        message = session.load_config()
        assert message.startswith("No configuration loaded")
        assert not session.needs_save()

    def test_write_and_load(self, session, tmp_path):
        enable = find_item(session.build_menu_tree(), "ENABLE_FEATURE")
        session.change_symbol_value(enable.id, False)
        message = session.write_config()
        assert message.startswith("Configuration saved to")
        assert not session.needs_save()

        reloaded = MenuSession(KCONFIG, session.config_filename, parser_version=session.kconfig.parser_version)
        assert reloaded.load_config().startswith("Loaded configuration")
        assert not reloaded.needs_save()
        assert reloaded.kconfig.syms["ENABLE_FEATURE"].bool_value == 0

    def test_load_needs_save(self, session):
        with open(session.config_filename, "w") as f:
            f.write("CONFIG_ENABLE_FEATURE=y\nCONFIG_REMOVED_OPTION=y\n")
        session.load_config()
        assert session.needs_save()
        assert session.kconfig.missing_syms == [("REMOVED_OPTION", "y")]
