# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Configuration session of a menu interface: one Kconfig instance, its menu tree and the configuration file it was
loaded from.
"""
from typing import Any
from typing import List
from typing import Optional

from kconfmodel.constants import BOOL
from kconfmodel.constants import HEX
from kconfmodel.constants import INT
from kconfmodel.constants import STRING
from kconfmodel.core import Kconfig
from kconfmodel.core import standard_config_filename
from kconfmodel.errors import KconfigError
from kconfmodel.expr import expr_value
from kconfmodel.menunode import MenuNode
from kconfmodel.symbol import Choice
from kconfmodel.symbol import Symbol

from .tree import MenuItem
from .tree import MenuTreeBuilder

# Types whose value is entered as text
TEXT_TYPES = (STRING, INT, HEX)


def is_y_mode_choice_sym(item) -> bool:
    return item.__class__ is Symbol and item.choice is not None and item.visibility == 2


def changeable(node: MenuNode) -> bool:
    """
    True if the user can change the value of the node's item: the node must have a visible prompt and the item
    must either take a text value or have more than one value to choose from.
    """
    sc = node.item
    if sc.__class__ not in (Symbol, Choice):
        return False

    if not node.prompt or not expr_value(node.prompt[1]):
        return False

    return sc.orig_type in TEXT_TYPES or len(sc.assignable) > 1 or is_y_mode_choice_sym(sc)


def needs_save(kconfig: Kconfig) -> bool:
    """
    True if writing the configuration would change the loaded file: some assignments were to undefined symbols,
    or some symbol value differs from the value the file assigned.
    """
    if kconfig.missing_syms:
        return True

    for sym in kconfig.unique_defined_syms:
        if sym._user_value is None:
            if sym.config_string:
                return True
        elif sym.orig_type == BOOL:
            if sym.bool_value != sym._user_value:
                return True
        elif sym.str_value != sym._user_value:
            return True

    return False


class MenuSession:
    def __init__(
        self,
        kconfig_filename: str = "Kconfig",
        config_filename: Optional[str] = None,
        show_all: bool = False,
        parser_version: Optional[int] = None,
    ) -> None:
        # Warnings are collected for the interface rather than printed
        self.kconfig = Kconfig(
            kconfig_filename, warn=True, info=False, warn_to_stderr=False, parser_version=parser_version
        )
        # None means KCONFIG_CONFIG/.config, falling back to the defconfig_list file
        self.config_filename = config_filename
        self.builder = MenuTreeBuilder(self.kconfig, show_all=show_all)
        self.has_changed = False

    @property
    def warnings(self) -> List[str]:
        return self.kconfig.warnings

    @property
    def show_all(self) -> bool:
        return self.builder.show_all

    @show_all.setter
    def show_all(self, value: bool) -> None:
        self.builder.show_all = value

    def build_menu_tree(self) -> List[MenuItem]:
        return self.builder.build()

    def load_config(self) -> str:
        """
        Loads the configuration file. A file that cannot be read leaves the default values in place; the returned
        message tells what happened either way.
        """
        try:
            message = self.kconfig.load_config(self.config_filename)
        except (OSError, KconfigError) as e:
            self.has_changed = False
            return f"No configuration loaded: {str(e).strip()}"

        self.has_changed = needs_save(self.kconfig)
        return message

    def write_config(self) -> str:
        message = self.kconfig.write_config(self.config_filename or standard_config_filename())
        self.has_changed = False
        return message

    def needs_save(self) -> bool:
        return self.has_changed

    def change_symbol_value(self, node_id: int, new_value: Any) -> bool:
        """
        Changes the value of the symbol or choice of the menu node 'node_id'. Text values (string, int, hex) are
        set as given. Bool items take True/False or "y"/"n"; any other value steps to the next assignable value.
        Returns True if the value was accepted. IDs are those of the last built menu tree.
        """
        node = self.builder.node(node_id)
        if node is None or not changeable(node):
            return False

        if new_value is True or new_value is False:
            new_value = "y" if new_value else "n"

        sc = node.item
        if sc.orig_type in TEXT_TYPES:
            result = sc.set_value(str(new_value))
        elif new_value in ("y", "n"):
            result = sc.set_value(new_value)
        elif len(sc.assignable) == 1:
            result = sc.set_value(sc.assignable[0])
        else:
            assignable = sc.assignable
            current = assignable.index(sc.bool_value) if sc.bool_value in assignable else -1
            result = sc.set_value(assignable[(current + 1) % len(assignable)])

        if result:
            self.has_changed = True
        return result
