# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Menu tree for user interfaces.

The finalized Kconfig menu tree is filtered by visibility and turned into a tree of typed MenuItems. Every item
carries the arena index of the menu node it was built from, so an interface can refer back to the node when the
user changes a value.
"""
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from kconfmodel.constants import BOOL
from kconfmodel.constants import COMMENT
from kconfmodel.constants import HEX
from kconfmodel.constants import INT
from kconfmodel.constants import MENU
from kconfmodel.constants import STRING
from kconfmodel.constants import TYPE_TO_BASE
from kconfmodel.core import Kconfig
from kconfmodel.expr import expr_value
from kconfmodel.menunode import MenuNode
from kconfmodel.symbol import Choice
from kconfmodel.symbol import Symbol

ITEM_MENU = "MENU"
ITEM_STRING = "STRING"
ITEM_BOOL = "BOOL"
ITEM_INT = "INT"
ITEM_HEX = "HEX"
ITEM_CHOICE = "CHOICE"
ITEM_COMMENT = "COMMENT"


@dataclass
class MenuItem:
    """
    One row of the menu tree.

    control_value:
        bool for BOOL, int for INT, "0x"-prefixed string for HEX, string for STRING, prompt of the selected
        option for CHOICE (None if nothing is selected), "" for MENU and COMMENT.

    range:
        Active (low, high) range of INT/HEX items, None if no range is active.

    options:
        Items of a CHOICE; its children are moved here once the tree is complete.
    """

    type: str
    id: int
    name: str
    prompt: str
    control_value: Any
    help: str
    info: str
    children: List["MenuItem"] = field(default_factory=list)
    range: Optional[Tuple[int, int]] = None
    options: Optional[List["MenuItem"]] = None

    def to_json(self) -> Dict[str, Any]:
        json_item: Dict[str, Any] = {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "prompt": self.prompt,
            "control_value": self.control_value,
            "help": self.help,
            "info": self.info,
            "children": [child.to_json() for child in self.children],
        }
        if self.type in (ITEM_INT, ITEM_HEX):
            json_item["range"] = list(self.range) if self.range else None
        if self.type == ITEM_CHOICE:
            json_item["options"] = [option.to_json() for option in self.options or []]
        return json_item


def active_range(sym: Symbol) -> Optional[Tuple[int, int]]:
    """
    The first range of 'sym' whose condition is true, as integers. Later active ranges are ignored, so the range
    shown is always the one Symbol.str_value clamps the value to.
    """
    base = TYPE_TO_BASE[sym.orig_type]
    for low, high, cond in sym.ranges:
        if expr_value(cond):
            try:
                return (int(low.str_value, base), int(high.str_value, base))
            except ValueError:
                return None
    return None


class MenuTreeBuilder:
    def __init__(self, kconfig: Kconfig, show_all: bool = False) -> None:
        self.kconfig = kconfig
        # Invisible nodes are shown too; meant for debugging Kconfig files
        self.show_all = show_all
        self.id_to_node: Dict[int, MenuNode] = {}
        self._node_items: Dict[int, MenuItem] = {}

    def get_id(self, node: MenuNode) -> int:
        self.id_to_node[node.index] = node
        return node.index

    def node(self, node_id: int) -> Optional[MenuNode]:
        """
        The menu node with the ID 'node_id', or None for IDs that were never handed out.
        """
        return self.id_to_node.get(node_id)

    def is_visible(self, node: MenuNode) -> bool:
        if not node.prompt or not expr_value(node.prompt[1]):
            return False
        return not (node.item == MENU and not expr_value(node.visibility))

    def tree_item(self, node: MenuNode) -> Optional[MenuItem]:
        """
        The MenuItem for 'node', or None for nodes without a prompt, symbols without a type and choices which are
        not in y mode.
        """
        if not node.prompt:
            return None

        prompt = node.prompt[0]
        common = {"help": node.help or "", "info": str(node)}
        item = node.item

        if item == MENU:
            return MenuItem(ITEM_MENU, self.get_id(node), prompt, prompt, "", **common)

        if item == COMMENT:
            return MenuItem(ITEM_COMMENT, self.get_id(node), prompt, f"*** {prompt} ***", "", **common)

        if item.__class__ is Symbol:
            if item.type == BOOL:
                return MenuItem(ITEM_BOOL, self.get_id(node), item.name, prompt, item.bool_value == 2, **common)

            if item.orig_type == STRING:
                return MenuItem(ITEM_STRING, self.get_id(node), item.name, prompt, item.str_value, **common)

            if item.orig_type == INT:
                try:
                    value: Any = int(item.str_value, 10)
                except ValueError:
                    # No value, e.g. no active default
                    value = None
                return MenuItem(
                    ITEM_INT, self.get_id(node), item.name, prompt, value, range=active_range(item), **common
                )

            if item.orig_type == HEX:
                value = item.str_value
                if not value.startswith(("0x", "0X")):
                    value = "0x" + value
                return MenuItem(
                    ITEM_HEX, self.get_id(node), item.name, prompt, value, range=active_range(item), **common
                )

            return None

        if item.__class__ is Choice and item.bool_value == 2:
            return MenuItem(
                ITEM_CHOICE, self.get_id(node), prompt, prompt, self.choice_value(node), options=[], **common
            )

        return None

    @staticmethod
    def choice_value(node: MenuNode) -> Optional[str]:
        # Prompt of the selected symbol, preferably from its definition inside this choice
        sym = node.item.selection
        if not sym:
            return None

        for sym_node in sym.nodes:
            if sym_node.parent is node and sym_node.prompt:
                return sym_node.prompt[0]

        for sym_node in sym.nodes:
            if sym_node.prompt:
                return sym_node.prompt[0]

        return None

    def shown_nodes(self, node: Optional[MenuNode]) -> List[MenuNode]:
        """
        Nodes shown at the level of 'node' and its siblings. Children of symbols (implicit menus) are shown at the
        same level, following their parent; an invisible symbol is kept if any of its children is shown.
        """
        result: List[MenuNode] = []
        while node:
            if self.show_all or self.is_visible(node):
                result.append(node)
                if node.list and node.item.__class__ is Symbol:
                    result.extend(self.shown_nodes(node.list))

            elif node.list and node.item.__class__ is Symbol:
                shown_children = self.shown_nodes(node.list)
                if shown_children:
                    result.append(node)
                    result.extend(shown_children)

            node = node.next
        return result

    def build_full_tree(self, menu_node: MenuNode, top_tree: List[MenuItem]) -> None:
        top_node = self.kconfig.top_node

        for node in self.shown_nodes(menu_node.list):
            tree_item = self.tree_item(node)
            if tree_item:
                parent = node.parent
                parent_item = None if parent is None or parent is top_node else self._node_items.get(parent.index)
                if parent_item is None:
                    top_tree.append(tree_item)
                else:
                    parent_item.children.append(tree_item)

                self._node_items[node.index] = tree_item

            if node.list and node.item.__class__ is not Symbol:
                self.build_full_tree(node, top_tree)

    def finalize_tree(self, items: List[MenuItem]) -> None:
        for item in items:
            if item.type == ITEM_CHOICE:
                item.options = item.children
                item.children = []
            if item.children:
                self.finalize_tree(item.children)
            if item.options:
                self.finalize_tree(item.options)

    def build(self) -> List[MenuItem]:
        """
        Builds the menu tree from the current symbol values. Call again after changing a value.
        """
        self._node_items = {}
        menus: List[MenuItem] = []
        self.build_full_tree(self.kconfig.top_node, menus)
        self.finalize_tree(menus)
        return menus
