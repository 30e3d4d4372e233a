# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
from typing import TYPE_CHECKING
from typing import Any
from typing import Callable
from typing import List
from typing import Optional
from typing import Set
from typing import Tuple
from typing import Union

from .constants import BOOL_TO_STR
from .constants import MENU
from .constants import MENU_COMMENT
from .constants import TYPE_TO_STR
from .expr import And
from .expr import escape
from .expr import expr_items
from .expr import expr_str
from .expr import expr_value
from .expr import standard_sc_expr_str
from .symbol import Choice
from .symbol import Symbol

if TYPE_CHECKING:
    from .core import Kconfig


class MenuNode:
    """
    Represents a menu node in the configuration. This corresponds to an entry in e.g. a menuconfig interface,
    though non-visible choices, menus, and comments also get menu nodes. If a symbol or choice is defined in
    multiple locations, it gets one menu node for each location.

    Menu nodes are owned by the node arena of their Kconfig instance (Kconfig.node_arena) and addressed by
    their position in it (MenuNode.index). The tree links (parent, list, next) are stored as arena indices;
    the properties of the same name resolve them to nodes.

    item:
        A Symbol, a Choice, one of the constants MENU and COMMENT, or None for an 'if' block
        (ifs are removed from the final tree).

    is_menuconfig:
        True for menus, choices and 'menuconfig' symbols: a hint that the children are shown
        in a separate menu.

    dep:
        The direct dependencies of the node, including those propagated from surrounding menus and ifs.
        kconfig.y if there are none.

    visibility:
        The 'visible if' condition of a menu, kconfig.y if there is none.

    prompt:
        A (text, cond) tuple, or None. For menus and comments, the text of the entry.

    include_path:
        A tuple of (filename, linenr) tuples of the 'source' statements through which the file of this node
        was included.
    """

    __slots__ = (
        "_list_i",
        "_next_i",
        "_parent_i",
        "dep",
        "filename",
        "help",
        "include_path",
        "index",
        "is_menuconfig",
        "item",
        "kconfig",
        "linenr",
        "prompt",
        "visibility",
        # Properties
        "defaults",
        "selects",
        "implies",
        "ranges",
    )
    item: Optional[Union[Symbol, Choice, int]]
    prompt: Optional[Tuple]
    defaults: List[Tuple[Any, Any]]
    selects: List[Tuple]
    implies: List[Tuple]
    ranges: List[Tuple]

    def __init__(
        self,
        kconfig: "Kconfig",
        item: Optional[Union[Symbol, Choice, int]] = None,
        is_menuconfig: bool = False,
        filename: Optional[str] = None,
        linenr: Optional[int] = None,
        dep=None,
        visibility=None,
        parent: Optional["MenuNode"] = None,
        help: Optional[str] = None,
        prompt: Optional[Tuple] = None,
    ) -> None:
        self.kconfig = kconfig
        self.index = len(kconfig.node_arena)
        kconfig.node_arena.append(self)

        self.item = item
        self.is_menuconfig = is_menuconfig
        self.filename = filename
        self.linenr = linenr
        self.dep = dep or kconfig.y
        self.visibility = visibility or kconfig.y
        self.include_path = kconfig._context.include_path

        self._parent_i: Optional[int] = None
        self._list_i: Optional[int] = None
        self._next_i: Optional[int] = None
        self.parent = parent

        self.prompt = prompt
        # Trailing whitespace is stripped from help texts
        self.help = help

        # Properties defined at this location only. Symbol/Choice.defaults etc. hold the properties
        # from all locations and should be used for evaluation.
        self.defaults = []
        self.selects = []
        self.implies = []
        self.ranges = []

    def _node_at(self, index: Optional[int]) -> Optional["MenuNode"]:
        return None if index is None else self.kconfig.node_arena[index]

    @property
    def parent(self) -> Optional["MenuNode"]:
        return self._node_at(self._parent_i)

    @parent.setter
    def parent(self, node: Optional["MenuNode"]) -> None:
        self._parent_i = None if node is None else node.index

    @property
    def list(self) -> Optional["MenuNode"]:
        """
        The first child menu node, or None. Symbols can have children too, from menus created automatically
        from dependencies.
        """
        return self._node_at(self._list_i)

    @list.setter
    def list(self, node: Optional["MenuNode"]) -> None:
        self._list_i = None if node is None else node.index

    @property
    def next(self) -> Optional["MenuNode"]:
        return self._node_at(self._next_i)

    @next.setter
    def next(self, node: Optional["MenuNode"]) -> None:
        self._next_i = None if node is None else node.index

    @property
    def orig_prompt(self) -> Optional[Tuple]:
        """
        orig_prompt/orig_defaults/orig_selects/orig_implies/orig_ranges work like the attributes without
        orig_*, but omit the dependencies propagated from 'depends on' and surrounding ifs (MenuNode.dep).
        """
        if not self.prompt:
            return None
        return (self.prompt[0], self._strip_dep(self.prompt[1]))

    @property
    def orig_defaults(self) -> List[Tuple]:
        return [(default, self._strip_dep(cond)) for default, cond in self.defaults]

    @property
    def orig_selects(self) -> List[Tuple]:
        return [(select, self._strip_dep(cond)) for select, cond in self.selects]

    @property
    def orig_implies(self) -> List[Tuple]:
        return [(imply, self._strip_dep(cond)) for imply, cond in self.implies]

    @property
    def orig_ranges(self) -> List[Tuple]:
        return [(low, high, self._strip_dep(cond)) for low, high, cond in self.ranges]

    @property
    def referenced(self) -> Set[Union[Symbol, Choice]]:
        """
        All symbols and choices referenced in the properties and property conditions of the node,
        including dependencies inherited from surrounding menus and ifs.
        """
        # self.dep catches a lone 'depends on' with no properties to propagate it to
        res = expr_items(self.dep)

        if self.prompt:
            res |= expr_items(self.prompt[1])

        if self.item is MENU:
            res |= expr_items(self.visibility)

        for value, cond in self.defaults:
            res |= expr_items(value)
            res |= expr_items(cond)

        for value, cond in self.selects:
            res.add(value)
            res |= expr_items(cond)

        for value, cond in self.implies:
            res.add(value)
            res |= expr_items(cond)

        for low, high, cond in self.ranges:
            res.add(low)
            res.add(high)
            res |= expr_items(cond)

        return res

    def __repr__(self) -> str:
        fields = []
        add = fields.append

        if self.item.__class__ is Symbol:
            add("menu node for symbol " + self.item.name)
        elif self.item.__class__ is Choice:
            add("menu node for choice" + (" " + self.item.name if self.item.name is not None else ""))
        elif self.item == MENU:
            add("menu node for menu")
        else:
            add("menu node for comment")

        if self.prompt:
            add(f'prompt "{self.prompt[0]}" (visibility {BOOL_TO_STR[expr_value(self.prompt[1])]})')

        if self.item.__class__ is Symbol and self.is_menuconfig:
            add("is menuconfig")

        add("deps " + BOOL_TO_STR[expr_value(self.dep)])

        if self.item == MENU:
            add("'visible if' deps " + BOOL_TO_STR[expr_value(self.visibility)])

        if self.item.__class__ in (Symbol, Choice) and self.help is not None:
            add("has help")

        if self.list:
            add("has child")

        if self.next:
            add("has next")

        add(f"{self.filename}:{self.linenr}")

        return f"<{', '.join(fields)}>"

    def __str__(self) -> str:
        """
        The node in Kconfig format, with parent dependencies propagated to 'depends on'.
        Does not end in a newline.
        """
        return self.custom_str(standard_sc_expr_str)

    def custom_str(self, sc_expr_str_fn: Callable) -> str:
        return (
            self._menu_comment_node_str(sc_expr_str_fn)
            if self.item in MENU_COMMENT
            else self._sym_choice_node_str(sc_expr_str_fn)
        )

    def _menu_comment_node_str(self, sc_expr_str_fn: Callable) -> str:
        s = f"{'menu' if self.item == MENU else 'comment'} \"{self.prompt[0]}\""

        if self.dep is not self.kconfig.y:
            s += f"\n\tdepends on {expr_str(self.dep, sc_expr_str_fn)}"

        if self.item == MENU and self.visibility is not self.kconfig.y:
            s += f"\n\tvisible if {expr_str(self.visibility, sc_expr_str_fn)}"

        return s

    def _sym_choice_node_str(self, sc_expr_str_fn: Callable) -> str:
        def indent_add(s):
            lines.append("\t" + s)

        def indent_add_cond(s, cond):
            if cond is not self.kconfig.y:
                s += " if " + expr_str(cond, sc_expr_str_fn)
            indent_add(s)

        sc = self.item

        if sc.__class__ is Symbol:
            lines = [("menuconfig " if self.is_menuconfig else "config ") + sc.name]
        else:
            lines = ["choice " + sc.name if sc.name else "choice"]

        if sc.orig_type and not self.prompt:
            # With a prompt, the '<type> "prompt"' shorthand is used instead
            indent_add(TYPE_TO_STR[sc.orig_type])

        if self.prompt:
            # "prompt" for symbols defined without a type
            prefix = TYPE_TO_STR[sc.orig_type] if sc.orig_type else "prompt"
            indent_add_cond(prefix + f' "{escape(self.prompt[0])}"', self.orig_prompt[1])

        if sc.__class__ is Symbol:
            if sc.is_allnoconfig_y:
                indent_add("option allnoconfig_y")

            if sc is sc.kconfig.defconfig_list:
                indent_add("option defconfig_list")

            if sc.env_var is not None:
                indent_add(f'option env="{sc.env_var}"')

            for low, high, cond in self.orig_ranges:
                indent_add_cond(f"range {sc_expr_str_fn(low)} {sc_expr_str_fn(high)}", cond)

        for default, cond in self.orig_defaults:
            indent_add_cond("default " + expr_str(default, sc_expr_str_fn), cond)

        if sc.__class__ is Symbol:
            for select, cond in self.orig_selects:
                indent_add_cond("select " + sc_expr_str_fn(select), cond)

            for imply, cond in self.orig_implies:
                indent_add_cond("imply " + sc_expr_str_fn(imply), cond)

        if self.dep is not sc.kconfig.y:
            indent_add("depends on " + expr_str(self.dep, sc_expr_str_fn))

        if self.help is not None:
            indent_add("help")
            for line in self.help.splitlines():
                indent_add("  " + line)

        return "\n".join(lines)

    def _strip_dep(self, expr):
        # Relies on expressions being shared rather than copied, and on the direct dependencies
        # always being ANDed in last.

        # ... if dep -> ... if y
        if self.dep is expr:
            return self.kconfig.y

        # And(X, dep) -> X
        if expr.__class__ is And and expr.right is self.dep:
            return expr.left

        return expr
