# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Post-parsing processing of the menu tree and the sanity checks that need a finalized tree.

finalize_node():
  - copies properties from menu nodes up to their symbols/choices
  - propagates dependencies from parent to child nodes
  - creates implicit menus (symbols followed by items depending on them)
  - removes 'if' nodes
  - sets choice types and registers choice symbols
"""
import os
from typing import TYPE_CHECKING
from typing import List

from .constants import BOOL
from .constants import BOOL_UNKNOWN
from .constants import INT_HEX
from .constants import MENU
from .constants import STRING
from .constants import TYPE_TO_BASE
from .constants import TYPE_TO_STR
from .errors import KconfigError
from .expr import And
from .expr import Or
from .expr import expr_depends_on
from .expr import expr_str
from .expr import is_base_n
from .expr import split_expr
from .menunode import MenuNode
from .report import MultipleDefinitionArea
from .symbol import Choice
from .symbol import Symbol

if TYPE_CHECKING:
    from .core import Kconfig


def finalize_node(kconfig: "Kconfig", node: MenuNode, visible_if) -> None:
    """
    Finalizes 'node' and its children. 'visible_if' holds the 'visible if' conditions of the parent menus,
    which are added to the prompts of symbols and choices.
    """
    if node.item.__class__ is Symbol:
        add_props_to_sym(kconfig, node)

        # Following items depending on the symbol go into an implicit menu rooted at it
        cur = node
        while cur.next and auto_menu_dep(node, cur.next):
            # Recursive, so implicit menus can nest
            finalize_node(kconfig, cur.next, visible_if)
            cur = cur.next
            cur.parent = node

        if cur is not node:
            node.list = node.next
            node.next = cur.next
            cur.next = None

    elif node.list:
        # Choice, menu or if
        if node.item == MENU:
            visible_if = kconfig._make_and(visible_if, node.visibility)

        # Before the recursive calls, so implicit menu creation can look ahead at dependencies
        propagate_deps(kconfig, node, visible_if)

        cur = node.list
        while cur:
            finalize_node(kconfig, cur, visible_if)
            cur = cur.next

    if node.list:
        flatten(node.list)
        remove_ifs(node)

    # Empty choices are possible too
    if node.item.__class__ is Choice:
        choice = node.item
        choice.direct_dep = kconfig._make_or(choice.direct_dep, node.dep)
        choice.defaults += node.defaults

        finalize_choice(node)


def propagate_deps(kconfig: "Kconfig", node: MenuNode, visible_if) -> None:
    # A choice parent contributes the choice itself: its mode bounds the visibility of the choice symbols
    basedep = node.item if node.item.__class__ is Choice else node.dep
    make_and = kconfig._make_and

    cur = node.list
    while cur:
        dep = cur.dep = make_and(cur.dep, basedep)

        if cur.item.__class__ in (Symbol, Choice):
            if cur.prompt:
                cur.prompt = (cur.prompt[0], make_and(cur.prompt[1], make_and(visible_if, dep)))

            if cur.defaults:
                cur.defaults = [(default, make_and(cond, dep)) for default, cond in cur.defaults]

            if cur.ranges:
                cur.ranges = [(low, high, make_and(cond, dep)) for low, high, cond in cur.ranges]

            if cur.selects:
                cur.selects = [(target, make_and(cond, dep)) for target, cond in cur.selects]

            if cur.implies:
                cur.implies = [(target, make_and(cond, dep)) for target, cond in cur.implies]

        elif cur.prompt:
            # Menus and comments; 'visible if' only applies to symbols and choices
            cur.prompt = (cur.prompt[0], make_and(cur.prompt[1], dep))

        cur = cur.next


def add_props_to_sym(kconfig: "Kconfig", node: MenuNode) -> None:
    """
    Copies the properties of 'node' up to its symbol and adds the (weak) reverse dependencies of selected and
    implied symbols. Done per node during finalization so properties keep the definition order.
    """
    sym = node.item

    sym.direct_dep = kconfig._make_or(sym.direct_dep, node.dep)

    sym.defaults += node.defaults
    sym.ranges += node.ranges
    sym.selects += node.selects
    sym.implies += node.implies

    for target, cond in node.selects:
        target.rev_dep = kconfig._make_or(target.rev_dep, kconfig._make_and(sym, cond))

    for target, cond in node.implies:
        target.weak_rev_dep = kconfig._make_or(target.weak_rev_dep, kconfig._make_and(sym, cond))


def auto_menu_dep(node1: MenuNode, node2: MenuNode) -> bool:
    # node2 belongs to an implicit menu rooted at node1 if its prompt condition (or its dependencies,
    # without a prompt) depends on node1's symbol
    return expr_depends_on(node2.prompt[1] if node2.prompt else node2.dep, node1.item)


def flatten(node: MenuNode) -> None:
    """
    Moves the children of promptless nodes (ifs, invisible symbols with implicit menus) after the node itself.
    Promptless choices are kept, as they legitimately appear when a named choice is defined in several places.
    """
    while node:
        if node.list and not node.prompt and node.item.__class__ is not Choice:
            last_node = node.list
            while True:
                last_node.parent = node.parent
                if not last_node.next:
                    break
                last_node = last_node.next

            last_node.next = node.next
            node.next = node.list
            node.list = None

        node = node.next


def remove_ifs(node: MenuNode) -> None:
    # 'if' nodes (item None) are already flattened at this point
    cur = node.list
    while cur and not cur.item:
        cur = cur.next

    node.list = cur

    while cur:
        next = cur.next
        while next and not next.item:
            next = next.next

        # cur.next = next; cur = next (in that order)
        cur.next = cur = next


def finalize_choice(node: MenuNode) -> None:
    # Registers the choice symbols and infers types
    choice = node.item

    cur = node.list
    while cur:
        if cur.item.__class__ is Symbol:
            cur.item.choice = choice
            choice.syms.append(cur.item)
        cur = cur.next

    # An untyped choice gets the type of its first typed symbol
    if not choice.orig_type:
        for item in choice.syms:
            if item.orig_type:
                choice.orig_type = item.orig_type
                break

    for sym in choice.syms:
        if not sym.orig_type:
            sym.orig_type = choice.orig_type


def ordered_unique(lst: List) -> List:
    seen = set()
    seen_add = seen.add
    return [x for x in lst if x not in seen and not seen_add(x)]


def check_multiple_definitions(kconfig: "Kconfig") -> None:
    """
    Reports symbols and choices defined in several places, unless marked with the multiple-definition pragma.
    A file sourced several times gives several nodes with the same location, which is not reported.
    """
    for sym in kconfig.unique_defined_syms:
        if len(sym.nodes) > 1:
            occurrences = set(f"    {os.path.abspath(node.filename)}:{node.linenr}" for node in sym.nodes)
            if len(occurrences) > 1 and sym.name not in kconfig.allowed_multi_def_syms:
                kconfig.report.add_record(MultipleDefinitionArea, name=sym.name, occurrences=occurrences)
                kconfig._info(
                    f"INFO: Symbol {sym.name} defined in multiple locations (see below). "
                    "Please check if this is a correct behavior or a random name match:\n"
                    + "\n".join(sorted(occurrences))
                )

    for choice in kconfig.unique_choices:
        if len(choice.nodes) > 1 and choice.name not in kconfig.allowed_multi_def_choices:
            occurrences = set(f"    {os.path.abspath(node.filename)}:{node.linenr}" for node in choice.nodes)
            if len(occurrences) > 1:
                kconfig.report.add_record(MultipleDefinitionArea, name=f"<choice {choice.name}>", occurrences=occurrences)
                kconfig._info(
                    f"INFO: Choice {choice.name} defined in multiple locations (see below). "
                    "Please check if this is a correct behavior or a random name match:\n"
                    + "\n".join(sorted(occurrences))
                )


def check_sym_sanity(kconfig: "Kconfig") -> None:
    def num_ok(sym, type_):
        # No nodes means a constant or undefined symbol, e.g. a plain "123"
        if not sym.nodes:
            return is_base_n(sym.name, TYPE_TO_BASE[type_])
        return sym.orig_type == type_

    for sym in kconfig.unique_defined_syms:
        type_str = TYPE_TO_STR[sym.orig_type]

        if sym.orig_type == BOOL:
            for target_sym, _ in sym.selects:
                if target_sym.orig_type not in BOOL_UNKNOWN:
                    kconfig._warn(
                        f"{sym.name_and_loc} selects the {TYPE_TO_STR[target_sym.orig_type]} symbol "
                        f"{target_sym.name_and_loc}, which is not bool"
                    )

            for target_sym, _ in sym.implies:
                if target_sym.orig_type not in BOOL_UNKNOWN:
                    kconfig._warn(
                        f"{sym.name_and_loc} implies the {TYPE_TO_STR[target_sym.orig_type]} symbol "
                        f"{target_sym.name_and_loc}, which is not bool"
                    )

        elif sym.orig_type:  # STRING/INT/HEX
            for default, _ in sym.defaults:
                if default.__class__ is not Symbol:
                    raise KconfigError(
                        f"the {type_str} symbol {sym.name_and_loc} has a malformed default {expr_str(default)} "
                        "-- expected a single symbol"
                    )

                if sym.orig_type == STRING:
                    # 'default foo' on a string symbol is either a reference or missing quotes. Guess the latter
                    # unless 'foo' is all-uppercase.
                    if not default.is_constant and not default.nodes and not default.name.isupper():
                        kconfig._warn("style: quotes recommended around default value for string symbol " + sym.name_and_loc)

                elif not num_ok(default, sym.orig_type):
                    kconfig._warn(f"the {type_str} symbol {sym.name_and_loc} has a non-{type_str} default {default.name_and_loc}")

            if sym.selects or sym.implies:
                kconfig._warn(f"the {type_str} symbol {sym.name_and_loc} has selects or implies")

        else:  # UNKNOWN
            kconfig._warn(f"{sym.name_and_loc} defined without a type")

        if sym.ranges:
            if sym.orig_type not in INT_HEX:
                kconfig._warn(f"the {type_str} symbol {sym.name_and_loc} has ranges, but is not int or hex")
            else:
                for low, high, _ in sym.ranges:
                    if not num_ok(low, sym.orig_type) or not num_ok(high, sym.orig_type):
                        kconfig._warn(
                            f"the {type_str} symbol {sym.name_and_loc} has a non-{type_str} range "
                            f"[{low.name_and_loc}, {high.name_and_loc}]"
                        )


def check_choice_sanity(kconfig: "Kconfig") -> None:
    def warn_select_imply(sym, expr, expr_type):
        msg = (
            f"the choice symbol {sym.name_and_loc} is {expr_type} by the following symbols, "
            "but select/imply has no effect on choice symbols"
        )
        for si in split_expr(expr, Or):
            msg += "\n - " + split_expr(si, And)[0].name_and_loc

        kconfig._warn(msg)

    for choice in kconfig.unique_choices:
        if choice.orig_type != BOOL:
            kconfig._warn(f"{choice.name_and_loc} defined with type {TYPE_TO_STR[choice.orig_type]}")

        for node in choice.nodes:
            if node.prompt:
                break
        else:
            kconfig._warn(choice.name_and_loc + " defined without a prompt")

        for default, _ in choice.defaults:
            if default.__class__ is not Symbol:
                raise KconfigError(f"{choice.name_and_loc} has a malformed default {expr_str(default)}")

            if default.choice is not choice:
                kconfig._warn(
                    f"the default selection {default.name_and_loc} of {choice.name_and_loc} "
                    "is not contained in the choice"
                )

        for sym in choice.syms:
            if sym.defaults:
                kconfig._warn(
                    f"default on the choice symbol {sym.name_and_loc} will have no effect, "
                    "as defaults do not affect choice symbols"
                )

            if sym.rev_dep is not kconfig.n:
                warn_select_imply(sym, sym.rev_dep, "selected")

            if sym.weak_rev_dep is not kconfig.n:
                warn_select_imply(sym, sym.weak_rev_dep, "implied")

            for node in sym.nodes:
                if node.parent.item is choice:
                    if not node.prompt:
                        kconfig._warn(f"the choice symbol {sym.name_and_loc} has no prompt")

                elif node.prompt:
                    kconfig._warn(f"the choice symbol {sym.name_and_loc} is defined with a prompt outside the choice")


def check_undef_syms(kconfig: "Kconfig") -> None:
    """
    Warns about every reference to an undefined symbol. Numbers are undefined symbols internally and are skipped.
    """

    def is_num(s):
        # Hex numbers only count with a 0x/0X prefix, otherwise names like "ABC" would match
        try:
            int(s)
        except ValueError:
            if not s.startswith(("0x", "0X")):
                return False

            try:
                int(s, 16)
            except ValueError:
                return False

        return True

    for sym in kconfig.syms.values():
        if not sym.nodes and not is_num(sym.name):
            msg = f"undefined symbol {sym.name}:"
            for node in kconfig.node_iter():
                if sym in node.referenced:
                    msg += f"\n\n- Referenced at {node.filename}:{node.linenr}:\n\n{node}"
            kconfig._warn(msg)
