# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Dependency graph between symbols/choices and dependency loop detection.

Symbol/Choice._dependents holds the items whose value might change when the item changes. It drives cache
invalidation and is searched depth-first for loops.
"""
from typing import TYPE_CHECKING
from typing import Optional
from typing import Tuple
from typing import Union

from .errors import KconfigError
from .expr import depend_on
from .expr import expr_str
from .symbol import Choice
from .symbol import Symbol

if TYPE_CHECKING:
    from .core import Kconfig

# _visited states during loop detection
UNVISITED = 0
IN_PROGRESS = 1
DONE = 2


def build_dep(kconfig: "Kconfig") -> None:
    """
    Populates the _dependents sets. The sets may be larger than necessary, as expressions are not analyzed.
    """
    # Constant and undefined symbols never change value, so only defined symbols get dependents
    for sym in kconfig.unique_defined_syms:
        for node in sym.nodes:
            if node.prompt:
                depend_on(sym, node.prompt[1])

        for value, cond in sym.defaults:
            depend_on(sym, value)
            depend_on(sym, cond)

        depend_on(sym, sym.rev_dep)
        depend_on(sym, sym.weak_rev_dep)

        for low, high, cond in sym.ranges:
            depend_on(sym, low)
            depend_on(sym, high)
            depend_on(sym, cond)

        # Usually redundant with the propagated dependencies, but 'imply' only checks the direct dependencies
        depend_on(sym, sym.direct_dep)

        # Choice symbols depend on their choice through the propagated conditions

    for choice in kconfig.unique_choices:
        for node in choice.nodes:
            if node.prompt:
                depend_on(choice, node.prompt[1])

        for _, cond in choice.defaults:
            depend_on(choice, cond)


def add_choice_deps(kconfig: "Kconfig") -> None:
    """
    Makes choices depend on their symbols, as the selection changes with the visibility of the symbols.
    Added after loop detection: invalidation copes with the resulting choice <-> symbol loops, loop detection
    does not.
    """
    for choice in kconfig.unique_choices:
        for sym in choice.syms:
            sym._dependents.add(choice)


def check_dep_loops(kconfig: "Kconfig") -> None:
    """
    Raises KconfigError describing the first dependency loop found.
    """
    for sym in kconfig.unique_defined_syms:
        check_dep_loop_sym(sym, False)


def check_dep_loop_sym(sym: Symbol, ignore_choice: bool) -> Optional[Tuple]:
    """
    Depth-first search from 'sym'. An item is IN_PROGRESS while its dependents are searched and DONE once it is
    known not to be part of a loop. Running into an IN_PROGRESS item means a loop, which is collected on the way
    back up the call stack.

    Entering a choice through one of its symbols visits the other choice symbols; 'ignore_choice' stops the
    choice from being re-entered right away.
    """
    if sym._visited == UNVISITED:
        sym._visited = IN_PROGRESS

        for dep in sym._dependents:
            # A choice is a dependent when the symbol appears in its prompt or default conditions. It was not
            # entered through a choice symbol, so none is skipped.
            loop = check_dep_loop_choice(dep, None) if dep.__class__ is Choice else check_dep_loop_sym(dep, False)
            if loop:
                return found_dep_loop(loop, sym)

        if sym.choice and not ignore_choice:
            loop = check_dep_loop_choice(sym.choice, sym)
            if loop:
                return found_dep_loop(loop, sym)

        sym._visited = DONE
        return None

    if sym._visited == DONE:
        return None

    return (sym,)


def check_dep_loop_choice(choice: Choice, skip: Optional[Symbol]) -> Optional[Tuple]:
    if choice._visited == UNVISITED:
        choice._visited = IN_PROGRESS

        # Skipping the symbol we came from avoids a false <sym> -> <choice> -> <sym> loop
        for sym in choice.syms:
            if sym is not skip:
                loop = check_dep_loop_sym(sym, True)
                if loop:
                    return found_dep_loop(loop, choice)

        choice._visited = DONE
        return None

    if choice._visited == DONE:
        return None

    return (choice,)


def found_dep_loop(loop: Tuple, cur: Union[Symbol, Choice]) -> Tuple:
    # Called on the way back once a loop is known
    if cur is not loop[0]:
        return loop + (cur,)

    msg = "\nDependency loop\n===============\n\n"

    for item in loop:
        if item is not loop[0]:
            msg += "...depends on "
            if item.__class__ is Symbol and item.choice:
                msg += "the choice symbol "

        msg += f"{item.name_and_loc}, with definition...\n\n{item}\n\n"

        # The dependents sets do not tell a 'select'/'imply' condition from a 'depends on', so reverse
        # dependencies are always shown
        if item.__class__ is Symbol:
            if item.rev_dep is not item.kconfig.n:
                msg += f"(select-related dependencies: {expr_str(item.rev_dep)})\n\n"

            if item.weak_rev_dep is not item.kconfig.n:
                msg += f"(imply-related dependencies: {expr_str(item.weak_rev_dep)})\n\n"

    msg += "...depends again on " + loop[0].name_and_loc

    raise KconfigError(msg)
