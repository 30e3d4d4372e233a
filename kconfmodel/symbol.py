# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Symbol/choice value engine.

Values are computed lazily and memoized. The resolve_*() methods compute and cache a value (and, for symbols,
update the flag telling whether the symbol is written to .config); the str_value, bool_value, visibility and
assignable properties are read-style shortcuts for them.

Whenever a user value changes, the item's caches are cleared together with the caches of every item depending
on it (see Symbol._rec_invalidate()). The dependents are computed once, after parsing, by kconfmodel.depgraph.
"""
from typing import TYPE_CHECKING
from typing import Callable
from typing import List
from typing import Optional
from typing import Set
from typing import Tuple
from typing import Union

from .constants import BOOL
from .constants import BOOL_TO_STR
from .constants import HEX
from .constants import INT
from .constants import INT_HEX
from .constants import STR_TO_BOOL
from .constants import STRING
from .constants import TYPE_TO_BASE
from .constants import TYPE_TO_STR
from .expr import And
from .expr import Or
from .expr import escape
from .expr import expr_str
from .expr import expr_value
from .expr import is_base_n
from .expr import split_expr
from .expr import standard_sc_expr_str

if TYPE_CHECKING:
    from .core import Kconfig
    from .menunode import MenuNode

# Distinct from a cached None (no selection); tested with 'is'
_NO_CACHED_SELECTION = 0


class Symbol:
    """
    Represents a configuration symbol:

      (menu)config FOO
          ...

    Constant (quoted) symbols, n and y included, are Symbols as well. Undefined symbols referenced in
    expressions get a Symbol with an empty 'nodes' list; their value is their name.

    direct_dep:
      The 'depends on' dependencies, including those propagated from surrounding menus and ifs.
      Dependencies from different definition locations are ORed together.

    rev_dep/weak_rev_dep:
      OR of (selecting symbol AND select condition) for every 'select'/'imply' targeting the symbol.

    defaults/selects/implies/ranges:
      Lists of (value, cond), (target, cond), (target, cond) and (low, high, cond) tuples from all
      definition locations, with dependencies propagated to the conditions.
    """

    is_choice = False

    def __init__(self, kconfig: "Kconfig", name: str, is_constant: bool = False, init_rest: bool = True) -> None:
        self.kconfig = kconfig
        self.name = name
        self.is_constant = is_constant
        if init_rest:
            self.init_rest()

    def init_rest(self) -> None:
        """
        kconfig.n and kconfig.y are symbols themselves, so attributes referring to them can only be
        initialized after both exist.
        """
        self.direct_dep = self.kconfig.n
        self.rev_dep = self.kconfig.n
        self.weak_rev_dep = self.kconfig.n
        self.orig_type = 0
        # Name of the environment variable from 'option env="FOO"'. Such symbols are never written to .config.
        self.env_var: Optional[str] = None
        self.nodes: List["MenuNode"] = []
        self.defaults: List[Tuple] = []
        self.selects: List[Tuple] = []
        self.implies: List[Tuple] = []
        self.ranges: List[Tuple] = []
        self.choice: Optional["Choice"] = None
        self.is_allnoconfig_y = False

        # 0/2 for bool symbols, a string otherwise. None means no user value.
        # Never assign directly, use set_value().
        self._user_value: Optional[Union[int, str]] = None

        self._cached_str_val: Optional[str] = None
        self._cached_bool_val: Optional[int] = None
        self._cached_vis: Optional[int] = None
        self._cached_assignable: Optional[Tuple[int, ...]] = None
        self._write_to_conf = False
        self._visited = 0
        self._was_set = False
        self._dependents: Set[Union["Symbol", "Choice"]] = set()

    @property
    def type(self) -> int:
        """
        One of BOOL, STRING, INT, HEX, UNKNOWN. UNKNOWN is for undefined symbols, (non-special) constant symbols,
        and symbols defined without a type.
        """
        return self.orig_type

    @property
    def str_value(self) -> str:
        """
        The value of the symbol as a string: "n"/"y" for bool symbols, the value itself otherwise.
        For int/hex symbols, the format of the value is preserved.
        """
        if self._cached_str_val is not None:
            return self._cached_str_val
        return self.resolve_str_value()

    @property
    def bool_value(self) -> int:
        if self._cached_bool_val is not None:
            return self._cached_bool_val
        return self.resolve_bool_value()

    @property
    def visibility(self) -> int:
        if self._cached_vis is None:
            return self.resolve_visibility()
        return self._cached_vis

    @property
    def assignable(self) -> Tuple[int, ...]:
        """
        The bool values the user can currently assign and that would be respected: (), (0, 2) or (2,).
        (2,) means the symbol is visible but locked to y, e.g. by a select. Always () for non-bool symbols.
        """
        if self._cached_assignable is None:
            return self.resolve_assignable()
        return self._cached_assignable

    def resolve_str_value(self) -> str:
        if self.orig_type == BOOL:
            self._cached_str_val = BOOL_TO_STR[self.bool_value]
            return self._cached_str_val

        if not self.orig_type:  # UNKNOWN
            self._cached_str_val = self.name
            return self.name

        val = ""
        vis = self.visibility
        self._write_to_conf = vis != 0

        if self.orig_type in INT_HEX:
            base = TYPE_TO_BASE[self.orig_type]
            num2str = str if base == 10 else hex

            # The first range with a satisfied condition is the active one
            for low_expr, high_expr, cond in self.ranges:
                if expr_value(cond):
                    has_active_range = True
                    low = int(low_expr.str_value, base) if is_base_n(low_expr.str_value, base) else 0
                    high = int(high_expr.str_value, base) if is_base_n(high_expr.str_value, base) else 0
                    break
            else:
                has_active_range = False

            use_defaults = True
            if vis and self._user_value:
                user_val = int(self._user_value, base)
                if has_active_range and not low <= user_val <= high:
                    self.kconfig._warn(
                        f"user value {num2str(user_val)} on the {TYPE_TO_STR[self.orig_type]} symbol "
                        f"{self.name_and_loc} ignored due to being outside the active range "
                        f"([{num2str(low)}, {num2str(high)}]) -- falling back on defaults"
                    )
                else:
                    val = self._user_value
                    use_defaults = False

            if use_defaults:
                has_default = False
                for sym, cond in self.defaults:
                    if expr_value(cond):
                        has_default = self._write_to_conf = True
                        val = sym.str_value
                        val_num = int(val, base) if is_base_n(val, base) else 0
                        break
                else:
                    # Without an active default, the clamp starts from 0
                    val_num = 0

                if has_active_range:
                    clamp = None
                    if val_num < low:
                        clamp = low
                    elif val_num > high:
                        clamp = high

                    if clamp is not None:
                        val = str(clamp) if self.orig_type == INT else hex(clamp)
                        if has_default:
                            self.kconfig._warn(
                                f"default value {val_num} on {self.name_and_loc} clamped to {num2str(clamp)} due to "
                                f"being outside the active range ([{num2str(low)}, {num2str(high)}])"
                            )

        elif self.orig_type == STRING:
            if vis and self._user_value is not None:
                val = self._user_value
            else:
                for sym, cond in self.defaults:
                    if expr_value(cond):
                        val = sym.str_value
                        self._write_to_conf = True
                        break

        # 'option env' and defconfig_list symbols are never written out
        if self.env_var is not None or self is self.kconfig.defconfig_list:
            self._write_to_conf = False

        self._cached_str_val = val
        return val

    def resolve_bool_value(self) -> int:
        if self.orig_type != BOOL:
            if self.orig_type:  # != UNKNOWN
                self.kconfig._warn(
                    f"The {TYPE_TO_STR[self.orig_type]} symbol {self.name_and_loc} is being evaluated in a logical "
                    "context somewhere. It will always evaluate to n."
                )
            self._cached_bool_val = 0
            return 0

        vis = self.visibility
        self._write_to_conf = vis != 0
        val = 0

        if not self.choice:
            if vis and self._user_value is not None:
                val = min(self._user_value, vis)
            else:
                for default, cond in self.defaults:
                    dep_val = expr_value(cond)
                    if dep_val:
                        val = min(expr_value(default), dep_val)
                        if val:
                            self._write_to_conf = True
                        break

                # Weak reverse dependencies are only considered if direct dependencies are met
                dep_val = expr_value(self.weak_rev_dep)
                if dep_val and expr_value(self.direct_dep):
                    val = max(dep_val, val)
                    self._write_to_conf = True

            # Reverse (select-related) dependencies take precedence
            dep_val = expr_value(self.rev_dep)
            if dep_val:
                if expr_value(self.direct_dep) < dep_val:
                    self._warn_select_unsatisfied_deps()
                val = max(dep_val, val)
                self._write_to_conf = True

        elif vis == 2:
            # Visible choice symbol in a y-mode choice
            val = 2 if self.choice.selection is self else 0

        elif vis and self._user_value:
            val = 2

        self._cached_bool_val = val
        return val

    def resolve_visibility(self) -> int:
        self._cached_vis = _visibility(self)
        return self._cached_vis

    def resolve_assignable(self) -> Tuple[int, ...]:
        self._cached_assignable = self._assignable()
        return self._cached_assignable

    @property
    def config_string(self) -> str:
        """
        The .config assignment written out for the symbol by Kconfig.write_config(), or "" if none would be.
        """
        val = self.str_value
        if not self._write_to_conf:
            return ""

        prefix = self.kconfig.config_prefix
        if self.orig_type == BOOL:
            return f"{prefix}{self.name}={val}\n" if val != "n" else f"# {prefix}{self.name} is not set\n"

        if self.orig_type in INT_HEX:
            return f"{prefix}{self.name}={val}\n"

        return f'{prefix}{self.name}="{escape(val)}"\n'

    @property
    def name_and_loc(self) -> str:
        """
        A string like "MY_SYMBOL (defined at foo/Kconfig:12, bar/Kconfig:14)", or "MY_SYMBOL (undefined)".
        """
        return self.name + " " + _locs(self)

    def set_value(self, value: Union[int, str]) -> bool:
        """
        Sets the user value of the symbol, as if it was assigned in a .config file.

        For bool symbols, 0/2 or "n"/"y" are accepted; for other types, a string. Values of the wrong form
        (e.g. "foo" for a bool or "0x123" for an int) are rejected with a warning and False is returned.
        Setting a choice symbol to y makes it the user selection of its choice.

        Items depending on the symbol are invalidated, so their values are recalculated on the next access.
        """
        if self.orig_type == BOOL and value in STR_TO_BOOL:
            value = STR_TO_BOOL[value]

        # If the new user value matches the old one, nothing changes
        if value == self._user_value and not self.choice:
            self._was_set = True
            return True

        if not (
            self.orig_type == BOOL
            and value in (2, 0)
            or value.__class__ is str
            and (
                self.orig_type == STRING
                or self.orig_type == INT
                and is_base_n(value, 10)
                or self.orig_type == HEX
                and is_base_n(value, 16)
                and int(value, 16) >= 0
            )
        ):
            self.kconfig._warn(
                "the value {} is invalid for {}, which has type {} -- assignment ignored".format(
                    BOOL_TO_STR[value] if value in BOOL_TO_STR else f"'{value}'",
                    self.name_and_loc,
                    TYPE_TO_STR[self.orig_type],
                )
            )
            return False

        self._user_value = value
        self._was_set = True

        if self.choice and value == 2:
            self.choice._user_selection = self
            self.choice._was_set = True
            self.choice._rec_invalidate()
        else:
            self._rec_invalidate_if_has_prompt()

        return True

    def unset_value(self) -> None:
        """
        Removes any user value from the symbol.
        """
        if self._user_value is not None:
            self._user_value = None
            self._rec_invalidate_if_has_prompt()

    def has_active_default_value(self) -> bool:
        """
        True if the symbol has no user value, or if its current value equals the value it would have without one.
        """
        return self._user_value is None or self.str_value == self._str_default()

    @property
    def referenced(self) -> Set[Union["Symbol", "Choice"]]:
        """
        All symbols and choices referenced in the properties and property conditions of the symbol,
        including dependencies propagated from surrounding menus and ifs.
        """
        return {item for node in self.nodes for item in node.referenced}

    @property
    def orig_defaults(self) -> List[Tuple]:
        return [d for node in self.nodes for d in node.orig_defaults]

    @property
    def orig_selects(self) -> List[Tuple]:
        return [s for node in self.nodes for s in node.orig_selects]

    @property
    def orig_implies(self) -> List[Tuple]:
        return [i for node in self.nodes for i in node.orig_implies]

    @property
    def orig_ranges(self) -> List[Tuple]:
        return [r for node in self.nodes for r in node.orig_ranges]

    def __repr__(self) -> str:
        fields = ["symbol " + self.name, TYPE_TO_STR[self.type]]
        add = fields.append

        for node in self.nodes:
            if node.prompt:
                add(f'"{node.prompt[0]}"')

        add("value " + (self.str_value if self.orig_type == BOOL else f'"{self.str_value}"'))

        if not self.is_constant:
            if self._user_value is not None:
                add(
                    "user value "
                    + (BOOL_TO_STR[self._user_value] if self.orig_type == BOOL else f'"{self._user_value}"')
                )

            add("visibility " + BOOL_TO_STR[self.visibility])

            if self.choice:
                add("choice symbol")

            if self.is_allnoconfig_y:
                add("allnoconfig_y")

            if self is self.kconfig.defconfig_list:
                add("is the defconfig_list symbol")

            if self.env_var is not None:
                add("from environment variable " + self.env_var)

            add("direct deps " + BOOL_TO_STR[expr_value(self.direct_dep)])

        if self.nodes:
            for node in self.nodes:
                add(f"{node.filename}:{node.linenr}")
        else:
            add("constant" if self.is_constant else "undefined")

        return f"<{', '.join(fields)}>"

    def __str__(self) -> str:
        """
        The definition(s) of the symbol in Kconfig format, with parent dependencies propagated to
        'depends on'. Empty for undefined and constant symbols.
        """
        return self.custom_str(standard_sc_expr_str)

    def custom_str(self, sc_expr_str_fn: Callable) -> str:
        return "\n\n".join(node.custom_str(sc_expr_str_fn) for node in self.nodes)

    def _assignable(self) -> Tuple[int, ...]:
        if self.orig_type != BOOL:
            return ()

        vis = self.visibility
        if not vis:
            return ()

        rev_dep_val = expr_value(self.rev_dep)

        if vis == 2:
            if self.choice or rev_dep_val:
                return (2,)
            return (0, 2)

        if not rev_dep_val:
            return () if expr_value(self.weak_rev_dep) != 2 else (0, 2)
        return (2,)

    def _invalidate(self) -> None:
        self._cached_str_val = self._cached_bool_val = self._cached_vis = self._cached_assignable = None

    def _rec_invalidate(self) -> None:
        self._invalidate()
        for item in self._dependents:
            # A None visibility cache means the item's value was never computed (or was already invalidated),
            # so nothing that depends on it can be cached either
            if item._cached_vis is not None:
                item._rec_invalidate()

    def _rec_invalidate_if_has_prompt(self) -> None:
        # User values only have an effect on symbols with prompts
        for node in self.nodes:
            if node.prompt:
                self._rec_invalidate()
                return

        if self.kconfig._warn_assign_no_prompt:
            self.kconfig._warn(self.name_and_loc + " has no prompt, meaning user values have no effect on it")

    def _str_default(self) -> str:
        """
        The value the symbol would get without a user value. Used by write_min_config().
        """
        if self.orig_type == BOOL:
            val = 0
            if not self.choice:
                for default, cond in self.defaults:
                    cond_val = expr_value(cond)
                    if cond_val:
                        val = min(expr_value(default), cond_val)
                        break
                val = max(expr_value(self.rev_dep), expr_value(self.weak_rev_dep), val)
            return BOOL_TO_STR[val]

        if self.orig_type:  # STRING/INT/HEX
            for default, cond in self.defaults:
                if expr_value(cond):
                    return default.str_value

        return ""

    def _warn_select_unsatisfied_deps(self) -> None:
        msg = (
            f"{self.name_and_loc} has direct dependencies {expr_str(self.direct_dep)} with value "
            f"{BOOL_TO_STR[expr_value(self.direct_dep)]}, but is currently being "
            f"{BOOL_TO_STR[expr_value(self.rev_dep)]}-selected by the following symbols:"
        )

        for select in split_expr(self.rev_dep, Or):
            if expr_value(select) <= expr_value(self.direct_dep):
                # Only list the selects that force the symbol above its direct dependencies
                continue

            selecting_sym = split_expr(select, And)[0]
            msg += (
                f"\n - {selecting_sym.name_and_loc}, with value {selecting_sym.str_value}, direct dependencies "
                f"{expr_str(selecting_sym.direct_dep)} (value: {BOOL_TO_STR[expr_value(selecting_sym.direct_dep)]})"
            )

            if isinstance(select, And):
                msg += (
                    f", and select condition {expr_str(select.right)} "
                    f"(value: {BOOL_TO_STR[expr_value(select.right)]})"
                )

        self.kconfig._warn(msg)


class Choice:
    """
    Represents a choice statement:

      choice
          ...
      endchoice

    A choice is either disabled (mode n, only possible when it is invisible) or in y mode, where exactly
    one visible choice symbol is selected. The selection is the user selection if it is visible, otherwise
    the first visible default, otherwise the first visible choice symbol.
    """

    is_choice = True

    def __init__(self, kconfig: "Kconfig", name: Optional[str] = None, direct_dep=None) -> None:
        self.kconfig = kconfig
        self.name = name
        self.direct_dep = direct_dep
        self.orig_type = 0
        self.nodes: List["MenuNode"] = []
        self.syms: List[Symbol] = []
        self.defaults: List[Tuple] = []
        self.is_constant = False

        self._user_value: Optional[int] = None
        self._user_selection: Optional[Symbol] = None
        self._visited = 0
        self._was_set = False
        self._cached_vis: Optional[int] = None
        self._cached_assignable: Optional[Tuple[int, ...]] = None
        self._cached_selection = _NO_CACHED_SELECTION
        self._dependents: Set[Union[Symbol, "Choice"]] = set()

    @property
    def type(self) -> int:
        """
        BOOL, or UNKNOWN for choices where neither the choice nor any of its symbols has a type.
        """
        return self.orig_type

    @property
    def str_value(self) -> str:
        return BOOL_TO_STR[self.bool_value]

    @property
    def bool_value(self) -> int:
        """
        The mode of the choice. The visibility is an upper bound on the mode, and the mode in turn is an upper
        bound on the visibility of the choice symbols.
        """
        val = 2
        if self._user_value is not None:
            val = max(val, self._user_value)
        return min(val, self.visibility)

    @property
    def assignable(self) -> Tuple[int, ...]:
        if self._cached_assignable is None:
            return self.resolve_assignable()
        return self._cached_assignable

    @property
    def visibility(self) -> int:
        if self._cached_vis is None:
            return self.resolve_visibility()
        return self._cached_vis

    @property
    def selection(self) -> Optional[Symbol]:
        """
        The selected choice symbol, or None if the choice is not in y mode or no choice symbol is visible.
        To change it, call set_value(2) on the choice symbol to select.
        """
        if self._cached_selection is _NO_CACHED_SELECTION:
            return self.resolve_selection()
        return self._cached_selection

    def resolve_visibility(self) -> int:
        self._cached_vis = _visibility(self)
        return self._cached_vis

    def resolve_assignable(self) -> Tuple[int, ...]:
        self._cached_assignable = (2,) if self.visibility == 2 else ()
        return self._cached_assignable

    def resolve_selection(self) -> Optional[Symbol]:
        self._cached_selection = self._selection()
        return self._cached_selection

    @property
    def name_and_loc(self) -> str:
        """
        A string like "<choice MY_CHOICE> (defined at foo/Kconfig:12)".
        """
        return standard_sc_expr_str(self) + " " + _locs(self)

    def set_value(self, value: Union[int, str]) -> bool:
        """
        Sets the user mode of the choice. 0/"n" is accepted but has no effect, as a visible choice is
        always in y mode.
        """
        if value in STR_TO_BOOL:
            value = STR_TO_BOOL[value]

        if value == self._user_value:
            self._was_set = True
            return True

        if not (self.orig_type == BOOL and value in (2, 0)):
            self.kconfig._warn(
                "the value {} is invalid for {}, which has type {} -- assignment ignored".format(
                    BOOL_TO_STR[value] if value in BOOL_TO_STR else f"'{value}'",
                    self.name_and_loc,
                    TYPE_TO_STR[self.orig_type],
                )
            )
            return False

        self._user_value = value
        self._was_set = True
        self._rec_invalidate()
        return True

    def unset_value(self) -> None:
        """
        Resets the user mode and the user selection of the choice.
        """
        if self._user_value is not None or self._user_selection:
            self._user_value = self._user_selection = None
            self._rec_invalidate()

    @property
    def referenced(self) -> Set[Union[Symbol, "Choice"]]:
        return {item for node in self.nodes for item in node.referenced}

    @property
    def orig_defaults(self) -> List[Tuple]:
        return [d for node in self.nodes for d in node.orig_defaults]

    def __repr__(self) -> str:
        fields = [
            "choice " + self.name if self.name else "choice",
            TYPE_TO_STR[self.type],
        ]
        add = fields.append

        for node in self.nodes:
            if node.prompt:
                add(f'"{node.prompt[0]}"')

        add("mode " + self.str_value)

        if self._user_value is not None:
            add(f"user mode {BOOL_TO_STR[self._user_value]}")

        if self.selection:
            add(f"{self.selection.name} selected")

        if self._user_selection:
            user_sel_str = f"{self._user_selection.name} selected by user"
            if self.selection is not self._user_selection:
                user_sel_str += " (overridden)"
            add(user_sel_str)

        add("visibility " + BOOL_TO_STR[self.visibility])

        for node in self.nodes:
            add(f"{node.filename}:{node.linenr}")

        return f"<{', '.join(fields)}>"

    def __str__(self) -> str:
        return self.custom_str(standard_sc_expr_str)

    def custom_str(self, sc_expr_str_fn: Callable) -> str:
        return "\n\n".join(node.custom_str(sc_expr_str_fn) for node in self.nodes)

    def _selection(self) -> Optional[Symbol]:
        if self.bool_value != 2:
            return None

        if self._user_selection and self._user_selection.visibility:
            return self._user_selection

        return self._selection_from_defaults()

    def _selection_from_defaults(self) -> Optional[Symbol]:
        for sym, cond in self.defaults:
            # The default symbol must be visible too
            if expr_value(cond) and sym.visibility:
                return sym

        # Otherwise, pick the first visible symbol, if any
        for sym in self.syms:
            if sym.visibility:
                return sym

        return None

    def _invalidate(self) -> None:
        self._cached_vis = self._cached_assignable = None
        self._cached_selection = _NO_CACHED_SELECTION

    def _rec_invalidate(self) -> None:
        self._invalidate()
        for item in self._dependents:
            if item._cached_vis is not None:
                item._rec_invalidate()


class Variable:
    """
    A preprocessor variable/function, defined with 'NAME = value', 'NAME := value' or 'NAME += value'.
    """

    __slots__ = (
        "_n_expansions",
        "is_recursive",
        "kconfig",
        "name",
        "value",
    )

    def __init__(self, kconfig: "Kconfig", name: str) -> None:
        self.kconfig = kconfig
        self.name = name
        self.value = ""
        self.is_recursive = False
        self._n_expansions = 0

    @property
    def expanded_value(self) -> str:
        """
        The value of the variable, with macros expanded.
        """
        return self.expanded_value_w_args()

    def expanded_value_w_args(self, *args: str) -> str:
        """
        Like expanded_value, but with arguments, as if called with $(name,arg1,...).
        """
        return self.kconfig._preprocessor.fn_val((self.name,) + args)

    def __repr__(self) -> str:
        return f"<variable {self.name}, {'recursive' if self.is_recursive else 'immediate'}, value '{self.value}'>"


def _visibility(sc: Union[Symbol, Choice]) -> int:
    vis = 0
    for node in sc.nodes:
        if node.prompt:
            vis = max(vis, expr_value(node.prompt[1]))
    return vis


def _locs(sc: Union[Symbol, Choice]) -> str:
    if sc.nodes:
        return "(defined at {})".format(", ".join(f"{node.filename}:{node.linenr}" for node in sc.nodes))
    return "(undefined)"
