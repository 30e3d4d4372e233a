# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Kconfig preprocessor: variable assignments (=, :=, +=), $(macro,args...) expansion and the built-in functions.

Variables live in Kconfig.variables. Functions are looked up in this order: preprocessor variables,
built-in (or KCONFIG_FUNCTIONS-provided) Python functions, environment variables. Unknown names expand to "".
"""
import importlib
import os
import subprocess
from typing import TYPE_CHECKING
from typing import Callable
from typing import Dict
from typing import Optional
from typing import Sequence
from typing import Tuple

from .constants import assignment_lhs_fragment_match
from .constants import assignment_rhs_match
from .constants import macro_special_search
from .constants import name_special_search
from .constants import string_special_search
from .errors import KconfigError
from .errors import _decoding_error
from .symbol import Variable

if TYPE_CHECKING:
    from .core import Kconfig

# Nesting limit for functions calling themselves
MAX_FUNCTION_EXPANSIONS = 100


def _filename_fn(kconf: "Kconfig", _) -> str:
    return kconf.filename


def _lineno_fn(kconf: "Kconfig", _) -> str:
    return str(kconf.linenr)


def _info_fn(kconf: "Kconfig", _, msg: str) -> str:
    print(f"{kconf.filename}:{kconf.linenr}: {msg}")
    return ""


def _warning_if_fn(kconf: "Kconfig", _, cond: str, msg: str) -> str:
    if cond == "y":
        kconf._warn(msg, kconf.filename, kconf.linenr)
    return ""


def _error_if_fn(kconf: "Kconfig", _, cond: str, msg: str) -> str:
    if cond == "y":
        raise KconfigError(f"{kconf.filename}:{kconf.linenr}: {msg}")
    return ""


def _shell_fn(kconf: "Kconfig", _, command: str) -> str:
    stdout, stderr = subprocess.Popen(command, shell=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE).communicate()

    try:
        stdout = stdout.decode(kconf._encoding)
        stderr = stderr.decode(kconf._encoding)
    except UnicodeDecodeError as e:
        _decoding_error(e, kconf.filename, kconf.linenr)

    if stderr:
        kconf._warn(
            "'{}' wrote to stderr: {}".format(command, "\\n".join(stderr.splitlines())),
            kconf.filename,
            kconf.linenr,
        )

    # Universal newlines, no trailing newline, newlines turned into spaces
    return "\n".join(stdout.splitlines()).rstrip("\n").replace("\n", " ")


# name: (function, min. number of arguments, max. number of arguments or None for unlimited)
BUILTIN_FUNCTIONS: Dict[str, Tuple[Callable, int, Optional[int]]] = {
    "info": (_info_fn, 1, 1),
    "error-if": (_error_if_fn, 2, 2),
    "filename": (_filename_fn, 0, 0),
    "lineno": (_lineno_fn, 0, 0),
    "shell": (_shell_fn, 1, 1),
    "warning-if": (_warning_if_fn, 2, 2),
}


class Preprocessor:
    def __init__(self, kconfig: "Kconfig") -> None:
        self.kconfig = kconfig
        self.functions = dict(BUILTIN_FUNCTIONS)

        # User-defined functions, from a module with a 'functions' dict in the same format as BUILTIN_FUNCTIONS
        try:
            self.functions.update(importlib.import_module(os.getenv("KCONFIG_FUNCTIONS", "kconfigfunctions")).functions)
        except ImportError:
            pass

    def parse_assignment(self, s: str) -> None:
        """
        Parses a variable assignment, registering the variable if it does not exist yet. A bare macro on a line
        is accepted too, provided it expands to a blank string.
        """
        kconfig = self.kconfig

        # Expand macros in the variable name
        s = s.lstrip()
        i = 0
        while True:
            i = assignment_lhs_fragment_match(s, i).end()
            if s.startswith("$(", i):
                s, i = self.expand_macro(s, i, ())
            else:
                break

        if s.isspace():
            return

        name = s[:i]

        rhs_match = assignment_rhs_match(s, i)
        if not rhs_match:
            kconfig._parse_error("syntax error")

        op, val = rhs_match.groups()

        if name in kconfig.variables:
            var = kconfig.variables[name]
        else:
            var = Variable(kconfig, name)
            kconfig.variables[name] = var

            # += defines a recursive variable if the variable is new
            if op == "+=":
                op = "="

        if op == "=":
            var.is_recursive = True
            var.value = val
        elif op == ":=":
            var.is_recursive = False
            var.value = self.expand_whole(val, ())
        else:  # +=
            # Immediate expansion if the variable was last set with :=
            var.value += " " + (val if var.is_recursive else self.expand_whole(val, ()))

    def expand_whole(self, s: str, args: Sequence[str]) -> str:
        """
        Expands all macros in 's'. 'args' are the arguments of the macro 's' comes from, if any.
        """
        i = 0
        while True:
            i = s.find("$(", i)
            if i == -1:
                break
            s, i = self.expand_macro(s, i, args)
        return s

    def expand_name(self, s: str, i: int) -> Tuple[str, str, int]:
        """
        Expands a symbol name starting at index 'i' in 's'. Returns the name, the expanded 's' and the index
        of the next token.
        """
        s, end_i = self.expand_name_iter(s, i)
        name = s[i:end_i]
        if not name.strip():
            # A symbol with a blank name is almost certainly an error
            self.kconfig._parse_error("macro expanded to blank string")

        while end_i < len(s) and s[end_i].isspace():
            end_i += 1

        return name, s, end_i

    def expand_name_iter(self, s: str, i: int) -> Tuple[str, int]:
        while True:
            match = name_special_search(s, i)

            if match.group() != "$(":
                return (s, match.start())
            s, i = self.expand_macro(s, match.start(), ())

    def expand_str(self, s: str, i: int) -> Tuple[str, int]:
        """
        Expands the quoted string starting at index 'i' in 's', removing backslash escapes and expanding macros.
        Returns the expanded 's' and the index after the closing quote.
        """
        quote = s[i]
        i += 1
        while True:
            match = string_special_search(s, i)
            if not match:
                self.kconfig._parse_error("unterminated string")

            if match.group() == quote:
                return (s, match.end())

            elif match.group() == "\\":
                # '\x' -> 'x'. 'i' ends up after 'x', so '\$(foo)' is not expanded.
                i = match.end()
                s = s[: match.start()] + s[i:]

            elif match.group() == "$(":
                s, i = self.expand_macro(s, match.start(), ())

            else:
                # ' within " quotes or vice versa
                i += 1

    def expand_macro(self, s: str, i: int, args: Sequence[str]) -> Tuple[str, int]:
        """
        Expands the macro starting at index 'i' in 's'. $(1), $(2), ... refer to 'args'.
        Returns the expanded 's' and the index after the expansion.
        """
        res = s[:i]
        i += 2  # Skip "$("

        arg_start = i
        new_args = []
        nesting = 0

        while True:
            match = macro_special_search(s, i)
            if not match:
                self.kconfig._parse_error("missing end parenthesis in macro expansion")

            if match.group() == "(":
                nesting += 1
                i = match.end()

            elif match.group() == ")":
                if nesting:
                    nesting -= 1
                    i = match.end()
                    continue

                new_args.append(s[arg_start : match.start()])

                try:
                    # $(1) etc. with a corresponding argument
                    res += args[int(new_args[0])]
                except (ValueError, IndexError):
                    res += self.fn_val(new_args)

                return (res + s[match.end() :], len(res))

            elif match.group() == ",":
                i = match.end()
                if nesting:
                    continue

                new_args.append(s[arg_start : match.start()])
                arg_start = i

            else:  # "$("
                s, i = self.expand_macro(s, match.start(), args)

    def fn_val(self, args: Sequence[str]) -> str:
        """
        Calls the function args[0] with the arguments args[1:]. Plain variables are functions without arguments.
        """
        kconfig = self.kconfig
        fn = args[0]

        if fn in kconfig.variables:
            var = kconfig.variables[fn]

            if len(args) == 1:
                if var._n_expansions:
                    kconfig._parse_error(f"Preprocessor variable {var.name} recursively references itself")
            elif var._n_expansions > MAX_FUNCTION_EXPANSIONS:
                kconfig._parse_error(f"Preprocessor function {var.name} seems stuck in infinite recursion")

            var._n_expansions += 1
            res = self.expand_whole(var.value, args)
            var._n_expansions -= 1
            return res

        if fn in self.functions:
            py_fn, min_arg, max_arg = self.functions[fn]

            if len(args) - 1 < min_arg or (max_arg is not None and len(args) - 1 > max_arg):
                if min_arg == max_arg:
                    expected_args = str(min_arg)
                elif max_arg is None:
                    expected_args = f"{min_arg} or more"
                else:
                    expected_args = f"{min_arg}-{max_arg}"

                raise KconfigError(
                    f"{kconfig.filename}:{kconfig.linenr}: bad number of arguments in call to {fn}, "
                    f"expected {expected_args}, got {len(args) - 1}"
                )

            return py_fn(kconfig, *args)

        # Environment variables are tried last
        if fn in os.environ:
            kconfig.env_vars.add(fn)
            return os.environ[fn]

        return ""
