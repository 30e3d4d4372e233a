# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Kconfig: parses Kconfig files into an evaluable model of symbols, choices and menus.

Symbol values follow the assignment semantics of the C tools: a user value (from a .config file or
Symbol.set_value()) is only respected while the symbol is visible. Dependencies from parent menus, ifs and
'depends on' are propagated to the properties of each entry, so the two snippets below are equivalent:

  menu "menu"
      depends on A
  if B
  config FOO
      bool "foo" if D
      default y
      depends on C
  endif
  endmenu

  menu "menu"
      depends on A
  config FOO
      bool "foo" if A && B && C && D
      default y if A && B && C
  endmenu

Only two-valued logic is supported: n (0) and y (2).

Environment variables:
  srctree                     Kconfig files (and .config files not found in the current directory) are looked
                              up relative to it.
  CONFIG_                     Symbol name prefix in .config files and headers, "CONFIG_" by default.
  KCONFIG_CONFIG              Configuration file used by load_config()/write_config() without a filename.
  KCONFIG_WARN_UNDEF          "y" to warn about references to undefined symbols (KCONFIG_STRICT is an alias).
  KCONFIG_WARN_UNDEF_ASSIGN   "y" to warn about assignments to undefined symbols in .config files.
  KCONFIG_CONFIG_HEADER       Text written at the beginning of configuration files.
  KCONFIG_AUTOHEADER          Header file written by write_autoconf() without a filename.
  KCONFIG_AUTOHEADER_HEADER   Text written at the beginning of header files.
  KCONFIG_PARSER_VERSION      1 (default) or 2.
  KCONFIG_FUNCTIONS           Module with additional preprocessor functions ("kconfigfunctions").
  KCONFIG_REPORT_VERBOSITY    quiet, default or verbose.
"""
import argparse
import os
import re
import sys
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Set
from typing import Tuple

from . import config_file
from .constants import BOOL
from .constants import KCONFIG_IGNORE_PRAGMA
from .constants import MENU
from .constants import MULTIPLE_DEFINITION_LONG
from .constants import MULTIPLE_DEFINITION_SHORT
from .constants import STR_TO_BOOL
from .constants import kconfig_ignore_match
from .depgraph import add_choice_deps
from .depgraph import build_dep
from .depgraph import check_dep_loops
from .errors import KconfigError
from .errors import _decoding_error
from .expr import And
from .expr import Or
from .expr import expr_value
from .finalize import check_choice_sanity
from .finalize import check_multiple_definitions
from .finalize import check_sym_sanity
from .finalize import check_undef_syms
from .finalize import finalize_node
from .finalize import ordered_unique
from .menunode import MenuNode
from .preprocessor import Preprocessor
from .report import KconfigReport
from .report import MiscArea
from .report import WarningsArea
from .symbol import Choice
from .symbol import Symbol
from .symbol import Variable
from .tokenizer import ParseContext
from .tokenizer import Tokenizer
from .tokenizer import srctree_prefix

SUPPORTED_PARSER_VERSIONS = (1, 2)


class Kconfig:
    """
    Represents a Kconfig configuration. Creating an instance parses the Kconfig files; the menu tree is then
    available from top_node and the symbols from the registries below.

    syms:
        All symbols by name, including undefined symbols referenced in expressions (their 'nodes' is empty).

    const_syms:
        Constant (quoted) symbols by name, including n and y.

    defined_syms/unique_defined_syms:
        Defined symbols in Kconfig order; the unique variant keeps only the first location of each symbol.

    named_choices, choices/unique_choices, menus, comments:
        Same idea for choices, menus and comments (the latter two are lists of menu nodes).

    variables:
        Preprocessor variables by name.

    missing_syms:
        (name, value) tuples for assignments to undefined symbols in the last loaded configuration file(s).

    warnings:
        Every warning generated, with the "warning: " prefix.

    node_arena:
        Every MenuNode, in creation order. MenuNode.index is the position in this list.
    """

    def __init__(
        self,
        filename: str = "Kconfig",
        warn: bool = True,
        info: bool = True,
        warn_to_stderr: bool = True,
        encoding: str = "utf-8",
        parser_version: Optional[int] = None,
    ) -> None:
        """
        Raises KconfigError on syntax or semantic errors and OSError on I/O errors.

        filename:
            The top-level Kconfig file, looked up relative to $srctree if it is set.

        warn/info:
            Enable warnings and informational messages. Can be changed later through Kconfig.warn/info.

        warn_to_stderr:
            Print warnings to stderr, in addition to collecting them in Kconfig.warnings.

        encoding:
            Used for reading and writing files and for decoding $(shell,...) output.

        parser_version:
            1 or 2; defaults to KCONFIG_PARSER_VERSION, then 1.
        """
        self._encoding = encoding

        self.parser_version = parser_version if parser_version else int(os.environ.get("KCONFIG_PARSER_VERSION", "1"))
        if self.parser_version not in SUPPORTED_PARSER_VERSIONS:
            raise KconfigError(
                f"unsupported parser version {self.parser_version}, "
                f"expected one of {', '.join(str(v) for v in SUPPORTED_PARSER_VERSIONS)}"
            )

        # Names marked with '# ignore: multiple-definition'
        self.allowed_multi_def_choices: Set[str] = set()
        self.allowed_multi_def_syms: Set[str] = set()

        # Changing $srctree later has no effect; only its value at load time matters
        self.srctree = os.getenv("srctree", "")
        self._srctree_prefix = srctree_prefix(self.srctree)

        self.warn = warn
        self.info = info
        self.warn_to_stderr = warn_to_stderr
        self.warn_assign_undef = os.getenv("KCONFIG_WARN_UNDEF_ASSIGN") == "y"
        # Multiple assignments to a symbol in configuration files, with different and with equal values
        self.warn_assign_override = True
        self.warn_assign_redun = True
        self._warn_assign_no_prompt = True

        self.warnings: List[str] = []
        self.report = KconfigReport(self)

        self.config_prefix = os.getenv("CONFIG_", "CONFIG_")
        self._set_match = re.compile(self.config_prefix + r"([^=]+)=(.*)", re.ASCII).match
        self._unset_match = re.compile(rf"# {self.config_prefix}([^ ]+) is not set", re.ASCII).match

        self.config_header = os.getenv("KCONFIG_CONFIG_HEADER", "")
        self.header_header = os.getenv("KCONFIG_AUTOHEADER_HEADER", "")

        self.syms: Dict[str, Symbol] = {}
        self.const_syms: Dict[str, Symbol] = {}
        self.defined_syms: List[Symbol] = []
        self.unique_defined_syms: List[Symbol] = []
        self.missing_syms: List[Tuple[str, str]] = []
        self.named_choices: Dict[str, Choice] = {}
        self.choices: List[Choice] = []
        self.unique_choices: List[Choice] = []
        self.menus: List[MenuNode] = []
        self.comments: List[MenuNode] = []
        self.variables: Dict[str, Variable] = {}
        self.env_vars: Set[str] = set()
        self.node_arena: List[MenuNode] = []

        # n and y refer to each other, so the rest of their attributes is set once both exist
        for ny in "n", "y":
            self.const_syms[ny] = Symbol(kconfig=self, name=ny, is_constant=True, init_rest=False)

        self.n: Symbol = self.const_syms["n"]
        self.y: Symbol = self.const_syms["y"]

        for ny in "n", "y":
            sym = self.const_syms[ny]
            sym.init_rest()
            sym.orig_type = BOOL
            sym._cached_bool_val = STR_TO_BOOL[ny]

        self._context = ParseContext(filename)
        self._tokenizer = Tokenizer(self)
        self._preprocessor = Preprocessor(self)

        # Symbols first seen outside of parsing (in eval_string()) are not registered
        self._parsing_kconfigs = True

        self.defconfig_list: Optional[Symbol] = None

        self.top_node = MenuNode(
            kconfig=self, item=MENU, is_menuconfig=True, prompt=("Main menu", self.y), filename=filename, linenr=1
        )

        # Kconfig files in the order they were sourced, relative to $srctree
        self.kconfig_filenames = [filename]

        self()

    def __call__(self) -> "Kconfig":
        """
        Parses the Kconfig files, finalizes the menu tree, runs the sanity checks and builds the dependency graph.
        """
        if self.parser_version == 1:
            from .parser import Parser
        else:
            from .parser_v2 import Parser

        try:
            Parser(self).parse()
        except UnicodeDecodeError as e:
            _decoding_error(e, self.filename)

        self._parsing_kconfigs = False

        finalize_node(self, self.top_node, self.y)

        self.unique_defined_syms = ordered_unique(self.defined_syms)
        self.unique_choices = ordered_unique(self.choices)

        # Some of these need the finalized tree
        check_sym_sanity(self)
        check_choice_sanity(self)
        check_multiple_definitions(self)
        if os.getenv("KCONFIG_WARN_UNDEF") == "y" or os.getenv("KCONFIG_STRICT") == "y":
            check_undef_syms(self)

        build_dep(self)
        check_dep_loops(self)
        add_choice_deps(self)

        return self

    @property
    def filename(self) -> Optional[str]:
        """
        The file being parsed, for preprocessor functions. Relative to $srctree.
        """
        return self._context.filename

    @property
    def linenr(self) -> int:
        return self._context.linenr

    @property
    def mainmenu_text(self) -> str:
        """
        The prompt of the top menu, "Main menu" unless set with 'mainmenu'.
        """
        return self.top_node.prompt[0]

    @property
    def defconfig_filename(self) -> Optional[str]:
        """
        The file given by the defconfig_list symbol: its first active default naming an existing file.
        """
        return config_file.defconfig_filename(self)

    def load_config(self, filename: Optional[str] = None, replace: bool = True) -> str:
        return config_file.load_config(self, filename, replace)

    def write_config(self, filename: Optional[str] = None, header: Optional[str] = None, save_old: bool = True) -> str:
        return config_file.write_config(self, filename, header, save_old)

    def write_autoconf(self, filename: Optional[str] = None, header: Optional[str] = None) -> str:
        return config_file.write_autoconf(self, filename, header)

    def write_min_config(self, filename: str, header: Optional[str] = None) -> str:
        return config_file.write_min_config(self, filename, header)

    def return_config(self) -> str:
        """
        The .config contents write_config() would write, without a header.
        """
        return config_file.config_contents(self, None)

    def node_iter(self, unique_syms: bool = False) -> Iterator[MenuNode]:
        """
        Iterates over all menu nodes in Kconfig order (parents before children, children before the next node).
        top_node is skipped. With unique_syms, only the first node of each symbol is visited.
        """
        if unique_syms:
            for sym in self.unique_defined_syms:
                sym._visited = False

        node = self.top_node
        while True:
            if node.list:
                node = node.list
            elif node.next:
                node = node.next
            else:
                while node.parent:
                    node = node.parent
                    if node.next:
                        node = node.next
                        break
                else:
                    return

            if unique_syms and node.item.__class__ is Symbol:
                if node.item._visited:
                    continue
                node.item._visited = True

            yield node

    def eval_string(self, s: str) -> int:
        """
        Evaluates the expression 's' to 0 (n) or 2 (y), e.g. eval_string("y && (FOO || BAR)").
        Raises KconfigError on syntax errors; references to unknown symbols generate warnings.
        """
        from .parser import Parser

        ctx = self._context
        ctx.filename = None
        ctx.tokens = self._tokenizer.tokenize("if " + s)
        # Errors show the expression without the "if "
        ctx.line = s
        ctx.tokens_i = 1

        return expr_value(Parser(self).expect_expr_and_eol())

    def check_pragmas(self, line: str) -> None:
        """
        Registers names marked with '# ignore: multiple-definition' (or '# ignore: MD').
        """
        if KCONFIG_IGNORE_PRAGMA in line:
            match = kconfig_ignore_match(line)
            if match and match.group(2):
                if match.group("type") in (MULTIPLE_DEFINITION_LONG, MULTIPLE_DEFINITION_SHORT):
                    if match.group("option") == "config":
                        self.allowed_multi_def_syms.add(match.group(2))
                    else:
                        self.allowed_multi_def_choices.add(match.group(2))

    def __repr__(self) -> str:
        def status(flag):
            return "enabled" if flag else "disabled"

        return "<{}>".format(
            ", ".join(
                (
                    f"configuration with {len(self.syms)} symbols",
                    f'main menu prompt "{self.mainmenu_text}"',
                    "srctree is current directory" if not self.srctree else f'srctree "{self.srctree}"',
                    f'config symbol prefix "{self.config_prefix}"',
                    f"parser version {self.parser_version}",
                    f"warnings {status(self.warn)}",
                    f"printing of warnings to stderr {status(self.warn_to_stderr)}",
                    f"undef. symbol assignment warnings {status(self.warn_assign_undef)}",
                    f"overriding symbol assignment warnings {status(self.warn_assign_override)}",
                    f"redundant symbol assignment warnings {status(self.warn_assign_redun)}",
                )
            )
        )

    def _lookup_sym(self, name: str) -> Symbol:
        # Creates and registers unknown symbols while parsing. From eval_string(), they are only warned about.
        if name in self.syms:
            return self.syms[name]

        sym = Symbol(kconfig=self, name=name, is_constant=False)

        if self._parsing_kconfigs:
            self.syms[name] = sym
        else:
            self._warn(f"no symbol {name} in configuration")

        return sym

    def _lookup_const_sym(self, name: str) -> Symbol:
        if name in self.const_syms:
            return self.const_syms[name]

        sym = Symbol(kconfig=self, name=name, is_constant=True)

        if self._parsing_kconfigs:
            self.const_syms[name] = sym

        return sym

    def _make_and(self, e1, e2):
        # && with trivial simplification
        if e1 is self.y:
            return e2

        if e2 is self.y:
            return e1

        if e1 is self.n or e2 is self.n:
            return self.n

        return And(e1, e2)

    def _make_or(self, e1, e2):
        # || with trivial simplification
        if e1 is self.n:
            return e2

        if e2 is self.n:
            return e1

        if e1 is self.y or e2 is self.y:
            return self.y

        return Or(e1, e2)

    def _parse_error(self, msg: str) -> None:
        ctx = self._context
        raise KconfigError(
            "{}error: couldn't parse '{}': {}".format(
                "" if ctx.filename is None else f"{ctx.filename}:{ctx.linenr}: ",
                ctx.line.strip(),
                msg,
            )
        )

    def _trailing_tokens_error(self) -> None:
        self._parse_error("extra tokens at end of line")

    def _warn(self, msg: str, filename: Optional[str] = None, linenr: Optional[int] = None) -> None:
        if not self.warn:
            return

        msg = "warning: " + msg
        if filename is not None:
            msg = f"{filename}:{linenr}: {msg}"

        self.warnings.append(msg)
        self.report.add_record(WarningsArea, message=msg)
        if self.warn_to_stderr:
            sys.stderr.write(msg + "\n")

    def _info(self, msg: str) -> None:
        if not self.info:
            return

        self.report.add_record(MiscArea, message=msg)
        sys.stderr.write(f"info: {msg}\n")


def standard_kconfig(description: Optional[str] = None) -> Kconfig:
    """
    Argument parsing helper for tools taking a single optional Kconfig file argument (default: Kconfig).
    Exits with an error message on Kconfig and I/O errors.
    """
    parser = argparse.ArgumentParser(formatter_class=argparse.RawDescriptionHelpFormatter, description=description)

    parser.add_argument(
        "kconfig",
        metavar="KCONFIG",
        default="Kconfig",
        nargs="?",
        help="Top-level Kconfig file (default: Kconfig)",
    )

    parsed_args = parser.parse_args()

    try:
        return Kconfig(parsed_args.kconfig)
    except (OSError, KconfigError) as e:
        cmd = sys.argv[0]
        if cmd:
            cmd += ": "
        # Some messages start or end with newlines for nicer tracebacks
        sys.exit(cmd + str(e).strip())


def standard_config_filename() -> str:
    """
    The value of KCONFIG_CONFIG if it is set, ".config" otherwise.
    """
    return config_file.standard_config_filename()


