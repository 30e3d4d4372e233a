# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Kconfig parser version 2.

Logical lines (continuations merged, comments removed, macros expanded) are matched against the pyparsing
grammar in kconfmodel.grammar; help texts are read raw, as their indentation matters. The resulting menu tree
is the same as the one built by parser version 1, so finalization and evaluation do not depend on the parser.
"""
from glob import iglob
from os.path import dirname
from os.path import join
from typing import Any
from typing import List
from typing import Optional
from typing import Union

from pyparsing import ParseException
from pyparsing import ParseResults

from .constants import COMMENT
from .constants import MENU
from .constants import STR_TO_BOOL
from .constants import STR_TO_REL
from .constants import STR_TO_TYPE
from .errors import KconfigError
from .expr import And
from .expr import Not
from .expr import Or
from .expr import Relation
from .expr import unescape
from .grammar import ENTRY_KEYWORDS
from .grammar import OPTION_KEYWORDS
from .grammar import KconfigGrammar
from .grammar import first_word
from .grammar import is_help_keyword
from .menunode import MenuNode
from .parser import Parser as RecursiveDescentParser
from .symbol import Choice
from .symbol import Symbol
from .tokenizer import expand_env

# Error reported for a line starting with the given keyword which does not match the grammar
SYNTAX_ERRORS = {
    "config": "missing or bad symbol name",
    "menuconfig": "missing or bad symbol name",
    "menu": "expected string",
    "comment": "expected string",
    "mainmenu": "expected string",
    "source": "expected string",
    "rsource": "expected string",
    "osource": "expected string",
    "orsource": "expected string",
    "choice": "expected choice name",
    "endmenu": "extra tokens at end of line",
    "endchoice": "extra tokens at end of line",
    "endif": "extra tokens at end of line",
    "depends": "expected 'on' after 'depends' followed by an expression",
    "visible": "expected 'if' after 'visible' followed by an expression",
    "select": "expected nonconstant symbol",
    "imply": "expected nonconstant symbol",
    "range": "expected symbol",
    "prompt": "expected prompt string",
    "option": "unrecognized option",
}

OBLIGATORY_SOURCES = ("source", "rsource")
RELATIVE_SOURCES = ("rsource", "orsource")


class Parser(RecursiveDescentParser):
    """
    Builds the menu tree like the version 1 parser, but matches whole lines with pyparsing instead of tokenizing
    them. Sourced files are entered and left through the tokenizer, which keeps the include path used for recursive
    'source' detection.
    """

    def __init__(self, kconfig) -> None:
        super().__init__(kconfig)
        self.grammar = KconfigGrammar()

        # Line given back by parse_props() (parsed) or read past the end of a help text (raw)
        self.pushed_back: Optional[ParseResults] = None
        self.raw_line: Optional[str] = None

    ############################
    # Line handling
    ############################
    def read_line(self) -> Optional[str]:
        """
        The next logical line of the current file, with '\\' continuations merged. None at EOF.
        """
        ctx = self.ctx
        if self.raw_line is not None:
            line, self.raw_line = self.raw_line, None
        else:
            line = ctx.readline()
            if not line:
                return None
            ctx.linenr += 1

        while line.endswith("\\\n"):
            line = line[:-2] + ctx.readline()
            ctx.linenr += 1

        return line

    def strip_comment(self, line: str) -> str:
        """
        Removes a trailing '#' comment, keeping '#' inside quotes.
        """
        self.kconfig.check_pragmas(line)

        quote = None
        escaped = False
        for i, char in enumerate(line):
            if quote:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == quote:
                    quote = None
            elif char in "\"'":
                quote = char
            elif char == "#":
                return line[:i]
        return line

    def next_line(self) -> Optional[ParseResults]:
        """
        Parses the next line that is a Kconfig entry or option. Preprocessor assignments are handled on the way.
        """
        if self.pushed_back is not None:
            parsed, self.pushed_back = self.pushed_back, None
            return parsed

        kconfig = self.kconfig
        ctx = self.ctx

        while True:
            line = self.read_line()
            if line is None:
                return None
            ctx.line = line

            code = self.strip_comment(line).strip()
            if not code:
                continue

            word = first_word(code)
            if word is None:
                kconfig._parse_error("unknown token at start of line")

            if word not in ENTRY_KEYWORDS and word not in OPTION_KEYWORDS and not is_help_keyword(word):
                # Preprocessor variable assignment, or a bare macro on a line
                kconfig._preprocessor.parse_assignment(line)
                continue

            if "$(" in code:
                code = kconfig._preprocessor.expand_whole(code, ())

            try:
                return self.grammar.line.parse_string(code, parse_all=True)
            except ParseException:
                kconfig._parse_error(SYNTAX_ERRORS.get(word, "malformed expression"))

    def give_back(self, parsed: ParseResults) -> None:
        self.pushed_back = parsed

    ############################
    # Blocks
    ############################
    def parse_block(self, end_token: Optional[str], parent: MenuNode, prev: MenuNode) -> MenuNode:
        kconfig = self.kconfig
        ctx = self.ctx

        while True:
            parsed = self.next_line()
            if parsed is None:
                break

            form = parsed["form"]

            if form == "config":
                sym = self.lookup_nonconst_sym(parsed["name"], "missing or bad symbol name")
                kconfig.defined_syms.append(sym)

                node = MenuNode(
                    kconfig=kconfig,
                    item=sym,
                    is_menuconfig=parsed["keyword"] == "menuconfig",
                    parent=parent,
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                sym.nodes.append(node)

                self.parse_props(node)
                if node.is_menuconfig and not node.prompt:
                    kconfig._warn(f"the menuconfig symbol {sym.name_and_loc} has no prompt")

                prev.next = prev = node

            elif form == "source":
                prev = self.parse_source(parsed, parent, prev)

            elif form == "end":
                if parsed["keyword"] != end_token:
                    kconfig._parse_error(f"no corresponding '{parsed['keyword'][3:]}'")

                prev.next = None
                return prev

            elif form == "if":
                node = MenuNode(kconfig=kconfig, parent=parent, dep=self.build_expr(parsed["expr"].as_list()))

                self.parse_block("endif", node, node)
                node.list = node.next

                prev.next = prev = node

            elif form == "menu":
                node = MenuNode(
                    kconfig=kconfig,
                    item=MENU,
                    is_menuconfig=True,
                    parent=parent,
                    prompt=(expand_env(parsed["prompt"]), kconfig.y),
                    visibility=kconfig.y,
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                kconfig.menus.append(node)

                self.parse_props(node)
                self.parse_block("endmenu", node, node)
                node.list = node.next

                prev.next = prev = node

            elif form == "comment":
                node = MenuNode(
                    kconfig=kconfig,
                    item=COMMENT,
                    is_menuconfig=False,
                    parent=parent,
                    prompt=(expand_env(parsed["prompt"]), kconfig.y),
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                kconfig.comments.append(node)

                self.parse_props(node)

                prev.next = prev = node

            elif form == "choice":
                name = parsed.get("name")
                if name is None:
                    choice = Choice(kconfig=kconfig, direct_dep=kconfig.n)
                else:
                    choice = kconfig.named_choices.get(name)
                    if not choice:
                        choice = Choice(kconfig=kconfig, name=name, direct_dep=kconfig.n)
                        kconfig.named_choices[name] = choice
                kconfig.choices.append(choice)

                node = MenuNode(
                    kconfig=kconfig,
                    item=choice,
                    is_menuconfig=True,
                    parent=parent,
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                choice.nodes.append(node)

                self.parse_props(node)
                self.parse_block("endchoice", node, node)
                node.list = node.next

                prev.next = prev = node

            elif form == "mainmenu":
                kconfig.top_node.prompt = (expand_env(parsed["prompt"]), kconfig.y)

            else:
                # An option outside of an entry
                kconfig._parse_error("unrecognized construct")

        if end_token:
            raise KconfigError(f"error: expected {end_token} at end of {ctx.filename}")

        return prev

    def parse_source(self, parsed: ParseResults, parent: MenuNode, prev: MenuNode) -> MenuNode:
        kconfig = self.kconfig
        ctx = self.ctx
        keyword = parsed["keyword"]

        pattern = expand_env(parsed["path"])
        if keyword in RELATIVE_SOURCES:
            pattern = join(dirname(ctx.filename), pattern)

        filenames = sorted(iglob(join(kconfig._srctree_prefix, pattern)))

        if not filenames and keyword in OBLIGATORY_SOURCES:
            raise KconfigError(
                "{}:{}: '{}' not found (in '{}'). Check that "
                "environment variables are set correctly (e.g. "
                "$srctree, which is {}). Also note that unset "
                "environment variables expand to the empty string.".format(
                    ctx.filename,
                    ctx.linenr,
                    pattern,
                    ctx.line.strip(),
                    f"set to '{kconfig.srctree}'" if kconfig.srctree else "unset or blank",
                )
            )

        for filename in filenames:
            self.tokenizer.enter_file(filename)
            prev = self.parse_block(None, parent, prev)
            self.tokenizer.leave_file()

        return prev

    ############################
    # Properties
    ############################
    def parse_props(self, node: MenuNode) -> None:
        kconfig = self.kconfig

        node.dep = kconfig.y

        while True:
            parsed = self.next_line()
            if parsed is None:
                return

            form = parsed["form"]

            if form == "type":
                self.set_type(node.item, STR_TO_TYPE[parsed["keyword"]])
                if "prompt" in parsed:
                    self.parse_prompt(node, parsed)

            elif form == "depends":
                node.dep = kconfig._make_and(node.dep, self.build_expr(parsed["expr"].as_list()))

            elif form == "help":
                self.parse_help(node)

            elif form == "select":
                keyword = parsed["keyword"]
                if node.item.__class__ is not Symbol:
                    kconfig._parse_error(f"only symbols can {keyword}")

                target = (self.lookup_nonconst_sym(parsed["name"], "expected nonconstant symbol"), self.cond(parsed))
                (node.selects if keyword == "select" else node.implies).append(target)

            elif form == "default":
                node.defaults.append((self.build_expr(parsed["expr"].as_list()), self.cond(parsed)))

            elif form == "prompt":
                self.parse_prompt(node, parsed)

            elif form == "range":
                node.ranges.append((self.operand(parsed["low"]), self.operand(parsed["high"]), self.cond(parsed)))

            elif form == "visible":
                node.visibility = kconfig._make_and(node.visibility, self.build_expr(parsed["expr"].as_list()))

            elif form == "option":
                if "env" in parsed:
                    self.set_env_var(node, parsed["env"])

                elif parsed["flag"] == "defconfig_list":
                    self.set_defconfig_list(node)

                else:
                    if node.item.__class__ is not Symbol:
                        kconfig._parse_error("the 'allnoconfig_y' option is only valid for symbols")

                    node.item.is_allnoconfig_y = True

            elif form == "optional":
                if node.item.__class__ is not Choice:
                    kconfig._parse_error('"optional" is only valid for choices')

            else:
                # Not a property; give the line back to parse_block()
                self.give_back(parsed)
                return

    def cond(self, parsed: ParseResults):
        return self.build_expr(parsed["cond"].as_list()) if "cond" in parsed else self.kconfig.y

    def parse_prompt(self, node: MenuNode, parsed: ParseResults) -> None:  # type: ignore[override]
        kconfig = self.kconfig

        if node.prompt:
            kconfig._warn(node.item.name_and_loc + " defined with multiple prompts in single location")

        prompt = expand_env(parsed["prompt"])
        if prompt != prompt.strip():
            kconfig._warn(node.item.name_and_loc + " has leading or trailing whitespace in its prompt")
            prompt = prompt.strip()

        node.prompt = (prompt, self.cond(parsed))

    def parse_help(self, node: MenuNode) -> None:
        kconfig = self.kconfig
        ctx = self.ctx

        if node.help is not None:
            kconfig._warn(
                f"{node.item.name_and_loc} defined with more than one help text -- only the last one will be used"
            )

        readline = ctx.readline

        while True:
            line = readline()
            if not line:
                self.empty_help(node, line)
                return
            ctx.linenr += 1
            if not line.isspace():
                break

        expline = line.expandtabs()
        indent = len(expline) - len(expline.lstrip())
        if not indent:
            self.empty_help(node, line)
            return

        lines = [expline[indent:]]
        while True:
            line = readline()
            if not line:
                break
            ctx.linenr += 1

            if line.isspace():
                lines.append("\n")
                continue

            expline = line.expandtabs()
            if len(expline) - len(expline.lstrip()) < indent:
                break
            lines.append(expline[indent:])

        node.help = "".join(lines).rstrip()
        if line:
            # Already counted in linenr
            self.raw_line = line

    def empty_help(self, node: MenuNode, line: str) -> None:
        self.kconfig._warn(node.item.name_and_loc + " has 'help' but empty help text")
        node.help = ""
        if line:
            self.raw_line = line

    ############################
    # Expressions
    ############################
    def build_expr(self, parsed: Union[str, List[Any]]):
        """
        Converts the nested lists produced by infix_notation() into an expression. Chains of && and || are nested
        to the right, as parser version 1 does: A && B && C is And(A, And(B, C)).
        """
        if parsed.__class__ is str:
            return self.operand(parsed)

        if len(parsed) == 1:
            return self.build_expr(parsed[0])

        if parsed[0] == "!":
            return Not(self.build_expr(parsed[1] if len(parsed) == 2 else parsed[1:]))

        if len(parsed) % 2 == 0:
            self.kconfig._parse_error("malformed expression")

        op = parsed[1]
        right = parsed[2] if len(parsed) == 3 else parsed[2:]

        if op == "&&":
            return And(self.build_expr(parsed[0]), self.build_expr(right))

        if op == "||":
            return Or(self.build_expr(parsed[0]), self.build_expr(right))

        if op in STR_TO_REL and len(parsed) == 3:
            left = self.build_expr(parsed[0])
            right = self.build_expr(parsed[2])
            # Only symbols can be compared
            if left.__class__ is not Symbol or right.__class__ is not Symbol:
                self.kconfig._parse_error("malformed expression")

            return Relation(STR_TO_REL[op], left, right)

        self.kconfig._parse_error("malformed expression")

    def operand(self, token: str) -> Symbol:
        kconfig = self.kconfig

        if token[0] in "\"'":
            return kconfig._lookup_const_sym(expand_env(unescape(token[1:-1])))

        if token in STR_TO_BOOL:
            return kconfig.const_syms[token]

        return kconfig._lookup_sym(token)

    def lookup_nonconst_sym(self, name: str, error: str) -> Symbol:
        if name in STR_TO_BOOL:
            self.kconfig._parse_error(error)
        return self.kconfig._lookup_sym(name)

