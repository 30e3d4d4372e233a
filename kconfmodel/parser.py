# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Recursive descent parser for Kconfig files (parser version 1).

Builds the raw menu tree under Kconfig.top_node: every entry gets a MenuNode, properties are stored on the node
of the location where they appear, and 'if' blocks get a node with item None. Finalization (dependency propagation,
implicit menus, removal of ifs) happens afterwards in kconfmodel.finalize.
"""
import os
from glob import iglob
from os.path import dirname
from os.path import join
from typing import TYPE_CHECKING
from typing import Optional

from .constants import END_TOKEN_TO_STR
from .constants import OBL_SOURCE_TOKENS
from .constants import REL_SOURCE_TOKENS
from .constants import RELATIONS
from .constants import SOURCE_TOKENS
from .constants import T_ALLNOCONFIG_Y
from .constants import T_AND
from .constants import T_CHOICE
from .constants import T_CLOSE_PAREN
from .constants import T_COMMENT
from .constants import T_CONFIG
from .constants import T_DEFAULT
from .constants import T_DEFCONFIG_LIST
from .constants import T_DEPENDS
from .constants import T_ENDCHOICE
from .constants import T_ENDIF
from .constants import T_ENDMENU
from .constants import T_ENV
from .constants import T_EQUAL
from .constants import T_HELP
from .constants import T_IF
from .constants import T_IMPLY
from .constants import T_MAINMENU
from .constants import T_MENU
from .constants import T_MENUCONFIG
from .constants import T_NOT
from .constants import T_ON
from .constants import T_OPEN_PAREN
from .constants import T_OPTION
from .constants import T_OPTIONAL
from .constants import T_OR
from .constants import T_PROMPT
from .constants import T_RANGE
from .constants import T_SELECT
from .constants import T_VISIBLE
from .constants import TYPE_TO_STR
from .constants import TYPE_TOKENS
from .errors import KconfigError
from .expr import And
from .expr import Not
from .expr import Or
from .expr import Relation
from .menunode import MenuNode
from .symbol import Choice
from .symbol import Symbol

if TYPE_CHECKING:
    from .core import Kconfig


class Parser:
    def __init__(self, kconfig: "Kconfig") -> None:
        self.kconfig = kconfig
        self.ctx = kconfig._context
        self.tokenizer = kconfig._tokenizer

    def parse(self) -> None:
        """
        Parses the top-level Kconfig file and everything it sources into the menu tree under top_node.
        """
        kconfig = self.kconfig
        top_node = kconfig.top_node

        with open(join(kconfig.srctree, kconfig.filename), "r", encoding=kconfig._encoding) as f:
            self.ctx.readline = f.readline
            try:
                prev = self.parse_block(None, top_node, top_node)
            finally:
                self.tokenizer.close_all()

        # The top-level entries were chained after top_node. Tilt them up as its children.
        top_node.list = top_node.next
        prev.next = None
        top_node.next = None

    def parse_block(self, end_token: Optional[int], parent: MenuNode, prev: MenuNode) -> MenuNode:
        """
        Parses the contents of a file or of an if/menu/choice, up to 'end_token' (None for files).
        New nodes are chained after 'prev'; the last node of the block is returned.
        """
        kconfig = self.kconfig
        ctx = self.ctx

        while self.tokenizer.next_line():
            t0 = ctx.tokens[0]

            if t0 == T_CONFIG or t0 == T_MENUCONFIG:
                sym = ctx.tokens[1]
                if sym.__class__ is not Symbol or sym.is_constant:
                    kconfig._parse_error("missing or bad symbol name")

                if ctx.tokens[2] is not None:
                    kconfig._trailing_tokens_error()

                kconfig.defined_syms.append(sym)

                node = MenuNode(
                    kconfig=kconfig,
                    item=sym,
                    is_menuconfig=t0 == T_MENUCONFIG,
                    parent=parent,
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                sym.nodes.append(node)

                self.parse_props(node)
                if node.is_menuconfig and not node.prompt:
                    kconfig._warn(f"the menuconfig symbol {sym.name_and_loc} has no prompt")

                # prev.next = node; prev = node (in that order)
                prev.next = prev = node

            elif t0 is None:
                continue

            elif t0 in SOURCE_TOKENS:
                pattern = self.expect_str_and_eol()
                if t0 in REL_SOURCE_TOKENS:
                    pattern = join(dirname(ctx.filename), pattern)

                # Sorted for a stable symbol order. join() keeps absolute patterns as they are.
                filenames = sorted(iglob(join(kconfig._srctree_prefix, pattern)))

                if not filenames and t0 in OBL_SOURCE_TOKENS:
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

            elif t0 is end_token:
                if ctx.tokens[1] is not None:
                    kconfig._trailing_tokens_error()

                prev.next = None
                return prev

            elif t0 == T_IF:
                node = MenuNode(kconfig=kconfig, parent=parent, dep=self.expect_expr_and_eol())

                self.parse_block(T_ENDIF, node, node)
                node.list = node.next

                prev.next = prev = node

            elif t0 == T_MENU:
                node = MenuNode(
                    kconfig=kconfig,
                    item=t0,
                    is_menuconfig=True,
                    parent=parent,
                    prompt=(self.expect_str_and_eol(), kconfig.y),
                    visibility=kconfig.y,
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                kconfig.menus.append(node)

                self.parse_props(node)
                self.parse_block(T_ENDMENU, node, node)
                node.list = node.next

                prev.next = prev = node

            elif t0 == T_COMMENT:
                node = MenuNode(
                    kconfig=kconfig,
                    item=t0,
                    is_menuconfig=False,
                    parent=parent,
                    prompt=(self.expect_str_and_eol(), kconfig.y),
                    filename=ctx.filename,
                    linenr=ctx.linenr,
                )
                kconfig.comments.append(node)

                self.parse_props(node)

                prev.next = prev = node

            elif t0 == T_CHOICE:
                if ctx.tokens[1] is None:
                    choice = Choice(kconfig=kconfig, direct_dep=kconfig.n)
                else:
                    name = self.expect_str_and_eol()
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
                self.parse_block(T_ENDCHOICE, node, node)
                node.list = node.next

                prev.next = prev = node

            elif t0 == T_MAINMENU:
                kconfig.top_node.prompt = (self.expect_str_and_eol(), kconfig.y)

            else:
                # A valid end token was handled above
                kconfig._parse_error(
                    "no corresponding 'choice'"
                    if t0 == T_ENDCHOICE
                    else "no corresponding 'if'"
                    if t0 == T_ENDIF
                    else "no corresponding 'menu'"
                    if t0 == T_ENDMENU
                    else "unrecognized construct"
                )

        if end_token:
            raise KconfigError(f"error: expected {END_TOKEN_TO_STR[end_token]} at end of {ctx.filename}")

        return prev

    def parse_cond(self):
        """
        Parses an optional 'if <expr>' and returns the expression, or y if there is none.
        """
        expr = self.parse_expr() if self.check_token(T_IF) else self.kconfig.y

        if self.ctx.tokens[self.ctx.tokens_i] is not None:
            self.kconfig._trailing_tokens_error()

        return expr

    def parse_props(self, node: MenuNode) -> None:
        """
        Parses the properties of 'node' (type, prompt, defaults, ...). They are copied up to the symbol or choice
        after parsing, so the location of each property is kept.
        """
        kconfig = self.kconfig
        ctx = self.ctx

        # 'depends on', propagated to the properties later
        node.dep = kconfig.y

        while self.tokenizer.next_line():
            t0 = ctx.tokens[0]

            if t0 in TYPE_TOKENS:
                # T_BOOL is BOOL etc., so no conversion is needed
                self.set_type(node.item, t0)
                if ctx.tokens[1] is not None:
                    self.parse_prompt(node)

            elif t0 == T_DEPENDS:
                if not self.check_token(T_ON):
                    kconfig._parse_error("expected 'on' after 'depends'")

                node.dep = kconfig._make_and(node.dep, self.expect_expr_and_eol())

            elif t0 == T_HELP:
                self.parse_help(node)

            elif t0 == T_SELECT:
                if node.item.__class__ is not Symbol:
                    kconfig._parse_error("only symbols can select")

                node.selects.append((self.expect_nonconst_sym(), self.parse_cond()))

            elif t0 is None:
                continue

            elif t0 == T_DEFAULT:
                node.defaults.append((self.parse_expr(), self.parse_cond()))

            elif t0 == T_PROMPT:
                self.parse_prompt(node)

            elif t0 == T_RANGE:
                node.ranges.append((self.expect_sym(), self.expect_sym(), self.parse_cond()))

            elif t0 == T_IMPLY:
                if node.item.__class__ is not Symbol:
                    kconfig._parse_error("only symbols can imply")

                node.implies.append((self.expect_nonconst_sym(), self.parse_cond()))

            elif t0 == T_VISIBLE:
                if not self.check_token(T_IF):
                    kconfig._parse_error("expected 'if' after 'visible'")

                node.visibility = kconfig._make_and(node.visibility, self.expect_expr_and_eol())

            elif t0 == T_OPTION:
                if self.check_token(T_ENV):
                    if not self.check_token(T_EQUAL):
                        kconfig._parse_error("expected '=' after 'env'")

                    self.set_env_var(node, self.expect_str_and_eol())

                elif self.check_token(T_DEFCONFIG_LIST):
                    self.set_defconfig_list(node)

                elif self.check_token(T_ALLNOCONFIG_Y):
                    if node.item.__class__ is not Symbol:
                        kconfig._parse_error("the 'allnoconfig_y' option is only valid for symbols")

                    node.item.is_allnoconfig_y = True

                else:
                    kconfig._parse_error("unrecognized option")

            elif t0 == T_OPTIONAL:
                if node.item.__class__ is not Choice:
                    kconfig._parse_error('"optional" is only valid for choices')

            else:
                # Not a property; give the line back to parse_block()
                ctx.reuse_tokens = True
                return

    def set_env_var(self, node: MenuNode, env_var: str) -> None:
        kconfig = self.kconfig
        node.item.env_var = env_var

        if env_var in os.environ:
            node.defaults.append((kconfig._lookup_const_sym(os.environ[env_var]), kconfig.y))
        else:
            kconfig._warn(
                f"{node.item.name} has 'option env=\"{env_var}\"', "
                f"but the environment variable {env_var} is not set",
                self.ctx.filename,
                self.ctx.linenr,
            )

        if env_var != node.item.name:
            kconfig._warn(
                "environment variables are expanded in strings directly, meaning you do not "
                "need 'option env=...' \"bounce\" symbols. For compatibility with the C tools, "
                f"rename {node.item.name} to {env_var} (so that the symbol name "
                "matches the environment variable name).",
                self.ctx.filename,
                self.ctx.linenr,
            )

    def set_defconfig_list(self, node: MenuNode) -> None:
        kconfig = self.kconfig
        if not kconfig.defconfig_list:
            kconfig.defconfig_list = node.item
        else:
            kconfig._warn(
                "'option defconfig_list' set on multiple "
                f"symbols ({kconfig.defconfig_list.name} and {node.item.name}). "
                f"Only {kconfig.defconfig_list.name} will be used.",
                self.ctx.filename,
                self.ctx.linenr,
            )

    def set_type(self, sc, new_type: int) -> None:
        if sc.orig_type and sc.orig_type != new_type:
            self.kconfig._warn(f"{sc.name_and_loc} defined with multiple types, {TYPE_TO_STR[new_type]} will be used")

        sc.orig_type = new_type

    def parse_prompt(self, node: MenuNode) -> None:
        # Prompts override each other within one definition; more can be added by defining the symbol again
        kconfig = self.kconfig
        ctx = self.ctx

        if node.prompt:
            kconfig._warn(node.item.name_and_loc + " defined with multiple prompts in single location")

        prompt = ctx.tokens[1]
        ctx.tokens_i = 2

        if prompt.__class__ is not str:
            kconfig._parse_error("expected prompt string")

        if prompt != prompt.strip():
            kconfig._warn(node.item.name_and_loc + " has leading or trailing whitespace in its prompt")
            prompt = prompt.strip()

        node.prompt = (prompt, self.parse_cond())

    def parse_help(self, node: MenuNode) -> None:
        kconfig = self.kconfig
        ctx = self.ctx

        if node.help is not None:
            kconfig._warn(
                f"{node.item.name_and_loc} defined with more than one help text -- only the last one will be used"
            )

        readline = ctx.readline

        # The first non-blank line sets the indentation
        while True:
            line = readline()
            ctx.linenr += 1
            if not line:
                self.empty_help(node, line)
                return
            if not line.isspace():
                break

        # Tabs on the first line are kept in the text, only the measurement uses expanded tabs
        expline = line.expandtabs()
        indent = len(expline) - len(expline.lstrip())
        if not indent:
            self.empty_help(node, line)
            return

        # The help text ends at the first non-blank line with less indentation than the first one
        lines = [expline[indent:]]
        add_line = lines.append

        while True:
            line = readline()
            if line.isspace():
                add_line("\n")
            elif not line:
                break
            else:
                expline = line.expandtabs()
                if len(expline) - len(expline.lstrip()) < indent:
                    break
                add_line(expline[indent:])

        ctx.linenr += len(lines)
        node.help = "".join(lines).rstrip()
        if line:
            self.tokenizer.line_after_help(line)

    def empty_help(self, node: MenuNode, line: str) -> None:
        self.kconfig._warn(node.item.name_and_loc + " has 'help' but empty help text")
        node.help = ""
        if line:
            self.tokenizer.line_after_help(line)

    # Grammar:
    #
    #   expr:     and_expr ['||' expr]
    #   and_expr: factor ['&&' and_expr]
    #   factor:   <symbol> ['='/'!='/'<'/... <symbol>]
    #             '!' factor
    #             '(' expr ')'
    #
    # A || B || C gives Or(A, Or(B, C)); && is handled the same way.

    def parse_expr(self):
        and_expr = self.parse_and_expr()
        return and_expr if not self.check_token(T_OR) else Or(and_expr, self.parse_expr())

    def parse_and_expr(self):
        factor = self.parse_factor()
        return factor if not self.check_token(T_AND) else And(factor, self.parse_and_expr())

    def parse_factor(self):
        ctx = self.ctx
        token = ctx.tokens[ctx.tokens_i]
        ctx.tokens_i += 1

        if token.__class__ is Symbol:
            if ctx.tokens[ctx.tokens_i] not in RELATIONS:
                return token

            # Relation tokens double as the relation operators
            ctx.tokens_i += 1
            return Relation(ctx.tokens[ctx.tokens_i - 1], token, self.expect_sym())

        if token == T_NOT:
            return Not(self.parse_factor())

        if token == T_OPEN_PAREN:
            expr_parse = self.parse_expr()
            if self.check_token(T_CLOSE_PAREN):
                return expr_parse

        self.kconfig._parse_error("malformed expression")

    def expect_sym(self) -> Symbol:
        ctx = self.ctx
        token = ctx.tokens[ctx.tokens_i]
        ctx.tokens_i += 1

        if token.__class__ is not Symbol:
            self.kconfig._parse_error("expected symbol")

        return token

    def expect_nonconst_sym(self) -> Symbol:
        # Only used for 'select' and 'imply', where the token positions are fixed
        ctx = self.ctx
        token = ctx.tokens[1]
        ctx.tokens_i = 2

        if token.__class__ is not Symbol or token.is_constant:
            self.kconfig._parse_error("expected nonconstant symbol")

        return token

    def expect_str_and_eol(self) -> str:
        ctx = self.ctx
        token = ctx.tokens[ctx.tokens_i]
        ctx.tokens_i += 1

        if token.__class__ is not str:
            self.kconfig._parse_error("expected string")

        if ctx.tokens[ctx.tokens_i] is not None:
            self.kconfig._trailing_tokens_error()

        return token

    def expect_expr_and_eol(self):
        expr = self.parse_expr()

        if self.ctx.tokens[self.ctx.tokens_i] is not None:
            self.kconfig._trailing_tokens_error()

        return expr

    def check_token(self, token) -> bool:
        # Consumes the next token if it is 'token'
        ctx = self.ctx
        if ctx.tokens[ctx.tokens_i] is token:
            ctx.tokens_i += 1
            return True
        return False
