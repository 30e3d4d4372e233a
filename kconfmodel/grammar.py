# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Grammar of the Kconfig language used by parser version 2.

Parser version 2 reads Kconfig files line by line (help texts excepted, see parser_v2) and matches every logical
line against one of the line forms below. Semantic actions are not attached to the grammar; the parser walks the
named results instead, so the grammar can be reused e.g. for checkers.
"""
import re
from typing import Optional

from pyparsing import Group
from pyparsing import Keyword
from pyparsing import Literal
from pyparsing import MatchFirst
from pyparsing import Opt
from pyparsing import ParserElement
from pyparsing import ParseResults
from pyparsing import QuotedString
from pyparsing import Regex
from pyparsing import Suppress
from pyparsing import infix_notation
from pyparsing import one_of
from pyparsing import opAssoc

# Speeds up infix_notation() considerably
ParserElement.enable_packrat(cache_size_limit=None)

ENTRY_KEYWORDS = (
    "config",
    "menuconfig",
    "menu",
    "endmenu",
    "choice",
    "endchoice",
    "if",
    "endif",
    "comment",
    "mainmenu",
    "source",
    "rsource",
    "osource",
    "orsource",
)

OPTION_KEYWORDS = (
    "bool",
    "boolean",
    "int",
    "hex",
    "string",
    "prompt",
    "default",
    "depends",
    "select",
    "imply",
    "range",
    "visible",
    "option",
    "optional",
    "help",
)

RELATION_OPERATORS = ("=", "!=", "<", "<=", ">", ">=")

# "if" ends a value or expression: 'default FOO if BAR'
_IF = Keyword("if")

# Operands: quoted constants ("foo", 'bar') or symbol names (FOO, y, 0x10, -1).
# Quotes are kept in the result, so the parser can tell constants from symbol references.
symbol_regex = r"""
    (?!if(?![A-Za-z0-9_.$/-]))   # "if" starts a condition
    (?:
        "(?:[^"\\]|\\.)*"      # "double quoted", with escapes
        |'(?:[^'\\]|\\.)*'     # 'single quoted', with escapes
        |[A-Za-z0-9_.$/-]+     # FOO, y, 1234, -1, 0x1F
    )
"""
symbol = Regex(symbol_regex, re.X).set_name("symbol")

# Relations bind tighter than '!', so '!A = B' is !(A = B)
operators_with_precedence = [
    (one_of(" ".join(RELATION_OPERATORS)), 2, opAssoc.LEFT),
    (Regex(r"!(?!=)"), 1, opAssoc.RIGHT),
    (Literal("&&"), 2, opAssoc.LEFT),
    (Literal("||"), 2, opAssoc.LEFT),
]

expression = infix_notation(symbol, operators_with_precedence).set_name("expression")

prompt_string = (QuotedString('"', esc_char="\\") | QuotedString("'", esc_char="\\")).set_name("prompt")
condition = Suppress(_IF) + Group(expression)("cond")


class KconfigGrammar:
    """
    Line forms of the Kconfig language, built once per parser.

    Every form tags its results with the form name (results name "form"), plus:
        name:   symbol or choice name
        prompt: prompt text (unescaped, macros already expanded)
        expr:   expression (nested lists, as produced by infix_notation)
        cond:   condition after 'if'
        path:   'source' path
    """

    def __init__(self) -> None:
        self.init_grammar()

    def init_grammar(self) -> None:
        name = Regex(r"[A-Za-z0-9_]+")("name")
        kw = Keyword

        def form(element: ParserElement, form_name: str) -> ParserElement:
            def tag(tokens: ParseResults) -> None:
                tokens["form"] = form_name

            return element.set_parse_action(tag)

        ##########################
        # Entries
        ##########################
        config = form((kw("config") | kw("menuconfig"))("keyword") + name, "config")
        menu = form(kw("menu") + prompt_string("prompt"), "menu")
        choice = form(kw("choice") + Opt(name), "choice")
        comment = form(kw("comment") + prompt_string("prompt"), "comment")
        mainmenu = form(kw("mainmenu") + prompt_string("prompt"), "mainmenu")
        source = form(
            one_of("source rsource osource orsource", as_keyword=True)("keyword")
            + (QuotedString('"') | QuotedString("'"))("path"),
            "source",
        )
        if_entry = form(kw("if") + Group(expression)("expr"), "if")
        end = form(one_of("endmenu endchoice endif", as_keyword=True)("keyword"), "end")

        ##########################
        # Options
        ##########################
        type_option = form(
            one_of("bool boolean int hex string", as_keyword=True)("keyword")
            + Opt(prompt_string("prompt") + Opt(condition)),
            "type",
        )
        prompt = form(kw("prompt") + prompt_string("prompt") + Opt(condition), "prompt")
        default = form(kw("default") + Group(expression)("expr") + Opt(condition), "default")
        depends_on = form(kw("depends") + kw("on") + Group(expression)("expr"), "depends")
        select = form((kw("select") | kw("imply"))("keyword") + name + Opt(condition), "select")
        range_option = form(kw("range") + symbol("low") + symbol("high") + Opt(condition), "range")
        visible_if = form(kw("visible") + kw("if") + Group(expression)("expr"), "visible")
        option = form(
            kw("option")
            + (
                (kw("env") + Suppress("=") + (QuotedString('"') | QuotedString("'"))("env"))
                | kw("defconfig_list")("flag")
                | kw("allnoconfig_y")("flag")
            ),
            "option",
        )
        optional = form(kw("optional"), "optional")
        # "---help---" is accepted for compatibility with old Kconfig files
        help_option = form(Regex(r"-*help-*")("keyword"), "help")

        self.entry = MatchFirst([config, menu, choice, comment, mainmenu, source, if_entry, end])
        self.option = MatchFirst(
            [type_option, prompt, default, depends_on, select, range_option, visible_if, option, optional, help_option]
        )
        self.line = self.option | self.entry


def first_word(line: str) -> Optional[str]:
    """
    The leading keyword candidate of a line, e.g. "config" for "config FOO".
    """
    match = re.match(r"\s*([A-Za-z0-9_$-]+)", line)
    return match.group(1) if match else None


def is_help_keyword(word: str) -> bool:
    return word.strip("-") == "help"
