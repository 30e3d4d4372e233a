# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Token, type and operator constants shared by the tokenizer, both parsers and the value engine.

The token and type constants are plain integers, compared with 'is' in the hot paths of the tokenizer.
Client code should use == though.
"""
import re

BOOL_TO_STR = {
    0: "n",
    2: "y",
}

STR_TO_BOOL = {
    "n": 0,
    "y": 2,
}

# Tokens, with values 1, 2, ... . Avoiding 0 makes every token except an empty string truthy.
(
    T_ALLNOCONFIG_Y,
    T_AND,
    T_BOOL,
    T_CHOICE,
    T_CLOSE_PAREN,
    T_COMMENT,
    T_CONFIG,
    T_DEFAULT,
    T_DEFCONFIG_LIST,
    T_DEPENDS,
    T_ENDCHOICE,
    T_ENDIF,
    T_ENDMENU,
    T_ENV,
    T_EQUAL,
    T_GREATER,
    T_GREATER_EQUAL,
    T_HELP,
    T_HEX,
    T_IF,
    T_IMPLY,
    T_INT,
    T_LESS,
    T_LESS_EQUAL,
    T_MAINMENU,
    T_MENU,
    T_MENUCONFIG,
    T_NOT,
    T_ON,
    T_OPEN_PAREN,
    T_OPTION,
    T_OPTIONAL,
    T_OR,
    T_ORSOURCE,
    T_OSOURCE,
    T_PROMPT,
    T_RANGE,
    T_RSOURCE,
    T_SELECT,
    T_SOURCE,
    T_STRING,
    T_UNEQUAL,
    T_VISIBLE,
) = range(1, 44)

get_keyword = {
    "---help---": T_HELP,
    "allnoconfig_y": T_ALLNOCONFIG_Y,
    "bool": T_BOOL,
    "boolean": T_BOOL,
    "choice": T_CHOICE,
    "comment": T_COMMENT,
    "config": T_CONFIG,
    "default": T_DEFAULT,
    "defconfig_list": T_DEFCONFIG_LIST,
    "depends": T_DEPENDS,
    "endchoice": T_ENDCHOICE,
    "endif": T_ENDIF,
    "endmenu": T_ENDMENU,
    "env": T_ENV,
    "grsource": T_ORSOURCE,  # Backwards compatibility
    "gsource": T_OSOURCE,  # Backwards compatibility
    "help": T_HELP,
    "hex": T_HEX,
    "if": T_IF,
    "imply": T_IMPLY,
    "int": T_INT,
    "mainmenu": T_MAINMENU,
    "menu": T_MENU,
    "menuconfig": T_MENUCONFIG,
    "on": T_ON,
    "option": T_OPTION,
    "optional": T_OPTIONAL,
    "orsource": T_ORSOURCE,
    "osource": T_OSOURCE,
    "prompt": T_PROMPT,
    "range": T_RANGE,
    "rsource": T_RSOURCE,
    "select": T_SELECT,
    "source": T_SOURCE,
    "string": T_STRING,
    "visible": T_VISIBLE,
}.get

# Node types. They match the corresponding tokens so no conversion is needed.
MENU = T_MENU
COMMENT = T_COMMENT

# Relation operators, used by the Relation expression node
EQUAL = T_EQUAL
UNEQUAL = T_UNEQUAL
LESS = T_LESS
LESS_EQUAL = T_LESS_EQUAL
GREATER = T_GREATER
GREATER_EQUAL = T_GREATER_EQUAL

REL_TO_STR = {
    EQUAL: "=",
    UNEQUAL: "!=",
    LESS: "<",
    LESS_EQUAL: "<=",
    GREATER: ">",
    GREATER_EQUAL: ">=",
}

STR_TO_REL = {string: rel for rel, string in REL_TO_STR.items()}

# Symbol/choice types. UNKNOWN is 0 (falsy) to simplify some checks.
UNKNOWN = 0
BOOL = T_BOOL
STRING = T_STRING
INT = T_INT
HEX = T_HEX

TYPE_TO_STR = {
    UNKNOWN: "unknown",
    BOOL: "bool",
    STRING: "string",
    INT: "int",
    HEX: "hex",
}

STR_TO_TYPE = {
    "bool": BOOL,
    "boolean": BOOL,
    "string": STRING,
    "int": INT,
    "hex": HEX,
}

# 0 means the base is inferred from the format of the string
TYPE_TO_BASE = {
    HEX: 16,
    INT: 10,
    STRING: 0,
    UNKNOWN: 0,
}

# Tokens after which strings are expected. Used to tell strings from constant symbol references,
# both of which are enclosed in quotes. T_CHOICE is included to avoid registering symbols for named choices.
STRING_LEX = frozenset(
    {
        T_BOOL,
        T_CHOICE,
        T_COMMENT,
        T_HEX,
        T_INT,
        T_MAINMENU,
        T_MENU,
        T_ORSOURCE,
        T_OSOURCE,
        T_PROMPT,
        T_RSOURCE,
        T_SOURCE,
        T_STRING,
    }
)

TYPE_TOKENS = frozenset({T_BOOL, T_INT, T_HEX, T_STRING})

SOURCE_TOKENS = frozenset({T_SOURCE, T_RSOURCE, T_OSOURCE, T_ORSOURCE})

REL_SOURCE_TOKENS = frozenset({T_RSOURCE, T_ORSOURCE})

# Obligatory (non-optional) sources
OBL_SOURCE_TOKENS = frozenset({T_SOURCE, T_RSOURCE})

RELATIONS = frozenset({EQUAL, UNEQUAL, LESS, LESS_EQUAL, GREATER, GREATER_EQUAL})

EQUAL_UNEQUAL = frozenset({EQUAL, UNEQUAL})

BOOL_UNKNOWN = frozenset({BOOL, UNKNOWN})

INT_HEX = frozenset({INT, HEX})

MENU_COMMENT = frozenset({MENU, COMMENT})

END_TOKEN_TO_STR = {
    T_ENDCHOICE: "endchoice",
    T_ENDIF: "endif",
    T_ENDMENU: "endmenu",
}

# "config FOO # ignore: multiple-definition" marks symbols/choices which are intentionally defined more than once
KCONFIG_IGNORE_PRAGMA = "# ignore:"
MULTIPLE_DEFINITION_LONG = "multiple-definition"
MULTIPLE_DEFINITION_SHORT = "MD"

kconfig_ignore_match = re.compile(
    rf"^\s*(?P<option>config|choice)\s+([a-zA-Z0-9_]+)\s+{KCONFIG_IGNORE_PRAGMA} "
    rf"(?P<type>{MULTIPLE_DEFINITION_LONG}|{MULTIPLE_DEFINITION_SHORT}).*"
).match

# The initial token on a line. Also eats leading and trailing whitespace.
command_match = re.compile(r"\s*([A-Za-z0-9_$-]+)\s*", re.ASCII).match

# An identifier/keyword after the first token. Also eats trailing whitespace.
id_keyword_match = re.compile(r"([A-Za-z0-9_$/.-]+)\s*", re.ASCII).match

# A fragment in the left-hand side of a preprocessor variable assignment
assignment_lhs_fragment_match = re.compile("[A-Za-z0-9_-]*", re.ASCII).match

# The right-hand side of a preprocessor variable assignment
assignment_rhs_match = re.compile(r"\s*(=|:=|\+=)\s*(.*)", re.ASCII).match

# Special characters/strings while expanding a macro ('(', ')', ',', and '$(')
macro_special_search = re.compile(r"\(|\)|,|\$\(", re.ASCII).search

# Special characters/strings while expanding a string (quotes, '\', and '$(')
string_special_search = re.compile(r'"|\'|\\|\$\(', re.ASCII).search

# Special characters/strings while expanding a symbol name
name_special_search = re.compile(r"[^A-Za-z0-9_$/.-]|\$\(|$", re.ASCII).search

# A valid right-hand side for a string assignment in a .config file
conf_string_match = re.compile(r'"((?:[^\\"]|\\.)*)"', re.ASCII).match

unescape_sub = re.compile(r"\\(.)").sub
