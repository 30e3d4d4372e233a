# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Line tokenizer for Kconfig files.

All parsing state (current file, line, tokens, include path, stack of open files) lives in a ParseContext
owned by the Kconfig instance, so several Kconfig instances can be parsed independently.
"""
import errno
import os
import platform
from os.path import expanduser
from os.path import expandvars
from typing import TYPE_CHECKING
from typing import Callable
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

from .constants import STR_TO_BOOL
from .constants import STRING_LEX
from .constants import T_AND
from .constants import T_CHOICE
from .constants import T_CLOSE_PAREN
from .constants import T_EQUAL
from .constants import T_GREATER
from .constants import T_GREATER_EQUAL
from .constants import T_HELP
from .constants import T_LESS
from .constants import T_LESS_EQUAL
from .constants import T_NOT
from .constants import T_OPEN_PAREN
from .constants import T_OPTION
from .constants import T_OR
from .constants import T_UNEQUAL
from .constants import command_match
from .constants import get_keyword
from .constants import id_keyword_match
from .errors import KconfigError
from .errors import _KconfigIOError

if TYPE_CHECKING:
    from .core import Kconfig

UNAME_RELEASE = platform.uname().release


class ParseContext:
    """
    Parsing position and state.

    include_path:
        Tuple of (filename, linenr) tuples of the 'source' statements leading to the current file. It is
        immutable, so it can be shared by all menu nodes from the same file.

    filestack:
        (include_path, readline) of the files that sourced the current one.

    tokens/tokens_i:
        The None-terminated tokens of the current line and the index of the next token to consume.
        tokens_i starts at 1, as the parsers look at tokens[0] directly.

    reuse_tokens:
        Set when a line turns out not to belong to the construct being parsed; the next call to
        Tokenizer.next_line() then hands out the same tokens again.
    """

    __slots__ = (
        "filename",
        "filestack",
        "include_path",
        "line",
        "linenr",
        "readline",
        "reuse_tokens",
        "tokens",
        "tokens_i",
    )

    def __init__(self, filename: Optional[str]) -> None:
        self.filename = filename
        self.linenr = 0
        self.line = ""
        self.tokens: Sequence = (None,)
        self.tokens_i = 1
        self.reuse_tokens = False
        self.include_path: Tuple[Tuple[str, int], ...] = ()
        self.filestack: List[Tuple[Tuple, Callable]] = []
        self.readline: Optional[Callable[[], str]] = None


class Tokenizer:
    """
    Turns Kconfig lines into token lists. Keywords become T_* constants, symbol references become Symbols
    (registered on the Kconfig instance on first sight), and string literals become plain strings.
    """

    def __init__(self, kconfig: "Kconfig") -> None:
        self.kconfig = kconfig
        self.ctx: ParseContext = kconfig._context

    def next_line(self) -> bool:
        """
        Fetches and tokenizes the next line of the current file. Returns False at EOF.
        """
        ctx = self.ctx

        if ctx.reuse_tokens:
            # tokens_i is 1 here, as left by the parser when it gave the line back
            ctx.reuse_tokens = False
            return True

        line = ctx.readline()
        if not line:
            return False
        ctx.linenr += 1

        while line.endswith("\\\n"):
            line = line[:-2] + ctx.readline()
            ctx.linenr += 1

        ctx.tokens = self.tokenize(line)
        ctx.tokens_i = 1
        return True

    def line_after_help(self, line: str) -> None:
        """
        Tokenizes the line that ended a help text. It was already read, so it is handed out again by the next
        call to next_line().
        """
        ctx = self.ctx
        while line.endswith("\\\n"):
            line = line[:-2] + ctx.readline()
            ctx.linenr += 1

        ctx.tokens = self.tokenize(line)
        ctx.reuse_tokens = True

    def tokenize(self, s: str) -> Sequence:
        """
        Returns the None-terminated token list for the line 's'.
        """
        kconfig = self.kconfig
        ctx = self.ctx
        ctx.line = s
        kconfig.check_pragmas(s)

        match = command_match(s)
        if not match:
            if s.isspace() or s.lstrip().startswith("#"):
                return (None,)
            kconfig._parse_error("unknown token at start of line")

        # While a token is being parsed, 'token' holds the previous token. STRING_LEX depends on that.
        token = get_keyword(match.group(1))
        if not token:
            # Old C tools accepted e.g. "--help--" and "-help---"
            if s.strip(" \t\n-") == "help":
                return (T_HELP, None)

            # Preprocessor variable assignment, or a bare macro on a line
            kconfig._preprocessor.parse_assignment(s)
            return (None,)

        tokens = [token]
        i = match.end()

        while i < len(s):
            match = id_keyword_match(s, i)
            if match:
                name = match.group(1)
                keyword = get_keyword(name)
                if keyword:
                    token = keyword
                    i = match.end()

                elif token not in STRING_LEX:
                    # Symbol reference. n and y are the constant symbols.
                    if "$" in name:
                        name, s, i = kconfig._preprocessor.expand_name(s, i)
                    else:
                        i = match.end()

                    token = kconfig.const_syms[name] if name in STR_TO_BOOL else kconfig._lookup_sym(name)

                else:
                    # Unquoted string, e.g. 'menu unquoted_title'. Named choices ('choice FOO') end up here too.
                    if token is not T_CHOICE:
                        kconfig._warn(
                            f"style: quotes recommended around '{name}' in '{ctx.line.strip()}'",
                            ctx.filename,
                            ctx.linenr,
                        )

                    token = name
                    i = match.end()

            else:
                # Whitespace is always skipped after a token, so s[i] starts a token
                c = s[i]

                if c in "\"'":
                    if "$" not in s and "\\" not in s:
                        # Fast path: no escapes and no macros
                        end_i = s.find(c, i + 1) + 1
                        if not end_i:
                            kconfig._parse_error("unterminated string")
                        val = s[i + 1 : end_i - 1]
                        i = end_i
                    else:
                        s, end_i = kconfig._preprocessor.expand_str(s, i)

                        val = expand_env(s[i + 1 : end_i - 1])
                        i = end_i

                    # 'option env="FOO"' does not refer to a constant symbol named "FOO"
                    token = val if token in STRING_LEX or tokens[0] is T_OPTION else kconfig._lookup_const_sym(val)

                elif s.startswith("&&", i):
                    token = T_AND
                    i += 2

                elif s.startswith("||", i):
                    token = T_OR
                    i += 2

                elif c == "=":
                    token = T_EQUAL
                    i += 1

                elif s.startswith("!=", i):
                    token = T_UNEQUAL
                    i += 2

                elif c == "!":
                    token = T_NOT
                    i += 1

                elif c == "(":
                    token = T_OPEN_PAREN
                    i += 1

                elif c == ")":
                    token = T_CLOSE_PAREN
                    i += 1

                elif c == "#":
                    break

                elif s.startswith("<=", i):
                    token = T_LESS_EQUAL
                    i += 2

                elif c == "<":
                    token = T_LESS
                    i += 1

                elif s.startswith(">=", i):
                    token = T_GREATER_EQUAL
                    i += 2

                elif c == ">":
                    token = T_GREATER
                    i += 1

                else:
                    kconfig._parse_error("unknown tokens in line")

                while i < len(s) and s[i].isspace():
                    i += 1

            tokens.append(token)

        tokens.append(None)
        return tokens

    def enter_file(self, filename: str) -> None:
        """
        Starts reading the sourced file 'filename' (an absolute path), saving the position in the current one.
        """
        kconfig = self.kconfig
        ctx = self.ctx

        # Paths within $srctree are stored relative to it
        if filename.startswith(kconfig._srctree_prefix):
            rel_filename = filename[len(kconfig._srctree_prefix) :]
        else:
            rel_filename = filename

        kconfig.kconfig_filenames.append(rel_filename)

        ctx.filestack.append((ctx.include_path, ctx.readline))
        ctx.include_path += ((ctx.filename, ctx.linenr),)

        for name, _ in ctx.include_path:
            if name == rel_filename:
                raise KconfigError(
                    "\n{}:{}: recursive 'source' of '{}' detected. Check that "
                    "environment variables are set correctly.\n"
                    "Include path:\n{}".format(
                        ctx.filename,
                        ctx.linenr,
                        rel_filename,
                        "\n".join(f"{name}:{linenr}" for name, linenr in ctx.include_path),
                    )
                )

        try:
            ctx.readline = open(filename, "r", encoding=kconfig._encoding).readline
        except OSError as e:
            raise _KconfigIOError(
                e,
                f"{ctx.filename}:{ctx.linenr}: Could not open '{filename}' (in '{ctx.line.strip()}') "
                f"({errno.errorcode[e.errno]}: {e.strerror})",
            )

        ctx.filename = rel_filename
        ctx.linenr = 0

    def leave_file(self) -> None:
        """
        Returns to the file that sourced the current one.
        """
        ctx = self.ctx
        ctx.filename, ctx.linenr = ctx.include_path[-1]
        # __self__ is the file object of the bound readline()
        ctx.readline.__self__.close()
        ctx.include_path, ctx.readline = ctx.filestack.pop()

    def close_all(self) -> None:
        """
        Closes every file still open after parsing was aborted by an error.
        """
        ctx = self.ctx
        while ctx.filestack:
            if ctx.readline is not None:
                ctx.readline.__self__.close()
            ctx.include_path, ctx.readline = ctx.filestack.pop()


def srctree_prefix(srctree: str) -> str:
    # realpath() rather than relpath(), which mishandles symlink/../foo
    return os.path.realpath(srctree) + os.sep


def expand_env(s: str) -> str:
    """
    Expands old-style $FOO/${FOO} environment references in a string literal. References to unset variables are
    kept as they are.
    """
    return expandvars(s.replace("$UNAME_RELEASE", UNAME_RELEASE).replace("${userHome}", expanduser("~")))
