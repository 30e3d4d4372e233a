# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Reading and writing of configuration files: .config, minimal configurations (savedefconfig format)
and C headers.
"""
import errno
import os
import shutil
from os.path import exists
from os.path import islink
from os.path import join
from typing import IO
from typing import TYPE_CHECKING
from typing import Optional

from .constants import BOOL
from .constants import BOOL_TO_STR
from .constants import COMMENT
from .constants import HEX
from .constants import INT_HEX
from .constants import MENU
from .constants import STRING
from .constants import TYPE_TO_STR
from .constants import conf_string_match
from .errors import _decoding_error
from .errors import _KconfigIOError
from .expr import escape
from .expr import expr_value
from .expr import unescape
from .symbol import Symbol

if TYPE_CHECKING:
    from .core import Kconfig


def standard_config_filename() -> str:
    """
    The value of KCONFIG_CONFIG if it is set, ".config" otherwise.
    """
    return os.getenv("KCONFIG_CONFIG", ".config")


def open_config(kconfig: "Kconfig", filename: str) -> IO[str]:
    """
    Opens a configuration file, trying 'filename' first and '$srctree/filename' second.
    """
    try:
        return open(filename, "r", encoding=kconfig._encoding)
    except OSError:
        try:
            return open(join(kconfig.srctree, filename), "r", encoding=kconfig._encoding)
        except OSError as e:
            env_var_value = f"set to '{kconfig.srctree}'" if kconfig.srctree else "unset or blank"
            raise _KconfigIOError(
                e,
                f"Could not open '{filename}' ({errno.errorcode[e.errno]}: {e.strerror}). Check that the $srctree "
                f"environment variable ({env_var_value}) is set correctly.",
            )


def defconfig_filename(kconfig: "Kconfig") -> Optional[str]:
    """
    The first existing file among the active defaults of the defconfig_list symbol, or None.
    """
    if kconfig.defconfig_list:
        for filename, cond in kconfig.defconfig_list.defaults:
            if expr_value(cond):
                try:
                    with open_config(kconfig, filename.str_value) as f:
                        return f.name
                except OSError:
                    continue

    return None


def load_config(kconfig: "Kconfig", filename: Optional[str] = None, replace: bool = True) -> str:
    """
    Loads symbol values from a file in the .config format, as if Symbol.set_value() was called for each
    assignment. "# CONFIG_FOO is not set" sets FOO to n.

    With no filename, KCONFIG_CONFIG (or .config) is loaded, falling back to the defconfig_list file, falling
    back to loading nothing. With replace=False, the file is merged into the current user values.

    Returns a message telling what was loaded.
    """
    msg = None
    if filename is None:
        filename = standard_config_filename()
        if not exists(filename) and not exists(join(kconfig.srctree, filename)):
            defconfig = defconfig_filename(kconfig)
            if defconfig is None:
                return f"Using default symbol values (no '{filename}')"

            msg = f" default configuration '{defconfig}' (no '{filename}')"
            filename = defconfig

    if not msg:
        msg = f" configuration '{filename}'"

    # Assignments to promptless symbols are normal in .config files
    kconfig._warn_assign_no_prompt = False
    try:
        _load_config(kconfig, filename, replace)
    except UnicodeDecodeError as e:
        _decoding_error(e, filename)
    finally:
        kconfig._warn_assign_no_prompt = True

    return ("Loaded" if replace else "Merged") + msg


def _load_config(kconfig: "Kconfig", filename: str, replace: bool) -> None:
    with open_config(kconfig, filename) as f:
        if replace:
            kconfig.missing_syms = []

            # Items not set by the file are unset afterwards, which avoids invalidating everything
            for sym in kconfig.unique_defined_syms:
                sym._was_set = False

            for choice in kconfig.unique_choices:
                choice._was_set = False

        set_match = kconfig._set_match
        unset_match = kconfig._unset_match
        get_sym = kconfig.syms.get

        for linenr, line in enumerate(f, 1):
            # Trailing whitespace is ignored
            line = line.rstrip()

            match = set_match(line)
            if match:
                name, val = match.groups()
                sym = get_sym(name)
                if not sym or not sym.nodes:
                    _undef_assign(kconfig, name, val, filename, linenr)
                    continue

                if sym.orig_type == BOOL:
                    # Only the first character after '=' matters
                    if not val.startswith(("y", "n")):
                        kconfig._warn(
                            f"'{val}' is not a valid value for the {TYPE_TO_STR[sym.orig_type]} symbol "
                            f"{sym.name_and_loc}. Assignment ignored.",
                            filename,
                            linenr,
                        )
                        continue

                    val = val[0]

                    if sym.choice and val != "n":
                        # The mode of the choice follows the values assigned to its symbols
                        prev_mode = sym.choice._user_value
                        if prev_mode is not None and BOOL_TO_STR[prev_mode] != val:
                            kconfig._warn(
                                "conflicting values assigned to symbols within the same choice", filename, linenr
                            )

                        sym.choice.set_value(val)

                elif sym.orig_type == STRING:
                    match = conf_string_match(val)
                    if not match:
                        kconfig._warn(
                            f"malformed string literal in assignment to {sym.name_and_loc}. Assignment ignored.",
                            filename,
                            linenr,
                        )
                        continue

                    val = unescape(match.group(1))

            else:
                match = unset_match(line)
                if not match:
                    # Blank lines and comments are fine
                    if line and not line.lstrip().startswith("#"):
                        kconfig._warn(f"ignoring malformed line '{line}'", filename, linenr)

                    continue

                name = match.group(1)
                sym = get_sym(name)
                if not sym or not sym.nodes:
                    _undef_assign(kconfig, name, "n", filename, linenr)
                    continue

                if sym.orig_type != BOOL:
                    continue

                val = "n"

            if sym._was_set:
                _assigned_twice(kconfig, sym, val, filename, linenr)

            sym.set_value(val)

    if replace:
        for sym in kconfig.unique_defined_syms:
            if not sym._was_set:
                sym.unset_value()

        for choice in kconfig.unique_choices:
            if not choice._was_set:
                choice.unset_value()


def _undef_assign(kconfig: "Kconfig", name: str, val: str, filename: str, linenr: int) -> None:
    kconfig.missing_syms.append((name, val))
    if kconfig.warn_assign_undef:
        kconfig._warn(f"attempt to assign the value '{val}' to the undefined symbol {name}", filename, linenr)


def _assigned_twice(kconfig: "Kconfig", sym: Symbol, new_val: str, filename: str, linenr: int) -> None:
    user_val = BOOL_TO_STR[sym._user_value] if sym.orig_type == BOOL else sym._user_value

    msg = f'{sym.name_and_loc} set more than once. Old value "{user_val}", new value "{new_val}".'

    if user_val == new_val:
        if kconfig.warn_assign_redun:
            kconfig._warn(msg, filename, linenr)
    elif kconfig.warn_assign_override:
        kconfig._warn(msg, filename, linenr)


def write_autoconf(kconfig: "Kconfig", filename: Optional[str] = None, header: Optional[str] = None) -> str:
    """
    Writes the symbol values as a C header. The file is left untouched if its contents would not change.
    """
    if filename is None:
        filename = os.getenv("KCONFIG_AUTOHEADER", "include/generated/autoconf.h")

    if write_if_changed(kconfig, filename, autoconf_contents(kconfig, header)):
        return f"Kconfig header saved to '{filename}'"
    return f"No change to Kconfig header in '{filename}'"


def autoconf_contents(kconfig: "Kconfig", header: Optional[str] = None) -> str:
    if header is None:
        header = kconfig.header_header

    chunks = [header]
    add = chunks.append
    prefix = kconfig.config_prefix

    for sym in kconfig.unique_defined_syms:
        # _write_to_conf is set as a side effect of calculating the value
        val = sym.str_value
        if not sym._write_to_conf:
            continue

        if sym.orig_type == BOOL and val == "y":
            add(f"#define {prefix}{sym.name} 1\n")

        elif sym.orig_type == STRING:
            add(f'#define {prefix}{sym.name} "{escape(val)}"\n')

        elif sym.orig_type in INT_HEX:
            if sym.orig_type == HEX and not val.startswith(("0x", "0X")):
                val = "0x" + val
            add(f"#define {prefix}{sym.name} {val}\n")

    return "".join(chunks)


def write_config(
    kconfig: "Kconfig", filename: Optional[str] = None, header: Optional[str] = None, save_old: bool = True
) -> str:
    """
    Writes the symbol values in the .config format, in Kconfig order. A symbol defined in several places is
    written once, at its first location. With save_old, an existing file is kept as <filename>.old.
    """
    if filename is None:
        filename = standard_config_filename()

    contents = config_contents(kconfig, header)
    if contents_eq(kconfig, filename, contents):
        return f"No change to configuration in '{filename}'"

    if save_old:
        _save_old(filename)

    with open(filename, "w", encoding=kconfig._encoding) as f:
        f.write(contents)

    return f"Configuration saved to '{filename}'"


def config_contents(kconfig: "Kconfig", header: Optional[str] = None) -> str:
    for sym in kconfig.unique_defined_syms:
        sym._visited = False

    if header is None:
        header = kconfig.config_header

    chunks = [header]
    add = chunks.append

    # Set right after an '# end of ...' comment
    after_end_comment = False

    node = kconfig.top_node
    while True:
        if node.list:
            node = node.list
        elif node.next:
            node = node.next
        else:
            while node.parent:
                node = node.parent

                # Comment when leaving a visible menu
                if (
                    node.item == MENU
                    and expr_value(node.dep)
                    and expr_value(node.visibility)
                    and node is not kconfig.top_node
                ):
                    add(f"# end of {node.prompt[0]}\n")
                    after_end_comment = True

                if node.next:
                    node = node.next
                    break
            else:
                return "".join(chunks)

        item = node.item

        if item.__class__ is Symbol:
            if item._visited:
                continue
            item._visited = True

            conf_string = item.config_string
            if not conf_string:
                continue

            if after_end_comment:
                after_end_comment = False
                add("\n")
            add(conf_string)

        elif expr_value(node.dep) and ((item == MENU and expr_value(node.visibility)) or item == COMMENT):
            add(f"\n#\n# {node.prompt[0]}\n#\n")
            after_end_comment = False


def write_min_config(kconfig: "Kconfig", filename: str, header: Optional[str] = None) -> str:
    """
    Writes a minimal configuration: only the symbols whose value differs from their default.
    Loading it gives back the full configuration.
    """
    if write_if_changed(kconfig, filename, min_config_contents(kconfig, header)):
        return f"Minimal configuration saved to '{filename}'"
    return f"No change to minimal configuration in '{filename}'"


def min_config_contents(kconfig: "Kconfig", header: Optional[str] = None) -> str:
    if header is None:
        header = kconfig.config_header

    chunks = [header]
    add = chunks.append

    for sym in kconfig.unique_defined_syms:
        # Symbols the user cannot change. Selects do not affect choice symbols.
        if not sym.choice and sym.visibility <= expr_value(sym.rev_dep):
            continue

        if sym.str_value == sym._str_default():
            continue

        if (
            sym.choice
            and sym.choice._selection_from_defaults() is sym
            and sym.orig_type == BOOL
            and sym.bool_value == 2
        ):
            continue

        add(sym.config_string)

    return "".join(chunks)


def write_if_changed(kconfig: "Kconfig", filename: str, contents: str) -> bool:
    """
    Writes 'contents' to 'filename' unless the file already holds it. Returns True if the file was written.
    """
    if contents_eq(kconfig, filename, contents):
        return False
    with open(filename, "w", encoding=kconfig._encoding) as f:
        f.write(contents)
    return True


def contents_eq(kconfig: "Kconfig", filename: str, contents: str) -> bool:
    # False if the file cannot be read; writing it will report the real problem
    try:
        with open(filename, "r", encoding=kconfig._encoding) as f:
            return f.read(len(contents) + 1) == contents
    except OSError:
        return False


def _save_old(path: str) -> None:
    # Symlinks are copied to keep the link itself intact
    copy_fn = shutil.copyfile if islink(path) else os.replace

    try:
        copy_fn(path, path + ".old")
    except OSError:
        # A missing file, a directory named <path>.old, /dev/null and such just mean no .old file
        pass
