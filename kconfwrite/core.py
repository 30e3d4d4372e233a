#!/usr/bin/env python
#
# Command line tool to take in configuration files with project
# settings and output data in multiple formats (updated config,
# C header, minimal config, JSON values, JSON menu tree).
#
# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import argparse
import json
import os.path
import re
import sys
import tempfile
import textwrap
from typing import Any
from typing import Dict

from kconfmenu.tree import MenuTreeBuilder
from kconfmodel import __version__
from kconfmodel.config_file import min_config_contents
from kconfmodel.config_file import write_if_changed
from kconfmodel.constants import BOOL
from kconfmodel.constants import HEX
from kconfmodel.constants import INT
from kconfmodel.core import Kconfig
from kconfmodel.errors import KconfigError
from kconfmodel.menunode import MenuNode
from kconfmodel.symbol import Symbol


class FatalError(RuntimeError):
    """
    Class for runtime errors (not caused by bugs but by user input).
    """

    pass


def write_config(config: Kconfig, filename: str) -> None:
    CONFIG_HEADING = textwrap.dedent(
        """\
    #
    # Automatically generated file. DO NOT EDIT.
    # Project Configuration
    #
    """
    )
    config.write_config(filename, header=CONFIG_HEADING, save_old=False)


def write_min_config(config: Kconfig, filename: str) -> None:
    CONFIG_HEADING = textwrap.dedent(
        """\
    # This file was generated with kconfwrite savedefconfig. It can be edited manually.
    # Project Minimal Configuration
    #
    """
    )
    lines = min_config_contents(config, header=CONFIG_HEADING).splitlines()

    # convert `# CONFIG_XY is not set` to `CONFIG_XY=n` to improve readability
    unset_match = re.compile(r"# {}([^ ]+) is not set".format(config.config_prefix)).match
    for idx, line in enumerate(lines):
        match = unset_match(line)
        if match:
            lines[idx] = f"{config.config_prefix}{match.group(1)}=n"
    write_if_changed(config, filename, "\n".join(lines) + "\n")


def write_header(config: Kconfig, filename: str) -> None:
    CONFIG_HEADING = """/*
 * Automatically generated file. DO NOT EDIT.
 * Project Configuration Header
 */
#pragma once
"""
    config.write_autoconf(filename, header=CONFIG_HEADING)


def get_json_values(config: Kconfig) -> Dict[str, Any]:
    config_dict: Dict[str, Any] = {}

    def write_node(node: MenuNode) -> None:
        sym = node.item
        if not isinstance(sym, Symbol):
            return

        if sym.config_string:
            val: Any = sym.str_value
            if not val and sym.type in (INT, HEX):
                print(f"warning: {sym.name} has no value set in the configuration.", file=sys.stderr)
                val = None
            elif sym.type == BOOL:
                val = val != "n"
            elif sym.type == HEX:
                val = int(val, 16)
            elif sym.type == INT:
                val = int(val)
            config_dict[sym.name] = val

    for n in config.node_iter(False):
        write_node(n)
    return config_dict


def write_json(config: Kconfig, filename: str) -> None:
    config_dict = get_json_values(config)
    with open(filename, "w") as f:
        json.dump(config_dict, f, indent=4, sort_keys=True)


def write_json_menus(config: Kconfig, filename: str) -> None:
    menus = MenuTreeBuilder(config).build()
    with open(filename, "w") as f:
        json.dump([item.to_json() for item in menus], f, indent=4)


def update_if_changed(source: str, destination: str) -> None:
    with open(source, "r") as f:
        source_contents = f.read()

    if os.path.exists(destination):
        with open(destination, "r") as f:
            dest_contents = f.read()
        if source_contents == dest_contents:
            return  # nothing to update

    with open(destination, "w") as f:
        f.write(source_contents)


OUTPUT_FORMATS = {
    "config": write_config,
    "header": write_header,
    "savedefconfig": write_min_config,
    "json": write_json,
    "json_menus": write_json_menus,
}


def main():
    parser = argparse.ArgumentParser(
        description="kconfwrite v%s - Config Generation Tool" % __version__,
        prog=os.path.basename(sys.argv[0]),
    )

    parser.add_argument("--config", help="Project configuration settings", nargs="?", default=None)

    parser.add_argument(
        "--defaults",
        help="Optional project defaults file, used if --config file doesn't exist. "
        "Multiple files can be specified using multiple --defaults arguments.",
        nargs="?",
        default=[],
        action="append",
    )

    parser.add_argument("--kconfig", help="Kconfig file with config item definitions", required=True)

    parser.add_argument(
        "--output",
        nargs=2,
        action="append",
        help="Write output file (format and output filename)",
        metavar=("FORMAT", "FILENAME"),
        default=[],
    )

    parser.add_argument(
        "--env",
        action="append",
        default=[],
        help="Environment to set when evaluating the config file",
        metavar="NAME=VAL",
    )

    parser.add_argument(
        "--env-file",
        type=argparse.FileType("r"),
        help="Optional file to load environment variables from. Contents "
        "should be a JSON object where each key/value pair is a variable.",
    )

    parser.add_argument(
        "--report-json",
        help="Write the configuration report as JSON to the given file instead of printing it",
        default=None,
    )
    args = parser.parse_args()

    for fmt, filename in args.output:
        if fmt not in OUTPUT_FORMATS.keys():
            print("Format '%s' not recognised. Known formats: %s" % (fmt, ", ".join(OUTPUT_FORMATS.keys())))
            sys.exit(1)

    try:
        args.env = [(name, value) for (name, value) in (e.split("=", 1) for e in args.env)]
    except ValueError:
        print("--env arguments must each contain =. To unset an environment variable, use 'ENV='")
        sys.exit(1)

    for name, value in args.env:
        os.environ[name] = value

    if args.env_file is not None:
        env = json.load(args.env_file)
        os.environ.update(env)

    parser_version = int(os.environ.get("KCONFIG_PARSER_VERSION", "1"))
    try:
        config = Kconfig(args.kconfig, parser_version=parser_version)
    except (OSError, KconfigError) as e:
        raise FatalError(str(e).strip())
    config.warn_assign_redun = False
    config.warn_assign_override = False

    # always load defaults first, so any items which are not defined in the args.config
    # will have the default defined in the defaults file
    for name in args.defaults:
        print("Loading defaults file %s..." % name)
        if not os.path.exists(name):
            raise FatalError("Defaults file not found: %s" % name)
        config.load_config(name, replace=False)

        for symbol, value in config.missing_syms:
            print(f"warning: unknown kconfig symbol '{symbol}' assigned to '{value}' in {name}")

    # If previous config file exists, load it
    if args.config and os.path.exists(args.config):
        try:
            config.load_config(args.config, replace=False)
        except KconfigError as e:
            raise FatalError(str(e).strip())

    # Output the files specified in the arguments
    for output_type, filename in args.output:
        with tempfile.NamedTemporaryFile(prefix="kconfwrite_tmp", delete=False) as f:
            temp_file = f.name
        try:
            output_function = OUTPUT_FORMATS[output_type]
            output_function(config, temp_file)
            update_if_changed(temp_file, filename)
        finally:
            try:
                os.remove(temp_file)
            except OSError:
                pass

    if args.report_json:
        config.report.output_json(args.report_json)
    else:
        config.report.print_report()
