#!/usr/bin/env python
# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
#
# Long-running menu server. Uses stdin & stdout to communicate JSON
# with a menu interface.
#
import argparse
import json
import os
import sys
from json import JSONDecodeError
from typing import Any
from typing import Dict
from typing import List

from kconfmodel import __version__
from kconfmodel.errors import KconfigError

from .session import MenuSession

# Min/Max supported protocol versions
MIN_PROTOCOL_VERSION = 1
MAX_PROTOCOL_VERSION = 1


class FatalError(RuntimeError):
    """
    Class for runtime errors (not caused by bugs but by user input).
    """

    pass


def main():
    parser = argparse.ArgumentParser(
        description="kconfmenu v%s - Kconfig menu server" % __version__,
        prog=os.path.basename(sys.argv[0]),
    )

    parser.add_argument("--kconfig", help="Kconfig file with config item definitions", required=True)

    parser.add_argument(
        "--config",
        help="Configuration file to load and save (default: $KCONFIG_CONFIG or .config)",
        default=None,
    )

    parser.add_argument(
        "--show-all",
        help="Show invisible items too",
        action="store_true",
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
        "--version",
        help="Set protocol version to use on initial status",
        type=int,
        default=MAX_PROTOCOL_VERSION,
    )

    args = parser.parse_args()

    if args.version < MIN_PROTOCOL_VERSION or args.version > MAX_PROTOCOL_VERSION:
        print(
            "Version %d is not supported. Supported protocol versions are %d-%d."
            % (args.version, MIN_PROTOCOL_VERSION, MAX_PROTOCOL_VERSION),
            file=sys.stderr,
        )
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

    try:
        session = MenuSession(args.kconfig, args.config, show_all=args.show_all)
    except (OSError, KconfigError) as e:
        raise FatalError(f"Failed to parse {args.kconfig}: {str(e).strip()}")

    run_server(session, args.version)


def menus_json(session: MenuSession) -> List[Dict[str, Any]]:
    return [item.to_json() for item in session.build_menu_tree()]


def send(response: Dict[str, Any]) -> None:
    json.dump(response, sys.stdout)
    print("\n")
    sys.stdout.flush()


def run_server(session: MenuSession, default_version: int = MAX_PROTOCOL_VERSION) -> None:
    message = session.load_config()
    print(message, file=sys.stderr)

    print("Server running, waiting for requests on stdin...", file=sys.stderr)

    send(
        {
            "version": default_version,
            "menus": menus_json(session),
            "has_changed": session.needs_save(),
            "warnings": list(session.warnings),
        }
    )

    while True:
        line = sys.stdin.readline()
        if not line:
            break
        if not line.strip():
            continue

        try:
            req = json.loads(line)
        except JSONDecodeError as e:
            send({"version": default_version, "error": [f"JSON formatting error: {e}"]})
            continue

        if not isinstance(req, dict):
            send({"version": default_version, "error": ["Requests must be JSON objects"]})
            continue

        warnings_before = len(session.warnings)
        response: Dict[str, Any] = {"version": req.get("version", default_version)}
        error = handle_request(session, req, response)

        response["menus"] = menus_json(session)
        response["has_changed"] = session.needs_save()
        response["warnings"] = session.warnings[warnings_before:]

        if error:
            for err in error:
                print(f"Error: {err}", file=sys.stderr)
            response["error"] = error
        send(response)


def handle_request(session: MenuSession, req: Dict[str, Any], response: Dict[str, Any]) -> List[str]:
    """
    Handles the 'show_all', 'load', 'set' and 'save' keys of a request, in this order. Results go to 'response';
    errors are returned.
    """
    if "version" not in req:
        return ["All requests must have a 'version'"]

    if req["version"] < MIN_PROTOCOL_VERSION or req["version"] > MAX_PROTOCOL_VERSION:
        return [
            "Unsupported request version %d. Server supports versions %d-%d"
            % (req["version"], MIN_PROTOCOL_VERSION, MAX_PROTOCOL_VERSION)
        ]

    error: List[str] = []

    if "show_all" in req:
        session.show_all = bool(req["show_all"])

    if "load" in req:
        # null reloads the current file
        if req["load"] is not None:
            session.config_filename = req["load"]
        print("Loading config from %s..." % (session.config_filename or "default location"), file=sys.stderr)
        response["message"] = session.load_config()

    if "set" in req:
        handle_set(session, error, req["set"], response)

    if "save" in req:
        if req["save"] is not None:
            session.config_filename = req["save"]
        try:
            response["message"] = session.write_config()
        except OSError as e:
            error.append(f"Failed to save: {e}")

    return error


def handle_set(session: MenuSession, error: List[str], to_set: Dict[str, Any], response: Dict[str, Any]) -> None:
    """
    'to_set' maps item IDs (as sent in the menu tree) to new values. Items are changed in the given order, as a
    change can make further items visible.
    """
    if not isinstance(to_set, dict):
        error.append("'set' must map item IDs to values")
        return

    results: Dict[str, bool] = {}
    for node_id, value in to_set.items():
        try:
            result = session.change_symbol_value(int(node_id), value)
        except ValueError:
            error.append(f"Invalid item ID {node_id}")
            continue
        if not result:
            error.append(f"Item {node_id} could not be set to {value!r}")
        results[node_id] = result

    response["result"] = results
