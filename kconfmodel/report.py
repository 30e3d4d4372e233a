# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Configuration report.

Warnings and notes produced while parsing and evaluating a configuration are printed right away (see
Kconfig._warn()/_info()), but also collected here, so tools can print them at the end as one report or export
them as JSON. Every Kconfig instance owns its own report.
"""
import json
import os
import textwrap
from abc import ABC
from abc import abstractmethod
from typing import TYPE_CHECKING
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

from rich import print as rprint
from rich.box import HORIZONTALS
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from .core import Kconfig

STATUS_OK = 1
STATUS_OK_WITH_INFO = 2
STATUS_WARNING = 3

_INDENT = " " * 4
VERBOSITY_QUIET = "quiet"  # Report only if there are warnings
VERBOSITY_DEFAULT = "default"  # Report standard information
VERBOSITY_VERBOSE = "verbose"  # Report everything every time

AREA_TITLE_STYLE = "bold blue"
INFO_STRING_STYLE = "italic"


class Area(ABC):
    """
    Base structure of every area in the report.

    title/info_string:
        Describe the area. The title is always printed with the area, the info string only in verbose mode.
    """

    def __init__(self, title: str, info_string: str) -> None:
        self.title = title
        self.info_string = info_string

    @abstractmethod
    def add_record(self, **kwargs) -> None:
        pass

    @abstractmethod
    def report_severity(self) -> int:
        """
        STATUS_OK if the area has nothing to report, otherwise how severe its records are.
        """
        pass

    @abstractmethod
    def rows(self) -> List[str]:
        pass

    def print(self, verbosity: str) -> Optional[Table]:
        rows = self.rows()
        if not rows:
            return None

        table = Table(title=self.title, title_justify="left", show_header=False, title_style=AREA_TITLE_STYLE)
        table.box = HORIZONTALS
        table.add_column("", justify="left", no_wrap=True)
        if verbosity == VERBOSITY_VERBOSE and self.info_string:
            table.add_row(self.info_string, style=INFO_STRING_STYLE)
        for row in rows:
            table.add_row(row)
        return table

    def return_json(self) -> dict:
        return {"title": self.title, "severity": self.severity_to_str(self.report_severity())}

    @staticmethod
    def severity_to_str(severity: int) -> str:
        if severity == STATUS_OK:
            return "OK"
        elif severity == STATUS_OK_WITH_INFO:
            return "Info"
        else:
            return "Warning"


class MultipleDefinitionArea(Area):
    """
    Symbols/choices with two or more definitions in different locations.
    """

    def __init__(self) -> None:
        super().__init__(
            title="Multiple Symbol/Choice Definitions",
            info_string=textwrap.dedent(
                """\
                Multiple definitions of the same symbol name are allowed by the Kconfig syntax.
                However, two unrelated Kconfig files may also define the same name by accident.
                Mark intentional cases with '# ignore: multiple-definition'.
                """
            ),
        )
        self.multiple_definitions: Dict[str, Set[str]] = dict()

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            name: str
            occurrences: Iterable[str]
        """
        self.multiple_definitions.setdefault(kwargs["name"], set()).update(kwargs.get("occurrences", ()))

    def report_severity(self) -> int:
        return STATUS_OK if not self.multiple_definitions else STATUS_OK_WITH_INFO

    def rows(self) -> List[str]:
        rows = []
        for name, occurrences in self.multiple_definitions.items():
            rows.append(name)
            rows.extend(_INDENT + occurrence.strip() for occurrence in sorted(occurrences))
        return rows

    def return_json(self) -> dict:
        ret_json = super().return_json()
        ret_json["data"] = {
            name: sorted(occurrence.strip() for occurrence in occurrences)
            for name, occurrences in self.multiple_definitions.items()
        }
        return ret_json


class WarningsArea(Area):
    """
    Warnings, in the order they were generated.
    """

    def __init__(self) -> None:
        super().__init__(
            title="Warnings",
            info_string="Problems in the Kconfig files or in the loaded configuration which were worked around.",
        )
        self.warnings: List[str] = []

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            message: str
        """
        self.warnings.append(str(kwargs["message"]))

    def report_severity(self) -> int:
        return STATUS_OK if not self.warnings else STATUS_WARNING

    def rows(self) -> List[str]:
        return [f"* {warning}" for warning in self.warnings]

    def return_json(self) -> dict:
        ret_json = super().return_json()
        ret_json["data"] = list(self.warnings)
        return ret_json


class MiscArea(Area):
    """
    All the messages not related to the other areas.
    """

    def __init__(self) -> None:
        super().__init__(title="Miscellaneous", info_string="")
        self.messages: List[str] = []

    def add_record(self, **kwargs) -> None:
        """
        kwargs:
            message: str
        """
        if "message" not in kwargs:
            raise AttributeError("Message must be specified for MiscArea.")
        message = str(kwargs["message"])
        if message not in self.messages:
            self.messages.append(message)

    def report_severity(self) -> int:
        return STATUS_OK if not self.messages else STATUS_OK_WITH_INFO

    def rows(self) -> List[str]:
        return [f"* {message}" for message in self.messages]

    def return_json(self) -> dict:
        ret_json = super().return_json()
        ret_json["data"] = list(self.messages)
        return ret_json


class KconfigReport:
    """
    Records are added with add_record(), naming the area class they belong to.
    """

    def __init__(self, kconfig: "Kconfig") -> None:
        self.kconfig = kconfig
        self.verbosity: str = os.getenv("KCONFIG_REPORT_VERBOSITY", VERBOSITY_DEFAULT)

        self.areas = (MultipleDefinitionArea(), WarningsArea(), MiscArea())
        self.area_to_instance: Dict[type, Area] = {area.__class__: area for area in self.areas}

    @property
    def status(self) -> int:
        return max(area.report_severity() for area in self.areas)

    def add_record(self, area: type, **kwargs) -> None:
        self.area_to_instance[area].add_record(**kwargs)

    def _make_header(self) -> Table:
        header_table = Table(title_style="bold", show_header=False)
        header_table.box = None
        header_table.add_column("Configuration", justify="left")
        header_table.add_row(f"Parser Version: {self.kconfig.parser_version}")
        header_table.add_row(f"Verbosity: {self.verbosity}")
        if self.verbosity == VERBOSITY_VERBOSE:
            header_table.add_row(f"Symbols parsed: {len(self.kconfig.unique_defined_syms)}")

        status = self.status
        if status == STATUS_OK:
            header_table.add_row("Status: Finished successfully", style="green")
        elif status == STATUS_OK_WITH_INFO:
            header_table.add_row("Status: Finished with notifications", style="green_yellow")
        else:
            header_table.add_row("Status: Finished with warnings", style="yellow")

        header_table.add_row("")
        return header_table

    def print_report(self, file: Optional[str] = None) -> None:
        if self.verbosity == VERBOSITY_QUIET and self.status < STATUS_WARNING:
            return

        report_table = Table(title="Configuration Report", title_style="bold", show_header=False, title_justify="left")
        report_table.box = HORIZONTALS
        report_table.add_column("Configuration", justify="center", no_wrap=False)
        report_table.add_row(self._make_header())

        for area in self.areas:
            sub_report = area.print(verbosity=self.verbosity)
            if sub_report:
                report_table.add_row(sub_report)

        if not file:
            console = Console(force_terminal=True, stderr=True)
            console.print(report_table)
        else:
            with open(file, "w") as f:
                rprint(report_table, file=f)

    def return_json(self) -> dict:
        report_json: Dict = dict()
        report_json["header"] = {
            "report_type": "kconfig",
            "parser_version": self.kconfig.parser_version,
            "verbosity": self.verbosity,
            "status": Area.severity_to_str(self.status),
            "unique_defined_syms": len(getattr(self.kconfig, "unique_defined_syms", ())),
        }
        # Areas with nothing to report are left out
        report_json["areas"] = [area.return_json() for area in self.areas if area.report_severity() != STATUS_OK]
        return report_json

    def output_json(self, file: Optional[str] = None) -> None:
        report_json = self.return_json()
        if not file:
            console = Console(force_terminal=True, stderr=True)
            console.print(json.dumps(report_json, indent=4))
        else:
            with open(file, "w+") as f:
                json.dump(report_json, f, indent=4)
