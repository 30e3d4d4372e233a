# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
from typing import NoReturn
from typing import Optional


class KconfigError(Exception):
    """
    Exception raised for fatal Kconfig-related errors: syntax errors in Kconfig files,
    dependency loops, malformed defaults and recursive 'source' statements.

    Recoverable problems never raise; they are collected in Kconfig.warnings instead.
    """

    pass


class _KconfigIOError(IOError):
    """
    OSError with a user-friendly message. errno, strerror and filename are kept from the original error.
    """

    def __init__(self, ioerror: OSError, msg: str) -> None:
        self.msg = msg
        super().__init__(ioerror.errno, ioerror.strerror, ioerror.filename)

    def __str__(self) -> str:
        return self.msg


def _decoding_error(e: UnicodeDecodeError, filename: Optional[str], macro_linenr: Optional[int] = None) -> NoReturn:
    raise KconfigError(
        "\nMalformed {} in {}\nContext: {}\nProblematic data: {}\nReason: {}".format(
            e.encoding,
            f"'{filename}'" if macro_linenr is None else f"output from macro at {filename}:{macro_linenr}",
            e.object[max(e.start - 40, 0) : e.end + 40],
            e.object[e.start : e.end],
            e.reason,
        )
    )
