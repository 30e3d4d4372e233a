# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
from .constants import BOOL  # noqa: F401
from .constants import COMMENT  # noqa: F401
from .constants import HEX  # noqa: F401
from .constants import INT  # noqa: F401
from .constants import MENU  # noqa: F401
from .constants import STRING  # noqa: F401
from .constants import TYPE_TO_STR  # noqa: F401
from .constants import UNKNOWN  # noqa: F401
from .core import Kconfig  # noqa: F401
from .core import standard_config_filename  # noqa: F401
from .core import standard_kconfig  # noqa: F401
from .errors import KconfigError  # noqa: F401
from .expr import And  # noqa: F401
from .expr import Not  # noqa: F401
from .expr import Or  # noqa: F401
from .expr import Relation  # noqa: F401
from .expr import expr_str  # noqa: F401
from .expr import expr_value  # noqa: F401
from .menunode import MenuNode  # noqa: F401
from .symbol import Choice  # noqa: F401
from .symbol import Symbol  # noqa: F401

__version__ = "1.0.0"
