# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
from .session import MenuSession  # noqa: F401
from .tree import MenuItem  # noqa: F401
from .tree import MenuTreeBuilder  # noqa: F401
