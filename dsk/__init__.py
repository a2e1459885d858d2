# (C) 2025 Rodrigo Rodrigues da Silva <rodrigo@flowlexi.com>
# SPDX-License-Identifier: AGPL-3.0-or-later
__all__ = [
    "config", "log", "schemas", "client", "cli",
]
