"""
schemahub - version

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

__version__ = "0.1.0"
