# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""genro-rdb: metadata-driven async SQL operator engine."""

from .config import RdbConfig, config_from_env
from .errors import (
    BatchInsertError,
    CompileError,
    ExecutionError,
    MappingError,
    MetadataError,
    RdbError,
    UnsupportedTypeError,
)
from .operator import DatabaseOperator

__version__ = "0.1.0"

__all__ = [
    "DatabaseOperator",
    "RdbConfig",
    "config_from_env",
    "RdbError",
    "MetadataError",
    "UnsupportedTypeError",
    "CompileError",
    "ExecutionError",
    "BatchInsertError",
    "MappingError",
]
