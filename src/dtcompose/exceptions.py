# Copyright 2025 Multikernel Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Exception classes for dtcompose configuration, compilation and overlay errors.
"""

from typing import Iterable


class DtcomposeError(Exception):
    """Base exception for all dtcompose errors."""


class ConfigError(DtcomposeError):
    """Raised when a build configuration is malformed or incomplete."""


class ValidationError(DtcomposeError):
    """Raised when validation fails."""


class InvalidOverlaySpecError(ValidationError):
    """Raised when one or more overlays have no way to produce a DTBO."""

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            "deviceTree overlay needs one of dts_file, dts_text or dtbo_file set.\n"
            "Offending overlay(s):\n"
            + " ".join(self.names)
        )


class CompileError(DtcomposeError):
    """Raised when the preprocessor or dtc rejects a DTS source."""

    def __init__(self, name: str, message: str, stderr: str = ""):
        self.name = name
        self.stderr = stderr
        detail = f"Failed to compile '{name}': {message}"
        if stderr:
            detail += f"\n{stderr.rstrip()}"
        super().__init__(detail)


class ApplyError(DtcomposeError):
    """Raised when an overlay cannot be applied to a base DTB."""
