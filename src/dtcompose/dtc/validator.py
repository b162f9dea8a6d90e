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
Validation layer for device tree build configurations.

Checks run before any external tool is invoked, so a bad configuration fails
cheaply. Problems are collected in full and reported together.
"""

from typing import Iterable, List, Optional

from ..models import DtsSource, Overlay, PackageConfig, ValidationResult
from ..exceptions import ConfigError, InvalidOverlaySpecError


def find_invalid_overlays(overlays: Iterable[Overlay]) -> List[str]:
    """Return names of overlays lacking dts_file, dts_text and dtbo_file, in order."""
    return [o.name for o in overlays if not o.is_materializable]


def validate_overlays(overlays: Iterable[Overlay]) -> None:
    """
    Ensure every overlay can be materialized into a DTBO.

    Raises:
        InvalidOverlaySpecError: listing every offending overlay name
    """
    invalid = find_invalid_overlays(overlays)
    if invalid:
        raise InvalidOverlaySpecError(invalid)


class ConfigValidator:
    """Validator for complete package configurations."""

    def __init__(self, check_paths: bool = False):
        self.check_paths = check_paths
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self, config: PackageConfig) -> ValidationResult:
        """Collect every problem in the configuration without raising."""
        self.errors = []
        self.warnings = []

        invalid = find_invalid_overlays(config.overlays)
        for name in invalid:
            self.errors.append(
                f"Overlay '{name}' needs one of dts_file, dts_text or dtbo_file set"
            )

        if config.dts_source is not None:
            self._validate_dts_source(config.dts_source)
        elif self.check_paths and not config.dtb_source_dir.is_dir():
            self.errors.append(f"DTB source directory does not exist: {config.dtb_source_dir}")

        self._validate_overlays(config.overlays)

        if config.filter_ignored:
            self.warnings.append(
                f"filter '{config.filter}' is ignored because dts_source is set"
            )

        return ValidationResult(
            is_valid=not self.errors,
            errors=list(self.errors),
            warnings=list(self.warnings),
            invalid_overlays=invalid,
        )

    def _validate_dts_source(self, source: DtsSource):
        if not source.name:
            self.errors.append("dts_source name must not be empty")
        if source.dts_file is None and source.dts_text is None:
            self.errors.append(
                f"dts_source '{source.name}' needs one of dts_file or dts_text set"
            )
        self._check_file(source.dts_file, f"dts_source '{source.name}' dts_file")
        self._check_include_paths(source.flags.extra_include_paths, f"dts_source '{source.name}'")

    def _validate_overlays(self, overlays: Iterable[Overlay]):
        seen = set()
        for overlay in overlays:
            if not overlay.name:
                self.errors.append("Overlay name must not be empty")
            elif overlay.name in seen:
                self.warnings.append(f"Overlay name '{overlay.name}' is used more than once")
            seen.add(overlay.name)

            if overlay.dtbo_file is not None:
                self._check_file(overlay.dtbo_file, f"overlay '{overlay.name}' dtbo_file")
            else:
                self._check_file(overlay.dts_file, f"overlay '{overlay.name}' dts_file")
            self._check_include_paths(overlay.flags.extra_include_paths, f"overlay '{overlay.name}'")

    def _check_file(self, path, label: str):
        if self.check_paths and path is not None and not path.is_file():
            self.errors.append(f"{label} does not exist: {path}")

    def _check_include_paths(self, paths, label: str):
        if not self.check_paths:
            return
        for path in paths:
            if not path.is_dir():
                self.warnings.append(f"{label} include path does not exist: {path}")


def validate_config(config: PackageConfig, check_paths: bool = False,
                    validator: Optional[ConfigValidator] = None) -> ValidationResult:
    """
    Validate a configuration, raising on the first category of failure.

    Invalid overlays are reported with InvalidOverlaySpecError; any other
    problem is reported with ConfigError. Both list every offender.
    """
    validator = validator or ConfigValidator(check_paths=check_paths)
    result = validator.validate(config)

    if result.invalid_overlays:
        raise InvalidOverlaySpecError(result.invalid_overlays)
    if not result.is_valid:
        raise ConfigError("Invalid configuration:\n" + "\n".join(f"  {e}" for e in result.errors))
    return result
