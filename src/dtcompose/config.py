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
Configuration loading.

Reads a YAML build configuration into a PackageConfig. Relative paths are
resolved against the directory of the configuration file. Overlay entries may
be a bare path to a precompiled DTBO or a full overlay mapping.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import (
    BarePathOverlay, BuildFlags, DtsSource, KernelPackage, Overlay,
    OverlayEntry, PackageConfig, coerce_overlay,
)
from .exceptions import ConfigError
from .dtc.validator import validate_config


TOP_LEVEL_KEYS = {
    "enable", "kernel_package", "dts_source", "dtb_source", "name", "filter", "overlays",
}
REMOVED_KEYS = {
    "base": "Use kernel_package instead",
}
FLAG_KEYS = {"extra_preprocessor_flags", "extra_include_paths"}
DTS_SOURCE_KEYS = {"name", "dts_file", "dts_text"} | FLAG_KEYS
OVERLAY_KEYS = {"name", "filter", "dts_file", "dts_text", "dtbo_file"} | FLAG_KEYS
KERNEL_KEYS = {"path", "dev_path", "mod_dir_version"}


def _check_keys(data: Dict[str, Any], allowed, where: str):
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigError(f"Unknown option(s) in {where}: {', '.join(unknown)}")


def _expect(value, kind, where: str):
    if not isinstance(value, kind):
        raise ConfigError(f"{where} must be a {kind.__name__}, got {type(value).__name__}")
    return value


class ConfigLoader:
    """Builds PackageConfig values from parsed YAML data."""

    def __init__(self, base_dir=None):
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    def path(self, value, where: str) -> Optional[Path]:
        if value is None:
            return None
        path = Path(_expect(value, str, where)).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    def optional_str(self, value, where: str) -> Optional[str]:
        if value is None:
            return None
        return _expect(value, str, where)

    def flags(self, data: Dict[str, Any], where: str) -> BuildFlags:
        pp_flags = _expect(data.get("extra_preprocessor_flags") or [], list,
                           f"{where}.extra_preprocessor_flags")
        include_paths = _expect(data.get("extra_include_paths") or [], list,
                                f"{where}.extra_include_paths")
        return BuildFlags(
            extra_preprocessor_flags=tuple(
                _expect(f, str, f"{where}.extra_preprocessor_flags") for f in pp_flags
            ),
            extra_include_paths=tuple(
                self.path(p, f"{where}.extra_include_paths") for p in include_paths
            ),
        )

    def kernel_package(self, value) -> KernelPackage:
        if isinstance(value, str):
            return KernelPackage(path=self.path(value, "kernel_package"))

        data = _expect(value, dict, "kernel_package")
        _check_keys(data, KERNEL_KEYS, "kernel_package")
        if "path" not in data:
            raise ConfigError("kernel_package.path is required")

        version = data.get("mod_dir_version")
        return KernelPackage(
            path=self.path(data["path"], "kernel_package.path"),
            dev_path=self.path(data.get("dev_path"), "kernel_package.dev_path"),
            mod_dir_version=str(version) if version is not None else None,
        )

    def dts_source(self, value) -> Optional[DtsSource]:
        if value is None:
            return None

        data = _expect(value, dict, "dts_source")
        _check_keys(data, DTS_SOURCE_KEYS, "dts_source")
        if "name" not in data:
            raise ConfigError("dts_source.name is required")

        return DtsSource(
            name=_expect(data["name"], str, "dts_source.name"),
            dts_file=self.path(data.get("dts_file"), "dts_source.dts_file"),
            dts_text=self.optional_str(data.get("dts_text"), "dts_source.dts_text"),
            flags=self.flags(data, "dts_source"),
        )

    def overlay_entry(self, value, index: int) -> OverlayEntry:
        where = f"overlays[{index}]"
        if isinstance(value, str):
            return BarePathOverlay(path=self.path(value, where))

        data = _expect(value, dict, where)
        _check_keys(data, OVERLAY_KEYS, where)
        if "name" not in data:
            raise ConfigError(f"{where}.name is required")

        return Overlay(
            name=_expect(data["name"], str, f"{where}.name"),
            filter=self.optional_str(data.get("filter"), f"{where}.filter"),
            dts_file=self.path(data.get("dts_file"), f"{where}.dts_file"),
            dts_text=self.optional_str(data.get("dts_text"), f"{where}.dts_text"),
            dtbo_file=self.path(data.get("dtbo_file"), f"{where}.dtbo_file"),
            flags=self.flags(data, where),
        )

    def load(self, data: Dict[str, Any]) -> PackageConfig:
        """Convert a parsed configuration mapping into a PackageConfig."""
        data = _expect(data, dict, "configuration")

        for key, hint in REMOVED_KEYS.items():
            if key in data:
                raise ConfigError(f"The option '{key}' has been removed. {hint}")
        _check_keys(data, TOP_LEVEL_KEYS, "configuration")

        if "kernel_package" not in data:
            raise ConfigError("kernel_package is required")

        overlays = _expect(data.get("overlays") or [], list, "overlays")

        return PackageConfig(
            enabled=_expect(data.get("enable", True), bool, "enable"),
            kernel_package=self.kernel_package(data["kernel_package"]),
            dts_source=self.dts_source(data.get("dts_source")),
            dtb_source=self.path(data.get("dtb_source"), "dtb_source"),
            explicit_name=self.optional_str(data.get("name"), "name"),
            filter=self.optional_str(data.get("filter"), "filter"),
            overlays=tuple(
                coerce_overlay(self.overlay_entry(entry, i)) for i, entry in enumerate(overlays)
            ),
        )


def read_config(config_path) -> PackageConfig:
    """Parse a YAML configuration file without validating it."""
    config_path = Path(config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        raise ConfigError(f"Configuration {config_path} is empty")

    return ConfigLoader(config_path.parent).load(data)


def load_config(config_path, check_paths: bool = False) -> PackageConfig:
    """
    Load and validate a YAML configuration file.

    Validation is skipped for disabled configurations.

    Args:
        config_path: Path to the YAML file
        check_paths: Also require referenced input files to exist

    Raises:
        ConfigError: If the file cannot be read or is malformed
        InvalidOverlaySpecError: If any overlay cannot produce a DTBO
    """
    config = read_config(config_path)
    if config.enabled:
        validate_config(config, check_paths=check_paths)
    return config
