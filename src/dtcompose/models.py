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
Data models for device tree build configuration.

Every model is immutable: a configuration is declared once and then handed to
the composition pipeline as a plain value.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .exceptions import ConfigError


KERNEL_INCLUDE_PREFIXES = Path("source") / "scripts" / "dtc" / "include-prefixes"


@dataclass(frozen=True)
class BuildFlags:
    """Preprocessor settings shared by DTS sources and overlays."""
    extra_preprocessor_flags: Tuple[str, ...] = ()
    extra_include_paths: Tuple[Path, ...] = ()


@dataclass(frozen=True)
class DtsSource:
    """
    A device tree source compiled into the base DTB.

    When both dts_file and dts_text are set, dts_file wins.
    """
    name: str
    dts_file: Optional[Path] = None
    dts_text: Optional[str] = None
    flags: BuildFlags = field(default_factory=BuildFlags)

    @property
    def dtb_name(self) -> str:
        return f"{self.name}.dtb"


@dataclass(frozen=True)
class Overlay:
    """A named overlay applied to every base DTB matching its filter."""
    name: str
    filter: Optional[str] = None
    dts_file: Optional[Path] = None
    dts_text: Optional[str] = None
    dtbo_file: Optional[Path] = None
    flags: BuildFlags = field(default_factory=BuildFlags)

    @property
    def is_materializable(self) -> bool:
        """True when a DTBO can be produced from this overlay."""
        return not (self.dts_file is None and self.dts_text is None and self.dtbo_file is None)

    @property
    def dtbo_name(self) -> str:
        return f"{self.name}-dtbo"


@dataclass(frozen=True)
class BarePathOverlay:
    """Shorthand overlay entry: just the path of a precompiled DTBO."""
    path: Path


OverlayEntry = Union[BarePathOverlay, Overlay]


def coerce_overlay(entry: OverlayEntry) -> Overlay:
    """
    Normalize an overlay entry into its canonical Overlay form.

    A bare path becomes an overlay named after the file, without filter,
    using the path as its precompiled DTBO.
    """
    if isinstance(entry, Overlay):
        return entry
    if isinstance(entry, BarePathOverlay):
        path = Path(entry.path)
        return Overlay(name=path.name, filter=None, dtbo_file=path)
    raise TypeError(f"Unsupported overlay entry: {entry!r}")


@dataclass(frozen=True)
class KernelPackage:
    """Kernel build output providing the dtc include prefixes and bundled dtbs."""
    path: Path
    dev_path: Optional[Path] = None
    mod_dir_version: Optional[str] = None

    @property
    def dev(self) -> Path:
        return self.dev_path if self.dev_path is not None else self.path

    @property
    def dtbs_dir(self) -> Path:
        return self.path / "dtbs"

    def resolve_mod_dir_version(self) -> str:
        """Return the module directory version, discovering it if unset."""
        if self.mod_dir_version:
            return self.mod_dir_version

        modules_dir = self.dev / "lib" / "modules"
        try:
            candidates = sorted(p.name for p in modules_dir.iterdir() if p.is_dir())
        except OSError as e:
            raise ConfigError(f"Cannot read kernel modules directory {modules_dir}: {e}")

        if len(candidates) != 1:
            raise ConfigError(
                f"Cannot determine kernel module version under {modules_dir} "
                f"(found: {', '.join(candidates) or 'none'}); set mod_dir_version explicitly"
            )
        return candidates[0]

    @property
    def include_prefix_dir(self) -> Path:
        return self.dev / "lib" / "modules" / self.resolve_mod_dir_version() / KERNEL_INCLUDE_PREFIXES


@dataclass(frozen=True)
class Toolchain:
    """External binaries used to compile device tree sources."""
    cc: str = "cc"
    dtc: str = "dtc"

    @classmethod
    def from_env(cls) -> "Toolchain":
        return cls(cc=os.environ.get("CC", "cc"), dtc=os.environ.get("DTC", "dtc"))


@dataclass(frozen=True)
class PackageConfig:
    """Top-level device tree build configuration."""
    kernel_package: KernelPackage
    enabled: bool = True
    dts_source: Optional[DtsSource] = None
    dtb_source: Optional[Path] = None
    explicit_name: Optional[str] = None
    filter: Optional[str] = None
    overlays: Tuple[Overlay, ...] = ()

    @property
    def dtb_source_dir(self) -> Path:
        """Pre-built DTB directory, defaulting to the kernel's bundled dtbs."""
        if self.dtb_source is not None:
            return self.dtb_source
        return self.kernel_package.dtbs_dir

    @property
    def filter_ignored(self) -> bool:
        """The filter only applies to pre-built DTBs, never to a compiled dts_source."""
        return self.dts_source is not None and self.filter is not None


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a successful composition."""
    package: Path
    base: Path
    overlays: Tuple[Overlay, ...] = ()
    explicit_name: Optional[str] = None

    @property
    def dtb_path(self) -> Optional[Path]:
        if self.explicit_name is None:
            return None
        return self.package / self.explicit_name


@dataclass
class ValidationResult:
    """Result of validation process."""
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    invalid_overlays: List[str] = field(default_factory=list)
