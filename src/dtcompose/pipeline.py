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
Overlay composition pipeline.

This module turns a PackageConfig into the final directory of DTBs handed to
the bootloader. Stages run strictly in order:

1. Validate: every overlay must have a way to produce a DTBO
2. Resolve: compile dts_source, or select (and filter) the pre-built DTBs
3. Normalize: compile overlays that have no precompiled DTBO
4. Apply: apply overlays in order, unless there are none

Each stage writes into its own directory under the output root. Stage
directories are recreated on every run so identical inputs give identical
outputs.
"""

import dataclasses
import fnmatch
import logging
import shutil
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .models import BuildResult, Overlay, PackageConfig, Toolchain
from .exceptions import ConfigError
from .dtc.compiler import DtbCompiler
from .dtc.overlay import OverlayApplier
from .dtc.validator import validate_overlays

logger = logging.getLogger(__name__)

COMPILED_DIR = "compiled"
FILTERED_DIR = "dtbs-filtered"
OVERLAID_DIR = "dtbs-overlaid"


def fresh_dir(path: Path) -> Path:
    """Create an empty directory, discarding any previous contents."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def filter_dtbs(source: Path, pattern: str, output_dir: Path) -> Path:
    """
    Copy files under source whose name matches pattern, keeping relative paths.

    Args:
        source: Directory searched recursively
        pattern: Glob matched against file names
        output_dir: Destination directory, recreated

    Returns:
        The output directory
    """
    fresh_dir(output_dir)
    for path in sorted(source.rglob("*")):
        if not path.is_file() or not fnmatch.fnmatch(path.name, pattern):
            continue
        target = output_dir / path.relative_to(source)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(path, target)
        logger.debug("Selected %s", path.relative_to(source))
    return output_dir


class SourceResolver:
    """Produces the base DTB directory overlays are applied to."""

    def __init__(self, compiler: DtbCompiler, output_dir):
        self.compiler = compiler
        self.output_dir = Path(output_dir)

    def resolve(self, config: PackageConfig) -> Path:
        """
        Return the base DTB directory for config.

        A dts_source is compiled into `<name>-dtb-dir/<name>.dtb`; the filter
        option only applies to pre-built DTBs and is ignored in that case.
        """
        source = config.dts_source
        if source is not None:
            if config.filter is not None:
                logger.debug("Ignoring filter %s: dts_source %s is set", config.filter, source.name)

            dtb = self.compiler.compile(
                source.dtb_name,
                dts_file=source.dts_file,
                dts_text=source.dts_text if source.dts_file is None else None,
                flags=source.flags,
            )
            dtb_dir = fresh_dir(self.output_dir / f"{source.name}-dtb-dir")
            shutil.copyfile(dtb, dtb_dir / source.dtb_name)
            logger.info("Compiled base device tree %s", source.dtb_name)
            return dtb_dir

        dtb_source = config.dtb_source_dir
        if not dtb_source.is_dir():
            raise ConfigError(f"DTB source directory does not exist: {dtb_source}")

        if config.filter is None:
            return dtb_source

        logger.info("Filtering %s with %s", dtb_source, config.filter)
        return filter_dtbs(dtb_source, config.filter, self.output_dir / FILTERED_DIR)


class OverlayNormalizer:
    """Makes sure every overlay carries a compiled DTBO."""

    def __init__(self, compiler: DtbCompiler):
        self.compiler = compiler

    def normalize(self, overlays: Sequence[Overlay]) -> Tuple[Overlay, ...]:
        """
        Fill in dtbo_file for each overlay, preserving order.

        Overlays that already have a dtbo_file are returned unchanged. Invalid
        overlays are rejected before anything is compiled. Compiled blobs are
        stored as `<index>-<name>-dtbo` so overlays sharing a name keep
        distinct files.
        """
        validate_overlays(overlays)
        return tuple(self._materialize(i, o) for i, o in enumerate(overlays))

    def _materialize(self, index: int, overlay: Overlay) -> Overlay:
        if overlay.dtbo_file is not None:
            return overlay

        compiled = self.compiler.compile(
            overlay.dtbo_name,
            dts_file=overlay.dts_file,
            dts_text=overlay.dts_text if overlay.dts_file is None else None,
            flags=overlay.flags,
        )
        dtbo = compiled.replace(compiled.with_name(f"{index}-{compiled.name}"))
        logger.info("Compiled overlay %s", overlay.name)
        return dataclasses.replace(overlay, dtbo_file=dtbo)


class CompositionDriver:
    """
    Builds the final DTB package for a configuration.

    Attributes:
        output_dir: Root directory for every stage output
        compiler: Compiler adapter used for dts_source and overlays
        applier: Overlay applier invoked when overlays are configured
    """

    def __init__(self, output_dir, compiler: Optional[DtbCompiler] = None,
                 applier: Optional[OverlayApplier] = None,
                 toolchain: Optional[Toolchain] = None):
        self.output_dir = Path(output_dir)
        self.compiler = compiler
        self.applier = applier or OverlayApplier()
        self.toolchain = toolchain

    def _compiler_for(self, config: PackageConfig) -> DtbCompiler:
        if self.compiler is not None:
            return self.compiler
        return DtbCompiler(config.kernel_package, self.output_dir / COMPILED_DIR, self.toolchain)

    def build(self, config: PackageConfig) -> Optional[BuildResult]:
        """
        Run the pipeline for config.

        Returns:
            BuildResult describing the package, or None when the
            configuration is disabled

        Raises:
            InvalidOverlaySpecError: If any overlay cannot produce a DTBO
            ConfigError: If the DTB source directory is missing
            CompileError: If a source fails to compile
            ApplyError: If an overlay fails to apply
        """
        if not config.enabled:
            logger.info("Device tree build disabled")
            return None

        validate_overlays(config.overlays)

        compiler = self._compiler_for(config)
        base = SourceResolver(compiler, self.output_dir).resolve(config)
        overlays = OverlayNormalizer(compiler).normalize(config.overlays)

        if overlays:
            logger.info("Applying %d overlay(s) to %s", len(overlays), base)
            package = self.applier.apply(base, list(overlays), self.output_dir / OVERLAID_DIR)
        else:
            package = base

        if config.explicit_name is not None and not (package / config.explicit_name).exists():
            logger.warning("Explicit dtb %s not found in %s", config.explicit_name, package)

        return BuildResult(
            package=package,
            base=base,
            overlays=overlays,
            explicit_name=config.explicit_name,
        )


def build_package(config: PackageConfig, output_dir, toolchain: Optional[Toolchain] = None) -> Optional[BuildResult]:
    """Build config into output_dir with the default compiler and applier."""
    return CompositionDriver(output_dir, toolchain=toolchain).build(config)
