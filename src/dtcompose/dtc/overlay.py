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
Device tree overlay application.

This module provides the OverlayApplier class which applies an ordered list
of compiled overlays (DTBO) to every DTB of a base directory using libfdt.
"""

import fnmatch
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Set

import libfdt

from ..models import Overlay
from ..exceptions import ApplyError

logger = logging.getLogger(__name__)


def get_compatible(fdt: libfdt.Fdt) -> Set[str]:
    """Return the compatible strings of the root node, empty if absent."""
    prop = fdt.getprop(0, "compatible", quiet=(libfdt.NOTFOUND,))
    if isinstance(prop, int):
        return set()
    return set(prop.as_stringlist())


def apply_overlay(fdt: libfdt.Fdt, dto: libfdt.Fdt) -> libfdt.Fdt:
    """
    Apply one overlay to a device tree and return the merged tree.

    libfdt can leave both blobs in an inconsistent state on failure, so the
    operation works on copies.
    """
    result = libfdt.Fdt(fdt.as_bytearray())
    overlay = libfdt.Fdt(dto.as_bytearray())

    result.resize(result.totalsize() + overlay.totalsize())
    err = libfdt.fdt_overlay_apply(result._fdt, overlay._fdt)
    if err:
        raise libfdt.FdtException(err)
    result.pack()
    return result


def check_output_dir(base_dir: Path, output_dir: Path) -> None:
    """Refuse an output directory that overlaps the base directory."""
    base = base_dir.resolve()
    output = output_dir.resolve()
    if output == base or base in output.parents or output in base.parents:
        raise ApplyError(
            f"Output directory {output_dir} overlaps base directory {base_dir}"
        )


class OverlayApplier:
    """Applies overlays to a directory of DTBs."""

    def matches_filter(self, overlay: Overlay, dtb_path: Path) -> bool:
        """An overlay without filter applies to every DTB."""
        if overlay.filter is None:
            return True
        return fnmatch.fnmatch(dtb_path.name, overlay.filter)

    def load_overlays(self, overlays: Iterable[Overlay]) -> List[libfdt.Fdt]:
        """Load DTBO blobs, one per overlay and in the same order."""
        blobs = []
        for overlay in overlays:
            if overlay.dtbo_file is None:
                raise ApplyError(f"Overlay '{overlay.name}' has no compiled DTBO")
            try:
                blobs.append(libfdt.Fdt(Path(overlay.dtbo_file).read_bytes()))
            except OSError as e:
                raise ApplyError(f"Cannot read DTBO for overlay '{overlay.name}': {e}")
            except libfdt.FdtException as e:
                raise ApplyError(f"Invalid DTBO for overlay '{overlay.name}': {e}")
        return blobs

    def apply(self, base_dir, overlays: List[Overlay], output_dir) -> Path:
        """
        Apply overlays in order to every DTB under base_dir.

        Args:
            base_dir: Directory of base DTBs, searched recursively
            overlays: Overlays with dtbo_file set, in application order
            output_dir: Directory receiving the patched DTBs, must not overlap base_dir

        Returns:
            The output directory

        Raises:
            ApplyError: If the directories overlap or an overlay cannot be
                loaded or applied
        """
        base_dir = Path(base_dir)
        output_dir = Path(output_dir)
        check_output_dir(base_dir, output_dir)

        loaded = [
            (overlay, dto, get_compatible(dto))
            for overlay, dto in zip(overlays, self.load_overlays(overlays))
        ]

        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True)

        for source in sorted(base_dir.rglob("*.dtb")):
            rel_path = source.relative_to(base_dir)
            try:
                fdt = libfdt.Fdt(source.read_bytes())
            except libfdt.FdtException as e:
                raise ApplyError(f"Invalid base DTB {rel_path}: {e}")

            dt_compatible = get_compatible(fdt)

            for overlay, dto, compatible in loaded:
                if not self.matches_filter(overlay, rel_path):
                    logger.debug("Skipping overlay %s for %s: filter %s does not match",
                                 overlay.name, rel_path, overlay.filter)
                    continue

                if compatible and not compatible & dt_compatible:
                    logger.debug("Skipping overlay %s for %s: incompatible with %s",
                                 overlay.name, rel_path, ", ".join(sorted(dt_compatible)))
                    continue

                logger.debug("Applying overlay %s to %s", overlay.name, rel_path)
                try:
                    fdt = apply_overlay(fdt, dto)
                except libfdt.FdtException as e:
                    raise ApplyError(
                        f"Failed to apply overlay '{overlay.name}' to {rel_path}: {e}"
                    )

            target = output_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(bytes(fdt.as_bytearray()))

        return output_dir
