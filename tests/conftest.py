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
Pytest configuration and fixtures for dtcompose tests.
"""

import pytest
import sys
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

import libfdt

from dtcompose.models import BuildFlags, KernelPackage


def make_dtb(compatible: List[str], nodes: Optional[Dict[str, Dict[str, str]]] = None) -> bytes:
    """Build a base DTB whose root has the given compatible and child nodes."""
    fdt_sw = libfdt.FdtSw()
    fdt_sw.finish_reservemap()

    fdt_sw.begin_node("")
    fdt_sw.property("compatible", b"".join(c.encode() + b"\0" for c in compatible))

    for name, props in (nodes or {"soc": {}}).items():
        fdt_sw.begin_node(name)
        for key, value in props.items():
            fdt_sw.property_string(key, value)
        fdt_sw.end_node()

    fdt_sw.end_node()

    dtb = fdt_sw.as_fdt()
    dtb.pack()
    return bytes(dtb.as_bytearray())


def make_overlay(target_path: str, node: str, props: Dict[str, str],
                 compatible: Optional[str] = None) -> bytes:
    """Build a single-fragment DTBO adding node with props under target_path."""
    fdt_sw = libfdt.FdtSw()
    fdt_sw.finish_reservemap()

    fdt_sw.begin_node("")
    if compatible is not None:
        fdt_sw.property_string("compatible", compatible)

    fdt_sw.begin_node("fragment@0")
    fdt_sw.property_string("target-path", target_path)
    fdt_sw.begin_node("__overlay__")
    fdt_sw.begin_node(node)
    for key, value in props.items():
        fdt_sw.property_string(key, value)
    fdt_sw.end_node()  # End node
    fdt_sw.end_node()  # End __overlay__
    fdt_sw.end_node()  # End fragment

    fdt_sw.end_node()  # End root

    dtbo = fdt_sw.as_fdt()
    dtbo.pack()
    return bytes(dtbo.as_bytearray())


def read_prop(dtb_path: Path, node_path: str, prop: str) -> Optional[str]:
    """Read a string property from a DTB file, None if the node is missing."""
    fdt = libfdt.Fdt(Path(dtb_path).read_bytes())
    offset = fdt.path_offset(node_path, quiet=(libfdt.NOTFOUND,))
    if offset < 0:
        return None
    return fdt.getprop(offset, prop).as_str()


class CompileCall(NamedTuple):
    name: str
    dts_file: Optional[Path]
    dts_text: Optional[str]
    flags: Optional[BuildFlags]


class RecordingCompiler:
    """Compiler stand-in that records calls and writes canned blobs."""

    def __init__(self, output_dir: Path, blobs: Optional[Dict[str, bytes]] = None):
        self.output_dir = Path(output_dir)
        self.blobs = blobs or {}
        self.calls: List[CompileCall] = []

    def compile(self, name, dts_file=None, dts_text=None, flags=None):
        self.calls.append(CompileCall(name, dts_file, dts_text, flags))
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output = self.output_dir / name
        default = f"compiled:{name}:{dts_file or dts_text}".encode()
        output.write_bytes(self.blobs.get(name, default))
        return output


class RecordingApplier:
    """Overlay applier stand-in that records calls."""

    def __init__(self):
        self.calls = []

    def apply(self, base_dir, overlays, output_dir):
        self.calls.append((Path(base_dir), list(overlays), Path(output_dir)))
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        return Path(output_dir)


@pytest.fixture
def kernel_package(tmp_path):
    """Create a kernel package layout with dtc include prefixes and bundled dtbs."""
    kernel = tmp_path / "linux"
    (kernel / "lib" / "modules" / "6.6.1" / "source" / "scripts" / "dtc" / "include-prefixes").mkdir(parents=True)
    (kernel / "dtbs").mkdir(parents=True)
    return KernelPackage(path=kernel)


@pytest.fixture
def dtb_dir(tmp_path):
    """Create a pre-built DTB tree mixing Raspberry Pi and other boards."""
    dtbs = tmp_path / "dtbs"
    (dtbs / "broadcom").mkdir(parents=True)
    (dtbs / "rockchip").mkdir(parents=True)

    rpi = make_dtb(["raspberrypi,4-model-b", "brcm,bcm2711"])
    (dtbs / "broadcom" / "bcm2711-rpi-4-b.dtb").write_bytes(rpi)
    (dtbs / "broadcom" / "bcm2837-rpi-3-b.dtb").write_bytes(
        make_dtb(["raspberrypi,3-model-b", "brcm,bcm2837"])
    )
    (dtbs / "rockchip" / "rk3399-rockpro64.dtb").write_bytes(
        make_dtb(["pine64,rockpro64", "rockchip,rk3399"])
    )
    (dtbs / "broadcom" / "README").write_text("not a dtb\n")
    return dtbs


@pytest.fixture
def pps_dtbo(tmp_path):
    """Create a precompiled overlay enabling a pps node under /soc."""
    path = tmp_path / "dtbos" / "pps.dtbo"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_overlay("/soc", "pps", {"compatible": "pps-gpio", "status": "okay"}))
    return path
