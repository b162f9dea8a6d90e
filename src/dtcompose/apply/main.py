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
Apply precompiled overlays to a directory of DTBs.
"""

import sys
from dataclasses import replace
from pathlib import Path
import click

from ..dtc.overlay import OverlayApplier, check_output_dir
from ..models import BarePathOverlay, coerce_overlay
from ..exceptions import ApplyError


@click.command(name='apply')
@click.option('--base-dir', '-b', required=True, help='Directory of base DTBs')
@click.option('--output-dir', '-o', required=True, help='Directory receiving patched DTBs')
@click.option('--filter', 'pattern', help='Only apply overlays to DTBs matching glob')
@click.argument('overlays', nargs=-1, required=True)
def apply_cmd(base_dir: str, output_dir: str, pattern: str, overlays):
    """
    Apply DTBO files, in the order given, to every DTB under BASE_DIR.

    Example:

        dtcompose apply -b dtbs/ -o out/ --filter='*rpi*.dtb' pps.dtbo spi.dtbo
    """
    base_path = Path(base_dir)
    if not base_path.is_dir():
        click.echo(f"Error: Base directory '{base_dir}' does not exist", err=True)
        sys.exit(3)

    specs = []
    for path in overlays:
        if not Path(path).exists():
            click.echo(f"Error: Overlay file '{path}' does not exist", err=True)
            sys.exit(3)
        overlay = coerce_overlay(BarePathOverlay(path=Path(path)))
        if pattern:
            overlay = replace(overlay, filter=pattern)
        specs.append(overlay)

    try:
        check_output_dir(base_path, Path(output_dir))
    except ApplyError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    try:
        result = OverlayApplier().apply(base_path, specs, Path(output_dir))
    except ApplyError as e:
        click.echo(f"Apply error: {e}", err=True)
        sys.exit(4)

    click.echo(f"Generated: {result}")
