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
Build the final device tree package from a configuration file.
"""

import sys
from pathlib import Path
import click

from ..config import load_config
from ..models import Toolchain
from ..pipeline import CompositionDriver
from ..exceptions import (
    ApplyError, CompileError, ConfigError, InvalidOverlaySpecError, ValidationError,
)


@click.command()
@click.option('--config', '-c', 'config_file', required=True, help='YAML build configuration')
@click.option('--output-dir', '-o', required=True, help='Directory receiving build outputs')
@click.option('--cc', help='C preprocessor driver (default: $CC or cc)')
@click.option('--dtc', help='Device tree compiler (default: $DTC or dtc)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def build(config_file: str, output_dir: str, cc: str, dtc: str, verbose: bool):
    """
    Build the device tree package described by a configuration file.

    The base DTBs come from dts_source when set, otherwise from dtb_source
    (optionally narrowed by filter). Overlays are then applied in order.
    The resulting package directory is printed on success.

    Example:

        dtcompose build --config=devicetree.yaml --output-dir=build/
    """
    if not Path(config_file).exists():
        click.echo(f"Error: Configuration file '{config_file}' does not exist", err=True)
        sys.exit(3)

    try:
        config = load_config(config_file, check_paths=True)

        if not config.enabled:
            click.echo("Device tree build is disabled (enable: false)")
            return

        env = Toolchain.from_env()
        toolchain = Toolchain(cc=cc or env.cc, dtc=dtc or env.dtc)

        if verbose:
            source = config.dts_source
            if source is not None:
                click.echo(f"Base: compile {source.dtb_name}")
            else:
                click.echo(f"Base: {config.dtb_source_dir} (filter: {config.filter or 'none'})")
            click.echo(f"Overlays: {len(config.overlays)}")

        driver = CompositionDriver(output_dir, toolchain=toolchain)
        result = driver.build(config)

        if verbose:
            for overlay in result.overlays:
                click.echo(f"  ✓ {overlay.name}: {overlay.dtbo_file}")

        click.echo(f"Package: {result.package}")
        if result.dtb_path is not None:
            click.echo(f"DTB: {result.dtb_path}")

    except InvalidOverlaySpecError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValidationError as e:
        click.echo(f"Validation error: {e}", err=True)
        sys.exit(1)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    except (CompileError, ApplyError) as e:
        click.echo(f"Build error: {e}", err=True)
        sys.exit(4)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
