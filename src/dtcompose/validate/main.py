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
Validate a device tree build configuration without building it.
"""

import sys
from pathlib import Path
import click

from ..config import read_config
from ..dtc.validator import ConfigValidator
from ..dtc.reporter import PlanReporter
from ..exceptions import ConfigError


@click.command()
@click.option('--config', '-c', 'config_file', required=True, help='YAML build configuration')
@click.option('--report', is_flag=True, help='Print the build plan report')
@click.option('--format', type=click.Choice(['text', 'json', 'yaml']),
              default='text', help='Report format (default: text)')
@click.option('--no-check-paths', is_flag=True, help='Do not require input files to exist')
def validate(config_file: str, report: bool, format: str, no_check_paths: bool):
    """
    Validate a device tree build configuration.

    Every overlay must set one of dts_file, dts_text or dtbo_file. All
    offending overlays are reported together.

    Example:

        dtcompose validate --config=devicetree.yaml --report
    """
    if not Path(config_file).exists():
        click.echo(f"Error: Configuration file '{config_file}' does not exist", err=True)
        sys.exit(3)

    try:
        config = read_config(config_file)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    validator = ConfigValidator(check_paths=not no_check_paths)
    result = validator.validate(config)

    if report:
        click.echo(PlanReporter().generate_report(result, config, format))
        if not result.is_valid:
            sys.exit(1)
        return

    if not result.is_valid:
        click.echo("Validation failed:", err=True)
        for error in result.errors:
            click.echo(f"  ✗ {error}", err=True)
        sys.exit(1)

    for warning in result.warnings:
        click.echo(f"  ⚠ {warning}")
    click.echo("✓ Configuration is valid")
