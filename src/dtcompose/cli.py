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
Command-line interface for dtcompose.
"""

import click
from .logging_utils import configure_logging
from .build.main import build
from .validate.main import validate
from .compile.main import compile_cmd
from .apply.main import apply_cmd


@click.group()
@click.version_option(version="0.1.0", prog_name="dtcompose")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, debug):
    """dtcompose: Device Tree Overlay Composition."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    configure_logging(debug)


main.add_command(build)
main.add_command(validate)
main.add_command(compile_cmd)
main.add_command(apply_cmd)


if __name__ == "__main__":
    main()
