# Copyright 2024 The ingressgw Authors. All rights reserved.
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
# limitations under the License

########
# This is the ingressgw CLI. "ingressgw convert" reads Ingress manifests and
# writes the equivalent Gateway API Gateways and HTTPRoutes to stdout.
########

from typing import Optional, Tuple

import sys

import functools
import logging

import click

from ingressgw import Commit, Version
from ingressgw.fetch import DEFAULT_INGRESS_CLASSES, ResourceReader
from ingressgw.merge import Converter
from ingressgw.utils import dump_json, dump_yaml_all, env_log_level

__version__ = Version

logging.basicConfig(
    level=env_log_level("INGRESSGW_LOG_LEVEL", logging.WARNING),
    format="%%(asctime)s ingressgw %s %%(levelname)s: %%(message)s" % __version__,
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger("ingressgw")

# Use this instead of click.option
click_option = functools.partial(click.option, show_default=True)
click_option_no_default = functools.partial(click.option, show_default=False)


@click.group(help="Convert annotated Ingresses to Gateway API resources")
def cli() -> None:
    pass


@cli.command(help="Convert Ingress manifests from files or directories")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=True, file_okay=True))
@click_option_no_default("-n", "--namespace", default=None,
                         help="only convert Ingresses in this namespace")
@click_option("--ingress-class", "ingress_classes", multiple=True, default=sorted(DEFAULT_INGRESS_CLASSES),
              help="ingress class to convert (repeatable)")
@click_option("--recurse/--no-recurse", default=False,
              help="descend into subdirectories")
@click_option("--json", "as_json", is_flag=True, default=False,
              help="write JSON instead of YAML")
@click_option("--strict/--no-strict", default=False,
              help="exit 1 if any error was reported")
@click_option("--debug/--no-debug", default=False,
              help="enable debugging")
def convert(inputs: Tuple[str, ...], namespace: Optional[str], ingress_classes: Tuple[str, ...],
            recurse: bool, as_json: bool, strict: bool, debug: bool) -> None:
    if debug:
        logger.setLevel(logging.DEBUG)

    reader = ResourceReader(logger, ingress_classes=ingress_classes, namespace=namespace)

    for path in inputs:
        reader.load_from_filesystem(path, recurse=recurse)

    ingresses = reader.ingresses()
    logger.debug("read %d Ingresses" % len(ingresses))

    resources, errors = Converter(logging.getLogger("ingressgw.merge")).convert(ingresses)
    manifests = resources.manifests()

    if as_json:
        click.echo(dump_json(manifests, pretty=True))
    elif manifests:
        click.echo(dump_yaml_all(manifests, default_flow_style=False, sort_keys=False), nl=False)

    for msg in reader.errors:
        click.echo(f"error: {msg}", err=True)

    for error in errors:
        click.echo(f"error: {error}", err=True)

    if strict and (errors or reader.errors):
        sys.exit(1)


@cli.command(help="Show the ingressgw version")
def version() -> None:
    click.echo(f"ingressgw {Version} ({Commit})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
