import logging
from pathlib import Path

import click
import yaml
from pydantic import ValidationError

from cdn_invalidate.amazon import AwsTransport
from cdn_invalidate.env import Config
from cdn_invalidate.errors import StartupError
from cdn_invalidate.settings import ProjectConfig


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="serverless.yml",
    show_default=True,
    metavar="FILE",
    help="Read the service and its CloudfrontInvalidation settings from FILE",
)
@click.option("--stage", metavar="STAGE", help="Deployment stage (overrides provider.stage)")
@click.option("--region", metavar="REGION", help="AWS region of the stack (overrides provider.region)")
@click.option("--aws-profile", metavar="PROFILE", help="AWS credentials profile (overrides provider.profile)")
@click.option(
    "--cacert",
    type=click.Path(dir_okay=False, path_type=Path),
    metavar="FILE",
    help="Trust the CA certificates in FILE for all AWS calls",
)
@click.option("--no-deploy", is_flag=True, help="Skip all invalidations")
@click.option("--debug/--no-debug", help="Turn on debugging")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path,
    stage: str,
    region: str,
    aws_profile: str,
    cacert: Path,
    no_deploy: bool,
    debug: bool,
):
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("boto3").setLevel(logging.WARNING)
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    try:
        project = ProjectConfig.load(config_path).with_cli_overrides(stage=stage, region=region, profile=aws_profile)
        unresolved = project.unresolved_variables()
        if unresolved:
            raise StartupError(
                f"Serverless variables are not expanded in {', '.join(unresolved)}: "
                "use literal values or pass --stage/--region/--aws-profile"
            )
        transport = AwsTransport.create(project.provider.region, profile=project.provider.profile, cacert=cacert)
    except (StartupError, ValidationError, yaml.YAMLError) as e:
        raise click.ClickException(str(e)) from e

    ctx.obj = Config(project=project, transport=transport, skip=no_deploy)
