# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Console script for infragraph.
"""

import argparse
import sys

import yaml
from jsonschema import ValidationError

from infragraph import __version__
from infragraph.applier import Applier
from infragraph.common.files import FileArtifact
from infragraph.common.logging import LOG, set_log_level
from infragraph.common.settings import InfraGraphSettings
from infragraph.exceptions import ApplyFailure, InfraGraphException
from infragraph.provisioners.cloudcontrol import CloudControlProvisioner
from infragraph.provisioners.memory import InMemoryProvisioner
from infragraph.render import render_template
from infragraph.resources.graph import build
from infragraph.resources.planner import plan, render_plan_table


class ArgparseHelper(argparse._HelpAction):
    """
    Used to help print top level '--help' arguments from argparse
    when used with subparsers
    """

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        for subparsers_action in subparsers_actions:
            for choice, subparser in list(subparsers_action.choices.items()):
                print(f"Command '{choice}'")
                print(subparser.format_usage())
        parser.exit()


def main_parser():
    """
    Console script for infragraph.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action=ArgparseHelper,
        help="show this help message and exit",
    )

    cmd_parsers = parser.add_subparsers(
        dest=InfraGraphSettings.command_arg, help="Command to execute."
    )
    base_parser = argparse.ArgumentParser(add_help=False)
    files_parser = argparse.ArgumentParser(add_help=False)
    plan_parser = argparse.ArgumentParser(add_help=False)
    apply_parser = argparse.ArgumentParser(add_help=False)
    aws_parser = argparse.ArgumentParser(add_help=False)
    base_parser.add_argument(
        "--loglevel",
        type=str,
        help="Log level. Defaults to INFO",
        required=False,
        dest=InfraGraphSettings.loglevel_arg,
    )
    files_parser.add_argument(
        "-f",
        "--file",
        dest=InfraGraphSettings.input_file_arg,
        required=True,
        help="Path to a declarations file. Repeat to merge several files, in order",
        action="append",
    )
    plan_parser.add_argument(
        "-d",
        "--output-dir",
        required=False,
        help="Output directory to write the files to.",
        type=str,
        dest=InfraGraphSettings.output_dir_arg,
        default=InfraGraphSettings.default_output_dir,
    )
    plan_parser.add_argument(
        "--format",
        help="Defines the format of the files written.",
        type=str,
        dest=InfraGraphSettings.format_arg,
        choices=InfraGraphSettings.allowed_formats,
        default=InfraGraphSettings.default_format,
    )
    plan_parser.add_argument(
        "--target",
        dest=InfraGraphSettings.targets_arg,
        default=[],
        action="append",
        required=False,
        help="Only plan for this resource (kind.name) and its dependencies. Repeatable",
    )
    plan_parser.add_argument(
        "--destroy",
        dest=InfraGraphSettings.destroy_arg,
        action="store_true",
        help="Plan the deletion of the resources, dependents first",
    )
    plan_parser.add_argument(
        "--validate-template",
        dest=InfraGraphSettings.cfn_validate_arg,
        action="store_true",
        help="Validate the rendered template with the CloudFormation API",
    )
    apply_parser.add_argument(
        "--max-workers",
        dest=InfraGraphSettings.workers_arg,
        type=int,
        default=InfraGraphSettings.default_max_workers,
        help="Maximum number of resources provisioned at the same time",
    )
    apply_parser.add_argument(
        "--dry-run",
        dest=InfraGraphSettings.dry_run_arg,
        action="store_true",
        help="Go through the plan without calling AWS",
    )
    aws_parser.add_argument(
        "--region",
        required=False,
        dest=InfraGraphSettings.region_arg,
        help="Specify the region to use. Defaults to the region from config or environment vars",
    )
    aws_parser.add_argument(
        "--profile",
        required=False,
        dest=InfraGraphSettings.profile_arg,
        help="Name of the AWS profile to use",
    )
    aws_parser.add_argument(
        "--role-arn",
        dest=InfraGraphSettings.arn_arg,
        help="Allow you to run API calls using a specific IAM role, within same or for cross-account",
        required=False,
    )
    for command in InfraGraphSettings.active_commands:
        parents = [base_parser, files_parser, plan_parser, aws_parser]
        if command["name"] == InfraGraphSettings.apply_cmd:
            parents.append(apply_parser)
        cmd_parsers.add_parser(
            name=command["name"], help=command["help"], parents=parents
        )
    for command in InfraGraphSettings.validation_commands:
        cmd_parsers.add_parser(
            name=command["name"],
            help=command["help"],
            parents=[base_parser, files_parser],
        )
    for command in InfraGraphSettings.neutral_commands:
        cmd_parsers.add_parser(name=command["name"], help=command["help"])
    return parser


def render_files(settings, graph, execution_plan) -> None:
    """
    Writes the execution plan and the CloudFormation template to the output directory
    """
    FileArtifact("plan", settings, content=execution_plan.to_dict()).write(settings)
    template_file = FileArtifact(
        "template", settings, template=render_template(graph, execution_plan)
    )
    template_file.write(settings)
    if settings.validate_template:
        template_file.validate(settings)


def apply_plan(settings, graph, execution_plan) -> int:
    """
    Provisions the resources of the plan, dry-run or with Cloud Control

    :return: status code
    """
    if settings.dry_run:
        provisioner = InMemoryProvisioner()
    else:
        provisioner = CloudControlProvisioner(settings.session)
    applier = Applier(provisioner, max_workers=settings.max_workers)
    try:
        report = applier.execute(execution_plan, graph)
    except ApplyFailure as error:
        report = error.report
        LOG.error(error)
    print(report.render_table())
    FileArtifact("report", settings, content=report.to_dict()).write(settings)
    return 0 if report.success else 1


def main():
    """
    Main entry point for CLI
    :return: status code
    """
    parser = main_parser()
    if len(sys.argv) == 1:
        parser.print_help()
        return 0
    args = parser.parse_args()
    loglevel = getattr(args, InfraGraphSettings.loglevel_arg, None)
    if loglevel:
        set_log_level(loglevel)
    LOG.debug(args)
    command = getattr(args, InfraGraphSettings.command_arg)
    if command == InfraGraphSettings.version_cmd:
        print("infragraph", __version__)
        return 0
    try:
        settings = InfraGraphSettings(**vars(args))
        LOG.debug(settings)
        if command == InfraGraphSettings.config_cmd:
            print(settings.render_content())
            return 0
        graph = build(settings.registry)
        if command == InfraGraphSettings.validate_cmd:
            LOG.info(f"{len(graph)} resources declarations are valid")
            return 0
        execution_plan = plan(graph, targets=settings.targets, destroy=settings.destroy)
        if command == InfraGraphSettings.plan_cmd:
            print(render_plan_table(execution_plan, graph))
        elif command == InfraGraphSettings.render_cmd:
            render_files(settings, graph, execution_plan)
        elif command == InfraGraphSettings.apply_cmd:
            return apply_plan(settings, graph, execution_plan)
    except (
        InfraGraphException,
        ValidationError,
        ValueError,
        TypeError,
        FileNotFoundError,
        yaml.YAMLError,
    ) as error:
        LOG.error(error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
