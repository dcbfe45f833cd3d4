# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module for the InfraGraphSettings class
"""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime as dt
from os import path
from tempfile import gettempdir

import boto3
import yaml
from cfn_flip.yaml_dumper import LongCleanDumper
from compose_x_common.aws import get_assume_role_session, validate_iam_role_arn
from compose_x_common.compose_x_common import keyisset, set_else_none
from jsonschema import Draft7Validator

from infragraph.common.envsubst import expandvars
from infragraph.common.logging import LOG
from infragraph.resources.registry import ResourceRegistry
from infragraph.specs import DECLARATIONS_SPEC_ID, REGISTRY


def load_declarations_file(file_path: str) -> dict:
    """
    Loads a YAML or JSON declarations file, expanding the environment variables first.

    :param str file_path: path to the file
    :return: the file content
    :rtype: dict
    """
    if not path.exists(file_path):
        raise FileNotFoundError(f"No declarations file found at {file_path}")
    with open(file_path, "r") as file_fd:
        content = yaml.safe_load(expandvars(file_fd.read()))
    if content is None:
        LOG.warning(f"{file_path} is empty")
        return {}
    if not isinstance(content, dict):
        raise TypeError(f"{file_path} must define a mapping. Got", type(content))
    return content


def merge_definitions(base: dict, override: dict) -> dict:
    """
    Deep-merges override into a copy of base. Mappings are merged key by key, any other value is replaced.
    """
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_definitions(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_declarations(content: dict) -> None:
    """
    Validates the content against the declarations JSON schema

    :raises jsonschema.ValidationError: if the content is invalid
    """
    schema = REGISTRY.contents(DECLARATIONS_SPEC_ID)
    Draft7Validator(schema, registry=REGISTRY).validate(content)


class InfraGraphSettings:
    """
    Class to handle the settings to use for infragraph.

    :ivar dict content: the merged declarations
    :ivar ResourceRegistry registry: the frozen resources registry
    """

    command_arg = "command"
    input_file_arg = "DeclarationsFiles"
    output_dir_arg = "OutputDirectory"
    format_arg = "OutputFormat"
    targets_arg = "Targets"
    destroy_arg = "Destroy"
    workers_arg = "MaxWorkers"
    dry_run_arg = "DryRun"
    cfn_validate_arg = "ValidateTemplate"
    region_arg = "RegionName"
    profile_arg = "ProfileName"
    arn_arg = "RoleArn"
    loglevel_arg = "LogLevel"

    validate_cmd = "validate"
    plan_cmd = "plan"
    render_cmd = "render"
    apply_cmd = "apply"
    config_cmd = "config"
    version_cmd = "version"

    default_format = "json"
    allowed_formats = ["json", "yaml"]
    default_output_dir = path.join(
        gettempdir(), "infragraph", dt.now().strftime("%Y%m%d%H%M%S")
    )
    default_max_workers = 8

    active_commands = [
        {
            "name": plan_cmd,
            "help": "Computes the execution plan and prints the batches",
        },
        {
            "name": render_cmd,
            "help": "Writes the execution plan and the CloudFormation template to the output directory",
        },
        {
            "name": apply_cmd,
            "help": "Provisions the resources, batch by batch, with the AWS Cloud Control API",
        },
    ]
    validation_commands = [
        {
            "name": validate_cmd,
            "help": "Validates the declarations, the references and that dependencies have no cycle",
        },
        {
            "name": config_cmd,
            "help": "Merges the declarations files and prints the final content",
        },
    ]
    neutral_commands = [{"name": version_cmd, "help": "infragraph version"}]
    all_commands = active_commands + validation_commands + neutral_commands

    def __init__(self, content: dict = None, session=None, **kwargs):
        """
        :param dict content: declarations to use instead of, or on top of, the input files
        :param boto3.session.Session session: session to use for API calls
        :param kwargs: the CLI arguments
        """
        self.command = set_else_none(self.command_arg, kwargs, alt_value=self.plan_cmd)
        command_names = [cmd["name"] for cmd in self.all_commands]
        if self.command not in command_names:
            raise ValueError(
                f"Command {self.command} is not valid. Must be one of {command_names}"
            )
        self.input_files = set_else_none(self.input_file_arg, kwargs, alt_value=[])
        if isinstance(self.input_files, str):
            self.input_files = [self.input_files]
        self.targets = set_else_none(self.targets_arg, kwargs, alt_value=[])
        self.destroy = keyisset(self.destroy_arg, kwargs)
        self.dry_run = keyisset(self.dry_run_arg, kwargs)
        self.validate_template = keyisset(self.cfn_validate_arg, kwargs)
        self.max_workers = int(
            set_else_none(self.workers_arg, kwargs, alt_value=self.default_max_workers)
        )
        self.aws_region = set_else_none(self.region_arg, kwargs)
        self.profile_name = set_else_none(self.profile_arg, kwargs)
        self.role_arn = set_else_none(self.arn_arg, kwargs)
        if self.role_arn:
            validate_iam_role_arn(arn=self.role_arn)
        self._session = session
        self.set_output_settings(kwargs)
        self.content = {}
        self.registry = None
        self.set_content(content)

    def __repr__(self):
        return (
            f"InfraGraphSettings({self.command}, files={self.input_files}, "
            f"output_dir={self.output_dir}, format={self.format})"
        )

    @property
    def session(self):
        """
        The boto3 session, created on first use from the profile and region, assuming the role if set.

        :rtype: boto3.session.Session
        """
        if self._session is None:
            self._session = boto3.session.Session(
                profile_name=self.profile_name, region_name=self.aws_region
            )
            if self.role_arn:
                self._session = get_assume_role_session(
                    self._session,
                    self.role_arn,
                    session_name=f"InfraGraph@{self.command}",
                    region=self.aws_region,
                )
        return self._session

    def set_output_settings(self, kwargs):
        """
        Method to set the output settings based on kwargs
        """
        self.format = self.default_format
        if (
            keyisset(self.format_arg, kwargs)
            and kwargs[self.format_arg] in self.allowed_formats
        ):
            self.format = kwargs[self.format_arg]
        self.output_dir = set_else_none(
            self.output_dir_arg, kwargs, alt_value=self.default_output_dir
        )

    def set_content(self, content: dict = None):
        """
        Loads and merges the input files in order, then the content if given. Validates the result
        against the JSON schema and creates the resources registry from it.

        :param dict content:
        """
        merged = {}
        for file_path in self.input_files:
            LOG.info(f"Loading declarations from {file_path}")
            merged = merge_definitions(merged, load_declarations_file(file_path))
        if content:
            merged = merge_definitions(merged, content)
        LOG.debug("Validating declarations against the input schema")
        validate_declarations(merged)
        self.content = merged
        self.registry = ResourceRegistry.from_definition(self.content).freeze()

    def render_content(self) -> str:
        return yaml.dump(self.content, Dumper=LongCleanDumper)
