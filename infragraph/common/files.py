#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to write the plan, reports and templates to the local filesystem.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infragraph.common.settings import InfraGraphSettings

import json
import pprint
from os import makedirs, path

import yaml

try:
    from yaml import CDumper as Dumper
except ImportError:
    from yaml import Dumper

from botocore.exceptions import ClientError
from troposphere import Template

from infragraph.common.logging import LOG

JSON_MIME = "application/json"
YAML_MIME = "application/x-yaml"
MAX_TEMPLATE_BODY_SIZE = 51200


class FileArtifact:
    """
    Class to handle files artifacts, such as the execution plan or the CloudFormation template,
    and write them to the local filesystem.

    :cvar str body: The content of the FileArtifact
    :cvar troposphere.Template template: the CFN template
    :cvar str file_name: the base name of the file
    :cvar str mime: MIME-type of the file
    :cvar str file_path: Output file path for the FileArtifact
    """

    mime = "text/plain"
    file_path = None

    def __init__(
        self, file_name, settings, file_format=None, template=None, content=None
    ):
        """
        Init method for FileArtifact

        :param str file_name: Name of the file, without extension. Mandatory
        :param InfraGraphSettings settings: The execution settings
        :param str file_format: json or yaml. Defaults to the settings format
        :param troposphere.Template template: If you are providing a template to generate
        :param content: list or dict to serialize if not providing a template
        """
        self.template = None
        self.content = None
        self.file_name = file_name
        self.body = None
        if file_format is None:
            file_format = settings.format
        if template is not None and not isinstance(template, Template):
            raise TypeError("template must be of type", Template, "got", type(template))
        elif (
            content is not None
            and not isinstance(content, (tuple, dict, list))
            and template is None
        ):
            raise TypeError(
                "content must be of type", tuple, dict, list, "Got", type(content)
            )
        elif template is not None:
            self.template = template
        else:
            self.content = content
        if not isinstance(file_format, str):
            raise TypeError("format is of type", type(file_format), "expected", str)
        self.define_file_specs(file_name, file_format, settings)
        self.file_path = path.join(settings.output_dir, self.file_name)
        self.define_body()

    def __repr__(self):
        return self.file_path

    def write(self, settings):
        """
        Method to write the file to the output directory

        :param InfraGraphSettings settings:
        """
        makedirs(settings.output_dir, exist_ok=True)
        with open(self.file_path, "w") as file_fd:
            file_fd.write(self.body)
        LOG.info(f"{self.file_name} written successfully at {path.abspath(self.file_path)}")

    def validate(self, settings):
        """
        Method to validate the CloudFormation template body with the CloudFormation API
        """
        if self.template is None:
            raise TypeError(f"{self.file_name} is not a CloudFormation template")
        if len(self.body) >= MAX_TEMPLATE_BODY_SIZE:
            LOG.warning(
                f"Template body for {self.file_name} is too big for validation. Skipping."
            )
            return
        try:
            settings.session.client("cloudformation").validate_template(
                TemplateBody=self.body
            )
            LOG.info(f"Template {self.file_name} was validated successfully by CFN")
        except ClientError as error:
            LOG.error(error)
            raise

    def define_body(self):
        """
        Method to define the body of the file artifact from the template or the content.
        """
        if isinstance(self.template, Template):
            try:
                if self.mime == YAML_MIME:
                    self.body = self.template.to_yaml()
                else:
                    self.body = self.template.to_json()
            except Exception:
                pp = pprint.PrettyPrinter(indent=2)
                pp.pprint(self.template.to_dict())
                raise
        elif self.mime == YAML_MIME:
            self.body = yaml.dump(self.content, Dumper=Dumper, sort_keys=False)
        else:
            self.body = json.dumps(self.content, indent=4)

    def define_file_specs(self, file_name, file_format, settings):
        """
        Method to set the file name and MIME type from the format

        :param str file_name: name of the file
        :param str file_format: format to use for the file.
        :param InfraGraphSettings settings: The settings for execution
        """
        if file_format in settings.allowed_formats:
            self.file_name = f"{file_name}.{file_format}"

        if self.file_name.endswith(".json"):
            self.mime = JSON_MIME
        elif self.file_name.endswith(".yml") or self.file_name.endswith(".yaml"):
            self.mime = YAML_MIME
        else:
            self.mime = JSON_MIME
            self.file_name = f"{self.file_name}.json"
