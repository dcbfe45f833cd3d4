#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Mapping of the resources kinds to CloudFormation resource types.

Kinds can either be written as CloudFormation types (``AWS::EC2::VPC``) or with the
snake_case provider names (``aws_vpc``). For the latter, properties and output fields are
snake_case and get converted to the PascalCase CloudFormation names.
"""

from __future__ import annotations

import re
from typing import Union

from infragraph.common import pascal_case

CFN_TYPE_SEPARATOR = "::"
ID_FIELD = "id"
CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

KINDS_TO_CFN_TYPES = {
    "aws_autoscaling_group": "AWS::AutoScaling::AutoScalingGroup",
    "aws_autoscaling_policy": "AWS::AutoScaling::ScalingPolicy",
    "aws_cloudwatch_event_rule": "AWS::Events::Rule",
    "aws_cloudwatch_log_group": "AWS::Logs::LogGroup",
    "aws_cloudwatch_metric_alarm": "AWS::CloudWatch::Alarm",
    "aws_ecs_capacity_provider": "AWS::ECS::CapacityProvider",
    "aws_ecs_cluster": "AWS::ECS::Cluster",
    "aws_ecs_service": "AWS::ECS::Service",
    "aws_ecs_task_definition": "AWS::ECS::TaskDefinition",
    "aws_eip": "AWS::EC2::EIP",
    "aws_iam_instance_profile": "AWS::IAM::InstanceProfile",
    "aws_iam_role": "AWS::IAM::Role",
    "aws_internet_gateway": "AWS::EC2::InternetGateway",
    "aws_lambda_function": "AWS::Lambda::Function",
    "aws_launch_template": "AWS::EC2::LaunchTemplate",
    "aws_lb": "AWS::ElasticLoadBalancingV2::LoadBalancer",
    "aws_lb_listener": "AWS::ElasticLoadBalancingV2::Listener",
    "aws_lb_target_group": "AWS::ElasticLoadBalancingV2::TargetGroup",
    "aws_nat_gateway": "AWS::EC2::NatGateway",
    "aws_route_table": "AWS::EC2::RouteTable",
    "aws_security_group": "AWS::EC2::SecurityGroup",
    "aws_sns_topic": "AWS::SNS::Topic",
    "aws_subnet": "AWS::EC2::Subnet",
    "aws_vpc": "AWS::EC2::VPC",
}


def is_cfn_type(kind: str) -> bool:
    return CFN_TYPE_SEPARATOR in kind


def cfn_type(kind: str, default: str = None) -> Union[str, None]:
    """
    The CloudFormation type for the kind

    :param str kind: kind of the resource
    :param str default: value to return when the kind is unknown
    """
    if is_cfn_type(kind):
        return kind
    return KINDS_TO_CFN_TYPES.get(kind, default)


def custom_type(kind: str) -> str:
    return f"Custom::{pascal_case(kind)}"


def cfn_property_name(kind: str, name: str) -> str:
    if is_cfn_type(kind):
        return name
    return pascal_case(name)


def cfn_properties(kind: str, properties: dict) -> dict:
    """
    Renames the top-level properties to their CloudFormation names. Nested keys are left untouched.
    """
    return {cfn_property_name(kind, key): value for key, value in properties.items()}


def cfn_attribute(kind: str, field: str) -> Union[str, None]:
    """
    The CloudFormation attribute (Fn::GetAtt) for the output field.

    :return: the attribute name, None when the field is the resource ID (Ref)
    """
    if field == ID_FIELD:
        return None
    return cfn_property_name(kind, field)


def snake_case(name: str) -> str:
    """
    >>> snake_case("VpcId")
    'vpc_id'
    """
    return CAMEL_BOUNDARY.sub("_", name).lower()
