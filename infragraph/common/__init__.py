# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Most commonly used functions shared across all modules.
"""

from __future__ import annotations

import re

WORD_SEPARATORS = re.compile(r"[^a-zA-Z\d]+")


def pascal_case(value: str) -> str:
    """
    Turns a snake_case, kebab-case or dotted value into PascalCase

    >>> pascal_case("cidr_block")
    'CidrBlock'
    """
    return "".join(
        part[:1].upper() + part[1:] for part in WORD_SEPARATORS.split(value) if part
    )


def logical_name(*parts: str) -> str:
    """
    Builds an alphanumerical name suitable as a CloudFormation logical ID

    >>> logical_name("aws_vpc", "main")
    'AwsVpcMain'
    """
    return "".join(pascal_case(part) for part in parts)
