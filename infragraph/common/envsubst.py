#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to expand the environment variables found in the declarations files.

Supports ``$VAR``, ``${VAR}``, ``${VAR:-default}`` (default when VAR is unset or empty) and
``${VAR:+alternative}`` (alternative when VAR is set). ``\\$`` escapes the expansion.
CloudFormation pseudo parameters such as ``${AWS::Region}`` are left as-is.
"""

from __future__ import annotations

import re
from os import environ
from typing import Mapping

ENV_VAR_RE = re.compile(
    r"(?<!\\)\$(?:(?P<bare>[A-Za-z_]\w*)|\{(?!AWS::)(?P<name>[A-Za-z_]\w*)"
    r"(?:(?P<operator>:[-+])(?P<word>[^}]*))?\})"
)
ESCAPED_DOLLAR = re.compile(r"\\\$")
IF_UNDEFINED = ":-"
IF_DEFINED = ":+"


def expandvars(text: str, default: str = None, env: Mapping = None) -> str:
    """
    Expands the environment variables of text.

    :param str text: the text to expand
    :param str default: value for unknown variables. If None, they are left unchanged.
    :param dict env: the variables to use. Defaults to os.environ
    """
    if env is None:
        env = environ

    def replace_var(match):
        name = match.group("bare") or match.group("name")
        operator = match.group("operator")
        value = env.get(name)
        if operator == IF_UNDEFINED:
            return value if value else expandvars(match.group("word"), default, env)
        elif operator == IF_DEFINED:
            return expandvars(match.group("word"), default, env) if value else ""
        if value is not None:
            return value
        return match.group(0) if default is None else default

    return ESCAPED_DOLLAR.sub("$", ENV_VAR_RE.sub(replace_var, text))
