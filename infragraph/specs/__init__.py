#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Load all the JSON Schema specifications shipped with infragraph
"""

import json

from importlib_resources import files
from referencing import Resource
from referencing.jsonschema import EMPTY_REGISTRY as _EMPTY_REGISTRY

SPECS_BASE_URI = "https://infragraph.compose-x.io/specs/"
DECLARATIONS_SPEC_ID = f"{SPECS_BASE_URI}declarations.spec.json"


def _schemas():
    specs_folder = files("infragraph").joinpath("specs")
    for spec_file in specs_folder.iterdir():
        if not spec_file.name.endswith(".spec.json"):
            continue
        contents = json.loads(spec_file.read_text())
        yield Resource.from_contents(contents)


REGISTRY = (_schemas() @ _EMPTY_REGISTRY).crawl()
__all__ = ["REGISTRY", "DECLARATIONS_SPEC_ID"]
