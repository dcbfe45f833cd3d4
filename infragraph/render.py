#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to render the resources declarations into a CloudFormation template.

References become ``Ref`` for the resources IDs, ``Fn::GetAtt`` otherwise, which lets CloudFormation
infer the implicit dependencies. Explicit dependencies become ``DependsOn``.
"""

from __future__ import annotations

from troposphere import AWSObject, GetAtt, Output, Ref, Template

from infragraph import __version__
from infragraph.common import logical_name
from infragraph.common.logging import LOG
from infragraph.kinds import cfn_attribute, cfn_properties, cfn_type, custom_type
from infragraph.resources.graph import Graph
from infragraph.resources.planner import ExecutionPlan
from infragraph.resources.values import Reference, to_plain


class DeclaredResource(AWSObject):
    """
    CloudFormation resource for a declaration. The properties are set as declared, without validation,
    as the kinds are not restricted to what troposphere knows about.
    """

    props = {}

    def __init__(self, title, resource_type: str, properties: dict = None, **kwargs):
        self.resource_type = resource_type
        super().__init__(title, **kwargs)
        if properties:
            self.properties.update(properties)


def reference_to_cfn(reference: Reference):
    """
    :return: Ref() when pointing to the resource ID, GetAtt() otherwise
    """
    title = logical_name(reference.kind, reference.name)
    attribute = cfn_attribute(reference.kind, reference.field)
    if attribute is None:
        return Ref(title)
    return GetAtt(title, attribute)


def define_resource_type(kind: str) -> str:
    resource_type = cfn_type(kind)
    if resource_type is None:
        resource_type = custom_type(kind)
        LOG.warning(
            f"No CloudFormation type known for {kind}. Rendering as {resource_type}"
        )
    return resource_type


def render_template(
    graph: Graph, execution_plan: ExecutionPlan = None, description: str = None
) -> Template:
    """
    Creates the template with one resource per declaration of the graph.

    :param graph: the dependency graph
    :param execution_plan: if set, only the resources of the plan are rendered, in the plan order
    :param description: the template description
    """
    template = Template(
        Description=description
        if description
        else f"Resources rendered by infragraph {__version__}"
    )
    identities = execution_plan.identities if execution_plan else graph.nodes
    for identity in identities:
        declaration = graph.declaration(identity)
        title = logical_name(declaration.kind, declaration.name)
        if title in template.resources:
            raise ValueError(
                f"{identity} renders as {title}, which is already used by another resource"
            )
        properties = cfn_properties(
            declaration.kind, to_plain(declaration.attributes, reference_to_cfn)
        )
        resource = DeclaredResource(
            title,
            define_resource_type(declaration.kind),
            properties=properties,
        )
        if declaration.depends_on:
            resource.DependsOn = [
                logical_name(dependency.kind, dependency.name)
                for dependency in declaration.depends_on
            ]
        template.add_resource(resource)
        template.add_output(
            Output(
                f"{title}Id",
                Description=f"ID of {identity}",
                Value=Ref(resource),
            )
        )
    LOG.info(f"Rendered {len(template.resources)} resources into the template")
    return template
