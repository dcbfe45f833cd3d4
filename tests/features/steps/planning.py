#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path
from tempfile import mkdtemp

from behave import given, then

from infragraph.applier import Applier
from infragraph.cli import render_files
from infragraph.common.settings import InfraGraphSettings
from infragraph.exceptions import ApplyFailure, InfraGraphException
from infragraph.provisioners.memory import InMemoryProvisioner
from infragraph.resources.graph import build
from infragraph.resources.planner import plan
from infragraph.resources.values import ResourceIdentity


def here():
    return path.abspath(path.dirname(__file__))


def use_case_path(file_path):
    return path.abspath(f"{here()}/../../../{file_path}")


@given("I use {file_path} as my declarations file")
def step_impl(context, file_path):
    """
    Function to load the declarations from use-cases.

    :param context:
    :param str file_path:
    """
    context.settings = InfraGraphSettings(
        **{
            InfraGraphSettings.command_arg: InfraGraphSettings.render_cmd,
            InfraGraphSettings.input_file_arg: [use_case_path(file_path)],
            InfraGraphSettings.output_dir_arg: mkdtemp(prefix="infragraph-"),
            InfraGraphSettings.format_arg: "yaml",
        },
    )


@given("I override it with {file_path}")
def step_impl(context, file_path):
    context.settings.input_files.append(use_case_path(file_path))
    context.settings.set_content()


@then("I build the graph and plan the resources in {batches:d} batches")
def step_impl(context, batches):
    context.graph = build(context.settings.registry)
    context.plan = plan(context.graph)
    assert len(context.plan) == batches, context.plan


@then("I render all files to verify execution")
def step_impl(context):
    render_files(context.settings, context.graph, context.plan)
    for file_name in ("plan.yaml", "template.yaml"):
        assert path.exists(path.join(context.settings.output_dir, file_name))


@then("resource {identity} has {attribute} set to {value}")
def step_impl(context, identity, attribute, value):
    resource_identity = ResourceIdentity.from_string(identity)
    declaration = context.settings.registry.get(*resource_identity)
    assert declaration.attributes[attribute] == value, declaration.attributes


@then("I apply the plan in dry-run")
def step_impl(context):
    context.report = Applier(InMemoryProvisioner()).execute(context.plan, context.graph)


@then("I apply the plan in dry-run failing on {identity}")
def step_impl(context, identity):
    try:
        Applier(InMemoryProvisioner(fail_on=[identity])).execute(
            context.plan, context.graph
        )
    except ApplyFailure as error:
        context.report = error.report
    else:
        raise AssertionError(f"Applying should have failed on {identity}")


@then("all {count:d} resources are completed")
def step_impl(context, count):
    assert context.report.success
    assert len(context.report.completed) == count


@then("{identity} failed and {count:d} resources were skipped")
def step_impl(context, identity, count):
    assert [str(failed) for failed in context.report.failed] == [identity]
    assert len(context.report.skipped) == count, context.report.skipped


@then("building the graph fails with {error}")
def step_impl(context, error):
    try:
        build(context.settings.registry)
    except InfraGraphException as build_error:
        assert type(build_error).__name__ == error, build_error
    else:
        raise AssertionError(f"Building the graph should have raised {error}")
