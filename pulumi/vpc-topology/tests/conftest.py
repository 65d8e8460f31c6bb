"""Shared fixtures: a pulumi mock engine that records every registration."""

from typing import Any, Callable

import pulumi
import pytest

VPC = "aws:ec2/vpc:Vpc"
SUBNET = "aws:ec2/subnet:Subnet"
INTERNET_GATEWAY = "aws:ec2/internetGateway:InternetGateway"
ROUTE_TABLE = "aws:ec2/routeTable:RouteTable"
ROUTE = "aws:ec2/route:Route"
ROUTE_TABLE_ASSOCIATION = "aws:ec2/routeTableAssociation:RouteTableAssociation"

AWS_TYPES = (VPC, SUBNET, INTERNET_GATEWAY, ROUTE_TABLE, ROUTE, ROUTE_TABLE_ASSOCIATION)


class RecordingMocks(pulumi.runtime.Mocks):
    def __init__(self) -> None:
        self.registered: list[pulumi.runtime.MockResourceArgs] = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.registered.append(args)
        return f"{args.name}_id", dict(args.inputs)

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}

    def of_type(self, typ: str) -> list[pulumi.runtime.MockResourceArgs]:
        return [args for args in self.registered if args.typ == typ]

    def names(self, typ: str) -> set[str]:
        return {args.name for args in self.of_type(typ)}

    @property
    def aws_resources(self) -> list[pulumi.runtime.MockResourceArgs]:
        return [args for args in self.registered if args.typ in AWS_TYPES]


@pytest.fixture
def mocks() -> RecordingMocks:
    recording = RecordingMocks()
    pulumi.runtime.set_mocks(recording, project="vpc-topology", stack="test", preview=False)
    return recording


def run_program(program: Callable[[], Any]) -> None:
    """Run `program` under the mock engine and wait for every registration.

    When `program` returns an Output it is awaited too, so assertions made
    inside `apply` fail the test.
    """
    pulumi.runtime.test(program)()
