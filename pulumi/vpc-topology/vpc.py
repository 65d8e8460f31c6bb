"""
VPC component
- realizes a `topology.TopologyPlan` with pulumi_aws resources
- pulumi owns the diff against real state, this only declares what should exist
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

import pulumi
import pulumi_aws as aws

from topology import NetworkConfig, SubnetSpec, TopologyPlan, plan_topology

logger = logging.getLogger(__name__)


@dataclass
class SubnetOutput:
    subnet_id: pulumi.Output[str]
    availability_zone: str


@dataclass
class PublicRoutingOutput:
    internet_gateway_id: pulumi.Output[str]
    route_table_id: pulumi.Output[str]


@dataclass
class TopologyResult:
    network_id: pulumi.Output[str]
    public_subnets: dict[str, SubnetOutput] = field(default_factory=dict)
    private_subnets: dict[str, SubnetOutput] = field(default_factory=dict)
    # only set when at least one subnet is public
    public_routing: Optional[PublicRoutingOutput] = None

    def to_export(self) -> dict:
        """plain dicts for `pulumi.export`"""

        def project(subnets: dict[str, SubnetOutput]) -> dict:
            return {
                key: {
                    "subnet_id": subnet.subnet_id,
                    "availability_zone": subnet.availability_zone,
                }
                for key, subnet in subnets.items()
            }

        exports = {
            "network_id": self.network_id,
            "public_subnets": project(self.public_subnets),
            "private_subnets": project(self.private_subnets),
        }
        if self.public_routing is not None:
            exports["internet_gateway_id"] = self.public_routing.internet_gateway_id
            exports["public_route_table_id"] = self.public_routing.route_table_id
        return exports


class Vpc(pulumi.ComponentResource):
    """VPC with keyed subnets and an optional public route to an IGW"""

    def __init__(
        self,
        name: str,
        plan: TopologyPlan,
        opts: pulumi.ResourceOptions = None,
    ):
        super().__init__(t="vpc-topology:network:Vpc", name=name, props=None, opts=opts)

        """ VPC Setup """
        network = plan.network
        self.vpc = aws.ec2.Vpc(
            resource_name=network.resource_name,
            cidr_block=str(network.address_block),
            enable_dns_hostnames=network.enable_dns_hostnames,
            enable_dns_support=network.enable_dns_support,
            tags=dict(network.tags),
            opts=pulumi.ResourceOptions(parent=self),
        )

        """
        SUBNETS
        - independent of each other, only need the vpc id
        """

        self.subnets: dict[str, aws.ec2.Subnet] = {}
        for key, subnet in plan.subnets.items():
            self.subnets[key] = aws.ec2.Subnet(
                resource_name=subnet.resource_name,
                availability_zone=subnet.availability_zone,
                cidr_block=str(subnet.address_block),
                map_public_ip_on_launch=subnet.map_public_ip_on_launch,
                tags=dict(subnet.tags),
                vpc_id=self.vpc.id,
                opts=pulumi.ResourceOptions(parent=self.vpc),
            )

        """
        PUBLIC ROUTING
        - aws_internet_gateway
        - public aws_route_table + default aws_route
        - public aws_route_table_association(s)
        """

        self.igw: Optional[aws.ec2.InternetGateway] = None
        self.public_route_table: Optional[aws.ec2.RouteTable] = None
        self.route_table_associations: dict[str, aws.ec2.RouteTableAssociation] = {}

        routing = plan.public_routing
        if routing is not None:
            self.igw = aws.ec2.InternetGateway(
                resource_name=routing.internet_gateway.resource_name,
                vpc_id=self.vpc.id,
                tags=dict(routing.internet_gateway.tags),
                opts=pulumi.ResourceOptions(parent=self.vpc),
            )

            self.public_route_table = aws.ec2.RouteTable(
                resource_name=routing.route_table.resource_name,
                vpc_id=self.vpc.id,
                tags=dict(routing.route_table.tags),
                opts=pulumi.ResourceOptions(parent=self.vpc),
            )

            # NOTE: every planned route targets the IGW
            for route in routing.route_table.routes:
                aws.ec2.Route(
                    resource_name=route.resource_name,
                    destination_cidr_block=route.destination,
                    gateway_id=self.igw.id,
                    route_table_id=self.public_route_table.id,
                    opts=pulumi.ResourceOptions(parent=self.public_route_table),
                )

            # Attach RouteTable to each public subnet
            for association in routing.associations:
                self.route_table_associations[association.subnet_key] = (
                    aws.ec2.RouteTableAssociation(
                        resource_name=association.resource_name,
                        route_table_id=self.public_route_table.id,
                        subnet_id=self.subnets[association.subnet_key].id,
                        opts=pulumi.ResourceOptions(parent=self.public_route_table),
                    )
                )

        self.result = TopologyResult(
            network_id=self.vpc.id,
            public_subnets=self._project(plan.public_subnets),
            private_subnets=self._project(plan.private_subnets),
            public_routing=(
                PublicRoutingOutput(
                    internet_gateway_id=self.igw.id,
                    route_table_id=self.public_route_table.id,
                )
                if routing is not None
                else None
            ),
        )

        """
        By registering the outputs on which the component depends, we ensure
        that the Pulumi CLI will wait for all the outputs to be created before
        considering the component itself to have been created.
        """
        self.register_outputs(self.result.to_export())

    def _project(self, subnets: Mapping) -> dict[str, SubnetOutput]:
        return {
            key: SubnetOutput(
                subnet_id=self.subnets[key].id,
                availability_zone=subnet.availability_zone,
            )
            for key, subnet in subnets.items()
        }


def generate(
    network_config: Union[NetworkConfig, Mapping[str, Any]],
    subnet_specs: Mapping[str, Union[SubnetSpec, Mapping[str, Any]]],
    opts: pulumi.ResourceOptions = None,
) -> TopologyResult:
    """Validate, plan and declare the whole topology.

    Planning raises InvalidConfigError before any resource is constructed,
    so a bad input never leaves a partial network behind.
    """
    plan = plan_topology(network_config, subnet_specs)
    vpc = Vpc(name=plan.network.resource_name, plan=plan, opts=opts)
    logger.debug("declared %d subnets for %s", len(vpc.subnets), plan.network.resource_name)
    return vpc.result
