"""
Network topology planning
- maps a NetworkConfig and its SubnetSpecs to the resource graph for `vpc.Vpc`
- nothing in here talks to the provider, so it runs without a pulumi engine
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Mapping, Optional, Union

import pulumi
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    TypeAdapter,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Everything not matched by a more specific route leaves through the IGW
DEFAULT_ROUTE_CIDR = "0.0.0.0/0"


class InvalidConfigError(pulumi.RunError):
    """Raised for any malformed network or subnet input.

    Subclassing RunError lets the pulumi CLI print the message without a
    python traceback.
    """

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"invalid {field}: {value!r} ({reason})")


"""
HELPERS
"""


def parse_cidr(field: str, value: Any) -> ipaddress.IPv4Network:
    """parse an IPv4 `address/prefix` block, rejecting bare addresses"""
    if not isinstance(value, str):
        raise InvalidConfigError(field, value, "expected a CIDR string")
    if "/" not in value:
        raise InvalidConfigError(field, value, "missing prefix length")
    try:
        # strict: host bits set is a typo, not a block
        network = ipaddress.ip_network(value.strip(), strict=True)
    except ValueError as e:
        raise InvalidConfigError(field, value, str(e)) from e
    if network.version != 4:
        raise InvalidConfigError(field, value, "only IPv4 blocks are supported")
    return network


def _cidr_block(value: str) -> str:
    try:
        parse_cidr("address_block", value)
    except InvalidConfigError as e:
        # pydantic only collects ValueError into a ValidationError
        raise ValueError(e.reason) from e
    return value


CidrBlock = Annotated[str, AfterValidator(_cidr_block)]
Tags = dict[str, str]

_TAGS = TypeAdapter(Tags)


def validated(validate: Callable[[Any], Any], prefix: str, raw: Any) -> Any:
    """run a pydantic validator, reporting the first error as InvalidConfigError"""
    try:
        return validate(raw)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join([prefix, *(str(part) for part in error["loc"])])
        value = None if error["type"] == "missing" else error.get("input")
        raise InvalidConfigError(field, value, error["msg"]) from e


"""
INPUTS
"""


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    address_block: CidrBlock
    name: str = Field(min_length=1)
    enable_dns_support: StrictBool = True
    enable_dns_hostnames: StrictBool = True
    tags: Tags = Field(default_factory=dict)

    @classmethod
    def from_object(
        cls, raw: Any, tags: Optional[Mapping[str, str]] = None
    ) -> "NetworkConfig":
        """build from a `pulumi.Config` object, `tags` being the stack-wide tags"""
        network = validated(cls.model_validate, "network", raw)
        if tags is None:
            return network
        return network.model_copy(update={"tags": validated(_TAGS.validate_python, "tags", tags)})


class SubnetSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    address_block: CidrBlock
    availability_zone: str = Field(min_length=1)
    is_public: StrictBool = False
    tags: Tags = Field(default_factory=dict)

    @classmethod
    def from_object(cls, key: str, raw: Any) -> "SubnetSpec":
        return validated(cls.model_validate, f"subnets.{key}", raw)


def subnet_specs_from_object(raw: Any) -> dict[str, SubnetSpec]:
    """
    Build the keyed subnet specs
    - entries that are already SubnetSpecs pass through untouched
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidConfigError("subnets", raw, "expected an object keyed by subnet name")
    specs = {}
    for key, spec in raw.items():
        if not isinstance(key, str) or not key:
            raise InvalidConfigError("subnets", key, "subnet keys must be non-empty strings")
        specs[key] = spec if isinstance(spec, SubnetSpec) else SubnetSpec.from_object(key, spec)
    return specs


"""
PLANNED RESOURCES
- `resource_name` is the pulumi logical name, tags already include `Name`
"""


@dataclass(frozen=True)
class Network:
    resource_name: str
    address_block: ipaddress.IPv4Network
    enable_dns_support: bool
    enable_dns_hostnames: bool
    tags: Mapping[str, str]


@dataclass(frozen=True)
class Subnet:
    key: str
    resource_name: str
    address_block: ipaddress.IPv4Network
    availability_zone: str
    is_public: bool
    tags: Mapping[str, str]

    @property
    def map_public_ip_on_launch(self) -> bool:
        return self.is_public


@dataclass(frozen=True)
class InternetGateway:
    resource_name: str
    tags: Mapping[str, str]


@dataclass(frozen=True)
class Route:
    resource_name: str
    destination: str
    # resource_name of the gateway the route targets
    target: str


@dataclass(frozen=True)
class RouteTable:
    resource_name: str
    routes: tuple[Route, ...]
    tags: Mapping[str, str]


@dataclass(frozen=True)
class RouteTableAssociation:
    resource_name: str
    subnet_key: str
    route_table: str


@dataclass(frozen=True)
class PublicRouting:
    """gateway, route table and associations only ever exist together"""

    internet_gateway: InternetGateway
    route_table: RouteTable
    associations: tuple[RouteTableAssociation, ...]


@dataclass(frozen=True)
class TopologyPlan:
    network: Network
    subnets: Mapping[str, Subnet]
    public_routing: Optional[PublicRouting] = None

    @property
    def has_public(self) -> bool:
        return self.public_routing is not None

    @property
    def public_subnets(self) -> dict[str, Subnet]:
        return {k: s for k, s in self.subnets.items() if s.is_public}

    @property
    def private_subnets(self) -> dict[str, Subnet]:
        return {k: s for k, s in self.subnets.items() if not s.is_public}


"""
PLANNING
"""


def _validate_subnets(
    network: ipaddress.IPv4Network, subnet_specs: Mapping[str, SubnetSpec]
) -> dict[str, ipaddress.IPv4Network]:
    blocks = {}
    for key, spec in subnet_specs.items():
        blocks[key] = parse_cidr(f"subnets.{key}.address_block", spec.address_block)

    # NOTE: AWS rejects both of these at apply time, only warn here
    for key, block in blocks.items():
        if not block.subnet_of(network):
            logger.warning(
                "subnet %s block %s is outside network block %s", key, block, network
            )
    keys = sorted(blocks)
    for i, key in enumerate(keys):
        for other in keys[i + 1 :]:
            if blocks[key].overlaps(blocks[other]):
                logger.warning(
                    "subnet %s block %s overlaps subnet %s block %s",
                    key,
                    blocks[key],
                    other,
                    blocks[other],
                )
    return blocks


def plan_topology(
    network_config: Union[NetworkConfig, Mapping[str, Any]],
    subnet_specs: Mapping[str, Union[SubnetSpec, Mapping[str, Any]]],
) -> TopologyPlan:
    """Derive the resource graph for a network and its subnets.

    Inputs may be models or plain config objects. Every input is validated
    before anything is planned, so one bad entry fails the whole topology
    with InvalidConfigError.
    """
    if not isinstance(network_config, NetworkConfig):
        network_config = NetworkConfig.from_object(network_config)
    subnet_specs = subnet_specs_from_object(subnet_specs)

    address_block = parse_cidr("network.address_block", network_config.address_block)
    name = network_config.name
    blocks = _validate_subnets(address_block, subnet_specs)

    common_tags = dict(network_config.tags)
    network = Network(
        resource_name=name,
        address_block=address_block,
        enable_dns_support=network_config.enable_dns_support,
        enable_dns_hostnames=network_config.enable_dns_hostnames,
        tags={**common_tags, "Name": name},
    )

    subnets = {}
    for key, spec in subnet_specs.items():
        resource_name = f"{name}-{key}"
        subnets[key] = Subnet(
            key=key,
            resource_name=resource_name,
            address_block=blocks[key],
            availability_zone=spec.availability_zone,
            is_public=bool(spec.is_public),
            tags={**common_tags, **spec.tags, "Name": resource_name},
        )
        logger.debug("planned subnet %s (%s)", resource_name, blocks[key])

    public_keys = [key for key, subnet in subnets.items() if subnet.is_public]
    public_routing = None
    if public_keys:
        igw = InternetGateway(
            resource_name=f"{name}-igw", tags={**common_tags, "Name": f"{name}-igw"}
        )
        route_table = RouteTable(
            resource_name=f"{name}-public",
            routes=(
                Route(
                    resource_name=f"{name}-public-igw",
                    destination=DEFAULT_ROUTE_CIDR,
                    target=igw.resource_name,
                ),
            ),
            tags={**common_tags, "Name": f"{name}-public"},
        )
        public_routing = PublicRouting(
            internet_gateway=igw,
            route_table=route_table,
            associations=tuple(
                RouteTableAssociation(
                    resource_name=f"{subnets[key].resource_name}-rta",
                    subnet_key=key,
                    route_table=route_table.resource_name,
                )
                for key in public_keys
            ),
        )

    logger.info(
        "planned network %s (%s): %d subnets, %d public",
        name,
        address_block,
        len(subnets),
        len(public_keys),
    )
    return TopologyPlan(network=network, subnets=subnets, public_routing=public_routing)
