""" Pulumi """
import logging

import pulumi
import stack_config
from vpc import generate

"""
Config is read once and passed explicitly
- a malformed network or subnet fails here, before anything is declared
"""
STACK = stack_config.load()

# pulumi forwards stderr into the diagnostics of `pulumi up`
logging.basicConfig(
    level=STACK.log_level,
    format="%(levelname)s %(name)s: %(message)s",
)

topology = generate(network_config=STACK.network, subnet_specs=STACK.subnets)

for output_name, value in topology.to_export().items():
    pulumi.export(output_name, value)
