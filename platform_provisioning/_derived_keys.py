# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Keys computed from roles, zones and components.

Instance counts are set per role per availability zone;
resource pools are set per component.
Both the placeholder names and the Terraform output names are part
of the contract with templates and with the Terraform configuration.
"""
from typing import NamedTuple
from typing import Sequence

ROLES = ('api', 'backbone', 'health', 'runner', 'services')
ZONES = ('Z1', 'Z2')
COMPONENTS = (
    'public_HAProxy',
    'private_HAProxy',
    'api',
    'backbone',
    'health',
    'runner',
    'services',
    )


class DerivedKey(NamedTuple):
    placeholder: str
    output_name: str


def count_key(role: str, zone: str) -> DerivedKey:
    """Make instance count key.

    >>> count_key('api', 'Z1')
    DerivedKey(placeholder='apiCountZ1', output_name='api_z1_count')
    """
    return DerivedKey(role + 'Count' + zone, f'{role}_{zone}_count'.lower())


def pool_key(component: str) -> DerivedKey:
    """Make resource pool key.

    >>> pool_key('public_HAProxy')
    DerivedKey(placeholder='publicHAProxyPool', output_name='public_haproxy_resource_pool')
    >>> pool_key('runner')
    DerivedKey(placeholder='runnerPool', output_name='runner_resource_pool')
    """
    return DerivedKey(component.replace('_', '') + 'Pool', component.lower() + '_resource_pool')


COUNT_KEYS: Sequence[DerivedKey] = tuple(count_key(r, z) for r in ROLES for z in ZONES)
POOL_KEYS: Sequence[DerivedKey] = tuple(pool_key(c) for c in COMPONENTS)
DERIVED_KEYS: Sequence[DerivedKey] = (*COUNT_KEYS, *POOL_KEYS)
