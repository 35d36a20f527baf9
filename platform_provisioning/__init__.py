# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Provision the platform on a freshly created VPC through its bastion host.

Terraform creates the network and the bastion and exposes outputs.
Outputs are substituted into the provision script and into the manifests.
These files and the AWS keys are uploaded to the bastion,
then the provision script is run there with an action, like "apply".

The bastion is only reachable by SSH.
Its SSH service starts accepting connections some time after Terraform
reports the host created, hence uploads are retried.

Every stage is idempotent. If a run fails, investigate and run again
from the beginning; there is no resume.

Do not run provisioning of the same VPC from two terminals at once:
staged files are shared.
"""
from platform_provisioning._delivery import DeliveryAttempt
from platform_provisioning._delivery import ExhaustedRetries
from platform_provisioning._delivery import ReliableDelivery
from platform_provisioning._derived_keys import COUNT_KEYS
from platform_provisioning._derived_keys import DERIVED_KEYS
from platform_provisioning._derived_keys import POOL_KEYS
from platform_provisioning._derived_keys import DerivedKey
from platform_provisioning._images import AwsCliFailed
from platform_provisioning._orchestrator import AlreadyRunning
from platform_provisioning._orchestrator import OrchestrationConfig
from platform_provisioning._orchestrator import Provisioning
from platform_provisioning._orchestrator import Stage
from platform_provisioning._orchestrator import StageFailed
from platform_provisioning._outputs import InfrastructureSnapshot
from platform_provisioning._outputs import OutputNotFound
from platform_provisioning._outputs import StateUnavailable
from platform_provisioning._outputs import query_outputs
from platform_provisioning._outputs import read_state_file
from platform_provisioning._ssh import DeliveryTarget
from platform_provisioning._ssh import Gateway
from platform_provisioning._ssh import GatewayNotConnected
from platform_provisioning._ssh import HostKeyMismatch
from platform_provisioning._ssh import InvalidPrivateKey
from platform_provisioning._ssh import SshGateway
from platform_provisioning._templates import Assignment
from platform_provisioning._templates import Literal
from platform_provisioning._templates import Placeholder
from platform_provisioning._templates import SubstitutionError
from platform_provisioning._templates import TemplateSpec
from platform_provisioning._templates import materialize

__all__ = [
    'AlreadyRunning',
    'Assignment',
    'AwsCliFailed',
    'COUNT_KEYS',
    'DERIVED_KEYS',
    'DeliveryAttempt',
    'DeliveryTarget',
    'DerivedKey',
    'ExhaustedRetries',
    'Gateway',
    'GatewayNotConnected',
    'HostKeyMismatch',
    'InfrastructureSnapshot',
    'InvalidPrivateKey',
    'Literal',
    'OrchestrationConfig',
    'OutputNotFound',
    'POOL_KEYS',
    'Placeholder',
    'Provisioning',
    'ReliableDelivery',
    'SshGateway',
    'Stage',
    'StageFailed',
    'StateUnavailable',
    'SubstitutionError',
    'TemplateSpec',
    'materialize',
    'query_outputs',
    'read_state_file',
    ]
