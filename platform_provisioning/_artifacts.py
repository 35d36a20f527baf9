# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Files delivered to the bastion and where their values come from.

Values are Terraform outputs, either named explicitly here
or derived from roles, zones and components.
"""
from functools import partial
from pathlib import Path

from platform_provisioning._derived_keys import DERIVED_KEYS
from platform_provisioning._outputs import InfrastructureSnapshot
from platform_provisioning._templates import Assignment
from platform_provisioning._templates import Placeholder
from platform_provisioning._templates import TemplateSpec

REMOTE_BOOTSTRAP = 'provision'
REMOTE_CREDENTIALS_DIR = '.ssh'
REMOTE_DEPLOYMENTS_DIR = 'deployments'

DIRECTOR_MANIFEST = 'bosh.yml'
PLATFORM_MANIFEST_PREFIX = 'cf-aws-'

# Shell variable in the provision script: Terraform output.
BOOTSTRAP_ASSIGNMENTS = (
    ('awsKeyID', 'aws_key_id'),
    ('awsAccessKey', 'aws_access_key'),
    ('awsRegion', 'aws_region'),
    ('awsKeyName', 'aws_key_name'),
    ('vpcID', 'aws_vpc_id'),
    ('boshSubnet', 'bosh_subnet'),
    ('ipMask', 'ipmask'),
    ('cfSubnet1', 'cf_subnet1'),
    ('cfSubnet1AZ', 'cf_subnet1_az'),
    ('cfSubnet2', 'cf_subnet2'),
    ('cfSubnet2AZ', 'cf_subnet2_az'),
    ('bastionAZ', 'bastion_az'),
    ('bastionID', 'bastion_id'),
    ('lbSubnet1', 'lb_subnet1'),
    ('cfSecurityGroup', 'cf_sg'),
    ('cfSecurityGroupAllows', 'cf_sg_allows'),
    ('cfAdminPass', 'cf_admin_pass'),
    ('cfDomain', 'cf_domain'),
    ('cfRunSubdomain', 'cf_run_subdomain'),
    ('cfAppsSubdomain', 'cf_apps_subdomain'),
    ('cfSize', 'cf_size'),
    ('cfBoshworkspaceVersion', 'cf_boshworkspace_version'),
    ('cfReleaseVersion', 'cf_release_version'),
    ('privateDomains', 'private_domains'),
    ('gitAccountURL', 'git_account_url'),
    ('httpProxy', 'http_proxy'),
    ('httpsProxy', 'https_proxy'),
    ('installDocker', 'install_docker_services'),
    ('dockerSubnet', 'docker_subnet'),
    ('installLogsearch', 'install_logsearch'),
    ('ls1Subnet', 'ls1_subnet'),
    ('ls1SubnetAZ', 'ls1_subnet_az'),
    )

DIRECTOR_OUTPUTS = (
    'aws_key_id',
    'aws_access_key',
    'aws_region',
    'aws_key_name',
    'bosh_subnet',
    'ipmask',
    'bastion_az',
    'cf_sg',
    'director_password',
    )

PLATFORM_OUTPUTS = (
    'cf_domain',
    'cf_run_subdomain',
    'cf_apps_subdomain',
    'cf_admin_pass',
    'cf_release_version',
    'cf_subnet1',
    'cf_subnet1_az',
    'cf_subnet2',
    'cf_subnet2_az',
    'lb_subnet1',
    'ipmask',
    'cf_sg',
    )


def bootstrap_spec(snapshot: InfrastructureSnapshot, templates_dir: Path, staging_dir: Path):
    substitutions = [
        *[Assignment(name, partial(snapshot.get, output)) for name, output in BOOTSTRAP_ASSIGNMENTS],
        *[Assignment(k.placeholder, partial(snapshot.get, k.output_name)) for k in DERIVED_KEYS],
        ]
    return TemplateSpec(
        templates_dir / 'provision.sh',
        staging_dir / REMOTE_BOOTSTRAP,
        tuple(substitutions),
        )


def director_manifest_spec(snapshot: InfrastructureSnapshot, templates_dir: Path, staging_dir: Path):
    return TemplateSpec(
        templates_dir / DIRECTOR_MANIFEST,
        staging_dir / DIRECTOR_MANIFEST,
        tuple(Placeholder(output, partial(snapshot.get, output)) for output in DIRECTOR_OUTPUTS),
        )


def platform_manifest_name(snapshot: InfrastructureSnapshot) -> str:
    return PLATFORM_MANIFEST_PREFIX + snapshot.get('cf_size') + '.yml'


def platform_manifest_spec(snapshot: InfrastructureSnapshot, templates_dir: Path, staging_dir: Path):
    name = platform_manifest_name(snapshot)
    substitutions = [
        *[Placeholder(output, partial(snapshot.get, output)) for output in PLATFORM_OUTPUTS],
        *[Placeholder(k.placeholder, partial(snapshot.get, k.output_name)) for k in DERIVED_KEYS],
        ]
    return TemplateSpec(templates_dir / name, staging_dir / name, tuple(substitutions))
