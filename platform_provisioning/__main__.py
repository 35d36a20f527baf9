# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import argparse
import logging
import os
import subprocess
import sys
from typing import Sequence

from platform_provisioning._config import SettingMissing
from platform_provisioning._config import default_settings
from platform_provisioning._config import setting_path
from platform_provisioning._images import AwsCliFailed
from platform_provisioning._images import centos_ami_ids
from platform_provisioning._images import format_ami_map
from platform_provisioning._logging import init_logging
from platform_provisioning._orchestrator import AlreadyRunning
from platform_provisioning._orchestrator import OrchestrationConfig
from platform_provisioning._orchestrator import Provisioning
from platform_provisioning._orchestrator import StageFailed
from platform_provisioning._outputs import query_outputs
from platform_provisioning._outputs import read_state_file
from platform_provisioning._ssh import HostKeyMismatch
from platform_provisioning._ssh import InvalidPrivateKey
from platform_provisioning._terraform import prepare
from platform_provisioning._terraform import vpc_apply
from platform_provisioning._terraform import vpc_clean
from platform_provisioning._terraform import vpc_destroy
from platform_provisioning._terraform import vpc_plan


def main(args: Sequence[str]) -> int:
    parser = argparse.ArgumentParser(
        prog='python -m platform_provisioning',
        description=(
            "Create a VPC with Terraform and provision the platform through its bastion host. "
            "Set DEBUG=1 for verbose output; it is also passed to the provision script."))
    parser.add_argument(
        '--state',
        help="read outputs from this terraform.tfstate instead of running 'terraform output'")
    subparsers = parser.add_subparsers(dest='command', required=True)
    vpc_parser = subparsers.add_parser('vpc', help="create or destroy the VPC with Terraform")
    vpc_parser.add_argument('vpc_action', choices=['plan', 'apply', 'destroy', 'clean'])
    subparsers.add_parser('prepare', help="download Terraform providers and modules")
    provision_parser = subparsers.add_parser('provision', help="deliver configs to the bastion and run the provision script")
    provision_parser.add_argument('action', help="passed to the provision script as is, e.g. apply")
    bastion_parser = subparsers.add_parser('bastion', help="print address of the bastion or connect to it")
    bastion_parser.add_argument('bastion_action', choices=['ip', 'ssh'])
    subparsers.add_parser('centos-ami-ids', help="print CentOS 7 image ids for all regions")
    parsed_args = parser.parse_args(args)
    debug = os.getenv('DEBUG', '') not in ('', '0', 'false')
    init_logging(parsed_args.command, debug)
    try:
        return _run(parsed_args, debug)
    except (
            StageFailed,
            AlreadyRunning,
            HostKeyMismatch,
            InvalidPrivateKey,
            AwsCliFailed,
            SettingMissing,
            LookupError,
            OSError,
            ) as e:
        _logger.error("Failed: %s", e)
        _logger.debug("Details:", exc_info=e)
        return 10


def _run(parsed_args, debug: bool) -> int:
    settings = default_settings()
    terraform_dir = setting_path(settings, 'terraform_dir')
    if parsed_args.command == 'vpc':
        if parsed_args.vpc_action == 'plan':
            return vpc_plan(terraform_dir)
        elif parsed_args.vpc_action == 'apply':
            return vpc_apply(terraform_dir)
        elif parsed_args.vpc_action == 'destroy':
            return vpc_destroy(terraform_dir, setting_path(settings, 'known_hosts'))
        else:
            vpc_clean(
                terraform_dir,
                setting_path(settings, 'staging_dir'),
                setting_path(settings, 'known_hosts'),
                )
            return 0
    elif parsed_args.command == 'prepare':
        return prepare(terraform_dir)
    elif parsed_args.command == 'centos-ami-ids':
        print(format_ami_map(centos_ami_ids()), flush=True)
        return 0
    if parsed_args.state is not None:
        snapshot = read_state_file(terraform_dir / parsed_args.state)
    else:
        snapshot = query_outputs(terraform_dir)
    action = parsed_args.action if parsed_args.command == 'provision' else ''
    config = OrchestrationConfig.from_settings(settings, snapshot, action, debug)
    if parsed_args.command == 'provision':
        exit_status = Provisioning(config).run()
        _logger.info("Provision script exited with %s", exit_status)
        return exit_status
    elif parsed_args.bastion_action == 'ip':
        print(config.target().host, flush=True)
        return 0
    else:
        return _interactive_ssh(config)


def _interactive_ssh(config: OrchestrationConfig) -> int:
    target = config.target()
    command = [
        'ssh',
        '-i', str(target.key_path),
        '-p', str(target.port),
        '-o', f'UserKnownHostsFile={target.known_hosts}',
        '-o', 'StrictHostKeyChecking=accept-new',
        f'{target.username}@{target.host}',
        ]
    _logger.info("Run: %s", subprocess.list2cmdline(command))
    return subprocess.run(command).returncode


_logger = logging.getLogger(__name__)

if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
