# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import json
import logging
import shlex
import subprocess
from typing import Mapping
from typing import Sequence

# CentOS 7 in AWS Marketplace.
# See: https://wiki.centos.org/Cloud/AWS
_CENTOS_7_PRODUCT_CODE = 'aw0evgkw8e5c1q413zgy5pjce'


def centos_ami_ids() -> Mapping[str, str]:
    """Find the newest CentOS 7 image in every region."""
    regions = _aws(['ec2', 'describe-regions', '--query', 'Regions[].RegionName'])
    result = {}
    for region in sorted(regions):
        images = _aws([
            'ec2', 'describe-images',
            '--region', region,
            '--owners', 'aws-marketplace',
            '--filters', f'Name=product-code,Values={_CENTOS_7_PRODUCT_CODE}',
            '--query', 'Images[].[CreationDate,ImageId]',
            ])
        if not images:
            _logger.info("%s: No CentOS 7 images", region)
            continue
        [_creation_date, image_id] = max(images)
        result[region] = image_id
    return result


def format_ami_map(ami_ids: Mapping[str, str]) -> str:
    """Format as a Terraform map.

    >>> print(format_ami_map({'us-east-1': 'ami-1', 'eu-west-1': 'ami-2'}))
    centos_amis = {
      us-east-1 = "ami-1"
      eu-west-1 = "ami-2"
    }
    """
    lines = ['centos_amis = {']
    lines.extend(f'  {region} = "{image_id}"' for region, image_id in ami_ids.items())
    lines.append('}')
    return '\n'.join(lines)


def _aws(args: Sequence[str]):
    command = ['aws', *args, '--output', 'json']
    _logger.debug("Run: %s", shlex.join(command))
    try:
        r = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            timeout=120,
            check=True,
            )
    except FileNotFoundError as e:
        raise AwsCliFailed(f"AWS CLI is not installed: {e}")
    except subprocess.CalledProcessError as e:
        raise AwsCliFailed(f"Exit status {e.returncode}: {shlex.join(command)}")
    except subprocess.TimeoutExpired as e:
        raise AwsCliFailed(f"Timed out after {e.timeout} sec: {shlex.join(command)}")
    try:
        return json.loads(r.stdout)
    except ValueError as e:
        raise AwsCliFailed(f"Cannot parse output of {shlex.join(command)}: {e}")


class AwsCliFailed(Exception):
    pass


_logger = logging.getLogger(__name__)
