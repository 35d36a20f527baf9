# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import json
import logging
import subprocess
from pathlib import Path
from typing import Mapping


class InfrastructureSnapshot:
    """Terraform outputs as they were at the moment of reading.

    >>> snapshot = InfrastructureSnapshot({'bastion_ip': '10.0.0.1'})
    >>> snapshot.get('bastion_ip')
    '10.0.0.1'
    >>> snapshot.get('nat_ip') # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
    ...
    OutputNotFound: Terraform output 'nat_ip' is not defined
    """

    def __init__(self, outputs: Mapping[str, str]):
        self._outputs = dict(outputs)

    def __repr__(self):
        return f'<{self.__class__.__name__} with {len(self._outputs)} outputs>'

    def get(self, name: str) -> str:
        try:
            return self._outputs[name]
        except KeyError:
            raise OutputNotFound(f"Terraform output {name!r} is not defined")

    def names(self):
        return sorted(self._outputs)


def query_outputs(terraform_dir: Path, timeout_sec: float = 120) -> InfrastructureSnapshot:
    command = ['terraform', 'output', '-json']
    _logger.info("Run in %s: %s", terraform_dir, ' '.join(command))
    try:
        r = subprocess.run(
            command,
            cwd=terraform_dir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            timeout=timeout_sec,
            )
    except FileNotFoundError as e:
        raise StateUnavailable(f"Cannot run terraform in {terraform_dir}: {e}")
    except subprocess.TimeoutExpired:
        raise StateUnavailable(
            f"terraform output did not finish in {timeout_sec} sec in {terraform_dir}")
    if r.returncode != 0:
        raise StateUnavailable(
            f"terraform output exited with {r.returncode}: {r.stderr.decode(errors='replace')}")
    try:
        raw = json.loads(r.stdout)
    except ValueError as e:
        raise StateUnavailable(f"Cannot parse terraform output: {e}")
    return InfrastructureSnapshot(_parse_outputs(raw))


def read_state_file(path: Path) -> InfrastructureSnapshot:
    """Read outputs directly from terraform.tfstate.

    Version 4 keeps outputs at the top level.
    Version 3 keeps them per module; only the root module is read.
    """
    _logger.info("Read Terraform state: %s", path)
    try:
        state = json.loads(Path(path).read_text())
    except OSError as e:
        raise StateUnavailable(f"Cannot read {path}: {e}")
    except ValueError as e:
        raise StateUnavailable(f"Corrupt state file {path}: {e}")
    if not isinstance(state, dict):
        raise StateUnavailable(f"Unexpected layout of {path}")
    if state.get('version', 0) >= 4:
        return InfrastructureSnapshot(_parse_outputs(state.get('outputs', {})))
    for module in state.get('modules', []):
        if module.get('path') == ['root']:
            return InfrastructureSnapshot(_parse_outputs(module.get('outputs', {})))
    raise StateUnavailable(f"No root module in {path}")


def _parse_outputs(raw) -> Mapping[str, str]:
    if not isinstance(raw, dict):
        raise StateUnavailable(f"Outputs must be an object, got {type(raw).__name__}")
    result = {}
    for name, output in raw.items():
        if not isinstance(output, dict) or 'value' not in output:
            raise StateUnavailable(f"Output {name!r} has no value")
        result[name] = _render(output['value'])
    _logger.debug("Terraform outputs: %s", ', '.join(sorted(result)))
    return result


def _render(value) -> str:
    """Render Terraform values the way they are used in shell and YAML.

    >>> _render(['subnet-1', 'subnet-2'])
    'subnet-1,subnet-2'
    >>> _render(True)
    'true'
    >>> _render(3)
    '3'
    >>> _render({'a': 1})
    '{"a":1}'
    """
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return ','.join(_render(item) for item in value)
    return json.dumps(value, separators=(',', ':'), sort_keys=True)


class OutputNotFound(LookupError):
    pass


class StateUnavailable(LookupError):
    pass


_logger = logging.getLogger(__name__)
