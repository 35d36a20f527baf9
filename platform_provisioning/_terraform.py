# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

PLAN_FILE = 'terraform.tfplan'


def terraform(terraform_dir: Path, args: Sequence[str]) -> int:
    """Run Terraform interactively: it may ask for confirmation."""
    command = ['terraform', *args]
    _logger.info("Run in %s: %s", terraform_dir, shlex.join(command))
    r = subprocess.run(command, cwd=terraform_dir)
    if r.returncode != 0:
        _logger.error("Exit code %d: %s", r.returncode, shlex.join(command))
    return r.returncode


def vpc_plan(terraform_dir: Path) -> int:
    return terraform(terraform_dir, ['plan', '-out=' + PLAN_FILE])


def vpc_apply(terraform_dir: Path) -> int:
    if (terraform_dir / PLAN_FILE).exists():
        exit_code = terraform(terraform_dir, ['apply', PLAN_FILE])
        if exit_code == 0:
            # A plan file cannot be applied twice.
            (terraform_dir / PLAN_FILE).unlink()
        return exit_code
    return terraform(terraform_dir, ['apply'])


def vpc_destroy(terraform_dir: Path, known_hosts: Path) -> int:
    exit_code = terraform(terraform_dir, ['destroy'])
    if exit_code == 0:
        # A new host may get the same address, but never the same key.
        _remove(known_hosts)
    return exit_code


def vpc_clean(terraform_dir: Path, staging_dir: Path, known_hosts: Path):
    _remove(terraform_dir / PLAN_FILE)
    _remove(known_hosts)
    if staging_dir.exists():
        _logger.info("Remove %s", staging_dir)
        shutil.rmtree(staging_dir)


def prepare(terraform_dir: Path) -> int:
    return terraform(terraform_dir, ['init', '-upgrade'])


def _remove(path: Path):
    if path.exists():
        _logger.info("Remove %s", path)
        path.unlink()


_logger = logging.getLogger(__name__)
