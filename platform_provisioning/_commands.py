# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import glob
import logging
import shlex
from abc import ABCMeta
from abc import abstractmethod
from pathlib import Path
from pathlib import PurePosixPath
from typing import NamedTuple
from typing import Sequence

from platform_provisioning._delivery import ReliableDelivery
from platform_provisioning._ssh import Gateway
from platform_provisioning._templates import TemplateSpec
from platform_provisioning._templates import materialize


class Session(NamedTuple):
    gateway: Gateway
    delivery: ReliableDelivery


class Command(metaclass=ABCMeta):
    """A step of provisioning.

    Commands must be idempotent: running a command twice
    leaves the same local and remote state as running it once.
    """

    @abstractmethod
    def run(self, session: Session):
        pass


class Run(Command):

    def __init__(self, command: str):
        self._command = command

    def __repr__(self):
        return f'{Run.__name__}({self._command!r})'

    def run(self, session):
        return session.gateway.run(self._command)


class Materialize(Command):

    def __init__(self, spec: TemplateSpec):
        self._spec = spec

    def __repr__(self):
        return f'{Materialize.__name__}({self._spec.destination.name!r})'

    def run(self, session):
        materialize(self._spec)


class Deliver(Command):

    def __init__(self, local_path: Path, remote_path: str):
        self._local_path = local_path
        self._remote_path = remote_path

    def __repr__(self):
        return f'{Deliver.__name__}({str(self._local_path)!r}, {self._remote_path!r})'

    def run(self, session):
        session.delivery.deliver(self._local_path, self._remote_path)


class InstallCredentials(Command):
    """Deliver local files matching a pattern and set their mode.

    The pattern is evaluated when the command runs,
    so the files are read fresh on every run.
    """

    def __init__(self, pattern: str, remote_dir: str, mode: str):
        self._pattern = pattern
        self._remote_dir = remote_dir
        self._mode = mode

    def __repr__(self):
        return f'{InstallCredentials.__name__}({self._pattern!r}, {self._remote_dir!r}, {self._mode!r})'

    def run(self, session):
        found = sorted(glob.glob(str(Path(self._pattern).expanduser())))
        if not found:
            _logger.warning("No credentials match %s", self._pattern)
        for local_path in found:
            name = Path(local_path).name
            remote_path = str(PurePosixPath(self._remote_dir, name))
            Deliver(Path(local_path), remote_path).run(session)
            Run(f'chmod {self._mode} ~/{shlex.quote(remote_path)}').run(session)


class CompositeCommand(Command):

    def __init__(self, commands: Sequence[Command]):
        self._commands: Sequence[Command] = commands

    def __repr__(self):
        return f'<{self.__class__.__name__} with {len(self._commands)} commands>'

    def run(self, session):
        for command in self._commands:
            _logger.debug("Command %r", command)
            command.run(session)


_logger = logging.getLogger(__name__)
