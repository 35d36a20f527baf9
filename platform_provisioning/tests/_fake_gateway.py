# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
from pathlib import Path
from typing import List
from typing import Tuple

from platform_provisioning._ssh import DeliveryTarget
from platform_provisioning._ssh import Gateway
from platform_provisioning._ssh import GatewayNotConnected


class FakeGateway(Gateway):
    """Record what would be done on the remote host.

    The first failing_puts uploads fail as if the host was not ready.
    """

    def __init__(self, target: DeliveryTarget, journal: List[Tuple], failing_puts: int = 0):
        self.target = target
        self._journal = journal
        self._failing_puts = failing_puts
        self.put_attempts = 0
        self.closed = 0

    def run(self, command):
        self._journal.append(('run', self.target.accept_new_host_key, command))
        return 0

    def make_dirs(self, paths):
        self._journal.append(('make_dirs', self.target.accept_new_host_key, tuple(paths)))

    def put(self, local_path, remote_path):
        self.put_attempts += 1
        if self.put_attempts <= self._failing_puts:
            raise GatewayNotConnected(f"Fake connection refused: {self.target.host}")
        data = Path(local_path).read_bytes()
        self._journal.append(('put', self.target.accept_new_host_key, remote_path, data))

    def close(self):
        self.closed += 1


class FakeGatewayFactory:

    def __init__(self):
        self.journal = []
        self.gateways = []

    def __call__(self, target: DeliveryTarget) -> FakeGateway:
        gateway = FakeGateway(target, self.journal)
        self.gateways.append(gateway)
        return gateway

    def puts(self):
        return [entry for entry in self.journal if entry[0] == 'put']

    def commands(self):
        return [entry[2] for entry in self.journal if entry[0] == 'run']


class RecordingSleep:

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)
