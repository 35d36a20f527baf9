# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import time
from pathlib import Path
from typing import Callable
from typing import Collection
from typing import NamedTuple

import paramiko

from platform_provisioning._ssh import Gateway


class DeliveryAttempt(NamedTuple):
    source: Path
    destination: str
    attempt: int
    outcome: str


class ReliableDelivery:
    """Upload files to a host, which may still be booting up.

    The SSH service of a just created host does not accept connections
    for a while. Connection failures are retried with a fixed interval.
    Other errors are not retried.
    """

    def __init__(
            self,
            gateway: Gateway,
            base_dirs: Collection[str],
            attempts: int = 10,
            backoff_sec: float = 10,
            sleep: Callable[[float], None] = time.sleep,
            ):
        self._gateway = gateway
        self._base_dirs = base_dirs
        self._attempts = attempts
        self._backoff_sec = backoff_sec
        self._sleep = sleep

    def deliver(self, source: Path, destination: str) -> DeliveryAttempt:
        if not Path(source).is_file():
            raise FileNotFoundError(f"Nothing to deliver: {source}")
        for attempt in range(1, self._attempts + 1):
            try:
                self._gateway.make_dirs(self._base_dirs)
                self._gateway.put(source, destination)
            except (OSError, paramiko.SSHException) as e:
                self._gateway.close()
                record = DeliveryAttempt(source, destination, attempt, repr(e))
                _logger.warning("Delivery failed: %s", record)
                if attempt < self._attempts:
                    _logger.info("Retry in %g seconds", self._backoff_sec)
                    self._sleep(self._backoff_sec)
            else:
                record = DeliveryAttempt(source, destination, attempt, 'delivered')
                _logger.info("Delivered: %s", record)
                return record
        raise ExhaustedRetries(
            f"Cannot deliver {source} to {destination} in {self._attempts} attempts")


class ExhaustedRetries(Exception):
    pass


_logger = logging.getLogger(__name__)
