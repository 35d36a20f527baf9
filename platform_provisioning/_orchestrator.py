# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import fcntl
import logging
import shlex
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable
from typing import Mapping
from typing import NamedTuple
from typing import Optional

from platform_provisioning._artifacts import REMOTE_BOOTSTRAP
from platform_provisioning._artifacts import REMOTE_CREDENTIALS_DIR
from platform_provisioning._artifacts import REMOTE_DEPLOYMENTS_DIR
from platform_provisioning._artifacts import bootstrap_spec
from platform_provisioning._artifacts import director_manifest_spec
from platform_provisioning._artifacts import platform_manifest_spec
from platform_provisioning._commands import Command
from platform_provisioning._commands import CompositeCommand
from platform_provisioning._commands import Deliver
from platform_provisioning._commands import InstallCredentials
from platform_provisioning._commands import Materialize
from platform_provisioning._commands import Run
from platform_provisioning._commands import Session
from platform_provisioning._config import setting_path
from platform_provisioning._delivery import ReliableDelivery
from platform_provisioning._outputs import InfrastructureSnapshot
from platform_provisioning._ssh import DeliveryTarget
from platform_provisioning._ssh import Gateway
from platform_provisioning._ssh import SshGateway


class OrchestrationConfig(NamedTuple):
    snapshot: InfrastructureSnapshot
    action: str
    debug: bool
    staging_dir: Path
    templates_dir: Path
    credentials_glob: str
    known_hosts: Path
    remote_user: str = 'ubuntu'
    delivery_attempts: int = 10
    delivery_backoff_sec: float = 10

    @classmethod
    def from_settings(
            cls,
            settings: Mapping[str, str],
            snapshot: InfrastructureSnapshot,
            action: str,
            debug: bool,
            ) -> 'OrchestrationConfig':
        terraform_dir = setting_path(settings, 'terraform_dir')
        if settings.get('templates_dir'):
            templates_dir = setting_path(settings, 'templates_dir')
        else:
            templates_dir = Path(__file__).with_name('templates')
        return cls(
            snapshot=snapshot,
            action=action,
            debug=debug,
            staging_dir=setting_path(settings, 'staging_dir'),
            templates_dir=templates_dir,
            credentials_glob=str(setting_path(settings, 'credentials_glob', terraform_dir)),
            known_hosts=setting_path(settings, 'known_hosts'),
            remote_user=settings.get('remote_user', 'ubuntu'),
            delivery_attempts=int(settings.get('delivery_attempts', '10')),
            delivery_backoff_sec=float(settings.get('delivery_backoff_sec', '10')),
            )

    def target(self, accept_new_host_key: bool = False) -> DeliveryTarget:
        return DeliveryTarget(
            host=self.snapshot.get('bastion_ip'),
            key_path=Path(self.snapshot.get('aws_key_path')).expanduser(),
            username=self.remote_user,
            known_hosts=self.known_hosts,
            accept_new_host_key=accept_new_host_key,
            )


class Stage(Enum):
    BOOTSTRAP_PREPARE = 'bootstrap_prepare'
    BOOTSTRAP_DELIVER = 'bootstrap_deliver'
    CREDENTIAL_SETUP = 'credential_setup'
    BOOTSTRAP_FINALIZE = 'bootstrap_finalize'
    MANIFEST_PREPARE = 'manifest_prepare'
    MANIFEST_DELIVER = 'manifest_deliver'
    INVOKE = 'invoke'


def _bootstrap_prepare(config: OrchestrationConfig) -> Command:
    return Materialize(bootstrap_spec(config.snapshot, config.templates_dir, config.staging_dir))


def _bootstrap_deliver(config: OrchestrationConfig) -> Command:
    return Deliver(config.staging_dir / REMOTE_BOOTSTRAP, REMOTE_BOOTSTRAP)


def _credential_setup(config: OrchestrationConfig) -> Command:
    return CompositeCommand([
        Run(f'mkdir -p -m 0700 ~/{REMOTE_CREDENTIALS_DIR}'),
        InstallCredentials(config.credentials_glob, REMOTE_CREDENTIALS_DIR, '0644'),
        ])


def _bootstrap_finalize(config: OrchestrationConfig) -> Command:
    return Run(f'chmod +x ~/{REMOTE_BOOTSTRAP}')


def _manifest_specs(config: OrchestrationConfig):
    return [
        director_manifest_spec(config.snapshot, config.templates_dir, config.staging_dir),
        platform_manifest_spec(config.snapshot, config.templates_dir, config.staging_dir),
        ]


def _manifest_prepare(config: OrchestrationConfig) -> Command:
    return CompositeCommand([Materialize(spec) for spec in _manifest_specs(config)])


def _manifest_deliver(config: OrchestrationConfig) -> Command:
    return CompositeCommand([
        Deliver(spec.destination, f'{REMOTE_DEPLOYMENTS_DIR}/{spec.destination.name}')
        for spec in _manifest_specs(config)
        ])


def invocation(config: OrchestrationConfig) -> str:
    """Make command line to run the remote agent.

    The action is not validated: it's up to the agent.
    """
    return f'DEBUG={int(config.debug)} ~/{REMOTE_BOOTSTRAP} {shlex.quote(config.action)}'


def _invoke(config: OrchestrationConfig) -> Command:
    return Run(invocation(config))


# Commands are made right before a stage runs:
# a stage may read outputs, which are needed only by that stage.
STAGES = (
    (Stage.BOOTSTRAP_PREPARE, _bootstrap_prepare),
    (Stage.BOOTSTRAP_DELIVER, _bootstrap_deliver),
    (Stage.CREDENTIAL_SETUP, _credential_setup),
    (Stage.BOOTSTRAP_FINALIZE, _bootstrap_finalize),
    (Stage.MANIFEST_PREPARE, _manifest_prepare),
    (Stage.MANIFEST_DELIVER, _manifest_deliver),
    (Stage.INVOKE, _invoke),
    )

# The host is just created, its key is not known yet.
# The key is saved on first contact and checked afterwards.
_ACCEPT_NEW_HOST_KEY = frozenset([Stage.BOOTSTRAP_DELIVER])


class Provisioning:
    """Run stages one by one; abort on the first failure.

    There is no resume: the whole run is repeated instead.
    It is safe, because every stage is idempotent.
    """

    def __init__(
            self,
            config: OrchestrationConfig,
            make_gateway: Callable[[DeliveryTarget], Gateway] = SshGateway,
            sleep: Callable[[float], None] = time.sleep,
            ):
        self._config = config
        self._make_gateway = make_gateway
        self._sleep = sleep

    def run(self) -> Optional[int]:
        """Return exit status of the remote agent."""
        bootstrap_target = self._config.target(accept_new_host_key=True)
        target = bootstrap_target._replace(accept_new_host_key=False)
        with _single_flight(self._config.staging_dir, target.host):
            gateways = {
                True: self._make_gateway(bootstrap_target),
                False: self._make_gateway(target),
                }
            try:
                result = None
                for stage, make_command in STAGES:
                    gateway = gateways[stage in _ACCEPT_NEW_HOST_KEY]
                    result = self._run_stage(stage, make_command, gateway)
            finally:
                for gateway in gateways.values():
                    gateway.close()
        return result

    def _run_stage(self, stage: Stage, make_command, gateway: Gateway):
        _logger.info("Stage %s: start", stage.name)
        delivery = ReliableDelivery(
            gateway,
            [REMOTE_DEPLOYMENTS_DIR],
            attempts=self._config.delivery_attempts,
            backoff_sec=self._config.delivery_backoff_sec,
            sleep=self._sleep,
            )
        try:
            command = make_command(self._config)
            _logger.debug("Stage %s: %r", stage.name, command)
            result = command.run(Session(gateway, delivery))
        except Exception as e:
            raise StageFailed(stage, e) from e
        _logger.info("Stage %s: done", stage.name)
        return result


@contextmanager
def _single_flight(staging_dir: Path, host: str):
    """Serialize runs sharing the staging directory.

    The lock is released by the OS if the process dies.
    """
    staging_dir.mkdir(parents=True, exist_ok=True)
    lock_path = staging_dir / 'provision.lock'
    with lock_path.open('w') as lock_file:
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise AlreadyRunning(f"Cannot provision {host}: {lock_path} is held by another run")
        try:
            yield
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)


class StageFailed(Exception):

    def __init__(self, stage: Stage, cause: Exception):
        super().__init__(f"Stage {stage.name} failed: {cause}")
        self.stage = stage
        self.cause = cause


class AlreadyRunning(Exception):
    pass


_logger = logging.getLogger(__name__)
