# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shutil
import socket
import tempfile
import unittest
from pathlib import Path

import paramiko
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import NoEncryption
from cryptography.hazmat.primitives.serialization import PrivateFormat

from platform_provisioning._ssh import DeliveryTarget
from platform_provisioning._ssh import GatewayNotConnected
from platform_provisioning._ssh import HostKeyMismatch
from platform_provisioning._ssh import InvalidPrivateKey
from platform_provisioning._ssh import SshGateway
from platform_provisioning.tests._ssh_server import SshServer


class TestPrivateKey(unittest.TestCase):

    def setUp(self):
        self._dir = Path(tempfile.mkdtemp())
        self._key_path = self._dir / 'aws.pem'

    def tearDown(self):
        shutil.rmtree(self._dir)

    def _gateway(self):
        target = DeliveryTarget('203.0.113.10', self._key_path, 'ubuntu', self._dir / 'known_hosts')
        return SshGateway(target)

    def test_rsa_pem(self):
        # AWS gives keys in this format.
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.TraditionalOpenSSL, NoEncryption()))
        gateway = self._gateway()
        self.assertIsInstance(gateway._key, paramiko.RSAKey)

    def test_rsa_openssh(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.OpenSSH, NoEncryption()))
        gateway = self._gateway()
        self.assertIsInstance(gateway._key, paramiko.RSAKey)

    def test_ecdsa_pem(self):
        key = ec.generate_private_key(ec.SECP256R1())
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.TraditionalOpenSSL, NoEncryption()))
        gateway = self._gateway()
        self.assertIsInstance(gateway._key, paramiko.ECDSAKey)

    def test_key_absent(self):
        with self.assertRaises(FileNotFoundError):
            self._gateway()

    def test_malformed(self):
        self._key_path.write_text('This is not a key\n')
        with self.assertRaises(InvalidPrivateKey):
            self._gateway()

    def test_encrypted(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.TraditionalOpenSSL, BestAvailableEncryption(b'secret')))
        with self.assertRaises(InvalidPrivateKey):
            self._gateway()

    def test_repr(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.TraditionalOpenSSL, NoEncryption()))
        self.assertEqual(repr(self._gateway()), '<SshGateway ubuntu@203.0.113.10>')


class TestSshGateway(unittest.TestCase):

    def setUp(self):
        self._dir = Path(tempfile.mkdtemp())
        self._home = self._dir / 'home'
        self._home.mkdir()
        self._known_hosts = self._dir / 'known_hosts'
        self._key_path = self._dir / 'aws.pem'
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self._key_path.write_bytes(key.private_bytes(
            Encoding.PEM, PrivateFormat.TraditionalOpenSSL, NoEncryption()))
        self._host_key = paramiko.ECDSAKey.generate()
        self._server = SshServer(self._home, paramiko.RSAKey(key=key), self._host_key)
        self._gateways = []

    def tearDown(self):
        for gateway in self._gateways:
            gateway.close()
        self._server.stop()
        shutil.rmtree(self._dir)

    def _gateway(self, accept_new_host_key=True, port=None):
        target = DeliveryTarget(
            '127.0.0.1',
            self._key_path,
            'ubuntu',
            self._known_hosts,
            accept_new_host_key=accept_new_host_key,
            port=self._server.port if port is None else port,
            )
        gateway = SshGateway(target, connect_timeout_sec=5)
        self._gateways.append(gateway)
        return gateway

    def test_run(self):
        gateway = self._gateway()
        self.assertEqual(gateway.run('DEBUG=0 ~/provision apply'), 0)
        self.assertEqual(gateway.run('exit 3'), 3)
        self.assertEqual(self._server.commands, ['DEBUG=0 ~/provision apply', 'exit 3'])

    def test_make_dirs(self):
        gateway = self._gateway()
        (self._home / 'deployments').mkdir()
        gateway.make_dirs(['deployments/bosh', '.ssh'])
        gateway.make_dirs(['deployments/bosh', '.ssh'])
        self.assertTrue((self._home / 'deployments' / 'bosh').is_dir())
        self.assertTrue((self._home / '.ssh').is_dir())

    def test_put(self):
        local_path = self._dir / 'bosh.yml'
        local_path.write_text('name: bosh\n')
        gateway = self._gateway()
        gateway.make_dirs(['deployments'])
        gateway.put(local_path, 'deployments/bosh.yml')
        local_path.write_text('name: bosh-updated\n')
        gateway.put(local_path, 'deployments/bosh.yml')
        self.assertEqual((self._home / 'deployments' / 'bosh.yml').read_text(), 'name: bosh-updated\n')

    def test_new_host_key_pinned(self):
        self._gateway(accept_new_host_key=True).run('true')
        self.assertIn(self._host_key.get_base64(), self._known_hosts.read_text())
        self.assertEqual(self._gateway(accept_new_host_key=False).run('true'), 0)

    def test_new_host_key_rejected(self):
        gateway = self._gateway(accept_new_host_key=False)
        with self.assertRaises(GatewayNotConnected):
            gateway.run('true')
        self.assertNotIn(self._host_key.get_base64(), self._known_hosts.read_text())

    def test_changed_host_key(self):
        previous_key = paramiko.ECDSAKey.generate()
        self._known_hosts.write_text(
            f'[127.0.0.1]:{self._server.port} {previous_key.get_name()} {previous_key.get_base64()}\n')
        for accept_new_host_key in (True, False):
            with self.subTest(accept_new_host_key=accept_new_host_key):
                with self.assertRaises(HostKeyMismatch):
                    self._gateway(accept_new_host_key=accept_new_host_key).run('true')

    def test_port_closed(self):
        with socket.socket() as s:
            s.bind(('127.0.0.1', 0))
            closed_port = s.getsockname()[1]
        gateway = self._gateway(port=closed_port)
        with self.assertRaises(ConnectionError):
            gateway.run('true')
        with self.assertRaises(ConnectionError):
            gateway.make_dirs(['deployments'])

    def test_reconnect_after_close(self):
        gateway = self._gateway()
        self.assertEqual(gateway.run('true'), 0)
        gateway.close()
        self.assertEqual(gateway.run('true'), 0)

    def test_server_gone(self):
        gateway = self._gateway()
        self.assertEqual(gateway.run('true'), 0)
        self._server.stop()
        with self.assertRaises(GatewayNotConnected):
            gateway.run('true')


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
