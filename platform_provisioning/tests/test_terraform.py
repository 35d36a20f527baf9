# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shutil
import tempfile
import unittest
from pathlib import Path

from platform_provisioning._terraform import PLAN_FILE
from platform_provisioning._terraform import vpc_clean


class TestClean(unittest.TestCase):

    def setUp(self):
        self._dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self._dir)

    def test_clean(self):
        terraform_dir = self._dir / 'terraform'
        terraform_dir.mkdir()
        (terraform_dir / PLAN_FILE).write_bytes(b'plan')
        (terraform_dir / 'terraform.tfstate').write_text('{}')
        staging_dir = self._dir / 'staging'
        staging_dir.mkdir()
        (staging_dir / 'provision').write_text('#!/bin/bash\n')
        known_hosts = self._dir / 'known_hosts'
        known_hosts.write_text('203.0.113.10 ssh-ed25519 AAAA\n')
        vpc_clean(terraform_dir, staging_dir, known_hosts)
        self.assertEqual([p.name for p in terraform_dir.iterdir()], ['terraform.tfstate'])
        self.assertFalse(staging_dir.exists())
        self.assertFalse(known_hosts.exists())
        # Nothing left to clean: must not fail.
        vpc_clean(terraform_dir, staging_dir, known_hosts)


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)7s %(name)s %(message).5000s",
        )
    unittest.main()
