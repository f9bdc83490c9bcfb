"""Shared fixtures: a stand-in snmpbulkwalk on PATH for subprocess-level tests."""

import os

import pytest

# ifDescr of ifIndex 5 carries a Latin-1 byte (0xe9), as some firmware does
FAKE_SNMPBULKWALK = r"""#!/bin/sh
for last; do :; done
case "$last" in
  1.3.6.1.2.1.17.4.3.1.2) printf '.1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.2 = INTEGER: 5\n' ;;
  1.3.6.1.2.1.2.2.1.2) printf '.1.3.6.1.2.1.2.2.1.2.5 = STRING: "Port caf\351"\n' ;;
  *) printf '%s.5 = INTEGER: 1\n' ".$last" ;;
esac
"""


@pytest.fixture
def fake_snmpbulkwalk(tmp_path, monkeypatch):
    script = tmp_path / "snmpbulkwalk"
    script.write_text(FAKE_SNMPBULKWALK)
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")
    return script
