"""Shared fixtures for the collector tests.

The repository root is prepended to sys.path so the in-repo package wins over
any installed copy.
"""

import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from zoneinfo_collector.collectors.zoneinfo import (  # noqa: E402
    ZoneInfoParser,
    build_zoneinfo_catalog,
)

DATA_DIR = Path(__file__).parent / "data"

# The excerpt from the zoneinfo man page plus a second zone of the same node.
EXCERPT = """\
Node 0, zone      DMA
  per-node stats
      nr_inactive_anon 72251
      nr_active_anon 61316
  pages free     3965
        min      3
        low      3
        high     4
        scanned  0
        spanned  4095
        present  3990
        managed  3969
    nr_free_pages 3965
Node 0, zone    DMA32
  pages free     46089
        min      654
    nr_free_pages 46089
"""


@pytest.fixture
def sample_zoneinfo() -> str:
    return (DATA_DIR / "zoneinfo").read_text()


@pytest.fixture
def catalog():
    return build_zoneinfo_catalog()


@pytest.fixture
def parser(catalog):
    return ZoneInfoParser(catalog)


@pytest.fixture
def procfs(tmp_path, sample_zoneinfo) -> Path:
    """A fake procfs mount holding the sample zoneinfo file."""
    root = tmp_path / "proc"
    root.mkdir()
    (root / "zoneinfo").write_text(sample_zoneinfo)
    return root
