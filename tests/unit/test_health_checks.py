"""
Unit tests for the process and status helpers of the health report.
"""

import os

import pytest

from bizsuite.config.settings import get_settings
from bizsuite.services.health import (
    DEGRADED,
    HEALTHY,
    UNHEALTHY,
    check_memory,
    resident_memory_mb,
    worst_status,
)

pytestmark = pytest.mark.unit


class TestResidentMemory:
    def test_reads_current_resident_pages(self, tmp_path):
        statm = tmp_path / "statm"
        statm.write_text("90000 2048 512 10 0 4000 0\n")

        expected = 2048 * os.sysconf("SC_PAGE_SIZE") / (1024 * 1024)
        assert resident_memory_mb(str(statm)) == expected

    def test_falls_back_without_procfs(self, tmp_path):
        assert resident_memory_mb(str(tmp_path / "missing")) > 0

    def test_status_follows_share_of_limit(self):
        limit = get_settings().memory_limit_mb

        assert check_memory(limit * 0.5)["status"] == HEALTHY
        assert check_memory(limit * 0.8)["status"] == DEGRADED

        report = check_memory(limit * 0.95)
        assert report["status"] == UNHEALTHY
        assert report["percent"] == 95.0


def test_worst_status_wins():
    assert worst_status(HEALTHY, DEGRADED, HEALTHY) == DEGRADED
    assert worst_status(DEGRADED, UNHEALTHY) == UNHEALTHY
    assert worst_status(HEALTHY) == HEALTHY
