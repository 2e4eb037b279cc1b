"""
Tests for the zfs command line backed snapshot store.

The zfs binary is never invoked; subprocess.run is patched.
"""

import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from snapkeep.exceptions import DeleteFailure, PropertyReadError
from snapkeep.retention.decision import evaluate
from snapkeep.retention.policy import parse_policy
from snapkeep.store.base import EntityKind, Snapshot
from snapkeep.store.zfs import ZfsSnapshotStore, parse_creation

PROP = "at.rollc.at:snapkeep"


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.stderr = stderr
    proc.returncode = returncode
    return proc


@pytest.fixture
def zfs_store():
    return ZfsSnapshotStore(property_name=PROP, zfs_binary="/sbin/zfs", timeout=5)


class TestParseCreation:
    """Tests for parse_creation."""

    def test_epoch_seconds(self):
        """Parsable output should be read as epoch seconds in UTC."""
        assert parse_creation("1633168740") == datetime(2021, 10, 2, 9, 59, tzinfo=timezone.utc)

    def test_human_readable(self):
        """The default zfs creation format should also parse."""
        assert parse_creation("Sat Oct  2 09:59 2021") == datetime(
            2021, 10, 2, 9, 59, tzinfo=timezone.utc
        )

    def test_invalid(self):
        """Unparseable values should raise ValueError."""
        with pytest.raises(ValueError, match="can't parse creation time"):
            parse_creation("2 Oct 2021 9:52AM")


class TestListDatasets:
    """Tests for ZfsSnapshotStore.list_datasets."""

    def test_parses_managed_and_unmanaged(self, zfs_store):
        """Rows with source '-' should be unmanaged."""
        output = (
            "tank\ttype\tfilesystem\t-\n"
            f"tank\t{PROP}\t-\t-\n"
            "tank/home\ttype\tfilesystem\t-\n"
            f"tank/home\t{PROP}\th24d30w8m6y1\tlocal\n"
            "tank/vol\ttype\tvolume\t-\n"
            f"tank/vol\t{PROP}\td7\tinherited from tank/home\n"
        )
        with patch("subprocess.run", return_value=completed(output)) as mock_run:
            datasets = zfs_store.list_datasets()

        assert [(d.name, d.policy, d.kind) for d in datasets] == [
            ("tank", None, EntityKind.FILESYSTEM),
            ("tank/home", "h24d30w8m6y1", EntityKind.FILESYSTEM),
            ("tank/vol", "d7", EntityKind.VOLUME),
        ]
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "/sbin/zfs"
        assert cmd[1] == "get"
        assert "-H" in cmd
        assert f"type,{PROP}" in cmd
        assert mock_run.call_args[1]["timeout"] == 5

    def test_command_failure(self, zfs_store):
        """A non-zero exit should raise PropertyReadError."""
        with patch("subprocess.run", return_value=completed(returncode=1, stderr="no pools")):
            with pytest.raises(PropertyReadError, match="no pools"):
                zfs_store.list_datasets()

    def test_missing_binary(self, zfs_store):
        """A missing zfs binary should raise PropertyReadError."""
        with patch("subprocess.run", side_effect=FileNotFoundError("zfs")):
            with pytest.raises(PropertyReadError):
                zfs_store.list_datasets()

    def test_timeout(self, zfs_store):
        """A hung zfs call should raise PropertyReadError."""
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("zfs", 5)):
            with pytest.raises(PropertyReadError):
                zfs_store.list_datasets()

    def test_malformed_row(self, zfs_store):
        """Rows with the wrong field count should raise PropertyReadError."""
        with patch("subprocess.run", return_value=completed("unexpected\n")):
            with pytest.raises(PropertyReadError, match="unexpected row"):
                zfs_store.list_datasets()


class TestGetPolicy:
    """Tests for ZfsSnapshotStore.get_policy."""

    def test_set(self, zfs_store):
        with patch("subprocess.run", return_value=completed("h24\tlocal\n")):
            assert zfs_store.get_policy("tank/home") == "h24"

    def test_unset(self, zfs_store):
        """An unset property should read as None."""
        with patch("subprocess.run", return_value=completed("-\t-\n")):
            assert zfs_store.get_policy("tank/home") is None

    def test_explicit_dash_is_returned(self, zfs_store):
        """A locally set '-' should be returned so the parser can reject it."""
        with patch("subprocess.run", return_value=completed("-\tlocal\n")):
            assert zfs_store.get_policy("tank/home") == "-"


class TestListSnapshots:
    """Tests for ZfsSnapshotStore.list_snapshots."""

    def test_parses_snapshots(self, zfs_store):
        """Creation, used and local overrides should be read per snapshot."""
        output = (
            "tank/home@a\tcreation\t1633168740\t-\n"
            "tank/home@a\tused\t13958643712\t-\n"
            f"tank/home@a\t{PROP}\th24d30w8m6y1\tinherited from tank/home\n"
            "tank/home@b\tcreation\t1633100000\t-\n"
            "tank/home@b\tused\t2048\t-\n"
            f"tank/home@b\t{PROP}\t-\tlocal\n"
        )
        with patch("subprocess.run", return_value=completed(output)):
            snaps = zfs_store.list_snapshots("tank/home")

        by_name = {s.name: s for s in snaps}
        assert by_name["tank/home@a"].override == "h24d30w8m6y1"
        assert by_name["tank/home@a"].used_bytes == 13958643712
        assert by_name["tank/home@a"].created == datetime(2021, 10, 2, 9, 59, tzinfo=timezone.utc)
        assert by_name["tank/home@b"].override == "-"
        assert all(s.kind is EntityKind.SNAPSHOT for s in snaps)
        assert all(s.dataset == "tank/home" for s in snaps)

    def test_received_override(self, zfs_store):
        """A "-" that arrived via zfs receive should pin the snapshot."""
        output = (
            "tank/a@pin\tcreation\t1633168740\t-\n"
            f"tank/a@pin\t{PROP}\t-\treceived\n"
            "tank/a@old\tcreation\t1633100000\t-\n"
            f"tank/a@old\t{PROP}\t-\t-\n"
        )
        with patch("subprocess.run", return_value=completed(output)):
            snaps = zfs_store.list_snapshots("tank/a")

        by_name = {s.name: s for s in snaps}
        assert by_name["tank/a@pin"].override == "-"
        assert by_name["tank/a@old"].override is None

    def test_inherited_policy_is_not_a_pin(self, zfs_store, now):
        """An inherited dataset policy should not keep a snapshot forever."""
        output = (
            f"tank/a@x\tcreation\t{int(now.timestamp()) - 7200}\t-\n"
            f"tank/a@x\t{PROP}\th1\tinherited from tank/a\n"
            f"tank/a@y\tcreation\t{int(now.timestamp())}\t-\n"
            f"tank/a@y\t{PROP}\th1\tinherited from tank/a\n"
        )
        with patch("subprocess.run", return_value=completed(output)):
            snaps = zfs_store.list_snapshots("tank/a")

        verdict = evaluate(now, snaps, parse_policy("h1"))
        assert verdict.delete_names == ["tank/a@x"]
        assert verdict.keep_names == ["tank/a@y"]

    def test_ignores_other_datasets(self, zfs_store):
        """Snapshots of other datasets should be dropped."""
        output = "tank/other@x\tcreation\t1633168740\t-\n"
        with patch("subprocess.run", return_value=completed(output)):
            assert zfs_store.list_snapshots("tank/home") == []

    def test_bad_creation(self, zfs_store):
        """An unparseable creation time should raise PropertyReadError."""
        output = "tank/home@a\tcreation\tyesterday\t-\n"
        with patch("subprocess.run", return_value=completed(output)):
            with pytest.raises(PropertyReadError, match="creation"):
                zfs_store.list_snapshots("tank/home")

    def test_empty(self, zfs_store):
        with patch("subprocess.run", return_value=completed("")):
            assert zfs_store.list_snapshots("tank/home") == []


class TestEntityKind:
    """Tests for ZfsSnapshotStore.entity_kind."""

    @pytest.mark.parametrize(
        "output,expected",
        [
            ("snapshot\n", EntityKind.SNAPSHOT),
            ("filesystem\n", EntityKind.FILESYSTEM),
            ("volume\n", EntityKind.VOLUME),
            ("bookmark\n", EntityKind.BOOKMARK),
            ("something-new\n", None),
        ],
    )
    def test_kinds(self, zfs_store, output, expected):
        with patch("subprocess.run", return_value=completed(output)):
            assert zfs_store.entity_kind("tank/home@a") is expected

    def test_missing_entity(self, zfs_store):
        """A name zfs does not know should map to None."""
        proc = completed(returncode=1, stderr="cannot open 'tank/x': dataset does not exist")
        with patch("subprocess.run", return_value=proc):
            assert zfs_store.entity_kind("tank/x") is None

    def test_runs_with_c_locale(self, zfs_store, monkeypatch):
        """zfs should run untranslated so missing-entity errors are recognised."""
        monkeypatch.setenv("LANG", "de_DE.UTF-8")
        monkeypatch.setenv("LC_ALL", "de_DE.UTF-8")
        with patch("subprocess.run", return_value=completed("snapshot\n")) as mock_run:
            zfs_store.entity_kind("tank/home@a")

        env = mock_run.call_args[1]["env"]
        assert env["LC_ALL"] == "C"
        assert env["LANG"] == "de_DE.UTF-8"

    def test_other_failure(self, zfs_store):
        proc = completed(returncode=1, stderr="permission denied")
        with patch("subprocess.run", return_value=proc):
            with pytest.raises(PropertyReadError):
                zfs_store.entity_kind("tank/x")


class TestDestroySnapshot:
    """Tests for ZfsSnapshotStore.destroy_snapshot."""

    def _snapshot(self):
        return Snapshot(
            name="tank/home@a",
            dataset="tank/home",
            created=datetime(2021, 10, 2, tzinfo=timezone.utc),
        )

    def test_runs_destroy(self, zfs_store):
        with patch("subprocess.run", return_value=completed()) as mock_run:
            zfs_store.destroy_snapshot(self._snapshot())

        assert mock_run.call_args[0][0] == ["/sbin/zfs", "destroy", "tank/home@a"]

    def test_failure(self, zfs_store):
        """A failed destroy should raise DeleteFailure."""
        proc = completed(returncode=1, stderr="dataset is busy")
        with patch("subprocess.run", return_value=proc):
            with pytest.raises(DeleteFailure, match="busy"):
                zfs_store.destroy_snapshot(self._snapshot())
