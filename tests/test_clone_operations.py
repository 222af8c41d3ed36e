"""Tests for core cloning operations."""

from unittest.mock import Mock, patch

import pytest

from imagebackup.domain import BackupJob, BackupMode
from imagebackup.storage.clone.command_runners import CommandFailedError
from imagebackup.storage.clone.operations import (
    build_dd_command,
    clone_dd,
    clone_image,
    confirm_clone,
    sync_filesystems,
)
from imagebackup.storage.exceptions import CloneOperationError, UserAbortError

DD_SUMMARY = (
    "dd: error reading '/dev/sda': Input/output error\n"
    "7630+1 records in\n"
    "7631+0 records out\n"
    "8001563222 bytes (8.0 GB, 7.5 GiB) copied, 300 s, 26.7 MB/s\n"
)


class TestBuildDdCommand:
    def test_default_options(self):
        assert build_dd_command("/bin/dd", "/dev/sda", "/dev/sdb") == [
            "/bin/dd",
            "if=/dev/sda",
            "of=/dev/sdb",
            "bs=1M",
            "conv=sync,noerror",
            "status=progress",
        ]


class TestCloneDd:
    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_runs_dd(self, mock_which, mock_run):
        callback = Mock()
        result = clone_dd("/dev/sda", "/dev/sdb", total_bytes=100, progress_callback=callback)

        assert result == []
        args, kwargs = mock_run.call_args
        assert args[0] == build_dd_command("/bin/dd", "/dev/sda", "/dev/sdb")
        assert kwargs["total_bytes"] == 100
        assert kwargs["progress_callback"] is callback

    @patch("imagebackup.storage.clone.operations.shutil.which", return_value=None)
    def test_missing_dd(self, mock_which):
        with pytest.raises(CloneOperationError, match="dd not found"):
            clone_dd("/dev/sda", "/dev/sdb")

    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_total_failure_is_fatal(self, mock_which, mock_run):
        mock_run.side_effect = CommandFailedError(
            ["dd"], 1, "dd: failed to open '/dev/sda': No such file or directory\n"
        )
        with pytest.raises(CloneOperationError, match="Failed to clone /dev/sda to /dev/sdb"):
            clone_dd("/dev/sda", "/dev/sdb")

    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_read_errors_with_completed_copy_are_tolerated(self, mock_which, mock_run):
        def fake_run(command, **kwargs):
            kwargs["io_error_callback"]("dd: error reading '/dev/sda': Input/output error")
            raise CommandFailedError(command, 1, DD_SUMMARY)

        mock_run.side_effect = fake_run

        errors = clone_dd("/dev/sda", "/mnt/backup/image-191026.img")

        assert errors == ["dd: error reading '/dev/sda': Input/output error"]

    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_write_error_is_fatal(self, mock_which, mock_run):
        def fake_run(command, **kwargs):
            kwargs["io_error_callback"](
                "dd: error writing '/dev/full': No space left on device"
            )
            raise CommandFailedError(
                command,
                1,
                "dd: error writing '/dev/full': No space left on device\n"
                "1+0 records in\n"
                "0+0 records out\n"
                "0 bytes copied, 0.01 s, 0.0 kB/s\n",
            )

        mock_run.side_effect = fake_run

        with pytest.raises(CloneOperationError, match="Failed to clone /tmp/disk.img to /dev/full"):
            clone_dd("/tmp/disk.img", "/dev/full")

    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_write_error_after_read_errors_is_fatal(self, mock_which, mock_run, log_records):
        def fake_run(command, **kwargs):
            kwargs["io_error_callback"]("dd: error reading '/dev/sda': Input/output error")
            kwargs["io_error_callback"](
                "dd: error writing '/mnt/backup/image-191026.img': No space left on device"
            )
            raise CommandFailedError(command, 1, DD_SUMMARY)

        mock_run.side_effect = fake_run

        with pytest.raises(CloneOperationError):
            clone_dd("/dev/sda", "/mnt/backup/image-191026.img")

        padding_warnings = [
            record["message"]
            for record in log_records
            if record["message"].startswith("Read error, padding with zeros")
        ]
        assert len(padding_warnings) == 1
        assert any(record["message"].startswith("Write error") for record in log_records)

    @patch("imagebackup.storage.clone.operations.run_checked_with_streaming_progress")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/dd")
    def test_os_error_starting_dd(self, mock_which, mock_run):
        mock_run.side_effect = PermissionError("Permission denied")
        with pytest.raises(CloneOperationError, match="Permission denied"):
            clone_dd("/dev/sda", "/dev/sdb")


class TestSyncFilesystems:
    @patch("imagebackup.storage.clone.operations.run_checked_command")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/sync")
    def test_runs_sync(self, mock_which, mock_run):
        sync_filesystems()
        mock_run.assert_called_once_with(["/bin/sync"])

    @patch("imagebackup.storage.clone.operations.run_checked_command")
    @patch("imagebackup.storage.clone.operations.shutil.which", return_value="/bin/sync")
    def test_failure(self, mock_which, mock_run):
        mock_run.side_effect = CommandFailedError(["sync"], 1, "I/O error")
        with pytest.raises(CloneOperationError, match="Failed to sync"):
            sync_filesystems()


class TestConfirmClone:
    def test_accepted(self):
        confirm = Mock(return_value=True)
        confirm_clone("/dev/sda", "/dev/sdb", confirm)
        confirm.assert_called_once_with("Are you sure?")

    def test_declined(self):
        with pytest.raises(UserAbortError, match="Aborting"):
            confirm_clone("/dev/sda", "/dev/sdb", Mock(return_value=False))


class TestCloneImage:
    def test_copies_then_syncs(self, fake_system):
        job = BackupJob.from_options(
            BackupMode.DISK_TO_DISK, source_disk="/dev/sda", destination_disk="/dev/sdb"
        )
        clone_image(job, fake_system.host(), total_bytes=42)

        assert fake_system.calls == [("copy", "/dev/sda", "/dev/sdb", 42), ("sync",)]

    def test_copy_failure_skips_sync(self, fake_system):
        fake_system.copy_error = CloneOperationError("Failed to clone /dev/sda to /dev/sdb")
        job = BackupJob.from_options(
            BackupMode.DISK_TO_DISK, source_disk="/dev/sda", destination_disk="/dev/sdb"
        )
        with pytest.raises(CloneOperationError):
            clone_image(job, fake_system.host())

        assert ("sync",) not in fake_system.calls

    def test_writes_image_path_for_folder_backup(self, fake_system):
        job = BackupJob.from_options(
            BackupMode.DISK_TO_FOLDER,
            source_disk="/dev/sda",
            folder="/mnt/backup",
            today=fake_system.today(),
        )
        clone_image(job, fake_system.host())

        assert fake_system.calls[0] == (
            "copy",
            "/dev/sda",
            "/mnt/backup/image-191026.img",
            None,
        )
