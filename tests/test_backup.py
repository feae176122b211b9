"""
Tests for the backup and restore functionality.

Tests cover:
- Archive naming and collision handling
- Backup creation and catalog listing
- Restore with safety backup and staged swap
- Import validation
- Export and delete
- Error handling
"""

import os
import shutil
import tempfile
import threading
import unittest
import zipfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from docvault.backup import (
    BackupInfo,
    BackupManager,
    RestoreResult,
    build_backup_stem,
    sanitize_label,
)
from docvault.errors import (
    ArchiveFormatError,
    ArchiveNotFoundError,
    ArchiveValidationError,
    ErrorKind,
    StorageIOError,
)
from docvault.storage import DocumentStore, resolve_roots

FIXED_TIME = datetime(2024, 1, 15, 10, 30, 0)


class TestNaming(unittest.TestCase):
    """Tests for archive name composition."""

    def test_stem_without_label(self):
        """Test name with no label."""
        self.assertEqual(
            build_backup_stem("backup", "20240115_103000"),
            "backup_20240115_103000",
        )

    def test_stem_with_label(self):
        """Test label prefix."""
        self.assertEqual(
            build_backup_stem("backup", "20240115_103000", "Acme"),
            "Acme_backup_20240115_103000",
        )

    def test_stem_with_marker(self):
        """Test imported archive naming."""
        self.assertEqual(
            build_backup_stem("backup", "20240115_103000", "Acme", "external"),
            "Acme_backup_external_20240115_103000",
        )
        self.assertEqual(
            build_backup_stem("백업", "20240115_103000", None, "외부"),
            "백업_외부_20240115_103000",
        )

    def test_empty_label_ignored(self):
        """Test that an empty label behaves like no label."""
        self.assertEqual(
            build_backup_stem("backup", "20240115_103000", ""),
            "backup_20240115_103000",
        )

    def test_sanitize_label(self):
        """Test that labels cannot inject path components."""
        self.assertEqual(sanitize_label("Acme/../Corp"), "Acme_.._Corp")
        self.assertEqual(sanitize_label("a\\b:c"), "a_b_c")
        self.assertEqual(sanitize_label("  Acme Academy  "), "Acme Academy")
        self.assertEqual(sanitize_label(None), "")


class BackupTestCase(unittest.TestCase):
    """Shared fixtures for manager tests."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.roots = resolve_roots(self.temp_dir / "app")
        self.store = DocumentStore(self.roots)
        self.manager = BackupManager(self.roots)

    def tearDown(self):
        """Clean up temporary directories."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_documents(self, documents):
        """Write raw document files into the data root."""
        for name, content in documents.items():
            (self.roots.data_dir / name).write_bytes(content)

    def _data_snapshot(self):
        """Map of file name to bytes for the data root."""
        return {
            path.name: path.read_bytes()
            for path in self.roots.data_dir.iterdir()
            if path.is_file()
        }

    def _make_zip(self, path, entries):
        """Create a zip file with the given entry names and contents."""
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, content in entries.items():
                zf.writestr(name, content)
        return path


class TestCreateBackup(BackupTestCase):
    """Tests for backup creation."""

    def test_create_backup_basic(self):
        """Test that every document is archived under its bare name."""
        self._write_documents({
            "students.json": b'[{"id":1}]',
            "courses.json": b"[]",
        })

        info = self.manager.create_backup()

        self.assertIsInstance(info, BackupInfo)
        self.assertTrue(info.filename.startswith("backup_"))
        self.assertTrue(info.filename.endswith(".zip"))
        self.assertGreater(info.size, 0)

        archive_path = self.roots.backups_dir / info.filename
        self.assertEqual(info.size, archive_path.stat().st_size)
        with zipfile.ZipFile(archive_path) as zf:
            self.assertEqual(sorted(zf.namelist()), ["courses.json", "students.json"])
            for member in zf.infolist():
                self.assertEqual(member.compress_type, zipfile.ZIP_DEFLATED)
            self.assertEqual(zf.read("students.json"), b'[{"id":1}]')

    def test_scenario_byte_for_byte(self):
        """Test that extracted files match the originals exactly."""
        students = b"0123456789"
        courses = b"abcde"
        self._write_documents({"students.json": students, "courses.json": courses})

        info = self.manager.create_backup()

        extract_dir = self.temp_dir / "extracted"
        with zipfile.ZipFile(self.roots.backups_dir / info.filename) as zf:
            zf.extractall(extract_dir)
        self.assertEqual((extract_dir / "students.json").read_bytes(), students)
        self.assertEqual((extract_dir / "courses.json").read_bytes(), courses)

    def test_create_backup_empty_data(self):
        """Test that an empty data root still yields a valid archive."""
        info = self.manager.create_backup()

        with zipfile.ZipFile(self.roots.backups_dir / info.filename) as zf:
            self.assertEqual(zf.namelist(), [])

    def test_create_backup_with_label(self):
        """Test label prefix in file name."""
        info = self.manager.create_backup(label="Acme")

        self.assertTrue(info.filename.startswith("Acme_backup_"))

    def test_create_backup_label_cannot_escape(self):
        """Test that a label with separators stays inside the backups root."""
        info = self.manager.create_backup(label="../outside")

        self.assertTrue((self.roots.backups_dir / info.filename).is_file())
        self.assertNotIn("/", info.filename)

    def test_timestamp_format(self):
        """Test second-granularity timestamp in the file name."""
        manager = BackupManager(self.roots, clock=lambda: FIXED_TIME)

        info = manager.create_backup()

        self.assertEqual(info.filename, "backup_20240115_103000.zip")

    def test_custom_backup_word(self):
        """Test configurable backup word."""
        manager = BackupManager(self.roots, backup_word="백업", clock=lambda: FIXED_TIME)

        info = manager.create_backup(label="학원")

        self.assertEqual(info.filename, "학원_백업_20240115_103000.zip")

    def test_same_second_collision_gets_suffix(self):
        """Test that same-second backups do not overwrite each other."""
        manager = BackupManager(self.roots, clock=lambda: FIXED_TIME)
        self._write_documents({"students.json": b"[1]"})
        first = manager.create_backup()

        self._write_documents({"students.json": b"[2]"})
        second = manager.create_backup()
        third = manager.create_backup()

        self.assertEqual(first.filename, "backup_20240115_103000.zip")
        self.assertEqual(second.filename, "backup_20240115_103000_2.zip")
        self.assertEqual(third.filename, "backup_20240115_103000_3.zip")
        with zipfile.ZipFile(self.roots.backups_dir / first.filename) as zf:
            self.assertEqual(zf.read("students.json"), b"[1]")

    def test_subdirectories_not_archived(self):
        """Test that only regular files directly in the data root are archived."""
        self._write_documents({"students.json": b"[]"})
        nested = self.roots.data_dir / "attachments"
        nested.mkdir()
        (nested / "photo.json").write_bytes(b"{}")

        info = self.manager.create_backup()

        with zipfile.ZipFile(self.roots.backups_dir / info.filename) as zf:
            self.assertEqual(zf.namelist(), ["students.json"])

    def test_hidden_files_not_archived(self):
        """Test that leftover temp files from interrupted saves are skipped."""
        self._write_documents({
            "students.json": b"[]",
            ".students.abc123.tmp": b"[partial",
        })

        info = self.manager.create_backup()

        with zipfile.ZipFile(self.roots.backups_dir / info.filename) as zf:
            self.assertEqual(zf.namelist(), ["students.json"])

    def test_write_failure_removes_partial_archive(self):
        """Test that a failed archive write leaves nothing behind."""
        self._write_documents({"students.json": b"[]"})

        with patch("docvault.backup.manager.zipfile.ZipFile.write", side_effect=OSError("boom")):
            with self.assertRaises(StorageIOError):
                self.manager.create_backup()

        self.assertEqual(list(self.roots.backups_dir.iterdir()), [])

    def test_created_at_matches_catalog(self):
        """Test that create and list report the same timestamp."""
        info = self.manager.create_backup()

        listed = self.manager.list_backups()

        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0].to_dict(), info.to_dict())
        self.assertIsNotNone(info.created_at.tzinfo)

    def test_concurrent_creation_unique_names(self):
        """Test that parallel creations never share a file name."""
        manager = BackupManager(self.roots, clock=lambda: FIXED_TIME)
        self._write_documents({"students.json": b"[]"})
        results = []

        def worker():
            results.append(manager.create_backup().filename)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(set(results)), 5)
        self.assertEqual(len(manager.list_backups()), 5)


class TestListBackups(BackupTestCase):
    """Tests for the catalog."""

    def test_empty(self):
        """Test listing with no archives."""
        self.assertEqual(self.manager.list_backups(), [])

    def test_one_more_after_create(self):
        """Test that each creation adds exactly one entry."""
        before = len(self.manager.list_backups())
        self._write_documents({"students.json": b"[]"})

        info = self.manager.create_backup()

        after = self.manager.list_backups()
        self.assertEqual(len(after), before + 1)
        self.assertIn(info.filename, [b.filename for b in after])

    def test_sorted_newest_first(self):
        """Test ordering by modification time."""
        old = self._make_zip(self.roots.backups_dir / "old.zip", {"students.json": "[]"})
        new = self._make_zip(self.roots.backups_dir / "new.zip", {"students.json": "[]"})
        mid = self._make_zip(self.roots.backups_dir / "mid.zip", {"students.json": "[]"})
        os.utime(old, (1_700_000_000, 1_700_000_000))
        os.utime(mid, (1_700_000_500, 1_700_000_500))
        os.utime(new, (1_700_001_000, 1_700_001_000))

        names = [b.filename for b in self.manager.list_backups()]

        self.assertEqual(names, ["new.zip", "mid.zip", "old.zip"])

    def test_only_zip_files(self):
        """Test that non-zip files and directories are never listed."""
        self._make_zip(self.roots.backups_dir / "real.zip", {"students.json": "[]"})
        (self.roots.backups_dir / "notes.txt").write_text("hello")
        (self.roots.backups_dir / "archive.zip.bak").write_text("old")
        (self.roots.backups_dir / "UPPER.ZIP").write_text("case")
        (self.roots.backups_dir / "folder.zip").mkdir()

        names = [b.filename for b in self.manager.list_backups()]

        self.assertEqual(names, ["real.zip"])

    def test_get_backup(self):
        """Test fetching a single entry."""
        info = self.manager.create_backup()

        self.assertEqual(self.manager.get_backup(info.filename).size, info.size)

    def test_get_backup_missing(self):
        """Test fetching an absent entry."""
        (self.roots.backups_dir / "notes.txt").write_text("hello")

        with self.assertRaises(ArchiveNotFoundError):
            self.manager.get_backup("missing.zip")
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.get_backup("notes.txt")


class TestRestoreBackup(BackupTestCase):
    """Tests for the restore engine."""

    def test_restore_reproduces_snapshot(self):
        """Test that restore replaces the document set exactly."""
        original = {"students.json": b'[{"id":1}]', "courses.json": b"[]"}
        self._write_documents(original)
        info = self.manager.create_backup()

        self._write_documents({"students.json": b'[{"id":2}]', "payments.json": b"[9]"})
        result = self.manager.restore_backup(info.filename)

        self.assertIsInstance(result, RestoreResult)
        self.assertEqual(result.filename, info.filename)
        self.assertEqual(result.files_restored, 2)
        self.assertEqual(self._data_snapshot(), original)

    def test_restore_creates_safety_backup(self):
        """Test that the pre-restore state is archived and can be restored."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        self._write_documents({"students.json": b"[2]", "extra.json": b"[]"})
        before = self._data_snapshot()

        result = self.manager.restore_backup(info.filename)

        safety_path = self.roots.backups_dir / result.safety_backup.filename
        self.assertTrue(safety_path.is_file())
        with zipfile.ZipFile(safety_path) as zf:
            self.assertEqual(sorted(zf.namelist()), ["extra.json", "students.json"])

        self.manager.restore_backup(result.safety_backup.filename)
        self.assertEqual(self._data_snapshot(), before)

    def test_restore_same_second_does_not_clobber_target(self):
        """Test that the safety backup never overwrites the archive being restored."""
        manager = BackupManager(self.roots, clock=lambda: FIXED_TIME)
        self._write_documents({"students.json": b"[1]"})
        info = manager.create_backup()
        self._write_documents({"students.json": b"[2]"})

        result = manager.restore_backup(info.filename)

        self.assertNotEqual(result.safety_backup.filename, info.filename)
        self.assertEqual(self._data_snapshot(), {"students.json": b"[1]"})

    def test_restore_missing_archive(self):
        """Test that restoring an absent archive changes nothing."""
        self._write_documents({"students.json": b"[1]"})
        before = self._data_snapshot()

        with self.assertRaises(ArchiveNotFoundError) as cm:
            self.manager.restore_backup("missing.zip")

        self.assertEqual(cm.exception.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(self._data_snapshot(), before)
        self.assertEqual(self.manager.list_backups(), [])

    def test_restore_rejects_path_traversal(self):
        """Test that archive names outside the backups root are not found."""
        outside = self._make_zip(self.temp_dir / "outside.zip", {"students.json": "[]"})
        self.assertTrue(outside.exists())

        with self.assertRaises(ArchiveNotFoundError):
            self.manager.restore_backup("../outside.zip")
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.restore_backup(str(outside))

    def test_restore_corrupt_archive_leaves_data(self):
        """Test that a corrupt archive fails without touching the data root."""
        self._write_documents({"students.json": b"[1]"})
        before = self._data_snapshot()
        (self.roots.backups_dir / "bad.zip").write_bytes(b"this is not a zip file")

        with self.assertRaises(ArchiveFormatError) as cm:
            self.manager.restore_backup("bad.zip")

        self.assertEqual(cm.exception.kind, ErrorKind.ARCHIVE_FORMAT_ERROR)
        self.assertEqual(self._data_snapshot(), before)
        base_entries = sorted(p.name for p in self.roots.base.iterdir())
        self.assertEqual(base_entries, ["backups", "data"])

    def test_restore_corrupt_deflate_stream(self):
        """Test that a zip with a damaged compressed payload is a format error."""
        self._write_documents({"students.json": b"[1]"})
        before = self._data_snapshot()
        content = ", ".join(f'{{"id": {i}, "name": "student {i}"}}' for i in range(500))
        archive = self._make_zip(self.roots.backups_dir / "bad.zip", {"courses.json": f"[{content}]"})

        # Local header is 30 bytes plus the 12-byte entry name; payload follows
        raw = bytearray(archive.read_bytes())
        for offset in range(50, 60):
            raw[offset] ^= 0xFF
        archive.write_bytes(bytes(raw))

        with self.assertRaises(ArchiveFormatError):
            self.manager.restore_backup("bad.zip")

        self.assertEqual(self._data_snapshot(), before)
        base_entries = sorted(p.name for p in self.roots.base.iterdir())
        self.assertEqual(base_entries, ["backups", "data"])

    @unittest.skipIf(os.name == "nt", "POSIX permissions only")
    def test_restore_keeps_data_root_permissions(self):
        """Test that the restored data root keeps the previous mode."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        os.chmod(self.roots.data_dir, 0o755)

        self.manager.restore_backup(info.filename)

        self.assertEqual(self.roots.data_dir.stat().st_mode & 0o777, 0o755)

    def test_restore_does_not_bring_back_hidden_files(self):
        """Test that temp leftovers present at backup time are not restored."""
        self._write_documents({"students.json": b"[1]", ".students.x.tmp": b"["})
        info = self.manager.create_backup()

        self.manager.restore_backup(info.filename)

        self.assertEqual(self._data_snapshot(), {"students.json": b"[1]"})

    def test_restore_leaves_no_staging_directories(self):
        """Test that a successful restore cleans up after itself."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()

        self.manager.restore_backup(info.filename)

        base_entries = sorted(p.name for p in self.roots.base.iterdir())
        self.assertEqual(base_entries, ["backups", "data"])

    def test_restore_flattens_entry_names(self):
        """Test that nested or hostile entry names land flat in the data root."""
        self._make_zip(
            self.roots.backups_dir / "external.zip",
            {
                "../evil.json": "[666]",
                "nested/students.json": "[1]",
                "courses.json": "[2]",
                "folder/": "",
            },
        )

        self.manager.restore_backup("external.zip")

        self.assertEqual(
            self._data_snapshot(),
            {"evil.json": b"[666]", "students.json": b"[1]", "courses.json": b"[2]"},
        )
        self.assertFalse((self.roots.base / "evil.json").exists())
        self.assertFalse((self.temp_dir / "evil.json").exists())

    def test_restore_keeps_subdirectories(self):
        """Test that only regular files are replaced."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        nested = self.roots.data_dir / "attachments"
        nested.mkdir()
        (nested / "photo.json").write_bytes(b"{}")

        self.manager.restore_backup(info.filename)

        self.assertEqual((nested / "photo.json").read_bytes(), b"{}")

    def test_restore_empty_archive_clears_documents(self):
        """Test that restoring an empty snapshot removes all documents."""
        info = self.manager.create_backup()
        self._write_documents({"students.json": b"[1]"})

        result = self.manager.restore_backup(info.filename)

        self.assertEqual(result.files_restored, 0)
        self.assertEqual(self._data_snapshot(), {})

    def test_restore_aborts_when_safety_backup_fails(self):
        """Test that no destructive step runs without a safety backup."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        self._write_documents({"students.json": b"[2]"})

        with patch.object(
            BackupManager,
            "_create_backup_locked",
            side_effect=StorageIOError("disk full"),
        ):
            with self.assertRaises(StorageIOError):
                self.manager.restore_backup(info.filename)

        self.assertEqual(self._data_snapshot(), {"students.json": b"[2]"})

    def test_restore_swap_failure_keeps_old_data(self):
        """Test that a failed swap puts the previous data root back."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        self._write_documents({"students.json": b"[2]"})
        real_rename = os.rename
        calls = []

        def flaky_rename(src, dst):
            calls.append((src, dst))
            if len(calls) == 2:
                raise OSError("rename failed")
            return real_rename(src, dst)

        with patch("docvault.backup.manager.os.rename", side_effect=flaky_rename):
            with self.assertRaises(StorageIOError):
                self.manager.restore_backup(info.filename)

        self.assertEqual(self._data_snapshot(), {"students.json": b"[2]"})
        base_entries = sorted(p.name for p in self.roots.base.iterdir())
        self.assertEqual(base_entries, ["backups", "data"])

    def test_restore_failed_rollback_reports_preserved_data(self):
        """Test that a failed rollback says where the previous data went."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        self._write_documents({"students.json": b"[2]"})
        real_rename = os.rename
        calls = []

        def failing_rename(src, dst):
            calls.append((src, dst))
            if len(calls) >= 2:
                raise OSError("rename failed")
            return real_rename(src, dst)

        with patch("docvault.backup.manager.os.rename", side_effect=failing_rename):
            with self.assertLogs("docvault.backup.manager", level="CRITICAL") as logs:
                with self.assertRaises(StorageIOError) as cm:
                    self.manager.restore_backup(info.filename)

        retired = Path(cm.exception.path)
        self.assertTrue(retired.name.startswith(".retired-"))
        self.assertEqual((retired / "students.json").read_bytes(), b"[2]")
        self.assertIn(str(retired), "\n".join(logs.output))
        self.assertIn(str(retired), cm.exception.message)

    def test_restored_documents_load(self):
        """Test that the document store reads restored content."""
        self.store.save("students", '[{"id":1}]')
        info = self.manager.create_backup()
        self.store.save("students", "[]")

        self.manager.restore_backup(info.filename)

        self.assertEqual(self.store.load("students"), '[{"id":1}]')


class TestImportBackup(BackupTestCase):
    """Tests for the import validator."""

    def test_import_missing_source(self):
        """Test importing a path that does not exist."""
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.import_backup(self.temp_dir / "nope.zip")

    def test_import_directory_source(self):
        """Test importing a directory."""
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.import_backup(self.temp_dir)

    def test_import_not_a_zip(self):
        """Test importing a non-zip file."""
        source = self.temp_dir / "fake.zip"
        source.write_text("plain text")

        with self.assertRaises(ArchiveFormatError):
            self.manager.import_backup(source)

        self.assertEqual(self.manager.list_backups(), [])

    def test_import_without_recognized_keys(self):
        """Test importing a zip with no recognized documents."""
        source = self._make_zip(
            self.temp_dir / "other.zip",
            {"photos.json": "[]", "data/students.json": "[]"},
        )

        with self.assertRaises(ArchiveValidationError) as cm:
            self.manager.import_backup(source)

        self.assertEqual(cm.exception.kind, ErrorKind.VALIDATION_ERROR)
        self.assertEqual(self.manager.list_backups(), [])

    def test_import_default_whitelist(self):
        """Test that only courses, students and enrollments are recognized by default."""
        source = self._make_zip(self.temp_dir / "att.zip", {"attendances.json": "[]"})

        with self.assertRaises(ArchiveValidationError):
            self.manager.import_backup(source)

        for key in ("courses.json", "students.json", "enrollments.json"):
            ok = self._make_zip(self.temp_dir / f"ok_{key}.zip", {key: "[]"})
            self.assertTrue(self.manager.import_backup(ok).filename.endswith(".zip"))

    def test_import_one_recognized_key(self):
        """Test that one recognized document is enough."""
        source = self._make_zip(self.temp_dir / "ok.zip", {"students.json": "[]"})

        info = self.manager.import_backup(source)

        self.assertIn("_external_", info.filename)
        self.assertTrue(info.filename.startswith("backup_external_"))
        self.assertEqual(info.size, source.stat().st_size)
        self.assertEqual((self.roots.backups_dir / info.filename).read_bytes(), source.read_bytes())
        self.assertEqual([b.filename for b in self.manager.list_backups()], [info.filename])

    def test_import_with_label(self):
        """Test label prefix on imported archives."""
        source = self._make_zip(self.temp_dir / "ok.zip", {"courses.json": "[]"})
        manager = BackupManager(self.roots, clock=lambda: FIXED_TIME)

        info = manager.import_backup(str(source), label="Acme")

        self.assertEqual(info.filename, "Acme_backup_external_20240115_103000.zip")

    def test_import_custom_recognized_keys(self):
        """Test configurable recognized documents."""
        source = self._make_zip(self.temp_dir / "ok.zip", {"inventory.json": "[]"})
        manager = BackupManager(self.roots, recognized_keys=["inventory.json"])

        info = manager.import_backup(source)

        self.assertTrue((self.roots.backups_dir / info.filename).exists())

    def test_imported_archive_restores(self):
        """Test that an imported archive can be restored."""
        source = self._make_zip(
            self.temp_dir / "ok.zip",
            {"students.json": '[{"id":7}]', "enrollments.json": "[]"},
        )
        info = self.manager.import_backup(source)

        self.manager.restore_backup(info.filename)

        self.assertEqual(
            self._data_snapshot(),
            {"students.json": b'[{"id":7}]', "enrollments.json": b"[]"},
        )


class TestExportAndDelete(BackupTestCase):
    """Tests for export and delete."""

    def test_export_to_file(self):
        """Test exporting to a file path."""
        self._write_documents({"students.json": b"[1]"})
        info = self.manager.create_backup()
        dest = self.temp_dir / "copy.zip"

        written = self.manager.export_backup(info.filename, dest)

        self.assertEqual(written, dest)
        self.assertEqual(dest.read_bytes(), (self.roots.backups_dir / info.filename).read_bytes())

    def test_export_to_directory(self):
        """Test exporting into a directory keeps the archive name."""
        info = self.manager.create_backup()
        dest_dir = self.temp_dir / "exports"
        dest_dir.mkdir()

        written = self.manager.export_backup(info.filename, str(dest_dir))

        self.assertEqual(written, dest_dir / info.filename)
        self.assertTrue(written.is_file())

    def test_export_missing(self):
        """Test exporting an absent archive."""
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.export_backup("missing.zip", self.temp_dir / "copy.zip")

    def test_export_unwritable_destination(self):
        """Test exporting to a destination that cannot be created."""
        info = self.manager.create_backup()

        with self.assertRaises(StorageIOError):
            self.manager.export_backup(info.filename, self.temp_dir / "no" / "such" / "dir.zip")

    def test_delete(self):
        """Test that a deleted archive disappears from the catalog."""
        info = self.manager.create_backup()

        self.manager.delete_backup(info.filename)

        self.assertNotIn(info.filename, [b.filename for b in self.manager.list_backups()])
        self.assertFalse((self.roots.backups_dir / info.filename).exists())

    def test_delete_missing(self):
        """Test deleting an absent archive."""
        with self.assertRaises(ArchiveNotFoundError):
            self.manager.delete_backup("missing.zip")

    def test_delete_twice(self):
        """Test that a second delete reports not found."""
        info = self.manager.create_backup()
        self.manager.delete_backup(info.filename)

        with self.assertRaises(ArchiveNotFoundError):
            self.manager.delete_backup(info.filename)

    def test_delete_rejects_traversal(self):
        """Test that delete cannot reach outside the backups root."""
        victim = self.temp_dir / "victim.zip"
        victim.write_bytes(b"keep me")

        with self.assertRaises(ArchiveNotFoundError):
            self.manager.delete_backup("../../victim.zip")

        self.assertTrue(victim.exists())


class TestBackupInfo(unittest.TestCase):
    """Tests for BackupInfo dataclass."""

    def test_round_trip_dict(self):
        """Test serialization to and from a dictionary."""
        info = BackupInfo(
            filename="backup_20240115_103000.zip",
            size=1024,
            created_at=datetime(2024, 1, 15, 10, 30).astimezone(),
        )

        data = info.to_dict()

        self.assertEqual(data["filename"], "backup_20240115_103000.zip")
        self.assertEqual(data["size"], 1024)
        self.assertTrue(data["created_at"].startswith("2024-01-15T10:30:00"))
        self.assertEqual(BackupInfo.from_dict(data), info)


if __name__ == "__main__":
    unittest.main()
