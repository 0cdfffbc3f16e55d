"""End-to-end push/audit runs against the in-memory remote."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest
from conftest import write_file

from ftpsync.exceptions import TooManyUploadFailures
from ftpsync.mirror import audit_remote, local_status, push_to_remote


def _md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class TestPush:
    def test_initial_push_of_small_site(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "index.html", b"0123456789")
        write_file(local_root, "img/logo.png", b"p" * 500)

        result = push_to_remote(config, session_factory=session_factory)

        assert result.ok
        assert fake_session.mutations() == [
            ("mkdir", "img"),
            ("put", "img/logo.png"),
            ("put", "index.html"),
        ]
        lines = config.state_path.read_text(encoding="utf-8").splitlines()
        logo_mtime = (local_root / "img/logo.png").stat().st_mtime_ns
        index_mtime = (local_root / "index.html").stat().st_mtime_ns
        assert lines == [
            f"FILE {logo_mtime} {_md5(b'p' * 500)} img/logo.png",
            f"FILE {index_mtime} {_md5(b'0123456789')} index.html",
        ]
        assert fake_session.quit_count == 1

    def test_second_run_without_changes_is_a_no_op(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "index.html", b"hello")
        write_file(local_root, "img/logo.png", b"png")
        push_to_remote(config, session_factory=session_factory)
        state_before = config.state_path.read_bytes()
        calls_before = list(fake_session.calls)

        result = push_to_remote(config, session_factory=session_factory)

        assert result.ok
        assert not result.state_rewritten
        assert fake_session.calls == calls_before
        assert config.state_path.read_bytes() == state_before
        assert len(session_factory.opened) == 1
        assert sorted(result.skipped_paths) == ["img/logo.png", "index.html"]

    def test_interrupted_upload_is_retried(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "index.html", b"hello")
        push_to_remote(config, session_factory=session_factory)
        with config.state_path.open("a", encoding="utf-8") as fh:
            fh.write("FILE 0 unknown index.html\n")

        result = push_to_remote(config, session_factory=session_factory)

        assert result.execution.uploaded_paths == ["index.html"]
        assert config.state_path.read_text(encoding="utf-8").splitlines() == [
            f"FILE {(local_root / 'index.html').stat().st_mtime_ns} {_md5(b'hello')} index.html"
        ]

    def test_removed_file_is_deleted_with_its_directory(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "keep.txt", b"k")
        old = write_file(local_root, "archive/old.txt", b"o")
        push_to_remote(config, session_factory=session_factory)
        old.unlink()
        old.parent.rmdir()
        fake_session.calls.clear()

        result = push_to_remote(config, session_factory=session_factory)

        assert fake_session.mutations() == [("delete", "archive/old.txt"), ("rmdir", "archive")]
        assert result.execution.deleted_paths == ["archive/old.txt"]
        assert "archive/old.txt" not in config.state_path.read_text(encoding="utf-8")

    def test_touched_file_is_not_reuploaded(self, config, local_root, fake_session, session_factory):
        path = write_file(local_root, "a.txt", b"same")
        push_to_remote(config, session_factory=session_factory)
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
        fake_session.calls.clear()

        result = push_to_remote(config, session_factory=session_factory)

        assert fake_session.calls == []
        assert result.ok
        assert result.execution.refreshed_paths == ["a.txt"]
        assert str(stat.st_mtime_ns + 5_000_000_000) in config.state_path.read_text(encoding="utf-8")

    def test_dry_run_changes_nothing(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "a/b.txt", b"x")

        result = push_to_remote(config, dry_run=True, session_factory=session_factory)

        assert result.ok
        assert fake_session.calls == []
        assert session_factory.opened == []
        assert not config.state_path.exists()

    def test_cli_exclusions_apply_to_absolute_paths(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "a.txt", b"x")
        write_file(local_root, "debug.log", b"x")

        push_to_remote(config, exclude_patterns=("*.log",), session_factory=session_factory)

        assert fake_session.mutations() == [("put", "a.txt")]

    def test_repeated_upload_failures_abort_without_rewrite(self, config, local_root, fake_session, session_factory):
        for name in "abcde":
            write_file(local_root, f"{name}.txt", name)
        fake_session.fail_put_all = True

        with pytest.raises(TooManyUploadFailures):
            push_to_remote(config, session_factory=session_factory)

        lines = config.state_path.read_text(encoding="utf-8").splitlines()
        assert lines == [f"FILE 0 unknown {name}.txt" for name in "abcd"]
        assert fake_session.quit_count == 1


class TestLocalStatus:
    def test_classifies_changes_without_a_session(self, config, local_root, session_factory):
        write_file(local_root, "same.txt", b"s")
        changed = write_file(local_root, "changed.txt", b"v1")
        gone = write_file(local_root, "gone.txt", b"g")
        push_to_remote(config, session_factory=session_factory)
        changed.write_bytes(b"version two")
        os.utime(changed, ns=(0, changed.stat().st_mtime_ns + 1_000_000_000))
        gone.unlink()
        write_file(local_root, "new.txt", b"n")

        result = local_status(config)

        assert result.new_paths == ["new.txt"]
        assert result.modified_paths == ["changed.txt"]
        assert result.deleted_paths == ["gone.txt"]
        assert result.upload_bytes == len(b"n") + len(b"version two")


class TestAuditRemote:
    def test_reports_stray_file_and_mutates_nothing(self, config, local_root, fake_session, session_factory):
        write_file(local_root, "index.html", b"0123456789")
        push_to_remote(config, session_factory=session_factory)
        state_before = config.state_path.read_bytes()
        fake_session.calls.clear()
        fake_session.listing = [
            "-rw-r--r--   1 web web 10 Jan 12 10:31 index.html",
            "-rw-r--r--   1 web web  3 Jan 12 10:31 stray.txt",
        ]

        report = audit_remote(config, session_factory=session_factory)

        assert report.unexpected_files == ["stray.txt"]
        assert report.size_mismatches == []
        assert fake_session.calls == [("list", "")]
        assert config.state_path.read_bytes() == state_before

    def test_configured_audit_exclusions(self, config, local_root, fake_session, session_factory):
        config.audit_exclude = ["stats/"]
        fake_session.listing = [
            "drwxr-xr-x 2 u g 4096 Jan  1 00:00 stats",
            "",
            "./stats:",
            "-rw-r--r-- 1 u g 3 Jan  1 00:00 hits.txt",
        ]

        report = audit_remote(config, session_factory=session_factory)

        assert report.unused_dirs == []
        assert not report.has_findings

    def test_locally_deleted_file_is_not_a_size_mismatch(self, config, local_root, fake_session, session_factory):
        """A recorded file removed locally but not pushed yet has no local size to compare."""
        gone = write_file(local_root, "gone.txt", b"12345")
        push_to_remote(config, session_factory=session_factory)
        gone.unlink()
        fake_session.listing = ["-rw-r--r-- 1 u g 5 Jan  1 00:00 gone.txt"]

        report = audit_remote(config, session_factory=session_factory)

        assert report.size_mismatches == []
        assert not report.has_findings
