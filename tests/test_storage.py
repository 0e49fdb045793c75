"""Tests for the session bundle storage."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from arlog.items import LogItem, LogLevel, LogSymbol
from arlog.session import AppInfo, LogSession
from arlog.storage import BundleCreateError, BundleListingError, SessionFolder
from arlog.storage.local_file_system import SessionRepositoryLocalFileSystem, snapshot_path

START = datetime(2024, 5, 17, 9, 30, 15, 250_000)


def make_folders(root: Path, names: list[str]) -> None:
    for name in names:
        (root / name).mkdir(parents=True)


class TestSessionRepositoryLocalFileSystem:
    """Tests for SessionRepositoryLocalFileSystem."""

    @pytest.fixture
    def repo(self, tmp_path: Path) -> SessionRepositoryLocalFileSystem:
        return SessionRepositoryLocalFileSystem(tmp_path / 'ARlogs', max_saved_sessions=4)

    def test_create_names_folder_after_start(self, repo):
        folder = repo.create(START)
        assert folder.name == '2024-05-17 093015'
        assert folder.path.is_dir()
        assert folder.warnings == []

    def test_create_creates_root(self, repo):
        assert not repo.root.exists()
        repo.create(START)
        assert repo.root.is_dir()

    def test_retention_keeps_max(self, repo):
        """Five saved sessions with a maximum of four leave four after creating one."""
        make_folders(repo.root, [f'2024-05-1{i} 120000' for i in range(5)])
        folder = repo.create(START)
        names = [p.name for p in repo.folders()]
        assert len(names) == 4
        assert folder.name in names
        assert names[:3] == ['2024-05-12 120000', '2024-05-13 120000', '2024-05-14 120000']

    def test_retention_below_max(self, repo):
        make_folders(repo.root, ['2024-05-10 120000', '2024-05-11 120000'])
        repo.create(START)
        assert len(repo.folders()) == 3

    def test_retention_ignores_files(self, repo):
        make_folders(repo.root, ['2024-05-10 120000'])
        (repo.root / 'notes.txt').write_text('keep me')
        repo.create(START)
        assert (repo.root / 'notes.txt').exists()
        assert len(repo.folders()) == 2

    def test_single_session_slot(self, tmp_path: Path):
        repo = SessionRepositoryLocalFileSystem(tmp_path, max_saved_sessions=1)
        make_folders(tmp_path, ['2024-05-10 120000', '2024-05-11 120000'])
        repo.create(START)
        assert [p.name for p in repo.folders()] == ['2024-05-17 093015']

    def test_invalid_max(self, tmp_path: Path):
        with pytest.raises(ValueError):
            SessionRepositoryLocalFileSystem(tmp_path, max_saved_sessions=0)

    def test_listing_failure(self, tmp_path: Path):
        """A storage root that is a file cannot be listed."""
        root = tmp_path / 'ARlogs'
        root.write_text('not a directory')
        repo = SessionRepositoryLocalFileSystem(root)
        with pytest.raises(BundleListingError):
            repo.create(START)

    def test_create_failure(self, tmp_path: Path):
        """A file in place of the session folder blocks creation."""
        repo = SessionRepositoryLocalFileSystem(tmp_path)
        (tmp_path / '2024-05-17 093015').write_text('in the way')
        with pytest.raises(BundleCreateError):
            repo.create(START)

    def test_deletion_failure_becomes_warning(self, repo, monkeypatch):
        make_folders(repo.root, [f'2024-05-1{i} 120000' for i in range(4)])

        def refuse(path, *args, **kwargs):
            raise PermissionError(f'cannot delete {path}')

        monkeypatch.setattr('arlog.storage.local_file_system.shutil.rmtree', refuse)
        folder = repo.create(START)
        assert len(folder.warnings) == 1
        assert '2024-05-10 120000' in folder.warnings[0]
        assert folder.path.is_dir()

    def test_save_and_get(self, repo):
        folder = repo.create(START)
        session = LogSession.new('Demo', START, AppInfo(app_name='Viewer', app_version='1.2'))
        session.append(LogItem.create(LogLevel.INFO, 'Info', 'hello', elapsed=0.0))
        session.append(LogItem.create(LogSymbol.CAM, 'cam', '1 0 0 0', elapsed=0.5, with_status=False))
        repo.save(folder, session)

        assert folder.session_file.is_file()
        loaded = repo.get(folder.name)
        assert loaded == session
        assert loaded.session_start == START
        assert [i.title for i in loaded.log_items] == ['Info', 'cam']

    def test_get_missing(self, repo):
        assert repo.get('2000-01-01 000000') is None

    def test_all_skips_incomplete_folders(self, repo):
        folder = repo.create(START)
        repo.save(folder, LogSession.new('Demo', START))
        make_folders(repo.root, ['2024-05-10 120000'])
        assert [s.session_name for s in repo.all()] == ['Demo']

    def test_all_empty(self, repo):
        assert list(repo.all()) == []


class TestSessionFolder:
    """Tests for bundle layout."""

    def test_layout(self, tmp_path: Path):
        folder = SessionFolder(path=tmp_path / '2024-05-17 093015')
        assert folder.session_file.name == 'session.json'
        assert folder.screen_file.name == 'screen.mp4'
        assert folder.scenes.name == 'scenes'
        assert folder.maps.name == 'maps'

    def test_snapshot_path_creates_directory(self, tmp_path: Path):
        path = snapshot_path(tmp_path / 'scenes', START, 'json')
        assert path.parent.is_dir()
        assert path.name == '093015250.json'
