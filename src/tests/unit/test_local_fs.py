"""Tests for quire.fs.local module."""

import asyncio
import os

import pytest

from quire.core.types import FileEventType, NodeKind
from quire.fs.local import LocalFileSystem, diff_snapshots, is_supported_file, stat_snapshot


@pytest.fixture
def vault(tmp_path):
    """A small vault on disk."""
    root = tmp_path / "vault"
    (root / "notes" / "deep").mkdir(parents=True)
    (root / "notes" / "a.md").write_text("alpha")
    (root / "notes" / "deep" / "c.MD").write_text("charlie")
    (root / "B.md").write_text("bravo")
    (root / "pic.png").write_bytes(b"\x89PNG")
    (root / "script.py").write_text("print()")
    (root / ".hidden.md").write_text("secret")
    (root / ".obsidian").mkdir()
    (root / ".obsidian" / "app.md").write_text("{}")
    return root


@pytest.fixture
def local_fs():
    return LocalFileSystem(poll_interval=0.02)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("a.md", True),
        ("a.MD", True),
        ("a.Md", False),
        ("photo.jpeg", True),
        ("icon.svg", True),
        ("script.py", False),
        ("md", False),
    ],
)
def test_is_supported_file(name, expected):
    """Only notes and known image types are shown."""
    assert is_supported_file(name) is expected


class TestScan:
    """Tests for directory scanning."""

    @pytest.mark.asyncio
    async def test_scan_filters_and_sorts(self, local_fs, vault):
        """Hidden entries and unsupported files are skipped; folders come first."""
        nodes = await local_fs.scan_directory(str(vault))

        assert [n.name for n in nodes] == ["notes", "B.md", "pic.png"]
        notes = nodes[0]
        assert notes.kind is NodeKind.FOLDER
        assert [c.name for c in notes.children] == ["deep", "a.md"]
        assert notes.children[0].children[0].name == "c.MD"

    @pytest.mark.asyncio
    async def test_ids_are_stable(self, local_fs, vault):
        """Two scans of an unchanged folder produce identical ids."""
        first = await local_fs.scan_directory(str(vault))
        second = await local_fs.scan_directory(str(vault))

        assert [n.id for n in first] == [n.id for n in second]

    @pytest.mark.asyncio
    async def test_scan_missing_directory(self, local_fs, tmp_path):
        """Scanning a missing folder raises."""
        with pytest.raises(FileNotFoundError, match="does not exist"):
            await local_fs.scan_directory(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_scan_file_path(self, local_fs, vault):
        """Scanning a file raises."""
        with pytest.raises(NotADirectoryError):
            await local_fs.scan_directory(str(vault / "B.md"))

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions")
    @pytest.mark.asyncio
    async def test_unreadable_subfolder_becomes_empty(self, local_fs, vault):
        """A sub-folder that cannot be listed is kept with no children."""
        locked = vault / "locked"
        locked.mkdir()
        (locked / "x.md").write_text("x")
        locked.chmod(0)
        try:
            nodes = await local_fs.scan_directory(str(vault))
        finally:
            locked.chmod(0o755)

        node = next(n for n in nodes if n.name == "locked")
        assert node.children == ()


class TestCommands:
    """Tests for file commands."""

    @pytest.mark.asyncio
    async def test_read_and_write(self, local_fs, vault):
        """write_file then read_file returns the new text."""
        path = str(vault / "B.md")

        await local_fs.write_file(path, "updated")

        assert await local_fs.read_file(path) == "updated"

    @pytest.mark.asyncio
    async def test_write_requires_parent(self, local_fs, vault):
        """Writing into a missing folder fails."""
        with pytest.raises(FileNotFoundError, match="Parent directory"):
            await local_fs.write_file(str(vault / "nope" / "x.md"), "x")

    @pytest.mark.asyncio
    async def test_create_note_names(self, local_fs, vault):
        """Notes are named Untitled.md, then Untitled 1.md."""
        first = await local_fs.create_note(str(vault))
        second = await local_fs.create_note(str(vault))

        assert first.name == "Untitled.md"
        assert second.name == "Untitled 1.md"
        assert (vault / "Untitled 1.md").read_text() == ""

    @pytest.mark.asyncio
    async def test_create_folder_names(self, local_fs, vault):
        """Folders are named Untitled Folder, then Untitled Folder 1."""
        first = await local_fs.create_folder(str(vault))
        second = await local_fs.create_folder(str(vault))

        assert first.kind is NodeKind.FOLDER
        assert (first.name, second.name) == ("Untitled Folder", "Untitled Folder 1")

    @pytest.mark.asyncio
    async def test_duplicate_names(self, local_fs, vault):
        """Copies are named '<stem> copy' then '<stem> copy 1'."""
        first = await local_fs.duplicate_file(str(vault / "B.md"))
        second = await local_fs.duplicate_file(str(vault / "B.md"))

        assert (first.name, second.name) == ("B copy.md", "B copy 1.md")
        assert (vault / "B copy.md").read_text() == "bravo"

    @pytest.mark.asyncio
    async def test_delete_file_and_folder(self, local_fs, vault):
        """Files and whole folders can be deleted."""
        await local_fs.delete_path(str(vault / "B.md"))
        await local_fs.delete_path(str(vault / "notes"))

        assert not (vault / "B.md").exists()
        assert not (vault / "notes").exists()

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, local_fs, vault):
        """Deleting a missing path raises."""
        with pytest.raises(FileNotFoundError):
            await local_fs.delete_path(str(vault / "ghost.md"))

    @pytest.mark.asyncio
    async def test_rename_file(self, local_fs, vault):
        """Renaming returns the node at its new path."""
        node = await local_fs.rename_path(str(vault / "B.md"), str(vault / "Bravo.md"))

        assert node.name == "Bravo.md"
        assert node.kind is NodeKind.FILE
        assert (vault / "Bravo.md").exists()

    @pytest.mark.asyncio
    async def test_rename_folder_includes_children(self, local_fs, vault):
        """A renamed folder comes back with its scanned children."""
        node = await local_fs.rename_path(str(vault / "notes"), str(vault / "archive"))

        assert node.kind is NodeKind.FOLDER
        assert {c.name for c in node.children} == {"deep", "a.md"}

    @pytest.mark.asyncio
    async def test_rename_refuses_existing_target(self, local_fs, vault):
        """An existing target is never overwritten."""
        with pytest.raises(FileExistsError):
            await local_fs.rename_path(str(vault / "B.md"), str(vault / "pic.png"))

        assert (vault / "B.md").read_text() == "bravo"


class TestWatching:
    """Tests for the polling watcher."""

    def test_diff_snapshots(self):
        """Created, deleted and modified files are reported."""
        before = {"/v/a.md": (False, 1, 1), "/v/b.md": (False, 1, 1), "/v/d": (True, 1, 0)}
        after = {"/v/a.md": (False, 2, 5), "/v/c.md": (False, 1, 1), "/v/d": (True, 2, 0)}

        events = {(e.type, e.path) for e in diff_snapshots(before, after)}

        assert events == {
            (FileEventType.CREATE, "/v/c.md"),
            (FileEventType.DELETE, "/v/b.md"),
            (FileEventType.MODIFY, "/v/a.md"),
        }

    def test_stat_snapshot_skips_hidden(self, vault):
        """Hidden files and folders are not watched."""
        snapshot = stat_snapshot(vault)

        assert str(vault / "notes" / "deep" / "c.MD") in snapshot
        assert not any(".obsidian" in path or ".hidden" in path for path in snapshot)

    @pytest.mark.asyncio
    async def test_created_file_delivered(self, local_fs, vault):
        """A file created while watching is reported to subscribers."""
        events = []
        local_fs.subscribe_change_events(events.append)
        await local_fs.start_watching(str(vault))
        try:
            (vault / "new.md").write_text("hi")
            await asyncio.sleep(0.15)
        finally:
            await local_fs.stop_watching()

        assert (FileEventType.CREATE, str(vault / "new.md")) in {(e.type, e.path) for e in events}

    @pytest.mark.asyncio
    async def test_no_events_after_stop(self, local_fs, vault):
        """Stopping ends polling."""
        events = []
        local_fs.subscribe_change_events(events.append)
        await local_fs.start_watching(str(vault))
        await local_fs.stop_watching()

        (vault / "late.md").write_text("x")
        await asyncio.sleep(0.1)

        assert events == []
        assert local_fs.watching_path is None

    @pytest.mark.asyncio
    async def test_unsubscribe(self, local_fs, vault):
        """Unsubscribed callbacks receive nothing."""
        events = []
        unsubscribe = local_fs.subscribe_change_events(events.append)
        unsubscribe()
        await local_fs.start_watching(str(vault))
        try:
            (vault / "new.md").write_text("hi")
            await asyncio.sleep(0.1)
        finally:
            await local_fs.stop_watching()

        assert events == []

    @pytest.mark.asyncio
    async def test_start_watching_missing_folder(self, local_fs, tmp_path):
        """Watching a missing folder fails up front."""
        with pytest.raises(FileNotFoundError):
            await local_fs.start_watching(str(tmp_path / "missing"))
