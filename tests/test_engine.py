import os
import shutil
import zipfile

import pytest

from remotefm.errors import ErrorKind


def _log_lines(events):
    return [c.args[0] for c in events.on_log.call_args_list]


@pytest.fixture
def local_tree(tmp_path):
    local = tmp_path / "local"
    (local / "folder" / "empty").mkdir(parents=True)
    (local / "folder" / "inner.txt").write_text("inner")
    (local / "file.txt").write_text("top")
    return local


# -- create / rename -----------------------------------------------------


def test_create_folder(engine, session, events):
    result = engine.create_folder("new", "~")

    assert result.is_success
    assert result.payload == "/home/user/new"
    assert session.local("/home/user/new").is_dir()
    assert "Successfully created folder 'new'" in _log_lines(events)[-1]
    assert events.on_progress.call_args_list[-1].args[0] is False


@pytest.mark.parametrize("name", ["", "   ", "a/b", ".."])
def test_create_folder_rejects_invalid_names(engine, session, name):
    result = engine.create_folder(name, "/home/user")

    assert not result.is_success
    assert result.error_kind is ErrorKind.INVALID_REQUEST
    assert sorted(os.listdir(session.local("/home/user"))) == []


def test_create_existing_folder_fails(engine, session):
    session.mkdir("/home/user/taken")

    result = engine.create_folder("taken", "/home/user")

    assert result.error_kind is ErrorKind.TRANSFER_FAILURE


def test_rename(engine, session):
    session.write("/home/user/old.txt", "x")

    result = engine.rename("~/old.txt", "new.txt")

    assert result.is_success
    assert result.payload == "/home/user/new.txt"
    assert session.read("/home/user/new.txt") == "x"
    assert not session.has("/home/user/old.txt")


# -- paste ---------------------------------------------------------------


@pytest.mark.parametrize("commands_enabled", [True, False])
def test_cut_paste_moves_file_and_clears_clipboard(engine, session, commands_enabled):
    session.commands_enabled = commands_enabled
    session.write("/src/file.txt", "payload contents")
    session.mkdir("/dst")
    engine.update_clipboard("/src/file.txt", is_cut=True)

    result = engine.paste("/dst")

    assert result.is_success
    assert not session.has("/src/file.txt")
    assert session.read("/dst/file.txt") == "payload contents"
    assert not engine.has_clipboard_content
    assert not engine.is_clipboard_cut


def test_copy_paste_folder_via_fast_path(engine, session):
    session.write("/src/dir/a.txt", "a")
    session.mkdir("/dst")
    engine.update_clipboard("/src/dir", is_cut=False)

    result = engine.paste("/dst")

    assert result.is_success
    assert session.commands == ["cp -R -- /src/dir /dst/dir"]
    assert session.read("/dst/dir/a.txt") == "a"
    assert session.has("/src/dir/a.txt")
    # copies clear the clipboard too
    assert not engine.has_clipboard_content


def test_copy_paste_folder_falls_back_when_command_fails(engine, session, events):
    session.commands_enabled = False
    session.write("/src/dir/a.txt", "a")
    session.write("/src/dir/sub/b.txt", "b")
    session.mkdir("/src/dir/sub/empty")
    session.mkdir("/dst")
    engine.update_clipboard("/src/dir", is_cut=False)

    result = engine.paste("/dst")

    assert result.is_success
    assert len(session.commands) == 1
    assert session.read("/dst/dir/a.txt") == "a"
    assert session.read("/dst/dir/sub/b.txt") == "b"
    assert session.local("/dst/dir/sub/empty").is_dir()
    assert any("falling back" in line for line in _log_lines(events))


def test_cut_paste_folder_fallback_removes_source(engine, session):
    session.commands_enabled = False
    session.write("/src/dir/a.txt", "a")
    session.write("/src/dir/sub/b.txt", "b")
    session.mkdir("/dst")
    engine.update_clipboard("/src/dir", is_cut=True)

    result = engine.paste("/dst")

    assert result.is_success
    assert not session.has("/src/dir")
    assert session.read("/dst/dir/sub/b.txt") == "b"


def test_paste_into_own_subtree_is_rejected(engine, session):
    session.mkdir("/a/b/c")
    engine.update_clipboard("/a/b", is_cut=False)

    result = engine.paste("/a/b/c")

    assert not result.is_success
    assert result.error_kind is ErrorKind.SAFETY_VIOLATION
    assert session.commands == []
    assert not session.has("/a/b/c/b")
    assert engine.clipboard_path == "/a/b"


def test_multi_paste_rejects_any_nested_item(engine, session):
    session.write("/src/ok.txt", "ok")
    session.mkdir("/src/dir/inner")
    engine.update_multi_clipboard(["/src/ok.txt", "/src/dir"], is_cut=True)

    result = engine.paste("/src/dir/inner")

    assert result.error_kind is ErrorKind.SAFETY_VIOLATION
    assert session.commands == []
    assert session.has("/src/ok.txt")


def test_paste_with_empty_clipboard(engine):
    result = engine.paste("/home/user")

    assert result.error_kind is ErrorKind.INVALID_REQUEST


def test_multi_paste_fast_path_single_command(engine, session):
    session.write("/src/a.txt", "a")
    session.write("/src/dir/b.txt", "b")
    session.mkdir("/dst")
    engine.update_multi_clipboard(["/src/a.txt", "/src/dir"], is_cut=True)

    result = engine.paste("/dst")

    assert result.is_success
    assert session.commands == ["mv -f -- /src/a.txt /src/dir /dst"]
    assert session.read("/dst/a.txt") == "a"
    assert session.read("/dst/dir/b.txt") == "b"
    assert not engine.has_clipboard_content


def test_multi_paste_fallback_continues_past_failures(engine, session):
    session.commands_enabled = False
    session.write("/src/a.txt", "a")
    session.write("/src/dir/b.txt", "b")
    session.mkdir("/dst")
    engine.update_multi_clipboard(["/src/a.txt", "/src/missing.txt", "/src/dir"], is_cut=False)

    result = engine.paste("/dst")

    assert result.is_success
    assert result.payload["succeeded"] == 2
    assert len(result.payload["errors"]) == 1
    assert "missing.txt" in result.payload["errors"][0]
    assert session.read("/dst/a.txt") == "a"
    assert session.read("/dst/dir/b.txt") == "b"
    assert not engine.has_clipboard_content


def test_multi_paste_fails_when_nothing_succeeded(engine, session):
    session.commands_enabled = False
    session.mkdir("/dst")
    engine.update_multi_clipboard(["/src/x", "/src/y"], is_cut=False)

    result = engine.paste("/dst")

    assert not result.is_success
    assert result.error_kind is ErrorKind.TRANSFER_FAILURE
    assert "0 successful, 2 failed" in result.error_message


def test_cancelled_paste_keeps_clipboard(engine, session):
    session.commands_enabled = False
    session.write("/src/big.bin", "x" * 64)
    session.mkdir("/dst")
    engine.update_clipboard("/src/big.bin", is_cut=True)
    source = engine.begin_operation("paste")
    session.on_chunk = source.cancel

    result = engine.paste("/dst", operation=source)

    assert result.is_cancelled
    assert result.error_message == "cancelled"
    assert engine.has_clipboard_content
    assert session.has("/src/big.bin")


def _cancel_on_chunk(source, session, at):
    seen = []

    def _chunk():
        seen.append(None)
        if len(seen) == at:
            source.cancel()

    session.on_chunk = _chunk


def test_cancel_while_writing_removes_partial_destination(engine, session):
    session.commands_enabled = False
    session.write("/src/big.bin", "x" * 64)
    session.mkdir("/dst")
    engine.update_clipboard("/src/big.bin", is_cut=False)
    source = engine.begin_operation("paste")
    # 16 chunks to read the source, then the write starts
    _cancel_on_chunk(source, session, 19)

    result = engine.paste("/dst", operation=source)

    assert result.is_cancelled
    assert not session.has("/dst/big.bin")
    assert session.read("/src/big.bin") == "x" * 64


def test_cancel_while_mirroring_removes_partial_file(engine, session):
    session.commands_enabled = False
    session.write("/src/dir/big.bin", "x" * 64)
    session.mkdir("/dst")
    engine.update_clipboard("/src/dir", is_cut=False)
    source = engine.begin_operation("paste")
    _cancel_on_chunk(source, session, 19)

    result = engine.paste("/dst", operation=source)

    assert result.is_cancelled
    assert not session.has("/dst/dir/big.bin")
    assert session.has("/src/dir/big.bin")


@pytest.mark.parametrize("items", [["/src/file.txt"], ["/src/file.txt", "/src/other.txt"]])
def test_cancel_after_server_side_paste_clears_clipboard(engine, session, items):
    for item in items:
        session.write(item, "data")
    session.mkdir("/dst")
    engine.update_multi_clipboard(items, is_cut=True)
    source = engine.begin_operation("paste")
    run_command = session.run_command

    def run_then_cancel(command):
        result = run_command(command)
        source.cancel()
        return result

    session.run_command = run_then_cancel

    result = engine.paste("/dst", operation=source)

    assert result.is_success
    assert not engine.has_clipboard_content
    assert session.has("/dst/file.txt")


def test_fallback_copy_completes_partially_copied_folder(engine, session):
    session.commands_enabled = False
    session.write("/src/dir/a.txt", "complete")
    session.write("/src/dir/sub/b.txt", "b")
    session.write("/dst/dir/a.txt", "comp")
    engine.update_clipboard("/src/dir", is_cut=False)

    result = engine.paste("/dst")

    assert result.is_success
    assert session.read("/dst/dir/a.txt") == "complete"
    assert session.read("/dst/dir/sub/b.txt") == "b"


# -- upload --------------------------------------------------------------


def test_upload_single_file(engine, session, local_tree):
    result = engine.upload_files([str(local_tree / "file.txt")], "/home/user")

    assert result.is_success
    assert result.payload == "/home/user/file.txt"
    assert session.read("/home/user/file.txt") == "top"
    assert session.commands == []


def test_batch_upload_archive_contents_and_cleanup(engine, session, local_tree, tmp_path):
    captured = tmp_path / "captured.zip"
    original = session.run_command

    def capture(command):
        archive = command.rsplit(" ", 1)[-1]
        shutil.copy(session.local("/home/user/" + archive), captured)
        return original(command)

    session.run_command = capture

    result = engine.upload_files(
        [str(local_tree / "file.txt"), str(local_tree / "folder")], "~"
    )

    assert result.is_success
    batch = result.payload
    with zipfile.ZipFile(captured) as zf:
        names = set(zf.namelist())
    assert names == {"file.txt", "folder/", "folder/empty/", "folder/inner.txt"}
    assert set(batch.members) == names

    assert not session.has(batch.remote_archive_path)
    assert not os.path.exists(batch.local_archive_path)
    assert session.read("/home/user/file.txt") == "top"
    assert session.read("/home/user/folder/inner.txt") == "inner"
    assert session.local("/home/user/folder/empty").is_dir()


def test_batch_upload_removes_archive_when_extraction_fails(engine, session, local_tree):
    session.commands_enabled = False

    result = engine.upload_files([str(local_tree / "folder")], "/home/user")

    assert not result.is_success
    assert result.error_kind is ErrorKind.REMOTE_COMMAND_FAILURE
    assert os.listdir(session.local("/home/user")) == []


def test_cancel_mid_upload_removes_partial_archive(engine, session, local_tree, transfer_config):
    source = engine.begin_operation("upload")
    session.on_chunk = source.cancel

    result = engine.upload_files(
        [str(local_tree / "file.txt"), str(local_tree / "folder")], "/home/user", operation=source
    )

    assert not result.is_success
    assert result.is_cancelled
    assert result.error_message == "cancelled"
    assert os.listdir(session.local("/home/user")) == []
    assert os.listdir(transfer_config.temp_dir) == []
    assert session.commands == []
    assert not engine.operation_in_progress


def test_cancel_single_upload_removes_partial_file(engine, session, tmp_path):
    big = tmp_path / "big.bin"
    big.write_bytes(b"z" * 100)
    source = engine.begin_operation("upload")
    session.on_chunk = source.cancel

    result = engine.upload_file(str(big), "/home/user/big.bin", operation=source)

    assert result.is_cancelled
    assert not session.has("/home/user/big.bin")


def test_upload_missing_local_path(engine):
    result = engine.upload_files(["/definitely/not/here"], "/home/user")

    assert result.error_kind is ErrorKind.INVALID_REQUEST


def test_upload_reports_byte_progress(engine, session, events, tmp_path):
    data = tmp_path / "data.bin"
    data.write_bytes(b"a" * 10)

    engine.upload_file(str(data), "/home/user/data.bin")

    byte_updates = [
        c.args for c in events.on_progress.call_args_list if c.args[0] and c.args[3] == 10
    ]
    assert byte_updates[-1][2] == 10


# -- download ------------------------------------------------------------


def test_download_file(engine, session, tmp_path):
    session.write("/home/user/report.txt", "numbers")
    target = tmp_path / "out" / "report.txt"

    result = engine.download("~/report.txt", str(target))

    assert result.is_success
    assert target.read_text() == "numbers"


def test_download_folder(engine, session, tmp_path):
    session.write("/home/user/proj/a.txt", "a")
    session.write("/home/user/proj/src/b.txt", "b")
    session.mkdir("/home/user/proj/empty")
    target = tmp_path / "proj"

    result = engine.download("/home/user/proj", str(target), is_folder=True)

    assert result.is_success
    assert (target / "a.txt").read_text() == "a"
    assert (target / "src" / "b.txt").read_text() == "b"
    assert (target / "empty").is_dir()


def test_cancelled_download_removes_partial_local_file(engine, session, tmp_path):
    session.write("/home/user/big.bin", "y" * 100)
    target = tmp_path / "big.bin"
    source = engine.begin_operation("download")
    session.on_chunk = source.cancel

    result = engine.download("/home/user/big.bin", str(target), operation=source)

    assert result.is_cancelled
    assert not target.exists()


def test_download_missing_file(engine, tmp_path):
    result = engine.download("/home/user/missing.txt", str(tmp_path / "missing.txt"))

    assert result.error_kind is ErrorKind.TRANSFER_FAILURE
    assert not (tmp_path / "missing.txt").exists()


# -- delete --------------------------------------------------------------


@pytest.mark.parametrize("path", ["/", "~", "", "/..", "/home/user"])
def test_delete_protected_path_issues_no_commands(engine, session, path):
    result = engine.delete(path)

    assert not result.is_success
    assert result.error_kind is ErrorKind.SAFETY_VIOLATION
    assert session.commands == []
    assert session.has("/home/user")


def test_delete_multiple_with_one_protected_path(engine, session):
    session.write("/home/user/keep.txt", "k")

    result = engine.delete_multiple(["/home/user/keep.txt", "/tmp/.."])

    assert result.error_kind is ErrorKind.SAFETY_VIOLATION
    assert session.commands == []
    assert session.has("/home/user/keep.txt")


def test_delete_file(engine, session):
    session.write("/home/user/junk.txt", "j")

    result = engine.delete("/home/user/junk.txt")

    assert result.is_success
    assert not session.has("/home/user/junk.txt")
    assert session.commands == []


def test_delete_folder_uses_single_command(engine, session):
    session.write("/home/user/old/deep/file.txt", "f")

    result = engine.delete("/home/user/old")

    assert result.is_success
    assert session.commands == ["rm -rf -- /home/user/old"]
    assert not session.has("/home/user/old")


def test_delete_folder_command_failure_has_no_fallback(engine, session):
    session.commands_enabled = False
    session.write("/home/user/old/file.txt", "f")

    result = engine.delete("/home/user/old")

    assert result.error_kind is ErrorKind.REMOTE_COMMAND_FAILURE
    assert session.has("/home/user/old/file.txt")


def test_delete_multiple(engine, session):
    session.write("/home/user/a.txt", "a")
    session.write("/home/user/b/c.txt", "c")

    result = engine.delete_multiple(["~/a.txt", "/home/user/b"])

    assert result.is_success
    assert len(session.commands) == 1
    assert not session.has("/home/user/a.txt")
    assert not session.has("/home/user/b")


def test_delete_multiple_empty(engine):
    assert engine.delete_multiple([]).error_kind is ErrorKind.INVALID_REQUEST


# -- slot and clipboard --------------------------------------------------


def test_overlapping_operation_is_rejected(engine, session):
    source = engine.begin_operation("paste")

    result = engine.create_folder("x", "/home/user")

    assert result.error_kind is ErrorKind.OPERATION_IN_PROGRESS
    assert not session.has("/home/user/x")
    assert not source.is_cancelled

    engine.abandon_operation(source)
    assert engine.create_folder("x", "/home/user").is_success


def test_request_cancel_without_operation(engine):
    assert not engine.request_cancel_current_operation()


def test_request_cancel_current_operation(engine):
    source = engine.begin_operation("download")

    assert engine.request_cancel_current_operation()
    assert source.is_cancelled
    assert not engine.request_cancel_current_operation()


def test_clipboard_accessors_and_notifications(engine, events):
    engine.update_multi_clipboard(["/a", "", "/b"], is_cut=True)

    assert engine.clipboard_paths == ["/a", "/b"]
    assert engine.clipboard_path == "/a"
    assert engine.has_multiple_clipboard_items
    assert engine.is_clipboard_cut
    assert events.on_clipboard_changed.call_count == 1

    engine.clear_clipboard()
    assert not engine.has_clipboard_content
    assert events.on_clipboard_changed.call_count == 2
