import bz2
import io
import json
import tarfile
import zipfile

import pytest
import zstandard as zstd

from handle_index.errors import ImportFormatError, RecordDecodeError, UnsupportedArchiveError
from handle_index.ingest import import_lines, ingest_archive, read_user_info


def tweet(user_id, screen_name, retweet_of=None, mentions=()):
    record = {"user": {"id_str": str(user_id), "screen_name": screen_name, "name": screen_name}}
    if retweet_of:
        record["retweeted_status"] = {
            "user": {"id_str": str(retweet_of[0]), "screen_name": retweet_of[1], "name": "x"},
            "entities": {"user_mentions": [
                {"id_str": str(i), "screen_name": s, "name": s} for i, s in mentions]},
        }
    return record


def lines(*records):
    return "".join(json.dumps(r) + "\n" for r in records).encode()


def add_tar_member(archive, name, data):
    info = tarfile.TarInfo(name)
    info.size = len(data)
    archive.addfile(info, io.BytesIO(data))


@pytest.fixture
def tar_path(tmp_path):
    path = tmp_path / "stream.tar"
    with tarfile.open(path, "w") as archive:
        # two concatenated bz2 streams in one member
        add_tar_member(archive, "2020/01/00.json.bz2",
                       bz2.compress(lines(tweet(1, "One"))) + bz2.compress(lines(tweet(2, "two"))))
        add_tar_member(archive, "2020/01/01.json.zst",
                       zstd.ZstdCompressor().compress(
                           lines(tweet(3, "three", retweet_of=(1, "one"), mentions=[(4, "Four")]))))
        add_tar_member(archive, "README.txt", b"not a stream")
    return path


def test_ingest_tar(db, tar_path):
    stats = ingest_archive(db, tar_path)
    assert (stats.files, stats.pairs, stats.errors) == (2, 5, 0)
    assert db.lookup_by_screen_name("one") == [1]
    assert db.lookup_by_id(1) == ["One", "one"]
    assert db.lookup_by_screen_name("four") == [4]
    assert db.get_key_counts() == (4, 4)


def test_ingest_zip(db, tmp_path):
    path = tmp_path / "stream.zip"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("a/00.json.bz2", bz2.compress(lines(tweet(10, "ten"), tweet(11, "ten"))))
        archive.writestr("a/notes.json", lines(tweet(99, "skipped")))
    stats = ingest_archive(db, path)
    assert (stats.files, stats.pairs) == (1, 2)
    assert db.lookup_by_screen_name("TEN") == [10, 11]
    assert db.lookup_by_id(99) == []


def test_bad_record_stops_member_unless_skipped(db, tmp_path):
    path = tmp_path / "bad.tar"
    data = lines(tweet(1, "one")) + b"{broken\n" + lines(tweet(2, "two"))
    with tarfile.open(path, "w") as archive:
        add_tar_member(archive, "00.json.bz2", bz2.compress(data))

    with pytest.raises(RecordDecodeError):
        ingest_archive(db, path)
    # the member is read completely before anything is inserted
    assert db.get_key_counts() == (0, 0)

    stats = ingest_archive(db, path, skip_errors=True)
    assert (stats.pairs, stats.errors) == (2, 1)
    assert db.lookup_by_id(2) == ["two"]


def test_read_user_info_rejects_unknown_compression():
    with pytest.raises(ValueError):
        read_user_info(io.BytesIO(b""), "00.json.gz")


def test_unsupported_archive(db, tmp_path):
    path = tmp_path / "stream.7z"
    path.write_bytes(b"")
    with pytest.raises(UnsupportedArchiveError):
        ingest_archive(db, path)


def test_import_lines(db):
    count = import_lines(db, ["123,foo\n", "456,Foo,extra\r\n", "123,bar"])
    assert count == 3
    assert db.lookup_by_screen_name("foo") == [123, 456]
    assert db.lookup_by_id(123) == ["foo", "bar"]


@pytest.mark.parametrize("line", ["", "123", "abc,foo", "-1,foo", f"{2**64},foo"])
def test_import_rejects_bad_lines(db, line):
    with pytest.raises(ImportFormatError) as info:
        import_lines(db, ["1,ok", line])
    assert info.value.line_no == 2
