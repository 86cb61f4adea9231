"""Tests for DriveSource: bootstrap, lookups and song resolution."""

from __future__ import annotations

import threading

import pytest

from drivetune.codec.registry import CodecRegistry
from drivetune.drive.client import DriveAPIError
from drivetune.drive.models import OAuthToken
from drivetune.drive.source import DriveSource, new
from drivetune.protocol.errors import (
    CredentialRequiredError,
    InvalidTrackIDError,
    MissingFileError,
    MissingTrackError,
    TrackNotFoundError,
)
from drivetune.protocol.ids import parse_id


@pytest.fixture()
def source(make_source):
    with make_source() as src:
        yield src


# ---------------------------------------------------------------------------
# list / refresh
# ---------------------------------------------------------------------------


def test_first_list_refreshes_exactly_once(fake_drive, source):
    fake_drive.add_file("fileA", "fake", b"tracks=2")

    songs = source.list()
    again = source.list()

    assert sorted(songs) == ["0-fileA", "1-fileA"]
    assert again == songs
    assert len(fake_drive.listing_requests()) == 1


def test_empty_account_does_not_refresh_again(fake_drive, source):
    assert source.list() == {}
    assert source.list() == {}
    assert len(fake_drive.listing_requests()) == 1


def test_list_entries_round_trip_to_known_files(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=3")
    fake_drive.add_file("b", "fake", b"nope")
    fake_drive.add_file("c", "mka", b"tracks=1")

    songs = source.list()

    assert len(songs) == 4
    for track_id in songs:
        file_id, _ = parse_id(track_id)
        assert file_id in source.files


def test_partial_failure_keeps_good_files(fake_drive, source):
    fake_drive.add_file("fileA", "fake", b"tracks=2")
    fake_drive.add_file("fileB", "fake", b"corrupt")

    songs = source.list()

    assert sorted(songs) == ["0-fileA", "1-fileA"]
    assert [item.file_id for item in source.last_report.skipped] == ["fileB"]


def test_refresh_replaces_catalog(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")
    source.refresh()

    fake_drive.pages = [[]]
    fake_drive.add_file("b", "fake", b"tracks=1")
    songs = source.refresh()

    assert list(songs) == ["0-b"]
    assert list(source.files) == ["b"]


def test_refresh_twice_is_idempotent(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=2")
    fake_drive.add_file("b", "mka", b"tracks=1")

    first = dict(source.refresh())
    second = dict(source.refresh())

    assert first == second


def test_failed_refresh_keeps_previous_catalog(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")
    before = source.refresh()

    fake_drive.list_status = 500
    with pytest.raises(DriveAPIError):
        source.refresh()

    assert source.list() == before
    assert source.catalog.songs is before


def test_failed_bootstrap_is_retried(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")
    fake_drive.list_status = 500
    with pytest.raises(DriveAPIError):
        source.list()

    fake_drive.list_status = 200
    assert list(source.list()) == ["0-a"]


def test_concurrent_first_lists_share_one_refresh(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")
    results = []

    def worker():
        results.append(dict(source.list()))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(fake_drive.listing_requests()) == 1
    assert all(r == results[0] for r in results)


# ---------------------------------------------------------------------------
# info
# ---------------------------------------------------------------------------


def test_info_returns_song_info(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=2")
    source.refresh()

    info = source.info("1-a")
    assert info.title == "Track 1"
    assert info.track == 2


def test_info_unknown_id_performs_no_io(fake_drive, source):
    with pytest.raises(TrackNotFoundError):
        source.info("0-nothing")
    assert fake_drive.requests == []


# ---------------------------------------------------------------------------
# get_song
# ---------------------------------------------------------------------------


def test_get_song_redecodes_only_that_file(fake_drive, fake_decoder, source):
    fake_drive.add_file("a", "fake", b"tracks=2")
    fake_drive.add_file("b", "fake", b"tracks=1")
    source.refresh()
    fake_drive.requests.clear()

    song = source.get_song("1-a")

    assert song.info().title == "Track 1"
    assert fake_drive.downloads() == ["a"]

    stream, length = song.open()
    with stream:
        assert stream.read() == b"tracks=2"
    assert length == len(b"tracks=2")


def test_get_song_bootstraps_catalog(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")

    song = source.get_song("0-a")

    assert song.info().title == "Track 0"
    assert len(fake_drive.listing_requests()) == 1


def test_get_song_malformed_id(source, fake_drive):
    with pytest.raises(InvalidTrackIDError):
        source.get_song("not-an-id")
    assert fake_drive.requests == []


def test_get_song_missing_file(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=1")
    source.refresh()

    with pytest.raises(MissingFileError, match="missing file zzz"):
        source.get_song("0-zzz")


def test_get_song_missing_track(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=2")
    source.refresh()

    with pytest.raises(MissingTrackError):
        source.get_song("2-a")


def test_get_song_file_shrunk_since_refresh(fake_drive, source):
    fake_drive.add_file("a", "fake", b"tracks=3")
    source.refresh()
    fake_drive.contents["a"] = b"tracks=1"

    with pytest.raises(MissingTrackError):
        source.get_song("2-a")


# ---------------------------------------------------------------------------
# Identity, snapshots and construction
# ---------------------------------------------------------------------------


def test_key_falls_back_to_access_token(source):
    assert source.key() == "test-access-token"


def test_key_prefers_account_id(make_source):
    token = OAuthToken(access_token="rotating", account_id="user-123")
    with make_source(token=token) as src:
        assert src.key() == "user-123"


def test_snapshot_restore_skips_bootstrap(fake_drive, source, make_source):
    fake_drive.add_file("a", "fake", b"tracks=2")
    source.refresh()
    state = source.snapshot()

    with make_source() as other:
        fake_drive.requests.clear()
        other.restore(state)
        assert dict(other.list()) == dict(source.list())
        assert fake_drive.listing_requests() == []


def test_new_requires_token(drive_config):
    with pytest.raises(CredentialRequiredError, match="expected oauth token"):
        new([], None, config=drive_config, codecs=CodecRegistry())


def test_new_accepts_token_mapping(drive_config):
    src = new([], {"access_token": "abc"}, config=drive_config, codecs=CodecRegistry())
    try:
        assert isinstance(src, DriveSource)
        assert src.key() == "abc"
    finally:
        src.close()
