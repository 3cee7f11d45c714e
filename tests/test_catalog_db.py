"""
Tests for songshelf.core.catalog_db.

These tests verify:
- CatalogDb lifecycle
- uniqueness and foreign-key constraints surface as IntegrityError
- get-or-create helpers, junction links and deletes
"""

from __future__ import annotations

import aiosqlite
import pytest

from songshelf.core.catalog_db import CatalogDb, NewSong, SongLink, SongRow, TagRow


@pytest.fixture
async def db() -> CatalogDb:
    """Create an in-memory database for testing."""
    db = CatalogDb(":memory:")
    await db.open()
    await db.ensure_schema()
    yield db
    await db.close()


class TestLifecycle:
    async def test_open_close(self) -> None:
        db = CatalogDb(":memory:")
        assert not db.is_open

        await db.open()
        assert db.is_open

        await db.close()
        assert not db.is_open

    async def test_closed_db_raises(self) -> None:
        db = CatalogDb(":memory:")
        with pytest.raises(RuntimeError, match="not open"):
            await db.count_songs()

    async def test_file_backed_db_persists(self, tmp_path) -> None:
        path = tmp_path / "catalog.db"
        db = CatalogDb(path)
        await db.open()
        try:
            await db.ensure_schema()
            await db.insert_song(NewSong(title="Crossing Field"))
            await db.commit()
        finally:
            await db.close()

        db = CatalogDb(path)
        await db.open()
        try:
            await db.ensure_schema()
            assert await db.count_songs() == 1
        finally:
            await db.close()


class TestConstraints:
    async def test_duplicate_file_path_fails(self, db: CatalogDb) -> None:
        await db.insert_file("suisei/stellar.mp3")
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_file("suisei/stellar.mp3")

    @pytest.mark.parametrize("kind", ["artist", "album", "genre"])
    async def test_duplicate_name_fails(self, db: CatalogDb, kind: str) -> None:
        await db.insert_tag(kind, "Hoshimachi Suisei")
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_tag(kind, "Hoshimachi Suisei")

    async def test_duplicate_artist_via_named_helper(self, db: CatalogDb) -> None:
        await db.insert_artist("LiSA")
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_artist("LiSA")

    async def test_two_songs_cannot_claim_one_file(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("lisa/crossing_field.mp3")
        song_id = await db.insert_song(NewSong(title="Crossing Field", file_id=file_id))

        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_song(NewSong(title="Crossing Field (TV Size)", file_id=file_id))

        song = await db.get_song_by_file_id(file_id)
        assert song is not None
        assert song.id == song_id
        assert song.title == "Crossing Field"

    async def test_duplicate_song_artist_pair_fails(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        artist_id = await db.ensure_artist("Hoshimachi Suisei")

        await db.link_song_artist(song_id, artist_id)
        with pytest.raises(aiosqlite.IntegrityError):
            await db.link_song_artist(song_id, artist_id)

    async def test_song_genre_with_unknown_genre_fails(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        with pytest.raises(aiosqlite.IntegrityError):
            await db.link_song_genre(song_id, 999)

    async def test_link_with_unknown_song_fails(self, db: CatalogDb) -> None:
        album_id = await db.ensure_album("Still Still Stellar")
        with pytest.raises(aiosqlite.IntegrityError):
            await db.link_song_album(999, album_id)

    async def test_song_with_unknown_file_fails(self, db: CatalogDb) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_song(NewSong(title="Ghost", file_id=42))

    async def test_song_without_relations_is_allowed(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Loli God Requiem"))

        row = await db.get_song_by_id(song_id)
        assert row == SongRow(id=song_id, title="Loli God Requiem")
        assert await db.list_artists_for_song(song_id) == []
        assert await db.list_albums_for_song(song_id) == []
        assert await db.list_genres_for_song(song_id) == []

    async def test_empty_title_rejected(self, db: CatalogDb) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_song(NewSong(title="   "))

    async def test_blank_name_rejected(self, db: CatalogDb) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            await db.insert_artist("")
        with pytest.raises(aiosqlite.IntegrityError):
            await db.ensure_genre("   ")

    async def test_blank_file_path_rejected(self, db: CatalogDb) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            await db.ensure_file(" ")

    async def test_unknown_kind_rejected(self, db: CatalogDb) -> None:
        with pytest.raises(ValueError, match="Unknown tag kind"):
            await db.insert_tag("composer", "Yuki Kajiura")  # type: ignore[arg-type]


class TestSongs:
    async def test_list_songs_by_id(self, db: CatalogDb) -> None:
        for title in ("Stellar Stellar", "Crossing Field", "Loli God Requiem"):
            await db.insert_song(NewSong(title=title))

        songs = await db.list_songs(order_by="id")
        assert songs == [
            SongRow(id=1, title="Stellar Stellar"),
            SongRow(id=2, title="Crossing Field"),
            SongRow(id=3, title="Loli God Requiem"),
        ]

    async def test_list_songs_by_title_and_paging(self, db: CatalogDb) -> None:
        for title in ("b", "C", "a", "D"):
            await db.insert_song(NewSong(title=title))

        assert [s.title for s in await db.list_songs()] == ["a", "b", "C", "D"]
        assert [s.title for s in await db.list_songs(limit=2, offset=2)] == ["C", "D"]
        assert await db.count_songs() == 4

    async def test_text_fields_normalized(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(
            NewSong(title="  Spaces Around  ", source="", youtube_id=" abc123 ")
        )
        row = await db.get_song_by_id(song_id)
        assert row is not None
        assert row.title == "Spaces Around"
        assert row.source is None
        assert row.youtube_id == "abc123"

    async def test_update_song(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Original"))
        assert await db.update_song(
            song_id, NewSong(title="Updated", thumbnail_url="https://i.ytimg.com/x.jpg")
        )
        row = await db.get_song_by_id(song_id)
        assert row is not None
        assert row.title == "Updated"
        assert row.thumbnail_url == "https://i.ytimg.com/x.jpg"

        assert not await db.update_song(999, NewSong(title="Nobody"))

    async def test_set_song_file(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("a.mp3")
        first = await db.insert_song(NewSong(title="First"))
        second = await db.insert_song(NewSong(title="Second"))

        assert await db.set_song_file(first, file_id)
        with pytest.raises(aiosqlite.IntegrityError):
            await db.set_song_file(second, file_id)

        # Releasing the file lets another song claim it.
        assert await db.set_song_file(first, None)
        assert await db.set_song_file(second, file_id)
        song = await db.get_song_by_file_id(file_id)
        assert song is not None and song.id == second

    async def test_search_songs(self, db: CatalogDb) -> None:
        stellar = await db.insert_song(NewSong(title="Stellar Stellar"))
        field = await db.insert_song(NewSong(title="Crossing Field"))
        await db.insert_song(NewSong(title="Unrelated"))
        await db.link_song_artist(field, await db.ensure_artist("LiSA"))
        await db.link_song_genre(stellar, await db.ensure_genre("Japanese Pop"))

        assert [s.id for s in await db.search_songs("stellar")] == [stellar]
        assert [s.id for s in await db.search_songs("lisa")] == [field]
        assert [s.id for s in await db.search_songs("Pop")] == [stellar]
        assert await db.search_songs("nothing matches") == []

    async def test_search_wildcards_match_literally(self, db: CatalogDb) -> None:
        await db.insert_song(NewSong(title="100 Days"))
        await db.insert_song(NewSong(title="Crossing Field"))
        percent = await db.insert_song(NewSong(title="100% Sunshine"))

        assert [s.id for s in await db.search_songs("100%")] == [percent]
        assert await db.search_songs("_") == []
        assert await db.search_songs("\\") == []

    async def test_delete_song_removes_links_keeps_file(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("suisei/stellar.mp3")
        song_id = await db.insert_song(NewSong(title="Stellar Stellar", file_id=file_id))
        artist_id = await db.ensure_artist("Hoshimachi Suisei")
        album_id = await db.ensure_album("Still Still Stellar")
        genre_id = await db.ensure_genre("Japanese Pop")
        await db.link_song_artist(song_id, artist_id)
        await db.link_song_album(song_id, album_id)
        await db.link_song_genre(song_id, genre_id)
        await db.commit()

        assert await db.delete_song(song_id) is True
        await db.commit()

        assert await db.get_song_by_id(song_id) is None
        for kind in ("artist", "album", "genre"):
            assert await db.list_links(kind) == []
        assert await db.get_file_by_id(file_id) is not None
        # Tags themselves stay until orphan cleanup.
        assert await db.count_artists() == 1

        assert await db.delete_song(song_id) is False

    async def test_raw_delete_of_linked_song_fails(self, db: CatalogDb) -> None:
        """Without explicit cleanup the foreign keys keep junction rows valid."""
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        await db.link_song_artist(song_id, await db.ensure_artist("Hoshimachi Suisei"))

        with pytest.raises(aiosqlite.IntegrityError):
            await db.execute("DELETE FROM song WHERE id = ?;", (song_id,))


class TestTags:
    async def test_artist_insert_conflict_returns_existing(self, db: CatalogDb) -> None:
        insert1 = await db.ensure_artist("Suisei")
        insert2 = await db.ensure_artist("Suisei")
        insert3 = await db.ensure_artist("LiSA")
        assert insert1 == insert2
        assert insert3 == 2

    async def test_album_insert_conflict_returns_existing(self, db: CatalogDb) -> None:
        insert1 = await db.ensure_album("Still Still Stellar")
        insert2 = await db.ensure_album("Still Still Stellar")
        insert3 = await db.ensure_album("Sword Art Online OSTs")
        assert insert1 == insert2
        assert insert3 == 2

    async def test_genre_insert_conflict_returns_existing(self, db: CatalogDb) -> None:
        insert1 = await db.ensure_genre("Japanese Pop")
        insert2 = await db.ensure_genre("Japanese Pop")
        insert3 = await db.ensure_genre("Japanese Rock")
        assert insert1 == insert2
        assert insert3 == 2

    async def test_file_insert_conflict_returns_existing(self, db: CatalogDb) -> None:
        assert await db.ensure_file("a.mp3") == await db.ensure_file("a.mp3")
        assert await db.count_files() == 1

    async def test_names_and_paths_are_stripped(self, db: CatalogDb) -> None:
        assert await db.ensure_artist(" LiSA ") == await db.ensure_artist("LiSA")
        assert await db.count_artists() == 1
        row = await db.get_artist_by_name("LiSA  ")
        assert row is not None and row.name == "LiSA"

        assert await db.ensure_file(" a.mp3") == await db.ensure_file("a.mp3")
        assert await db.count_files() == 1
        assert await db.get_file_by_path("a.mp3 ") is not None

    async def test_list_artists_for_song(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        artist1_id = await db.ensure_artist("Hoshimachi Suisei")
        artist2_id = await db.ensure_artist("Comet-chan")
        await db.link_song_artist(song_id, artist1_id)
        await db.link_song_artist(song_id, artist2_id)

        artists = await db.list_artists_for_song(song_id)
        assert artists == [
            TagRow(id=1, name="Hoshimachi Suisei"),
            TagRow(id=2, name="Comet-chan"),
        ]

    async def test_list_songs_for_album(self, db: CatalogDb) -> None:
        album_id = await db.ensure_album("Sword Art Online OSTs")
        for title in ("Crossing Field", "Ignite"):
            await db.link_song_album(await db.insert_song(NewSong(title=title)), album_id)
        await db.insert_song(NewSong(title="Elsewhere"))

        songs = await db.list_songs_for_album(album_id)
        assert [s.title for s in songs] == ["Crossing Field", "Ignite"]
        assert await db.count_songs_for_tag("album", album_id) == 2

    async def test_get_by_name_and_id(self, db: CatalogDb) -> None:
        genre_id = await db.insert_genre("Anison")
        assert await db.get_genre_by_name("Anison") == TagRow(id=genre_id, name="Anison")
        assert await db.get_genre_by_id(genre_id) == TagRow(id=genre_id, name="Anison")
        assert await db.get_genre_by_name("Polka") is None

    async def test_list_artists_sorted_case_insensitive(self, db: CatalogDb) -> None:
        for name in ("yorushika", "Aimer", "LiSA"):
            await db.insert_artist(name)
        assert [a.name for a in await db.list_artists()] == ["Aimer", "LiSA", "yorushika"]

    async def test_unlink(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        genre_id = await db.ensure_genre("Japanese Pop")
        await db.link_song_genre(song_id, genre_id)

        assert await db.unlink_song_genre(song_id, genre_id) is True
        assert await db.unlink_song_genre(song_id, genre_id) is False
        # The pair may be linked again after removal.
        await db.link_song_genre(song_id, genre_id)
        assert await db.list_links("genre") == [SongLink(song_id=song_id, tag_id=genre_id)]

    async def test_delete_tag_removes_links(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        artist_id = await db.ensure_artist("Hoshimachi Suisei")
        await db.link_song_artist(song_id, artist_id)

        assert await db.delete_artist(artist_id) is True
        assert await db.list_artists_for_song(song_id) == []
        assert await db.get_song_by_id(song_id) is not None
        assert await db.delete_artist(artist_id) is False

    async def test_cleanup_orphans(self, db: CatalogDb) -> None:
        song_id = await db.insert_song(NewSong(title="Stellar Stellar"))
        await db.link_song_artist(song_id, await db.ensure_artist("Hoshimachi Suisei"))
        await db.ensure_artist("Nobody")
        await db.ensure_album("Empty Album")
        await db.ensure_genre("Unused")
        await db.insert_file("pending.mp3")

        result = await db.cleanup_orphans()
        assert result == {
            "orphan_artists_deleted": 1,
            "orphan_albums_deleted": 1,
            "orphan_genres_deleted": 1,
        }
        assert [a.name for a in await db.list_artists()] == ["Hoshimachi Suisei"]
        assert await db.count_files() == 1


class TestFiles:
    async def test_get_file_by_path(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("music/a.opus")
        row = await db.get_file_by_path("music/a.opus")
        assert row is not None and row.id == file_id
        assert await db.get_file_by_path("music/missing.opus") is None

    async def test_list_unclaimed_files(self, db: CatalogDb) -> None:
        claimed = await db.insert_file("b.mp3")
        await db.insert_file("a.mp3")
        await db.insert_song(NewSong(title="Claimed", file_id=claimed))

        assert [f.relative_path for f in await db.list_files()] == ["a.mp3", "b.mp3"]
        assert [f.relative_path for f in await db.list_unclaimed_files()] == ["a.mp3"]

    async def test_delete_claimed_file_fails(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("a.mp3")
        await db.insert_song(NewSong(title="Holder", file_id=file_id))

        with pytest.raises(aiosqlite.IntegrityError):
            await db.delete_file(file_id)

    async def test_delete_unclaimed_file(self, db: CatalogDb) -> None:
        file_id = await db.insert_file("a.mp3")
        assert await db.delete_file(file_id) is True
        assert await db.delete_file(file_id) is False
