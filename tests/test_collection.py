"""Unit Tests for Collection

Tests: identity lookup, ordering, store fetch/destroy, submissions
"""
import pytest

from fieldsync import Collection, MemoryStore, Occurrence, Sample, StoreError


class TestMembership:
    """Tests for set/get/has/remove."""

    def test_set_and_lookup_by_cid_and_id(self):
        occurrence = Occurrence(cid="abc", id=7)
        collection = Collection([occurrence], model=Occurrence)

        assert collection.get("abc") is occurrence
        assert collection.get(7) is occurrence
        assert collection.get(occurrence) is occurrence
        assert collection.has("abc")
        assert "abc" in collection
        assert collection.get("missing") is None

    def test_replacing_keeps_position(self):
        first, second = Occurrence(cid="a"), Occurrence(cid="b")
        collection = Collection([first, second])

        replacement = Occurrence({"taxon": 9}, cid="a")
        collection.set(replacement)

        assert len(collection) == 2
        assert collection.at(0) is replacement
        assert collection.at(1) is second

    def test_lookup_by_server_id_after_sync(self):
        occurrence = Occurrence(cid="abc")
        collection = Collection([occurrence])
        occurrence.id = 7
        assert collection.get(7) is occurrence

    def test_remove(self):
        occurrence = Occurrence(cid="abc")
        collection = Collection([occurrence])

        assert collection.remove("abc") is occurrence
        assert collection.remove("abc") is None
        assert len(collection) == 0

    def test_at_out_of_range(self):
        collection = Collection([Occurrence()])
        assert collection.at(5) is None
        assert collection.at(-1) is not None

    def test_iteration_over_a_copy(self):
        collection = Collection([Occurrence(), Occurrence()])
        for occurrence in collection:
            collection.remove(occurrence)
        assert len(collection) == 0

    def test_empty_collection_operations(self):
        collection = Collection()
        collection.reset()
        assert collection.to_list() == []
        assert collection.get_submission() == ([], [])
        assert collection.models == []


class TestStore:
    """Tests for fetch()/destroy()."""

    @pytest.mark.asyncio
    async def test_fetch_rebuilds_trees(self, memory_store, make_sample):
        first = make_sample()
        second = make_sample(with_media=True)
        await memory_store.set(first.cid, first.to_dict())
        await memory_store.set(second.cid, second.to_dict())

        collection = await Collection(model=Sample, store=memory_store).fetch()

        assert [s.cid for s in collection] == [first.cid, second.cid]
        restored = collection.get(second.cid)
        assert isinstance(restored, Sample)
        assert restored.get_occurrence().get_media().media_type == "image/png"

    @pytest.mark.asyncio
    async def test_fetch_replaces_contents(self, memory_store):
        collection = Collection([Sample()], model=Sample, store=memory_store)
        await collection.fetch()
        assert len(collection) == 0

    @pytest.mark.asyncio
    async def test_fetch_without_store_fails(self):
        with pytest.raises(StoreError):
            await Collection(model=Sample).fetch()

    @pytest.mark.asyncio
    async def test_fetch_corrupt_record_fails(self, memory_store):
        await memory_store.set("bad", {"metadata": {"created_on": "not a date"}})
        with pytest.raises(StoreError):
            await Collection(model=Sample, store=memory_store).fetch()

    @pytest.mark.asyncio
    async def test_destroy_empties_store_and_collection(self, memory_store, make_sample):
        samples = [make_sample(), make_sample()]
        for sample in samples:
            await memory_store.set(sample.cid, sample.to_dict())
        collection = await Collection(model=Sample, store=memory_store).fetch()
        assert len(collection) == 2

        await collection.destroy()

        assert len(collection) == 0
        assert await memory_store.get_all() == {}

    @pytest.mark.asyncio
    async def test_destroy_unbound(self):
        collection = Collection([Sample()])
        await collection.destroy()
        assert len(collection) == 0


class TestSubmission:
    """Tests for to_list()/get_submission()."""

    def test_get_submission_concatenates_media(self, make_sample):
        first = make_sample(with_media=True)
        second = make_sample(with_media=True)
        collection = Collection([first, second], model=Sample)

        submissions, media = collection.get_submission()

        assert [s["external_key"] for s in submissions] == [first.cid, second.cid]
        assert [m.cid for m in media] == [
            first.get_occurrence().get_media().cid,
            second.get_occurrence().get_media().cid,
        ]

    def test_to_list(self, make_sample):
        sample = make_sample()
        assert Collection([sample]).to_list() == [sample.to_dict()]
