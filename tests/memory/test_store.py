"""Tests for EntityStore: entity CRUD, fact lifecycle, access tracking, stats."""

import sqlite3
from datetime import datetime

import pytest

from memory.models import EntityType, Fact, FactCategory, FactStatus, FactTransitionError, Tier
from memory.store import EntityStore, StoreError


def _fact(id="f1", text="Works at Acme", **kwargs):
    return Fact(id=id, text=text, **kwargs)


class TestEntities:
    def test_create_and_get(self, store):
        e = store.create_entity("Adam Watson", EntityType.PERSON)
        assert e.id
        assert e.slug == "adam-watson"

        fetched = store.get_entity(e.id)
        assert fetched.name == "Adam Watson"
        assert fetched.type == EntityType.PERSON
        assert fetched.facts == []

    def test_create_existing_returns_it(self, store):
        first = store.create_entity("Adam Watson", EntityType.PERSON)
        again = store.create_entity("adam  watson", EntityType.PERSON)
        assert again.id == first.id
        assert len(store.list_entities()) == 1

    def test_same_slug_different_type(self, store):
        person = store.create_entity("Acme", EntityType.PERSON)
        company = store.create_entity("Acme", EntityType.COMPANY)
        assert person.id != company.id

    def test_unusable_name_rejected(self, store):
        with pytest.raises(ValueError):
            store.create_entity("???", EntityType.PERSON)

    def test_list_by_type_with_facts(self, store):
        adam = store.create_entity("Adam", EntityType.PERSON)
        store.create_entity("Acme", EntityType.COMPANY)
        store.add_facts(adam.id, [_fact()])

        people = store.list_entities(EntityType.PERSON)
        assert [e.name for e in people] == ["Adam"]
        assert people[0].fact_texts == ["Works at Acme"]
        assert len(store.list_entities()) == 2

    def test_find_entity(self, store):
        e = store.create_entity("Project Atlas", EntityType.PROJECT)
        assert store.find_entity(EntityType.PROJECT, "project-atlas").id == e.id
        assert store.find_entity(EntityType.COMPANY, "project-atlas") is None

    def test_missing_entity(self, store):
        assert store.get_entity("nope") is None


class TestFacts:
    def test_roundtrip(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        created = datetime(2026, 1, 5, 9, 30)
        store.add_facts(
            e.id,
            [_fact(category=FactCategory.MILESTONE, source_id="note-7", created_at=created)],
        )
        f = store.get_fact("f1")
        assert f.category == FactCategory.MILESTONE
        assert f.source_id == "note-7"
        assert f.created_at == created
        assert f.status == FactStatus.ACTIVE
        assert f.tier is None

    def test_summary_flags(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.mark_summary_stale(e.id)
        assert store.get_entity(e.id).needs_summary

        store.update_summary(e.id, "Adam works at Acme.")
        saved = store.get_entity(e.id)
        assert saved.summary == "Adam works at Acme."
        assert not saved.needs_summary
        assert saved.summarized_at is not None

    def test_save_entity(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.add_facts(e.id, [_fact()])
        e = store.get_entity(e.id)
        e.facts[0].tier = Tier.COLD
        e.facts[0].archive()
        e.summary = "Adam is a person with archived knowledge."

        store.save_entity(e)

        saved = store.get_entity(e.id)
        assert saved.facts[0].status == FactStatus.ARCHIVED
        assert saved.facts[0].tier == Tier.COLD
        assert saved.summary == "Adam is a person with archived knowledge."

    def test_save_unsaved_entity_rejected(self, store):
        from memory.models import Entity

        with pytest.raises(ValueError):
            store.save_entity(Entity(slug="x", name="X", type=EntityType.PERSON))

    def test_supersede(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.add_facts(e.id, [_fact(text="Works at Acme")])

        new = store.supersede_fact("f1", "Works at Globex", source_id="note-9")

        old = store.get_fact("f1")
        assert old.status == FactStatus.SUPERSEDED
        assert old.superseded_by == new.id
        assert store.get_fact(new.id).text == "Works at Globex"
        saved = store.get_entity(e.id)
        assert saved.fact_texts == ["Works at Globex"]
        assert saved.needs_summary

    def test_supersede_twice_rejected(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.add_facts(e.id, [_fact()])
        store.supersede_fact("f1", "Works at Globex", source_id="s")
        with pytest.raises(FactTransitionError):
            store.supersede_fact("f1", "Works at Initech", source_id="s")
        assert len(store.get_entity(e.id).facts) == 2

    def test_supersede_unknown(self, store):
        with pytest.raises(ValueError):
            store.supersede_fact("nope", "x", source_id="s")


class TestAccessTracking:
    def test_record_access_active_only(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        archived = _fact(id="f2", text="Old job")
        archived.archive()
        store.add_facts(e.id, [_fact(), archived])

        assert store.record_access(e.id) == 1
        assert store.record_access(e.id) == 1

        saved = store.get_entity(e.id)
        assert saved.access_count == 2
        assert saved.last_accessed is not None
        assert store.get_fact("f2").access_count == 0

    def test_record_access_subset(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.add_facts(e.id, [_fact(), _fact(id="f2", text="Likes tea")])
        assert store.record_access(e.id, ["f2"]) == 1
        assert store.get_fact("f1").access_count == 0

    def test_access_stats(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        store.add_facts(e.id, [_fact()])
        store.record_access(e.id)
        stats = store.access_stats(e.id)
        assert stats["total_accesses"] == 1
        assert stats["fact_count"] == 1
        assert store.access_stats("nope") is None


class TestStats:
    def test_get_stats(self, store):
        adam = store.create_entity("Adam", EntityType.PERSON)
        store.create_entity("Acme", EntityType.COMPANY)
        archived = _fact(id="f2", text="Old job")
        archived.archive()
        store.add_facts(adam.id, [_fact(tier=Tier.HOT), archived, _fact(id="f3", text="Likes tea")])
        store.mark_summary_stale(adam.id)

        stats = store.get_stats()

        assert stats["entities"] == 2
        assert stats["by_type"] == {"person": 1, "company": 1}
        assert stats["facts_by_status"] == {"active": 2, "archived": 1}
        assert stats["active_by_tier"] == {"hot": 1, "untiered": 1}
        assert stats["stale_summaries"] == 1

    def test_empty(self, store):
        stats = store.get_stats()
        assert stats["entities"] == 0
        assert stats["facts_by_status"] == {}


class TestMalformedRows:
    def test_bad_fact_fields_coerced(self, store):
        e = store.create_entity("Adam", EntityType.PERSON)
        conn = sqlite3.connect(store.db_path)
        conn.execute(
            """INSERT INTO facts (id, entity_id, text, category, status, created_at,
               last_accessed, access_count, tier)
               VALUES ('bad', ?, 'Something', 'gossip', 'bogus', 'not-a-date', 'yesterday',
               'many', 'lukewarm')""",
            (e.id,),
        )
        conn.commit()
        conn.close()

        f = store.get_fact("bad")
        assert f.category == FactCategory.CONTEXT
        assert f.status == FactStatus.ACTIVE
        assert f.last_accessed is None
        assert f.access_count == 0
        assert f.tier is None
        assert isinstance(f.created_at, datetime)

    def test_unknown_entity_type_skipped(self, store):
        store.create_entity("Adam", EntityType.PERSON)
        conn = sqlite3.connect(store.db_path)
        conn.execute(
            "INSERT INTO entities (id, slug, name, type) VALUES ('x', 'austin', 'Austin', 'city')"
        )
        conn.commit()
        conn.close()

        assert [e.name for e in store.list_entities()] == ["Adam"]


class TestErrors:
    def test_unopenable_database(self, tmp_path):
        with pytest.raises(StoreError):
            EntityStore(tmp_path)
