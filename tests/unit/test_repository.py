"""Tests for the JSON record repository."""

import pytest

from reelsmith.core.exceptions import EntityNotFound
from reelsmith.models.schemas import BlockStatus, ItemStatus


def test_item_lifecycle(repository):
    item = repository.create_item("Morning routine", script="draft", organization_id="org-1")

    loaded = repository.get_item(item.id)
    assert loaded.title == "Morning routine"
    assert loaded.status == ItemStatus.DRAFT

    updated = repository.update_item(item.id, status=ItemStatus.SCRIPTED)
    assert updated.status == ItemStatus.SCRIPTED
    assert updated.updated_at >= item.updated_at
    assert [i.id for i in repository.list_items()] == [item.id]


def test_missing_records_raise(repository):
    with pytest.raises(EntityNotFound):
        repository.get_item("missing")
    with pytest.raises(EntityNotFound):
        repository.get_block("missing")
    with pytest.raises(EntityNotFound):
        repository.get_voice("missing")


def test_blocks_are_listed_in_order(repository, fakes):
    item = repository.create_item("Idea")
    blocks = fakes.make_blocks(item.id, [4, 6, 8])
    repository.replace_blocks(item.id, list(reversed(blocks)))

    listed = repository.list_blocks(item.id)
    assert [b.order for b in listed] == [1, 2, 3]
    assert repository.get_block(blocks[1].id).duration_target == 6


def test_update_block_touches_only_that_block(repository, fakes):
    item = repository.create_item("Idea")
    blocks = repository.replace_blocks(item.id, fakes.make_blocks(item.id, [4, 4]))

    repository.update_block(blocks[0].id, status=BlockStatus.READY, input_media_path="inputs/x.png")

    first, second = repository.list_blocks(item.id)
    assert first.status == BlockStatus.READY
    assert first.input_media_path == "inputs/x.png"
    assert second.status == BlockStatus.WAITING_INPUT


def test_replace_blocks_rejects_foreign_blocks(repository, fakes):
    item = repository.create_item("Idea")
    other = repository.create_item("Other")

    with pytest.raises(ValueError):
        repository.replace_blocks(item.id, fakes.make_blocks(other.id, [4]))
    assert repository.list_blocks(item.id) == []


def test_voices_are_scoped_by_organization(repository):
    global_voice = repository.create_voice("Gaby", "ext-1")
    own = repository.create_voice("Mine", "ext-2", organization_id="org-1")
    repository.create_voice("Theirs", "ext-3", organization_id="org-2")

    names = {v.name for v in repository.list_voices("org-1")}
    assert names == {"Gaby", "Mine"}
    assert {v.name for v in repository.list_voices()} == {"Gaby"}

    assert repository.find_voice_by_external_id("ext-2").id == own.id
    assert repository.find_voice_by_external_id("nope") is None
    assert repository.update_voice(global_voice.id, preview_url="https://x/p.mp3").preview_url == "https://x/p.mp3"
