import pytest

from collection import FeedCollection
from errors import GetKeyRequiredError


def test_requires_get_key():
    with pytest.raises(GetKeyRequiredError):
        FeedCollection(get_key=None)


def test_writes_apply_on_commit():
    collection = FeedCollection(get_key=lambda item: item['id'])
    collection.begin()
    collection.write({'type': 'insert', 'key': 'a', 'value': {'id': 'a', 'v': 1}})
    collection.write({'type': 'insert', 'value': {'id': 'b', 'v': 1}})
    assert collection.size == 0

    collection.commit()
    assert collection.size == 2
    assert 'b' in collection
    assert collection.commits == 1

    collection.begin()
    collection.write({'type': 'update', 'key': 'a', 'value': {'id': 'a', 'v': 2}})
    collection.write({'type': 'delete', 'key': 'b', 'value': None})
    collection.commit()
    assert collection.get('a') == {'id': 'a', 'v': 2}
    assert 'b' not in collection


def test_misuse_is_rejected():
    collection = FeedCollection(get_key=lambda item: item['id'])
    with pytest.raises(RuntimeError):
        collection.write({'type': 'insert', 'key': 'a', 'value': {}})
    with pytest.raises(RuntimeError):
        collection.commit()
    collection.begin()
    with pytest.raises(RuntimeError):
        collection.begin()
    with pytest.raises(ValueError):
        collection.write({'type': 'upsert', 'key': 'a', 'value': {}})


@pytest.mark.asyncio
async def test_ready_signal():
    collection = FeedCollection(get_key=lambda item: item['id'])
    assert not collection.is_ready()
    collection.mark_ready()
    await collection.wait_until_ready()
    assert collection.is_ready()
