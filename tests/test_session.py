from __future__ import annotations

import fakeredis
import pytest

from agentscope_core.exceptions import SessionError
from agentscope_core.memory import InMemoryMemory
from agentscope_core.message import Msg
from agentscope_core.session import InMemorySession, JsonSession, RedisSession, StateModule
from agentscope_core.session.json_session import decode_session_id, encode_session_id


class Counter(StateModule):
    def __init__(self) -> None:
        super().__init__()
        self.value = 0
        self.label = "counter"
        self.register_state("value")


class Owner(StateModule):
    def __init__(self) -> None:
        super().__init__()
        self.counter = Counter()
        self.memory = InMemoryMemory()
        self.tags = {"a"}
        self.register_state("tags", custom_to_json=sorted, custom_from_json=set)


# ── StateModule ──

def test_nested_modules_are_discovered_automatically() -> None:
    owner = Owner()
    owner.counter.value = 3

    state = owner.state_dict()

    assert state["counter"] == {"value": 3}
    assert state["memory"] == {"content": []}
    assert state["tags"] == ["a"]
    assert "label" not in state["counter"]


def test_reassigning_sub_module_to_plain_value_untracks_it() -> None:
    owner = Owner()
    owner.counter = None

    assert "counter" not in owner.state_dict()


def test_load_state_dict_restores_custom_types() -> None:
    owner = Owner()
    owner.counter.value = 5
    owner.tags = {"x", "y"}
    state = owner.state_dict()

    restored = Owner()
    restored.load_state_dict(state)

    assert restored.counter.value == 5
    assert restored.tags == {"x", "y"}


def test_strict_load_requires_every_key() -> None:
    with pytest.raises(KeyError, match="value"):
        Counter().load_state_dict({})

    lenient = Counter()
    lenient.load_state_dict({}, strict=False)
    assert lenient.value == 0


def test_register_unknown_attribute_fails() -> None:
    with pytest.raises(AttributeError):
        Counter().register_state("missing")


# ── 会话存储 ──

@pytest.fixture(params=["memory", "json", "redis"])
def session(request, tmp_path):
    if request.param == "memory":
        return InMemorySession()
    if request.param == "json":
        return JsonSession(tmp_path / "sessions")
    return RedisSession(fakeredis.FakeAsyncRedis(decode_responses=True), ttl=60)


async def test_save_and_load_round_trip(session) -> None:
    owner = Owner()
    owner.counter.value = 7
    await owner.memory.add(Msg("user", "hello", "user"))

    await session.save_session_state("s1", owner=owner)
    restored = Owner()
    loaded = await session.load_session_state("s1", owner=restored)

    assert loaded is True
    assert restored.counter.value == 7
    memory = await restored.memory.get_memory()
    assert [m.get_text_content() for m in memory] == ["hello"]


async def test_missing_session(session) -> None:
    assert await session.load_session_state("nope", owner=Owner()) is False

    with pytest.raises(SessionError, match="does not exist"):
        await session.load_session_state("nope", allow_not_exist=False, owner=Owner())


async def test_exists_list_delete(session) -> None:
    await session.save_session_state("b", owner=Owner())
    await session.save_session_state("a", owner=Owner())

    assert await session.exists("a")
    assert await session.list_sessions() == ["a", "b"]
    assert await session.delete("a") is True
    assert await session.delete("a") is False
    assert await session.list_sessions() == ["b"]


def test_unsafe_session_ids_are_encoded() -> None:
    encoded = encode_session_id("../user/1")

    assert encoded.startswith("b64_")
    assert "/" not in encoded
    assert decode_session_id(encoded) == "../user/1"
    assert encode_session_id("user-1") == "user-1"


async def test_json_session_writes_one_file_per_session(tmp_path) -> None:
    session = JsonSession(tmp_path)

    await session.save_session_state("team/alpha", owner=Owner())

    files = list(tmp_path.glob("*.json"))
    assert len(files) == 1
    assert files[0].name.startswith("b64_")
    assert await session.list_sessions() == ["team/alpha"]


async def test_json_session_corrupted_file_raises_session_error(tmp_path) -> None:
    (tmp_path / "broken.json").write_text("{not json")

    with pytest.raises(SessionError):
        await JsonSession(tmp_path).load_session_state("broken", owner=Owner())


async def test_redis_session_applies_ttl() -> None:
    redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    await RedisSession(redis, ttl=120).save_session_state("s", owner=Owner())

    ttl = await redis.ttl("agentscope:session:s")
    assert 0 < ttl <= 120


async def test_redis_session_corrupted_value_raises_session_error() -> None:
    redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    await redis.set("agentscope:session:broken", "{not json")

    with pytest.raises(SessionError, match="broken"):
        await RedisSession(redis).load_session_state("broken", owner=Owner())


async def test_redis_connection_errors_become_session_error() -> None:
    server = fakeredis.FakeServer()
    server.connected = False
    session = RedisSession(fakeredis.FakeAsyncRedis(server=server, decode_responses=True))

    with pytest.raises(SessionError):
        await session.exists("s")
    with pytest.raises(SessionError):
        await session.delete("s")
    with pytest.raises(SessionError):
        await session.load_session_state("s", owner=Owner())
    with pytest.raises(SessionError):
        await session.save_session_state("s", owner=Owner())
