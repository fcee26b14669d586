from datetime import datetime, timedelta, timezone

import pytest

from fleetsrv.model import (
    Action,
    Agent,
    AgentMetadata,
    EnrollmentApiKey,
    HostMetadata,
    Policy,
    PolicyLeader,
    Server,
    ServerMetadata,
)


def test_document_fields_are_not_serialized():
    action = Action(id="doc-1", seq_no=4, version=2, action_id="a1")
    assert action.to_dict() == {"action_id": "a1"}


def test_agent_keeps_non_omitempty_fields():
    assert Agent().to_dict() == {"active": False, "enrolled_at": "", "type": ""}


def test_policy_empty_document():
    assert Policy().to_dict() == {
        "coordinator_idx": 0,
        "data": None,
        "default_fleet_server": False,
        "policy_id": "",
        "revision_idx": 0,
    }


def test_raw_empty_object_is_kept():
    assert Action(data={}).to_dict() == {"data": {}}
    assert Policy(data={}).to_dict()["data"] == {}


def test_host_ip_omitted_when_empty():
    assert "ip" not in HostMetadata(name="h").to_dict()
    assert HostMetadata(ip=["::1"]).to_dict()["ip"] == ["::1"]


def test_server_round_trip():
    server = Server(
        agent=AgentMetadata(id="agent-1", version="1.0.0"),
        host=HostMetadata(architecture="linux", id="agent-1", ip=["::1"], name="testing-host"),
        server=ServerMetadata(id="agent-1", version="1.0.0"),
        timestamp="2021-04-01T12:30:45Z",
    )
    assert Server.from_dict(server.to_dict()) == server


def test_from_dict_ignores_unknown_and_null():
    policy = Policy.from_dict({"policy_id": "p", "revision_idx": 3, "unknown": 1, "data": None})
    assert policy == Policy(policy_id="p", revision_idx=3)


def test_from_dict_rejects_wrong_types():
    with pytest.raises(TypeError):
        Policy.from_dict({"revision_idx": "3"})
    with pytest.raises(TypeError):
        Agent.from_dict({"active": 1})
    with pytest.raises(TypeError):
        Policy.from_dict(["not", "a", "mapping"])


def test_es_initialize():
    key = EnrollmentApiKey(api_key="placeholder")
    key.es_initialize("id-1", 7, 3)
    assert (key.id, key.seq_no, key.version) == ("id-1", 7, 3)
    assert key.to_dict() == {"api_key": "placeholder", "api_key_id": ""}


def test_set_time_formats_shortest_fraction():
    leader = PolicyLeader()
    leader.set_time(datetime(2021, 4, 1, 12, 30, 45, tzinfo=timezone.utc))
    assert leader.timestamp == "2021-04-01T12:30:45Z"
    leader.set_time(datetime(2021, 4, 1, 12, 30, 45, 500000, tzinfo=timezone.utc))
    assert leader.timestamp == "2021-04-01T12:30:45.5Z"


def test_time_round_trip():
    when = datetime(2021, 4, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    server = Server()
    server.set_time(when)
    assert server.time() == when


def test_time_truncates_nanoseconds_and_reads_offsets():
    leader = PolicyLeader(timestamp="2021-04-01T12:30:45.123456789Z")
    assert leader.time() == datetime(2021, 4, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    leader = PolicyLeader(timestamp="2021-04-01T14:30:45+02:00")
    assert leader.time() == datetime(2021, 4, 1, 12, 30, 45, tzinfo=timezone.utc)
    assert leader.time().utcoffset() == timedelta(hours=2)


@pytest.mark.parametrize("text", ["", "2021-04-01 12:30:45Z", "2021-04-01T12:30:45", "2021-13-01T12:30:45Z"])
def test_time_rejects_invalid(text):
    with pytest.raises(ValueError):
        PolicyLeader(timestamp=text).time()