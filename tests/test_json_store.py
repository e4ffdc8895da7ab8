import json

import pytest

from pingsync.core.category_registry import Category, EntityKind
from pingsync.manifest.json_store import JsonManifestStore
from pingsync.models.sync_models import Checkpoint, CheckpointKey, Entity, Probe

CHECK_RESULTS = CheckpointKey(EntityKind.CHECK, "101", Category.RESULTS)
CHECK_OUTAGE = CheckpointKey(EntityKind.CHECK, "101", Category.OUTAGE)
TM_PERF = CheckpointKey(EntityKind.TM, "7", Category.PERFORMANCE)


@pytest.fixture
def store(tmp_path):
    return JsonManifestStore(tmp_path / "manifest.json")


def test_missing_file_is_empty_state(store):
    assert not store.is_initialized()
    assert store.load_checkpoints() == {}
    assert store.load_entities() == []


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", "\"text\""])
def test_corrupt_file_is_empty_state(store, content):
    store.path.write_text(content)
    assert store.load_checkpoints() == {}
    assert not store.is_initialized()


def test_reads_existing_manifest_layout(store):
    store.path.write_text(
        json.dumps(
            {
                "checks": {
                    "101": {
                        "infos": {"id": 101, "name": "API Gateway", "hostname": "api.example.com", "region": "EU"},
                        "latest_ts": 2000,
                        "earliest_ts": 1000,
                        "outage_latest_ts": 1500,
                    }
                },
                "tms": {"7": {"infos": {"id": "7", "name": "Checkout", "kitchen": "Paris"}, "perf_latest_ts": 900}},
                "probes": {"1": {"id": 1, "countryiso": "DE", "city": "Frankfurt"}},
            }
        )
    )

    checkpoints = store.load_checkpoints()
    assert checkpoints == {
        CHECK_RESULTS: Checkpoint(latest_seen=2000, earliest_seen=1000),
        CHECK_OUTAGE: Checkpoint(latest_seen=1500),
        TM_PERF: Checkpoint(latest_seen=900),
    }

    entities = {e.id: e for e in store.load_entities()}
    assert entities["101"].kind is EntityKind.CHECK
    assert entities["101"].region == "EU"
    assert entities["7"].kitchen == "Paris"
    assert store.load_probes()[0].location == "DE Frankfurt"


def test_malformed_entries_are_dropped_individually(store):
    store.path.write_text(
        json.dumps(
            {
                "checks": {
                    "1": {"infos": {"id": 1, "name": "ok"}, "latest_ts": 10},
                    "2": {"infos": {"id": 2, "name": "bad"}, "latest_ts": "not a number"},
                    "3": {"infos": {"id": 3, "name": "inverted"}, "latest_ts": 10, "earliest_ts": 20},
                }
            }
        )
    )

    checkpoints = store.load_checkpoints()
    assert list(checkpoints) == [CheckpointKey(EntityKind.CHECK, "1", Category.RESULTS)]


def test_save_checkpoints_round_trips_and_leaves_no_temp_file(store):
    store.save_catalog(
        [Entity(id=101, kind=EntityKind.CHECK, name="API"), Entity(id=7, kind=EntityKind.TM, name="Checkout")],
        [],
    )
    store.save_checkpoints(
        {
            CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100),
            TM_PERF: Checkpoint(latest_seen=3600, earliest_seen=3600),
        }
    )

    raw = json.loads(store.path.read_text())
    assert raw["checks"]["101"]["latest_ts"] == 300
    assert raw["tms"]["7"]["perf_earliest_ts"] == 3600
    assert "latest_ts" not in raw["tms"]["7"]
    assert not store.path.with_name("manifest.json.tmp").exists()
    assert store.load_checkpoints()[CHECK_RESULTS] == Checkpoint(latest_seen=300, earliest_seen=100)


def test_catalog_refresh_keeps_surviving_checkpoints(store):
    old = Entity(id=101, kind=EntityKind.CHECK, name="API")
    gone = Entity(id=102, kind=EntityKind.CHECK, name="Legacy")
    store.save_catalog([old, gone], [Probe(id=1)])
    store.save_checkpoints(
        {
            CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100),
            CheckpointKey(EntityKind.CHECK, "102", Category.RESULTS): Checkpoint(latest_seen=50),
        }
    )

    renamed = Entity(id=101, kind=EntityKind.CHECK, name="API v2", region="US")
    store.save_catalog([renamed], [Probe(id=2, city="Dallas")])

    assert store.load_checkpoints() == {CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100)}
    assert [e.name for e in store.load_entities()] == ["API v2"]
    assert [p.id for p in store.load_probes()] == ["2"]
    assert store.is_initialized()


def test_unknown_fields_are_preserved(store):
    store.path.write_text(json.dumps({"checks": {"1": {"infos": {"id": 1, "name": "a"}, "custom": "keep"}}}))
    store.save_checkpoints({CheckpointKey(EntityKind.CHECK, "1", Category.OUTAGE): Checkpoint(latest_seen=5)})
    assert json.loads(store.path.read_text())["checks"]["1"]["custom"] == "keep"
