import pytest
from sqlmodel import Session, select

from pingsync.core.category_registry import Category, EntityKind
from pingsync.core.errors import ConfigError
from pingsync.database import build_engine
from pingsync.manifest.factory import build_manifest_store
from pingsync.manifest.json_store import JsonManifestStore
from pingsync.manifest.sql_store import SqlManifestStore
from pingsync.models.state_models import CheckpointRecord
from pingsync.models.sync_models import Checkpoint, CheckpointKey, Entity, Probe

CHECK_RESULTS = CheckpointKey(EntityKind.CHECK, "101", Category.RESULTS)
TM_OUTAGE = CheckpointKey(EntityKind.TM, "7", Category.OUTAGE)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlManifestStore(engine)


def test_factory_picks_sql_store_when_database_url_is_set(config):
    config.database_url = "sqlite://"
    assert isinstance(build_manifest_store(config), SqlManifestStore)


def test_factory_rejects_unreachable_database(config, tmp_path):
    config.database_url = f"sqlite:///{tmp_path}/missing/dir/state.db"
    with pytest.raises(ConfigError):
        build_manifest_store(config)


def test_factory_defaults_to_json_manifest(config, tmp_path):
    config.manifest_path = str(tmp_path / "manifest.json")
    assert isinstance(build_manifest_store(config), JsonManifestStore)


def test_fresh_database_is_empty(store):
    assert not store.is_initialized()
    assert store.load_checkpoints() == {}


def test_catalog_and_checkpoints_round_trip(store):
    store.save_catalog(
        [
            Entity(id=101, kind=EntityKind.CHECK, name="API", hostname="api.example.com", region="EU"),
            Entity(id=7, kind=EntityKind.TM, name="Checkout", kitchen="Paris"),
        ],
        [Probe(id=1, countryiso="DE", city="Frankfurt")],
    )
    store.save_checkpoints(
        {
            CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100),
            TM_OUTAGE: Checkpoint(latest_seen=50, earliest_seen=50),
        }
    )

    assert store.is_initialized()
    assert store.load_checkpoints() == {
        CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100),
        TM_OUTAGE: Checkpoint(latest_seen=50, earliest_seen=50),
    }
    entities = sorted(store.load_entities(), key=lambda e: e.id)
    assert [(e.id, e.kind, e.group) for e in entities] == [
        ("101", EntityKind.CHECK, "EU"),
        ("7", EntityKind.TM, "Paris"),
    ]
    assert store.load_probes()[0].location == "DE Frankfurt"


def test_save_checkpoints_updates_in_place(store, engine):
    store.save_checkpoints({CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100)})
    store.save_checkpoints({CHECK_RESULTS: Checkpoint(latest_seen=600, earliest_seen=100)})

    with Session(engine) as session:
        rows = session.exec(select(CheckpointRecord)).all()
        assert len(rows) == 1
        assert rows[0].latest_seen == 600


def test_catalog_refresh_drops_vanished_entities(store):
    keep = Entity(id=101, kind=EntityKind.CHECK, name="API")
    gone = Entity(id=7, kind=EntityKind.TM, name="Checkout")
    store.save_catalog([keep, gone], [Probe(id=1)])
    store.save_checkpoints(
        {
            CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100),
            TM_OUTAGE: Checkpoint(latest_seen=50),
        }
    )

    store.save_catalog([keep.model_copy(update={"name": "API v2"})], [Probe(id=1), Probe(id=2)])

    assert store.load_checkpoints() == {CHECK_RESULTS: Checkpoint(latest_seen=300, earliest_seen=100)}
    assert [e.name for e in store.load_entities()] == ["API v2"]
    assert sorted(p.id for p in store.load_probes()) == ["1", "2"]


def test_inverted_row_is_ignored(store, engine):
    with Session(engine) as session:
        session.add(
            CheckpointRecord(kind="check", entity_id="1", category="outage", latest_seen=10, earliest_seen=20)
        )
        session.add(CheckpointRecord(kind="check", entity_id="2", category="bogus", latest_seen=10))
        session.commit()

    assert store.load_checkpoints() == {}
