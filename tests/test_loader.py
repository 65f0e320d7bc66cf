"""Tests for loading fixtures into the fixture store"""
import json
from types import MappingProxyType

import pytest
import yaml

from whodb.e2e.matrix.config import ConnectionParams, DatabaseFixture, GraphConfig, TableMetadata, TableTestData
from whodb.e2e.matrix.errors import UnknownCategoryError, UnknownDatabaseError
from whodb.e2e.matrix.loader import FixtureStore, host_override_variable, iter_documents
from whodb.e2e.matrix.types import Category
from whodb.e2e.matrix.validator import SCOPE_GRAPH, SCOPE_MOCK_DATA, SCOPE_SSL, SCOPE_TABLES

from tests.conftest import BROKEN_DIR, DATABASES_DIR, load_store
from tests.fakes import fixture_document


def test_loads_every_sample_fixture_in_file_order(matrix_store):
    assert list(matrix_store) == ["clickhouse", "mongodb", "mysql", "postgres", "redis"]
    assert not matrix_store.rejected


def test_fixture_fields_are_parsed(postgres):
    assert postgres.type == "Postgres"
    assert postgres.category is Category.SQL
    assert postgres.connection.host == "localhost"
    assert postgres.connection.advanced["Port"] == "5432"
    assert postgres.test_table.name == "users"
    assert postgres.test_table.test_values.original == "john_doe"
    assert postgres.test_table.type_casting_table == "type_casting"
    assert postgres.data_types_table == "data_types"
    assert postgres.schema == "test_schema"
    assert postgres.shows_schema_dropdown
    assert postgres.source.endswith("postgres.yaml")


def test_fixtures_are_immutable(postgres):
    with pytest.raises(TypeError):
        postgres.features["graph"] = False
    with pytest.raises(AttributeError):
        postgres.id = "other"


def test_default_mappings_are_empty_and_read_only():
    """Mapping fields built without a document default to fresh read-only mappings."""
    fixture = DatabaseFixture(id="bare", type="Bare", category=Category.SQL)
    defaults = [
        ConnectionParams().advanced,
        GraphConfig().expected_nodes,
        TableMetadata().extra,
        TableTestData().type_tests,
        fixture.features,
        fixture.feature_notes,
        fixture.tables,
        fixture.raw,
    ]
    for mapping in defaults:
        assert isinstance(mapping, MappingProxyType)
        assert dict(mapping) == {}
        with pytest.raises(TypeError):
            mapping["key"] = "value"
    assert fixture == DatabaseFixture(id="bare", type="Bare", category=Category.SQL)


def test_mutation_delay_is_exposed_in_seconds(matrix_store):
    assert matrix_store["clickhouse"].mutation_delay_ms == 5
    assert matrix_store["clickhouse"].mutation_delay == pytest.approx(0.005)
    assert matrix_store["postgres"].mutation_delay == 0


def test_lookup_is_case_insensitive(matrix_store):
    assert matrix_store["Postgres"].id == "postgres"
    assert matrix_store.get_database_config("MYSQL").id == "mysql"


def test_unknown_database_lists_available_ids(matrix_store):
    with pytest.raises(UnknownDatabaseError) as excinfo:
        matrix_store.get_database_config("oracle")
    message = str(excinfo.value)
    assert message.startswith("Unknown database: oracle. Available: ")
    assert "postgres" in message
    # Mapping semantics stay intact for membership and .get()
    assert "oracle" not in matrix_store
    assert matrix_store.get("oracle") is None


def test_by_category_keeps_store_order(matrix_store):
    assert [f.id for f in matrix_store.by_category("sql")] == ["clickhouse", "mysql", "postgres"]
    assert [f.id for f in matrix_store.by_category(Category.DOCUMENT)] == ["mongodb"]
    assert [f.id for f in matrix_store.by_category("keyvalue")] == ["redis"]
    assert len(matrix_store.by_category("all")) == 5
    with pytest.raises(UnknownCategoryError):
        matrix_store.by_category("graph")


def test_json_and_list_shorthand_documents(matrix_store):
    assert matrix_store["mysql"].ssl.user == "ssl_user"
    assert dict(matrix_store["redis"].features) == {"export": True, "whereConditions": True}


def test_rejected_fixtures_are_kept_with_reasons():
    store = load_store(DATABASES_DIR, BROKEN_DIR)
    assert set(store.rejected) == {"neo4j", "no_features"}
    assert "neo4j" not in store
    assert "Invalid category: graph" in store.rejected["neo4j"].reason
    assert "Missing required field: features" in store.rejected["no_features"].reason
    # An unknown category shows up in every group.
    assert store.rejected["neo4j"].matches_category("document")
    assert store.rejected["no_features"].matches_category("sql")
    assert not store.rejected["no_features"].matches_category("document")


def test_block_level_errors_keep_fixture_loaded():
    store = load_store(BROKEN_DIR)
    assert "mariadb" in store
    assert "cockroach" in store
    ssl_issues = store.issues_for("mariadb", [SCOPE_SSL])
    assert len(ssl_issues) == 3
    assert store.issues_for("mariadb", [SCOPE_MOCK_DATA]) == []
    cycle = store.issues_for("cockroach", [SCOPE_MOCK_DATA])
    assert len(cycle) == 1
    assert "Foreign key cycle" in cycle[0].message
    assert store["mariadb"].ssl is None
    assert store["cockroach"].mock_data is None
    assert store["cockroach"].graph is not None


def test_later_directories_override_ids_in_place(tmp_path):
    override = fixture_document("postgres", features={"export": True})
    override['type'] = "Postgres"
    override['connection']['host'] = "ee-postgres.local"
    (tmp_path / "postgres.json").write_text(json.dumps(override), encoding="utf-8")

    store = load_store(DATABASES_DIR, tmp_path)
    assert list(store) == ["clickhouse", "mongodb", "mysql", "postgres", "redis"]
    assert store["postgres"].connection.host == "ee-postgres.local"
    assert store["postgres"].source == str(tmp_path / "postgres.json")


def test_multi_database_document(tmp_path):
    document = {
        'databases': {
            'sqlite': fixture_document("ignored", features={"export": True}),
            'oracle': fixture_document("oracle"),
        }
    }
    document['databases']['sqlite'].pop('id')
    with open(tmp_path / "extra.yaml", "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False)

    ids = [fixture_id for fixture_id, _, _ in iter_documents([tmp_path])]
    assert ids == ["sqlite", "oracle"]


def test_missing_directory_is_skipped(tmp_path, caplog):
    documents = list(iter_documents([tmp_path / "absent", DATABASES_DIR]))
    assert len(documents) == 5
    assert "does not exist" in caplog.text


def test_unreadable_document_is_rejected_with_file_name(tmp_path):
    """A file that cannot be decoded is rejected under its stem instead of aborting the load."""
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "zz_broken.yaml").write_text("type: [unclosed\n", encoding="utf-8")
    store = load_store(DATABASES_DIR, tmp_path)
    assert list(store) == ["clickhouse", "mongodb", "mysql", "postgres", "redis"]
    assert set(store.rejected) == {"broken", "zz_broken"}
    assert "Cannot read fixture file" in store.rejected["broken"].reason
    assert "broken.json" in store.rejected["broken"].reason
    assert store.rejected["zz_broken"].source == str(tmp_path / "zz_broken.yaml")
    # Without a readable category the rejection is reported in every group.
    assert store.rejected["broken"].matches_category("keyvalue")


def test_databases_key_that_is_not_a_mapping_is_rejected(tmp_path):
    (tmp_path / "many.yaml").write_text("databases:\n  - postgres\n", encoding="utf-8")
    store = load_store(tmp_path)
    assert len(store) == 0
    assert "must be a mapping of id to fixture" in store.rejected["many"].reason


def test_invalid_blocks_are_dropped_before_parsing():
    """Blocks the validator flagged are not parsed, so only their scope is affected."""
    store = FixtureStore.from_documents([
        ("ssl_modes", fixture_document("ssl_modes", ssl={"modes": "require"}), None),
        ("ssl_port", fixture_document("ssl_port", ssl={"port": "abc", "modes": []}), None),
        ("bad_graph", fixture_document("bad_graph", graph={"expectedNodes": ["users"]}), None),
        ("bad_tables", fixture_document("bad_tables", tables={"users": "id, name"}), None),
    ], environ={})
    assert not store.rejected
    assert store["ssl_modes"].ssl is None
    assert store["ssl_port"].ssl is None
    assert store["bad_graph"].graph is None
    assert dict(store["bad_tables"].tables) == {}
    assert "ssl.modes must be a list" in str(store.issues_for("ssl_modes", [SCOPE_SSL])[0])
    assert "'abc'" in str(store.issues_for("ssl_port", [SCOPE_SSL])[0])
    assert store.issues_for("bad_graph", [SCOPE_GRAPH])
    assert store.issues_for("bad_tables", [SCOPE_TABLES])
    assert store.issues_for("ssl_modes", [SCOPE_MOCK_DATA, SCOPE_GRAPH, SCOPE_TABLES]) == []


def test_host_override_from_environment():
    assert host_override_variable("ee-postgres") == "DB_HOST_EE_POSTGRES"
    store = FixtureStore.load([DATABASES_DIR], environ={"DB_HOST_POSTGRES": "10.0.0.5"})
    assert store["postgres"].connection.host == "10.0.0.5"
    assert store["mysql"].connection.host == "mysql.local"


def test_from_documents_accepts_inline_documents():
    store = FixtureStore.from_documents([
        ("a", fixture_document("a", features={"export": True}), None),
        ("b", fixture_document("b", category="document"), None),
    ], environ={})
    assert isinstance(store["a"], DatabaseFixture)
    assert store.validation("a").valid
    assert store.validation("a").warnings
