import threading

import pytest

from deprivare.common.errors import MalformedValue, SchemaMismatch, StoreIOError, StoreNotFound
from deprivare.store.sqlite_store import DeprivationStore


def test_open_read_only_missing_location_raises(tmp_path, registry):
    with pytest.raises(StoreNotFound):
        DeprivationStore.open_or_create(tmp_path / "missing.db", registry.schema())


def test_transact_and_find_by_geographic_key(store):
    written = store.transact(
        [
            {"lsoa": "W01000001", "test-scores-2024/score": 5.2},
            {"lsoa": "W01000002", "test-scores-2024/score": 7.9},
            {"lsoa": "W01000001", "test-ranks-2023/rank": 12},
        ]
    )
    assert written == 3
    found = store.find_by_geographic_key("W01000001")
    assert len(found) == 2
    assert {"lsoa": "W01000001", "test-scores-2024/score": 5.2} in found
    assert {"lsoa": "W01000001", "test-ranks-2023/rank": 12} in found
    assert store.find_by_geographic_key("W01999999") == []


def test_transact_is_all_or_nothing_on_type_violation(store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 5.2}])
    with pytest.raises(MalformedValue):
        store.transact(
            [
                {"lsoa": "W01000002", "test-scores-2024/score": 7.9},
                {"lsoa": "W01000003", "test-ranks-2023/rank": "twelve"},
            ]
        )
    assert store.count_records() == 1
    assert store.find_by_geographic_key("W01000002") == []


def test_transact_rejects_record_without_geographic_key(store):
    with pytest.raises(MalformedValue):
        store.transact([{"test-scores-2024/score": 1.0}])
    assert store.count_records() == 0


def test_transact_rolls_back_when_source_iterable_fails(store):
    def records():
        yield {"lsoa": "W01000001", "test-scores-2024/score": 1.0}
        raise MalformedValue("bad row")

    with pytest.raises(MalformedValue):
        store.transact(records())
    assert store.count_records() == 0


def test_integer_values_are_stored_as_floats_for_float_attributes(store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 5}])
    [found] = store.find_by_geographic_key("W01000001")
    assert found["test-scores-2024/score"] == 5.0
    assert isinstance(found["test-scores-2024/score"], float)


def test_undeclared_attributes_are_registered_with_inferred_type(store):
    store.transact([{"lsoa": "W01000001", "extra-2022/count": 4}])
    assert store.schema["extra-2022/count"] == "integer"
    with pytest.raises(MalformedValue):
        store.transact([{"lsoa": "W01000002", "extra-2022/count": "four"}])


def test_transact_with_dataset_id_replaces_previous_records(store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 1.0}], dataset_id="test-scores-2024")
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 2.0}], dataset_id="test-scores-2024")
    assert store.count_records("test-scores-2024") == 1
    assert store.find_by_geographic_key("W01000001") == [{"lsoa": "W01000001", "test-scores-2024/score": 2.0}]


def test_installation_records_append_and_list_installed_deduplicates(store):
    store.record_installation("test-scores-2024")
    store.record_installation("test-scores-2024")
    store.record_installation("test-ranks-2023")
    assert store.list_installed() == {"test-scores-2024", "test-ranks-2023"}
    history = store.installations()
    assert [record.dataset_id for record in history] == ["test-scores-2024", "test-scores-2024", "test-ranks-2023"]
    assert all(record.installed_at for record in history)


def test_reopen_with_schema_keeps_existing_records(db_path, registry, store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 5.2}])
    store.close()
    schema = {**registry.schema(), "new-2025/value": "float"}
    with DeprivationStore.open_or_create(db_path, schema, read_only=False) as reopened:
        assert reopened.find_by_geographic_key("W01000001") == [{"lsoa": "W01000001", "test-scores-2024/score": 5.2}]
        assert reopened.schema["new-2025/value"] == "float"


def test_reopen_rejects_type_change_for_attribute_with_data(db_path, registry, store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 5.2}])
    store.close()
    schema = {**registry.schema(), "test-scores-2024/score": "string"}
    with pytest.raises(SchemaMismatch):
        DeprivationStore.open_or_create(db_path, schema, read_only=False)
    with DeprivationStore.open_or_create(db_path, registry.schema()) as reader:
        assert reader.count_records() == 1


def test_read_only_store_rejects_writes(db_path, registry, store):
    store.close()
    with DeprivationStore.open_or_create(db_path, registry.schema()) as reader:
        with pytest.raises(StoreIOError):
            reader.transact([{"lsoa": "W01000001", "test-scores-2024/score": 1.0}])


def test_closed_store_raises_store_io_error(store):
    store.close()
    with pytest.raises(StoreIOError):
        store.find_by_geographic_key("W01000001")


def test_concurrent_readers_each_see_committed_records(db_path, registry, store):
    store.transact([{"lsoa": f"W0100000{i}", "test-scores-2024/score": float(i)} for i in range(5)])
    store.close()

    results: dict[int, list] = {}
    with DeprivationStore.open_or_create(db_path, registry.schema()) as reader:

        def read(i: int) -> None:
            results[i] = reader.find_by_geographic_key(f"W0100000{i}")

        threads = [threading.Thread(target=read, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    assert results == {i: [{"lsoa": f"W0100000{i}", "test-scores-2024/score": float(i)}] for i in range(5)}


def test_inferred_integer_attribute_widens_to_float_in_later_batch(store):
    store.transact([{"lsoa": "W01000001", "extra-2022/value": 5}])
    store.transact([{"lsoa": "W01000002", "extra-2022/value": 5.5}])

    assert store.schema["extra-2022/value"] == "float"
    assert store.find_by_geographic_key("W01000002") == [{"lsoa": "W01000002", "extra-2022/value": 5.5}]
    [first] = store.find_by_geographic_key("W01000001")
    assert first["extra-2022/value"] == 5.0
    assert isinstance(first["extra-2022/value"], float)


def test_inferred_integer_attribute_widens_within_one_batch(db_path, registry, store):
    store.transact(
        [
            {"lsoa": "W01000001", "extra-2022/value": 5},
            {"lsoa": "W01000002", "extra-2022/value": 5.5},
            {"lsoa": "W01000003", "extra-2022/value": 6},
        ]
    )
    store.close()

    with DeprivationStore.open_or_create(db_path, registry.schema()) as reader:
        assert reader.schema["extra-2022/value"] == "float"
        assert reader.find_by_geographic_key("W01000001") == [{"lsoa": "W01000001", "extra-2022/value": 5.0}]
        assert reader.find_by_geographic_key("W01000003") == [{"lsoa": "W01000003", "extra-2022/value": 6.0}]


def test_declared_integer_attribute_rejects_float(store):
    with pytest.raises(MalformedValue):
        store.transact([{"lsoa": "W01000001", "test-ranks-2023/rank": 12.5}])
    assert store.schema["test-ranks-2023/rank"] == "integer"
    assert store.count_records() == 0


def test_reader_sees_committed_records_while_writer_transaction_is_open(db_path, registry, store):
    store.transact([{"lsoa": "W01000001", "test-scores-2024/score": 5.2}])
    seen: list = []

    with DeprivationStore.open_or_create(db_path, registry.schema()) as reader:

        def records():
            yield {"lsoa": "W01000002", "test-scores-2024/score": 7.9}
            # The writer holds an open transaction with one uncommitted record.
            seen.append(reader.find_by_geographic_key("W01000001"))
            seen.append(reader.find_by_geographic_key("W01000002"))

        assert store.transact(records()) == 1
        assert reader.find_by_geographic_key("W01000002") == [{"lsoa": "W01000002", "test-scores-2024/score": 7.9}]

    assert seen == [[{"lsoa": "W01000001", "test-scores-2024/score": 5.2}], []]
