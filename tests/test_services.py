"""Tests for synced collections and the record services."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from evledger.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from evledger.gateway import StorageGateway
from evledger.models import AccountType, ServiceType, Transaction, TransactionType
from evledger.services import (
    LOAD_ERROR,
    SAVE_ERROR,
    ServiceRecordService,
    SyncedCollection,
    TransactionService,
)
from evledger.storage import JSONStorage


def transaction_collection(gateway, key="transactions_sita"):
    return SyncedCollection(gateway, key, Transaction.from_dict, Transaction.to_dict)


def tx_payload(**overrides):
    payload = {
        "description": "Ride share fares",
        "amount": "1500",
        "type": "income",
        "account": "cash",
        "date": "2024-05-18T10:00:00Z",
    }
    payload.update(overrides)
    return payload


class FailingStorage(JSONStorage):
    def save(self, key, records):
        raise PersistenceError("read-only volume")


def test_collection_starts_loading_until_refreshed(gateway):
    collection = transaction_collection(gateway)
    assert collection.loading

    asyncio.run(collection.refresh())

    assert not collection.loading
    assert collection.data == []
    assert collection.error is None


def test_add_is_visible_before_save_completes(storage):
    slow_gateway = StorageGateway(storage, load_latency=0, save_latency=0.05)

    async def scenario():
        collection = transaction_collection(slow_gateway)
        await collection.refresh()
        service = TransactionService(collection)
        service.add(tx_payload())
        visible_now = len(service.list())
        persisted_now = storage.load("transactions_sita") if storage.exists("transactions_sita") else []
        await collection.flush()
        return visible_now, persisted_now

    visible_now, persisted_now = asyncio.run(scenario())

    assert visible_now == 1
    assert persisted_now == []
    assert len(storage.load("transactions_sita")) == 1


def test_saves_persist_last_state(gateway, storage):
    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        service = TransactionService(collection)
        first = service.add(tx_payload(description="first"))
        service.add(tx_payload(description="second"))
        service.delete(first.id)
        await collection.flush()

    asyncio.run(scenario())

    stored = storage.load("transactions_sita")
    assert [row["description"] for row in stored] == ["second"]


def test_save_failure_sets_banner_without_rollback(tmp_path):
    gateway = StorageGateway(FailingStorage(tmp_path), load_latency=0, save_latency=0)

    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        service = TransactionService(collection)
        service.add(tx_payload())
        await collection.flush()
        return collection, service

    collection, service = asyncio.run(scenario())

    assert collection.error == SAVE_ERROR
    assert len(service.list()) == 1


def test_load_failure_sets_banner(gateway, storage):
    (storage.base_path / "transactions_sita.json").write_text("oops", encoding="utf-8")
    collection = transaction_collection(gateway)

    asyncio.run(collection.refresh())

    assert collection.error == LOAD_ERROR
    assert collection.data == []
    assert not collection.loading


def test_transaction_crud(gateway):
    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        service = TransactionService(collection)

        created = service.add(tx_payload(account="loan", type="expense", amount="250.456"))
        assert created.amount == Decimal("250.46")
        assert created.account is AccountType.LOAN
        assert created.type_label == "Pay Loan"
        assert service.last_description == "Ride share fares"

        updated = service.update(created.id, {"amount": "300", "description": "EMI"})
        assert updated.id == created.id
        assert updated.amount == Decimal("300.00")
        assert updated.date == created.date
        assert service.get(created.id) == updated

        service.delete(created.id)
        assert service.list() == []
        with pytest.raises(RecordNotFoundError):
            service.get(created.id)
        with pytest.raises(RecordNotFoundError):
            service.update(created.id, {})
        await collection.flush()

    asyncio.run(scenario())


def test_invalid_transaction_never_enters_collection(gateway, storage):
    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        service = TransactionService(collection)
        for bad in (tx_payload(amount="0"), tx_payload(description="  "), tx_payload(account="card")):
            with pytest.raises(ValidationError):
                service.add(bad)
        await collection.flush()
        return service.list()

    assert asyncio.run(scenario()) == []
    assert not storage.exists("transactions_sita")


def test_transactions_reload_from_storage(gateway):
    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        TransactionService(collection).add(tx_payload(type="expense", amount="99.90"))
        await collection.flush()

        reloaded = transaction_collection(gateway)
        await reloaded.refresh()
        return reloaded.data

    (tx,) = asyncio.run(scenario())
    assert tx.type is TransactionType.EXPENSE
    assert tx.amount == Decimal("99.90")


def service_collection(gateway):
    from evledger.models import ServiceRecord

    return SyncedCollection(gateway, "service_records_sita", ServiceRecord.from_dict, ServiceRecord.to_dict)


def run_service(gateway, payload):
    async def scenario():
        collection = service_collection(gateway)
        await collection.refresh()
        service = ServiceRecordService(collection)
        try:
            return service.add(payload), service.list()
        finally:
            await collection.flush()

    return asyncio.run(scenario())


def test_tire_service_without_tires_is_rejected(gateway, storage):
    payload = {
        "service_types": ["Tire"],
        "tire_detail": "Tire New",
        "tires": {"fl": False, "fr": False, "rl": False, "rr": False, "spare": False},
        "cost": "8000",
        "odometer": "15000",
        "date": "2024-05-01",
    }

    with pytest.raises(ValidationError, match="at least one tire"):
        run_service(gateway, payload)
    assert not storage.exists("service_records_sita")


def test_tire_service_uses_detail_as_description(gateway):
    record, records = run_service(
        gateway,
        {
            "service_types": ["Tire", "Servicing"],
            "tire_detail": "Tire Resole",
            "description": "ignored",
            "tires": {"fl": True, "rr": True},
            "tire_company": "  Yeti  ",
            "cost": "3200.5",
            "odometer": 21000,
            "date": "2024-05-01",
        },
    )

    assert record.description == "Tire Resole"
    assert record.tire_company == "Yeti"
    assert record.display_description == "Tire Resole (FL, RR) - Yeti"
    assert record.service_types == frozenset({ServiceType.TIRE, ServiceType.SERVICING})
    assert records == [record]


def test_plain_service_needs_description(gateway):
    base = {"service_types": ["Repairing"], "cost": "0", "odometer": "100", "date": "2024-05-01"}

    with pytest.raises(ValidationError, match="service description"):
        run_service(gateway, base)

    record, _ = run_service(gateway, {**base, "description": "Brake pads"})
    assert record.tires is None
    assert record.display_description == "Brake pads"


def test_service_history_is_newest_first(gateway):
    async def scenario():
        collection = service_collection(gateway)
        await collection.refresh()
        service = ServiceRecordService(collection)
        for day in ("2024-01-10", "2024-03-05", "2024-02-01"):
            service.add({"service_types": ["Servicing"], "description": day, "cost": "1", "odometer": "1", "date": day})
        await collection.flush()
        return [record.description for record in service.list()]

    assert asyncio.run(scenario()) == ["2024-03-05", "2024-02-01", "2024-01-10"]


def test_failed_load_blocks_writes_and_keeps_stored_ledger(gateway, storage):
    stored = [
        Transaction.from_dict(
            {
                "id": "kept",
                "description": "Fares",
                "amount": "800.00",
                "type": "income",
                "account": "cash",
                "date": "2024-05-18T10:00:00.000Z",
            }
        ).to_dict(),
        {
            "id": "odd",
            "description": "Unknown kind",
            "amount": "10.00",
            "type": "transfer",
            "account": "cash",
            "date": "2024-05-18T11:00:00.000Z",
        },
    ]
    storage.save("transactions_sita", stored)

    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        service = TransactionService(collection)
        with pytest.raises(PersistenceError, match="Could not load data"):
            service.add(tx_payload(description="new"))
        await collection.flush()
        return collection

    collection = asyncio.run(scenario())

    assert collection.load_failed
    assert collection.error == LOAD_ERROR
    assert storage.load("transactions_sita") == stored


def test_successful_reload_makes_collection_writable_again(gateway, storage):
    (storage.base_path / "transactions_sita.json").write_text("oops", encoding="utf-8")

    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        storage.save("transactions_sita", [])
        await collection.refresh()
        TransactionService(collection).add(tx_payload())
        await collection.flush()
        return collection

    collection = asyncio.run(scenario())

    assert not collection.load_failed
    assert collection.error is None
    assert len(storage.load("transactions_sita")) == 1


def test_non_numeric_stored_amount_sets_load_banner(gateway, storage):
    storage.save(
        "transactions_sita",
        [
            {
                "id": "bad",
                "description": "Fares",
                "amount": "abc",
                "type": "income",
                "account": "cash",
                "date": "2024-05-18T10:00:00.000Z",
            }
        ],
    )
    collection = transaction_collection(gateway)

    asyncio.run(collection.refresh())

    assert collection.error == LOAD_ERROR
    assert collection.load_failed
    assert collection.data == []


def test_bare_date_is_stored_in_the_calendar_time_zone(gateway):
    kathmandu = ZoneInfo("Asia/Kathmandu")

    async def scenario():
        collection = transaction_collection(gateway)
        await collection.refresh()
        return TransactionService(collection, tz=kathmandu).add(tx_payload(date="2024-04-12"))

    transaction = asyncio.run(scenario())

    assert transaction.date.astimezone(kathmandu).date() == date(2024, 4, 12)
