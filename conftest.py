"""Shared fixtures: a temporary target database with reference rows and
builders for legacy rows in their extracted JSON shape."""

import pytest

from legacy_source.loader import LegacyRecordSource
from target_store.db import TargetStore, ensure_tenant, get_db_connection, init_target_store_db


CUSTOMER_ACCOUNT = 1084096
OTHER_ACCOUNT = 2000001


def activity_row(activity_id, code="D", status=1, account_id=CUSTOMER_ACCOUNT):
    return {
        "ActivityID": activity_id,
        "AccountID": account_id,
        "TransactionType": code,
        "Status": status,
        "DateCreated": "2023-05-01T10:00:00",
        "DateUpdated": "2023-05-02T10:00:00",
    }


def line_row(
    detail_id,
    activity_id,
    case_id=10,
    quantity=1,
    wine=7,
    bottle_format=750,
    vintage=2015,
    kind="Bottle",
    case_detail_id=None,
):
    return {
        "ActivityDetailID": detail_id,
        "ActivityID": activity_id,
        "ActivityType": kind,
        "CaseID": case_id,
        "CaseDetailID": case_detail_id,
        "WineItemID": wine,
        "BottleSizeID": bottle_format,
        "VintageID": vintage,
        "Quantity": quantity,
    }


def case_detail_row(case_detail_id, case_id=20, wine=8, bottle_format=750, vintage=2015, quantity=6):
    return {
        "legacy_case_detail_id": case_detail_id,
        "legacy_case_id": case_id,
        "legacy_wine_item_id": wine,
        "legacy_bottle_size_id": bottle_format,
        "legacy_vintage_id": vintage,
        "WineQuantity": quantity,
    }


def make_source(activities=(), lines=(), case_details=()):
    return LegacyRecordSource(activities=activities, activity_lines=lines, case_details=case_details)


@pytest.fixture
def conn(tmp_path):
    connection = get_db_connection(tmp_path / "target.db")
    init_target_store_db(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn):
    return TargetStore(conn, ensure_tenant(conn, "Veritas002", "VERITAS-002"))


@pytest.fixture
def ids(store):
    """Reference rows every reconciliation test resolves against.

    Legacy cases 10, 20 and 30 belong to the main customer. Wines 7 and 8,
    bottle format 750 and vintage 2015 exist. Case 99 and wine 555 do not.
    """
    customer_id = store.add_customer(CUSTOMER_ACCOUNT, email="cellar@example.com")
    other_customer_id = store.add_customer(OTHER_ACCOUNT)
    refs = {
        "customer": customer_id,
        "other_customer": other_customer_id,
        "case_10": store.add_case(10, customer_id),
        "case_20": store.add_case(20, customer_id),
        "case_30": store.add_case(30, customer_id),
        "case_40": store.add_case(40, other_customer_id),
        "wine_7": store.add_wine(7, description="Barolo"),
        "wine_8": store.add_wine(8, description="Chablis"),
        "format_750": store.add_bottle_format(750, name="750ml"),
        "vintage_2015": store.add_bottle_vintage(2015, name="2015"),
    }
    store.commit()
    return refs
