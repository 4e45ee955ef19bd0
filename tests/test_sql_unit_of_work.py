"""Tests for the SQLAlchemy unit of work against SQLite."""

import threading

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import (
    ADDRESS,
    ADMIN,
    BOOKSHELF,
    BUYER,
    GADGET_HUB,
    HEADPHONES,
    HOME_STORE,
    LAPTOP,
    SELLER,
    TABLE_LAMP,
)
from database import _engine_options
from errors import DuplicateSellerError, DuplicateTransactionError, InsufficientStockError
from models import Payment, Product, Seller
from services.catalog_service import ProductCatalog
from services.order_builder import OrderLine
from services.order_service import OrderService
from services.seller_service import SellerDirectory
from services.unit_of_work import SqlAlchemyUnitOfWork


@pytest.fixture
def uow(sql_session):
    return SqlAlchemyUnitOfWork(sql_session)


def stock_of(session, product_id):
    return session.get(Product, product_id, populate_existing=True).stock


class TestProducts:
    def test_decrement_is_conditional(self, sql_session, uow):
        with uow:
            assert uow.products.decrement_stock(BOOKSHELF, 25) is True
            assert uow.products.decrement_stock(BOOKSHELF, 1) is False
            uow.commit()

        assert stock_of(sql_session, BOOKSHELF) == 0

    def test_decrement_unknown_product(self, uow):
        with uow:
            assert uow.products.decrement_stock(404, 1) is False

    def test_get_sees_core_updates(self, uow):
        with uow:
            before = uow.products.get(LAPTOP)
            uow.products.decrement_stock(LAPTOP, 5)
            after = uow.products.get(LAPTOP)

            assert after is before
            assert after.stock == 45

    def test_leaving_without_commit_rolls_back(self, sql_session, uow):
        with uow:
            uow.products.decrement_stock(LAPTOP, 5)

        assert stock_of(sql_session, LAPTOP) == 50


def place(uow, lines, caller=BUYER):
    return OrderService(uow).place_order(
        caller=caller,
        lines=[OrderLine(product_id, qty) for product_id, qty in lines],
        shipping_address=ADDRESS,
        payment_method="COD"
    )


class TestOrders:
    def test_place_and_reload(self, sql_session, uow):
        order = place(uow, [(LAPTOP, 2), (TABLE_LAMP, 1)])

        with uow:
            reloaded = uow.orders.get(order.id)
            assert [item.product_id for item in reloaded.items] == [LAPTOP, TABLE_LAMP]
            assert reloaded.seller_ids == [GADGET_HUB, HOME_STORE]
            assert reloaded.shipping_address["city"] == "Lahore"
        assert stock_of(sql_session, LAPTOP) == 48

    def test_failed_placement_persists_nothing(self, sql_session, uow):
        with pytest.raises(InsufficientStockError):
            place(uow, [(LAPTOP, 2), (BOOKSHELF, 26)])

        assert stock_of(sql_session, LAPTOP) == 50
        with uow:
            assert uow.orders.list_for_buyer(BUYER.user_id) == []

    def test_seller_filter(self, uow):
        gadgets = place(uow, [(LAPTOP, 1)])
        home = place(uow, [(TABLE_LAMP, 1)])

        with uow:
            assert [o.id for o in uow.orders.list_for_seller(GADGET_HUB)] == [gadgets.id]
            total, orders = uow.orders.list_page(1, 10, seller_id=HOME_STORE)
            assert total == 1
            assert orders[0].id == home.id

    def test_cancel_restores_stock(self, sql_session, uow):
        order = place(uow, [(LAPTOP, 3)])

        OrderService(uow).cancel_order(BUYER, order.id)

        assert stock_of(sql_session, LAPTOP) == 50
        with uow:
            assert uow.orders.get(order.id).status == "Cancelled"

    def test_status_update_persists_payment_fields(self, uow):
        order = place(uow, [(LAPTOP, 1)])

        OrderService(uow).update_status(ADMIN, order.id, "Paid", provider_reference="EP-77")

        with uow:
            reloaded = uow.orders.get(order.id, for_update=True)
            assert reloaded.payment_status == "Paid"
            assert reloaded.payment_provider_reference == "EP-77"
            assert reloaded.paid_at is not None

    def test_seller_status_update(self, uow):
        order = place(uow, [(LAPTOP, 1)])

        updated = OrderService(uow).update_status(SELLER, order.id, "Shipped")

        assert updated.status == "Shipped"


class TestUniqueness:
    def test_duplicate_transaction_id(self, uow):
        order = place(uow, [(LAPTOP, 1)])

        with uow:
            uow.payments.add(Payment(
                user_id=BUYER.user_id, order_id=order.id, amount=1, method="COD",
                transaction_id="T-1", status="Pending"
            ))
            uow.commit()

        with uow:
            with pytest.raises(DuplicateTransactionError):
                uow.payments.add(Payment(
                    user_id=BUYER.user_id, order_id=order.id, amount=1, method="COD",
                    transaction_id="T-1", status="Pending"
                ))

    def test_duplicate_seller_user(self, uow):
        with uow:
            with pytest.raises(DuplicateSellerError):
                uow.sellers.add(Seller(
                    user_id=SELLER.user_id, name="Again", email="again@example.com",
                    shop_name="Again", phone="1"
                ))


class TestCatalogRecords:
    def test_delete_product_keeps_order_snapshot(self, sql_session, uow):
        order = place(uow, [(HEADPHONES, 2)])

        ProductCatalog(uow).delete_product(SELLER, HEADPHONES)

        assert sql_session.get(Product, HEADPHONES) is None
        with uow:
            assert uow.orders.get(order.id).items[0].name == "Headphones"

    def test_delete_seller_detaches_products(self, sql_session, uow):
        SellerDirectory(uow).delete_seller(ADMIN, HOME_STORE)

        assert sql_session.get(Seller, HOME_STORE) is None
        with uow:
            assert [p.seller_id for p in uow.products.list()] == [GADGET_HUB] * 3 + [None] * 3
            assert uow.products.list_for_seller(HOME_STORE) == []


class TestFileDatabase:
    def test_only_in_memory_databases_share_one_connection(self):
        assert _engine_options("sqlite://")["poolclass"] is StaticPool
        assert _engine_options("sqlite:///:memory:")["poolclass"] is StaticPool
        assert "poolclass" not in _engine_options("sqlite:///./marketplace.db")

    def test_interleaved_units_of_work_stay_isolated(self, sql_file_engine):
        make_session = sessionmaker(autocommit=False, autoflush=False, bind=sql_file_engine)
        writer_session, reader_session = make_session(), make_session()
        writer = SqlAlchemyUnitOfWork(writer_session)
        reader = SqlAlchemyUnitOfWork(reader_session)
        try:
            with writer:
                assert writer.products.decrement_stock(LAPTOP, 5) is True
                with reader:
                    assert reader.products.get(LAPTOP).stock == 50
                writer.commit()
        finally:
            reader_session.close()
            writer_session.close()

        with make_session() as session:
            assert stock_of(session, LAPTOP) == 45

    def test_no_oversell_across_sessions(self, sql_file_engine):
        make_session = sessionmaker(autocommit=False, autoflush=False, bind=sql_file_engine)
        with make_session() as session:
            uow = SqlAlchemyUnitOfWork(session)
            with uow:
                product_id = uow.products.add(
                    Product(name="Limited Print", price=20.0, stock=5, seller_id=GADGET_HUB)
                ).id
                uow.commit()

        placed, rejected = [], []
        barrier = threading.Barrier(4)

        def attempt():
            session = make_session()
            try:
                barrier.wait()
                order = place(SqlAlchemyUnitOfWork(session), [(product_id, 3)])
                placed.append(order.id)
            except InsufficientStockError as e:
                rejected.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(placed) == 1
        assert len(rejected) == 3
        with make_session() as session:
            assert stock_of(session, product_id) == 2
