"""Unit tests for claims, tenant, order and record repositories."""

import pytest

from adapters.db.base import RecordExistsError, StoreValidationError
from adapters.db.order_store import OrderRepository
from adapters.db.paths import TenantScope
from adapters.db.records_store import TenantRecordsRepository
from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from domains.orders.models import Order, OrderStatus
from domains.tenancy.models import Claims, TenantSettings


@pytest.mark.unit
class TestClaimsRepository:
    def test_get_claims_from_profile(self, store):
        store.set("users/u1", {"companyId": "t1", "role": "owner"})
        assert ClaimsRepository(store).get_claims("u1") == Claims("t1", "owner")

    def test_malformed_profile_has_no_claims(self, store):
        store.set("users/u1", {"companyId": "t1"})
        assert ClaimsRepository(store).get_claims("u1") is None

    def test_find_by_email_prefers_keyed_profile(self, store):
        store.set("users/a@b.c", {"email": "a@b.c", "role": "owner", "companyId": "1"})
        store.set("users/u7", {"email": "a@b.c"})
        assert ClaimsRepository(store).find_by_email("a@b.c")[0] == "a@b.c"

    def test_find_by_email_query(self, store):
        store.set("users/u7", {"email": "a@b.c"})
        assert ClaimsRepository(store).find_by_email("a@b.c") == ("u7", {"email": "a@b.c"})
        assert ClaimsRepository(store).find_by_email("x@b.c") is None

    def test_entitled_tenants_ordered_and_deduplicated(self, store):
        store.set("users/u1", {"companyId": "t1", "role": "owner", "tenantIds": ["t2", "t1", "", 5, "t3"]})
        assert ClaimsRepository(store).entitled_tenant_ids("u1") == ["t1", "t2", "t3"]

    def test_entitled_tenants_prefers_given_claims(self, store):
        assert ClaimsRepository(store).entitled_tenant_ids("u1", Claims("t5", "admin")) == ["t5"]

    def test_build_profile_keeps_created_at(self):
        profile = ClaimsRepository.build_profile(
            Claims("t1", "owner"),
            email="a@b.c",
            display_name="Ana",
            base={"createdAt": "2020-01-01", "extra": True},
        )
        assert profile["createdAt"] == "2020-01-01"
        assert profile["extra"] is True
        assert profile["tenantId"] == profile["companyId"] == "t1"


@pytest.mark.unit
class TestTenantRepository:
    def test_get_and_get_many(self, store):
        store.set("tenants/t1", TenantRepository.build_record("Loja", TenantSettings("XP")))
        repo = TenantRepository(store)

        tenant = repo.get("t1")
        assert tenant.name == "Loja"
        assert tenant.settings.tracking_prefix == "XP"
        assert [t.id for t in repo.get_many(["missing", "t1"])] == ["t1"]
        assert not repo.exists("missing")

    def test_new_tenant_ids_unique(self):
        assert TenantRepository.new_tenant_id() != TenantRepository.new_tenant_id()


@pytest.mark.unit
class TestOrderRepository:
    def test_create_conflict_writes_nothing(self, store):
        repo = OrderRepository(store)
        scope = TenantScope("t1")
        store.set("trackingCodes/LGDUP", {"tenantId": "t9", "orderId": "x"})

        order = Order(id="o1", tenant_id="t1", status=OrderStatus.PENDENTE, tracking_code="LGDUP")
        with pytest.raises(RecordExistsError):
            repo.create(scope, order)

        assert repo.owner_of("o1") is None
        assert repo.get(scope, "o1") is None

    def test_resolve_tracking(self, store):
        repo = OrderRepository(store)
        repo.create(TenantScope("t1"), Order(id="o1", tenant_id="t1", status=OrderStatus.PENDENTE, tracking_code="LGA1"))
        assert repo.resolve_tracking("lga1") == ("t1", "o1")
        assert repo.owner_of("o1") == "t1"


@pytest.mark.unit
class TestTenantRecordsRepository:
    def test_put_and_get_scoped(self, store):
        repo = TenantRecordsRepository(store)
        repo.put(TenantScope("t1"), "clients", "c1", {"nome": "Cliente"})

        assert repo.get(TenantScope("t1"), "clients", "c1") == {"nome": "Cliente"}
        assert repo.get(TenantScope("t2"), "clients", "c1") is None
        assert repo.list(TenantScope("t1"), "clients") == [("c1", {"nome": "Cliente"})]

    def test_orders_not_writable(self, store):
        with pytest.raises(StoreValidationError):
            TenantRecordsRepository(store).put(TenantScope("t1"), "orders", "o1", {"status": "ENTREGUE"})

    def test_body_must_be_mapping(self, store):
        with pytest.raises(StoreValidationError):
            TenantRecordsRepository(store).put(TenantScope("t1"), "clients", "c1", ["x"])
