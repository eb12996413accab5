"""HTTP tests for provisioning, claims, orders, records and health."""

import pytest


@pytest.mark.api
@pytest.mark.unit
class TestProvisionEndpoint:
    def test_provision_new_identity(self, client, bearer, provider):
        resp = client.post("/provision", headers=bearer("u1", email="ana@shop.com", name="Ana"))

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["role"] == "admin"
        assert body["tenantId"] == body["companyId"]
        assert provider.custom_claims("u1")["tenantId"] == body["tenantId"]

    def test_provision_is_idempotent(self, client, bearer):
        first = client.post("/provision", headers=bearer("u1", email="ana@shop.com")).get_json()
        second = client.post("/provision", headers=bearer("u1", email="ana@shop.com")).get_json()
        assert first["tenantId"] == second["tenantId"]

    def test_missing_bearer(self, client):
        resp = client.post("/provision")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "AUTH_ERROR"

    def test_invalid_token(self, client):
        resp = client.post("/provision", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_TOKEN"

    def test_no_email_cannot_be_assigned(self, client, bearer):
        resp = client.post("/provision", headers=bearer("u1"))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ASSIGNMENT_ERROR"

    def test_publish_failure_is_500(self, client, bearer, provider):
        provider.inject_failure(set=1)
        resp = client.post("/provision", headers=bearer("u1", email="ana@shop.com"))
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "PROVISIONING_FAILED"

    def test_request_id_echoed(self, client):
        resp = client.post("/provision", headers={"X-Request-ID": "abc"})
        assert resp.headers["X-Request-ID"] == "abc"


@pytest.mark.api
@pytest.mark.unit
class TestSetClaimsEndpoint:
    def test_switch_tenant(self, client, owner_headers, store, bearer):
        store.set("tenants/2", {"name": "Filial"})
        profile = store.get("users/boss")
        profile["tenantIds"] = ["2"]
        store.set("users/boss", profile)

        resp = client.post(
            "/set-claims",
            json={"claims": {"companyId": "2", "role": "admin"}},
            headers=owner_headers,
        )

        assert resp.status_code == 200
        assert resp.get_json() == {"message": "Claims atualizados com sucesso", "companyId": "2", "role": "admin"}
        tenants = client.get("/api/v1/tenants", headers=bearer("boss")).get_json()
        assert tenants["active"] == "2"

    def test_unentitled_tenant_forbidden(self, client, owner_headers, store):
        store.set("tenants/9", {"name": "Outra"})
        resp = client.post("/set-claims", json={"claims": {"companyId": "9", "role": "owner"}}, headers=owner_headers)
        assert resp.status_code == 403

    def test_malformed_body(self, client, owner_headers):
        resp = client.post("/set-claims", json={"claims": {"role": "owner"}}, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_ARGUMENT"

    def test_unprovisioned_caller_forbidden(self, client, bearer):
        resp = client.post(
            "/set-claims",
            json={"claims": {"companyId": "1", "role": "owner"}},
            headers=bearer("u1", email="x@shop.com"),
        )
        assert resp.status_code == 403


@pytest.mark.api
@pytest.mark.unit
class TestOrderEndpoints:
    def test_order_lifecycle(self, client, owner_headers):
        created = client.post("/api/v1/orders", json={"cliente": "c1"}, headers=owner_headers)
        assert created.status_code == 201
        order = created.get_json()
        assert order["status"] == "PENDENTE"
        assert order["tenantId"] == "1"

        moved = client.post(f"/api/v1/orders/{order['id']}/transition", json={"status": "EM_ROTA"}, headers=owner_headers)
        assert moved.status_code == 200
        assert moved.get_json()["timeline"][0]["status"] == "EM_ROTA"

        illegal = client.post(f"/api/v1/orders/{order['id']}/transition", json={"status": "PENDENTE"}, headers=owner_headers)
        assert illegal.status_code == 409
        assert illegal.get_json()["code"] == "ILLEGAL_TRANSITION"

        fetched = client.get(f"/api/v1/orders/{order['id']}", headers=owner_headers).get_json()
        assert fetched["status"] == "EM_ROTA"
        assert len(fetched["timeline"]) == 2

        summary = client.get("/api/v1/orders/summary", headers=owner_headers).get_json()
        assert summary["total"] == 1
        assert summary["EM_ROTA"] == 1

    def test_cross_tenant_access_forbidden(self, client, owner_headers, bearer):
        order = client.post("/api/v1/orders", json={}, headers=owner_headers).get_json()
        client.post("/provision", headers=bearer("u2", email="other@shop.com"))
        other = bearer("u2")

        assert client.get(f"/api/v1/orders/{order['id']}", headers=other).status_code == 403
        resp = client.post(f"/api/v1/orders/{order['id']}/transition", json={"status": "CANCELADA"}, headers=other)
        assert resp.status_code == 403
        assert client.get(f"/api/v1/orders/{order['id']}", headers=owner_headers).get_json()["status"] == "PENDENTE"

    def test_unknown_order(self, client, owner_headers):
        resp = client.get("/api/v1/orders/missing", headers=owner_headers)
        assert resp.status_code == 404
        assert resp.get_json()["version"] == "v1"

    def test_unknown_status_is_conflict(self, client, owner_headers):
        order = client.post("/api/v1/orders", json={}, headers=owner_headers).get_json()
        resp = client.post(f"/api/v1/orders/{order['id']}/transition", json={"status": "PERDIDO"}, headers=owner_headers)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ILLEGAL_TRANSITION"

    def test_transition_requires_status(self, client, owner_headers):
        order = client.post("/api/v1/orders", json={}, headers=owner_headers).get_json()
        resp = client.post(f"/api/v1/orders/{order['id']}/transition", json={}, headers=owner_headers)
        assert resp.status_code == 400

    def test_unprovisioned_identity_forbidden(self, client, bearer):
        assert client.get("/api/v1/orders/summary", headers=bearer("u1")).status_code == 403

    def test_public_tracking(self, client, owner_headers):
        order = client.post("/api/v1/orders", json={"cliente": "c1"}, headers=owner_headers).get_json()

        resp = client.get(f"/api/v1/tracking/{order['codigoRastreio'].lower()}")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "PENDENTE"
        assert "userId" not in body["timeline"][0]
        assert client.get("/api/v1/tracking/LGNOPE0000").status_code == 404


@pytest.mark.api
@pytest.mark.unit
class TestTenantHeader:
    def test_entitled_header_selects_tenant(self, client, owner_headers, store):
        store.set("tenants/2", {"name": "Filial"})
        profile = store.get("users/boss")
        profile["tenantIds"] = ["2"]
        store.set("users/boss", profile)

        headers = dict(owner_headers, **{"X-Tenant-ID": "2"})
        order = client.post("/api/v1/orders", json={}, headers=headers).get_json()

        assert order["tenantId"] == "2"
        assert client.get(f"/api/v1/orders/{order['id']}", headers=owner_headers).status_code == 403

    def test_unentitled_header_forbidden(self, client, owner_headers, store):
        store.set("tenants/9", {"name": "Outra"})
        headers = dict(owner_headers, **{"X-Tenant-ID": "9"})
        assert client.get("/api/v1/orders/summary", headers=headers).status_code == 403

    def test_tenant_listing(self, client, owner_headers):
        body = client.get("/api/v1/tenants", headers=owner_headers).get_json()
        assert body["active"] == "1"
        assert [t["id"] for t in body["tenants"]] == ["1"]
        assert body["tenants"][0]["name"] == "Empresa de Boss"


@pytest.mark.api
@pytest.mark.unit
class TestRecordsAndHealth:
    def test_put_and_get_record(self, client, owner_headers):
        put = client.put("/api/v1/records/clients/c1", json={"nome": "Cliente"}, headers=owner_headers)
        assert put.status_code == 200

        got = client.get("/api/v1/records/clients/c1", headers=owner_headers)
        assert got.get_json() == {"nome": "Cliente", "id": "c1"}

        listed = client.get("/api/v1/records/clients", headers=owner_headers).get_json()
        assert listed["items"] == [{"nome": "Cliente", "id": "c1"}]

    def test_orders_collection_read_only(self, client, owner_headers):
        resp = client.put("/api/v1/records/orders/o1", json={"status": "ENTREGUE"}, headers=owner_headers)
        assert resp.status_code == 400

    def test_unknown_collection(self, client, owner_headers):
        assert client.get("/api/v1/records/users/u1", headers=owner_headers).status_code == 400

    def test_missing_record(self, client, owner_headers):
        assert client.get("/api/v1/records/clients/none", headers=owner_headers).status_code == 404

    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["store"]["status"] == "ok"

    def test_unknown_route(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"
