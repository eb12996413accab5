"""Unit tests for tenancy domain models."""

import pytest

from domains.tenancy.exceptions import InvalidToken
from domains.tenancy.models import Claims, TenantContext, TenantSettings, VerifiedToken


@pytest.mark.auth
@pytest.mark.unit
class TestClaims:
    """Claims parsing from decoded tokens and stored profiles."""

    def test_absent_when_neither_key_present(self):
        assert Claims.from_mapping({"sub": "u1", "email": "a@b.c"}) is None

    def test_reads_tenant_and_role(self):
        claims = Claims.from_mapping({"tenantId": "t1", "role": "owner"})
        assert claims == Claims(tenant_id="t1", role="owner")

    def test_legacy_company_id_alias(self):
        claims = Claims.from_mapping({"companyId": "1", "role": "admin"})
        assert claims.tenant_id == "1"

    def test_tenant_id_wins_over_company_id(self):
        claims = Claims.from_mapping({"tenantId": "t2", "companyId": "1", "role": "admin"})
        assert claims.tenant_id == "t2"

    @pytest.mark.parametrize(
        "payload",
        [
            {"tenantId": "t1"},
            {"role": "owner"},
            {"tenantId": "", "role": "owner"},
            {"tenantId": "t1", "role": 3},
        ],
    )
    def test_partial_or_mistyped_claims_rejected(self, payload):
        with pytest.raises(InvalidToken):
            Claims.from_mapping(payload)

    def test_custom_claims_emit_both_tenant_keys(self):
        assert Claims("t1", "owner").to_custom_claims() == {
            "tenantId": "t1",
            "companyId": "t1",
            "role": "owner",
        }


@pytest.mark.auth
@pytest.mark.unit
class TestSupportingModels:
    def test_verified_token_identity(self):
        token = VerifiedToken(identity_id="u1", email="a@b.c", name="Ana")
        identity = token.identity
        assert identity.id == "u1"
        assert identity.email == "a@b.c"
        assert identity.display_name == "Ana"

    def test_tenant_settings_round_trip_keys(self):
        settings = TenantSettings.from_dict({"codigoPrefixo": "XP", "linkBaseRastreio": "https://t"})
        assert settings.tracking_prefix == "XP"
        assert settings.to_dict() == {"codigoPrefixo": "XP", "linkBaseRastreio": "https://t"}

    def test_tenant_settings_defaults(self):
        assert TenantSettings.from_dict(None).tracking_prefix == "LG"

    def test_tenant_context_key(self):
        assert TenantContext("u1", "t1", "owner").key() == ("u1", "t1")
