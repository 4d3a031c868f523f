"""Tests for passphrase derivation and the Key service."""

from unittest.mock import AsyncMock

import pytest

from noteserver.config import Config
from noteserver.core import keygen
from noteserver.errors import InvalidRequest, NotApplicable, NotFound
from noteserver.models.schemas import KeyGenRequest, Site, SiteRequest
from noteserver.services.key import KeyService

POLICY = """
default:
  length: 12
  punct: false
sites:
  example.com:
    length: 20
    salt: v2
    hints:
      user: alice
    otp: JBSWY3DPEHPK3PXP
  bank.test:
    format: "AAaa11!!**"
"""


class TestDerivation:
    def test_deterministic(self):
        site = Site(host="example.com", length=16)
        assert keygen.derive(site, "secret") == keygen.derive(site, "secret")
        assert len(keygen.derive(site, "secret")) == 16

    def test_inputs_change_output(self):
        site = Site(host="example.com", length=16)
        other_host = Site(host="example.org", length=16)
        salted = Site(host="example.com", length=16, salt="x")
        pw = keygen.derive(site, "secret")
        assert pw != keygen.derive(site, "other")
        assert pw != keygen.derive(other_host, "secret")
        assert pw != keygen.derive(salted, "secret")

    def test_format(self):
        pw = keygen.derive(Site(host="h", format="Aa1!-*"), "secret")
        assert len(pw) == 6
        assert pw[0].isupper()
        assert pw[1].islower()
        assert pw[2].isdigit()
        assert pw[3] in keygen.PUNCTUATION
        assert pw[4] == "-"
        assert pw[5].isalnum()

    def test_punct(self):
        plain = keygen.derive(Site(host="h", length=64), "s")
        assert all(c.isalnum() for c in plain)

    def test_check_hash(self):
        h = keygen.check_hash("passphrase")
        assert h == keygen.check_hash("passphrase")
        assert len(h.split("-")) == 3


class TestPolicy:
    @pytest.fixture
    def policy_file(self, tmp_path):
        path = tmp_path / "keys.yml"
        path.write_text(POLICY)
        return str(path)

    def test_site_inherits_default(self, policy_file):
        policy = keygen.load_policy(policy_file)
        site, known = keygen.site_for(policy, "example.com")
        assert known is True
        assert site.length == 20
        assert site.salt == "v2"
        assert site.punct is False
        assert site.host == "example.com"

    def test_unknown_site(self, policy_file):
        site, known = keygen.site_for(keygen.load_policy(policy_file), "nowhere.net")
        assert known is False
        assert site.length == 12

    def test_empty_path_uses_builtin_default(self):
        site, _ = keygen.site_for(keygen.load_policy(""), "any")
        assert site.length == keygen.DEFAULT_LENGTH


class TestKeyService:
    @pytest.fixture
    def policy_file(self, tmp_path):
        path = tmp_path / "keys.yml"
        path.write_text(POLICY)
        return path

    @pytest.fixture
    def service(self, policy_file, clipboard):
        service = KeyService(clipboard, prompt=AsyncMock(return_value="secret"))
        service.init(Config(key={"config_file": str(policy_file)}))
        return service

    def test_not_applicable_without_policy(self):
        with pytest.raises(NotApplicable):
            KeyService().init(Config())

    @pytest.mark.asyncio
    async def test_generate(self, service):
        reply = await service.generate(KeyGenRequest(host="example.com"))
        assert len(reply.key) == 20
        assert reply.label == "example.com"
        assert reply.hash == keygen.check_hash(reply.key)

        prompt = service._prompt.call_args[0][0]
        assert prompt.hide is True
        assert "example.com" in prompt.prompt

    @pytest.mark.asyncio
    async def test_generate_copy(self, service, clipboard):
        reply = await service.generate(KeyGenRequest.model_validate({"host": "example.com", "copy": True}))
        assert reply.key == ""
        assert reply.hash == keygen.check_hash(clipboard.data.decode())

    @pytest.mark.asyncio
    async def test_generate_overrides(self, service):
        reply = await service.generate(KeyGenRequest(host="example.com", length=8))
        assert len(reply.key) == 8

    @pytest.mark.asyncio
    async def test_generate_validation(self, service):
        with pytest.raises(InvalidRequest):
            await service.generate(KeyGenRequest(host=""))
        with pytest.raises(InvalidRequest):
            await service.generate(KeyGenRequest(host="example.com", length=4))
        with pytest.raises(InvalidRequest):
            await service.generate(KeyGenRequest(host="example.com", format="Aa1"))
        with pytest.raises(InvalidRequest):
            await service.generate(KeyGenRequest(host="nowhere.net", strict=True))
        service._prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_list(self, service):
        assert await service.list() == ["bank.test", "example.com"]

    @pytest.mark.asyncio
    async def test_site_hides_secrets(self, service):
        site = await service.site(SiteRequest(host="example.com"))
        assert site.hints == {}
        assert site.otp is None

        site = await service.site(SiteRequest(host="example.com", full=True))
        assert site.hints == {"user": "alice"}
        assert site.otp == "JBSWY3DPEHPK3PXP"

    @pytest.mark.asyncio
    async def test_site_strict(self, service):
        with pytest.raises(NotFound):
            await service.site(SiteRequest(host="nowhere.net", strict=True))

    @pytest.mark.asyncio
    async def test_update_reloads_policy(self, service, policy_file):
        policy_file.write_text("sites:\n  new.example: {length: 10}\n")
        service.update()
        assert await service.list() == ["new.example"]
