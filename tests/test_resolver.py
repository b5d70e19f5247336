"""Tests for scope types, tier contexts and the resolution walk."""

from unittest.mock import MagicMock

import pytest

from tierconf.config_service.config import Scope, ServiceConfig, TierContext, validate_scope_id
from tierconf.config_service.config_store import ConfigStore, InMemoryConfigStore
from tierconf.config_service.registry import KeyDefinition
from tierconf.config_service.resolver import ScopeResolver
from tierconf.config_service.system import SystemTier
from tierconf.config_service.values import ConfigValue
from tierconf.errors import InvalidTierContextError, StoreUnavailableError


class TestScope:

    def test_resolution_order(self):
        assert Scope.resolution_order() == [
            Scope.PROJECT, Scope.ORGANIZATION, Scope.SERVICE, Scope.COMMON, Scope.SYSTEM,
        ]

    def test_precedence_is_total(self):
        ranks = [s.precedence for s in Scope]
        assert sorted(ranks) == list(range(5))
        assert Scope.PROJECT.precedence > Scope.ORGANIZATION.precedence > Scope.SYSTEM.precedence

    def test_system_is_not_persisted(self):
        assert not Scope.SYSTEM.is_persisted
        assert Scope.COMMON.is_persisted

    def test_validate_scope_id(self):
        assert validate_scope_id(Scope.PROJECT, "p1") == "p1"
        assert validate_scope_id(Scope.SERVICE, None) is None
        with pytest.raises(InvalidTierContextError):
            validate_scope_id(Scope.PROJECT, None)
        with pytest.raises(InvalidTierContextError):
            validate_scope_id(Scope.ORGANIZATION, "  ")
        with pytest.raises(InvalidTierContextError):
            validate_scope_id(Scope.COMMON, "c1")


class TestTierContext:

    def test_full_context_walks_every_tier(self):
        tiers = TierContext("o1", "p1").tiers()
        assert tiers == [
            (Scope.PROJECT, "p1"),
            (Scope.ORGANIZATION, "o1"),
            (Scope.SERVICE, None),
            (Scope.COMMON, None),
            (Scope.SYSTEM, None),
        ]

    def test_empty_context_skips_instance_tiers(self):
        assert [s for s, _ in TierContext().tiers()] == [Scope.SERVICE, Scope.COMMON, Scope.SYSTEM]

    def test_project_requires_organization(self):
        with pytest.raises(InvalidTierContextError):
            TierContext(project_id="p1")


class TestServiceConfig:

    def test_defaults(self):
        config = ServiceConfig()
        assert config.cache_ttl_seconds == 300
        assert config.read_retry_attempts == 3
        assert config.call_timeout_seconds is None

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            ServiceConfig(cache_ttl_seconds=0)
        with pytest.raises(ValueError):
            ServiceConfig(read_retry_attempts=0)


class TestScopeResolver:

    def setup_method(self):
        self.store = InMemoryConfigStore()
        self.system = SystemTier(values={"region": "us-east-1"})
        self.resolver = ScopeResolver(self.store, self.system)
        self.ctx = TierContext("o1", "p1")

    def test_highest_tier_wins(self):
        self.store.write(Scope.SERVICE, None, "maxUsers", ConfigValue.of(5))
        self.store.write(Scope.PROJECT, "p1", "maxUsers", ConfigValue.of(50))
        winner = self.resolver.resolve("maxUsers", self.ctx)
        assert winner.scope is Scope.PROJECT
        assert winner.value.data == 50

    def test_each_tier_can_win_when_alone(self):
        cases = [
            (Scope.PROJECT, "p1"),
            (Scope.ORGANIZATION, "o1"),
            (Scope.SERVICE, None),
            (Scope.COMMON, None),
        ]
        for scope, scope_id in cases:
            store = InMemoryConfigStore()
            store.write(scope, scope_id, "k", ConfigValue.of(scope.value))
            winner = ScopeResolver(store, SystemTier()).resolve("k", self.ctx)
            assert winner.scope is scope
            assert winner.value.data == scope.value

    def test_system_tier_is_last_resort(self):
        winner = self.resolver.resolve("region", self.ctx)
        assert winner.scope is Scope.SYSTEM
        assert winner.value.data == "us-east-1"

    def test_store_overrides_system(self):
        self.store.write(Scope.COMMON, None, "region", ConfigValue.of("eu-west-1"))
        assert self.resolver.resolve("region", self.ctx).value.data == "eu-west-1"

    def test_walk_stops_at_first_hit(self):
        spy = MagicMock(wraps=self.store, spec=ConfigStore)
        self.store.write(Scope.ORGANIZATION, "o1", "k", ConfigValue.of(1))
        ScopeResolver(spy, self.system).resolve("k", self.ctx)
        scopes_read = [c.args[0] for c in spy.read.call_args_list]
        assert scopes_read == [Scope.PROJECT, Scope.ORGANIZATION]

    def test_other_project_does_not_leak(self):
        self.store.write(Scope.PROJECT, "p2", "k", ConfigValue.of("p2 only"))
        assert self.resolver.resolve("k", self.ctx) is None

    def test_missing_everywhere(self):
        assert self.resolver.resolve("nope", self.ctx) is None

    def test_encrypted_flag_carried(self):
        self.store.write(Scope.SERVICE, None, "secret", ConfigValue.of("CIPHER"), is_encrypted=True)
        winner = self.resolver.resolve("secret", self.ctx)
        assert winner.is_encrypted is True
        assert winner.value.data == "CIPHER"

    def test_definition_limits_tiers(self):
        self.store.write(Scope.PROJECT, "p1", "k", ConfigValue.of("project"))
        self.store.write(Scope.SERVICE, None, "k", ConfigValue.of("service"))
        definition = KeyDefinition("k", scopes=frozenset({Scope.SERVICE}))
        assert self.resolver.resolve("k", self.ctx, definition).value.data == "service"

    def test_definition_requires_identifier(self):
        definition = KeyDefinition("k", required_scope=Scope.PROJECT)
        with pytest.raises(InvalidTierContextError):
            self.resolver.resolve("k", TierContext("o1"), definition)

    def test_store_errors_propagate(self):
        broken = MagicMock(spec=ConfigStore)
        broken.read.side_effect = StoreUnavailableError("down")
        with pytest.raises(StoreUnavailableError):
            ScopeResolver(broken, self.system).resolve("region", self.ctx)
