"""
Test Status Resolver

Tests for:
- Reference scenarios A to E
- Idempotence of the pure projection
- Invariant handling (reported, forced VENCIDO, strict mode)
- Pre-persist hook side effects
"""

import asyncio
from datetime import datetime, timezone

import pytest

from models.monitoring import (
    DerivedValue,
    MonitoringStatus,
    SemaforoBand,
    ValueSource,
)
from services.errors import ConfigurationError, InvariantViolation
from services.semaforo import get_preset
from services.status_resolver import ResolverConfig, apply_status, resolve_status
from tests.conftest import StaticUsageSource

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


class TestScenarios:

    def test_scenario_a_proximo_with_default_threshold(self, make_state):
        """60h used, next overhaul at 100h, default margin 50h: 60 >= 100 - 50"""
        state = make_state(current_value=60, limit_value=500, overhaul={
            "interval": 50, "current_cycle": 1, "hours_at_last_overhaul": 50, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig())

        assert resolution.tso == 10
        assert resolution.next_overhaul_at == 100
        assert resolution.hours_to_next_overhaul == 40
        assert resolution.legacy_hours_to_next_overhaul == 40
        assert resolution.status == MonitoringStatus.PROXIMO
        assert resolution.alert_active is True
        assert resolution.overhaul_required is False
        assert resolution.violations == []

    def test_scenario_a_ok_with_narrow_threshold(self, make_state):
        state = make_state(current_value=60, limit_value=500, overhaul={
            "interval": 50, "current_cycle": 1, "hours_at_last_overhaul": 50, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig(default_alert_threshold=30))
        assert resolution.status == MonitoringStatus.OK
        assert resolution.alert_active is False

    def test_scenario_b_cycles_exhausted(self, make_state):
        state = make_state(current_value=200, limit_value=200, overhaul={
            "interval": 100, "current_cycle": 2, "hours_at_last_overhaul": 200, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig())
        assert resolution.status == MonitoringStatus.VENCIDO
        assert resolution.overhaul_required is False
        assert resolution.alert_active is True

    def test_scenario_c_fresh_overhaul(self, make_state):
        """TSO 0 right after an overhaul: a full interval to go, green band"""
        state = make_state(current_value=300, limit_value=1000, overhaul={
            "interval": 150, "current_cycle": 2, "hours_at_last_overhaul": 300, "max_cycles": 5,
            "semaforo": get_preset("ESTANDAR").model_dump(),
        })
        resolution = resolve_status(state, ResolverConfig())
        assert resolution.tso == 0
        assert resolution.hours_to_next_overhaul == 150
        assert resolution.semaforo.band == SemaforoBand.VERDE
        assert resolution.status == MonitoringStatus.OK

    def test_scenario_d_no_overhaul_policy(self, make_state):
        state = make_state(current_value=950, limit_value=1000)
        resolution = resolve_status(state, ResolverConfig())
        assert resolution.status == MonitoringStatus.PROXIMO
        assert resolution.alert_active is True
        assert resolution.remaining == 50
        assert resolution.next_overhaul_at is None

    def test_scenario_e_parent_lookup_fails(self, make_state):
        state = make_state(current_value=420, limit_value=1000, based_on_parent_usage=True,
                           component_id="missing")
        source = StaticUsageSource()

        asyncio.run(apply_status(state, source, ResolverConfig(), fixed_clock))

        assert source.calls == 1
        assert state.current_value.value == 420
        assert state.status == MonitoringStatus.OK
        assert state.last_updated == NOW
        print("✓ Failed parent lookup keeps last value")


class TestNonOverhaulStatus:

    @pytest.mark.parametrize("current,status", [
        (1000, MonitoringStatus.VENCIDO),
        (1200, MonitoringStatus.VENCIDO),
        (951, MonitoringStatus.PROXIMO),
        (949, MonitoringStatus.OK),
    ])
    def test_status(self, make_state, current, status):
        assert resolve_status(make_state(current_value=current, limit_value=1000), ResolverConfig()).status == status

    def test_state_semaforo_evaluated_on_limit(self, make_state):
        state = make_state(current_value=980, limit_value=1000, semaforo=get_preset("ESTANDAR").model_dump())
        resolution = resolve_status(state, ResolverConfig())
        assert resolution.semaforo.band == SemaforoBand.ROJO
        assert resolution.alert_threshold == 100
        assert resolution.status == MonitoringStatus.PROXIMO


class TestIdempotence:

    def test_same_input_same_output(self, make_state):
        state = make_state(current_value=60, limit_value=500, overhaul={
            "interval": 50, "current_cycle": 1, "hours_at_last_overhaul": 55, "max_cycles": 2,
            "semaforo": get_preset("AGRESIVO").model_dump(),
        })
        before = state.model_dump()
        first = resolve_status(state, ResolverConfig())
        second = resolve_status(state, ResolverConfig())
        assert first == second
        assert state.model_dump() == before


class TestInvariantHandling:

    def test_divergence_reported(self, make_state):
        state = make_state(current_value=60, limit_value=500, overhaul={
            "interval": 50, "current_cycle": 1, "hours_at_last_overhaul": 40, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig())
        assert len(resolution.violations) == 1
        assert resolution.violations[0].startswith("TSO_DIVERGENCE")

    def test_late_completion_not_reported_in_strict_mode(self, make_state):
        """Overhaul due at 50h, done at 55h: cycle and TSO answers differ, no violation"""
        state = make_state(current_value=60, limit_value=500, overhaul={
            "interval": 50, "current_cycle": 1, "hours_at_last_overhaul": 55, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig(strict_invariants=True))
        assert resolution.violations == []
        assert resolution.hours_to_next_overhaul == 40
        assert resolution.legacy_hours_to_next_overhaul == 45

    def test_cycle_overrun_forces_vencido(self, make_state):
        state = make_state(current_value=310, limit_value=1000, overhaul={
            "interval": 100, "current_cycle": 3, "hours_at_last_overhaul": 300, "max_cycles": 2,
        })
        resolution = resolve_status(state, ResolverConfig())
        assert resolution.status == MonitoringStatus.VENCIDO
        assert resolution.overhaul_required is False

    def test_strict_mode_raises(self, make_state):
        state = make_state(current_value=310, limit_value=1000, overhaul={
            "interval": 100, "current_cycle": 3, "hours_at_last_overhaul": 300, "max_cycles": 2,
        })
        with pytest.raises(InvariantViolation) as exc:
            resolve_status(state, ResolverConfig(strict_invariants=True))
        assert exc.value.code == "CYCLE_OVERRUN"

    def test_invalid_interval_aborts(self, make_state):
        state = make_state(current_value=10, overhaul={"interval": 0})
        with pytest.raises(ConfigurationError):
            resolve_status(state, ResolverConfig())


class TestApplyStatus:

    def test_writes_derived_fields(self, make_state):
        state = make_state(current_value=0, limit_value=500, based_on_parent_usage=True,
                           install_offset=-20, overhaul={"interval": 100, "max_cycles": 3})
        source = StaticUsageSource({"comp-1": 120})

        resolution = asyncio.run(apply_status(state, source, ResolverConfig(), fixed_clock))

        assert state.current_value == DerivedValue.computed(100)
        assert state.status == MonitoringStatus.OVERHAUL_REQUERIDO
        assert state.alert_active is True
        assert state.overhaul.overhaul_required is True
        assert state.overhaul.next_overhaul_at == DerivedValue.computed(100)
        assert state.last_updated == NOW
        assert resolution.status == state.status

    def test_manual_boundary_not_overwritten(self, make_state):
        state = make_state(current_value=50, limit_value=500,
                           overhaul={"interval": 100, "max_cycles": 3, "next_overhaul_at": 80})
        asyncio.run(apply_status(state, StaticUsageSource(), ResolverConfig(), fixed_clock))

        assert state.overhaul.next_overhaul_at.source == ValueSource.MANUAL
        assert state.overhaul.next_overhaul_at.value == 80
        assert state.status == MonitoringStatus.PROXIMO

    def test_configuration_error_propagates(self, make_state):
        state = make_state(current_value=10, overhaul={"interval": 0})
        with pytest.raises(ConfigurationError):
            asyncio.run(apply_status(state, StaticUsageSource(), ResolverConfig(), fixed_clock))
        assert state.last_updated is None
