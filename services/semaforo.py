"""
Semaforo Threshold Classifier

Maps the signed distance to the next boundary (hours remaining, negative once
the boundary is passed) to one of five urgency bands:

    VERDE > AMARILLO > NARANJA > ROJO > MORADO

Each threshold field gates the band of the same name. With unit HOURS:

    h < 0 and h <= -morado   -> MORADO  (overrun past the boundary)
    h <= rojo                -> ROJO    (includes the boundary itself)
    h <= naranja             -> NARANJA
    h <= amarillo            -> AMARILLO
    otherwise                -> VERDE

With unit PERCENTAGE the same cascade runs on the share of the interval
consumed, against 100 + morado, rojo, naranja and amarillo.

Everything here is pure: no I/O, no clock.
"""

import logging
from typing import Dict, Optional

from models.monitoring import (
    BAND_COLORS,
    MonitoredState,
    SemaforoBand,
    SemaforoConfig,
    SemaforoResult,
    SemaforoThresholds,
    SemaforoUnit,
)
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_DESCRIPTIONS: Dict[SemaforoBand, str] = {
    SemaforoBand.MORADO: "SOBRE-CRITICO - Componente vencido en uso",
    SemaforoBand.ROJO: "Critico - Programar overhaul inmediatamente",
    SemaforoBand.NARANJA: "Alto - Preparar overhaul proximo",
    SemaforoBand.AMARILLO: "Medio - Monitorear progreso",
    SemaforoBand.VERDE: "OK - Funcionando normal",
}

ATTENTION_BANDS = {SemaforoBand.MORADO, SemaforoBand.ROJO, SemaforoBand.NARANJA}


# ============================================================
# PRESETS
# ============================================================

PRESETS: Dict[str, SemaforoConfig] = {
    "ESTANDAR": SemaforoConfig(
        unit=SemaforoUnit.HOURS,
        thresholds=SemaforoThresholds(morado=100, rojo=25, naranja=50, amarillo=100, verde=0),
    ),
    "CONSERVADOR": SemaforoConfig(
        unit=SemaforoUnit.HOURS,
        thresholds=SemaforoThresholds(morado=50, rojo=50, naranja=100, amarillo=150, verde=25),
        descriptions={
            SemaforoBand.MORADO: "SOBRE-CRITICO - Detener operacion",
            SemaforoBand.ROJO: "Critico - Accion inmediata requerida",
            SemaforoBand.NARANJA: "Alto - Planificar overhaul urgente",
            SemaforoBand.AMARILLO: "Medio - Iniciar preparativos",
            SemaforoBand.VERDE: "Bajo - Monitoreo regular",
        },
    ),
    "AGRESIVO": SemaforoConfig(
        unit=SemaforoUnit.HOURS,
        thresholds=SemaforoThresholds(morado=200, rojo=10, naranja=25, amarillo=50, verde=0),
        descriptions={
            SemaforoBand.MORADO: "SOBRE-CRITICO - Excedido significativamente",
            SemaforoBand.ROJO: "Critico - Overhaul requerido",
            SemaforoBand.NARANJA: "Alto - Preparar herramientas",
            SemaforoBand.AMARILLO: "Medio - Finalizar vuelos",
            SemaforoBand.VERDE: "OK - Operacion normal",
        },
    ),
    "PORCENTAJE": SemaforoConfig(
        unit=SemaforoUnit.PERCENTAGE,
        thresholds=SemaforoThresholds(morado=10, rojo=95, naranja=85, amarillo=75, verde=0),
        descriptions={
            SemaforoBand.MORADO: "SOBRE-CRITICO - Excedido +10%",
            SemaforoBand.ROJO: "Critico - 95%+ del intervalo consumido",
            SemaforoBand.NARANJA: "Alto - 85%+ del intervalo consumido",
            SemaforoBand.AMARILLO: "Medio - 75%+ del intervalo consumido",
            SemaforoBand.VERDE: "OK - Menos del 75% consumido",
        },
    ),
}

# Share of the overhaul interval for (morado, rojo, naranja, amarillo)
OVERHAUL_PROFILE_RATIOS = {
    "CONSERVADOR": (0.30, 0.30, 0.50, 0.60),
    "ESTANDAR": (0.20, 0.20, 0.30, 0.40),
    "AGRESIVO": (0.10, 0.10, 0.20, 0.30),
}


def get_preset(name: str) -> SemaforoConfig:
    """Named preset, ESTANDAR when the name is unknown"""
    return PRESETS.get(name.upper(), PRESETS["ESTANDAR"])


def from_legacy_thresholds(
    morado: float,
    rojo: float,
    naranja: float,
    amarillo: float,
    verde: float = 0.0,
) -> SemaforoThresholds:
    """
    Convert hour thresholds stored with the legacy field naming.

    Legacy documents kept the widest margin in "rojo" and the tightest in
    "amarillo" while the tightest margin actually produced the red band, so
    rojo and amarillo swap places.
    """
    return SemaforoThresholds(
        morado=morado,
        rojo=amarillo,
        naranja=naranja,
        amarillo=rojo,
        verde=verde,
    )


def thresholds_for_overhaul(interval: float, profile: str = "ESTANDAR") -> SemaforoConfig:
    """
    Hour thresholds proportional to the overhaul interval.

    Thresholds must be relative to the interval (e.g. 50h between overhauls),
    not to the component's total life limit.
    """
    if not interval or interval <= 0:
        raise ConfigurationError(f"Cannot derive semaforo thresholds for interval {interval}")

    ratios = OVERHAUL_PROFILE_RATIOS.get(profile.upper(), OVERHAUL_PROFILE_RATIOS["ESTANDAR"])
    morado, rojo, naranja, amarillo = (max(1, round(interval * r)) for r in ratios)

    logger.info(
        f"Overhaul thresholds for interval {interval}h ({profile}): "
        f"rojo<={rojo}h naranja<={naranja}h amarillo<={amarillo}h morado<=-{morado}h"
    )
    return SemaforoConfig(
        unit=SemaforoUnit.HOURS,
        thresholds=SemaforoThresholds(
            morado=morado, rojo=rojo, naranja=naranja, amarillo=amarillo, verde=0
        ),
    )


def validate_for_overhaul(
    config: Optional[SemaforoConfig],
    interval: float,
    profile: str = "ESTANDAR",
) -> SemaforoConfig:
    """Keep a usable overhaul semaforo, recomputing one sized on the wrong base"""
    if config is None:
        return thresholds_for_overhaul(interval, profile)

    if config.unit == SemaforoUnit.HOURS and config.thresholds.amarillo > interval:
        # Thresholds were sized on the total life limit instead of the interval
        logger.warning(
            f"Semaforo amarillo threshold {config.thresholds.amarillo}h exceeds "
            f"overhaul interval {interval}h, recomputing"
        )
        return thresholds_for_overhaul(interval, profile)

    return config


# ============================================================
# CLASSIFICATION
# ============================================================

def consumed_percent(hours_remaining: float, interval: Optional[float]) -> float:
    """Share of the interval already used, unclamped (over 100 past the boundary)"""
    if not interval or interval <= 0:
        raise ConfigurationError("Percentage semaforo requires a positive interval")
    return (interval - hours_remaining) / interval * 100


def classify(
    hours_remaining: float,
    config: SemaforoConfig,
    interval: Optional[float] = None,
) -> SemaforoBand:
    """Band for a signed hours-remaining value"""
    t = config.thresholds

    if config.unit == SemaforoUnit.PERCENTAGE:
        consumed = consumed_percent(hours_remaining, interval)
        if hours_remaining < 0 and consumed >= 100 + t.morado:
            return SemaforoBand.MORADO
        if consumed >= t.rojo:
            return SemaforoBand.ROJO
        if consumed >= t.naranja:
            return SemaforoBand.NARANJA
        if consumed >= t.amarillo:
            return SemaforoBand.AMARILLO
        return SemaforoBand.VERDE

    if hours_remaining <= 0:
        # Zero is the boundary itself and stays red
        if hours_remaining < 0 and hours_remaining <= -t.morado:
            return SemaforoBand.MORADO
        return SemaforoBand.ROJO
    if hours_remaining <= t.rojo:
        return SemaforoBand.ROJO
    if hours_remaining <= t.naranja:
        return SemaforoBand.NARANJA
    if hours_remaining <= t.amarillo:
        return SemaforoBand.AMARILLO
    return SemaforoBand.VERDE


def _band_threshold(band: SemaforoBand, hours_remaining: float, config: SemaforoConfig) -> float:
    t = config.thresholds
    if band == SemaforoBand.MORADO:
        return 100 + t.morado if config.unit == SemaforoUnit.PERCENTAGE else -t.morado
    if band == SemaforoBand.ROJO:
        if config.unit == SemaforoUnit.HOURS and hours_remaining < 0:
            return 0.0
        return t.rojo
    if band == SemaforoBand.NARANJA:
        return t.naranja
    return t.amarillo


def evaluate(
    hours_remaining: float,
    config: SemaforoConfig,
    interval: Optional[float] = None,
) -> SemaforoResult:
    """Classify and attach description, progress and display metadata"""
    band = classify(hours_remaining, config, interval)

    if interval and interval > 0:
        progress = max(0.0, min(100.0, consumed_percent(hours_remaining, interval)))
    else:
        progress = 100.0 if hours_remaining <= 0 else 0.0

    return SemaforoResult(
        band=band,
        description=config.descriptions.get(band) or DEFAULT_DESCRIPTIONS[band],
        hours_remaining=hours_remaining,
        threshold=_band_threshold(band, hours_remaining, config),
        progress_percent=progress,
        requires_attention=band in ATTENTION_BANDS,
        level=band.level,
        color=BAND_COLORS[band],
    )


def _margin_hours(config: SemaforoConfig, interval: Optional[float]) -> Optional[float]:
    if config.unit == SemaforoUnit.HOURS:
        return config.thresholds.amarillo
    if interval and interval > 0:
        return interval * (100 - config.thresholds.amarillo) / 100
    return None


def alert_threshold(state: MonitoredState, default: float) -> float:
    """
    Hours before the next boundary at which a state turns PROXIMO.

    The overhaul semaforo wins when enabled, then the state's own semaforo,
    then the configured default.
    """
    overhaul = state.overhaul
    if overhaul and overhaul.semaforo and overhaul.semaforo.enabled:
        margin = _margin_hours(overhaul.semaforo, overhaul.interval)
        if margin is not None:
            return margin

    if state.semaforo and state.semaforo.enabled:
        margin = _margin_hours(state.semaforo, state.limit_value)
        if margin is not None:
            return margin

    return default
