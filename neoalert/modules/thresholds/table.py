import json
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import structlog
from pydantic import Field

from neoalert.modules.thresholds.models import AgeBand, ThresholdRow, VitalKind
from neoalert.shared.schemas import FrozenCamelModel

log = structlog.get_logger()


class BandRanges(FrozenCamelModel):
    """Reference ranges for one age band."""

    band: AgeBand
    description: str
    rows: dict[VitalKind, ThresholdRow] = Field(default_factory=dict)


class ThresholdTableConfig(FrozenCamelModel):
    version: str = "neonatal-v1"
    bands: list[BandRanges] = Field(default_factory=list)


def _row(
    normal_min: float | None = None,
    normal_max: float | None = None,
    critical_min: float | None = None,
    critical_max: float | None = None,
) -> ThresholdRow:
    return ThresholdRow(
        normal_min=normal_min,
        normal_max=normal_max,
        critical_min=critical_min,
        critical_max=critical_max,
    )


DEFAULT_TABLE = ThresholdTableConfig(
    bands=[
        BandRanges(
            band=AgeBand.PRETERM,
            description="Preterm (<37 weeks)",
            rows={
                VitalKind.TEMPERATURE: _row(36.5, 37.5, 35.5, 38.5),
                VitalKind.HEART_RATE: _row(120, 170, 100, 200),
                VitalKind.RESP_RATE: _row(40, 60, 30, 80),
                VitalKind.SPO2: _row(normal_min=90, critical_min=85),
                VitalKind.CRT: _row(normal_max=3, critical_max=5),
            },
        ),
        BandRanges(
            band=AgeBand.NEWBORN,
            description="Newborn (0-28 days)",
            rows={
                VitalKind.TEMPERATURE: _row(36.5, 37.5, 35.5, 38.5),
                VitalKind.HEART_RATE: _row(100, 160, 80, 200),
                VitalKind.RESP_RATE: _row(30, 60, 20, 70),
                VitalKind.SPO2: _row(normal_min=92, critical_min=88),
                VitalKind.CRT: _row(normal_max=3, critical_max=5),
            },
        ),
        BandRanges(
            band=AgeBand.INFANT,
            description="Infant (1-12 months)",
            rows={
                VitalKind.TEMPERATURE: _row(36.5, 37.5, 35.5, 39),
                VitalKind.HEART_RATE: _row(80, 140, 60, 180),
                VitalKind.RESP_RATE: _row(25, 50, 15, 60),
                VitalKind.SPO2: _row(normal_min=94, critical_min=90),
                VitalKind.BP_SYSTOLIC: _row(70, 100),
                VitalKind.CRT: _row(normal_max=2, critical_max=4),
            },
        ),
        BandRanges(
            band=AgeBand.TODDLER,
            description="Toddler (1-3 years)",
            rows={
                VitalKind.TEMPERATURE: _row(36.5, 37.5, 35.5, 39.5),
                VitalKind.HEART_RATE: _row(70, 120, 50, 160),
                VitalKind.RESP_RATE: _row(20, 40, 12, 50),
                VitalKind.SPO2: _row(normal_min=95, critical_min=92),
                VitalKind.BP_SYSTOLIC: _row(80, 110),
                VitalKind.CRT: _row(normal_max=2, critical_max=4),
            },
        ),
        BandRanges(
            band=AgeBand.CHILD,
            description="Child (3-12 years)",
            rows={
                VitalKind.TEMPERATURE: _row(36.5, 37.5, 35, 40),
                VitalKind.HEART_RATE: _row(60, 100, 40, 140),
                VitalKind.RESP_RATE: _row(16, 30, 10, 40),
                VitalKind.SPO2: _row(normal_min=96, critical_min=93),
                VitalKind.BP_SYSTOLIC: _row(90, 120),
                VitalKind.CRT: _row(normal_max=2, critical_max=3),
            },
        ),
    ]
)


class ThresholdTable:
    """Read-only per-band, per-vital reference ranges."""

    def __init__(self, config: ThresholdTableConfig = DEFAULT_TABLE) -> None:
        self._version = config.version
        self._bands: Mapping[AgeBand, BandRanges] = MappingProxyType(
            {entry.band: entry for entry in config.bands}
        )

    @property
    def version(self) -> str:
        return self._version

    def lookup(self, band: AgeBand, vital: VitalKind) -> ThresholdRow | None:
        """Return the row for ``vital`` in ``band``; ``None`` means no verdict is possible."""
        entry = self._bands.get(band)
        if entry is None:
            return None
        return entry.rows.get(vital)

    def describe(self, band: AgeBand) -> str:
        entry = self._bands.get(band)
        if entry is None:
            return band.value.capitalize()
        return entry.description

    def bands(self) -> list[AgeBand]:
        return sorted(self._bands, key=lambda band: band.order)


def load_table(path: Path | None) -> ThresholdTable:
    if path is None:
        return ThresholdTable()
    try:
        payload = json.loads(Path(path).read_text())
        return ThresholdTable(ThresholdTableConfig.model_validate(payload))
    except FileNotFoundError:
        log.info("threshold table file not found, using defaults", path=str(path))
        return ThresholdTable()
    except Exception as exc:
        log.warning("threshold table load failed, using defaults", path=str(path), error=str(exc))
        return ThresholdTable()
