"""Primary adapter resolution.

When the user's adapter selection is the "Auto" sentinel, the primary
adapter is the active, non-loopback adapter with the highest combined
throughput this tick. Ties go to the adapter that appears first in
enumeration order. Resolution runs every tick without hysteresis, so two
adapters with near-equal throughput can alternate.

Every other active adapter is reported as a secondary entry (for example a
VPN tunnel next to the wired link) with its own speeds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from config import ADAPTERS, get_logger
from monitor.adapters import AdapterInfo
from monitor.sampler import Sample

logger = get_logger(__name__)

# adapter_id -> (download_bps, upload_bps)
SpeedMap = Dict[str, Tuple[float, float]]


@dataclass(frozen=True)
class AdapterDisplayItem:
    """User-facing adapter entry, including the synthetic Auto entry."""

    id: str
    name: str
    display_name: str
    description: str = ""
    category: str = "Physical"
    is_active: bool = False
    is_virtual: bool = False
    is_vpn: bool = False

    @property
    def is_auto(self) -> bool:
        return self.id == ADAPTERS.AUTO_ADAPTER_ID

    @classmethod
    def create_auto(cls, resolved_name: str = "") -> "AdapterDisplayItem":
        """Build the Auto entry, showing the adapter it currently resolves to.

        Examples:
            >>> AdapterDisplayItem.create_auto("eth0").display_name
            'Auto (eth0)'
            >>> AdapterDisplayItem.create_auto().display_name
            'Auto (detecting...)'
        """
        label = resolved_name if resolved_name else "detecting..."
        return cls(
            id=ADAPTERS.AUTO_ADAPTER_ID,
            name="Auto",
            display_name=f"Auto ({label})",
            description="Automatically follows the primary internet adapter",
            category="Auto",
            is_active=True,
        )

    @classmethod
    def from_adapter(cls, adapter: AdapterInfo) -> "AdapterDisplayItem":
        if adapter.is_vpn:
            category = "VPN"
        elif adapter.is_virtual:
            category = "Virtual"
        else:
            category = "Physical"
        return cls(
            id=adapter.id,
            name=adapter.id,
            display_name=adapter.display_name,
            category=category,
            is_active=adapter.is_active,
            is_virtual=adapter.is_virtual,
            is_vpn=adapter.is_vpn,
        )


@dataclass(frozen=True)
class SecondaryAdapterInfo:
    """An active adapter that is not the primary one."""

    adapter_id: str
    display_name: str
    download_bps: float
    upload_bps: float
    is_vpn: bool = False


@dataclass
class Resolution:
    """Outcome of one resolution pass.

    Attributes:
        primary_id: Resolved primary adapter, None when nothing is active.
        secondaries: Other active adapters in enumeration order.
        notification: One-shot "Switched to X" message, set only on the
            tick where the primary changed.
        fell_back_to_auto: The pinned selection was unusable this tick.
    """

    primary_id: Optional[str]
    secondaries: List[SecondaryAdapterInfo] = field(default_factory=list)
    notification: Optional[str] = None
    fell_back_to_auto: bool = False


def speeds_from_samples(samples: Iterable[Sample]) -> SpeedMap:
    """Build a speed map from one tick's samples."""
    return {s.adapter_id: (s.download_bps, s.upload_bps) for s in samples}


class AdapterResolver:
    """Resolves the primary adapter once per tick.

    Args:
        selected_adapter_id: User selection; the Auto sentinel or a pinned id.
    """

    def __init__(self, selected_adapter_id: str = ADAPTERS.AUTO_ADAPTER_ID) -> None:
        self._selected = selected_adapter_id or ADAPTERS.AUTO_ADAPTER_ID
        self._current_primary: Optional[str] = None
        self._warned_selection: Optional[str] = None

    @property
    def selected_adapter_id(self) -> str:
        return self._selected

    @selected_adapter_id.setter
    def selected_adapter_id(self, adapter_id: str) -> None:
        self._selected = adapter_id or ADAPTERS.AUTO_ADAPTER_ID
        self._warned_selection = None

    @property
    def is_auto(self) -> bool:
        return self._selected == ADAPTERS.AUTO_ADAPTER_ID

    @property
    def current_primary(self) -> Optional[str]:
        return self._current_primary

    @staticmethod
    def _candidates(adapters: Iterable[AdapterInfo]) -> List[AdapterInfo]:
        return [a for a in adapters if a.is_active and not a.is_loopback]

    def _pick_auto(self, candidates: List[AdapterInfo], speeds: SpeedMap) -> Optional[str]:
        best_id = None
        best_total = -1.0
        for adapter in candidates:
            download, upload = speeds.get(adapter.id, (0.0, 0.0))
            total = download + upload
            # Strictly greater keeps the first-seen adapter on ties
            if total > best_total:
                best_id = adapter.id
                best_total = total
        return best_id

    def resolve_primary(self, adapters: List[AdapterInfo], speeds: SpeedMap) -> Optional[str]:
        """Return just the primary adapter id for this tick."""
        return self.resolve(adapters, speeds).primary_id

    def resolve(self, adapters: List[AdapterInfo], speeds: SpeedMap) -> Resolution:
        """Resolve primary and secondary adapters for this tick.

        A pinned selection that is unknown or inactive falls back to Auto
        resolution. The fallback is logged once per selection.
        """
        candidates = self._candidates(adapters)
        fell_back = False

        primary_id = None
        if not self.is_auto:
            if any(a.id == self._selected for a in candidates):
                primary_id = self._selected
            else:
                fell_back = True
                if self._warned_selection != self._selected:
                    logger.warning(
                        f"Selected adapter '{self._selected}' is unknown or inactive, "
                        f"falling back to Auto"
                    )
                    self._warned_selection = self._selected

        if primary_id is None:
            primary_id = self._pick_auto(candidates, speeds)

        notification = None
        if primary_id != self._current_primary:
            if primary_id is not None and self._current_primary is not None:
                display = next(a.display_name for a in candidates if a.id == primary_id)
                notification = f"Switched to {display}"
                logger.info(notification)
            self._current_primary = primary_id

        secondaries = []
        for adapter in candidates:
            if adapter.id == primary_id:
                continue
            download, upload = speeds.get(adapter.id, (0.0, 0.0))
            secondaries.append(SecondaryAdapterInfo(
                adapter_id=adapter.id,
                display_name=adapter.display_name,
                download_bps=download,
                upload_bps=upload,
                is_vpn=adapter.is_vpn,
            ))

        return Resolution(
            primary_id=primary_id,
            secondaries=secondaries,
            notification=notification,
            fell_back_to_auto=fell_back,
        )

    def display_items(self, adapters: List[AdapterInfo]) -> List[AdapterDisplayItem]:
        """Selectable entries: Auto first, then every non-loopback adapter."""
        resolved_name = ""
        for adapter in adapters:
            if adapter.id == self._current_primary:
                resolved_name = adapter.display_name
                break
        items = [AdapterDisplayItem.create_auto(resolved_name)]
        items.extend(
            AdapterDisplayItem.from_adapter(a) for a in adapters if not a.is_loopback
        )
        return items


__all__ = [
    "AdapterDisplayItem",
    "AdapterResolver",
    "Resolution",
    "SecondaryAdapterInfo",
    "SpeedMap",
    "speeds_from_samples",
]
