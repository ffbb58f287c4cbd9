"""
PRICEPULSE - Snapshot Providers
Phase 1: Bootstrap snapshot boundary

The engine never fetches upstream data itself. A SnapshotProvider hands the
orchestrator one immutable BootstrapSnapshot per cycle; this module maps the
raw bootstrap document (elements / teams / element_types / events) into
AssetMetrics and annotates flag changes between consecutive snapshots.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import aiofiles

from pricepulse.core.config import get_settings
from pricepulse.core.exceptions import SnapshotUnavailableError
from pricepulse.models.assets import (
    AssetMetrics,
    BootstrapSnapshot,
    CyclePattern,
    DEFAULT_POSITIONS,
    STATUS_CODES,
    StatusFlag,
    TeamInfo,
)

logger = logging.getLogger(__name__)


def _to_float(value: Any, default: float = 0.0) -> float:
    # Upstream publishes several numeric fields as strings
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else _to_int(value)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Unparseable timestamp in snapshot: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# PAYLOAD MAPPING
# =============================================================================

def asset_from_element(element: Dict[str, Any]) -> AssetMetrics:
    """Map one raw `elements` entry onto AssetMetrics."""
    history = element.get('history') or {}
    # Unknown codes are kept so validation rejects the asset
    status_code = str(element.get('status') or 'a')
    return AssetMetrics(
        asset_id=_to_int(element.get('id')),
        name=element.get('web_name') or element.get('name') or f"asset-{element.get('id')}",
        team_id=_to_int(element.get('team')),
        position=_to_int(element.get('element_type')),
        ownership_pct=_to_float(element.get('selected_by_percent')),
        form=_to_float(element.get('form')),
        recent_points=_to_float(element.get('event_points')),
        cost=_to_int(element.get('now_cost')),
        status_flag=STATUS_CODES.get(status_code, StatusFlag.NONE),
        status_code=status_code,
        total_points=_to_int(element.get('total_points')),
        transfers_in_event=_to_int(element.get('transfers_in_event')),
        transfers_out_event=_to_int(element.get('transfers_out_event')),
        transfers_in_24h=_optional_int(element.get('transfers_in_24h')),
        transfers_out_24h=_optional_int(element.get('transfers_out_24h')),
        cost_change_event=_to_int(element.get('cost_change_event')),
        transfers_in_history=tuple(_to_int(v) for v in history.get('transfers_in', ())),
        transfers_out_history=tuple(_to_int(v) for v in history.get('transfers_out', ())),
        points_history=tuple(_to_float(v) for v in history.get('points', ())),
        fixture_difficulty=tuple(_to_int(v) for v in history.get('fixture_difficulty', ())),
    )


def _current_event(events: List[Dict[str, Any]]) -> Tuple[int, str, Optional[datetime]]:
    """Resolve (cycle, cycle_status, next deadline) from the events list."""
    current = next((e for e in events if e.get('is_current')), None)
    upcoming = next((e for e in events if e.get('is_next')), None)

    if current is not None:
        status = 'finished' if current.get('finished') else 'started'
        deadline = _parse_datetime(upcoming.get('deadline_time')) if upcoming else None
        return _to_int(current.get('id'), 1), status, deadline
    if upcoming is not None:
        return _to_int(upcoming.get('id'), 1), 'upcoming', _parse_datetime(upcoming.get('deadline_time'))
    return 1, 'upcoming', None


def _patterns(payload: Dict[str, Any]) -> Tuple[CyclePattern, ...]:
    return tuple(
        CyclePattern(
            cycle=_to_int(p.get('cycle')),
            total_transfers=_to_int(p.get('total_transfers')),
            wildcard_usage=_to_float(p.get('wildcard_usage')),
            price_changes=_to_int(p.get('price_changes')),
            deadline_rush_intensity=_to_float(p.get('deadline_rush_intensity')),
            is_break=bool(p.get('is_break', False)),
        )
        for p in payload.get('recent_patterns') or ()
    )


def snapshot_from_bootstrap(
    payload: Dict[str, Any],
    fetched_at: Optional[datetime] = None,
) -> BootstrapSnapshot:
    """
    Build a BootstrapSnapshot from a raw bootstrap document.

    Args:
        payload: Decoded bootstrap JSON
        fetched_at: When the payload was fetched; defaults to now (UTC)

    Returns:
        BootstrapSnapshot

    Raises:
        SnapshotUnavailableError: If the payload is missing or has no elements
    """
    if not payload or not payload.get('elements'):
        raise SnapshotUnavailableError("Bootstrap payload has no elements")

    fetched_at = fetched_at or _parse_datetime(payload.get('fetched_at')) or datetime.now(timezone.utc)

    teams = {
        _to_int(t.get('id')): TeamInfo(
            team_id=_to_int(t.get('id')),
            short_name=t.get('short_name') or t.get('name', 'UNK'),
            name=t.get('name', ''),
        )
        for t in payload.get('teams') or ()
    }
    positions = {
        _to_int(p.get('id')): p.get('singular_name_short') or p.get('name', 'UNK')
        for p in payload.get('element_types') or ()
    } or dict(DEFAULT_POSITIONS)

    cycle, cycle_status, deadline = _current_event(payload.get('events') or [])
    if 'hours_until_deadline' in payload:
        hours = _to_float(payload['hours_until_deadline'], get_settings().DEFAULT_HOURS_UNTIL_DEADLINE)
    elif deadline is not None:
        hours = max(0.0, (deadline - fetched_at).total_seconds() / 3600)
    else:
        hours = get_settings().DEFAULT_HOURS_UNTIL_DEADLINE

    assets = tuple(asset_from_element(e) for e in payload['elements'])

    logger.info(
        f"Mapped bootstrap snapshot: cycle {cycle} ({cycle_status}), "
        f"{len(assets)} assets, {len(teams)} teams, {hours:.1f}h to deadline"
    )

    return BootstrapSnapshot(
        assets=assets,
        current_cycle=cycle,
        teams=teams,
        positions=positions,
        hours_until_deadline=hours,
        cycle_status=cycle_status,
        recent_patterns=_patterns(payload),
        fetched_at=fetched_at,
    )


def annotate_flag_changes(
    previous: Optional[BootstrapSnapshot],
    current: BootstrapSnapshot,
    observed_at: Optional[datetime] = None,
) -> BootstrapSnapshot:
    """
    Attach previous-flag history by diffing two consecutive snapshots.

    Assets whose flag differs from the previous snapshot get `previous_flag`
    set and `flag_changed_at` stamped with `observed_at` (defaulting to the
    current snapshot's fetch time). Unchanged or new assets keep whatever
    history they already carry.
    """
    if previous is None:
        return current

    observed_at = observed_at or current.fetched_at or datetime.now(timezone.utc)
    before = previous.by_id()

    assets = []
    changed = 0
    for asset in current.assets:
        prior = before.get(asset.asset_id)
        if prior is not None and prior.status_flag != asset.status_flag:
            asset = replace(asset, previous_flag=prior.status_flag, flag_changed_at=observed_at)
            changed += 1
        assets.append(asset)

    if changed:
        logger.info(f"Detected {changed} flag changes between cycles")
    return replace(current, assets=tuple(assets))


# =============================================================================
# PROVIDERS
# =============================================================================

class SnapshotProvider(ABC):
    """Source of one immutable snapshot per evaluation cycle."""

    @abstractmethod
    async def get_snapshot(self) -> BootstrapSnapshot:
        """
        Return the snapshot for the current cycle.

        Raises:
            SnapshotUnavailableError: If no usable snapshot exists
        """


class StaticSnapshotProvider(SnapshotProvider):
    """Serves a snapshot held in memory."""

    def __init__(self, snapshot: Optional[BootstrapSnapshot]):
        self._snapshot = snapshot

    async def get_snapshot(self) -> BootstrapSnapshot:
        if self._snapshot is None or self._snapshot.is_empty:
            raise SnapshotUnavailableError("No snapshot loaded")
        return self._snapshot


class JsonFileSnapshotProvider(SnapshotProvider):
    """
    Reads a bootstrap document from disk on every call.

    When `previous_path` is given, flag changes are annotated against it.
    """

    def __init__(
        self,
        path: Union[str, Path],
        previous_path: Optional[Union[str, Path]] = None,
    ):
        self.path = Path(path)
        self.previous_path = Path(previous_path) if previous_path else None

    async def _load(self, path: Path) -> BootstrapSnapshot:
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                payload = json.loads(await f.read())
        except FileNotFoundError as e:
            raise SnapshotUnavailableError(f"Snapshot file not found: {path}", e)
        except json.JSONDecodeError as e:
            raise SnapshotUnavailableError(f"Snapshot file is not valid JSON: {path}", e)
        if not isinstance(payload, dict):
            raise SnapshotUnavailableError(f"Snapshot file must hold a JSON object: {path}")
        return snapshot_from_bootstrap(payload)

    async def get_snapshot(self) -> BootstrapSnapshot:
        current = await self._load(self.path)
        if self.previous_path is not None:
            current = annotate_flag_changes(await self._load(self.previous_path), current)
        return current
