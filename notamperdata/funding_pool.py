"""
notamperdata SDK - Funding Pool

Pool of UTxOs the anchoring agent can spend. Each anchoring request takes
its own unit, so independent requests build and submit in parallel instead
of queueing behind one wallet balance.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .anchor_types import FundingUnit, UnitState
from .errors import NoFundsAvailable
from .ledger_client import BlockfrostClient

log = logging.getLogger(__name__)


@dataclass
class PoolRefresh:
    """Outcome of refresh_from_ledger()"""
    added: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    released: List[str] = field(default_factory=list)


class FundingPool:
    """
    Thread-safe funding unit pool.

    Every mutation runs under one lock per pool instance.

    Usage:
        pool = FundingPool(client, "addr_test1...", min_value=6_000_000)
        pool.refresh_from_ledger()

        unit = pool.allocate()
        try:
            ...build and submit...
        except BuildError:
            pool.release(unit)
            raise
        pool.commit(unit)
    """

    def __init__(self, client: Optional[BlockfrostClient], owner_address: str,
                 min_value: int = 0):
        """
        Initialize funding pool.

        Args:
            client: Ledger client used by refresh_from_ledger (optional)
            owner_address: Agent address holding the units
            min_value: Default minimum unit value for allocate()
        """
        self.client = client
        self.owner_address = owner_address
        self.min_value = min_value
        self.units: Dict[str, FundingUnit] = {}
        # Committed units the ledger may still report as unspent
        self._retired: Set[str] = set()
        # ALLOCATED units a refresh dropped before their holder committed
        # or released them
        self._vanished: Set[str] = set()
        self._lock = threading.Lock()

    def allocate(self, min_value: Optional[int] = None) -> FundingUnit:
        """
        Take the smallest Available unit holding at least min_value.

        Args:
            min_value: Required lovelace (lock amount + fee); pool default if None

        Returns:
            The unit, now ALLOCATED

        Raises:
            NoFundsAvailable: no Available unit is large enough
        """
        required = self.min_value if min_value is None else min_value
        with self._lock:
            available = [u for u in self.units.values() if u.state == UnitState.AVAILABLE]
            eligible = [u for u in available if u.value >= required]
            if not eligible:
                raise NoFundsAvailable(required, len(available))

            # Smallest sufficient value keeps large units for large locks
            unit = min(eligible, key=lambda u: (u.value, u.identifier))
            unit.state = UnitState.ALLOCATED

        log.debug(f"Allocated {unit.identifier[:16]}... ({unit.value} lovelace)")
        return unit

    def release(self, unit: FundingUnit):
        """
        Return an ALLOCATED unit to AVAILABLE (build or submit failed).

        A unit a refresh already dropped is gone from the ledger; releasing
        it is a no-op.
        """
        with self._lock:
            held = self.units.get(unit.identifier)
            if held is None and unit.identifier in self._vanished:
                self._vanished.discard(unit.identifier)
                log.info(f"Release of {unit.identifier[:16]}...: already spent on ledger")
                return
            if held is None or held.state != UnitState.ALLOCATED:
                raise ValueError(f"Unit {unit.identifier} is not allocated")
            held.state = UnitState.AVAILABLE
        log.debug(f"Released {unit.identifier[:16]}...")

    def commit(self, unit: FundingUnit):
        """
        Mark an ALLOCATED unit SPENT and prune it (transaction confirmed).

        A refresh running while the transaction confirmed may have dropped
        the unit already; committing it then just completes the handoff.
        """
        with self._lock:
            held = self.units.get(unit.identifier)
            if held is None and unit.identifier in self._vanished:
                self._vanished.discard(unit.identifier)
                unit.state = UnitState.SPENT
                log.debug(f"Committed {unit.identifier[:16]}... (dropped by refresh)")
                return
            if held is None or held.state != UnitState.ALLOCATED:
                raise ValueError(f"Unit {unit.identifier} is not allocated")
            held.state = UnitState.SPENT
            del self.units[unit.identifier]
            self._retired.add(unit.identifier)
        log.debug(f"Committed {unit.identifier[:16]}...")

    def adopt(self, unit: FundingUnit):
        """Add a change output from a confirmed anchoring transaction."""
        with self._lock:
            if unit.identifier in self._retired or unit.identifier in self.units:
                return
            unit.state = UnitState.AVAILABLE
            self.units[unit.identifier] = unit
        log.debug(f"Adopted {unit.identifier[:16]}... ({unit.value} lovelace)")

    def refresh_from_ledger(self, owner_address: str = "",
                            release_stale: bool = False) -> PoolRefresh:
        """
        Reconcile the pool with the agent's current holdings.

        New outputs become AVAILABLE, units the ledger no longer reports are
        dropped whatever their state, and committed units are never brought
        back while the ledger lags behind.

        Args:
            owner_address: Address to scan (pool owner if empty)
            release_stale: Return ALLOCATED units that are still unspent on
                the ledger to AVAILABLE. Only safe once their transactions
                are known to be dead (e.g. after a confirmation timeout plus
                the network's TTL).

        Returns:
            PoolRefresh listing added, dropped and released identifiers
        """
        if self.client is None:
            raise ValueError("FundingPool has no ledger client")

        address = owner_address or self.owner_address
        # Network I/O stays outside the critical section
        utxos = self.client.address_utxos(address)

        observed: Dict[str, FundingUnit] = {}
        for utxo in utxos:
            unit = FundingUnit.from_utxo(utxo)
            if unit is None:
                log.debug(f"Skipping non-ADA output {utxo.get('tx_hash', '')[:16]}...")
                continue
            observed[unit.identifier] = unit

        result = PoolRefresh()
        with self._lock:
            for identifier in list(self.units):
                if identifier not in observed:
                    if self.units[identifier].state == UnitState.ALLOCATED:
                        self._vanished.add(identifier)
                    del self.units[identifier]
                    result.dropped.append(identifier)
                elif release_stale and self.units[identifier].state == UnitState.ALLOCATED:
                    self.units[identifier].state = UnitState.AVAILABLE
                    result.released.append(identifier)

            self._retired &= set(observed)

            for identifier, unit in observed.items():
                if identifier in self.units or identifier in self._retired:
                    continue
                self.units[identifier] = unit
                result.added.append(identifier)

        log.info(f"Pool refresh {address[:16]}...: +{len(result.added)} "
                 f"-{len(result.dropped)} released={len(result.released)}")
        return result

    def snapshot(self) -> List[FundingUnit]:
        """Copy of all units, sorted by identifier."""
        with self._lock:
            return [
                FundingUnit(u.tx_hash, u.output_index, u.value, u.state)
                for u in sorted(self.units.values(), key=lambda u: u.identifier)
            ]

    def available_count(self) -> int:
        with self._lock:
            return sum(1 for u in self.units.values() if u.state == UnitState.AVAILABLE)

    def total_available(self) -> int:
        """Total lovelace in AVAILABLE units."""
        with self._lock:
            return sum(u.value for u in self.units.values() if u.state == UnitState.AVAILABLE)
