"""
Plan module for Cloudflaere.

This module is responsible for calculating the changes needed to bring the records
of a single zone in line with the desired state.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Set, Tuple

from cloudflaere.models.errors import AuthorizationError, ConflictError
from cloudflaere.models.models import (
    Changes,
    DesiredRecord,
    Record,
    RecordUpdate,
    canonical_address,
)


class Plan:
    """
    Plan calculates the changes needed to bring a zone in line with the desired state.

    Only records carrying the ownership marker are ever updated or deleted. All the
    decisions are taken from the single record snapshot passed in.
    """

    def __init__(
        self,
        hostnames: Iterable[str],
        addresses: Mapping[str, str],
        current: List[Record],
        marker: str,
    ):
        """
        Initialize a Plan.

        Args:
            hostnames: Hostnames that should resolve in this zone
            addresses: Record type ("A"/"AAAA") -> target address
            current: Current A/AAAA records of the zone
            marker: Ownership marker of this instance
        """
        self.hostnames = {hostname.lower() for hostname in hostnames}
        self.addresses = dict(addresses)
        self.current = current
        self.marker = marker
        self.logger = logging.getLogger("cloudflaere.plan")

    def desired(self) -> List[DesiredRecord]:
        """
        Expand hostnames and addresses into the records that should exist.

        Returns:
            List[DesiredRecord]: Desired records, sorted by type then name
        """
        return [
            DesiredRecord(name=hostname, record_type=record_type, address=address)
            for record_type, address in sorted(self.addresses.items())
            for hostname in sorted(self.hostnames)
        ]

    def calculate_changes(self) -> Changes:
        """
        Calculate the changes needed to bring the current state in line with the desired state.

        Returns:
            Changes: Changes to be applied, plus skipped and conflicting records
        """
        changes = Changes()

        # Index current records by name and type for faster lookup
        current_by_key: Dict[Tuple[str, str], List[Record]] = {}
        for record in self.current:
            key = (record.name.lower(), record.type)
            current_by_key.setdefault(key, []).append(record)

        conflicted: Set[Tuple[str, str]] = set()
        for desired in self.desired():
            key = (desired.name, desired.record_type)
            matches = current_by_key.get(key, [])

            if not matches:
                self.logger.info(
                    f"Record {desired.id} will be created -> {desired.address}"
                )
                changes.create.append(desired)
                continue

            if len(matches) > 1:
                conflicted.add(key)
                self._conflict(changes, desired.name, desired.record_type, len(matches))
                continue

            record = matches[0]
            if not record.has_marker(self.marker):
                skipped = AuthorizationError(
                    desired.name, desired.record_type, record.id
                )
                self.logger.warning(f"Skipping: {skipped}")
                changes.skipped.append(skipped)
                continue

            if self._needs_update(record, desired):
                self.logger.info(
                    f"Record {desired.id} needs update: {record.address} -> {desired.address}"
                )
                changes.update.append(
                    RecordUpdate(record=record, address=desired.address)
                )
            else:
                self.logger.debug(f"Record {desired.id} is up-to-date")
                changes.unchanged.append(record)

        # Duplicates outside the desired set are never cleaned up automatically
        for (name, record_type), records in sorted(current_by_key.items()):
            if len(records) > 1 and (name, record_type) not in conflicted:
                conflicted.add((name, record_type))
                self._conflict(changes, name, record_type, len(records))

        # Marked records for hostnames that are no longer routed
        for record in self.current:
            if not record.has_marker(self.marker):
                continue
            if record.name.lower() in self.hostnames:
                continue
            if (record.name.lower(), record.type) in conflicted:
                continue
            self.logger.info(
                f"Record {record.name}:{record.type} ({record.id}) identified as no longer desired."
            )
            changes.delete.append(record)

        return changes

    def _conflict(
        self, changes: Changes, name: str, record_type: str, count: int
    ) -> None:
        conflict = ConflictError(name, record_type, count)
        self.logger.warning(f"Conflict: {conflict}")
        changes.conflicts.append(conflict)

    @staticmethod
    def _needs_update(current: Record, desired: DesiredRecord) -> bool:
        """
        Check if a record's address differs from the desired address.

        Args:
            current: Current record
            desired: Desired record

        Returns:
            bool: True if the record needs to be updated, False otherwise
        """
        current_address = canonical_address(current.address)
        if current_address is None:
            return True
        return current_address != canonical_address(desired.address)
