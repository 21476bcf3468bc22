"""
Schema differ: classifies every database, retention policy and continuous
query as obsolete, unchanged, changed or new.
"""

import logging
from typing import List, Mapping

from .models import ContinuousQuery, RetentionPolicy, Snapshot
from .normalize import durations_equal, queries_equivalent
from .operations import (
    ChangeRecord,
    create_database,
    create_policy,
    create_query,
    delete_database,
    delete_policy,
    delete_query,
    update_policy,
    update_query,
)
from .reconcile import partition_names


logger = logging.getLogger(__name__)


def policies_equivalent(live: RetentionPolicy, desired: RetentionPolicy) -> bool:
    """Compare the attributes InfluxDB lets us alter; replication is not compared."""
    return (
        durations_equal(live.duration, desired.duration)
        and durations_equal(live.shard_duration, desired.shard_duration)
        and live.is_default == desired.is_default
    )


class SchemaDiffer:
    """
    Computes the change records turning a live snapshot into a desired one.

    Records come out in pass order (databases, retention policies, continuous
    queries) and are unskipped; ordering and skip policy belong to the planner.
    """

    def diff(self, live: Snapshot, desired: Snapshot) -> List[ChangeRecord]:
        changes: List[ChangeRecord] = []
        changes.extend(self._diff_databases(live, desired))
        changes.extend(self._diff_queries(live, desired))
        logger.debug(f"Computed {len(changes)} change records")
        return changes

    def _diff_databases(self, live: Snapshot, desired: Snapshot) -> List[ChangeRecord]:
        changes: List[ChangeRecord] = []
        partition = partition_names(live.databases, desired.databases)

        for name in partition.left_only:
            logger.debug(f"Database {name} is obsolete")
            changes.append(delete_database(name))

        for name in partition.right_only:
            database = desired.databases[name]
            logger.debug(f"Database {name} is new")
            changes.append(create_database(database))
            # The inline policy is created together with the database.
            new_policies = {
                rp_name: policy
                for rp_name, policy in database.policies.items()
                if rp_name != database.inline_policy
            }
            changes.extend(self._diff_policies(name, {}, new_policies))

        for name in partition.both:
            changes.extend(
                self._diff_policies(
                    name, live.policies_of(name), desired.policies_of(name)
                )
            )

        return changes

    def _diff_policies(
        self,
        database: str,
        live: Mapping[str, RetentionPolicy],
        desired: Mapping[str, RetentionPolicy],
    ) -> List[ChangeRecord]:
        changes: List[ChangeRecord] = []
        partition = partition_names(live, desired)

        for name in partition.left_only:
            logger.debug(f"Retention policy {name} on {database} is obsolete")
            changes.append(delete_policy(database, name))

        for name in partition.right_only:
            logger.debug(f"Retention policy {name} on {database} is new")
            changes.append(create_policy(desired[name]))

        for name in partition.both:
            if not policies_equivalent(live[name], desired[name]):
                logger.debug(f"Retention policy {name} on {database} changed")
                changes.append(update_policy(desired[name]))

        return changes

    def _diff_queries(self, live: Snapshot, desired: Snapshot) -> List[ChangeRecord]:
        changes: List[ChangeRecord] = []
        databases = sorted(set(live.databases) | set(desired.databases))

        for database in databases:
            changes.extend(
                self._diff_database_queries(
                    database, live.queries_of(database), desired.queries_of(database)
                )
            )

        return changes

    def _diff_database_queries(
        self,
        database: str,
        live: Mapping[str, ContinuousQuery],
        desired: Mapping[str, ContinuousQuery],
    ) -> List[ChangeRecord]:
        changes: List[ChangeRecord] = []
        partition = partition_names(live, desired)

        for name in partition.left_only:
            logger.debug(f"Continuous query {name} on {database} is obsolete")
            changes.append(delete_query(database, name))

        for name in partition.right_only:
            logger.debug(f"Continuous query {name} on {database} is new")
            changes.append(create_query(desired[name]))

        for name in partition.both:
            if not queries_equivalent(live[name].definition, desired[name].definition):
                logger.debug(f"Continuous query {name} on {database} changed")
                changes.append(update_query(desired[name]))

        return changes


def diff_snapshots(live: Snapshot, desired: Snapshot) -> List[ChangeRecord]:
    return SchemaDiffer().diff(live, desired)
