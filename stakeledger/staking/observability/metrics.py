# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports ledger metrics in Prometheus format.

Metrics:
- Aggregate stake, reward rate, accumulator
- Schema version, pause flag, account count
- Operation and rejection counters
- Rewards paid and fees collected
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# LEDGER METRICS
# ═══════════════════════════════════════════════════════════════════

total_staked = Gauge(
    'stakeledger_total_staked',
    'Total units staked across all accounts',
    registry=metrics_registry
)

reward_rate = Gauge(
    'stakeledger_reward_rate',
    'Reward base units emitted per second',
    registry=metrics_registry
)

reward_per_unit_stored = Gauge(
    'stakeledger_reward_per_unit_stored',
    'Stored reward-per-unit accumulator (fixed point, 1e18 scale)',
    registry=metrics_registry
)

schema_version = Gauge(
    'stakeledger_schema_version',
    'Current ledger schema version',
    registry=metrics_registry
)

paused = Gauge(
    'stakeledger_paused',
    'Pause flag (1 = paused)',
    registry=metrics_registry
)

accounts_total = Gauge(
    'stakeledger_accounts_total',
    'Number of accounts known to the ledger',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# OPERATION METRICS
# ═══════════════════════════════════════════════════════════════════

operations_total = Counter(
    'stakeledger_operations_total',
    'Committed mutating operations',
    ['operation'],
    registry=metrics_registry
)

operation_rejections_total = Counter(
    'stakeledger_operation_rejections_total',
    'Rejected or aborted mutating operations',
    ['operation', 'error'],
    registry=metrics_registry
)

events_total = Counter(
    'stakeledger_events_total',
    'Published ledger events',
    ['event_type'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# ECONOMIC METRICS
# ═══════════════════════════════════════════════════════════════════

rewards_paid_total = Counter(
    'stakeledger_rewards_paid_total',
    'Reward base units paid to participants',
    registry=metrics_registry
)

fees_collected_total = Counter(
    'stakeledger_fees_collected_total',
    'Early-withdrawal fees routed to the fee collector',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def update_metrics(ledger):
    """
    Update all gauges from ledger state.
    Called when metrics are scraped. Counters are updated as operations happen.

    Args:
        ledger: StakingLedger instance
    """
    state = ledger.store.ledger

    total_staked.set(state.total_staked)
    reward_rate.set(state.reward_rate)
    reward_per_unit_stored.set(state.reward_per_unit_stored)
    schema_version.set(state.schema_version)
    paused.set(1 if state.paused else 0)
    accounts_total.set(len(ledger.store.all_accounts()))


def record_operation(operation: str):
    operations_total.labels(operation=operation).inc()


def record_rejection(operation: str, error: Exception):
    operation_rejections_total.labels(operation=operation, error=type(error).__name__).inc()
