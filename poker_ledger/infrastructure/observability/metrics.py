"""Prometheus metrics for monitoring settlements, ledger commands, and session imports"""

from typing import Sequence

from prometheus_client import Counter, Histogram

from poker_ledger.domain.models import SettlementTransfer

# Settlement metrics
settlement_counter = Counter(
    "poker_ledger_settlement_total",
    "Total settlement calculations",
    ["outcome"],  # final | provisional | failed
)

settlement_transfer_counter = Counter(
    "poker_ledger_settlement_transfers_total",
    "Proposed settlement transfers by type",
    ["transfer_type"],  # bankToPlayer | playerToPlayer | playerToBank
)

reconciliation_failure_counter = Counter(
    "poker_ledger_reconciliation_failures_total",
    "Finished sessions whose credits and debits do not balance",
)

# Command metrics
command_counter = Counter(
    "poker_ledger_command_total",
    "Ledger mutation commands",
    ["command", "outcome"],  # outcome: applied | rejected | conflict
)

# Transfer file metrics
session_import_counter = Counter(
    "poker_ledger_session_imports_total",
    "Session file imports",
    ["outcome"],  # imported | rejected
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_settlement(is_final: bool, transfers: Sequence[SettlementTransfer]) -> None:
    """Record settlement outcome and how the plan splits across transfer types"""
    settlement_counter.labels(outcome="final" if is_final else "provisional").inc()
    for transfer in transfers:
        settlement_transfer_counter.labels(transfer_type=transfer.transfer_type.value).inc()


def record_reconciliation_failure() -> None:
    settlement_counter.labels(outcome="failed").inc()
    reconciliation_failure_counter.inc()


def record_command(command: str, outcome: str) -> None:
    command_counter.labels(command=command, outcome=outcome).inc()
