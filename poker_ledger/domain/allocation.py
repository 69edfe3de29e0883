"""Integer splitting helpers shared by rakeback, expense and bank allocations"""

from typing import List, Sequence


def distribute_equally(total_amount: int, count: int) -> List[int]:
    """
    Split an integer amount into `count` near-equal parts.

    The remainder is handed out one unit at a time to the first parts so the
    result always sums to `total_amount`.

    Example:
        10 / 3 -> [4, 3, 3]
    """
    if count <= 0:
        return []

    base_amount = total_amount // count
    remainder = total_amount % count

    return [base_amount + (1 if i < remainder else 0) for i in range(count)]


def equal_percentages(count: int) -> List[int]:
    """Whole-number percentages for an equal split, e.g. 3 -> [34, 33, 33]"""
    return distribute_equally(100, count)


def distribute_by_percentage(total_amount: int, percentages: Sequence[int]) -> List[int]:
    """
    Split an amount by whole-number percentages.

    Every part but the last is rounded to the nearest unit; the last part
    absorbs the rounding remainder to keep the total exact.
    """
    amounts: List[int] = []
    distributed = 0

    for index, percentage in enumerate(percentages):
        if index == len(percentages) - 1:
            amount = total_amount - distributed
        else:
            amount = (total_amount * percentage * 2 + 100) // 200
            distributed += amount
        amounts.append(amount)

    return amounts


def allocate_proportionally(total_amount: int, weights: Sequence[int], residual_index: int) -> List[int]:
    """
    Split `total_amount` proportionally to `weights`, truncating each share.

    The truncation residual (at most len(weights) - 1 units) goes to the part
    at `residual_index` so the shares always sum to `total_amount`.
    """
    weight_sum = sum(weights)
    if weight_sum <= 0 or not weights:
        return [0 for _ in weights]

    shares = [total_amount * w // weight_sum for w in weights]
    shares[residual_index] += total_amount - sum(shares)
    return shares
