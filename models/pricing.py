"""
Pricing engine.
Pure cost calculations in whole rupees. Rates come from the app config
unless a rates dict is passed explicitly.
"""

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

RATE_KEYS = (
    'TRAY_PRICE_THRESHOLD',
    'TRAY_PRICE_BELOW_THRESHOLD',
    'TRAY_PRICE_AT_OR_ABOVE_THRESHOLD',
    'PACKING_COST_PER_PACKET',
    'VACUUM_PACKING_PRICE',
    'VACUUM_PACKING_PRICE_BULK',
    'VACUUM_PACKING_BULK_THRESHOLD',
    'FREEZE_DRIED_PRICE_PER_GRAM',
    'FREEZE_DRIED_MIN_GRAMS',
)


def get_pricing_rates() -> dict:
    """Snapshot of the configured rates."""
    return {key: current_app.config[key] for key in RATE_KEYS}


def _rates(rates: dict = None) -> dict:
    return rates if rates is not None else get_pricing_rates()


def round_half_up(value) -> int:
    """Round to the nearest rupee, halves going up (0.5 -> 1)."""
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _non_negative(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{label} must be a non-negative whole number")
    return value


# =============================================================================
# COMPONENT COSTS
# =============================================================================

def dehydration_cost(trays: int, rates: dict = None) -> int:
    """
    Drying cost for a tray count.

    The per-tray rate is chosen by the total quantity and applies to every
    tray: below the threshold each tray costs the higher rate, at or above
    it every tray costs the lower one.
    """
    trays = _non_negative(trays, 'Tray count')
    r = _rates(rates)
    if trays < r['TRAY_PRICE_THRESHOLD']:
        return trays * r['TRAY_PRICE_BELOW_THRESHOLD']
    return trays * r['TRAY_PRICE_AT_OR_ABOVE_THRESHOLD']


def packing_cost(packets: int, rates: dict = None) -> int:
    packets = _non_negative(packets, 'Packet count')
    return packets * _rates(rates)['PACKING_COST_PER_PACKET']


def vacuum_price_per_packet(packets: int, rates: dict = None) -> int:
    r = _rates(rates)
    if packets > r['VACUUM_PACKING_BULK_THRESHOLD']:
        return r['VACUUM_PACKING_PRICE_BULK']
    return r['VACUUM_PACKING_PRICE']


def vacuum_cost(lines: list, rates: dict = None) -> int:
    """
    Vacuum packing cost summed per dish line.

    The bulk rate is decided per line, not on the order total.

    Args:
        lines: Canonical dish lines (uses 'vacuum_packets')
    """
    r = _rates(rates)
    total = 0
    for line in lines or []:
        packets = _non_negative(line.get('vacuum_packets', 0), 'Vacuum packets')
        total += packets * vacuum_price_per_packet(packets, r)
    return total


def freeze_dried_cost(packets: int, grams_per_packet: int, rates: dict = None) -> int:
    """Freeze-dried add-on: packets x grams x rate, zero below the minimum pack size."""
    packets = _non_negative(packets, 'Freeze-dried packets')
    grams_per_packet = _non_negative(grams_per_packet, 'Grams per packet')
    r = _rates(rates)
    if grams_per_packet < r['FREEZE_DRIED_MIN_GRAMS']:
        return 0
    return packets * grams_per_packet * r['FREEZE_DRIED_PRICE_PER_GRAM']


# =============================================================================
# BREAKDOWN
# =============================================================================

def price_breakdown(
    tray_count: int,
    packet_count: int = 0,
    vacuum_lines: list = None,
    freeze_dried: dict = None,
    credit_to_apply: int = 0,
    rates: dict = None
) -> dict:
    """
    Full cost breakdown for an order.

    Args:
        tray_count: Trays booked
        packet_count: Packing packets
        vacuum_lines: Canonical dish lines carrying vacuum packets
        freeze_dried: {'packets', 'grams_per_packet'} or None
        credit_to_apply: Credit available to offset the subtotal
        rates: Optional explicit rates (defaults to app config)

    Returns:
        dict: {dehydration_cost, packing_cost, vacuum_cost, freeze_dried_cost,
               subtotal, applied_credit_amount, total_cost}
    """
    r = _rates(rates)
    freeze_dried = freeze_dried or {}
    credit_to_apply = _non_negative(credit_to_apply or 0, 'Credit')

    breakdown = {
        'dehydration_cost': dehydration_cost(tray_count, r),
        'packing_cost': packing_cost(packet_count or 0, r),
        'vacuum_cost': vacuum_cost(vacuum_lines, r),
        'freeze_dried_cost': freeze_dried_cost(
            freeze_dried.get('packets', 0) or 0,
            freeze_dried.get('grams_per_packet', 0) or 0,
            r
        ),
    }
    subtotal = sum(breakdown.values())
    applied = min(credit_to_apply, subtotal)

    breakdown['subtotal'] = subtotal
    breakdown['applied_credit_amount'] = applied
    breakdown['total_cost'] = max(0, subtotal - applied)
    return breakdown
