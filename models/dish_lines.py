"""
Dish lines.

Orders arrive in one of two shapes:

    legacy map:  {"Chicken curry": 2, "Dal": 1}
    line list:   [{"name": "Chicken curry", "quantity": 2, "packets": 8,
                   "vacuumPacking": {"enabled": true, "packets": 4}}]

Both are normalized once, on the way in, to the canonical list stored on the
reservation:

    [{"name", "tray_quantity", "packet_quantity", "vacuum_packets"}]
"""

from flask import current_app

LEGACY_MAP = 'legacy_map'
LINE_LIST = 'line_list'

MAX_NAME_LENGTH = 100


def detect_dish_form(dishes) -> str:
    """
    Tag the shape of incoming dish data.

    Returns:
        str: LEGACY_MAP or LINE_LIST

    Raises:
        ValueError: If the value matches neither shape
    """
    if isinstance(dishes, dict):
        return LEGACY_MAP
    if isinstance(dishes, (list, tuple)) and all(isinstance(item, dict) for item in dishes):
        return LINE_LIST
    raise ValueError("Dishes must be a name-to-trays map or a list of dish lines")


def is_vacuum_eligible(name: str) -> bool:
    """Vacuum packing is offered only for dishes matching VACUUM_PACKING_ITEMS."""
    normalized = (name or '').strip().lower()
    return any(item in normalized for item in current_app.config.get('VACUUM_PACKING_ITEMS', []))


def _whole_number(value, field: str, name: str, minimum: int = 0) -> int:
    if value is None or value == '':
        return 0 if minimum == 0 else None
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field} for '{name}'")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field} for '{name}'")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Invalid {field} for '{name}'")
    if number < minimum:
        raise ValueError(f"{field.capitalize()} for '{name}' must be at least {minimum}")
    return number


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Every dish needs a name")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Dish name is too long (max {MAX_NAME_LENGTH} characters)")
    return name


def _canonical_line(name: str, trays, packets=0, vacuum_packets=0) -> dict:
    trays = _whole_number(trays, 'tray quantity', name, minimum=1)
    if trays is None:
        raise ValueError(f"Tray quantity for '{name}' is required")

    vacuum_packets = _whole_number(vacuum_packets, 'vacuum packets', name)
    if vacuum_packets and not is_vacuum_eligible(name):
        raise ValueError(f"Vacuum packing is not available for '{name}'")

    return {
        'name': name,
        'tray_quantity': trays,
        'packet_quantity': _whole_number(packets, 'packet quantity', name),
        'vacuum_packets': vacuum_packets,
    }


def _vacuum_packets(item: dict):
    vacuum = item.get('vacuumPacking', item.get('vacuum_packing'))
    if vacuum is None:
        return item.get('vacuum_packets', 0)
    if not isinstance(vacuum, dict):
        raise ValueError("vacuumPacking must be an object with 'enabled' and 'packets'")
    if not vacuum.get('enabled'):
        return 0
    return vacuum.get('packets', 0)


def normalize_dish_lines(dishes) -> list:
    """
    Convert either input shape to the canonical line list.

    Args:
        dishes: Legacy map or line list

    Returns:
        list: Canonical lines, in input order

    Raises:
        ValueError: On empty input, missing names, bad quantities or
                    vacuum packing on an ineligible dish
    """
    form = detect_dish_form(dishes)
    lines = []

    if form == LEGACY_MAP:
        for name, trays in dishes.items():
            lines.append(_canonical_line(_clean_name(name), trays))
    else:
        for item in dishes:
            name = _clean_name(item.get('name'))
            trays = item.get('quantity', item.get('tray_quantity'))
            packets = item.get('packets', item.get('packet_quantity', 0))
            lines.append(_canonical_line(name, trays, packets, _vacuum_packets(item)))

    if not lines:
        raise ValueError("At least one dish is required")

    return lines


def normalize_freeze_dried(value) -> dict:
    """
    Normalize the freeze-dried add-on.

    Accepts {'packets', 'grams_per_packet'} or the camelCase
    {'enabled', 'packets', 'gramsPerPacket'} shape. A disabled or empty
    add-on becomes zero packets.

    Returns:
        dict: {'packets': int, 'grams_per_packet': int}
    """
    if not value:
        return {'packets': 0, 'grams_per_packet': 0}
    if not isinstance(value, dict):
        raise ValueError("Freeze-dried add-on must be an object")
    if value.get('enabled') is False:
        return {'packets': 0, 'grams_per_packet': 0}

    label = 'freeze-dried add-on'
    packets = _whole_number(value.get('packets', 0), 'packets', label)
    grams = _whole_number(
        value.get('grams_per_packet', value.get('gramsPerPacket', 0)), 'grams per packet', label
    )
    if packets and not grams:
        raise ValueError("Grams per packet is required for the freeze-dried add-on")
    return {'packets': packets, 'grams_per_packet': grams}


def total_trays(lines: list) -> int:
    """Total trays across canonical lines."""
    return sum(line['tray_quantity'] for line in lines)


def total_packets(lines: list) -> int:
    """Total packing packets across canonical lines."""
    return sum(line['packet_quantity'] for line in lines)


def vacuum_lines(lines: list) -> list:
    """Canonical lines that carry vacuum packing."""
    return [line for line in lines if line['vacuum_packets'] > 0]
