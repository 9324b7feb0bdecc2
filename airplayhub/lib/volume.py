# AirPlay Hub
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Volume scale conversions for the hub.

Everything inside the hub works on one scale: integers 0-100.  Senders
report volume in their own units, so each external representation gets an
adapter that folds it onto that scale:

    normalize_sender_volume("-15.0")   -> 50   (AirPlay dB attenuation)
    normalize_percent_volume("75")     -> 75   (plain percentage)
    effective_zone_volume(80, 50)      -> 40   (what the speaker really gets)

All functions are total: garbage in gives 0 out, never an exception.
Logging invalid input is left to the caller.
"""

# AirPlay senders report -144 for mute, otherwise -30.0 (quietest) .. 0.0 dB
AIRPLAY_MUTE = -144
AIRPLAY_MIN_DB = -30
AIRPLAY_MAX_DB = 0


def _parse_number(raw) -> int | float | None:
    """Lenient numeric parse: '42', '42.9', ' -15.00 ', 42.0 all work."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _parse_int(raw) -> int | None:
    """Like _parse_number, truncated toward zero."""
    value = _parse_number(raw)
    return None if value is None else int(value)


def normalize_sender_volume(raw) -> int:
    """AirPlay sender volume (-144 or -30..0 dB) -> 0-100."""
    vol = _parse_number(raw)
    if vol is None:
        return 0
    if vol == AIRPLAY_MUTE:
        return 0
    # Band check on the raw value; -0.5 dB is inside the band, not 0
    if not AIRPLAY_MIN_DB < vol < AIRPLAY_MAX_DB:
        return 0
    return round((int(vol) - AIRPLAY_MIN_DB) / 0.3)


def normalize_percent_volume(raw) -> int:
    """Percentage (0-100) -> 0-100.  Only the open interval (0, 100) passes."""
    vol = _parse_int(raw)
    if vol is None or not 0 < vol < 100:
        return 0
    return vol


def clamp_volume(raw) -> int:
    """Force any stored volume onto 0-100 (unparsable values become 0)."""
    vol = _parse_int(raw)
    if vol is None:
        return 0
    return max(0, min(100, vol))


def effective_zone_volume(zone_volume, master_volume) -> int:
    """Zone volume scaled by the master volume: round(zone * master / 100)."""
    return round(clamp_volume(zone_volume) * clamp_volume(master_volume) / 100)
