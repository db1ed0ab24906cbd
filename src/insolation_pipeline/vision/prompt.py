"""Instruction text sent with every forecast-map image."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from ..gazetteer import CITY_PROVINCES, POLISH_WEEKDAYS, PROVINCES


def weekday_name(day: date) -> str:
    """Polish weekday name for a calendar date."""
    return POLISH_WEEKDAYS[day.weekday()]


def build_analysis_prompt(
    today: date,
    cities: Iterable[str] = CITY_PROVINCES.keys(),
    provinces: Iterable[str] = PROVINCES,
) -> str:
    """Build the extraction instructions for one PV insolation map.

    The model sees the full canonical city list so it can copy exact
    spellings, and today's date with its weekday so it can tell which of the
    three forecast days a map shows.
    """
    city_list = ", ".join(cities)
    province_list = ", ".join(provinces)
    weekdays = ", ".join(POLISH_WEEKDAYS)
    today_iso = today.isoformat()
    today_weekday = weekday_name(today)

    return f"""You are analyzing a Polish meteorological map showing photovoltaic (PV) solar energy generation capacity as percentages.

IMPORTANT TEMPORAL CONTEXT:
- The image shows the date the forecast was started and the weekday it is valid for.
- Current actual date: {today_iso} ({today_weekday})
- Polish days of week: {weekdays}
- Current reference: Year {today.year}, Month {today.month}, Day {today.day}.

The image shows:
1. A map of Poland with cities marked
2. Date and time information (the forecast date and hour)
3. Color-coded areas showing solar insolation percentages
4. City labels with PV insolation percentage
5. A legend or scale showing percentage values

Your task:
1. Extract the DATE the map is valid for.
2. Extract the HOUR the map is valid for (0-23).
3. For each of the cities below that you can identify on the map, read its insolation percentage and, if visible, its province.

Cities to look for: {city_list}

Polish provinces (voivodeships): {province_list}

DATE IDENTIFICATION:
1. Find the "Start: <date>" marking; it is the day the forecast run started (today).
2. Find the weekday name printed on the image.
3. The valid date is the start date, the start date + 1 day, or the start date + 2 days: pick the one whose weekday matches the printed weekday name.
4. If the calculated and printed weekdays disagree, trust the weekday printed on the image.
5. Cross-check against the current date {today_iso} ({today_weekday}).

RULES:
- Only include cities that are clearly visible on the map.
- Do NOT include any city whose value reads exactly 0%.
- Percentages are 0-100; 10 means the city has 10% of its potential solar generation.
- Use the exact city spelling from the list above.
- Include the province only if you can identify it; use a name from the province list.
- Date must be in YYYY-MM-DD format.
- Hour must be an integer from 0 to 23.

Report the result by calling the provided tool exactly once."""
