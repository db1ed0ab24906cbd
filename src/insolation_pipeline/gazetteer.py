"""Closed list of recognized cities, their voivodeships, and known name variants."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

# Order matters: substring matching walks cities in this order.
CITY_PROVINCES: Mapping[str, str] = MappingProxyType(
    {
        "Warszawa": "Mazowieckie",
        "Kraków": "Małopolskie",
        "Wrocław": "Dolnośląskie",
        "Poznań": "Wielkopolskie",
        "Gdańsk": "Pomorskie",
        "Szczecin": "Zachodniopomorskie",
        "Bydgoszcz": "Kujawsko-Pomorskie",
        "Lublin": "Lubelskie",
        "Białystok": "Podlaskie",
        "Katowice": "Śląskie",
        "Częstochowa": "Śląskie",
        "Radom": "Mazowieckie",
        "Toruń": "Kujawsko-Pomorskie",
        "Kielce": "Świętokrzyskie",
        "Rzeszów": "Podkarpackie",
        "Gorzów Wielkopolski": "Lubuskie",
        "Opole": "Opolskie",
        "Olsztyn": "Warmińsko-Mazurskie",
        "Zielona Góra": "Lubuskie",
        "Łódź": "Łódzkie",
    }
)

PROVINCES: tuple[str, ...] = (
    "Dolnośląskie",
    "Kujawsko-Pomorskie",
    "Lubelskie",
    "Lubuskie",
    "Łódzkie",
    "Małopolskie",
    "Mazowieckie",
    "Opolskie",
    "Podkarpackie",
    "Podlaskie",
    "Pomorskie",
    "Śląskie",
    "Świętokrzyskie",
    "Warmińsko-Mazurskie",
    "Wielkopolskie",
    "Zachodniopomorskie",
)

# Misspellings, abbreviations and diacritic-free spellings the vision model
# produces. Keys are lowercase; lookups are case-insensitive.
CITY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "gorzów": "Gorzów Wielkopolski",
        "gorzow": "Gorzów Wielkopolski",
        "gorzów wlkp.": "Gorzów Wielkopolski",
        "gorzow wlkp.": "Gorzów Wielkopolski",
        "gorzow wielkopolski": "Gorzów Wielkopolski",
        "zielona g.": "Zielona Góra",
        "zielona gora": "Zielona Góra",
        "krakow": "Kraków",
        "cracow": "Kraków",
        "warsaw": "Warszawa",
        "wroclaw": "Wrocław",
        "poznan": "Poznań",
        "gdansk": "Gdańsk",
        "bialystok": "Białystok",
        "czestochowa": "Częstochowa",
        "torun": "Toruń",
        "rzeszow": "Rzeszów",
        "lodz": "Łódź",
    }
)

POLISH_WEEKDAYS: tuple[str, ...] = (
    "poniedziałek",
    "wtorek",
    "środa",
    "czwartek",
    "piątek",
    "sobota",
    "niedziela",
)

_PROVINCE_PREFIXES = ("województwo ", "woj. ", "woj ")


def province_for_city(city: str) -> str | None:
    """Return the canonical voivodeship for a canonical city name."""
    return CITY_PROVINCES.get(city)


def canonical_province(name: str | None) -> str | None:
    """Resolve a free-text voivodeship name to its canonical spelling.

    Accepts any casing and an optional "województwo"/"woj." prefix. Returns
    None when the text is not one of the sixteen voivodeships.
    """
    if not name:
        return None
    candidate = name.strip().lower()
    for prefix in _PROVINCE_PREFIXES:
        if candidate.startswith(prefix):
            candidate = candidate[len(prefix):].strip()
            break
    for province in PROVINCES:
        if province.lower() == candidate:
            return province
    return None
