"""Weather from Open-Meteo: geocode the place, then current conditions and
a 7-day forecast.

Handles:
    "weather in Denver"
    "what's the temperature in London"
    "what's it like in Tokyo"
    "show me the weather"     -> asks where
"""

import re

from vibedash.results import (
    BAD_PAYLOAD, NOT_FOUND, Clarification, Error, Option, Success, WidgetDescriptor,
)
from vibedash.sources.http import FetchError, fetch_json

_GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

REFRESH_MS = 300_000

_WEATHER_WORDS = re.compile(
    r"\b(weather|temperature|temp|forecast|rain|raining|snow|snowing|sunny|cloudy|"
    r"humid|humidity|wind|windy|storm|thunderstorm|hail|fog|outside|hot|cold|warm|freezing)\b")
_LIKE = re.compile(r"\blike\b")
_IN_PLACE = re.compile(r"\bin\s+([a-z][a-z\s,.']+)", re.IGNORECASE)

# WMO weather codes to descriptions
_WMO_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def _describe_weather_code(code):
    return _WMO_CODES.get(code, "Unknown")


def _f_to_c(f):
    return round((f - 32) * 5 / 9)


def _place_name(place):
    """"New York, New York, United States" -> "New York, United States"."""
    parts = []
    for part in (place.get("name"), place.get("admin1"), place.get("country")):
        if part and part not in parts:
            parts.append(part)
    return ", ".join(parts)


class WeatherSource:
    id = "weather"

    def match(self, intent):
        text = f"{intent.subject} {intent.raw}".lower()
        if _WEATHER_WORDS.search(text):
            return 0.9 if intent.params.location else 0.7
        # "what's it like in Denver"
        if intent.params.location and _LIKE.search(text):
            return 0.6
        return 0.0

    async def resolve(self, intent):
        location = intent.params.location
        if not location:
            m = _IN_PLACE.search(intent.subject)
            location = m.group(1).strip() if m else None
        if not location:
            return Clarification(
                question="What location do you want weather for?",
                options=[
                    Option("Denver", "Denver"),
                    Option("Colorado Springs", "Colorado Springs"),
                    Option("New York", "New York"),
                    Option("London", "London"),
                ],
                source=self.id,
                context={"parameter_key": "location"},
            )

        try:
            geo = await fetch_json(_GEOCODE_URL, self.id, f'location "{location}"', params={
                "name": location, "count": 1, "language": "en", "format": "json",
            })
            results = geo.get("results") if isinstance(geo, dict) else None
            if not results:
                return Error(
                    message=f'Couldn\'t find a location called "{location}". Try being more specific.',
                    retryable=False, code=NOT_FOUND, source=self.id)
            place = results[0]
            name = _place_name(place)

            weather = await fetch_json(_FORECAST_URL, self.id, f"weather for {name}", params={
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current": "temperature_2m,relative_humidity_2m,weather_code,"
                           "wind_speed_10m,apparent_temperature",
                "daily": "temperature_2m_max,temperature_2m_min,weather_code,"
                         "precipitation_probability_max",
                "temperature_unit": "fahrenheit",
                "wind_speed_unit": "mph",
                "timezone": "auto",
                "forecast_days": 7,
            })
        except FetchError as e:
            return e.error

        try:
            data = _summarize(name, weather["current"], weather["daily"])
        except (KeyError, TypeError, IndexError) as e:
            return Error(message=f"Invalid weather data for {name}: {e}",
                         retryable=True, code=BAD_PAYLOAD, source=self.id)

        return Success(WidgetDescriptor(
            source_id=self.id,
            title=f"Weather — {name}",
            size=intent.params.size or "medium",
            refresh_interval_ms=REFRESH_MS,
            data=data,
            render={"type": "weather-card", "config": {"location": name, "units": "imperial"}},
            resolved_intent=intent,
        ))


def _summarize(name, current, daily):
    precip = daily.get("precipitation_probability_max") or []
    forecast = []
    for i, date in enumerate(daily["time"]):
        code = daily["weather_code"][i]
        forecast.append({
            "date": date,
            "high": daily["temperature_2m_max"][i],
            "low": daily["temperature_2m_min"][i],
            "code": code,
            "condition": _describe_weather_code(code),
            "precip_chance": precip[i] if i < len(precip) else None,
        })
    temp = current["temperature_2m"]
    return {
        "location": name,
        "temp_f": temp,
        "temp_c": _f_to_c(temp),
        "feels_like_f": current.get("apparent_temperature"),
        "condition": _describe_weather_code(current.get("weather_code")),
        "humidity": current.get("relative_humidity_2m"),
        "wind_speed": current.get("wind_speed_10m"),
        "forecast": forecast,
    }
