"""
Offline console demo: matches canned guardian preferences against the
sample availability dataset without any API keys.

Uses the real repository, matching engine and formatter. No LLM and no
network calls; the "interpreted" preferences are pre-scripted.

Usage:
    python console_demo.py
    python console_demo.py --scenario weekend-mornings
    python console_demo.py --csv data/clinician_availabilities.csv --timezone America/New_York
"""

import argparse
import json
from datetime import datetime
from typing import Any, Optional

from intake_scheduling.config import settings
from intake_scheduling.handlers import SchedulingService
from intake_scheduling.tools.availability import AvailabilityRepository, CsvAvailabilitySource
from intake_scheduling.tools.rate_limiter import FixedWindowRateLimiter

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

# Sample data rows fall in the weeks after this anchor
DEFAULT_ANCHOR = "2025-10-13T12:00:00+00:00"

SCENARIOS: dict[str, dict[str, Any]] = {
    "weekday-evenings": {
        "daysOfWeek": [1, 2, 3, 4, 5],
        "timeRanges": [{"start": "17:00", "end": "23:59", "timezone": "America/Los_Angeles"}],
        "dateConstraints": None,
        "specificDates": [],
        "recurringPattern": "weekdays",
    },
    "weekend-mornings": {
        "daysOfWeek": [0, 6],
        "timeRanges": [{"start": "06:00", "end": "12:00", "timezone": "America/Los_Angeles"}],
        "dateConstraints": None,
        "specificDates": [],
        "recurringPattern": "weekends",
    },
    "next-week-afternoons": {
        "daysOfWeek": [],
        "timeRanges": [{"start": "14:00", "end": "23:59", "timezone": "America/Los_Angeles"}],
        "dateConstraints": {"startDate": "2025-10-20", "endDate": "2025-10-26", "relative": "next_week"},
        "specificDates": [],
        "recurringPattern": "none",
    },
    "specific-dates": {
        "daysOfWeek": [],
        "timeRanges": [],
        "dateConstraints": None,
        "specificDates": ["2025-10-15", "2025-10-21"],
        "recurringPattern": "none",
    },
}


class ConsoleSession:
    """Runs match requests against a local CSV and prints the results."""

    def __init__(self, csv_path: str, display_timezone: Optional[str], anchor: datetime) -> None:
        repository = AvailabilityRepository(
            CsvAvailabilitySource(csv_path),
            fallback_timezone=settings.matching.fallback_timezone,
        )
        self.service = SchedulingService(
            repository,
            interpreter=None,
            rate_limiter=FixedWindowRateLimiter(max_requests=1000),
            clock=lambda: anchor,
        )
        self.display_timezone = display_timezone

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def run_scenario(self, name: str) -> None:
        print(f"\n{BLUE}{BOLD}Scenario: {name}{RESET}")
        self.match(SCENARIOS[name])

    def match(self, preferences: dict[str, Any]) -> None:
        body: dict[str, Any] = {
            "interpretedPreferences": preferences,
            "organizationId": settings.matching.organization_id,
        }
        if self.display_timezone:
            body["displayTimezone"] = self.display_timezone

        self.system_log(f"preferences: {json.dumps(preferences)}")
        result = self.service.match_availability(body, client_ip="console")
        meta = self.service.repository.metadata()
        self.system_log(f"records loaded: {meta['record_count']} (rejected {meta['rejected']})")

        if not result.ok:
            print(f"{RED}{result.body['code']}: {result.body['error']}{RESET}")
            return
        slots = result.body["matchedSlots"]
        if not slots:
            print(f"{YELLOW}No matching availability found.{RESET}")
            return
        print(f"{GREEN}{len(slots)} slot(s) found:{RESET}")
        for slot in slots:
            print(
                f"  {GREEN}{slot['displayText']}{RESET} "
                f"{DIM}[clinician {slot['ownerId']}, availability {slot['availabilityId']}]{RESET}"
            )

    def run(self) -> None:
        print(f"{BOLD}Intake scheduling console demo{RESET}")
        print(f"Scenarios: {', '.join(SCENARIOS)}")
        print("Enter a scenario name, a preference JSON object, or 'quit'.\n")
        while True:
            try:
                text = input(f"{BLUE}> {RESET}").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not text:
                continue
            if text.lower() in ("quit", "exit"):
                break
            if text in SCENARIOS:
                self.run_scenario(text)
                continue
            try:
                preferences = json.loads(text)
            except json.JSONDecodeError:
                print(f"{RED}Unknown scenario and not valid JSON.{RESET}")
                continue
            self.match(preferences)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline availability matching demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default=None,
        help="Run one pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument("--csv", default=settings.data.availability_csv_path)
    parser.add_argument("--timezone", default=None, help="Display timezone for results")
    parser.add_argument("--now", default=DEFAULT_ANCHOR, help="Horizon anchor (ISO-8601 with offset)")
    args = parser.parse_args()

    anchor = datetime.fromisoformat(args.now)
    if anchor.tzinfo is None:
        parser.error("--now must include a UTC offset")

    session = ConsoleSession(args.csv, args.timezone, anchor)
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
