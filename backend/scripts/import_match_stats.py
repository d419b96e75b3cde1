import argparse
import csv
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib import request

INT_COLUMNS = {
    "minutes_played": ["minutes_played", "minutes", "mins"],
    "goals": ["goals", "goals_scored"],
    "assists": ["assists"],
    "yellow_cards": ["yellow_cards", "yellows"],
    "red_cards": ["red_cards", "reds"],
}
FLOAT_COLUMNS = {
    "rating": ["rating"],
    "performance_score": ["performance_score", "total_points", "points"],
}
TRUTHY = {"1", "true", "yes", "y"}


@dataclass
class PlayerRef:
    player_id: int
    name: str
    team: str


def normalize(value: str) -> str:
    return " ".join((value or "").strip().lower().split())


def fetch_players(api_base: str) -> list[dict]:
    url = f"{api_base.rstrip('/')}/players"
    with request.urlopen(url) as response:
        return json.loads(response.read().decode("utf-8"))


def post_stat(api_base: str, payload: dict) -> dict:
    url = f"{api_base.rstrip('/')}/stats"
    req = request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with request.urlopen(req) as response:
        return json.loads(response.read().decode("utf-8"))


def detect_column(row: dict, candidates: Iterable[str]) -> str:
    normalized_keys = {normalize(key): key for key in row.keys()}
    for candidate in candidates:
        key = normalized_keys.get(normalize(candidate))
        if key:
            return key
    return ""


def resolve_player(
    name: str,
    team: str,
    by_name_team: dict[tuple[str, str], PlayerRef],
    by_name: dict[str, list[PlayerRef]],
) -> PlayerRef | None:
    key_name = normalize(name)
    key_team = normalize(team)

    if key_name and key_team:
        direct = by_name_team.get((key_name, key_team))
        if direct:
            return direct

    matches = by_name.get(key_name, [])
    if len(matches) == 1:
        return matches[0]

    return None


def build_payload(
    row: dict,
    columns: dict[str, str],
    player_id: int,
    season: int,
    gameweek: int,
) -> dict:
    payload: dict = {"player_id": player_id, "season": season, "gameweek": gameweek}

    for field in INT_COLUMNS:
        raw = str(row.get(columns[field], "")).strip() if columns[field] else ""
        if raw:
            payload[field] = int(float(raw))
    for field in FLOAT_COLUMNS:
        raw = str(row.get(columns[field], "")).strip() if columns[field] else ""
        if raw:
            payload[field] = float(raw)

    if columns["clean_sheet"]:
        payload["clean_sheet"] = normalize(str(row.get(columns["clean_sheet"], ""))) in TRUTHY
    if columns["opponent_team"]:
        opponent = str(row.get(columns["opponent_team"], "")).strip()
        if opponent:
            payload["opponent_team"] = opponent
    if columns["match_date"]:
        match_date = str(row.get(columns["match_date"], "")).strip()
        if match_date:
            payload["match_date"] = match_date[:10]
    return payload


def main() -> int:
    parser = argparse.ArgumentParser(description="Import per-match player stats into the /stats endpoint")
    parser.add_argument("--file", required=True, help="CSV file path")
    parser.add_argument("--api-base", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--season", type=int, default=None, help="Season override for all rows")
    parser.add_argument("--gameweek", type=int, default=None, help="Gameweek override for all rows")
    parser.add_argument("--dry-run", action="store_true", help="Validate and print without posting")
    args = parser.parse_args()

    file_path = Path(args.file)
    if not file_path.exists():
        print(f"[error] file not found: {file_path}")
        return 1

    with file_path.open("r", encoding="utf-8", newline="") as csv_file:
        rows = list(csv.DictReader(csv_file))

    if not rows:
        print("[error] CSV has no rows")
        return 1

    sample = rows[0]
    col_name = detect_column(sample, ["player_name", "name", "player"])
    col_team = detect_column(sample, ["team", "club"])
    col_season = detect_column(sample, ["season"])
    col_gameweek = detect_column(sample, ["gameweek", "gw", "round"])
    columns = {field: detect_column(sample, candidates) for field, candidates in {**INT_COLUMNS, **FLOAT_COLUMNS}.items()}
    columns["clean_sheet"] = detect_column(sample, ["clean_sheet", "cs"])
    columns["opponent_team"] = detect_column(sample, ["opponent_team", "opponent", "vs"])
    columns["match_date"] = detect_column(sample, ["match_date", "date", "kickoff"])

    if not col_name:
        print("[error] CSV must include a player name column")
        return 1

    players = fetch_players(args.api_base)
    by_name_team: dict[tuple[str, str], PlayerRef] = {}
    by_name: dict[str, list[PlayerRef]] = {}
    for player in players:
        ref = PlayerRef(
            player_id=int(player["id"]),
            name=str(player["name"]),
            team=str(player["team"]),
        )
        key_name = normalize(ref.name)
        by_name_team[(key_name, normalize(ref.team))] = ref
        by_name.setdefault(key_name, []).append(ref)

    success = 0
    skipped = 0
    failed = 0

    for idx, row in enumerate(rows, start=2):
        name = str(row.get(col_name, "")).strip()
        team = str(row.get(col_team, "")).strip() if col_team else ""
        if not name:
            skipped += 1
            continue

        try:
            season = args.season if args.season is not None else int(str(row.get(col_season, "")).strip())
            gameweek = args.gameweek if args.gameweek is not None else int(str(row.get(col_gameweek, "")).strip())
        except ValueError:
            print(f"[row {idx}] missing or invalid season/gameweek")
            failed += 1
            continue

        ref = resolve_player(name, team, by_name_team, by_name)
        if not ref:
            team_hint = f" ({team})" if team else ""
            print(f"[row {idx}] no player match for '{name}{team_hint}'")
            failed += 1
            continue

        try:
            payload = build_payload(row, columns, ref.player_id, season, gameweek)
        except ValueError as exc:
            print(f"[row {idx}] invalid value: {exc}")
            failed += 1
            continue

        if args.dry_run:
            print(f"[dry-run] row {idx}: {ref.name} ({ref.team}) -> {season} GW{gameweek}")
            success += 1
            continue

        try:
            result = post_stat(args.api_base, payload)
            success += 1
            print(f"[row {idx}] {ref.name}: {result.get('status')}")
        except OSError as exc:
            print(f"[row {idx}] post failed for {ref.name} ({ref.team}): {exc}")
            failed += 1

    print(
        f"done | posted={success} skipped={skipped} failed={failed}"
        + (" (dry-run)" if args.dry_run else "")
    )

    return 0 if failed == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
