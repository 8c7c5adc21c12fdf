# inspect_db.py
from __future__ import annotations

import argparse
import json
from datetime import date as _date, datetime as _dt
from typing import Optional

from sqlalchemy import and_

from models import SessionLocal, Event, RecurringClass, init_db
from scheduler.recurrence import day_name


def parse_date(s: Optional[str]) -> Optional[str]:
    if not s:
        return None
    # Accept YYYY-MM-DD, MM/DD, MM-DD
    for fmt in ("%Y-%m-%d", "%m/%d", "%m-%d"):
        try:
            dt = _dt.strptime(s, fmt)
            # If year missing, assume current year
            year = dt.year if fmt == "%Y-%m-%d" else _date.today().year
            return _date(year, dt.month, dt.day).isoformat()
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"Invalid date: {s}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Print stored events (and weekly classes) with optional chat/date filters."
    )
    parser.add_argument("--chat", help="Only rows for this chat id")
    parser.add_argument("--from", dest="start", type=parse_date, help="Start date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--to", dest="end", type=parse_date, help="End date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--limit", type=int, default=200, help="Max rows (default 200)")
    parser.add_argument("--classes", action="store_true", help="List weekly classes instead of events")
    parser.add_argument("--json", action="store_true", help="Print rows as JSON")
    args = parser.parse_args(argv)

    init_db()
    db = SessionLocal()
    try:
        if args.classes:
            q = db.query(RecurringClass)
            if args.chat:
                q = q.filter(RecurringClass.chat_id == args.chat)
            rows = q.order_by(RecurringClass.day_of_week, RecurringClass.start_time).limit(args.limit).all()
            if args.json:
                print(json.dumps([c.to_dict() for c in rows], indent=2, ensure_ascii=False))
                return
            if not rows:
                print("No classes found.")
                return
            print(f"{'ID':>3}  {'CHAT':<12}  {'DAY':<9}  {'START–END':<11}  SUBJECT")
            print("-" * 70)
            for c in rows:
                print(f"{c.id:>3}  {c.chat_id:<12}  {day_name(c.day_of_week):<9}  {c.start_time}–{c.end_time}  {c.subject}")
            print("-" * 70)
            print(f"{len(rows)} row(s).")
            return

        q = db.query(Event)
        if args.chat:
            q = q.filter(Event.chat_id == args.chat)
        if args.start and args.end:
            q = q.filter(and_(Event.date >= args.start, Event.date <= args.end))
        elif args.start:
            q = q.filter(Event.date >= args.start)
        elif args.end:
            q = q.filter(Event.date <= args.end)

        rows = q.order_by(Event.date, Event.start_time).limit(args.limit).all()
        if args.json:
            print(json.dumps([e.to_dict() for e in rows], indent=2, ensure_ascii=False))
            return

        if not rows:
            rng = ""
            if args.start or args.end:
                rng = f" in range [{args.start or '-∞'} .. {args.end or '+∞'}]"
            print(f"No events found{rng}.")
            return

        # Pretty print
        print(f"{'ID':>3}  {'CHAT':<12}  {'DATE':<10}  {'START–END':<11}  {'TYPE':<8}  TASK")
        print("-" * 80)
        for e in rows:
            if e.start_time:
                when = f"{e.start_time}–{e.end_time}" if e.end_time else e.start_time
            else:
                when = "all day"
            print(f"{e.id:>3}  {e.chat_id:<12}  {e.date:<10}  {when:<11}  {(e.type or '-'):<8}  {e.task}")

        print("-" * 80)
        print(f"{len(rows)} row(s).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
