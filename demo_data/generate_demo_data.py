"""
Generate realistic demo data for the Fleet Revenue Split dashboard.
Creates a quarter of trip-earnings exports for a small managed fleet:
4 owners, 6 vehicles, line items that add up to Total earnings, and a
handful of cancellations.

Run:  python generate_demo_data.py
"""

import csv
import os
import random
from datetime import datetime, timedelta

# Seed for reproducibility
random.seed(42)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ---------------------------------------------------------------------------
# Fleet: clean vehicle name plus the listing title the marketplace shows
# ---------------------------------------------------------------------------
FLEET = [
    {"vehicle": "Toyota Sienna 2024",           "listing": "Alice Smith's Toyota Sienna 2024",         "daily": (95, 140)},
    {"vehicle": "Tesla Model 3 2023",           "listing": "Carla D. Tesla Model 3 2023",              "daily": (70, 110)},
    {"vehicle": "Tesla Model Y 2024",           "listing": "Carla D. Tesla Model Y 2024",              "daily": (85, 125)},
    {"vehicle": "Mercedes-Benz GLB-Class 2021", "listing": "Bob Jones's Mercedes-Benz GLB Class 2021", "daily": (110, 170)},
    {"vehicle": "Jeep Wrangler 2022",           "listing": "Dev Patel - Jeep Wrangler 2022",           "daily": (90, 150)},
    {"vehicle": "Honda Odyssey 2023",           "listing": "Honda Odyssey 2023",                       "daily": (80, 120)},
]

GUESTS = [
    "Dan Lee", "Eve Park", "Frank Wu", "Grace Kim", "Hank Moore", "Ivy Chen",
    "Jack Ross", "Kim Lo", "Leo Diaz", "Mia Chan", "Noah Reyes", "Olga Ivanova",
]

STATUSES = [("Completed", 90), ("Guest cancelled", 6), ("Host cancelled", 4)]

# Optional line items: (column, probability, amount range)
EXTRA_ITEMS = [
    ("Delivery",        0.30, (15.0, 60.0)),
    ("Excess distance", 0.15, (5.0, 45.0)),
    ("Cleaning",        0.25, (20.0, 40.0)),
    ("Tolls & tickets", 0.20, (2.0, 18.0)),
    ("Extras",          0.20, (10.0, 50.0)),
]

HEADERS = [
    "Reservation ID", "Guest", "Vehicle name", "Listing title", "Trip start", "Trip end",
    "Trip status", "Trip price", "1-week discount", "Delivery", "Excess distance",
    "Cleaning", "Tolls & tickets", "Extras", "Total earnings",
]


def _money(amount):
    if amount < 0:
        return f"(${-amount:,.2f})"
    return f"${amount:,.2f}"


def _pick_status():
    names, weights = zip(*STATUSES)
    return random.choices(names, weights=weights, k=1)[0]


def _trip_row(res_id, car, start):
    days = random.choice([1, 2, 2, 3, 3, 4, 5, 7, 8])
    end = start + timedelta(days=days)
    status = _pick_status()

    row = {h: "" for h in HEADERS}
    row.update({
        "Reservation ID": res_id,
        "Guest": random.choice(GUESTS),
        "Vehicle name": car["vehicle"],
        "Listing title": car["listing"],
        "Trip start": start.strftime("%Y-%m-%d %I:%M %p"),
        "Trip end": end.strftime("%Y-%m-%d %I:%M %p"),
        "Trip status": status,
    })

    if "cancel" in status.lower():
        # Only a cancellation fee reaches the host
        price = round(random.uniform(25.0, 60.0), 2)
        row["Trip price"] = _money(price)
        row["Total earnings"] = _money(price)
        return row, end

    price = round(days * random.uniform(*car["daily"]), 2)
    total = price
    row["Trip price"] = _money(price)
    if days >= 7:
        discount = -round(price * 0.10, 2)
        row["1-week discount"] = _money(discount)
        total += discount
    for column, prob, (lo, hi) in EXTRA_ITEMS:
        if random.random() < prob:
            amount = round(random.uniform(lo, hi), 2)
            row[column] = _money(amount)
            total += amount
    row["Total earnings"] = _money(round(total, 2))
    return row, end


# ---------------------------------------------------------------------------
# Trip export: one CSV per month, Jan-Mar 2025
# ---------------------------------------------------------------------------
def generate_trips():
    months = [(1, "trip_earnings_2025_01.csv"),
              (2, "trip_earnings_2025_02.csv"),
              (3, "trip_earnings_2025_03.csv")]

    folder = os.path.join(BASE_DIR, "trip_exports")
    os.makedirs(folder, exist_ok=True)

    res_no = 50001
    for month, filename in months:
        rows = []
        for car in FLEET:
            cursor = datetime(2025, month, 1, random.choice([8, 9, 10, 11]))
            while cursor.month == month:
                cursor += timedelta(days=random.randint(0, 3))
                if cursor.month != month:
                    break
                row, end = _trip_row(f"R{res_no}", car, cursor)
                res_no += 1
                rows.append(row)
                cursor = end + timedelta(hours=random.choice([4, 20, 28]))

        # A row with a broken date, the way exports occasionally arrive
        if month == 2:
            bad, _ = _trip_row(f"R{res_no}", FLEET[0], datetime(2025, 2, 14, 10))
            bad["Trip start"] = "not a date"
            rows.append(bad)
            res_no += 1

        random.shuffle(rows)
        path = os.path.join(folder, filename)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=HEADERS)
            w.writeheader()
            w.writerows(rows)
        print(f"  [TRIPS] {filename}: {len(rows)} rows")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    print("Generating demo data for Fleet Revenue Split...\n")
    generate_trips()

    total_files = 0
    for root, dirs, files in os.walk(BASE_DIR):
        for f in files:
            if f.endswith('.csv'):
                total_files += 1

    print(f"\nDone! {total_files} files created in {BASE_DIR}")
    print("\nTo demo:")
    print("  1. Summarise a month:  python ingest.py demo_data/trip_exports/trip_earnings_2025_01.csv")
    print("  2. Or run the API:     python app.py  and POST a file to /api/parse")
    print("  3. The 'Honda Odyssey 2023' listing has no owner in it and is reported as unknown")
