"""
Seed demo data: staff, a service catalog, customers and their visit history.

Each table group is only seeded while it is empty, so this is safe to run on
every release.

Usage:
  python scripts/init_db.py
"""

import os
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.salon.models import (  # noqa: E402
    Customer,
    ServiceCategory,
    ServiceImage,
    ServiceRecord,
    ServiceType,
    StaffMember,
    StaffServiceAssignment,
)
from scripts._db_utils import script_session  # noqa: E402


STAFF = [
    ("Jennifer", "Stylist"),
    ("Michael", "Stylist"),
    ("Ashley", "Colorist"),
    ("David", "Massage Therapist"),
    ("Maria", "Esthetician"),
]

# category -> [(service type, price, minutes)]
CATALOG = {
    "Hair": [
        ("Haircut", "45.00", 30),
        ("Haircut & Styling", "65.00", 45),
        ("Hair Coloring", "120.00", 120),
        ("Deep Conditioning Treatment", "40.00", 30),
        ("Scalp Treatment", "35.00", 30),
    ],
    "Skin": [
        ("Facial", "85.00", 60),
    ],
    "Nails": [
        ("Manicure", "30.00", 30),
        ("Manicure & Pedicure", "65.00", 75),
    ],
    "Body": [
        ("Massage Therapy", "95.00", 60),
    ],
}

# staff name -> service types they perform
ASSIGNMENTS = {
    "Jennifer": ["Haircut", "Haircut & Styling", "Hair Coloring", "Deep Conditioning Treatment", "Scalp Treatment"],
    "Michael": ["Haircut", "Haircut & Styling"],
    "Ashley": ["Hair Coloring"],
    "David": ["Massage Therapy"],
    "Maria": ["Facial", "Manicure", "Manicure & Pedicure"],
}

CUSTOMERS = [
    {
        "name": "Sarah Johnson",
        "phone": "(555) 123-4567",
        "birthdate": date(1985, 12, 24),
        "address": "123 Main St, Anytown, CA",
        "notes": "Prefers ammonia-free hair color. Allergic to lavender-based products.",
    },
    {
        "name": "Michael Chen",
        "phone": "(555) 987-6543",
        "birthdate": date(1990, 5, 17),
        "address": "456 Oak Ave, Baytown, NY",
        "notes": "Sensitive scalp, use gentle products.",
    },
    {
        "name": "Emily Rodriguez",
        "phone": "(555) 234-5678",
        "birthdate": date(1982, 9, 3),
        "address": "789 Pine St, Westville, FL",
        "notes": "Prefers female stylists only.",
    },
    {
        "name": "James Wilson",
        "phone": "(555) 345-6789",
        "birthdate": date(1977, 11, 29),
        "address": "321 Cedar Ln, Riverdale, TX",
        "notes": "Always on time, prefers early appointments.",
    },
    {
        "name": "Sophia Martinez",
        "phone": "(555) 456-7890",
        "birthdate": date(1995, 3, 15),
        "address": "654 Maple Rd, Lakeside, WA",
        "notes": "First-time client referred by James Wilson.",
    },
]

# (customer index, service type, staff label, date, notes)
HISTORY = [
    (0, "Hair Coloring", "Jennifer (Stylist)", date(2023, 6, 15),
     "Wella Color Touch 7/0 with 10 vol developer. Refreshed medium blonde, face-framing highlights."),
    (0, "Haircut & Styling", "Michael (Stylist)", date(2023, 5, 2), "Trim and layers, round-brush blow-dry for volume."),
    (0, "Deep Conditioning Treatment", "Jennifer (Stylist)", date(2023, 3, 18), "Kerastase nutrition mask for damaged hair."),
    (0, "Haircut & Styling", "Michael (Stylist)", date(2023, 2, 5), "Cut 2 inches, styled with beach waves."),
    (1, "Facial", "Maria (Esthetician)", date(2023, 8, 3), "Deep cleansing facial with extraction and hydration mask."),
    (1, "Haircut", "Michael (Stylist)", date(2023, 6, 20), "Modern fade with textured top."),
    (1, "Scalp Treatment", "Jennifer (Stylist)", date(2023, 4, 11), "Anti-dandruff treatment with tea tree oil."),
    (2, "Manicure & Pedicure", "Maria (Esthetician)", date(2023, 9, 22), "Gel polish on hands (Berry Bliss), regular on toes (Coral Sunset)."),
    (2, "Hair Coloring", "Ashley (Colorist)", date(2023, 8, 15), "Full highlights with balayage technique."),
    (2, "Massage Therapy", "David (Massage Therapist)", date(2023, 7, 2), "60-minute deep tissue, shoulders and back."),
    (2, "Facial", "Maria (Esthetician)", date(2023, 5, 19), "Anti-aging treatment with collagen mask."),
    (3, "Haircut & Styling", "Michael (Stylist)", date(2023, 7, 18), "Clean up sides and back, light trim on top, matte pomade."),
    (3, "Massage Therapy", "David (Massage Therapist)", date(2023, 6, 5), "30-minute neck and shoulder focus."),
    (3, "Facial", "Maria (Esthetician)", date(2023, 4, 22), "Men's cleansing facial with exfoliation."),
    (4, "Massage Therapy", "David (Massage Therapist)", date(2023, 9, 5), "90-minute full body Swedish massage."),
    (4, "Manicure", "Maria (Esthetician)", date(2023, 8, 19), "Shape, buff and clear polish with hand massage."),
]

SAMPLE_IMAGES = [
    "https://images.unsplash.com/photo-1562594980-47d4717c7c26?auto=format&fit=crop&w=200&q=80",
    "https://images.unsplash.com/photo-1605497788044-5a32c7078486?auto=format&fit=crop&w=200&q=80",
]


def seed_only(*, database_url: str | None = None) -> None:
    """Seed demo rows in an idempotent way (each group is skipped once it has data)."""
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///salon.db").strip()
    now = datetime.utcnow()

    # Use direct engine/session so this can run in release without importing app.wsgi (avoids recursion).
    with script_session(db_url) as s:
        staff_by_name: dict[str, StaffMember] = {m.name: m for m in s.query(StaffMember).all()}
        if not staff_by_name:
            for name, role in STAFF:
                m = StaffMember(name=name, role=role, created_at=now)
                s.add(m)
                staff_by_name[name] = m
            s.flush()
            print(f"Seeded {len(STAFF)} staff members.")
        else:
            print("Staff members already exist, skipping.")

        types_by_name: dict[str, ServiceType] = {t.name: t for t in s.query(ServiceType).all()}
        if not s.query(ServiceCategory).first() and not types_by_name:
            for category_name, types in CATALOG.items():
                cat = ServiceCategory(name=category_name, created_at=now)
                s.add(cat)
                s.flush()
                for type_name, price, minutes in types:
                    t = ServiceType(
                        category_id=cat.id,
                        name=type_name,
                        price=Decimal(price),
                        duration_minutes=minutes,
                        created_at=now,
                    )
                    s.add(t)
                    types_by_name[type_name] = t
            s.flush()
            print(f"Seeded {len(CATALOG)} categories, {len(types_by_name)} service types.")
        else:
            print("Service catalog already exists, skipping.")

        if not s.query(StaffServiceAssignment).first():
            added = 0
            for staff_name, type_names in ASSIGNMENTS.items():
                m = staff_by_name.get(staff_name)
                if m is None:
                    continue
                for type_name in type_names:
                    t = types_by_name.get(type_name)
                    if t is None:
                        continue
                    s.add(StaffServiceAssignment(staff_id=m.id, service_type_id=t.id, created_at=now))
                    added += 1
            print(f"Seeded {added} staff service assignments.")
        else:
            print("Staff service assignments already exist, skipping.")

        if s.query(Customer).first():
            print("Customers already exist, skipping customers and service history.")
            return

        customers: list[Customer] = []
        for row in CUSTOMERS:
            c = Customer(created_at=now, **row)
            s.add(c)
            customers.append(c)
        s.flush()

        first_service: ServiceRecord | None = None
        for idx, type_name, staff_label, day, notes in HISTORY:
            t = types_by_name.get(type_name)
            r = ServiceRecord(
                customer_id=customers[idx].id,
                service_type_id=t.id if t else None,
                service_name=type_name,
                staff_name=staff_label,
                notes=notes,
                price=t.price if t else Decimal("0.00"),
                service_date=datetime.combine(day, datetime.min.time()),
                created_at=now,
            )
            s.add(r)
            if first_service is None:
                first_service = r
        s.flush()

        if first_service is not None:
            for url in SAMPLE_IMAGES:
                s.add(ServiceImage(service_id=first_service.id, image_url=url, created_at=now))

        print(f"Seeded {len(customers)} customers, {len(HISTORY)} services, {len(SAMPLE_IMAGES)} images.")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
