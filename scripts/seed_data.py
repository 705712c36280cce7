"""
Seed script: populate a demo workshop with reference data.

What it creates:
- Admin account + one machine operator (CNC and LASER).
- Default machine pricing (CNC, LASER, CHAMPS, PANNEAUX).
- Fixed services: design, finition, installation, livraison.
- Materials for laser cutting.
- Clients (N) and, optionally, demo devis mixing DRAFT / VALIDATED / INVOICED.

Run inside the API container to use 'postgres' host and project PYTHONPATH:
    docker compose exec api python scripts/seed_data.py \
        --admin-username admin \
        --admin-password Atelier!2025 \
        --clients 25 --devis 40

Note: This is intended for development environments only.
"""

# Add project root (/code) to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
from decimal import Decimal

from app.database.database import SessionLocal, engine, Base
from app.common.exceptions import AppError
from app.modules.auth.models import User, UserMachine, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import hash_password
from app.modules.clients.models import Client
from app.modules.devis.schemas import DevisCreate, DevisLineCreate, DevisServiceCreate
from app.modules.devis.service import DevisService
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType, Material, FixedService
from app.modules.machines.service import MachinePricingService

# Register every table on Base.metadata
import app.common.sequences  # noqa: F401
import app.modules.expenses.models  # noqa: F401
import app.modules.notifications.models  # noqa: F401


FIXED_SERVICES = [
    ("Design", Decimal("50.00"), "Conception et plans"),
    ("Finition", Decimal("100.00"), "Ponçage, vernis, peinture"),
    ("Installation", Decimal("150.00"), "Pose sur site"),
    ("Livraison", Decimal("30.00"), "Grand Tunis"),
]

MATERIALS = [
    ("MDF 3mm", Decimal("18.00"), "plaque"),
    ("MDF 18mm", Decimal("35.00"), "plaque"),
    ("Contreplaqué 5mm", Decimal("28.50"), "plaque"),
    ("Plexiglas 3mm", Decimal("48.00"), "plaque"),
]

CLIENT_NAMES = [
    "Menuiserie", "Déco", "Cuisines", "Agencement", "Enseignes", "Meubles", "Stand", "Boutique",
]
CITIES = ["Tunis", "Sfax", "Sousse", "Nabeul", "Bizerte", "Monastir", "Ariana", "Gabès"]


def pick(seq):
    return random.choice(seq)


def create_user(db, username: str, password: str, role: UserRole, machines=(), first_name="Admin", last_name="Atelier"):
    user = db.query(User).filter(User.username == username).first()
    if user:
        return user
    user = User(
        username=username,
        password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        allowed_machines=[UserMachine(machine=m) for m in machines],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_fixed_services(db):
    services = []
    for name, price, description in FIXED_SERVICES:
        service = db.query(FixedService).filter(FixedService.name == name).first()
        if not service:
            service = FixedService(name=name, price=price, description=description)
            db.add(service)
        services.append(service)
    db.commit()
    return services


def create_materials(db):
    materials = []
    for name, price, unit in MATERIALS:
        material = db.query(Material).filter(Material.name == name).first()
        if not material:
            material = Material(name=name, price_per_unit=price, unit=unit)
            db.add(material)
        materials.append(material)
    db.commit()
    return materials


def create_clients(db, count: int):
    clients = []
    for i in range(count):
        name = f"{pick(CLIENT_NAMES)} {pick(CITIES)} {i + 1:02d}"
        client = Client(
            name=name,
            phone=f"+216{pick('2579')}{random.randint(1000000, 9999999)}",
            address=f"{random.randint(1, 120)} avenue Habib Bourguiba, {pick(CITIES)}",
        )
        db.add(client)
        clients.append(client)
    db.commit()
    return clients


def random_line(materials):
    machine = pick(list(MachineType))
    if machine in (MachineType.CNC, MachineType.LASER):
        line = DevisLineCreate(machine_type=machine, minutes=Decimal(random.randint(5, 180)))
        if machine == MachineType.LASER and random.random() < 0.6:
            line.material_id = pick(materials).id
        return line
    if machine == MachineType.CHAMPS:
        return DevisLineCreate(machine_type=machine, meters=Decimal(random.randint(2, 60)))
    return DevisLineCreate(machine_type=machine, quantity=Decimal(random.randint(1, 12)))


def create_devis(db, admin, clients, services, materials, count: int):
    auth = AuthContext(user_id=admin.id, username=admin.username, role=admin.role, allowed_machines=[])
    devis_service = DevisService(db)
    invoice_service = InvoiceService(db)
    created = 0
    for _ in range(count):
        try:
            devis = devis_service.create(DevisCreate(client_id=pick(clients).id), auth)
            for _ in range(random.randint(1, 4)):
                devis_service.add_line(devis.id, random_line(materials), auth)
            for service in random.sample(services, random.randint(0, 2)):
                devis_service.add_service(devis.id, DevisServiceCreate(service_id=service.id), auth)

            roll = random.random()
            if roll < 0.6:
                devis_service.validate(devis.id, auth)
                if roll < 0.3:
                    invoice_service.create_from_devis([devis.id], auth)
            created += 1
        except AppError as e:
            print(f"  Skipped devis: {e.message}")
            continue
        if created % 10 == 0:
            print(f"  Devis created: {created}")
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed workshop demo data")
    parser.add_argument("--admin-username", default="admin")
    parser.add_argument("--admin-password", default="Atelier!2025")
    parser.add_argument("--employee-username", default="operateur")
    parser.add_argument("--employee-password", default="Operateur!2025")
    parser.add_argument("--clients", type=int, default=25)
    parser.add_argument("--devis", type=int, default=0)
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        admin = create_user(db, args.admin_username, args.admin_password, UserRole.ADMIN)
        create_user(
            db, args.employee_username, args.employee_password, UserRole.EMPLOYEE,
            machines=[MachineType.CNC, MachineType.LASER], first_name="Opérateur", last_name="Machine"
        )

        print("Creating machine pricing...")
        pricing = MachinePricingService(db).initialize_default_pricing()
        for p in pricing:
            print(f"  {p.machine_type.value}: {p.price_per_unit} ({p.description})")

        services = create_fixed_services(db)
        materials = create_materials(db)
        print(f"Fixed services: {len(services)}, Materials: {len(materials)}")

        print("Creating clients...")
        clients = create_clients(db, args.clients)
        print(f"Clients created: {len(clients)}")

        if args.devis and clients:
            print("Creating demo devis...")
            devis_created = create_devis(db, admin, clients, services, materials, args.devis)
            print(f"Devis created: {devis_created}")

        print("\nSeed completed.")
        print("Login credentials:")
        print(f"  Admin:    {args.admin_username} / {args.admin_password}")
        print(f"  Employee: {args.employee_username} / {args.employee_password}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
