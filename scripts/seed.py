"""
Database Seed Script
Creates pet-care demo data for PetSync

Run with: python -m scripts.seed
"""

import asyncio
import random
from datetime import date, datetime, timedelta, timezone
from motor.motor_asyncio import AsyncIOMotorClient

from app.config import get_settings
from app.models.appointment import Appointment, AppointmentStatus, ServiceSnapshot, add_minutes
from app.models.business import Business, BusinessPlan, Subscription
from app.models.business_category import BusinessCategory
from app.models.common import Address
from app.models.pet import MedicalInfo, Pet, PetGender, Species, Vaccination, Weight
from app.models.service import Service, ServiceCategory, ServiceDuration, ServicePricing, PriceType, PriceVariation
from app.models.user import User, UserRole
from app.utils.permissions import default_permissions
from app.utils.security import get_password_hash

settings = get_settings()

DEMO_PASSWORD = "demo12345"

FIRST_NAMES = [
    "Aarav", "Diya", "Kabir", "Meera", "Rohan", "Ananya", "Vikram", "Isha",
    "Arjun", "Priya", "Sara", "Neil", "Tara", "Dev", "Nisha", "Kiran"
]

LAST_NAMES = [
    "Sharma", "Patel", "Iyer", "Reddy", "Khan", "Menon", "Gupta", "Nair",
    "Das", "Kapoor", "Rao", "Joshi"
]

DOG_BREEDS = ["Labrador Retriever", "Golden Retriever", "Beagle", "Indie", "Pug", "Shih Tzu", "German Shepherd"]
CAT_BREEDS = ["Persian", "Siamese", "Maine Coon", "Indian Domestic", "Bengal"]
PET_NAMES = ["Bruno", "Coco", "Milo", "Luna", "Simba", "Bella", "Oreo", "Rocky", "Kitty", "Tiger", "Max", "Leo"]

BUSINESSES = [
    {
        "name": "Happy Paws Grooming",
        "category": "grooming",
        "email": "hello@happypaws.example.com",
        "phone": "9800011111",
        "address": {"street": "12 MG Road", "city": "Bengaluru", "state": "KA", "zip_code": "560001", "country": "IN"},
    },
    {
        "name": "CarePoint Veterinary Clinic",
        "category": "veterinary",
        "email": "desk@carepoint.example.com",
        "phone": "9800022222",
        "address": {"street": "4 Linking Road", "city": "Mumbai", "state": "MH", "zip_code": "400050", "country": "IN"},
    },
]

CATEGORIES = [
    ("Grooming", "grooming", "Baths, haircuts and nail care", "ScissorsIcon", "#EC4899"),
    ("Veterinary Clinic", "veterinary", "Checkups, vaccinations and treatment", "HeartIcon", "#10B981"),
    ("Boarding & Daycare", "boarding-daycare", "Overnight stays and day care", "HomeIcon", "#F59E0B"),
    ("Training", "training", "Obedience and behaviour training", "AcademicCapIcon", "#6366F1"),
]

SERVICES = {
    "grooming": [
        ("Full Groom", ServiceCategory.GROOMING, 1500, 90, [("Small dog", 1200), ("Large dog", 2000)]),
        ("Bath & Brush", ServiceCategory.BATHING, 800, 45, []),
        ("Nail Trim", ServiceCategory.NAIL_TRIMMING, 300, 15, []),
    ],
    "veterinary": [
        ("General Checkup", ServiceCategory.VETERINARY, 700, 30, []),
        ("Vaccination Visit", ServiceCategory.VETERINARY, 1000, 20, []),
        ("Dental Cleaning", ServiceCategory.DENTAL, 3500, 60, []),
    ],
}


def random_person() -> tuple[str, str]:
    return random.choice(FIRST_NAMES), random.choice(LAST_NAMES)


def make_user(role: UserRole, email: str, first_name: str, last_name: str, **extra) -> User:
    extra.setdefault("permissions", default_permissions(role))
    return User(
        email=email,
        password_hash=get_password_hash(DEMO_PASSWORD),
        role=role,
        first_name=first_name,
        last_name=last_name,
        email_verified=True,
        **extra
    )


async def seed_database():
    """Main seed function"""
    print("🌱 Starting database seed...")

    client = AsyncIOMotorClient(settings.MONGO_URL)
    db = client[settings.DB_NAME]

    print("  Clearing existing data...")
    for collection in ["users", "businesses", "pets", "services", "appointments",
                       "invoices", "otps", "audit_logs", "counters",
                       "business_categories", "inquiries"]:
        await db[collection].delete_many({})

    print("  Creating platform admin...")
    admin = make_user(UserRole.SUPER_ADMIN, "admin@petsync.example.com", "Platform", "Admin")
    await db.users.insert_one(admin.to_mongo())
    users = [admin]

    print("  Creating business categories...")
    categories = await create_categories(db, admin)

    print("  Creating businesses...")
    businesses = await create_businesses(db, users, categories)

    print("  Creating services and staff...")
    services = await create_services(db, businesses)
    staff = await create_staff(db, businesses, users)

    print("  Creating clients and pets...")
    clients, pets = await create_clients(db, businesses, users)

    print("  Creating appointments...")
    appointments = await create_appointments(db, businesses, clients, pets, services, staff)

    print("\n✅ Seed complete!")
    print(f"   - {len(businesses)} businesses")
    print(f"   - {len(users)} users")
    print(f"   - {sum(len(s) for s in services.values())} services")
    print(f"   - {len(pets)} pets")
    print(f"   - {len(appointments)} appointments")

    print("\n📧 Demo login credentials:")
    for user in users:
        if user.role != UserRole.CLIENT:
            print(f"   {user.email} / {DEMO_PASSWORD} ({user.role.value})")

    client.close()


async def create_categories(db, admin: User) -> dict[str, BusinessCategory]:
    categories = {
        slug: BusinessCategory(
            name=name, slug=slug, description=description, icon=icon, color=color,
            display_order=i, created_by=admin.user_id
        )
        for i, (name, slug, description, icon, color) in enumerate(CATEGORIES)
    }
    await db.business_categories.insert_many([c.to_mongo() for c in categories.values()])
    return categories


async def create_businesses(db, users: list, categories: dict[str, BusinessCategory]) -> list[Business]:
    """One business admin per demo business"""
    businesses = []
    for i, data in enumerate(BUSINESSES, start=1):
        owner = make_user(UserRole.BUSINESS_ADMIN, f"owner{i}@petsync.example.com", *random_person())
        business = Business(
            owner_id=owner.user_id,
            name=data["name"],
            category_id=categories[data["category"]].category_id,
            email=data["email"],
            phone=data["phone"],
            address=Address(**data["address"]),
            subscription=Subscription.start(BusinessPlan.PREMIUM),
            created_at=datetime.now(timezone.utc) - timedelta(days=180)
        )
        owner.business_ids = [business.business_id]
        await db.users.insert_one(owner.to_mongo())
        users.append(owner)
        businesses.append(business)

    await db.businesses.insert_many([b.to_mongo() for b in businesses])
    return businesses


async def create_services(db, businesses: list[Business]) -> dict[str, list[Service]]:
    services = {}
    for business, data in zip(businesses, BUSINESSES):
        services[business.business_id] = [
            Service(
                business_id=business.business_id,
                name=name,
                category=category,
                pricing=ServicePricing(
                    base_price=price,
                    currency="INR",
                    price_type=PriceType.VARIABLE if variations else PriceType.FIXED,
                    variations=[PriceVariation(name=n, price=p) for n, p in variations]
                ),
                duration=ServiceDuration(estimated_minutes=minutes, buffer_minutes=15)
            )
            for name, category, price, minutes, variations in SERVICES[data["category"]]
        ]
        await db.services.insert_many([s.to_mongo() for s in services[business.business_id]])
    return services


async def create_staff(db, businesses: list[Business], users: list) -> dict[str, list[User]]:
    staff = {}
    for business, data in zip(businesses, BUSINESSES):
        members = []
        for j in range(2):
            member = make_user(
                UserRole.STAFF,
                f"staff{j + 1}.{business.business_id[-4:]}@petsync.example.com",
                *random_person(),
                business_ids=[business.business_id],
                specializations=[data["category"]]
            )
            members.append(member)
        await db.users.insert_many([m.to_mongo() for m in members])
        await db.businesses.update_one(
            {"business_id": business.business_id},
            {"$set": {"staff_ids": [m.user_id for m in members]}}
        )
        await db.services.update_many(
            {"business_id": business.business_id},
            {"$set": {"staff_ids": [m.user_id for m in members]}}
        )
        users.extend(members)
        staff[business.business_id] = members
    return staff


def random_pet(owner: User, business_id: str) -> Pet:
    species = random.choice([Species.DOG, Species.DOG, Species.CAT])
    birth = date.today() - timedelta(days=random.randint(120, 12 * 365))
    vaccinated_on = date.today() - timedelta(days=random.randint(30, 360))
    return Pet(
        owner_id=owner.user_id,
        business_ids=[business_id],
        name=random.choice(PET_NAMES),
        species=species,
        breed=random.choice(DOG_BREEDS if species == Species.DOG else CAT_BREEDS),
        gender=random.choice([PetGender.MALE, PetGender.FEMALE]),
        date_of_birth=birth,
        weight=Weight(value=round(random.uniform(3, 35), 1)),
        medical=MedicalInfo(vaccinations=[
            Vaccination(name="Rabies", administered_on=vaccinated_on,
                        expires_at=vaccinated_on + timedelta(days=365))
        ])
    )


async def create_clients(db, businesses: list[Business], users: list) -> tuple[dict[str, list[User]], list[Pet]]:
    clients = {}
    pets = []
    for business in businesses:
        owners = []
        for k in range(6):
            first, last = random_person()
            owner = make_user(
                UserRole.CLIENT,
                f"{first.lower()}.{last.lower()}.{k}.{business.business_id[-4:]}@example.com",
                first, last,
                phone=f"98{random.randint(10000000, 99999999)}",
                business_ids=[business.business_id]
            )
            owned = [random_pet(owner, business.business_id) for _ in range(random.randint(1, 2))]
            owner.pet_ids = [p.pet_id for p in owned]
            owners.append(owner)
            pets.extend(owned)

        await db.users.insert_many([o.to_mongo() for o in owners])
        await db.businesses.update_one(
            {"business_id": business.business_id},
            {"$set": {"total_clients": len(owners)}}
        )
        users.extend(owners)
        clients[business.business_id] = owners

    await db.pets.insert_many([p.to_mongo() for p in pets])
    return clients, pets


async def create_appointments(db, businesses, clients, pets, services, staff) -> list[Appointment]:
    """A month either side of today, one booking per staff member per slot"""
    pets_by_owner: dict[str, list[Pet]] = {}
    for pet in pets:
        pets_by_owner.setdefault(pet.owner_id, []).append(pet)

    appointments = []
    today = date.today()
    for business in businesses:
        for offset in range(-30, 31, 3):
            day = today + timedelta(days=offset)
            if day.weekday() == 6:
                continue
            for hour, member in zip((10, 13), staff[business.business_id]):
                owner = random.choice(clients[business.business_id])
                pet = random.choice(pets_by_owner[owner.user_id])
                service = random.choice(services[business.business_id])
                start = f"{hour:02d}:00"

                if offset < 0:
                    status = random.choice([AppointmentStatus.COMPLETED] * 4 + [AppointmentStatus.NO_SHOW])
                else:
                    status = random.choice([AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED])

                appointment = Appointment(
                    business_id=business.business_id,
                    client_id=owner.user_id,
                    pet_id=pet.pet_id,
                    staff_id=member.user_id,
                    created_by=owner.user_id,
                    service=ServiceSnapshot(
                        service_id=service.service_id,
                        name=service.name,
                        duration_minutes=service.duration.estimated_minutes,
                        buffer_minutes=service.duration.buffer_minutes,
                        price=service.pricing.base_price
                    ),
                    scheduled_date=day,
                    start_time=start,
                    end_time=add_minutes(start, service.duration.total_minutes),
                    status=status,
                    price=service.pricing.base_price
                )
                if status == AppointmentStatus.COMPLETED:
                    appointment.completed_at = datetime.combine(day, datetime.min.time(), timezone.utc) + timedelta(hours=hour + 1)
                appointments.append(appointment)

    if appointments:
        await db.appointments.insert_many([a.to_mongo() for a in appointments])
    for business in businesses:
        await db.businesses.update_one(
            {"business_id": business.business_id},
            {"$set": {"total_appointments": sum(1 for a in appointments if a.business_id == business.business_id)}}
        )
    return appointments


if __name__ == "__main__":
    asyncio.run(seed_database())
