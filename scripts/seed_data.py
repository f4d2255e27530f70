"""Seed demo drivers and vehicles for the dispatch system."""

import asyncio

from porter.api.dependencies import DispatchServices
from porter.core.notifications import NullBroadcaster
from porter.exceptions import ConflictError
from porter.models.driver import DriverCreate, LicenseInfo, PersonalInfo
from porter.models.order import VehicleClass
from porter.models.vehicle import Capacity, FuelType, VehicleCreate
from porter.state.manager import StateManager

VEHICLES = [
    VehicleCreate(
        registration_number="KA01AB1234",
        type=VehicleClass.MINI_TRUCK,
        make="Tata",
        model="Ace Gold",
        year=2022,
        capacity=Capacity(weight=750, volume=4.2),
    ),
    VehicleCreate(
        registration_number="KA05MN4521",
        type=VehicleClass.PICKUP,
        make="Mahindra",
        model="Bolero Pik-Up",
        year=2021,
        capacity=Capacity(weight=1500, volume=7.5),
    ),
    VehicleCreate(
        registration_number="KA03XY0098",
        type=VehicleClass.THREE_WHEELER,
        make="Piaggio",
        model="Ape E-City",
        year=2023,
        capacity=Capacity(weight=500, volume=2.8),
        fuel_type=FuelType.ELECTRIC,
    ),
]

DRIVERS = [
    DriverCreate(
        personal_info=PersonalInfo(
            first_name="Ravi",
            last_name="Kumar",
            email="ravi.kumar@example.com",
            phone="+91 98450 11223",
        ),
        license=LicenseInfo(number="KA0120190012345", type="LMV"),
        user_id="driver-ravi",
    ),
    DriverCreate(
        personal_info=PersonalInfo(
            first_name="Anita",
            last_name="Shetty",
            email="anita.shetty@example.com",
            phone="+91 99001 44556",
        ),
        license=LicenseInfo(number="KA0520170067890", type="HMV"),
        user_id="driver-anita",
    ),
    DriverCreate(
        personal_info=PersonalInfo(
            first_name="Imran",
            last_name="Pasha",
            email="imran.pasha@example.com",
            phone="+91 97411 77889",
        ),
        license=LicenseInfo(number="KA0320210024680", type="LMV"),
        user_id="driver-imran",
    ),
]


async def seed_fleet(services: DispatchServices) -> None:
    """Register vehicles and drivers, pairing them up in order."""
    print("Seeding vehicles...")
    vehicles = []
    for payload in VEHICLES:
        try:
            vehicle = await services.fleet.create_vehicle(payload)
        except ConflictError:
            print(f"  - {payload.registration_number} already registered, skipping")
            continue
        vehicles.append(vehicle)
        print(f"  ✓ Added {vehicle.vehicle_code} ({vehicle.registration_number}, {vehicle.type.value})")

    print("\nSeeding drivers...")
    for index, payload in enumerate(DRIVERS):
        try:
            driver = await services.fleet.create_driver(payload)
        except ConflictError:
            print(f"  - {payload.personal_info.email} already registered, skipping")
            continue

        if index < len(vehicles):
            driver = await services.fleet.assign_vehicle_to_driver(
                driver.driver_code, vehicles[index].vehicle_code
            )
        print(f"  ✓ Added {driver.full_name} ({driver.driver_code})")

    print("✓ Fleet seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Dispatch Fleet Data")
    print("=" * 50 + "\n")

    state_manager = StateManager()
    await state_manager.connect()

    await seed_fleet(DispatchServices(state_manager, NullBroadcaster()))

    await state_manager.disconnect()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
